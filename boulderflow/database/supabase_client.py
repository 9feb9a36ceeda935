"""Supabase client management and low-level table helpers.

This module provides a centralized, cached Supabase client and the small
set of table operations the data gateway builds on. Every helper validates
the table name against an allowlist and wraps third-party failures in the
package's exception hierarchy.
"""

import json
import re
from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any

from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions

from boulderflow.config import get_settings
from boulderflow.constants import (
    ATTEMPTS_TABLE,
    FEEDBACK_TABLE,
    GRADE_LEVELS_TABLE,
    LOCATIONS_TABLE,
    PROFILES_TABLE,
    ROUTES_TABLE,
)
from boulderflow.database.exceptions import SupabaseClientError

_KNOWN_TABLES: tuple[str, ...] = (
    LOCATIONS_TABLE,
    GRADE_LEVELS_TABLE,
    ROUTES_TABLE,
    ATTEMPTS_TABLE,
    PROFILES_TABLE,
    FEEDBACK_TABLE,
)


@contextmanager
def supabase_op(
    context: str,
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> Generator[None, None, None]:
    """Wrap Supabase operations with consistent error handling.

    Args:
        context: Description of the operation for error messages.
        error_cls: Exception type raised for wrapped failures.

    Yields:
        None

    Raises:
        SupabaseClientError: Errors of the package hierarchy pass through
            unchanged; any other exception is wrapped in ``error_cls``.
    """
    try:
        yield
    except SupabaseClientError:
        raise
    except Exception as e:
        raise error_cls(f"{context}: {e!s}") from e


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get cached Supabase client instance.

    Returns:
        Configured Supabase client.

    Raises:
        SupabaseClientError: If BF_SUPABASE_URL or BF_SUPABASE_KEY are not
            configured, or the client cannot be created.

    Example:
        >>> client = get_supabase_client()
        >>> result = client.table("locations").select("*").execute()
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise SupabaseClientError(
            "SUPABASE_URL environment variable is required but not set. "
            "Set BF_SUPABASE_URL in your environment or .env file."
        )

    if not settings.supabase_key:
        raise SupabaseClientError(
            "SUPABASE_KEY environment variable is required but not set. "
            "Set BF_SUPABASE_KEY in your environment or .env file."
        )

    try:
        options = SyncClientOptions(
            postgrest_client_timeout=settings.supabase_timeout_seconds
        )
        return create_client(
            settings.supabase_url, settings.supabase_key, options=options
        )
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e!s}") from e


def reset_supabase_client_cache() -> None:
    """Clear cached Supabase client (for testing)."""
    get_supabase_client.cache_clear()


def validate_table_name(table: str) -> None:
    """Validate a table name for format and against the known-tables allowlist.

    Args:
        table: Table name to validate.

    Raises:
        SupabaseClientError: If the name is empty, malformed or unknown.

    Example:
        >>> validate_table_name("routes")  # passes silently
        >>> validate_table_name("unknown")  # raises SupabaseClientError
    """
    if not table:
        raise SupabaseClientError("Table name cannot be empty")

    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", table):
        raise SupabaseClientError(
            f"Invalid table name '{table}': must start with letter/underscore "
            "and contain only alphanumeric characters and underscores"
        )

    if table not in _KNOWN_TABLES:
        raise SupabaseClientError(
            f"Unknown table '{table}': must be one of {_KNOWN_TABLES}"
        )


def insert_record(
    client: Client,
    table: str,
    data: dict[str, Any],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> dict[str, Any]:
    """Insert a record into a Supabase table.

    Args:
        client: Supabase client to use.
        table: Name of the table (e.g., "routes").
        data: Dictionary of column names to values.
        error_cls: Exception type raised for failures.

    Returns:
        The inserted record with server-generated fields (id, created_at, etc.).

    Raises:
        SupabaseClientError: If the insert fails, returns nothing, or the
            input is invalid.
    """
    validate_table_name(table)

    if not data:
        raise error_cls("Data dictionary cannot be empty")

    with supabase_op(f"Failed to insert record into table '{table}'", error_cls):
        result = client.table(table).insert(data).execute()

        if not result.data:
            raise error_cls(f"Insert to table '{table}' returned no data")

        record: dict[str, Any] = result.data[0]  # type: ignore[assignment]
        return record


def insert_records_bulk(
    client: Client,
    table: str,
    rows: list[dict[str, Any]],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> list[dict[str, Any]]:
    """Insert multiple records into a Supabase table in a single request.

    Args:
        client: Supabase client to use.
        table: Name of the table (e.g., ``"grade_levels"``).
        rows: Non-empty list of non-empty row dictionaries.
        error_cls: Exception type raised for failures.

    Returns:
        Inserted records in input order.

    Raises:
        SupabaseClientError: If ``rows`` or any row is empty, or the insert
            fails.
    """
    validate_table_name(table)

    if not rows:
        raise error_cls("rows list must not be empty")

    for i, row in enumerate(rows):
        if not row:
            raise error_cls(f"Row at index {i} is empty")

    with supabase_op(
        f"Failed to bulk-insert records into table '{table}'", error_cls
    ):
        result = client.table(table).insert(rows).execute()

        if not result.data:
            raise error_cls(f"Bulk insert into table '{table}' returned no data")

        return list(result.data)  # type: ignore[arg-type]


def upsert_records_bulk(
    client: Client,
    table: str,
    rows: list[dict[str, Any]],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
    on_conflict: str = "id",
) -> list[dict[str, Any]]:
    """Insert or update multiple records in a single request.

    Args:
        client: Supabase client to use.
        table: Name of the table.
        rows: Non-empty list of rows, each carrying the conflict column.
        error_cls: Exception type raised for failures.
        on_conflict: Column deciding whether a row is updated or inserted.

    Returns:
        The written records.

    Raises:
        SupabaseClientError: If ``rows`` is empty, a row lacks the conflict
            column, or the upsert fails.
    """
    validate_table_name(table)

    if not rows:
        raise error_cls("rows list must not be empty")

    for i, row in enumerate(rows):
        if not row.get(on_conflict):
            raise error_cls(f"Row at index {i} has no '{on_conflict}' value")

    with supabase_op(f"Failed to upsert records into table '{table}'", error_cls):
        result = (
            client.table(table).upsert(rows, on_conflict=on_conflict).execute()
        )
        return list(result.data or [])  # type: ignore[arg-type]


def update_record(
    client: Client,
    table: str,
    record_id: str,
    data: dict[str, Any],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> dict[str, Any]:
    """Update a single record by ID.

    Args:
        client: Supabase client to use.
        table: Name of the table.
        record_id: ID of the record to update.
        data: Columns to change.
        error_cls: Exception type raised for failures.

    Returns:
        The updated record.

    Raises:
        SupabaseClientError: If input is invalid, the update fails, or no
            record matched.
    """
    validate_table_name(table)

    if not record_id:
        raise error_cls("Record ID cannot be empty")
    if not data:
        raise error_cls("Data dictionary cannot be empty")

    with supabase_op(f"Failed to update record in table '{table}'", error_cls):
        result = client.table(table).update(data).eq("id", record_id).execute()

        if not result.data:
            raise error_cls(f"No record '{record_id}' found in table '{table}'")

        record: dict[str, Any] = result.data[0]  # type: ignore[assignment]
        return record


def delete_records(
    client: Client,
    table: str,
    column: str,
    value: str,
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> None:
    """Delete every record whose ``column`` equals ``value``.

    Args:
        client: Supabase client to use.
        table: Name of the table.
        column: Column to filter on (e.g. ``"id"`` or ``"location_id"``).
        value: Value to match.
        error_cls: Exception type raised for failures.

    Raises:
        SupabaseClientError: If input is invalid or the delete fails.
    """
    validate_table_name(table)

    if not value:
        raise error_cls(f"Filter value for '{column}' cannot be empty")

    with supabase_op(f"Failed to delete records from table '{table}'", error_cls):
        client.table(table).delete().eq(column, value).execute()


def delete_records_except(
    client: Client,
    table: str,
    column: str,
    value: str,
    keep_ids: list[str],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> None:
    """Delete the records matching ``column == value`` whose id is not kept.

    With no ids to keep this is :func:`delete_records`.

    Raises:
        SupabaseClientError: If input is invalid or the delete fails.
    """
    if not keep_ids:
        delete_records(client, table, column, value, error_cls)
        return

    validate_table_name(table)

    if not value:
        raise error_cls(f"Filter value for '{column}' cannot be empty")

    with supabase_op(f"Failed to delete records from table '{table}'", error_cls):
        (
            client.table(table)
            .delete()
            .eq(column, value)
            .not_.in_("id", keep_ids)
            .execute()
        )


def invoke_function(
    client: Client,
    name: str,
    body: dict[str, Any],
    error_cls: type[SupabaseClientError] = SupabaseClientError,
) -> Any:
    """Invoke a serverless function and return its decoded JSON payload.

    Args:
        client: Supabase client to use.
        name: Function name (e.g. ``"detect-grips"``).
        body: JSON request body.
        error_cls: Exception type raised for failures.

    Returns:
        The decoded response payload.

    Raises:
        SupabaseClientError: If the call fails or the payload is not JSON.
    """
    if not name:
        raise error_cls("Function name cannot be empty")

    with supabase_op(f"Failed to invoke function '{name}'", error_cls):
        payload = client.functions.invoke(
            name, invoke_options={"body": body, "responseType": "json"}
        )
        if isinstance(payload, (bytes, bytearray, str)):
            payload = json.loads(payload)
        return payload
