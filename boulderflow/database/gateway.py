"""Remote data gateway.

Owns every read and write against the backend tables and maps rows to the
client's domain models. All user-scoped operations require an active
session from the injected SessionManager and raise
AuthenticationRequiredError otherwise.

Example:
    >>> gateway = RemoteDataGateway(get_supabase_client(), session_manager)
    >>> locations = gateway.list_locations()
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any, Optional

from postgrest.types import CountMethod
from supabase import Client

from boulderflow.constants import (
    ANONYMOUS_USERNAME,
    ATTEMPTS_TABLE,
    FALLBACK_AVERAGE_STOKE,
    FALLBACK_TOTAL_ROUTES,
    FALLBACK_TOTAL_USERS,
    FEEDBACK_TABLE,
    GRADE_LEVELS_TABLE,
    LOCATIONS_TABLE,
    PROFILES_TABLE,
    ROUTES_TABLE,
    UNKNOWN_DIFFICULTY,
)
from boulderflow.database.exceptions import GatewayError
from boulderflow.database.session import SessionManager
from boulderflow.database.supabase_client import (
    delete_records,
    delete_records_except,
    insert_record,
    insert_records_bulk,
    supabase_op,
    update_record,
    upsert_records_bulk,
    validate_table_name,
)
from boulderflow.logging_config import get_logger
from boulderflow.models import (
    Attempt,
    AttemptDraft,
    AttemptPatch,
    CommunityStats,
    DifficultyStats,
    FeedbackDraft,
    FeedbackEntry,
    GradeLevel,
    GradeLevelDraft,
    Location,
    LocationDraft,
    Profile,
    Route,
    RouteDraft,
    RoutePatch,
    UserStats,
    sorted_grades,
)

logger = get_logger(__name__)

_LOCATION_COLUMNS = "*, grade_levels (*)"
_USER_ROUTE_COLUMNS = "*, grade_levels (*), locations (name)"
_ATTEMPT_COLUMNS = "*, routes (*), locations (name)"
_STATS_COLUMNS = "*, routes (*, grade_levels (*))"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_user_stats(rows: Sequence[dict[str, Any]]) -> UserStats:
    """Aggregate attempt rows (with nested route grades) into UserStats.

    Args:
        rows: ``attempts`` rows carrying ``routes.grade_levels`` when known.

    Returns:
        Totals, success rate in percent (0 when there are no attempts) and
        per-difficulty counts; attempts without a grade count as "unknown".
    """
    total = len(rows)
    completed = sum(1 for row in rows if row.get("completed"))
    by_difficulty: dict[str, DifficultyStats] = {}

    for row in rows:
        route = row.get("routes") or {}
        grade = route.get("grade_levels") or {}
        difficulty = grade.get("difficulty") or UNKNOWN_DIFFICULTY
        bucket = by_difficulty.setdefault(difficulty, DifficultyStats())
        bucket.total += 1
        if row.get("completed"):
            bucket.completed += 1

    return UserStats(
        total_attempts=total,
        completed_attempts=completed,
        success_rate=(completed / total) * 100 if total > 0 else 0.0,
        stats_by_difficulty=by_difficulty,
    )


class RemoteDataGateway:
    """Translates between backend rows and domain models.

    Args:
        client: Supabase client used for every call.
        session: Session manager providing the signed-in user.
        clock: Source of "now" for server-side timestamps set by the client.
    """

    def __init__(
        self,
        client: Client,
        session: SessionManager,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._session = session
        self._clock = clock

    # -- helpers -------------------------------------------------------------

    def _user_id(self) -> str:
        return self._session.require_user().user_id

    def _select(
        self,
        table: str,
        columns: str,
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Run a filtered select and return the rows."""
        validate_table_name(table)
        logger.debug("Select on %s", table, extra={"filters": filters or {}})

        with supabase_op(f"Failed to read from table '{table}'", GatewayError):
            query = self._client.table(table).select(columns)
            for column, value in (filters or {}).items():
                query = query.eq(column, value)
            if order:
                query = query.order(order, desc=descending)
            result = query.execute()
            return list(result.data or [])

    # -- locations -----------------------------------------------------------

    def list_locations(self) -> list[Location]:
        """List every visible location, newest first, with grade systems."""
        self._user_id()
        rows = self._select(
            LOCATIONS_TABLE, _LOCATION_COLUMNS, order="created_at", descending=True
        )
        return [Location.from_row(row) for row in rows]

    def list_user_locations(self) -> list[Location]:
        """List the locations created by the current user, newest first."""
        user_id = self._user_id()
        rows = self._select(
            LOCATIONS_TABLE,
            _LOCATION_COLUMNS,
            filters={"created_by": user_id},
            order="created_at",
            descending=True,
        )
        return [Location.from_row(row) for row in rows]

    def _profile_username(self, user_id: str) -> str:
        with supabase_op("Failed to read profile", GatewayError):
            result = (
                self._client.table(PROFILES_TABLE)
                .select("username")
                .eq("id", user_id)
                .maybe_single()
                .execute()
            )
        data = result.data if result is not None else None
        return (data or {}).get("username") or ANONYMOUS_USERNAME

    def _replace_grade_levels(
        self, location_id: str, grades: Sequence[GradeLevelDraft]
    ) -> None:
        """Write ``grades`` as the location's grade system.

        New and changed rows are written before stale rows are removed, so a
        failed write leaves the stored grade system in place.
        """
        rows = [g.to_row(location_id) for g in sorted_grades(grades)]
        keyed = [row for row in rows if row.get("id")]
        fresh = [row for row in rows if not row.get("id")]

        if keyed:
            upsert_records_bulk(self._client, GRADE_LEVELS_TABLE, keyed, GatewayError)
        kept_ids = [str(row["id"]) for row in keyed]
        if fresh:
            inserted = insert_records_bulk(
                self._client, GRADE_LEVELS_TABLE, fresh, GatewayError
            )
            kept_ids.extend(str(row["id"]) for row in inserted if row.get("id"))

        delete_records_except(
            self._client,
            GRADE_LEVELS_TABLE,
            "location_id",
            location_id,
            kept_ids,
            GatewayError,
        )

    def create_location(self, draft: LocationDraft) -> Location:
        """Create a location owned by the current user.

        The owner display name comes from the user's profile, "Anonymous"
        when it has none. The draft's grade system is stored alongside.
        """
        user_id = self._user_id()
        username = self._profile_username(user_id)

        row = insert_record(
            self._client,
            LOCATIONS_TABLE,
            {
                **draft.to_row(),
                "created_by": user_id,
                "created_by_username": username,
            },
            GatewayError,
        )
        if draft.grade_system:
            row["grade_levels"] = insert_records_bulk(
                self._client,
                GRADE_LEVELS_TABLE,
                [g.to_row(str(row["id"])) for g in sorted_grades(draft.grade_system)],
                GatewayError,
            )
        logger.info("Created location", extra={"location_id": row["id"]})
        return Location.from_row(row)

    def update_location(self, location_id: str, draft: LocationDraft) -> Location:
        """Overwrite a location's columns.

        When the draft carries a grade system it replaces the stored grade
        levels, an empty one clearing them; a draft without one keeps them.
        """
        self._user_id()
        row = update_record(
            self._client, LOCATIONS_TABLE, location_id, draft.to_row(), GatewayError
        )
        if draft.grade_system is not None:
            self._replace_grade_levels(location_id, draft.grade_system)
        row["grade_levels"] = self._select(
            GRADE_LEVELS_TABLE,
            "*",
            filters={"location_id": location_id},
            order="order_index",
        )
        logger.info("Updated location", extra={"location_id": location_id})
        return Location.from_row(row)

    def delete_location(self, location_id: str) -> None:
        self._user_id()
        delete_records(self._client, LOCATIONS_TABLE, "id", location_id, GatewayError)
        logger.info("Deleted location", extra={"location_id": location_id})

    # -- grades --------------------------------------------------------------

    def create_grade_level(
        self, location_id: str, draft: GradeLevelDraft
    ) -> GradeLevel:
        self._user_id()
        row = insert_record(
            self._client, GRADE_LEVELS_TABLE, draft.to_row(location_id), GatewayError
        )
        return GradeLevel.from_row(row)

    def list_grade_levels(self, location_id: str) -> list[GradeLevel]:
        self._user_id()
        rows = self._select(
            GRADE_LEVELS_TABLE,
            "*",
            filters={"location_id": location_id},
            order="order_index",
        )
        return [GradeLevel.from_row(row) for row in rows]

    # -- routes --------------------------------------------------------------

    def list_routes(self, location_id: str) -> list[Route]:
        """List the active routes at a location, newest first."""
        self._user_id()
        rows = self._select(
            ROUTES_TABLE,
            "*, grade_levels (*)",
            filters={"location_id": location_id, "is_active": True},
            order="created_at",
            descending=True,
        )
        return [Route.from_row(row) for row in rows]

    def list_routes_for_user(self, location_id: Optional[str] = None) -> list[Route]:
        """List the current user's active routes, optionally at one location."""
        filters: dict[str, Any] = {"created_by": self._user_id(), "is_active": True}
        if location_id:
            filters["location_id"] = location_id
        rows = self._select(
            ROUTES_TABLE,
            _USER_ROUTE_COLUMNS,
            filters=filters,
            order="created_at",
            descending=True,
        )
        return [Route.from_row(row) for row in rows]

    def create_route(self, draft: RouteDraft) -> Route:
        user_id = self._user_id()
        row = insert_record(
            self._client,
            ROUTES_TABLE,
            {**draft.to_row(), "created_by": user_id},
            GatewayError,
        )
        logger.info("Created route", extra={"route_id": row["id"]})
        return Route.from_row(row)

    def update_route(self, route_id: str, patch: RoutePatch) -> Route:
        self._user_id()
        row = update_record(
            self._client, ROUTES_TABLE, route_id, patch.to_row(), GatewayError
        )
        return Route.from_row(row)

    def deactivate_route(self, route_id: str) -> Route:
        """Soft-delete a route: clear ``is_active`` and stamp ``removed_at``."""
        self._user_id()
        row = update_record(
            self._client,
            ROUTES_TABLE,
            route_id,
            {"is_active": False, "removed_at": self._clock().isoformat()},
            GatewayError,
        )
        logger.info("Deactivated route", extra={"route_id": route_id})
        return Route.from_row(row)

    # -- attempts ------------------------------------------------------------

    def list_attempts_for_user(
        self,
        location_id: Optional[str] = None,
        route_id: Optional[str] = None,
    ) -> list[Attempt]:
        """List the current user's attempts, most recent date first."""
        filters: dict[str, Any] = {"user_id": self._user_id()}
        if location_id:
            filters["location_id"] = location_id
        if route_id:
            filters["route_id"] = route_id
        rows = self._select(
            ATTEMPTS_TABLE,
            _ATTEMPT_COLUMNS,
            filters=filters,
            order="date",
            descending=True,
        )
        return [Attempt.from_row(row) for row in rows]

    def create_attempt(self, draft: AttemptDraft) -> Attempt:
        user_id = self._user_id()
        row = insert_record(
            self._client,
            ATTEMPTS_TABLE,
            {**draft.to_row(), "user_id": user_id},
            GatewayError,
        )
        logger.info(
            "Logged attempt",
            extra={"attempt_id": row["id"], "completed": draft.completed},
        )
        return Attempt.from_row(row)

    def update_attempt(self, attempt_id: str, patch: AttemptPatch) -> Attempt:
        self._user_id()
        row = update_record(
            self._client, ATTEMPTS_TABLE, attempt_id, patch.to_row(), GatewayError
        )
        return Attempt.from_row(row)

    def delete_attempt(self, attempt_id: str) -> None:
        self._user_id()
        delete_records(self._client, ATTEMPTS_TABLE, "id", attempt_id, GatewayError)

    # -- statistics ----------------------------------------------------------

    def get_user_stats(self, location_id: Optional[str] = None) -> UserStats:
        """Aggregate the current user's attempts, optionally at one location."""
        filters: dict[str, Any] = {"user_id": self._user_id()}
        if location_id:
            filters["location_id"] = location_id
        rows = self._select(ATTEMPTS_TABLE, _STATS_COLUMNS, filters=filters)
        return compute_user_stats(rows)

    def _count_rows(self, table: str) -> Optional[int]:
        result = (
            self._client.table(table)
            .select("*", count=CountMethod.exact, head=True)
            .execute()
        )
        return result.count

    def get_community_stats(self) -> CommunityStats:
        """Landing-page figures across all users.

        Each figure falls back to a fixed value independently when its
        query fails or comes back empty. Does not require a session and
        never raises.
        """
        average_stoke = FALLBACK_AVERAGE_STOKE
        try:
            result = (
                self._client.table(FEEDBACK_TABLE)
                .select("stoke")
                .not_.is_("stoke", "null")
                .execute()
            )
            values = [r["stoke"] for r in result.data or [] if r.get("stoke") is not None]
            if values:
                average_stoke = sum(values) / len(values)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Failed to read feedback stoke: %s", exc)

        counts: dict[str, int] = {}
        for table, fallback in (
            (PROFILES_TABLE, FALLBACK_TOTAL_USERS),
            (ROUTES_TABLE, FALLBACK_TOTAL_ROUTES),
        ):
            try:
                counts[table] = self._count_rows(table) or fallback
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Failed to count %s: %s", table, exc)
                counts[table] = fallback

        return CommunityStats(
            average_stoke=round(average_stoke, 1),
            total_users=counts[PROFILES_TABLE],
            total_routes=counts[ROUTES_TABLE],
        )

    # -- profiles ------------------------------------------------------------

    def get_current_profile(self) -> Profile:
        user_id = self._user_id()
        with supabase_op("Failed to read profile", GatewayError):
            result = (
                self._client.table(PROFILES_TABLE)
                .select("*")
                .eq("id", user_id)
                .single()
                .execute()
            )
        return Profile.model_validate(result.data)

    def update_profile(
        self,
        username: Optional[str] = None,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Profile:
        """Update the given profile fields of the current user."""
        user_id = self._user_id()
        updates = {
            key: value
            for key, value in (
                ("username", username),
                ("full_name", full_name),
                ("avatar_url", avatar_url),
            )
            if value is not None
        }
        row = update_record(self._client, PROFILES_TABLE, user_id, updates, GatewayError)
        return Profile.model_validate(row)

    # -- feedback ------------------------------------------------------------

    def submit_feedback(self, draft: FeedbackDraft) -> FeedbackEntry:
        """Store app feedback.

        Raises:
            ValueError: If the message is blank.
        """
        self._user_id()
        row_data = draft.to_row()
        if not row_data["message"]:
            raise ValueError("Feedback message cannot be empty")
        row = insert_record(self._client, FEEDBACK_TABLE, row_data, GatewayError)
        return FeedbackEntry.model_validate(row)

    def list_approved_feedback(self, min_rating: int = 5) -> list[FeedbackEntry]:
        """List approved feedback rated at least ``min_rating``, newest first."""
        self._user_id()
        with supabase_op("Failed to read feedback", GatewayError):
            result = (
                self._client.table(FEEDBACK_TABLE)
                .select("*")
                .eq("is_approved", True)
                .gte("rating", min_rating)
                .order("created_at", desc=True)
                .execute()
            )
        return [FeedbackEntry.model_validate(row) for row in result.data or []]
