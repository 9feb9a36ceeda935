"""``get-secrets`` function: exposes allowlisted server configuration.

Only keys listed in ``exposed_secret_keys`` and present in the server
environment are returned; every other requested key is silently omitted.
"""

import os

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from boulderflow.functions.shared import ErrorResponse, parse_body
from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


class SecretsRequest(BaseModel):
    """Request body: the names of the secrets wanted."""

    keys: list[str] = Field(min_length=1)


@router.post(
    "/get-secrets",
    response_model=dict[str, str],
    responses={400: {"model": ErrorResponse}},
    summary="Get Secrets",
)
async def get_secrets(request: Request) -> dict[str, str]:
    """Return the requested keys the server may expose and has configured."""
    body = await parse_body(request, SecretsRequest)
    allowed = set(request.app.state.settings.exposed_secret_keys)

    secrets: dict[str, str] = {}
    for key in body.keys:
        value = os.environ.get(key) if key in allowed else None
        if value:
            secrets[key] = value

    logger.info(
        "Secrets requested",
        extra={"requested": len(body.keys), "returned": sorted(secrets)},
    )
    return secrets
