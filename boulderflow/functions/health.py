"""Health check endpoints for the functions service."""

import asyncio
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel

from boulderflow.constants import ROUTES_TABLE
from boulderflow.database.supabase_client import get_supabase_client

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status.
        version: Application version string.
        timestamp: Time of the check (UTC).
    """

    status: Literal["healthy", "degraded"]
    version: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse, summary="Health Check")
async def health_check(request: Request) -> HealthResponse:
    """Report that the service is up."""
    return HealthResponse(
        status="healthy",
        version=request.app.state.settings.app_version,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/db", response_model=HealthResponse, summary="Database Health")
async def db_health_check(request: Request) -> HealthResponse:
    """Report ``degraded`` when a lightweight Supabase query fails."""
    status: Literal["healthy", "degraded"] = "healthy"

    try:
        client = await asyncio.to_thread(get_supabase_client)
        await asyncio.to_thread(
            lambda: client.table(ROUTES_TABLE).select("id").limit(1).execute()
        )
    except Exception:  # pylint: disable=broad-except
        status = "degraded"

    return HealthResponse(
        status=status,
        version=request.app.state.settings.app_version,
        timestamp=datetime.now(timezone.utc),
    )
