"""View state for the route tracker screen.

Holds the locations, routes and attempts shown to the user, sequences loads
and reloads around gateway writes, and reports outcomes through the
notifier. Handlers never raise: a failure is logged and surfaced once as a
destructive notification, and the user retries by acting again.

Gateway calls are blocking, so every call runs in a worker thread with
``asyncio.to_thread``. Loads of different collections are independent and
may complete in any order.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from boulderflow.config import ConfigurationError, get_config_value
from boulderflow.constants import EARTH_RADIUS_KM
from boulderflow.database.exceptions import SupabaseClientError
from boulderflow.database.gateway import RemoteDataGateway
from boulderflow.location.proximity import MissingPolicy, rank_by_proximity
from boulderflow.logging_config import get_logger
from boulderflow.models import (
    Attempt,
    AttemptDraft,
    AttemptPatch,
    Coordinates,
    GradeLevel,
    GradeLevelDraft,
    Location,
    LocationDraft,
    Route,
    RouteDraft,
)
from boulderflow.state.notifications import Notifier

logger = get_logger(__name__)

T = TypeVar("T")

# Failures a handler turns into a notification instead of raising.
HANDLED_ERRORS = (SupabaseClientError, ValidationError, ValueError)


def _earth_radius_km() -> float:
    try:
        return float(get_config_value("proximity.earth_radius_km", EARTH_RADIUS_KM))
    except ConfigurationError:
        return EARTH_RADIUS_KM


class RouteDataStore:
    """State container behind the locations/routes/attempts views.

    Args:
        gateway: Remote data gateway.
        notifier: Destination of success and failure notifications.
        clock: Source of the attempt date for quick logging.
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        notifier: Notifier,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self._clock = clock

        self.locations: list[Location] = []
        self.routes: list[Route] = []
        self.attempts: list[Attempt] = []
        self.selected_location: Optional[str] = None
        self.loading = True

    # -- loads ---------------------------------------------------------------

    async def load_locations(self) -> None:
        """Reload all locations; keeps the previous list on failure."""
        try:
            self.locations = await asyncio.to_thread(self._gateway.list_locations)
        except HANDLED_ERRORS as exc:
            logger.error("Error loading locations: %s", exc)
        finally:
            self.loading = False

    async def load_routes(self) -> None:
        if not self.selected_location:
            return
        try:
            self.routes = await asyncio.to_thread(
                self._gateway.list_routes_for_user, self.selected_location
            )
        except HANDLED_ERRORS as exc:
            logger.error("Error loading routes: %s", exc)

    async def load_attempts(self) -> None:
        if not self.selected_location:
            return
        try:
            self.attempts = await asyncio.to_thread(
                self._gateway.list_attempts_for_user, self.selected_location
            )
        except HANDLED_ERRORS as exc:
            logger.error("Error loading attempts: %s", exc)

    async def select_location(self, location_id: Optional[str]) -> None:
        """Select a location and load its routes and attempts."""
        self.selected_location = location_id or None
        if self.selected_location is None:
            self.routes = []
            self.attempts = []
            return
        await asyncio.gather(self.load_routes(), self.load_attempts())

    # -- derived views -------------------------------------------------------

    @property
    def current_location(self) -> Optional[Location]:
        return next(
            (loc for loc in self.locations if loc.id == self.selected_location), None
        )

    def grades_for_selected_location(self) -> list[GradeLevel]:
        """Grades a new route at the selected location may use."""
        location = self.current_location
        return list(location.grade_system) if location else []

    def sorted_locations(
        self,
        reference: Optional[Coordinates],
        missing: MissingPolicy = "in_place",
    ) -> list[Location]:
        """Locations ordered by distance from ``reference``."""
        return rank_by_proximity(
            reference, self.locations, missing=missing, radius_km=_earth_radius_km()
        )

    # -- handlers ------------------------------------------------------------

    async def _run(
        self,
        action: Callable[[], T],
        success: str,
        failure: str,
        reload: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Optional[T]:
        """Run a gateway write, reload, and notify.

        Returns:
            The action's result, or None when it failed.
        """
        try:
            result = await asyncio.to_thread(action)
        except HANDLED_ERRORS as exc:
            logger.error("%s: %s", failure, exc)
            self._notifier.error(f"{failure}. Please try again.")
            return None

        if reload is not None:
            await reload()
        self._notifier.success(success)
        return result

    async def handle_add_route(self, draft: RouteDraft) -> Optional[Route]:
        """Create a shared, active route and reload the route list."""
        route_draft = draft.with_is_active(True).with_personal_route(False)
        return await self._run(
            lambda: self._gateway.create_route(route_draft),
            "Route added successfully!",
            "Failed to add route",
            self.load_routes,
        )

    async def handle_log_attempt(
        self,
        route_id: str,
        attempt_count: int,
        completed: bool,
        notes: Optional[str] = None,
    ) -> Optional[Attempt]:
        """Log an attempt at the selected location, dated now."""
        if not self.selected_location:
            self._notifier.error("Select a location before logging an attempt.")
            return None
        try:
            draft = AttemptDraft(
                route_id=route_id,
                location_id=self.selected_location,
                completed=completed,
                attempts=attempt_count,
                date=self._clock(),
                notes=notes,
            )
        except ValidationError as exc:
            logger.error("Invalid attempt: %s", exc)
            self._notifier.error("Failed to log attempt. Please try again.")
            return None

        outcome = "🎉" if completed else "Keep trying!"
        return await self._run(
            lambda: self._gateway.create_attempt(draft),
            f"Attempt logged successfully! {outcome}",
            "Failed to log attempt",
            self.load_attempts,
        )

    async def handle_add_location(self, draft: LocationDraft) -> Optional[Location]:
        """Create a globally visible location and select it."""
        location = await self._run(
            lambda: self._gateway.create_location(draft.with_is_global(True)),
            "Location added successfully!",
            "Failed to add location",
            self.load_locations,
        )
        if location is not None:
            await self.select_location(location.id)
        return location

    async def handle_update_location(
        self, location_id: str, draft: LocationDraft
    ) -> Optional[Location]:
        return await self._run(
            lambda: self._gateway.update_location(location_id, draft),
            "Location updated successfully!",
            "Failed to update location",
            self.load_locations,
        )

    async def handle_update_grades(
        self, location_id: str, grades: Sequence[GradeLevelDraft]
    ) -> Optional[Location]:
        """Replace the grade system of a loaded location.

        Unknown locations are ignored.
        """
        location = next((loc for loc in self.locations if loc.id == location_id), None)
        if location is None:
            logger.warning("Grade update for unknown location %s", location_id)
            return None
        draft = location.to_draft().with_grade_system(grades)
        return await self._run(
            lambda: self._gateway.update_location(location_id, draft),
            "Grade system updated successfully!",
            "Failed to update grade system",
            self.load_locations,
        )

    async def handle_delete_location(self, location_id: str) -> bool:
        deleted = await self._run(
            lambda: self._gateway.delete_location(location_id) or True,
            "Location deleted successfully!",
            "Failed to delete location",
            self.load_locations,
        )
        if deleted and self.selected_location == location_id:
            await self.select_location(None)
        return bool(deleted)

    async def handle_deactivate_route(self, route_id: str) -> Optional[Route]:
        return await self._run(
            lambda: self._gateway.deactivate_route(route_id),
            "Route removed successfully!",
            "Failed to remove route",
            self.load_routes,
        )

    async def handle_update_attempt(
        self, attempt_id: str, patch: AttemptPatch
    ) -> Optional[Attempt]:
        return await self._run(
            lambda: self._gateway.update_attempt(attempt_id, patch),
            "Attempt updated successfully!",
            "Failed to update attempt",
            self.load_attempts,
        )

    async def handle_delete_attempt(self, attempt_id: str) -> bool:
        deleted: Any = await self._run(
            lambda: self._gateway.delete_attempt(attempt_id) or True,
            "Attempt deleted successfully!",
            "Failed to delete attempt",
            self.load_attempts,
        )
        return bool(deleted)
