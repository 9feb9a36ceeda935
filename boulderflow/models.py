"""Domain models for locations, grades, routes, attempts and grips.

Read models (``Location``, ``Route``, ...) are built from remote table rows
with ``from_row``. Write-side drafts are frozen: every change goes through a
named ``with_<field>`` method that returns a validated copy, and
``to_row`` produces the column mapping sent to the backend.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from boulderflow.constants import Difficulty, LocationKind, RouteChangeFrequency

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class Coordinates(BaseModel):
    """A geographic coordinate in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)

    @classmethod
    def from_json(cls, value: Any) -> Optional["Coordinates"]:
        """Parse the ``coordinates`` JSON column (``{"lat": .., "lng": ..}``).

        Args:
            value: Raw column value; None or a mapping.

        Returns:
            Coordinates, or None when the column is empty or incomplete.
        """
        if not isinstance(value, Mapping):
            return None
        if value.get("lat") is None or value.get("lng") is None:
            return None
        return cls(lat=float(value["lat"]), lng=float(value["lng"]))

    def to_json(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


class Grip(BaseModel):
    """A hold marked on a wall photo, in normalized image coordinates.

    Attributes:
        x: Horizontal position as a fraction of image width (0-1).
        y: Vertical position as a fraction of image height (0-1).
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)


class DetectedGrip(Grip):
    """A grip suggested by the hold-detection service.

    Attributes:
        confidence: Detection confidence score (0-1).
        name: Optional hold label reported by the detector.
    """

    confidence: float = Field(ge=0.0, le=1.0)
    name: Optional[str] = None

    def to_grip(self) -> Grip:
        """Return the bare position, dropping confidence and label."""
        return Grip(x=self.x, y=self.y)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class GradeLevel(BaseModel):
    """A location-specific grade, ranked by ``order``."""

    id: str
    color: str
    name: str
    difficulty: Difficulty
    order: int = Field(ge=0)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "GradeLevel":
        return cls(
            id=str(row["id"]),
            color=str(row["color"]),
            name=str(row["name"]),
            difficulty=row["difficulty"],
            order=int(row.get("order_index") or 0),
        )

    def to_draft(self) -> "GradeLevelDraft":
        return GradeLevelDraft(
            id=self.id,
            color=self.color,
            name=self.name,
            difficulty=self.difficulty,
            order=self.order,
        )


class Location(BaseModel):
    """A gym or outdoor crag with its own grade system."""

    id: str
    name: str
    kind: LocationKind
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    created_by: str
    created_by_username: str
    created_at: Optional[datetime] = None
    route_change_frequency: RouteChangeFrequency = "weekly"
    is_global: bool = True
    grade_system: list[GradeLevel] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Location":
        """Build a Location from a ``locations`` row with nested grade levels.

        Args:
            row: Row dictionary, optionally carrying ``grade_levels``.

        Returns:
            Location with its grade system sorted by order.
        """
        grades = [GradeLevel.from_row(g) for g in row.get("grade_levels") or []]
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            kind=row["type"],
            address=row.get("address"),
            coordinates=Coordinates.from_json(row.get("coordinates")),
            created_by=str(row["created_by"]),
            created_by_username=str(row.get("created_by_username") or ""),
            created_at=row.get("created_at"),
            route_change_frequency=row.get("route_change_frequency") or "weekly",
            is_global=True if row.get("is_global") is None else bool(row["is_global"]),
            grade_system=sorted_grades(grades),
        )

    def to_draft(self) -> "LocationDraft":
        """Return an editable draft carrying the current values."""
        return LocationDraft(
            name=self.name,
            kind=self.kind,
            address=self.address,
            coordinates=self.coordinates,
            route_change_frequency=self.route_change_frequency,
            is_global=self.is_global,
            grade_system=tuple(g.to_draft() for g in self.grade_system),
        )


class Route(BaseModel):
    """A set climb at a location.

    Routes are never hard-deleted; deactivation clears ``is_active`` and
    stamps ``removed_at``.
    """

    id: str
    name: str
    color: str
    grade_id: str
    location_id: str
    is_active: bool = True
    personal_route: bool = False
    created_by: str
    created_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None
    grade: Optional[GradeLevel] = None
    location_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Route":
        grade_row = row.get("grade_levels")
        location_row = row.get("locations")
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            color=str(row["color"]),
            grade_id=str(row["grade_id"]),
            location_id=str(row["location_id"]),
            is_active=True if row.get("is_active") is None else bool(row["is_active"]),
            personal_route=bool(row.get("personal_route") or False),
            created_by=str(row["created_by"]),
            created_at=row.get("created_at"),
            removed_at=row.get("removed_at"),
            grade=GradeLevel.from_row(grade_row) if grade_row else None,
            location_name=location_row.get("name") if location_row else None,
        )


class Attempt(BaseModel):
    """One logged session outcome against a route."""

    id: str
    route_id: str
    location_id: str
    completed: bool
    attempts: int = Field(default=1, ge=1)
    date: Optional[datetime] = None
    notes: Optional[str] = None
    route: Optional[Route] = None
    location_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Attempt":
        route_row = row.get("routes")
        location_row = row.get("locations")
        return cls(
            id=str(row["id"]),
            route_id=str(row["route_id"]),
            location_id=str(row["location_id"]),
            completed=bool(row["completed"]),
            attempts=int(row.get("attempts") or 1),
            date=row.get("date") or row.get("created_at"),
            notes=row.get("notes"),
            route=Route.from_row(route_row) if route_row else None,
            location_name=location_row.get("name") if location_row else None,
        )


class Profile(BaseModel):
    """Public profile of a user."""

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class FeedbackEntry(BaseModel):
    """App feedback as stored in the ``feedback`` table."""

    id: str
    message: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    rating: Optional[int] = None
    stoke: Optional[int] = None
    display_name: Optional[str] = None
    image_url: Optional[str] = None
    is_approved: bool = False


class DifficultyStats(BaseModel):
    total: int = 0
    completed: int = 0


class UserStats(BaseModel):
    """Aggregated attempt statistics for one user.

    Attributes:
        total_attempts: Number of logged attempts.
        completed_attempts: Number of logged sends.
        success_rate: Sends as a percentage of attempts (0-100).
        stats_by_difficulty: Totals keyed by grade difficulty.
    """

    total_attempts: int = 0
    completed_attempts: int = 0
    success_rate: float = 0.0
    stats_by_difficulty: dict[str, DifficultyStats] = Field(default_factory=dict)


class CommunityStats(BaseModel):
    """Landing-page figures across all users."""

    average_stoke: float
    total_users: int
    total_routes: int


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


class _Draft(BaseModel):
    """Frozen base for write-side value types."""

    model_config = ConfigDict(frozen=True)

    def _with(self, **changes: Any) -> Any:
        return type(self).model_validate({**dict(self), **changes})


class GradeLevelDraft(_Draft):
    id: Optional[str] = None
    color: str
    name: str
    difficulty: Difficulty = "beginner"
    order: int = Field(default=0, ge=0)

    def with_id(self, grade_id: Optional[str]) -> "GradeLevelDraft":
        return self._with(id=grade_id)

    def with_color(self, color: str) -> "GradeLevelDraft":
        return self._with(color=color)

    def with_name(self, name: str) -> "GradeLevelDraft":
        return self._with(name=name)

    def with_difficulty(self, difficulty: Difficulty) -> "GradeLevelDraft":
        return self._with(difficulty=difficulty)

    def with_order(self, order: int) -> "GradeLevelDraft":
        return self._with(order=order)

    def to_row(self, location_id: str) -> dict[str, Any]:
        row: dict[str, Any] = {
            "color": self.color,
            "name": self.name,
            "difficulty": self.difficulty,
            "order_index": self.order,
            "location_id": location_id,
        }
        if self.id:
            row["id"] = self.id
        return row


class LocationDraft(_Draft):
    """Editable values of a location, as entered in the location form.

    ``grade_system`` is None when the draft leaves the stored grades alone;
    an empty tuple clears them.
    """

    name: str
    kind: LocationKind = "gym"
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    route_change_frequency: RouteChangeFrequency = "weekly"
    is_global: bool = True
    grade_system: Optional[tuple[GradeLevelDraft, ...]] = None

    def with_name(self, name: str) -> "LocationDraft":
        return self._with(name=name)

    def with_kind(self, kind: LocationKind) -> "LocationDraft":
        return self._with(kind=kind)

    def with_address(self, address: Optional[str]) -> "LocationDraft":
        return self._with(address=address)

    def with_coordinates(self, coordinates: Optional[Coordinates]) -> "LocationDraft":
        return self._with(coordinates=coordinates)

    def with_route_change_frequency(
        self, frequency: RouteChangeFrequency
    ) -> "LocationDraft":
        return self._with(route_change_frequency=frequency)

    def with_is_global(self, is_global: bool) -> "LocationDraft":
        return self._with(is_global=is_global)

    def with_grade_system(
        self, grades: Sequence[GradeLevelDraft]
    ) -> "LocationDraft":
        return self._with(grade_system=tuple(grades))

    def to_row(self) -> dict[str, Any]:
        """Column mapping for ``locations`` (grade system excluded)."""
        return {
            "name": self.name,
            "type": self.kind,
            "address": self.address,
            "coordinates": self.coordinates.to_json() if self.coordinates else None,
            "route_change_frequency": self.route_change_frequency,
            "is_global": self.is_global,
        }


class RouteDraft(_Draft):
    name: str
    color: str
    grade_id: str
    location_id: str
    is_active: bool = True
    personal_route: bool = False

    def with_name(self, name: str) -> "RouteDraft":
        return self._with(name=name)

    def with_color(self, color: str) -> "RouteDraft":
        return self._with(color=color)

    def with_grade_id(self, grade_id: str) -> "RouteDraft":
        return self._with(grade_id=grade_id)

    def with_location_id(self, location_id: str) -> "RouteDraft":
        return self._with(location_id=location_id)

    def with_is_active(self, is_active: bool) -> "RouteDraft":
        return self._with(is_active=is_active)

    def with_personal_route(self, personal_route: bool) -> "RouteDraft":
        return self._with(personal_route=personal_route)

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "color": self.color,
            "grade_id": self.grade_id,
            "location_id": self.location_id,
            "is_active": self.is_active,
            "personal_route": self.personal_route,
        }


class AttemptDraft(_Draft):
    route_id: str
    location_id: str
    completed: bool = False
    attempts: int = Field(default=1, ge=1)
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    notes: Optional[str] = None

    def with_completed(self, completed: bool) -> "AttemptDraft":
        return self._with(completed=completed)

    def with_attempts(self, attempts: int) -> "AttemptDraft":
        return self._with(attempts=attempts)

    def with_date(self, date: datetime) -> "AttemptDraft":
        return self._with(date=date)

    def with_notes(self, notes: Optional[str]) -> "AttemptDraft":
        return self._with(notes=notes)

    def to_row(self) -> dict[str, Any]:
        return {
            "route_id": self.route_id,
            "location_id": self.location_id,
            "completed": self.completed,
            "attempts": self.attempts,
            "date": self.date.isoformat(),
            "notes": self.notes,
        }


class FeedbackDraft(_Draft):
    message: str
    email: Optional[str] = None

    def with_message(self, message: str) -> "FeedbackDraft":
        return self._with(message=message)

    def with_email(self, email: Optional[str]) -> "FeedbackDraft":
        return self._with(email=email)

    def to_row(self) -> dict[str, Any]:
        email = (self.email or "").strip()
        return {"message": self.message.strip(), "email": email or None}


class RoutePatch(_Draft):
    """Partial update of a route; unset fields are left untouched."""

    name: Optional[str] = None
    color: Optional[str] = None
    grade_id: Optional[str] = None
    is_active: Optional[bool] = None
    personal_route: Optional[bool] = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AttemptPatch(_Draft):
    """Partial update of an attempt; unset fields are left untouched."""

    completed: Optional[bool] = None
    attempts: Optional[int] = Field(default=None, ge=1)
    date: Optional[datetime] = None
    notes: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Grade system helpers
# ---------------------------------------------------------------------------


def sorted_grades(grades: Sequence[Any]) -> list[Any]:
    """Sort grades by ``order``; equal orders keep their input order."""
    return sorted(grades, key=lambda g: g.order)


def add_grade(
    grades: Sequence[GradeLevelDraft], grade: GradeLevelDraft
) -> list[GradeLevelDraft]:
    """Append a grade at the end of the sequence.

    The new grade gets ``order = len(grades)`` and a fresh local id when it
    has none.

    Args:
        grades: Current grade system.
        grade: Grade to append; its order is overwritten.

    Returns:
        New list with the grade appended.
    """
    new_grade = grade.with_order(len(grades))
    if new_grade.id is None:
        new_grade = new_grade.with_id(str(uuid4()))
    return [*grades, new_grade]


def remove_grade(
    grades: Sequence[GradeLevelDraft], grade_id: str
) -> list[GradeLevelDraft]:
    """Remove a grade by id and renumber the rest 0..n-1 in sequence order.

    Args:
        grades: Current grade system.
        grade_id: Id of the grade to drop; unknown ids leave the set as is.

    Returns:
        New list with contiguous orders.
    """
    remaining = [g for g in sorted_grades(grades) if g.id != grade_id]
    return [g.with_order(i) for i, g in enumerate(remaining)]
