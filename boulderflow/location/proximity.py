"""Great-circle distance and proximity ordering of locations.

All functions are pure: inputs are never mutated and a new list is returned.

Example:
    >>> ranked = rank_by_proximity(Coordinates(lat=0, lng=0), locations)
"""

import math
from collections.abc import Sequence
from typing import Literal, Optional

from boulderflow.constants import EARTH_RADIUS_KM
from boulderflow.models import Coordinates, Location

MissingPolicy = Literal["in_place", "last"]


def haversine_distance(
    a: Coordinates, b: Coordinates, radius_km: float = EARTH_RADIUS_KM
) -> float:
    """Great-circle distance between two coordinates in kilometres.

    Args:
        a: First coordinate.
        b: Second coordinate.
        radius_km: Sphere radius (default 6371 km).

    Returns:
        Distance in kilometres. Zero for identical points; symmetric.
    """
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return 2 * radius_km * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_to(
    reference: Coordinates, location: Location, radius_km: float = EARTH_RADIUS_KM
) -> Optional[float]:
    """Distance from ``reference`` to a location, None when it has no coordinates."""
    if location.coordinates is None:
        return None
    return haversine_distance(reference, location.coordinates, radius_km)


def rank_by_proximity(
    reference: Optional[Coordinates],
    locations: Sequence[Location],
    missing: MissingPolicy = "in_place",
    radius_km: float = EARTH_RADIUS_KM,
) -> list[Location]:
    """Order locations by distance from a reference coordinate.

    Locations with coordinates are stably sorted ascending by distance.
    Locations without coordinates are placed according to ``missing``:

    * ``"in_place"`` keeps them at their input positions; the coordinated
      locations fill the remaining slots in distance order.
    * ``"last"`` appends them after every coordinated location, in input
      order.

    Args:
        reference: User position; when None the input order is returned.
        locations: Locations to rank.
        missing: Placement policy for locations without coordinates.
        radius_km: Sphere radius used for distances.

    Returns:
        A new list that is a permutation of ``locations``.

    Raises:
        ValueError: If ``missing`` is not a known policy.
    """
    if missing not in ("in_place", "last"):
        raise ValueError(f"Unknown missing-coordinates policy: {missing!r}")

    if reference is None:
        return list(locations)

    located = [loc for loc in locations if loc.coordinates is not None]
    ranked = sorted(
        located,
        key=lambda loc: haversine_distance(reference, loc.coordinates, radius_km),
    )

    if missing == "last":
        return ranked + [loc for loc in locations if loc.coordinates is None]

    fill = iter(ranked)
    return [loc if loc.coordinates is None else next(fill) for loc in locations]


def format_distance(km: float) -> str:
    """Render a distance for display: metres under 1 km, else one decimal km."""
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
