"""Location utilities: proximity ranking and reverse geocoding."""

from boulderflow.location.geocoding import (
    ReverseGeocoder,
    fetch_secrets,
    format_coordinates,
)
from boulderflow.location.proximity import (
    distance_to,
    format_distance,
    haversine_distance,
    rank_by_proximity,
)

__all__ = [
    "ReverseGeocoder",
    "distance_to",
    "fetch_secrets",
    "format_coordinates",
    "format_distance",
    "haversine_distance",
    "rank_by_proximity",
]
