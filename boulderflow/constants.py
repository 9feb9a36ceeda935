"""
Constants shared across the BoulderFlow client core.

Value sets mirror the columns of the remote schema; thresholds are the
defaults used when no YAML configuration is loaded.
"""

from typing import Final, Literal

LocationKind = Literal["gym", "outdoor"]
RouteChangeFrequency = Literal["weekly", "monthly", "rarely", "never"]
Difficulty = Literal["beginner", "easy", "intermediate", "advanced", "expert"]

DIFFICULTIES: Final[tuple[str, ...]] = (
    "beginner",
    "easy",
    "intermediate",
    "advanced",
    "expert",
)

# Difficulty bucket for attempts whose route has no grade attached
UNKNOWN_DIFFICULTY: Final[str] = "unknown"

# Remote tables
LOCATIONS_TABLE: Final[str] = "locations"
GRADE_LEVELS_TABLE: Final[str] = "grade_levels"
ROUTES_TABLE: Final[str] = "routes"
ATTEMPTS_TABLE: Final[str] = "attempts"
PROFILES_TABLE: Final[str] = "profiles"
FEEDBACK_TABLE: Final[str] = "feedback"

# Remote functions
DETECT_GRIPS_FUNCTION: Final[str] = "detect-grips"
GET_SECRETS_FUNCTION: Final[str] = "get-secrets"
MAPS_API_KEY_NAME: Final[str] = "GOOGLE_MAPS_API_KEY"

# Grip editor
GRIP_TOGGLE_THRESHOLD: Final[float] = 0.05
GRIP_MATCH_THRESHOLD: Final[float] = 0.02

# Proximity ranking
EARTH_RADIUS_KM: Final[float] = 6371.0

ANONYMOUS_USERNAME: Final[str] = "Anonymous"

# Landing-page figures shown when the community statistics cannot be read
FALLBACK_AVERAGE_STOKE: Final[float] = 4.7
FALLBACK_TOTAL_USERS: Final[int] = 12000
FALLBACK_TOTAL_ROUTES: Final[int] = 2000000
