"""
Pytest configuration and shared fixtures for the BoulderFlow tests.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest
import yaml

from boulderflow.config import clear_config_cache
from boulderflow.database.session import AuthSession, SessionManager


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear the YAML configuration cache around each test."""
    clear_config_cache()
    yield
    clear_config_cache()


def _result(data: Any = None, count: int | None = None) -> MagicMock:
    result = MagicMock()
    result.data = data
    result.count = count
    return result


@pytest.fixture
def mock_client() -> MagicMock:
    """Supabase client whose query chains all return the same builder.

    Set ``mock_client.query.execute.return_value`` to control results; every
    chained call (select, eq, order, ...) returns ``mock_client.query``.
    """
    client = MagicMock()
    query = MagicMock()
    for method in (
        "select",
        "insert",
        "upsert",
        "update",
        "delete",
        "eq",
        "gte",
        "is_",
        "in_",
        "order",
        "limit",
        "single",
        "maybe_single",
    ):
        getattr(query, method).return_value = query
    query.not_ = query
    query.execute.return_value = _result([])
    client.table.return_value = query
    client.query = query
    return client


@pytest.fixture
def session() -> AuthSession:
    """A signed-in user."""
    return AuthSession(user_id="user-1", email="climber@example.com")


@pytest.fixture
def session_manager(session) -> SessionManager:  # pylint: disable=redefined-outer-name
    """Session manager holding the signed-in user."""
    return SessionManager(session)


@pytest.fixture
def location_row() -> dict[str, Any]:
    """A ``locations`` row with nested grade levels out of order."""
    return {
        "id": "loc-1",
        "name": "Boulder Barn",
        "type": "gym",
        "address": "1 Crimp Street",
        "coordinates": {"lat": 51.5, "lng": -0.12},
        "created_by": "user-1",
        "created_by_username": "climber",
        "created_at": "2025-01-10T12:00:00+00:00",
        "route_change_frequency": "monthly",
        "is_global": True,
        "grade_levels": [
            {
                "id": "g-2",
                "color": "#ff0000",
                "name": "Red",
                "difficulty": "advanced",
                "order_index": 1,
            },
            {
                "id": "g-1",
                "color": "#00ff00",
                "name": "Green",
                "difficulty": "beginner",
                "order_index": 0,
            },
        ],
    }


@pytest.fixture
def route_row() -> dict[str, Any]:
    """A ``routes`` row with its grade and location name."""
    return {
        "id": "route-1",
        "name": "Crimpy Traverse",
        "color": "#ff0000",
        "grade_id": "g-2",
        "location_id": "loc-1",
        "is_active": True,
        "personal_route": False,
        "created_by": "user-1",
        "created_at": "2025-01-11T09:00:00+00:00",
        "removed_at": None,
        "grade_levels": {
            "id": "g-2",
            "color": "#ff0000",
            "name": "Red",
            "difficulty": "advanced",
            "order_index": 1,
        },
        "locations": {"name": "Boulder Barn"},
    }


@pytest.fixture
def attempt_row(route_row) -> dict[str, Any]:  # pylint: disable=redefined-outer-name
    """An ``attempts`` row with its route."""
    return {
        "id": "att-1",
        "route_id": "route-1",
        "location_id": "loc-1",
        "user_id": "user-1",
        "completed": True,
        "attempts": 3,
        "date": "2025-01-12T18:30:00+00:00",
        "notes": "Flashed the crux",
        "routes": route_row,
        "locations": {"name": "Boulder Barn"},
    }


@pytest.fixture
def test_config_yaml(tmp_path):
    """Create a complete temporary configuration YAML file."""
    config = {
        "grip_editor": {"toggle_threshold": 0.1, "match_threshold": 0.03},
        "camera": {
            "preferred_device": 1,
            "preferred_width": 1280,
            "preferred_height": 720,
            "jpeg_quality": 90,
        },
        "proximity": {"earth_radius_km": 6371.0},
    }

    config_file = tmp_path / "test_config.yaml"
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.dump(config, f)

    return config_file


@pytest.fixture
def invalid_config_yaml(tmp_path):
    """Create an invalid configuration YAML file."""
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text("{ invalid yaml content: [")
    return config_file


@pytest.fixture
def empty_config_yaml(tmp_path):
    """Create an empty configuration YAML file."""
    config_file = tmp_path / "empty_config.yaml"
    config_file.write_text("")
    return config_file
