"""Reverse geocoding of location coordinates.

The mapping API key is never embedded in the client: it is fetched from the
``get-secrets`` function at runtime. Geocoding failures are recovered by
using the formatted coordinate pair as the address.
"""

from collections.abc import Sequence
from typing import Any, Optional

import httpx
from supabase import Client

from boulderflow.config import get_settings
from boulderflow.constants import GET_SECRETS_FUNCTION, MAPS_API_KEY_NAME
from boulderflow.database.exceptions import SupabaseClientError
from boulderflow.database.supabase_client import invoke_function
from boulderflow.logging_config import get_logger
from boulderflow.models import Coordinates

logger = get_logger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def format_coordinates(coordinates: Coordinates) -> str:
    """Fallback address: ``"<lat>, <lng>"`` with six decimals."""
    return f"{coordinates.lat:.6f}, {coordinates.lng:.6f}"


def fetch_secrets(client: Client, keys: Sequence[str]) -> dict[str, str]:
    """Fetch configuration secrets from the ``get-secrets`` function.

    Args:
        client: Supabase client used to invoke the function.
        keys: Names of the secrets to request.

    Returns:
        Mapping of the requested keys the server knows about. Empty when the
        call fails or the response is malformed.
    """
    try:
        payload = invoke_function(client, GET_SECRETS_FUNCTION, {"keys": list(keys)})
    except SupabaseClientError as exc:
        logger.warning("Secrets lookup failed: %s", exc.message)
        return {}

    if not isinstance(payload, dict):
        logger.warning("Unexpected secrets payload type: %s", type(payload).__name__)
        return {}

    return {
        key: value
        for key, value in payload.items()
        if key in keys and isinstance(value, str) and value
    }


class ReverseGeocoder:
    """Turns coordinates into a human-readable address.

    Args:
        api_key: Google Maps API key; when empty every lookup falls back to
            the coordinate string.
        http_client: Optional httpx client (injected in tests).
        timeout: Request timeout in seconds; defaults to the configured
            ``geocoding_timeout_seconds``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._api_key = api_key or ""
        self._timeout = (
            timeout if timeout is not None else get_settings().geocoding_timeout_seconds
        )
        self._http = http_client

    @classmethod
    def from_secrets(
        cls, client: Client, http_client: Optional[httpx.Client] = None
    ) -> "ReverseGeocoder":
        """Build a geocoder with the maps key fetched from ``get-secrets``."""
        secrets = fetch_secrets(client, [MAPS_API_KEY_NAME])
        if MAPS_API_KEY_NAME not in secrets:
            logger.warning("Maps API key not available; geocoding disabled")
        return cls(secrets.get(MAPS_API_KEY_NAME), http_client=http_client)

    def _request(self, params: dict[str, Any]) -> httpx.Response:
        if self._http is not None:
            return self._http.get(GEOCODE_URL, params=params, timeout=self._timeout)
        with httpx.Client(timeout=self._timeout) as http:
            return http.get(GEOCODE_URL, params=params)

    def reverse_geocode(self, coordinates: Coordinates) -> str:
        """Return the first formatted address for ``coordinates``.

        Falls back to :func:`format_coordinates` when there is no API key,
        the request fails, or the provider reports no result.
        """
        fallback = format_coordinates(coordinates)
        if not self._api_key:
            return fallback

        params = {
            "latlng": f"{coordinates.lat},{coordinates.lng}",
            "key": self._api_key,
        }
        try:
            response = self._request(params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocoding failed: %s", exc)
            return fallback

        if not isinstance(body, dict):
            logger.warning("Reverse geocoding returned a malformed body")
            return fallback

        results = body.get("results")
        if body.get("status") != "OK" or not results or not isinstance(results, list):
            logger.warning(
                "Reverse geocoding returned no result",
                extra={"status": body.get("status")},
            )
            return fallback

        first = results[0]
        if not isinstance(first, dict):
            logger.warning("Reverse geocoding returned a malformed result")
            return fallback

        address = first.get("formatted_address")
        return address if isinstance(address, str) and address else fallback
