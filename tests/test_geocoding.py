"""Tests for reverse geocoding and secrets lookup."""

from unittest.mock import MagicMock

import httpx
import pytest

from boulderflow.location.geocoding import (
    GEOCODE_URL,
    ReverseGeocoder,
    fetch_secrets,
    format_coordinates,
)
from boulderflow.models import Coordinates

POINT = Coordinates(lat=51.5074, lng=-0.1278)


def _http_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestFetchSecrets:
    """Tests for fetch_secrets."""

    def test_returns_requested_keys(self, mock_client):
        """Only requested, non-empty string values are kept."""
        mock_client.functions.invoke.return_value = {
            "GOOGLE_MAPS_API_KEY": "maps-key",
            "OTHER": "leak",
            "EMPTY": "",
        }

        secrets = fetch_secrets(mock_client, ["GOOGLE_MAPS_API_KEY", "EMPTY"])

        assert secrets == {"GOOGLE_MAPS_API_KEY": "maps-key"}
        mock_client.functions.invoke.assert_called_once_with(
            "get-secrets",
            invoke_options={
                "body": {"keys": ["GOOGLE_MAPS_API_KEY", "EMPTY"]},
                "responseType": "json",
            },
        )

    def test_decodes_bytes_payload(self, mock_client):
        """JSON bytes payloads are decoded."""
        mock_client.functions.invoke.return_value = b'{"GOOGLE_MAPS_API_KEY": "k"}'

        assert fetch_secrets(mock_client, ["GOOGLE_MAPS_API_KEY"]) == {
            "GOOGLE_MAPS_API_KEY": "k"
        }

    def test_failure_returns_empty(self, mock_client):
        """Invocation failures are recovered."""
        mock_client.functions.invoke.side_effect = RuntimeError("offline")

        assert not fetch_secrets(mock_client, ["GOOGLE_MAPS_API_KEY"])

    def test_malformed_payload_returns_empty(self, mock_client):
        """A non-object payload is ignored."""
        mock_client.functions.invoke.return_value = ["not", "a", "dict"]

        assert not fetch_secrets(mock_client, ["GOOGLE_MAPS_API_KEY"])


class TestReverseGeocoder:
    """Tests for ReverseGeocoder."""

    def test_format_coordinates(self):
        assert format_coordinates(POINT) == "51.507400, -0.127800"

    def test_returns_first_address(self):
        """The first formatted address is used."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200,
                json={
                    "status": "OK",
                    "results": [
                        {"formatted_address": "10 Downing St, London"},
                        {"formatted_address": "London, UK"},
                    ],
                },
            )

        geocoder = ReverseGeocoder("maps-key", http_client=_http_client(handler))

        assert geocoder.reverse_geocode(POINT) == "10 Downing St, London"
        assert seen["url"].startswith(GEOCODE_URL)
        assert seen["params"] == {"latlng": "51.5074,-0.1278", "key": "maps-key"}

    def test_no_key_falls_back_without_request(self):
        """Without a key no request is made."""
        http = MagicMock()
        geocoder = ReverseGeocoder(None, http_client=http, timeout=1.0)

        assert geocoder.reverse_geocode(POINT) == "51.507400, -0.127800"
        http.get.assert_not_called()

    @pytest.mark.parametrize(
        "body",
        [
            {"status": "ZERO_RESULTS", "results": []},
            {"status": "OK", "results": []},
            {"status": "REQUEST_DENIED"},
        ],
    )
    def test_no_result_falls_back(self, body):
        """Provider responses without a result use the coordinates."""
        geocoder = ReverseGeocoder(
            "maps-key",
            http_client=_http_client(lambda request: httpx.Response(200, json=body)),
        )

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)

    @pytest.mark.parametrize(
        "body",
        [
            ["OK"],
            "OK",
            {"status": "OK", "results": ["1 Main St"]},
            {"status": "OK", "results": {"formatted_address": "1 Main St"}},
            {"status": "OK", "results": [{"formatted_address": 42}]},
        ],
    )
    def test_malformed_body_falls_back(self, body):
        """Unexpected JSON shapes use the coordinates instead of raising."""
        geocoder = ReverseGeocoder(
            "maps-key",
            http_client=_http_client(lambda request: httpx.Response(200, json=body)),
        )

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)

    def test_http_error_falls_back(self):
        """HTTP error statuses use the coordinates."""
        geocoder = ReverseGeocoder(
            "maps-key",
            http_client=_http_client(lambda request: httpx.Response(500)),
        )

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)

    def test_transport_error_falls_back(self):
        """Network failures use the coordinates."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        geocoder = ReverseGeocoder("maps-key", http_client=_http_client(handler))

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)

    def test_invalid_json_falls_back(self):
        """A non-JSON body uses the coordinates."""
        geocoder = ReverseGeocoder(
            "maps-key",
            http_client=_http_client(
                lambda request: httpx.Response(200, content=b"<html>")
            ),
        )

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)

    def test_from_secrets(self, mock_client):
        """The key is fetched from the secrets function."""
        mock_client.functions.invoke.return_value = {"GOOGLE_MAPS_API_KEY": "k"}
        geocoder = ReverseGeocoder.from_secrets(
            mock_client,
            http_client=_http_client(
                lambda request: httpx.Response(
                    200,
                    json={"status": "OK", "results": [{"formatted_address": "Here"}]},
                )
            ),
        )

        assert geocoder.reverse_geocode(POINT) == "Here"

    def test_from_secrets_without_key(self, mock_client):
        """A missing key disables geocoding."""
        mock_client.functions.invoke.return_value = {}

        geocoder = ReverseGeocoder.from_secrets(mock_client, http_client=MagicMock())

        assert geocoder.reverse_geocode(POINT) == format_coordinates(POINT)
