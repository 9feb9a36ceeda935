"""Tests for the detect-grips function client."""

import base64

import pytest

from boulderflow.analyzer.detection_client import (
    GripDetectionService,
    encode_image,
    parse_grips,
)
from boulderflow.analyzer.exceptions import GripDetectionError
from boulderflow.models import DetectedGrip


class TestEncodeImage:
    """Tests for encode_image."""

    def test_bytes_become_data_url(self):
        encoded = encode_image(b"\xff\xd8jpeg")
        assert encoded == "data:image/jpeg;base64," + base64.b64encode(
            b"\xff\xd8jpeg"
        ).decode("ascii")

    def test_strings_pass_through(self):
        assert encode_image("data:image/png;base64,AAAA") == (
            "data:image/png;base64,AAAA"
        )

    @pytest.mark.parametrize("image", [b"", "   ", 42])
    def test_invalid_input(self, image):
        with pytest.raises(GripDetectionError):
            encode_image(image)  # type: ignore[arg-type]


class TestParseGrips:
    """Tests for parse_grips."""

    def test_valid_payload(self):
        grips = parse_grips(
            {"grips": [{"x": 0.1, "y": 0.2, "confidence": 0.9, "name": "hold"}]}
        )
        assert grips == [DetectedGrip(x=0.1, y=0.2, confidence=0.9, name="hold")]

    def test_invalid_items_are_skipped(self):
        """Out-of-range or incomplete grips are dropped."""
        grips = parse_grips(
            {
                "grips": [
                    {"x": 1.5, "y": 0.2, "confidence": 0.9},
                    {"x": 0.5},
                    {"x": 0.5, "y": 0.5, "confidence": 0.4},
                ]
            }
        )
        assert grips == [DetectedGrip(x=0.5, y=0.5, confidence=0.4)]

    def test_missing_grips_is_empty(self):
        assert not parse_grips({})

    @pytest.mark.parametrize(
        "payload",
        [["not", "a", "dict"], {"error": "boom"}, {"grips": "nope"}],
    )
    def test_malformed_payload(self, payload):
        with pytest.raises(GripDetectionError):
            parse_grips(payload)


class TestGripDetectionService:
    """Tests for GripDetectionService."""

    def test_detect_grips(self, mock_client):
        """The function is invoked with the encoded image."""
        mock_client.functions.invoke.return_value = {
            "grips": [{"x": 0.3, "y": 0.4, "confidence": 0.8}]
        }

        grips = GripDetectionService(mock_client).detect_grips("data:image/jpeg;base64,AA")

        assert grips == [DetectedGrip(x=0.3, y=0.4, confidence=0.8)]
        mock_client.functions.invoke.assert_called_once_with(
            "detect-grips",
            invoke_options={
                "body": {"image": "data:image/jpeg;base64,AA"},
                "responseType": "json",
            },
        )

    def test_transport_failure_returns_empty(self, mock_client):
        """Invocation failures degrade to no grips."""
        mock_client.functions.invoke.side_effect = RuntimeError("offline")

        assert not GripDetectionService(mock_client).detect_grips(b"jpeg")

    def test_upstream_error_returns_empty(self, mock_client):
        mock_client.functions.invoke.return_value = {"error": "model missing"}

        assert not GripDetectionService(mock_client).detect_grips(b"jpeg")

    def test_empty_image_skips_call(self, mock_client):
        assert not GripDetectionService(mock_client).detect_grips(b"")
        mock_client.functions.invoke.assert_not_called()
