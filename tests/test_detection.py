"""Tests for hold detection behind the detect-grips function."""

import base64
import io
from unittest.mock import MagicMock, patch

import numpy as np
import PIL.Image as PILImage
import pytest

from boulderflow.functions import detection
from boulderflow.functions.detection import (
    HoldPoint,
    InferenceError,
    _clear_model_cache,
    _parse_results,
    decode_image,
    detect_holds,
)


def _png_bytes(mode: str = "RGBA") -> bytes:
    buffer = io.BytesIO()
    PILImage.new(mode, (10, 6)).save(buffer, format="PNG")
    return buffer.getvalue()


def _tensor(values) -> MagicMock:
    tensor = MagicMock()
    tensor.cpu.return_value.numpy.return_value = np.array(values)
    return tensor


def _result(xywhn, cls, conf) -> MagicMock:
    result = MagicMock()
    result.boxes.xywhn = _tensor(xywhn)
    result.boxes.cls = _tensor(cls)
    result.boxes.conf = _tensor(conf)
    return result


class TestDecodeImage:
    """Tests for decode_image."""

    def test_data_url(self):
        payload = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode()

        image = decode_image(payload)

        assert image.mode == "RGB"
        assert image.size == (10, 6)

    def test_bare_base64(self):
        assert decode_image(base64.b64encode(_png_bytes("L")).decode()).mode == "RGB"

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ("", "empty"),
            ("   ", "empty"),
            ("data:image/png;base64,***", "not valid base64"),
            (base64.b64encode(b"hello world").decode(), "could not be decoded"),
        ],
    )
    def test_invalid(self, payload, message):
        with pytest.raises(InferenceError, match=message):
            decode_image(payload)


class TestParseResults:
    """Tests for _parse_results."""

    def test_sorted_by_confidence(self):
        results = [
            _result(
                [[0.2, 0.3, 0.1, 0.1], [0.6, 0.7, 0.1, 0.1]],
                [0, 1],
                [0.5, 0.9],
            )
        ]

        holds = _parse_results(results, conf_threshold=0.25)

        assert [h.name for h in holds] == ["volume", "hold"]
        assert holds[0].x == pytest.approx(0.6)
        assert holds[1].confidence == pytest.approx(0.5)

    def test_filters_low_confidence_and_unknown_classes(self):
        results = [
            _result(
                [[0.2, 0.3, 0.1, 0.1], [0.6, 0.7, 0.1, 0.1], [0.5, 0.5, 0.1, 0.1]],
                [0, 0, 7],
                [0.1, 0.8, 0.9],
            )
        ]

        holds = _parse_results(results, conf_threshold=0.25)

        assert holds == [HoldPoint(x=0.6, y=0.7, confidence=0.8, name="hold")]

    def test_clips_coordinates(self):
        holds = _parse_results(
            [_result([[1.02, -0.01, 0.1, 0.1]], [0], [0.7])], conf_threshold=0.25
        )

        assert (holds[0].x, holds[0].y) == (1.0, 0.0)

    def test_no_boxes(self):
        result = MagicMock()
        result.boxes = None
        assert not _parse_results([result], conf_threshold=0.25)


class TestDetectHolds:
    """Tests for detect_holds."""

    def setup_method(self):
        _clear_model_cache()

    def teardown_method(self):
        _clear_model_cache()

    def test_missing_weights(self, tmp_path):
        with pytest.raises(InferenceError, match="not found"):
            detect_holds(PILImage.new("RGB", (4, 4)), tmp_path / "missing.pt")

    def test_model_is_cached(self, tmp_path):
        weights = tmp_path / "best.pt"
        weights.write_bytes(b"weights")
        with patch.object(detection, "YOLO") as mock_yolo:
            mock_yolo.return_value.predict.return_value = []

            detect_holds(PILImage.new("RGB", (4, 4)), weights)
            detect_holds(PILImage.new("RGB", (4, 4)), weights)

        mock_yolo.assert_called_once_with(str(weights.resolve()))

    def test_prediction_failure(self, tmp_path):
        weights = tmp_path / "best.pt"
        weights.write_bytes(b"weights")
        with patch.object(detection, "YOLO") as mock_yolo:
            mock_yolo.return_value.predict.side_effect = RuntimeError("CUDA OOM")

            with pytest.raises(InferenceError, match="CUDA OOM"):
                detect_holds(PILImage.new("RGB", (4, 4)), weights)
