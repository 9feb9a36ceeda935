"""Hold detection backing the ``detect-grips`` function.

Runs a YOLOv8 hold detector on a decoded wall photo and reports the centre
of each detected hold in normalized image coordinates.

Example:
    >>> image = decode_image(data_url)
    >>> holds = detect_holds(image, "models/detection/best.pt")
    >>> holds[0].name, holds[0].confidence
    ('hold', 0.87)
"""

import base64
import binascii
import io
import threading
from pathlib import Path
from typing import Any, Final

import numpy as np
import PIL.Image as PILImage
from pydantic import BaseModel, Field
from ultralytics import YOLO

from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

CLASS_NAMES: Final[tuple[str, ...]] = ("hold", "volume")
DEFAULT_IOU_THRESHOLD: Final[float] = 0.45

# Resolved weights path -> loaded model
_MODEL_CACHE: dict[str, YOLO] = {}
_MODEL_CACHE_LOCK: threading.Lock = threading.Lock()


class InferenceError(Exception):
    """Raised when an image cannot be decoded or detection fails.

    Attributes:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class HoldPoint(BaseModel):
    """Centre of a detected hold, as returned to the client.

    Attributes:
        x: Horizontal centre as a fraction of image width (0-1).
        y: Vertical centre as a fraction of image height (0-1).
        confidence: Detection confidence score (0-1).
        name: Class label ("hold" or "volume").
    """

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    name: str


def decode_image(payload: str) -> PILImage.Image:
    """Decode a JPEG/PNG data URL or bare base64 string into an RGB image.

    Raises:
        InferenceError: If the payload is empty or not a decodable image.
    """
    if not payload or not payload.strip():
        raise InferenceError("Image data is empty")

    data = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InferenceError("Image data is not valid base64") from exc

    try:
        with PILImage.open(io.BytesIO(raw)) as img:
            return img.convert("RGB")
    except (OSError, PILImage.DecompressionBombError) as exc:
        raise InferenceError(f"Image data could not be decoded: {exc}") from exc


def _clear_model_cache() -> None:
    with _MODEL_CACHE_LOCK:
        _MODEL_CACHE.clear()


def _load_model_cached(weights_path: Path | str) -> YOLO:
    """Load the detector once per resolved weights path.

    Raises:
        InferenceError: If the weights file does not exist.
    """
    resolved = str(Path(weights_path).resolve())
    if resolved in _MODEL_CACHE:
        return _MODEL_CACHE[resolved]

    with _MODEL_CACHE_LOCK:
        if resolved in _MODEL_CACHE:
            return _MODEL_CACHE[resolved]

        if not Path(resolved).exists():
            raise InferenceError(f"Model weights not found: {weights_path}")

        logger.info("Loading detection model from: %s", resolved)
        model = YOLO(resolved)
        _MODEL_CACHE[resolved] = model
    return model


def _parse_results(results: list[Any], conf_threshold: float) -> list[HoldPoint]:
    holds: list[HoldPoint] = []

    for result in results:
        boxes = result.boxes
        if boxes is None:
            continue

        xywhn: np.ndarray = boxes.xywhn.cpu().numpy()
        cls_arr: np.ndarray = boxes.cls.cpu().numpy()
        conf_arr: np.ndarray = boxes.conf.cpu().numpy()

        for j, conf in enumerate(conf_arr):
            if conf < conf_threshold:
                continue
            class_id = int(cls_arr[j])
            if not 0 <= class_id < len(CLASS_NAMES):
                logger.warning("Skipping detection with unknown class_id: %d", class_id)
                continue
            holds.append(
                HoldPoint(
                    x=float(np.clip(xywhn[j][0], 0.0, 1.0)),
                    y=float(np.clip(xywhn[j][1], 0.0, 1.0)),
                    confidence=float(conf),
                    name=CLASS_NAMES[class_id],
                )
            )

    holds.sort(key=lambda h: h.confidence, reverse=True)
    return holds


def detect_holds(
    image: PILImage.Image,
    weights_path: Path | str,
    conf_threshold: float = 0.25,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> list[HoldPoint]:
    """Detect holds in ``image``, most confident first.

    Raises:
        InferenceError: If the weights are missing or prediction fails.
    """
    model = _load_model_cached(weights_path)

    try:
        results = model.predict(
            image, conf=conf_threshold, iou=iou_threshold, verbose=False
        )
        return _parse_results(results, conf_threshold)
    except Exception as exc:  # noqa: BLE001
        raise InferenceError(f"Hold detection failed: {exc}") from exc
