"""Client for the ``detect-grips`` serverless function.

Detection is a convenience: any failure (transport, decoding or a bad
upstream payload) is logged and degrades to an empty list so the grip
editor can continue with manual selection.
"""

import base64
from typing import Any, Union

from pydantic import ValidationError
from supabase import Client

from boulderflow.analyzer.exceptions import GripDetectionError
from boulderflow.constants import DETECT_GRIPS_FUNCTION
from boulderflow.database.exceptions import SupabaseClientError
from boulderflow.database.supabase_client import invoke_function
from boulderflow.logging_config import get_logger
from boulderflow.models import DetectedGrip

logger = get_logger(__name__)

ImagePayload = Union[str, bytes, bytearray]


def encode_image(image: ImagePayload) -> str:
    """Return ``image`` as text accepted by the detection function.

    Data URLs and base64 strings pass through; raw bytes are wrapped in a
    JPEG data URL.

    Raises:
        GripDetectionError: If the image is empty or of an unsupported type.
    """
    if isinstance(image, (bytes, bytearray)):
        if not image:
            raise GripDetectionError("Image bytes are empty")
        return "data:image/jpeg;base64," + base64.b64encode(bytes(image)).decode("ascii")
    if isinstance(image, str):
        if not image.strip():
            raise GripDetectionError("Image string is empty")
        return image
    raise GripDetectionError(f"Unsupported image type: {type(image).__name__}")


def parse_grips(payload: Any) -> list[DetectedGrip]:
    """Validate the ``{"grips": [...]}`` payload, skipping invalid items.

    Raises:
        GripDetectionError: If the payload itself has the wrong shape.
    """
    if not isinstance(payload, dict):
        raise GripDetectionError(
            f"Unexpected detection payload type: {type(payload).__name__}"
        )
    if "error" in payload:
        raise GripDetectionError(f"Detection service error: {payload['error']}")

    items = payload.get("grips") or []
    if not isinstance(items, list):
        raise GripDetectionError("Detection payload 'grips' is not a list")

    grips: list[DetectedGrip] = []
    for index, item in enumerate(items):
        try:
            grips.append(DetectedGrip.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid grip",
                extra={"index": index, "errors": exc.error_count()},
            )
    return grips


class GripDetectionService:
    """Calls the hold detector for a captured photo.

    Args:
        client: Supabase client used to invoke the function.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    def detect_grips(self, image: ImagePayload) -> list[DetectedGrip]:
        """Detect holds in ``image``.

        Args:
            image: JPEG data URL, base64 text or raw image bytes.

        Returns:
            Detected grips in normalized coordinates; empty on any failure.
        """
        try:
            body = {"image": encode_image(image)}
            payload = invoke_function(self._client, DETECT_GRIPS_FUNCTION, body)
            grips = parse_grips(payload)
        except SupabaseClientError as exc:
            logger.warning("Grip detection call failed: %s", exc.message)
            return []
        except GripDetectionError as exc:
            logger.warning("Grip detection failed: %s", exc.message)
            return []

        logger.info("Detected %d potential grips", len(grips))
        return grips
