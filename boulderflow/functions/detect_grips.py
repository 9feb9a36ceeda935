"""``detect-grips`` function: suggests hold positions on a wall photo."""

import asyncio

from fastapi import APIRouter, Request
from pydantic import BaseModel

from boulderflow.functions.detection import (
    HoldPoint,
    InferenceError,
    decode_image,
    detect_holds,
)
from boulderflow.functions.shared import ErrorResponse, FunctionError, parse_body
from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


class DetectGripsRequest(BaseModel):
    """Request body: a JPEG/PNG data URL or bare base64 image."""

    image: str


class DetectGripsResponse(BaseModel):
    grips: list[HoldPoint]


@router.post(
    "/detect-grips",
    response_model=DetectGripsResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Detect Grips",
)
async def detect_grips(request: Request) -> DetectGripsResponse:
    """Detect holds in the posted image.

    Without configured detector weights the image is still validated but no
    grips are returned.

    Raises:
        FunctionError: If the image is missing or undecodable, or detection
            fails.
    """
    body = await parse_body(request, DetectGripsRequest)
    settings = request.app.state.settings

    try:
        image = await asyncio.to_thread(decode_image, body.image)
    except InferenceError as exc:
        raise FunctionError(exc.message) from exc

    logger.info(
        "detect-grips called",
        extra={"width": image.width, "height": image.height},
    )

    if not settings.detection_weights_path:
        logger.warning("No detection weights configured; returning no grips")
        return DetectGripsResponse(grips=[])

    try:
        holds = await asyncio.to_thread(
            detect_holds,
            image,
            settings.detection_weights_path,
            settings.detection_conf_threshold,
        )
    except InferenceError as exc:
        logger.error("Hold detection failed: %s", exc.message)
        raise FunctionError(exc.message) from exc

    logger.info("Returning %d grips", len(holds))
    return DetectGripsResponse(grips=holds)
