"""Camera acquisition helper.

Wraps an OpenCV capture device: acquiring it (with one relaxed retry),
binding it to a presentation surface, grabbing still frames as JPEG and
releasing the hardware. No acquisition failure escapes ``request_access``;
it is classified into a ``CameraAccessResult`` instead.

Only one ``request_access`` should be outstanding at a time; callers gate
this (e.g. a disabled button while initializing), nothing here locks.

Example:
    >>> camera = CameraService.from_config()
    >>> result = camera.request_access()
    >>> if result.granted:
    ...     camera.attach(surface)
    ...     jpeg = camera.capture_frame()
    >>> camera.release()
"""

import base64
import io
import platform
from collections.abc import Callable
from typing import Any, Literal, Optional, Protocol

import cv2
import numpy as np
import PIL.Image as PILImage
from pydantic import BaseModel, ConfigDict

from boulderflow.analyzer.exceptions import CameraError, CameraErrorKind
from boulderflow.config import ConfigurationError, get_config_value
from boulderflow.logging_config import get_logger

logger = get_logger(__name__)

PermissionState = Literal["granted", "denied", "prompt", "unknown"]

APPLE_PLATFORMS = frozenset({"Darwin", "iOS", "iPadOS"})
DEFAULT_DEVICE = 0
DEFAULT_JPEG_QUALITY = 80
MAX_PROBED_DEVICES = 4

_PERMISSION_STATES = ("granted", "denied", "prompt")


class CameraAccessResult(BaseModel):
    """Outcome of a camera access request.

    Attributes:
        granted: True when a live stream is available.
        requires_platform_settings_fallback: True when the failure looks like
            a permanent denial that must be fixed in the OS settings.
        error_kind: Classification of the failure, None on success.
    """

    model_config = ConfigDict(frozen=True)

    granted: bool
    requires_platform_settings_fallback: bool = False
    error_kind: Optional[CameraErrorKind] = None


class VideoSurface(Protocol):
    """Anything that can present a live capture stream."""

    def play(self, stream: Any) -> None: ...

    def detach(self) -> None: ...


CaptureFactory = Callable[[int], Any]
PermissionProbe = Callable[[], str]


class CameraService:
    """Owns one capture device for the duration of an analysis session.

    Args:
        preferred_device: Device index tried first.
        preferred_width: Requested frame width for the first attempt.
        preferred_height: Requested frame height for the first attempt.
        jpeg_quality: JPEG quality used by :meth:`capture_frame`.
        capture_factory: Builds a capture for a device index
            (``cv2.VideoCapture`` by default).
        permission_probe: Platform permission query, when one exists.
        platform_name: Device family; defaults to ``platform.system()``.
    """

    def __init__(
        self,
        preferred_device: int = DEFAULT_DEVICE,
        preferred_width: int = 1920,
        preferred_height: int = 1080,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        capture_factory: CaptureFactory = cv2.VideoCapture,
        permission_probe: Optional[PermissionProbe] = None,
        platform_name: Optional[str] = None,
    ) -> None:
        if not 1 <= jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be in 1-100, got {jpeg_quality}")
        self.preferred_device = preferred_device
        self.preferred_width = preferred_width
        self.preferred_height = preferred_height
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory
        self._permission_probe = permission_probe
        self._platform = platform_name or platform.system()
        self._capture: Any = None
        self._surface: Optional[VideoSurface] = None
        self._device: Optional[int] = None

    @classmethod
    def from_config(cls, **kwargs: Any) -> "CameraService":
        """Build a service with the camera defaults from the YAML config."""
        try:
            settings = {
                "preferred_device": int(
                    get_config_value("camera.preferred_device", DEFAULT_DEVICE)
                ),
                "preferred_width": int(get_config_value("camera.preferred_width")),
                "preferred_height": int(get_config_value("camera.preferred_height")),
                "jpeg_quality": int(get_config_value("camera.jpeg_quality")),
            }
        except ConfigurationError as exc:
            logger.warning("Using default camera settings: %s", exc)
            settings = {}
        return cls(**{**settings, **kwargs})

    @property
    def is_active(self) -> bool:
        return self._capture is not None

    @property
    def current_device(self) -> Optional[int]:
        return self._device

    @property
    def is_apple_device(self) -> bool:
        return self._platform in APPLE_PLATFORMS

    # -- permission ----------------------------------------------------------

    def check_permission(self) -> PermissionState:
        """Query the platform permission state without prompting.

        Returns:
            The probe's answer, or "unknown" when the platform has no probe,
            the probe fails, or it answers something unrecognized.
        """
        if self._permission_probe is None:
            return "unknown"
        try:
            state = self._permission_probe()
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Camera permission probe failed: %s", exc)
            return "unknown"
        if state in _PERMISSION_STATES:
            return state  # type: ignore[return-value]
        return "unknown"

    # -- acquisition ---------------------------------------------------------

    def _open(
        self, device: int, width: Optional[int], height: Optional[int]
    ) -> Any:
        """Open ``device`` and verify it delivers frames.

        Raises:
            CameraError: Classified failure.
        """
        capture = self._capture_factory(device)
        if capture is None or not capture.isOpened():
            if capture is not None:
                capture.release()
            if self.check_permission() == "denied":
                raise CameraError(
                    f"Camera {device} access denied", kind="permission_denied"
                )
            raise CameraError(f"Camera {device} not found", kind="not_found")

        try:
            if width and height:
                capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
                capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            ok, _ = capture.read()
        except Exception:
            capture.release()
            raise

        if not ok:
            capture.release()
            raise CameraError(f"Camera {device} is not readable", kind="in_use")
        return capture

    @staticmethod
    def _classify(exc: Exception) -> CameraErrorKind:
        if isinstance(exc, CameraError):
            return exc.kind
        if isinstance(exc, PermissionError):
            return "permission_denied"
        return "unknown"

    def request_access(self) -> CameraAccessResult:
        """Acquire the camera, retrying once with relaxed constraints.

        The first attempt targets the preferred device at the preferred
        resolution; the retry uses the default device at its native
        resolution. Any stream held before the call is released first.

        Returns:
            CameraAccessResult; never raises.
        """
        self.release()

        if self.check_permission() == "denied":
            logger.warning("Camera permission denied before request")
            return self._failure("permission_denied")

        attempts = (
            (self.preferred_device, self.preferred_width, self.preferred_height),
            (DEFAULT_DEVICE, None, None),
        )
        kind: CameraErrorKind = "unknown"
        for device, width, height in attempts:
            try:
                self._capture = self._open(device, width, height)
            except Exception as exc:  # pylint: disable=broad-except
                kind = self._classify(exc)
                logger.warning(
                    "Camera access attempt failed",
                    extra={"device": device, "error_kind": kind, "error": str(exc)},
                )
                continue
            self._device = device
            logger.info("Camera access granted", extra={"device": device})
            return CameraAccessResult(granted=True)

        return self._failure(kind)

    def _failure(self, kind: CameraErrorKind) -> CameraAccessResult:
        return CameraAccessResult(
            granted=False,
            requires_platform_settings_fallback=(
                kind == "permission_denied" and self.is_apple_device
            ),
            error_kind=kind,
        )

    # -- presentation --------------------------------------------------------

    def attach(self, surface: VideoSurface) -> None:
        """Bind the live stream to ``surface`` and start playback."""
        if self._capture is None:
            return
        self._surface = surface
        surface.play(self._capture)
        logger.debug("Video stream attached")

    def capture_frame(self) -> Optional[bytes]:
        """Grab the current frame at native resolution as JPEG bytes.

        Returns:
            JPEG bytes, or None when no surface is attached or the frame
            cannot be read or encoded.
        """
        if self._surface is None or self._capture is None:
            return None
        try:
            ok, frame = self._capture.read()
            if not ok or frame is None:
                logger.warning("Camera returned no frame")
                return None
            return self._encode_jpeg(frame)
        except (cv2.error, OSError, ValueError) as exc:
            logger.warning("Frame capture failed: %s", exc)
            return None

    def capture_frame_data_url(self) -> Optional[str]:
        """Like :meth:`capture_frame`, as a ``data:image/jpeg;base64`` URL."""
        jpeg = self.capture_frame()
        if jpeg is None:
            return None
        return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")

    def _encode_jpeg(self, frame: np.ndarray) -> bytes:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        buffer = io.BytesIO()
        PILImage.fromarray(rgb).save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()

    # -- teardown ------------------------------------------------------------

    def release(self) -> None:
        """Stop the hardware stream and detach the surface. Idempotent."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera stopped")
        self._device = None
        if self._surface is not None:
            self._surface.detach()
            self._surface = None

    # -- devices -------------------------------------------------------------

    def list_video_devices(self, max_devices: int = MAX_PROBED_DEVICES) -> list[int]:
        """Indices of the video devices that can be opened.

        The device currently held by this service is listed without being
        probed again.
        """
        devices: list[int] = []
        for index in range(max_devices):
            if self._capture is not None and index == self._device:
                devices.append(index)
                continue
            capture = self._capture_factory(index)
            try:
                if capture is not None and capture.isOpened():
                    devices.append(index)
            finally:
                if capture is not None:
                    capture.release()
        return devices

    def switch_camera(self) -> bool:
        """Move to the next available device.

        When more than one device exists, the current stream is released
        and access is requested for the device after the current one
        (wrapping around).

        Returns:
            True if a stream on the target device was acquired. False when
            there is nothing to switch to or the target could not be opened;
            the previous device is then preferred and reacquired.
        """
        devices = self.list_video_devices()
        if len(devices) <= 1:
            return False

        previous = self.preferred_device
        current = self._device if self._device is not None else previous
        position = devices.index(current) if current in devices else -1
        target = devices[(position + 1) % len(devices)]

        logger.info("Switching camera", extra={"from": current, "to": target})
        self.release()
        self.preferred_device = target
        granted = self.request_access().granted
        if granted and self._device == target:
            return True

        logger.warning(
            "Camera switch failed", extra={"device": target, "restored": current}
        )
        self.preferred_device = previous
        if self._device != current:
            self.request_access()
        return False
