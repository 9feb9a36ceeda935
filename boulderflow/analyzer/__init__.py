"""Route analyzer: camera capture, hold detection and grip annotation."""

from boulderflow.analyzer.camera import (
    CameraAccessResult,
    CameraService,
    PermissionState,
    VideoSurface,
)
from boulderflow.analyzer.detection_client import GripDetectionService
from boulderflow.analyzer.exceptions import (
    AnalyzerError,
    CameraError,
    GripDetectionError,
)
from boulderflow.analyzer.grips import GripEditor

__all__ = [
    "AnalyzerError",
    "CameraAccessResult",
    "CameraError",
    "CameraService",
    "GripDetectionError",
    "GripDetectionService",
    "GripEditor",
    "PermissionState",
    "VideoSurface",
]
