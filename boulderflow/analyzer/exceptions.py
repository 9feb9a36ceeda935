"""Analyzer exception hierarchy.

Neither error escapes the public analyzer API: camera failures become a
``CameraAccessResult`` and detection failures an empty grip list. They
exist so the internal failure paths can be classified and logged.
"""

from typing import Literal

CameraErrorKind = Literal["permission_denied", "not_found", "in_use", "unknown"]


class AnalyzerError(Exception):
    """Base class for analyzer errors.

    Attributes:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class CameraError(AnalyzerError):
    """Raised when a camera device cannot be opened or read.

    Attributes:
        kind: Failure classification used to pick the user guidance.

    Example:
        >>> raise CameraError("Camera 0 is busy", kind="in_use")
    """

    def __init__(self, message: str, kind: CameraErrorKind = "unknown") -> None:
        super().__init__(message)
        self.kind: CameraErrorKind = kind


class GripDetectionError(AnalyzerError):
    """Raised when the hold-detection call fails or returns garbage."""
