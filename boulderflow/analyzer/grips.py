"""Grip annotation editor.

Interaction model for marking holds on a wall photo. The editor is seeded
with machine-detected grips and then edited by taps: a tap near an existing
selected grip removes it, anywhere else adds a new one. Proximity uses an
independent-axis box test (``|dx| < t and |dy| < t``), not a radius.

The detected grips are read-only; no selection action changes them.

Example:
    >>> editor = GripEditor()
    >>> editor.initialize_from_detection(detected)
    >>> editor.toggle_at(Grip(x=0.5, y=0.5))
    >>> editor.select_grade("V3")
    >>> editor.complete()
    'V3 Route'
"""

from collections.abc import Sequence
from typing import Literal, Optional

from boulderflow.config import ConfigurationError, get_config_value
from boulderflow.constants import GRIP_MATCH_THRESHOLD, GRIP_TOGGLE_THRESHOLD
from boulderflow.logging_config import get_logger
from boulderflow.models import DetectedGrip, Grip

logger = get_logger(__name__)

GripOrigin = Literal["detected", "manual"]


def _within_box(a: Grip, b: Grip, threshold: float) -> bool:
    return abs(a.x - b.x) < threshold and abs(a.y - b.y) < threshold


class GripEditor:
    """Holds the selected and detected grips of one analysis session.

    Args:
        toggle_threshold: Box half-width for tap toggling (default 0.05).
        match_threshold: Box half-width for matching selected grips to
            detected ones (default 0.02).
    """

    def __init__(
        self,
        toggle_threshold: float = GRIP_TOGGLE_THRESHOLD,
        match_threshold: float = GRIP_MATCH_THRESHOLD,
    ) -> None:
        if toggle_threshold <= 0 or match_threshold <= 0:
            raise ValueError("Grip thresholds must be positive")
        self.toggle_threshold = toggle_threshold
        self.match_threshold = match_threshold
        self._selected: list[Grip] = []
        self._detected: tuple[DetectedGrip, ...] = ()
        self._grade: Optional[str] = None

    @classmethod
    def from_config(cls) -> "GripEditor":
        """Build an editor using the thresholds from the YAML config.

        Falls back to the built-in thresholds when the config cannot be
        loaded.
        """
        try:
            toggle = get_config_value("grip_editor.toggle_threshold")
            match = get_config_value("grip_editor.match_threshold")
        except ConfigurationError as exc:
            logger.warning("Using default grip thresholds: %s", exc)
            return cls()
        return cls(
            toggle_threshold=float(toggle or GRIP_TOGGLE_THRESHOLD),
            match_threshold=float(match or GRIP_MATCH_THRESHOLD),
        )

    # -- state ---------------------------------------------------------------

    @property
    def selected_grips(self) -> list[Grip]:
        return list(self._selected)

    @property
    def detected_grips(self) -> tuple[DetectedGrip, ...]:
        return self._detected

    @property
    def selected_grade(self) -> Optional[str]:
        return self._grade

    # -- editing -------------------------------------------------------------

    def initialize_from_detection(self, detected: Sequence[DetectedGrip]) -> None:
        """Store the detection result and select every detected position."""
        self._detected = tuple(detected)
        self._selected = [grip.to_grip() for grip in self._detected]
        logger.debug("Seeded %d grips from detection", len(self._selected))

    def toggle_at(self, point: Grip) -> bool:
        """Remove the first selected grip near ``point`` or add ``point``.

        Args:
            point: Tap position in normalized coordinates.

        Returns:
            True if a grip was added, False if one was removed.
        """
        for index, grip in enumerate(self._selected):
            if _within_box(grip, point, self.toggle_threshold):
                del self._selected[index]
                return False
        self._selected.append(Grip(x=point.x, y=point.y))
        return True

    def toggle_at_pixel(
        self,
        px: float,
        py: float,
        width: float,
        height: float,
        left: float = 0.0,
        top: float = 0.0,
    ) -> Optional[bool]:
        """Toggle at a click given in display pixels.

        Args:
            px: Click x in the same space as ``left``.
            py: Click y in the same space as ``top``.
            width: Displayed image width.
            height: Displayed image height.
            left: Image left edge.
            top: Image top edge.

        Returns:
            Result of :meth:`toggle_at`, or None when the click was ignored
            (outside the image or the image has no size).
        """
        if width <= 0 or height <= 0:
            return None
        x = (px - left) / width
        y = (py - top) / height
        if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
            return None
        return self.toggle_at(Grip(x=x, y=y))

    # -- classification ------------------------------------------------------

    def is_detected(self, grip: Grip) -> bool:
        """True when a detected grip lies inside the match box of ``grip``."""
        return any(
            _within_box(detected, grip, self.match_threshold)
            for detected in self._detected
        )

    def classified(self) -> list[tuple[Grip, GripOrigin]]:
        """Selected grips tagged by origin, in selection order."""
        return [
            (grip, "detected" if self.is_detected(grip) else "manual")
            for grip in self._selected
        ]

    def undetected_overlay(self) -> list[DetectedGrip]:
        """Detected grips with no selected grip inside their match box."""
        return [
            detected
            for detected in self._detected
            if not any(
                _within_box(selected, detected, self.match_threshold)
                for selected in self._selected
            )
        ]

    @staticmethod
    def to_pixels(grip: Grip, width: float, height: float) -> tuple[float, float]:
        return grip.x * width, grip.y * height

    # -- completion ----------------------------------------------------------

    def select_grade(self, grade: Optional[str]) -> None:
        self._grade = grade or None

    @property
    def can_complete(self) -> bool:
        return bool(self._selected) and self._grade is not None

    def complete(self) -> str:
        """Collapse the session into a route name.

        Returns:
            ``"<grade> Route"``.

        Raises:
            ValueError: If no grip is selected or no grade was chosen.
        """
        if not self.can_complete:
            raise ValueError("Select at least one grip and a grade to continue")
        name = f"{self._grade} Route"
        logger.info(
            "Route analysis completed",
            extra={"grips": len(self._selected), "grade": self._grade},
        )
        return name

    def reset(self) -> None:
        """Discard selection, detection and grade."""
        self._selected = []
        self._detected = ()
        self._grade = None
