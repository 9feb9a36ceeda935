"""Tests for the grip annotation editor."""

# pylint: disable=redefined-outer-name  # standard pytest fixture pattern

import pytest

from boulderflow.analyzer.grips import GripEditor
from boulderflow.models import DetectedGrip, Grip


@pytest.fixture
def detected() -> list[DetectedGrip]:
    """Two machine-detected grips."""
    return [
        DetectedGrip(x=0.300, y=0.400, confidence=0.9, name="hold"),
        DetectedGrip(x=0.700, y=0.200, confidence=0.6, name="hold"),
    ]


@pytest.fixture
def editor(detected) -> GripEditor:
    """Editor seeded with the detected grips."""
    grip_editor = GripEditor()
    grip_editor.initialize_from_detection(detected)
    return grip_editor


class TestInitialization:
    """Tests for seeding the editor."""

    def test_selects_every_detection(self, editor):
        """Every detected position starts selected."""
        assert editor.selected_grips == [Grip(x=0.3, y=0.4), Grip(x=0.7, y=0.2)]
        assert len(editor.detected_grips) == 2

    def test_rejects_non_positive_thresholds(self):
        with pytest.raises(ValueError, match="positive"):
            GripEditor(toggle_threshold=0)
        with pytest.raises(ValueError, match="positive"):
            GripEditor(match_threshold=-0.1)

    def test_from_config(self, monkeypatch, test_config_yaml):
        """Thresholds are read from the YAML config."""
        monkeypatch.setattr(
            "boulderflow.config.resolve_path", lambda _path: test_config_yaml
        )

        grip_editor = GripEditor.from_config()

        assert grip_editor.toggle_threshold == pytest.approx(0.1)
        assert grip_editor.match_threshold == pytest.approx(0.03)

    def test_from_config_falls_back(self, monkeypatch, invalid_config_yaml):
        """A broken config falls back to the defaults."""
        monkeypatch.setattr(
            "boulderflow.config.resolve_path", lambda _path: invalid_config_yaml
        )

        grip_editor = GripEditor.from_config()

        assert grip_editor.toggle_threshold == pytest.approx(0.05)
        assert grip_editor.match_threshold == pytest.approx(0.02)


class TestToggle:
    """Tests for tap toggling."""

    def test_tap_near_selected_removes(self, editor):
        """A tap inside the toggle box removes the first matching grip."""
        assert editor.toggle_at(Grip(x=0.33, y=0.43)) is False
        assert editor.selected_grips == [Grip(x=0.7, y=0.2)]

    def test_tap_elsewhere_adds(self, editor):
        """A tap away from every selected grip adds it."""
        assert editor.toggle_at(Grip(x=0.5, y=0.9)) is True
        assert editor.selected_grips[-1] == Grip(x=0.5, y=0.9)

    def test_box_not_radius(self):
        """Both axes must be within the threshold independently."""
        grip_editor = GripEditor()
        grip_editor.toggle_at(Grip(x=0.5, y=0.5))

        # dx inside, dy outside: not a match
        assert grip_editor.toggle_at(Grip(x=0.51, y=0.56)) is True
        assert len(grip_editor.selected_grips) == 2

    def test_toggle_twice_is_identity(self, editor):
        """Adding and then tapping the same point restores the selection."""
        before = editor.selected_grips

        editor.toggle_at(Grip(x=0.5, y=0.9))
        editor.toggle_at(Grip(x=0.5, y=0.9))

        assert editor.selected_grips == before

    def test_detected_grips_are_read_only(self, editor, detected):
        """Selection changes never alter the detected list."""
        editor.toggle_at(Grip(x=0.3, y=0.4))
        editor.toggle_at(Grip(x=0.1, y=0.1))

        assert list(editor.detected_grips) == detected

    def test_selected_grips_returns_copy(self, editor):
        editor.selected_grips.clear()
        assert len(editor.selected_grips) == 2

    def test_toggle_at_pixel(self):
        """Pixel clicks are normalized against the displayed image."""
        grip_editor = GripEditor()

        assert grip_editor.toggle_at_pixel(150, 120, 400, 200, left=50, top=20) is True
        assert grip_editor.selected_grips == [Grip(x=0.25, y=0.5)]

    @pytest.mark.parametrize(
        ("px", "py", "width", "height"),
        [(500, 10, 400, 200), (-1, 10, 400, 200), (10, 10, 0, 200)],
    )
    def test_toggle_at_pixel_ignored(self, px, py, width, height):
        """Clicks outside the image or on an empty image are ignored."""
        grip_editor = GripEditor()

        assert grip_editor.toggle_at_pixel(px, py, width, height) is None
        assert not grip_editor.selected_grips

    def test_to_pixels(self):
        assert GripEditor.to_pixels(Grip(x=0.25, y=0.5), 800, 600) == (200.0, 300.0)


class TestClassification:
    """Tests for detected/manual classification."""

    def test_close_grip_is_detected(self, detected):
        """A grip within the match box of a detection counts as detected."""
        grip_editor = GripEditor()
        grip_editor.initialize_from_detection(detected[:1])

        assert grip_editor.is_detected(Grip(x=0.301, y=0.401))
        assert not grip_editor.is_detected(Grip(x=0.35, y=0.40))

    def test_classified(self, editor):
        """Selected grips are tagged by origin in selection order."""
        editor.toggle_at(Grip(x=0.5, y=0.9))

        origins = [origin for _, origin in editor.classified()]

        assert origins == ["detected", "detected", "manual"]

    def test_undetected_overlay(self, editor, detected):
        """Deselected detections are offered as an overlay."""
        editor.toggle_at(Grip(x=0.7, y=0.2))

        assert editor.undetected_overlay() == [detected[1]]


class TestCompletion:
    """Tests for grade selection and completion."""

    def test_complete(self, editor):
        """Completion yields the route name."""
        editor.select_grade("V3")

        assert editor.can_complete
        assert editor.complete() == "V3 Route"

    def test_complete_requires_grade(self, editor):
        with pytest.raises(ValueError, match="Select at least one grip"):
            editor.complete()

    def test_complete_requires_grips(self):
        grip_editor = GripEditor()
        grip_editor.select_grade("V3")

        with pytest.raises(ValueError, match="Select at least one grip"):
            grip_editor.complete()

    def test_empty_grade_is_none(self, editor):
        editor.select_grade("")
        assert editor.selected_grade is None

    def test_reset(self, editor):
        """Reset clears selection, detection and grade."""
        editor.select_grade("V3")

        editor.reset()

        assert not editor.selected_grips
        assert not editor.detected_grips
        assert editor.selected_grade is None
