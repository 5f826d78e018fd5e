"""Tests for data model validation."""

import pytest
from pydantic import ValidationError

from storyreel.models import (
    Asset,
    AssetSet,
    Project,
    SceneScript,
    Script,
    Storyboard,
    StoryboardScene,
)


def _scenes(*bounds: tuple[float, float]) -> list[SceneScript]:
    return [
        SceneScript(order=i, narration=f"Scene {i}.", start_time=start, end_time=end)
        for i, (start, end) in enumerate(bounds, start=1)
    ]


def _script(*bounds: tuple[float, float]) -> Script:
    return Script(text="Some words.", word_count=2, scenes=_scenes(*bounds))


class TestProject:
    """Tests for the Project model."""

    @pytest.mark.parametrize("duration", [30, 60, 90])
    def test_supported_durations(self, duration):
        """Test the three supported durations validate."""
        assert Project(id="p", topic="t", language="en", duration=duration).duration == duration

    def test_unsupported_duration(self):
        """Test any other duration is rejected."""
        with pytest.raises(ValidationError):
            Project(id="p", topic="t", language="en", duration=45)

    def test_unsupported_language(self):
        """Test languages outside zh/en/fr are rejected."""
        with pytest.raises(ValidationError):
            Project(id="p", topic="t", language="es", duration=30)


class TestScript:
    """Tests for script timing invariants."""

    def test_contiguous_script(self):
        """Test contiguous scenes validate and expose durations."""
        script = _script((0, 10), (10, 20), (20, 30))

        assert [s.duration for s in script.scenes] == [10, 10, 10]
        assert script.coverage_problems(30) == []

    def test_gap_rejected(self):
        """Test a gap between scenes is rejected."""
        with pytest.raises(ValidationError, match="gap"):
            _script((0, 10), (11, 20))

    def test_overlap_rejected(self):
        """Test overlapping scenes are rejected."""
        with pytest.raises(ValidationError, match="overlap"):
            _script((0, 10), (9, 20))

    def test_boundary_within_epsilon(self):
        """Test float noise below 1ms at a boundary is tolerated."""
        script = _script((0, 10.0), (10.0004, 20))
        assert len(script.scenes) == 2

    def test_orders_must_be_sequential(self):
        """Test scene orders must be 1..n."""
        scenes = _scenes((0, 10), (10, 20))
        scenes[1] = scenes[1].model_copy(update={"order": 3})
        with pytest.raises(ValidationError):
            Script(text="x", word_count=1, scenes=scenes)

    def test_end_before_start_rejected(self):
        """Test a scene must have positive length."""
        with pytest.raises(ValidationError):
            SceneScript(order=1, narration="x", start_time=5, end_time=5)

    def test_too_many_scenes(self):
        """Test at most ten scenes are allowed."""
        bounds = [(i * 3.0, (i + 1) * 3.0) for i in range(11)]
        with pytest.raises(ValidationError):
            _script(*bounds)

    def test_coverage_tolerance(self):
        """Test the last scene may end within two seconds of the target."""
        assert _script((0, 15), (15, 31.5)).coverage_problems(30) == []
        problems = _script((0, 15), (15, 27)).coverage_problems(30)
        assert len(problems) == 1
        assert "expected 30s" in problems[0]

    def test_coverage_must_start_at_zero(self):
        """Test the first scene must start at zero."""
        problems = _script((1, 15), (15, 30)).coverage_problems(30)
        assert problems == ["First scene starts at 1.0s instead of 0s"]

    def test_full_narration(self):
        """Test narration is joined with single spaces."""
        assert _script((0, 10), (10, 20)).full_narration() == "Scene 1. Scene 2."


class TestStoryboard:
    """Tests for storyboard/script alignment."""

    def test_order_mismatch(self):
        """Test scene orders must match the script 1:1."""
        script = _script((0, 10), (10, 20))
        storyboard = Storyboard(scenes=[
            StoryboardScene(order=1, image_prompt="a", duration=10),
            StoryboardScene(order=2, image_prompt="b", duration=10),
        ])
        assert storyboard.order_mismatch(script) is None

        short = Storyboard(scenes=[StoryboardScene(order=1, image_prompt="a", duration=20)])
        assert "do not match" in short.order_mismatch(script)


class TestAssetSet:
    """Tests for asset sets."""

    def test_total_cost_and_lookup(self):
        """Test cost totals and order lookup."""
        assets = AssetSet(assets=[
            Asset(scene_order=1, url="u1", cost=0.05),
            Asset(scene_order=3, url="u3", cost=0.32),
        ])

        assert assets.total_cost == pytest.approx(0.37)
        assert sorted(assets.by_order()) == [1, 3]
