"""Tests for the workflow engine: generate, approve/reject and render."""

from unittest.mock import AsyncMock

import pytest

from storyreel.errors import (
    AssetGenerationError,
    CompositorError,
    ContentPolicyError,
    InvalidStatusError,
    NotFoundError,
    NoValidScenesError,
    ValidationError,
)
from storyreel.models import (
    Asset,
    AssetSet,
    ProjectStatus,
    SceneScript,
    Script,
    Stage,
    Storyboard,
    StoryboardScene,
    dump_artifact,
)


TOPIC = "The lighthouse keeper who collected storms"


class TestCreateProject:
    """Tests for project creation."""

    def test_create_project_starts_in_draft(self, workflow):
        """Test a new project is persisted in draft."""
        project = workflow.create_project(TOPIC, "en", 30)

        assert project.status == ProjectStatus.DRAFT
        assert workflow.get_project(project.id).topic == TOPIC

    @pytest.mark.parametrize("duration", [0, 45, 120])
    def test_create_project_rejects_unsupported_duration(self, workflow, duration):
        """Test only 30, 60 and 90 second durations are accepted."""
        with pytest.raises(ValidationError):
            workflow.create_project(TOPIC, "en", duration)

    def test_create_project_rejects_unsupported_language(self, workflow):
        """Test unsupported languages are rejected."""
        with pytest.raises(ValidationError):
            workflow.create_project(TOPIC, "de", 30)

    def test_create_project_rejects_blank_topic(self, workflow):
        """Test a whitespace-only topic is rejected."""
        with pytest.raises(ValidationError):
            workflow.create_project("   ", "fr", 60)

    def test_get_unknown_project(self, workflow):
        """Test loading a missing project raises NotFoundError."""
        with pytest.raises(NotFoundError):
            workflow.get_project("missing")


class TestGenerate:
    """Tests for stage generation and status gating."""

    @pytest.mark.asyncio
    async def test_generate_analysis_from_draft(self, workflow):
        """Test analysis moves the project to analyzed."""
        project = workflow.create_project(TOPIC, "en", 30)

        project = await workflow.generate(project.id, "analysis")

        assert project.status == ProjectStatus.ANALYZED
        analysis = workflow.get_artifact(project.id, Stage.ANALYSIS)
        assert TOPIC in analysis.concept

    @pytest.mark.asyncio
    async def test_generate_script_from_draft_is_rejected(self, workflow):
        """Test a stage cannot be generated before its entry status."""
        project = workflow.create_project(TOPIC, "en", 30)

        with pytest.raises(InvalidStatusError) as exc_info:
            await workflow.generate(project.id, "script")

        assert "Cannot generate script" in str(exc_info.value)
        assert "draft" in str(exc_info.value)
        assert workflow.get_project(project.id).status == ProjectStatus.DRAFT

    @pytest.mark.asyncio
    async def test_generate_storyboard_requires_approved_script(self, workflow, advance):
        """Test storyboard generation is refused while the script is in review."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_review")

        with pytest.raises(InvalidStatusError):
            await workflow.generate(project.id, "storyboard")

        assert workflow.get_project(project.id).status == ProjectStatus.SCRIPT_REVIEW

    @pytest.mark.asyncio
    async def test_script_covers_target_duration(self, workflow, advance):
        """Test the generated script starts at 0 and ends at the target."""
        project = workflow.create_project(TOPIC, "en", 60)
        await advance(project.id, "script_review")

        script = workflow.get_artifact(project.id, "script")
        assert script.scenes[0].start_time == 0
        assert script.scenes[-1].end_time == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_regenerate_keeps_single_current_version(self, workflow, advance):
        """Test two generates leave one current version and two in history."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_review")

        await workflow.generate(project.id, "script")

        store = workflow.repository.artifacts(project.id)
        history = store.history(Stage.SCRIPT)
        assert [v.version for v in history] == [1, 2]
        assert store.current(Stage.SCRIPT).id == history[-1].id
        assert history[-1].previous_version_id == history[0].id

    @pytest.mark.asyncio
    async def test_regenerate_upstream_invalidates_downstream(self, workflow, advance):
        """Test regenerating the script from a later status clears later artifacts."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "storyboard_review")

        project = await workflow.generate(project.id, "script")

        assert project.status == ProjectStatus.SCRIPT_REVIEW
        assert workflow.get_artifact(project.id, "storyboard") is None
        assert workflow.get_artifact(project.id, "script") is not None

    @pytest.mark.asyncio
    async def test_regenerate_storyboard_invalidates_assets(self, workflow, advance):
        """Test regenerating the storyboard clears the current assets."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_review")

        project = await workflow.generate(project.id, "storyboard")

        assert project.status == ProjectStatus.STORYBOARD_REVIEW
        assert workflow.get_artifact(project.id, "assets") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", ["video", "bogus"])
    async def test_generate_unknown_stage(self, workflow, stage):
        """Test stages outside analysis/script/storyboard/assets are rejected."""
        project = workflow.create_project(TOPIC, "en", 30)

        with pytest.raises(ValidationError):
            await workflow.generate(project.id, stage)

    @pytest.mark.asyncio
    async def test_content_policy_failure_leaves_status(self, workflow):
        """Test a content-policy refusal is classified and nothing is written."""
        project = workflow.create_project(TOPIC, "en", 30)
        workflow.generators.analyzer.analyze = AsyncMock(
            side_effect=RuntimeError("Your request was rejected by the safety system")
        )

        with pytest.raises(ContentPolicyError):
            await workflow.generate(project.id, "analysis")

        assert workflow.get_project(project.id).status == ProjectStatus.DRAFT
        assert workflow.get_artifact(project.id, "analysis") is None

    @pytest.mark.asyncio
    async def test_script_not_covering_duration_is_rejected(self, workflow, advance):
        """Test a script ending far from the target is a validation error."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "analyzed")
        short = Script(
            text="One. Two.",
            word_count=2,
            scenes=[
                SceneScript(order=1, narration="One.", start_time=0, end_time=10),
                SceneScript(order=2, narration="Two.", start_time=10, end_time=20),
            ],
        )
        workflow.generators.writer.write_script = AsyncMock(return_value=short)

        with pytest.raises(ValidationError) as exc_info:
            await workflow.generate(project.id, "script")

        assert any("expected 30" in d for d in exc_info.value.details)
        assert workflow.get_project(project.id).status == ProjectStatus.ANALYZED
        assert workflow.get_artifact(project.id, "script") is None

    @pytest.mark.asyncio
    async def test_storyboard_order_mismatch_is_rejected(self, workflow, advance):
        """Test a storyboard that does not match the script scenes 1:1 is rejected."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_approved")
        storyboard = Storyboard(
            scenes=[StoryboardScene(order=1, image_prompt="only one", duration=30)]
        )
        workflow.generators.planner.plan_scenes = AsyncMock(return_value=storyboard)

        with pytest.raises(ValidationError):
            await workflow.generate(project.id, "storyboard")

        assert workflow.get_project(project.id).status == ProjectStatus.SCRIPT_APPROVED


class TestApprove:
    """Tests for approval, rejection and revisions."""

    @pytest.mark.asyncio
    async def test_approve_before_review_is_rejected(self, workflow, advance):
        """Test the script cannot be approved before it has been generated."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "analyzed")

        with pytest.raises(InvalidStatusError):
            workflow.approve(project.id, "script", True)

    @pytest.mark.asyncio
    async def test_approve_locks_current_version(self, workflow, advance):
        """Test approval marks the current version approved."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_review")

        project = workflow.approve(project.id, "script", True)

        assert project.status == ProjectStatus.SCRIPT_APPROVED
        current = workflow.repository.artifacts(project.id).current(Stage.SCRIPT)
        assert current.status == "approved"
        assert current.approved_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stage,review_status,expected",
        [
            ("script", "script_review", ProjectStatus.ANALYZED),
            ("storyboard", "storyboard_review", ProjectStatus.SCRIPT_APPROVED),
            ("assets", "assets_review", ProjectStatus.STORYBOARD_APPROVED),
        ],
    )
    async def test_reject_moves_back_one_checkpoint(self, workflow, advance, stage, review_status, expected):
        """Test rejection steps back exactly one checkpoint."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, review_status)

        project = workflow.approve(project.id, stage, False, notes="make it warmer")

        assert project.status == expected
        assert project.revision_notes[stage] == "make it warmer"

    @pytest.mark.asyncio
    async def test_rejection_notes_reach_next_generate(self, workflow, advance):
        """Test notes are passed to the generator and then cleared."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "storyboard_review")
        workflow.approve(project.id, "storyboard", False, notes="watercolor style")

        project = await workflow.generate(project.id, "storyboard")

        storyboard = workflow.get_artifact(project.id, "storyboard")
        assert "watercolor style" in storyboard.visual_style
        assert "storyboard" not in project.revision_notes

    @pytest.mark.asyncio
    async def test_approve_with_script_revisions(self, workflow, advance):
        """Test revisions are applied as a new version before approval."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_review")

        workflow.approve(
            project.id,
            "script",
            True,
            revisions=[{"order": 2, "narration": "A brand new middle."}],
        )

        store = workflow.repository.artifacts(project.id)
        assert len(store.history(Stage.SCRIPT)) == 2
        script = workflow.get_artifact(project.id, "script")
        assert script.scenes[1].narration == "A brand new middle."
        assert "A brand new middle." in script.text
        assert store.current(Stage.SCRIPT).status == "approved"

    @pytest.mark.asyncio
    async def test_revision_for_unknown_scene(self, workflow, advance):
        """Test a revision naming a missing scene fails without a status change."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "script_review")

        with pytest.raises(ValidationError):
            workflow.approve(project.id, "script", True, revisions=[{"order": 9, "narration": "x"}])

        assert workflow.get_project(project.id).status == ProjectStatus.SCRIPT_REVIEW

    @pytest.mark.asyncio
    async def test_asset_revision_prompt_used_on_regenerate(self, workflow, advance, image_generator):
        """Test an asset revision prompt replaces the image prompt next time."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_review")
        workflow.approve(project.id, "assets", True, revisions=[{"scene_order": 2, "prompt": "a red kite"}])
        image_generator.calls.clear()

        project = await workflow.generate(project.id, "assets")

        prompts = {call["order"]: call["prompt"] for call in image_generator.calls}
        assert prompts[2] == "a red kite"
        assert prompts[1] != "a red kite"
        assert project.status == ProjectStatus.ASSETS_REVIEW


class TestAssetsStage:
    """Tests for the assets stage inside the workflow."""

    @pytest.mark.asyncio
    async def test_total_failure_leaves_status(self, workflow, advance, image_generator):
        """Test every scene failing raises and keeps storyboard_approved."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "storyboard_approved")
        image_generator.failures = {1: "boom", 2: "boom", 3: "boom"}

        with pytest.raises(AssetGenerationError) as exc_info:
            await workflow.generate(project.id, "assets")

        assert "Failed to generate all 3 assets" in str(exc_info.value)
        assert len(exc_info.value.details) == 3
        assert workflow.get_project(project.id).status == ProjectStatus.STORYBOARD_APPROVED

    @pytest.mark.asyncio
    async def test_partial_failure_succeeds(self, workflow, advance, image_generator):
        """Test one failing scene still produces a reviewable asset set."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "storyboard_approved")
        image_generator.failures = {2: "upstream 500"}

        project = await workflow.generate(project.id, "assets")

        assets = workflow.get_artifact(project.id, "assets")
        assert project.status == ProjectStatus.ASSETS_REVIEW
        assert sorted(assets.by_order()) == [1, 3]
        assert assets.failures == ["Scene 2: upstream 500"]

    @pytest.mark.asyncio
    async def test_rejection_notes_reach_image_prompts(self, workflow, advance, image_generator):
        """Test notes from a rejected asset set shape the next image prompts."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_review")
        workflow.approve(project.id, "assets", False, notes="make it snowy")
        image_generator.calls.clear()

        project = await workflow.generate(project.id, "assets")

        assert project.revision_notes == {}
        assert len(image_generator.calls) == 3
        assert all(c["prompt"].endswith(", make it snowy") for c in image_generator.calls)
        assets = workflow.get_artifact(project.id, "assets")
        assert all("make it snowy" in a.prompt for a in assets.assets)


class TestRender:
    """Tests for the render stage."""

    @pytest.mark.asyncio
    async def test_render_requires_assets_approved(self, workflow, advance):
        """Test render is refused while assets are in review."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_review")

        with pytest.raises(InvalidStatusError) as exc_info:
            await workflow.render(project.id)

        assert "assets_approved" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_render_success(self, workflow, advance, assembler):
        """Test a successful render stores the video and sets ready."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_approved")

        video = await workflow.render(project.id)

        assert workflow.get_project(project.id).status == ProjectStatus.READY
        assert workflow.get_artifact(project.id, "video").url == video.url
        bound = assembler.calls[0]
        assert [s.order for s in bound] == [1, 2, 3]
        assert bound[0].asset_url == "http://images.test/scene_1.png"

    @pytest.mark.asyncio
    async def test_render_drops_scenes_without_assets(self, workflow, advance, image_generator, assembler):
        """Test scenes without an asset are left out of the render."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "storyboard_approved")
        image_generator.failures = {2: "upstream 500"}
        await workflow.generate(project.id, "assets")
        workflow.approve(project.id, "assets", True)

        await workflow.render(project.id)

        assert [s.order for s in assembler.calls[0]] == [1, 3]

    @pytest.mark.asyncio
    async def test_render_without_bound_scenes(self, workflow, advance):
        """Test render fails when no asset matches a script scene."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_approved")
        stray = AssetSet(assets=[Asset(scene_order=9, url="http://images.test/scene_9.png")])
        workflow.repository.artifacts(project.id).commit(Stage.ASSETS, dump_artifact(stray))

        with pytest.raises(NoValidScenesError):
            await workflow.render(project.id)

        assert workflow.get_project(project.id).status == ProjectStatus.ASSETS_APPROVED

    @pytest.mark.asyncio
    async def test_render_failure_leaves_status(self, workflow, advance, assembler):
        """Test a compositor failure keeps assets_approved and stores no video."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_approved")
        assembler.error = CompositorError("FFmpeg failed with code 1")

        with pytest.raises(CompositorError):
            await workflow.render(project.id)

        assert workflow.get_project(project.id).status == ProjectStatus.ASSETS_APPROVED
        assert workflow.get_artifact(project.id, "video") is None

    @pytest.mark.asyncio
    async def test_render_twice_from_ready_is_rejected(self, workflow, advance):
        """Test render only runs from assets_approved."""
        project = workflow.create_project(TOPIC, "en", 30)
        await advance(project.id, "assets_approved")
        await workflow.render(project.id)

        with pytest.raises(InvalidStatusError):
            await workflow.render(project.id)
