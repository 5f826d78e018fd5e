"""
Workflow Engine - Stage operations over a project's status.

Every operation follows the same discipline:
1. Load the project and check its status against the operation's
   acceptance set (nothing is touched when the check fails)
2. Do the work (generators, compositor)
3. Commit the new artifact version (downstream pointers cleared)
4. Write the new status last

A failure anywhere before step 4 leaves the status exactly as it was, so a
project can always be retried from where it stopped.

Stage flow:
    generate(analysis) → generate(script) → approve(script) →
    generate(storyboard) → approve(storyboard) → generate(assets) →
    approve(assets) → render()
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from storyreel.assets.orchestrator import AssetOrchestrator
from storyreel.compositor.assembler import RenderScene, VideoAssembler
from storyreel.config import Config
from storyreel.errors import (
    NoValidScenesError,
    NotFoundError,
    StoryReelError,
    ValidationError,
    wrap_provider_error,
)
from storyreel.generators.base import GeneratorSuite
from storyreel.models import (
    ARTIFACT_MODELS,
    AssetRevision,
    AssetSet,
    Language,
    Project,
    ProjectStatus,
    SceneRevision,
    Script,
    Stage,
    Video,
    dump_artifact,
)
from storyreel.workflow.status import (
    APPROVABLE_STAGES,
    APPROVED_STATUS,
    GENERATABLE_STAGES,
    GENERATED_STATUS,
    REJECTED_STATUS,
    RENDER_STATUS,
    approve_accepts,
    generate_accepts,
    parse_stage,
    require_status,
)
from storyreel.workflow.store import ArtifactStore, ProjectRepository


def _validation_message(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


class Workflow:
    """
    Drives a project through analysis, script, storyboard, assets and render.

    The project status is the only workflow cursor. Artifacts live in a
    versioned store; the status is persisted after the artifact commit.
    """

    name = "Workflow"

    def __init__(
        self,
        repository: ProjectRepository,
        generators: GeneratorSuite,
        assets: AssetOrchestrator,
        assembler: VideoAssembler,
        config: Optional[Config] = None,
    ):
        """
        Initialize the workflow.

        Args:
            repository: Project and artifact persistence
            generators: Analysis/script/storyboard collaborators
            assets: Asset generation orchestrator
            assembler: Final render stage
            config: Application config
        """
        self.repository = repository
        self.generators = generators
        self.assets = assets
        self.assembler = assembler
        self.config = config or Config()

    def log(self, message: str) -> None:
        print(f"[{self.name}] {message}")

    # ========================================================================
    # PROJECTS
    # ========================================================================

    def create_project(
        self,
        topic: str,
        language: Language,
        duration: int,
        is_premium: bool = False,
    ) -> Project:
        """Create a project in ``draft``.

        Raises:
            ValidationError: On an empty topic, unsupported language or duration.
        """
        try:
            project = Project(
                id=uuid4().hex[:12],
                topic=topic.strip(),
                language=language,
                duration=duration,
                is_premium=is_premium,
            )
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e))

        self.repository.save(project)
        self.log(f"Created project {project.id} ({language}, {duration}s): {project.topic[:60]}")
        return project

    def get_project(self, project_id: str) -> Project:
        return self.repository.load(project_id)

    def list_projects(self) -> list[Project]:
        return self.repository.list_projects()

    def get_artifact(self, project_id: str, stage: Stage | str) -> Optional[BaseModel]:
        """Current artifact of a stage, or None if it has none.

        Raises:
            NotFoundError: If the project does not exist.
        """
        self.repository.load(project_id)
        stage = parse_stage(stage, tuple(ARTIFACT_MODELS))
        return self._current(self.repository.artifacts(project_id), stage)

    def describe(self, project_id: str) -> dict[str, Any]:
        """Project record plus the current artifact of every stage."""
        project = self.repository.load(project_id)
        store = self.repository.artifacts(project_id)
        artifacts = {}
        for stage in ARTIFACT_MODELS:
            version = store.current(stage)
            artifacts[stage.value] = version.to_dict() if version else None
        return {"project": project.model_dump(mode="json"), "artifacts": artifacts}

    # ========================================================================
    # GENERATE
    # ========================================================================

    async def generate(self, project_id: str, stage: Stage | str) -> Project:
        """Generate (or regenerate) one stage.

        Accepted from the stage's entry status or any later status. On
        success a new version becomes current, every downstream artifact is
        invalidated and the status becomes ``analyzed`` or ``<stage>_review``.

        Raises:
            ValidationError: Unknown stage, or the generated artifact is invalid
            NotFoundError: Unknown project or missing upstream artifact
            InvalidStatusError: Status outside the acceptance set
            ContentPolicyError, ProviderQuotaError, AssetGenerationError:
                Provider failures; status is unchanged
        """
        stage = parse_stage(stage, GENERATABLE_STAGES)
        project = self.repository.load(project_id)
        require_status(project.status, generate_accepts(stage), f"generate {stage.value}")

        store = self.repository.artifacts(project_id)
        notes = project.revision_notes.get(stage.value)

        self.log(f"Generating {stage.value} for {project_id}" + (" (with revision notes)" if notes else ""))
        try:
            artifact = await self._produce(project, store, stage, notes)
        except StoryReelError:
            raise
        except PydanticValidationError as e:
            raise ValidationError(f"Generated {stage.value} is invalid: {_validation_message(e)}")
        except Exception as e:
            raise wrap_provider_error(e, stage.value) from e

        store.commit(stage, dump_artifact(artifact), created_by=self._producer(stage))

        project.revision_notes.pop(stage.value, None)
        project.status = GENERATED_STATUS[stage]
        project.updated_at = datetime.now()
        self.repository.save(project)

        self.log(f"✓ {stage.value} generated, status → {project.status.value}")
        return project

    async def _produce(
        self,
        project: Project,
        store: ArtifactStore,
        stage: Stage,
        notes: Optional[str],
    ) -> BaseModel:
        if stage == Stage.ANALYSIS:
            return await self.generators.analyzer.analyze(project.topic, project.language, notes)

        if stage == Stage.SCRIPT:
            analysis = self._require(store, Stage.ANALYSIS)
            script = await self.generators.writer.write_script(
                analysis, project.language, project.duration, notes
            )
            problems = script.coverage_problems(project.duration)
            if problems:
                raise ValidationError("Generated script does not cover the target duration", details=problems)
            return script

        if stage == Stage.STORYBOARD:
            analysis = self._require(store, Stage.ANALYSIS)
            script = self._require(store, Stage.SCRIPT)
            storyboard = await self.generators.planner.plan_scenes(script, analysis, notes)
            mismatch = storyboard.order_mismatch(script)
            if mismatch:
                raise ValidationError(mismatch)
            return storyboard

        storyboard = self._require(store, Stage.STORYBOARD)
        overrides = self._asset_prompt_overrides(store)
        return await self.assets.generate(storyboard.scenes, prompt_overrides=overrides, revision_notes=notes)

    def _asset_prompt_overrides(self, store: ArtifactStore) -> dict[int, str]:
        """Prompts requested through revisions of the current asset set."""
        current = self._current(store, Stage.ASSETS)
        if current is None:
            return {}
        return {a.scene_order: a.revision_prompt for a in current.assets if a.revision_prompt}

    @staticmethod
    def _producer(stage: Stage) -> str:
        return {
            Stage.ANALYSIS: "analyzer",
            Stage.SCRIPT: "script_writer",
            Stage.STORYBOARD: "scene_planner",
            Stage.ASSETS: "asset_orchestrator",
            Stage.VIDEO: "assembler",
        }[stage]

    # ========================================================================
    # APPROVE / REJECT
    # ========================================================================

    def approve(
        self,
        project_id: str,
        stage: Stage | str,
        approved: bool,
        revisions: Optional[list[dict[str, Any]]] = None,
        notes: Optional[str] = None,
    ) -> Project:
        """Approve or reject a reviewed stage.

        Approval applies any revisions (as a new version), marks the current
        version approved and sets ``<stage>_approved``. Rejection moves the
        project back exactly one checkpoint and stores ``notes`` for the next
        generate of that stage.

        Raises:
            ValidationError: Unknown stage or malformed revisions
            NotFoundError: Unknown project or no current artifact
            InvalidStatusError: Stage not yet reviewed
        """
        stage = parse_stage(stage, APPROVABLE_STAGES)
        project = self.repository.load(project_id)
        require_status(project.status, approve_accepts(stage), f"approve {stage.value}")

        store = self.repository.artifacts(project_id)
        current = self._require(store, stage)

        if approved:
            if revisions:
                revised = self._apply_revisions(stage, current, revisions)
                store.revise(stage, dump_artifact(revised))
                self.log(f"Applied {len(revisions)} revision(s) to {stage.value}")
            store.approve(stage)
            project.status = APPROVED_STATUS[stage]
        else:
            if notes:
                project.revision_notes[stage.value] = notes.strip()
            project.status = REJECTED_STATUS[stage]

        project.updated_at = datetime.now()
        self.repository.save(project)

        verdict = "approved" if approved else "rejected"
        self.log(f"{stage.value} {verdict}, status → {project.status.value}")
        return project

    def _apply_revisions(
        self,
        stage: Stage,
        current: BaseModel,
        revisions: list[dict[str, Any]],
    ) -> BaseModel:
        try:
            if stage == Stage.ASSETS:
                return self._revise_assets(current, [AssetRevision.model_validate(r) for r in revisions])
            return self._revise_scenes(stage, current, [SceneRevision.model_validate(r) for r in revisions])
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid revisions: {_validation_message(e)}")

    def _revise_scenes(self, stage: Stage, current: BaseModel, revisions: list[SceneRevision]) -> BaseModel:
        scenes = {scene.order: scene for scene in current.scenes}
        for revision in revisions:
            if revision.order not in scenes:
                raise ValidationError(f"No scene with order {revision.order} in {stage.value}")
            if stage == Stage.SCRIPT:
                fields = {"narration": revision.narration, "visual_description": revision.visual_description}
            else:
                fields = {"description": revision.visual_description, "image_prompt": revision.image_prompt}
            update = {k: v for k, v in fields.items() if v is not None}
            scenes[revision.order] = scenes[revision.order].model_copy(update=update)

        data = current.model_dump()
        data["scenes"] = [scene.model_dump() for scene in scenes.values()]
        if stage == Stage.SCRIPT:
            data["text"] = " ".join(s["narration"].strip() for s in data["scenes"])
            data["word_count"] = len(data["text"].split())
        return type(current).model_validate(data)

    def _revise_assets(self, current: AssetSet, revisions: list[AssetRevision]) -> AssetSet:
        by_order = current.by_order()
        for revision in revisions:
            if revision.scene_order not in by_order:
                raise ValidationError(f"No asset for scene {revision.scene_order}")
            by_order[revision.scene_order] = by_order[revision.scene_order].model_copy(
                update={"revision_prompt": revision.prompt}
            )
        return current.model_copy(update={"assets": list(by_order.values())})

    # ========================================================================
    # RENDER
    # ========================================================================

    async def render(self, project_id: str) -> Video:
        """Render the final video from the approved script and assets.

        Scenes are bound to assets by order; a scene without an asset is
        dropped from the render.

        Raises:
            NotFoundError: Unknown project or missing script/assets
            InvalidStatusError: Status is not ``assets_approved``
            NoValidScenesError: No scene has a bound asset
            CompositorError: ffmpeg/ffprobe failure; status is unchanged
        """
        project = self.repository.load(project_id)
        require_status(project.status, [RENDER_STATUS], "render video")

        store = self.repository.artifacts(project_id)
        script: Script = self._require(store, Stage.SCRIPT)
        assets: AssetSet = self._require(store, Stage.ASSETS)

        scenes = self._bind_scenes(script, assets)
        self.log(f"Rendering {project_id}: {len(scenes)} of {len(script.scenes)} scene(s)")

        try:
            video = await self.assembler.assemble(project.id, project.language, scenes)
        except StoryReelError:
            raise
        except Exception as e:
            raise wrap_provider_error(e, "video") from e

        store.commit(Stage.VIDEO, dump_artifact(video), created_by=self._producer(Stage.VIDEO))

        project.status = ProjectStatus.READY
        project.updated_at = datetime.now()
        self.repository.save(project)

        self.log(f"✓ Video ready: {video.url} ({video.duration:g}s)")
        return video

    def _bind_scenes(self, script: Script, assets: AssetSet) -> list[RenderScene]:
        by_order = assets.by_order()
        bound = []
        for scene in script.scenes:
            asset = by_order.get(scene.order)
            if asset is None or not asset.url:
                self.log(f"⚠️  Scene {scene.order} has no asset, skipping")
                continue
            bound.append(
                RenderScene(
                    order=scene.order,
                    narration=scene.narration,
                    start_time=scene.start_time,
                    end_time=scene.end_time,
                    asset_url=asset.url,
                    asset_type=asset.type,
                )
            )
        if not bound:
            raise NoValidScenesError("No valid scenes to render: no scene has a generated asset")
        return bound

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _current(self, store: ArtifactStore, stage: Stage) -> Optional[BaseModel]:
        version = store.current(stage)
        if version is None:
            return None
        return ARTIFACT_MODELS[stage].model_validate(version.data)

    def _require(self, store: ArtifactStore, stage: Stage) -> Any:
        artifact = self._current(store, stage)
        if artifact is None:
            raise NotFoundError(f"No current {stage.value} for this project")
        return artifact
