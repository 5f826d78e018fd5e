"""
Core data models used across the application.

Includes models for:
- Projects and their workflow status
- Stage artifacts (story analysis, script, storyboard, assets, video)
- Narration timing (word timestamps, transcript)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


Language = Literal["zh", "en", "fr"]

SUPPORTED_LANGUAGES = ("zh", "en", "fr")
SUPPORTED_DURATIONS = (30, 60, 90)
MAX_SCENES = 10
COVERAGE_TOLERANCE_SECONDS = 2.0
BOUNDARY_EPSILON = 1e-3


# ============================================================================
# PROJECT MODELS
# ============================================================================


class ProjectStatus(str, Enum):
    """
    Durable workflow cursor of a project.

    Every stage operation reads it first and writes it last.
    """

    DRAFT = "draft"
    """Created. Waiting for story analysis."""

    ANALYZED = "analyzed"
    """Story analysis is current. Script may be generated."""

    SCRIPT_REVIEW = "script_review"
    SCRIPT_APPROVED = "script_approved"

    STORYBOARD_REVIEW = "storyboard_review"
    STORYBOARD_APPROVED = "storyboard_approved"

    ASSETS_REVIEW = "assets_review"
    ASSETS_APPROVED = "assets_approved"

    RENDERING = "rendering"
    """Reserved for an externally tracked render job."""

    READY = "ready"
    """Final video is current."""

    FAILED = "failed"
    """Terminal. Set only by an operator; the workflow never writes it."""


class Stage(str, Enum):
    """Artifact-producing stages, in pipeline order."""

    ANALYSIS = "analysis"
    SCRIPT = "script"
    STORYBOARD = "storyboard"
    ASSETS = "assets"
    VIDEO = "video"


STAGE_ORDER = [Stage.ANALYSIS, Stage.SCRIPT, Stage.STORYBOARD, Stage.ASSETS, Stage.VIDEO]


class Project(BaseModel):
    """A video project. Owns every stage artifact."""

    id: str
    topic: str = Field(min_length=1, description="Short text topic to turn into a video")
    language: Language
    duration: int = Field(description="Target duration in seconds (30, 60 or 90)")
    is_premium: bool = False
    status: ProjectStatus = ProjectStatus.DRAFT
    revision_notes: dict[str, str] = Field(
        default_factory=dict,
        description="Notes left on rejection, consumed by the next generate of that stage",
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("duration")
    @classmethod
    def _supported_duration(cls, value: int) -> int:
        if value not in SUPPORTED_DURATIONS:
            raise ValueError(f"Invalid duration. Must be one of {SUPPORTED_DURATIONS}")
        return value


# ============================================================================
# STAGE ARTIFACTS
# ============================================================================


class StoryAnalysis(BaseModel):
    """Concept extracted from the topic."""

    concept: str = Field(min_length=1)
    themes: list[str] = Field(min_length=1, max_length=5)
    characters: list[str] = Field(default_factory=list, max_length=5)
    mood: str = ""


class SceneScript(BaseModel):
    """One narrated, timed segment of the script."""

    order: int = Field(ge=1)
    narration: str = Field(min_length=1)
    start_time: float = Field(ge=0)
    end_time: float = Field(ge=0)
    visual_description: str = ""

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @model_validator(mode="after")
    def _positive_span(self) -> "SceneScript":
        if self.end_time <= self.start_time:
            raise ValueError(
                f"Scene {self.order}: end_time {self.end_time} must be after start_time {self.start_time}"
            )
        return self


class Script(BaseModel):
    """Full narration script split into ordered scenes."""

    text: str = Field(min_length=1)
    word_count: int = Field(ge=1)
    estimated_duration: float = 0.0
    scenes: list[SceneScript] = Field(min_length=1, max_length=MAX_SCENES)

    @model_validator(mode="after")
    def _ordered_contiguous(self) -> "Script":
        orders = [s.order for s in self.scenes]
        if orders != list(range(1, len(self.scenes) + 1)):
            raise ValueError(f"Scene orders must be 1..{len(self.scenes)} in order, got {orders}")

        for previous, current in zip(self.scenes, self.scenes[1:]):
            if abs(current.start_time - previous.end_time) > BOUNDARY_EPSILON:
                kind = "gap" if current.start_time > previous.end_time else "overlap"
                raise ValueError(
                    f"Scenes {previous.order} and {current.order} have a {kind} "
                    f"({previous.end_time} -> {current.start_time})"
                )
        return self

    def coverage_problems(self, target_duration: float) -> list[str]:
        """Check the scenes cover [0, target_duration] within tolerance."""
        problems = []
        first, last = self.scenes[0], self.scenes[-1]
        if first.start_time > BOUNDARY_EPSILON:
            problems.append(f"First scene starts at {first.start_time}s instead of 0s")
        if abs(last.end_time - target_duration) > COVERAGE_TOLERANCE_SECONDS:
            problems.append(
                f"Scenes end at {last.end_time}s, expected {target_duration}s "
                f"(±{COVERAGE_TOLERANCE_SECONDS:g}s)"
            )
        return problems

    def full_narration(self) -> str:
        """Narration of every scene joined into one string for a single TTS call."""
        return " ".join(scene.narration.strip() for scene in self.scenes)


class StoryboardScene(BaseModel):
    """Visual plan for one scene."""

    order: int = Field(ge=1)
    description: str = ""
    image_prompt: str = Field(min_length=1)
    camera_angle: str = ""
    composition: str = ""
    lighting: str = ""
    transition: str = "fade"
    duration: float = Field(gt=0)


class Storyboard(BaseModel):
    """Scene-by-scene visual plan."""

    title: str = ""
    description: str = ""
    visual_style: str = ""
    color_palette: list[str] = Field(default_factory=list)
    scenes: list[StoryboardScene] = Field(min_length=1, max_length=MAX_SCENES)

    def order_mismatch(self, script: Script) -> Optional[str]:
        """Describe a 1:1 order mismatch against the script, if any."""
        ours = [s.order for s in self.scenes]
        theirs = [s.order for s in script.scenes]
        if ours != theirs:
            return f"Storyboard scene orders {ours} do not match script orders {theirs}"
        return None


class AssetType(str, Enum):
    """Kind of visual asset bound to a scene."""

    IMAGE = "image"
    VIDEO_CLIP = "video_clip"


class Asset(BaseModel):
    """Visual asset for one scene, bound by ``scene_order``."""

    scene_order: int = Field(ge=1)
    type: AssetType = AssetType.IMAGE
    url: str
    cost: float = Field(default=0.0, ge=0)
    image_cost: float = 0.0
    animation_cost: float = 0.0
    image_provider: Optional[str] = None
    animation_provider: Literal["hailuo", "static"] = "static"
    image_url: Optional[str] = Field(default=None, description="Source still when the asset is an animated clip")
    prompt: str = ""
    reference_image_count: int = 0
    generation_time: Optional[float] = None
    revision_prompt: Optional[str] = Field(default=None, description="Prompt requested for the next regeneration")


class AssetSet(BaseModel):
    """Current assets of a project plus the per-scene failures of that run."""

    assets: list[Asset] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return sum(a.cost for a in self.assets)

    def by_order(self) -> dict[int, Asset]:
        return {a.scene_order: a for a in self.assets}


# ============================================================================
# NARRATION TIMING + FINAL VIDEO
# ============================================================================


class WordTimestamp(BaseModel):
    """A single word with its narration timing."""

    word: str
    start: float
    end: float


class Transcript(BaseModel):
    """Word-level transcript of the narration track."""

    text: str
    words: list[WordTimestamp] = Field(default_factory=list)
    language: Language
    duration: float


class Video(BaseModel):
    """Final rendered video."""

    url: str
    audio_url: str
    subtitles_url: Optional[str] = None
    transcript: Transcript
    duration: float
    file_size: int
    cost: float
    format: str = "mp4"
    resolution: str = "1080x1920"
    scene_count: int = 0


# ============================================================================
# REVISIONS
# ============================================================================


class SceneRevision(BaseModel):
    """Edits applied to a script or storyboard scene on approval."""

    order: int = Field(ge=1)
    narration: Optional[str] = None
    visual_description: Optional[str] = None
    image_prompt: Optional[str] = None


class AssetRevision(BaseModel):
    """New prompt recorded against an asset on approval."""

    scene_order: int = Field(ge=1)
    prompt: str = Field(min_length=1)


ARTIFACT_MODELS: dict[Stage, type[BaseModel]] = {
    Stage.ANALYSIS: StoryAnalysis,
    Stage.SCRIPT: Script,
    Stage.STORYBOARD: Storyboard,
    Stage.ASSETS: AssetSet,
    Stage.VIDEO: Video,
}


def dump_artifact(artifact: BaseModel) -> dict[str, Any]:
    """JSON-ready dict of a stage artifact."""
    return artifact.model_dump(mode="json")
