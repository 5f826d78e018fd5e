"""Generator collaborator interfaces.

Every generative step of the pipeline sits behind one of these async
interfaces. Implementations raise on failure; callers decide whether a
failure is fatal, tolerated or replaced by a fallback.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..models import Language, Script, StoryAnalysis, Storyboard, StoryboardScene


@dataclass
class GeneratedImage:
    """Result of one image generation call."""

    url: str
    provider: str
    reference_image_count: int = 0


@dataclass
class AnimationResult:
    """Result of one image-to-video animation job."""

    video_url: str
    generation_time_seconds: float
    clip_seconds: int = 6


@dataclass
class CharacterAlignment:
    """Character-level timing returned by a TTS provider.

    The three lists are parallel: ``characters[i]`` is spoken from
    ``start_times[i]`` to ``end_times[i]`` seconds.
    """

    characters: list[str]
    start_times: list[float]
    end_times: list[float]


@dataclass
class SpeechResult:
    """Result of a text-to-speech call."""

    audio_path: Path
    cost: float
    alignment: Optional[CharacterAlignment] = None
    duration_seconds: Optional[float] = None
    metadata: dict = field(default_factory=dict)


class StoryAnalyzer(ABC):
    """Turns a topic into a story concept."""

    @abstractmethod
    async def analyze(
        self,
        topic: str,
        language: Language,
        revision_notes: str | None = None,
    ) -> StoryAnalysis:
        """Extract concept, themes, characters and mood from a topic."""


class ScriptWriter(ABC):
    """Writes the timed narration script."""

    @abstractmethod
    async def write_script(
        self,
        analysis: StoryAnalysis,
        language: Language,
        duration: int,
        revision_notes: str | None = None,
    ) -> Script:
        """Write a script whose scenes cover ``[0, duration]``."""


class ScenePlanner(ABC):
    """Plans the visual storyboard for a script."""

    @abstractmethod
    async def plan_scenes(
        self,
        script: Script,
        analysis: StoryAnalysis,
        revision_notes: str | None = None,
    ) -> Storyboard:
        """Produce one storyboard scene per script scene, same orders."""


class ImageGenerator(ABC):
    """Generates a still image for a storyboard scene."""

    @abstractmethod
    async def generate_image(
        self,
        scene: StoryboardScene,
        provider: str,
        reference_urls: list[str] | None = None,
    ) -> GeneratedImage:
        """Generate one image, optionally conditioned on reference images."""


class Animator(ABC):
    """Animates a still image into a short video clip."""

    @abstractmethod
    async def animate(self, image_url: str, prompt: str) -> AnimationResult:
        """Run an animation job to completion.

        Raises:
            TimeoutError: If the job does not finish within the configured wait.
        """


class SpeechSynthesizer(ABC):
    """Text-to-speech provider."""

    @abstractmethod
    async def synthesize(self, text: str, language: Language, output_path: Path) -> SpeechResult:
        """Synthesize ``text`` into ``output_path``."""


@dataclass
class GeneratorSuite:
    """The set of collaborators a workflow runs against."""

    analyzer: StoryAnalyzer
    writer: ScriptWriter
    planner: ScenePlanner
    images: ImageGenerator
    speech: SpeechSynthesizer
    animator: Optional[Animator] = None


def scene_prompt(scene: StoryboardScene) -> str:
    """Animation prompt for a scene: its description, else its image prompt."""
    return scene.description or scene.image_prompt
