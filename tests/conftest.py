"""Shared test fixtures."""

import asyncio
from pathlib import Path

import pytest

from storyreel.assets.orchestrator import AssetOrchestrator
from storyreel.config import Config
from storyreel.generators.base import (
    AnimationResult,
    Animator,
    GeneratedImage,
    GeneratorSuite,
    ImageGenerator,
    SpeechResult,
    SpeechSynthesizer,
)
from storyreel.generators.llm import LLMProvider
from storyreel.generators.mock import MockScenePlanner, MockScriptWriter, MockStoryAnalyzer
from storyreel.models import Script, SceneScript, StoryboardScene, Transcript, Video
from storyreel.workflow.engine import Workflow
from storyreel.workflow.store import ProjectRepository


class FakeLLM(LLMProvider):
    """Replays canned JSON responses and records every prompt."""

    def __init__(self, *responses: dict):
        super().__init__(Config().llm)
        self.responses = list(responses)
        self.prompts: list[tuple[str, str | None]] = []

    async def generate(self, prompt, system_prompt=None):
        raise NotImplementedError

    async def generate_json(self, prompt, system_prompt=None):
        self.prompts.append((prompt, system_prompt))
        return self.responses.pop(0)


class FakeImageGenerator(ImageGenerator):
    """Records calls; fails for the scene orders in ``failures``."""

    def __init__(self, failures: dict[int, str] | None = None):
        self.failures = failures or {}
        self.calls: list[dict] = []

    async def generate_image(self, scene, provider, reference_urls=None):
        self.calls.append({
            "order": scene.order,
            "provider": provider,
            "references": list(reference_urls or []),
            "prompt": scene.image_prompt,
        })
        if scene.order in self.failures:
            raise RuntimeError(self.failures[scene.order])
        return GeneratedImage(
            url=f"http://images.test/scene_{scene.order}.png",
            provider=provider,
            reference_image_count=len(reference_urls or []),
        )


class FakeAnimator(Animator):
    """Animates every image; fails or hangs for selected scene images."""

    def __init__(self, failing_urls: set[str] | None = None, hang: bool = False):
        self.failing_urls = failing_urls or set()
        self.hang = hang
        self.calls: list[tuple[str, str]] = []

    async def animate(self, image_url, prompt):
        self.calls.append((image_url, prompt))
        if image_url in self.failing_urls:
            if self.hang:
                raise TimeoutError("Hailuo generation timed out after 120s")
            raise RuntimeError("Hailuo generation failed: internal error")
        return AnimationResult(
            video_url=image_url.replace(".png", ".mp4"),
            generation_time_seconds=42.0,
        )


class FakeSpeech(SpeechSynthesizer):
    """Writes a placeholder file; never touches ffmpeg."""

    def __init__(self, duration: float = 30.0, cost: float = 0.05):
        self.duration = duration
        self.cost = cost
        self.texts: list[str] = []

    async def synthesize(self, text, language, output_path):
        self.texts.append(text)
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_bytes(b"ID3")
        return SpeechResult(audio_path=Path(output_path), cost=self.cost, duration_seconds=self.duration)


class FakeAssembler:
    """Stands in for VideoAssembler; records the bound scenes."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[list] = []

    async def assemble(self, project_id, language, scenes):
        self.calls.append(list(scenes))
        if self.error is not None:
            raise self.error
        duration = scenes[-1].end_time
        return Video(
            url=f"http://localhost:8000/uploads/{project_id}/1_video.mp4",
            audio_url=f"http://localhost:8000/uploads/{project_id}/1_narration.mp3",
            subtitles_url=f"http://localhost:8000/uploads/{project_id}/1_subtitles.srt",
            transcript=Transcript(text="x", words=[], language=language, duration=duration),
            duration=duration,
            file_size=1024,
            cost=0.01,
            scene_count=len(scenes),
        )


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Provide a test configuration writing under tmp_path."""
    config = Config()
    config.paths.projects_dir = str(tmp_path / "projects")
    config.paths.storage_dir = str(tmp_path / "uploads")
    config.animation.enabled = False
    return config


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def assembler() -> FakeAssembler:
    return FakeAssembler()


@pytest.fixture
def workflow(tmp_path: Path, test_config: Config, image_generator, assembler) -> Workflow:
    """Workflow with offline text generators and fake media collaborators."""
    generators = GeneratorSuite(
        analyzer=MockStoryAnalyzer(),
        writer=MockScriptWriter(),
        planner=MockScenePlanner(),
        images=image_generator,
        speech=FakeSpeech(),
    )
    return Workflow(
        repository=ProjectRepository(tmp_path / "projects"),
        generators=generators,
        assets=AssetOrchestrator(image_generator, test_config),
        assembler=assembler,
        config=test_config,
    )


@pytest.fixture
def storyboard_scenes() -> list[StoryboardScene]:
    """Three storyboard scenes of 10s each."""
    return [
        StoryboardScene(
            order=i,
            description=f"Scene {i} description",
            image_prompt=f"vertical illustration {i}",
            duration=10.0,
        )
        for i in (1, 2, 3)
    ]


@pytest.fixture
def sample_script() -> Script:
    """Contiguous 3×10s script (scenario A timing)."""
    scenes = [
        SceneScript(order=i, narration=f"Narration for scene {i}.", start_time=(i - 1) * 10.0, end_time=i * 10.0)
        for i in (1, 2, 3)
    ]
    text = " ".join(s.narration for s in scenes)
    return Script(text=text, word_count=len(text.split()), estimated_duration=30.0, scenes=scenes)


async def _advance(workflow: Workflow, project_id: str, until: str) -> None:
    steps = [
        ("analyzed", lambda: workflow.generate(project_id, "analysis")),
        ("script_review", lambda: workflow.generate(project_id, "script")),
        ("script_approved", lambda: workflow.approve(project_id, "script", True)),
        ("storyboard_review", lambda: workflow.generate(project_id, "storyboard")),
        ("storyboard_approved", lambda: workflow.approve(project_id, "storyboard", True)),
        ("assets_review", lambda: workflow.generate(project_id, "assets")),
        ("assets_approved", lambda: workflow.approve(project_id, "assets", True)),
    ]
    for status, step in steps:
        result = step()
        if asyncio.iscoroutine(result):
            await result
        if status == until:
            return
    raise ValueError(f"Unknown status: {until}")


@pytest.fixture
def advance(workflow: Workflow):
    """Drive a project forward through the happy path up to a status."""

    async def run(project_id: str, until: str) -> None:
        await _advance(workflow, project_id, until)

    return run
