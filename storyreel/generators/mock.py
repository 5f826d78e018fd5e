"""Deterministic offline generators.

These return realistic but generic artifacts so the whole workflow can run
without any provider API. Media is produced locally with ffmpeg.
"""

import asyncio
import re
from pathlib import Path

from ..compositor.ffmpeg import make_color_frame, make_silence
from ..models import Language, SceneScript, Script, StoryAnalysis, Storyboard, StoryboardScene
from ..storage import LocalStorage
from .base import (
    GeneratedImage,
    ImageGenerator,
    ScenePlanner,
    ScriptWriter,
    SpeechResult,
    SpeechSynthesizer,
    StoryAnalyzer,
)


# Scene counts and word targets per duration
SCENE_COUNTS = {30: 3, 60: 4, 90: 6}
WORD_TARGETS = {30: 75, 60: 150, 90: 225}
WORDS_PER_SECOND = 2.5

PALETTE = ["#1a1a2e", "#16213e", "#0f3460", "#533483", "#e94560", "#f5a623"]


def _keywords(topic: str, limit: int = 5) -> list[str]:
    words = [w.lower() for w in re.findall(r"[A-Za-zÀ-ɏ]{4,}", topic)]
    seen: list[str] = []
    for word in words:
        if word not in seen:
            seen.append(word)
    return seen[:limit] or ["story"]


def _split_evenly(total: float, count: int) -> list[tuple[float, float]]:
    step = total / count
    bounds = [round(i * step, 3) for i in range(count)] + [float(total)]
    return list(zip(bounds[:-1], bounds[1:]))


class MockStoryAnalyzer(StoryAnalyzer):
    """Derives a concept directly from the topic text."""

    async def analyze(
        self,
        topic: str,
        language: Language,
        revision_notes: str | None = None,
    ) -> StoryAnalysis:
        concept = topic.strip()
        if revision_notes:
            concept = f"{concept} ({revision_notes.strip()})"
        return StoryAnalysis(
            concept=concept,
            themes=_keywords(topic, limit=3),
            characters=["Narrator"],
            mood="inspiring",
        )


class MockScriptWriter(ScriptWriter):
    """Writes an evenly timed script sized to the target duration."""

    async def write_script(
        self,
        analysis: StoryAnalysis,
        language: Language,
        duration: int,
        revision_notes: str | None = None,
    ) -> Script:
        count = SCENE_COUNTS.get(duration, 3)
        words_per_scene = max(1, WORD_TARGETS.get(duration, 75) // count)

        scenes = []
        for order, (start, end) in enumerate(_split_evenly(duration, count), start=1):
            theme = analysis.themes[(order - 1) % len(analysis.themes)]
            seed = f"Part {order} of {analysis.concept} explores {theme}".split()
            filler = (seed * (words_per_scene // len(seed) + 1))[:words_per_scene]
            scenes.append(
                SceneScript(
                    order=order,
                    narration=" ".join(filler) + ".",
                    start_time=start,
                    end_time=end,
                    visual_description=f"{analysis.mood} scene about {theme}",
                )
            )

        text = " ".join(s.narration for s in scenes)
        return Script(
            text=text,
            word_count=len(text.split()),
            estimated_duration=float(duration),
            scenes=scenes,
        )


class MockScenePlanner(ScenePlanner):
    """One storyboard scene per script scene."""

    async def plan_scenes(
        self,
        script: Script,
        analysis: StoryAnalysis,
        revision_notes: str | None = None,
    ) -> Storyboard:
        style = "cinematic illustration"
        if revision_notes:
            style = f"{style}, {revision_notes.strip()}"
        return Storyboard(
            title=analysis.concept[:80],
            description=f"Vertical short about {analysis.concept}",
            visual_style=style,
            color_palette=PALETTE[:3],
            scenes=[
                StoryboardScene(
                    order=scene.order,
                    description=scene.visual_description,
                    image_prompt=f"{style}, vertical 9:16, {scene.visual_description}",
                    camera_angle="medium shot",
                    composition="rule of thirds",
                    lighting="soft",
                    transition="fade",
                    duration=scene.duration,
                )
                for scene in script.scenes
            ],
        )


class MockImageGenerator(ImageGenerator):
    """Renders a solid-color portrait frame per scene."""

    def __init__(self, storage: LocalStorage, namespace: str = "mock"):
        self.storage = storage
        self.namespace = namespace

    async def generate_image(
        self,
        scene: StoryboardScene,
        provider: str,
        reference_urls: list[str] | None = None,
    ) -> GeneratedImage:
        color = PALETTE[(scene.order - 1) % len(PALETTE)].replace("#", "0x")
        target = self.storage.root / self.namespace / f"scene_{scene.order}.png"
        await asyncio.to_thread(make_color_frame, target, color)
        stored = self.storage.save_file(target, f"scene_{scene.order}.png", self.namespace, move=True)
        return GeneratedImage(
            url=stored.url,
            provider=provider,
            reference_image_count=len(reference_urls or []),
        )


class MockSpeechSynthesizer(SpeechSynthesizer):
    """Silent narration sized to the text, without alignment."""

    def __init__(self, duration_seconds: float | None = None):
        self.duration_seconds = duration_seconds

    async def synthesize(self, text: str, language: Language, output_path: Path) -> SpeechResult:
        duration = self.duration_seconds or max(1.0, round(len(text.split()) / WORDS_PER_SECOND, 2))
        await asyncio.to_thread(make_silence, output_path, duration)
        return SpeechResult(audio_path=output_path, cost=0.0, alignment=None, duration_seconds=duration)
