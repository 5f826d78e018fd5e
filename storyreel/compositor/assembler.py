"""
Video assembly: narration, subtitles and the final composite.

The compositor is single-threaded: assets are downloaded one after another
into a private working directory, probed, planned and handed to a single
ffmpeg process. The working directory is removed whether or not the render
succeeds.
"""

import asyncio
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence
from urllib.parse import urlparse

import httpx

from ..config import Config, VideoConfig
from ..errors import CompositorError
from ..generators.base import SpeechSynthesizer
from ..models import AssetType, Language, Transcript, Video
from ..storage import LocalStorage
from ..transcript import build_subtitles, build_transcript
from .ffmpeg import run_ffmpeg
from .filters import CompositionPlan, SceneClip, build_plan
from .probe import probe_duration, probe_media


@dataclass
class RenderScene:
    """A script scene bound to its asset for this render."""

    order: int
    narration: str
    start_time: float
    end_time: float
    asset_url: str
    asset_type: AssetType = AssetType.IMAGE

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class CompositorResult:
    """Output of one compositor run."""

    video_path: Path
    duration: float
    file_size: int
    plan: CompositionPlan


def _download_suffix(scene: RenderScene) -> str:
    suffix = Path(urlparse(scene.asset_url).path).suffix.lower()
    if suffix:
        return suffix
    return ".mp4" if scene.asset_type == AssetType.VIDEO_CLIP else ".png"


class VideoCompositor:
    """Composes scene assets and one narration track into the final MP4."""

    name = "Compositor"

    def __init__(self, storage: LocalStorage, video: VideoConfig | None = None):
        self.storage = storage
        self.video = video or VideoConfig()

    def log(self, message: str) -> None:
        print(f"[{self.name}] {message}")

    def compose(
        self,
        scenes: Sequence[RenderScene],
        audio_path: Path,
        output_path: Path,
    ) -> CompositorResult:
        """Download, probe, plan and run ffmpeg.

        Raises:
            CompositorError: On any download, probe or ffmpeg failure.
        """
        if not scenes:
            raise CompositorError("Cannot compose a video without scenes")

        work_dir = Path(tempfile.mkdtemp(prefix="video_assembly_"))
        try:
            clips = self._download_and_probe(scenes, work_dir)
            audio_duration = probe_duration(audio_path)

            plan = build_plan(clips, audio_path, audio_duration, self.video)
            self.log(
                f"Composing {len(clips)} scene(s), {len(plan.transitions)} transition(s), "
                f"{plan.output_duration:g}s"
            )

            temp_output = work_dir / "output.mp4"
            run_ffmpeg(plan.ffmpeg_args(temp_output))
            if not temp_output.exists():
                raise CompositorError("FFmpeg finished but produced no output file")

            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(temp_output), output_path)

            return CompositorResult(
                video_path=output_path,
                duration=plan.output_duration,
                file_size=output_path.stat().st_size,
                plan=plan,
            )
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _download_and_probe(self, scenes: Sequence[RenderScene], work_dir: Path) -> list[SceneClip]:
        clips = []
        with httpx.Client(timeout=120.0, follow_redirects=True) as client:
            for i, scene in enumerate(scenes):
                dest = work_dir / f"scene_{i}{_download_suffix(scene)}"
                self.log(f"Downloading scene {scene.order} from {scene.asset_url}")
                try:
                    self.storage.fetch(scene.asset_url, dest, client=client)
                except httpx.HTTPError as e:
                    raise CompositorError(f"Failed to download asset for scene {scene.order}: {e}")

                info = probe_media(dest)
                orientation = "horizontal" if info.is_landscape else "vertical"
                self.log(
                    f"Scene {scene.order}: {info.kind} {info.width}x{info.height} "
                    f"rot={info.rotation} ({orientation})"
                )
                clips.append(SceneClip(order=scene.order, path=dest, info=info, duration=scene.duration))
        return clips


class VideoAssembler:
    """Final render stage: one TTS call, transcript, subtitles, composite."""

    name = "Assembler"

    def __init__(
        self,
        config: Config,
        storage: LocalStorage,
        speech: SpeechSynthesizer,
        compositor: VideoCompositor | None = None,
    ):
        self.config = config
        self.storage = storage
        self.speech = speech
        self.compositor = compositor or VideoCompositor(storage, config.video)

    def log(self, message: str) -> None:
        print(f"[{self.name}] {message}")

    async def assemble(
        self,
        project_id: str,
        language: Language,
        scenes: Sequence[RenderScene],
    ) -> Video:
        """Produce and store the final video for a set of bound scenes."""
        narration = " ".join(scene.narration.strip() for scene in scenes)

        self.log(f"Generating narration for {len(scenes)} scene(s), {len(narration)} characters")
        audio_tmp = Path(tempfile.mkdtemp(prefix="narration_")) / "narration.mp3"
        try:
            speech = await self.speech.synthesize(narration, language, audio_tmp)
            audio_duration = speech.duration_seconds or await asyncio.to_thread(probe_duration, speech.audio_path)

            transcript: Transcript = build_transcript(narration, language, audio_duration, speech.alignment)
            subtitles = self.storage.save_bytes(
                build_subtitles(scenes).encode("utf-8"), "subtitles.srt", project_id
            )
            audio = self.storage.save_file(speech.audio_path, "narration.mp3", project_id)

            output_path = self.storage.root / project_id / f"video_{int(time.time() * 1000)}.mp4"
            result = await asyncio.to_thread(self.compositor.compose, scenes, audio.path, output_path)
        finally:
            shutil.rmtree(audio_tmp.parent, ignore_errors=True)

        stored = self.storage.save_file(result.video_path, "video.mp4", project_id, move=True)
        self.log(f"Video assembled: {result.duration:g}s, {result.file_size / 1024 / 1024:.2f}MB")

        return Video(
            url=stored.url,
            audio_url=audio.url,
            subtitles_url=subtitles.url,
            transcript=transcript,
            duration=result.duration,
            file_size=result.file_size,
            cost=speech.cost,
            format=self.config.video.format,
            resolution=self.config.video.resolution,
            scene_count=len(scenes),
        )
