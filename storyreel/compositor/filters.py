"""
Typed filter-graph model for the compositor.

Composition is built as plain data: per-scene input specs, per-scene filter
chains (rotate → scale → pad → motion-or-loop) and a crossfade chain. Only
``CompositionPlan.filter_complex()`` and ``ffmpeg_args()`` turn it into
ffmpeg syntax, so every decision can be tested without running ffmpeg.

Scene timing:
    Every scene after the first starts one crossfade early, so the
    transition into scene i+1 runs over [cum_i - xfade, cum_i]. xfade output
    ends at offset + incoming length, which keeps the final timeline at
    exactly the sum of the scene durations.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from ..config import VideoConfig
from .probe import MediaInfo


def _fmt(value: float) -> str:
    """Compact decimal for filter arguments (9.5, 30, 0.5)."""
    return f"{round(value, 3):g}"


# ============================================================================
# FILTERS
# ============================================================================


@dataclass(frozen=True)
class Filter:
    """One ffmpeg filter with ordered options."""

    name: str
    options: tuple[tuple[Optional[str], str], ...] = ()

    @classmethod
    def of(cls, name: str, *positional: str, **named: str) -> "Filter":
        options = tuple((None, str(p)) for p in positional)
        options += tuple((k, str(v)) for k, v in named.items())
        return cls(name, options)

    def get(self, key: str) -> Optional[str]:
        for k, v in self.options:
            if k == key:
                return v
        return None

    def render(self) -> str:
        if not self.options:
            return self.name
        parts = [v if k is None else f"{k}={v}" for k, v in self.options]
        return f"{self.name}=" + ":".join(parts)


@dataclass
class FilterChain:
    """Linear chain: ``[in1][in2]f1,f2[out]``."""

    inputs: list[str]
    filters: list[Filter]
    output: str

    def render(self) -> str:
        sources = "".join(f"[{label}]" for label in self.inputs)
        body = ",".join(f.render() for f in self.filters) or "null"
        return f"{sources}{body}[{self.output}]"

    def names(self) -> list[str]:
        return [f.name for f in self.filters]


@dataclass
class InputSpec:
    """One ``-i`` input with its per-input options."""

    path: Path
    options: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        return [*self.options, "-i", str(self.path)]


@dataclass
class Transition:
    """Crossfade between the running composite and the next scene."""

    left: str
    right: str
    offset: float
    duration: float
    output: str
    transition: str = "fade"

    def as_chain(self) -> FilterChain:
        xfade = Filter.of(
            "xfade",
            transition=self.transition,
            duration=_fmt(self.duration),
            offset=_fmt(self.offset),
        )
        return FilterChain([self.left, self.right], [xfade], self.output)


# ============================================================================
# PER-SCENE TRANSFORMS
# ============================================================================


ROTATION_FILTERS = {
    90: [Filter.of("transpose", "1")],
    180: [Filter.of("hflip"), Filter.of("vflip")],
    270: [Filter.of("transpose", "2")],
}


def orientation_filters(info: MediaInfo) -> list[Filter]:
    """Apply the embedded rotation, then force portrait for landscape frames.

    The forced 90° turn only happens when nothing was embedded: an
    upstream generator sometimes ignores the requested portrait framing.
    """
    filters = list(ROTATION_FILTERS.get(info.rotation, []))
    if info.rotation == 0 and info.is_landscape:
        filters.append(Filter.of("transpose", "1"))
    return filters


def fit_filters(video: VideoConfig) -> list[Filter]:
    """Scale inside the canvas preserving aspect, then pad to it. Never crops."""
    return [
        Filter.of(
            "scale",
            str(video.width),
            str(video.height),
            force_original_aspect_ratio="decrease",
        ),
        Filter.of("pad", str(video.width), str(video.height), "(ow-iw)/2", "(oh-ih)/2"),
    ]


def ken_burns(duration: float, video: VideoConfig, fade_in: float = 0.0) -> Filter:
    """Slow zoom to ``zoom_max`` over the scene with a gentle vertical sine pan.

    The zoom ramp spans the scene's own frames; the ``fade_in`` seconds
    played under the incoming crossfade are added to the frame count.
    """
    frames = max(1, round(video.fps * duration))
    total_frames = max(1, round(video.fps * (duration + fade_in)))
    zoom_gain = round(video.zoom_max - 1.0, 3)
    return Filter.of(
        "zoompan",
        z=f"'min(1.0+{zoom_gain:g}*on/{frames},{video.zoom_max:g})'",
        x="'iw/2-(iw/zoom/2)'",
        y=f"'ih/2-(ih/zoom/2)+sin(on/{video.fps})*{video.pan_amplitude_px}'",
        d=str(total_frames),
        s=f"{video.width}x{video.height}",
        fps=str(video.fps),
    )


def normalize_filters(video: VideoConfig) -> list[Filter]:
    """Common tail so every scene stream matches for xfade."""
    return [
        Filter.of("fps", str(video.fps)),
        Filter.of("format", "yuv420p"),
        Filter.of("setsar", "1"),
    ]


@dataclass
class SceneClip:
    """One scene ready to compose: downloaded asset, probe result and timing."""

    order: int
    path: Path
    info: MediaInfo
    duration: float


@dataclass
class SceneTransform:
    """Input and filter chain for one scene."""

    order: int
    input: InputSpec
    chain: FilterChain
    segment_duration: float
    loops: bool = False


def build_scene_transform(
    index: int,
    clip: SceneClip,
    video: VideoConfig,
    fade_in: float = 0.0,
) -> SceneTransform:
    """Convert one scene and its probe result into an input + filter chain.

    Args:
        index: ffmpeg input index of the asset
        clip: Scene asset, probe info and scene duration
        video: Output canvas settings
        fade_in: Seconds the scene plays under the crossfade into it
    """
    segment = clip.duration + fade_in
    filters = orientation_filters(clip.info) + fit_filters(video)
    options: list[str] = []
    loops = False

    if clip.info.kind == "image":
        filters.append(ken_burns(clip.duration, video, fade_in=fade_in))
    else:
        options.append("-noautorotate")
        intrinsic = clip.info.duration
        if intrinsic is None or intrinsic < segment:
            options += ["-stream_loop", "-1"]
            loops = True
        filters += [
            Filter.of("trim", duration=_fmt(segment)),
            Filter.of("setpts", "PTS-STARTPTS"),
        ]

    filters += normalize_filters(video)

    return SceneTransform(
        order=clip.order,
        input=InputSpec(clip.path, options),
        chain=FilterChain([f"{index}:v"], filters, f"v{index}"),
        segment_duration=segment,
        loops=loops,
    )


def crossfade_offsets(durations: Sequence[float], crossfade: float) -> list[float]:
    """Offset of each transition: cumulative duration through scene i minus the fade."""
    offsets = []
    cumulative = 0.0
    for duration in durations[:-1]:
        cumulative += duration
        offsets.append(round(cumulative - crossfade, 3))
    return offsets


def build_transitions(labels: Sequence[str], durations: Sequence[float], crossfade: float) -> list[Transition]:
    """Running chain: transition i blends composite[0..i] with raw scene i+1."""
    transitions = []
    current = labels[0]
    for i, offset in enumerate(crossfade_offsets(durations, crossfade)):
        output = f"x{i + 1}"
        transitions.append(Transition(current, labels[i + 1], offset, crossfade, output))
        current = output
    return transitions


# ============================================================================
# FULL PLAN
# ============================================================================


@dataclass
class CompositionPlan:
    """Everything needed to emit one ffmpeg invocation."""

    scenes: list[SceneTransform]
    transitions: list[Transition]
    audio: InputSpec
    audio_duration: float
    video: VideoConfig

    @property
    def timeline_duration(self) -> float:
        """Composited video length: the sum of scene durations."""
        total = sum(s.segment_duration for s in self.scenes)
        return round(total - sum(t.duration for t in self.transitions), 3)

    @property
    def output_duration(self) -> float:
        """Narration length, unless that would cut the last scene short."""
        return round(max(self.audio_duration, self.timeline_duration), 3)

    @property
    def audio_index(self) -> int:
        return len(self.scenes)

    def chains(self) -> list[FilterChain]:
        chains = [s.chain for s in self.scenes]
        chains += [t.as_chain() for t in self.transitions]

        last = self.transitions[-1].output if self.transitions else self.scenes[0].chain.output
        hold = round(self.output_duration - self.timeline_duration, 3)
        tail = [Filter.of("tpad", stop_mode="clone", stop_duration=_fmt(hold))] if hold > 0 else []
        chains.append(FilterChain([last], tail, "vout"))
        chains.append(FilterChain([f"{self.audio_index}:a"], [Filter.of("apad")], "aout"))
        return chains

    def filter_complex(self) -> str:
        return ";".join(chain.render() for chain in self.chains())

    def ffmpeg_args(self, output_path: Path | str) -> list[str]:
        """Arguments for ``ffmpeg`` (without the executable)."""
        args = ["-y"]
        for scene in self.scenes:
            args += scene.input.args()
        args += self.audio.args()
        args += [
            "-filter_complex", self.filter_complex(),
            "-map", "[vout]",
            "-map", "[aout]",
            "-c:v", "libx264",
            "-preset", self.video.preset,
            "-crf", str(self.video.crf),
            "-pix_fmt", "yuv420p",
            "-r", str(self.video.fps),
            "-c:a", "aac",
            "-b:a", self.video.audio_bitrate,
            "-movflags", "+faststart",
            "-t", _fmt(self.output_duration),
            str(output_path),
        ]
        return args


def build_plan(
    clips: Sequence[SceneClip],
    audio_path: Path,
    audio_duration: float,
    video: VideoConfig | None = None,
) -> CompositionPlan:
    """Sequence scene transforms and crossfades against the narration track."""
    if not clips:
        raise ValueError("At least one scene is required")
    video = video or VideoConfig()
    crossfade = video.crossfade_seconds

    scenes = []
    for index, clip in enumerate(clips):
        fade_in = crossfade if index > 0 else 0.0
        scenes.append(build_scene_transform(index, clip, video, fade_in=fade_in))

    transitions = build_transitions(
        [s.chain.output for s in scenes],
        [clip.duration for clip in clips],
        crossfade,
    )

    return CompositionPlan(
        scenes=scenes,
        transitions=transitions,
        audio=InputSpec(Path(audio_path)),
        audio_duration=audio_duration,
        video=video,
    )
