"""Final video composition with ffmpeg."""

from .assembler import CompositorResult, RenderScene, VideoAssembler, VideoCompositor
from .filters import CompositionPlan, SceneClip, build_plan
from .probe import MediaInfo, parse_probe, probe_duration, probe_media

__all__ = [
    "CompositionPlan",
    "CompositorResult",
    "MediaInfo",
    "RenderScene",
    "SceneClip",
    "VideoAssembler",
    "VideoCompositor",
    "build_plan",
    "parse_probe",
    "probe_duration",
    "probe_media",
]
