"""Media probing with ffprobe."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

from ..errors import CompositorError
from .ffmpeg import run_ffprobe


IMAGE_CODECS = {"png", "mjpeg", "webp", "bmp", "tiff", "gif", "jpegls"}

MediaKind = Literal["image", "video"]


@dataclass
class MediaInfo:
    """Stream metadata of one downloaded asset."""

    width: int
    height: int
    rotation: int = 0
    kind: MediaKind = "image"
    duration: Optional[float] = None

    @property
    def display_size(self) -> tuple[int, int]:
        """Width and height after the embedded rotation is applied."""
        if self.rotation in (90, 270):
            return self.height, self.width
        return self.width, self.height

    @property
    def is_landscape(self) -> bool:
        width, height = self.display_size
        return width > height


def normalize_rotation(degrees: float) -> int:
    """Snap a rotation to 0/90/180/270 clockwise."""
    return int(round(degrees / 90.0)) * 90 % 360


def _rotation(stream: dict) -> int:
    tag = (stream.get("tags") or {}).get("rotate")
    if tag not in (None, ""):
        return normalize_rotation(float(tag))
    # Display matrix rotation is counter-clockwise
    for side_data in stream.get("side_data_list") or []:
        if "rotation" in side_data:
            return normalize_rotation(-float(side_data["rotation"]))
    return 0


def _float(value) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result > 0 else None


def parse_probe(data: dict) -> MediaInfo:
    """Build MediaInfo from ffprobe ``-show_streams -show_format`` JSON.

    Raises:
        CompositorError: If the file has no video stream.
    """
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise CompositorError("No video stream found in asset")

    fmt = data.get("format") or {}
    format_name = fmt.get("format_name", "")
    codec = video.get("codec_name", "")
    frames = video.get("nb_frames")

    is_image = (
        "image2" in format_name
        or format_name.endswith("_pipe")
        or (codec in IMAGE_CODECS and frames in (None, "", "1", 1))
    )

    duration = None
    if not is_image:
        duration = _float(video.get("duration")) or _float(fmt.get("duration"))

    return MediaInfo(
        width=int(video.get("width", 0)),
        height=int(video.get("height", 0)),
        rotation=_rotation(video),
        kind="image" if is_image else "video",
        duration=duration,
    )


def probe_media(path: Path | str) -> MediaInfo:
    """Probe a downloaded asset.

    Raises:
        CompositorError: If ffprobe fails or the output is unusable.
    """
    output = run_ffprobe([
        "-print_format", "json",
        "-show_streams",
        "-show_format",
        str(path),
    ])
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        raise CompositorError(f"Could not parse ffprobe output for {Path(path).name}")
    return parse_probe(data)


def probe_duration(path: Path | str) -> float:
    """Container duration of an audio or video file, in seconds.

    Raises:
        CompositorError: If the duration cannot be determined.
    """
    output = run_ffprobe([
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ])
    duration = _float(output.strip())
    if duration is None:
        raise CompositorError(f"Could not determine duration of {Path(path).name}")
    return duration
