"""Thin wrappers around the ffmpeg / ffprobe executables."""

import subprocess
from pathlib import Path

from ..errors import CompositorError


FFMPEG_TIMEOUT = 600
FFPROBE_TIMEOUT = 30


def run_ffmpeg(args: list[str], timeout: int = FFMPEG_TIMEOUT) -> subprocess.CompletedProcess:
    """Run ffmpeg with ``args`` (without the leading ``ffmpeg``).

    Raises:
        CompositorError: If ffmpeg is missing, times out or exits non-zero.
    """
    cmd = ["ffmpeg", "-hide_banner", "-loglevel", "error", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise CompositorError("ffmpeg not found. Install FFmpeg to render videos.")
    except subprocess.TimeoutExpired:
        raise CompositorError(f"ffmpeg timed out after {timeout}s")

    if result.returncode != 0:
        raise CompositorError(
            f"FFmpeg failed with code {result.returncode}",
            details=[result.stderr[-2000:]] if result.stderr else [],
        )
    return result


def run_ffprobe(args: list[str], timeout: int = FFPROBE_TIMEOUT) -> str:
    """Run ffprobe and return its stdout.

    Raises:
        CompositorError: If ffprobe is missing, times out or exits non-zero.
    """
    cmd = ["ffprobe", "-v", "error", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise CompositorError("ffprobe not found. Install FFmpeg to probe media.")
    except subprocess.TimeoutExpired:
        raise CompositorError(f"ffprobe timed out after {timeout}s")

    if result.returncode != 0:
        raise CompositorError(
            f"ffprobe failed with code {result.returncode}",
            details=[result.stderr.strip()] if result.stderr else [],
        )
    return result.stdout


def make_silence(output_path: Path, duration: float) -> Path:
    """Write a silent stereo MP3 of ``duration`` seconds."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    run_ffmpeg([
        "-y",
        "-f", "lavfi",
        "-i", "anullsrc=r=44100:cl=stereo",
        "-t", f"{duration:g}",
        "-q:a", "9",
        "-acodec", "libmp3lame",
        str(output_path),
    ])
    return output_path


def make_color_frame(output_path: Path, color: str, width: int = 1080, height: int = 1920) -> Path:
    """Write a single solid-color PNG frame."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    run_ffmpeg([
        "-y",
        "-f", "lavfi",
        "-i", f"color=c={color}:s={width}x{height}",
        "-frames:v", "1",
        str(output_path),
    ])
    return output_path
