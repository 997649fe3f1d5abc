"""Media file information utilities using FFprobe."""

import json
import subprocess
from dataclasses import dataclass

from viralads.config import get_settings


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


@dataclass
class MediaInfo:
    """Media file information."""

    duration: float | None = None  # seconds
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    video_codec: str | None = None
    video_profile: str | None = None  # e.g. "High"
    video_level: int | None = None  # level_idc, e.g. 42 for 4.2
    pixel_format: str | None = None
    audio_codec: str | None = None
    has_video: bool = False
    has_audio: bool = False


def _run_ffprobe(file_path: str, *args) -> dict:
    """Run ffprobe and return parsed JSON."""
    settings = _get_settings()
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError:
        raise RuntimeError(f"ffprobe not found: {settings.ffprobe_path}")
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_duration(file_path: str) -> float:
    """
    Get media file duration in seconds.

    Raises:
        RuntimeError: If ffprobe fails or duration not found
    """
    data = _run_ffprobe(file_path, "-show_format")
    format_info = data.get("format", {})

    if "duration" not in format_info:
        raise RuntimeError("Duration not found in media file")

    return float(format_info["duration"])


def get_media_info(file_path: str) -> MediaInfo:
    """
    Get complete media file information.

    Raises:
        RuntimeError: If ffprobe fails
    """
    data = _run_ffprobe(file_path, "-show_format", "-show_streams")

    info = MediaInfo()
    format_info = data.get("format", {})
    if "duration" in format_info:
        info.duration = float(format_info["duration"])

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")

        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
            info.video_codec = stream.get("codec_name")
            info.video_profile = stream.get("profile")
            level = stream.get("level")
            info.video_level = level if isinstance(level, int) and level > 0 else None
            info.pixel_format = stream.get("pix_fmt")

            r_frame_rate = stream.get("r_frame_rate", "0/1")
            if "/" in r_frame_rate:
                num, den = r_frame_rate.split("/")
                if int(den) > 0:
                    info.fps = int(num) / int(den)

        elif codec_type == "audio" and not info.has_audio:
            info.has_audio = True
            info.audio_codec = stream.get("codec_name")

    return info
