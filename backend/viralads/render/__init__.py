from viralads.render.audio_mixer import AudioMixer
from viralads.render.dimensions import get_output_dimensions
from viralads.render.timeline import TimelineSettings, build_timeline
from viralads.render.types import Caption, CaptionStyle, VideoClip, VideoCompilationOptions

__all__ = [
    "AudioMixer",
    "Caption",
    "CaptionStyle",
    "TimelineSettings",
    "VideoClip",
    "VideoCompilationOptions",
    "build_timeline",
    "get_output_dimensions",
]
