"""Pipeline-internal data model for one compile invocation.

These objects are built by the timeline builder, handed to a render
backend, and discarded once the output has been persisted. They never
embed ids or wall-clock values, so serializing the same inputs twice
yields identical output.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from viralads.exceptions import CompilationValidationError

ClipType = Literal["image", "video"]
Transition = Literal["fade", "zoom", "slide"]
Motion = Literal["zoom-in", "zoom-out", "pan-left", "pan-right", "static"]
CaptionPosition = Literal["top", "center", "bottom"]
Resolution = Literal["480p", "720p", "1080p", "4k"]
AspectRatio = Literal["portrait", "landscape", "square"]
OutputFormat = Literal["mp4", "mov"]

CLIP_TYPES: tuple[str, ...] = ("image", "video")
TRANSITIONS: tuple[str, ...] = ("fade", "zoom", "slide")
MOTIONS: tuple[str, ...] = ("zoom-in", "zoom-out", "pan-left", "pan-right", "static")
CAPTION_POSITIONS: tuple[str, ...] = ("top", "center", "bottom")
OUTPUT_FORMATS: tuple[str, ...] = ("mp4", "mov")


@dataclass
class VideoClip:
    """One visual segment of the timeline."""

    type: ClipType
    url: str
    duration: float  # seconds
    transition: Transition | None = None
    motion: Motion | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "url": self.url,
            "duration": self.duration,
            "transition": self.transition,
            "motion": self.motion,
        }


@dataclass
class Caption:
    """One caption cue. Advisory overlay; never drives timing."""

    text: str
    start: float  # seconds from timeline zero
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "duration": self.duration}


@dataclass
class CaptionStyle:
    font: str | None = None
    font_size: int | None = None
    color: str | None = None
    background_color: str | None = None
    position: CaptionPosition = "bottom"

    def to_dict(self) -> dict[str, Any]:
        return {
            "font": self.font,
            "font_size": self.font_size,
            "color": self.color,
            "background_color": self.background_color,
            "position": self.position,
        }


@dataclass
class VideoCompilationOptions:
    """Sole input contract of a render backend."""

    clips: list[VideoClip]
    voiceover_url: str | None = None
    voiceover_duration: float | None = None  # hint from asset metadata; backends may measure the file instead
    music_url: str | None = None
    music_volume: float = 0.3
    captions: list[Caption] = field(default_factory=list)
    caption_style: CaptionStyle = field(default_factory=CaptionStyle)
    resolution: Resolution = "1080p"
    aspect_ratio: AspectRatio = "landscape"
    format: OutputFormat = "mp4"

    @property
    def total_clip_duration(self) -> float:
        return sum(clip.duration for clip in self.clips)

    def clip_starts(self) -> list[float]:
        """Start offset of each clip: the prefix sum of the durations before it."""
        starts: list[float] = []
        elapsed = 0.0
        for clip in self.clips:
            starts.append(elapsed)
            elapsed += clip.duration
        return starts

    def validate(self) -> None:
        """Raise CompilationValidationError if the options cannot be rendered."""
        from viralads.render.dimensions import RESOLUTIONS, ASPECT_RATIOS

        if not self.clips:
            raise CompilationValidationError("No video clips provided", field="clips")
        for index, clip in enumerate(self.clips):
            if clip.type not in CLIP_TYPES:
                raise CompilationValidationError(
                    f"Clip {index} has unknown type '{clip.type}'", field=f"clips[{index}].type"
                )
            if not clip.url:
                raise CompilationValidationError(f"Clip {index} has no source URL", field=f"clips[{index}].url")
            if clip.duration <= 0:
                raise CompilationValidationError(
                    f"Clip {index} duration must be positive, got {clip.duration}",
                    field=f"clips[{index}].duration",
                )
            if clip.motion is not None and clip.motion not in MOTIONS:
                raise CompilationValidationError(
                    f"Clip {index} has unknown motion '{clip.motion}'", field=f"clips[{index}].motion"
                )
        if self.voiceover_duration is not None and self.voiceover_duration <= 0:
            raise CompilationValidationError(
                f"voiceover_duration must be positive, got {self.voiceover_duration}", field="voiceover_duration"
            )
        if not 0 <= self.music_volume <= 1:
            raise CompilationValidationError(
                f"music_volume must be between 0 and 1, got {self.music_volume}", field="music_volume"
            )
        for index, caption in enumerate(self.captions):
            if caption.start < 0:
                raise CompilationValidationError(
                    f"Caption {index} starts before zero", field=f"captions[{index}].start"
                )
            if caption.duration <= 0:
                raise CompilationValidationError(
                    f"Caption {index} duration must be positive", field=f"captions[{index}].duration"
                )
        if self.caption_style.position not in CAPTION_POSITIONS:
            raise CompilationValidationError(
                f"Unknown caption position '{self.caption_style.position}'", field="caption_style.position"
            )
        if self.resolution not in RESOLUTIONS:
            raise CompilationValidationError(f"Unknown resolution '{self.resolution}'", field="resolution")
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise CompilationValidationError(f"Unknown aspect ratio '{self.aspect_ratio}'", field="aspect_ratio")
        if self.format not in OUTPUT_FORMATS:
            raise CompilationValidationError(f"Unknown output format '{self.format}'", field="format")

    def to_dict(self) -> dict[str, Any]:
        return {
            "clips": [clip.to_dict() for clip in self.clips],
            "voiceover_url": self.voiceover_url,
            "voiceover_duration": self.voiceover_duration,
            "music_url": self.music_url,
            "music_volume": self.music_volume,
            "captions": [caption.to_dict() for caption in self.captions],
            "caption_style": self.caption_style.to_dict(),
            "resolution": self.resolution,
            "aspect_ratio": self.aspect_ratio,
            "format": self.format,
        }
