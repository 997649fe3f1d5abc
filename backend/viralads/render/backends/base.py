"""Render backend contract shared by the remote renderer and the local compiler."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from viralads.render.dimensions import get_output_dimensions, to_even_dimensions
from viralads.render.types import VideoCompilationOptions


class RenderStatus(Enum):
    """Render job status.

    queued -> fetching -> rendering -> saving -> done, or any -> failed.
    """

    QUEUED = "queued"
    FETCHING = "fetching"
    RENDERING = "rendering"
    SAVING = "saving"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RenderStatus.DONE, RenderStatus.FAILED)


@dataclass
class RenderJob:
    """Handle for one submitted render."""

    id: str
    status: RenderStatus = RenderStatus.QUEUED
    url: str | None = None
    error: str | None = None


@dataclass
class RenderOutput:
    """Result of a compile: a URL to fetch, or the encoded bytes."""

    format: str
    width: int
    height: int
    duration: float
    url: str | None = None
    data: bytes | None = None
    backend: str = ""

    @property
    def content_type(self) -> str:
        return "video/quicktime" if self.format == "mov" else "video/mp4"

    def __post_init__(self) -> None:
        if self.url is None and self.data is None:
            raise ValueError("RenderOutput needs a url or data")


class RenderBackend(ABC):
    """Compiles a VideoCompilationOptions into a single video."""

    name: str = "base"

    @abstractmethod
    async def compile(self, options: VideoCompilationOptions) -> RenderOutput:
        """Render the timeline. Raises RenderFailedError or RenderTimeoutError."""

    @abstractmethod
    async def animate_image(
        self,
        image_url: str,
        duration: float,
        motion: str = "zoom-in",
        resolution: str = "1080p",
        aspect_ratio: str = "landscape",
    ) -> RenderOutput:
        """Render one image as a clip with a motion effect."""

    async def aclose(self) -> None:
        """Release any held clients."""

    @staticmethod
    def expected_duration(options: VideoCompilationOptions, voiceover_duration: float | None = None) -> float:
        """Timeline length: the clips, stretched to the voiceover when it runs longer.

        A measured voiceover_duration wins over the hint carried in options.
        """
        total = options.total_clip_duration
        if options.voiceover_url is None:
            return total
        if voiceover_duration is None:
            voiceover_duration = options.voiceover_duration
        if voiceover_duration is not None and voiceover_duration > total:
            return voiceover_duration
        return total

    @staticmethod
    def output_dimensions(options: VideoCompilationOptions) -> tuple[int, int]:
        """Encoded frame size; odd preset sides are rounded up for yuv420p."""
        return to_even_dimensions(*get_output_dimensions(options.resolution, options.aspect_ratio))
