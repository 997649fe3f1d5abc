"""
Compile pipeline orchestration.

    resolve inputs -> build timeline -> render -> persist -> advance step

Each stage raises immediately on failure; there is no partial-timeline
fallback and no automatic re-render. The project step is only written
after the final video asset exists.
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from viralads.config import Settings, get_settings
from viralads.constants.platform_specs import options_for_platform, validate_video_for_platform
from viralads.exceptions import CompilationValidationError
from viralads.models.media_asset import MediaAsset
from viralads.render.backends.base import RenderBackend, RenderOutput
from viralads.render.timeline import TimelineSettings, build_timeline, duration_hint
from viralads.render.types import CaptionStyle, VideoCompilationOptions
from viralads.schemas.compile import AnimateImageRequest, CompileRequest
from viralads.services.asset_resolver import CompilationInputs, resolve_compilation_inputs
from viralads.services.output_persister import OutputPersister
from viralads.services.project_store import ProjectStore
from viralads.services.storage_service import StorageService

logger = logging.getLogger(__name__)

# project.settings may store ratios the way the editor shows them
_ASPECT_ALIASES = {"9:16": "portrait", "16:9": "landscape", "1:1": "square"}


@dataclass
class CompileResult:
    asset: MediaAsset
    output: RenderOutput
    options: VideoCompilationOptions
    warnings: list[str] = field(default_factory=list)


def _project_number(project_settings: dict[str, Any], key: str, location: str | None = None) -> float | None:
    """A numeric project setting, or None when unset.

    Raises:
        CompilationValidationError: The stored value is not a finite number
    """
    location = location or f"settings.{key}"
    value = project_settings.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise CompilationValidationError(
            f"Project setting '{location}' must be a number, got {value!r}", field=location
        )
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise CompilationValidationError(
            f"Project setting '{location}' must be a number, got {value!r}", field=location
        )
    if not math.isfinite(number):
        raise CompilationValidationError(f"Project setting '{location}' must be finite", field=location)
    return number


def _project_music_volume(project_settings: dict[str, Any]) -> float | None:
    music_volume = _project_number(project_settings, "musicVolume")
    if music_volume is not None:
        return music_volume
    # Settings page stores a 0-100 slider value
    slider = _project_number(project_settings, "music_volume")
    return slider / 100 if slider is not None else None


def _project_caption_style(project_settings: dict[str, Any]) -> dict[str, Any]:
    captions = project_settings.get("captions")
    return captions if isinstance(captions, dict) else {}


class CompileService:
    def __init__(
        self,
        store: ProjectStore,
        backend: RenderBackend,
        storage: StorageService,
        settings: Settings | None = None,
        persister: OutputPersister | None = None,
    ):
        self.store = store
        self.backend = backend
        self.storage = storage
        self.settings = settings or get_settings()
        self.persister = persister or OutputPersister(
            store,
            storage,
            terminal_step=self.settings.compile_terminal_step,
            fetch_timeout_s=self.settings.render_fetch_timeout_s,
        )

    def resolve_timeline_settings(
        self, project_settings: dict[str, Any] | None, request: CompileRequest
    ) -> TimelineSettings:
        """Merge request > platform preset > project settings > app defaults."""
        project_settings = project_settings or {}
        defaults = self.settings

        resolution = defaults.default_resolution
        aspect_ratio = _ASPECT_ALIASES.get(
            project_settings.get("aspectRatio"), project_settings.get("aspectRatio")
        ) or defaults.default_aspect_ratio
        output_format = defaults.default_output_format
        if request.platform:
            resolution, aspect_ratio, output_format = options_for_platform(request.platform)

        music_volume = request.music_volume
        if music_volume is None:
            music_volume = _project_music_volume(project_settings)
        if music_volume is None:
            music_volume = defaults.default_music_volume

        include_captions = request.include_captions
        if include_captions is None:
            include_captions = bool(project_settings.get("captions_enabled", False))

        style = dict(_project_caption_style(project_settings))
        if request.caption_style:
            style.update(request.caption_style.model_dump(exclude_none=True))
        font_size = _project_number(style, "font_size", "settings.captions.fontSize")
        if font_size is None:
            font_size = _project_number(style, "fontSize", "settings.captions.fontSize")
        caption_style = CaptionStyle(
            font=style.get("font"),
            font_size=int(font_size) if font_size else defaults.default_caption_font_size,
            color=style.get("color"),
            background_color=style.get("background_color") or style.get("backgroundColor"),
            position=style.get("position") or "bottom",
        )

        target_duration = request.target_duration
        if target_duration is None:
            target_duration = _project_number(project_settings, "duration")
        if target_duration is None:
            target_duration = defaults.default_target_duration_s
        return TimelineSettings(
            target_duration=target_duration,
            music_volume=music_volume,
            include_captions=include_captions,
            caption_style=caption_style,
            resolution=request.resolution or resolution,
            aspect_ratio=request.aspect_ratio or aspect_ratio,
            format=request.format or output_format,
            transition=request.transition or "fade",
            motion=request.motion,
        )

    async def get_compile_data(self, project_id: uuid.UUID) -> CompilationInputs:
        return await resolve_compilation_inputs(self.store, project_id)

    async def build_options(
        self, project_id: uuid.UUID, request: CompileRequest
    ) -> tuple[CompilationInputs, VideoCompilationOptions]:
        inputs = await resolve_compilation_inputs(self.store, project_id)
        timeline_settings = self.resolve_timeline_settings(inputs.project.settings, request)
        options = build_timeline(
            inputs.scenes,
            inputs.visual_assets,
            voiceover_url=inputs.voiceover_url,
            music_url=inputs.music_url,
            settings=timeline_settings,
            voiceover_duration=duration_hint(inputs.voiceover),
        )
        return inputs, options

    async def compile_project(self, project_id: uuid.UUID, request: CompileRequest | None = None) -> CompileResult:
        """Compile a project's final video.

        Raises:
            ProjectNotFoundError, NoScenesError, NoImagesError, UnresolvedSceneError
            CompilationValidationError: Malformed timeline
            RenderFailedError, RenderTimeoutError: Render backend failure
            StorageError: Upload or asset insert failed; project step unchanged
        """
        request = request or CompileRequest()
        started = time.monotonic()
        logger.info(f"[COMPILE] Project {project_id} via {self.backend.name} backend")

        inputs, options = await self.build_options(project_id, request)
        output = await self.backend.compile(options)

        warnings: list[str] = []
        metadata: dict[str, Any] = {
            "resolution": options.resolution,
            "aspectRatio": options.aspect_ratio,
            "musicVolume": options.music_volume,
            "includeCaptions": bool(options.captions),
            "clipCount": len(options.clips),
            "timeline": options.to_dict(),
        }
        if request.platform:
            _, warnings = validate_video_for_platform(
                request.platform,
                duration=output.duration,
                size=len(output.data) if output.data is not None else None,
                width=output.width,
                height=output.height,
                format=output.format,
            )
            metadata["platform"] = request.platform
            metadata["platformWarnings"] = warnings
            for warning in warnings:
                logger.warning(f"[COMPILE] {request.platform}: {warning}")

        asset = await self.persister.persist(output, inputs.project, metadata=metadata, dedupe=request.dedupe)
        logger.info(
            f"[COMPILE] Project {project_id} done in {time.monotonic() - started:.1f}s: "
            f"asset {asset.id}, {output.width}x{output.height}, {output.duration:.2f}s"
        )
        return CompileResult(asset=asset, output=output, options=options, warnings=warnings)

    async def animate_image(self, request: AnimateImageRequest) -> tuple[str, RenderOutput]:
        """Render a motion preview of one image and store it; returns (url, output)."""
        output = await self.backend.animate_image(
            request.image_url,
            request.duration,
            motion=request.motion,
            resolution=request.resolution,
            aspect_ratio=request.aspect_ratio,
        )
        data = await self.persister.output_bytes(output)
        storage_key = f"previews/animations/{uuid.uuid4().hex}.{output.format}"
        url = await self.storage.upload_bytes(storage_key, data, output.content_type)
        logger.info(f"[COMPILE] Animated image preview ({request.motion}) stored at {storage_key}")
        return url, output
