"""
Timeline construction.

Turns resolved scenes and assets into a VideoCompilationOptions. Pure:
no I/O, no ids, no clock reads. Identical inputs give identical output.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Protocol, Sequence

from viralads.exceptions import CompilationValidationError, UnresolvedSceneError
from viralads.render.captions import build_caption_cues, clamp_captions
from viralads.render.types import (
    AspectRatio,
    Caption,
    CaptionStyle,
    Motion,
    OutputFormat,
    Resolution,
    Transition,
    VideoClip,
    VideoCompilationOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_TARGET_DURATION_S = 30.0


class SceneLike(Protocol):
    id: Any
    scene_number: int
    script_text: str
    scene_metadata: dict[str, Any] | None


class AssetLike(Protocol):
    id: Any
    scene_id: Any
    type: str
    url: str
    asset_metadata: dict[str, Any] | None
    created_at: datetime | None


@dataclass
class TimelineSettings:
    """Caller-facing knobs for one timeline build."""

    target_duration: float = DEFAULT_TARGET_DURATION_S
    music_volume: float = 0.3
    include_captions: bool = False
    caption_style: CaptionStyle = field(default_factory=CaptionStyle)
    resolution: Resolution = "1080p"
    aspect_ratio: AspectRatio = "landscape"
    format: OutputFormat = "mp4"
    transition: Transition | None = "fade"
    motion: Motion | None = None


def _recency_key(asset: AssetLike) -> tuple[float, str]:
    created = asset.created_at.timestamp() if asset.created_at is not None else float("-inf")
    return created, str(asset.id)


def latest_asset(assets: Iterable[AssetLike]) -> AssetLike | None:
    """Most recently created asset; ties broken by id so the choice is stable."""
    candidates = list(assets)
    if not candidates:
        return None
    return max(candidates, key=_recency_key)


def asset_matches_scene(asset: AssetLike, scene: SceneLike) -> bool:
    """Match by scene id, or by metadata.sceneNumber for assets saved without one."""
    if asset.scene_id is not None:
        return str(asset.scene_id) == str(scene.id)
    metadata = asset.asset_metadata or {}
    return metadata.get("sceneNumber") == scene.scene_number


def select_scene_visual(scene: SceneLike, assets: Sequence[AssetLike]) -> tuple[str, AssetLike]:
    """Pick the visual for a scene: the latest video clip, else the latest image."""
    scene_assets = [a for a in assets if asset_matches_scene(a, scene)]
    video = latest_asset(a for a in scene_assets if a.type == "video_clip")
    if video is not None:
        return "video", video
    image = latest_asset(a for a in scene_assets if a.type == "image")
    if image is not None:
        return "image", image
    raise UnresolvedSceneError(scene.scene_number)


def _explicit_duration(scene: SceneLike) -> float | None:
    metadata = scene.scene_metadata or {}
    value = metadata.get("duration")
    if value is None:
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        raise CompilationValidationError(
            f"Scene {scene.scene_number} has a non-numeric duration", field="duration"
        )
    if duration <= 0:
        raise CompilationValidationError(
            f"Scene {scene.scene_number} duration must be positive, got {duration}", field="duration"
        )
    return duration


def duration_hint(asset: AssetLike | None) -> float | None:
    """Length recorded in an audio asset's metadata, if it is a usable number.

    Only a hint: a render backend that can measure the file does so.
    """
    if asset is None:
        return None
    value = (asset.asset_metadata or {}).get("duration")
    if value is None:
        return None
    try:
        duration = float(value)
    except (TypeError, ValueError):
        logger.warning(f"[TIMELINE] Ignoring non-numeric duration on asset {asset.id}: {value!r}")
        return None
    if not (math.isfinite(duration) and duration > 0):
        logger.warning(f"[TIMELINE] Ignoring unusable duration on asset {asset.id}: {duration}")
        return None
    return duration


def assign_durations(scenes: Sequence[SceneLike], target_duration: float) -> list[float]:
    """Per-scene durations: explicit where upstream set one, else an even split of the target."""
    if target_duration <= 0:
        raise CompilationValidationError(
            f"Target duration must be positive, got {target_duration}", field="target_duration"
        )
    even_share = target_duration / len(scenes)
    durations = []
    for scene in scenes:
        explicit = _explicit_duration(scene)
        durations.append(explicit if explicit is not None else even_share)
    return durations


def build_timeline(
    scenes: Sequence[SceneLike],
    visual_assets: Sequence[AssetLike],
    voiceover_url: str | None = None,
    music_url: str | None = None,
    settings: TimelineSettings | None = None,
    voiceover_duration: float | None = None,
) -> VideoCompilationOptions:
    """
    Build the declarative timeline for a project.

    Args:
        scenes: Project scenes, any order
        visual_assets: Image and video_clip assets of the project
        voiceover_url: Selected voiceover, if any
        music_url: Selected background music, if any
        settings: Pacing, captions and output settings
        voiceover_duration: Voiceover length hint, used by backends that cannot measure the file

    Returns:
        VideoCompilationOptions ready for a render backend

    Raises:
        UnresolvedSceneError: If a scene has neither image nor video clip
        CompilationValidationError: If durations or options are malformed
    """
    settings = settings or TimelineSettings()
    if not scenes:
        raise CompilationValidationError("Cannot build a timeline without scenes", field="scenes")

    ordered = sorted(scenes, key=lambda s: s.scene_number)
    durations = assign_durations(ordered, settings.target_duration)

    clips: list[VideoClip] = []
    for scene, duration in zip(ordered, durations):
        kind, asset = select_scene_visual(scene, visual_assets)
        scene_metadata = scene.scene_metadata or {}
        motion = None
        if kind == "image":
            motion = scene_metadata.get("motion") or settings.motion
        clips.append(
            VideoClip(
                type=kind,
                url=asset.url,
                duration=duration,
                transition=settings.transition,
                motion=motion,
            )
        )

    captions: list[Caption] = []
    if settings.include_captions:
        total = max(sum(durations), 0.0)
        captions = clamp_captions(
            build_caption_cues([scene.script_text for scene in ordered], durations), total
        )

    options = VideoCompilationOptions(
        clips=clips,
        voiceover_url=voiceover_url,
        voiceover_duration=voiceover_duration if voiceover_url else None,
        music_url=music_url,
        music_volume=settings.music_volume,
        captions=captions,
        caption_style=settings.caption_style,
        resolution=settings.resolution,
        aspect_ratio=settings.aspect_ratio,
        format=settings.format,
    )
    options.validate()

    logger.info(
        f"[TIMELINE] {len(clips)} clips, {options.total_clip_duration:.2f}s, "
        f"{len(captions)} captions, voiceover={voiceover_url is not None}, music={music_url is not None}"
    )
    return options
