from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from viralads.constants.platform_specs import VideoPlatform


class CaptionStyleSchema(BaseModel):
    """Caption styling. Accepts snake_case and camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    font: str | None = Field(default=None, pattern=r"^[A-Za-z0-9 _-]{1,64}$")
    font_size: int | None = Field(default=None, alias="fontSize", gt=0, le=200)
    color: str | None = None
    background_color: str | None = Field(default=None, alias="backgroundColor")
    position: Literal["top", "center", "bottom"] | None = None


class CompileRequest(BaseModel):
    """Compile options. Omitted fields fall back to project settings, then defaults."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "musicVolume": 0.3,
                    "resolution": "1080p",
                    "aspectRatio": "portrait",
                    "includeCaptions": True,
                    "captionStyle": {"fontSize": 32, "position": "bottom"},
                }
            ]
        },
    )

    music_volume: float | None = Field(default=None, alias="musicVolume", ge=0, le=1)
    resolution: Literal["480p", "720p", "1080p", "4k"] | None = None
    aspect_ratio: Literal["portrait", "landscape", "square"] | None = Field(default=None, alias="aspectRatio")
    format: Literal["mp4", "mov"] | None = None
    include_captions: bool | None = Field(default=None, alias="includeCaptions")
    caption_style: CaptionStyleSchema | None = Field(default=None, alias="captionStyle")
    target_duration: float | None = Field(default=None, alias="targetDuration", gt=0, le=600)
    platform: VideoPlatform | None = None
    transition: Literal["fade", "zoom", "slide"] | None = None
    motion: Literal["zoom-in", "zoom-out", "pan-left", "pan-right", "static"] | None = None
    dedupe: bool = False


class CompileResponse(BaseModel):
    video_asset_id: UUID
    url: str
    duration: float
    width: int
    height: int
    format: str
    backend: str
    warnings: list[str] = Field(default_factory=list)


class SceneData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scene_number: int
    script_text: str
    visual_description: str | None = None
    scene_metadata: dict[str, Any] | None = None


class MediaAssetData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    scene_id: UUID | None = None
    type: str
    url: str
    asset_metadata: dict[str, Any] | None = None


class CompileDataResponse(BaseModel):
    project_id: UUID
    current_step: str
    scenes: list[SceneData]
    images: list[MediaAssetData]
    voiceover: MediaAssetData | None = None
    music: MediaAssetData | None = None


class AnimateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl", min_length=1)
    duration: float = Field(default=5.0, gt=0, le=60)
    motion: Literal["zoom-in", "zoom-out", "pan-left", "pan-right", "static"] = "zoom-in"
    resolution: Literal["480p", "720p", "1080p", "4k"] = "1080p"
    aspect_ratio: Literal["portrait", "landscape", "square"] = Field(default="landscape", alias="aspectRatio")


class AnimateImageResponse(BaseModel):
    url: str
    duration: float
    width: int
    height: int
