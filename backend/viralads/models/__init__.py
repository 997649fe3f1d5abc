from viralads.models.base import Base
from viralads.models.media_asset import MEDIA_ASSET_TYPES, MediaAsset
from viralads.models.project import Project
from viralads.models.scene import Scene

__all__ = [
    "Base",
    "Project",
    "Scene",
    "MediaAsset",
    "MEDIA_ASSET_TYPES",
]
