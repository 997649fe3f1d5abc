import uuid
from typing import Any, Literal

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralads.models.base import Base, TimestampMixin, UUIDMixin

MediaAssetType = Literal["image", "video_clip", "voiceover", "music", "final_video"]

MEDIA_ASSET_TYPES: tuple[str, ...] = ("image", "video_clip", "voiceover", "music", "final_video")


class MediaAsset(Base, UUIDMixin, TimestampMixin):
    """Generated or uploaded media. Immutable: a regeneration inserts a new row."""

    __tablename__ = "media_assets"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Nullable for project-level assets (voiceover, music, final_video)
    scene_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("scenes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Type: image, video_clip, voiceover, music, final_video
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    url: Mapped[str] = mapped_column(Text, nullable=False)
    storage_key: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # e.g. {"source": "replicate", "prompt": "...", "duration": 8.2, "sceneNumber": 2}
    asset_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="media_assets")  # noqa: F821

    def __repr__(self) -> str:
        return f"<MediaAsset {self.type} {self.id}>"
