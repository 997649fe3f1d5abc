import uuid
from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralads.models.base import Base, TimestampMixin, UUIDMixin


class Project(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "projects"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Wizard pointer: product, script, scenes, images, voiceover, music, compile, complete
    current_step: Mapped[str] = mapped_column(String(50), nullable=False, default="product")

    # Compile preferences: duration, aspectRatio, musicVolume, captions{...}
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    # Relationships
    scenes: Mapped[list["Scene"]] = relationship(  # noqa: F821
        "Scene", back_populates="project", cascade="all, delete-orphan", order_by="Scene.scene_number"
    )
    media_assets: Mapped[list["MediaAsset"]] = relationship(  # noqa: F821
        "MediaAsset", back_populates="project", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Project {self.name} ({self.current_step})>"
