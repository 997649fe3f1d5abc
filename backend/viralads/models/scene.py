import uuid
from typing import Any

from sqlalchemy import ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viralads.models.base import Base, TimestampMixin, UUIDMixin


class Scene(Base, UUIDMixin, TimestampMixin):
    """One narrative beat of an ad. Written by script breakdown, read-only to the compiler."""

    __tablename__ = "scenes"
    __table_args__ = (UniqueConstraint("project_id", "scene_number", name="uq_scenes_project_number"),)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scene_number: Mapped[int] = mapped_column(Integer, nullable=False)
    script_text: Mapped[str] = mapped_column(Text, nullable=False)
    visual_description: Mapped[str] = mapped_column(Text, nullable=False)
    image_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)

    # e.g. {"videoPrompt": "...", "duration": 6.0}
    scene_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="scenes")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Scene #{self.scene_number}>"
