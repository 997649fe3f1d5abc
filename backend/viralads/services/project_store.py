"""Persistence seam for the compile pipeline.

The pipeline only needs a handful of reads and two writes; ProjectStore
names them so the pipeline can run against Postgres or an in-memory fake.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from viralads.models.media_asset import MediaAsset
from viralads.models.project import Project
from viralads.models.scene import Scene

logger = logging.getLogger(__name__)


class ProjectStore(ABC):
    @abstractmethod
    async def get_project(self, project_id: uuid.UUID) -> Project | None: ...

    @abstractmethod
    async def get_scenes_by_project(self, project_id: uuid.UUID) -> list[Scene]:
        """Scenes ordered by scene_number."""

    @abstractmethod
    async def get_media_assets_by_project(
        self, project_id: uuid.UUID, types: Sequence[str] | None = None
    ) -> list[MediaAsset]:
        """Assets ordered oldest first."""

    @abstractmethod
    async def find_asset_by_hash(
        self, project_id: uuid.UUID, asset_type: str, content_hash: str
    ) -> MediaAsset | None: ...

    @abstractmethod
    async def create_media_asset(
        self,
        project_id: uuid.UUID,
        asset_type: str,
        url: str,
        *,
        storage_key: str | None = None,
        scene_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MediaAsset: ...

    @abstractmethod
    async def update_project_step(self, project_id: uuid.UUID, step: str) -> None: ...


class SqlProjectStore(ProjectStore):
    """ProjectStore over an AsyncSession; the caller owns the transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_project(self, project_id: uuid.UUID) -> Project | None:
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    async def get_scenes_by_project(self, project_id: uuid.UUID) -> list[Scene]:
        result = await self.db.execute(
            select(Scene).where(Scene.project_id == project_id).order_by(Scene.scene_number)
        )
        return list(result.scalars().all())

    async def get_media_assets_by_project(
        self, project_id: uuid.UUID, types: Sequence[str] | None = None
    ) -> list[MediaAsset]:
        query = select(MediaAsset).where(MediaAsset.project_id == project_id)
        if types:
            query = query.where(MediaAsset.type.in_(list(types)))
        result = await self.db.execute(query.order_by(MediaAsset.created_at, MediaAsset.id))
        return list(result.scalars().all())

    async def find_asset_by_hash(
        self, project_id: uuid.UUID, asset_type: str, content_hash: str
    ) -> MediaAsset | None:
        result = await self.db.execute(
            select(MediaAsset)
            .where(
                MediaAsset.project_id == project_id,
                MediaAsset.type == asset_type,
                MediaAsset.asset_metadata["contentHash"].astext == content_hash,
            )
            .order_by(MediaAsset.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_media_asset(
        self,
        project_id: uuid.UUID,
        asset_type: str,
        url: str,
        *,
        storage_key: str | None = None,
        scene_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> MediaAsset:
        asset = MediaAsset(
            project_id=project_id,
            scene_id=scene_id,
            type=asset_type,
            url=url,
            storage_key=storage_key,
            asset_metadata=metadata,
        )
        self.db.add(asset)
        await self.db.flush()
        await self.db.refresh(asset)
        return asset

    async def update_project_step(self, project_id: uuid.UUID, step: str) -> None:
        await self.db.execute(update(Project).where(Project.id == project_id).values(current_step=step))
        await self.db.flush()
        logger.info(f"[PERSIST] Project {project_id} step -> {step}")
