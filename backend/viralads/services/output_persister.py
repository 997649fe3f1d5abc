"""
Stores a rendered video and records it as a final_video MediaAsset.

Order matters: upload, then insert the asset, then advance the project
step. A StorageError anywhere before the insert leaves the project step
untouched.

By default every call creates a new asset, even for identical bytes.
Pass dedupe=True to reuse an existing final_video with the same SHA-256.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError

from viralads.exceptions import StorageError
from viralads.models.media_asset import MediaAsset
from viralads.models.project import Project
from viralads.render.backends.base import RenderOutput
from viralads.services.project_store import ProjectStore
from viralads.services.storage_service import StorageService, download_bytes

logger = logging.getLogger(__name__)

FINAL_VIDEO = "final_video"


def build_storage_key(project: Project, asset_type: str, extension: str, now: datetime | None = None) -> str:
    """organizations/{org}/projects/{project}/{type}/{timestamp}-{random}.{ext}"""
    now = now or datetime.now(timezone.utc)
    return (
        f"organizations/{project.organization_id}/projects/{project.id}/{asset_type}/"
        f"{now.strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:8]}.{extension}"
    )


class OutputPersister:
    def __init__(
        self,
        store: ProjectStore,
        storage: StorageService,
        *,
        terminal_step: str = "complete",
        fetch_timeout_s: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.store = store
        self.storage = storage
        self.terminal_step = terminal_step
        self.fetch_timeout_s = fetch_timeout_s
        self._http_client = http_client

    async def output_bytes(self, output: RenderOutput) -> bytes:
        if output.data is not None:
            return output.data
        return await download_bytes(output.url, self.fetch_timeout_s, client=self._http_client)

    async def store_output(
        self,
        output: RenderOutput,
        project: Project,
        *,
        asset_type: str = FINAL_VIDEO,
        scene_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
        dedupe: bool = False,
    ) -> MediaAsset:
        """Upload the output and insert its asset row; never touches the project step."""
        data = await self.output_bytes(output)
        if not data:
            raise StorageError("Rendered video is empty")
        content_hash = hashlib.sha256(data).hexdigest()

        if dedupe:
            existing = await self.store.find_asset_by_hash(project.id, asset_type, content_hash)
            if existing is not None:
                logger.info(f"[PERSIST] Reusing {asset_type} {existing.id} (same content hash)")
                return existing

        storage_key = build_storage_key(project, asset_type, output.format)
        url = await self.storage.upload_bytes(storage_key, data, output.content_type)

        asset_metadata: dict[str, Any] = {
            "duration": round(output.duration, 3),
            "width": output.width,
            "height": output.height,
            "format": output.format,
            "backend": output.backend,
            "size": len(data),
            "contentHash": content_hash,
        }
        if output.url:
            asset_metadata["sourceUrl"] = output.url
        asset_metadata.update(metadata or {})

        try:
            asset = await self.store.create_media_asset(
                project.id,
                asset_type,
                url,
                storage_key=storage_key,
                scene_id=scene_id,
                metadata=asset_metadata,
            )
        except SQLAlchemyError as e:
            logger.exception(f"[PERSIST] Failed to record {asset_type} for project {project.id}")
            raise StorageError("Failed to record the rendered video") from e

        logger.info(f"[PERSIST] Stored {asset_type} {asset.id} ({len(data)} bytes) at {storage_key}")
        return asset

    async def persist(
        self,
        output: RenderOutput,
        project: Project,
        *,
        metadata: dict[str, Any] | None = None,
        dedupe: bool = False,
    ) -> MediaAsset:
        """Store the final video, then advance the project to the terminal step."""
        asset = await self.store_output(output, project, metadata=metadata, dedupe=dedupe)
        await self.store.update_project_step(project.id, self.terminal_step)
        return asset
