import asyncio
import logging
from functools import lru_cache
from pathlib import Path

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from viralads.config import Settings, get_settings
from viralads.exceptions import StorageError

logger = logging.getLogger(__name__)


class LocalStorageService:
    """Local file storage for development without Wasabi."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.base_path = Path(settings.local_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = settings.local_storage_base_url.rstrip("/")

    def _get_full_path(self, storage_key: str) -> Path:
        full_path = (self.base_path / storage_key).resolve()
        if self.base_path.resolve() not in full_path.parents:
            raise StorageError("Invalid storage key")
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path

    def get_public_url(self, storage_key: str) -> str:
        """Get URL for accessing the file."""
        return f"{self.base_url}/{storage_key}"

    async def upload_bytes(self, storage_key: str, data: bytes, content_type: str) -> str:
        """Write bytes under storage_key and return the public URL."""
        full_path = self._get_full_path(storage_key)
        try:
            await asyncio.to_thread(full_path.write_bytes, data)
        except OSError as e:
            logger.error(f"[PERSIST] Local write failed for {storage_key}: {e}")
            raise StorageError("Failed to write the file to local storage")
        return self.get_public_url(storage_key)

    def get_file_path(self, storage_key: str) -> Path:
        """Get the actual file path for serving."""
        return self._get_full_path(storage_key)


class WasabiStorageService:
    """Wasabi (S3-compatible) object storage for production."""

    def __init__(self, settings: Settings | None = None, client=None) -> None:
        settings = settings or get_settings()
        if not settings.wasabi_bucket_name:
            raise StorageError("Wasabi bucket is not configured")
        self.bucket_name = settings.wasabi_bucket_name
        self.endpoint = settings.wasabi_endpoint.rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=settings.wasabi_region,
            aws_access_key_id=settings.wasabi_access_key_id,
            aws_secret_access_key=settings.wasabi_secret_access_key,
        )

    def get_public_url(self, storage_key: str) -> str:
        """Path-style URL: {endpoint}/{bucket}/{key}."""
        return f"{self.endpoint}/{self.bucket_name}/{storage_key}"

    async def upload_bytes(self, storage_key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[PERSIST] Wasabi upload failed for {storage_key}: {e}")
            raise StorageError("Failed to upload the file to object storage")
        return self.get_public_url(storage_key)


StorageService = LocalStorageService | WasabiStorageService


async def download_bytes(url: str, timeout_s: float = 60.0, client: httpx.AsyncClient | None = None) -> bytes:
    """Fetch a rendered artifact by URL; failures surface as StorageError."""
    try:
        if client is not None:
            response = await client.get(url)
        else:
            async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as owned:
                response = await owned.get(url)
    except httpx.HTTPError as e:
        logger.error(f"[PERSIST] Download failed: {e}")
        raise StorageError("Failed to download the rendered video")
    if response.status_code >= 400:
        logger.error(f"[PERSIST] Download failed with HTTP {response.status_code}")
        raise StorageError(f"Failed to download the rendered video (HTTP {response.status_code})")
    return response.content


@lru_cache
def get_storage_service() -> StorageService:
    # Use LocalStorageService or WasabiStorageService based on config
    settings = get_settings()
    if settings.use_local_storage:
        return LocalStorageService(settings)
    return WasabiStorageService(settings)
