from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from viralads.models.database import get_db
from viralads.render.backends import RenderBackend, create_render_backend
from viralads.services.compile_service import CompileService
from viralads.services.project_store import ProjectStore, SqlProjectStore
from viralads.services.storage_service import StorageService, get_storage_service

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_project_store(db: DbSession) -> ProjectStore:
    return SqlProjectStore(db)


async def get_render_backend() -> AsyncGenerator[RenderBackend, None]:
    backend = create_render_backend()
    try:
        yield backend
    finally:
        await backend.aclose()


def get_storage() -> StorageService:
    return get_storage_service()


def get_compile_service(
    store: Annotated[ProjectStore, Depends(get_project_store)],
    backend: Annotated[RenderBackend, Depends(get_render_backend)],
    storage: Annotated[StorageService, Depends(get_storage)],
) -> CompileService:
    return CompileService(store, backend, storage)


CompileServiceDep = Annotated[CompileService, Depends(get_compile_service)]
Storage = Annotated[StorageService, Depends(get_storage)]
