"""Compile endpoints: final video, compile inputs preview, image animation."""

import logging
from uuid import UUID

from fastapi import APIRouter, status

from viralads.api.deps import CompileServiceDep
from viralads.middleware.request_context import create_request_context, envelope_success
from viralads.schemas.compile import (
    AnimateImageRequest,
    AnimateImageResponse,
    CompileDataResponse,
    CompileRequest,
    CompileResponse,
    MediaAssetData,
    SceneData,
)
from viralads.schemas.envelope import EnvelopeResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/projects/{project_id}/compile",
    response_model=EnvelopeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def compile_project(
    project_id: UUID,
    request: CompileRequest,
    service: CompileServiceDep,
) -> EnvelopeResponse:
    """Render the project's scenes, voiceover and music into one final video."""
    context = create_request_context()
    result = await service.compile_project(project_id, request)
    context.warnings.extend(result.warnings)

    data = CompileResponse(
        video_asset_id=result.asset.id,
        url=result.asset.url,
        duration=result.output.duration,
        width=result.output.width,
        height=result.output.height,
        format=result.output.format,
        backend=result.output.backend,
        warnings=result.warnings,
    )
    return envelope_success(context, data)


@router.get("/projects/{project_id}/compile-data", response_model=EnvelopeResponse)
async def get_compile_data(
    project_id: UUID,
    service: CompileServiceDep,
) -> EnvelopeResponse:
    context = create_request_context()
    inputs = await service.get_compile_data(project_id)
    data = CompileDataResponse(
        project_id=inputs.project.id,
        current_step=inputs.project.current_step,
        scenes=[SceneData.model_validate(scene) for scene in inputs.scenes],
        images=[MediaAssetData.model_validate(asset) for asset in inputs.visual_assets],
        voiceover=MediaAssetData.model_validate(inputs.voiceover) if inputs.voiceover else None,
        music=MediaAssetData.model_validate(inputs.music) if inputs.music else None,
    )
    return envelope_success(context, data)


@router.post("/animate-image", response_model=EnvelopeResponse, status_code=status.HTTP_201_CREATED)
async def animate_image(
    request: AnimateImageRequest,
    service: CompileServiceDep,
) -> EnvelopeResponse:
    """Preview a motion effect on a single image."""
    context = create_request_context()
    url, output = await service.animate_image(request)
    data = AnimateImageResponse(url=url, duration=output.duration, width=output.width, height=output.height)
    return envelope_success(context, data)
