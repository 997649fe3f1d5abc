from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from uuid import uuid4

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from viralads.exceptions import ViralAdsError
from viralads.schemas.envelope import EnvelopeResponse, ErrorInfo, ResponseMeta


@dataclass
class RequestContext:
    request_id: str
    start_time: float
    warnings: list[str] = field(default_factory=list)


def create_request_context() -> RequestContext:
    return RequestContext(
        request_id=str(uuid4()),
        start_time=perf_counter(),
    )


def build_meta(context: RequestContext, api_version: str = "1.0") -> ResponseMeta:
    processing_time_ms = int((perf_counter() - context.start_time) * 1000)
    return ResponseMeta(
        api_version=api_version,
        processing_time_ms=processing_time_ms,
        timestamp=datetime.now(timezone.utc),
        warnings=context.warnings,
    )


def envelope_success(context: RequestContext, data: object) -> EnvelopeResponse:
    return EnvelopeResponse(
        request_id=context.request_id,
        data=data,
        meta=build_meta(context),
    )


def envelope_error(context: RequestContext, error: ErrorInfo, status_code: int) -> JSONResponse:
    envelope = EnvelopeResponse(
        request_id=context.request_id,
        error=error,
        meta=build_meta(context),
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope.model_dump(exclude_none=True)),
    )


def envelope_error_from_exception(context: RequestContext, exc: ViralAdsError) -> JSONResponse:
    """Convert a ViralAdsError to an envelope error response."""
    return envelope_error(context, exc.to_error_info(), exc.status_code)
