import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from viralads.api import compile as compile_routes, storage
from viralads.config import get_settings
from viralads.constants.error_codes import get_error_spec
from viralads.exceptions import ViralAdsError
from viralads.middleware.request_context import (
    create_request_context,
    envelope_error,
    envelope_error_from_exception,
)
from viralads.models.database import engine, init_db
from viralads.schemas.envelope import ErrorInfo, ErrorLocation

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "HTTP_ERROR")


def _error_info(code: str, message: str, location: ErrorLocation | None = None) -> ErrorInfo:
    spec = get_error_spec(code)
    return ErrorInfo(
        code=code,
        message=message,
        location=location,
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )


@app.exception_handler(ViralAdsError)
async def viralads_exception_handler(request: Request, exc: ViralAdsError) -> JSONResponse:
    """Map pipeline errors onto their HTTP status with an envelope body."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return envelope_error_from_exception(create_request_context(), exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request validation errors (422) with envelope format."""
    errors = exc.errors()
    location = None
    if errors:
        first_error = errors[0]
        loc = [str(x) for x in first_error.get("loc", []) if x != "body"]
        msg = first_error.get("msg", "Validation error")
        message = f"{' -> '.join(loc)}: {msg}" if loc else msg
        if loc:
            location = ErrorLocation(field=".".join(loc))
    else:
        message = "Request validation failed"

    return envelope_error(
        create_request_context(), _error_info("VALIDATION_ERROR", message, location), 422
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_code = _http_error_code(exc.status_code)
    return envelope_error(
        create_request_context(), _error_info(error_code, str(exc.detail)), exc.status_code
    )


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return envelope_error(
        create_request_context(), _error_info("INTERNAL_ERROR", "Internal server error"), 500
    )


# Routers
app.include_router(compile_routes.router, prefix="/api", tags=["compile"])
app.include_router(storage.router, prefix="/api/storage", tags=["storage"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "version": settings.app_version,
        "render_backend": settings.render_backend,
    }
