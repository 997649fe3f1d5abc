"""Custom exceptions for the Viral Ads Now backend.

Every failure the compile pipeline can surface maps onto one of these
classes. Each carries a machine-readable code, an HTTP status, and a
message that is safe to show to users.
"""

from viralads.constants.error_codes import get_error_spec
from viralads.schemas.envelope import ErrorInfo, ErrorLocation, SuggestedAction


class ViralAdsError(Exception):
    """Base exception for all application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)

        suggested_actions: list[SuggestedAction] = []
        if "suggested_action" in spec:
            suggested_actions.append(
                SuggestedAction(
                    action=spec["suggested_action"],
                    endpoint=spec.get("suggested_endpoint"),
                    parameters=spec.get("parameters", {}),
                )
            )

        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
            suggested_actions=suggested_actions,
        )


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(ViralAdsError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404
    message = "Resource not found"


class ProjectNotFoundError(ResourceNotFoundError):
    """Project not found."""

    code = "PROJECT_NOT_FOUND"
    message = "Project not found"

    def __init__(self, project_id: str | None = None):
        message = f"Project not found: {project_id}" if project_id else self.message
        super().__init__(message)


# =============================================================================
# Precondition Errors (400) - pipeline stage attempted out of order
# =============================================================================


class PreconditionFailedError(ViralAdsError):
    """A workflow step was attempted before its inputs exist."""

    code = "PRECONDITION_FAILED"
    status_code = 400
    message = "Project is not ready for this step"


class NoScenesError(PreconditionFailedError):
    code = "NO_SCENES"
    message = "No scenes found. Please generate scenes first."


class NoImagesError(PreconditionFailedError):
    code = "NO_IMAGES"
    message = "No images found. Please generate images first."


class UnresolvedSceneError(PreconditionFailedError):
    """A scene has neither an image nor a video clip."""

    code = "UNRESOLVED_SCENE"
    message = "Scene has no image or video clip"

    def __init__(self, scene_number: int):
        super().__init__(
            f"No image found for scene {scene_number}",
            location=ErrorLocation(scene_number=scene_number),
        )
        self.scene_number = scene_number


# =============================================================================
# Validation Errors (422)
# =============================================================================


class CompilationValidationError(ViralAdsError):
    """Malformed compilation options (e.g. a negative clip duration)."""

    code = "VALIDATION_ERROR"
    status_code = 422
    message = "Invalid compilation options"

    def __init__(self, message: str | None = None, *, field: str | None = None):
        location = ErrorLocation(field=field) if field else None
        super().__init__(message, location=location)


# =============================================================================
# Render Errors
# =============================================================================


class RenderFailedError(ViralAdsError):
    """The render backend reported a terminal failure."""

    code = "RENDER_FAILED"
    status_code = 502
    message = "Video render failed"

    def __init__(self, message: str | None = None, *, step: str | None = None):
        self.step = step
        if step and message:
            message = f"{step}: {message}"
        location = ErrorLocation(step=step) if step else None
        super().__init__(message, location=location)


class RenderTimeoutError(ViralAdsError):
    """Polling exceeded the configured maximum wait."""

    code = "RENDER_TIMEOUT"
    status_code = 504
    message = "Video render timed out"

    def __init__(self, waited_s: float, job_id: str | None = None):
        self.waited_s = waited_s
        self.job_id = job_id
        super().__init__(f"Render did not finish within {waited_s:.0f}s")


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(ViralAdsError):
    """Upload or persist of a rendered video failed."""

    code = "STORAGE_ERROR"
    status_code = 502
    message = "Failed to store the rendered video"
