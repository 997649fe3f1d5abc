"""Error codes dictionary for the compile API.

This is the single source of truth for all error codes, their retryability,
and suggested recovery actions. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import Any, TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Retryability and recovery hints for an error code."""

    retryable: bool
    suggested_action: str
    suggested_endpoint: str
    suggested_fix: str
    parameters: dict[str, Any]


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "PROJECT_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Check the project id",
    },
    # ==========================================================================
    # Workflow ordering errors
    # ==========================================================================
    "PRECONDITION_FAILED": {
        "retryable": False,
    },
    "NO_SCENES": {
        "retryable": False,
        "suggested_action": "generate_scenes",
        "suggested_endpoint": "POST /api/projects/{project_id}/scenes",
        "suggested_fix": "Generate scenes first",
    },
    "NO_IMAGES": {
        "retryable": False,
        "suggested_action": "generate_images",
        "suggested_endpoint": "POST /api/projects/{project_id}/images",
        "suggested_fix": "Generate images first",
    },
    "UNRESOLVED_SCENE": {
        "retryable": False,
        "suggested_action": "generate_images",
        "suggested_endpoint": "POST /api/projects/{project_id}/images",
        "suggested_fix": "Generate an image or video clip for every scene",
    },
    # ==========================================================================
    # Render errors
    # ==========================================================================
    "RENDER_FAILED": {
        "retryable": False,
    },
    "RENDER_TIMEOUT": {
        "retryable": True,
        "suggested_action": "retry_compile",
        "suggested_endpoint": "POST /api/projects/{project_id}/compile",
        "suggested_fix": "The render did not finish in time; submit the compile again",
    },
    # ==========================================================================
    # Storage errors (the render itself succeeded)
    # ==========================================================================
    "STORAGE_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "BAD_REQUEST": {
        "retryable": False,
    },
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "NOT_FOUND": {
        "retryable": False,
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Look up the entry for an error code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested actions
    """
    return ERROR_CODES.get(code, {"retryable": False})
