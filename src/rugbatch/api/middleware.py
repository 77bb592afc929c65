"""Error handling middleware."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from rugbatch.models.errors import (
    AssemblyError,
    ConfigurationError,
    ErrorResponse,
    NotFoundError,
    PipelineStateError,
    PollingError,
    RemoteServiceError,
    RugBatchError,
    SubmissionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def rugbatch_error_handler(request: Request, exc: RugBatchError) -> JSONResponse:
    """Handle RugBatchError exceptions."""
    response = ErrorResponse.from_exception(
        exc, guidance=_get_guidance(exc), retry=_is_retryable(exc)
    )
    status_code = _get_status_code(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=response.model_dump())


def _get_status_code(exc: RugBatchError) -> int:
    """Map error type to HTTP status code."""
    if isinstance(exc, ValidationError):
        return 400
    elif isinstance(exc, NotFoundError):
        return 404
    elif isinstance(exc, PipelineStateError):
        return 409
    elif isinstance(exc, (RemoteServiceError, PollingError)):
        return 503
    elif isinstance(exc, (AssemblyError, SubmissionError)):
        return 502
    return 500


def _get_guidance(exc: RugBatchError) -> str:
    """Generate actionable guidance based on error type."""
    if isinstance(exc, ValidationError):
        return "Check the uploaded CSV and request parameters."
    if isinstance(exc, PipelineStateError):
        return "Refresh the pipeline status and retry the action that fits its current state."
    if isinstance(exc, ConfigurationError):
        return "Set the missing API key in the environment and restart the service."
    return "Please try again or contact support."


def _is_retryable(exc: RugBatchError) -> bool:
    """Determine if the error is retryable."""
    return isinstance(exc, (RemoteServiceError, PollingError, SubmissionError))
