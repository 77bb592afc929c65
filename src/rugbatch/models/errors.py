"""Error hierarchy and error response models."""

from pydantic import BaseModel, Field


class RugBatchError(Exception):
    """Base error for all rugbatch errors."""

    def __init__(self, message: str, component: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}


class ValidationError(RugBatchError):
    """Input validation errors (CSV content, request bodies, parameters)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="validation", details=details)


class NotFoundError(RugBatchError):
    """A pipeline, chunk or output folder does not exist."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="lookup", details=details)


class ConfigurationError(RugBatchError):
    """Missing or invalid configuration (API keys, directories)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="config", details=details)


class AssemblyError(RugBatchError):
    """A chunk's upload payload could not be built."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="assembly", details=details)


class SubmissionError(RugBatchError):
    """The remote batch service refused or failed to accept a job."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="submission", details=details)


class RemoteServiceError(RugBatchError):
    """A status, download or administrative call to the batch service failed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="remote", details=details)


class PollingError(RugBatchError):
    """Status polling gave up after too many consecutive errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="poller", details=details)


class PipelineStateError(RugBatchError):
    """An operation is not allowed in the pipeline's or chunk's current state."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="pipeline", details=details)


class ErrorResponse(BaseModel):
    """Standardized error response for API."""

    error_type: str = Field(..., description="Error category")
    component: str = Field(default="", description="Component that raised the error")
    message: str = Field(..., description="Human-readable error message")
    details: dict = Field(default_factory=dict)
    actionable_guidance: str = Field(default="", description="Suggested user action")
    retry_possible: bool = Field(default=False)

    @classmethod
    def from_exception(
        cls, exc: RugBatchError, guidance: str = "", retry: bool = False
    ) -> "ErrorResponse":
        return cls(
            error_type=type(exc).__name__,
            component=exc.component,
            message=exc.message,
            details=exc.details,
            actionable_guidance=guidance,
            retry_possible=retry,
        )
