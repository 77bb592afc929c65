"""Data models for rugbatch."""

from rugbatch.models.batch import (
    BatchPayload,
    BatchRequest,
    ExtractedImage,
    ExtractionResult,
    InlineData,
    JobSnapshot,
    JobState,
    RequestPart,
)
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
from rugbatch.models.pipeline import (
    Chunk,
    ChunkStatus,
    PipelineProgress,
    PipelineState,
    ResultMeta,
    RunState,
)
from rugbatch.models.rug import ProcessedRug, RugRecord

__all__ = [
    "AssemblyError",
    "BatchPayload",
    "BatchRequest",
    "Chunk",
    "ChunkStatus",
    "ConfigurationError",
    "ErrorResponse",
    "ExtractedImage",
    "ExtractionResult",
    "InlineData",
    "JobSnapshot",
    "JobState",
    "NotFoundError",
    "PipelineProgress",
    "PipelineState",
    "PipelineStateError",
    "PollingError",
    "ProcessedRug",
    "RemoteServiceError",
    "RequestPart",
    "ResultMeta",
    "RugBatchError",
    "RugRecord",
    "RunState",
    "SubmissionError",
    "ValidationError",
]
