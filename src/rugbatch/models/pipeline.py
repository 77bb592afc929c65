"""Pipeline state, chunk and progress models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from rugbatch.models.batch import JobSnapshot
from rugbatch.models.rug import ProcessedRug


class ChunkStatus(StrEnum):
    """Lifecycle of one chunk."""

    PENDING = "pending"
    PREPARING = "preparing"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    DOWNLOADING_RESULTS = "downloading_results"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ChunkStatus.COMPLETED, ChunkStatus.FAILED)


class RunState(StrEnum):
    """Whether the scheduler may admit new chunks."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class ResultMeta(BaseModel):
    """What came back from a chunk whose remote job succeeded."""

    model_config = ConfigDict(frozen=True)

    results_downloaded: bool = False
    result_count: int = Field(default=0, ge=0)
    images_extracted: int = Field(default=0, ge=0)
    jsonl_path: str | None = None
    images_dir: str | None = None
    item_errors: tuple[str, ...] = Field(default_factory=tuple)
    error: str | None = Field(default=None, description="Download or extraction failure")


class Chunk(BaseModel):
    """A contiguous slice of the catalog processed as one remote job."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    items: tuple[ProcessedRug, ...] = Field(..., min_length=1)
    status: ChunkStatus = ChunkStatus.PENDING
    job_handle: str | None = None
    job_snapshot: JobSnapshot | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None
    result_meta: ResultMeta | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def size(self) -> int:
        return len(self.items)


class PipelineState(BaseModel):
    """Aggregate root: every chunk plus the scheduler's bookkeeping."""

    model_config = ConfigDict(frozen=True)

    total_items: int = Field(..., ge=0)
    chunk_size: int = Field(..., gt=0)
    concurrency_limit: int = Field(..., gt=0)
    chunks: tuple[Chunk, ...] = Field(default_factory=tuple)
    in_flight: tuple[int, ...] = Field(default_factory=tuple)
    completed_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    run_state: RunState = RunState.IDLE
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def pending_indices(self) -> list[int]:
        return [c.index for c in self.chunks if c.status == ChunkStatus.PENDING]

    @property
    def interrupted_indices(self) -> list[int]:
        """Chunks left mid-lifecycle by a stop, no longer tracked as in flight."""
        return [
            c.index
            for c in self.chunks
            if c.status != ChunkStatus.PENDING
            and not c.is_terminal
            and c.index not in self.in_flight
        ]


class PipelineProgress(BaseModel):
    """Display summary derived from a PipelineState."""

    total_chunks: int = 0
    completed_chunks: int = 0
    failed_chunks: int = 0
    processing_chunks: list[int] = Field(default_factory=list)
    pending_chunks: int = 0
    interrupted_chunks: int = 0
    overall_progress: int = Field(default=0, ge=0, le=100)
    estimated_time_remaining: float | None = Field(
        default=None, description="Seconds until every chunk is expected to be terminal"
    )
    current_status: str = "Idle"
