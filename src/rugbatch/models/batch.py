"""Remote batch job and result models."""

import json
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class JobState(StrEnum):
    """Remote batch job states."""

    PENDING = "JOB_STATE_PENDING"
    RUNNING = "JOB_STATE_RUNNING"
    SUCCEEDED = "JOB_STATE_SUCCEEDED"
    FAILED = "JOB_STATE_FAILED"
    CANCELLED = "JOB_STATE_CANCELLED"
    EXPIRED = "JOB_STATE_EXPIRED"
    UNKNOWN = "JOB_STATE_UNKNOWN"

    @classmethod
    def parse(cls, raw: object) -> "JobState":
        """Normalize a remote state value (enum, ``BATCH_STATE_*`` or ``JOB_STATE_*``)."""
        if raw is None:
            return cls.UNKNOWN
        text = getattr(raw, "name", None) or str(raw)
        text = text.strip().upper()
        if text.startswith("BATCH_STATE_"):
            text = "JOB_STATE_" + text[len("BATCH_STATE_") :]
        elif not text.startswith("JOB_STATE_"):
            text = "JOB_STATE_" + text
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self is JobState.SUCCEEDED

    @property
    def is_failure(self) -> bool:
        return self in (JobState.FAILED, JobState.CANCELLED, JobState.EXPIRED)

    @property
    def is_terminal(self) -> bool:
        return self.is_success or self.is_failure

    @property
    def short_name(self) -> str:
        return self.value.removeprefix("JOB_STATE_").lower()


class JobSnapshot(BaseModel):
    """Last observed status of a remote batch job."""

    model_config = ConfigDict(frozen=True)

    handle: str = Field(..., min_length=1)
    display_name: str = ""
    state: JobState = JobState.UNKNOWN
    create_time: datetime | None = None
    update_time: datetime | None = None
    request_count: int = Field(default=0, ge=0)
    completed_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    output_location: str | None = None
    error: str | None = None

    @property
    def failure_reason(self) -> str:
        reason = f"Batch {self.state.short_name}"
        if self.error:
            reason = f"{reason}: {self.error}"
        return reason


class InlineData(BaseModel):
    mime_type: str = "image/jpeg"
    data: str


class RequestPart(BaseModel):
    text: str | None = None
    inline_data: InlineData | None = None


class BatchRequest(BaseModel):
    """One line of the batch upload file."""

    key: str = Field(..., min_length=1)
    parts: list[RequestPart] = Field(default_factory=list)

    @property
    def has_image(self) -> bool:
        return any(part.inline_data is not None for part in self.parts)

    def to_line(self) -> str:
        body = {
            "key": self.key,
            "request": {
                "contents": [
                    {"parts": [part.model_dump(exclude_none=True) for part in self.parts]}
                ]
            },
        }
        return json.dumps(body, ensure_ascii=False)


class BatchPayload(BaseModel):
    """Assembled upload for one chunk."""

    chunk_index: int = Field(..., ge=0)
    requests: list[BatchRequest] = Field(default_factory=list)
    key_to_sku: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list, description="Per-item assembly notes")

    @property
    def request_count(self) -> int:
        return len(self.requests)

    def to_jsonl(self) -> str:
        return "\n".join(request.to_line() for request in self.requests)


class ExtractedImage(BaseModel):
    """A generated image found in a batch result line."""

    key: str
    sku: str = ""
    mime_type: str = "image/png"
    data: str = Field(..., description="Base64 image bytes")
    description: str = ""

    @property
    def extension(self) -> str:
        return "png" if self.mime_type == "image/png" else "jpg"

    @property
    def filename(self) -> str:
        return f"{self.key}.{self.extension}"


class ExtractionResult(BaseModel):
    """Images pulled from a results file plus per-line problems."""

    total_lines: int = Field(default=0, ge=0)
    images: list[ExtractedImage] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
