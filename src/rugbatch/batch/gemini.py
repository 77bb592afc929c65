"""Gemini Batch API implementation of the batch job service."""

import io
import logging
from typing import Any

from google import genai
from google.genai import types

from rugbatch.batch.base import BatchJobService
from rugbatch.config import get_settings
from rugbatch.models.batch import BatchPayload, JobSnapshot, JobState
from rugbatch.models.errors import ConfigurationError, RemoteServiceError, SubmissionError

logger = logging.getLogger(__name__)


def normalize_batch_name(handle: str) -> str:
    """Accept ``batches/<id>`` or a bare id."""
    handle = handle.strip()
    if not handle:
        raise RemoteServiceError("Batch ID is required")
    if handle.startswith("batches/"):
        return handle
    return f"batches/{handle}"


def snapshot_from_job(job: Any) -> JobSnapshot:
    """Convert an SDK ``BatchJob`` into a JobSnapshot."""
    stats = getattr(job, "completion_stats", None)
    dest = getattr(job, "dest", None)
    error = getattr(job, "error", None)
    succeeded = getattr(stats, "successful_count", None) or 0
    failed = getattr(stats, "failed_count", None) or 0
    incomplete = getattr(stats, "incomplete_count", None) or 0
    return JobSnapshot(
        handle=job.name,
        display_name=getattr(job, "display_name", None) or "Batch Job",
        state=JobState.parse(getattr(job, "state", None)),
        create_time=getattr(job, "create_time", None),
        update_time=getattr(job, "update_time", None),
        request_count=int(succeeded) + int(failed) + int(incomplete),
        completed_count=int(succeeded),
        failed_count=int(failed),
        output_location=getattr(dest, "file_name", None),
        error=getattr(error, "message", None) or (str(error) if error else None),
    )


class GeminiBatchService(BatchJobService):
    """Submits chunk payloads through the Files API and ``batches.create``."""

    def __init__(self, client: genai.Client | None = None, model: str | None = None):
        settings = get_settings()
        self.model = model or settings.gemini_batch_model
        self.client = client
        if self.client is None:
            if not settings.gemini_api_key:
                raise ConfigurationError("Gemini API key not configured")
            self.client = genai.Client(api_key=settings.gemini_api_key)

    async def submit(self, payload: BatchPayload, display_name: str) -> JobSnapshot:
        jsonl = payload.to_jsonl()
        if not jsonl:
            raise SubmissionError("JSONL content is required")
        try:
            uploaded = await self.client.aio.files.upload(
                file=io.BytesIO(jsonl.encode("utf-8")),
                config=types.UploadFileConfig(display_name=display_name, mime_type="jsonl"),
            )
            logger.info(f"Uploaded batch input {uploaded.name} ({len(jsonl)} bytes)")
            job = await self.client.aio.batches.create(
                model=self.model,
                src=uploaded.name,
                config=types.CreateBatchJobConfig(display_name=display_name),
            )
        except Exception as e:
            raise SubmissionError(
                f"Failed to create batch job: {e}",
                details={"display_name": display_name, "model": self.model},
            ) from e
        snapshot = snapshot_from_job(job)
        if snapshot.state is JobState.UNKNOWN:
            snapshot = snapshot.model_copy(update={"state": JobState.PENDING})
        logger.info(f"Created batch job {snapshot.handle}")
        return snapshot

    async def get_status(self, handle: str) -> JobSnapshot:
        name = normalize_batch_name(handle)
        try:
            job = await self.client.aio.batches.get(name=name)
        except Exception as e:
            raise RemoteServiceError(
                f"Failed to get batch status: {e}", details={"batch_id": name}
            ) from e
        return snapshot_from_job(job)

    async def download(self, output_location: str) -> str:
        try:
            content = await self.client.aio.files.download(file=output_location)
        except Exception as e:
            raise RemoteServiceError(
                f"Failed to download results: {e}", details={"file_name": output_location}
            ) from e
        return content.decode("utf-8")

    async def cancel(self, handle: str) -> None:
        name = normalize_batch_name(handle)
        try:
            await self.client.aio.batches.cancel(name=name)
        except Exception as e:
            raise RemoteServiceError(f"Failed to cancel batch: {e}", details={"batch_id": name}) from e
        logger.info(f"Cancelled batch job {name}")

    async def delete(self, handle: str) -> None:
        name = normalize_batch_name(handle)
        try:
            await self.client.aio.batches.delete(name=name)
        except Exception as e:
            raise RemoteServiceError(f"Failed to delete batch: {e}", details={"batch_id": name}) from e
        logger.info(f"Deleted batch job {name}")
