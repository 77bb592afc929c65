"""Pipeline manager: owns one controller per uploaded catalog."""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from rugbatch.batch.base import BatchJobService
from rugbatch.batch.gemini import GeminiBatchService
from rugbatch.catalog.csv_reader import chunk_csv, process_rows
from rugbatch.config import get_settings
from rugbatch.eventlog import EventLog
from rugbatch.models.errors import NotFoundError, ValidationError
from rugbatch.pipeline.controller import PipelineController
from rugbatch.storage.output_store import OutputStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineRecord:
    pipeline_id: str
    controller: PipelineController
    rows: list[dict[str, str]]
    filename: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PipelineManager:
    """Creates, looks up and discards pipelines."""

    def __init__(
        self,
        events: EventLog | None = None,
        service_factory: Callable[[], BatchJobService] | None = None,
        store: OutputStore | None = None,
    ):
        self.settings = get_settings()
        self.events = events or EventLog()
        self._service_factory = service_factory or GeminiBatchService
        self._service: BatchJobService | None = None
        self._store = store
        self._pipelines: dict[str, PipelineRecord] = {}

    @property
    def service(self) -> BatchJobService:
        if self._service is None:
            self._service = self._service_factory()
        return self._service

    @property
    def store(self) -> OutputStore:
        if self._store is None:
            self._store = OutputStore()
        return self._store

    def create_pipeline(
        self,
        rows: list[dict[str, str]],
        filename: str = "",
        chunk_size: int | None = None,
        concurrency_limit: int | None = None,
    ) -> PipelineRecord:
        """Build prompts for ``rows`` and set up an idle pipeline over them."""
        if not rows:
            raise ValidationError("CSV file is empty")
        rugs = process_rows(rows)
        controller = PipelineController(
            rugs,
            self.service,
            chunk_size=chunk_size,
            concurrency_limit=concurrency_limit,
            store=self.store,
            events=self.events,
        )
        record = PipelineRecord(
            pipeline_id=str(uuid.uuid4()), controller=controller, rows=rows, filename=filename
        )
        self._pipelines[record.pipeline_id] = record
        logger.info(f"Created pipeline {record.pipeline_id} for {len(rugs)} rugs")
        return record

    def get(self, pipeline_id: str) -> PipelineRecord:
        record = self._pipelines.get(pipeline_id)
        if record is None:
            raise NotFoundError(f"Pipeline {pipeline_id} not found")
        return record

    def list_pipelines(self) -> list[PipelineRecord]:
        return sorted(self._pipelines.values(), key=lambda r: r.created_at)

    def chunk_csv(self, pipeline_id: str, chunk_index: int) -> tuple[str, str]:
        """CSV text and download filename for one chunk of a pipeline's source rows."""
        record = self.get(pipeline_id)
        state = record.controller.state
        content = chunk_csv(record.rows, state.chunk_size, chunk_index)
        stem = record.filename.removesuffix(".csv") or "rugs"
        return content, f"{stem}-chunk-{chunk_index + 1}.csv"

    async def discard(self, pipeline_id: str) -> None:
        """Stop a pipeline if it is running and forget it."""
        record = self.get(pipeline_id)
        await record.controller.stop()
        del self._pipelines[pipeline_id]
        logger.info(f"Discarded pipeline {pipeline_id}")
