"""Pipeline controller: runs chunks through the remote batch service.

One asyncio task owns the run. It admits pending chunks up to the
concurrency limit and starts a lifecycle task per chunk inside a TaskGroup:

    assemble payload -> submit -> poll until terminal -> download + extract

Chunk tasks report back by publishing a new PipelineState; a chunk reaching
a terminal state wakes the scheduling loop, which admits the next pending
chunks. Pausing stops admission only. Stopping cancels the run task, which
cancels every chunk task (and with it every poll loop) before returning.

All state changes happen on the event loop thread through ``_apply``, which
swaps in a whole new immutable PipelineState. Each run carries a generation
number; results arriving for an older generation are dropped.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from datetime import date

from rugbatch.batch.base import BatchJobService
from rugbatch.batch.payload import PayloadAssembler
from rugbatch.batch.results import extract_images
from rugbatch.config import get_settings
from rugbatch.eventlog import EventLog
from rugbatch.models.batch import JobSnapshot
from rugbatch.models.errors import (
    PipelineStateError,
    PollingError,
    RugBatchError,
    ValidationError,
)
from rugbatch.models.pipeline import (
    ChunkStatus,
    PipelineProgress,
    PipelineState,
    ResultMeta,
    RunState,
)
from rugbatch.models.rug import ProcessedRug
from rugbatch.pipeline import state_machine as sm
from rugbatch.pipeline.poller import JobPoller, PollPolicy
from rugbatch.pipeline.progress import summarize
from rugbatch.pipeline.scheduler import admit_next, is_drained
from rugbatch.pipeline.splitter import create_chunks
from rugbatch.storage.output_store import OutputStore

logger = logging.getLogger(__name__)

Subscriber = Callable[[PipelineState], None]


def initialize_pipeline(
    rugs: Sequence[ProcessedRug], chunk_size: int = 75, concurrency_limit: int = 5
) -> PipelineState:
    """Build the initial state for a catalog.

    An item set that cannot be chunked yields a pipeline in the ``error`` run
    state with no chunks.
    """
    if concurrency_limit <= 0:
        raise ValidationError("concurrency_limit must be positive")
    try:
        chunks = create_chunks(rugs, chunk_size)
    except ValidationError as e:
        logger.error(f"Pipeline initialization failed: {e.message}")
        return PipelineState(
            total_items=len(rugs),
            chunk_size=max(chunk_size, 1),
            concurrency_limit=concurrency_limit,
            run_state=RunState.ERROR,
        )
    return PipelineState(
        total_items=len(rugs),
        chunk_size=chunk_size,
        concurrency_limit=concurrency_limit,
        chunks=chunks,
    )


class PipelineController:
    """Start, pause, resume and stop a chunked batch pipeline."""

    def __init__(
        self,
        rugs: Sequence[ProcessedRug],
        service: BatchJobService,
        chunk_size: int | None = None,
        concurrency_limit: int | None = None,
        assembler: PayloadAssembler | None = None,
        store: OutputStore | None = None,
        poll_policy: PollPolicy | None = None,
        events: EventLog | None = None,
    ):
        settings = get_settings()
        self.events = events or EventLog()
        self.service = service
        self.assembler = assembler or PayloadAssembler(events=self.events)
        self.store = store
        self.poller = JobPoller(
            service, poll_policy or PollPolicy.from_settings(settings), events=self.events
        )
        self._state = initialize_pipeline(
            rugs,
            chunk_size or settings.chunk_size,
            concurrency_limit or settings.concurrency_limit,
        )
        self._subscribers: list[Subscriber] = []
        self._generation = 0
        self._run_task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()
        self._done = asyncio.Event()
        self.events.info(
            "PIPELINE",
            f"Created {self._state.total_chunks} chunks from {len(rugs)} rugs",
            chunk_size=self._state.chunk_size,
            total_chunks=self._state.total_chunks,
        )

    # --- observation ---

    @property
    def state(self) -> PipelineState:
        return self._state

    def progress(self) -> PipelineProgress:
        return summarize(self._state)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with every new state; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    async def wait(self) -> PipelineState:
        """Wait for the current run to complete or be stopped."""
        if self._run_task is not None:
            await self._done.wait()
        return self._state

    # --- control ---

    def start(self) -> None:
        """Begin admitting chunks. Must be called from a running event loop."""
        if self._state.run_state != RunState.IDLE:
            raise PipelineStateError(f"Cannot start a pipeline that is {self._state.run_state}")
        self._generation += 1
        self._wakeup = asyncio.Event()
        self._done = asyncio.Event()
        self._publish(sm.set_run_state(self._state, RunState.RUNNING))
        self._run_task = asyncio.create_task(
            self._run(self._generation), name=f"pipeline-run-{self._generation}"
        )
        self.events.info(
            "PIPELINE",
            "Pipeline started",
            total_chunks=self._state.total_chunks,
            concurrency_limit=self._state.concurrency_limit,
        )

    def pause(self) -> None:
        """Stop admitting new chunks; in-flight chunks keep running."""
        if self._state.run_state != RunState.RUNNING:
            raise PipelineStateError(f"Cannot pause a pipeline that is {self._state.run_state}")
        self._publish(sm.set_run_state(self._state, RunState.PAUSED))
        self.events.info("PIPELINE", "Pipeline paused", in_flight=list(self._state.in_flight))

    def resume(self) -> None:
        if self._state.run_state != RunState.PAUSED:
            raise PipelineStateError(f"Cannot resume a pipeline that is {self._state.run_state}")
        self._publish(sm.set_run_state(self._state, RunState.RUNNING))
        self._wakeup.set()
        self.events.info("PIPELINE", "Pipeline resumed")

    async def stop(self) -> None:
        """Cancel all outstanding work and return to ``idle``.

        Chunks that were in flight keep their last status and are not requeued.
        """
        if self._state.run_state not in (RunState.RUNNING, RunState.PAUSED):
            return
        self._generation += 1
        task, self._run_task = self._run_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        interrupted = list(self._state.in_flight)
        self._publish(sm.set_run_state(sm.release_in_flight(self._state), RunState.IDLE))
        self._done.set()
        self.events.info("PIPELINE", "Pipeline stopped", interrupted=interrupted)

    # --- internals ---

    def _publish(self, state: PipelineState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Pipeline subscriber failed")

    def _apply(
        self, generation: int, update: Callable[[PipelineState], PipelineState]
    ) -> bool:
        """Publish ``update(state)`` unless the run that asked for it is over."""
        if generation != self._generation:
            logger.debug(f"Dropping update from stale run {generation}")
            return False
        before = self._state
        self._publish(update(before))
        if len(self._state.in_flight) < len(before.in_flight):
            self._wakeup.set()
        return True

    async def _run(self, generation: int) -> None:
        try:
            async with asyncio.TaskGroup() as group:
                while True:
                    self._wakeup.clear()
                    if self._state.run_state == RunState.RUNNING:
                        for index in admit_next(self._state):
                            self._apply(generation, lambda s, i=index: sm.admit(s, i))
                            self.events.info(
                                "PIPELINE", f"Starting chunk {index + 1}", chunk_index=index
                            )
                            group.create_task(
                                self._drive_chunk(index, generation), name=f"chunk-{index}"
                            )
                    if is_drained(self._state):
                        break
                    await self._wakeup.wait()
            self._finish(generation)
        except Exception as e:
            logger.exception(f"Pipeline run {generation} crashed")
            if self._apply(
                generation,
                lambda s: sm.set_run_state(sm.release_in_flight(s), RunState.ERROR),
            ):
                self.events.error("PIPELINE", "Pipeline run crashed", error=e)
        finally:
            if generation == self._generation:
                self._done.set()

    def _finish(self, generation: int) -> None:
        if not self._apply(generation, lambda s: sm.set_run_state(s, RunState.COMPLETED)):
            return
        self.events.info(
            "PIPELINE",
            "Pipeline completed!",
            completed=self._state.completed_count,
            failed=self._state.failed_count,
        )

    def _display_name(self, index: int) -> str:
        return f"Rug Batch Chunk {index + 1} - {date.today().isoformat()}"

    def _fail(self, generation: int, index: int, reason: str, **changes) -> None:
        if self._apply(
            generation, lambda s: sm.advance(s, index, ChunkStatus.FAILED, error=reason, **changes)
        ):
            self.events.error(
                "PIPELINE", f"Chunk {index + 1} failed", chunk_index=index, error=reason
            )

    def _on_status(self, generation: int, index: int, snapshot: JobSnapshot) -> None:
        def update(state: PipelineState) -> PipelineState:
            if state.chunks[index].status == ChunkStatus.SUBMITTED:
                return sm.advance(state, index, ChunkStatus.PROCESSING, job_snapshot=snapshot)
            return sm.observe(state, index, job_snapshot=snapshot)

        self._apply(generation, update)

    async def _drive_chunk(self, index: int, generation: int) -> None:
        chunk = self._state.chunks[index]
        try:
            try:
                payload = await self.assembler.assemble(list(chunk.items), chunk_index=index)
                self.events.info(
                    "PIPELINE_CHUNK", f"Chunk {index + 1}: Submitting...", chunk_index=index
                )
                job = await self.service.submit(payload, display_name=self._display_name(index))
            except Exception as e:
                self._fail(generation, index, str(e) or type(e).__name__)
                return

            submitted = self._apply(
                generation,
                lambda s: sm.advance(
                    s, index, ChunkStatus.SUBMITTED, job_handle=job.handle, job_snapshot=job
                ),
            )
            if not submitted:
                return
            self.events.info(
                "PIPELINE_CHUNK",
                f"Chunk {index + 1}: Successfully submitted",
                chunk_index=index,
                batch_id=job.handle,
            )

            try:
                final = await self.poller.watch(
                    job.handle,
                    on_update=lambda snap: self._on_status(generation, index, snap),
                    chunk_index=index,
                )
            except PollingError as e:
                self._fail(generation, index, e.message)
                return
            except RugBatchError as e:
                self._fail(generation, index, f"Status polling failed: {e.message}")
                return
            except Exception as e:
                logger.exception(f"Unexpected polling error for chunk {index + 1}")
                self._fail(
                    generation, index, f"Status polling failed: {str(e) or type(e).__name__}"
                )
                return

            if final.state.is_failure:
                self._fail(generation, index, final.failure_reason, job_snapshot=final)
                return

            moved = self._apply(
                generation,
                lambda s: sm.advance(s, index, ChunkStatus.DOWNLOADING_RESULTS, job_snapshot=final),
            )
            if not moved:
                return
            self.events.info(
                "PIPELINE",
                f"Chunk {index + 1} batch completed, downloading results...",
                chunk_index=index,
                batch_id=job.handle,
            )
            meta = await self._collect_results(index, final, payload.key_to_sku)
            self._apply(
                generation, lambda s: sm.advance(s, index, ChunkStatus.COMPLETED, result_meta=meta)
            )
        except asyncio.CancelledError:
            self.events.info("PIPELINE", f"Chunk {index + 1} aborted", chunk_index=index)
            raise

    async def _collect_results(
        self, index: int, job: JobSnapshot, key_to_sku: dict[str, str]
    ) -> ResultMeta:
        """Download, save and extract a finished job's results.

        Errors here never fail the chunk; they are recorded in the ResultMeta.
        """
        if not job.output_location:
            return ResultMeta(error="Batch succeeded without an output file")

        downloaded = False
        try:
            raw = await self.service.download(job.output_location)
            downloaded = True
            jsonl_path = self.store.save_results(index, raw) if self.store else None
            extraction = extract_images(raw, key_to_sku, chunk_index=index)
            images_dir, write_errors = (
                self.store.save_images(extraction.images) if self.store else (None, [])
            )
        except Exception as e:
            self.events.error(
                "PIPELINE",
                f"Failed to download results for chunk {index + 1}",
                chunk_index=index,
                batch_id=job.handle,
                error=e,
            )
            return ResultMeta(results_downloaded=downloaded, error=str(e) or type(e).__name__)

        self.events.info(
            "PIPELINE",
            f"Chunk {index + 1} results downloaded!",
            chunk_index=index,
            result_count=extraction.total_lines,
            images_extracted=len(extraction.images),
        )
        return ResultMeta(
            results_downloaded=True,
            result_count=extraction.total_lines,
            images_extracted=len(extraction.images) - len(write_errors),
            jsonl_path=str(jsonl_path) if jsonl_path else None,
            images_dir=str(images_dir) if images_dir else None,
            item_errors=tuple(extraction.errors + write_errors),
        )
