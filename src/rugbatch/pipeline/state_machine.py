"""Chunk lifecycle transitions.

Every function returns a new ``Chunk`` or ``PipelineState``; nothing is
mutated in place, so a snapshot handed to a subscriber never changes under it.

    pending -> preparing -> submitted -> processing -> downloading_results -> completed
                   |            |            |
                   +------------+------------+--> failed

``submitted`` may skip ``processing`` when the first observed job status is
already terminal. Terminal chunks never change again; transitions requested
on them are ignored.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from rugbatch.models.errors import PipelineStateError
from rugbatch.models.pipeline import Chunk, ChunkStatus, PipelineState, RunState

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ChunkStatus, frozenset[ChunkStatus]] = {
    ChunkStatus.PENDING: frozenset({ChunkStatus.PREPARING}),
    ChunkStatus.PREPARING: frozenset({ChunkStatus.SUBMITTED, ChunkStatus.FAILED}),
    ChunkStatus.SUBMITTED: frozenset(
        {ChunkStatus.PROCESSING, ChunkStatus.DOWNLOADING_RESULTS, ChunkStatus.FAILED}
    ),
    ChunkStatus.PROCESSING: frozenset({ChunkStatus.DOWNLOADING_RESULTS, ChunkStatus.FAILED}),
    ChunkStatus.DOWNLOADING_RESULTS: frozenset({ChunkStatus.COMPLETED}),
    ChunkStatus.COMPLETED: frozenset(),
    ChunkStatus.FAILED: frozenset(),
}

# Fields a transition may set alongside the new status.
_UPDATABLE = {"job_handle", "job_snapshot", "error", "result_meta"}


def can_transition(current: ChunkStatus, target: ChunkStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _now() -> datetime:
    return datetime.now(UTC)


def transition_chunk(chunk: Chunk, target: ChunkStatus, **changes: Any) -> Chunk:
    """Move a chunk to ``target``.

    Returns the chunk unchanged when it is already terminal. Raises
    PipelineStateError for any other transition not in ALLOWED_TRANSITIONS.
    """
    if chunk.is_terminal:
        logger.debug(f"Ignoring {target} for chunk {chunk.index}: already {chunk.status}")
        return chunk
    if not can_transition(chunk.status, target):
        raise PipelineStateError(
            f"Chunk {chunk.index} cannot go from {chunk.status} to {target}",
            details={"chunk_index": chunk.index, "from": chunk.status, "to": target},
        )
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise PipelineStateError(f"Cannot update chunk fields: {sorted(unknown)}")
    if "job_handle" in changes and chunk.job_handle is not None:
        if changes["job_handle"] != chunk.job_handle:
            raise PipelineStateError(f"Chunk {chunk.index} already has a job handle")
    if "job_handle" in changes and target != ChunkStatus.SUBMITTED:
        raise PipelineStateError("A job handle can only be set on submission")
    if target == ChunkStatus.SUBMITTED and not (changes.get("job_handle") or chunk.job_handle):
        raise PipelineStateError(f"Chunk {chunk.index} submitted without a job handle")
    if "error" in changes and target != ChunkStatus.FAILED:
        raise PipelineStateError("Only failed chunks carry an error")

    update: dict[str, Any] = {"status": target, **changes}
    if target == ChunkStatus.PREPARING:
        update["start_time"] = _now()
    if target.is_terminal:
        update["end_time"] = _now()
    return chunk.model_copy(update=update)


def observe_chunk(chunk: Chunk, **changes: Any) -> Chunk:
    """Record a new job snapshot without changing status."""
    if chunk.is_terminal:
        return chunk
    if set(changes) - {"job_snapshot"}:
        raise PipelineStateError("Only the job snapshot can change without a transition")
    return chunk.model_copy(update=changes)


def _replace_chunk(state: PipelineState, chunk: Chunk) -> tuple[Chunk, ...]:
    chunks = list(state.chunks)
    chunks[chunk.index] = chunk
    return tuple(chunks)


def admit(state: PipelineState, index: int) -> PipelineState:
    """Move a pending chunk into flight."""
    if len(state.in_flight) >= state.concurrency_limit:
        raise PipelineStateError(
            f"Cannot admit chunk {index}: {len(state.in_flight)} chunks already in flight"
        )
    chunk = transition_chunk(state.chunks[index], ChunkStatus.PREPARING)
    return state.model_copy(
        update={"chunks": _replace_chunk(state, chunk), "in_flight": (*state.in_flight, index)}
    )


def advance(state: PipelineState, index: int, target: ChunkStatus, **changes: Any) -> PipelineState:
    """Apply a chunk transition and the pipeline bookkeeping that goes with it.

    Reaching a terminal status removes the chunk from ``in_flight`` and bumps
    exactly one counter. A chunk that is already terminal leaves the state as is.
    """
    current = state.chunks[index]
    if current.is_terminal:
        return state
    chunk = transition_chunk(current, target, **changes)
    update: dict[str, Any] = {"chunks": _replace_chunk(state, chunk)}
    if chunk.is_terminal:
        update["in_flight"] = tuple(i for i in state.in_flight if i != index)
        if chunk.status == ChunkStatus.COMPLETED:
            update["completed_count"] = state.completed_count + 1
        else:
            update["failed_count"] = state.failed_count + 1
    return state.model_copy(update=update)


def observe(state: PipelineState, index: int, **changes: Any) -> PipelineState:
    chunk = observe_chunk(state.chunks[index], **changes)
    if chunk is state.chunks[index]:
        return state
    return state.model_copy(update={"chunks": _replace_chunk(state, chunk)})


def set_run_state(state: PipelineState, run_state: RunState) -> PipelineState:
    """Change the run state, stamping start/end times on first entry."""
    update: dict[str, Any] = {"run_state": run_state}
    if run_state == RunState.RUNNING and state.start_time is None:
        update["start_time"] = _now()
    if run_state == RunState.COMPLETED:
        update["end_time"] = _now()
    return state.model_copy(update=update)


def release_in_flight(state: PipelineState) -> PipelineState:
    """Forget in-flight chunks after a stop; their statuses are left as they were."""
    return state.model_copy(update={"in_flight": ()})
