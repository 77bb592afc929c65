"""Admission decisions for pending chunks."""

from rugbatch.models.pipeline import ChunkStatus, PipelineState


def admit_next(state: PipelineState) -> list[int]:
    """Indices of the pending chunks to start now, lowest index first.

    Capacity is ``concurrency_limit - len(in_flight)``. Does not mutate
    ``state``; the caller admits the returned chunks.
    """
    available = state.concurrency_limit - len(state.in_flight)
    if available <= 0:
        return []
    pending = [c.index for c in state.chunks if c.status == ChunkStatus.PENDING]
    return pending[:available]


def is_drained(state: PipelineState) -> bool:
    """True when nothing is pending and nothing is in flight."""
    return not state.in_flight and not any(
        c.status == ChunkStatus.PENDING for c in state.chunks
    )
