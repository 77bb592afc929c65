"""Pipeline progress summary."""

from datetime import UTC, datetime

from rugbatch.models.pipeline import ChunkStatus, PipelineProgress, PipelineState, RunState


def summarize(state: PipelineState, now: datetime | None = None) -> PipelineProgress:
    """Summarize ``state`` for display.

    ``estimated_time_remaining`` is the average wall time per completed chunk
    multiplied by the chunks still pending or in flight; it is None until the
    pipeline has started and at least one chunk has completed.
    """
    total = len(state.chunks)
    completed = sum(1 for c in state.chunks if c.status == ChunkStatus.COMPLETED)
    failed = sum(1 for c in state.chunks if c.status == ChunkStatus.FAILED)
    pending = sum(1 for c in state.chunks if c.status == ChunkStatus.PENDING)
    processing = list(state.in_flight)
    interrupted = len(state.interrupted_indices)

    overall = round(100 * (completed + failed) / total) if total else 0

    eta = None
    if state.start_time is not None and state.completed_count > 0:
        now = now or datetime.now(UTC)
        elapsed = max((now - state.start_time).total_seconds(), 0.0)
        eta = elapsed / state.completed_count * (pending + len(processing))

    return PipelineProgress(
        total_chunks=total,
        completed_chunks=completed,
        failed_chunks=failed,
        processing_chunks=processing,
        pending_chunks=pending,
        interrupted_chunks=interrupted,
        overall_progress=overall,
        estimated_time_remaining=eta,
        current_status=status_line(state, completed, total, processing, interrupted),
    )


def status_line(
    state: PipelineState,
    completed: int,
    total: int,
    processing: list[int],
    interrupted: int = 0,
) -> str:
    if state.run_state == RunState.RUNNING:
        if processing:
            return "Processing chunks: " + ", ".join(str(i + 1) for i in sorted(processing))
        return "Waiting for next batch..."
    if state.run_state == RunState.COMPLETED:
        line = f"Completed! {completed}/{total} successful"
        if interrupted:
            line += f", {interrupted} interrupted"
        return line
    if state.run_state == RunState.PAUSED:
        if processing:
            return f"Paused ({len(processing)} chunks still running)"
        return "Paused"
    if state.run_state == RunState.ERROR:
        return "Error occurred"
    return "Idle"


def format_time_remaining(seconds: float) -> str:
    """Human readable duration: ``45s``, ``12m`` or ``2h 5m``."""
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        return f"{round(seconds / 60)}m"
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    return f"{hours}h {minutes}m"
