"""Property-based tests for chunking, admission and chunk bookkeeping."""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rugbatch.models.errors import ErrorResponse, ValidationError
from rugbatch.models.pipeline import ChunkStatus, PipelineState, RunState
from rugbatch.pipeline import state_machine as sm
from rugbatch.pipeline.controller import initialize_pipeline
from rugbatch.pipeline.progress import summarize
from rugbatch.pipeline.scheduler import admit_next, is_drained
from rugbatch.pipeline.splitter import create_chunks
from tests.property.conftest import generate_pipeline_params, generate_rugs

pytestmark = pytest.mark.property


def check_invariants(state: PipelineState) -> None:
    completed = sum(1 for c in state.chunks if c.status == ChunkStatus.COMPLETED)
    failed = sum(1 for c in state.chunks if c.status == ChunkStatus.FAILED)
    assert state.completed_count == completed
    assert state.failed_count == failed
    assert len(state.in_flight) <= state.concurrency_limit
    assert len(set(state.in_flight)) == len(state.in_flight)
    for index in state.in_flight:
        chunk = state.chunks[index]
        assert chunk.status not in (ChunkStatus.PENDING, ChunkStatus.COMPLETED, ChunkStatus.FAILED)
    for chunk in state.chunks:
        if chunk.status in (ChunkStatus.SUBMITTED, ChunkStatus.PROCESSING,
                            ChunkStatus.DOWNLOADING_RESULTS, ChunkStatus.COMPLETED):
            assert chunk.job_handle is not None
        if chunk.error is not None:
            assert chunk.status == ChunkStatus.FAILED
        if chunk.is_terminal and chunk.start_time is not None:
            assert chunk.end_time >= chunk.start_time


def step(state: PipelineState, data) -> PipelineState:
    """Apply one random legal scheduler or chunk action."""
    candidates = admit_next(state)
    actions = []
    if candidates:
        actions.append("admit")
    if state.in_flight:
        actions.append("advance")
    action = data.draw(st.sampled_from(actions))
    if action == "admit":
        return sm.admit(state, candidates[0])

    index = data.draw(st.sampled_from(state.in_flight))
    chunk = state.chunks[index]
    target = data.draw(st.sampled_from(sorted(sm.ALLOWED_TRANSITIONS[chunk.status])))
    changes = {}
    if target == ChunkStatus.SUBMITTED:
        changes["job_handle"] = f"batches/{index}"
    if target == ChunkStatus.FAILED:
        changes["error"] = "Batch failed"
    return sm.advance(state, index, target, **changes)


class TestSplitterProperties:
    @given(rugs=generate_rugs(), chunk_size=st.integers(min_value=1, max_value=100))
    @settings(max_examples=50)
    def test_chunks_partition_items(self, rugs, chunk_size):
        """Concatenated chunks reproduce the input in order."""
        chunks = create_chunks(rugs, chunk_size)
        assert len(chunks) == math.ceil(len(rugs) / chunk_size)
        assert [r for c in chunks for r in c.items] == rugs
        assert all(c.size == chunk_size for c in chunks[:-1])
        assert 1 <= chunks[-1].size <= chunk_size
        assert [c.index for c in chunks] == list(range(len(chunks)))

    @given(rugs=generate_rugs(max_size=5), chunk_size=st.integers(max_value=0))
    @settings(max_examples=20)
    def test_non_positive_chunk_size(self, rugs, chunk_size):
        state = initialize_pipeline(rugs, chunk_size=chunk_size, concurrency_limit=1)
        assert state.run_state == RunState.ERROR
        assert state.chunks == ()


class TestSchedulingProperties:
    @given(params=generate_pipeline_params(), data=st.data())
    @settings(max_examples=100, deadline=None)
    def test_random_lifecycles_keep_invariants(self, params, data):
        """Counters, capacity and handles stay consistent under any legal sequence."""
        rugs, chunk_size, limit = params
        state = initialize_pipeline(rugs, chunk_size, limit)
        check_invariants(state)
        last_progress = 0
        for _ in range(200):
            if is_drained(state):
                break
            before = state
            state = step(state, data)
            check_invariants(state)
            # Admission is always lowest index first.
            new = set(state.in_flight) - set(before.in_flight)
            if new:
                assert new == {min(before.pending_indices)}
            progress = summarize(state).overall_progress
            assert progress >= last_progress
            last_progress = progress

    @given(params=generate_pipeline_params())
    @settings(max_examples=50)
    def test_admit_next_respects_capacity(self, params):
        rugs, chunk_size, limit = params
        state = initialize_pipeline(rugs, chunk_size, limit)
        chosen = admit_next(state)
        assert chosen == sorted(chosen)
        assert len(chosen) == min(limit, state.total_chunks)
        for index in chosen:
            state = sm.admit(state, index)
        assert admit_next(state) == []

    @given(
        params=generate_pipeline_params(),
        terminal=st.sampled_from([ChunkStatus.COMPLETED, ChunkStatus.FAILED]),
        late=st.sampled_from([ChunkStatus.COMPLETED, ChunkStatus.FAILED]),
    )
    @settings(max_examples=50)
    def test_terminal_chunks_never_change(self, params, terminal, late):
        rugs, chunk_size, limit = params
        state = sm.admit(initialize_pipeline(rugs, chunk_size, limit), 0)
        if terminal == ChunkStatus.FAILED:
            state = sm.advance(state, 0, ChunkStatus.FAILED, error="Batch failed")
        else:
            state = sm.advance(state, 0, ChunkStatus.SUBMITTED, job_handle="batches/0")
            state = sm.advance(state, 0, ChunkStatus.DOWNLOADING_RESULTS)
            state = sm.advance(state, 0, ChunkStatus.COMPLETED)
        changes = {"error": "late"} if late == ChunkStatus.FAILED else {}
        assert sm.advance(state, 0, late, **changes) is state
        assert state.completed_count + state.failed_count == 1


class TestErrorProperties:
    @given(message=st.text(min_size=1, max_size=200))
    @settings(max_examples=50)
    def test_error_response_format(self, message):
        """Every error produces a valid ErrorResponse."""
        err = ValidationError(message)
        resp = ErrorResponse.from_exception(err)
        assert resp.error_type == "ValidationError"
        assert resp.message == message
        assert resp.component == "validation"
