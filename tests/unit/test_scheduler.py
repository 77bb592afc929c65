"""Tests for admission decisions and the splitter."""

import pytest

from rugbatch.models.errors import ValidationError
from rugbatch.models.pipeline import ChunkStatus, PipelineState
from rugbatch.pipeline import state_machine as sm
from rugbatch.pipeline.scheduler import admit_next, is_drained
from rugbatch.pipeline.splitter import create_chunks
from tests.conftest import make_rugs


def pipeline(chunks=5, limit=2):
    return PipelineState(
        total_items=chunks,
        chunk_size=1,
        concurrency_limit=limit,
        chunks=create_chunks(make_rugs(chunks), 1),
    )


class TestCreateChunks:
    def test_sizes(self):
        chunks = create_chunks(make_rugs(203), 75)
        assert [c.size for c in chunks] == [75, 75, 53]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_exact_multiple(self):
        chunks = create_chunks(make_rugs(150), 75)
        assert [c.size for c in chunks] == [75, 75]

    def test_order_preserved(self):
        rugs = make_rugs(7)
        chunks = create_chunks(rugs, 3)
        assert [r for c in chunks for r in c.items] == rugs

    def test_single_chunk(self):
        chunks = create_chunks(make_rugs(4), 75)
        assert len(chunks) == 1
        assert chunks[0].status == ChunkStatus.PENDING

    def test_empty(self):
        with pytest.raises(ValidationError):
            create_chunks([], 75)

    def test_bad_size(self):
        with pytest.raises(ValidationError):
            create_chunks(make_rugs(3), 0)


class TestAdmitNext:
    def test_fills_capacity_lowest_first(self):
        assert admit_next(pipeline(limit=2)) == [0, 1]

    def test_accounts_for_in_flight(self):
        state = sm.admit(pipeline(limit=3), 0)
        assert admit_next(state) == [1, 2]

    def test_full(self):
        state = sm.admit(sm.admit(pipeline(limit=2), 0), 1)
        assert admit_next(state) == []

    def test_skips_terminal(self):
        state = sm.admit(pipeline(limit=2), 0)
        state = sm.advance(state, 0, ChunkStatus.FAILED, error="x")
        assert admit_next(state) == [1, 2]

    def test_does_not_mutate(self):
        state = pipeline()
        admit_next(state)
        assert state.in_flight == ()


class TestIsDrained:
    def test_pending_not_drained(self):
        assert not is_drained(pipeline())

    def test_in_flight_not_drained(self):
        state = pipeline(chunks=1, limit=1)
        assert not is_drained(sm.admit(state, 0))

    def test_all_terminal(self):
        state = sm.admit(pipeline(chunks=1, limit=1), 0)
        state = sm.advance(state, 0, ChunkStatus.FAILED, error="x")
        assert is_drained(state)

    def test_interrupted_chunks_count_as_drained(self):
        state = sm.release_in_flight(sm.admit(pipeline(chunks=1, limit=1), 0))
        assert is_drained(state)
