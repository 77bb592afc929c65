"""Shared test fixtures and a scripted batch service."""

import asyncio
import base64
import json
import tempfile
from collections import Counter
from pathlib import Path

import pytest

from rugbatch.batch.base import BatchJobService
from rugbatch.batch.payload import PayloadAssembler
from rugbatch.eventlog import EventLog
from rugbatch.models.batch import BatchPayload, JobSnapshot, JobState
from rugbatch.models.errors import RemoteServiceError, SubmissionError
from rugbatch.models.rug import ProcessedRug
from rugbatch.pipeline.poller import PollPolicy

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")

CSV_HEADER = (
    "SKU,Title,Primary Category,Rug Field Color,Other Color,Exact Size,Stock Shape,image link"
)


def make_rug(position: int = 0, sku: str | None = None, **fields) -> ProcessedRug:
    return ProcessedRug(
        sku=f"SKU-{position:04d}" if sku is None else sku,
        title=f"Rug {position}",
        prompt=f"Scene for rug {position}",
        position=position,
        **fields,
    )


def make_rugs(count: int) -> list[ProcessedRug]:
    return [make_rug(i) for i in range(count)]


def make_csv(count: int) -> str:
    lines = [CSV_HEADER]
    for i in range(count):
        lines.append(
            f"SKU-{i:04d},Rug {i},Persian,Red,Blue;Ivory,8' x 10',Rectangle,"
            f"https://img.example.com/{i}.jpg"
        )
    return "\n".join(lines) + "\n"


def result_line(key: str, data: str = PNG_B64, mime_type: str = "image/png") -> str:
    return json.dumps(
        {
            "key": key,
            "response": {
                "candidates": [
                    {
                        "content": {
                            "parts": [
                                {"text": "A living room"},
                                {"inlineData": {"mimeType": mime_type, "data": data}},
                            ]
                        }
                    }
                ]
            },
        }
    )


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


class FakeBatchService(BatchJobService):
    """In-memory batch service whose outcomes are scripted per chunk.

    Jobs are named ``batches/chunk-<index>``. A job reports RUNNING for
    ``polls_before_done`` status calls and then its scripted outcome
    (SUCCEEDED unless listed in ``outcomes``). While ``gate`` is set to an
    unset Event, status calls block on it.
    """

    def __init__(
        self,
        outcomes: dict[int, JobState] | None = None,
        polls_before_done: int = 1,
        submit_errors: dict[int, Exception] | None = None,
        status_errors: dict[int, int] | None = None,
        download_error: Exception | None = None,
        omit_output: bool = False,
        gate: asyncio.Event | None = None,
    ):
        self.outcomes = outcomes or {}
        self.polls_before_done = polls_before_done
        self.submit_errors = submit_errors or {}
        self.status_errors = status_errors or {}
        self.download_error = download_error
        self.omit_output = omit_output
        self.gate = gate
        self.payloads: dict[int, BatchPayload] = {}
        self.status_calls: Counter = Counter()
        self.display_names: list[str] = []
        self.cancelled: list[str] = []
        self.deleted: list[str] = []

    @staticmethod
    def _index(handle: str) -> int:
        return int(handle.rsplit("-", 1)[1])

    async def submit(self, payload: BatchPayload, display_name: str) -> JobSnapshot:
        if payload.chunk_index in self.submit_errors:
            raise self.submit_errors[payload.chunk_index]
        self.payloads[payload.chunk_index] = payload
        self.display_names.append(display_name)
        return JobSnapshot(
            handle=f"batches/chunk-{payload.chunk_index}",
            display_name=display_name,
            state=JobState.PENDING,
            request_count=payload.request_count,
        )

    async def get_status(self, handle: str) -> JobSnapshot:
        if self.gate is not None:
            await self.gate.wait()
        index = self._index(handle)
        self.status_calls[index] += 1
        if self.status_calls[index] <= self.status_errors.get(index, 0):
            raise RemoteServiceError(f"Status unavailable for {handle}")
        if self.status_calls[index] - self.status_errors.get(index, 0) <= self.polls_before_done:
            return JobSnapshot(handle=handle, state=JobState.RUNNING)
        state = self.outcomes.get(index, JobState.SUCCEEDED)
        output = None
        if state.is_success and not self.omit_output:
            output = f"files/chunk-{index}"
        return JobSnapshot(handle=handle, state=state, output_location=output)

    async def download(self, output_location: str) -> str:
        if self.download_error is not None:
            raise self.download_error
        payload = self.payloads[self._index(output_location)]
        return "\n".join(result_line(r.key) for r in payload.requests)

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)

    async def delete(self, handle: str) -> None:
        self.deleted.append(handle)


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def fast_policy():
    """Poll without waiting and give up after three consecutive errors."""
    return PollPolicy(interval=0, max_consecutive_errors=3)


@pytest.fixture
def text_assembler(events):
    return PayloadAssembler(events=events, include_images=False)


@pytest.fixture
def sample_rugs():
    return make_rugs(10)


@pytest.fixture
def fake_service():
    return FakeBatchService()


@pytest.fixture
def failing_submit_service():
    return FakeBatchService(submit_errors={0: SubmissionError("Quota exceeded")})
