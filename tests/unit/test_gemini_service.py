"""Tests for GeminiBatchService (mocked SDK client)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from rugbatch.batch.gemini import GeminiBatchService, normalize_batch_name, snapshot_from_job
from rugbatch.models.batch import BatchPayload, BatchRequest, JobState, RequestPart
from rugbatch.models.errors import ConfigurationError, RemoteServiceError, SubmissionError


def fake_job(name="batches/123", state="JOB_STATE_RUNNING", **fields):
    return SimpleNamespace(name=name, state=SimpleNamespace(name=state), **fields)


def payload():
    return BatchPayload(
        chunk_index=0,
        requests=[BatchRequest(key="rug-A1", parts=[RequestPart(text="A room")])],
        key_to_sku={"rug-A1": "A1"},
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.aio.files.upload = AsyncMock(return_value=SimpleNamespace(name="files/input-1"))
    client.aio.files.download = AsyncMock(return_value=b'{"key": "rug-A1"}\n')
    client.aio.batches.create = AsyncMock(return_value=fake_job(state="JOB_STATE_PENDING"))
    client.aio.batches.get = AsyncMock(return_value=fake_job())
    client.aio.batches.cancel = AsyncMock(return_value=None)
    client.aio.batches.delete = AsyncMock(return_value=None)
    return client


class TestHelpers:
    def test_normalize_batch_name(self):
        assert normalize_batch_name("abc") == "batches/abc"
        assert normalize_batch_name(" batches/abc ") == "batches/abc"
        with pytest.raises(RemoteServiceError):
            normalize_batch_name("  ")

    def test_snapshot_from_job(self):
        job = fake_job(
            state="JOB_STATE_SUCCEEDED",
            display_name="Rug Batch Chunk 1",
            completion_stats=SimpleNamespace(
                successful_count=70, failed_count=5, incomplete_count=None
            ),
            dest=SimpleNamespace(file_name="files/out-1"),
            error=None,
        )
        snapshot = snapshot_from_job(job)
        assert snapshot.state == JobState.SUCCEEDED
        assert snapshot.request_count == 75
        assert snapshot.completed_count == 70
        assert snapshot.failed_count == 5
        assert snapshot.output_location == "files/out-1"

    def test_snapshot_error(self):
        job = fake_job(state="JOB_STATE_FAILED", error=SimpleNamespace(message="Quota"))
        snapshot = snapshot_from_job(job)
        assert snapshot.failure_reason == "Batch failed: Quota"

    def test_batch_state_prefix(self):
        assert JobState.parse("BATCH_STATE_SUCCEEDED") == JobState.SUCCEEDED
        assert JobState.parse("running") == JobState.RUNNING
        assert JobState.parse("SOMETHING_NEW") == JobState.UNKNOWN
        assert JobState.parse(None) == JobState.UNKNOWN


class TestConstruction:
    def test_missing_key(self, monkeypatch):
        monkeypatch.setenv("RUGBATCH_GEMINI_API_KEY", "")
        with pytest.raises(ConfigurationError):
            GeminiBatchService()

    def test_injected_client(self, client):
        service = GeminiBatchService(client=client, model="test-model")
        assert service.model == "test-model"


@pytest.mark.asyncio
class TestGeminiBatchService:
    async def test_submit(self, client):
        service = GeminiBatchService(client=client, model="test-model")
        snapshot = await service.submit(payload(), display_name="Rug Batch Chunk 1")

        assert snapshot.handle == "batches/123"
        assert snapshot.state == JobState.PENDING
        upload_kwargs = client.aio.files.upload.await_args.kwargs
        assert upload_kwargs["file"].getvalue().startswith(b'{"key": "rug-A1"')
        create_kwargs = client.aio.batches.create.await_args.kwargs
        assert create_kwargs["model"] == "test-model"
        assert create_kwargs["src"] == "files/input-1"

    async def test_submit_unknown_state_reads_as_pending(self, client):
        client.aio.batches.create.return_value = SimpleNamespace(name="batches/9")
        service = GeminiBatchService(client=client)
        snapshot = await service.submit(payload(), display_name="x")
        assert snapshot.state == JobState.PENDING

    async def test_submit_failure(self, client):
        client.aio.batches.create.side_effect = RuntimeError("quota exceeded")
        service = GeminiBatchService(client=client)
        with pytest.raises(SubmissionError, match="quota exceeded"):
            await service.submit(payload(), display_name="x")

    async def test_submit_empty_payload(self, client):
        service = GeminiBatchService(client=client)
        with pytest.raises(SubmissionError):
            await service.submit(BatchPayload(chunk_index=0), display_name="x")

    async def test_get_status(self, client):
        service = GeminiBatchService(client=client)
        snapshot = await service.get_status("123")
        assert snapshot.state == JobState.RUNNING
        client.aio.batches.get.assert_awaited_once_with(name="batches/123")

    async def test_get_status_failure(self, client):
        client.aio.batches.get.side_effect = ConnectionError("reset")
        service = GeminiBatchService(client=client)
        with pytest.raises(RemoteServiceError):
            await service.get_status("batches/123")

    async def test_download(self, client):
        service = GeminiBatchService(client=client)
        assert await service.download("files/out-1") == '{"key": "rug-A1"}\n'

    async def test_download_failure(self, client):
        client.aio.files.download.side_effect = RuntimeError("gone")
        service = GeminiBatchService(client=client)
        with pytest.raises(RemoteServiceError):
            await service.download("files/out-1")

    async def test_cancel_and_delete(self, client):
        service = GeminiBatchService(client=client)
        await service.cancel("123")
        await service.delete("123")
        client.aio.batches.cancel.assert_awaited_once_with(name="batches/123")
        client.aio.batches.delete.assert_awaited_once_with(name="batches/123")
