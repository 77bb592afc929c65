"""Remote batch job service contract."""

from abc import ABC, abstractmethod

from rugbatch.models.batch import BatchPayload, JobSnapshot


class BatchJobService(ABC):
    """Asynchronous batch job service the pipeline submits chunks to."""

    @abstractmethod
    async def submit(self, payload: BatchPayload, display_name: str) -> JobSnapshot:
        """Upload a payload and create a job; returns the accepted job."""
        ...

    @abstractmethod
    async def get_status(self, handle: str) -> JobSnapshot:
        """Fetch the current status of a job."""
        ...

    @abstractmethod
    async def download(self, output_location: str) -> str:
        """Download a finished job's results file as JSONL text."""
        ...

    @abstractmethod
    async def cancel(self, handle: str) -> None: ...

    @abstractmethod
    async def delete(self, handle: str) -> None: ...
