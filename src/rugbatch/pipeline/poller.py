"""Status polling for submitted batch jobs."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from rugbatch.batch.base import BatchJobService
from rugbatch.config import Settings
from rugbatch.eventlog import EventLog
from rugbatch.models.batch import JobSnapshot
from rugbatch.models.errors import PollingError, RemoteServiceError

logger = logging.getLogger(__name__)


class PollPolicy(BaseModel):
    """Interval and retry behaviour for status polling.

    The defaults poll at a fixed interval and retry transient errors forever.
    """

    interval: float = Field(default=30.0, ge=0)
    max_consecutive_errors: int | None = Field(default=None, gt=0)
    backoff_factor: float = Field(default=1.0, ge=1.0)
    max_interval: float = Field(default=300.0, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PollPolicy":
        return cls(
            interval=settings.poll_interval_seconds,
            max_consecutive_errors=settings.poll_max_consecutive_errors,
            backoff_factor=settings.poll_backoff_factor,
            max_interval=settings.poll_max_interval_seconds,
        )

    def next_delay(self, delay: float) -> float:
        return min(delay * self.backoff_factor, max(self.max_interval, self.interval))


class JobPoller:
    """Watches one job until it succeeds, fails or the task is cancelled."""

    def __init__(
        self,
        service: BatchJobService,
        policy: PollPolicy | None = None,
        events: EventLog | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.policy = policy or PollPolicy()
        self.events = events or EventLog()
        self._sleep = sleep

    async def watch(
        self,
        handle: str,
        on_update: Callable[[JobSnapshot], None] | None = None,
        chunk_index: int | None = None,
    ) -> JobSnapshot:
        """Poll ``handle`` and return its first terminal snapshot.

        In-progress snapshots go to ``on_update``. Failed status queries are
        retried on the next tick; PollingError is raised once
        ``max_consecutive_errors`` is reached.
        """
        delay = self.policy.interval
        errors = 0
        while True:
            await self._sleep(delay)
            try:
                snapshot = await self.service.get_status(handle)
            except RemoteServiceError as e:
                errors += 1
                self.events.warn(
                    "PIPELINE",
                    f"Error polling batch {handle} (attempt {errors})",
                    chunk_index=chunk_index,
                    batch_id=handle,
                    error=e,
                )
                limit = self.policy.max_consecutive_errors
                if limit is not None and errors >= limit:
                    raise PollingError(
                        f"Status polling abandoned after {errors} consecutive errors",
                        details={"batch_id": handle, "last_error": e.message},
                    ) from e
                delay = self.policy.next_delay(delay)
                continue

            errors = 0
            delay = self.policy.interval
            if snapshot.state.is_terminal:
                logger.info(f"Batch {handle} reached {snapshot.state}")
                return snapshot
            if on_update is not None:
                on_update(snapshot)
