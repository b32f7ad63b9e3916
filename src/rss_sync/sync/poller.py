"""
StatusPoller: waits for a sync job on the app server to finish.

Polls GET /api/sync/status/{syncId} every POLL_INTERVAL_SECONDS, at most
MAX_POLL_ATTEMPTS times (about two minutes). Each iteration is one attempt
whether or not the request succeeded; a failed request is logged and the
loop carries on. Failed polls are deliberately charged against the budget,
unlike a retry-until-answered loop, so MAX_POLL_ATTEMPTS bounds the run's
wall-clock time even while the server is unreachable.

Progress is logged only at multiples of 20 so a long sync writes at most
six running events.
"""
import asyncio
import logging
import time
from typing import Optional

import httpx

from rss_sync.client.api import SyncApiClient
from rss_sync.errors import SyncFailedError, SyncTimeoutError
from rss_sync.models.event import EventStatus, SyncEvent, SyncTrigger
from rss_sync.models.status import RemoteSyncStatus, SyncJobHandle
from rss_sync.sync.event_log import EventLogWriter
from rss_sync.sync.metadata import MetadataUpdater

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_ATTEMPTS = 60
PROGRESS_STEP = 20
DEFAULT_FAILURE_MESSAGE = "Sync failed"


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a time.monotonic() reading."""
    return max(0, int((time.monotonic() - started_at) * 1000))


def progress_boundary(progress: Optional[float]) -> Optional[int]:
    """Return progress as an int if it sits exactly on a multiple of PROGRESS_STEP."""
    if progress is None or isinstance(progress, bool):
        return None
    if not 0 <= progress <= 100 or progress != int(progress):
        return None
    value = int(progress)
    return value if value % PROGRESS_STEP == 0 else None


class StatusPoller:
    """Polls one job to a terminal state and records a completed run."""

    def __init__(
        self,
        client: SyncApiClient,
        event_log: EventLogWriter,
        metadata: MetadataUpdater,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ):
        self.client = client
        self.event_log = event_log
        self.metadata = metadata
        self.interval = interval
        self.max_attempts = max_attempts

    async def wait(
        self,
        handle: SyncJobHandle,
        trigger: SyncTrigger,
        started_at: float,
    ) -> SyncEvent:
        """
        Poll until the job completes.

        Args:
            handle: Job returned by the sync start call.
            trigger: Label written on every event of this run.
            started_at: time.monotonic() reading taken when the run began.

        Returns:
            The `completed` event that was written to the log.

        Raises:
            SyncFailedError: the server reported the job as failed.
            SyncTimeoutError: no terminal status within max_attempts.
        """
        last_progress: Optional[int] = None

        for attempt in range(1, self.max_attempts + 1):
            status = await self._fetch(handle.sync_id, attempt)

            if status is not None:
                if status.status == "completed":
                    return await self._complete(handle, trigger, started_at, status)

                if status.status == "failed":
                    raise SyncFailedError(status.error or DEFAULT_FAILURE_MESSAGE)

                boundary = progress_boundary(status.progress)
                if boundary is not None and boundary != last_progress:
                    last_progress = boundary
                    self.event_log.write(
                        SyncEvent(
                            trigger=trigger,
                            status=EventStatus.RUNNING,
                            sync_id=handle.sync_id,
                            progress=boundary,
                            message=status.message,
                        )
                    )

            if attempt < self.max_attempts:
                await asyncio.sleep(self.interval)

        raise SyncTimeoutError(self.max_attempts)

    async def _fetch(self, sync_id: str, attempt: int) -> Optional[RemoteSyncStatus]:
        try:
            return await self.client.get_status(sync_id)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Status poll %d/%d for %s failed: %s",
                attempt,
                self.max_attempts,
                sync_id,
                exc,
            )
            return None

    async def _complete(
        self,
        handle: SyncJobHandle,
        trigger: SyncTrigger,
        started_at: float,
        status: RemoteSyncStatus,
    ) -> SyncEvent:
        event = SyncEvent(
            trigger=trigger,
            status=EventStatus.COMPLETED,
            sync_id=handle.sync_id,
            duration=elapsed_ms(started_at),
            feeds=status.feeds_count,
            articles=status.articles_count,
        )
        self.event_log.write(event)
        await self.metadata.record_success()
        logger.info(
            "Sync %s completed in %dms (feeds=%s, articles=%s)",
            handle.sync_id,
            event.duration,
            event.feeds,
            event.articles,
        )
        return event
