"""
SyncRunner: one sync run against the app server, start to finish.

Flow:
  1. Log `started`
  2. POST /api/sync → syncId
  3. Poll status until completed (poller logs `completed` + success metadata)
  4. On start failure, reported failure or timeout: log `error` + failure metadata

Every run writes exactly one `started` and one terminal event. Unexpected
exceptions are recorded like SyncError and never escape run().
"""
import logging
import time
from typing import Optional

from rss_sync.client.api import SyncApiClient
from rss_sync.config import Settings
from rss_sync.errors import SyncError
from rss_sync.models.event import EventStatus, SyncEvent, SyncTrigger
from rss_sync.sync.event_log import EventLogWriter
from rss_sync.sync.metadata import MetadataUpdater
from rss_sync.sync.poller import StatusPoller, elapsed_ms

logger = logging.getLogger(__name__)


class SyncRunner:
    """Drives Trigger → Poller → Log/Metadata for a single run."""

    def __init__(
        self,
        client: SyncApiClient,
        event_log: EventLogWriter,
        metadata: Optional[MetadataUpdater] = None,
        poller: Optional[StatusPoller] = None,
    ):
        self.client = client
        self.event_log = event_log
        self.metadata = metadata or MetadataUpdater(client)
        self.poller = poller or StatusPoller(client, event_log, self.metadata)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SyncRunner":
        client = SyncApiClient(
            settings.next_public_base_url,
            timeout=settings.sync_request_timeout,
        )
        return cls(client=client, event_log=EventLogWriter(settings.sync_log_path))

    async def run(self, trigger: SyncTrigger) -> SyncEvent:
        """
        Perform one run.

        Args:
            trigger: Why the run started; stamped on every event.

        Returns:
            The terminal event (`completed` or `error`) of the run.
        """
        started_at = time.monotonic()
        sync_id: Optional[str] = None
        logger.info("Sync run starting (trigger=%s)", trigger.value)
        self.event_log.write(SyncEvent(trigger=trigger, status=EventStatus.STARTED))

        try:
            handle = await self.client.start_sync()
            sync_id = handle.sync_id
            logger.info("Sync %s started on %s", sync_id, self.client.base_url)
            return await self.poller.wait(handle, trigger, started_at)

        except SyncError as exc:
            logger.error("Sync run failed (trigger=%s): %s", trigger.value, exc)
            return await self._fail(trigger, sync_id, started_at, str(exc))

        except Exception as exc:
            logger.exception("Sync run crashed (trigger=%s)", trigger.value)
            return await self._fail(
                trigger, sync_id, started_at, f"Unexpected error: {exc!r}"
            )

    async def _fail(
        self,
        trigger: SyncTrigger,
        sync_id: Optional[str],
        started_at: float,
        error: str,
    ) -> SyncEvent:
        event = SyncEvent(
            trigger=trigger,
            status=EventStatus.ERROR,
            sync_id=sync_id,
            duration=elapsed_ms(started_at),
            error=error,
        )
        self.event_log.write(event)
        await self.metadata.record_failure(error)
        return event
