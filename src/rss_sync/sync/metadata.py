"""Reports run outcomes to the shared sync metadata record."""
import logging

import httpx

from rss_sync.client.api import SyncApiClient
from rss_sync.models.status import SyncMetadataUpdate

logger = logging.getLogger(__name__)


class MetadataUpdater:
    """Posts success/failure updates. A stale record is tolerated, so errors are only logged."""

    def __init__(self, client: SyncApiClient):
        self.client = client

    async def record_success(self) -> bool:
        return await self._send(SyncMetadataUpdate.success())

    async def record_failure(self, error: str) -> bool:
        return await self._send(SyncMetadataUpdate.failure(error))

    async def _send(self, update: SyncMetadataUpdate) -> bool:
        try:
            await self.client.post_metadata(update)
        except httpx.HTTPError as exc:
            logger.error(
                "Failed to update sync metadata (%s): %s",
                update.last_sync_status,
                exc,
            )
            return False
        return True
