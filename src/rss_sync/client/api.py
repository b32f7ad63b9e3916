"""
Async client for the app server's sync API.

    POST /api/sync                    start a job, returns {"syncId": ...}
    GET  /api/sync/status/{syncId}    job progress
    POST /api/sync/metadata           partial update of the metadata record

A fresh httpx.AsyncClient is opened per request; runs are hours apart so
there is nothing worth pooling.
"""
import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from rss_sync.errors import SyncStartError
from rss_sync.models.status import RemoteSyncStatus, SyncJobHandle, SyncMetadataUpdate

logger = logging.getLogger(__name__)

SYNC_START_PATH = "/api/sync"
SYNC_STATUS_PATH = "/api/sync/status/{sync_id}"
SYNC_METADATA_PATH = "/api/sync/metadata"


class SyncApiClient:
    """Thin wrapper over the three sync endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: App server root, e.g. ``http://localhost:3000``.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def start_sync(self) -> SyncJobHandle:
        """
        Ask the app server to start a sync job.

        Raises:
            SyncStartError: on a non-2xx status, a network failure, or a
                response body without a syncId.
        """
        try:
            async with self._client() as client:
                resp = await client.post(SYNC_START_PATH, json={})
        except httpx.HTTPError as exc:
            raise SyncStartError(f"Sync start request failed: {exc}") from exc

        if not resp.is_success:
            raise SyncStartError(
                f"Sync start failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            return SyncJobHandle.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise SyncStartError(
                "Sync start response did not include a syncId",
                status_code=resp.status_code,
            ) from exc

    async def get_status(self, sync_id: str) -> RemoteSyncStatus:
        """
        Fetch the current status of a job.

        Raises:
            httpx.HTTPError: on network failure or non-2xx status.
            ValueError: if the body is not a valid status document.
        """
        async with self._client() as client:
            resp = await client.get(SYNC_STATUS_PATH.format(sync_id=sync_id))
            resp.raise_for_status()
        return RemoteSyncStatus.model_validate(resp.json())

    async def post_metadata(self, update: SyncMetadataUpdate) -> None:
        """
        Send a partial metadata update.

        Raises:
            httpx.HTTPError: on network failure or non-2xx status.
        """
        async with self._client() as client:
            resp = await client.post(SYNC_METADATA_PATH, json=update.to_payload())
            resp.raise_for_status()
