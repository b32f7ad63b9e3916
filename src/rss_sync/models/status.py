"""Wire models for the app server's sync API."""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from rss_sync.models.event import utc_timestamp


class SyncJobHandle(BaseModel):
    """Identifier of a sync job running on the app server."""

    model_config = ConfigDict(populate_by_name=True)

    sync_id: str = Field(alias="syncId", min_length=1)


class RemoteSyncStatus(BaseModel):
    """Body of GET /api/sync/status/{syncId}. Unknown keys are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Literal["running", "completed", "failed"]
    progress: Optional[float] = None
    message: Optional[str] = None
    error: Optional[str] = None
    feeds_count: Optional[int] = Field(default=None, alias="feedsCount")
    articles_count: Optional[int] = Field(default=None, alias="articlesCount")


INCREMENT_ONE: Dict[str, int] = {"increment": 1}


class SyncMetadataUpdate(BaseModel):
    """
    Partial update of the shared sync metadata record.

    Counters are sent as ``{"increment": 1}`` so the store adds to its value
    instead of overwriting it.
    """

    last_sync_time: Optional[str] = None
    last_sync_status: Literal["success", "failed"]
    last_sync_error: Optional[str] = None
    sync_success_count: Optional[Dict[str, int]] = None
    sync_failure_count: Optional[Dict[str, int]] = None

    @classmethod
    def success(cls) -> "SyncMetadataUpdate":
        return cls(
            last_sync_time=utc_timestamp(),
            last_sync_status="success",
            last_sync_error=None,
            sync_success_count=dict(INCREMENT_ONE),
        )

    @classmethod
    def failure(cls, error: str) -> "SyncMetadataUpdate":
        return cls(
            last_sync_status="failed",
            last_sync_error=error,
            sync_failure_count=dict(INCREMENT_ONE),
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON body: unset counters are dropped, last_sync_error is kept on success."""
        payload = self.model_dump(exclude_none=True)
        if self.last_sync_status == "success":
            payload["last_sync_error"] = None
        return payload
