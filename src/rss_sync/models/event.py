"""Sync event model: one line of the JSONL sync log."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncTrigger(str, Enum):
    """Why a run started."""

    CRON_2AM = "cron-2am"
    CRON_2PM = "cron-2pm"
    MANUAL = "manual"


class EventStatus(str, Enum):
    STARTED = "started"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = (EventStatus.COMPLETED, EventStatus.ERROR)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO8601 UTC timestamp with millisecond precision and a trailing Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncEvent(BaseModel):
    """
    A phase transition of one sync run.

    Written once and never mutated. Optional fields that are unset are left
    out of the serialized line so each event only carries what it knows.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = Field(default_factory=utc_timestamp)
    trigger: SyncTrigger
    status: EventStatus
    sync_id: Optional[str] = Field(default=None, alias="syncId")
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    message: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)  # milliseconds
    feeds: Optional[int] = None
    articles: Optional[int] = None
    error: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _iso8601(cls, value: str) -> str:
        _parse_timestamp(value)
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def occurred_at(self) -> datetime:
        return _parse_timestamp(self.timestamp)

    def to_json_line(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True) + "\n"
