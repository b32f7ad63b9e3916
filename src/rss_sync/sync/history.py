"""
Read back the sync log and summarize recent run health.

The log may end in a half-written line if the process died mid-append, and
nothing guarantees that every line was written by this service, so every
line that does not parse as a SyncEvent is skipped.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from rss_sync.models.event import EventStatus, SyncEvent

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 10


@dataclass
class SyncHistorySummary:
    runs: int = 0
    consecutive_failures: int = 0
    last_attempt: Optional[datetime] = None
    last_success: Optional[datetime] = None
    hours_since_attempt: Optional[float] = None
    hours_since_success: Optional[float] = None


def read_events(path: Path) -> List[SyncEvent]:
    """Parse every valid event in the log, in file order. Missing file → []."""
    path = Path(path)
    if not path.exists():
        return []

    events: List[SyncEvent] = []
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(SyncEvent.model_validate_json(line))
            except ValidationError:
                logger.debug("Skipping unreadable line %d in %s", lineno, path)
    return events


def _hours_between(earlier: datetime, later: datetime) -> float:
    return round((later - earlier).total_seconds() / 3600, 2)


def summarize_history(
    events: List[SyncEvent],
    now: Optional[datetime] = None,
    window: int = DEFAULT_WINDOW,
) -> SyncHistorySummary:
    """
    Summarize the last `window` terminal events.

    Consecutive failures are counted from the newest terminal event backwards
    until the first completed run.
    """
    now = now or datetime.now(timezone.utc)
    terminal = [e for e in events if e.is_terminal]
    terminal.sort(key=lambda e: e.occurred_at, reverse=True)
    recent = terminal[:window]

    summary = SyncHistorySummary(runs=len(recent))
    if not recent:
        return summary

    summary.last_attempt = recent[0].occurred_at
    summary.hours_since_attempt = _hours_between(summary.last_attempt, now)

    for event in recent:
        if event.status == EventStatus.ERROR:
            summary.consecutive_failures += 1
            continue
        summary.last_success = event.occurred_at
        summary.hours_since_success = _hours_between(summary.last_success, now)
        break

    return summary
