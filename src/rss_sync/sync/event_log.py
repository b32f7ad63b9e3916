"""Append-only JSONL sync event log."""
import logging
from pathlib import Path

from rss_sync.models.event import SyncEvent

logger = logging.getLogger(__name__)


class EventLogWriter:
    """
    Appends one JSON line per SyncEvent.

    The file is opened and closed on every write. A failed write is logged
    and dropped; logging must never abort the run it describes.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def ensure_directory(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, event: SyncEvent) -> bool:
        """Append event. Returns False if the write failed."""
        try:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(event.to_json_line())
        except Exception as exc:
            logger.error("Failed to write sync event to %s: %s", self.path, exc)
            return False
        return True
