"""
Cron health snapshot for the app server's health checks.

A single JSON document is rewritten after every run:

    {
        "timestamp": "...", "status": "healthy", "service": "rss-sync-cron",
        "enabled": true, "schedule": "0 2,14 * * *", "timezone": "America/Toronto",
        "uptime": 3600, "lastRun": "...", "lastRunStatus": "success",
        "nextRun": "...", "message": "...",
        "recentRuns": {"successful": 3, "failed": 1, "lastFailure": "..."}
    }

Counters cover the lifetime of this process only.
"""
import json
import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from rss_sync.config import Settings
from rss_sync.models.event import EventStatus, SyncEvent, utc_timestamp

logger = logging.getLogger(__name__)

SERVICE_NAME = "rss-sync-cron"


class CronHealthRecorder:
    """Tracks run outcomes in memory and mirrors them to the snapshot file."""

    def __init__(self, settings: Settings, path: Optional[Path] = None):
        self.settings = settings
        self.path = Path(path or settings.cron_health_path)
        self._started = time.monotonic()
        self.successful = 0
        self.failed = 0
        self.last_failure: Optional[str] = None
        self.last_event: Optional[SyncEvent] = None

    def record_startup(self, next_run: Optional[datetime] = None) -> bool:
        return self._write(self.snapshot(next_run))

    def record(self, event: SyncEvent, next_run: Optional[datetime] = None) -> bool:
        """Count a terminal event and rewrite the snapshot."""
        if event.status == EventStatus.COMPLETED:
            self.successful += 1
        elif event.status == EventStatus.ERROR:
            self.failed += 1
            self.last_failure = event.timestamp
        self.last_event = event
        return self._write(self.snapshot(next_run))

    def snapshot(self, next_run: Optional[datetime] = None) -> Dict[str, Any]:
        last = self.last_event
        if last is None:
            last_status = None
            message = "No sync has run yet"
        elif last.status == EventStatus.COMPLETED:
            last_status = "success"
            message = "Sync completed successfully"
        else:
            last_status = "failed"
            message = f"Last sync failed: {last.error}"

        return {
            "timestamp": utc_timestamp(),
            "status": "unhealthy" if last_status == "failed" else "healthy",
            "service": SERVICE_NAME,
            "enabled": self.settings.enable_auto_sync,
            "schedule": self.settings.sync_cron_schedule,
            "timezone": self.settings.sync_timezone,
            "uptime": int(time.monotonic() - self._started),
            "lastRun": last.timestamp if last else None,
            "lastRunStatus": last_status,
            "nextRun": utc_timestamp(next_run) if next_run else None,
            "message": message,
            "recentRuns": {
                "successful": self.successful,
                "failed": self.failed,
                "lastFailure": self.last_failure,
            },
        }

    def _write(self, data: Dict[str, Any]) -> bool:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("Failed to write cron health to %s: %s", self.path, exc)
            return False
        return True
