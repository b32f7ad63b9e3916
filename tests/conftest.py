"""Shared test fixtures."""
import json
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

from rss_sync.client.api import SyncApiClient
from rss_sync.config import Settings
from rss_sync.sync.event_log import EventLogWriter
from rss_sync.sync.metadata import MetadataUpdater
from rss_sync.sync.poller import StatusPoller
from rss_sync.sync.runner import SyncRunner

BASE_URL = "http://reader.test"


class FakeSyncServer:
    """
    In-memory stand-in for the app server's sync API, served via httpx.MockTransport.

    `statuses` is consumed one item per status poll; the last item repeats
    once the list runs out. Each item is either a status dict, an int (HTTP
    error status) or an exception instance to raise.
    """

    def __init__(
        self,
        sync_id: str = "3f1c9a2e-0000-4000-8000-000000000001",
        start_status: int = 202,
        statuses: List[Any] = None,
        metadata_status: int = 200,
    ):
        self.sync_id = sync_id
        self.start_status = start_status
        self.statuses = list(statuses or [{"status": "completed"}])
        self.metadata_status = metadata_status
        self.start_calls = 0
        self.status_calls = 0
        self.metadata_updates: List[Dict[str, Any]] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path == "/api/sync":
            self.start_calls += 1
            if self.start_status >= 300:
                return httpx.Response(self.start_status, json={"error": "boom"})
            return httpx.Response(self.start_status, json={"syncId": self.sync_id})

        if request.method == "GET" and path == f"/api/sync/status/{self.sync_id}":
            index = min(self.status_calls, len(self.statuses) - 1)
            self.status_calls += 1
            item = self.statuses[index]
            if isinstance(item, Exception):
                raise item
            if isinstance(item, int):
                return httpx.Response(item, json={"error": "unavailable"})
            return httpx.Response(200, json=item)

        if request.method == "POST" and path == "/api/sync/metadata":
            self.metadata_updates.append(json.loads(request.content))
            return httpx.Response(self.metadata_status, json={"ok": True})

        return httpx.Response(404)


def read_log(path: Path) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in Path(path).read_text().splitlines() if line]


@pytest.fixture(name="settings")
def settings_fixture(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        sync_log_path=tmp_path / "logs" / "sync-cron.jsonl",
        cron_health_path=tmp_path / "logs" / "cron-health.json",
        next_public_base_url=BASE_URL,
    )


@pytest.fixture(name="log_path")
def log_path_fixture(tmp_path: Path) -> Path:
    return tmp_path / "sync-cron.jsonl"


@pytest.fixture(name="make_runner")
def make_runner_fixture(log_path: Path):
    """Factory: SyncRunner wired to a FakeSyncServer, polling without delay."""

    def _make(server: FakeSyncServer, max_attempts: int = 60, interval: float = 0) -> SyncRunner:
        client = SyncApiClient(BASE_URL, transport=server.transport)
        event_log = EventLogWriter(log_path)
        metadata = MetadataUpdater(client)
        poller = StatusPoller(
            client, event_log, metadata, interval=interval, max_attempts=max_attempts
        )
        return SyncRunner(client, event_log, metadata, poller)

    return _make


@pytest.fixture(name="fake_server")
def fake_server_fixture():
    """Factory for FakeSyncServer instances."""
    return FakeSyncServer


@pytest.fixture(name="log_lines")
def log_lines_fixture():
    """Parse a JSONL log file into dicts."""
    return read_log
