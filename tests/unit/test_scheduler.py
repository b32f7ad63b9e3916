"""Tests for APScheduler job configuration and the scheduled sync job body."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from zoneinfo import ZoneInfo

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from rss_sync.models.event import EventStatus, SyncEvent, SyncTrigger
from rss_sync.scheduler.jobs import (
    JOB_ID,
    MISFIRE_GRACE_SECONDS,
    _scheduled_sync,
    build_cron_trigger,
    build_scheduler,
    current_trigger,
    scheduled_fire_time,
    scheduled_trigger,
    trigger_for_hour,
)

TORONTO = ZoneInfo("America/Toronto")


def _runner(event=None):
    runner = MagicMock()
    runner.run = AsyncMock(return_value=event)
    return runner


class TestBuildScheduler:
    def test_returns_scheduler(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        assert isinstance(scheduler, AsyncIOScheduler)

    def test_sync_job_registered(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        job_ids = [job.id for job in scheduler.get_jobs()]
        assert job_ids == [JOB_ID]

    def test_sync_job_is_cron(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        job = scheduler.get_job(JOB_ID)
        assert job.trigger.__class__.__name__ == "CronTrigger"

    def test_schedule_from_settings(self, settings):
        """Scheduler respects SYNC_CRON_SCHEDULE."""
        settings.sync_cron_schedule = "0 2,6,10,14,18,22 * * *"
        scheduler = build_scheduler(settings, _runner(), MagicMock())

        job = scheduler.get_job(JOB_ID)
        fields = {f.name: f for f in job.trigger.fields}
        assert str(fields["hour"]) == "2,6,10,14,18,22"
        assert str(fields["minute"]) == "0"

    def test_default_schedule_is_twice_daily(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        fields = {f.name: f for f in scheduler.get_job(JOB_ID).trigger.fields}
        assert str(fields["hour"]) == "2,14"

    def test_trigger_uses_configured_timezone(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        assert str(scheduler.get_job(JOB_ID).trigger.timezone) == "America/Toronto"

    def test_single_instance(self, settings):
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        assert scheduler.get_job(JOB_ID).max_instances == 1

    def test_misfire_grace_and_coalesce(self, settings):
        job = build_scheduler(settings, _runner(), MagicMock()).get_job(JOB_ID)
        assert job.misfire_grace_time == MISFIRE_GRACE_SECONDS
        assert job.coalesce is True

    def test_scheduler_not_running_on_creation(self, settings):
        """build_scheduler should not auto-start."""
        scheduler = build_scheduler(settings, _runner(), MagicMock())
        assert not scheduler.running

    def test_creates_log_directory(self, settings):
        assert not settings.sync_log_path.parent.exists()
        build_scheduler(settings)
        assert settings.sync_log_path.parent.is_dir()

    def test_invalid_cron_expression_raises(self, settings):
        settings.sync_cron_schedule = "every day at 2"
        with pytest.raises(ValueError):
            build_cron_trigger(settings)


class TestTriggerLabel:
    @pytest.mark.parametrize("hour,expected", [
        (0, SyncTrigger.CRON_2AM),
        (2, SyncTrigger.CRON_2AM),
        (11, SyncTrigger.CRON_2AM),
        (12, SyncTrigger.CRON_2PM),
        (14, SyncTrigger.CRON_2PM),
        (22, SyncTrigger.CRON_2PM),
    ])
    def test_label_by_hour(self, hour, expected):
        assert trigger_for_hour(hour) == expected

    def test_uses_local_hour_not_utc(self):
        # 03:00 UTC is 23:00 the previous evening in Toronto (EDT)
        now = datetime(2025, 8, 5, 3, 0, tzinfo=timezone.utc)
        assert current_trigger(TORONTO, now) == SyncTrigger.CRON_2PM

    def test_morning_in_toronto(self):
        now = datetime(2025, 8, 5, 6, 0, tzinfo=TORONTO)
        assert current_trigger(TORONTO, now) == SyncTrigger.CRON_2AM

    def test_late_firing_keeps_slot_label(self):
        """An 11:00 slot that only fires at 12:30 is still the morning run."""
        cron = CronTrigger.from_crontab("0 11 * * *", timezone=TORONTO)
        now = datetime(2025, 8, 5, 12, 30, tzinfo=TORONTO)

        assert scheduled_fire_time(cron, TORONTO, now) == datetime(2025, 8, 5, 11, 0, tzinfo=TORONTO)
        assert scheduled_trigger(cron, TORONTO, now) == SyncTrigger.CRON_2AM

    def test_picks_latest_slot_in_window(self):
        cron = CronTrigger.from_crontab("*/10 * * * *", timezone=TORONTO)
        now = datetime(2025, 8, 5, 12, 5, tzinfo=TORONTO)
        assert scheduled_trigger(cron, TORONTO, now) == SyncTrigger.CRON_2PM

    def test_no_slot_in_window_falls_back_to_now(self):
        cron = CronTrigger.from_crontab("0 2,14 * * *", timezone=TORONTO)
        now = datetime(2025, 8, 5, 9, 0, tzinfo=TORONTO)
        assert scheduled_fire_time(cron, TORONTO, now) == now


# ─── _scheduled_sync job body ──────────────────────────────────────────────────

class TestScheduledSyncJob:
    @pytest.mark.asyncio
    async def test_runs_with_label_for_current_hour(self, settings):
        event = SyncEvent(trigger=SyncTrigger.CRON_2AM, status=EventStatus.COMPLETED)
        runner = _runner(event)
        health = MagicMock()

        with patch(
            "rss_sync.scheduler.jobs.current_trigger", return_value=SyncTrigger.CRON_2AM
        ):
            await _scheduled_sync(runner, health, settings, build_cron_trigger(settings))

        runner.run.assert_awaited_once_with(SyncTrigger.CRON_2AM)

    @pytest.mark.asyncio
    async def test_records_health_with_next_run(self, settings):
        event = SyncEvent(trigger=SyncTrigger.CRON_2PM, status=EventStatus.ERROR, error="x")
        runner = _runner(event)
        health = MagicMock()

        await _scheduled_sync(runner, health, settings, build_cron_trigger(settings))

        health.record.assert_called_once()
        args, kwargs = health.record.call_args
        assert args[0] is event
        assert kwargs["next_run"] > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_exception_does_not_propagate(self, settings, caplog):
        """The scheduled job catches everything so the scheduler stays alive."""
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=RuntimeError("disk on fire"))
        health = MagicMock()

        # Should not raise
        await _scheduled_sync(runner, health, settings, build_cron_trigger(settings))

        health.record.assert_not_called()
        assert "Scheduled sync crashed" in caplog.text
