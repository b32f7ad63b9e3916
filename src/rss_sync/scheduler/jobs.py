"""
APScheduler jobs for background sync.

The default schedule fires twice a day (2am and 2pm in the configured
timezone). Each firing is labelled cron-2am or cron-2pm by the local hour of
the slot it was scheduled for, whatever the cron expression says, so a firing
delayed past noon keeps its morning label. Firings later than
MISFIRE_GRACE_SECONDS are dropped by APScheduler.

The job runs with max_instances=1: a firing that lands while the previous
run is still polling is skipped by APScheduler with a warning.
"""
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from rss_sync.config import Settings
from rss_sync.models.event import SyncTrigger
from rss_sync.sync.health import CronHealthRecorder
from rss_sync.sync.runner import SyncRunner

logger = logging.getLogger(__name__)

JOB_ID = "scheduled_sync"
MISFIRE_GRACE_SECONDS = 3600


def trigger_for_hour(hour: int) -> SyncTrigger:
    """Before local noon → cron-2am, otherwise cron-2pm."""
    return SyncTrigger.CRON_2AM if hour < 12 else SyncTrigger.CRON_2PM


def current_trigger(tz: tzinfo, now: Optional[datetime] = None) -> SyncTrigger:
    now = now or datetime.now(tz)
    return trigger_for_hour(now.astimezone(tz).hour)


def scheduled_fire_time(
    cron: CronTrigger,
    tz: tzinfo,
    now: Optional[datetime] = None,
    grace: int = MISFIRE_GRACE_SECONDS,
) -> datetime:
    """
    Latest fire time of `cron` within the last `grace` seconds.

    A firing delayed by a busy loop or a missed wakeup still maps back to the
    slot it was scheduled for. Falls back to `now` when no slot is in range.
    """
    now = now or datetime.now(tz)
    fire_time = cron.get_next_fire_time(None, now - timedelta(seconds=grace))
    latest = None
    while fire_time is not None and fire_time <= now:
        latest = fire_time
        fire_time = cron.get_next_fire_time(fire_time, fire_time + timedelta(seconds=1))
    return latest or now


def scheduled_trigger(
    cron: CronTrigger,
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> SyncTrigger:
    """Label for the slot the current firing belongs to."""
    return current_trigger(tz, scheduled_fire_time(cron, tz, now))


def build_cron_trigger(settings: Settings) -> CronTrigger:
    """
    Raises:
        ValueError: if SYNC_CRON_SCHEDULE is not a valid 5-field crontab.
    """
    return CronTrigger.from_crontab(settings.sync_cron_schedule, timezone=settings.tz)


def next_fire_time(trigger: CronTrigger, tz: tzinfo) -> Optional[datetime]:
    return trigger.get_next_fire_time(None, datetime.now(tz))


def build_scheduler(
    settings: Settings,
    runner: Optional[SyncRunner] = None,
    health: Optional[CronHealthRecorder] = None,
) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Also creates the sync log directory so the first firing can write to it.

    Args:
        settings: Service configuration.
        runner: SyncRunner to invoke; built from settings if omitted.
        health: Health recorder updated after each run; built if omitted.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    runner = runner or SyncRunner.from_settings(settings)
    health = health or CronHealthRecorder(settings)
    runner.event_log.ensure_directory()

    cron = build_cron_trigger(settings)
    scheduler = AsyncIOScheduler(timezone=settings.tz)
    scheduler.add_job(
        _scheduled_sync,
        trigger=cron,
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=MISFIRE_GRACE_SECONDS,
        kwargs={"runner": runner, "health": health, "settings": settings, "cron": cron},
    )

    return scheduler


async def _scheduled_sync(
    runner: SyncRunner,
    health: CronHealthRecorder,
    settings: Settings,
    cron: CronTrigger,
) -> None:
    """
    Scheduled job: one sync run labelled by the local hour of its slot.

    Never raises; a failed run must not take the scheduler down.
    """
    try:
        trigger = scheduled_trigger(cron, settings.tz)
        logger.info("Scheduled sync firing (%s)", trigger.value)
        event = await runner.run(trigger)
        health.record(event, next_run=next_fire_time(cron, settings.tz))
    except Exception:
        logger.exception("Scheduled sync crashed")
