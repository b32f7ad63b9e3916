"""
Main entrypoint for the sync cron service.

Usage:
    python -m rss_sync              # start the scheduler (needs ENABLE_AUTO_SYNC=true)
    python -m rss_sync run          # run one manual sync now
    python -m rss_sync status       # summarize recent runs from the sync log
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from rss_sync.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


async def _run_scheduler(settings: Settings, stop: Optional[asyncio.Event] = None) -> None:
    from rss_sync.scheduler.jobs import JOB_ID, build_scheduler
    from rss_sync.sync.health import CronHealthRecorder
    from rss_sync.sync.runner import SyncRunner

    if not settings.enable_auto_sync:
        logger.info("Automatic sync is disabled (set ENABLE_AUTO_SYNC=true to enable).")
        return

    health = CronHealthRecorder(settings)
    scheduler = build_scheduler(settings, SyncRunner.from_settings(settings), health)
    scheduler.start()

    next_run = scheduler.get_job(JOB_ID).next_run_time
    health.record_startup(next_run)
    logger.info(
        "Scheduler started (schedule %r, timezone %s, next run %s)",
        settings.sync_cron_schedule,
        settings.sync_timezone,
        next_run.isoformat() if next_run else "never",
    )

    if stop is None:
        stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
        # In-flight runs are abandoned; asyncio.run() cancels them on exit.
        logger.info("Received shutdown signal, exiting.")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        scheduler.shutdown(wait=False)


async def _run_once(settings: Settings) -> int:
    from rss_sync.models.event import EventStatus, SyncTrigger
    from rss_sync.sync.runner import SyncRunner

    runner = SyncRunner.from_settings(settings)
    runner.event_log.ensure_directory()
    event = await runner.run(SyncTrigger.MANUAL)

    print(event.to_json_line(), end="")
    return 0 if event.status == EventStatus.COMPLETED else 1


def _show_status(settings: Settings) -> int:
    from rss_sync.sync.history import read_events, summarize_history

    summary = summarize_history(read_events(settings.sync_log_path))
    if not summary.runs:
        print(f"No completed or failed runs in {settings.sync_log_path}")
        return 0

    print(f"Recent runs:           {summary.runs}")
    print(f"Consecutive failures:  {summary.consecutive_failures}")
    print(f"Last attempt:          {summary.last_attempt.isoformat()} "
          f"({summary.hours_since_attempt}h ago)")
    if summary.last_success:
        print(f"Last success:          {summary.last_success.isoformat()} "
              f"({summary.hours_since_success}h ago)")
    else:
        print("Last success:          none in window")
    return 1 if summary.consecutive_failures else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="rss_sync", description="RSS reader sync cron")
    parser.add_argument(
        "command",
        nargs="?",
        default="start",
        choices=["start", "run", "status"],
        help="start the scheduler (default), run one sync now, or show run history",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    _configure_logging(settings)

    if args.command == "run":
        return asyncio.run(_run_once(settings))
    if args.command == "status":
        return _show_status(settings)
    asyncio.run(_run_scheduler(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
