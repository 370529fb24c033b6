"""
APScheduler wiring for the tracker's periodic jobs.

Schedule (all times UTC, configurable)
--------------------------------------
  clean-tasks    : 23:59 every day, empties the job queue
  schedule-tasks : 00:00 every day, queues every tracked product code
  crawling       : minute 30 of every hour, drains the job queue
  daily-report   : 04:00 every day, emails the price/stock digest

All jobs share one worker thread, so they never overlap each other.
"""

from __future__ import annotations

import logging
from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler

from . import config
from .tracker import Tracker

logger = logging.getLogger(__name__)


def _guarded(name: str, func: Callable[[], object]) -> Callable[[], None]:
    def run() -> None:
        logger.info("Job %s starting", name)
        try:
            func()
        except Exception:
            logger.exception("Job %s failed", name)
        else:
            logger.info("Job %s done", name)

    run.__name__ = f"job_{name.replace('-', '_')}"
    return run


def build_scheduler(tracker: Tracker) -> BlockingScheduler:
    """
    Register the four jobs on a not-yet-started ``BlockingScheduler``.

    The caller must call ``.start()``, which blocks the current thread.
    """
    scheduler = BlockingScheduler(
        timezone="UTC",
        executors={"default": ThreadPoolExecutor(max_workers=1)},
        job_defaults={"coalesce": True, "max_instances": 1},
    )

    clean_h, clean_m = config.parse_hhmm(config.CLEAN_JOBS_AT)
    assign_h, assign_m = config.parse_hhmm(config.ASSIGN_JOBS_AT)
    report_h, report_m = config.parse_hhmm(config.DAILY_REPORT_AT)

    scheduler.add_job(
        _guarded("clean-tasks", tracker.clear_jobs),
        trigger="cron",
        hour=clean_h,
        minute=clean_m,
        id="clean-tasks",
        name="Clear pending scrape jobs",
        replace_existing=True,
        misfire_grace_time=600,
    )
    scheduler.add_job(
        _guarded("schedule-tasks", tracker.reseed_jobs),
        trigger="cron",
        hour=assign_h,
        minute=assign_m,
        id="schedule-tasks",
        name="Queue tracked products for today",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        _guarded("crawling", tracker.run_cycle),
        trigger="cron",
        minute=config.SCRAPE_MINUTE,
        id="crawling",
        name="Scrape and reconcile queued products",
        replace_existing=True,
        misfire_grace_time=1800,
    )
    scheduler.add_job(
        _guarded("daily-report", tracker.send_daily_report),
        trigger="cron",
        hour=report_h,
        minute=report_m,
        id="daily-report",
        name="Daily price/stock digest",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler


__all__ = ["build_scheduler"]
