"""APScheduler-backed timers on the asyncio event loop."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from housing_alerts.logging import get_logger
from housing_alerts.utils.timestamps import utc_now

from .base import TimerCallback, TimerScheduler

logger = get_logger(__name__, component="scheduler")


class SchedulerService(TimerScheduler):
    """Wraps ``AsyncIOScheduler`` so timer callbacks run as tasks on the loop.

    Overlap protection is left to the orchestrator, which records skipped
    ticks; APScheduler is allowed a few concurrent instances per timer so
    that ticks reach it instead of being dropped here.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.scheduler: Optional[AsyncIOScheduler] = None

    def start(self) -> None:
        if self.running:
            return
        self.scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            job_defaults={
                "max_instances": 3,
                "coalesce": True,
                "misfire_grace_time": None,
            },
            timezone=timezone.utc,
        )
        self.scheduler.start()
        logger.info("Scheduler started", extra={"event": "scheduler.started"})

    def shutdown(self) -> None:
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def schedule_once(self, name: str, delay_seconds: float, func: TimerCallback) -> datetime:
        run_date = self.clock() + timedelta(seconds=delay_seconds)
        self._require_started().add_job(
            func,
            trigger=DateTrigger(run_date=run_date, timezone=timezone.utc),
            id=name,
            name=name,
            replace_existing=True,
        )
        logger.debug(
            f"Timer {name} due at {run_date.isoformat()}",
            extra={"event": "scheduler.timer.scheduled", "timer": name, "delay_seconds": delay_seconds},
        )
        return run_date

    def schedule_interval(self, name: str, interval_seconds: float, func: TimerCallback) -> datetime:
        first_run = self.clock() + timedelta(seconds=interval_seconds)
        self._require_started().add_job(
            func,
            trigger=IntervalTrigger(seconds=interval_seconds, start_date=first_run, timezone=timezone.utc),
            id=name,
            name=name,
            replace_existing=True,
        )
        logger.debug(
            f"Timer {name} repeats every {interval_seconds}s",
            extra={
                "event": "scheduler.timer.scheduled",
                "timer": name,
                "interval_seconds": interval_seconds,
            },
        )
        return first_run

    def cancel(self, name: str) -> bool:
        if not self.running:
            return False
        try:
            self.scheduler.remove_job(name)
        except JobLookupError:
            return False
        return True

    def cancel_all(self) -> None:
        if self.running:
            self.scheduler.remove_all_jobs()

    def pending(self) -> Dict[str, datetime]:
        if not self.running:
            return {}
        return {
            job.id: job.next_run_time
            for job in self.scheduler.get_jobs()
            if job.next_run_time is not None
        }

    def _require_started(self) -> AsyncIOScheduler:
        if not self.running:
            raise RuntimeError("Scheduler is not running; call start() first")
        return self.scheduler
