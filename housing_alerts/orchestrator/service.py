"""Job orchestrator: timers, chaining, overlap guard and the status surface.

One harvest chain runs per harvest timer tick::

    harvest -> match (only if new listings) -> retry sweep + notify -> reschedule

The harvest timer is a one-shot re-armed after every chain with
``interval * uniform(0.75, 1.25)``; cleanup and health checks repeat on
fixed intervals. A job type never runs twice at once: a tick or trigger
that finds its type active is skipped and counted, never queued.
"""

import asyncio
import random
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set, Union

from housing_alerts.config.environment import EnvironmentConfig
from housing_alerts.config.exceptions import ConfigurationError
from housing_alerts.config.models import AppConfig
from housing_alerts.harvester.service import Harvester
from housing_alerts.logging import get_logger
from housing_alerts.logging.context import log_context
from housing_alerts.matching.service import MatcherJob
from housing_alerts.notifications.service import NotifierJob
from housing_alerts.retention.service import RetentionJob
from housing_alerts.scheduler.base import TimerScheduler
from housing_alerts.scheduler.service import SchedulerService
from housing_alerts.utils.timestamps import utc_now

from .health import HealthMonitor
from .models import TRIGGERABLE_JOBS, JobError, JobStatus, JobType, RunReport

logger = get_logger(__name__, component="orchestrator")

HARVEST_TIMER = "harvest"
CLEANUP_TIMER = "cleanup"
HEALTH_TIMER = "health_check"

JITTER_LOW = 0.75
JITTER_HIGH = 1.25

ERROR_BUFFER_LIMIT = 100
ERROR_BUFFER_KEEP = 50

Body = Callable[[RunReport], Awaitable[None]]


class JobOrchestrator:
    """Schedules and supervises the Harvester, Matcher, Notifier and Retention jobs.

    Lifecycle: Stopped -> ``start()`` -> Running -> ``stop()`` -> draining
    (still Running, ``is_stopping``) -> Stopped.
    Manual ``trigger()`` calls work in either state.
    """

    def __init__(
        self,
        config: AppConfig,
        env_config: EnvironmentConfig,
        harvester: Harvester,
        matcher: MatcherJob,
        notifier: NotifierJob,
        retention: RetentionJob,
        health_monitor: Optional[HealthMonitor] = None,
        scheduler: Optional[TimerScheduler] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.env_config = env_config
        self.harvester = harvester
        self.matcher = matcher
        self.notifier = notifier
        self.retention = retention
        self.health_monitor = health_monitor
        self.clock = clock
        self.scheduler = scheduler or SchedulerService(clock=clock)
        self.rng = rng or random.Random()

        self._running = False
        self._stop_task: Optional[asyncio.Task] = None
        self._start_time: Optional[datetime] = None
        self._active: Set[JobType] = set()
        self._in_flight: Set[asyncio.Task] = set()
        self._last_runs: Dict[JobType, datetime] = {}
        self._total_jobs_run = 0
        self._skipped_runs: Dict[str, int] = {job_type.value: 0 for job_type in JobType}
        self._errors: List[JobError] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_stopping(self) -> bool:
        return self._stop_task is not None and not self._stop_task.done()

    async def start(self) -> None:
        """Validate configuration and arm every timer.

        A start issued while a stop is draining waits for that stop to finish
        and then starts on a fresh scheduler.

        Raises:
            ConfigurationError: If delivery is enabled but not configured;
                the orchestrator stays stopped
        """
        if self.is_stopping:
            logger.info(
                "Waiting for the pending stop to finish before starting",
                extra={"event": "orchestrator.start.waiting"},
            )
            await asyncio.shield(self._stop_task)

        if self._running:
            logger.warning("Orchestrator already running", extra={"event": "orchestrator.start.ignored"})
            return

        self._validate_configuration()

        jobs = self.config.jobs
        self.scheduler.start()
        self.scheduler.schedule_once(
            HARVEST_TIMER, jobs.harvest_initial_delay_seconds, self._on_harvest_tick
        )
        if jobs.enable_auto_cleanup:
            self.scheduler.schedule_interval(
                CLEANUP_TIMER, jobs.cleanup_interval_seconds, self._on_cleanup_tick
            )
        if jobs.enable_health_checks and self.health_monitor is not None:
            self.scheduler.schedule_interval(
                HEALTH_TIMER, jobs.health_check_interval_seconds, self._on_health_tick
            )

        self._running = True
        self._start_time = self.clock()
        logger.info(
            "Orchestrator started",
            extra={"event": "orchestrator.started", **self.config.summary()},
        )

    async def stop(self) -> None:
        """Clear timers, then wait up to the grace period for running jobs.

        Running job bodies are never cancelled. The orchestrator stays
        Running (and ``is_stopping``) while they drain and reports Stopped
        once they finish or the grace period ends. Concurrent calls share
        one shutdown.
        """
        if not self._running:
            return
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._stop_task)

    async def _shutdown(self) -> None:
        self.scheduler.cancel_all()

        in_flight = [task for task in self._in_flight if not task.done()]
        grace = self.config.jobs.shutdown_grace_seconds
        logger.info(
            f"Stopping orchestrator; waiting up to {grace}s for {len(in_flight)} running jobs",
            extra={
                "event": "orchestrator.stopping",
                "active_jobs": sorted(job.value for job in self._active),
            },
        )
        try:
            if in_flight:
                _, pending = await asyncio.wait(in_flight, timeout=grace)
                if pending:
                    logger.warning(
                        f"{len(pending)} jobs still running after {grace}s grace period",
                        extra={"event": "orchestrator.stop.grace_expired", "pending": len(pending)},
                    )
        finally:
            self.scheduler.shutdown()
            self._running = False
        logger.info("Orchestrator stopped", extra={"event": "orchestrator.stopped"})

    def status(self) -> JobStatus:
        return JobStatus(
            is_running=self._running,
            start_time=self._start_time,
            last_harvest_run=self._last_runs.get(JobType.SCRAPER),
            last_match_run=self._last_runs.get(JobType.MATCHER),
            last_notify_run=self._last_runs.get(JobType.NOTIFIER),
            last_cleanup_run=self._last_runs.get(JobType.CLEANUP),
            last_health_check=self._last_runs.get(JobType.HEALTH_CHECK),
            total_jobs_run=self._total_jobs_run,
            skipped_runs=dict(self._skipped_runs),
            active_jobs=sorted(job.value for job in self._active),
            recent_errors=list(self._errors),
            next_runs=self.scheduler.pending() if self._running else {},
        )

    async def trigger(self, job_type: Union[str, JobType]) -> RunReport:
        """Run a job out of band and return its report.

        ``scraper`` runs the full chain, ``matcher`` runs Matcher then
        Notifier, ``cleanup`` runs Retention.

        Raises:
            ValueError: For any other job type
        """
        try:
            job = JobType(job_type)
        except ValueError:
            job = None
        if job not in TRIGGERABLE_JOBS:
            allowed = ", ".join(j.value for j in TRIGGERABLE_JOBS)
            raise ValueError(f"Unknown job type: {job_type}. Allowed: {allowed}")

        bodies = {
            JobType.SCRAPER: self._harvest_chain,
            JobType.MATCHER: self._match_chain,
            JobType.CLEANUP: self._cleanup_body,
        }
        logger.info(f"Manual trigger: {job.value}", extra={"event": "orchestrator.trigger", "job": job.value})
        return await self._launch(job, bodies[job])

    def next_harvest_delay(self) -> float:
        """Jittered delay before the next harvest, recomputed every cycle."""
        base = self.config.jobs.harvest_interval_seconds
        return base * self.rng.uniform(JITTER_LOW, JITTER_HIGH)

    async def _on_harvest_tick(self) -> None:
        try:
            await self._launch(JobType.SCRAPER, self._harvest_chain)
        finally:
            if self._running and not self.is_stopping:
                delay = self.next_harvest_delay()
                self.scheduler.schedule_once(HARVEST_TIMER, delay, self._on_harvest_tick)
                logger.info(
                    f"Next harvest in {delay:.0f}s",
                    extra={"event": "orchestrator.harvest.rescheduled", "delay_seconds": round(delay, 1)},
                )

    async def _on_cleanup_tick(self) -> None:
        await self._launch(JobType.CLEANUP, self._cleanup_body)

    async def _on_health_tick(self) -> None:
        await self._launch(JobType.HEALTH_CHECK, self._health_body)

    async def _launch(self, job_type: JobType, body: Body) -> RunReport:
        """Run ``body`` under the overlap guard and the supervisor."""
        if not self._try_acquire(job_type):
            return RunReport(job_type=job_type, skipped=True)

        report = RunReport(job_type=job_type)
        task = asyncio.create_task(self._supervise(job_type, body, report))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        # Shielded so a cancelled caller never aborts a running body.
        await asyncio.shield(task)
        return report

    async def _supervise(self, job_type: JobType, body: Body, report: RunReport) -> None:
        with log_context(job_type=job_type.value):
            try:
                await body(report)
            except Exception as e:
                message = f"{type(e).__name__}: {e}"
                report.errors.append(message)
                self._record_error(job_type, message)
                logger.error(
                    f"Job {job_type.value} failed: {message}",
                    exc_info=True,
                    extra={"event": "orchestrator.job.failed"},
                )
            finally:
                self._active.discard(job_type)

        logger.info(
            f"Job {job_type.value} finished",
            extra={"event": "orchestrator.job.completed", **report.as_dict()},
        )

    async def _harvest_chain(self, report: RunReport) -> None:
        harvest = await self._step(JobType.SCRAPER, "harvest", self.harvester.run, report, guard=False)
        if harvest is not None and harvest.success and harvest.new_listings_count > 0:
            await self._step(JobType.MATCHER, "match", self.matcher.run, report)
        await self._step(JobType.NOTIFIER, "notify", self._notify_with_retry_sweep, report)

    async def _match_chain(self, report: RunReport) -> None:
        await self._step(JobType.MATCHER, "match", self.matcher.run, report, guard=False)
        await self._step(JobType.NOTIFIER, "notify", self._notify_with_retry_sweep, report)

    async def _cleanup_body(self, report: RunReport) -> None:
        await self._step(JobType.CLEANUP, "cleanup", self.retention.run, report, guard=False)

    async def _health_body(self, report: RunReport) -> None:
        await self._step(JobType.HEALTH_CHECK, "health_check", self.health_monitor.check, report, guard=False)

    async def _notify_with_retry_sweep(self):
        try:
            await self.notifier.reset_failed()
        except Exception as e:
            self._record_error(JobType.NOTIFIER, f"Retry sweep failed: {e}")
            logger.error(
                f"Retry sweep failed: {e}",
                exc_info=True,
                extra={"event": "orchestrator.retry_sweep.failed"},
            )
        return await self.notifier.run()

    async def _step(
        self,
        job_type: JobType,
        name: str,
        func: Callable[[], Awaitable],
        report: RunReport,
        guard: bool = True,
    ):
        """Run one job of a chain; failures are recorded and the chain continues.

        With ``guard`` the step takes its own job-type slot and is skipped if
        that type is already active. Without it the caller already holds the slot.
        """
        if guard and not self._try_acquire(job_type):
            report.skipped_steps.append(name)
            return None

        self._last_runs[job_type] = self.clock()
        self._total_jobs_run += 1
        try:
            result = await func()
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            report.errors.append(f"{name}: {message}")
            self._record_error(job_type, message)
            logger.error(
                f"Step {name} raised: {message}",
                exc_info=True,
                extra={"event": "orchestrator.step.failed", "step": name},
            )
            return None
        finally:
            if guard:
                self._active.discard(job_type)

        report.results[name] = result
        for error in getattr(result, "errors", None) or []:
            self._record_error(job_type, str(error))
        if getattr(result, "healthy", True) is False:
            self._record_error(job_type, "; ".join(result.warnings) or "unhealthy")
        return result

    def _try_acquire(self, job_type: JobType) -> bool:
        if job_type in self._active:
            self._skipped_runs[job_type.value] += 1
            logger.warning(
                f"{job_type.value} is already running; run skipped",
                extra={
                    "event": "orchestrator.job.skipped",
                    "job": job_type.value,
                    "skipped_total": self._skipped_runs[job_type.value],
                },
            )
            return False
        self._active.add(job_type)
        return True

    def _record_error(self, job_type: JobType, message: str) -> None:
        self._errors.append(JobError(job=job_type.value, timestamp=self.clock(), message=message))
        if len(self._errors) > ERROR_BUFFER_LIMIT:
            self._errors = self._errors[-ERROR_BUFFER_KEEP:]

    def _validate_configuration(self) -> None:
        if self.config.notifier.skip_delivery:
            return
        missing = self.env_config.missing_delivery_settings()
        if missing:
            raise ConfigurationError(
                "Email delivery is enabled but not configured",
                errors=missing,
                suggestions=[
                    "Set SMTP_HOST and SMTP_FROM_EMAIL (or SMTP_USER) in the environment or .env",
                    "Or set notifier.skip_delivery: true to run without sending email",
                ],
            )
