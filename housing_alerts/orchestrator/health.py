"""Periodic health check: database reachability, table counts and harvest freshness."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, ContextManager, Dict, List, Optional

from sqlalchemy.orm import Session

from housing_alerts.logging import get_logger
from housing_alerts.persistence.database import check_connection, get_session
from housing_alerts.persistence.repositories import (
    AlertRepository,
    ListingRepository,
    NotificationRepository,
)
from housing_alerts.utils.timestamps import format_timestamp, utc_now

logger = get_logger(__name__, component="health")

STALE_HARVEST_INTERVALS = 3
DELIVERY_WINDOW_HOURS = 24


@dataclass
class HealthReport:
    healthy: bool
    database_ok: bool
    checked_at: datetime
    counts: Dict[str, int] = field(default_factory=dict)
    last_harvested_at: Optional[datetime] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.healthy

    def as_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "database_ok": self.database_ok,
            "checked_at": format_timestamp(self.checked_at),
            "counts": dict(self.counts),
            "last_harvested_at": format_timestamp(self.last_harvested_at),
            "warnings": list(self.warnings),
        }


class HealthMonitor:
    """Checks that storage answers and that harvests keep landing.

    The harvester is considered stale when the newest listing is older than
    three base harvest intervals. A day in which every delivery failed adds
    a warning without making the check unhealthy.
    """

    def __init__(
        self,
        harvest_interval_seconds: int,
        clock: Callable = utc_now,
        ping: Callable[[], bool] = check_connection,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        self.harvest_interval_seconds = harvest_interval_seconds
        self.clock = clock
        self.ping = ping
        self.session_factory = session_factory

    async def check(self) -> HealthReport:
        now = self.clock()
        database_ok = await asyncio.to_thread(self.ping)
        report = HealthReport(healthy=database_ok, database_ok=database_ok, checked_at=now)

        if not database_ok:
            report.warnings.append("Database connection check failed")
            logger.error("Health check failed: database unreachable", extra={"event": "health.database.down"})
            return report

        try:
            report.counts, report.last_harvested_at = await asyncio.to_thread(self._collect, now)
        except Exception as e:
            report.healthy = False
            report.warnings.append(f"Could not read table counts: {e}")
            logger.error(
                f"Health check could not read counts: {e}",
                exc_info=True,
                extra={"event": "health.counts.failed"},
            )
            return report

        stale_after = timedelta(seconds=self.harvest_interval_seconds * STALE_HARVEST_INTERVALS)
        if report.last_harvested_at is None:
            report.warnings.append("No listings harvested yet")
        elif now - report.last_harvested_at > stale_after:
            report.healthy = False
            report.warnings.append(
                f"Last harvest at {format_timestamp(report.last_harvested_at)} is older than "
                f"{int(stale_after.total_seconds())}s"
            )

        failed = report.counts.get("failed_last_24h", 0)
        if failed and not report.counts.get("sent_last_24h"):
            report.warnings.append(
                f"All {failed} notifications of the last {DELIVERY_WINDOW_HOURS}h failed to deliver"
            )

        level = logger.info if report.healthy else logger.warning
        level(
            "Health check completed",
            extra={"event": "health.check.completed", **report.as_dict()},
        )
        return report

    def _collect(self, now: datetime):
        with self.session_factory() as session:
            listings = ListingRepository(session)
            notifications = NotificationRepository(session)
            outcomes = notifications.count_outcomes_since(now - timedelta(hours=DELIVERY_WINDOW_HOURS))
            counts = {
                "active_alerts": AlertRepository(session).count_active(),
                "active_listings": listings.count_active(),
                "pending_notifications": notifications.count_by_status()["pending"],
                "sent_last_24h": outcomes["sent"],
                "failed_last_24h": outcomes["failed"],
            }
            return counts, listings.latest_harvested_at()
