"""Retention job: age out listings, notification history and auth tokens.

Every category is processed in chunks of ``chunk_size`` rows, each chunk in
its own short transaction, until a chunk comes back empty. A failing
category is recorded and the remaining categories still run. Stale alerts
are counted and reported only; alerts belong to the web application.
Notification history is only purged for inactive listings, so a listing
the Matcher can still see keeps the row that marks it as already notified.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, ContextManager, Dict, List
from uuid import uuid4

from sqlalchemy.orm import Session

from housing_alerts.config.models import RetentionConfig
from housing_alerts.logging import get_logger
from housing_alerts.logging.context import log_context
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.repositories import (
    AlertRepository,
    ListingRepository,
    NotificationRepository,
    TokenRepository,
)
from housing_alerts.utils.timestamps import utc_now

logger = get_logger(__name__, component="retention")

DAYS_PER_MONTH = 30


@dataclass
class CleanupResult:
    """Counts per retention category.

    Attributes:
        listings_deactivated: Active listings marked inactive
        listings_deleted: Inactive listings purged
        notifications_deleted: Sent/failed notifications of inactive listings purged
        tokens_deleted: Expired auth tokens purged
        stale_alerts: Active alerts untouched for ``inactive_alert_months``
        errors: One message per failed category
    """

    listings_deactivated: int = 0
    listings_deleted: int = 0
    notifications_deleted: int = 0
    tokens_deleted: int = 0
    stale_alerts: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def as_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "listings_deactivated": self.listings_deactivated,
            "listings_deleted": self.listings_deleted,
            "notifications_deleted": self.notifications_deleted,
            "tokens_deleted": self.tokens_deleted,
            "stale_alerts": self.stale_alerts,
            "errors": list(self.errors),
        }


class RetentionJob:
    """Applies the configured age thresholds."""

    def __init__(
        self,
        config: RetentionConfig,
        clock: Callable = utc_now,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        self.config = config
        self.clock = clock
        self.session_factory = session_factory

    async def run(self) -> CleanupResult:
        result = CleanupResult()
        now = self.clock()
        chunk = self.config.chunk_size

        with log_context(run_id=uuid4().hex[:12], job_type="cleanup"):
            logger.info("Cleanup started", extra={"event": "retention.run.started"})

            steps = [
                (
                    "listings_deactivated",
                    lambda s: ListingRepository(s).deactivate_older_than(
                        now - timedelta(days=self.config.listing_retention_days), chunk
                    ),
                ),
                (
                    "listings_deleted",
                    lambda s: ListingRepository(s).delete_inactive_older_than(
                        now - timedelta(days=self.config.inactive_listing_purge_days), chunk
                    ),
                ),
                (
                    "notifications_deleted",
                    lambda s: NotificationRepository(s).delete_history_older_than(
                        now - timedelta(days=self.config.notification_retention_days), chunk
                    ),
                ),
                (
                    "tokens_deleted",
                    lambda s: TokenRepository(s).delete_older_than(
                        now - timedelta(days=self.config.token_retention_days), chunk
                    ),
                ),
            ]

            for name, operation in steps:
                try:
                    count = await self._run_chunked(operation, chunk)
                except Exception as e:
                    result.errors.append(f"{name}: {e}")
                    logger.error(
                        f"Cleanup step {name} failed: {e}",
                        exc_info=True,
                        extra={"event": "retention.step.failed", "step": name},
                    )
                    continue
                setattr(result, name, count)

            stale_cutoff = now - timedelta(days=self.config.inactive_alert_months * DAYS_PER_MONTH)
            try:
                result.stale_alerts = await asyncio.to_thread(self._count_stale_alerts, stale_cutoff)
            except Exception as e:
                result.errors.append(f"stale_alerts: {e}")
                logger.error(
                    f"Counting stale alerts failed: {e}",
                    exc_info=True,
                    extra={"event": "retention.step.failed", "step": "stale_alerts"},
                )

            if result.stale_alerts:
                logger.info(
                    f"{result.stale_alerts} active alerts not updated in "
                    f"{self.config.inactive_alert_months} months",
                    extra={"event": "retention.alerts.stale", "count": result.stale_alerts},
                )

            logger.info(
                "Cleanup finished",
                extra={"event": "retention.run.completed", **result.as_dict()},
            )
        return result

    async def _run_chunked(self, operation: Callable[[Session], int], chunk: int) -> int:
        total = 0
        while True:
            affected = await asyncio.to_thread(self._in_session, operation)
            total += affected
            if affected < chunk:
                return total

    def _in_session(self, operation: Callable[[Session], int]) -> int:
        with self.session_factory() as session:
            return operation(session)

    def _count_stale_alerts(self, cutoff) -> int:
        with self.session_factory() as session:
            return AlertRepository(session).count_stale(cutoff)
