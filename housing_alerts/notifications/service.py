"""Notifier job: deliver pending notifications as one digest per recipient.

Pending rows are fetched oldest first, grouped by recipient address and sent
as a single message per group. Every row of a group moves to ``sent`` or to
``failed`` together, in one guarded update, so a row is never delivered
twice by overlapping runs.
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, ContextManager, Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from housing_alerts.config.models import NotifierConfig
from housing_alerts.domain.models import Listing, NotificationStatus, PendingNotification, Recipient
from housing_alerts.logging import get_logger
from housing_alerts.logging.context import log_context
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.repositories import NotificationRepository
from housing_alerts.utils.timestamps import utc_now

from .models import DeliveryResult, DeliveryStats, NotifyRunResult

logger = get_logger(__name__, component="notifier")

MARK_RETRY_DELAY_SECONDS = 1.0


class Delivery(Protocol):
    def send(self, recipient: Recipient, listings: Sequence[Listing]) -> DeliveryResult: ...


class NotifierJob:
    """Batches pending notifications and hands them to the delivery collaborator."""

    def __init__(
        self,
        config: NotifierConfig,
        delivery: Optional[Delivery] = None,
        clock: Callable = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        self.config = config
        self.delivery = delivery
        self.clock = clock
        self.sleep = sleep
        self.session_factory = session_factory

    async def run(
        self,
        max_notifications: Optional[int] = None,
        skip_delivery: Optional[bool] = None,
    ) -> NotifyRunResult:
        """Deliver up to ``max_notifications`` pending rows.

        Args:
            max_notifications: Row limit for this run (default from config)
            skip_delivery: Mark rows sent without delivering (default from config)
        """
        limit = max_notifications or self.config.max_notifications
        skip = self.config.skip_delivery if skip_delivery is None else skip_delivery
        result = NotifyRunResult()

        with log_context(run_id=uuid4().hex[:12], job_type="notifier"):
            if not skip and self.delivery is None:
                result.success = False
                result.errors.append("No delivery channel configured")
                logger.error(
                    "Notifier has no delivery channel and skip_delivery is off",
                    extra={"event": "notifier.run.misconfigured"},
                )
                return result

            try:
                pending = await asyncio.to_thread(self._load_pending, limit)
            except Exception as e:
                result.success = False
                result.errors.append(f"Failed to load pending notifications: {e}")
                logger.error(
                    f"Notifier could not load pending notifications: {e}",
                    exc_info=True,
                    extra={"event": "notifier.load.failed"},
                )
                return result

            result.notifications_processed = len(pending)
            if not pending:
                logger.debug("No pending notifications", extra={"event": "notifier.run.empty"})
                return result

            batches = group_by_recipient(pending)
            logger.info(
                f"Delivering {len(pending)} notifications to {len(batches)} recipients",
                extra={
                    "event": "notifier.run.started",
                    "notifications": len(pending),
                    "recipients": len(batches),
                    "skip_delivery": skip,
                },
            )

            notified = set()
            for index, batch in enumerate(batches.values()):
                if index > 0 and self.config.batch_delay_seconds > 0:
                    await self.sleep(self.config.batch_delay_seconds)
                if await self._deliver_batch(batch, skip, result):
                    notified.add(batch[0].recipient.email.lower())

            result.users_notified = len(notified)
            if result.errors:
                result.success = False
            logger.info(
                f"Notifier finished: {result.emails_sent} sent, {result.emails_failed} failed",
                extra={"event": "notifier.run.completed", **result.as_dict()},
            )
        return result

    async def _deliver_batch(
        self, batch: List[PendingNotification], skip: bool, result: NotifyRunResult
    ) -> bool:
        recipient = batch[0].recipient
        ids = [item.notification_id for item in batch]
        listings = _unique_listings(batch)

        if skip:
            outcome = DeliveryResult(success=True)
        else:
            try:
                outcome = await asyncio.to_thread(self.delivery.send, recipient, listings)
            except Exception as e:
                outcome = DeliveryResult(success=False, error=f"{type(e).__name__}: {e}")

        status = NotificationStatus.SENT if outcome.success else NotificationStatus.FAILED
        try:
            await self._record(ids, status, outcome.error)
        except Exception as e:
            result.errors.append(f"Recipient {recipient.id}: could not record {status.value}: {e}")
            logger.error(
                f"Failed to mark {len(ids)} notifications {status.value}: {e}",
                exc_info=True,
                extra={"event": "notifier.mark.failed", "user_id": recipient.id},
            )
            if outcome.success:
                result.emails_sent += 1
            else:
                result.emails_failed += 1
            return outcome.success

        if outcome.success:
            result.emails_sent += 1
            return True

        result.emails_failed += 1
        result.errors.append(f"Recipient {recipient.id}: {outcome.error}")
        logger.warning(
            f"Delivery to user {recipient.id} failed; {len(ids)} notifications marked failed",
            extra={"event": "notifier.batch.failed", "user_id": recipient.id, "error": outcome.error},
        )
        return False

    async def _record(self, ids: List[int], status: NotificationStatus, error: Optional[str]) -> None:
        """Persist a batch outcome, retrying once.

        The update only touches rows still pending, so a second attempt after
        a partial failure is harmless. Rows left pending after a delivered
        message would be sent again by the next run.
        """
        try:
            await asyncio.to_thread(self._mark, ids, status, error)
        except Exception as e:
            logger.warning(
                f"Recording {len(ids)} notifications as {status.value} failed, retrying: {e}",
                extra={"event": "notifier.mark.retry", "status": status.value},
            )
            await self.sleep(MARK_RETRY_DELAY_SECONDS)
            await asyncio.to_thread(self._mark, ids, status, error)

    async def reset_failed(self) -> int:
        """Return eligible failed rows to pending; returns how many were reset."""
        now = self.clock()
        older_than = now - timedelta(seconds=self.config.retry_age_seconds)
        count = await asyncio.to_thread(self._reset_failed, older_than, now)
        if count:
            logger.info(
                f"Re-queued {count} failed notifications",
                extra={"event": "notifier.retry.reset", "count": count},
            )
        return count

    async def pending_stats(self) -> Dict[str, int]:
        """Notification counts per status."""
        return await asyncio.to_thread(self._count_by_status)

    async def success_stats(self, hours: int = 24) -> DeliveryStats:
        """Sent and failed notifications over the last ``hours``."""
        since = self.clock() - timedelta(hours=hours)
        counts = await asyncio.to_thread(self._count_outcomes, since)
        return DeliveryStats(window_hours=hours, sent=counts["sent"], failed=counts["failed"])

    def _load_pending(self, limit: int) -> List[PendingNotification]:
        with self.session_factory() as session:
            return NotificationRepository(session).get_pending(limit)

    def _mark(self, ids: List[int], status: NotificationStatus, error: Optional[str]) -> int:
        with self.session_factory() as session:
            return NotificationRepository(session).mark_status(ids, status, self.clock(), error=error)

    def _reset_failed(self, older_than, now) -> int:
        with self.session_factory() as session:
            return NotificationRepository(session).reset_failed(
                older_than,
                self.config.max_retry_attempts,
                self.config.retry_batch_size,
                now,
            )

    def _count_by_status(self) -> Dict[str, int]:
        with self.session_factory() as session:
            return NotificationRepository(session).count_by_status()

    def _count_outcomes(self, since) -> Dict[str, int]:
        with self.session_factory() as session:
            return NotificationRepository(session).count_outcomes_since(since)


def group_by_recipient(
    pending: Sequence[PendingNotification],
) -> Dict[str, List[PendingNotification]]:
    """Group rows by case-insensitive recipient address, keeping first-seen order."""
    batches: Dict[str, List[PendingNotification]] = {}
    for item in pending:
        batches.setdefault(item.recipient.email.strip().lower(), []).append(item)
    return batches


def _unique_listings(batch: Sequence[PendingNotification]) -> List[Listing]:
    # One listing can match several alerts of the same recipient.
    seen = set()
    listings = []
    for item in batch:
        if item.listing.id in seen:
            continue
        seen.add(item.listing.id)
        listings.append(item.listing)
    return listings
