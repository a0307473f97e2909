"""Repository classes for the tables the jobs touch.

Repositories work inside the caller's session and never commit; the
``get_session()`` context manager owns the transaction. SQLAlchemy errors are
translated into the persistence exception hierarchy. Inserts that must be
unique use a savepoint so a duplicate never poisons the outer transaction.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from housing_alerts.domain.models import (
    Alert,
    Listing,
    NotificationStatus,
    PendingNotification,
    Recipient,
)

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    AlertModel,
    AuthTokenModel,
    ListingModel,
    NotificationModel,
    UserModel,
    _format_datetime,
    _parse_datetime,
)

logger = logging.getLogger(__name__)


@dataclass
class ListingInsertSummary:
    """Outcome of a duplicate-suppressed batch insert.

    Attributes:
        inserted: Listings that were new, with their storage ids
        duplicates: external_ids that were already stored (or repeated in the batch)
        failures: One message per record whose insert failed
    """

    inserted: List[Listing] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)


def _delete_chunk(session: Session, model, condition, limit: int) -> int:
    """Delete at most ``limit`` rows of ``model`` matching ``condition``."""
    ids = session.execute(select(model.id).where(condition).order_by(model.id).limit(limit)).scalars().all()
    if not ids:
        return 0
    result = session.execute(delete(model).where(model.id.in_(ids)))
    return result.rowcount or 0


class ListingRepository:
    """Insert-with-dedup and age-based maintenance for listings."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_external_id(self, external_id: str) -> Optional[Listing]:
        try:
            model = self.session.execute(
                select(ListingModel).where(ListingModel.external_id == external_id)
            ).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving listing {external_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve listing: {e}") from e

    def exists(self, external_id: str) -> bool:
        try:
            found = self.session.execute(
                select(ListingModel.id).where(ListingModel.external_id == external_id)
            ).first()
            return found is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking listing {external_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to check listing: {e}") from e

    def insert_if_absent(self, listing: Listing) -> Optional[Listing]:
        """Insert a listing unless its external_id is already stored.

        Returns:
            The stored listing (with id) if it was new, None if it was a duplicate

        Raises:
            DataIntegrityError: If the insert violates a constraint other than
                the external_id uniqueness
            PersistenceError: On other database errors
        """
        if self.exists(listing.external_id):
            return None

        model = ListingModel.from_domain(listing)
        try:
            with self.session.begin_nested():
                self.session.add(model)
        except IntegrityError as e:
            # Another writer may have inserted the same posting after our check.
            if self.exists(listing.external_id):
                logger.debug(f"Listing {listing.external_id} inserted concurrently; skipping")
                return None
            logger.error(f"Integrity error inserting listing {listing.external_id}: {e}")
            raise DataIntegrityError(f"Failed to insert listing {listing.external_id}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error inserting listing {listing.external_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert listing: {e}") from e

        return model.to_domain()

    def insert_many(self, listings: Sequence[Listing]) -> ListingInsertSummary:
        """Insert a batch, isolating each record.

        Duplicates (stored or repeated inside the batch) are reported, and
        one record's failure does not stop the rest.
        """
        summary = ListingInsertSummary()
        seen = set()

        for listing in listings:
            if listing.external_id in seen:
                summary.duplicates.append(listing.external_id)
                continue
            seen.add(listing.external_id)

            try:
                stored = self.insert_if_absent(listing)
            except PersistenceError as e:
                summary.failures.append(f"{listing.external_id}: {e}")
                continue

            if stored is None:
                summary.duplicates.append(listing.external_id)
            else:
                summary.inserted.append(stored)

        return summary

    def get_active_since(self, since: datetime) -> List[Listing]:
        """Active listings harvested at or after ``since``, oldest first."""
        try:
            models = self.session.execute(
                select(ListingModel)
                .where(
                    ListingModel.is_active.is_(True),
                    ListingModel.harvested_at >= _format_datetime(since),
                )
                .order_by(ListingModel.harvested_at, ListingModel.id)
            ).scalars().all()
            return [model.to_domain() for model in models]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving recent listings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve recent listings: {e}") from e

    def count_active(self) -> int:
        try:
            return self.session.execute(
                select(func.count(ListingModel.id)).where(ListingModel.is_active.is_(True))
            ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count listings: {e}") from e

    def latest_harvested_at(self) -> Optional[datetime]:
        try:
            value = self.session.execute(select(func.max(ListingModel.harvested_at))).scalar_one()
            return _parse_datetime(value)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read latest harvest time: {e}") from e

    def deactivate_older_than(self, cutoff: datetime, limit: int) -> int:
        """Mark up to ``limit`` active listings harvested before ``cutoff`` inactive."""
        try:
            ids = self.session.execute(
                select(ListingModel.id)
                .where(
                    ListingModel.is_active.is_(True),
                    ListingModel.harvested_at < _format_datetime(cutoff),
                )
                .order_by(ListingModel.id)
                .limit(limit)
            ).scalars().all()
            if not ids:
                return 0
            result = self.session.execute(
                update(ListingModel)
                .where(ListingModel.id.in_(ids), ListingModel.is_active.is_(True))
                .values(is_active=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deactivating listings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to deactivate listings: {e}") from e

    def delete_inactive_older_than(self, cutoff: datetime, limit: int) -> int:
        """Delete up to ``limit`` inactive listings harvested before ``cutoff``."""
        try:
            return _delete_chunk(
                self.session,
                ListingModel,
                and_(
                    ListingModel.is_active.is_(False),
                    ListingModel.harvested_at < _format_datetime(cutoff),
                ),
                limit,
            )
        except SQLAlchemyError as e:
            logger.error(f"Error deleting listings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete listings: {e}") from e


class UserRepository:
    """Read access to subscribers plus a create helper for seeding and tests."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        email: str,
        created_at: datetime,
        unsubscribe_token: Optional[str] = None,
        is_active: bool = True,
    ) -> Recipient:
        try:
            model = UserModel(
                email=email,
                is_active=is_active,
                unsubscribe_token=unsubscribe_token,
                created_at=_format_datetime(created_at),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to create user {email}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create user: {e}") from e


class AlertRepository:
    """Queries over saved searches."""

    def __init__(self, session: Session):
        self.session = session

    def get_active_with_recipients(self) -> List[Alert]:
        """Active alerts whose owner is active, each carrying its recipient."""
        try:
            rows = self.session.execute(
                select(AlertModel, UserModel)
                .join(UserModel, UserModel.id == AlertModel.user_id)
                .where(AlertModel.is_active.is_(True), UserModel.is_active.is_(True))
                .order_by(AlertModel.id)
            ).all()
            return [alert.to_domain(recipient=user.to_domain()) for alert, user in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving active alerts: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve active alerts: {e}") from e

    def count_active(self) -> int:
        try:
            return self.session.execute(
                select(func.count(AlertModel.id)).where(AlertModel.is_active.is_(True))
            ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count alerts: {e}") from e

    def count_stale(self, cutoff: datetime) -> int:
        """Active alerts not updated since ``cutoff``. Reported, never modified."""
        try:
            return self.session.execute(
                select(func.count(AlertModel.id)).where(
                    AlertModel.is_active.is_(True),
                    AlertModel.updated_at < _format_datetime(cutoff),
                )
            ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count stale alerts: {e}") from e

    def create(self, alert: Alert, created_at: datetime) -> Alert:
        """Store an alert (seeding and tests only; the web app owns these rows)."""
        try:
            if self.session.get(UserModel, alert.user_id) is None:
                raise RecordNotFoundError(f"User {alert.user_id} does not exist")
            model = AlertModel(
                user_id=alert.user_id,
                neighborhoods=json.dumps(alert.neighborhoods),
                min_price=alert.min_price,
                max_price=alert.max_price,
                bedrooms=alert.bedrooms,
                pet_friendly=alert.pet_friendly,
                commute_destination=alert.commute_destination,
                max_commute_minutes=alert.max_commute_minutes,
                is_active=alert.is_active,
                created_at=_format_datetime(created_at),
                updated_at=_format_datetime(created_at),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create alert: {e}") from e


class NotificationRepository:
    """Insert-if-absent and status transitions for notification triples."""

    def __init__(self, session: Session):
        self.session = session

    def exists(self, user_id: int, alert_id: int, listing_id: int) -> bool:
        try:
            found = self.session.execute(
                select(NotificationModel.id).where(
                    NotificationModel.user_id == user_id,
                    NotificationModel.alert_id == alert_id,
                    NotificationModel.listing_id == listing_id,
                )
            ).first()
            return found is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking notification: {e}", exc_info=True)
            raise PersistenceError(f"Failed to check notification: {e}") from e

    def insert_if_absent(
        self, user_id: int, alert_id: int, listing_id: int, created_at: datetime
    ) -> bool:
        """Create a pending notification unless the triple already exists.

        Returns:
            True if a row was created, False if the triple was already present
        """
        if self.exists(user_id, alert_id, listing_id):
            return False

        stamp = _format_datetime(created_at)
        try:
            with self.session.begin_nested():
                self.session.add(
                    NotificationModel(
                        user_id=user_id,
                        alert_id=alert_id,
                        listing_id=listing_id,
                        status=NotificationStatus.PENDING.value,
                        retry_count=0,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
        except IntegrityError as e:
            if self.exists(user_id, alert_id, listing_id):
                logger.debug(
                    f"Notification ({user_id}, {alert_id}, {listing_id}) created concurrently"
                )
                return False
            raise DataIntegrityError(f"Failed to create notification: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create notification: {e}") from e
        return True

    def get_pending(self, limit: int) -> List[PendingNotification]:
        """Oldest pending notifications whose user, alert and listing are all active."""
        try:
            rows = self.session.execute(
                select(NotificationModel, ListingModel, UserModel)
                .join(ListingModel, ListingModel.id == NotificationModel.listing_id)
                .join(AlertModel, AlertModel.id == NotificationModel.alert_id)
                .join(UserModel, UserModel.id == NotificationModel.user_id)
                .where(
                    NotificationModel.status == NotificationStatus.PENDING.value,
                    ListingModel.is_active.is_(True),
                    AlertModel.is_active.is_(True),
                    UserModel.is_active.is_(True),
                )
                .order_by(NotificationModel.created_at, NotificationModel.id)
                .limit(limit)
            ).all()
            return [
                PendingNotification(
                    notification_id=notification.id,
                    alert_id=notification.alert_id,
                    recipient=user.to_domain(),
                    listing=listing.to_domain(),
                    created_at=_parse_datetime(notification.created_at),
                )
                for notification, listing, user in rows
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving pending notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve pending notifications: {e}") from e

    def mark_status(
        self,
        notification_ids: Sequence[int],
        status: NotificationStatus,
        updated_at: datetime,
        error: Optional[str] = None,
    ) -> int:
        """Move pending rows to ``status`` in one statement.

        Only rows still pending are touched, so replaying the update is harmless.
        """
        if not notification_ids:
            return 0
        try:
            result = self.session.execute(
                update(NotificationModel)
                .where(
                    NotificationModel.id.in_(list(notification_ids)),
                    NotificationModel.status == NotificationStatus.PENDING.value,
                )
                .values(status=status.value, error=error, updated_at=_format_datetime(updated_at))
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error updating notification status: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update notification status: {e}") from e

    def reset_failed(
        self, older_than: datetime, max_attempts: int, limit: int, now: datetime
    ) -> int:
        """Put up to ``limit`` stale failed rows back to pending.

        Rows that already used ``max_attempts`` retries stay failed for good.
        """
        try:
            ids = self.session.execute(
                select(NotificationModel.id)
                .where(
                    NotificationModel.status == NotificationStatus.FAILED.value,
                    NotificationModel.updated_at < _format_datetime(older_than),
                    NotificationModel.retry_count < max_attempts,
                )
                .order_by(NotificationModel.updated_at, NotificationModel.id)
                .limit(limit)
            ).scalars().all()
            if not ids:
                return 0
            result = self.session.execute(
                update(NotificationModel)
                .where(
                    NotificationModel.id.in_(ids),
                    NotificationModel.status == NotificationStatus.FAILED.value,
                )
                .values(
                    status=NotificationStatus.PENDING.value,
                    retry_count=NotificationModel.retry_count + 1,
                    updated_at=_format_datetime(now),
                )
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error resetting failed notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to reset failed notifications: {e}") from e

    def delete_history_older_than(self, cutoff: datetime, limit: int) -> int:
        """Delete up to ``limit`` sent/failed rows created before ``cutoff``.

        Only rows whose listing is inactive are eligible. A row for an active
        listing is what stops the Matcher from queueing the same triple again.
        """
        inactive_listings = select(ListingModel.id).where(ListingModel.is_active.is_(False))
        try:
            return _delete_chunk(
                self.session,
                NotificationModel,
                and_(
                    NotificationModel.status != NotificationStatus.PENDING.value,
                    NotificationModel.created_at < _format_datetime(cutoff),
                    NotificationModel.listing_id.in_(inactive_listings),
                ),
                limit,
            )
        except SQLAlchemyError as e:
            logger.error(f"Error deleting notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete notifications: {e}") from e

    def count_by_status(self) -> Dict[str, int]:
        try:
            rows = self.session.execute(
                select(NotificationModel.status, func.count(NotificationModel.id)).group_by(
                    NotificationModel.status
                )
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count notifications: {e}") from e

        counts = {status.value: 0 for status in NotificationStatus}
        counts.update({status: count for status, count in rows})
        return counts

    def count_outcomes_since(self, since: datetime) -> Dict[str, int]:
        """Sent and failed rows whose last status change is at or after ``since``."""
        outcomes = (NotificationStatus.SENT.value, NotificationStatus.FAILED.value)
        try:
            rows = self.session.execute(
                select(NotificationModel.status, func.count(NotificationModel.id))
                .where(
                    NotificationModel.status.in_(outcomes),
                    NotificationModel.updated_at >= _format_datetime(since),
                )
                .group_by(NotificationModel.status)
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count notification outcomes: {e}") from e

        counts = dict.fromkeys(outcomes, 0)
        counts.update({status: count for status, count in rows})
        return counts


class TokenRepository:
    """Expiry of auth tokens issued by the web application."""

    def __init__(self, session: Session):
        self.session = session

    def delete_older_than(self, cutoff: datetime, limit: int) -> int:
        try:
            return _delete_chunk(
                self.session,
                AuthTokenModel,
                AuthTokenModel.created_at < _format_datetime(cutoff),
                limit,
            )
        except SQLAlchemyError as e:
            logger.error(f"Error deleting auth tokens: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete auth tokens: {e}") from e
