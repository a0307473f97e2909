"""Tests for the retention (cleanup) job."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from housing_alerts.config.models import MatcherConfig, NotifierConfig, RetentionConfig
from housing_alerts.matching import MatcherJob
from housing_alerts.notifications.service import NotifierJob
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.exceptions import PersistenceError
from housing_alerts.persistence.repositories import (
    AlertRepository,
    ListingRepository,
    NotificationRepository,
    TokenRepository,
)
from housing_alerts.retention import RetentionJob
from tests.helpers import (
    NOW,
    RecordingDelivery,
    fixed_clock,
    make_listing,
    notification_rows,
    seed_alert,
    seed_listings,
    seed_token,
    seed_user,
    update_notifications,
)


def run_cleanup(**config):
    job = RetentionJob(RetentionConfig(**config), clock=fixed_clock())
    return asyncio.run(job.run())


def listing_states():
    with get_session() as session:
        repo = ListingRepository(session)
        states = {}
        for external_id in ("fresh", "month-old", "two-months-old"):
            listing = repo.get_by_external_id(external_id)
            states[external_id] = listing.is_active if listing else None
        return states


@pytest.fixture
def user(database):
    return seed_user("alice@example.com")


class TestListingRetention:
    """Test deactivation and purge of old listings."""

    def test_deactivate_then_purge(self, user):
        seed_listings(
            make_listing("fresh"),
            make_listing("month-old", harvested_at=NOW - timedelta(days=31)),
            make_listing("two-months-old", harvested_at=NOW - timedelta(days=61)),
        )

        result = run_cleanup()

        assert result.listings_deactivated == 2
        assert result.listings_deleted == 1
        assert listing_states() == {"fresh": True, "month-old": False, "two-months-old": None}

    def test_second_run_changes_nothing(self, user):
        seed_listings(make_listing("month-old", harvested_at=NOW - timedelta(days=31)))

        run_cleanup()
        result = run_cleanup()

        assert result.listings_deactivated == 0
        assert result.listings_deleted == 0

    def test_small_chunks_cover_everything(self, user):
        seed_listings(
            *[make_listing(f"old-{n}", harvested_at=NOW - timedelta(days=40)) for n in range(5)]
        )

        result = run_cleanup(chunk_size=2)

        assert result.listings_deactivated == 5


class TestNotificationRetention:
    """Test notification history purge."""

    def test_only_old_history_deleted(self, user):
        (listing,) = seed_listings(make_listing("gone", is_active=False))
        alerts = [seed_alert(user.id) for _ in range(3)]
        with get_session() as session:
            repo = NotificationRepository(session)
            for alert in alerts:
                repo.insert_if_absent(user.id, alert.id, listing.id, NOW)
        old_sent, old_pending, recent_sent = [row["id"] for row in notification_rows()]
        update_notifications([old_sent], status="sent", created_at=NOW - timedelta(days=91))
        update_notifications([old_pending], created_at=NOW - timedelta(days=91))
        update_notifications([recent_sent], status="sent", created_at=NOW - timedelta(days=10))

        result = run_cleanup()

        assert result.notifications_deleted == 1
        assert [row["id"] for row in notification_rows()] == [old_pending, recent_sent]

    def test_history_of_active_listing_kept(self, user):
        (listing,) = seed_listings(make_listing("still-listed"))
        alert = seed_alert(user.id)
        with get_session() as session:
            NotificationRepository(session).insert_if_absent(user.id, alert.id, listing.id, NOW)
        update_notifications(
            [row["id"] for row in notification_rows()],
            status="sent",
            created_at=NOW - timedelta(days=91),
        )

        result = run_cleanup()

        assert result.notifications_deleted == 0
        assert len(notification_rows()) == 1

    def test_short_history_never_causes_resend(self, user):
        """Test a listing still in the lookback window is not emailed twice."""
        seed_listings(make_listing("1001", harvested_at=NOW - timedelta(hours=50)))
        seed_alert(user.id)
        delivery = RecordingDelivery()
        matcher_config = MatcherConfig(lookback_hours=72)

        def match_and_notify(moment):
            asyncio.run(MatcherJob(matcher_config, clock=fixed_clock(moment)).run())
            notifier = NotifierJob(
                NotifierConfig(), delivery=delivery, clock=fixed_clock(moment), sleep=AsyncMock()
            )
            asyncio.run(notifier.run())

        match_and_notify(NOW - timedelta(hours=49))
        run_cleanup(notification_retention_days=1)
        match_and_notify(NOW)

        assert len(delivery.calls) == 1
        assert [row["status"] for row in notification_rows()] == ["sent"]


class TestTokenAndAlertRetention:
    """Test token expiry and the stale alert report."""

    def test_expired_tokens_deleted(self, user):
        seed_token(user.id, "old-1", NOW - timedelta(days=31))
        seed_token(user.id, "old-2", NOW - timedelta(days=45))
        seed_token(user.id, "new", NOW - timedelta(days=1))

        result = run_cleanup(chunk_size=1)

        assert result.tokens_deleted == 2

    def test_stale_alerts_counted_not_changed(self, user):
        seed_alert(user.id, created_at=NOW - timedelta(days=200))
        seed_alert(user.id)

        result = run_cleanup()

        assert result.stale_alerts == 1
        with get_session() as session:
            assert AlertRepository(session).count_active() == 2


class TestRetentionErrors:
    """Test one failing category does not stop the others."""

    def test_failing_step_isolated(self, user, monkeypatch):
        seed_listings(make_listing("month-old", harvested_at=NOW - timedelta(days=31)))
        seed_token(user.id, "old", NOW - timedelta(days=31))
        monkeypatch.setattr(
            NotificationRepository,
            "delete_history_older_than",
            Mock(side_effect=PersistenceError("disk I/O error")),
        )

        result = run_cleanup()

        assert result.success is False
        assert result.errors == ["notifications_deleted: disk I/O error"]
        assert result.listings_deactivated == 1
        assert result.tokens_deleted == 1

    def test_as_dict(self, user):
        data = run_cleanup().as_dict()
        assert data == {
            "success": True,
            "listings_deactivated": 0,
            "listings_deleted": 0,
            "notifications_deleted": 0,
            "tokens_deleted": 0,
            "stale_alerts": 0,
            "errors": [],
        }


def test_token_repository_respects_limit(database):
    user = seed_user("bob@example.com")
    for n in range(3):
        seed_token(user.id, f"t{n}", NOW - timedelta(days=40))

    with get_session() as session:
        assert TokenRepository(session).delete_older_than(NOW - timedelta(days=30), limit=2) == 2
