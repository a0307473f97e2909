"""Tests for the Notifier job and recipient batching."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

from housing_alerts.config.models import NotifierConfig
from housing_alerts.domain.models import PendingNotification, Recipient
from housing_alerts.notifications import NotifierJob, group_by_recipient
from housing_alerts.notifications.service import MARK_RETRY_DELAY_SECONDS
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.exceptions import PersistenceError
from housing_alerts.persistence.repositories import NotificationRepository
from tests.helpers import (
    NOW,
    RecordingDelivery,
    fixed_clock,
    make_listing,
    notification_rows,
    seed_alert,
    seed_listings,
    seed_user,
    update_notifications,
)


def queue(pairs, created_at=NOW):
    """Create pending notifications for (alert, listing) pairs."""
    with get_session() as session:
        repo = NotificationRepository(session)
        for alert, listing in pairs:
            repo.insert_if_absent(alert.user_id, alert.id, listing.id, created_at)


def make_job(delivery=None, sleep=None, **config):
    return NotifierJob(
        NotifierConfig(**config),
        delivery=delivery,
        clock=fixed_clock(),
        sleep=sleep or AsyncMock(),
    )


def seed_two_recipients():
    alice = seed_user("alice@example.com", token="tok-alice")
    bob = seed_user("bob@example.com", token="tok-bob")
    alice_alert = seed_alert(alice.id)
    bob_alert = seed_alert(bob.id)
    first, second = seed_listings(make_listing("1001"), make_listing("1002"))
    queue([(alice_alert, first), (alice_alert, second), (bob_alert, first)])
    return first, second


class TestNotifierDelivery:
    """Test one digest per recipient and the resulting status updates."""

    def test_one_message_per_recipient(self, database):
        first, second = seed_two_recipients()
        delivery = RecordingDelivery()

        result = asyncio.run(make_job(delivery).run())

        assert delivery.calls == [
            ("alice@example.com", [first.id, second.id]),
            ("bob@example.com", [first.id]),
        ]
        assert result.success is True
        assert result.notifications_processed == 3
        assert result.emails_sent == 2
        assert result.users_notified == 2
        assert {row["status"] for row in notification_rows()} == {"sent"}

    def test_failed_batch_marks_every_row_failed(self, database):
        """Test a rejected digest fails all of that recipient's rows and no one else's."""
        seed_two_recipients()
        delivery = RecordingDelivery(fail_for=["alice@example.com"])

        result = asyncio.run(make_job(delivery).run())

        rows = notification_rows()
        assert [row["status"] for row in rows] == ["failed", "failed", "sent"]
        assert rows[0]["error"] == "550 mailbox unavailable"
        assert result.success is False
        assert result.emails_failed == 1
        assert result.emails_sent == 1
        assert result.users_notified == 1

    def test_delivery_exception_recorded(self, database):
        seed_two_recipients()
        delivery = RecordingDelivery(raise_for=["bob@example.com"])

        result = asyncio.run(make_job(delivery).run())

        rows = notification_rows()
        assert rows[2]["status"] == "failed"
        assert rows[2]["error"] == "RuntimeError: connection reset"
        assert any("connection reset" in error for error in result.errors)

    def test_second_run_sends_nothing(self, database):
        seed_two_recipients()
        delivery = RecordingDelivery()
        job = make_job(delivery)

        asyncio.run(job.run())
        result = asyncio.run(job.run())

        assert len(delivery.calls) == 2
        assert result.notifications_processed == 0
        assert result.success is True

    def test_delay_only_between_batches(self, database):
        seed_two_recipients()
        sleep = AsyncMock()

        asyncio.run(make_job(RecordingDelivery(), sleep=sleep, batch_delay_seconds=0.5).run())

        assert [call.args[0] for call in sleep.await_args_list] == [0.5]

    def test_max_notifications_limits_rows(self, database):
        first, _ = seed_two_recipients()
        delivery = RecordingDelivery()

        result = asyncio.run(make_job(delivery).run(max_notifications=1))

        assert result.notifications_processed == 1
        assert delivery.calls == [("alice@example.com", [first.id])]


class TestNotifierSkipDelivery:
    """Test running without a delivery channel."""

    def test_skip_delivery_marks_sent(self, database):
        seed_two_recipients()

        result = asyncio.run(make_job(delivery=None).run(skip_delivery=True))

        assert result.success is True
        assert result.emails_sent == 2
        assert {row["status"] for row in notification_rows()} == {"sent"}

    def test_skip_delivery_from_config(self, database):
        seed_two_recipients()
        result = asyncio.run(make_job(delivery=None, skip_delivery=True).run())
        assert result.emails_sent == 2

    def test_missing_delivery_is_an_error(self, database):
        seed_two_recipients()

        result = asyncio.run(make_job(delivery=None).run())

        assert result.success is False
        assert result.errors == ["No delivery channel configured"]
        assert {row["status"] for row in notification_rows()} == {"pending"}


class TestNotifierRetries:
    """Test the failed-row retry sweep and status counts."""

    def test_reset_failed(self, database):
        seed_two_recipients()
        rows = notification_rows()
        update_notifications(
            [rows[0]["id"], rows[1]["id"]],
            status="failed",
            updated_at=NOW - timedelta(hours=2),
        )
        update_notifications([rows[2]["id"]], status="failed", updated_at=NOW - timedelta(minutes=10))

        reset = asyncio.run(make_job(RecordingDelivery()).reset_failed())

        after = notification_rows()
        assert reset == 2
        assert [row["status"] for row in after] == ["pending", "pending", "failed"]
        assert [row["retry_count"] for row in after] == [1, 1, 0]

    def test_exhausted_rows_stay_failed(self, database):
        seed_two_recipients()
        ids = [row["id"] for row in notification_rows()]
        update_notifications(ids, status="failed", retry_count=3, updated_at=NOW - timedelta(hours=2))

        assert asyncio.run(make_job(RecordingDelivery()).reset_failed()) == 0

    def test_pending_stats(self, database):
        seed_two_recipients()
        rows = notification_rows()
        update_notifications([rows[0]["id"]], status="sent")

        stats = asyncio.run(make_job(RecordingDelivery()).pending_stats())

        assert stats == {"pending": 2, "sent": 1, "failed": 0}

    def test_success_stats_window(self, database):
        seed_two_recipients()
        recent_sent, recent_failed, old_sent = [row["id"] for row in notification_rows()]
        update_notifications([recent_sent], status="sent", updated_at=NOW - timedelta(hours=1))
        update_notifications([recent_failed], status="failed", updated_at=NOW - timedelta(hours=2))
        update_notifications([old_sent], status="sent", updated_at=NOW - timedelta(hours=30))
        job = make_job(RecordingDelivery())

        day = asyncio.run(job.success_stats())
        two_days = asyncio.run(job.success_stats(hours=48))

        assert (day.sent, day.failed, day.success_rate) == (1, 1, 0.5)
        assert (two_days.sent, two_days.failed) == (2, 1)
        assert two_days.as_dict()["window_hours"] == 48

    def test_success_stats_without_outcomes(self, database):
        seed_two_recipients()

        stats = asyncio.run(make_job(RecordingDelivery()).success_stats())

        assert (stats.sent, stats.failed, stats.success_rate) == (0, 0, 0.0)


class TestOutcomeRecording:
    """Test persisting a batch outcome after delivery."""

    def test_recording_retried_once(self, database, monkeypatch):
        seed_two_recipients()
        mark_status = NotificationRepository.mark_status
        attempts = []

        def flaky_mark_status(self, *args, **kwargs):
            attempts.append(args[1])
            if len(attempts) == 1:
                raise PersistenceError("database is locked")
            return mark_status(self, *args, **kwargs)

        monkeypatch.setattr(NotificationRepository, "mark_status", flaky_mark_status)
        delivery = RecordingDelivery()
        sleep = AsyncMock()

        result = asyncio.run(make_job(delivery, sleep=sleep, batch_delay_seconds=0).run())

        assert result.success is True
        assert result.emails_sent == 2
        assert len(delivery.calls) == 2
        assert len(attempts) == 3
        sleep.assert_awaited_once_with(MARK_RETRY_DELAY_SECONDS)
        assert [row["status"] for row in notification_rows()] == ["sent", "sent", "sent"]

    def test_unrecorded_delivery_reported(self, database, monkeypatch):
        seed_two_recipients()
        monkeypatch.setattr(
            NotificationRepository,
            "mark_status",
            Mock(side_effect=PersistenceError("disk I/O error")),
        )

        result = asyncio.run(make_job(RecordingDelivery(), batch_delay_seconds=0).run())

        assert result.success is False
        assert result.emails_sent == 2
        assert "could not record sent" in result.errors[0]
        assert [row["status"] for row in notification_rows()] == ["pending", "pending", "pending"]


def make_pending(notification_id, email, listing_id):
    return PendingNotification(
        notification_id=notification_id,
        alert_id=1,
        recipient=Recipient(id=notification_id, email=email),
        listing=make_listing(str(listing_id), id=listing_id),
        created_at=NOW,
    )


def test_group_by_recipient_ignores_case_and_keeps_order():
    pending = [
        make_pending(1, "Carol@Example.com", 10),
        make_pending(2, "dave@example.com", 11),
        make_pending(3, "carol@example.com ", 12),
    ]

    batches = group_by_recipient(pending)

    assert list(batches) == ["carol@example.com", "dave@example.com"]
    assert [item.notification_id for item in batches["carol@example.com"]] == [1, 3]

