"""Test helper utilities for the housing alert job tests."""

from .fakes import ManualScheduler, RecordingDelivery, StubJob
from .fixture_source import FixtureSource, make_raw_posting
from .records import (
    NOW,
    fixed_clock,
    make_listing,
    notification_rows,
    seed_alert,
    seed_listings,
    seed_token,
    seed_user,
    update_notifications,
)

__all__ = [
    "NOW",
    "FixtureSource",
    "ManualScheduler",
    "RecordingDelivery",
    "StubJob",
    "fixed_clock",
    "make_listing",
    "make_raw_posting",
    "notification_rows",
    "seed_alert",
    "seed_listings",
    "seed_token",
    "seed_user",
    "update_notifications",
]
