"""Tests for alert criteria evaluation and the Matcher job."""

import asyncio
from datetime import timedelta
from unittest.mock import Mock

import pytest

from housing_alerts.config.models import MatcherConfig
from housing_alerts.domain.models import Alert
from housing_alerts.matching import AlertMatcher, CommuteEstimator, MatcherJob
from tests.helpers import (
    NOW,
    fixed_clock,
    make_listing,
    notification_rows,
    seed_alert,
    seed_listings,
    seed_user,
)


def make_alert(**criteria):
    return Alert(id=1, user_id=1, **criteria)


@pytest.fixture
def matcher():
    return AlertMatcher()


class TestNeighborhoodCriterion:
    """Test neighborhood membership."""

    def test_empty_set_matches_anything(self, matcher):
        result = matcher.evaluate_criteria(make_listing("1", neighborhood=None), make_alert())
        assert result.matched is True
        assert "any neighborhood" in result.reasons

    def test_case_insensitive(self, matcher):
        alert = make_alert(neighborhoods=["astoria", "Long Island City"])
        assert matcher.evaluate_criteria(make_listing("1", neighborhood="ASTORIA"), alert).matched

    def test_other_neighborhood(self, matcher):
        alert = make_alert(neighborhoods=["Williamsburg"])
        result = matcher.evaluate_criteria(make_listing("1"), alert)
        assert result.matched is False
        assert result.failed_checks == ["neighborhood"]

    def test_unknown_neighborhood_fails_constrained_alert(self, matcher):
        alert = make_alert(neighborhoods=["Astoria"])
        result = matcher.evaluate_criteria(make_listing("1", neighborhood=None), alert)
        assert "listing neighborhood unknown" in result.reasons


class TestPriceCriterion:
    """Test price bounds."""

    @pytest.mark.parametrize(
        "min_price,max_price,price,expected",
        [
            (None, None, 2400, True),
            (None, None, None, True),
            (2000, 2500, 2400, True),
            (2000, 2500, 2000, True),
            (2000, 2500, 2500, True),
            (2000, 2500, 1999, False),
            (2000, 2500, 2501, False),
            (None, 2500, 1000, True),
            (3000, None, 2400, False),
            (None, 2500, None, False),
        ],
    )
    def test_bounds(self, matcher, min_price, max_price, price, expected):
        """Test bounds are inclusive, open when unset, and unknown prices fail set bounds."""
        alert = make_alert(min_price=min_price, max_price=max_price)
        result = matcher.evaluate_criteria(make_listing("1", price=price), alert)
        assert result.matched is expected


class TestBedroomsCriterion:
    """Test the exact bedroom count."""

    def test_exact_match(self, matcher):
        assert matcher.evaluate_criteria(make_listing("1", bedrooms=2), make_alert(bedrooms=2)).matched

    def test_studio_is_zero(self, matcher):
        assert matcher.evaluate_criteria(make_listing("1", bedrooms=0), make_alert(bedrooms=0)).matched

    def test_mismatch(self, matcher):
        result = matcher.evaluate_criteria(make_listing("1", bedrooms=1), make_alert(bedrooms=2))
        assert result.failed_checks == ["bedrooms"]
        assert "1 bedrooms, wanted 2" in result.reasons

    def test_unknown_fails(self, matcher):
        result = matcher.evaluate_criteria(make_listing("1", bedrooms=None), make_alert(bedrooms=1))
        assert result.matched is False


class TestPetsCriterion:
    """Test the pet requirement against three-valued listings."""

    @pytest.mark.parametrize(
        "required,listing_value,expected",
        [
            (True, True, True),
            (True, False, False),
            (True, None, False),
            (False, None, True),
            (None, False, True),
        ],
    )
    def test_pets(self, matcher, required, listing_value, expected):
        alert = make_alert(pet_friendly=required)
        listing = make_listing("1", pet_friendly=listing_value)
        assert matcher.evaluate_criteria(listing, alert).matched is expected


class TestCommuteCriterion:
    """Test applying commute estimates."""

    ALERT = dict(commute_destination="Union Square", max_commute_minutes=30)

    def test_within_limit(self, matcher):
        alert = make_alert(**self.ALERT)
        result = matcher.apply_commute(matcher.evaluate_criteria(make_listing("1"), alert), alert, 30)
        assert result.matched is True
        assert result.commute_minutes == 30

    def test_over_limit(self, matcher):
        alert = make_alert(**self.ALERT)
        result = matcher.apply_commute(matcher.evaluate_criteria(make_listing("1"), alert), alert, 31)
        assert result.failed_checks == ["commute"]

    def test_unknown_estimate_passes(self, matcher):
        alert = make_alert(**self.ALERT)
        result = matcher.apply_commute(matcher.evaluate_criteria(make_listing("1"), alert), alert, None)
        assert result.matched is True
        assert "commute to Union Square unknown" in result.reasons

    def test_no_constraint_adds_nothing(self, matcher):
        alert = make_alert(commute_destination="Union Square")
        before = matcher.evaluate_criteria(make_listing("1"), alert)
        after = matcher.apply_commute(before, alert, 90)
        assert [check.name for check in after.checks] == ["neighborhood", "price", "bedrooms", "pets"]


def run_matcher(config=None, estimator=None, **kwargs):
    job = MatcherJob(config or MatcherConfig(), commute_estimator=estimator, clock=fixed_clock())
    return asyncio.run(job.run(**kwargs))


class TestMatcherJob:
    """Test the Matcher job against an in-memory database."""

    def test_creates_pending_notifications(self, database):
        user = seed_user("alice@example.com")
        alert = seed_alert(user.id, neighborhoods=["astoria"], max_price=2500)
        listings = seed_listings(
            make_listing("1001"),
            make_listing("1002", neighborhood="Harlem"),
            make_listing("1003", price=3000),
        )

        result = run_matcher()

        assert result.success is True
        assert result.alerts_evaluated == 1
        assert result.listings_evaluated == 3
        assert result.matches_found == 1
        assert result.notifications_generated == 1
        rows = notification_rows()
        assert [(r["user_id"], r["alert_id"], r["listing_id"], r["status"]) for r in rows] == [
            (user.id, alert.id, listings[0].id, "pending")
        ]

    def test_rerun_adds_nothing(self, database):
        user = seed_user("alice@example.com")
        seed_alert(user.id)
        seed_listings(make_listing("1001"), make_listing("1002"))

        first = run_matcher()
        second = run_matcher()

        assert first.notifications_generated == 2
        assert second.matches_found == 2
        assert second.notifications_generated == 0
        assert len(notification_rows()) == 2

    def test_unknown_pet_policy_never_matches_pet_alert(self, database):
        user = seed_user("alice@example.com")
        seed_alert(user.id, pet_friendly=True)
        seed_listings(make_listing("1001", pet_friendly=None), make_listing("1002", pet_friendly=False))

        result = run_matcher()

        assert result.matches_found == 0
        assert notification_rows() == []

    def test_per_alert_cap(self, database):
        """Test the cap limits new rows per run and the rest arrive next run."""
        user = seed_user("alice@example.com")
        alert = seed_alert(user.id)
        seed_listings(make_listing("1001"), make_listing("1002"), make_listing("1003"))
        config = MatcherConfig(max_matches_per_alert=2)

        first = run_matcher(config)
        second = run_matcher(config)

        assert first.matches_found == 3
        assert first.notifications_generated == 2
        assert first.capped_alerts == [alert.id]
        assert second.notifications_generated == 1
        assert second.capped_alerts == []

    def test_lookback_window(self, database):
        user = seed_user("alice@example.com")
        seed_alert(user.id)
        seed_listings(
            make_listing("1001"),
            make_listing("1002", harvested_at=NOW - timedelta(hours=30)),
        )

        assert run_matcher().listings_evaluated == 1
        assert run_matcher(lookback_hours=48).listings_evaluated == 2

    def test_inactive_users_and_alerts_skipped(self, database):
        inactive = seed_user("gone@example.com", is_active=False)
        active = seed_user("alice@example.com")
        seed_alert(inactive.id)
        seed_alert(active.id, is_active=False)
        seed_listings(make_listing("1001"))

        result = run_matcher()

        assert result.alerts_evaluated == 0
        assert notification_rows() == []

    def test_commute_filter(self, database):
        """Test estimates filter listings and listings without coordinates pass."""
        user = seed_user("alice@example.com")
        seed_alert(user.id, commute_destination="Union Square", max_commute_minutes=30)
        seed_listings(
            make_listing("1001", latitude=40.76, longitude=-73.92),
            make_listing("1002", latitude=40.70, longitude=-73.90),
            make_listing("1003"),
        )
        estimator = Mock(spec=CommuteEstimator)
        estimator.estimate.side_effect = lambda lat, lon, destination: 25 if lat == 40.76 else 50

        result = run_matcher(estimator=estimator)

        assert result.matches_found == 2
        assert estimator.estimate.call_count == 2
        estimator.estimate.assert_any_call(40.76, -73.92, "Union Square")

    def test_commute_estimator_error_treated_as_unknown(self, database):
        user = seed_user("alice@example.com")
        seed_alert(user.id, commute_destination="Union Square", max_commute_minutes=30)
        seed_listings(make_listing("1001", latitude=40.76, longitude=-73.92))
        estimator = Mock(spec=CommuteEstimator)
        estimator.estimate.side_effect = RuntimeError("quota exceeded")

        result = run_matcher(estimator=estimator)

        assert result.matches_found == 1
        assert result.success is True

    def test_load_failure_reported(self):
        def broken_session():
            raise RuntimeError("database is locked")

        job = MatcherJob(MatcherConfig(), clock=fixed_clock(), session_factory=broken_session)
        result = asyncio.run(job.run())

        assert result.success is False
        assert "database is locked" in result.errors[0]
