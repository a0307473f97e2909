"""Matcher job: pair recent listings with active alerts and queue notifications."""

import asyncio
from datetime import timedelta
from typing import Callable, ContextManager, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from housing_alerts.config.models import MatcherConfig
from housing_alerts.domain.models import Alert, Listing
from housing_alerts.logging import get_logger
from housing_alerts.logging.context import log_context
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.repositories import (
    AlertRepository,
    ListingRepository,
    NotificationRepository,
)
from housing_alerts.utils.timestamps import utc_now

from .commute import CommuteEstimator, NullCommuteEstimator
from .engine import AlertMatcher
from .models import MatchRunResult

logger = get_logger(__name__, component="matcher")


class MatcherJob:
    """Evaluates active alerts against listings inside the lookback window.

    Each match becomes a pending notification through an insert-if-absent on
    the (user, alert, listing) triple, so re-running over the same data adds
    nothing. At most ``max_matches_per_alert`` notifications are created per
    alert per run.
    """

    def __init__(
        self,
        config: MatcherConfig,
        matcher: Optional[AlertMatcher] = None,
        commute_estimator: Optional[CommuteEstimator] = None,
        clock: Callable = utc_now,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        self.config = config
        self.matcher = matcher or AlertMatcher()
        self.commute_estimator = commute_estimator or NullCommuteEstimator()
        self.clock = clock
        self.session_factory = session_factory

    async def run(self, lookback_hours: Optional[int] = None) -> MatchRunResult:
        result = MatchRunResult()
        hours = lookback_hours or self.config.lookback_hours

        with log_context(run_id=uuid4().hex[:12], job_type="matcher"):
            since = self.clock() - timedelta(hours=hours)
            try:
                alerts, listings = await asyncio.to_thread(self._load_inputs, since)
            except Exception as e:
                result.success = False
                result.errors.append(f"Failed to load alerts and listings: {e}")
                logger.error(
                    f"Matcher could not load inputs: {e}",
                    exc_info=True,
                    extra={"event": "matcher.load.failed"},
                )
                return result

            result.alerts_evaluated = len(alerts)
            result.listings_evaluated = len(listings)
            logger.info(
                f"Matching {len(listings)} listings against {len(alerts)} alerts",
                extra={
                    "event": "matcher.run.started",
                    "alerts": len(alerts),
                    "listings": len(listings),
                    "lookback_hours": hours,
                },
            )

            for alert in alerts:
                with log_context(alert_id=alert.id):
                    try:
                        await self._process_alert(alert, listings, result)
                    except Exception as e:
                        result.errors.append(f"Alert {alert.id}: {e}")
                        logger.error(
                            f"Matching failed for alert {alert.id}: {e}",
                            exc_info=True,
                            extra={"event": "matcher.alert.failed"},
                        )

            if result.errors:
                result.success = False
            logger.info(
                f"Matcher finished: {result.matches_found} matches, "
                f"{result.notifications_generated} new notifications",
                extra={"event": "matcher.run.completed", **result.as_dict()},
            )
        return result

    async def _process_alert(
        self, alert: Alert, listings: List[Listing], result: MatchRunResult
    ) -> None:
        matched_ids = []
        for listing in listings:
            match = self.matcher.evaluate_criteria(listing, alert)
            if match.matched and alert.has_commute_constraint:
                minutes = await self._estimate_commute(listing, alert)
                self.matcher.apply_commute(match, alert, minutes)
            if not match.matched:
                continue

            result.matches_found += 1
            logger.debug(
                f"Listing {listing.id} matches alert {alert.id}",
                extra={
                    "event": "matcher.match.found",
                    "listing_id": listing.id,
                    "reasons": match.reasons,
                },
            )
            matched_ids.append(listing.id)

        if not matched_ids:
            return

        created, capped = await asyncio.to_thread(self._create_notifications, alert, matched_ids)
        result.notifications_generated += created
        if capped:
            result.capped_alerts.append(alert.id)
            logger.info(
                f"Alert {alert.id} reached {self.config.max_matches_per_alert} new notifications this run",
                extra={"event": "matcher.alert.capped", "cap": self.config.max_matches_per_alert},
            )

    async def _estimate_commute(self, listing: Listing, alert: Alert) -> Optional[int]:
        if not listing.has_coordinates:
            return None
        try:
            return await asyncio.to_thread(
                self.commute_estimator.estimate,
                listing.latitude,
                listing.longitude,
                alert.commute_destination,
            )
        except Exception as e:
            logger.warning(
                f"Commute estimate failed for listing {listing.id}: {e}",
                extra={"event": "matcher.commute.failed", "listing_id": listing.id},
            )
            return None

    def _load_inputs(self, since) -> Tuple[List[Alert], List[Listing]]:
        with self.session_factory() as session:
            alerts = AlertRepository(session).get_active_with_recipients()
            listings = ListingRepository(session).get_active_since(since)
        return alerts, listings

    def _create_notifications(self, alert: Alert, listing_ids: List[int]) -> Tuple[int, bool]:
        """Insert pending rows for one alert, stopping at the per-run cap."""
        cap = self.config.max_matches_per_alert
        created = 0
        now = self.clock()
        with self.session_factory() as session:
            repo = NotificationRepository(session)
            for listing_id in listing_ids:
                if created >= cap:
                    return created, True
                if repo.insert_if_absent(alert.user_id, alert.id, listing_id, now):
                    created += 1
        return created, False
