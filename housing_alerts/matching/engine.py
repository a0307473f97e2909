"""Criteria evaluation of listings against saved alerts.

Static criteria (neighborhood, price, bedrooms, pets) are pure checks on the
two records. The commute criterion needs an estimate from a commute
estimator and is applied separately, only to listings that already passed
the static checks.
"""

import logging
from typing import Optional

from housing_alerts.domain.models import Alert, Listing

from .models import MatchResult

logger = logging.getLogger(__name__)


class AlertMatcher:
    """Evaluates listings against alert criteria.

    Rules:
    - neighborhood: case-insensitive membership; an empty alert set matches anything
    - price: each unset bound is open; an unknown price fails any set bound
    - bedrooms: exact match when set; unknown fails
    - pets: a pet-friendly alert needs ``pet_friendly`` exactly True
    - commute: within ``max_commute_minutes``; an unknown estimate passes
    """

    def __init__(self, logger_instance: Optional[logging.Logger] = None):
        self.logger = logger_instance or logger

    def evaluate_criteria(self, listing: Listing, alert: Alert) -> MatchResult:
        """Run the static checks and return every outcome with its reason."""
        result = MatchResult(alert_id=alert.id, listing_id=listing.id)
        self._check_neighborhood(result, listing, alert)
        self._check_price(result, listing, alert)
        self._check_bedrooms(result, listing, alert)
        self._check_pets(result, listing, alert)
        return result

    def apply_commute(
        self, result: MatchResult, alert: Alert, minutes: Optional[int]
    ) -> MatchResult:
        """Add the commute check for an estimate (None when unknown)."""
        if not alert.has_commute_constraint:
            return result

        result.commute_minutes = minutes
        limit = alert.max_commute_minutes
        if minutes is None:
            result.add("commute", True, f"commute to {alert.commute_destination} unknown")
        elif minutes <= limit:
            result.add("commute", True, f"commute {minutes} min within {limit} min")
        else:
            result.add("commute", False, f"commute {minutes} min exceeds {limit} min")
        return result

    @staticmethod
    def _check_neighborhood(result: MatchResult, listing: Listing, alert: Alert) -> None:
        if not alert.neighborhoods:
            result.add("neighborhood", True, "any neighborhood")
            return
        wanted = {name.lower() for name in alert.neighborhoods}
        if listing.neighborhood and listing.neighborhood.strip().lower() in wanted:
            result.add("neighborhood", True, f"in {listing.neighborhood}")
        elif listing.neighborhood:
            result.add("neighborhood", False, f"{listing.neighborhood} not in alert neighborhoods")
        else:
            result.add("neighborhood", False, "listing neighborhood unknown")

    @staticmethod
    def _check_price(result: MatchResult, listing: Listing, alert: Alert) -> None:
        if alert.min_price is None and alert.max_price is None:
            result.add("price", True, "any price")
            return
        if listing.price is None:
            result.add("price", False, "listing price unknown")
            return
        if alert.min_price is not None and listing.price < alert.min_price:
            result.add("price", False, f"${listing.price} below minimum ${alert.min_price}")
        elif alert.max_price is not None and listing.price > alert.max_price:
            result.add("price", False, f"${listing.price} above maximum ${alert.max_price}")
        else:
            result.add("price", True, f"${listing.price} within budget")

    @staticmethod
    def _check_bedrooms(result: MatchResult, listing: Listing, alert: Alert) -> None:
        if alert.bedrooms is None:
            result.add("bedrooms", True, "any bedroom count")
        elif listing.bedrooms is None:
            result.add("bedrooms", False, "listing bedroom count unknown")
        elif listing.bedrooms == alert.bedrooms:
            result.add("bedrooms", True, f"{listing.bedrooms} bedrooms")
        else:
            result.add(
                "bedrooms", False, f"{listing.bedrooms} bedrooms, wanted {alert.bedrooms}"
            )

    @staticmethod
    def _check_pets(result: MatchResult, listing: Listing, alert: Alert) -> None:
        if not alert.pet_friendly:
            result.add("pets", True, "pets not required")
        elif listing.pet_friendly is True:
            result.add("pets", True, "pet friendly")
        elif listing.pet_friendly is False:
            result.add("pets", False, "no pets allowed")
        else:
            result.add("pets", False, "pet policy unknown")
