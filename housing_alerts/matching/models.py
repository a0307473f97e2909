"""Data models for alert matching."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class CriterionCheck:
    """Outcome of one criterion of an alert against one listing.

    Attributes:
        name: Criterion name ("neighborhood", "price", "bedrooms", "pets", "commute")
        passed: Whether the listing satisfies it
        reason: Human-readable explanation
    """

    name: str
    passed: bool
    reason: str


@dataclass
class MatchResult:
    """Evaluation of one listing against one alert.

    Attributes:
        alert_id: Alert evaluated
        listing_id: Listing evaluated
        checks: Every criterion checked, in evaluation order
        commute_minutes: Estimated commute, when one was computed
    """

    alert_id: int
    listing_id: Optional[int]
    checks: List[CriterionCheck] = field(default_factory=list)
    commute_minutes: Optional[int] = None

    @property
    def matched(self) -> bool:
        return all(check.passed for check in self.checks)

    @property
    def reasons(self) -> List[str]:
        return [check.reason for check in self.checks]

    @property
    def failed_checks(self) -> List[str]:
        return [check.name for check in self.checks if not check.passed]

    def add(self, name: str, passed: bool, reason: str) -> None:
        self.checks.append(CriterionCheck(name=name, passed=passed, reason=reason))


@dataclass
class MatchRunResult:
    """Outcome of one Matcher run.

    Attributes:
        success: False when the run could not load its inputs or hit errors
        matches_found: Listing/alert pairs satisfying every criterion
        notifications_generated: Pending notifications newly created
        alerts_evaluated: Active alerts considered
        listings_evaluated: Active listings inside the lookback window
        capped_alerts: Alerts that hit the per-run notification cap
        errors: One message per failure
    """

    success: bool = True
    matches_found: int = 0
    notifications_generated: int = 0
    alerts_evaluated: int = 0
    listings_evaluated: int = 0
    capped_alerts: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "matches_found": self.matches_found,
            "notifications_generated": self.notifications_generated,
            "alerts_evaluated": self.alerts_evaluated,
            "listings_evaluated": self.listings_evaluated,
            "capped_alerts": list(self.capped_alerts),
            "errors": list(self.errors),
        }
