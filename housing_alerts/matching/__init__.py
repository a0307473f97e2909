"""Alert matching: criteria evaluation, commute estimation and the Matcher job."""

from .commute import (
    CommuteEstimationError,
    CommuteEstimator,
    DistanceMatrixCommuteEstimator,
    NullCommuteEstimator,
    build_commute_estimator,
)
from .engine import AlertMatcher
from .models import CriterionCheck, MatchResult, MatchRunResult
from .service import MatcherJob

__all__ = [
    "AlertMatcher",
    "CommuteEstimationError",
    "CommuteEstimator",
    "CriterionCheck",
    "DistanceMatrixCommuteEstimator",
    "MatchResult",
    "MatchRunResult",
    "MatcherJob",
    "NullCommuteEstimator",
    "build_commute_estimator",
]
