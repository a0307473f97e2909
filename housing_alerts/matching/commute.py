"""Commute time estimation for alerts with a commute constraint.

The Matcher only needs ``estimate(latitude, longitude, destination)`` which
returns whole minutes or None when the estimate is unavailable. An
unavailable estimate never disqualifies a listing.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import requests

from housing_alerts.logging import get_logger

logger = get_logger(__name__, component="commute")

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


class CommuteEstimationError(Exception):
    """Raised when a commute lookup fails."""


class CommuteEstimator(ABC):
    """Estimates door-to-door commute minutes from a point to a destination."""

    @abstractmethod
    def estimate(self, latitude: float, longitude: float, destination: str) -> Optional[int]:
        """Return commute minutes, or None if no estimate is available."""

    def close(self) -> None:
        pass


class NullCommuteEstimator(CommuteEstimator):
    """Used when no commute service is configured: every estimate is unknown."""

    def estimate(self, latitude: float, longitude: float, destination: str) -> Optional[int]:
        return None


class DistanceMatrixCommuteEstimator(CommuteEstimator):
    """Transit commute estimates from the Google Distance Matrix API.

    Results (including "no route") are cached in memory per rounded origin
    and destination for ``cache_ttl_seconds``. Failures are logged and
    reported as unknown.
    """

    def __init__(
        self,
        api_key: str,
        timeout: int = 10,
        cache_ttl_seconds: int = 86400,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.timeout = timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self._session = session or requests.Session()
        self._clock = clock
        self._cache: Dict[Tuple[float, float, str], Tuple[float, Optional[int]]] = {}
        self._lock = threading.Lock()

    def estimate(self, latitude: float, longitude: float, destination: str) -> Optional[int]:
        key = (round(latitude, 4), round(longitude, 4), destination.strip().lower())
        now = self._clock()

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None and now - cached[0] < self.cache_ttl_seconds:
                return cached[1]

        try:
            minutes = self._lookup(latitude, longitude, destination)
        except CommuteEstimationError as e:
            logger.warning(
                f"Commute lookup failed: {e}",
                extra={"event": "commute.lookup.failed", "destination": destination},
            )
            return None

        with self._lock:
            self._cache[key] = (now, minutes)
        return minutes

    def _lookup(self, latitude: float, longitude: float, destination: str) -> Optional[int]:
        """Query the API; None means the service found no route.

        Raises:
            CommuteEstimationError: On transport errors or an error status
        """
        params = {
            "origins": f"{latitude},{longitude}",
            "destinations": destination,
            "mode": "transit",
            "key": self.api_key,
        }
        try:
            response = self._session.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.RequestException as e:
            raise CommuteEstimationError(f"Distance Matrix request failed: {e}") from e
        except ValueError as e:
            raise CommuteEstimationError(f"Distance Matrix returned invalid JSON: {e}") from e

        status = payload.get("status")
        if status != "OK":
            raise CommuteEstimationError(f"Distance Matrix status {status}")

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise CommuteEstimationError("Distance Matrix response missing elements") from e

        if element.get("status") != "OK":
            return None
        return round(element["duration"]["value"] / 60)

    def close(self) -> None:
        self._session.close()


def build_commute_estimator(
    api_key: Optional[str], timeout: int = 10, cache_ttl_seconds: int = 86400
) -> CommuteEstimator:
    """Distance Matrix estimator when an API key is configured, otherwise the null one."""
    if api_key:
        return DistanceMatrixCommuteEstimator(
            api_key, timeout=timeout, cache_ttl_seconds=cache_ttl_seconds
        )
    logger.info(
        "No GOOGLE_MAPS_API_KEY set; commute constraints will not filter listings",
        extra={"event": "commute.disabled"},
    )
    return NullCommuteEstimator()
