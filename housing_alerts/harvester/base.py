"""Base class for listing sources.

A listing source turns one region into raw posting fragments and, for
enhanced harvesting, one posting into its detail data. Sources are blocking
(``requests``); the Harvester calls them through ``asyncio.to_thread``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import requests

from housing_alerts.config.models import RegionConfig
from housing_alerts.domain.models import PostingDetail, RawPosting
from housing_alerts.logging import get_logger

from .exceptions import SourceConfigurationError, SourceHTTPError, SourceTimeoutError

logger = get_logger(__name__, component="source")


class ListingSource(ABC):
    """Base class for every listing source.

    Subclasses implement :meth:`fetch_region` and may override
    :meth:`fetch_detail` when the source has detail pages.

    Attributes:
        name: Source name stored on each listing
        timeout: HTTP request timeout in seconds
        user_agent: User-Agent header for HTTP requests
    """

    name = "base"

    def __init__(
        self,
        timeout: int = 30,
        user_agent: str = "Mozilla/5.0 (compatible; HousingAlerts/0.1)",
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the HTTP session.

        Raises:
            SourceConfigurationError: If timeout is outside 1-300 seconds or
                user_agent is empty
        """
        if not 1 <= timeout <= 300:
            raise SourceConfigurationError(
                f"Timeout must be between 1 and 300 seconds, got: {timeout}"
            )
        if not user_agent or not user_agent.strip():
            raise SourceConfigurationError("user_agent cannot be empty")

        self.timeout = timeout
        self.user_agent = user_agent.strip()
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent})

    @abstractmethod
    def fetch_region(self, region: RegionConfig, recency_minutes: int) -> List[RawPosting]:
        """Return the raw posting fragments currently listed for ``region``.

        ``recency_minutes`` is a hint; sources may return older postings and
        rely on the Harvester's recency filter.

        Raises:
            SourceError: On any failure fetching or reading the region
        """

    def fetch_detail(self, posting: RawPosting) -> Optional[PostingDetail]:
        """Return detail data for one posting, or None if the source has none."""
        return None

    def close(self) -> None:
        self._session.close()

    def _get_text(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        """GET ``url`` and return the body text.

        Raises:
            SourceHTTPError: On 4xx/5xx responses or connection failures
            SourceTimeoutError: On timeout
        """
        logger.debug(
            f"HTTP GET {url}",
            extra={"event": "source.fetch.request", "url": url, "timeout": self.timeout},
        )

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "source.fetch.timeout", "url": url},
            )
            raise SourceTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.warning(
                f"Request to {url} failed: {e}",
                extra={"event": "source.fetch.error", "error_type": type(e).__name__, "url": url},
            )
            raise SourceHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            level = logging.WARNING if response.status_code >= 500 else logging.ERROR
            logger.log(
                level,
                f"HTTP {response.status_code} from {url}",
                extra={"event": "source.fetch.http_error", "status_code": response.status_code, "url": url},
            )
            raise SourceHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        return response.text
