"""Factory function for instantiating listing sources."""

import logging

from housing_alerts.config.models import AdvancedConfig, HarvesterConfig

from .base import ListingSource
from .craigslist import CraigslistSource
from .exceptions import SourceConfigurationError

logger = logging.getLogger(__name__)

SOURCES = {
    "craigslist": CraigslistSource,
}


def build_source(harvester_config: HarvesterConfig, advanced_config: AdvancedConfig) -> ListingSource:
    """Instantiate the listing source named in the harvester configuration.

    Raises:
        SourceConfigurationError: If the source name is unknown or the
            source rejects its settings
    """
    name = harvester_config.source.lower()
    source_class = SOURCES.get(name)
    if source_class is None:
        supported = ", ".join(sorted(SOURCES))
        raise SourceConfigurationError(
            f"Unknown listing source: {harvester_config.source}. Supported sources: {supported}"
        )

    logger.debug(
        "Creating listing source",
        extra={"event": "source.created", "source": name, "source_class": source_class.__name__},
    )

    try:
        return source_class(
            timeout=advanced_config.http_request_timeout,
            user_agent=advanced_config.user_agent,
        )
    except SourceConfigurationError:
        raise
    except Exception as e:
        raise SourceConfigurationError(f"Failed to create {name} source: {e}") from e
