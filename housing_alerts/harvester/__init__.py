"""Listing harvesting: sources, field parsing, normalization and the Harvester job."""

from .base import ListingSource
from .craigslist import CraigslistSource
from .exceptions import (
    SourceConfigurationError,
    SourceError,
    SourceHTTPError,
    SourceResponseError,
    SourceTimeoutError,
)
from .factory import build_source
from .models import HarvestResult
from .normalizer import ListingNormalizer
from .service import Harvester

__all__ = [
    "CraigslistSource",
    "HarvestResult",
    "Harvester",
    "ListingNormalizer",
    "ListingSource",
    "SourceConfigurationError",
    "SourceError",
    "SourceHTTPError",
    "SourceResponseError",
    "SourceTimeoutError",
    "build_source",
]
