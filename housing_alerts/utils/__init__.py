"""Small shared helpers (time handling, identifiers)."""

from .hashing import stable_listing_id
from .timestamps import ensure_utc, format_timestamp, parse_iso_datetime, utc_now

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "stable_listing_id",
]
