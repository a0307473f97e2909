"""UTC helpers shared by the jobs, the repositories and the status surface.

Every timestamp the system stores or compares is timezone-aware UTC. Naive
values coming from storage or fixtures are interpreted as UTC.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime.

    This is the default clock injected into the orchestrator and the jobs.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC.

    Args:
        dt: Datetime to normalize (naive values are taken as UTC)

    Returns:
        Aware UTC datetime, or None when ``dt`` is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 string (with or without a trailing ``Z``).

    Returns None for empty or malformed input instead of raising.

    Example:
        >>> parse_iso_datetime("2025-11-04T12:00:00Z").hour
        12
    """
    if not value or not value.strip():
        return None

    cleaned = value.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        return None


def format_timestamp(dt: Optional[datetime], include_microseconds: bool = True) -> Optional[str]:
    """Format a datetime as a sortable UTC string with a ``Z`` suffix.

    Stored timestamps keep microseconds so that lexical order matches
    chronological order; log output usually drops them.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, tzinfo=timezone.utc), False)
        '2025-11-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    if include_microseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")
