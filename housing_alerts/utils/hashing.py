"""Deterministic identifiers for listings that lack a numeric posting id."""

import hashlib


def stable_listing_id(source: str, reference: str) -> str:
    """Derive a stable external id from a source name and a posting reference.

    The reference is usually the detail URL. The same inputs always produce
    the same id, so re-harvesting a posting is caught by the dedup key.

    Args:
        source: Listing source name (e.g. "craigslist")
        reference: Detail URL or other stable reference text

    Returns:
        ``"<source>-<first 16 hex chars of sha256>"``

    Example:
        >>> stable_listing_id("craigslist", "https://example.org/a")[:11]
        'craigslist-'
    """
    composite = f"{source.strip().lower()}:{reference.strip()}"
    digest = hashlib.sha256(composite.encode("utf-8")).hexdigest()
    return f"{source.strip().lower()}-{digest[:16]}"
