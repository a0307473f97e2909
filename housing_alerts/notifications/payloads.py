"""Template context for listing digests."""

from typing import Dict, List, Optional, Sequence

from housing_alerts.domain.models import Listing, Recipient


def _bedrooms_label(bedrooms: Optional[int]) -> Optional[str]:
    if bedrooms is None:
        return None
    if bedrooms == 0:
        return "Studio"
    return f"{bedrooms} BR"


def _pets_label(pet_friendly: Optional[bool]) -> Optional[str]:
    if pet_friendly is True:
        return "Pets OK"
    if pet_friendly is False:
        return "No pets"
    return None


def build_listing_payload(listing: Listing) -> Dict:
    """Flatten one listing for the templates; unknown fields become None."""
    return {
        "title": listing.title,
        "url": listing.listing_url,
        "price": listing.price,
        "bedrooms": _bedrooms_label(listing.bedrooms),
        "neighborhood": listing.neighborhood,
        "pets": _pets_label(listing.pet_friendly),
        "posted_at": listing.posted_at.isoformat() if listing.posted_at else None,
        "risk_warning": listing.risk_score >= 5,
    }


def build_unsubscribe_url(app_url: str, token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return f"{app_url.rstrip('/')}/api/unsubscribe/{token}"


def build_digest_context(
    recipient: Recipient,
    listings: Sequence[Listing],
    app_url: str,
    max_listings: int = 25,
) -> Dict:
    """Build the context for one recipient's digest.

    Args:
        recipient: Who the digest goes to
        listings: Every matched listing of the batch, oldest first
        app_url: Base URL of the web application
        max_listings: How many listings are shown in full

    Returns:
        Dictionary with ``listings``, ``listing_count``, ``hidden_count``,
        ``recipient_email``, ``app_url`` and ``unsubscribe_url``
    """
    shown: List[Dict] = [build_listing_payload(listing) for listing in listings[:max_listings]]
    return {
        "listings": shown,
        "listing_count": len(listings),
        "hidden_count": max(0, len(listings) - len(shown)),
        "recipient_email": recipient.email,
        "app_url": app_url.rstrip("/"),
        "unsubscribe_url": build_unsubscribe_url(app_url, recipient.unsubscribe_token),
    }
