"""Field extraction for raw posting text.

Each helper is independent and returns None (or "unknown") when it cannot
interpret its input, so one bad field never blocks the rest of a listing.
Thresholds default to the NYC values and are overridable from configuration.
"""

import re
from typing import Iterable, List, Optional, Tuple

from housing_alerts.config.defaults import (
    DEFAULT_BOUNDING_BOX,
    DEFAULT_PET_NEGATIVE_PATTERNS,
    DEFAULT_PET_POSITIVE_PATTERNS,
)
from housing_alerts.config.models import BoundingBox
from housing_alerts.utils.hashing import stable_listing_id

_DEFAULT_BOX = BoundingBox.model_validate(DEFAULT_BOUNDING_BOX)

_MINUTES_AGO = re.compile(r"^(\d+)\s*(?:minutes?|mins?|m)\s+ago$")
_HOURS_AGO = re.compile(r"^(\d+)\s*(?:hours?|hrs?|h)\s+ago$")
_JUST_NOW = {"just now", "now"}

_PRICE = re.compile(r"\$?\s*(\d[\d,]*)")
_BEDROOMS = re.compile(r"\b(\d+)\s*(?:br|bd|bed|bedroom)s?\b")
_STUDIO = re.compile(r"\b(?:studio|efficiency)\b")
_POSTING_ID = re.compile(r"/(\d+)\.html?\b")

_NUMBER = r"(-?\d{1,3}(?:\.\d+)?)"
_COORDINATE_PATTERNS = [
    re.compile(rf"lat(?:itude)?={_NUMBER}.*?(?:lng|lon|longitude)={_NUMBER}"),
    re.compile(rf"[?&]ll={_NUMBER},\s*{_NUMBER}"),
    re.compile(rf"@{_NUMBER},\s*{_NUMBER}"),
    re.compile(rf"[?&]q=(?:loc:)?{_NUMBER},\s*{_NUMBER}"),
]


def parse_age_minutes(label: Optional[str]) -> Optional[int]:
    """Convert a relative-time label to minutes of age.

    Understands "just now", "Xm ago", "X min ago", "X minutes ago", "Xh ago"
    and "X hours ago". Anything else gives None.

    Examples:
        >>> parse_age_minutes("12m ago")
        12
        >>> parse_age_minutes("2 hours ago")
        120
    """
    if not label:
        return None

    text = " ".join(label.lower().split())
    if text in _JUST_NOW:
        return 0

    match = _MINUTES_AGO.match(text)
    if match:
        return int(match.group(1))

    match = _HOURS_AGO.match(text)
    if match:
        return int(match.group(1)) * 60

    return None


def within_window(label: Optional[str], window_minutes: int) -> bool:
    """True if the posting age is known and at most ``window_minutes``.

    The boundary is inclusive; unparseable labels are never considered recent.

    Examples:
        >>> within_window("45m ago", 45)
        True
        >>> within_window("46m ago", 45)
        False
        >>> within_window("garbage", 45)
        False
    """
    age = parse_age_minutes(label)
    return age is not None and age <= window_minutes


def extract_price(text: Optional[str], floor: int = 500, ceiling: int = 20000) -> Optional[int]:
    """Parse a price label into whole dollars inside ``[floor, ceiling]``.

    Examples:
        >>> extract_price("$2,500")
        2500
        >>> extract_price("$100") is None
        True
    """
    if not text:
        return None

    match = _PRICE.search(text)
    if not match:
        return None

    price = int(match.group(1).replace(",", ""))
    if price < floor or price > ceiling:
        return None
    return price


def extract_bedrooms(text: Optional[str], max_bedrooms: int = 6) -> Optional[int]:
    """Read a bedroom count from free text.

    A numeric count ("2br", "3 bedrooms") wins; otherwise "studio" or
    "efficiency" means 0. Counts above ``max_bedrooms`` are discarded.
    """
    if not text:
        return None

    lowered = text.lower()
    match = _BEDROOMS.search(lowered)
    if match:
        count = int(match.group(1))
        return count if count <= max_bedrooms else None

    if _STUDIO.search(lowered):
        return 0
    return None


def detect_pet_policy(
    text: Optional[str],
    positive_patterns: Iterable[str] = DEFAULT_PET_POSITIVE_PATTERNS,
    negative_patterns: Iterable[str] = DEFAULT_PET_NEGATIVE_PATTERNS,
) -> Optional[bool]:
    """Three-valued pet policy: False on a negative signal, True on a positive one.

    Negative patterns are checked first. No signal gives None (unknown).
    """
    if not text:
        return None

    for pattern in negative_patterns:
        if re.search(pattern, text, re.IGNORECASE):
            return False
    for pattern in positive_patterns:
        if re.search(pattern, text, re.IGNORECASE):
            return True
    return None


def validate_coordinates(
    latitude: Optional[float],
    longitude: Optional[float],
    bounding_box: Optional[BoundingBox] = None,
) -> Optional[Tuple[float, float]]:
    """Return the pair if both values are present and inside the box."""
    if latitude is None or longitude is None:
        return None
    box = bounding_box or _DEFAULT_BOX
    if not box.contains(latitude, longitude):
        return None
    return latitude, longitude


def extract_coordinates(
    map_reference: Optional[str], bounding_box: Optional[BoundingBox] = None
) -> Optional[Tuple[float, float]]:
    """Pull a (latitude, longitude) pair out of an embedded map link.

    Values outside the metro bounding box count as extraction failures.
    """
    if not map_reference:
        return None

    for pattern in _COORDINATE_PATTERNS:
        match = pattern.search(map_reference)
        if match:
            return validate_coordinates(float(match.group(1)), float(match.group(2)), bounding_box)
    return None


def extract_neighborhood(
    text: Optional[str], vocabulary: List[str], fallback: Optional[str] = None
) -> Optional[str]:
    """Find the first known neighborhood name in ``text``.

    Longer names are tried first so "east harlem" is preferred to "harlem".
    The match is returned title-cased; with no match, ``fallback``.
    """
    if not text or not vocabulary:
        return fallback

    lowered = " ".join(text.lower().split())
    for name in sorted(vocabulary, key=len, reverse=True):
        if re.search(rf"\b{re.escape(name)}\b", lowered):
            return " ".join(word.capitalize() for word in name.split())
    return fallback


def extract_external_id(detail_url: str, source: str) -> str:
    """Numeric posting id from the detail URL, or a stable hash of the URL."""
    match = _POSTING_ID.search(detail_url)
    if match:
        return match.group(1)
    return stable_listing_id(source, detail_url)
