"""Core domain models for listings, alerts, recipients and notifications.

- RawPosting / PostingDetail: fragments returned by a listing source
- Listing: a normalized housing posting
- Recipient / Alert: subscriber and saved search (owned by the web app)
- PendingNotification: a pending notification joined with what delivery needs
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class NotificationStatus(str, Enum):
    """Delivery state of one (user, alert, listing) notification."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RawPosting(BaseModel):
    """One search-result fragment as returned by a listing source.

    Everything except the title and detail reference is free text that the
    normalizer may or may not be able to interpret.
    """

    region_code: str = Field(..., description="Region the fragment was fetched from")
    title: str = Field(..., description="Posting title")
    detail_url: str = Field(..., description="Link to the posting detail page")
    price_text: Optional[str] = Field(None, description="Raw price label, e.g. '$2,500'")
    posted_text: Optional[str] = Field(None, description="Relative time label, e.g. '12m ago'")
    location_text: Optional[str] = Field(None, description="Location/meta text")
    housing_text: Optional[str] = Field(None, description="Housing summary, e.g. '2br - 800ft2'")
    map_reference: Optional[str] = Field(None, description="Embedded map link, if any")

    @field_validator("title", "detail_url")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Strip whitespace from required text fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()


class PostingDetail(BaseModel):
    """Extra data read from a posting's detail page (enhanced harvesting)."""

    description: Optional[str] = None
    attributes_text: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Listing(BaseModel):
    """A normalized housing listing.

    Missing or unparseable fields are stored as None; ``pet_friendly`` is
    three-valued where None means the posting gave no signal.
    """

    id: Optional[int] = Field(None, description="Storage id, set once persisted")
    external_id: str = Field(..., description="Source posting id, the dedup key")
    title: str
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    neighborhood: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    pet_friendly: Optional[bool] = None
    listing_url: str
    source: str = "craigslist"
    region: Optional[str] = None
    posted_at: Optional[datetime] = None
    harvested_at: datetime
    is_active: bool = True
    risk_score: float = Field(0.0, ge=0, le=10)

    model_config = {
        "json_schema_extra": {
            "example": {
                "external_id": "7712345678",
                "title": "Sunny 1BR in Astoria, pets ok",
                "price": 2400,
                "bedrooms": 1,
                "neighborhood": "Astoria",
                "pet_friendly": True,
                "listing_url": "https://newyork.craigslist.org/que/apa/d/x/7712345678.html",
                "harvested_at": "2025-11-04T12:00:00Z",
            }
        }
    }

    @field_validator("external_id", "title", "listing_url")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from string fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    @field_validator("posted_at", "harvested_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _as_utc(v)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Recipient(BaseModel):
    """A subscriber as seen by the core (read-only)."""

    id: int
    email: str
    is_active: bool = True
    unsubscribe_token: Optional[str] = None


class Alert(BaseModel):
    """A saved search. Unset bounds and an empty neighborhood set mean "no constraint"."""

    id: int
    user_id: int
    neighborhoods: List[str] = Field(default_factory=list)
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    pet_friendly: Optional[bool] = Field(None, description="True means pets required")
    commute_destination: Optional[str] = None
    max_commute_minutes: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    created_at: Optional[datetime] = None
    recipient: Optional[Recipient] = None

    @field_validator("neighborhoods")
    @classmethod
    def strip_neighborhoods(cls, v: List[str]) -> List[str]:
        return [name.strip() for name in v if name and name.strip()]

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_price_bounds(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot exceed max_price")
        return self

    @property
    def has_commute_constraint(self) -> bool:
        return bool(self.commute_destination) and self.max_commute_minutes is not None


class PendingNotification(BaseModel):
    """A pending notification with the listing and recipient needed to deliver it."""

    notification_id: int
    alert_id: int
    recipient: Recipient
    listing: Listing
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)
