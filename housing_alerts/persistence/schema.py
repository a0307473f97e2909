"""ORM models for users, alerts, listings, notifications and auth tokens.

``users``, ``alerts`` and ``auth_tokens`` are written by the web application;
the jobs only read them (and delete expired tokens). Timestamps are stored as
fixed-width ISO 8601 UTC strings, so string comparison is chronological.
"""

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from housing_alerts.domain.models import Alert, Listing, NotificationStatus, Recipient
from housing_alerts.utils.timestamps import format_timestamp, parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    return format_timestamp(dt, include_microseconds=True)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return parse_iso_datetime(value)


class UserModel(Base):
    """Subscriber accounts (owned by the web application)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(320), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    unsubscribe_token = Column(String(128), nullable=True, unique=True)
    created_at = Column(String(32), nullable=False)

    def to_domain(self) -> Recipient:
        return Recipient(
            id=self.id,
            email=self.email,
            is_active=bool(self.is_active),
            unsubscribe_token=self.unsubscribe_token,
        )


class AlertModel(Base):
    """Saved searches (owned by the web application).

    ``neighborhoods`` holds a JSON array of names.
    """

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    neighborhoods = Column(Text, nullable=False, default="[]")
    min_price = Column(Integer, nullable=True)
    max_price = Column(Integer, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    pet_friendly = Column(Boolean, nullable=True)
    commute_destination = Column(Text, nullable=True)
    max_commute_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String(32), nullable=False)
    updated_at = Column(String(32), nullable=False)

    __table_args__ = (
        Index("idx_alerts_user", "user_id"),
        Index("idx_alerts_active", "is_active"),
    )

    def to_domain(self, recipient: Optional[Recipient] = None) -> Alert:
        try:
            neighborhoods = json.loads(self.neighborhoods or "[]")
        except ValueError:
            logger.warning(f"Alert {self.id} has malformed neighborhoods JSON; treating as empty")
            neighborhoods = []
        if not isinstance(neighborhoods, list):
            neighborhoods = []

        return Alert(
            id=self.id,
            user_id=self.user_id,
            neighborhoods=[str(name) for name in neighborhoods],
            min_price=self.min_price,
            max_price=self.max_price,
            bedrooms=self.bedrooms,
            pet_friendly=self.pet_friendly,
            commute_destination=self.commute_destination,
            max_commute_minutes=self.max_commute_minutes,
            is_active=bool(self.is_active),
            created_at=_parse_datetime(self.created_at),
            recipient=recipient,
        )


class ListingModel(Base):
    """Harvested listings, unique by ``external_id``."""

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True)
    external_id = Column(String(128), nullable=False, unique=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=True)
    bedrooms = Column(Integer, nullable=True)
    neighborhood = Column(String(128), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    pet_friendly = Column(Boolean, nullable=True)
    listing_url = Column(Text, nullable=False)
    source = Column(String(64), nullable=False)
    region = Column(String(64), nullable=True)
    posted_at = Column(String(32), nullable=True)
    harvested_at = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    risk_score = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("idx_listings_harvested", "harvested_at"),
        Index("idx_listings_active", "is_active"),
        # Never reuse ids of purged rows; notification triples reference them.
        {"sqlite_autoincrement": True},
    )

    def to_domain(self) -> Listing:
        return Listing(
            id=self.id,
            external_id=self.external_id,
            title=self.title,
            description=self.description,
            price=self.price,
            bedrooms=self.bedrooms,
            neighborhood=self.neighborhood,
            latitude=self.latitude,
            longitude=self.longitude,
            pet_friendly=self.pet_friendly,
            listing_url=self.listing_url,
            source=self.source,
            region=self.region,
            posted_at=_parse_datetime(self.posted_at),
            harvested_at=_parse_datetime(self.harvested_at),
            is_active=bool(self.is_active),
            risk_score=self.risk_score or 0.0,
        )

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingModel":
        return cls(
            external_id=listing.external_id,
            title=listing.title,
            description=listing.description,
            price=listing.price,
            bedrooms=listing.bedrooms,
            neighborhood=listing.neighborhood,
            latitude=listing.latitude,
            longitude=listing.longitude,
            pet_friendly=listing.pet_friendly,
            listing_url=listing.listing_url,
            source=listing.source,
            region=listing.region,
            posted_at=_format_datetime(listing.posted_at),
            harvested_at=_format_datetime(listing.harvested_at),
            is_active=listing.is_active,
            risk_score=listing.risk_score,
        )


class NotificationModel(Base):
    """One row per (user, alert, listing) triple, ever.

    The unique constraint is what makes Matcher runs idempotent when two runs
    race past the existence check.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    alert_id = Column(Integer, ForeignKey("alerts.id", ondelete="CASCADE"), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(16), nullable=False, default=NotificationStatus.PENDING.value)
    error = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    created_at = Column(String(32), nullable=False)
    updated_at = Column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "alert_id", "listing_id", name="uq_notifications_triple"),
        Index("idx_notifications_status_created", "status", "created_at"),
        Index("idx_notifications_updated", "updated_at"),
    )


class AuthTokenModel(Base):
    """Login / verification tokens issued by the web application."""

    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(128), nullable=False, unique=True)
    purpose = Column(String(32), nullable=False, default="login")
    created_at = Column(String(32), nullable=False)

    __table_args__ = (Index("idx_auth_tokens_created", "created_at"),)


def create_schema(engine: Engine) -> None:
    """Create missing tables; existing tables are left untouched."""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.debug("Database schema ensured", extra={"event": "database.schema.ensured"})
