"""Normalization of raw posting fragments into Listing models.

Each field is extracted independently. A field that cannot be parsed is
logged and stored as None; only a missing title or detail link (already
rejected by ``RawPosting``) keeps a posting out.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from housing_alerts.config.models import HarvesterConfig, RegionConfig
from housing_alerts.domain.models import Listing, PostingDetail, RawPosting
from housing_alerts.logging import get_logger

from . import parsing
from .risk import assess_risk

logger = get_logger(__name__, component="harvester")


class ListingNormalizer:
    """Turns RawPosting (plus optional PostingDetail) into a Listing.

    Thresholds (price band, bedroom cap, pet patterns, bounding box) come from
    the harvester configuration.
    """

    def __init__(
        self,
        config: HarvesterConfig,
        source_name: str = "craigslist",
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.source_name = source_name
        self.logger = logger_instance or logger

    def normalize(
        self,
        raw: RawPosting,
        region: RegionConfig,
        harvested_at: datetime,
        detail: Optional[PostingDetail] = None,
    ) -> Listing:
        """Build a Listing from one fragment.

        Args:
            raw: Search-result fragment
            region: Region the fragment came from
            harvested_at: Timestamp stamped on the listing (UTC)
            detail: Detail page data, when harvesting in enhanced mode

        Returns:
            Listing with every field it could interpret
        """
        external_id = parsing.extract_external_id(raw.detail_url, self.source_name)
        description = detail.description.strip() if detail and detail.description else None

        price = self._attempt(
            "price", external_id,
            parsing.extract_price,
            raw.price_text,
            self.config.price_floor,
            self.config.price_ceiling,
        )

        bedrooms = self._attempt(
            "bedrooms", external_id,
            parsing.extract_bedrooms,
            " ".join(filter(None, [raw.housing_text, raw.title])),
            self.config.max_bedrooms,
        )

        pet_text = " ".join(
            filter(None, [raw.title, raw.housing_text, detail and detail.attributes_text, description])
        )
        pet_friendly = self._attempt(
            "pet_friendly", external_id,
            parsing.detect_pet_policy,
            pet_text,
            self.config.pet_positive_patterns,
            self.config.pet_negative_patterns,
        )

        coordinates = None
        if detail is not None:
            coordinates = self._attempt(
                "coordinates", external_id,
                parsing.validate_coordinates,
                detail.latitude,
                detail.longitude,
                self.config.bounding_box,
            )
        if coordinates is None:
            coordinates = self._attempt(
                "coordinates", external_id,
                parsing.extract_coordinates,
                raw.map_reference,
                self.config.bounding_box,
            )
        latitude, longitude = coordinates if coordinates else (None, None)

        neighborhood = self._attempt(
            "neighborhood", external_id,
            parsing.extract_neighborhood,
            " ".join(filter(None, [raw.title, raw.location_text])),
            region.neighborhoods,
            region.name,
        )

        age = self._attempt("posted_at", external_id, parsing.parse_age_minutes, raw.posted_text)
        posted_at = harvested_at - timedelta(minutes=age) if age is not None else None

        risk = assess_risk(raw.title, description, price, bedrooms)
        if risk.score >= 5:
            self.logger.info(
                f"High-risk listing {external_id} (score {risk.score})",
                extra={
                    "event": "harvester.listing.high_risk",
                    "external_id": external_id,
                    "risk_score": risk.score,
                    "reasons": risk.reasons,
                },
            )

        return Listing(
            external_id=external_id,
            title=raw.title,
            description=description,
            price=price,
            bedrooms=bedrooms,
            neighborhood=neighborhood,
            latitude=latitude,
            longitude=longitude,
            pet_friendly=pet_friendly,
            listing_url=raw.detail_url,
            source=self.source_name,
            region=region.code,
            posted_at=posted_at,
            harvested_at=harvested_at,
            risk_score=risk.score,
        )

    def _attempt(self, field_name: str, external_id: str, func: Callable[..., Any], *args) -> Any:
        """Run one extractor; a raised error becomes None for that field only."""
        try:
            return func(*args)
        except Exception as e:
            self.logger.warning(
                f"Could not parse {field_name} for listing {external_id}: {e}",
                extra={
                    "event": "harvester.field.unparseable",
                    "field": field_name,
                    "external_id": external_id,
                    "error_type": type(e).__name__,
                },
            )
            return None
