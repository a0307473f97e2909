"""Tests for raw posting normalization."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from housing_alerts.config.models import HarvesterConfig, RegionConfig
from housing_alerts.domain.models import PostingDetail
from housing_alerts.harvester import parsing
from housing_alerts.harvester.normalizer import ListingNormalizer
from tests.helpers import NOW, make_raw_posting


@pytest.fixture
def region():
    return RegionConfig(name="Queens", code="que", neighborhoods=["Astoria", "Long Island City"])


@pytest.fixture
def normalizer():
    return ListingNormalizer(HarvesterConfig(), logger_instance=Mock())


class TestListingNormalizer:
    """Test ListingNormalizer.normalize."""

    def test_full_fragment(self, normalizer, region):
        """Test every field is extracted from a complete fragment."""
        raw = make_raw_posting(
            "7712345678",
            map_reference="https://maps.google.com/?ll=40.7614,-73.9776",
        )

        listing = normalizer.normalize(raw, region, NOW)

        assert listing.external_id == "7712345678"
        assert listing.title == "Sunny 1BR in Astoria, pets ok"
        assert listing.price == 2400
        assert listing.bedrooms == 1
        assert listing.pet_friendly is True
        assert listing.neighborhood == "Astoria"
        assert (listing.latitude, listing.longitude) == (40.7614, -73.9776)
        assert listing.region == "que"
        assert listing.source == "craigslist"
        assert listing.harvested_at == NOW
        assert listing.posted_at == NOW - timedelta(minutes=10)
        assert listing.description is None
        assert listing.risk_score == 0.0

    def test_missing_fields_become_none(self, normalizer, region):
        """Test an almost empty fragment still yields a listing."""
        raw = make_raw_posting(
            "7712345679",
            title="Apartment available",
            price=None,
            posted=None,
            housing=None,
            location=None,
        )

        listing = normalizer.normalize(raw, region, NOW)

        assert listing.price is None
        assert listing.bedrooms is None
        assert listing.pet_friendly is None
        assert listing.posted_at is None
        assert listing.has_coordinates is False
        assert listing.neighborhood == "Queens"

    def test_out_of_band_price_dropped(self, normalizer, region):
        raw = make_raw_posting("7712345680", price="$95")
        assert normalizer.normalize(raw, region, NOW).price is None

    def test_detail_enriches_listing(self, normalizer, region):
        """Test detail data supplies description, pets and coordinates."""
        raw = make_raw_posting("7712345681", title="1BR near the park", housing="1br")
        detail = PostingDetail(
            description="  Spacious one bedroom with lots of light.  ",
            attributes_text="cats are OK - purrr",
            latitude=40.7441,
            longitude=-73.9488,
        )

        listing = normalizer.normalize(raw, region, NOW, detail=detail)

        assert listing.description == "Spacious one bedroom with lots of light."
        assert listing.pet_friendly is True
        assert (listing.latitude, listing.longitude) == (40.7441, -73.9488)

    def test_detail_coordinates_outside_box_fall_back_to_map(self, normalizer, region):
        raw = make_raw_posting("7712345682", map_reference="https://maps.google.com/?ll=40.70,-73.90")
        detail = PostingDetail(latitude=0.0, longitude=0.0)

        listing = normalizer.normalize(raw, region, NOW, detail=detail)

        assert (listing.latitude, listing.longitude) == (40.70, -73.90)

    def test_extractor_error_isolated_to_field(self, region, monkeypatch):
        """Test a raising extractor only blanks its own field and is logged."""
        log = Mock()
        normalizer = ListingNormalizer(HarvesterConfig(), logger_instance=log)
        monkeypatch.setattr(parsing, "extract_price", Mock(side_effect=ValueError("bad price")))

        listing = normalizer.normalize(make_raw_posting("7712345683"), region, NOW)

        assert listing.price is None
        assert listing.bedrooms == 1
        log.warning.assert_called_once()
        extra = log.warning.call_args.kwargs["extra"]
        assert extra["event"] == "harvester.field.unparseable"
        assert extra["field"] == "price"

    def test_high_risk_listing_logged(self, region):
        log = Mock()
        normalizer = ListingNormalizer(HarvesterConfig(), logger_instance=log)
        raw = make_raw_posting(
            "7712345684", title="2br, wire money to hold, I am overseas", price="$900", housing="2br"
        )

        listing = normalizer.normalize(raw, region, NOW)

        assert listing.risk_score >= 5
        log.info.assert_called_once()
        assert log.info.call_args.kwargs["extra"]["event"] == "harvester.listing.high_risk"

    def test_hash_id_when_url_has_no_number(self, normalizer, region):
        raw = make_raw_posting("7712345685").model_copy(
            update={"detail_url": "https://newyork.craigslist.org/que/apa/d/sunny-apartment"}
        )
        listing = normalizer.normalize(raw, region, NOW)
        assert listing.external_id.startswith("craigslist-")
