"""Tests for the Craigslist listing source and the source factory."""

from unittest.mock import Mock

import pytest
import requests

from housing_alerts.config.models import AdvancedConfig, HarvesterConfig, RegionConfig
from housing_alerts.harvester import (
    CraigslistSource,
    SourceConfigurationError,
    SourceHTTPError,
    SourceTimeoutError,
    build_source,
)

SEARCH_PAGE = """
<html><body><ol class="cl-results">
<li class="cl-search-result" data-pid="7712345678">
  <div class="result-info">
    <a class="cl-app-anchor text-only posting-title" href="/que/apa/d/astoria-sunny/7712345678.html">
      <span class="label">Sunny 1BR in Astoria, pets ok</span>
    </a>
    <div class="meta"><span title="Tue Nov 04 2025 11:48">12m ago</span><span class="separator"></span>(Astoria)</div>
    <span class="priceinfo">$2,400</span>
    <span class="housing">1br - 650ft2</span>
    <a href="https://maps.google.com/?ll=40.7614,-73.9776">map</a>
  </div>
</li>
<li class="cl-static-search-result" title="Studio in LIC">
  <a href="https://newyork.craigslist.org/que/apa/d/lic-studio/7712345679.html">
    <div class="title">Studio in LIC</div>
    <div class="details"><div class="price">$2,100</div><div class="location">Long Island City</div></div>
  </a>
</li>
<li class="cl-search-result"><div class="result-info"><span>No link here</span></div></li>
</ol></body></html>
"""

DETAIL_PAGE = """
<html><body>
<section id="postingbody">
  <div class="print-information print-qrcode-container">QR Code Link to This Post</div>
  Spacious one bedroom with lots of light.
  Pets welcome.
</section>
<div class="mapAndAttrs">
  <div id="map" data-latitude="40.7614" data-longitude="-73.9776"></div>
  <p class="attrgroup"><span>1BR / 1Ba</span></p>
  <p class="attrgroup"><span>cats are OK - purrr</span></p>
</div>
</body></html>
"""


@pytest.fixture
def region():
    return RegionConfig(name="Queens", code="que")


def make_session(status_code=200, text="", side_effect=None):
    session = Mock()
    session.headers = {}
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = Mock(status_code=status_code, text=text, reason="Service Unavailable")
    return session


class TestParseSearchPage:
    """Test search result parsing."""

    def test_parses_both_result_layouts(self, region):
        postings = CraigslistSource(session=make_session()).parse_search_page(SEARCH_PAGE, region)

        assert len(postings) == 2
        first, second = postings

        assert first.title == "Sunny 1BR in Astoria, pets ok"
        assert first.detail_url == "https://newyork.craigslist.org/que/apa/d/astoria-sunny/7712345678.html"
        assert first.price_text == "$2,400"
        assert first.posted_text == "12m ago"
        assert "(Astoria)" in first.location_text
        assert first.housing_text == "1br - 650ft2"
        assert first.map_reference == "https://maps.google.com/?ll=40.7614,-73.9776"
        assert first.region_code == "que"

        assert second.title == "Studio in LIC"
        assert second.price_text == "$2,100"
        assert second.location_text == "Long Island City"
        assert second.posted_text is None
        assert second.map_reference is None

    def test_empty_page(self, region):
        source = CraigslistSource(session=make_session())
        assert source.parse_search_page("<html><body></body></html>", region) == []


class TestParseDetailPage:
    """Test detail page parsing."""

    def test_extracts_description_attributes_and_map(self):
        detail = CraigslistSource(session=make_session()).parse_detail_page(DETAIL_PAGE)

        assert "Spacious one bedroom" in detail.description
        assert "QR Code" not in detail.description
        assert detail.attributes_text == "1BR / 1Ba cats are OK - purrr"
        assert detail.latitude == 40.7614
        assert detail.longitude == -73.9776

    def test_missing_sections(self):
        detail = CraigslistSource(session=make_session()).parse_detail_page("<html></html>")
        assert detail.description is None
        assert detail.attributes_text is None
        assert detail.latitude is None


class TestFetching:
    """Test HTTP behavior of the source."""

    def test_fetch_region_requests_sorted_search(self, region):
        session = make_session(text=SEARCH_PAGE)
        source = CraigslistSource(timeout=15, session=session)

        postings = source.fetch_region(region, 45)

        assert len(postings) == 2
        session.get.assert_called_once_with(
            "https://newyork.craigslist.org/search/que/apa", params={"sort": "date"}, timeout=15
        )
        assert session.headers["User-Agent"].startswith("Mozilla/5.0")

    def test_http_error(self, region):
        source = CraigslistSource(session=make_session(status_code=503))
        with pytest.raises(SourceHTTPError) as exc_info:
            source.fetch_region(region, 45)
        assert exc_info.value.status_code == 503

    def test_timeout(self, region):
        source = CraigslistSource(session=make_session(side_effect=requests.exceptions.Timeout()))
        with pytest.raises(SourceTimeoutError):
            source.fetch_region(region, 45)

    def test_connection_error(self, region):
        source = CraigslistSource(
            session=make_session(side_effect=requests.exceptions.ConnectionError("refused"))
        )
        with pytest.raises(SourceHTTPError) as exc_info:
            source.fetch_region(region, 45)
        assert exc_info.value.status_code == 0

    def test_invalid_settings(self):
        with pytest.raises(SourceConfigurationError):
            CraigslistSource(timeout=0, session=make_session())
        with pytest.raises(SourceConfigurationError):
            CraigslistSource(user_agent="  ", session=make_session())


class TestBuildSource:
    """Test the source factory."""

    def test_builds_craigslist(self):
        source = build_source(HarvesterConfig(), AdvancedConfig(http_request_timeout=20))
        try:
            assert isinstance(source, CraigslistSource)
            assert source.timeout == 20
        finally:
            source.close()

    def test_unknown_source(self):
        with pytest.raises(SourceConfigurationError, match="Unknown listing source"):
            build_source(HarvesterConfig(source="zillow"), AdvancedConfig())
