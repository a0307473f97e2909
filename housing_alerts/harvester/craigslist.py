"""Craigslist apartment search source.

Search pages are read with BeautifulSoup. Both the script-rendered result
markup (``li.cl-search-result``) and the static fallback
(``li.cl-static-search-result``) are recognized.
"""

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from housing_alerts.config.models import RegionConfig
from housing_alerts.domain.models import PostingDetail, RawPosting
from housing_alerts.logging import get_logger

from .base import ListingSource
from .exceptions import SourceResponseError

logger = get_logger(__name__, component="source")

RESULT_SELECTOR = "li.cl-search-result, li.cl-static-search-result"
TITLE_SELECTOR = ".posting-title .label, .title"
LINK_SELECTOR = "a.cl-app-anchor, a[href]"
PRICE_SELECTOR = ".priceinfo, .price"
POSTED_SELECTOR = ".meta span[title]"
LOCATION_SELECTOR = ".meta, .location"
HOUSING_SELECTOR = ".housing"
MAP_SELECTOR = 'a[href*="maps.google"]'


def _text(node, selector: str) -> Optional[str]:
    element = node.select_one(selector)
    if element is None:
        return None
    value = " ".join(element.get_text(" ").split())
    return value or None


def _float_attr(element, name: str) -> Optional[float]:
    value = element.get(name)
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class CraigslistSource(ListingSource):
    """Reads apartment postings from Craigslist region search pages."""

    name = "craigslist"

    def fetch_region(self, region: RegionConfig, recency_minutes: int) -> List[RawPosting]:
        html = self._get_text(region.url, params={"sort": "date"})
        postings = self.parse_search_page(html, region)
        logger.debug(
            f"Parsed {len(postings)} postings for region {region.code}",
            extra={"event": "source.region.parsed", "region": region.code, "count": len(postings)},
        )
        return postings

    def fetch_detail(self, posting: RawPosting) -> Optional[PostingDetail]:
        html = self._get_text(posting.detail_url)
        return self.parse_detail_page(html)

    def parse_search_page(self, html: str, region: RegionConfig) -> List[RawPosting]:
        """Extract posting fragments from a search results page.

        Results without a title or a link are skipped.

        Raises:
            SourceResponseError: If the page cannot be parsed at all
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise SourceResponseError(f"Unparseable search page for {region.code}: {e}") from e

        postings = []
        for result in soup.select(RESULT_SELECTOR):
            link = result.select_one(LINK_SELECTOR)
            title = _text(result, TITLE_SELECTOR) or (result.get("title") or "").strip()
            if link is None or not link.get("href") or not title:
                continue

            posted = result.select_one(POSTED_SELECTOR)
            map_link = result.select_one(MAP_SELECTOR)
            postings.append(
                RawPosting(
                    region_code=region.code,
                    title=title,
                    detail_url=urljoin(region.url, link["href"]),
                    price_text=_text(result, PRICE_SELECTOR),
                    posted_text=" ".join(posted.get_text(" ").split()) if posted else None,
                    location_text=_text(result, LOCATION_SELECTOR),
                    housing_text=_text(result, HOUSING_SELECTOR),
                    map_reference=map_link["href"] if map_link is not None else None,
                )
            )
        return postings

    def parse_detail_page(self, html: str) -> PostingDetail:
        """Extract description, attributes and map coordinates from a detail page."""
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise SourceResponseError(f"Unparseable detail page: {e}") from e

        body = soup.select_one("#postingbody, .postingbody, .userbody")
        description = None
        if body is not None:
            for notice in body.select(".print-information, .print-qrcode-container"):
                notice.decompose()
            description = body.get_text("\n").strip() or None

        attributes = [
            " ".join(group.get_text(" ").split())
            for group in soup.select(".mapAndAttrs .attrgroup, .attrgroup")
        ]

        latitude = longitude = None
        map_node = soup.select_one("#map[data-latitude][data-longitude]")
        if map_node is not None:
            latitude = _float_attr(map_node, "data-latitude")
            longitude = _float_attr(map_node, "data-longitude")

        return PostingDetail(
            description=description,
            attributes_text=" ".join(a for a in attributes if a) or None,
            latitude=latitude,
            longitude=longitude,
        )
