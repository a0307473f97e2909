"""Harvester job: fetch recent postings per region, normalize and persist them."""

import asyncio
from typing import Awaitable, Callable, ContextManager, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from housing_alerts.config.models import DetailDepth, HarvesterConfig, RegionConfig
from housing_alerts.domain.models import Listing, RawPosting
from housing_alerts.logging import get_logger
from housing_alerts.logging.context import log_context
from housing_alerts.persistence.database import get_session
from housing_alerts.persistence.repositories import ListingInsertSummary, ListingRepository
from housing_alerts.utils.timestamps import utc_now

from .base import ListingSource
from .exceptions import SourceError
from .models import HarvestResult
from .normalizer import ListingNormalizer
from .parsing import within_window

logger = get_logger(__name__, component="harvester")


class Harvester:
    """Runs one harvest across every enabled region.

    Regions are fetched one at a time with a fixed delay between them; a
    region that fails is recorded and the rest continue. Blocking source and
    database calls run in worker threads.
    """

    def __init__(
        self,
        source: ListingSource,
        config: HarvesterConfig,
        clock: Callable = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        normalizer: Optional[ListingNormalizer] = None,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
    ):
        self.source = source
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.normalizer = normalizer or ListingNormalizer(config, source_name=source.name)
        self.session_factory = session_factory

    async def run(
        self,
        recency_minutes: Optional[int] = None,
        detail_depth: Optional[str] = None,
        persist: Optional[bool] = None,
    ) -> HarvestResult:
        """Harvest all enabled regions once.

        Args:
            recency_minutes: Window for the recency filter (default from config)
            detail_depth: "shallow" or "enhanced" (default from config)
            persist: Whether to insert into storage (default from config)

        Returns:
            HarvestResult; region, detail and record failures are listed in
            ``errors`` rather than raised
        """
        window = recency_minutes if recency_minutes is not None else self.config.recency_minutes
        depth = DetailDepth(detail_depth or self.config.detail_depth)
        persist = self.config.persist if persist is None else persist

        result = HarvestResult(run_id=uuid4().hex[:12], started_at=self.clock())

        with log_context(run_id=result.run_id, job_type="scraper"):
            regions = self.config.get_enabled_regions()
            logger.info(
                f"Harvest started for {len(regions)} regions",
                extra={
                    "event": "harvester.run.started",
                    "regions": [region.code for region in regions],
                    "recency_minutes": window,
                    "detail_depth": depth.value,
                    "persist": persist,
                },
            )

            seen = set()
            for index, region in enumerate(regions):
                if index > 0 and self.config.region_delay_seconds > 0:
                    await self.sleep(self.config.region_delay_seconds)

                with log_context(region=region.code):
                    listings = await self._harvest_region(region, window, depth, result)

                kept = 0
                for listing in listings:
                    if listing.external_id in seen:
                        result.duplicate_count += 1
                        continue
                    seen.add(listing.external_id)
                    result.listings.append(listing)
                    kept += 1
                result.per_region_counts[region.code] = kept

            if persist and result.listings:
                await self._persist(result)

            result.finished_at = self.clock()
            log = logger.info if result.success else logger.error
            log(
                f"Harvest finished: {result.total_found} found, "
                f"{result.new_listings_count} new, {len(result.errors)} errors",
                extra={"event": "harvester.run.completed", **result.as_dict()},
            )

        return result

    async def _harvest_region(
        self,
        region: RegionConfig,
        window: int,
        depth: DetailDepth,
        result: HarvestResult,
    ) -> List[Listing]:
        try:
            raw_postings = await asyncio.to_thread(self.source.fetch_region, region, window)
        except SourceError as e:
            self._record_error(result, f"Region {region.code}: {e}", "harvester.region.failed")
            return []
        except Exception as e:
            self._record_error(
                result,
                f"Region {region.code}: unexpected {type(e).__name__}: {e}",
                "harvester.region.failed",
            )
            return []

        recent = [p for p in raw_postings if within_window(p.posted_text, window)]
        result.filtered_out_count += len(raw_postings) - len(recent)
        logger.info(
            f"Region {region.code}: {len(recent)} of {len(raw_postings)} postings within {window}m",
            extra={
                "event": "harvester.region.fetched",
                "fetched": len(raw_postings),
                "recent": len(recent),
            },
        )

        harvested_at = self.clock()
        listings = []
        for index, raw in enumerate(recent):
            detail = None
            if depth == DetailDepth.ENHANCED:
                if index > 0 and self.config.detail_delay_seconds > 0:
                    await self.sleep(self.config.detail_delay_seconds)
                detail = await self._fetch_detail(raw, result)

            try:
                listings.append(self.normalizer.normalize(raw, region, harvested_at, detail=detail))
            except Exception as e:
                self._record_error(
                    result, f"Posting {raw.detail_url}: {e}", "harvester.posting.rejected"
                )
        return listings

    async def _fetch_detail(self, raw: RawPosting, result: HarvestResult):
        try:
            return await asyncio.to_thread(self.source.fetch_detail, raw)
        except Exception as e:
            self._record_error(
                result, f"Detail {raw.detail_url}: {e}", "harvester.detail.failed"
            )
            return None

    async def _persist(self, result: HarvestResult) -> None:
        try:
            summary = await asyncio.to_thread(self._insert_listings, result.listings)
        except Exception as e:
            self._record_error(result, f"Persisting listings failed: {e}", "harvester.persist.failed")
            return

        result.new_listings_count = len(summary.inserted)
        result.duplicate_count += len(summary.duplicates)
        for failure in summary.failures:
            self._record_error(result, f"Listing {failure}", "harvester.listing.persist_failed")

        stored = {listing.external_id: listing for listing in summary.inserted}
        result.listings = [stored.get(listing.external_id, listing) for listing in result.listings]

    def _insert_listings(self, listings: List[Listing]) -> ListingInsertSummary:
        with self.session_factory() as session:
            return ListingRepository(session).insert_many(listings)

    @staticmethod
    def _record_error(result: HarvestResult, message: str, event: str) -> None:
        result.errors.append(message)
        logger.warning(message, extra={"event": event})
