"""Result models for harvester runs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from housing_alerts.domain.models import Listing


@dataclass
class HarvestResult:
    """Outcome of one Harvester run.

    Attributes:
        run_id: Short id shared by every log record of the run
        started_at: UTC time the run began
        finished_at: UTC time the run ended
        listings: Normalized listings that passed the recency filter
        per_region_counts: Listings kept per region code
        errors: One message per failed region, detail page or record
        new_listings_count: Rows actually inserted
        duplicate_count: Listings already stored or repeated in this run
        filtered_out_count: Fragments dropped by the recency filter
    """

    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    listings: List[Listing] = field(default_factory=list)
    per_region_counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    new_listings_count: int = 0
    duplicate_count: int = 0
    filtered_out_count: int = 0

    @property
    def total_found(self) -> int:
        return len(self.listings)

    @property
    def success(self) -> bool:
        """A run succeeds if it found anything or recorded no errors."""
        return self.total_found > 0 or not self.errors

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def as_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "total_found": self.total_found,
            "per_region_counts": dict(self.per_region_counts),
            "new_listings_count": self.new_listings_count,
            "duplicate_count": self.duplicate_count,
            "filtered_out_count": self.filtered_out_count,
            "errors": list(self.errors),
            "duration_seconds": self.duration_seconds,
        }
