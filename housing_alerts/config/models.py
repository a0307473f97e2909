"""Configuration schema models using Pydantic."""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .defaults import (
    CRAIGSLIST_BASE_URL,
    DEFAULT_BOUNDING_BOX,
    DEFAULT_PET_NEGATIVE_PATTERNS,
    DEFAULT_PET_POSITIVE_PATTERNS,
    DEFAULT_REGIONS,
)
from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class DetailDepth(str, Enum):
    """How much of each posting the Harvester fetches."""

    SHALLOW = "shallow"
    ENHANCED = "enhanced"


def _checked_duration(value: str, min_seconds: int, max_seconds: int, label: str) -> int:
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, min_seconds, max_seconds, label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return seconds


class RegionConfig(BaseModel):
    """One independently fetched sub-region of the listing source."""

    name: str = Field(..., min_length=1, description="Display name, used as neighborhood fallback")
    code: str = Field(..., min_length=1, description="Source-specific region code")
    url: Optional[str] = Field(None, description="Search URL; derived from code when omitted")
    neighborhoods: List[str] = Field(
        default_factory=list, description="Neighborhood names recognized in this region"
    )
    enabled: bool = Field(True, description="Whether to harvest this region")

    @field_validator("name", "code")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from string fields."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped

    @field_validator("neighborhoods")
    @classmethod
    def normalize_neighborhoods(cls, v: List[str]) -> List[str]:
        """Lowercase neighborhood names and drop blanks."""
        return [name.strip().lower() for name in v if name and name.strip()]

    @model_validator(mode="after")
    def fill_url(self):
        if not self.url:
            self.url = CRAIGSLIST_BASE_URL.format(code=self.code)
        return self


class BoundingBox(BaseModel):
    """Latitude/longitude box that valid listing coordinates must fall inside."""

    min_latitude: float = Field(..., ge=-90, le=90)
    max_latitude: float = Field(..., ge=-90, le=90)
    min_longitude: float = Field(..., ge=-180, le=180)
    max_longitude: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def validate_ordering(self):
        if self.min_latitude >= self.max_latitude:
            raise ValueError("min_latitude must be below max_latitude")
        if self.min_longitude >= self.max_longitude:
            raise ValueError("min_longitude must be below max_longitude")
        return self

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_latitude <= latitude <= self.max_latitude
            and self.min_longitude <= longitude <= self.max_longitude
        )


class HarvesterConfig(BaseModel):
    """Harvester inputs and field-normalization thresholds."""

    source: str = Field("craigslist", min_length=1, description="Listing source name")
    regions: List[RegionConfig] = Field(
        default_factory=lambda: [RegionConfig.model_validate(r) for r in DEFAULT_REGIONS],
        min_length=1,
    )
    recency_minutes: int = Field(
        45, ge=1, le=1440, description="Only postings at most this old are harvested"
    )
    detail_depth: DetailDepth = Field(DetailDepth.SHALLOW)
    persist: bool = Field(True, description="Insert harvested listings into storage")
    region_delay_seconds: float = Field(2.0, ge=0, le=60)
    detail_delay_seconds: float = Field(1.5, ge=0, le=60)
    price_floor: int = Field(500, ge=0)
    price_ceiling: int = Field(20000, ge=1)
    max_bedrooms: int = Field(6, ge=0, le=20, description="Larger parsed counts are discarded")
    pet_positive_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PET_POSITIVE_PATTERNS)
    )
    pet_negative_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PET_NEGATIVE_PATTERNS)
    )
    bounding_box: BoundingBox = Field(
        default_factory=lambda: BoundingBox.model_validate(DEFAULT_BOUNDING_BOX)
    )

    model_config = {"use_enum_values": True}

    @field_validator("pet_positive_patterns", "pet_negative_patterns")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        """Reject patterns that do not compile."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid pet pattern {pattern!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def validate_price_band(self):
        if self.price_floor >= self.price_ceiling:
            raise ValueError("price_floor must be below price_ceiling")

        enabled = [region for region in self.regions if region.enabled]
        if not enabled:
            raise ValueError("At least one region must be enabled")

        codes = [region.code for region in self.regions]
        duplicates = sorted({code for code in codes if codes.count(code) > 1})
        if duplicates:
            raise ValueError(f"Duplicate region codes: {', '.join(duplicates)}")
        return self

    def get_enabled_regions(self) -> List[RegionConfig]:
        return [region for region in self.regions if region.enabled]


class MatcherConfig(BaseModel):
    """Matcher windowing and throughput limits."""

    lookback_hours: int = Field(24, ge=1, le=24 * 14)
    max_matches_per_alert: int = Field(
        50, ge=1, le=10000, description="New notifications per alert per run"
    )


class NotifierConfig(BaseModel):
    """Notifier batching and retry sweep settings."""

    max_notifications: int = Field(1000, ge=1, le=100000)
    batch_delay_seconds: float = Field(1.0, ge=0, le=60)
    skip_delivery: bool = Field(False, description="Mark rows sent without delivering")
    retry_age: str = Field("1h", description="Failed rows older than this are retried")
    max_retry_attempts: int = Field(3, ge=0, le=20)
    retry_batch_size: int = Field(100, ge=1, le=10000)

    retry_age_seconds: Optional[int] = None

    @field_validator("retry_age")
    @classmethod
    def validate_retry_age(cls, v: str) -> str:
        _checked_duration(v, 60, 7 * 86400, "Retry age")
        return v

    @model_validator(mode="after")
    def compute_seconds(self):
        self.retry_age_seconds = parse_duration(self.retry_age)
        return self


class RetentionConfig(BaseModel):
    """Age thresholds for the cleanup job."""

    listing_retention_days: int = Field(30, ge=1, le=3650)
    inactive_listing_purge_days: int = Field(60, ge=1, le=3650)
    notification_retention_days: int = Field(90, ge=1, le=3650)
    token_retention_days: int = Field(30, ge=1, le=3650)
    inactive_alert_months: int = Field(6, ge=1, le=120)
    chunk_size: int = Field(500, ge=1, le=100000)

    @model_validator(mode="after")
    def validate_purge_after_deactivation(self):
        if self.inactive_listing_purge_days < self.listing_retention_days:
            raise ValueError(
                "inactive_listing_purge_days must not be shorter than listing_retention_days"
            )
        return self


class JobsConfig(BaseModel):
    """Timer settings for the orchestrator."""

    harvest_interval: str = Field("45m", description="Base interval, jittered by +/-25%")
    harvest_initial_delay: str = Field("1m", description="Delay before the first harvest")
    cleanup_interval: str = Field("1d")
    health_check_interval: str = Field("5m")
    enable_auto_cleanup: bool = True
    enable_health_checks: bool = True
    shutdown_grace_seconds: float = Field(30.0, ge=0, le=600)

    harvest_interval_seconds: Optional[int] = None
    harvest_initial_delay_seconds: Optional[int] = None
    cleanup_interval_seconds: Optional[int] = None
    health_check_interval_seconds: Optional[int] = None

    @field_validator("harvest_interval")
    @classmethod
    def validate_harvest_interval(cls, v: str) -> str:
        _checked_duration(v, 60, 86400, "Harvest interval")
        return v

    @field_validator("harvest_initial_delay")
    @classmethod
    def validate_initial_delay(cls, v: str) -> str:
        _checked_duration(v, 1, 86400, "Initial harvest delay")
        return v

    @field_validator("cleanup_interval")
    @classmethod
    def validate_cleanup_interval(cls, v: str) -> str:
        _checked_duration(v, 3600, 7 * 86400, "Cleanup interval")
        return v

    @field_validator("health_check_interval")
    @classmethod
    def validate_health_interval(cls, v: str) -> str:
        _checked_duration(v, 30, 86400, "Health check interval")
        return v

    @model_validator(mode="after")
    def compute_seconds(self):
        self.harvest_interval_seconds = parse_duration(self.harvest_interval)
        self.harvest_initial_delay_seconds = parse_duration(self.harvest_initial_delay)
        self.cleanup_interval_seconds = parse_duration(self.cleanup_interval)
        self.health_check_interval_seconds = parse_duration(self.health_check_interval)
        return self


class EmailConfig(BaseModel):
    """Email delivery settings."""

    use_tls: bool = Field(True, description="Use STARTTLS (implicit TLS on port 465)")
    max_retries: int = Field(2, ge=0, le=10, description="Immediate resend attempts per batch")
    retry_backoff_multiplier: float = Field(2.0, ge=1.0, le=5.0)
    retry_initial_delay: float = Field(2.0, ge=0, le=60, description="Seconds before first resend")
    max_listings_per_email: int = Field(25, ge=1, le=500)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="json or key-value")

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """HTTP and commute-lookup settings."""

    http_request_timeout: int = Field(30, ge=5, le=300)
    user_agent: str = Field("Mozilla/5.0 (compatible; HousingAlerts/0.1)", min_length=1)
    commute_timeout: int = Field(10, ge=1, le=120)
    commute_cache_ttl: str = Field("24h")

    commute_cache_ttl_seconds: Optional[int] = None

    @field_validator("user_agent")
    @classmethod
    def strip_user_agent(cls, v: str) -> str:
        """Strip whitespace from user agent."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_agent cannot be empty")
        return stripped

    @model_validator(mode="after")
    def compute_seconds(self):
        self.commute_cache_ttl_seconds = _checked_duration(
            self.commute_cache_ttl, 60, 7 * 86400, "Commute cache TTL"
        )
        return self


class AppConfig(BaseModel):
    """Root configuration object for the housing alert jobs."""

    jobs: JobsConfig = Field(default_factory=JobsConfig)
    harvester: HarvesterConfig = Field(default_factory=HarvesterConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)

    def summary(self) -> dict:
        """Flat view of the resolved settings, logged when the orchestrator starts."""
        return {
            "harvest_interval_seconds": self.jobs.harvest_interval_seconds,
            "harvest_initial_delay_seconds": self.jobs.harvest_initial_delay_seconds,
            "cleanup_interval_seconds": self.jobs.cleanup_interval_seconds,
            "health_check_interval_seconds": self.jobs.health_check_interval_seconds,
            "auto_cleanup": self.jobs.enable_auto_cleanup,
            "health_checks": self.jobs.enable_health_checks,
            "regions": [region.code for region in self.harvester.get_enabled_regions()],
            "recency_minutes": self.harvester.recency_minutes,
            "detail_depth": self.harvester.detail_depth,
            "max_notifications": self.notifier.max_notifications,
            "batch_delay_seconds": self.notifier.batch_delay_seconds,
            "retry_age_seconds": self.notifier.retry_age_seconds,
            "skip_delivery": self.notifier.skip_delivery,
            "log_level": self.logging.level,
        }
