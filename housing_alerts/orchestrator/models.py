"""Status and result models for the job orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from housing_alerts.utils.timestamps import format_timestamp


class JobType(str, Enum):
    """Job kinds the orchestrator runs and guards."""

    SCRAPER = "scraper"
    MATCHER = "matcher"
    NOTIFIER = "notifier"
    CLEANUP = "cleanup"
    HEALTH_CHECK = "health_check"


TRIGGERABLE_JOBS = (JobType.SCRAPER, JobType.MATCHER, JobType.CLEANUP)


@dataclass
class JobError:
    """One entry of the recent-errors ring buffer."""

    job: str
    timestamp: datetime
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "timestamp": format_timestamp(self.timestamp),
            "message": self.message,
        }


@dataclass
class JobStatus:
    """Point-in-time snapshot of the orchestrator."""

    is_running: bool
    start_time: Optional[datetime] = None
    last_harvest_run: Optional[datetime] = None
    last_match_run: Optional[datetime] = None
    last_notify_run: Optional[datetime] = None
    last_cleanup_run: Optional[datetime] = None
    last_health_check: Optional[datetime] = None
    total_jobs_run: int = 0
    skipped_runs: Dict[str, int] = field(default_factory=dict)
    active_jobs: List[str] = field(default_factory=list)
    recent_errors: List[JobError] = field(default_factory=list)
    next_runs: Dict[str, datetime] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "start_time": format_timestamp(self.start_time),
            "last_harvest_run": format_timestamp(self.last_harvest_run),
            "last_match_run": format_timestamp(self.last_match_run),
            "last_notify_run": format_timestamp(self.last_notify_run),
            "last_cleanup_run": format_timestamp(self.last_cleanup_run),
            "last_health_check": format_timestamp(self.last_health_check),
            "total_jobs_run": self.total_jobs_run,
            "skipped_runs": dict(self.skipped_runs),
            "active_jobs": list(self.active_jobs),
            "recent_errors": [error.as_dict() for error in self.recent_errors],
            "next_runs": {name: format_timestamp(due) for name, due in self.next_runs.items()},
        }


@dataclass
class RunReport:
    """Result of a manual trigger or a scheduled chain.

    ``results`` maps each step that ran ("harvest", "match", "notify",
    "cleanup", "health_check") to that step's result object. Steps skipped
    because another run of their type was active are listed in
    ``skipped_steps``.
    """

    job_type: JobType
    skipped: bool = False
    results: Dict[str, Any] = field(default_factory=dict)
    skipped_steps: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        if self.skipped or self.errors:
            return False
        return all(getattr(result, "success", True) for result in self.results.values())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "job_type": self.job_type.value,
            "skipped": self.skipped,
            "success": self.success,
            "results": {
                step: result.as_dict() if hasattr(result, "as_dict") else result
                for step, result in self.results.items()
            },
            "skipped_steps": list(self.skipped_steps),
            "errors": list(self.errors),
        }
