"""Background job orchestration."""

from .health import HealthMonitor, HealthReport
from .models import JobError, JobStatus, JobType, RunReport
from .service import JobOrchestrator

__all__ = [
    "HealthMonitor",
    "HealthReport",
    "JobError",
    "JobOrchestrator",
    "JobStatus",
    "JobType",
    "RunReport",
]
