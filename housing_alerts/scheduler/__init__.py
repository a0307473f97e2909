"""Timer scheduling for the job orchestrator."""

from .base import TimerCallback, TimerScheduler
from .service import SchedulerService

__all__ = ["SchedulerService", "TimerCallback", "TimerScheduler"]
