"""Timer scheduler interface used by the orchestrator.

Timers are named so they can be listed, replaced and cancelled. Callbacks
are coroutine functions taking no arguments.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, Callable, Dict

TimerCallback = Callable[[], Awaitable[None]]


class TimerScheduler(ABC):
    """Named one-shot and repeating timers on the running event loop."""

    @abstractmethod
    def start(self) -> None:
        """Begin firing timers. Must be called from inside the event loop."""

    @abstractmethod
    def shutdown(self) -> None:
        """Stop firing timers and drop every pending one."""

    @property
    @abstractmethod
    def running(self) -> bool: ...

    @abstractmethod
    def schedule_once(self, name: str, delay_seconds: float, func: TimerCallback) -> datetime:
        """Fire ``func`` once after ``delay_seconds``, replacing any timer named ``name``.

        Returns:
            The UTC time the timer is due
        """

    @abstractmethod
    def schedule_interval(self, name: str, interval_seconds: float, func: TimerCallback) -> datetime:
        """Fire ``func`` every ``interval_seconds``, replacing any timer named ``name``.

        Returns:
            The UTC time of the first firing
        """

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Cancel one timer; returns False if it was not pending."""

    @abstractmethod
    def cancel_all(self) -> None: ...

    @abstractmethod
    def pending(self) -> Dict[str, datetime]:
        """Pending timers by name with their next due time."""
