"""Result types and exceptions for notification delivery."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class DeliveryError(NotificationError):
    """Raised when the outbound message service rejects or loses a message."""

    pass


@dataclass
class DeliveryResult:
    """Outcome of sending one digest to one recipient.

    Attributes:
        success: Whether the message was accepted
        message_id: Message-ID of the accepted message
        error: Failure description when ``success`` is False
        attempts: Send attempts made
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass
class DeliveryStats:
    """Sent and failed notifications over a trailing window."""

    window_hours: int
    sent: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        total = self.sent + self.failed
        return self.sent / total if total else 0.0

    def as_dict(self) -> Dict[str, object]:
        return {
            "window_hours": self.window_hours,
            "sent": self.sent,
            "failed": self.failed,
            "success_rate": round(self.success_rate, 4),
        }


@dataclass
class NotifyRunResult:
    """Outcome of one Notifier run.

    Attributes:
        success: False if any batch failed or the run could not load its input
        notifications_processed: Pending rows fetched and handled
        emails_sent: Batches delivered (or marked sent with delivery skipped)
        emails_failed: Batches whose delivery failed
        users_notified: Distinct recipients that received a message
        errors: One message per failure
    """

    success: bool = True
    notifications_processed: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    users_notified: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "notifications_processed": self.notifications_processed,
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "users_notified": self.users_notified,
            "errors": list(self.errors),
        }
