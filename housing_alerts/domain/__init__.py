"""Domain models shared by every job."""

from .models import (
    Alert,
    Listing,
    NotificationStatus,
    PendingNotification,
    PostingDetail,
    RawPosting,
    Recipient,
)

__all__ = [
    "Alert",
    "Listing",
    "NotificationStatus",
    "PendingNotification",
    "PostingDetail",
    "RawPosting",
    "Recipient",
]
