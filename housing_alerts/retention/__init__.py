"""Data retention for listings, notification history and auth tokens."""

from .service import CleanupResult, RetentionJob

__all__ = ["CleanupResult", "RetentionJob"]
