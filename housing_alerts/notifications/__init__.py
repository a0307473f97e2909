"""Notification batching and email delivery."""

from .delivery import EmailDelivery
from .models import (
    DeliveryError,
    DeliveryResult,
    DeliveryStats,
    NotificationError,
    NotificationTemplateError,
    NotifyRunResult,
)
from .payloads import build_digest_context, build_unsubscribe_url
from .service import NotifierJob, group_by_recipient
from .smtp_client import SMTPClient, build_sender_address, validate_recipient
from .templates import TemplateRenderer

__all__ = [
    "DeliveryError",
    "DeliveryResult",
    "DeliveryStats",
    "EmailDelivery",
    "NotificationError",
    "NotificationTemplateError",
    "NotifierJob",
    "NotifyRunResult",
    "SMTPClient",
    "TemplateRenderer",
    "build_digest_context",
    "build_sender_address",
    "build_unsubscribe_url",
    "group_by_recipient",
    "validate_recipient",
]
