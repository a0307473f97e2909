"""Email delivery of listing digests.

``EmailDelivery.send`` is blocking; the Notifier calls it through
``asyncio.to_thread``. It never raises for a failed delivery and instead
returns a ``DeliveryResult`` carrying the error.
"""

import logging
import time
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable, Optional, Sequence

from housing_alerts.config.environment import EnvironmentConfig
from housing_alerts.config.models import EmailConfig
from housing_alerts.domain.models import Listing, Recipient
from housing_alerts.logging import get_logger

from .models import DeliveryError, DeliveryResult, NotificationTemplateError
from .payloads import build_digest_context
from .smtp_client import SMTPClient, build_sender_address, validate_recipient
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notification")

MAX_RETRY_DELAY_SECONDS = 60.0


class EmailDelivery:
    """Renders and sends one digest per recipient with bounded retry."""

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: EmailConfig,
        template_renderer: Optional[TemplateRenderer] = None,
        smtp_client: Optional[SMTPClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.env_config = env_config
        self.email_config = email_config
        self.template_renderer = template_renderer or TemplateRenderer()
        self.smtp_client = smtp_client or SMTPClient()
        self.sleep = sleep
        self.logger = logger_instance or logger

    def send(self, recipient: Recipient, listings: Sequence[Listing]) -> DeliveryResult:
        """Deliver one digest containing ``listings`` to ``recipient``."""
        try:
            to_address = validate_recipient(recipient.email)
        except ValueError as e:
            return DeliveryResult(success=False, error=str(e))

        try:
            context = build_digest_context(
                recipient,
                listings,
                self.env_config.app_url,
                max_listings=self.email_config.max_listings_per_email,
            )
            rendered = self.template_renderer.render(context)
        except NotificationTemplateError as e:
            return DeliveryResult(success=False, error=str(e))

        message = self._build_message(to_address, rendered, recipient)
        message_id = message["Message-ID"]

        max_attempts = self.email_config.max_retries + 1
        last_error = None
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = min(
                    self.email_config.retry_initial_delay
                    * (self.email_config.retry_backoff_multiplier ** (attempt - 2)),
                    MAX_RETRY_DELAY_SECONDS,
                )
                self.logger.warning(
                    f"Retrying delivery to {to_address} (attempt {attempt}/{max_attempts}) "
                    f"after {delay:.1f}s",
                    extra={"event": "notification.send.retry", "attempt": attempt},
                )
                self.sleep(delay)

            try:
                self.smtp_client.send(message, self.env_config, self.email_config.use_tls)
            except DeliveryError as e:
                last_error = str(e)
                self.logger.warning(
                    f"Delivery to {to_address} failed (attempt {attempt}/{max_attempts}): {e}",
                    extra={
                        "event": "notification.send.failure",
                        "attempt": attempt,
                        "retry_remaining": attempt < max_attempts,
                    },
                )
                continue

            self.logger.info(
                f"Digest with {len(listings)} listings sent to {to_address}",
                extra={
                    "event": "notification.send.success",
                    "attempt": attempt,
                    "message_id": message_id,
                    "listing_count": len(listings),
                },
            )
            return DeliveryResult(success=True, message_id=message_id, attempts=attempt)

        return DeliveryResult(success=False, error=last_error, attempts=max_attempts)

    def _build_message(self, to_address: str, rendered: dict, recipient: Recipient) -> EmailMessage:
        sender = build_sender_address(self.env_config)
        message = EmailMessage()
        message["Subject"] = rendered["subject"]
        message["From"] = sender
        message["To"] = to_address
        message["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[-1].rstrip(">"))
        if recipient.unsubscribe_token:
            message["List-Unsubscribe"] = (
                f"<{self.env_config.app_url}/api/unsubscribe/{recipient.unsubscribe_token}>"
            )
        message.set_content(rendered["text_body"])
        message.add_alternative(rendered["html_body"], subtype="html")
        return message
