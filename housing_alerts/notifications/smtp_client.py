"""SMTP client wrapper for email delivery.

A thin layer over ``smtplib`` handling implicit TLS on port 465, STARTTLS
otherwise, optional authentication, and connection cleanup.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from housing_alerts.config.environment import EnvironmentConfig

from .models import DeliveryError

logger = logging.getLogger(__name__)


class SMTPClient:
    """Sends fully built messages through the configured SMTP server.

    The smtplib factories are injectable so tests never open sockets.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        timeout: int = 30,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.timeout = timeout

    def send(self, message: EmailMessage, env_config: EnvironmentConfig, use_tls: bool = True) -> None:
        """Send one message.

        Raises:
            DeliveryError: If connecting, authenticating or sending fails
        """
        smtp = None
        try:
            if env_config.smtp_port == 465:
                logger.debug(
                    f"Connecting to {env_config.smtp_host}:{env_config.smtp_port} with implicit TLS"
                )
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host,
                    env_config.smtp_port,
                    context=ssl.create_default_context(),
                    timeout=self.timeout,
                )
            else:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port}")
                smtp = self.smtp_factory(
                    env_config.smtp_host, env_config.smtp_port, timeout=self.timeout
                )
                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)
            logger.debug(f"Message sent to {message['To']}")

        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise DeliveryError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def validate_recipient(address: str) -> str:
    """Return the normalized form of one recipient address.

    Raises:
        ValueError: If the address is not a valid email address
    """
    try:
        return validate_email(address.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid recipient address '{address}': {e}") from e


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the From header, e.g. ``Housing Alerts <alerts@example.com>``.

    Uses SMTP_FROM_EMAIL, then SMTP_USER, then ``noreply@<smtp host>``.
    """
    sender_email = env_config.smtp_from_email or env_config.smtp_user
    if not sender_email:
        sender_email = f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{sender_email}>"
