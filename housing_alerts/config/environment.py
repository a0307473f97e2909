"""Environment variable loading and validation."""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/housing_alerts.db"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and endpoints that come from the process environment."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        smtp_from_email: Optional[str] = None,
        app_url: Optional[str] = None,
        google_maps_api_key: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_sender_name = smtp_sender_name or "Housing Alerts"
        self.smtp_from_email = smtp_from_email
        self.app_url = (app_url or "http://localhost:3000").rstrip("/")
        self.google_maps_api_key = google_maps_api_key
        self.log_level = log_level
        self.database_url = database_url or DEFAULT_DATABASE_URL

    def missing_delivery_settings(self) -> List[str]:
        """List what is missing for outbound email.

        Loading does not fail on these because a deployment may run with
        delivery skipped; the orchestrator decides at start time.
        """
        missing = []
        if not self.smtp_host:
            missing.append("Missing required environment variable: SMTP_HOST")
        if not (self.smtp_from_email or self.smtp_user):
            missing.append("Set SMTP_FROM_EMAIL or SMTP_USER to provide a sender address")
        return missing


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Recognized variables:
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/housing_alerts.db)
    - SMTP_HOST, SMTP_PORT (default 587), SMTP_USER, SMTP_PASS
    - SMTP_SENDER_NAME, SMTP_FROM_EMAIL: sender identity
    - APP_URL: base URL used for unsubscribe links
    - GOOGLE_MAPS_API_KEY: enables commute estimation
    - LOG_LEVEL: overrides the configured log level

    Returns:
        EnvironmentConfig with validated values

    Raises:
        ConfigurationError: If any variable is present but malformed
    """
    errors = []

    smtp_port = 587
    smtp_port_str = os.getenv("SMTP_PORT")
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    smtp_user = os.getenv("SMTP_USER") or None
    smtp_pass = os.getenv("SMTP_PASS") or None
    if smtp_user and not smtp_pass:
        errors.append("SMTP_USER is set but SMTP_PASS is not. Both are needed for authentication.")
    elif smtp_pass and not smtp_user:
        errors.append("SMTP_PASS is set but SMTP_USER is not. Both are needed for authentication.")

    smtp_from_email = os.getenv("SMTP_FROM_EMAIL") or None
    if smtp_from_email:
        try:
            smtp_from_email = validate_email(smtp_from_email, check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors.append(f"Invalid SMTP_FROM_EMAIL '{smtp_from_email}': {e}")

    log_level = os.getenv("LOG_LEVEL") or None
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_sender_name=os.getenv("SMTP_SENDER_NAME") or None,
        smtp_from_email=smtp_from_email,
        app_url=os.getenv("APP_URL") or None,
        google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
        log_level=log_level.upper() if log_level else None,
        database_url=os.getenv("DATABASE_URL") or None,
    )
