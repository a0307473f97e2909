"""Tests for EmailDelivery: message building and bounded retry."""

from unittest.mock import Mock

import pytest

from housing_alerts.config.environment import EnvironmentConfig
from housing_alerts.config.models import EmailConfig
from housing_alerts.domain.models import Recipient
from housing_alerts.notifications import (
    DeliveryError,
    EmailDelivery,
    NotificationTemplateError,
    SMTPClient,
)
from tests.helpers import make_listing


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        smtp_host="smtp.example.com",
        smtp_from_email="alerts@example.com",
        app_url="https://alerts.example.com/",
    )


@pytest.fixture
def recipient():
    return Recipient(id=7, email="alice@example.com", unsubscribe_token="tok123")


@pytest.fixture
def smtp_client():
    return Mock(spec=SMTPClient)


def make_delivery(env_config, smtp_client, sleep=None, **email_settings):
    return EmailDelivery(
        env_config,
        EmailConfig(**email_settings),
        smtp_client=smtp_client,
        sleep=sleep or Mock(),
        logger_instance=Mock(),
    )


def sent_message(smtp_client):
    return smtp_client.send.call_args.args[0]


class TestEmailDeliveryMessage:
    """Test the message handed to the SMTP client."""

    def test_single_listing_digest(self, env_config, recipient, smtp_client):
        delivery = make_delivery(env_config, smtp_client)

        result = delivery.send(recipient, [make_listing("1001", title="Sunny 1BR in Astoria")])

        assert result.success is True
        assert result.attempts == 1
        message = sent_message(smtp_client)
        assert message["Subject"] == "New listing: Sunny 1BR in Astoria"
        assert message["To"] == "alice@example.com"
        assert message["From"] == "Housing Alerts <alerts@example.com>"
        assert message["Message-ID"] == result.message_id
        assert message["List-Unsubscribe"] == "<https://alerts.example.com/api/unsubscribe/tok123>"
        assert smtp_client.send.call_args.args[1] is env_config

    def test_multipart_bodies(self, env_config, recipient, smtp_client):
        delivery = make_delivery(env_config, smtp_client)

        delivery.send(recipient, [make_listing("1001"), make_listing("1002", price=None)])

        message = sent_message(smtp_client)
        assert message["Subject"] == "2 new listings match your alerts"
        text = message.get_body(preferencelist=("plain",)).get_content()
        html = message.get_body(preferencelist=("html",)).get_content()
        assert "Price not listed" in text
        assert "$2,400" in html

    def test_no_unsubscribe_header_without_token(self, env_config, smtp_client):
        delivery = make_delivery(env_config, smtp_client)

        delivery.send(Recipient(id=8, email="bob@example.com"), [make_listing("1001")])

        assert sent_message(smtp_client)["List-Unsubscribe"] is None

    def test_invalid_recipient_not_sent(self, env_config, smtp_client):
        delivery = make_delivery(env_config, smtp_client)

        result = delivery.send(Recipient(id=9, email="not-an-email"), [make_listing("1001")])

        assert result.success is False
        assert "Invalid recipient address" in result.error
        smtp_client.send.assert_not_called()

    def test_template_error_not_sent(self, env_config, recipient, smtp_client):
        renderer = Mock()
        renderer.render.side_effect = NotificationTemplateError("Template rendering failed: boom")
        delivery = EmailDelivery(
            env_config, EmailConfig(), template_renderer=renderer, smtp_client=smtp_client
        )

        result = delivery.send(recipient, [make_listing("1001")])

        assert result.success is False
        assert result.error == "Template rendering failed: boom"
        smtp_client.send.assert_not_called()


class TestEmailDeliveryRetry:
    """Test resend attempts and backoff."""

    def test_succeeds_after_retries(self, env_config, recipient, smtp_client):
        sleep = Mock()
        smtp_client.send.side_effect = [DeliveryError("421 try later"), DeliveryError("421 try later"), None]
        delivery = make_delivery(env_config, smtp_client, sleep=sleep, max_retries=2)

        result = delivery.send(recipient, [make_listing("1001")])

        assert result.success is True
        assert result.attempts == 3
        assert [call.args[0] for call in sleep.call_args_list] == [2.0, 4.0]

    def test_gives_up_after_max_retries(self, env_config, recipient, smtp_client):
        sleep = Mock()
        smtp_client.send.side_effect = DeliveryError("SMTP error during message delivery: 550")
        delivery = make_delivery(env_config, smtp_client, sleep=sleep, max_retries=2)

        result = delivery.send(recipient, [make_listing("1001")])

        assert result.success is False
        assert result.attempts == 3
        assert result.error == "SMTP error during message delivery: 550"
        assert smtp_client.send.call_count == 3
        assert sleep.call_count == 2

    def test_no_retries(self, env_config, recipient, smtp_client):
        smtp_client.send.side_effect = DeliveryError("down")
        delivery = make_delivery(env_config, smtp_client, max_retries=0)

        result = delivery.send(recipient, [make_listing("1001")])

        assert result.attempts == 1
        assert smtp_client.send.call_count == 1

    def test_backoff_capped(self, env_config, recipient, smtp_client):
        sleep = Mock()
        smtp_client.send.side_effect = DeliveryError("down")
        delivery = make_delivery(
            env_config,
            smtp_client,
            sleep=sleep,
            max_retries=3,
            retry_initial_delay=40,
            retry_backoff_multiplier=2.0,
        )

        delivery.send(recipient, [make_listing("1001")])

        assert [call.args[0] for call in sleep.call_args_list] == [40.0, 60.0, 60.0]
