"""Unit tests for digest template context building."""

from housing_alerts.domain.models import Recipient
from housing_alerts.notifications import build_digest_context, build_unsubscribe_url
from housing_alerts.notifications.payloads import build_listing_payload
from tests.helpers import NOW, make_listing


class TestBuildListingPayload:
    """Test per-listing flattening."""

    def test_fields(self):
        payload = build_listing_payload(make_listing("1001", bedrooms=2, pet_friendly=False))

        assert payload == {
            "title": "Sunny 1BR in Astoria #1001",
            "url": "https://newyork.craigslist.org/que/apa/d/x/1001.html",
            "price": 2400,
            "bedrooms": "2 BR",
            "neighborhood": "Astoria",
            "pets": "No pets",
            "posted_at": NOW.isoformat(),
            "risk_warning": False,
        }

    def test_studio_label(self):
        assert build_listing_payload(make_listing("1001", bedrooms=0))["bedrooms"] == "Studio"

    def test_unknown_fields(self):
        payload = build_listing_payload(
            make_listing("1001", bedrooms=None, pet_friendly=None, posted_at=None, price=None)
        )
        assert payload["bedrooms"] is None
        assert payload["pets"] is None
        assert payload["posted_at"] is None
        assert payload["price"] is None

    def test_risk_warning_threshold(self):
        assert build_listing_payload(make_listing("1001", risk_score=5.0))["risk_warning"] is True
        assert build_listing_payload(make_listing("1002", risk_score=4.9))["risk_warning"] is False


class TestBuildUnsubscribeUrl:
    def test_trailing_slash_trimmed(self):
        assert (
            build_unsubscribe_url("https://alerts.example.com/", "abc")
            == "https://alerts.example.com/api/unsubscribe/abc"
        )

    def test_no_token(self):
        assert build_unsubscribe_url("https://alerts.example.com", None) is None


class TestBuildDigestContext:
    """Test the digest context for one recipient."""

    def test_truncation(self):
        recipient = Recipient(id=1, email="alice@example.com", unsubscribe_token="tok")
        listings = [make_listing(str(n)) for n in range(1001, 1004)]

        context = build_digest_context(recipient, listings, "https://alerts.example.com/", max_listings=2)

        assert context["listing_count"] == 3
        assert context["hidden_count"] == 1
        assert [item["title"] for item in context["listings"]] == [
            "Sunny 1BR in Astoria #1001",
            "Sunny 1BR in Astoria #1002",
        ]
        assert context["app_url"] == "https://alerts.example.com"
        assert context["recipient_email"] == "alice@example.com"
        assert context["unsubscribe_url"] == "https://alerts.example.com/api/unsubscribe/tok"

    def test_everything_shown(self):
        recipient = Recipient(id=1, email="alice@example.com")
        context = build_digest_context(recipient, [make_listing("1001")], "https://alerts.example.com")
        assert context["hidden_count"] == 0
        assert context["unsubscribe_url"] is None
