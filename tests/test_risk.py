"""Unit tests for scam-risk scoring."""

from housing_alerts.harvester.risk import assess_risk


class TestAssessRisk:
    """Tests for assess_risk."""

    def test_ordinary_listing_scores_zero(self):
        result = assess_risk(
            "Sunny 1br in Astoria",
            "Bright apartment near the N train, laundry in building, available December.",
            2600,
            1,
        )
        assert result.score == 0.0
        assert result.reasons == []

    def test_price_far_below_market(self):
        """Test a price under half the market minimum adds four points."""
        result = assess_risk("Nice 2br apartment", None, 1400, 2)
        assert result.score == 4.0
        assert "far below market" in result.reasons[0]

    def test_price_below_market(self):
        """Test a price under 70% of the market minimum adds two points."""
        result = assess_risk("Nice 2br apartment", None, 2000, 2)
        assert result.score == 2.0

    def test_unknown_bedrooms_uses_one_bedroom_market(self):
        assert assess_risk("Nice apartment", None, 1200, None).score == 4.0

    def test_scam_and_urgency_phrases(self):
        result = assess_risk(
            "Nice apartment",
            "I am deployed overseas, please wire money asap to hold the apartment for you.",
            None,
            None,
        )
        # deployed, overseas, wire money (1.5 each) + asap (0.5)
        assert result.score == 5.0
        assert "scam phrase: wire money" in result.reasons
        assert "urgency phrase: asap" in result.reasons

    def test_apostrophes_ignored(self):
        result = assess_risk("Nice apartment", "This one won't last long, come see it this week please.", None, None)
        assert "urgency phrase: wont last long" in result.reasons

    def test_excessive_capitals(self):
        result = assess_risk("HUGE APARTMENT CHEAP", "GREAT DEAL FOR YOU", None, None)
        assert "excessive capital letters" in result.reasons

    def test_excessive_exclamation(self):
        result = assess_risk("Great apartment!!!!!!", None, None, None)
        assert result.reasons == ["excessive exclamation marks"]

    def test_short_description_with_price(self):
        result = assess_risk("Apartment for rent", "only $900 call", None, None)
        assert result.reasons == ["very short description"]
        assert result.score == 0.5

    def test_score_capped_at_ten(self):
        description = "wire money western union moneygram overseas military deployed urgent paypal zelle only"
        result = assess_risk("Apartment", description, 500, 2)
        assert result.score == 10.0
