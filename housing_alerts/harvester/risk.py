"""Heuristic scam-risk scoring for listings.

The score runs from 0 (nothing suspicious) to 10 and is stored on each
listing. It combines price-versus-market, known scam phrases, urgency
language and text quality.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Typical minimum monthly rent per bedroom count; 0 is a studio.
MARKET_MINIMUMS: Dict[int, int] = {0: 2000, 1: 2500, 2: 3000, 3: 3500, 4: 4000, 5: 5000}

SCAM_KEYWORDS = [
    "wire money",
    "western union",
    "moneygram",
    "cashiers check",
    "overseas",
    "military",
    "deployed",
    "urgent",
    "must move quickly",
    "god bless",
    "honest person",
    "trust worthy",
    "no credit check",
    "first month free",
    "utilities included free",
    "too good to be true",
    "send money",
    "deposit required",
    "paypal",
    "zelle only",
]

URGENCY_KEYWORDS = [
    "asap",
    "immediately",
    "today only",
    "limited time",
    "first come first serve",
    "wont last long",
    "act fast",
]

MAX_SCORE = 10.0


@dataclass
class RiskAssessment:
    score: float = 0.0
    reasons: List[str] = field(default_factory=list)


def _market_minimum(bedrooms: Optional[int]) -> int:
    if bedrooms is None:
        return MARKET_MINIMUMS[1]
    return MARKET_MINIMUMS.get(bedrooms, MARKET_MINIMUMS[max(MARKET_MINIMUMS)])


def assess_risk(
    title: str,
    description: Optional[str],
    price: Optional[int],
    bedrooms: Optional[int],
) -> RiskAssessment:
    """Score a listing's scam risk from its text and price.

    Args:
        title: Listing title
        description: Body text, if fetched
        price: Monthly rent in dollars, if known
        bedrooms: Bedroom count, if known

    Returns:
        RiskAssessment with the capped score and the signals that contributed
    """
    assessment = RiskAssessment()
    body = description or ""
    text = f"{title} {body}".lower()
    # Apostrophes are dropped so "won't" matches "wont".
    text = text.replace("'", "").replace("’", "")

    if price is not None:
        minimum = _market_minimum(bedrooms)
        if price < minimum * 0.5:
            assessment.score += 4
            assessment.reasons.append(f"price ${price} is far below market (${minimum})")
        elif price < minimum * 0.7:
            assessment.score += 2
            assessment.reasons.append(f"price ${price} is below market (${minimum})")

    for keyword in SCAM_KEYWORDS:
        if keyword in text:
            assessment.score += 1.5
            assessment.reasons.append(f"scam phrase: {keyword}")

    for keyword in URGENCY_KEYWORDS:
        if keyword in text:
            assessment.score += 0.5
            assessment.reasons.append(f"urgency phrase: {keyword}")

    raw = f"{title} {body}"
    letters = re.findall(r"[A-Za-z]", raw)
    caps_ratio = sum(1 for ch in letters if ch.isupper()) / len(letters) if letters else 0.0
    if caps_ratio > 0.3:
        assessment.score += 1
        assessment.reasons.append("excessive capital letters")
    elif raw.count("!") > 5:
        assessment.score += 1
        assessment.reasons.append("excessive exclamation marks")
    elif description is not None and len(description) < 50 and "$" in description:
        assessment.score += 0.5
        assessment.reasons.append("very short description")

    assessment.score = round(min(assessment.score, MAX_SCORE), 1)
    return assessment
