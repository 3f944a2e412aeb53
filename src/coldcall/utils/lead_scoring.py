"""Heuristic lead scoring.

Deterministic 0-100 relevance score for a discovered lead, used whenever the
LLM scorer is unavailable. The model:

1. Rating: ``(rating - 1) * 15`` (1 star = 0, 5 stars = 60)
2. Review volume: ``min(20, log10(review_count) * 8)``
3. Contact channels: +15 for a phone number, +5 for a website
4. Locality: +10 when the lead's city matches the target area

The total is clamped to [0, 100] and rounded half-up.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional


MIN_SCORE = 0
MAX_SCORE = 100

RATING_POINTS_PER_STAR = 15
MAX_REVIEW_POINTS = 20
REVIEW_LOG_FACTOR = 8
PHONE_POINTS = 15
WEBSITE_POINTS = 5
CITY_MATCH_POINTS = 10

NO_FACTORS_REASON = "No scoring factors available"


@dataclass
class ScoringFeatures:
    """Inputs to the lead scorer.

    Attributes:
        rating: Average star rating, if known.
        review_count: Number of reviews, if known.
        has_phone: Lead has a phone number.
        has_website: Lead has a website.
        city_match: Lead's locality matches the target area.
    """
    rating: Optional[float] = None
    review_count: Optional[int] = None
    has_phone: bool = False
    has_website: bool = False
    city_match: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating,
            "review_count": self.review_count,
            "has_phone": self.has_phone,
            "has_website": self.has_website,
            "city_match": self.city_match,
        }


@dataclass
class ScoreResult:
    """A lead score and the reasoning behind it.

    Attributes:
        score: Integer score in [0, 100].
        reason: Human-readable rationale.
        source: ``"llm"`` or ``"heuristic"``.
    """
    score: int
    reason: str
    source: str = "heuristic"

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "reason": self.reason, "source": self.source}


def clamp_score(value: float) -> int:
    """Clamp to [0, 100] and round half-up to an integer."""
    bounded = max(MIN_SCORE, min(MAX_SCORE, value))
    return int(math.floor(bounded + 0.5))


def _format_points(points: float) -> str:
    # 52.5 -> "52.5", 60.0 -> "60"
    return f"{points:g}"


def heuristic_score(features: ScoringFeatures) -> ScoreResult:
    """Score a lead with the deterministic heuristic.

    Args:
        features: Lead features to score.

    Returns:
        ScoreResult with source ``"heuristic"``.

    Examples:
        >>> heuristic_score(ScoringFeatures(rating=5, review_count=100,
        ...     has_phone=True, has_website=True, city_match=True)).score
        100
    """
    total = 0.0
    reasons = []

    if features.rating:
        rating_points = (features.rating - 1) * RATING_POINTS_PER_STAR
        total += rating_points
        reasons.append(
            f"{_format_points(features.rating)} star rating (+{_format_points(rating_points)})"
        )

    if features.review_count and features.review_count > 0:
        review_points = min(
            MAX_REVIEW_POINTS, math.log10(features.review_count) * REVIEW_LOG_FACTOR
        )
        total += review_points
        reasons.append(
            f"{features.review_count} reviews (+{int(math.floor(review_points + 0.5))})"
        )

    if features.has_phone:
        total += PHONE_POINTS
        reasons.append(f"Has phone (+{PHONE_POINTS})")

    if features.has_website:
        total += WEBSITE_POINTS
        reasons.append(f"Has website (+{WEBSITE_POINTS})")

    if features.city_match:
        total += CITY_MATCH_POINTS
        reasons.append(f"Location match (+{CITY_MATCH_POINTS})")

    return ScoreResult(
        score=clamp_score(total),
        reason=", ".join(reasons) or NO_FACTORS_REASON,
        source="heuristic",
    )


def city_matches(lead_city: Optional[str], service_area: Optional[list]) -> bool:
    """Check whether a lead's city appears in a business's service area."""
    city = (lead_city or "").strip().lower()
    if not city or not service_area:
        return False
    return any(city in area.lower() for area in service_area if area)
