"""Unit tests for the heuristic lead score and the LLM-first scorer."""

import pytest

from coldcall.integrations.llm import LLMResult
from coldcall.services.lead_scorer import LeadScorer, parse_llm_score
from coldcall.utils.lead_scoring import (
    NO_FACTORS_REASON,
    ScoringFeatures,
    city_matches,
    clamp_score,
    heuristic_score,
)

from factories import fake_llm


class TestHeuristicScore:
    """Tests for the deterministic 0-100 score."""

    def test_all_factors_clamped_to_100(self):
        """Test that 60 + 16 + 15 + 5 + 10 = 106 is clamped to 100."""
        result = heuristic_score(
            ScoringFeatures(
                rating=5, review_count=100, has_phone=True, has_website=True, city_match=True
            )
        )
        assert result.score == 100
        assert result.source == "heuristic"

    def test_partial_factors_round_half_up(self):
        """Test 52.5 + 8 + 15 = 75.5 rounds to 76."""
        result = heuristic_score(ScoringFeatures(rating=4.5, review_count=10, has_phone=True))
        assert result.score == 76
        assert result.reason == "4.5 star rating (+52.5), 10 reviews (+8), Has phone (+15)"

    def test_no_factors(self):
        result = heuristic_score(ScoringFeatures())
        assert result.score == 0
        assert result.reason == NO_FACTORS_REASON

    def test_review_points_capped_at_20(self):
        result = heuristic_score(ScoringFeatures(review_count=1_000_000))
        assert result.score == 20

    def test_one_star_adds_nothing(self):
        assert heuristic_score(ScoringFeatures(rating=1)).score == 0

    def test_monotonic_in_rating(self):
        """Test that raising the rating never lowers the score."""
        scores = [
            heuristic_score(
                ScoringFeatures(rating=r / 2, review_count=40, has_website=True)
            ).score
            for r in range(2, 11)
        ]
        assert scores == sorted(scores)

    @pytest.mark.parametrize("value,expected", [(-5, 0), (0.5, 1), (99.4, 99), (250, 100)])
    def test_clamp_score(self, value, expected):
        assert clamp_score(value) == expected


class TestCityMatches:
    def test_case_insensitive_substring(self):
        assert city_matches("san jose", ["San Jose, CA"])

    def test_no_match(self):
        assert not city_matches("Oakland", ["San Jose, CA"])

    def test_empty_inputs(self):
        assert not city_matches("", ["San Jose"])
        assert not city_matches("San Jose", [])


class TestLeadScorer:
    """Tests for LLM-first scoring with heuristic fallback."""

    @pytest.mark.asyncio
    async def test_llm_score_used_and_clamped(self):
        llm = fake_llm(LLMResult(success=True, data={"score": 150, "reason": "Strong fit"}))
        scorer = LeadScorer(llm_client=llm, model="test-model")

        result = await scorer.score(ScoringFeatures(rating=4.0))

        assert result.score == 100
        assert result.reason == "Strong fit"
        assert result.source == "llm"
        assert llm.complete_json.await_args.kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_non_numeric_llm_score_falls_back(self):
        llm = fake_llm(LLMResult(success=True, data={"score": "high"}))
        result = await LeadScorer(llm_client=llm).score(ScoringFeatures(has_phone=True))
        assert result.source == "heuristic"
        assert result.score == 15

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(self, unconfigured_llm):
        result = await LeadScorer(llm_client=unconfigured_llm).score(
            ScoringFeatures(has_phone=True, has_website=True)
        )
        assert result.source == "heuristic"
        assert result.score == 20

    @pytest.mark.asyncio
    async def test_llm_disabled(self, unconfigured_llm):
        scorer = LeadScorer(llm_client=unconfigured_llm, use_llm=False)
        await scorer.score(ScoringFeatures())
        unconfigured_llm.complete_json.assert_not_awaited()

    def test_missing_reason_gets_default(self):
        parsed = parse_llm_score(LLMResult(success=True, data={"score": 42}))
        assert parsed.score == 42
        assert parsed.reason == "AI generated score"

    def test_boolean_score_rejected(self):
        assert parse_llm_score(LLMResult(success=True, data={"score": True})) is None
