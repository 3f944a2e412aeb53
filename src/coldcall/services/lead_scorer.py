"""Lead scoring: LLM-first with a deterministic heuristic fallback."""

import logging
from typing import Any, Dict, Optional

from ..config import config
from ..integrations.llm import LLMClient, LLMResult
from ..utils.lead_scoring import ScoreResult, ScoringFeatures, clamp_score, heuristic_score


logger = logging.getLogger(__name__)

SCORING_SYSTEM_PROMPT = "Score business leads from 0-100 and provide brief reasoning."
DEFAULT_LLM_REASON = "AI generated score"


def parse_llm_score(result: LLMResult) -> Optional[ScoreResult]:
    """Validate an LLM scoring response.

    Returns:
        A clamped ScoreResult, or None if the response is unusable.
    """
    if not result.success:
        return None

    raw_score: Any = result.data.get("score")
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        return None

    reason = result.data.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = DEFAULT_LLM_REASON

    return ScoreResult(score=clamp_score(raw_score), reason=reason.strip(), source="llm")


class LeadScorer:
    """Scores leads 0-100.

    The LLM is asked first; when it is unavailable or returns something that
    does not validate, the heuristic in ``utils.lead_scoring`` is used.

    Example:
        >>> scorer = LeadScorer(llm_client=LLMClient(api_key=""))
        >>> (await scorer.score(ScoringFeatures(rating=4.0, has_phone=True))).source
        'heuristic'
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        model: Optional[str] = None,
        use_llm: bool = True,
    ):
        self._llm_client = llm_client
        self.model = model or config.OPENAI_SCORING_MODEL
        self.use_llm = use_llm

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    def _build_messages(self, features: ScoringFeatures) -> list[Dict[str, str]]:
        return [
            {"role": "system", "content": SCORING_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Score this lead: rating={features.rating}, "
                    f"reviews={features.review_count}, hasPhone={features.has_phone}, "
                    f"hasWebsite={features.has_website}, cityMatch={features.city_match}. "
                    "Return JSON: {score, reason}"
                ),
            },
        ]

    async def score(self, features: ScoringFeatures) -> ScoreResult:
        """Score one lead. Never raises for vendor failures."""
        if self.use_llm:
            result = await self.llm_client.complete_json(
                self._build_messages(features), model=self.model
            )
            parsed = parse_llm_score(result)
            if parsed is not None:
                return parsed
            logger.debug(
                "LLM scoring unavailable, using heuristic",
                extra={"error": result.error or "invalid score payload"},
            )

        return heuristic_score(features)
