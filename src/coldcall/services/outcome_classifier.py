"""Call outcome classification from transcripts.

The LLM produces a short summary and one of the five ``CallOutcome`` values.
Whenever that fails, a keyword match over the lower-cased transcript is used
instead, so ``classify`` always returns an outcome.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..integrations.llm import LLMClient, LLMResult
from ..models import CallOutcome


logger = logging.getLogger(__name__)

OUTCOME_SYSTEM_PROMPT = """Analyze this cold call transcript and provide:
1. A brief summary (2-3 sentences)
2. Call outcome classification: interested|callback|not_interested|vm_left|no_answer

Return JSON: {"summary": "...", "outcome": "..."}

Guidelines:
- interested: Prospect showed genuine interest, wants to learn more
- callback: Prospect wants to be called back later or set up a meeting
- not_interested: Clear rejection, asked to be removed from lists
- vm_left: Reached voicemail and left a message
- no_answer: No one answered or call didn't connect properly"""

DEFAULT_LLM_SUMMARY = "Call completed"

# Checked in order; the first group with a matching phrase wins
KEYWORD_RULES: tuple[tuple[CallOutcome, tuple[str, ...]], ...] = (
    (CallOutcome.INTERESTED, ("interested", "tell me more")),
    (CallOutcome.CALLBACK, ("call back", "meeting")),
    (CallOutcome.NOT_INTERESTED, ("not interested", "remove")),
    (CallOutcome.VM_LEFT, ("voicemail", "message")),
)


@dataclass
class OutcomeClassification:
    """Summary and outcome for one transcript.

    Attributes:
        summary: Short summary of the call.
        outcome: Classified outcome.
        source: ``"llm"`` or ``"keywords"``.
    """

    summary: str
    outcome: CallOutcome
    source: str = "keywords"


def classify_by_keywords(transcript: str) -> CallOutcome:
    """Classify a transcript by keyword precedence.

    Note that "not interested" contains "interested", so it classifies as
    ``interested``; the ``not_interested`` rule only fires on "remove".
    """
    text = (transcript or "").lower()
    for outcome, phrases in KEYWORD_RULES:
        if any(phrase in text for phrase in phrases):
            return outcome
    return CallOutcome.NO_ANSWER


def keyword_summary(transcript: str) -> str:
    return f"Call completed. Duration: {len(transcript or '')} characters."


def parse_outcome_response(result: LLMResult) -> Optional[OutcomeClassification]:
    """Validate an LLM outcome response, or return None if unusable."""
    if not result.success:
        return None

    raw_outcome = result.data.get("outcome")
    try:
        outcome = CallOutcome(str(raw_outcome).strip().lower())
    except ValueError:
        return None

    summary = result.data.get("summary")
    if isinstance(summary, list):
        summary = " ".join(str(part) for part in summary)
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_LLM_SUMMARY

    return OutcomeClassification(summary=summary.strip(), outcome=outcome, source="llm")


class CallOutcomeClassifier:
    """Maps a transcript to a summary and outcome.

    Args:
        llm_client: LLM client. Created from config when omitted.
        model: Chat model override.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, model: Optional[str] = None):
        self._llm_client = llm_client
        self.model = model

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    async def classify(self, transcript: str) -> OutcomeClassification:
        """Classify a transcript. Never raises."""
        result = await self.llm_client.complete_json(
            [
                {"role": "system", "content": OUTCOME_SYSTEM_PROMPT},
                {"role": "user", "content": transcript},
            ],
            model=self.model,
            temperature=0.1,
        )
        parsed = parse_outcome_response(result)
        if parsed is not None:
            return parsed

        logger.warning(
            "Transcript classification fell back to keywords",
            extra={"error": result.error or "invalid outcome payload"},
        )
        return OutcomeClassification(
            summary=keyword_summary(transcript),
            outcome=classify_by_keywords(transcript),
            source="keywords",
        )
