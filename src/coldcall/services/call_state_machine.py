"""Call lifecycle transitions and their side effects on leads.

States: ``queued -> initiated -> in_progress -> ended``, with ``failed``
reachable from any non-terminal state. Provider events are matched to calls
by provider call id; an unknown id raises ``CallNotFoundError``.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import config
from ..models import Call, CallOutcome, CallStatus, LeadStatus, utcnow
from ..store.calls import CallStore, TranscriptUpdate
from ..store.leads import LeadStore
from .outcome_classifier import CallOutcomeClassifier


logger = logging.getLogger(__name__)

OUTCOME_TO_LEAD_STATUS = {
    CallOutcome.INTERESTED: LeadStatus.REACHED,
    CallOutcome.CALLBACK: LeadStatus.REACHED,
    CallOutcome.NOT_INTERESTED: LeadStatus.DO_NOT_CALL,
    CallOutcome.NO_ANSWER: LeadStatus.NO_ANSWER,
    CallOutcome.VM_LEFT: LeadStatus.NO_ANSWER,
}


def lead_status_for_outcome(outcome: object) -> LeadStatus:
    """Map a call outcome to the lead status it implies (default no_answer)."""
    try:
        return OUTCOME_TO_LEAD_STATUS[CallOutcome(outcome)]
    except ValueError:
        return LeadStatus.NO_ANSWER


def estimate_call_cost(
    duration_seconds: Optional[float], cost_per_minute: float
) -> float:
    """Flat per-minute cost rounded half-up to cents; 0 without a duration."""
    if not duration_seconds:
        return 0.0
    cents = duration_seconds / 60 * cost_per_minute * 100
    return math.floor(cents + 0.5) / 100


class CallStateMachine:
    """Applies call lifecycle events within one database session.

    Args:
        session: Active async session; the caller commits.
        classifier: Outcome classifier used on completed transcripts.
        cost_per_minute: Flat call rate in USD. Defaults to config.
    """

    def __init__(
        self,
        session: AsyncSession,
        classifier: Optional[CallOutcomeClassifier] = None,
        cost_per_minute: Optional[float] = None,
    ):
        self.calls = CallStore(session)
        self.leads = LeadStore(session)
        self.classifier = classifier or CallOutcomeClassifier()
        self.cost_per_minute = (
            cost_per_minute if cost_per_minute is not None else config.CALL_COST_PER_MINUTE
        )

    async def call_placed(
        self,
        business_id: str,
        lead_id: str,
        provider_call_id: Optional[str] = None,
        status: CallStatus = CallStatus.INITIATED,
    ) -> Call:
        """Record a newly placed call and mark its lead queued."""
        if status not in (CallStatus.QUEUED, CallStatus.INITIATED):
            raise ValueError(f"A new call cannot start in status {status.value}")

        call = await self.calls.create(
            business_id=business_id,
            lead_id=lead_id,
            provider_call_id=provider_call_id,
            status=status,
        )
        await self.leads.update_status(lead_id, LeadStatus.QUEUED)
        logger.info(
            "Call placed",
            extra={"call_id": call.id, "lead_id": lead_id, "provider_call_id": provider_call_id},
        )
        return call

    def _is_settled(self, call: Call, event: str) -> bool:
        """Terminal calls ignore further status events."""
        if call.status.is_terminal:
            logger.info(
                "Ignoring %s for call in terminal status %s",
                event, call.status.value,
                extra={"provider_call_id": call.provider_call_id},
            )
            return True
        return False

    async def call_started(
        self, provider_call_id: str, started_at: Optional[datetime] = None
    ) -> Call:
        """Provider reports the call connected."""
        call = await self.calls.get_by_provider_id(provider_call_id)
        if self._is_settled(call, "call.started"):
            return call
        return await self.calls.update_by_provider_id(
            provider_call_id,
            status=CallStatus.IN_PROGRESS,
            started_at=started_at or utcnow(),
        )

    async def transcript_completed(
        self, provider_call_id: str, transcript: str
    ) -> Optional[TranscriptUpdate]:
        """Classify a finished transcript and record the outcome.

        The lead's status is updated only the first time an outcome is
        recorded for the call. Late transcripts on terminal calls still
        attach.

        Returns:
            The transcript update, or None when the transcript is empty.
        """
        if not transcript or not transcript.strip():
            return None

        # Resolve the call before spending an LLM request on it
        await self.calls.get_by_provider_id(provider_call_id)

        classification = await self.classifier.classify(transcript)
        update = await self.calls.add_transcript(
            provider_call_id,
            transcript=transcript,
            summary=classification.summary,
            outcome=classification.outcome,
        )

        if update.outcome_applied:
            await self.leads.update_status(
                update.call.lead_id, lead_status_for_outcome(classification.outcome)
            )
            logger.info(
                "Call outcome recorded",
                extra={
                    "provider_call_id": provider_call_id,
                    "outcome": classification.outcome.value,
                    "classifier": classification.source,
                },
            )
        return update

    async def call_ended(
        self,
        provider_call_id: str,
        duration_seconds: Optional[float] = None,
        recording_url: Optional[str] = None,
        ended_at: Optional[datetime] = None,
    ) -> Call:
        """Provider reports the call ended normally."""
        call = await self.calls.get_by_provider_id(provider_call_id)
        if self._is_settled(call, "call.ended"):
            return call

        fields = {
            "status": CallStatus.ENDED,
            "ended_at": ended_at or utcnow(),
            "cost_usd": estimate_call_cost(duration_seconds, self.cost_per_minute),
        }
        if recording_url:
            fields["recording_url"] = recording_url
        return await self.calls.update_by_provider_id(provider_call_id, **fields)

    async def call_failed(
        self, provider_call_id: str, ended_at: Optional[datetime] = None
    ) -> Call:
        """Provider reports the call failed."""
        call = await self.calls.get_by_provider_id(provider_call_id)
        if self._is_settled(call, "call.failed"):
            return call
        return await self.calls.update_by_provider_id(
            provider_call_id,
            status=CallStatus.FAILED,
            ended_at=ended_at or utcnow(),
        )
