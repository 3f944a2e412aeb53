"""Call persistence keyed by internal id and provider call id."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Call, CallOutcome, CallStatus, Lead, utcnow


logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (CallStatus.QUEUED, CallStatus.INITIATED, CallStatus.IN_PROGRESS)

# Columns a webhook-driven patch may write
CALL_PATCH_FIELDS = (
    "status",
    "recording_url",
    "cost_usd",
    "started_at",
    "ended_at",
    "disposition_notes",
)


class CallNotFoundError(Exception):
    """Raised when a provider call id has no matching call record."""

    def __init__(self, provider_call_id: str):
        self.provider_call_id = provider_call_id
        super().__init__(f"Call not found for provider call ID: {provider_call_id}")


@dataclass
class TranscriptUpdate:
    """Result of attaching a transcript to a call.

    Attributes:
        call: The updated call.
        outcome_applied: True when this update recorded the call's outcome
            for the first time.
    """
    call: Call
    outcome_applied: bool


class CallStore:
    """Call repository bound to one async session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        business_id: str,
        lead_id: str,
        provider_call_id: Optional[str] = None,
        status: CallStatus = CallStatus.QUEUED,
    ) -> Call:
        """Create a call record for a lead."""
        now = utcnow()
        call = Call(
            business_id=business_id,
            lead_id=lead_id,
            provider_call_id=provider_call_id or None,
            status=status,
            outcome="",
            disposition_notes="",
            created_at=now,
            updated_at=now,
        )
        self.session.add(call)
        await self.session.flush()
        return call

    async def get(self, call_id: str) -> Optional[Call]:
        return await self.session.get(Call, call_id)

    async def get_by_provider_id(self, provider_call_id: str) -> Call:
        """Look up a call by the voice provider's call id.

        Raises:
            CallNotFoundError: If no call carries this provider id.
        """
        result = await self.session.execute(
            select(Call).where(Call.provider_call_id == provider_call_id).limit(1)
        )
        call = result.scalar_one_or_none()
        if call is None:
            raise CallNotFoundError(provider_call_id)
        return call

    async def update_by_provider_id(self, provider_call_id: str, **fields: Any) -> Call:
        """Patch a call located by provider call id.

        Raises:
            CallNotFoundError: If no call carries this provider id.
            ValueError: If an unknown field name is passed.
        """
        unknown = set(fields) - set(CALL_PATCH_FIELDS)
        if unknown:
            raise ValueError(f"Unknown call fields: {', '.join(sorted(unknown))}")

        call = await self.get_by_provider_id(provider_call_id)
        for key, value in fields.items():
            setattr(call, key, value)
        call.updated_at = utcnow()
        await self.session.flush()
        return call

    async def add_transcript(
        self,
        provider_call_id: str,
        transcript: str,
        summary: str,
        outcome: CallOutcome,
        disposition_notes: str = "",
    ) -> TranscriptUpdate:
        """Attach transcript analysis to a call.

        The transcript and summary are always refreshed. The outcome and
        disposition notes are written only when the call has no outcome yet,
        so a re-delivered event cannot change a recorded outcome.

        Raises:
            CallNotFoundError: If no call carries this provider id.
        """
        call = await self.get_by_provider_id(provider_call_id)
        call.transcript = transcript
        call.summary = summary

        outcome_applied = not call.outcome
        if outcome_applied:
            call.outcome = outcome.value
            call.disposition_notes = disposition_notes
        else:
            logger.info(
                "Call outcome already recorded, keeping %s",
                call.outcome,
                extra={"provider_call_id": provider_call_id},
            )

        call.updated_at = utcnow()
        await self.session.flush()
        return TranscriptUpdate(call=call, outcome_applied=outcome_applied)

    async def get_by_lead(self, lead_id: str) -> List[Call]:
        result = await self.session.execute(
            select(Call).where(Call.lead_id == lead_id).order_by(Call.created_at.desc())
        )
        return list(result.scalars())

    async def get_active(self, business_id: str) -> List[Call]:
        """Calls that have not reached a terminal status."""
        result = await self.session.execute(
            select(Call).where(
                Call.business_id == business_id,
                Call.status.in_(ACTIVE_STATUSES),
            )
        )
        return list(result.scalars())

    async def list(self, business_id: str) -> List[Dict[str, Any]]:
        """List a business's calls, newest first, with lead contact info."""
        result = await self.session.execute(
            select(Call, Lead.name, Lead.phone, Lead.city)
            .outerjoin(Lead, Lead.id == Call.lead_id)
            .where(Call.business_id == business_id)
            .order_by(Call.created_at.desc())
        )
        calls = []
        for call, lead_name, lead_phone, lead_city in result.all():
            data = call.to_dict()
            data["lead_name"] = lead_name or "Unknown"
            data["lead_phone"] = lead_phone
            data["lead_city"] = lead_city
            calls.append(data)
        return calls

    async def get_stats(self, business_id: str) -> Dict[str, Any]:
        """Aggregate call counts, cost and duration for a business."""
        result = await self.session.execute(
            select(Call).where(Call.business_id == business_id)
        )
        calls = list(result.scalars())

        by_status = {status.value: 0 for status in CallStatus}
        by_outcome = {outcome.value: 0 for outcome in CallOutcome}
        total_cost = 0.0
        durations = []

        for call in calls:
            by_status[call.status.value] += 1
            if call.outcome in by_outcome:
                by_outcome[call.outcome] += 1
            total_cost += call.cost_usd or 0.0
            if call.duration_seconds is not None:
                durations.append(call.duration_seconds)

        return {
            "total": len(calls),
            "by_status": by_status,
            "by_outcome": by_outcome,
            "total_cost": round(total_cost, 2),
            "avg_duration_seconds": round(sum(durations) / len(durations)) if durations else 0,
        }

    async def remove(self, call_id: str) -> None:
        await self.session.execute(delete(Call).where(Call.id == call_id))
        await self.session.flush()
