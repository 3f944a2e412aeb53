"""Outbound call placement through the voice provider.

Calls are placed one at a time with a fixed delay between them, only inside
the business's configured call window, and never to numbers matching one of
its do-not-call patterns.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timezone
from fnmatch import fnmatchcase
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import config
from ..integrations.vapi import END_CALL_FUNCTION, VapiClient, VapiError, format_e164
from ..models import Business, BusinessSettings, CallStatus, Lead, LeadStatus
from ..store.businesses import BusinessStore
from ..store.leads import LeadStore
from .call_state_machine import CallStateMachine
from .script_generator import CallScript


logger = logging.getLogger(__name__)

ASSISTANT_NAME_TEMPLATE = "{business_name} Cold Call Assistant"

_NON_DIGIT = re.compile(r"\D")


class CallWindowClosedError(Exception):
    """Raised when calls are requested outside the business's call window."""

    def __init__(self, business_id: str, window: str):
        self.business_id = business_id
        self.window = window
        super().__init__(f"Outside call window {window} for business {business_id}")


@dataclass
class CallPlacement:
    """Result of one placement attempt."""

    lead_id: str
    provider_call_id: str
    status: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "lead_id": self.lead_id,
            "provider_call_id": self.provider_call_id,
            "status": self.status,
        }


def build_assistant_system_message(business_name: str, script: CallScript) -> str:
    """Compliance-first system prompt for the calling assistant."""
    value_props = "\n".join(
        f"{i + 1}. {prop}" for i, prop in enumerate(script.value_props)
    )
    objections = "\n".join(
        f'{i + 1}. Objection: "{item["objection"]}"\n   Response: "{item["reply"]}"'
        for i, item in enumerate(script.objections)
    )
    return f"""You are a virtual sales assistant calling on behalf of {business_name}.

COMPLIANCE FIRST:
- Always start with: "{script.opener}"
- If asked to be removed from lists, immediately comply and end the call
- Respect "not interested" responses
- Keep calls under 3 minutes unless prospect is actively engaged

SCRIPT GUIDANCE:
Opener: {script.opener}

Value Propositions (use when appropriate):
{value_props}

Common Objections and Responses:
{objections}

Call-to-Action: {script.cta}

Closing: {script.closing}

INSTRUCTIONS:
- Be conversational and natural, don't read the script word-for-word
- Listen actively and respond to what the prospect actually says
- If they seem interested, focus on scheduling a follow-up
- If they're not interested, politely end the call
- Always be respectful and professional
- End calls that become confrontational
- Take detailed notes on the prospect's responses"""


def _parse_clock(value: str) -> time:
    hours, minutes = value.split(":", 1)
    return time(int(hours), int(minutes))


def is_within_call_window(
    settings: BusinessSettings, now: Optional[datetime] = None
) -> bool:
    """Whether ``now`` falls inside the settings' local call window.

    The window is half-open ``[start, end)``. A start later than the end
    wraps past midnight.

    Raises:
        ValueError: If the timezone or window times are invalid.
    """
    try:
        tz = ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown timezone: {settings.timezone}") from e

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz).time()

    start = _parse_clock(settings.call_window_start)
    end = _parse_clock(settings.call_window_end)
    if start <= end:
        return start <= local < end
    return local >= start or local < end


def matches_do_not_call(phone: str, patterns: Optional[Iterable[str]]) -> bool:
    """Check a phone number against do-not-call patterns.

    Patterns are shell-style globs (``*``, ``?``) over digits; other
    characters in a pattern are ignored. Both the full digit string and its
    last ten digits are tested, so ``555*`` matches ``+1 (555) 010-9999``.
    """
    digits = _NON_DIGIT.sub("", phone or "")
    if not digits:
        return False
    candidates = {digits, digits[-10:]}
    for pattern in patterns or ():
        cleaned = re.sub(r"[^0-9*?]", "", pattern)
        if cleaned and any(fnmatchcase(c, cleaned) for c in candidates):
            return True
    return False


class CallOrchestrator:
    """Places calls for one business and records them.

    Args:
        session: Active async session; the caller commits.
        vapi_client: Voice provider client. Created from config when omitted.
        delay_seconds: Pause between placements. Defaults to config.
        sleep: Awaitable sleep (tests pass a no-op).
    """

    def __init__(
        self,
        session: AsyncSession,
        vapi_client: Optional[VapiClient] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session = session
        self.vapi = vapi_client or VapiClient()
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else config.CALL_PLACEMENT_DELAY_SECONDS
        )
        self.sleep = sleep
        self.businesses = BusinessStore(session)
        self.leads = LeadStore(session)
        self.state_machine = CallStateMachine(session)

    async def create_assistant(self, business_name: str, script: CallScript) -> str:
        """Create the assistant that conducts this run's calls.

        Raises:
            VapiError: If the provider rejects the assistant.
        """
        return await self.vapi.create_assistant(
            name=ASSISTANT_NAME_TEMPLATE.format(business_name=business_name),
            system_message=build_assistant_system_message(business_name, script),
            functions=[END_CALL_FUNCTION],
        )

    async def start_calls(
        self,
        business: Business,
        leads: List[Lead],
        script: CallScript,
        now: Optional[datetime] = None,
    ) -> List[CallPlacement]:
        """Place calls to ``leads`` in order.

        Leads without a phone or matching a do-not-call pattern are skipped.
        A failed placement is reported as ``failed`` and the loop continues.

        Raises:
            CallWindowClosedError: If ``now`` is outside the call window.
            VapiError: If the assistant cannot be created.
        """
        settings = await self.businesses.get_settings(business.id)
        if not is_within_call_window(settings, now):
            raise CallWindowClosedError(
                business.id,
                f"{settings.call_window_start}-{settings.call_window_end} {settings.timezone}",
            )

        leads = leads[: settings.per_run_lead_cap]
        assistant_id = await self.create_assistant(business.name, script)

        results: List[CallPlacement] = []
        for lead in leads:
            if not lead.phone:
                logger.warning("Skipping lead %s - no phone number", lead.name)
                continue
            if matches_do_not_call(lead.phone, settings.do_not_call_patterns):
                logger.info("Skipping lead %s - matches do-not-call list", lead.name)
                continue

            try:
                vapi_call = await self.vapi.create_call(
                    format_e164(lead.phone),
                    assistant_id,
                    metadata={
                        "leadId": lead.id,
                        "leadName": lead.name,
                        "leadCity": lead.city,
                        "businessName": business.name,
                        "businessUSP": business.usp or "",
                    },
                )
            except VapiError as e:
                logger.error(
                    "Error creating call for lead %s: %s", lead.name, e,
                    extra={"lead_id": lead.id, "status_code": e.status_code},
                )
                results.append(CallPlacement(lead.id, "", "failed"))
                continue

            await self.state_machine.call_placed(
                business.id, lead.id, provider_call_id=vapi_call.id, status=CallStatus.INITIATED
            )
            results.append(CallPlacement(lead.id, vapi_call.id, CallStatus.INITIATED.value))
            await self.sleep(self.delay_seconds)

        logger.info(
            "Placed %d of %d calls",
            sum(1 for r in results if r.status != "failed"), len(results),
            extra={"business_id": business.id},
        )
        return results

    async def queue_top_leads(self, business_id: str) -> List[str]:
        """Promote the top-scoring ``new`` leads to ``queued``, up to the run cap."""
        settings = await self.businesses.get_settings(business_id)
        return await self.leads.batch_update_status(
            business_id,
            LeadStatus.NEW,
            LeadStatus.QUEUED,
            limit=settings.per_run_lead_cap,
        )

    async def call_queued_leads(
        self, business_id: str, now: Optional[datetime] = None
    ) -> List[CallPlacement]:
        """Call the business's queued leads using its latest saved script.

        Raises:
            BusinessNotFoundError: If the business does not exist.
            ValueError: If the business has no saved script.
            CallWindowClosedError: Outside the call window.
        """
        business = await self.businesses.get_or_raise(business_id)
        record = await self.businesses.get_latest_script(business_id)
        if record is None:
            raise ValueError(f"No call script saved for business {business_id}")

        leads = await self.leads.list(business_id, status=LeadStatus.QUEUED)
        return await self.start_calls(business, leads, CallScript.from_dict(record.script), now=now)
