"""Cold-call script generation.

Scripts come from the LLM with per-field defaults; if generation fails
entirely a fixed template is used so a call can always be placed.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..integrations.llm import LLMClient


logger = logging.getLogger(__name__)

SCRIPT_SYSTEM_PROMPT = (
    "You are an expert sales script writer specializing in B2B cold calls. "
    "Create compliant, effective scripts that respect TCPA requirements and "
    "focus on value delivery."
)

DEFAULT_CTA = (
    "Would you be available for a brief 15-minute conversation next week to "
    "discuss how this might benefit your business?"
)
DEFAULT_CLOSING = "Thank you for your time today. Have a great day!"

TONES = ("professional", "friendly", "casual")


@dataclass
class ScriptParams:
    """Inputs for one generated script."""

    business_name: str
    business_category: str
    business_usp: str
    lead_category: str
    lead_city: str
    lead_name: Optional[str] = None
    tone: str = "professional"


@dataclass
class CallScript:
    """A complete call script.

    Attributes:
        opener: First line, including the recording disclaimer.
        value_props: Value propositions to use when appropriate.
        objections: ``{"objection", "reply"}`` pairs.
        cta: Call to action.
        closing: Closing line.
    """

    opener: str
    value_props: List[str] = field(default_factory=list)
    objections: List[Dict[str, str]] = field(default_factory=list)
    cta: str = DEFAULT_CTA
    closing: str = DEFAULT_CLOSING

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallScript":
        """Rebuild a stored script."""
        return cls(
            opener=data.get("opener", ""),
            value_props=list(data.get("value_props") or []),
            objections=list(data.get("objections") or []),
            cta=data.get("cta") or DEFAULT_CTA,
            closing=data.get("closing") or DEFAULT_CLOSING,
        )


def build_script_prompt(params: ScriptParams) -> str:
    lead_name_line = f"- Name: {params.lead_name}" if params.lead_name else ""
    return f"""Generate a concise cold-call script for a {params.business_category} business pitching to {params.lead_category} prospects in {params.lead_city}.

Business Details:
- Name: {params.business_name}
- USP: {params.business_usp}
- Category: {params.business_category}

Target Prospect:
- Category: {params.lead_category}
- Location: {params.lead_city}
{lead_name_line}

Requirements:
- Opener: 15 seconds or less, include compliance disclaimer
- 2 compelling value propositions specific to {params.lead_category}
- 2 common objections with professional rebuttals
- 1 clear call-to-action
- Professional closing
- Tone: {params.tone}

Return JSON with fields: opener, valueProps, objections:[{{objection, reply}}], cta, closing"""


def _greeting_name(params: ScriptParams) -> str:
    return params.lead_name or "there"


def _valid_objections(raw: Any) -> Optional[List[Dict[str, str]]]:
    if not isinstance(raw, list):
        return None
    objections = [
        {"objection": str(item["objection"]), "reply": str(item["reply"])}
        for item in raw
        if isinstance(item, dict) and item.get("objection") and item.get("reply")
    ]
    return objections or None


def script_from_payload(data: Dict[str, Any], params: ScriptParams) -> CallScript:
    """Build a script from an LLM payload, defaulting each missing field."""
    opener = data.get("opener")
    if not isinstance(opener, str) or not opener.strip():
        opener = (
            f"Hi {_greeting_name(params)}, this is a virtual assistant calling on behalf "
            f"of {params.business_name}. This call may be recorded. Is now a bad time?"
        )

    value_props = data.get("valueProps")
    if not isinstance(value_props, list) or not value_props:
        value_props = [
            f"We help {params.lead_category} businesses improve their operations",
            "Our proven approach saves time and reduces costs",
        ]

    objections = _valid_objections(data.get("objections")) or [
        {
            "objection": "We're not interested right now",
            "reply": (
                "I understand timing is important. Would it be helpful if I sent you "
                "some information to review when you have a moment?"
            ),
        },
        {
            "objection": "We already have a solution",
            "reply": (
                "That's great to hear you're being proactive. Many of our best clients "
                "had existing solutions before discovering the additional benefits we "
                "could provide. Would you be open to a brief conversation about what's "
                "working well for you?"
            ),
        },
    ]

    cta = data.get("cta")
    closing = data.get("closing")
    return CallScript(
        opener=opener.strip(),
        value_props=[str(prop) for prop in value_props],
        objections=objections,
        cta=cta.strip() if isinstance(cta, str) and cta.strip() else DEFAULT_CTA,
        closing=closing.strip() if isinstance(closing, str) and closing.strip() else DEFAULT_CLOSING,
    )


def fallback_script(params: ScriptParams) -> CallScript:
    """Template script used when generation fails."""
    return CallScript(
        opener=(
            f"Hi {_greeting_name(params)}, this is a virtual assistant calling on behalf "
            f"of {params.business_name}, a {params.business_category} in your area. "
            "This call may be recorded. Is now a bad time?"
        ),
        value_props=[
            f"We specialize in helping {params.lead_category} businesses improve their operations",
            "Our clients typically see measurable improvements in efficiency and cost savings",
        ],
        objections=[
            {
                "objection": "We're not interested",
                "reply": (
                    "I completely understand. Would it be helpful if I sent you some "
                    "information to review at your convenience?"
                ),
            },
            {
                "objection": "We're too busy right now",
                "reply": (
                    "I appreciate that you're busy - that's exactly why our solution "
                    "might be valuable. It's designed to save time for businesses like yours."
                ),
            },
        ],
        cta=(
            "Would you be open to a brief 10-minute conversation to see if this might "
            "be a fit for your business?"
        ),
        closing="Thank you for your time. Have a wonderful day!",
    )


async def generate_call_script(
    params: ScriptParams, llm_client: Optional[LLMClient] = None
) -> CallScript:
    """Generate a script for one business/prospect pairing.

    Vendor failures produce ``fallback_script``.

    Raises:
        ValueError: If ``params.tone`` is not one of ``TONES``.
    """
    if params.tone not in TONES:
        raise ValueError(f"Unsupported tone: {params.tone}")

    llm = llm_client or LLMClient()
    result = await llm.complete_json(
        [
            {"role": "system", "content": SCRIPT_SYSTEM_PROMPT},
            {"role": "user", "content": build_script_prompt(params)},
        ],
        temperature=0.1,
    )
    if not result.success:
        logger.warning("Script generation fell back to template: %s", result.error)
        return fallback_script(params)

    return script_from_payload(result.data, params)
