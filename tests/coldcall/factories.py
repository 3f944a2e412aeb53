"""Seed helpers and fake vendor clients shared by the cold-call tests."""

from typing import Any, Optional
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import AsyncSession

from coldcall.integrations.llm import LLMClient, LLMResult
from coldcall.store.businesses import BusinessStore
from coldcall.store.calls import CallStore
from coldcall.store.leads import LeadStore
from coldcall.utils.dedup import normalize_dedup_key


# ============================================================================
# Seed Helpers
# ============================================================================

async def create_business(session: AsyncSession, **overrides: Any):
    """Create a business with default settings."""
    fields = {
        "name": "Bay Area Plumbing",
        "source_url": "https://bayareaplumbing.example.com",
        "category": "plumber",
        "service_area": ["San Jose, CA", "Santa Clara"],
        "icp": "Homeowners",
        "usp": "24/7 emergency service",
    }
    fields.update(overrides)
    return await BusinessStore(session).create(**fields)


async def create_lead(
    session: AsyncSession,
    business_id: str,
    name: str = "Joe's Cafe",
    phone: Optional[str] = "(408) 555-0100",
    score: int = 50,
    **fields: Any,
) -> str:
    """Upsert a lead keyed the way discovery keys it."""
    dedup_key = normalize_dedup_key(
        phone=phone,
        website=fields.get("website"),
        name=name,
        address=fields.get("address", "1 Main St"),
    )
    fields.setdefault("address", "1 Main St")
    fields.setdefault("city", "San Jose")
    return await LeadStore(session).upsert(
        business_id, dedup_key, name=name, phone=phone, score=score, **fields
    )


async def create_call(
    session: AsyncSession, business_id: str, lead_id: str, provider_call_id: str, **kwargs: Any
):
    return await CallStore(session).create(
        business_id=business_id, lead_id=lead_id, provider_call_id=provider_call_id, **kwargs
    )


# ============================================================================
# Fake Vendor Clients
# ============================================================================

def fake_llm(
    json_result: Optional[LLMResult] = None,
    search_results: Optional[list[LLMResult]] = None,
) -> AsyncMock:
    """An ``LLMClient`` stand-in returning canned results."""
    llm = AsyncMock(spec=LLMClient)
    llm.complete_json.return_value = json_result or LLMResult.failed("OPENAI_API_KEY not configured")
    if search_results is not None:
        llm.web_search.side_effect = search_results
    else:
        llm.web_search.return_value = LLMResult.failed("OPENAI_API_KEY not configured")
    return llm
