"""Business endpoints: classification, settings, discovery, scripts and calls."""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import config
from ...integrations.llm import LLMClient
from ...integrations.vapi import VapiClient, VapiError
from ...services.business_classifier import classify_business
from ...services.call_orchestrator import CallOrchestrator, CallWindowClosedError
from ...services.discovery import discover_for_business
from ...services.lead_scorer import LeadScorer
from ...services.script_generator import ScriptParams, generate_call_script
from ...store.businesses import BusinessNotFoundError, BusinessStore
from ..dependencies import get_db, get_lead_scorer, get_llm_client, get_vapi_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/businesses", tags=["businesses"])


class CreateBusinessRequest(BaseModel):
    sourceUrl: str = Field(min_length=1)
    notes: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    call_window_start: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    call_window_end: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    timezone: Optional[str] = None
    do_not_call_patterns: Optional[List[str]] = None
    max_concurrent_calls: Optional[int] = Field(default=None, ge=1)
    per_run_lead_cap: Optional[int] = Field(default=None, ge=1)


class DiscoverRequest(BaseModel):
    provider: str = "google"


class ScriptRequest(BaseModel):
    leadCategory: str
    leadCity: str
    leadName: Optional[str] = None
    tone: str = Field(default="professional", pattern="^(professional|friendly|casual)$")


async def _get_business(session: AsyncSession, business_id: str):
    try:
        return await BusinessStore(session).get_or_raise(business_id)
    except BusinessNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("", status_code=201)
async def create_business(
    body: CreateBusinessRequest,
    session: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    """Classify a business from its homepage and store it with default settings."""
    classification = await classify_business(body.sourceUrl, llm_client=llm)
    business = await BusinessStore(session).create(
        name=classification.name,
        provider_keys=config.provider_keys_configured(),
        source_url=body.sourceUrl,
        category=classification.category,
        service_area=classification.service_area,
        icp=classification.icp,
        usp=classification.usp,
        notes=body.notes or "",
    )
    return business.to_dict()


@router.get("")
async def list_businesses(session: AsyncSession = Depends(get_db)) -> list[dict[str, Any]]:
    return [business.to_dict() for business in await BusinessStore(session).list()]


@router.get("/{business_id}")
async def get_business(business_id: str, session: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    return (await _get_business(session, business_id)).to_dict()


@router.delete("/{business_id}", status_code=204)
async def delete_business(business_id: str, session: AsyncSession = Depends(get_db)) -> None:
    """Delete a business with its leads, calls, settings, scripts and sources."""
    await _get_business(session, business_id)
    await BusinessStore(session).remove(business_id)


@router.get("/{business_id}/settings")
async def get_settings(business_id: str, session: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    await _get_business(session, business_id)
    return (await BusinessStore(session).get_settings(business_id)).to_dict()


@router.patch("/{business_id}/settings")
async def update_settings(
    business_id: str,
    body: SettingsUpdateRequest,
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _get_business(session, business_id)
    settings = await BusinessStore(session).update_settings(
        business_id, **body.model_dump(exclude_none=True)
    )
    return settings.to_dict()


@router.post("/{business_id}/discover")
async def discover(
    business_id: str,
    body: DiscoverRequest,
    session: AsyncSession = Depends(get_db),
    scorer: LeadScorer = Depends(get_lead_scorer),
) -> dict[str, Any]:
    """Find and score leads with a place-search provider."""
    await _get_business(session, business_id)
    try:
        run = await discover_for_business(session, business_id, body.provider, scorer=scorer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {
        "lead_source_id": run.lead_source_id,
        "status": run.status,
        "lead_ids": run.lead_ids,
        "total_found": run.total_found,
        "api_cost": run.api_cost,
        "error": run.error,
    }


@router.post("/{business_id}/script")
async def create_script(
    business_id: str,
    body: ScriptRequest,
    session: AsyncSession = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
) -> dict[str, Any]:
    """Generate a call script and save it as the business's newest version."""
    business = await _get_business(session, business_id)
    script = await generate_call_script(
        ScriptParams(
            business_name=business.name,
            business_category=business.category,
            business_usp=business.usp or "",
            lead_category=body.leadCategory,
            lead_city=body.leadCity,
            lead_name=body.leadName,
            tone=body.tone,
        ),
        llm_client=llm,
    )
    record = await BusinessStore(session).save_script(
        business_id, script.to_dict(), purpose="cold_call", tone=body.tone
    )
    return record.to_dict()


@router.post("/{business_id}/calls")
async def start_calls(
    business_id: str,
    session: AsyncSession = Depends(get_db),
    vapi: VapiClient = Depends(get_vapi_client),
) -> dict[str, Any]:
    """Queue the top-scoring new leads and call every queued lead."""
    await _get_business(session, business_id)
    orchestrator = CallOrchestrator(session, vapi_client=vapi)
    queued = await orchestrator.queue_top_leads(business_id)
    try:
        placements = await orchestrator.call_queued_leads(business_id)
    except CallWindowClosedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except VapiError as e:
        logger.error("Failed to start calls: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return {"queued": queued, "calls": [p.to_dict() for p in placements]}
