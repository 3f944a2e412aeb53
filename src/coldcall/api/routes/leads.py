"""Lead endpoints, including streaming company-lead discovery."""

import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ...integrations.browser_use import BrowserUseClient
from ...models import LeadStatus
from ...services.company_leads import (
    CompanyContext,
    CompanyLeadFinder,
    CompanyLeadsRequest,
    DiscoverySetupError,
)
from ...services.enrichment import enrich_lead
from ...store.businesses import BusinessStore
from ...store.leads import LeadNotFoundError, LeadStore
from ..dependencies import get_browser_client, get_db, get_lead_finder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["leads"])

STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def _validation_error(details: Any) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation error", "details": details},
    )


async def _stream_leads(
    finder: CompanyLeadFinder, context: CompanyContext, business_id: Optional[str]
) -> AsyncIterator[str]:
    async for lead in finder.find_leads(context, business_id=business_id):
        yield json.dumps(lead.model_dump()) + "\n"
    logger.info("Company lead discovery finished for %s", context.company_url)


@router.post("/analyze-company-leads")
async def analyze_company_leads(
    request: Request,
    session: AsyncSession = Depends(get_db),
    finder: CompanyLeadFinder = Depends(get_lead_finder),
):
    """Stream potential customers for a company, one JSON object per line.

    Setup failures return a 500 JSON error before streaming starts; failed
    individual lead tasks are left out of the stream.
    """
    try:
        payload = await request.json()
    except ValueError:
        return _validation_error([{"msg": "Request body must be valid JSON"}])

    try:
        body = CompanyLeadsRequest.model_validate(payload)
    except ValidationError as e:
        return _validation_error(e.errors(include_url=False, include_context=False))

    if body.businessId and await BusinessStore(session).get(body.businessId) is None:
        raise HTTPException(status_code=404, detail=f"Business not found: {body.businessId}")

    logger.info("Analyzing company %s", body.companyUrl)
    try:
        context = await finder.prepare(body.companyUrl)
    except DiscoverySetupError as e:
        logger.error("Error processing request: %s", e)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "message": str(e)},
        )

    return StreamingResponse(
        _stream_leads(finder, context, body.businessId),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.get("/business/{business_id}")
async def list_leads(
    business_id: str,
    status: Optional[LeadStatus] = None,
    session: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """A business's leads, highest score first."""
    leads = await LeadStore(session).list(business_id, status=status)
    return [lead.to_dict() for lead in leads]


@router.get("/business/{business_id}/stats")
async def lead_stats(business_id: str, session: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    return await LeadStore(session).get_stats(business_id)


@router.get("/business/{business_id}/top")
async def top_leads(
    business_id: str, limit: int = 20, session: AsyncSession = Depends(get_db)
) -> list[dict[str, Any]]:
    leads = await LeadStore(session).get_top_scored(business_id, limit=limit)
    return [lead.to_dict() for lead in leads]


@router.get("/{lead_id}")
async def get_lead(lead_id: str, session: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    try:
        lead = await LeadStore(session).get_or_raise(lead_id)
    except LeadNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return lead.to_dict()


@router.post("/{lead_id}/enrich")
async def enrich(
    lead_id: str,
    session: AsyncSession = Depends(get_db),
    browser: BrowserUseClient = Depends(get_browser_client),
) -> dict[str, Any]:
    """Look up contact details on the lead's website and store them."""
    store = LeadStore(session)
    try:
        lead = await store.get_or_raise(lead_id)
    except LeadNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    result = await enrich_lead(lead.website, browser_client=browser)
    if result.phone or result.email:
        await store.enrich(
            lead_id,
            source_confidence=result.confidence,
            phone=result.phone,
            email=result.email,
        )
    return result.to_dict()


@router.delete("/{lead_id}", status_code=204)
async def delete_lead(lead_id: str, session: AsyncSession = Depends(get_db)) -> None:
    """Delete a lead and its calls."""
    await LeadStore(session).remove(lead_id)
