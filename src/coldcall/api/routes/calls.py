"""Call endpoints: voice provider proxy plus locally recorded calls."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...integrations.vapi import (
    VapiAuthError,
    VapiClient,
    VapiError,
    VapiNotFoundError,
    VapiRateLimitError,
)
from ...store.calls import CallStore
from ..dependencies import get_db, get_vapi_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/call", tags=["calls"])


def _error(status_code: int, error: str, message: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


@router.get("/calls/{call_id}")
async def get_provider_call(
    call_id: str,
    vapi: VapiClient = Depends(get_vapi_client),
) -> Any:
    """Fetch one call from the voice provider."""
    try:
        return await vapi.get_call(call_id)
    except VapiAuthError:
        return _error(401, "Unauthorized", "Invalid API token")
    except VapiNotFoundError:
        return _error(404, "Not Found", f"Call with ID {call_id} not found")
    except VapiRateLimitError:
        return _error(429, "Too Many Requests", "Rate limit exceeded. Please try again later.")
    except VapiError as e:
        if e.status_code is None:
            logger.error("Failed to reach voice provider: %s", e)
            return _error(500, "Network Error", "Failed to connect to Vapi API")
        return _error(
            e.status_code,
            "API Error",
            e.payload or "An error occurred while fetching the call",
        )


@router.get("/calls")
async def list_provider_calls(
    request: Request,
    vapi: VapiClient = Depends(get_vapi_client),
) -> Any:
    """List calls from the voice provider, passing query parameters through."""
    try:
        return await vapi.list_calls(dict(request.query_params))
    except VapiError as e:
        if e.status_code is None:
            logger.error("Error fetching calls: %s", e)
            return _error(500, "Internal Server Error", "Failed to fetch calls")
        return _error(e.status_code, "API Error", e.payload or "Failed to fetch calls")


@router.get("/business/{business_id}")
async def list_business_calls(
    business_id: str, session: AsyncSession = Depends(get_db)
) -> list[dict[str, Any]]:
    """Recorded calls for a business, newest first."""
    return await CallStore(session).list(business_id)


@router.get("/business/{business_id}/stats")
async def business_call_stats(
    business_id: str, session: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    return await CallStore(session).get_stats(business_id)
