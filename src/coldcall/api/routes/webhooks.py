"""Voice provider webhook endpoint."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from ...services.webhook_dispatcher import WebhookDispatcher
from ..dependencies import get_webhook_dispatcher

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/vapi", response_class=PlainTextResponse)
async def vapi_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> PlainTextResponse:
    """Receive a call lifecycle event.

    Responds 200 once handled (or ignored), 400 for an unparseable body and
    500 when handling fails so the provider retries.
    """
    body = await request.body()
    result = await dispatcher.dispatch(body)
    return PlainTextResponse(result.message, status_code=result.status_code)
