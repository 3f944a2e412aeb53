"""Routes inbound voice-provider webhook events to the call state machine.

Response policy:
    200 - event handled, or an event that was logged and ignored (unknown
          type, or a known type whose payload has an unexpected shape)
    400 - body is not valid JSON
    500 - handling failed (including events for unknown calls); the
          provider retries these
"""

import json
import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from ..logging_utils import ContextAdapter, LogContext
from ..models import get_db_session
from .call_state_machine import CallStateMachine
from .outcome_classifier import CallOutcomeClassifier


logger = ContextAdapter(logging.getLogger(__name__), {})

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class WebhookCallPayload(BaseModel):
    """The ``call`` object of a webhook event."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    duration: Optional[float] = None
    recordingUrl: Optional[str] = None


class WebhookTranscriptPayload(BaseModel):
    """The ``transcript`` object of a webhook event."""

    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None


class WebhookEvent(BaseModel):
    """Envelope of every webhook delivery."""

    model_config = ConfigDict(extra="allow")

    type: str
    call: Optional[WebhookCallPayload] = None
    transcript: Optional[WebhookTranscriptPayload] = None

    @field_validator("transcript", mode="before")
    @classmethod
    def wrap_plain_transcript(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"text": value}
        return value

    @property
    def call_id(self) -> Optional[str]:
        return self.call.id if self.call else None


@dataclass
class WebhookResponse:
    """HTTP status and plain-text body to return to the provider."""

    status_code: int
    message: str


OK = WebhookResponse(200, "OK")


class WebhookParseError(Exception):
    """Raised when a delivery body is not valid JSON."""

    pass


def decode_body(body: Union[bytes, str]) -> Any:
    """Decode a webhook body without checking its shape.

    Raises:
        WebhookParseError: If the body is not JSON.
    """
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise WebhookParseError("Invalid JSON") from e


def event_type(data: Any) -> Optional[str]:
    """Return the ``type`` tag of a decoded delivery, if it has one."""
    if not isinstance(data, dict):
        return None
    value = data.get("type")
    return value if isinstance(value, str) else None


Handler = Callable[[CallStateMachine, WebhookEvent], Awaitable[None]]


async def handle_call_started(machine: CallStateMachine, event: WebhookEvent) -> None:
    if not event.call_id:
        return
    await machine.call_started(event.call_id)


async def handle_transcript_update(machine: CallStateMachine, event: WebhookEvent) -> None:
    text = event.transcript.text if event.transcript else None
    logger.debug(
        "Transcript update",
        extra={"provider_call_id": event.call_id, "length": len(text or "")},
    )


async def handle_transcript_completed(machine: CallStateMachine, event: WebhookEvent) -> None:
    text = event.transcript.text if event.transcript else None
    if not event.call_id or not text:
        return
    await machine.transcript_completed(event.call_id, text)


async def handle_call_ended(machine: CallStateMachine, event: WebhookEvent) -> None:
    if not event.call_id:
        return
    await machine.call_ended(
        event.call_id,
        duration_seconds=event.call.duration,
        recording_url=event.call.recordingUrl,
    )


async def handle_call_failed(machine: CallStateMachine, event: WebhookEvent) -> None:
    if not event.call_id:
        return
    await machine.call_failed(event.call_id)


EVENT_HANDLERS: Dict[str, Handler] = {
    "call.started": handle_call_started,
    "transcript.updated": handle_transcript_update,
    "transcript.partial": handle_transcript_update,
    "transcript.completed": handle_transcript_completed,
    "call.ended": handle_call_ended,
    "call.failed": handle_call_failed,
}


class WebhookDispatcher:
    """Parses deliveries and runs the matching handler in its own transaction.

    Args:
        classifier: Outcome classifier shared across deliveries.
        session_scope: Async context manager factory yielding a session that
            commits on success and rolls back on error.
    """

    def __init__(
        self,
        classifier: Optional[CallOutcomeClassifier] = None,
        session_scope: SessionScope = get_db_session,
        cost_per_minute: Optional[float] = None,
    ):
        self.classifier = classifier or CallOutcomeClassifier()
        self.session_scope = session_scope
        self.cost_per_minute = cost_per_minute

    async def dispatch(self, body: Union[bytes, str]) -> WebhookResponse:
        """Handle one delivery and return the response to send."""
        try:
            data = decode_body(body)
        except WebhookParseError as e:
            logger.warning("Rejected webhook delivery: %s", e)
            return WebhookResponse(400, str(e))

        kind = event_type(data)
        handler = EVENT_HANDLERS.get(kind) if kind else None
        if handler is None:
            logger.info("Unhandled webhook event type: %s", kind)
            return OK

        try:
            event = WebhookEvent.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "Ignoring %s event with unexpected payload (%d errors)", kind, e.error_count()
            )
            return OK

        with LogContext(event_type=event.type, provider_call_id=event.call_id):
            logger.info("Handling webhook event")
            try:
                async with self.session_scope() as session:
                    machine = CallStateMachine(
                        session,
                        classifier=self.classifier,
                        cost_per_minute=self.cost_per_minute,
                    )
                    await handler(machine, event)
            except Exception:
                logger.exception("Error processing webhook")
                return WebhookResponse(500, "Internal Server Error")

        return OK
