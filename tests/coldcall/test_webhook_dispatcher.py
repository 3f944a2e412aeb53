"""Tests for voice-provider webhook parsing and dispatch."""

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from coldcall.models import CallOutcome, CallStatus, LeadStatus
from coldcall.services.outcome_classifier import CallOutcomeClassifier, OutcomeClassification
from coldcall.services.webhook_dispatcher import (
    EVENT_HANDLERS,
    WebhookDispatcher,
    WebhookEvent,
    WebhookParseError,
    decode_body,
    event_type,
)
from coldcall.store.calls import CallStore
from coldcall.store.leads import LeadStore

from factories import create_business, create_call, create_lead


def event(kind: str, call_id: str = "vapi-1", **extra) -> bytes:
    body = {"type": kind, "call": {"id": call_id}}
    body["call"].update(extra.pop("call", {}))
    body.update(extra)
    return json.dumps(body).encode()


@pytest.fixture
def classifier() -> AsyncMock:
    classifier = AsyncMock(spec=CallOutcomeClassifier)
    classifier.classify.return_value = OutcomeClassification(
        summary="Wants a quote.", outcome=CallOutcome.INTERESTED, source="llm"
    )
    return classifier


@pytest.fixture
def dispatcher(classifier, session_scope) -> WebhookDispatcher:
    return WebhookDispatcher(
        classifier=classifier, session_scope=session_scope, cost_per_minute=0.05
    )


@pytest_asyncio.fixture
async def seeded(session_scope):
    """One business, lead and initiated call with provider id ``vapi-1``."""
    async with session_scope() as session:
        business = await create_business(session)
        lead_id = await create_lead(session, business.id)
        await create_call(session, business.id, lead_id, "vapi-1", status=CallStatus.INITIATED)
    return lead_id


class TestParseEvent:
    def test_valid_event(self):
        parsed = WebhookEvent.model_validate(
            decode_body(event("call.ended", call={"duration": 42, "recordingUrl": "r"}))
        )
        assert parsed.type == "call.ended"
        assert parsed.call_id == "vapi-1"
        assert parsed.call.duration == 42

    def test_extra_fields_tolerated(self):
        parsed = WebhookEvent.model_validate(
            {"type": "x", "timestamp": 1, "call": {"id": "c", "cost": 2}}
        )
        assert parsed.call_id == "c"

    def test_numeric_call_id_and_plain_transcript(self):
        parsed = WebhookEvent.model_validate(
            {"type": "transcript.completed", "call": {"id": 12345}, "transcript": "hi there"}
        )
        assert parsed.call_id == "12345"
        assert parsed.transcript.text == "hi there"

    def test_invalid_json(self):
        with pytest.raises(WebhookParseError, match="Invalid JSON"):
            decode_body(b"{not json")

    def test_any_json_value_decodes(self):
        assert decode_body("[1, 2]") == [1, 2]
        assert decode_body('"call.started"') == "call.started"

    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"type": "call.ended"}, "call.ended"),
            ({"call": {"id": "x"}}, None),
            ({"type": ["call.ended"]}, None),
            ([1, 2], None),
            ("call.started", None),
        ],
    )
    def test_event_type(self, data, expected):
        assert event_type(data) == expected

    def test_all_event_types_registered(self):
        assert set(EVENT_HANDLERS) == {
            "call.started",
            "transcript.updated",
            "transcript.partial",
            "transcript.completed",
            "call.ended",
            "call.failed",
        }


@pytest.mark.asyncio
class TestDispatch:
    async def test_malformed_body_is_400(self, dispatcher):
        response = await dispatcher.dispatch(b"not-json")
        assert (response.status_code, response.message) == (400, "Invalid JSON")

    async def test_unknown_type_acknowledged(self, dispatcher, classifier):
        response = await dispatcher.dispatch(event("assistant.speech"))
        assert (response.status_code, response.message) == (200, "OK")
        classifier.classify.assert_not_awaited()

    @pytest.mark.parametrize(
        "body",
        [
            {"type": "end-of-call-report", "transcript": "hi there"},
            {"type": "status-update", "call": "abc"},
            {"message": {"type": "call.started", "call": {"id": "vapi-1"}}},
            [1, 2],
            "call.started",
        ],
    )
    async def test_well_formed_json_is_never_rejected(self, dispatcher, classifier, body):
        response = await dispatcher.dispatch(json.dumps(body))
        assert (response.status_code, response.message) == (200, "OK")
        classifier.classify.assert_not_awaited()

    async def test_known_type_with_unexpected_payload_acknowledged(self, dispatcher, classifier):
        body = {"type": "transcript.completed", "call": "vapi-1", "transcript": {"text": "Yes"}}

        response = await dispatcher.dispatch(json.dumps(body))

        assert response.status_code == 200
        classifier.classify.assert_not_awaited()

    async def test_numeric_call_id_reaches_handler(self, dispatcher):
        response = await dispatcher.dispatch(json.dumps({"type": "call.started", "call": {"id": 12345}}))
        assert (response.status_code, response.message) == (500, "Internal Server Error")

    async def test_plain_transcript_is_classified(self, dispatcher, classifier, seeded):
        body = {"type": "transcript.completed", "call": {"id": "vapi-1"}, "transcript": "Sure"}

        response = await dispatcher.dispatch(json.dumps(body))

        assert response.status_code == 200
        classifier.classify.assert_awaited_once()

    async def test_missing_call_id_acknowledged(self, dispatcher):
        response = await dispatcher.dispatch(json.dumps({"type": "call.started"}))
        assert response.status_code == 200

    async def test_unknown_call_is_500(self, dispatcher):
        response = await dispatcher.dispatch(event("call.started", call_id="vapi-unknown"))
        assert (response.status_code, response.message) == (500, "Internal Server Error")

    async def test_full_lifecycle(self, dispatcher, session_scope, seeded):
        lead_id = seeded

        assert (await dispatcher.dispatch(event("call.started"))).status_code == 200
        assert (await dispatcher.dispatch(
            event("transcript.partial", transcript={"text": "Hi"})
        )).status_code == 200
        assert (await dispatcher.dispatch(
            event("transcript.completed", transcript={"text": "Sure, tell me more"})
        )).status_code == 200
        assert (await dispatcher.dispatch(
            event("call.ended", call={"duration": 120, "recordingUrl": "https://rec/1.mp3"})
        )).status_code == 200

        async with session_scope() as session:
            call = await CallStore(session).get_by_provider_id("vapi-1")
            lead = await LeadStore(session).get(lead_id)
        assert call.status == CallStatus.ENDED
        assert call.started_at is not None
        assert call.outcome == "interested"
        assert call.summary == "Wants a quote."
        assert call.cost_usd == 0.1
        assert call.recording_url == "https://rec/1.mp3"
        assert lead.status == LeadStatus.REACHED

    async def test_transcript_without_text_is_noop(self, dispatcher, classifier, seeded):
        response = await dispatcher.dispatch(event("transcript.completed", transcript={}))
        assert response.status_code == 200
        classifier.classify.assert_not_awaited()

    async def test_call_failed(self, dispatcher, session_scope, seeded):
        assert (await dispatcher.dispatch(event("call.failed"))).status_code == 200

        async with session_scope() as session:
            call = await CallStore(session).get_by_provider_id("vapi-1")
        assert call.status == CallStatus.FAILED

    async def test_handler_error_rolls_back(self, dispatcher, classifier, session_scope, seeded):
        """Test that a failing handler leaves no partial writes behind."""
        classifier.classify.side_effect = RuntimeError("boom")

        response = await dispatcher.dispatch(
            event("transcript.completed", transcript={"text": "hello"})
        )

        assert response.status_code == 500
        async with session_scope() as session:
            call = await CallStore(session).get_by_provider_id("vapi-1")
        assert call.outcome == ""
        assert call.transcript is None
