"""Tests for outbound call placement."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from coldcall.integrations.vapi import VapiCall, VapiCallError, VapiClient
from coldcall.models import BusinessSettings, CallStatus, LeadStatus
from coldcall.services.call_orchestrator import (
    CallOrchestrator,
    CallWindowClosedError,
    build_assistant_system_message,
    is_within_call_window,
    matches_do_not_call,
)
from coldcall.services.script_generator import CallScript
from coldcall.store.businesses import BusinessStore
from coldcall.store.calls import CallStore
from coldcall.store.leads import LeadStore

from factories import create_business, create_lead


# 15:00 UTC is 10:00 in New York during winter.
INSIDE_WINDOW = datetime(2026, 1, 15, 15, 0, tzinfo=timezone.utc)
AFTER_HOURS = datetime(2026, 1, 15, 23, 30, tzinfo=timezone.utc)

SCRIPT = CallScript(
    opener="Hi, this is a virtual assistant for Bay Area Plumbing. This call may be recorded.",
    value_props=["Same-day repairs"],
    objections=[{"objection": "Too busy", "reply": "It only takes a minute."}],
)


def window(start: str, end: str, tz: str = "America/New_York") -> BusinessSettings:
    return BusinessSettings(call_window_start=start, call_window_end=end, timezone=tz)


def fake_vapi(call_ids=("vapi-1", "vapi-2", "vapi-3")) -> AsyncMock:
    vapi = AsyncMock(spec=VapiClient)
    vapi.create_assistant.return_value = "asst-1"
    vapi.create_call.side_effect = [VapiCall(id=call_id, status="queued") for call_id in call_ids]
    return vapi


class TestCallWindow:
    def test_inside_and_outside(self):
        settings = window("09:00", "17:00")
        assert is_within_call_window(settings, INSIDE_WINDOW)
        assert not is_within_call_window(settings, AFTER_HOURS)

    def test_end_is_exclusive(self):
        settings = window("09:00", "17:00", tz="UTC")
        assert is_within_call_window(settings, datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc))
        assert not is_within_call_window(
            settings, datetime(2026, 1, 15, 17, 0, tzinfo=timezone.utc)
        )

    def test_window_wraps_midnight(self):
        settings = window("22:00", "02:00", tz="UTC")
        assert is_within_call_window(settings, datetime(2026, 1, 15, 23, 0, tzinfo=timezone.utc))
        assert is_within_call_window(settings, datetime(2026, 1, 16, 1, 0, tzinfo=timezone.utc))
        assert not is_within_call_window(
            settings, datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
        )

    def test_naive_datetime_treated_as_utc(self):
        assert is_within_call_window(window("09:00", "17:00"), datetime(2026, 1, 15, 15, 0))

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            is_within_call_window(window("09:00", "17:00", tz="Mars/Olympus"), INSIDE_WINDOW)


class TestDoNotCall:
    @pytest.mark.parametrize(
        "phone,patterns,expected",
        [
            ("(408) 555-0100", ["408555*"], True),
            ("+1 (408) 555-0100", ["408*"], True),
            ("+1 (408) 555-0100", ["1408*"], True),
            ("(408) 555-0100", ["415*"], False),
            ("(408) 555-0100", ["408-555-01??"], True),
            ("(408) 555-0100", [], False),
            ("", ["*"], False),
            ("(408) 555-0100", ["abc"], False),
        ],
    )
    def test_patterns(self, phone, patterns, expected):
        assert matches_do_not_call(phone, patterns) is expected


def test_system_message_contains_script():
    message = build_assistant_system_message("Bay Area Plumbing", SCRIPT)

    assert "calling on behalf of Bay Area Plumbing" in message
    assert f'Always start with: "{SCRIPT.opener}"' in message
    assert "1. Same-day repairs" in message
    assert '1. Objection: "Too busy"' in message


@pytest.mark.asyncio
class TestStartCalls:
    async def test_places_calls_in_order(self, session):
        business = await create_business(session)
        first = await create_lead(session, business.id, name="A", phone="4085550001")
        second = await create_lead(session, business.id, name="B", phone="4085550002")
        leads = [await LeadStore(session).get(first), await LeadStore(session).get(second)]
        vapi = fake_vapi()
        sleep = AsyncMock()
        orchestrator = CallOrchestrator(session, vapi_client=vapi, delay_seconds=2, sleep=sleep)

        placements = await orchestrator.start_calls(business, leads, SCRIPT, now=INSIDE_WINDOW)

        assert [p.to_dict() for p in placements] == [
            {"lead_id": first, "provider_call_id": "vapi-1", "status": "initiated"},
            {"lead_id": second, "provider_call_id": "vapi-2", "status": "initiated"},
        ]
        vapi.create_assistant.assert_awaited_once()
        assert vapi.create_assistant.await_args.kwargs["name"] == (
            "Bay Area Plumbing Cold Call Assistant"
        )
        phone, assistant_id = vapi.create_call.await_args_list[0].args
        assert (phone, assistant_id) == ("+14085550001", "asst-1")
        metadata = vapi.create_call.await_args_list[0].kwargs["metadata"]
        assert metadata == {
            "leadId": first,
            "leadName": "A",
            "leadCity": "San Jose",
            "businessName": "Bay Area Plumbing",
            "businessUSP": "24/7 emergency service",
        }
        assert sleep.await_count == 2
        sleep.assert_awaited_with(2)

        call = await CallStore(session).get_by_provider_id("vapi-1")
        assert call.status == CallStatus.INITIATED
        assert (await LeadStore(session).get(first)).status == LeadStatus.QUEUED

    async def test_skips_missing_phone_and_do_not_call(self, session):
        business = await create_business(session)
        await BusinessStore(session).update_settings(
            business.id, do_not_call_patterns=["408555000?"]
        )
        blocked = await create_lead(session, business.id, name="Blocked", phone="4085550001")
        no_phone = await create_lead(session, business.id, name="Nophone", phone=None)
        ok = await create_lead(session, business.id, name="Ok", phone="4155550100")
        store = LeadStore(session)
        leads = [await store.get(lead_id) for lead_id in (blocked, no_phone, ok)]
        vapi = fake_vapi()

        placements = await CallOrchestrator(
            session, vapi_client=vapi, sleep=AsyncMock()
        ).start_calls(business, leads, SCRIPT, now=INSIDE_WINDOW)

        assert [p.lead_id for p in placements] == [ok]
        vapi.create_call.assert_awaited_once()

    async def test_failed_placement_continues(self, session):
        business = await create_business(session)
        first = await create_lead(session, business.id, name="A", phone="4085550001")
        second = await create_lead(session, business.id, name="B", phone="4085550002")
        store = LeadStore(session)
        vapi = AsyncMock(spec=VapiClient)
        vapi.create_assistant.return_value = "asst-1"
        vapi.create_call.side_effect = [
            VapiCallError("Invalid phone number", 400),
            VapiCall(id="vapi-2", status="queued"),
        ]
        sleep = AsyncMock()

        placements = await CallOrchestrator(session, vapi_client=vapi, sleep=sleep).start_calls(
            business, [await store.get(first), await store.get(second)], SCRIPT, now=INSIDE_WINDOW
        )

        assert [p.status for p in placements] == ["failed", "initiated"]
        assert placements[0].provider_call_id == ""
        assert sleep.await_count == 1
        assert await CallStore(session).get_by_lead(first) == []

    async def test_run_cap_limits_leads(self, session):
        business = await create_business(session)
        await BusinessStore(session).update_settings(business.id, per_run_lead_cap=1)
        store = LeadStore(session)
        leads = [
            await store.get(await create_lead(session, business.id, name=n, phone=p))
            for n, p in (("A", "4085550001"), ("B", "4085550002"))
        ]
        vapi = fake_vapi()

        placements = await CallOrchestrator(
            session, vapi_client=vapi, sleep=AsyncMock()
        ).start_calls(business, leads, SCRIPT, now=INSIDE_WINDOW)

        assert len(placements) == 1

    async def test_outside_window_places_nothing(self, session):
        business = await create_business(session)
        vapi = fake_vapi()

        with pytest.raises(CallWindowClosedError) as exc_info:
            await CallOrchestrator(session, vapi_client=vapi).start_calls(
                business, [], SCRIPT, now=AFTER_HOURS
            )

        assert exc_info.value.business_id == business.id
        assert exc_info.value.window == "09:00-17:00 America/New_York"
        vapi.create_assistant.assert_not_awaited()

    async def test_assistant_failure_propagates(self, session):
        business = await create_business(session)
        vapi = AsyncMock(spec=VapiClient)
        vapi.create_assistant.side_effect = VapiCallError("rejected", 422)

        with pytest.raises(VapiCallError):
            await CallOrchestrator(session, vapi_client=vapi).start_calls(
                business, [], SCRIPT, now=INSIDE_WINDOW
            )


@pytest.mark.asyncio
class TestQueuedLeads:
    async def test_queue_top_leads_respects_cap(self, session):
        business = await create_business(session)
        await BusinessStore(session).update_settings(business.id, per_run_lead_cap=2)
        low = await create_lead(session, business.id, name="Low", phone="4085550001", score=10)
        mid = await create_lead(session, business.id, name="Mid", phone="4085550002", score=50)
        high = await create_lead(session, business.id, name="High", phone="4085550003", score=90)

        queued = await CallOrchestrator(session, vapi_client=fake_vapi()).queue_top_leads(
            business.id
        )

        assert set(queued) == {mid, high}
        assert (await LeadStore(session).get(low)).status == LeadStatus.NEW

    async def test_requires_saved_script(self, session):
        business = await create_business(session)

        with pytest.raises(ValueError, match="No call script"):
            await CallOrchestrator(session, vapi_client=fake_vapi()).call_queued_leads(
                business.id, now=INSIDE_WINDOW
            )

    async def test_calls_queued_leads_with_saved_script(self, session):
        business = await create_business(session)
        await BusinessStore(session).save_script(business.id, SCRIPT.to_dict())
        queued = await create_lead(
            session, business.id, name="Q", phone="4085550001", status=LeadStatus.QUEUED
        )
        await create_lead(session, business.id, name="N", phone="4085550002")
        vapi = fake_vapi()

        placements = await CallOrchestrator(
            session, vapi_client=vapi, sleep=AsyncMock()
        ).call_queued_leads(business.id, now=INSIDE_WINDOW)

        assert [p.lead_id for p in placements] == [queued]
        system_message = vapi.create_assistant.await_args.kwargs["system_message"]
        assert SCRIPT.opener in system_message
