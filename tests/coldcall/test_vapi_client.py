"""Tests for the Vapi REST client using an in-process httpx transport."""

import json

import httpx
import pytest

from coldcall.integrations.vapi import (
    END_CALL_FUNCTION,
    VapiAuthError,
    VapiCallError,
    VapiClient,
    VapiNotFoundError,
    VapiRateLimitError,
    format_e164,
)


def make_client(handler, **kwargs) -> VapiClient:
    return VapiClient(
        api_key="test-key",
        base_url="https://vapi.test",
        phone_number_id=kwargs.pop("phone_number_id", ""),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestFormatE164:
    @pytest.mark.parametrize(
        "phone,expected",
        [
            ("(408) 555-0100", "+14085550100"),
            ("+1 408 555 0100", "+14085550100"),
            ("+44 20 7946 0958", "+442079460958"),
        ],
    )
    def test_formats(self, phone, expected):
        assert format_e164(phone) == expected


@pytest.mark.asyncio
class TestVapiClient:
    async def test_create_assistant_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "asst-1"})

        async with make_client(handler) as vapi:
            assistant_id = await vapi.create_assistant("Acme Cold Call Assistant", "Be polite")

        assert assistant_id == "asst-1"
        assert captured["path"] == "/assistant"
        assert captured["auth"] == "Bearer test-key"
        body = captured["body"]
        assert body["systemMessage"] == "Be polite"
        assert body["model"] == {"provider": "openai", "model": "gpt-4", "temperature": 0.1}
        assert body["voice"]["provider"] == "elevenlabs"
        assert body["functions"] == [END_CALL_FUNCTION]
        assert body["recordingEnabled"] is True

    async def test_create_call_includes_phone_number_id(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "call-1", "status": "queued"})

        async with make_client(handler, phone_number_id="pn-1") as vapi:
            call = await vapi.create_call("+14085550100", "asst-1", {"leadId": "lead-1"})

        assert call.id == "call-1"
        assert call.status == "queued"
        assert captured["body"] == {
            "phoneNumber": "+14085550100",
            "assistantId": "asst-1",
            "metadata": {"leadId": "lead-1"},
            "phoneNumberId": "pn-1",
        }

    async def test_list_calls_passes_params(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": "call-1"}])

        async with make_client(handler) as vapi:
            calls = await vapi.list_calls({"limit": "10", "assistantId": "asst-1"})

        assert calls == [{"id": "call-1"}]
        assert captured["params"] == {"limit": "10", "assistantId": "asst-1"}

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, VapiAuthError),
            (404, VapiNotFoundError),
            (429, VapiRateLimitError),
            (500, VapiCallError),
        ],
    )
    async def test_error_statuses(self, status, error_cls):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"message": "nope"})

        async with make_client(handler) as vapi:
            with pytest.raises(error_cls) as exc_info:
                await vapi.get_call("call-1")

        assert exc_info.value.status_code == status
        assert exc_info.value.payload == {"message": "nope"}

    async def test_transport_error_has_no_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as vapi:
            with pytest.raises(VapiCallError) as exc_info:
                await vapi.get_call("call-1")

        assert exc_info.value.status_code is None

    async def test_call_response_without_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "queued"})

        async with make_client(handler) as vapi:
            with pytest.raises(VapiCallError, match="Unexpected response format"):
                await vapi.create_call("+14085550100", "asst-1")

    async def test_end_call(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"")

        async with make_client(handler) as vapi:
            assert await vapi.end_call("call-1") is None

        assert captured == {"method": "PATCH", "path": "/call/call-1", "body": {"status": "ended"}}


def test_clients_resolve_from_package():
    import coldcall.integrations as integrations

    assert integrations.VapiClient is VapiClient
    with pytest.raises(AttributeError):
        integrations.TwilioClient
