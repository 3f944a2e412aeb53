"""Vapi voice-agent API client.

Creates assistants, places outbound phone calls and reads call state from
the Vapi REST API using an async ``httpx`` client.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..config import config


logger = logging.getLogger(__name__)

# Constants
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_ASSISTANT_MODEL = "gpt-4"
DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"
DEFAULT_FIRST_MESSAGE = (
    "Hello! I'm calling on behalf of a local business. Is now a good time to talk?"
)

END_CALL_FUNCTION = {
    "name": "end_call",
    "description": "End the current call",
    "parameters": {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "description": "Reason for ending the call",
            }
        },
    },
}


class VapiError(Exception):
    """Base exception for Vapi client errors.

    Attributes:
        status_code: HTTP status returned by Vapi, if any.
        payload: Decoded error body returned by Vapi, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class VapiAuthError(VapiError):
    """Raised when API authentication fails."""

    pass


class VapiNotFoundError(VapiError):
    """Raised when the requested call or assistant does not exist."""

    pass


class VapiRateLimitError(VapiError):
    """Raised when API rate limit is exceeded."""

    pass


class VapiCallError(VapiError):
    """Raised for any other API or transport failure."""

    pass


@dataclass
class VapiCall:
    """A call as returned by Vapi.

    Attributes:
        id: Vapi call id.
        status: Provider status string.
        created_at: Provider creation timestamp (ISO string).
        raw: Full response body.
    """

    id: str
    status: Optional[str] = None
    created_at: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: Any) -> "VapiCall":
        if not isinstance(data, dict) or not data.get("id"):
            raise VapiCallError("Unexpected response format from Vapi API", payload=data)
        return cls(
            id=str(data["id"]),
            status=data.get("status"),
            created_at=data.get("createdAt"),
            raw=data,
        )


def format_e164(phone: str) -> str:
    """Format a phone number for dialing.

    Ten-digit numbers are treated as North American and get ``+1``; any
    other digit string just gets a ``+`` prefix.
    """
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


class VapiClient:
    """Async client for the Vapi REST API.

    Attributes:
        api_key: Vapi API key (bearer token).
        base_url: API base URL.

    Example:
        >>> async with VapiClient() as vapi:
        ...     call = await vapi.create_call("+15551234567", assistant_id, {"leadId": "abc"})
        ...     print(call.id)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        phone_number_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize Vapi client.

        Args:
            api_key: Vapi API key. Defaults to VAPI_API_KEY.
            base_url: API base URL. Defaults to VAPI_BASE_URL.
            timeout_seconds: Request timeout in seconds.
            phone_number_id: Caller phone number id, sent with each call if set.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self.api_key = api_key if api_key is not None else config.VAPI_API_KEY
        self.base_url = (base_url or config.VAPI_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.VAPI_TIMEOUT_SECONDS
        self.phone_number_id = (
            phone_number_id if phone_number_id is not None else config.VAPI_PHONE_NUMBER_ID
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            VapiAuthError: On 401.
            VapiNotFoundError: On 404.
            VapiRateLimitError: On 429.
            VapiCallError: On any other error status or transport failure.
        """
        try:
            response = await self._client.request(method, path, json=json_body, params=params)
        except httpx.HTTPError as e:
            raise VapiCallError(f"Failed to connect to Vapi API: {e}") from e

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        status = response.status_code
        if status == 401:
            raise VapiAuthError("Invalid API token", status, payload)
        if status == 404:
            raise VapiNotFoundError(f"Resource not found: {path}", status, payload)
        if status == 429:
            raise VapiRateLimitError("Rate limit exceeded", status, payload)
        raise VapiCallError(f"Vapi API error {status}", status, payload)

    async def create_assistant(
        self,
        name: str,
        system_message: str,
        model: str = DEFAULT_ASSISTANT_MODEL,
        voice_id: str = DEFAULT_VOICE_ID,
        first_message: str = DEFAULT_FIRST_MESSAGE,
        functions: Optional[List[Dict[str, Any]]] = None,
    ) -> str:
        """Create a voice assistant and return its id."""
        data = await self._request(
            "POST",
            "/assistant",
            json_body={
                "name": name,
                "model": {
                    "provider": "openai",
                    "model": model,
                    "temperature": 0.1,
                },
                "voice": {
                    "provider": "elevenlabs",
                    "voiceId": voice_id,
                },
                "firstMessage": first_message,
                "systemMessage": system_message,
                "functions": functions if functions is not None else [END_CALL_FUNCTION],
                "recordingEnabled": True,
                "endCallFunctionEnabled": True,
                "interruptSensitivity": 0.5,
                "responseDelaySeconds": 0.4,
            },
        )
        if not isinstance(data, dict) or not data.get("id"):
            raise VapiCallError("Assistant response missing id", payload=data)
        logger.info("Created Vapi assistant %s", data["id"], extra={"assistant_name": name})
        return str(data["id"])

    async def create_call(
        self,
        phone_number: str,
        assistant_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> VapiCall:
        """Place an outbound call.

        Args:
            phone_number: Destination number in E.164 format.
            assistant_id: Assistant that conducts the call.
            metadata: Free-form variables echoed back in webhooks.
        """
        body: Dict[str, Any] = {
            "phoneNumber": phone_number,
            "assistantId": assistant_id,
            "metadata": metadata or {},
        }
        if self.phone_number_id:
            body["phoneNumberId"] = self.phone_number_id
        data = await self._request("POST", "/call", json_body=body)
        return VapiCall.from_response(data)

    async def get_call(self, call_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/call/{call_id}")

    async def list_calls(self, params: Optional[Dict[str, Any]] = None) -> Any:
        """List calls, forwarding any filter parameters unchanged."""
        return await self._request("GET", "/call", params=params or None)

    async def end_call(self, call_id: str) -> None:
        await self._request("PATCH", f"/call/{call_id}", json_body={"status": "ended"})

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "VapiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
