"""OpenAI client wrapper used for classification, scoring and script generation.

All methods return an ``LLMResult`` instead of raising on vendor failures, so
callers choose a fallback by inspecting ``result.success``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..config import config


logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1
WEB_SEARCH_TOOL = {"type": "web_search_preview"}


class LLMError(Exception):
    """Raised when a completion response cannot be used."""

    pass


@dataclass
class LLMResult:
    """Outcome of one LLM request.

    Attributes:
        success: Whether a usable response was obtained.
        data: Parsed JSON object (for JSON requests).
        text: Raw response text.
        error: Error message if the request failed.
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    text: str = ""
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "LLMResult":
        return cls(success=False, error=error)


def parse_json_object(content: Optional[str]) -> Dict[str, Any]:
    """Parse a completion body that must be a JSON object.

    Raises:
        LLMError: If the content is empty, not JSON, or not an object.
    """
    if not content:
        raise LLMError("Empty content in completion response")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise LLMError(f"Completion is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise LLMError("Completion JSON is not an object")
    return parsed


class LLMClient:
    """Async OpenAI wrapper.

    Args:
        api_key: OpenAI API key. Defaults to config value. When no key is
            available every call returns an unsuccessful result.
        model: Default chat model.
        timeout_seconds: Request timeout.
        client: Pre-built ``AsyncOpenAI`` instance (tests inject fakes here).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self.timeout_seconds = timeout_seconds or config.OPENAI_TIMEOUT_SECONDS
        self._client = client
        if self._client is None and self.api_key:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout_seconds)

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def complete_json(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> LLMResult:
        """Request a JSON-object completion.

        Args:
            messages: Chat messages with 'role' and 'content'.
            model: Model override.
            temperature: Sampling temperature.

        Returns:
            LLMResult with ``data`` holding the parsed object.
        """
        if self._client is None:
            return LLMResult.failed("OPENAI_API_KEY not configured")

        model = model or self.model
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
            if not response.choices:
                raise LLMError("No choices in completion response")
            content = response.choices[0].message.content
            data = parse_json_object(content)
        except (OpenAIError, LLMError) as e:
            logger.warning("JSON completion failed: %s", e, extra={"model": model})
            return LLMResult.failed(str(e))

        return LLMResult(success=True, data=data, text=content or "")

    async def web_search(self, prompt: str, model: Optional[str] = None) -> LLMResult:
        """Answer a prompt using the responses API with web search enabled.

        Returns:
            LLMResult with ``text`` holding the model's answer.
        """
        if self._client is None:
            return LLMResult.failed("OPENAI_API_KEY not configured")

        model = model or self.model
        try:
            response = await self._client.responses.create(
                model=model,
                tools=[WEB_SEARCH_TOOL],
                input=prompt,
            )
        except OpenAIError as e:
            logger.warning("Web search completion failed: %s", e, extra={"model": model})
            return LLMResult.failed(str(e))

        text = (response.output_text or "").strip()
        if not text:
            return LLMResult.failed("Empty web search response")
        return LLMResult(success=True, text=text)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
