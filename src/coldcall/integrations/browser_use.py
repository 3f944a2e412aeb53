"""Browser-automation task runner client.

Submits natural-language browsing tasks with an optional JSON schema for
structured output, then polls until the task finishes.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from ..config import config


logger = logging.getLogger(__name__)

# Constants
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
FINISHED_STATUSES = {"finished", "completed"}
FAILED_STATUSES = {"failed", "stopped"}


class BrowserUseError(Exception):
    """Base exception for browser-automation errors."""

    pass


class BrowserUseAuthError(BrowserUseError):
    """Raised when API authentication fails."""

    pass


class BrowserUseTaskError(BrowserUseError):
    """Raised when a task cannot be created or polled."""

    pass


@dataclass
class TaskResult:
    """Result of one browser-automation task.

    Attributes:
        success: Whether the task finished with output.
        task_id: Provider task id.
        status: Final provider status.
        output: Raw output string.
        parsed_output: Output decoded as a JSON object, if it was one.
        error: Error message if the task failed.
    """

    success: bool
    task_id: Optional[str] = None
    status: Optional[str] = None
    output: Optional[str] = None
    parsed_output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "task_id": self.task_id,
            "status": self.status,
            "output": self.output,
            "parsed_output": self.parsed_output,
            "error": self.error,
        }


def _decode_output(output: Any) -> Optional[Dict[str, Any]]:
    if isinstance(output, dict):
        return output
    if not isinstance(output, str) or not output.strip():
        return None
    try:
        decoded = json.loads(output)
    except json.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None


class BrowserUseClient:
    """Async client for the browser-automation REST API.

    Example:
        >>> client = BrowserUseClient()
        >>> result = await client.run_task("Find the phone number", start_url="https://example.com")
        >>> if result.success:
        ...     print(result.parsed_output)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        llm: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: API key. Defaults to BROWSER_USE_API_KEY.
            base_url: API base URL. Defaults to BROWSER_USE_BASE_URL.
            llm: Agent model name. Defaults to BROWSER_USE_LLM.
            timeout_seconds: Overall time allowed for one task.
            poll_interval_seconds: Delay between status polls.
            transport: Optional httpx transport for tests.
        """
        self.api_key = api_key if api_key is not None else config.BROWSER_USE_API_KEY
        self.base_url = (base_url or config.BROWSER_USE_BASE_URL).rstrip("/")
        self.llm = llm or config.BROWSER_USE_LLM
        self.timeout_seconds = timeout_seconds or config.BROWSER_USE_TIMEOUT_SECONDS
        self.poll_interval_seconds = poll_interval_seconds
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=30,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _request(
        self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.HTTPError as e:
            raise BrowserUseTaskError(f"Request failed: {e}") from e

        if response.status_code in (401, 403):
            raise BrowserUseAuthError("Invalid browser-automation API key")
        if not response.is_success:
            raise BrowserUseTaskError(
                f"API error {response.status_code}: {response.text[:500]}"
            )
        data = response.json()
        if not isinstance(data, dict):
            raise BrowserUseTaskError("Unexpected response format")
        return data

    async def create_task(
        self,
        task: str,
        start_url: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Submit a task and return its id."""
        body: Dict[str, Any] = {"task": task, "llm_model": self.llm}
        if start_url:
            body["start_url"] = start_url
        if schema:
            body["structured_output_json"] = json.dumps(schema)

        data = await self._request("POST", "/run-task", body)
        task_id = data.get("id")
        if not task_id:
            raise BrowserUseTaskError("Task response missing id")
        return str(task_id)

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/task/{task_id}")

    async def run_task(
        self,
        task: str,
        start_url: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> TaskResult:
        """Run a task to completion.

        Never raises for provider failures; inspect ``success`` instead.

        Args:
            task: Natural-language instructions.
            start_url: Page the agent starts from.
            schema: JSON schema for structured output.

        Returns:
            TaskResult with the final output.
        """
        if not self.is_configured:
            return TaskResult(success=False, error="BROWSER_USE_API_KEY not configured")

        try:
            task_id = await self.create_task(task, start_url=start_url, schema=schema)
        except BrowserUseError as e:
            logger.warning("Failed to create browser task: %s", e)
            return TaskResult(success=False, error=str(e))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        while True:
            try:
                data = await self.get_task(task_id)
            except BrowserUseError as e:
                logger.warning("Failed to poll browser task %s: %s", task_id, e)
                return TaskResult(success=False, task_id=task_id, error=str(e))

            status = str(data.get("status", "")).lower()
            if status in FINISHED_STATUSES:
                output = data.get("output")
                return TaskResult(
                    success=output is not None,
                    task_id=task_id,
                    status=status,
                    output=output if isinstance(output, str) else json.dumps(output),
                    parsed_output=_decode_output(output),
                    error=None if output is not None else "Task finished without output",
                )
            if status in FAILED_STATUSES:
                return TaskResult(
                    success=False,
                    task_id=task_id,
                    status=status,
                    error=f"Task {status}",
                )
            if loop.time() >= deadline:
                return TaskResult(
                    success=False,
                    task_id=task_id,
                    status=status,
                    error=f"Task timed out after {self.timeout_seconds}s",
                )
            await asyncio.sleep(self.poll_interval_seconds)

    async def close(self) -> None:
        await self._client.aclose()
