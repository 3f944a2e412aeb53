"""HTML-to-text helpers for page classification and contact extraction."""

import re
from typing import Optional

import httpx

USER_AGENT = "ColdCall-Bot/1.0"
DEFAULT_FETCH_TIMEOUT_SECONDS = 15

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def html_to_text(html: str, max_chars: Optional[int] = None) -> str:
    """Drop scripts, styles and tags, then collapse whitespace.

    Args:
        html: Raw page markup.
        max_chars: Optional truncation length.
    """
    text = _SCRIPT_BLOCK.sub("", html or "")
    text = _STYLE_BLOCK.sub("", text)
    text = _TAG.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if max_chars is not None:
        text = text[:max_chars]
    return text


async def fetch_html(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> str:
    """GET a page and return its body.

    Raises:
        httpx.HTTPError: On transport failure or a non-2xx status.
    """
    headers = {"User-Agent": USER_AGENT}
    if client is not None:
        response = await client.get(url, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.text

    async with httpx.AsyncClient(timeout=timeout_seconds) as own_client:
        response = await own_client.get(url, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.text
