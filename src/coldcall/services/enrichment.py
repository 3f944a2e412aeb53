"""Lead contact enrichment from the lead's website."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from ..integrations.browser_use import BrowserUseClient
from ..utils.html_text import fetch_html


logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"(?:[+]?\d{1,3}[\s.-]?)?[(]?\d{3}[)]?[\s.-]?\d{3}[\s.-]?\d{4}")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

ENRICHMENT_GOAL = (
    "Find phone number, email address, or contact page information for this "
    "business. Look in headers, footers, contact pages, and about pages."
)
ENRICHMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "phone": {"type": "string", "description": "Any phone number found on the page"},
        "email": {"type": "string", "description": "Any email address found on the page"},
        "contactUrls": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Contact page URLs discovered",
        },
    },
}

PHONE_CONFIDENCE = 0.5
EMAIL_CONFIDENCE = 0.3
CONTACT_URL_CONFIDENCE = 0.2
FALLBACK_PHONE_CONFIDENCE = 0.3
FALLBACK_EMAIL_CONFIDENCE = 0.2


@dataclass
class EnrichmentResult:
    """Contact details found for one website."""

    confidence: float = 0.0
    phone: Optional[str] = None
    email: Optional[str] = None
    supporting_urls: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phone": self.phone,
            "email": self.email,
            "confidence": self.confidence,
            "supporting_urls": list(self.supporting_urls),
            "error": self.error,
        }


def ensure_scheme(website: str) -> str:
    return website if website.startswith("http") else f"https://{website}"


def format_phone(raw: Optional[str]) -> Optional[str]:
    """Find a phone number in ``raw`` and format it as ``(XXX) XXX-XXXX``.

    Eleven digits with a leading country code 1 drop the 1. Fewer than ten
    digits yields None.
    """
    if not raw:
        return None
    match = PHONE_PATTERN.search(raw)
    if not match:
        return None
    digits = re.sub(r"\D", "", match.group(0))
    if len(digits) < 10:
        return None
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def find_email(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    match = EMAIL_PATTERN.search(raw)
    return match.group(0) if match else None


def robots_disallows_all(robots_txt: str) -> bool:
    """Whether a ``*`` or bot-named group contains ``Disallow: /``.

    An empty ``Disallow:`` allows everything and does not block.
    """
    user_agent = ""
    for line in robots_txt.splitlines():
        stripped = line.split("#", 1)[0].strip()
        lowered = stripped.lower()
        if lowered.startswith("user-agent:"):
            user_agent = stripped[len("user-agent:"):].strip().lower()
        elif lowered.startswith("disallow:") and (user_agent == "*" or "bot" in user_agent):
            if stripped[len("disallow:"):].strip() == "/":
                return True
    return False


async def check_robots_txt(
    website: str, http_client: Optional[httpx.AsyncClient] = None
) -> bool:
    """Return False only if robots.txt blocks crawling the whole site.

    A missing robots.txt or any fetch error counts as allowed.
    """
    try:
        parts = urlsplit(ensure_scheme(website))
        robots_url = f"{parts.scheme}://{parts.netloc}/robots.txt"
        robots_txt = await fetch_html(robots_url, client=http_client)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.debug("robots.txt unavailable for %s: %s", website, e)
        return True
    return not robots_disallows_all(robots_txt)


def _result_from_extraction(url: str, extracted: Dict[str, Any]) -> EnrichmentResult:
    phone = format_phone(str(extracted.get("phone") or ""))
    email = find_email(str(extracted.get("email") or ""))
    contact_urls = extracted.get("contactUrls")
    contact_urls = [str(u) for u in contact_urls] if isinstance(contact_urls, list) else []

    confidence = 0.0
    if phone:
        confidence += PHONE_CONFIDENCE
    if email:
        confidence += EMAIL_CONFIDENCE
    if contact_urls:
        confidence += CONTACT_URL_CONFIDENCE

    return EnrichmentResult(
        confidence=min(round(confidence, 2), 1.0),
        phone=phone,
        email=email,
        supporting_urls=[url, *contact_urls],
    )


async def _regex_fallback(
    url: str, error: str, http_client: Optional[httpx.AsyncClient]
) -> EnrichmentResult:
    try:
        html = await fetch_html(url, client=http_client)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug("Regex enrichment fetch failed for %s: %s", url, e)
        return EnrichmentResult(error=error)

    phone = format_phone(html)
    email = find_email(html)
    confidence = (FALLBACK_PHONE_CONFIDENCE if phone else 0.0) + (
        FALLBACK_EMAIL_CONFIDENCE if email else 0.0
    )
    return EnrichmentResult(
        confidence=round(confidence, 2),
        phone=phone,
        email=email,
        supporting_urls=[url],
        error=error,
    )


async def enrich_lead(
    website: Optional[str],
    browser_client: Optional[BrowserUseClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    respect_robots: bool = True,
) -> EnrichmentResult:
    """Find a phone number and email for a lead's website.

    Browser automation is tried first; on failure the page HTML is searched
    with regular expressions instead. Never raises.

    Args:
        website: Lead website. Empty returns confidence 0.
        browser_client: Browser-automation client. Created from config when omitted.
        http_client: Optional client for robots.txt and the HTML fallback.
        respect_robots: Skip sites whose robots.txt disallows crawling.
    """
    if not website:
        return EnrichmentResult()

    browser = browser_client or BrowserUseClient()
    if not browser.is_configured:
        logger.warning("Browser automation API key not configured, skipping enrichment")
        return EnrichmentResult(error="API key not configured")

    url = ensure_scheme(website)
    if respect_robots and not await check_robots_txt(url, http_client=http_client):
        logger.info("robots.txt disallows crawling %s, skipping enrichment", url)
        return EnrichmentResult(error="Crawling disallowed by robots.txt")

    result = await browser.run_task(ENRICHMENT_GOAL, start_url=url, schema=ENRICHMENT_SCHEMA)
    if result.success and result.parsed_output is not None:
        return _result_from_extraction(url, result.parsed_output)

    error = result.error or "Browser task returned no structured output"
    logger.warning("Browser enrichment failed for %s: %s", url, error)
    return await _regex_fallback(url, error, http_client)
