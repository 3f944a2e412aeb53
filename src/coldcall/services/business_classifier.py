"""Classifies a business from its homepage."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from ..integrations.llm import LLMClient
from ..utils.html_text import fetch_html, html_to_text


logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 5000

DEFAULT_NAME = "Unknown Business"
DEFAULT_CATEGORY = "General Business"
DEFAULT_SERVICE_AREA = "Unknown Area"
DEFAULT_ICP = "General customers"
DEFAULT_USP = "Quality service provider"
FALLBACK_USP = "Professional service provider"

CLASSIFY_SYSTEM_PROMPT = """You are given a local business homepage content and URL.
Return JSON with these fields: {name, category, serviceArea, icp, usp}

- name: Business name
- category: Business category (e.g., "HVAC contractor", "dental practice", "law firm")
- serviceArea: Array of cities/regions served (e.g., ["San Jose, CA", "Santa Clara County"])
- icp: Ideal customer profile (e.g., "Residential HVAC, 1-20 employees")
- usp: Unique selling proposition (brief, 1-2 sentences)

If information is unclear, make reasonable inferences based on context."""


@dataclass
class BusinessClassification:
    """What a business is, who it sells to and where."""

    name: str
    category: str
    service_area: List[str] = field(default_factory=list)
    icp: str = DEFAULT_ICP
    usp: str = DEFAULT_USP
    source: str = "llm"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "service_area": list(self.service_area),
            "icp": self.icp,
            "usp": self.usp,
        }


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def classification_from_payload(data: Dict[str, Any]) -> BusinessClassification:
    """Fill missing fields of an LLM classification with defaults."""
    area = data.get("serviceArea")
    if isinstance(area, list):
        service_area = [str(item) for item in area if str(item).strip()]
    elif isinstance(area, str) and area.strip():
        service_area = [area.strip()]
    else:
        service_area = []

    return BusinessClassification(
        name=_text_or(data.get("name"), DEFAULT_NAME),
        category=_text_or(data.get("category"), DEFAULT_CATEGORY),
        service_area=service_area or [DEFAULT_SERVICE_AREA],
        icp=_text_or(data.get("icp"), DEFAULT_ICP),
        usp=_text_or(data.get("usp"), DEFAULT_USP),
    )


def fallback_classification(source_url: str) -> BusinessClassification:
    """Classification derived from the URL alone.

    The name is the first hostname label with any ``www.`` removed.
    """
    url = source_url if "://" in source_url else f"https://{source_url}"
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        hostname = ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    name = hostname.split(".")[0] if hostname else DEFAULT_NAME

    return BusinessClassification(
        name=name,
        category=DEFAULT_CATEGORY,
        service_area=[DEFAULT_SERVICE_AREA],
        icp=DEFAULT_ICP,
        usp=FALLBACK_USP,
        source="fallback",
    )


async def classify_business(
    source_url: str,
    llm_client: Optional[LLMClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BusinessClassification:
    """Classify a business by its homepage.

    Never raises: fetch or LLM failures produce ``fallback_classification``.

    Args:
        source_url: Homepage URL.
        llm_client: LLM client. Created from config when omitted.
        http_client: Optional client used to fetch the page.
    """
    try:
        html = await fetch_html(source_url, client=http_client)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Failed to fetch %s for classification: %s", source_url, e)
        return fallback_classification(source_url)

    page_text = html_to_text(html, max_chars=MAX_PAGE_CHARS)
    llm = llm_client or LLMClient()
    result = await llm.complete_json(
        [
            {"role": "system", "content": CLASSIFY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"URL: {source_url}\n\nWebpage content:\n{page_text}",
            },
        ],
        temperature=0.1,
    )
    if not result.success:
        logger.warning(
            "Business classification fell back to URL",
            extra={"source_url": source_url, "error": result.error},
        )
        return fallback_classification(source_url)

    return classification_from_payload(result.data)
