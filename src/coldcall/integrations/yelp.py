"""Yelp Fusion business search client for lead discovery."""

import logging
from typing import Any, Optional

import httpx

from ..config import config
from ..utils.dedup import normalize_dedup_key
from .places import DiscoveredLead, DiscoveryResults, PlacesError, unique_by_dedup_key

logger = logging.getLogger(__name__)

# Constants
PROVIDER_NAME = "yelp"
YELP_BASE_URL = "https://api.yelp.com/v3"
DEFAULT_MAX_RESULTS = 50
SEARCH_PAGE_LIMIT = 50
SEARCH_COST_USD = 0.01
DEFAULT_TIMEOUT_SECONDS = 30


class YelpClient:
    """Client for the Yelp Fusion ``/businesses/search`` endpoint.

    Yelp's ``url`` field points at the Yelp listing page, not the business's
    own site, so it is never stored as the lead's website.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize Yelp client.

        Args:
            api_key: Yelp Fusion API key. Defaults to YELP_API_KEY.
            timeout_seconds: Request timeout in seconds.
            transport: Optional httpx transport for tests.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        self.api_key = api_key or config.YELP_API_KEY
        if not self.api_key:
            raise ValueError(
                "Yelp API key required. Set YELP_API_KEY environment "
                "variable or pass api_key parameter."
            )
        self._client = httpx.AsyncClient(
            base_url=YELP_BASE_URL,
            timeout=timeout_seconds,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=transport,
        )

    async def _search(self, category: str, area: str) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(
                "/businesses/search",
                params={"term": category, "location": area, "limit": SEARCH_PAGE_LIMIT},
            )
        except httpx.HTTPError as e:
            raise PlacesError(f"Yelp request failed: {e}") from e

        if not response.is_success:
            raise PlacesError(f"Yelp API error: {response.status_code} {response.reason_phrase}")

        businesses = response.json().get("businesses")
        if not isinstance(businesses, list):
            raise PlacesError("Yelp response missing businesses list")
        return businesses

    def _build_lead(self, business: dict[str, Any], category: str) -> DiscoveredLead:
        location = business.get("location") or {}
        coordinates = business.get("coordinates") or {}
        address = ", ".join(location.get("display_address") or [])
        name = business.get("name", "")
        phone = business.get("phone") or None

        return DiscoveredLead(
            ext_id=str(business.get("id", "")),
            provider=PROVIDER_NAME,
            name=name,
            category=category,
            phone=phone,
            address=address,
            city=location.get("city") or "",
            state=location.get("state") or "",
            postal_code=location.get("zip_code") or None,
            lat=coordinates.get("latitude"),
            lng=coordinates.get("longitude"),
            rating=business.get("rating"),
            review_count=business.get("review_count"),
            dedup_key=normalize_dedup_key(phone, None, name, address),
        )

    async def discover_leads(
        self,
        category: str,
        service_area: list[str],
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> DiscoveryResults:
        """Find businesses of ``category`` across each service area.

        Raises:
            PlacesError: If a search request fails.
        """
        all_leads: list[DiscoveredLead] = []
        api_cost = 0.0

        for area in service_area:
            businesses = await self._search(category, area)
            api_cost += SEARCH_COST_USD

            for business in businesses[:max_results]:
                all_leads.append(self._build_lead(business, category))
                if len(all_leads) >= max_results:
                    break

            if len(all_leads) >= max_results:
                break

        unique = unique_by_dedup_key(all_leads)
        logger.info(
            "Yelp discovery complete: %d found, %d unique, cost $%.2f",
            len(all_leads), len(unique), api_cost,
        )
        return DiscoveryResults(leads=unique, total_found=len(all_leads), api_cost=api_cost)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "YelpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
