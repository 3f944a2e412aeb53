"""Google Maps Places API client for lead discovery.

Runs a text search for ``"{category} in {area}"`` per service area, then
fetches place details for each hit to obtain phone, website and address
components.
"""

import asyncio
import logging
from typing import Any, Optional

import googlemaps
from googlemaps.exceptions import ApiError, TransportError, Timeout

from ..config import config
from ..utils.dedup import normalize_dedup_key
from .places import DiscoveredLead, DiscoveryResults, PlacesError, unique_by_dedup_key

logger = logging.getLogger(__name__)

# Constants
PROVIDER_NAME = "google"
DEFAULT_MAX_RESULTS = 50
TEXT_SEARCH_COST_USD = 0.032
PLACE_DETAILS_COST_USD = 0.017
DETAIL_FIELDS = [
    "name",
    "formatted_address",
    "formatted_phone_number",
    "website",
    "rating",
    "user_ratings_total",
    "geometry",
    "address_component",
]
OK_STATUSES = {"OK", "ZERO_RESULTS"}


def parse_address_components(
    components: list[dict[str, Any]], default_city: str
) -> tuple[str, str, str]:
    """Extract (city, state, postal_code) from Places address components."""
    city, state, postal_code = default_city, "", ""
    for component in components or []:
        types = component.get("types", [])
        if "locality" in types:
            city = component.get("long_name", city)
        elif "administrative_area_level_1" in types:
            state = component.get("short_name", "")
        elif "postal_code" in types:
            postal_code = component.get("long_name", "")
    return city, state, postal_code


class GoogleMapsClient:
    """Client for Google Maps Places text search and place details.

    Attributes:
        api_key: Google Maps API key.

    Example:
        >>> client = GoogleMapsClient()
        >>> results = await client.discover_leads("dentist", ["Austin, TX"])
        >>> for lead in results.leads:
        ...     print(lead.name, lead.phone)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[googlemaps.Client] = None,
    ) -> None:
        """Initialize Google Maps client.

        Args:
            api_key: Google Maps API key. Defaults to GOOGLE_MAPS_API_KEY.
            client: Pre-built ``googlemaps.Client`` (tests inject a mock).

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        self.api_key = api_key or config.GOOGLE_MAPS_API_KEY
        if client is None and not self.api_key:
            raise ValueError(
                "Google Maps API key required. Set GOOGLE_MAPS_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self._client = client or googlemaps.Client(key=self.api_key)
        logger.info("GoogleMapsClient initialized")

    async def _text_search(self, query: str) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: self._client.places(query=query))
        except (ApiError, TransportError, Timeout) as e:
            raise PlacesError(f"Google Places text search failed: {e}") from e

    async def _fetch_place_details(self, place_id: str) -> Optional[dict[str, Any]]:
        """Fetch details for one place, or None when the lookup fails."""
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.place(place_id, fields=DETAIL_FIELDS),
            )
        except (ApiError, TransportError, Timeout) as e:
            logger.warning("Failed to fetch details for place %s: %s", place_id, e)
            return None

        if response.get("status", "OK") != "OK":
            logger.warning(
                "Place details error for %s: %s", place_id, response.get("status")
            )
            return None
        return response.get("result", {})

    def _build_lead(
        self,
        place: dict[str, Any],
        details: dict[str, Any],
        category: str,
        area: str,
    ) -> DiscoveredLead:
        city, state, postal_code = parse_address_components(
            details.get("address_components", []), default_city=area
        )
        location = details.get("geometry", {}).get("location", {})
        name = details.get("name") or place.get("name", "")
        address = details.get("formatted_address") or place.get("formatted_address", "")
        phone = details.get("formatted_phone_number")
        website = details.get("website")

        return DiscoveredLead(
            ext_id=place.get("place_id", ""),
            provider=PROVIDER_NAME,
            name=name,
            category=category,
            website=website,
            phone=phone,
            address=address,
            city=city,
            state=state,
            postal_code=postal_code or None,
            lat=location.get("lat"),
            lng=location.get("lng"),
            rating=details.get("rating"),
            review_count=details.get("user_ratings_total"),
            dedup_key=normalize_dedup_key(phone, website, name, address),
        )

    async def discover_leads(
        self,
        category: str,
        service_area: list[str],
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> DiscoveryResults:
        """Find businesses of ``category`` across each service area.

        Args:
            category: Business category to search for.
            service_area: Areas to search, in order.
            max_results: Stop once this many leads were collected.

        Returns:
            DiscoveryResults with unique leads and an API cost estimate.

        Raises:
            PlacesError: If a text search request fails.
        """
        all_leads: list[DiscoveredLead] = []
        api_cost = 0.0

        for area in service_area:
            query = f"{category} in {area}"
            response = await self._text_search(query)
            api_cost += TEXT_SEARCH_COST_USD

            status = response.get("status", "OK")
            if status not in OK_STATUSES:
                logger.warning("Places API warning for %s: %s", area, status)
                continue

            for place in response.get("results", [])[:max_results]:
                place_id = place.get("place_id")
                if not place_id:
                    continue
                details = await self._fetch_place_details(place_id)
                api_cost += PLACE_DETAILS_COST_USD
                if details is None:
                    continue

                all_leads.append(self._build_lead(place, details, category, area))
                if len(all_leads) >= max_results:
                    break

            if len(all_leads) >= max_results:
                break

        unique = unique_by_dedup_key(all_leads)
        logger.info(
            "Google discovery complete: %d found, %d unique, cost $%.3f",
            len(all_leads), len(unique), api_cost,
        )
        return DiscoveryResults(leads=unique, total_found=len(all_leads), api_cost=api_cost)

    async def close(self) -> None:
        """Release the underlying HTTP session."""
        session = getattr(self._client, "session", None)
        if session is not None:
            session.close()

    async def __aenter__(self) -> "GoogleMapsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
