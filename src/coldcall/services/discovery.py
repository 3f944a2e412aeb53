"""Lead discovery for a business through a place-search provider.

Each run is tracked by a ``LeadSource`` record: created ``pending``, then
finished ``done`` with the found count and API cost, or ``error`` with the
provider's error message.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import config
from ..integrations.google_places import GoogleMapsClient
from ..integrations.places import DiscoveredLead, PlacesError
from ..integrations.yelp import YelpClient
from ..store.businesses import BusinessStore
from ..store.leads import LeadStore
from ..utils.lead_scoring import ScoringFeatures, city_matches
from .lead_scorer import LeadScorer


logger = logging.getLogger(__name__)

PROVIDER_ALIASES = {
    "google": "google",
    "google_places": "google",
    "yelp": "yelp",
}

ProviderClient = Union[GoogleMapsClient, YelpClient]


@dataclass
class DiscoveryRun:
    """Summary of one discovery run.

    Attributes:
        lead_source_id: The ``LeadSource`` record tracking the run.
        status: ``done`` or ``error``.
        lead_ids: Ids of the leads inserted or updated.
        total_found: Leads returned before deduplication.
        api_cost: Estimated provider cost in USD.
        error: Provider error message for failed runs.
    """

    lead_source_id: str
    status: str
    lead_ids: List[str] = field(default_factory=list)
    total_found: int = 0
    api_cost: float = 0.0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "done"


def normalize_provider(provider: str) -> str:
    """Canonical provider name.

    Raises:
        ValueError: If the provider is not supported.
    """
    try:
        return PROVIDER_ALIASES[provider.strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported discovery provider: {provider}") from None


def create_provider_client(provider: str) -> ProviderClient:
    """Build a client for ``provider`` from config.

    Raises:
        ValueError: If the provider is unknown or its API key is missing.
    """
    name = normalize_provider(provider)
    if name == "google":
        return GoogleMapsClient()
    return YelpClient()


def lead_fields(lead: DiscoveredLead) -> dict[str, Any]:
    """Lead columns to write, omitting values the provider did not return."""
    fields = lead.to_dict()
    fields.pop("dedup_key")
    return {key: value for key, value in fields.items() if value is not None}


async def discover_for_business(
    session: AsyncSession,
    business_id: str,
    provider: str = "google",
    client: Optional[ProviderClient] = None,
    scorer: Optional[LeadScorer] = None,
    max_results: Optional[int] = None,
) -> DiscoveryRun:
    """Discover, score and store leads for a business.

    Provider failures are recorded on the lead source and returned as an
    ``error`` run rather than raised.

    Args:
        session: Active async session; the caller commits.
        business_id: Business to discover leads for.
        provider: ``google`` or ``yelp``.
        client: Provider client. Built from config when omitted.
        scorer: Lead scorer. Defaults to an LLM-first ``LeadScorer``.
        max_results: Lead cap for the run. Defaults to DISCOVERY_MAX_RESULTS.

    Raises:
        BusinessNotFoundError: If the business does not exist.
        ValueError: If the provider is not supported.
    """
    provider_name = normalize_provider(provider)
    businesses = BusinessStore(session)
    leads = LeadStore(session)

    business = await businesses.get_or_raise(business_id)
    service_area = list(business.service_area or [])
    max_results = max_results or config.DISCOVERY_MAX_RESULTS

    source = await businesses.create_lead_source(
        business_id,
        provider_name,
        query=f"{business.category} in {', '.join(service_area)}",
        meta={"maxResults": max_results},
    )

    owns_client = client is None
    try:
        if client is None:
            client = create_provider_client(provider_name)
        results = await client.discover_leads(
            business.category, service_area, max_results=max_results
        )
    except (PlacesError, ValueError) as e:
        logger.error(
            "Lead discovery failed: %s", e,
            extra={"business_id": business_id, "provider": provider_name},
        )
        await businesses.finish_lead_source(source.id, "error", {"error": str(e)})
        return DiscoveryRun(lead_source_id=source.id, status="error", error=str(e))
    finally:
        if owns_client and client is not None:
            await client.close()

    scorer = scorer or LeadScorer()
    lead_ids = []
    for lead in results.leads:
        score = await scorer.score(
            ScoringFeatures(
                rating=lead.rating,
                review_count=lead.review_count,
                has_phone=bool(lead.phone),
                has_website=bool(lead.website),
                city_match=city_matches(lead.city, service_area),
            )
        )
        lead_id = await leads.upsert(
            business_id, lead.dedup_key, score=score.score, **lead_fields(lead)
        )
        lead_ids.append(lead_id)

    api_cost = round(results.api_cost, 3)
    await businesses.finish_lead_source(
        source.id, "done", {"found": len(lead_ids), "apiCost": api_cost}
    )
    logger.info(
        "Discovered %d leads (%d before dedup)", len(lead_ids), results.total_found,
        extra={"business_id": business_id, "provider": provider_name, "api_cost": api_cost},
    )
    return DiscoveryRun(
        lead_source_id=source.id,
        status="done",
        lead_ids=lead_ids,
        total_found=results.total_found,
        api_cost=api_cost,
    )
