"""Shared result types for the place-search discovery providers."""

from dataclasses import dataclass, field
from typing import Any, Optional


class PlacesError(Exception):
    """Raised when a place-search provider cannot be queried."""

    pass


@dataclass
class DiscoveredLead:
    """One business found by a discovery provider.

    Attributes:
        ext_id: Provider identifier (place id, Yelp business id).
        provider: Provider name.
        name: Business name.
        category: Category searched for.
        address: Formatted address.
        city: Locality.
        state: State / region short code.
        dedup_key: Normalized dedup key.
    """

    ext_id: str
    provider: str
    name: str
    category: str
    address: str
    city: str
    state: str
    dedup_key: str
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    postal_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "ext_id": self.ext_id,
            "provider": self.provider,
            "name": self.name,
            "category": self.category,
            "website": self.website,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "lat": self.lat,
            "lng": self.lng,
            "rating": self.rating,
            "review_count": self.review_count,
            "dedup_key": self.dedup_key,
        }


@dataclass
class DiscoveryResults:
    """Leads returned by one discovery run.

    Attributes:
        leads: Unique leads, first occurrence of each dedup key kept.
        total_found: Number of leads seen before deduplication.
        api_cost: Estimated provider cost in USD.
    """

    leads: list[DiscoveredLead] = field(default_factory=list)
    total_found: int = 0
    api_cost: float = 0.0


def unique_by_dedup_key(leads: list[DiscoveredLead]) -> list[DiscoveredLead]:
    """Drop leads whose dedup key was already seen, keeping the first."""
    seen: set[str] = set()
    unique = []
    for lead in leads:
        if lead.dedup_key in seen:
            continue
        seen.add(lead.dedup_key)
        unique.append(lead)
    return unique
