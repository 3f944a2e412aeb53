"""Lead SQLAlchemy model for storing discovered candidate businesses."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, enum_values, utcnow


class LeadStatus(str, Enum):
    """Status of a lead in the calling pipeline.

    Progression is forward-only: ``new -> queued -> calling`` and then one of
    the resolved states. ``do_not_call`` is absorbing.
    """

    NEW = "new"
    QUEUED = "queued"
    CALLING = "calling"
    REACHED = "reached"
    NO_ANSWER = "no_answer"
    DO_NOT_CALL = "do_not_call"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_resolved(self) -> bool:
        return self.rank == _STATUS_RANK[LeadStatus.REACHED]

    def can_transition_to(self, target: "LeadStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        if self is LeadStatus.DO_NOT_CALL:
            return target is LeadStatus.DO_NOT_CALL
        return target.rank >= self.rank


_STATUS_RANK = {
    LeadStatus.NEW: 0,
    LeadStatus.QUEUED: 1,
    LeadStatus.CALLING: 2,
    LeadStatus.REACHED: 3,
    LeadStatus.NO_ANSWER: 3,
    LeadStatus.DO_NOT_CALL: 3,
}


class Lead(Base):
    """SQLAlchemy model representing a discovered lead.

    Attributes:
        id: Unique identifier for the lead (UUID).
        business_id: Owning business.
        ext_id: Identifier assigned by the discovery provider.
        provider: Discovery provider name (google, yelp, browseruse).
        name: Business name.
        category: Business category.
        website: Business website URL.
        phone: Primary phone number as found.
        email: Contact email (from enrichment).
        address: Street address.
        city: City / locality.
        state: State or region code.
        postal_code: Postal code.
        lat: Latitude.
        lng: Longitude.
        rating: Average star rating (0.0-5.0).
        review_count: Number of reviews.
        source_confidence: Reliability of the contact data in [0, 1].
        score: Relevance score in [0, 100].
        dedup_key: Normalized deduplication key (unique).
        status: Current pipeline status.
        created_at: Timestamp when lead was created.
        updated_at: Timestamp when lead was last updated.
    """

    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )

    # Provider identity
    ext_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Business information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Postal address
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    city: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Reputation
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    review_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    source_confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    dedup_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Normalized phone/domain/name+address key for deduplication"
    )

    status: Mapped[LeadStatus] = mapped_column(
        SQLEnum(LeadStatus, name="lead_status", values_callable=enum_values),
        nullable=False,
        default=LeadStatus.NEW,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Lead(id={self.id!r}, name={self.name!r}, status={self.status.value!r})>"

    def to_dict(self) -> dict:
        """Convert lead to dictionary representation."""
        return {
            "id": self.id,
            "business_id": self.business_id,
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
            "source_confidence": self.source_confidence,
            "score": self.score,
            "dedup_key": self.dedup_key,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
