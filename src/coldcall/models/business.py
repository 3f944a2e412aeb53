"""Business-side models: the calling business, its settings, scripts and lead sources."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


DEFAULT_CALL_WINDOW_START = "09:00"
DEFAULT_CALL_WINDOW_END = "17:00"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_MAX_CONCURRENT_CALLS = 3
DEFAULT_PER_RUN_LEAD_CAP = 20


class Business(Base):
    """The business on whose behalf leads are discovered and called.

    Attributes:
        id: Unique identifier (UUID).
        source_url: Website the business was classified from.
        name: Business name.
        category: Business category.
        service_area: Cities/regions served.
        icp: Ideal customer profile.
        usp: Unique selling proposition.
        notes: Free-form classifier notes.
    """

    __tablename__ = "businesses"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    source_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    service_area: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    icp: Mapped[str] = mapped_column(Text, nullable=False, default="")
    usp: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Business(id={self.id!r}, name={self.name!r})>"

    def to_dict(self) -> dict:
        """Convert business to dictionary representation."""
        return {
            "id": self.id,
            "source_url": self.source_url,
            "name": self.name,
            "category": self.category,
            "service_area": list(self.service_area or []),
            "icp": self.icp,
            "usp": self.usp,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class BusinessSettings(Base):
    """Calling policy for a business: window, do-not-call list and caps."""

    __tablename__ = "business_settings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, unique=True
    )
    call_window_start: Mapped[str] = mapped_column(
        String(5), nullable=False, default=DEFAULT_CALL_WINDOW_START
    )
    call_window_end: Mapped[str] = mapped_column(
        String(5), nullable=False, default=DEFAULT_CALL_WINDOW_END
    )
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_TIMEZONE
    )
    do_not_call_patterns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    max_concurrent_calls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_CONCURRENT_CALLS
    )
    per_run_lead_cap: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_PER_RUN_LEAD_CAP
    )
    provider_keys_configured: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "business_id": self.business_id,
            "call_window": {
                "start": self.call_window_start,
                "end": self.call_window_end,
                "timezone": self.timezone,
            },
            "do_not_call_patterns": list(self.do_not_call_patterns or []),
            "max_concurrent_calls": self.max_concurrent_calls,
            "per_run_lead_cap": self.per_run_lead_cap,
            "provider_keys_configured": dict(self.provider_keys_configured or {}),
        }


class CallScriptRecord(Base):
    """A versioned call script saved for a business."""

    __tablename__ = "call_scripts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    purpose: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tone: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    script: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "version": self.version,
            "purpose": self.purpose,
            "tone": self.tone,
            "script": dict(self.script or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LeadSource(Base):
    """Audit record of one discovery run against a provider."""

    __tablename__ = "lead_sources"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    query: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "provider": self.provider,
            "query": self.query,
            "status": self.status,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
