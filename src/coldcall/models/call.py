"""Call SQLAlchemy model tracking outbound calls placed through the voice provider."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, enum_values, utcnow


class CallStatus(str, Enum):
    """Lifecycle status of a call."""

    QUEUED = "queued"
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CallStatus.ENDED, CallStatus.FAILED)


class CallOutcome(str, Enum):
    """Classified result of a completed call."""

    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    CALLBACK = "callback"
    NO_ANSWER = "no_answer"
    VM_LEFT = "vm_left"


class Call(Base):
    """SQLAlchemy model representing one outbound call to a lead.

    ``outcome`` is stored as a plain string so an unresolved call can carry
    the empty string until a transcript has been classified.
    """

    __tablename__ = "calls"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    lead_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("leads.id"), nullable=False, index=True
    )
    provider_call_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )

    status: Mapped[CallStatus] = mapped_column(
        SQLEnum(CallStatus, name="call_status", values_callable=enum_values),
        nullable=False,
        default=CallStatus.QUEUED,
        index=True
    )
    outcome: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    disposition_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    recording_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def __repr__(self) -> str:
        return (
            f"<Call(id={self.id!r}, lead_id={self.lead_id!r}, "
            f"status={self.status.value!r}, outcome={self.outcome!r})>"
        )

    def to_dict(self) -> dict:
        """Convert call to dictionary representation."""
        return {
            "id": self.id,
            "business_id": self.business_id,
            "lead_id": self.lead_id,
            "provider_call_id": self.provider_call_id,
            "status": self.status.value,
            "outcome": self.outcome,
            "disposition_notes": self.disposition_notes,
            "recording_url": self.recording_url,
            "transcript": self.transcript,
            "summary": self.summary,
            "cost_usd": self.cost_usd,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
