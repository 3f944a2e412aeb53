"""Cold-Call Database Models.

This module contains SQLAlchemy models for the cold-call system.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp used for all created/updated columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enum_values(enum_cls) -> list[str]:
    """Persist enum values (not member names) in enum columns."""
    return [member.value for member in enum_cls]


# Import models to register them with Base metadata
from .business import Business, BusinessSettings, CallScriptRecord, LeadSource
from .lead import Lead, LeadStatus
from .call import Call, CallOutcome, CallStatus

# Import database utilities
from .database import (
    DatabaseManager,
    get_db_session,
    get_db,
    init_database,
    close_database,
    create_test_engine,
)

__all__ = [
    # Base class
    "Base",
    "utcnow",
    # Models
    "Business",
    "BusinessSettings",
    "CallScriptRecord",
    "LeadSource",
    "Lead",
    "LeadStatus",
    "Call",
    "CallOutcome",
    "CallStatus",
    # Database utilities
    "DatabaseManager",
    "get_db_session",
    "get_db",
    "init_database",
    "close_database",
    "create_test_engine",
]
