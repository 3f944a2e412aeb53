"""Business, settings, script and lead-source persistence."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Business,
    BusinessSettings,
    Call,
    CallScriptRecord,
    Lead,
    LeadSource,
    utcnow,
)
from ..models.business import (
    DEFAULT_CALL_WINDOW_END,
    DEFAULT_CALL_WINDOW_START,
    DEFAULT_MAX_CONCURRENT_CALLS,
    DEFAULT_PER_RUN_LEAD_CAP,
    DEFAULT_TIMEZONE,
)


logger = logging.getLogger(__name__)

BUSINESS_FIELDS = ("source_url", "name", "category", "service_area", "icp", "usp", "notes")
SETTINGS_FIELDS = (
    "call_window_start",
    "call_window_end",
    "timezone",
    "do_not_call_patterns",
    "max_concurrent_calls",
    "per_run_lead_cap",
    "provider_keys_configured",
)


class BusinessNotFoundError(Exception):
    """Raised when a business id does not exist."""

    def __init__(self, business_id: str):
        self.business_id = business_id
        super().__init__(f"Business not found: {business_id}")


def default_settings(
    business_id: str, provider_keys: Optional[Dict[str, bool]] = None
) -> BusinessSettings:
    """Build an unsaved settings row populated with the calling defaults."""
    now = utcnow()
    return BusinessSettings(
        business_id=business_id,
        call_window_start=DEFAULT_CALL_WINDOW_START,
        call_window_end=DEFAULT_CALL_WINDOW_END,
        timezone=DEFAULT_TIMEZONE,
        do_not_call_patterns=[],
        max_concurrent_calls=DEFAULT_MAX_CONCURRENT_CALLS,
        per_run_lead_cap=DEFAULT_PER_RUN_LEAD_CAP,
        provider_keys_configured=dict(provider_keys or {
            "google": False,
            "yelp": False,
            "browseruse": False,
            "vapi": False,
            "openai": False,
        }),
        created_at=now,
        updated_at=now,
    )


class BusinessStore:
    """Business repository bound to one async session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        provider_keys: Optional[Dict[str, bool]] = None,
        **fields: Any,
    ) -> Business:
        """Create a business together with its default settings."""
        now = utcnow()
        business = Business(name=name, created_at=now, updated_at=now, **fields)
        self.session.add(business)
        await self.session.flush()

        self.session.add(default_settings(business.id, provider_keys))
        await self.session.flush()

        logger.info("Created business %s", business.id, extra={"business_name": name})
        return business

    async def get(self, business_id: str) -> Optional[Business]:
        return await self.session.get(Business, business_id)

    async def get_or_raise(self, business_id: str) -> Business:
        business = await self.get(business_id)
        if business is None:
            raise BusinessNotFoundError(business_id)
        return business

    async def list(self) -> List[Business]:
        result = await self.session.execute(
            select(Business).order_by(Business.created_at.desc())
        )
        return list(result.scalars())

    async def update(self, business_id: str, **fields: Any) -> Business:
        unknown = set(fields) - set(BUSINESS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown business fields: {', '.join(sorted(unknown))}")

        business = await self.get_or_raise(business_id)
        for key, value in fields.items():
            setattr(business, key, value)
        business.updated_at = utcnow()
        await self.session.flush()
        return business

    async def remove(self, business_id: str) -> None:
        """Delete a business and everything that belongs to it."""
        for model in (Call, Lead, BusinessSettings, CallScriptRecord, LeadSource):
            await self.session.execute(delete(model).where(model.business_id == business_id))
        await self.session.execute(delete(Business).where(Business.id == business_id))
        await self.session.flush()
        logger.info("Removed business %s", business_id)

    async def get_settings(self, business_id: str) -> BusinessSettings:
        """Stored settings for a business, or unsaved defaults if none exist."""
        result = await self.session.execute(
            select(BusinessSettings).where(BusinessSettings.business_id == business_id)
        )
        settings = result.scalar_one_or_none()
        if settings is None:
            return default_settings(business_id)
        return settings

    async def update_settings(self, business_id: str, **fields: Any) -> BusinessSettings:
        unknown = set(fields) - set(SETTINGS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown settings fields: {', '.join(sorted(unknown))}")

        settings = await self.get_settings(business_id)
        if settings not in self.session:
            self.session.add(settings)
        for key, value in fields.items():
            setattr(settings, key, value)
        settings.updated_at = utcnow()
        await self.session.flush()
        return settings

    async def save_script(
        self,
        business_id: str,
        script: Dict[str, Any],
        purpose: str = "",
        tone: str = "",
    ) -> CallScriptRecord:
        """Store a new script version for a business."""
        result = await self.session.execute(
            select(func.max(CallScriptRecord.version)).where(
                CallScriptRecord.business_id == business_id
            )
        )
        latest = result.scalar_one_or_none() or 0

        record = CallScriptRecord(
            business_id=business_id,
            version=latest + 1,
            purpose=purpose,
            tone=tone,
            script=script,
            created_at=utcnow(),
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_latest_script(self, business_id: str) -> Optional[CallScriptRecord]:
        result = await self.session.execute(
            select(CallScriptRecord)
            .where(CallScriptRecord.business_id == business_id)
            .order_by(CallScriptRecord.version.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_lead_source(
        self,
        business_id: str,
        provider: str,
        query: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> LeadSource:
        source = LeadSource(
            business_id=business_id,
            provider=provider,
            query=query,
            status="pending",
            meta=meta,
            created_at=utcnow(),
        )
        self.session.add(source)
        await self.session.flush()
        return source

    async def finish_lead_source(
        self, source_id: str, status: str, meta: Optional[Dict[str, Any]] = None
    ) -> None:
        """Mark a discovery run ``done`` or ``error`` and merge its metadata."""
        source = await self.session.get(LeadSource, source_id)
        if source is None:
            return
        source.status = status
        source.meta = {**(source.meta or {}), **(meta or {})}
        await self.session.flush()
