"""Lead persistence: upsert by dedup key, status transitions and queries."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Call, Lead, LeadStatus, utcnow


logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 20

# Columns a caller may write through upsert()
LEAD_FIELDS = (
    "ext_id",
    "provider",
    "name",
    "category",
    "website",
    "phone",
    "email",
    "address",
    "city",
    "state",
    "postal_code",
    "lat",
    "lng",
    "rating",
    "review_count",
    "source_confidence",
    "score",
)


class LeadNotFoundError(Exception):
    """Raised when a lead id does not exist."""

    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(f"Lead not found: {lead_id}")


class LeadStore:
    """Lead repository bound to one async session.

    The store never commits; the caller's session scope (``get_db_session``
    or the FastAPI ``get_db`` dependency) owns the transaction.

    Example:
        >>> async with get_db_session() as session:
        ...     store = LeadStore(session)
        ...     lead_id = await store.upsert(business_id, "phone_5551234567", name="Joe's")
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, lead_id: str) -> Optional[Lead]:
        return await self.session.get(Lead, lead_id)

    async def get_or_raise(self, lead_id: str) -> Lead:
        lead = await self.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    async def get_by_dedup_key(self, dedup_key: str) -> Optional[Lead]:
        result = await self.session.execute(
            select(Lead).where(Lead.dedup_key == dedup_key).limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        business_id: str,
        dedup_key: str,
        status: Optional[LeadStatus] = None,
        **fields: Any,
    ) -> str:
        """Insert a lead or patch the existing one with the same dedup key.

        A patched lead moves to ``business_id``, the most recent business to
        find it.

        Args:
            business_id: Owning business id.
            dedup_key: Normalized dedup key (see ``normalize_dedup_key``).
            status: Optional status. On an existing lead it is applied only
                if the transition is forward.
            **fields: Lead columns to write (see ``LEAD_FIELDS``).

        Returns:
            The id of the inserted or updated lead.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(fields) - set(LEAD_FIELDS)
        if unknown:
            raise ValueError(f"Unknown lead fields: {', '.join(sorted(unknown))}")

        existing = await self.get_by_dedup_key(dedup_key)
        now = utcnow()

        if existing is not None:
            existing.business_id = business_id
            for key, value in fields.items():
                setattr(existing, key, value)
            if status is not None and existing.status.can_transition_to(status):
                existing.status = status
            existing.updated_at = now
            await self.session.flush()
            logger.debug("Updated lead %s for dedup key %s", existing.id, dedup_key)
            return existing.id

        lead = Lead(
            business_id=business_id,
            dedup_key=dedup_key,
            status=status or LeadStatus.NEW,
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.session.add(lead)
        await self.session.flush()
        logger.debug("Inserted lead %s for dedup key %s", lead.id, dedup_key)
        return lead.id

    async def update_status(self, lead_id: str, status: LeadStatus) -> bool:
        """Move a lead to ``status`` if the transition is forward.

        Returns:
            True if the status was written, False if the transition was
            rejected (for example leaving ``do_not_call``).

        Raises:
            LeadNotFoundError: If the lead does not exist.
        """
        lead = await self.get_or_raise(lead_id)
        if not lead.status.can_transition_to(status):
            logger.info(
                "Ignoring backward lead status transition",
                extra={"lead_id": lead_id, "from": lead.status.value, "to": status.value},
            )
            return False
        lead.status = status
        lead.updated_at = utcnow()
        await self.session.flush()
        return True

    async def update_score(self, lead_id: str, score: int) -> None:
        lead = await self.get_or_raise(lead_id)
        lead.score = score
        lead.updated_at = utcnow()
        await self.session.flush()

    async def enrich(
        self,
        lead_id: str,
        source_confidence: float,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        """Patch contact details found by enrichment."""
        lead = await self.get_or_raise(lead_id)
        if phone is not None:
            lead.phone = phone
        if email is not None:
            lead.email = email
        lead.source_confidence = source_confidence
        lead.updated_at = utcnow()
        await self.session.flush()

    async def batch_update_status(
        self,
        business_id: str,
        from_status: LeadStatus,
        to_status: LeadStatus,
        limit: int = DEFAULT_BATCH_LIMIT,
    ) -> List[str]:
        """Move the top-scoring leads in ``from_status`` to ``to_status``.

        Args:
            business_id: Owning business id.
            from_status: Status leads must currently have.
            to_status: Status to move them to.
            limit: Maximum number of leads to move.

        Returns:
            Ids of the leads that were moved, highest score first.
        """
        result = await self.session.execute(
            select(Lead)
            .where(Lead.business_id == business_id, Lead.status == from_status)
            .order_by(Lead.score.desc())
            .limit(limit)
        )
        leads = list(result.scalars())

        now = utcnow()
        moved = []
        for lead in leads:
            lead.status = to_status
            lead.updated_at = now
            moved.append(lead.id)
        await self.session.flush()

        logger.info(
            "Batch-updated %d leads from %s to %s",
            len(moved), from_status.value, to_status.value,
            extra={"business_id": business_id},
        )
        return moved

    async def remove(self, lead_id: str) -> None:
        """Delete a lead and every call placed to it."""
        await self.session.execute(delete(Call).where(Call.lead_id == lead_id))
        await self.session.execute(delete(Lead).where(Lead.id == lead_id))
        await self.session.flush()

    async def list(
        self, business_id: str, status: Optional[LeadStatus] = None
    ) -> List[Lead]:
        """List a business's leads, highest score first."""
        query = select(Lead).where(Lead.business_id == business_id)
        if status is not None:
            query = query.where(Lead.status == status)
        result = await self.session.execute(query.order_by(Lead.score.desc()))
        return list(result.scalars())

    async def get_top_scored(
        self, business_id: str, limit: int = DEFAULT_BATCH_LIMIT
    ) -> List[Lead]:
        """Top-scoring callable leads (not ``do_not_call``, score above 0)."""
        result = await self.session.execute(
            select(Lead)
            .where(
                Lead.business_id == business_id,
                Lead.status != LeadStatus.DO_NOT_CALL,
                Lead.score > 0,
            )
            .order_by(Lead.score.desc())
            .limit(limit)
        )
        return list(result.scalars())

    async def get_stats(self, business_id: str) -> Dict[str, Any]:
        """Aggregate lead counts for a business."""
        leads = await self.list(business_id)
        by_status = {status.value: 0 for status in LeadStatus}
        for lead in leads:
            by_status[lead.status.value] += 1

        total = len(leads)
        return {
            "total": total,
            "by_status": by_status,
            "with_phone": sum(1 for lead in leads if lead.phone),
            "with_email": sum(1 for lead in leads if lead.email),
            "with_website": sum(1 for lead in leads if lead.website),
            "avg_score": round(sum(lead.score for lead in leads) / total) if total else 0,
        }

    async def count(self, business_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Lead.id)).where(Lead.business_id == business_id)
        )
        return result.scalar_one()
