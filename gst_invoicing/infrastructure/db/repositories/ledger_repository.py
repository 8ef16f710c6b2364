# gst_invoicing/infrastructure/db/repositories/ledger_repository.py
"""Read access to ledger entries for platform-fee billing."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gst_invoicing.domain.models.ledger import LedgerEntryStatus, LedgerEntryType
from gst_invoicing.domain.services.periods import as_utc
from gst_invoicing.infrastructure.db.models import LedgerEntryRecord


class LedgerRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_billable_fees(
        self,
        merchant_id: str,
        start: datetime,
        end: datetime,
    ) -> list[LedgerEntryRecord]:
        """PLATFORM_FEE entries in [start, end], FAILED excluded, oldest first."""
        stmt = (
            select(LedgerEntryRecord)
            .where(
                and_(
                    LedgerEntryRecord.merchant_id == merchant_id,
                    LedgerEntryRecord.type == LedgerEntryType.PLATFORM_FEE.value,
                    LedgerEntryRecord.status != LedgerEntryStatus.FAILED.value,
                    LedgerEntryRecord.occurred_at >= as_utc(start),
                    LedgerEntryRecord.occurred_at <= as_utc(end),
                )
            )
            .order_by(LedgerEntryRecord.occurred_at.asc(), LedgerEntryRecord.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
