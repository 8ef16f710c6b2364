# gst_invoicing/infrastructure/db/repositories/invoice_number_repository.py
"""
Persistence for invoice-number allocation.

Never commits: the allocator owns the transaction boundary.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gst_invoicing.infrastructure.db.models import (
    InvoiceCounter,
    InvoiceNumberRecord,
    InvoiceSeriesSettings,
)


class InvoiceNumberRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_record(self, scope: str, owner: str, reference_id: str) -> InvoiceNumberRecord | None:
        stmt = select(InvoiceNumberRecord).where(
            and_(
                InvoiceNumberRecord.scope == scope,
                InvoiceNumberRecord.owner == owner,
                InvoiceNumberRecord.reference_id == reference_id,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_series_settings(self, owner: str) -> InvoiceSeriesSettings | None:
        result = await self.db.execute(
            select(InvoiceSeriesSettings).where(InvoiceSeriesSettings.owner == owner)
        )
        return result.scalar_one_or_none()

    async def next_sequence(self, owner: str, series: str, start_number: int = 1) -> int:
        """
        Take the next number of the (owner, series) counter.

        The UPDATE is the lock: concurrent allocators for the same owner
        queue behind it until this transaction ends. First use of a series
        inserts the counter; a concurrent insert of the same series fails
        on the unique constraint and the caller retries.
        """
        stmt = (
            update(InvoiceCounter)
            .where(
                and_(
                    InvoiceCounter.owner == owner,
                    InvoiceCounter.series == series,
                )
            )
            .values(next_number=InvoiceCounter.next_number + 1, updated_at=func.now())
            .returning(InvoiceCounter.next_number)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        bumped = result.scalar_one_or_none()
        if bumped is not None:
            return int(bumped) - 1

        counter = InvoiceCounter(owner=owner, series=series, next_number=start_number + 1)
        self.db.add(counter)
        await self.db.flush()
        return start_number

    async def add_record(
        self,
        *,
        scope: str,
        reference_id: str,
        owner: str,
        merchant_id: str,
        series: str,
        sequence: int,
        invoice_number: str,
        issued_at: datetime,
    ) -> InvoiceNumberRecord:
        record = InvoiceNumberRecord(
            scope=scope,
            reference_id=reference_id,
            owner=owner,
            merchant_id=merchant_id,
            series=series,
            sequence=sequence,
            invoice_number=invoice_number,
            issued_at=issued_at,
        )
        self.db.add(record)
        await self.db.flush()
        return record
