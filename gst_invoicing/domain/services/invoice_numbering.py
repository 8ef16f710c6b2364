# gst_invoicing/domain/services/invoice_numbering.py
"""
Transaction-safe sequential invoice numbering.

Each allocation runs in its own transaction:

1. return the existing record for the reference (order / billing period)
   if there is one;
2. take the next sequence from the (owner, series) counter row, which
   locks it for the rest of the transaction;
3. re-check the reference under that lock, then insert the record.

``uq_invoice_number_reference`` and ``uq_invoice_number_owner_number``
turn any race that slips past the lock (weaker isolation, first use of a
series) into an IntegrityError. Conflicts and lock timeouts are retried in
a fresh transaction; a rolled-back attempt reserves no number.

Series formats use the tokens {PREFIX}, {YYYY}, {FY} and {NNNNN}. The
counter is kept per period token, so a new calendar / financial year
starts again at 1 without rewinding an existing counter.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceNumberConflictError, InvoiceValidationError
from gst_invoicing.domain.services.periods import as_utc, financial_year, local_date
from gst_invoicing.infrastructure.db.models import InvoiceNumberRecord
from gst_invoicing.infrastructure.db.repositories.invoice_number_repository import (
    InvoiceNumberRepository,
)

logger = logging.getLogger("invoice_numbering")

SCOPE_ORDER = "ORDER"
SCOPE_PLATFORM_BILLING = "PLATFORM_BILLING"
PLATFORM_OWNER = "platform"

SEQUENCE_TOKEN = "{NNNNN}"


@dataclass(frozen=True)
class NumberingConfig:
    prefix: str
    padding: int
    series_format: str
    start_number: int = 1


@dataclass(frozen=True)
class AllocatedInvoiceNumber:
    invoice_number: str
    issued_at: datetime
    sequence: int
    series: str
    created: bool


def merchant_defaults() -> NumberingConfig:
    return NumberingConfig(
        prefix=settings.MERCHANT_INVOICE_PREFIX,
        padding=settings.MERCHANT_INVOICE_PADDING,
        series_format=settings.MERCHANT_INVOICE_SERIES_FORMAT,
    )


def platform_defaults() -> NumberingConfig:
    return NumberingConfig(
        prefix=settings.PLATFORM_INVOICE_PREFIX,
        padding=settings.PLATFORM_INVOICE_PADDING,
        series_format=settings.PLATFORM_INVOICE_SERIES_FORMAT,
    )


def series_key(series_format: str, day: date) -> str:
    """Counter partition for a format: "" when it carries no period token."""
    parts = []
    if "{FY}" in series_format:
        parts.append(financial_year(day))
    if "{YYYY}" in series_format:
        parts.append(str(day.year))
    return "/".join(parts)


def format_invoice_number(config: NumberingConfig, sequence: int, day: date) -> str:
    return (
        config.series_format
        .replace("{PREFIX}", config.prefix)
        .replace("{FY}", financial_year(day))
        .replace("{YYYY}", str(day.year))
        .replace(SEQUENCE_TOKEN, str(sequence).zfill(config.padding))
    )


def effective_config(row, defaults: NumberingConfig, owner: str) -> NumberingConfig:
    """Merge a stored InvoiceSeriesSettings row over the defaults."""
    if row is None:
        return defaults

    series_format = row.series_format or defaults.series_format
    if SEQUENCE_TOKEN not in series_format:
        logger.warning(
            "Invalid invoice series format for %s: missing %s token. Using default format.",
            owner, SEQUENCE_TOKEN,
        )
        series_format = defaults.series_format

    padding = row.padding if row.padding and row.padding > 0 else defaults.padding
    start_number = row.start_number if row.start_number and row.start_number > 0 else 1
    return NumberingConfig(
        prefix=row.prefix or defaults.prefix,
        padding=padding,
        series_format=series_format,
        start_number=start_number,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _from_record(record: InvoiceNumberRecord, created: bool) -> AllocatedInvoiceNumber:
    return AllocatedInvoiceNumber(
        invoice_number=record.invoice_number,
        issued_at=as_utc(record.issued_at),
        sequence=int(record.sequence),
        series=record.series,
        created=created,
    )


class InvoiceNumberAllocator:
    """Allocates invoice numbers exactly once per order / billing period."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts or settings.INVOICE_ALLOCATION_MAX_ATTEMPTS
        self._retry_delay = settings.INVOICE_ALLOCATION_RETRY_DELAY if retry_delay is None else retry_delay
        self._clock = clock

    async def allocate(self, order_id: str, merchant_id: str) -> AllocatedInvoiceNumber:
        """Number for a customer order invoice; idempotent per order."""
        if not order_id or not merchant_id:
            raise InvoiceValidationError("Order and merchant are required to allocate an invoice number")
        return await self._allocate(
            scope=SCOPE_ORDER,
            reference_id=order_id,
            owner=merchant_id,
            merchant_id=merchant_id,
            defaults=merchant_defaults(),
        )

    async def allocate_platform(
        self,
        merchant_id: str,
        period_from: date,
        period_to: date,
    ) -> AllocatedInvoiceNumber:
        """Number for a platform-fee billing invoice; idempotent per period."""
        if not merchant_id:
            raise InvoiceValidationError("Merchant is required to allocate a billing invoice number")
        reference_id = f"{merchant_id}:{period_from.isoformat()}:{period_to.isoformat()}"
        return await self._allocate(
            scope=SCOPE_PLATFORM_BILLING,
            reference_id=reference_id,
            owner=PLATFORM_OWNER,
            merchant_id=merchant_id,
            defaults=platform_defaults(),
        )

    async def _allocate(self, **request) -> AllocatedInvoiceNumber:
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._attempt(**request)
            except (IntegrityError, OperationalError) as exc:
                last_error = exc
                logger.warning(
                    "Invoice number allocation for %s %s conflicted (attempt %d/%d): %s",
                    request["scope"], request["reference_id"], attempt, self._max_attempts,
                    exc.__class__.__name__,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)

        raise InvoiceNumberConflictError(
            "Could not allocate an invoice number right now, please retry"
        ) from last_error

    async def _attempt(
        self,
        *,
        scope: str,
        reference_id: str,
        owner: str,
        merchant_id: str,
        defaults: NumberingConfig,
    ) -> AllocatedInvoiceNumber:
        async with self._session_factory() as session:
            try:
                repo = InvoiceNumberRepository(session)

                existing = await repo.get_record(scope, owner, reference_id)
                if existing is not None:
                    allocated = _from_record(existing, created=False)
                    await session.rollback()
                    return allocated

                config = effective_config(await repo.get_series_settings(owner), defaults, owner)
                issued_at = self._clock()
                day = local_date(issued_at)
                series = series_key(config.series_format, day)

                sequence = await repo.next_sequence(owner, series, config.start_number)

                # counter row is locked from here on
                existing = await repo.get_record(scope, owner, reference_id)
                if existing is not None:
                    allocated = _from_record(existing, created=False)
                    await session.rollback()
                    return allocated

                invoice_number = format_invoice_number(config, sequence, day)
                record = await repo.add_record(
                    scope=scope,
                    reference_id=reference_id,
                    owner=owner,
                    merchant_id=merchant_id,
                    series=series,
                    sequence=sequence,
                    invoice_number=invoice_number,
                    issued_at=issued_at,
                )
                allocated = AllocatedInvoiceNumber(
                    invoice_number=record.invoice_number,
                    issued_at=as_utc(issued_at),
                    sequence=sequence,
                    series=series,
                    created=True,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info("Allocated invoice number %s for %s %s", invoice_number, scope, reference_id)
        return allocated
