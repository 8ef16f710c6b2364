# gst_invoicing/domain/services/ledger_aggregator.py
"""
Aggregate platform-fee ledger entries into billing-invoice line items.

Grouping: one line per order; entries without an order collapse into one
line per calendar day (invoice time zone). The tax regime is resolved once
for the whole invoice because every line shares the same supplier and
recipient.

Rounding: each line figure is rounded to paise on its own and totals are
sums of those rounded figures, so printed lines always add up to the
printed totals.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceValidationError
from gst_invoicing.domain.models.invoice import InvoiceLineItem, InvoiceTotals, LedgerAggregation
from gst_invoicing.domain.models.ledger import LedgerEntry, LedgerEntryStatus, LedgerEntryType
from gst_invoicing.domain.services.money import ZERO, round_money, to_decimal
from gst_invoicing.domain.services.periods import as_utc, local_date, period_bounds
from gst_invoicing.domain.services.tax_jurisdiction import Jurisdiction, resolve
from gst_invoicing.infrastructure.db.repositories.ledger_repository import LedgerRepository

logger = logging.getLogger("ledger_aggregator")


def _is_billable(entry: LedgerEntry) -> bool:
    return (
        entry.type == LedgerEntryType.PLATFORM_FEE.value
        and entry.status != LedgerEntryStatus.FAILED.value
    )


def _group_key(entry: LedgerEntry) -> tuple[str, str]:
    if entry.order_id:
        return ("order", entry.order_id)
    return ("day", local_date(entry.occurred_at).isoformat())


def _build_line(
    group: list[LedgerEntry],
    jurisdiction: Jurisdiction,
    gst_rate: Decimal,
) -> InvoiceLineItem:
    first = group[0]
    raw_taxable = sum((to_decimal(e.amount) for e in group), ZERO)
    day = local_date(first.occurred_at).isoformat()

    if raw_taxable < 0:
        ref = f"order {first.order_id}" if first.order_id else day
        raise InvoiceValidationError(f"Platform fees for {ref} net to a negative amount")

    taxable_value = round_money(raw_taxable)
    split = jurisdiction.split(taxable_value, gst_rate)
    order_number = next((e.order_number for e in group if e.order_number), None)

    if order_number:
        description = f"Platform fee for Order #{order_number}"
    else:
        description = f"Platform fee - {day}"

    return InvoiceLineItem(
        order_id=first.order_id,
        order_number=order_number,
        occurred_at=first.occurred_at,
        description=description,
        sac_code=settings.PLATFORM_SAC_CODE,
        taxable_value=taxable_value,
        cgst=split.cgst,
        sgst=split.sgst,
        igst=split.igst,
        total=round_money(taxable_value + split.total_tax),
    )


def aggregate_ledger_entries(
    entries: Iterable[LedgerEntry],
    period_from: datetime,
    period_to: datetime,
    supplier_state: str | None,
    recipient_state: str | None,
    gst_rate=None,
) -> LedgerAggregation:
    """Turn raw ledger entries into line items, totals and the tax regime.

    Entries outside ``[period_from, period_to]``, of another type, or with
    status FAILED are ignored. An empty selection is a valid, all-zero
    result.
    """
    rate = to_decimal(settings.DEFAULT_GST_RATE if gst_rate is None else gst_rate, "GST rate")
    if rate < 0:
        raise InvoiceValidationError("GST rate cannot be negative")

    jurisdiction = resolve(supplier_state, recipient_state)
    start, end = as_utc(period_from), as_utc(period_to)

    selected = sorted(
        (e for e in entries if _is_billable(e) and start <= as_utc(e.occurred_at) <= end),
        key=lambda e: as_utc(e.occurred_at),
    )

    if not selected:
        logger.info("No billable platform fees between %s and %s", start.isoformat(), end.isoformat())
        return LedgerAggregation(regime=jurisdiction.regime, gst_rate=rate)

    grouped: dict[tuple[str, str], list[LedgerEntry]] = {}
    for entry in selected:
        grouped.setdefault(_group_key(entry), []).append(entry)

    line_items = [_build_line(group, jurisdiction, rate) for group in grouped.values()]
    totals = InvoiceTotals.from_lines(line_items)

    logger.info(
        "Aggregated %d ledger entries into %d lines (%s, grand total %s)",
        len(selected), len(line_items), jurisdiction.regime.value, totals.grand_total,
    )
    return LedgerAggregation(
        line_items=tuple(line_items),
        totals=totals,
        regime=jurisdiction.regime,
        gst_rate=rate,
    )


async def aggregate_ledger_for_invoice(
    db: AsyncSession,
    merchant_id: str,
    period_from: date | datetime,
    period_to: date | datetime,
    supplier_state: str | None,
    recipient_state: str | None,
    gst_rate=None,
) -> LedgerAggregation:
    """Load a merchant's platform fees for the period and aggregate them.

    Plain dates cover whole days in the invoice time zone.
    """
    start, end = period_bounds(period_from, period_to)
    records = await LedgerRepository(db).list_billable_fees(merchant_id, start, end)
    entries = [LedgerEntry.model_validate(r) for r in records]
    return aggregate_ledger_entries(entries, start, end, supplier_state, recipient_state, gst_rate)
