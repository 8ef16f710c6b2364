# gst_invoicing/domain/services/invoice_service.py
"""
End-to-end invoice flows.

Order invoice:   validate -> allocate number -> build -> render
Billing invoice: validate -> aggregate ledger -> allocate number -> build -> render

Validation runs before numbering so a bad request never consumes an
invoice number. Rendering is CPU-bound and runs in the default executor.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from gst_invoicing.domain.models.invoice import (
    BillingInvoiceModel,
    CanonicalInvoiceModel,
    LedgerAggregation,
    TaxProfile,
)
from gst_invoicing.domain.models.order import OrderInput
from gst_invoicing.domain.services.invoice_builder import (
    build_billing_invoice_data,
    build_invoice_data,
    profile_state,
    validate_buyer_profile,
    validate_order,
    validate_recipient_profile,
    validate_seller_profile,
    validate_supplier_profile,
)
from gst_invoicing.domain.services.invoice_numbering import InvoiceNumberAllocator
from gst_invoicing.domain.services.invoice_pdf import render_billing_invoice_pdf, render_invoice_pdf
from gst_invoicing.domain.services.ledger_aggregator import aggregate_ledger_for_invoice
from gst_invoicing.domain.services.periods import validate_period

logger = logging.getLogger("invoice_service")


@dataclass(frozen=True)
class GeneratedInvoice:
    invoice_number: str
    model: CanonicalInvoiceModel
    pdf: bytes
    created: bool


@dataclass(frozen=True)
class GeneratedBillingInvoice:
    invoice_number: str
    model: BillingInvoiceModel
    pdf: bytes


async def _render_off_loop(func, model) -> bytes:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, model)


async def generate_order_invoice(
    allocator: InvoiceNumberAllocator,
    merchant_id: str,
    order: OrderInput,
    seller_profile: TaxProfile | None,
    buyer_profile: TaxProfile | None = None,
) -> GeneratedInvoice:
    """Number (once), build and render the customer invoice for an order."""
    validate_order(order)
    validate_seller_profile(seller_profile, order.merchant_display_name)
    validate_buyer_profile(buyer_profile)

    allocation = await allocator.allocate(order.id, merchant_id)
    model = build_invoice_data(
        order,
        seller_profile,
        allocation.invoice_number,
        issued_at=allocation.issued_at,
        buyer_profile=buyer_profile,
    )
    pdf = await _render_off_loop(render_invoice_pdf, model)

    logger.info(
        "Order %s invoice %s (%s, %s)",
        order.order_number, model.invoice_number, model.invoice_type.value,
        "new" if allocation.created else "reissued",
    )
    return GeneratedInvoice(
        invoice_number=model.invoice_number,
        model=model,
        pdf=pdf,
        created=allocation.created,
    )


async def summarize_billing_period(
    db: AsyncSession,
    merchant_id: str,
    period_from: date,
    period_to: date,
    supplier_profile: TaxProfile,
    recipient_profile: TaxProfile,
    gst_rate=None,
) -> LedgerAggregation:
    """Aggregated platform fees for a merchant and period (no numbering)."""
    validate_period(period_from, period_to)
    validate_supplier_profile(supplier_profile)
    validate_recipient_profile(recipient_profile)
    return await aggregate_ledger_for_invoice(
        db,
        merchant_id,
        period_from,
        period_to,
        supplier_state=profile_state(supplier_profile),
        recipient_state=profile_state(recipient_profile),
        gst_rate=gst_rate,
    )


async def generate_billing_invoice(
    db: AsyncSession,
    allocator: InvoiceNumberAllocator | None,
    merchant_id: str,
    period_from: date,
    period_to: date,
    supplier_profile: TaxProfile,
    recipient_profile: TaxProfile,
    gst_rate=None,
    *,
    preview: bool = False,
) -> GeneratedBillingInvoice:
    """
    Platform-fee invoice for a merchant and period.

    ``preview`` renders a statement numbered ``STMT-<from>-<to>`` without
    allocating (or persisting) a real invoice number.
    """
    aggregation = await summarize_billing_period(
        db, merchant_id, period_from, period_to, supplier_profile, recipient_profile, gst_rate
    )

    if preview or allocator is None:
        invoice_number = f"STMT-{period_from.isoformat()}-{period_to.isoformat()}"
        issued_at = datetime.now(timezone.utc)
        title = "STATEMENT"
    else:
        allocation = await allocator.allocate_platform(merchant_id, period_from, period_to)
        invoice_number = allocation.invoice_number
        issued_at = allocation.issued_at
        title = "TAX INVOICE"

    model = build_billing_invoice_data(
        invoice_number=invoice_number,
        issued_at=issued_at,
        period_from=period_from,
        period_to=period_to,
        supplier_profile=supplier_profile,
        recipient_profile=recipient_profile,
        aggregation=aggregation,
        document_title=title,
    )
    pdf = await _render_off_loop(render_billing_invoice_pdf, model)
    return GeneratedBillingInvoice(invoice_number=invoice_number, model=model, pdf=pdf)
