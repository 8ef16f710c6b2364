# gst_invoicing/api/v1/routes/invoices.py
"""
Order invoice and platform-fee billing endpoints.

Invoicing errors are mapped to responses by the handlers in ``main.py``.
"""

from __future__ import annotations

import io
import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gst_invoicing.core.db import AsyncSessionLocal, get_db
from gst_invoicing.core.errors import InvoiceValidationError
from gst_invoicing.domain.services.invoice_numbering import InvoiceNumberAllocator
from gst_invoicing.domain.services.invoice_service import (
    generate_billing_invoice,
    generate_order_invoice,
    summarize_billing_period,
)
from gst_invoicing.domain.services.periods import default_month_range, local_date

from gst_invoicing.api.v1.envelope import ok
from gst_invoicing.api.v1.schemas.invoices import (
    BillingPeriodRequest,
    BillingSummaryOut,
    OrderInvoiceRequest,
)

logger = logging.getLogger("api.v1.invoices")

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_allocator() -> InvoiceNumberAllocator:
    return InvoiceNumberAllocator(AsyncSessionLocal)


def _pdf_response(pdf: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _period(body: BillingPeriodRequest) -> tuple[date, date]:
    if body.period_from and body.period_to:
        return body.period_from, body.period_to
    start, end = default_month_range(local_date(datetime.now(timezone.utc)))
    return body.period_from or start, body.period_to or end


# ---------------------------------------------------------------------------
# Order invoice
# ---------------------------------------------------------------------------

@router.post("/orders/{order_id}/pdf")
async def order_invoice_pdf(
    order_id: str,
    body: OrderInvoiceRequest,
    allocator: InvoiceNumberAllocator = Depends(get_allocator),
):
    """Customer invoice PDF. The order keeps its number across downloads."""
    if body.order.id != order_id:
        raise InvoiceValidationError("Order in the request body does not match the URL")

    result = await generate_order_invoice(
        allocator,
        body.merchant_id,
        body.order,
        body.seller_profile,
        body.buyer_profile,
    )
    return _pdf_response(result.pdf, f"invoice_{result.invoice_number}.pdf")


# ---------------------------------------------------------------------------
# Platform-fee billing
# ---------------------------------------------------------------------------

@router.post("/billing/summary", response_model=dict)
async def billing_summary(
    body: BillingPeriodRequest,
    db: AsyncSession = Depends(get_db),
):
    """Aggregated platform fees for on-screen review before export."""
    period_from, period_to = _period(body)
    aggregation = await summarize_billing_period(
        db,
        body.merchant_id,
        period_from,
        period_to,
        body.supplier_profile,
        body.recipient_profile,
        body.gst_rate,
    )
    summary = BillingSummaryOut.from_aggregation(body.merchant_id, period_from, period_to, aggregation)
    return ok(data=summary.model_dump(mode="json"))


@router.post("/billing/pdf")
async def billing_invoice_pdf(
    body: BillingPeriodRequest,
    db: AsyncSession = Depends(get_db),
    allocator: InvoiceNumberAllocator = Depends(get_allocator),
):
    """Platform-fee invoice PDF; ``preview`` renders an unnumbered statement."""
    period_from, period_to = _period(body)
    if body.preview:
        logger.info("Billing statement preview for %s (%s..%s)", body.merchant_id, period_from, period_to)
    result = await generate_billing_invoice(
        db,
        allocator,
        body.merchant_id,
        period_from,
        period_to,
        body.supplier_profile,
        body.recipient_profile,
        body.gst_rate,
        preview=body.preview,
    )
    return _pdf_response(result.pdf, f"{result.invoice_number}.pdf")
