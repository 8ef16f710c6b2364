# gst_invoicing/api/v1/schemas/invoices.py
"""Request and response schemas for invoice endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field

from gst_invoicing.domain.models.invoice import LedgerAggregation, TaxProfile
from gst_invoicing.domain.models.order import OrderInput


class OrderInvoiceRequest(BaseModel):
    """Order snapshot and profiles for a customer invoice."""

    merchant_id: str = Field(min_length=1, max_length=64, validation_alias=AliasChoices("merchant_id", "merchantId"))
    order: OrderInput
    seller_profile: TaxProfile | None = Field(
        default=None,
        validation_alias=AliasChoices("seller_profile", "sellerProfile", "tax_profile"),
    )
    buyer_profile: TaxProfile | None = Field(
        default=None,
        validation_alias=AliasChoices("buyer_profile", "buyerProfile"),
    )


class BillingPeriodRequest(BaseModel):
    """Merchant and period for a platform-fee summary or invoice.

    A missing period means the current calendar month.
    """

    merchant_id: str = Field(min_length=1, max_length=64, validation_alias=AliasChoices("merchant_id", "merchantId"))
    period_from: date | None = Field(default=None, validation_alias=AliasChoices("period_from", "from", "periodFrom"))
    period_to: date | None = Field(default=None, validation_alias=AliasChoices("period_to", "to", "periodTo"))
    supplier_profile: TaxProfile = Field(validation_alias=AliasChoices("supplier_profile", "supplierProfile"))
    recipient_profile: TaxProfile = Field(validation_alias=AliasChoices("recipient_profile", "recipientProfile"))
    gst_rate: Decimal | None = Field(default=None, ge=0, le=100, validation_alias=AliasChoices("gst_rate", "gstRate"))
    preview: bool = False


class BillingLineOut(BaseModel):
    order_id: str | None
    order_number: str | None
    occurred_at: datetime
    description: str
    sac_code: str
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total: Decimal


class BillingTotalsOut(BaseModel):
    total_taxable: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    grand_total: Decimal


class BillingSummaryOut(BaseModel):
    merchant_id: str
    period_from: date
    period_to: date
    regime: str
    gst_rate: Decimal
    line_items: list[BillingLineOut]
    totals: BillingTotalsOut

    @classmethod
    def from_aggregation(
        cls,
        merchant_id: str,
        period_from: date,
        period_to: date,
        aggregation: LedgerAggregation,
    ) -> "BillingSummaryOut":
        return cls(
            merchant_id=merchant_id,
            period_from=period_from,
            period_to=period_to,
            regime=aggregation.regime.value,
            gst_rate=aggregation.gst_rate,
            line_items=[BillingLineOut(**line.model_dump()) for line in aggregation.line_items],
            totals=BillingTotalsOut(**aggregation.totals.model_dump()),
        )
