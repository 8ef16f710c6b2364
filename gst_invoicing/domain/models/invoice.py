# gst_invoicing/domain/models/invoice.py
"""
Render-ready invoice models shared by both invoicing paths.

Customer order invoices are described by ``CanonicalInvoiceModel``;
platform-fee billing invoices by ``BillingInvoiceModel``. Both are frozen
snapshots: a reissue builds a new model, it never edits an old one.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

ZERO = Decimal("0.00")


class TaxRegime(str, Enum):
    CGST_SGST = "CGST_SGST"
    IGST = "IGST"
    NONE = "NONE"


class InvoiceType(str, Enum):
    TAX_INVOICE = "TAX_INVOICE"
    BILL_OF_SUPPLY = "BILL_OF_SUPPLY"


class TaxProfile(BaseModel):
    """A party's fiscal identity, captured at invoice-build time."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_gst_registered: bool = False
    gstin: Optional[str] = None
    legal_name: Optional[str] = None
    trade_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    pincode: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class PartySnapshot(BaseModel):
    """Seller / supplier / recipient block as printed on the document."""

    model_config = ConfigDict(frozen=True)

    legal_name: str
    trade_name: Optional[str] = None
    gstin: Optional[str] = None
    address: str = ""
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.trade_name or self.legal_name


class BuyerSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    gstin: Optional[str] = None
    legal_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    billing_address: Optional[str] = None
    shipping_address: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class InvoiceLineItem(BaseModel):
    """One aggregated platform-fee row (grouped by order or by day)."""

    model_config = ConfigDict(frozen=True)

    order_id: Optional[str] = None
    order_number: Optional[str] = None
    occurred_at: datetime
    description: str
    sac_code: str
    taxable_value: Decimal
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    total: Decimal


class InvoiceItem(BaseModel):
    """One order item row of a customer invoice.

    All three tax fields are always present; untaxed rows carry zeros.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    hsn: Optional[str] = None
    qty: int
    unit_price: Decimal
    taxable_value: Decimal
    gst_rate: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    total: Decimal


class InvoiceTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_taxable: Decimal = ZERO
    total_cgst: Decimal = ZERO
    total_sgst: Decimal = ZERO
    total_igst: Decimal = ZERO
    grand_total: Decimal = ZERO

    @classmethod
    def column_sums(cls, lines: Iterable) -> dict[str, Decimal]:
        """Column-wise sums of already-rounded line values."""
        sums = {
            "total_taxable": ZERO,
            "total_cgst": ZERO,
            "total_sgst": ZERO,
            "total_igst": ZERO,
            "grand_total": ZERO,
        }
        for line in lines:
            sums["total_taxable"] += line.taxable_value
            sums["total_cgst"] += line.cgst
            sums["total_sgst"] += line.sgst
            sums["total_igst"] += line.igst
            sums["grand_total"] += line.total
        return sums

    @classmethod
    def from_lines(cls, lines: Iterable) -> "InvoiceTotals":
        return cls(**cls.column_sums(lines))

    @property
    def total_tax(self) -> Decimal:
        return self.total_cgst + self.total_sgst + self.total_igst


class CustomerInvoiceTotals(InvoiceTotals):
    """Item totals plus the order's own authoritative amounts.

    ``grand_total`` is the sum of item lines; ``amount_payable`` is the
    order's stored total and is what the customer was charged.
    """

    shipping: Decimal = ZERO
    discount: Decimal = ZERO
    amount_payable: Decimal = ZERO

    @property
    def subtotal(self) -> Decimal:
        return self.total_taxable


class CanonicalInvoiceModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    invoice_number: str
    invoice_date: datetime
    invoice_type: InvoiceType
    is_cancelled: bool = False
    order_number: str
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    seller: PartySnapshot
    buyer: BuyerSnapshot
    place_of_supply: str
    tax_regime: TaxRegime
    items: tuple[InvoiceItem, ...] = ()
    totals: CustomerInvoiceTotals = Field(default_factory=CustomerInvoiceTotals)

    @property
    def is_tax_invoice(self) -> bool:
        return self.invoice_type == InvoiceType.TAX_INVOICE


class LedgerAggregation(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_items: tuple[InvoiceLineItem, ...] = ()
    totals: InvoiceTotals = Field(default_factory=InvoiceTotals)
    regime: TaxRegime
    gst_rate: Decimal = Decimal("18")


class BillingInvoiceModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    invoice_number: str
    invoice_date: datetime
    period_from: date
    period_to: date
    supplier: PartySnapshot
    recipient: PartySnapshot
    place_of_supply: str
    tax_regime: TaxRegime
    gst_rate: Decimal = Decimal("18")
    line_items: tuple[InvoiceLineItem, ...] = ()
    totals: InvoiceTotals = Field(default_factory=InvoiceTotals)
    document_title: str = "TAX INVOICE"
