# gst_invoicing/domain/services/invoice_builder.py
"""
Normalize an order (or a ledger aggregation) into a render-ready invoice.

The builder is pure: it reads snapshots only (order item prices, stored
order totals, the tax profile as passed in) and never looks anything up,
so re-rendering an old invoice reproduces the same figures.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceValidationError
from gst_invoicing.domain.models.invoice import (
    BillingInvoiceModel,
    BuyerSnapshot,
    CanonicalInvoiceModel,
    CustomerInvoiceTotals,
    InvoiceItem,
    InvoiceTotals,
    InvoiceType,
    LedgerAggregation,
    PartySnapshot,
    TaxProfile,
    TaxRegime,
)
from gst_invoicing.domain.models.order import OrderInput, OrderItemInput, ShippingAddress
from gst_invoicing.domain.services.gstin_validation import is_valid_gstin, normalize_gstin
from gst_invoicing.domain.services.money import minor_to_major, round_money, to_decimal
from gst_invoicing.domain.services.periods import as_utc
from gst_invoicing.domain.services.state_codes import normalize_state_code, state_name
from gst_invoicing.domain.services.tax_jurisdiction import regime_for_customer_invoice, split_tax

logger = logging.getLogger("invoice_builder")

PLACE_OF_SUPPLY_FALLBACK = "India"


def join_address(parts: Iterable[Optional[str]]) -> str:
    """Join the non-empty parts with ", " (no empty fields, no dangling commas)."""
    cleaned = []
    for part in parts:
        if part is None:
            continue
        text = str(part).strip().strip(",").strip()
        if text:
            cleaned.append(text)
    return ", ".join(cleaned)


def profile_state(profile: TaxProfile | None) -> str | None:
    if profile is None:
        return None
    return profile.state_code or profile.state


def display_state(raw: str | None) -> str | None:
    """'Maharashtra (27)' for anything that maps to a GST code, else the raw text."""
    if not raw or not raw.strip():
        return None
    code = normalize_state_code(raw)
    if code is None:
        return raw.strip()
    return f"{state_name(code)} ({code})"


def _party_from_profile(profile: TaxProfile, fallback_name: str | None = None) -> PartySnapshot:
    legal_name = profile.legal_name or profile.trade_name or fallback_name
    if not legal_name:
        raise InvoiceValidationError("Legal name is required on the tax profile")

    state_raw = profile_state(profile)
    code = normalize_state_code(state_raw)
    return PartySnapshot(
        legal_name=legal_name,
        trade_name=profile.trade_name,
        gstin=normalize_gstin(profile.gstin),
        address=join_address(
            [profile.address_line1, profile.address_line2, profile.city, profile.state, profile.pincode]
        ),
        city=profile.city,
        state=profile.state or state_name(code),
        state_code=code,
        pincode=profile.pincode,
        phone=profile.phone,
        email=profile.email,
    )


def validate_seller_profile(profile: TaxProfile | None, fallback_name: str | None = None) -> None:
    """
    A seller profile needs a name (or the store display name to fall back
    on); a registered seller must also carry a valid GSTIN and a known state.
    """
    if profile is None:
        return
    if not (profile.legal_name or profile.trade_name or fallback_name):
        raise InvoiceValidationError("Legal name is required on the seller tax profile")
    # raises for a numeric state code that is not a GST state
    code = normalize_state_code(profile_state(profile))
    if not profile.is_gst_registered:
        return
    if not profile.gstin:
        raise InvoiceValidationError("GSTIN is required for a GST registered seller")
    if not is_valid_gstin(profile.gstin):
        raise InvoiceValidationError(f"'{profile.gstin}' is not a valid GSTIN")
    if code is None:
        raise InvoiceValidationError("State is required for a GST registered seller")


def validate_supplier_profile(profile: TaxProfile | None) -> None:
    """Required fields of the platform's own profile on a billing invoice."""
    if profile is None:
        raise InvoiceValidationError("Supplier tax profile is required")

    missing = []
    if not (profile.legal_name or "").strip():
        missing.append("legal name")
    if not (profile.gstin or "").strip():
        missing.append("GSTIN")
    if not (profile_state(profile) or "").strip():
        missing.append("state")
    if missing:
        raise InvoiceValidationError(f"Supplier profile is missing: {', '.join(missing)}")

    if not is_valid_gstin(profile.gstin):
        raise InvoiceValidationError(f"'{profile.gstin}' is not a valid GSTIN")
    if normalize_state_code(profile_state(profile)) is None:
        raise InvoiceValidationError(f"'{profile_state(profile)}' is not a known GST state")


def validate_buyer_profile(profile: TaxProfile | None) -> None:
    if profile is None:
        return
    normalize_state_code(profile_state(profile))


def validate_recipient_profile(profile: TaxProfile | None) -> None:
    """The merchant being billed for platform fees must at least be named."""
    if profile is None:
        raise InvoiceValidationError("Recipient tax profile is required")
    if not (profile.legal_name or profile.trade_name or "").strip():
        raise InvoiceValidationError("Recipient profile is missing: legal name")
    normalize_state_code(profile_state(profile))


def validate_order(order: OrderInput) -> None:
    """Checks that must pass before a number is allocated for ``order``."""
    if not order.items:
        raise InvoiceValidationError(f"Order {order.order_number} has no items")
    if order.shipping_address is not None:
        # raises for a numeric state code that is not a GST state
        normalize_state_code(order.shipping_address.state)


def _item_line(item: OrderItemInput, regime: TaxRegime) -> InvoiceItem:
    unit_price = minor_to_major(item.price)
    taxable_value = round_money(unit_price * item.quantity)
    rate = to_decimal(settings.DEFAULT_GST_RATE if item.gst_rate is None else item.gst_rate, "GST rate")

    split = split_tax(taxable_value, regime, rate)
    return InvoiceItem(
        name=item.product_name or f"Product {item.id[:8]}",
        hsn=item.hsn_or_sac,
        qty=item.quantity,
        unit_price=unit_price,
        taxable_value=taxable_value,
        gst_rate=rate if regime != TaxRegime.NONE else Decimal("0"),
        cgst=split.cgst,
        sgst=split.sgst,
        igst=split.igst,
        total=round_money(taxable_value + split.total_tax),
    )


def _shipping_address_text(address: ShippingAddress | None) -> str | None:
    if address is None:
        return None
    return join_address([address.line1, address.line2, address.city, address.state, address.postal_code]) or None


def build_invoice_data(
    order: OrderInput,
    seller_profile: TaxProfile | None,
    invoice_number: str,
    *,
    issued_at: datetime | None = None,
    buyer_profile: TaxProfile | None = None,
) -> CanonicalInvoiceModel:
    """Build the canonical customer invoice for ``order``."""
    registered = bool(seller_profile and seller_profile.is_gst_registered)
    invoice_type = InvoiceType.TAX_INVOICE if registered else InvoiceType.BILL_OF_SUPPLY

    if seller_profile is not None:
        seller = _party_from_profile(seller_profile, order.merchant_display_name)
    else:
        seller = PartySnapshot(legal_name=order.merchant_display_name or "Seller")

    shipping = order.shipping_address
    shipping_text = _shipping_address_text(shipping) or order.customer_address
    buyer_state = (shipping.state if shipping else None) or profile_state(buyer_profile)

    buyer = BuyerSnapshot(
        name=order.customer_name,
        gstin=normalize_gstin(buyer_profile.gstin) if buyer_profile else None,
        legal_name=buyer_profile.legal_name if buyer_profile else None,
        phone=order.customer_phone,
        email=order.customer_email,
        billing_address=order.customer_address or None,
        shipping_address=shipping_text,
        state=buyer_state,
        pincode=(shipping.postal_code if shipping else None) or (buyer_profile.pincode if buyer_profile else None),
    )

    seller_state = profile_state(seller_profile)
    regime = regime_for_customer_invoice(registered, seller_state, buyer_state)
    place_of_supply = display_state(buyer_state) or display_state(seller_state) or PLACE_OF_SUPPLY_FALLBACK

    items = [_item_line(item, regime) for item in order.items]
    sums = InvoiceTotals.column_sums(items)
    totals = CustomerInvoiceTotals(
        **sums,
        shipping=round_money(order.shipping_fee),
        discount=round_money(order.discount),
        amount_payable=round_money(order.total_amount),
    )

    reconstructed = round_money(totals.grand_total + totals.shipping - totals.discount)
    if reconstructed != totals.amount_payable:
        logger.debug(
            "Order %s: payable %s differs from item breakdown %s",
            order.order_number, totals.amount_payable, reconstructed,
        )

    invoice_date = issued_at or order.invoice_issued_at or order.created_at

    return CanonicalInvoiceModel(
        invoice_number=invoice_number,
        invoice_date=as_utc(invoice_date),
        invoice_type=invoice_type,
        is_cancelled=order.is_cancelled,
        order_number=order.order_number,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        seller=seller,
        buyer=buyer,
        place_of_supply=place_of_supply,
        tax_regime=regime,
        items=tuple(items),
        totals=totals,
    )


def build_billing_invoice_data(
    *,
    invoice_number: str,
    issued_at: datetime,
    period_from: date,
    period_to: date,
    supplier_profile: TaxProfile,
    recipient_profile: TaxProfile,
    aggregation: LedgerAggregation,
    document_title: str = "TAX INVOICE",
) -> BillingInvoiceModel:
    """Build the platform-fee billing invoice from an aggregation."""
    validate_supplier_profile(supplier_profile)

    supplier = _party_from_profile(supplier_profile)
    recipient = _party_from_profile(recipient_profile)
    place_of_supply = (
        display_state(profile_state(recipient_profile))
        or display_state(profile_state(supplier_profile))
        or PLACE_OF_SUPPLY_FALLBACK
    )

    return BillingInvoiceModel(
        invoice_number=invoice_number,
        invoice_date=as_utc(issued_at),
        period_from=period_from,
        period_to=period_to,
        supplier=supplier,
        recipient=recipient,
        place_of_supply=place_of_supply,
        tax_regime=aggregation.regime,
        gst_rate=aggregation.gst_rate,
        line_items=aggregation.line_items,
        totals=aggregation.totals,
        document_title=document_title,
    )
