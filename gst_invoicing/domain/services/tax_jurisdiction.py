# gst_invoicing/domain/services/tax_jurisdiction.py
"""
GST jurisdiction resolution and tax-split arithmetic.

Intra-state supply -> CGST + SGST in equal halves.
Inter-state supply, or an unknown recipient state -> IGST.

Rounding: each half of an intra-state split is rounded to paise on its own
(never "round the tax, then halve"), so CGST and SGST always match.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceValidationError
from gst_invoicing.domain.models.invoice import TaxRegime
from gst_invoicing.domain.services.money import ZERO, round_money, to_decimal
from gst_invoicing.domain.services.state_codes import normalize_state_code

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class TaxSplit:
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class Jurisdiction:
    regime: TaxRegime
    supplier_state_code: str | None = None
    recipient_state_code: str | None = None

    def split(self, taxable_value, rate=None) -> TaxSplit:
        return split_tax(taxable_value, self.regime, rate)


def resolve(supplier_state: str | None, recipient_state: str | None) -> Jurisdiction:
    """Decide CGST_SGST vs IGST for a supplier/recipient state pair.

    States may be codes or names; both sides must normalize to a known GST
    state code to count as "same state".
    """
    supplier_code = normalize_state_code(supplier_state)
    recipient_code = normalize_state_code(recipient_state)

    if recipient_code is None or supplier_code is None:
        regime = TaxRegime.IGST
    elif supplier_code == recipient_code:
        regime = TaxRegime.CGST_SGST
    else:
        regime = TaxRegime.IGST

    return Jurisdiction(
        regime=regime,
        supplier_state_code=supplier_code,
        recipient_state_code=recipient_code,
    )


def regime_for_customer_invoice(
    seller_registered: bool,
    seller_state: str | None,
    buyer_state: str | None,
) -> TaxRegime:
    """An unregistered seller charges no GST at all (bill of supply)."""
    if not seller_registered:
        return TaxRegime.NONE
    return resolve(seller_state, buyer_state).regime


def split_tax(taxable_value, regime: TaxRegime, rate=None) -> TaxSplit:
    """Compute the GST split of ``taxable_value`` at ``rate`` percent."""
    taxable = to_decimal(taxable_value, "taxable value")
    gst_rate = to_decimal(settings.DEFAULT_GST_RATE if rate is None else rate, "GST rate")

    if taxable < 0:
        raise InvoiceValidationError("Taxable value cannot be negative")
    if gst_rate < 0:
        raise InvoiceValidationError("GST rate cannot be negative")

    if regime == TaxRegime.NONE or gst_rate == 0:
        return TaxSplit()

    gst_amount = taxable * gst_rate / HUNDRED

    if regime == TaxRegime.CGST_SGST:
        half = gst_amount / 2
        return TaxSplit(cgst=round_money(half), sgst=round_money(half))

    return TaxSplit(igst=round_money(gst_amount))


def half_rate(rate) -> Decimal:
    """CGST/SGST each carry half of the GST rate (18 -> 9)."""
    return to_decimal(rate) / 2


def format_rate(rate) -> str:
    """'9' for 9.00, '2.5' for 2.50."""
    return format(to_decimal(rate).normalize(), "f")


def tax_rate_label(regime: TaxRegime, rate) -> str:
    """Per-component rate label for a totals box: '9%' for CGST_SGST @18."""
    if regime == TaxRegime.NONE:
        return ""
    if regime == TaxRegime.CGST_SGST:
        return f"{format_rate(half_rate(rate))}%"
    return f"{format_rate(rate)}%"
