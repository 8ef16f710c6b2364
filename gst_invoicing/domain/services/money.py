# gst_invoicing/domain/services/money.py

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from gst_invoicing.core.errors import InvoiceValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Convert incoming int/str/float/Decimal to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Unparseable input is a
    validation error, not a silent zero.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvoiceValidationError(f"{field} is not a valid number: {value!r}")


def round_money(value) -> Decimal:
    """Round to paise, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def minor_to_major(minor_units: int) -> Decimal:
    """Paise -> rupees, rounded to 2 decimals."""
    return round_money(Decimal(minor_units) / Decimal(100))
