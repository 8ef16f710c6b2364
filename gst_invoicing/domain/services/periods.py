# gst_invoicing/domain/services/periods.py
"""Indian financial-year and billing-period helpers."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceValidationError


def invoice_tz() -> ZoneInfo:
    return ZoneInfo(settings.INVOICE_TIMEZONE)


def as_utc(ts: datetime) -> datetime:
    """Stored timestamps without an offset are UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def local_date(ts: datetime) -> date:
    """Calendar date of ``ts`` in the invoicing time zone."""
    return as_utc(ts).astimezone(invoice_tz()).date()


def financial_year(d: date) -> str:
    """Return the FY label for ``d``.

    FY runs April to March:
      - 2025-01-15 -> 2024-25
      - 2025-04-01 -> 2025-26
    """
    fy_start = d.year if d.month >= 4 else d.year - 1
    return f"{fy_start}-{(fy_start + 1) % 100:02d}"


def financial_year_bounds(d: date) -> tuple[date, date]:
    """(1 April, 31 March) of the FY containing ``d``."""
    fy_start = d.year if d.month >= 4 else d.year - 1
    return date(fy_start, 4, 1), date(fy_start + 1, 3, 31)


def default_month_range(today: date) -> tuple[date, date]:
    """First and last day of the month containing ``today``."""
    return date(today.year, today.month, 1), date(
        today.year, today.month, monthrange(today.year, today.month)[1]
    )


def validate_period(period_from: date, period_to: date) -> None:
    if period_from > period_to:
        raise InvoiceValidationError(
            f"Billing period start {period_from.isoformat()} is after its end {period_to.isoformat()}"
        )


def period_bounds(period_from: date, period_to: date) -> tuple[datetime, datetime]:
    """Inclusive datetime bounds for a billing period.

    Plain dates cover the whole day in the invoice zone; datetimes are kept.
    """
    tz = invoice_tz()
    if isinstance(period_from, datetime):
        start = period_from
    else:
        start = datetime.combine(period_from, time.min, tzinfo=tz)
    if isinstance(period_to, datetime):
        end = period_to
    else:
        end = datetime.combine(period_to, time.max, tzinfo=tz)

    if as_utc(start) > as_utc(end):
        raise InvoiceValidationError(
            f"Billing period start {start.date().isoformat()} is after its end {end.date().isoformat()}"
        )
    return start, end
