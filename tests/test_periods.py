# tests/test_periods.py
"""Tests for financial-year and billing-period helpers."""

from datetime import date, datetime, timezone

import pytest

from gst_invoicing.core.errors import InvoiceValidationError
from gst_invoicing.domain.services.periods import (
    as_utc,
    default_month_range,
    financial_year,
    financial_year_bounds,
    local_date,
    period_bounds,
    validate_period,
)


def test_financial_year_labels():
    assert financial_year(date(2025, 1, 15)) == "2024-25"
    assert financial_year(date(2025, 3, 31)) == "2024-25"
    assert financial_year(date(2025, 4, 1)) == "2025-26"
    assert financial_year(date(2099, 12, 31)) == "2099-00"


def test_financial_year_bounds():
    assert financial_year_bounds(date(2026, 2, 10)) == (date(2025, 4, 1), date(2026, 3, 31))


def test_default_month_range_handles_leap_february():
    assert default_month_range(date(2028, 2, 10)) == (date(2028, 2, 1), date(2028, 2, 29))


def test_validate_period_rejects_inverted_range():
    validate_period(date(2026, 1, 1), date(2026, 1, 1))
    with pytest.raises(InvoiceValidationError):
        validate_period(date(2026, 2, 1), date(2026, 1, 31))


def test_local_date_uses_invoice_timezone():
    # 20:00 UTC on 31 Jan is already 1 Feb in India
    assert local_date(datetime(2026, 1, 31, 20, 0, tzinfo=timezone.utc)) == date(2026, 2, 1)


def test_naive_timestamps_are_utc():
    naive = datetime(2026, 1, 31, 20, 0)
    assert as_utc(naive) == datetime(2026, 1, 31, 20, 0, tzinfo=timezone.utc)
    assert local_date(naive) == date(2026, 2, 1)


def test_period_bounds_cover_whole_local_days():
    start, end = period_bounds(date(2026, 1, 1), date(2026, 1, 31))
    assert as_utc(start) == datetime(2025, 12, 31, 18, 30, tzinfo=timezone.utc)
    assert local_date(end) == date(2026, 1, 31)
    assert as_utc(end) > datetime(2026, 1, 31, 18, 29, tzinfo=timezone.utc)


def test_period_bounds_keep_datetimes():
    a = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)
    b = datetime(2026, 1, 6, 10, 0, tzinfo=timezone.utc)
    assert period_bounds(a, b) == (a, b)


def test_period_bounds_reject_inverted_range():
    with pytest.raises(InvoiceValidationError):
        period_bounds(date(2026, 2, 1), date(2026, 1, 1))
