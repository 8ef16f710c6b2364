# tests/test_api.py
"""HTTP tests for the invoice endpoints (FastAPI TestClient, SQLite)."""

import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from loguru import logger as loguru_logger
from sqlalchemy import func, select

from gst_invoicing.api.v1.routes.invoices import get_allocator
from gst_invoicing.config.settings import settings
from gst_invoicing.core.db import get_db
from gst_invoicing.core.errors import InvoiceNumberConflictError
from gst_invoicing.core.logging_config import InterceptHandler
from gst_invoicing.domain.services.invoice_numbering import InvoiceNumberAllocator
from gst_invoicing.infrastructure.db.models import InvoiceNumberRecord, LedgerEntryRecord
from gst_invoicing.main import app

ORDER_URL = "/api/v1/invoices/orders/ord_7f3c2a91/pdf"
SUMMARY_URL = "/api/v1/invoices/billing/summary"
BILLING_PDF_URL = "/api/v1/invoices/billing/pdf"


@pytest.fixture
def client(session_factory, fixed_clock):
    async def _db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_allocator] = lambda: InvoiceNumberAllocator(
        session_factory, clock=fixed_clock, retry_delay=0
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_body(order_payload, seller_profile):
    return {
        "merchantId": "m_1",
        "order": order_payload,
        "sellerProfile": seller_profile.model_dump(),
    }


@pytest.fixture
def billing_body(platform_profile, seller_profile):
    return {
        "merchantId": "m_1",
        "from": "2026-01-01",
        "to": "2026-01-31",
        "supplierProfile": platform_profile.model_dump(),
        "recipientProfile": seller_profile.model_dump(),
    }


@pytest.fixture
def seeded_fees(event_loop, session_factory):
    async def _insert():
        async with session_factory() as session:
            session.add_all([
                LedgerEntryRecord(
                    merchant_id="m_1", type="PLATFORM_FEE", amount=Decimal("600.00"), status="SUCCESS",
                    order_id="o1", order_number="1041", occurred_at=datetime(2026, 1, 8, 5, 0, tzinfo=timezone.utc),
                ),
                LedgerEntryRecord(
                    merchant_id="m_1", type="PLATFORM_FEE", amount=Decimal("400.00"), status="SUCCESS",
                    order_id="o2", order_number="1042", occurred_at=datetime(2026, 1, 9, 5, 0, tzinfo=timezone.utc),
                ),
            ])
            await session.commit()

    event_loop.run_until_complete(_insert())


@pytest.fixture
def issued_numbers(event_loop, session_factory):
    def _count():
        async def _run():
            async with session_factory() as session:
                stmt = select(func.count()).select_from(InvoiceNumberRecord)
                return (await session.execute(stmt)).scalar()

        return event_loop.run_until_complete(_run())

    return _count


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_startup_routes_service_logs_through_loguru():
    root = logging.getLogger()
    saved = root.handlers[:]
    try:
        with TestClient(app) as c:
            assert c.get("/health").status_code == 200

        assert any(isinstance(h, InterceptHandler) for h in root.handlers)
        assert logging.getLogger("invoice_numbering").level in (logging.INFO, logging.DEBUG)
    finally:
        root.handlers = saved
        loguru_logger.remove()


class TestOrderInvoice:
    def test_returns_pdf_with_invoice_number(self, client, order_body):
        res = client.post(ORDER_URL, json=order_body)

        assert res.status_code == 200
        assert res.headers["content-type"] == "application/pdf"
        assert 'filename="invoice_MRC-2026-00001.pdf"' in res.headers["content-disposition"]
        assert res.content.startswith(b"%PDF")

    def test_download_again_keeps_the_number(self, client, order_body):
        first = client.post(ORDER_URL, json=order_body)
        second = client.post(ORDER_URL, json=order_body)
        assert first.headers["content-disposition"] == second.headers["content-disposition"]

    def test_url_and_body_must_match(self, client, order_body):
        res = client.post("/api/v1/invoices/orders/other/pdf", json=order_body)
        assert res.status_code == 422
        assert res.json()["status"] == "error"

    def test_invalid_seller_does_not_consume_a_number(self, client, order_body):
        bad = dict(order_body, sellerProfile=dict(order_body["sellerProfile"], gstin="27INVALID"))
        res = client.post(ORDER_URL, json=bad)
        assert res.status_code == 422
        assert "GSTIN" in res.json()["message"]

        res = client.post(ORDER_URL, json=order_body)
        assert 'filename="invoice_MRC-2026-00001.pdf"' in res.headers["content-disposition"]

    def test_nameless_seller_is_rejected_before_numbering(self, client, order_body, order_payload, issued_numbers):
        order = {k: v for k, v in order_payload.items() if k != "merchantDisplayName"}
        bad = dict(order_body, order=order, sellerProfile={"is_gst_registered": False, "state": "Maharashtra"})
        res = client.post(ORDER_URL, json=bad)

        assert res.status_code == 422
        assert "Legal name" in res.json()["message"]
        assert issued_numbers() == 0

    def test_unknown_buyer_state_is_rejected_before_numbering(self, client, order_body, issued_numbers):
        bad = dict(order_body, buyerProfile={"legal_name": "Buyer LLP", "state_code": "99"})
        res = client.post(ORDER_URL, json=bad)

        assert res.status_code == 422
        assert issued_numbers() == 0

    def test_very_long_address_still_renders(self, client, order_body, order_payload):
        address = "Survey No 42, Behind Old Octroi Naka, Hadapsar Industrial Estate, " * 70
        body = dict(order_body, order=dict(order_payload, customerAddress=address))
        res = client.post(ORDER_URL, json=body)

        assert res.status_code == 200
        assert 'filename="invoice_MRC-2026-00001.pdf"' in res.headers["content-disposition"]
        assert res.content.startswith(b"%PDF")

    def test_conflict_is_reported_as_retryable(self, client, order_body):
        class _Conflicting:
            async def allocate(self, order_id, merchant_id):
                raise InvoiceNumberConflictError("Invoice number could not be allocated")

        app.dependency_overrides[get_allocator] = _Conflicting
        res = client.post(ORDER_URL, json=order_body)

        assert res.status_code == 409
        body = res.json()
        assert body["status"] == "error"
        assert body["errors"] == [{"retryable": True}]

    def test_missing_fonts_is_a_server_error(self, client, order_body, tmp_path):
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(settings, "PDF_FONT_DIR", str(tmp_path / "fonts"))
            res = client.post(ORDER_URL, json=order_body)

        assert res.status_code == 500
        assert res.json()["message"] == "Invoice could not be generated"


class TestBilling:
    def test_summary_envelope(self, client, billing_body, seeded_fees):
        res = client.post(SUMMARY_URL, json=billing_body)

        assert res.status_code == 200
        body = res.json()
        assert body["status"] == "ok"
        data = body["data"]
        assert data["regime"] == "IGST"
        assert [line["order_number"] for line in data["line_items"]] == ["1041", "1042"]
        assert data["totals"]["total_taxable"] == "1000.00"
        assert data["totals"]["total_igst"] == "180.00"
        assert data["totals"]["grand_total"] == "1180.00"

    def test_summary_for_empty_period(self, client, billing_body):
        res = client.post(SUMMARY_URL, json=dict(billing_body, **{"from": "2025-06-01", "to": "2025-06-30"}))
        data = res.json()["data"]
        assert data["line_items"] == []
        assert Decimal(data["totals"]["grand_total"]) == 0

    def test_inverted_period_rejected(self, client, billing_body):
        res = client.post(SUMMARY_URL, json=dict(billing_body, **{"from": "2026-02-01", "to": "2026-01-31"}))
        assert res.status_code == 422
        assert res.json()["status"] == "error"

    def test_incomplete_supplier_rejected(self, client, billing_body):
        res = client.post(SUMMARY_URL, json=dict(billing_body, supplierProfile={"legal_name": "Storekit"}))
        assert res.status_code == 422
        assert "GSTIN" in res.json()["message"]

    def test_nameless_recipient_is_rejected_before_numbering(
        self, client, billing_body, seeded_fees, issued_numbers
    ):
        bad = dict(billing_body, recipientProfile={"gstin": "27AAPFU0939F1ZV", "state": "Maharashtra"})
        res = client.post(BILLING_PDF_URL, json=bad)

        assert res.status_code == 422
        assert "legal name" in res.json()["message"]
        assert issued_numbers() == 0

    def test_preview_is_an_unnumbered_statement(self, client, billing_body, seeded_fees):
        res = client.post(BILLING_PDF_URL, json=dict(billing_body, preview=True))

        assert res.status_code == 200
        assert 'filename="STMT-2026-01-01-2026-01-31.pdf"' in res.headers["content-disposition"]
        assert res.content.startswith(b"%PDF")

    def test_invoice_is_numbered_once_per_period(self, client, billing_body, seeded_fees):
        first = client.post(BILLING_PDF_URL, json=billing_body)
        again = client.post(BILLING_PDF_URL, json=billing_body)

        assert 'filename="SMK-2025-26-00001.pdf"' in first.headers["content-disposition"]
        assert again.headers["content-disposition"] == first.headers["content-disposition"]
