# tests/test_invoice_pdf.py
"""Tests for ReportLab rendering of customer and billing invoices."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceConsistencyError, RenderResourceError
from gst_invoicing.domain.models.invoice import InvoiceItem
from gst_invoicing.domain.models.ledger import LedgerEntry
from gst_invoicing.domain.models.order import OrderInput
from gst_invoicing.domain.services.invoice_builder import build_billing_invoice_data, build_invoice_data
from gst_invoicing.domain.services.invoice_pdf import (
    FOOTER_HEIGHT,
    MARGIN,
    PdfFonts,
    check_totals,
    render_billing_invoice_document,
    render_invoice_document,
    render_invoice_pdf,
    resolve_fonts,
)
from gst_invoicing.domain.services.ledger_aggregator import aggregate_ledger_entries

ISSUED = datetime(2026, 1, 15, 6, 30, tzinfo=timezone.utc)


def _order_with_items(order_payload, count, **changes):
    items = [
        {"id": f"item_{n:03d}", "productName": f"Block print cushion cover #{n}", "price": 45000 + n,
         "quantity": 1 + n % 3, "gstRate": 12, "hsnOrSac": "6304"}
        for n in range(count)
    ]
    return OrderInput.model_validate(dict(order_payload, items=items, **changes))


def _billing_model(platform_profile, recipient_profile, entries):
    agg = aggregate_ledger_entries(
        entries,
        datetime(2026, 1, 1, tzinfo=timezone.utc),
        datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc),
        platform_profile.state,
        recipient_profile.state,
    )
    return build_billing_invoice_data(
        invoice_number="SMK-2025-26-00001",
        issued_at=ISSUED,
        period_from=date(2026, 1, 1),
        period_to=date(2026, 1, 31),
        supplier_profile=platform_profile,
        recipient_profile=recipient_profile,
        aggregation=agg,
    )


class TestCustomerInvoicePdf:
    def test_single_page_invoice(self, order, seller_profile):
        model = build_invoice_data(order, seller_profile, "MRC-2026-00001", issued_at=ISSUED)
        pdf, trace = render_invoice_document(model, PdfFonts())

        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")
        assert trace.page_count == 1
        assert trace.row_serials == [1]
        assert trace.pages[0].header_drawn is True
        assert trace.pages[0].watermark_applied is False

    def test_long_invoice_paginates_without_losing_rows(self, order_payload, seller_profile):
        order = _order_with_items(order_payload, 120)
        model = build_invoice_data(order, seller_profile, "MRC-2026-00002", issued_at=ISSUED)
        _, trace = render_invoice_document(model, PdfFonts())

        assert trace.page_count > 1
        assert trace.row_serials == list(range(1, 121))
        assert all(page.header_drawn for page in trace.pages if page.row_serials)
        assert [page.page_number for page in trace.pages] == list(range(1, trace.page_count + 1))

    def test_wrapped_item_names_still_render(self, order_payload, seller_profile):
        long_name = "Handwoven Banarasi silk saree with zari border and matching blouse piece " * 4
        order = OrderInput.model_validate(dict(order_payload, items=[
            {"id": f"i{n}", "productName": long_name, "price": 250000, "quantity": 1, "gstRate": 5}
            for n in range(40)
        ]))
        model = build_invoice_data(order, seller_profile, "MRC-2026-00003", issued_at=ISSUED)
        _, trace = render_invoice_document(model, PdfFonts())

        assert trace.page_count > 1
        assert trace.row_serials == list(range(1, 41))

    def test_cancelled_invoice_watermarks_every_page(self, order_payload, seller_profile):
        order = _order_with_items(order_payload, 90, stage="CANCELLED")
        model = build_invoice_data(order, seller_profile, "MRC-2026-00004", issued_at=ISSUED)
        _, trace = render_invoice_document(model, PdfFonts())

        assert trace.page_count > 1
        assert trace.watermark_on_every_page is True

    def test_bill_of_supply_renders(self, order, seller_profile):
        profile = seller_profile.model_copy(update={"is_gst_registered": False, "gstin": None})
        model = build_invoice_data(order, profile, "MRC-2026-00005", issued_at=ISSUED)
        assert render_invoice_pdf(model).startswith(b"%PDF")


class TestConsistency:
    def test_mismatched_totals_refused(self, order, seller_profile):
        model = build_invoice_data(order, seller_profile, "N1", issued_at=ISSUED)
        broken = model.model_copy(
            update={"totals": model.totals.model_copy(update={"grand_total": Decimal("1179.99")})}
        )
        with pytest.raises(InvoiceConsistencyError):
            render_invoice_document(broken, PdfFonts())

    def test_line_total_must_add_up(self):
        line = InvoiceItem(
            name="x", qty=1, unit_price=Decimal("100.00"), taxable_value=Decimal("100.00"),
            cgst=Decimal("9.00"), sgst=Decimal("9.00"), total=Decimal("120.00"),
        )
        with pytest.raises(InvoiceConsistencyError):
            check_totals([line], None)

    def test_mixed_tax_components_refused(self):
        line = InvoiceItem(
            name="x", qty=1, unit_price=Decimal("100.00"), taxable_value=Decimal("100.00"),
            cgst=Decimal("9.00"), sgst=Decimal("9.00"), igst=Decimal("18.00"), total=Decimal("136.00"),
        )
        with pytest.raises(InvoiceConsistencyError):
            check_totals([line], None)


class TestFonts:
    def test_builtin_fonts_by_default(self):
        fonts = resolve_fonts("")
        assert fonts.regular == "Helvetica"
        assert fonts.currency == "Rs."

    def test_missing_font_files_raise(self, tmp_path):
        with pytest.raises(RenderResourceError):
            resolve_fonts(str(tmp_path))

    def test_unreadable_font_file_raises(self, tmp_path):
        (tmp_path / "NotoSans-Regular.ttf").write_bytes(b"not a font at all")
        (tmp_path / "NotoSans-Bold.ttf").write_bytes(b"not a font at all")
        with pytest.raises(RenderResourceError):
            resolve_fonts(str(tmp_path))

    def test_render_fails_before_output_when_fonts_missing(self, order, seller_profile, tmp_path):
        model = build_invoice_data(order, seller_profile, "N1", issued_at=ISSUED)
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(settings, "PDF_FONT_DIR", str(tmp_path / "fonts"))
            with pytest.raises(RenderResourceError):
                render_invoice_pdf(model)


class TestBillingInvoicePdf:
    def test_billing_invoice(self, platform_profile, seller_profile):
        entries = [
            LedgerEntry(
                merchant_id="m_1", type="PLATFORM_FEE", amount=Decimal("35.40"), order_id=f"o{n}",
                order_number=str(1000 + n),
                occurred_at=datetime(2026, 1, 2, tzinfo=timezone.utc) + timedelta(hours=n),
            )
            for n in range(75)
        ]
        model = _billing_model(platform_profile, seller_profile, entries)
        pdf, trace = render_billing_invoice_document(model, PdfFonts())

        assert pdf.startswith(b"%PDF")
        assert trace.row_serials == list(range(1, 76))
        assert trace.page_count > 1

    def test_empty_period_renders_a_single_page(self, platform_profile, seller_profile):
        model = _billing_model(platform_profile, seller_profile, [])
        pdf, trace = render_billing_invoice_document(model, PdfFonts())

        assert pdf.startswith(b"%PDF")
        assert trace.page_count == 1
        assert trace.row_serials == []


def _inside_margins(trace):
    return all(
        page.content_bottom is None or page.content_bottom >= MARGIN + FOOTER_HEIGHT
        for page in trace.pages
    )


class TestOversizeContent:
    def test_long_customer_address_moves_the_table_down(self, order_payload, seller_profile):
        address = "Flat 12, Shanti Niketan Co-operative Housing Society, Koregaon Park Annexe, " * 60
        order = OrderInput.model_validate(dict(order_payload, customerAddress=address))
        model = build_invoice_data(order, seller_profile, "MRC-2026-00010", issued_at=ISSUED)
        pdf, trace = render_invoice_document(model, PdfFonts())

        assert pdf.startswith(b"%PDF")
        assert trace.page_count > 1
        assert trace.row_serials == [1]
        assert trace.pages[0].header_drawn is False
        assert all(page.header_drawn for page in trace.pages if page.row_serials)
        assert _inside_margins(trace)

    def test_long_seller_address_flows_onto_the_next_page(self, order, seller_profile):
        profile = seller_profile.model_copy(update={"address_line2": "Opposite Railway Goods Shed, " * 200})
        model = build_invoice_data(order, profile, "MRC-2026-00011", issued_at=ISSUED)
        _, trace = render_invoice_document(model, PdfFonts())

        assert trace.page_count > 1
        assert trace.row_serials == [1]
        assert _inside_margins(trace)

    def test_row_taller_than_a_page_is_split(self, order_payload, seller_profile):
        name = "Hand embroidered phulkari dupatta in pure georgette with mirror work " * 120
        order = OrderInput.model_validate(dict(order_payload, items=[
            {"id": "i1", "productName": name, "price": 100000, "quantity": 1, "gstRate": 18},
            {"id": "i2", "productName": "Cotton Saree", "price": 100000, "quantity": 1, "gstRate": 18},
        ], totalAmount="2360.00"))
        model = build_invoice_data(order, seller_profile, "MRC-2026-00012", issued_at=ISSUED)
        _, trace = render_invoice_document(model, PdfFonts())

        assert trace.page_count > 2
        assert trace.row_serials == [1, 2]
        assert all(page.header_drawn for page in trace.pages if page.row_serials)
        assert _inside_margins(trace)

    def test_long_recipient_address_on_billing_invoice(self, platform_profile, seller_profile):
        recipient = seller_profile.model_copy(update={"address_line1": "Gala No 4, Udyog Bhavan, " * 500})
        entries = [
            LedgerEntry(
                merchant_id="m_1", type="PLATFORM_FEE", amount=Decimal("35.40"), order_id="o1",
                order_number="1001", occurred_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
            )
        ]
        model = _billing_model(platform_profile, recipient, entries)
        _, trace = render_billing_invoice_document(model, PdfFonts())

        assert trace.page_count > 1
        assert trace.row_serials == [1]
        assert _inside_margins(trace)
