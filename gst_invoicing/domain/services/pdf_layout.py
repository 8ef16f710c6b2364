# gst_invoicing/domain/services/pdf_layout.py
"""
Declarative page layout for invoice documents.

Nothing here touches ReportLab. An invoice model is turned into a
``DocumentLayout`` (header, meta box, party blocks, items table, totals box,
footer) and ``TablePaginator`` decides, in abstract vertical space, where
rows go and where pages break:

    PAGE_OPEN -> TABLE_HEADER -> ROW ... (next row does not fit)
              -> PAGE_BREAK -> PAGE_OPEN -> TABLE_HEADER -> ROW ...
              -> TAIL -> PAGE_CLOSE

The renderer replays those steps onto a canvas and records what it did
in a ``RenderTrace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Iterator, Optional, Sequence

from gst_invoicing.domain.models.invoice import (
    BillingInvoiceModel,
    CanonicalInvoiceModel,
    TaxRegime,
)
from gst_invoicing.domain.services.money import round_money
from gst_invoicing.domain.services.periods import invoice_tz
from gst_invoicing.domain.services.tax_jurisdiction import format_rate, half_rate, tax_rate_label

CANCELLED_STAMP = "CANCELLED"
SYSTEM_NOTICE = "This is a system generated document."
CANCELLED_NOTICE = "Order cancelled. Document retained for record."


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Column:
    key: str
    title: str
    weight: float
    align: str = "LEFT"  # LEFT | RIGHT | CENTER


@dataclass(frozen=True)
class TableRow:
    """One table row. ``serial`` is None for note rows (e.g. "no entries")."""

    serial: Optional[int]
    cells: tuple[str, ...]


@dataclass(frozen=True)
class HeaderBlock:
    title_lines: tuple[str, ...]
    badge: str


@dataclass(frozen=True)
class PartyBlock:
    title: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class TotalsRow:
    label: str
    value: str
    emphasis: bool = False


@dataclass(frozen=True)
class DocumentLayout:
    document_title: str
    header: HeaderBlock
    meta: tuple[tuple[str, str], ...]
    parties: tuple[PartyBlock, ...]
    columns: tuple[Column, ...]
    rows: tuple[TableRow, ...]
    totals: tuple[TotalsRow, ...]
    footer: tuple[str, ...]
    running_head: str
    watermark: Optional[str] = None


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_money(value, currency: str = "") -> str:
    """Indian digit grouping: 1234567.5 -> '12,34,567.50'."""
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    text = f"{sign}{whole}.{frac}"
    return f"{currency} {text}" if currency else text


def format_date(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.astimezone(invoice_tz()) if value.tzinfo else value
        value = value.date()
    return value.strftime("%d %b %Y")


def _rate_cell(rate) -> str:
    return f"{format_rate(rate)}%"


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


def customer_columns(is_tax_invoice: bool, regime: TaxRegime) -> tuple[Column, ...]:
    cols = [
        Column("sno", "S.No", 0.6, "CENTER"),
        Column("item", "Item", 3.0),
    ]
    if is_tax_invoice:
        cols.append(Column("hsn", "HSN/SAC", 1.1, "CENTER"))
    cols += [
        Column("qty", "Qty", 0.7, "RIGHT"),
        Column("rate", "Rate", 1.2, "RIGHT"),
    ]
    if regime == TaxRegime.CGST_SGST:
        cols += [
            Column("cgst_rate", "CGST %", 0.8, "RIGHT"),
            Column("cgst", "CGST", 1.1, "RIGHT"),
            Column("sgst_rate", "SGST %", 0.8, "RIGHT"),
            Column("sgst", "SGST", 1.1, "RIGHT"),
        ]
    elif regime == TaxRegime.IGST:
        cols += [
            Column("igst_rate", "IGST %", 0.8, "RIGHT"),
            Column("igst", "IGST", 1.2, "RIGHT"),
        ]
    cols.append(Column("amount", "Amount", 1.4, "RIGHT"))
    return tuple(cols)


def billing_columns(regime: TaxRegime) -> tuple[Column, ...]:
    cols = [
        Column("sno", "Sr", 0.5, "CENTER"),
        Column("description", "Description", 3.2),
        Column("sac", "SAC", 0.8, "CENTER"),
        Column("taxable", "Taxable", 1.3, "RIGHT"),
    ]
    if regime == TaxRegime.CGST_SGST:
        cols += [
            Column("cgst", "CGST", 1.1, "RIGHT"),
            Column("sgst", "SGST", 1.1, "RIGHT"),
        ]
    elif regime == TaxRegime.IGST:
        cols.append(Column("igst", "IGST", 1.2, "RIGHT"))
    cols.append(Column("total", "Total", 1.3, "RIGHT"))
    return tuple(cols)


# ---------------------------------------------------------------------------
# Layout builders
# ---------------------------------------------------------------------------


def _party_lines(party, *, with_state: bool = False) -> list[str]:
    lines = [party.display_name]
    if party.trade_name and party.trade_name != party.legal_name:
        lines.append(party.legal_name)
    if party.address:
        lines.append(party.address)
    if party.gstin:
        lines.append(f"GSTIN: {party.gstin}")
    if with_state and party.state_code:
        lines.append(f"State Code: {party.state_code}")
    if party.phone:
        lines.append(f"Phone: {party.phone}")
    if party.email:
        lines.append(f"Email: {party.email}")
    return lines


def customer_invoice_layout(model: CanonicalInvoiceModel, currency: str = "Rs.") -> DocumentLayout:
    regime = model.tax_regime
    columns = customer_columns(model.is_tax_invoice, regime)
    badge = "TAX INVOICE" if model.is_tax_invoice else "BILL OF SUPPLY"

    meta = [
        ("Invoice No", model.invoice_number),
        ("Invoice Date", format_date(model.invoice_date)),
        ("Order No", model.order_number),
        ("Place of Supply", model.place_of_supply),
    ]
    if model.payment_status:
        meta.append(("Payment", model.payment_status))
    if model.payment_method:
        meta.append(("Method", model.payment_method))

    buyer = model.buyer
    bill_to = [buyer.legal_name or buyer.name]
    if buyer.legal_name and buyer.legal_name != buyer.name:
        bill_to.append(buyer.name)
    if buyer.billing_address or buyer.shipping_address:
        bill_to.append(buyer.billing_address or buyer.shipping_address)
    if buyer.gstin:
        bill_to.append(f"GSTIN: {buyer.gstin}")
    if buyer.phone:
        bill_to.append(f"Phone: {buyer.phone}")
    if buyer.email:
        bill_to.append(f"Email: {buyer.email}")

    parties = [PartyBlock("Bill To", tuple(bill_to))]
    if buyer.shipping_address and buyer.billing_address and buyer.shipping_address != buyer.billing_address:
        parties.append(PartyBlock("Ship To", (buyer.name, buyer.shipping_address)))

    rows = []
    for serial, item in enumerate(model.items, start=1):
        cells = {
            "sno": str(serial),
            "item": item.name,
            "hsn": item.hsn or "-",
            "qty": str(item.qty),
            "rate": format_money(item.unit_price),
            "cgst_rate": _rate_cell(half_rate(item.gst_rate)),
            "cgst": format_money(item.cgst),
            "sgst_rate": _rate_cell(half_rate(item.gst_rate)),
            "sgst": format_money(item.sgst),
            "igst_rate": _rate_cell(item.gst_rate),
            "igst": format_money(item.igst),
            "amount": format_money(item.total),
        }
        rows.append(TableRow(serial, tuple(cells[c.key] for c in columns)))

    totals = model.totals
    box = [TotalsRow("Subtotal", format_money(totals.subtotal, currency))]
    if regime == TaxRegime.CGST_SGST:
        box.append(TotalsRow("CGST", format_money(totals.total_cgst, currency)))
        box.append(TotalsRow("SGST", format_money(totals.total_sgst, currency)))
    elif regime == TaxRegime.IGST:
        box.append(TotalsRow("IGST", format_money(totals.total_igst, currency)))
    if totals.shipping > 0:
        box.append(TotalsRow("Shipping", format_money(totals.shipping, currency)))
    if totals.discount > 0:
        box.append(TotalsRow("Discount", format_money(-totals.discount, currency)))
    box.append(TotalsRow("Grand Total", format_money(totals.amount_payable, currency), emphasis=True))

    footer = [SYSTEM_NOTICE]
    if model.is_cancelled:
        footer.append(CANCELLED_NOTICE)

    return DocumentLayout(
        document_title=f"Invoice {model.invoice_number}",
        header=HeaderBlock(tuple(_party_lines(model.seller)), badge),
        meta=tuple(meta),
        parties=tuple(parties),
        columns=columns,
        rows=tuple(rows),
        totals=tuple(box),
        footer=tuple(footer),
        running_head=f"{badge} {model.invoice_number} (continued)",
        watermark=CANCELLED_STAMP if model.is_cancelled else None,
    )


def billing_invoice_layout(model: BillingInvoiceModel, currency: str = "Rs.") -> DocumentLayout:
    regime = model.tax_regime
    columns = billing_columns(regime)

    meta = (
        ("Invoice No", model.invoice_number),
        ("Invoice Date", format_date(model.invoice_date)),
        ("Billing Period", f"{format_date(model.period_from)} - {format_date(model.period_to)}"),
        ("Place of Supply", model.place_of_supply),
    )

    rows = []
    for serial, line in enumerate(model.line_items, start=1):
        cells = {
            "sno": str(serial),
            "description": line.description,
            "sac": line.sac_code,
            "taxable": format_money(line.taxable_value),
            "cgst": format_money(line.cgst),
            "sgst": format_money(line.sgst),
            "igst": format_money(line.igst),
            "total": format_money(line.total),
        }
        rows.append(TableRow(serial, tuple(cells[c.key] for c in columns)))
    if not rows:
        note = ["" for _ in columns]
        note[1] = "No platform fees in this period"
        rows.append(TableRow(None, tuple(note)))

    totals = model.totals
    label = tax_rate_label(regime, model.gst_rate)
    box = [TotalsRow("Taxable Value", format_money(totals.total_taxable, currency))]
    if regime == TaxRegime.CGST_SGST:
        box.append(TotalsRow(f"CGST @ {label}", format_money(totals.total_cgst, currency)))
        box.append(TotalsRow(f"SGST @ {label}", format_money(totals.total_sgst, currency)))
    elif regime == TaxRegime.IGST:
        box.append(TotalsRow(f"IGST @ {label}", format_money(totals.total_igst, currency)))
    box.append(TotalsRow("Grand Total", format_money(totals.grand_total, currency), emphasis=True))

    return DocumentLayout(
        document_title=f"Invoice {model.invoice_number}",
        header=HeaderBlock(tuple(_party_lines(model.supplier)), model.document_title),
        meta=meta,
        parties=(PartyBlock("Bill To", tuple(_party_lines(model.recipient, with_state=True))),),
        columns=columns,
        rows=tuple(rows),
        totals=tuple(box),
        footer=(SYSTEM_NOTICE,),
        running_head=f"{model.document_title} {model.invoice_number} (continued)",
    )


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class PageEvent(str, Enum):
    PAGE_OPEN = "PAGE_OPEN"
    TABLE_HEADER = "TABLE_HEADER"
    ROW = "ROW"
    PAGE_BREAK = "PAGE_BREAK"
    TAIL = "TAIL"
    PAGE_CLOSE = "PAGE_CLOSE"


@dataclass(frozen=True)
class PageStep:
    event: PageEvent
    page_number: int
    offset: float = 0.0  # distance below the top of the table area
    index: Optional[int] = None  # row index for ROW steps


class TablePaginator:
    """
    Places rows of known height into pages of known table space.

    ``first_space`` / ``next_space`` is the vertical room for the table on
    the first and on continuation pages. When the first page cannot hold
    the table header and the first row, the table starts on page 2 and
    page 1 carries no table. ``tail_height`` (totals box and footer) must
    fit below the last row or it moves to a page of its own. A row taller
    than a whole page is still placed, alone, on a fresh page; callers
    split such rows beforehand.
    """

    def __init__(
        self,
        first_space: float,
        next_space: float,
        header_height: float,
        tail_height: float = 0.0,
    ) -> None:
        if next_space <= header_height:
            raise ValueError("Table space must leave room below the table header")
        self.first_space = first_space
        self.next_space = next_space
        self.header_height = header_height
        self.tail_height = tail_height

    def _starts_on_first_page(self, row_heights: Sequence[float]) -> bool:
        lead = row_heights[0] if row_heights else 0.0
        lead = min(lead, self.next_space - self.header_height)
        return self.header_height + lead <= self.first_space

    def steps(self, row_heights: Sequence[float]) -> Iterator[PageStep]:
        page = 1
        space = self.first_space
        yield PageStep(PageEvent.PAGE_OPEN, page)
        if not self._starts_on_first_page(row_heights):
            yield PageStep(PageEvent.PAGE_BREAK, page)
            yield PageStep(PageEvent.PAGE_CLOSE, page)
            page += 1
            space = self.next_space
            yield PageStep(PageEvent.PAGE_OPEN, page)
        yield PageStep(PageEvent.TABLE_HEADER, page)
        used = self.header_height
        rows_on_page = 0

        for index, height in enumerate(row_heights):
            if rows_on_page and used + height > space:
                yield PageStep(PageEvent.PAGE_BREAK, page, used)
                yield PageStep(PageEvent.PAGE_CLOSE, page)
                page += 1
                space = self.next_space
                yield PageStep(PageEvent.PAGE_OPEN, page)
                yield PageStep(PageEvent.TABLE_HEADER, page)
                used = self.header_height
                rows_on_page = 0

            yield PageStep(PageEvent.ROW, page, used, index)
            used += height
            rows_on_page += 1

        if used + self.tail_height > space:
            yield PageStep(PageEvent.PAGE_BREAK, page, used)
            yield PageStep(PageEvent.PAGE_CLOSE, page)
            page += 1
            yield PageStep(PageEvent.PAGE_OPEN, page)
            used = 0.0

        yield PageStep(PageEvent.TAIL, page, used)
        yield PageStep(PageEvent.PAGE_CLOSE, page)

    def plan(self, row_heights: Sequence[float]) -> list[list[int]]:
        """Row indices per page, e.g. [[0, 1, 2], [3, 4]]."""
        pages: list[list[int]] = []
        for step in self.steps(row_heights):
            if step.event == PageEvent.PAGE_OPEN:
                pages.append([])
            elif step.event == PageEvent.ROW:
                pages[-1].append(step.index)
        return pages


# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------


@dataclass
class PageTrace:
    page_number: int
    header_drawn: bool = False
    row_serials: list[int] = field(default_factory=list)
    watermark_applied: bool = False
    # lowest y reached by body content (header blocks, rows, totals)
    content_bottom: Optional[float] = None

    def reached(self, y: float) -> None:
        if self.content_bottom is None or y < self.content_bottom:
            self.content_bottom = y


@dataclass
class RenderTrace:
    pages: list[PageTrace] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def row_serials(self) -> list[int]:
        return [serial for page in self.pages for serial in page.row_serials]

    @property
    def watermark_on_every_page(self) -> bool:
        return bool(self.pages) and all(p.watermark_applied for p in self.pages)
