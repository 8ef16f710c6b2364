# gst_invoicing/domain/services/invoice_pdf.py
"""
Render customer and billing invoices to PDF with ReportLab.

The page layout comes from ``pdf_layout``; this module only measures text,
replays the paginator's steps onto a canvas and keeps a ``RenderTrace`` of
what went on each page. The document is assembled in memory and returned
only after ``Canvas.save()`` succeeds, so a failed render yields no bytes.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from gst_invoicing.config.settings import settings
from gst_invoicing.core.errors import InvoiceConsistencyError, RenderResourceError
from gst_invoicing.domain.models.invoice import (
    BillingInvoiceModel,
    CanonicalInvoiceModel,
    InvoiceTotals,
)
from gst_invoicing.domain.services.pdf_layout import (
    DocumentLayout,
    PageEvent,
    PageTrace,
    RenderTrace,
    TablePaginator,
    billing_invoice_layout,
    customer_invoice_layout,
)

logger = logging.getLogger("invoice_pdf")

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 15 * mm
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

FONT_SIZE = 9
LEADING = 11
CELL_PADDING = 4
HEADER_ROW_HEIGHT = 18
FOOTER_HEIGHT = 28
RUNNING_HEAD_HEIGHT = 24
META_ROW_HEIGHT = 14
TOTALS_WIDTH = 220
TOTALS_ROW_HEIGHT = 16
GAP = 12

HEADER_FILL = colors.Color(0.2, 0.3, 0.5)
GRID_COLOR = colors.Color(0.8, 0.8, 0.8)
LABEL_COLOR = colors.grey
EMPHASIS_FILL = colors.Color(0.9, 0.95, 1.0)
WATERMARK_COLOR = colors.Color(0.8, 0.1, 0.1)
WATERMARK_ALPHA = 0.12

NOTO_REGULAR = "NotoSans-Regular.ttf"
NOTO_BOLD = "NotoSans-Bold.ttf"


@dataclass(frozen=True)
class PdfFonts:
    regular: str = "Helvetica"
    bold: str = "Helvetica-Bold"
    # Helvetica has no rupee glyph
    currency: str = "Rs."


def resolve_fonts(font_dir: Optional[str] = None) -> PdfFonts:
    """
    Built-in Helvetica, or Noto Sans from ``font_dir`` (``PDF_FONT_DIR``).

    A configured directory without the font files is a RenderResourceError,
    raised before any page is drawn.
    """
    font_dir = settings.PDF_FONT_DIR if font_dir is None else font_dir
    if not font_dir:
        return PdfFonts()

    names = {"NotoSans": NOTO_REGULAR, "NotoSans-Bold": NOTO_BOLD}
    registered = set(pdfmetrics.getRegisteredFontNames())
    for name, filename in names.items():
        if name in registered:
            continue
        path = Path(font_dir) / filename
        if not path.is_file():
            raise RenderResourceError(f"Font file not found: {path}")
        try:
            pdfmetrics.registerFont(TTFont(name, str(path)))
        except TTFError as exc:
            raise RenderResourceError(f"Font file could not be loaded: {path}") from exc

    return PdfFonts(regular="NotoSans", bold="NotoSans-Bold", currency="₹")


def check_totals(lines: Iterable, totals: InvoiceTotals) -> None:
    """Refuse to print totals that do not add up from their own lines."""
    lines = list(lines)
    for n, line in enumerate(lines, start=1):
        if line.taxable_value + line.cgst + line.sgst + line.igst != line.total:
            raise InvoiceConsistencyError(f"Line {n}: total does not match taxable value plus taxes")
        if (line.cgst or line.sgst) and line.igst:
            raise InvoiceConsistencyError(f"Line {n}: carries both CGST/SGST and IGST")

    expected = InvoiceTotals.column_sums(lines)
    for field_name, value in expected.items():
        if getattr(totals, field_name) != value:
            raise InvoiceConsistencyError(
                f"Invoice {field_name} {getattr(totals, field_name)} does not match line sum {value}"
            )


@dataclass(frozen=True)
class _FrontLine:
    """One line of the seller or party blocks, placed on a page."""

    page_number: int
    x: float
    top: float
    height: float
    text: str
    font: str
    size: float
    color: colors.Color


@dataclass(frozen=True)
class _RowPart:
    """A table row, or the part of a row that fits on one page."""

    index: int
    cells: list[list[str]]
    first: bool


class _CanvasWriter:
    """Draws one DocumentLayout, page by page, in the paginator's order."""

    def __init__(self, c: canvas.Canvas, layout: DocumentLayout, fonts: PdfFonts) -> None:
        self.c = c
        self.layout = layout
        self.fonts = fonts

        self.next_table_top = PAGE_HEIGHT - MARGIN - RUNNING_HEAD_HEIGHT
        self.bottom = MARGIN + FOOTER_HEIGHT

        total_weight = sum(col.weight for col in layout.columns)
        self.col_widths = [CONTENT_WIDTH * col.weight / total_weight for col in layout.columns]
        self.row_parts = self._split_rows([self._wrap_row(row.cells) for row in layout.rows])
        self.row_heights = [max(len(lines) for lines in part.cells) * LEADING + 6 for part in self.row_parts]

        self.front_lines: list[_FrontLine] = []
        self.table_page, self.first_table_top = self._place_front_matter()

    # -- measuring --------------------------------------------------------

    def _wrap(self, text: str, width: float, font: Optional[str] = None, size: float = FONT_SIZE) -> list[str]:
        lines = simpleSplit(text or "", font or self.fonts.regular, size, width)
        return lines or [""]

    def _wrap_row(self, cells: tuple[str, ...]) -> list[list[str]]:
        return [self._wrap(text, width - 2 * CELL_PADDING) for text, width in zip(cells, self.col_widths)]

    def _split_rows(self, rows: list[list[list[str]]]) -> list[_RowPart]:
        """Cut rows taller than a continuation page into page-sized parts."""
        room = self.next_table_top - self.bottom - HEADER_ROW_HEIGHT - 6
        per_page = max(int(room // LEADING), 1)
        parts = []
        for index, cells in enumerate(rows):
            count = max(len(lines) for lines in cells)
            for start in range(0, count, per_page):
                parts.append(_RowPart(index, [lines[start:start + per_page] for lines in cells], start == 0))
        return parts

    def _party_width(self) -> float:
        count = max(len(self.layout.parties), 1)
        return (CONTENT_WIDTH - GAP * (count - 1)) / count

    def _flow(self, page_number: int, top: float, height: float) -> tuple[int, float]:
        """Where a block of ``height`` goes: here, or atop the next page."""
        if top - height < self.bottom:
            return page_number + 1, self.next_table_top
        return page_number, top

    def _place_front_matter(self) -> tuple[int, float]:
        """
        Lay out the seller and party blocks above the table.

        Blocks too long for the first page continue below the running head
        of the next. Returns the page and the y at which the table starts.
        """
        page_top = PAGE_HEIGHT - MARGIN
        seller_width = CONTENT_WIDTH * 0.55
        title, *rest = self.layout.header.title_lines

        page_number, top = 1, page_top
        seller = [(text, self.fonts.bold, 13, 16) for text in self._wrap(title, seller_width, self.fonts.bold, 13)]
        for line in rest:
            seller.extend((text, self.fonts.regular, FONT_SIZE, LEADING) for text in self._wrap(line, seller_width))
        for text, font, size, height in seller:
            page_number, top = self._flow(page_number, top, height)
            self.front_lines.append(
                _FrontLine(page_number, MARGIN, top, height, text, font, size, colors.black)
            )
            top -= height

        if page_number == 1:
            top = min(top, page_top - (20 + len(self.layout.meta) * META_ROW_HEIGHT + 4))
        top -= GAP

        width = self._party_width()
        blocks = []
        for party in self.layout.parties:
            lines = [(party.title, True)]
            for line in party.lines:
                lines.extend((text, False) for text in self._wrap(line, width))
            blocks.append(lines)

        for row in range(max((len(lines) for lines in blocks), default=0)):
            page_number, top = self._flow(page_number, top, LEADING)
            for n, lines in enumerate(blocks):
                if row >= len(lines):
                    continue
                text, is_title = lines[row]
                self.front_lines.append(
                    _FrontLine(
                        page_number,
                        MARGIN + n * (width + GAP),
                        top,
                        LEADING,
                        text,
                        self.fonts.bold if is_title else self.fonts.regular,
                        FONT_SIZE,
                        LABEL_COLOR if is_title else colors.black,
                    )
                )
            top -= LEADING

        if blocks:
            top -= GAP
        return page_number, top

    def paginator(self) -> TablePaginator:
        tail = GAP + len(self.layout.totals) * TOTALS_ROW_HEIGHT + 4
        return TablePaginator(
            first_space=self.first_table_top - self.bottom,
            next_space=self.next_table_top - self.bottom,
            header_height=HEADER_ROW_HEIGHT,
            tail_height=tail,
        )

    def table_top(self, table_page: int) -> float:
        return self.first_table_top if table_page == 1 else self.next_table_top

    # -- blocks -----------------------------------------------------------

    def watermark(self, text: str) -> None:
        c = self.c
        c.saveState()
        c.setFillColor(WATERMARK_COLOR)
        c.setFillAlpha(WATERMARK_ALPHA)
        c.translate(PAGE_WIDTH / 2, PAGE_HEIGHT / 2)
        c.rotate(45)
        c.setFont(self.fonts.bold, 96)
        c.drawCentredString(0, -32, text)
        c.restoreState()

    def masthead(self) -> None:
        """Document badge and the invoice meta box, first page only."""
        c = self.c
        top = PAGE_HEIGHT - MARGIN
        right = PAGE_WIDTH - MARGIN
        c.setFont(self.fonts.bold, 14)
        c.setFillColor(HEADER_FILL)
        c.drawRightString(right, top - 14, self.layout.header.badge)

        box_width = CONTENT_WIDTH * 0.4
        box_top = top - 20
        box_height = len(self.layout.meta) * META_ROW_HEIGHT + 4
        c.setStrokeColor(GRID_COLOR)
        c.setLineWidth(0.5)
        c.rect(right - box_width, box_top - box_height, box_width, box_height, stroke=1, fill=0)
        y = box_top - META_ROW_HEIGHT + 2
        for label, value in self.layout.meta:
            c.setFillColor(LABEL_COLOR)
            c.setFont(self.fonts.regular, FONT_SIZE - 1)
            c.drawString(right - box_width + 6, y, label)
            c.setFillColor(colors.black)
            c.setFont(self.fonts.bold, FONT_SIZE - 1)
            c.drawRightString(right - 6, y, value)
            y -= META_ROW_HEIGHT

    def front_matter(self, page: PageTrace) -> None:
        c = self.c
        for line in self.front_lines:
            if line.page_number != page.page_number:
                continue
            c.setFont(line.font, line.size)
            c.setFillColor(line.color)
            c.drawString(line.x, line.top - line.height + 2, line.text)
            page.reached(line.top - line.height)

    def running_head(self) -> None:
        c = self.c
        c.setFillColor(LABEL_COLOR)
        c.setFont(self.fonts.regular, FONT_SIZE)
        c.drawString(MARGIN, PAGE_HEIGHT - MARGIN - FONT_SIZE, self.layout.running_head)

    def footer(self, page_number: int) -> None:
        c = self.c
        c.setStrokeColor(GRID_COLOR)
        c.setLineWidth(0.5)
        c.line(MARGIN, MARGIN + FOOTER_HEIGHT - 6, PAGE_WIDTH - MARGIN, MARGIN + FOOTER_HEIGHT - 6)
        c.setFillColor(LABEL_COLOR)
        c.setFont(self.fonts.regular, FONT_SIZE - 1)
        y = MARGIN + FOOTER_HEIGHT - 16
        for line in self.layout.footer:
            c.drawString(MARGIN, y, line)
            y -= LEADING - 1
        c.drawRightString(PAGE_WIDTH - MARGIN, MARGIN + FOOTER_HEIGHT - 16, f"Page {page_number}")

    def _cell_text(self, lines: list[str], x: float, width: float, top: float, align: str) -> None:
        y = top - 3 - FONT_SIZE
        for line in lines:
            if align == "RIGHT":
                self.c.drawRightString(x + width - CELL_PADDING, y, line)
            elif align == "CENTER":
                self.c.drawCentredString(x + width / 2, y, line)
            else:
                self.c.drawString(x + CELL_PADDING, y, line)
            y -= LEADING

    def table_header(self, top: float) -> None:
        c = self.c
        c.setFillColor(HEADER_FILL)
        c.rect(MARGIN, top - HEADER_ROW_HEIGHT, CONTENT_WIDTH, HEADER_ROW_HEIGHT, stroke=0, fill=1)
        c.setFillColor(colors.white)
        c.setFont(self.fonts.bold, FONT_SIZE - 0.5)
        x = MARGIN
        for col, width in zip(self.layout.columns, self.col_widths):
            self._cell_text([col.title], x, width, top - 1, col.align)
            x += width

    def table_row(self, part_index: int, top: float) -> float:
        c = self.c
        height = self.row_heights[part_index]
        c.setStrokeColor(GRID_COLOR)
        c.setLineWidth(0.5)
        c.setFillColor(colors.black)
        c.setFont(self.fonts.regular, FONT_SIZE)
        x = MARGIN
        for col, width, lines in zip(self.layout.columns, self.col_widths, self.row_parts[part_index].cells):
            c.rect(x, top - height, width, height, stroke=1, fill=0)
            self._cell_text(lines, x, width, top, col.align)
            x += width
        return top - height

    def totals_box(self, top: float) -> float:
        c = self.c
        x = PAGE_WIDTH - MARGIN - TOTALS_WIDTH
        y = top - GAP
        c.setLineWidth(0.5)
        for row in self.layout.totals:
            if row.emphasis:
                c.setFillColor(EMPHASIS_FILL)
                c.rect(x, y - TOTALS_ROW_HEIGHT, TOTALS_WIDTH, TOTALS_ROW_HEIGHT, stroke=0, fill=1)
            c.setStrokeColor(GRID_COLOR)
            c.rect(x, y - TOTALS_ROW_HEIGHT, TOTALS_WIDTH, TOTALS_ROW_HEIGHT, stroke=1, fill=0)
            c.setFillColor(colors.black)
            c.setFont(self.fonts.bold if row.emphasis else self.fonts.regular, FONT_SIZE + (1 if row.emphasis else 0))
            c.drawString(x + 6, y - TOTALS_ROW_HEIGHT + 5, row.label)
            c.drawRightString(x + TOTALS_WIDTH - 6, y - TOTALS_ROW_HEIGHT + 5, row.value)
            y -= TOTALS_ROW_HEIGHT
        return y

    # -- driver -----------------------------------------------------------

    def open_page(self, trace: RenderTrace, page_number: int) -> PageTrace:
        page = PageTrace(page_number=page_number)
        trace.pages.append(page)
        if self.layout.watermark:
            self.watermark(self.layout.watermark)
            page.watermark_applied = True
        if page_number == 1:
            self.masthead()
        else:
            self.running_head()
        self.front_matter(page)
        self.footer(page_number)
        return page

    def write(self) -> RenderTrace:
        trace = RenderTrace()

        # pages filled by the seller and party blocks alone
        for page_number in range(1, self.table_page):
            self.open_page(trace, page_number)
            self.c.showPage()

        page: Optional[PageTrace] = None
        offset = self.table_page - 1
        for step in self.paginator().steps(self.row_heights):
            top = self.table_top(step.page_number)

            if step.event == PageEvent.PAGE_OPEN:
                page = self.open_page(trace, step.page_number + offset)

            elif step.event == PageEvent.TABLE_HEADER:
                self.table_header(top)
                page.header_drawn = True
                page.reached(top - HEADER_ROW_HEIGHT)

            elif step.event == PageEvent.ROW:
                part = self.row_parts[step.index]
                page.reached(self.table_row(step.index, top - step.offset))
                serial = self.layout.rows[part.index].serial
                if part.first and serial is not None:
                    page.row_serials.append(serial)

            elif step.event == PageEvent.TAIL:
                page.reached(self.totals_box(top - step.offset))

            elif step.event == PageEvent.PAGE_CLOSE:
                self.c.showPage()

        return trace


def _render_layout(layout: DocumentLayout, fonts: PdfFonts) -> tuple[bytes, RenderTrace]:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(layout.document_title)
    c.setCreator(settings.APP_NAME)

    trace = _CanvasWriter(c, layout, fonts).write()
    c.save()
    return buf.getvalue(), trace


def render_invoice_document(
    model: CanonicalInvoiceModel,
    fonts: Optional[PdfFonts] = None,
) -> tuple[bytes, RenderTrace]:
    """Customer invoice PDF plus the per-page trace."""
    check_totals(model.items, model.totals)
    fonts = fonts or resolve_fonts()
    pdf, trace = _render_layout(customer_invoice_layout(model, fonts.currency), fonts)
    logger.info(
        "Rendered invoice %s: %d items on %d pages%s",
        model.invoice_number, len(model.items), trace.page_count,
        " (cancelled)" if model.is_cancelled else "",
    )
    return pdf, trace


def render_invoice_pdf(model: CanonicalInvoiceModel) -> bytes:
    return render_invoice_document(model)[0]


def render_billing_invoice_document(
    model: BillingInvoiceModel,
    fonts: Optional[PdfFonts] = None,
) -> tuple[bytes, RenderTrace]:
    """Platform-fee billing invoice PDF plus the per-page trace."""
    check_totals(model.line_items, model.totals)
    fonts = fonts or resolve_fonts()
    pdf, trace = _render_layout(billing_invoice_layout(model, fonts.currency), fonts)
    logger.info(
        "Rendered billing invoice %s: %d lines on %d pages",
        model.invoice_number, len(model.line_items), trace.page_count,
    )
    return pdf, trace


def render_billing_invoice_pdf(model: BillingInvoiceModel) -> bytes:
    return render_billing_invoice_document(model)[0]
