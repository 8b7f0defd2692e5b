"""
PDF generation service for invoices.

WHAT: Renders an invoice as an A4 financial document using
ReportLab.

WHY: The invoice PDF is the legal artefact handed to clients. Its layout
is fixed (issuer block, title, client box, details table, items, tax
summary, total, payment info, observations) and must be reproducible
byte for byte for the same invoice.

HOW: Rendering is split in three steps:
1. render_invoice() folds ten pure section functions over a vertical
   cursor. Each section takes (y, invoice, layout) and returns the next
   y together with a list of draw operations in a top-left coordinate
   system. No canvas is involved, so tests inspect the operations.
2. paginate() cuts the operations into pages. An operation whose bottom
   would pass the bottom margin starts a new page, and everything after
   it moves up by the same offset. Each page gets a "page n / total"
   indicator.
3. PDFService replays each page on a ReportLab canvas created with
   invariant=1, which keeps the output deterministic.

Design decisions:
- Every fixed string, coordinate, font size and currency symbol lives in
  InvoiceLayout, passed in explicitly rather than read from module globals
- Amounts are rounded to cents only when formatted
- Any failure while drawing aborts the whole document; no partial PDF is
  ever returned
"""

import io
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from app.core.exceptions import DocumentRenderError
from app.models.invoice import Invoice, PaymentMethod
from app.services.invoice_totals import (
    compute_totals,
    line_amounts,
    resolve_tax_rate,
    round_amount,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Layout configuration
# ============================================================================


@dataclass(frozen=True)
class Margins:
    """Page margins. `right` is the x coordinate of the right content edge;
    `bottom` is the distance kept free above the lower page edge."""

    left: float = 40
    top: float = 40
    right: float = 555
    bottom: float = 40


@dataclass(frozen=True)
class FontSizes:
    title: float = 18
    large: float = 10
    normal: float = 9
    small: float = 8
    tiny: float = 7


@dataclass(frozen=True)
class Spacing:
    line: float = 12
    section: float = 20
    large_section: float = 40


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Column:
    """Table column: header label, left x, width and text alignment."""

    label: str
    x: float
    width: float
    align: str = "left"


@dataclass(frozen=True)
class DetailsTableLayout:
    """
    Invoice details table (number, dates, reference).

    The table starts at `y` or below the content above it, whichever is
    lower on the page.
    """

    y: float = 210
    width: float = 515
    column_widths: Tuple[float, ...] = (100, 100, 100, 100, 115)
    header_row_height: float = 20
    min_row_height: float = 20
    padding: float = 6
    vertical_padding: float = 7
    data_alignments: Tuple[str, ...] = ("right", "left", "left", "left")
    gap_after: float = 15


@dataclass(frozen=True)
class DocumentLabels:
    """Fixed strings printed on the document."""

    title: str = "FACTURA"
    page_indicator: str = "Página  {page} / {pages}"
    company_fallback: str = "Company Name"
    missing_value: str = "N/A"
    phone_prefix: str = "Tel."
    email_prefix: str = "e-Mail"
    tax_id_prefix: str = "C.I.F."
    client_tax_id_prefix: str = "NIF/CIF:"
    invoice_number: str = "Número factura"
    emission_date: str = "Fecha emisión"
    operation_date: str = "Fecha operación"
    due_date: str = "Fecha vencimiento"
    reference: str = "Referencia"
    description: str = "Descripción"
    grand_total: str = "TOTAL FACTURA"
    payment_method: str = "Forma de Pago:"
    bank_account: str = "Cuenta Bancaria (IBAN):"
    observations: str = "Observaciones:"
    placeholder: str = "-"


def _default_currency_symbols() -> Mapping[str, str]:
    return {"EUR": "€", "USD": "$", "GBP": "£", "JPY": "¥", "CHF": "CHF"}


def _default_payment_labels() -> Mapping[PaymentMethod, str]:
    return {
        PaymentMethod.BANK_TRANSFER: "TRANSFERENCIA BANCARIA",
        PaymentMethod.CASH: "AL CONTADO",
        PaymentMethod.CREDIT_CARD: "TARJETA DE CRÉDITO",
        PaymentMethod.PAYPAL: "PAYPAL",
        PaymentMethod.OTHER: "OTRO",
    }


@dataclass(frozen=True)
class LocaleSettings:
    """
    Date, money and payment-method formatting.

    WHY: Dates print as day/month/year without zero padding, amounts as
    "1234.50 €". Unknown currency codes print as the code itself.
    """

    date_pattern: str = "{day}/{month}/{year}"
    currency_symbols: Mapping[str, str] = field(default_factory=_default_currency_symbols)
    payment_method_labels: Mapping[PaymentMethod, str] = field(
        default_factory=_default_payment_labels
    )
    default_payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER

    def format_date(self, value: Optional[datetime]) -> str:
        if value is None:
            return ""
        return self.date_pattern.format(day=value.day, month=value.month, year=value.year)

    def currency_symbol(self, currency: Optional[str]) -> str:
        return self.currency_symbols.get(currency or "", currency or "")

    def format_amount(self, amount: Any, currency: Optional[str]) -> str:
        return f"{round_amount(Decimal(str(amount))):.2f} {self.currency_symbol(currency)}"

    def format_rate(self, rate: Any) -> str:
        whole = Decimal(str(rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return f"{whole}%"

    def payment_label(self, method: Optional[PaymentMethod]) -> str:
        method = method or self.default_payment_method
        return self.payment_method_labels.get(
            method, self.payment_method_labels[self.default_payment_method]
        )


DEFAULT_ITEM_COLUMNS: Tuple[Column, ...] = (
    Column("Cantidad", 40, 50, "center"),
    Column("Código", 90, 50, "center"),
    Column("Artículo", 140, 150, "left"),
    Column("Precio", 290, 65, "right"),
    Column("IVA %", 355, 40, "right"),
    Column("Subtotal", 395, 75, "right"),
    Column("Total", 470, 70, "right"),
)

DEFAULT_TAX_SUMMARY_COLUMNS: Tuple[Column, ...] = (
    Column("Descuento", 40, 85, "center"),
    Column("Descuento P. Pago", 125, 85, "center"),
    Column("Base Imponible", 210, 85, "center"),
    Column("Importe IVA", 295, 85, "center"),
    Column("Importe R.E.", 380, 85, "center"),
    Column("Total", 465, 90, "center"),
)


@dataclass(frozen=True)
class InvoiceLayout:
    """
    Complete layout of the invoice document.

    WHAT: Page size, margins, fonts, fixed boxes, table columns, labels
    and locale. Swap any part to restyle or relabel the document.
    """

    page_size: Tuple[float, float] = A4
    margins: Margins = field(default_factory=Margins)
    fonts: FontSizes = field(default_factory=FontSizes)
    spacing: Spacing = field(default_factory=Spacing)
    regular_font: str = "Helvetica"
    bold_font: str = "Helvetica-Bold"
    line_height_factor: float = 1.2
    title_box: Box = Box(400, 40, 155, 25)
    client_box: Box = Box(360, 90, 195, 105)
    details_table: DetailsTableLayout = field(default_factory=DetailsTableLayout)
    item_columns: Tuple[Column, ...] = DEFAULT_ITEM_COLUMNS
    tax_summary_columns: Tuple[Column, ...] = DEFAULT_TAX_SUMMARY_COLUMNS
    labels: DocumentLabels = field(default_factory=DocumentLabels)
    locale: LocaleSettings = field(default_factory=LocaleSettings)
    stripe_fill: str = "#f5f5f5"
    text_color: str = "#000000"

    @property
    def content_width(self) -> float:
        return self.margins.right - self.margins.left


DEFAULT_LAYOUT = InvoiceLayout()


# ============================================================================
# Draw operations
# ============================================================================


@dataclass(frozen=True)
class TextOp:
    """
    Text anchored at its top-left corner.

    With a width the text wraps inside [x, x + width] and `align` applies
    to every line; without one it is drawn as a single line.
    """

    text: str
    x: float
    y: float
    font: str
    size: float
    width: Optional[float] = None
    align: str = "left"


@dataclass(frozen=True)
class RectOp:
    """Rectangle with top-left corner (x, y). Filled when `fill` is set."""

    x: float
    y: float
    width: float
    height: float
    stroke: bool = True
    fill: Optional[str] = None


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class BlockOp:
    """
    Vertical band that must stay on one page, such as an item row.

    Draws nothing; paginate() consumes it.
    """

    y: float
    height: float


DrawOp = Union[TextOp, RectOp, LineOp, BlockOp]
SectionResult = Tuple[float, List[DrawOp]]


@dataclass(frozen=True)
class RenderedDocument:
    """Draw operations of a document and the cursor where content ends."""

    ops: Tuple[DrawOp, ...]
    extent: float


# ============================================================================
# Text measurement
# ============================================================================


def split_lines(text: str, font: str, size: float, width: Optional[float]) -> List[str]:
    """Break text into printed lines, honouring explicit newlines."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        if width is None:
            lines.append(paragraph)
            continue
        lines.extend(simpleSplit(paragraph, font, size, width) or [""])
    return lines


def measure_text_height(
    text: str,
    font: str,
    size: float,
    width: float,
    layout: InvoiceLayout = DEFAULT_LAYOUT,
) -> float:
    """
    Height of `text` wrapped to `width`.

    Args:
        text: Text, may contain newlines
        font: ReportLab font name
        size: Font size in points
        width: Wrapping width in points
        layout: Provides the line height factor

    Returns:
        Height in points, 0 for empty text
    """
    if not text:
        return 0
    return len(split_lines(text, font, size, width)) * size * layout.line_height_factor


# ============================================================================
# Sections
# ============================================================================


def _address_lines(party: Any) -> List[str]:
    """Street, "postal, city, state" and country, skipping empty ones."""
    if party is None:
        return []
    city_line = ", ".join(
        part for part in (party.postal_code, party.city, party.state) if part
    )
    return [line for line in (party.street, city_line, party.country) if line]


def draw_issuer_block(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """Company name, address, contact and tax id at the top left."""
    company = invoice.company
    labels, fonts, spacing = layout.labels, layout.fonts, layout.spacing
    left = layout.margins.left

    def value(attr: str) -> str:
        return (getattr(company, attr, None) if company is not None else None) or labels.missing_value

    cursor = layout.margins.top
    ops: List[DrawOp] = [
        TextOp(
            (company.name if company is not None else None) or labels.company_fallback,
            left, cursor, layout.bold_font, fonts.large,
        )
    ]
    cursor += spacing.line + 3

    for line in _address_lines(company):
        ops.append(TextOp(line, left, cursor, layout.regular_font, fonts.normal))
        cursor += spacing.line

    ops.append(TextOp(f"{labels.phone_prefix} {value('phone')}", left, cursor, layout.regular_font, fonts.normal))
    cursor += spacing.line
    ops.append(TextOp(f"{labels.email_prefix} {value('email')}", left, cursor, layout.regular_font, fonts.normal))
    cursor += spacing.section
    ops.append(TextOp(f"{labels.tax_id_prefix} {value('vat_number')}", left, cursor, layout.regular_font, fonts.small))
    cursor += spacing.line

    return max(y, cursor), ops


def page_indicator_op(layout: InvoiceLayout, page: int, pages: int) -> TextOp:
    box = layout.title_box
    return TextOp(
        layout.labels.page_indicator.format(page=page, pages=pages), box.x, box.y + box.height,
        layout.regular_font, layout.fonts.small, box.width, "right",
    )


def draw_title_block(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    Document title and page indicator, top right. Does not move the cursor.

    The indicator reads "1 / 1" here; paginate() rewrites it once the
    page count is known.
    """
    box = layout.title_box
    return y, [
        TextOp(layout.labels.title, box.x, box.y, layout.bold_font, layout.fonts.title, box.width, "right"),
        page_indicator_op(layout, 1, 1),
    ]


def draw_client_box(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    Bordered client box at a fixed position.

    WHY: The box height is fixed. Long content overflows the border
    instead of pushing the rest of the page down.
    """
    box = layout.client_box
    client = invoice.client
    padding, line_height = 5, 11
    x, width = box.x + padding, box.width - padding * 2
    size = layout.fonts.small

    ops: List[DrawOp] = [RectOp(box.x, box.y, box.width, box.height)]
    cursor = box.y + 8
    name = (client.name if client is not None else None) or layout.labels.missing_value
    ops.append(TextOp(name, x, cursor, layout.bold_font, size, width))
    cursor += line_height + 2

    lines = _address_lines(client)
    if client is not None:
        if client.vat_number:
            lines.append(f"{layout.labels.client_tax_id_prefix} {client.vat_number}")
        lines.extend(line for line in (client.email, client.phone) if line)

    for line in lines:
        ops.append(TextOp(line, x, cursor, layout.regular_font, size, width))
        cursor += line_height

    return max(y, box.y + box.height), ops


def draw_details_table(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    Number, dates and reference in a bordered table.

    WHAT: A four-column header/data row pair, then a full-width reference
    header/data pair. Data rows grow to fit their tallest cell.

    The operation date column prints the emission date; the stored
    operation_date is kept on the invoice but not shown.
    """
    table = layout.details_table
    labels, locale = layout.labels, layout.locale
    left, size = layout.margins.left, layout.fonts.small
    widths, padding = table.column_widths, table.padding
    top = max(table.y, y)

    emission = locale.format_date(invoice.emission_date)
    data = [
        f"{invoice.invoice_series}-{invoice.invoice_number}",
        emission,
        emission,
        locale.format_date(invoice.due_date),
    ]
    reference = invoice.reference or labels.placeholder

    data_row = table.min_row_height
    for i, text in enumerate(data):
        if text:
            needed = measure_text_height(text, layout.regular_font, size, widths[i] - padding * 2, layout)
            data_row = max(data_row, needed + padding * 2)
    reference_row = max(
        table.min_row_height,
        measure_text_height(reference, layout.regular_font, size, table.width - padding * 2, layout)
        + padding * 2,
    )

    header = table.header_row_height
    height = header + data_row + header + reference_row
    reference_header_y = top + header + data_row
    ops: List[DrawOp] = [RectOp(left, top, table.width, height)]

    x = left
    for width in widths[:3]:
        x += width
        ops.append(LineOp(x, top, x, top + header + data_row))
    for line_y in (top + header, reference_header_y, reference_header_y + header):
        ops.append(LineOp(left, line_y, left + table.width, line_y))

    headers = (labels.invoice_number, labels.emission_date, labels.operation_date, labels.due_date)
    x = left
    for i, label in enumerate(headers):
        ops.append(TextOp(
            label, x + padding, top + table.vertical_padding,
            layout.bold_font, size, widths[i] - padding * 2, "center",
        ))
        ops.append(TextOp(
            data[i], x + padding, top + header + table.vertical_padding,
            layout.regular_font, size, widths[i] - padding * 2, table.data_alignments[i],
        ))
        x += widths[i]

    ops.append(TextOp(
        labels.reference, left + padding, reference_header_y + table.vertical_padding,
        layout.bold_font, size, table.width - padding * 2,
    ))
    ops.append(TextOp(
        reference, left + padding, reference_header_y + header + table.vertical_padding,
        layout.regular_font, size, table.width - padding * 2,
    ))

    return top + height + table.gap_after, ops


def draw_description(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """Description, or the comma-joined item names when there is none."""
    left, size = layout.margins.left, layout.fonts.small
    text = invoice.description or ", ".join(item.name for item in invoice.items)
    ops: List[DrawOp] = [
        TextOp(layout.labels.description, left, y, layout.bold_font, size),
        TextOp(text, left, y + layout.spacing.line, layout.regular_font, size, layout.content_width),
    ]
    return y + layout.spacing.section + 35, ops


def draw_items_table(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    One row per item followed by a totals row.

    WHAT: Rows grow to fit the article name and description. Odd rows get
    a light background. Zero-quantity rows are note rows: only the
    article text is printed and every numeric cell is blank.
    """
    columns = layout.item_columns
    qty_col, code_col, article_col, price_col, rate_col, subtotal_col, total_col = columns
    fonts, locale, currency = layout.fonts, layout.locale, invoice.currency
    left, right = layout.margins.left, layout.margins.right
    min_row_height, row_padding = 20, 5

    ops: List[DrawOp] = [
        TextOp(col.label, col.x, y, layout.bold_font, fonts.small, col.width, col.align)
        for col in columns
    ]
    ops.append(LineOp(left, y + 15, right, y + 15))

    cursor = y + 20
    total_quantity = 0
    for index, item in enumerate(invoice.items):
        total_quantity += item.quantity
        article = f"{item.name}\n{item.description}" if item.description else item.name
        text_height = measure_text_height(article, layout.regular_font, fonts.small, article_col.width, layout)
        row_height = max(min_row_height, text_height + row_padding * 2 + 4)
        text_y = cursor + row_padding

        ops.append(BlockOp(cursor, row_height))
        if index % 2 == 1:
            ops.append(RectOp(left, cursor, right - left, row_height, stroke=False, fill=layout.stripe_fill))

        if item.quantity == 0:
            quantity = price = rate = subtotal = total = ""
        else:
            amounts = line_amounts(item)
            quantity = str(item.quantity)
            price = locale.format_amount(item.price, currency)
            rate = locale.format_rate(resolve_tax_rate(item.tax_rate))
            subtotal = locale.format_amount(amounts.subtotal, currency)
            total = locale.format_amount(amounts.total, currency)

        ops.append(TextOp(quantity, qty_col.x, text_y, layout.regular_font, fonts.small, qty_col.width, qty_col.align))
        ops.append(TextOp("", code_col.x, text_y, layout.regular_font, fonts.small, code_col.width, code_col.align))
        ops.append(TextOp(item.name, article_col.x, text_y, layout.regular_font, fonts.normal, article_col.width))
        if item.description:
            name_height = measure_text_height(item.name, layout.regular_font, fonts.normal, article_col.width, layout)
            ops.append(TextOp(
                item.description, article_col.x, text_y + name_height + 3,
                layout.regular_font, fonts.tiny, article_col.width,
            ))
        for text, col in ((price, price_col), (rate, rate_col), (subtotal, subtotal_col), (total, total_col)):
            ops.append(TextOp(text, col.x, text_y, layout.regular_font, fonts.small, col.width, col.align))

        cursor += row_height

    ops.append(LineOp(left, cursor, right, cursor))
    cursor += 10

    totals = compute_totals(invoice.items)
    ops.append(TextOp(str(total_quantity), qty_col.x, cursor, layout.bold_font, fonts.small, qty_col.width, qty_col.align))
    ops.append(TextOp(
        locale.format_amount(totals.base_amount, currency), subtotal_col.x, cursor,
        layout.bold_font, fonts.small, subtotal_col.width, subtotal_col.align,
    ))
    ops.append(TextOp(
        locale.format_amount(totals.total_with_tax, currency), total_col.x, cursor,
        layout.bold_font, fonts.small, total_col.width, total_col.align,
    ))

    return cursor + 30, ops


def draw_tax_summary(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    Six bordered cells: discount, payment discount, taxable base, tax,
    surcharge and total.

    WHY: Discounts and surcharges are not tracked, so those cells always
    show the placeholder. Values are only printed for invoices with items.
    """
    columns = layout.tax_summary_columns
    header_height, value_height = 18, 20
    fonts, locale, currency = layout.fonts, layout.locale, invoice.currency
    placeholder = layout.labels.placeholder

    ops: List[DrawOp] = []
    for col in columns:
        ops.append(RectOp(col.x, y, col.width, header_height + value_height))
        ops.append(LineOp(col.x, y + header_height, col.x + col.width, y + header_height))
    for col in columns:
        ops.append(TextOp(col.label, col.x, y + 5, layout.bold_font, fonts.tiny, col.width, col.align))

    totals = compute_totals(invoice.items)
    if totals.tax_breakdown:
        values = (
            placeholder,
            placeholder,
            locale.format_amount(totals.base_amount, currency),
            locale.format_amount(totals.total_tax, currency),
            placeholder,
            locale.format_amount(totals.total_with_tax, currency),
        )
        value_y = y + header_height + 5
        for i, (text, col) in enumerate(zip(values, columns)):
            font = layout.bold_font if i == len(columns) - 1 else layout.regular_font
            ops.append(TextOp(text, col.x, value_y, font, fonts.small, col.width, col.align))

    return y + header_height + value_height + layout.spacing.section, ops


def draw_total_section(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """Bold grand total line."""
    total = compute_totals(invoice.items).total_with_tax
    size = layout.fonts.large
    ops: List[DrawOp] = [
        TextOp(layout.labels.grand_total, 305, y, layout.bold_font, size, 150),
        TextOp(layout.locale.format_amount(total, invoice.currency), 455, y, layout.bold_font, size, 100, "right"),
    ]
    return y + layout.spacing.large_section, ops


def draw_payment_info(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """
    Payment method, plus the issuer's IBAN for bank transfers.

    An unset method prints as bank transfer, but the account number is
    only shown when the method is explicitly or implicitly bank transfer
    and the company has one on file.
    """
    left, size, labels = layout.margins.left, layout.fonts.small, layout.labels
    method = invoice.payment_method or layout.locale.default_payment_method

    ops: List[DrawOp] = [
        TextOp(labels.payment_method, left, y, layout.bold_font, size),
        TextOp(layout.locale.payment_label(method), left, y + 15, layout.regular_font, size),
    ]
    end = y + 30

    account = invoice.company.bank_account_number if invoice.company is not None else None
    if method == PaymentMethod.BANK_TRANSFER and account:
        ops.append(TextOp(labels.bank_account, left, y + 35, layout.bold_font, size))
        ops.append(TextOp(account, left, y + 50, layout.regular_font, size))
        end = y + 65

    return end, ops


def draw_observations(y: float, invoice: Invoice, layout: InvoiceLayout) -> SectionResult:
    """Free-text observations. Absent observations draw nothing."""
    if not invoice.observations:
        return y, []

    left, size, width = layout.margins.left, layout.fonts.small, layout.content_width
    top = y + layout.spacing.section
    ops: List[DrawOp] = [
        TextOp(layout.labels.observations, left, top, layout.bold_font, size),
        TextOp(invoice.observations, left, top + 15, layout.regular_font, size, width),
    ]
    text_height = measure_text_height(invoice.observations, layout.regular_font, size, width, layout)
    return top + 15 + text_height + layout.spacing.section, ops


Section = Callable[[float, Invoice, InvoiceLayout], SectionResult]

SECTIONS: Tuple[Section, ...] = (
    draw_issuer_block,
    draw_title_block,
    draw_client_box,
    draw_details_table,
    draw_description,
    draw_items_table,
    draw_tax_summary,
    draw_total_section,
    draw_payment_info,
    draw_observations,
)


def render_invoice(
    invoice: Invoice,
    layout: InvoiceLayout = DEFAULT_LAYOUT,
    sections: Sequence[Section] = SECTIONS,
) -> RenderedDocument:
    """
    Fold the section functions over the cursor.

    Args:
        invoice: Invoice with items, client and company loaded
        layout: Document layout
        sections: Section functions, in drawing order

    Returns:
        RenderedDocument with all draw operations and the final cursor
    """
    cursor = layout.margins.top
    ops: List[DrawOp] = []
    for section in sections:
        cursor, section_ops = section(cursor, invoice, layout)
        ops.extend(section_ops)
    return RenderedDocument(ops=tuple(ops), extent=cursor)


# ============================================================================
# Pagination
# ============================================================================


@dataclass(frozen=True)
class Page:
    """Draw operations of one page, already shifted into its coordinates."""

    number: int
    ops: Tuple[DrawOp, ...]


def _text_lines(op: TextOp, layout: InvoiceLayout) -> List[TextOp]:
    """One TextOp per printed line, so long text can break across pages."""
    lines = split_lines(op.text, op.font, op.size, op.width)
    if len(lines) <= 1:
        return [op]
    step = op.size * layout.line_height_factor
    return [replace(op, text=line, y=op.y + index * step) for index, line in enumerate(lines)]


def _vertical_span(op: DrawOp, layout: InvoiceLayout) -> Tuple[float, float]:
    if isinstance(op, TextOp):
        return op.y, op.y + op.size * layout.line_height_factor
    if isinstance(op, (RectOp, BlockOp)):
        return op.y, op.y + op.height
    return min(op.y1, op.y2), max(op.y1, op.y2)


def _shift(op: DrawOp, offset: float) -> DrawOp:
    if not offset:
        return op
    if isinstance(op, LineOp):
        return replace(op, y1=op.y1 - offset, y2=op.y2 - offset)
    return replace(op, y=op.y - offset)


def paginate(document: RenderedDocument, layout: InvoiceLayout = DEFAULT_LAYOUT) -> Tuple[Page, ...]:
    """
    Split a rendered document into pages.

    WHY: Sections draw on one tall strip. Invoices with many items or long
    observations would run past the bottom of an A4 sheet and be clipped.

    HOW: Operations are taken in drawing order, wrapped text one line at a
    time. When an operation would end below the bottom margin, a new page
    starts and that operation, plus everything after it, moves up so it
    begins under the title block. A BlockOp breaks the same way, which
    keeps a whole item row together; blocks are dropped from the output.
    Operations are never split further, so a single rectangle taller than
    a page still overflows. The "1 / 1" indicator from draw_title_block is
    replaced on the first page and a new one is added to every following
    page.

    Args:
        document: Output of render_invoice
        layout: Document layout

    Returns:
        Pages in order, at least one
    """
    limit = layout.page_size[1] - layout.margins.bottom
    top = layout.title_box.y + layout.title_box.height + layout.spacing.section
    pages: List[List[DrawOp]] = [[]]
    offset = 0.0

    for op in document.ops:
        parts = _text_lines(op, layout) if isinstance(op, TextOp) else [op]
        for part in parts:
            start, end = _vertical_span(part, layout)
            if end - offset > limit and start - offset > top:
                offset = start - top
                pages.append([])
            if not isinstance(part, BlockOp):
                pages[-1].append(_shift(part, offset))

    total = len(pages)
    placeholder = page_indicator_op(layout, 1, 1)
    result = []
    for number, page_ops in enumerate(pages, start=1):
        indicator = page_indicator_op(layout, number, total)
        if number == 1:
            page_ops = [indicator if op == placeholder else op for op in page_ops]
        else:
            page_ops = [indicator] + page_ops
        result.append(Page(number=number, ops=tuple(page_ops)))
    return tuple(result)


# ============================================================================
# PDF Service
# ============================================================================


class PDFService:
    """
    Service for generating invoice PDFs.

    WHAT: Replays rendered draw operations on a ReportLab canvas.

    HOW: Top-left coordinates are converted to ReportLab's bottom-left
    origin. A text line's top sits at y, so its baseline is one font
    ascent lower.
    """

    def __init__(self, layout: Optional[InvoiceLayout] = None):
        """
        Initialize PDF service.

        Args:
            layout: Document layout (defaults to DEFAULT_LAYOUT)
        """
        self.layout = layout or DEFAULT_LAYOUT

    def _draw_text(self, pdf: canvas.Canvas, op: TextOp, page_height: float) -> None:
        if not op.text:
            return
        pdf.setFont(op.font, op.size)
        ascent = pdfmetrics.getAscent(op.font, op.size)
        line_height = op.size * self.layout.line_height_factor

        for index, line in enumerate(split_lines(op.text, op.font, op.size, op.width)):
            baseline = page_height - (op.y + index * line_height + ascent)
            if op.width is None or op.align == "left":
                pdf.drawString(op.x, baseline, line)
            elif op.align == "center":
                pdf.drawCentredString(op.x + op.width / 2, baseline, line)
            else:
                pdf.drawRightString(op.x + op.width, baseline, line)

    def _draw(self, pdf: canvas.Canvas, op: DrawOp, page_height: float) -> None:
        if isinstance(op, TextOp):
            self._draw_text(pdf, op, page_height)
        elif isinstance(op, RectOp):
            bottom = page_height - op.y - op.height
            if op.fill:
                pdf.saveState()
                pdf.setFillColor(HexColor(op.fill))
                pdf.rect(op.x, bottom, op.width, op.height, stroke=int(op.stroke), fill=1)
                pdf.restoreState()
            else:
                pdf.rect(op.x, bottom, op.width, op.height, stroke=int(op.stroke), fill=0)
        elif isinstance(op, LineOp):
            pdf.line(op.x1, page_height - op.y1, op.x2, page_height - op.y2)
        else:
            raise TypeError(f"Unsupported draw operation: {op!r}")

    def generate_invoice_pdf(self, invoice: Invoice) -> bytes:
        """
        Generate the PDF of an invoice.

        Args:
            invoice: Invoice with items, client and company loaded

        Returns:
            PDF file as bytes

        Raises:
            DocumentRenderError: If any step of rendering fails
        """
        invoice_id = getattr(invoice, "id", None)
        try:
            document = render_invoice(invoice, self.layout)

            buffer = io.BytesIO()
            page_height = self.layout.page_size[1]
            pdf = canvas.Canvas(buffer, pagesize=self.layout.page_size, invariant=1)
            pdf.setTitle(f"{invoice.invoice_series}-{invoice.invoice_number}")

            pages = paginate(document, self.layout)
            for page in pages:
                pdf.setFillColor(HexColor(self.layout.text_color))
                pdf.setStrokeColor(HexColor(self.layout.text_color))
                for op in page.ops:
                    self._draw(pdf, op, page_height)
                pdf.showPage()

            pdf.save()
            pdf_bytes = buffer.getvalue()
            buffer.close()
        except Exception as exc:
            logger.exception(f"Failed to render PDF for invoice {invoice_id}")
            raise DocumentRenderError(invoice_id=invoice_id) from exc

        logger.info(
            f"Generated invoice PDF for invoice {invoice_id} "
            f"({len(pages)} pages, {len(pdf_bytes)} bytes)"
        )
        return pdf_bytes


# ============================================================================
# Module-level convenience functions
# ============================================================================


_pdf_service: Optional[PDFService] = None


def get_pdf_service() -> PDFService:
    """
    Get or create the global PDF service instance.

    WHY: The service holds only the immutable layout, so one instance can
    serve every request.

    Returns:
        PDFService instance
    """
    global _pdf_service

    if _pdf_service is None:
        _pdf_service = PDFService()

    return _pdf_service
