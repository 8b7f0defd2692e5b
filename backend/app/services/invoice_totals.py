"""
Invoice totals calculator.

WHAT: Pure functions computing line amounts, invoice totals and the per-rate
tax breakdown from invoice items.

WHY: Totals are never stored. Listing filters, the dashboard and the PDF
all derive them from the items with these functions, so they cannot
disagree with each other.

HOW: Decimal arithmetic with no intermediate rounding. Rounding to two
decimals happens once, when an amount is displayed. Rounding per line
would drift from rounding the sum on invoices with many lines.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional

from app.core.config import settings

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from turning into binary noise
    return Decimal(str(value))


def resolve_tax_rate(tax_rate: Optional[Any]) -> Decimal:
    """
    Tax rate of an item, falling back to the configured default.

    Args:
        tax_rate: Percentage (21 means 21%) or None

    Returns:
        Tax rate as Decimal
    """
    if tax_rate is None:
        return settings.DEFAULT_TAX_RATE
    return _to_decimal(tax_rate)


def round_amount(amount: Decimal) -> Decimal:
    """Round an amount to cents, half up. Only for display."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    """Amounts of a single item line."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass
class TaxBreakdownEntry:
    """Base and tax accumulated for one tax rate."""

    rate: Decimal
    base: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")


@dataclass
class InvoiceTotals:
    """
    Totals of an invoice.

    Attributes:
        base_amount: Sum of price x quantity over all items
        total_tax: Sum of line taxes
        total_with_tax: base_amount + total_tax
        tax_breakdown: One entry per distinct rate, in first-occurrence order
    """

    base_amount: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    total_with_tax: Decimal = Decimal("0")
    tax_breakdown: List[TaxBreakdownEntry] = field(default_factory=list)


def line_amounts(item: Any) -> LineAmounts:
    """
    Compute subtotal, tax and total of one item.

    Args:
        item: Any object with `price`, `quantity` and `tax_rate` attributes

    Returns:
        LineAmounts for the item
    """
    subtotal = _to_decimal(item.price) * _to_decimal(item.quantity)
    tax = subtotal * (resolve_tax_rate(getattr(item, "tax_rate", None)) / HUNDRED)
    return LineAmounts(subtotal=subtotal, tax=tax, total=subtotal + tax)


def compute_totals(items: Iterable[Any]) -> InvoiceTotals:
    """
    Compute invoice totals and the tax breakdown.

    WHAT: Rates are grouped after quantizing to two decimals, so 21 and
    21.00 share one entry. Entries keep the order in which each rate first
    appears; they are not sorted.

    Args:
        items: Invoice items (ORM rows, request schemas or plain objects)

    Returns:
        InvoiceTotals
    """
    totals = InvoiceTotals()
    by_rate: dict[Decimal, TaxBreakdownEntry] = {}

    for item in items:
        amounts = line_amounts(item)
        totals.base_amount += amounts.subtotal
        totals.total_tax += amounts.tax

        rate = resolve_tax_rate(getattr(item, "tax_rate", None)).quantize(TWO_PLACES)
        entry = by_rate.get(rate)
        if entry is None:
            entry = TaxBreakdownEntry(rate=rate)
            by_rate[rate] = entry
            totals.tax_breakdown.append(entry)
        entry.base += amounts.subtotal
        entry.tax += amounts.tax

    totals.total_with_tax = totals.base_amount + totals.total_tax
    return totals


def invoice_total(invoice: Any) -> Decimal:
    """Total with tax of an invoice, computed from its items."""
    return compute_totals(invoice.items).total_with_tax
