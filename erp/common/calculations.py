"""
Line and document totals for priced documents (sales and purchasing).

All amounts are Decimal rounded half-up to cents. Percentages are 0-100.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class LineAmounts(NamedTuple):
    line_subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal


class DocumentTotals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def compute_line(quantity, unit_price, discount_percentage=0, tax_rate=0) -> LineAmounts:
    """
    subtotal = quantity x unit_price
    discount = subtotal x discount%
    tax      = (subtotal - discount) x tax%
    total    = subtotal - discount + tax
    """
    subtotal = money(Decimal(str(quantity)) * Decimal(str(unit_price)))
    discount = money(subtotal * Decimal(str(discount_percentage or 0)) / HUNDRED)
    taxable = subtotal - discount
    tax = money(taxable * Decimal(str(tax_rate or 0)) / HUNDRED)
    return LineAmounts(subtotal, discount, tax, taxable + tax)


def summarize(lines: Iterable, extra: Optional[Decimal] = None) -> DocumentTotals:
    """Sum line amounts; `extra` (shipping and similar charges) is added to the total only."""
    subtotal = discount = tax = ZERO
    for line in lines:
        subtotal += Decimal(line.line_subtotal)
        discount += Decimal(line.discount_amount)
        tax += Decimal(line.tax_amount)
    total = subtotal - discount + tax + money(extra or 0)
    return DocumentTotals(money(subtotal), money(discount), money(tax), money(total))


def fill_document(document, item_model, lines) -> None:
    """Replace the document lines (dicts of item columns) and recompute its totals."""
    document.items.clear()
    for line in lines:
        document.items.append(item_model(tenant_id=document.tenant_id, **line))
    totals = summarize(document.items)
    document.subtotal = totals.subtotal
    document.discount_amount = totals.discount_amount
    document.tax_amount = totals.tax_amount
    document.total_amount = totals.total_amount
