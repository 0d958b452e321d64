"""Line and document totals.

Pure arithmetic, no database access: the same functions run when a
document is created and when its totals are recomputed after an edit.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, NamedTuple

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class LineTotals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    taxable: Decimal
    tax_amount: Decimal
    amount: Decimal


class DocumentTotals(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value, default=ZERO) -> Decimal:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    # go through str so floats like 0.1 don't carry binary noise
    return Decimal(str(value))


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _field(item, name):
    # accept request payload dicts as well as line model instances
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def calculate_line(item) -> LineTotals:
    quantity = to_decimal(_field(item, "quantity"))
    unit_price = to_decimal(_field(item, "unit_price"))
    discount = money(_field(item, "discount_amount"))
    tax_rate = to_decimal(_field(item, "tax_rate"))

    subtotal = money(quantity * unit_price)
    taxable = subtotal - discount
    tax = money(taxable * tax_rate / Decimal("100"))
    return LineTotals(
        subtotal=subtotal,
        discount_amount=discount,
        taxable=taxable,
        tax_amount=tax,
        amount=taxable + tax,
    )


def calculate_totals(items: Iterable) -> DocumentTotals:
    """Aggregate totals are plain sums of the (already rounded) lines."""
    subtotal = discount = tax = ZERO
    for item in items:
        line = calculate_line(item)
        subtotal += line.subtotal
        discount += line.discount_amount
        tax += line.tax_amount
    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        total=subtotal - discount + tax,
    )
