"""Monetary calculations for carts and orders.

Everything here is pure: amounts are derived from line items and never stored
rounded. Rounding and currency formatting are for display only.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .errors import InvalidQuantityError
from .models import LineItem

DELIVERY_FEE = 500
TAX_RATE = 0.07
CURRENCY_SYMBOL = "฿"


@dataclass(frozen=True)
class OrderTotals:
    """Derived amounts for a set of line items."""

    subtotal: float
    delivery_fee: float
    tax: float
    total: float


def line_total(item: LineItem) -> float:
    """
    Cost contribution of one line item: price x quantity x days.

    Raises:
        InvalidQuantityError: If quantity or days is below 1.
    """
    if item.quantity < 1:
        raise InvalidQuantityError("quantity", item.quantity)
    if item.days < 1:
        raise InvalidQuantityError("days", item.days)
    return item.price * item.quantity * item.days


def subtotal(items: Iterable[LineItem]) -> float:
    """Sum of line totals, 0 for no items."""
    return sum((line_total(item) for item in items), 0)


def tax(amount: float) -> float:
    return amount * TAX_RATE


def total(subtotal_amount: float, delivery_fee: float, tax_amount: float) -> float:
    return subtotal_amount + delivery_fee + tax_amount


def compute_totals(items: Iterable[LineItem], delivery_fee: float = DELIVERY_FEE) -> OrderTotals:
    """Compute subtotal, tax and grand total for the given items."""
    sub = subtotal(items)
    tax_amount = tax(sub)
    return OrderTotals(
        subtotal=sub,
        delivery_fee=delivery_fee,
        tax=tax_amount,
        total=total(sub, delivery_fee, tax_amount),
    )


def round_for_display(amount: float) -> Decimal:
    """Round to two decimals, half-up."""
    return Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_currency(amount: float) -> str:
    """
    Format an amount for display, e.g. 3210 -> "฿3,210" and 3210.5 -> "฿3,210.50".

    Decimals are only shown when the rounded amount is not a whole number.
    """
    rounded = round_for_display(amount)
    if rounded == rounded.to_integral_value():
        return f"{CURRENCY_SYMBOL}{int(rounded):,}"
    return f"{CURRENCY_SYMBOL}{rounded:,.2f}"
