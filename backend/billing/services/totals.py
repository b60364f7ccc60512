"""
Invoice total engine
Project: Billing Backend

Derives subtotal, tax and total of an invoice from its line items and tax
rate. Pure functions, no database access.

Rules:
- subtotal = sum(quantity x unit_price), lines are not rounded before summing
- tax_amount = subtotal x tax_rate
- total = subtotal + tax_amount
Each of the three is rounded to cents from its own unrounded expression.
Unit prices are whole cents, so the subtotal is exact and
total == subtotal + tax_amount holds after rounding.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from billing.core.exceptions import InvalidInputError
from billing.core.money import ZERO, Number, round_money, to_decimal

ONE = Decimal("1")


@dataclass(frozen=True)
class LineInput:
    """Quantity and unit price of one line."""

    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    """Rounded totals of an invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def validate_tax_rate(tax_rate: Optional[Number]) -> Decimal:
    """
    Normalize a tax rate; None means no tax.

    Raises:
        InvalidInputError: the rate is not a number in [0, 1]
    """
    if tax_rate is None:
        return ZERO
    try:
        rate = to_decimal(tax_rate)
    except ValueError as e:
        raise InvalidInputError(f"Invalid tax rate: {tax_rate!r}") from e
    if rate < ZERO or rate > ONE:
        raise InvalidInputError(
            f"Tax rate must be between 0 and 1, got {rate}",
            extra={"field": "tax_rate"},
        )
    return rate


def _validate_line(index: int, line: LineInput) -> Decimal:
    """Check one line and return its unrounded total."""
    quantity = line.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError(
            f"Item {index}: quantity must be an integer",
            extra={"item": index, "field": "quantity"},
        )
    if quantity <= 0:
        raise InvalidInputError(
            f"Item {index}: quantity must be positive",
            extra={"item": index, "field": "quantity"},
        )
    try:
        price = to_decimal(line.unit_price)
    except ValueError as e:
        raise InvalidInputError(f"Item {index}: invalid unit price") from e
    if price <= ZERO:
        raise InvalidInputError(
            f"Item {index}: unit price must be positive",
            extra={"item": index, "field": "unit_price"},
        )
    if price != round_money(price):
        raise InvalidInputError(
            f"Item {index}: unit price cannot have more than 2 decimal places",
            extra={"item": index, "field": "unit_price"},
        )
    return quantity * price


def line_total(quantity: int, unit_price: Number) -> Decimal:
    """Rounded total of a single line (quantity x unit price)."""
    return round_money(_validate_line(1, LineInput(quantity, to_decimal(unit_price))))


def compute_invoice_totals(
    items: Sequence[LineInput],
    tax_rate: Optional[Number] = None,
) -> InvoiceTotals:
    """
    Compute the totals of an invoice.

    Args:
        items: ordered line items, at least one
        tax_rate: fraction in [0, 1]; None is treated as 0

    Returns:
        InvoiceTotals rounded to cents (ROUND_HALF_UP)

    Raises:
        InvalidInputError: empty item list, non-positive or non-integer
            quantity, non-positive price or one with sub-cent digits, tax rate
            outside [0, 1]
    """
    if not items:
        raise InvalidInputError("An invoice needs at least one item")

    rate = validate_tax_rate(tax_rate)
    raw_subtotal = sum(
        (_validate_line(i, line) for i, line in enumerate(items, start=1)),
        ZERO,
    )
    raw_tax = raw_subtotal * rate

    return InvoiceTotals(
        subtotal=round_money(raw_subtotal),
        tax_amount=round_money(raw_tax),
        total=round_money(raw_subtotal + raw_tax),
    )


def lines_from(items: Iterable) -> list[LineInput]:
    """Build LineInputs from anything exposing quantity and unit_price."""
    return [LineInput(item.quantity, to_decimal(item.unit_price)) for item in items]
