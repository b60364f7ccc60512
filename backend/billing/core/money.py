"""
Money arithmetic
Project: Billing Backend

Every monetary value is a `decimal.Decimal` rounded to cents with
ROUND_HALF_UP (half away from zero for the non-negative amounts handled
here). Floats never enter a computation: inputs are converted through
`str()` first.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Raises:
        ValueError: the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_money(value: Number) -> Decimal:
    """Round to 2 decimal places (ROUND_HALF_UP)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Number]) -> Decimal:
    """Exact sum of the values, starting from Decimal zero."""
    return sum((to_decimal(v) for v in values), ZERO)
