"""
Payment reconciliation rules
Project: Billing Backend

Decides whether a payment can be applied to an invoice and whether it
settles it. The transactional part (row lock, insert, status flip) lives
in InvoiceService.add_payment.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from billing.core.exceptions import InvalidInputError, OverpaymentError
from billing.core.money import ZERO, Number, round_money, sum_money, to_decimal


@dataclass(frozen=True)
class PaymentDecision:
    """Outcome of applying one payment to an invoice balance."""

    total_paid: Decimal
    remaining: Decimal
    new_total_paid: Decimal
    settles_invoice: bool


def remaining_balance(total: Number, payment_amounts: Iterable[Number]) -> Decimal:
    """Invoice total minus the sum of the recorded payments."""
    return round_money(to_decimal(total) - sum_money(payment_amounts))


def evaluate_payment(
    total: Number,
    existing_amounts: Iterable[Number],
    amount: Number,
) -> PaymentDecision:
    """
    Check a payment against the outstanding balance.

    A payment equal to the remaining balance is accepted; the invoice is
    settled when the cumulative amount reaches its total.

    Raises:
        InvalidInputError: the amount is not positive
        OverpaymentError: the amount exceeds the remaining balance
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise InvalidInputError("Payment amount must be positive", extra={"field": "amount"})

    existing_amounts = list(existing_amounts)
    total = to_decimal(total)
    total_paid = sum_money(existing_amounts)
    remaining = remaining_balance(total, existing_amounts)

    if amount > remaining:
        raise OverpaymentError(
            f"Payment amount {amount} exceeds remaining balance {remaining}",
            extra={"remaining": str(remaining), "amount": str(amount)},
        )

    new_total_paid = total_paid + amount
    return PaymentDecision(
        total_paid=total_paid,
        remaining=remaining,
        new_total_paid=new_total_paid,
        settles_invoice=new_total_paid >= total,
    )
