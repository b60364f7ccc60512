"""
Invoice status lifecycle
Project: Billing Backend

States: DRAFT, SENT, PAID, OVERDUE, CANCELLED. Explicit status changes
are not restricted to a transition table; two rules are automatic:
- a SENT invoice past its due date becomes OVERDUE (overdue sweep)
- an invoice whose payments reach the total becomes PAID
"""

from billing.core.exceptions import InvoiceStateError
from billing.schemas.invoice import InvoiceStatus

ALL_STATUSES = frozenset(s.value for s in InvoiceStatus)

# Statuses whose totals count as revenue still to be collected
PENDING_STATUSES = frozenset({
    InvoiceStatus.DRAFT.value,
    InvoiceStatus.SENT.value,
    InvoiceStatus.OVERDUE.value,
})

# Only these become OVERDUE in the sweep
OVERDUE_CANDIDATE_STATUSES = frozenset({InvoiceStatus.SENT.value})


def _status_value(status) -> str:
    return status.value if isinstance(status, InvoiceStatus) else str(status)


def apply_status(current, requested) -> tuple[str, bool]:
    """
    Resolve an explicit status change.

    Returns:
        (new status, changed); setting the current status again is a no-op

    Raises:
        ValueError: unknown status value
    """
    requested = _status_value(requested)
    if requested not in ALL_STATUSES:
        raise ValueError(f"Unknown invoice status: {requested}")
    current = _status_value(current)
    return requested, requested != current


def check_payment_allowed(status, allow_cancelled: bool = True) -> None:
    """
    Payments are accepted in every status unless CANCELLED invoices are
    closed to payments (`allow_cancelled=False`).

    Raises:
        InvoiceStateError: the invoice is CANCELLED and payments on it are disabled
    """
    if _status_value(status) == InvoiceStatus.CANCELLED.value and not allow_cancelled:
        raise InvoiceStateError("Cannot record a payment on a cancelled invoice")
