"""
Aggregate invoice statistics
Project: Billing Backend

Folds (status, count, sum of totals) rows, as returned by a single
GROUP BY status query, into the dashboard figures.
"""

from decimal import Decimal
from typing import Iterable, Tuple

from billing.core.money import ZERO, round_money, to_decimal
from billing.schemas.invoice import InvoiceStatistics, InvoiceStatus
from billing.services.lifecycle import PENDING_STATUSES

StatusRow = Tuple[str, int, Decimal]


def summarize_status_rows(rows: Iterable[StatusRow]) -> InvoiceStatistics:
    """
    Build per-status counts and revenue rollups.

    total_revenue sums PAID invoices; pending_revenue sums DRAFT, SENT and
    OVERDUE. CANCELLED invoices are only counted.
    """
    counts = {s.value: 0 for s in InvoiceStatus}
    revenue = ZERO
    pending = ZERO

    for status, count, amount in rows:
        status = status.value if isinstance(status, InvoiceStatus) else status
        amount = to_decimal(amount) if amount is not None else ZERO
        counts[status] = counts.get(status, 0) + int(count)
        if status == InvoiceStatus.PAID.value:
            revenue += amount
        elif status in PENDING_STATUSES:
            pending += amount

    return InvoiceStatistics(
        total_invoices=sum(counts.values()),
        draft=counts[InvoiceStatus.DRAFT.value],
        sent=counts[InvoiceStatus.SENT.value],
        paid=counts[InvoiceStatus.PAID.value],
        overdue=counts[InvoiceStatus.OVERDUE.value],
        cancelled=counts[InvoiceStatus.CANCELLED.value],
        total_revenue=round_money(revenue),
        pending_revenue=round_money(pending),
    )
