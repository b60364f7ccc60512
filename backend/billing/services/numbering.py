"""
Invoice numbering
Project: Billing Backend

Labels have the form PREFIX-YYYY-NNNN, where NNNN is one more than the
number of invoices already stored, zero-padded to four digits (longer
sequences simply grow past four digits).

Allocation is serialized with a transaction-scoped PostgreSQL advisory
lock: the lock is held until the creating transaction commits or rolls
back, so two concurrent creations never read the same count.
"""

import datetime
import logging
from typing import Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.config import settings
from billing.models import Invoice

# Logger for this module
logger = logging.getLogger(__name__)

# Arbitrary application-wide key for pg_advisory_xact_lock
INVOICE_NUMBER_LOCK_KEY = 0x1A7B_0001


def format_invoice_number(count: int, year: int, prefix: str = "INV") -> str:
    """
    Map the number of existing invoices to the label of the next one.

    Examples:
        format_invoice_number(0, 2024)  -> "INV-2024-0001"
        format_invoice_number(41, 2024) -> "INV-2024-0042"
    """
    if count < 0:
        raise ValueError("count cannot be negative")
    return f"{prefix}-{year}-{count + 1:04d}"


async def allocate_invoice_number(
    db: AsyncSession,
    now: Optional[datetime.datetime] = None,
    prefix: Optional[str] = None,
) -> str:
    """
    Allocate the label of a new invoice inside the current transaction.

    Takes the numbering advisory lock, counts the stored invoices and, if
    the resulting label already exists (possible after deletions), moves
    on to the next free sequence. The unique constraint on
    `invoices.number` stays the final guard.

    Args:
        db: database session; the caller commits
        now: reference time for the year (default: current UTC time)
        prefix: label prefix (default: settings.invoice_number_prefix)

    Returns:
        The allocated label
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    prefix = prefix or settings.invoice_number_prefix

    await db.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": INVOICE_NUMBER_LOCK_KEY},
    )

    count = (await db.execute(select(func.count()).select_from(Invoice))).scalar() or 0

    offset = 0
    while True:
        number = format_invoice_number(count + offset, now.year, prefix)
        taken = (
            await db.execute(select(Invoice.id).where(Invoice.number == number))
        ).scalar_one_or_none()
        if taken is None:
            break
        offset += 1

    if offset:
        logger.info("Invoice number skipped %s taken labels: %s", offset, number)
    return number
