"""
Overdue sweep for cron-style callers: marks every SENT invoice past its
due date as OVERDUE and exits.

    python sweep_overdue.py
"""

import asyncio
import logging
import os
import sys

# Add backend/ to the path so billing.* imports without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from billing.core.config import settings
from billing.core.database import AsyncSessionLocal, engine
from billing.services.invoice_service import InvoiceService

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("sweep_overdue")


async def sweep() -> int:
    try:
        async with AsyncSessionLocal() as session:
            updated = await InvoiceService().mark_overdue_invoices(session)
    finally:
        await engine.dispose()
    logger.info("%s invoice(s) marked OVERDUE", updated)
    return updated


if __name__ == "__main__":
    asyncio.run(sweep())
