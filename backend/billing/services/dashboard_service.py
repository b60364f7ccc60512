"""
Service layer for the dashboard
Project: Billing Backend

Read-only rollups: registry sizes and invoice statistics.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from billing.models import Customer, Product
from billing.schemas.invoice import DashboardStats, InvoiceBreakdown
from billing.services.invoice_service import InvoiceService

# Logger for this module
logger = logging.getLogger(__name__)


class DashboardService:
    """Aggregates shown on the dashboard."""

    def __init__(self, invoice_service: Optional[InvoiceService] = None) -> None:
        self.invoice_service = invoice_service or InvoiceService()

    async def get_stats(self, db: AsyncSession) -> DashboardStats:
        customers = (await db.execute(select(func.count(Customer.id)))).scalar() or 0
        products = (await db.execute(select(func.count(Product.id)))).scalar() or 0
        stats = await self.invoice_service.get_statistics(db)

        logger.debug(
            "Dashboard: %s customers, %s products, %s invoices",
            customers, products, stats.total_invoices,
        )
        return DashboardStats(
            total_customers=customers,
            total_products=products,
            total_invoices=stats.total_invoices,
            total_revenue=stats.total_revenue,
            pending_revenue=stats.pending_revenue,
            invoice_breakdown=InvoiceBreakdown(
                draft=stats.draft,
                sent=stats.sent,
                paid=stats.paid,
                overdue=stats.overdue,
                cancelled=stats.cancelled,
            ),
        )
