"""
Service layer for invoices
Project: Billing Backend

Business logic for:
- creating invoices (number allocation, totals from the line items)
- partial updates with wholesale item replacement and total recomputation
- explicit status changes and the overdue sweep
- payment reconciliation against the outstanding balance
- aggregate statistics per status

Every mutating method runs in one transaction and commits it; any failure
rolls the whole operation back.
"""

import datetime
import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from billing.core.config import settings
from billing.core.exceptions import ConflictError, NotFoundError
from billing.models import Customer, Invoice, InvoiceItem, Payment, Product
from billing.schemas.common import PageParams
from billing.schemas.invoice import (
    InvoiceCreate,
    InvoiceFilters,
    InvoiceItemCreate,
    InvoiceStatistics,
    InvoiceStatus,
    InvoiceUpdate,
    PaymentCreate,
)
from billing.services.lifecycle import (
    OVERDUE_CANDIDATE_STATUSES,
    apply_status,
    check_payment_allowed,
)
from billing.services.numbering import allocate_invoice_number
from billing.services.paging import count_rows, order_clause
from billing.services.reconciliation import evaluate_payment
from billing.services.statistics import summarize_status_rows
from billing.services.totals import compute_invoice_totals, lines_from, line_total

# Logger for this module
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "number": Invoice.number,
    "issue_date": Invoice.issue_date,
    "due_date": Invoice.due_date,
    "total": Invoice.total,
    "status": Invoice.status,
    "created_at": Invoice.created_at,
    "updated_at": Invoice.updated_at,
}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class InvoiceService:
    """
    Invoice, item and payment operations.

    Args:
        allow_payments_on_cancelled: accept payments against CANCELLED
            invoices (default: the configured setting)
    """

    def __init__(self, allow_payments_on_cancelled: Optional[bool] = None) -> None:
        if allow_payments_on_cancelled is None:
            allow_payments_on_cancelled = settings.allow_payments_on_cancelled
        self.allow_payments_on_cancelled = allow_payments_on_cancelled

    # ------------------------------------------------------------
    # Read
    # ------------------------------------------------------------

    async def get_all(
        self,
        db: AsyncSession,
        filters: Optional[InvoiceFilters] = None,
        params: Optional[PageParams] = None,
    ) -> tuple[list[Invoice], int]:
        """
        Paginated list of invoices.

        Args:
            db: database session
            filters: status, customer, issue date range, total range
            params: paging and sorting

        Returns:
            Tuple of (invoices, total count)
        """
        filters = filters or InvoiceFilters()
        params = params or PageParams()

        conditions = []
        if filters.status:
            conditions.append(Invoice.status == filters.status.value)
        if filters.customer_id:
            conditions.append(Invoice.customer_id == filters.customer_id)
        if filters.from_date:
            conditions.append(Invoice.issue_date >= filters.from_date)
        if filters.to_date:
            conditions.append(Invoice.issue_date <= filters.to_date)
        if filters.min_amount is not None:
            conditions.append(Invoice.total >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(Invoice.total <= filters.max_amount)

        stmt = select(Invoice)
        if conditions:
            stmt = stmt.where(*conditions)

        total = await count_rows(db, stmt)

        stmt = (
            stmt.options(
                selectinload(Invoice.customer),
                selectinload(Invoice.items).selectinload(InvoiceItem.product),
                selectinload(Invoice.payments),
            )
            .order_by(order_clause(params, SORTABLE_FIELDS, Invoice.created_at))
            .offset(params.offset)
            .limit(params.limit)
        )
        result = await db.execute(stmt)
        invoices = list(result.scalars().all())

        logger.debug("Fetched %s invoices of %s (page %s)", len(invoices), total, params.page)
        return invoices, total

    async def get_by_id(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
        for_update: bool = False,
    ) -> Invoice:
        """
        Fetch an invoice with customer, items and payments.

        Args:
            db: database session
            invoice_id: UUID of the invoice
            for_update: lock the invoice row until the transaction ends

        Raises:
            NotFoundError: the invoice does not exist
        """
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(
                selectinload(Invoice.customer),
                selectinload(Invoice.items).selectinload(InvoiceItem.product),
                selectinload(Invoice.payments),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Invoice)

        result = await db.execute(stmt)
        invoice = result.scalar_one_or_none()

        if invoice is None:
            logger.warning("Invoice not found: %s", invoice_id)
            raise NotFoundError(f"Invoice {invoice_id} not found")

        return invoice

    async def list_payments(self, db: AsyncSession, invoice_id: uuid.UUID) -> list[Payment]:
        """Payments of an invoice, newest first."""
        invoice = await self.get_by_id(db, invoice_id)
        return list(invoice.payments)

    # ------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------

    async def create(self, db: AsyncSession, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice with its items.

        Steps:
        1. Customer and products must exist
        2. Totals from the items and the tax rate (default 0)
        3. Number allocation under the numbering lock
        4. Insert header and items, commit

        Raises:
            NotFoundError: unknown customer or product
            InvalidInputError: invalid items or tax rate
            ConflictError: number collision or database error
        """
        await self._ensure_customer_exists(db, data.customer_id)
        await self._ensure_products_exist(db, (item.product_id for item in data.items))

        tax_rate = data.tax_rate if data.tax_rate is not None else 0
        totals = compute_invoice_totals(lines_from(data.items), tax_rate)

        try:
            number = await allocate_invoice_number(db)

            invoice = Invoice(
                number=number,
                customer_id=data.customer_id,
                due_date=data.due_date,
                tax_rate=tax_rate,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                total=totals.total,
                status=InvoiceStatus.DRAFT.value,
                notes=data.notes,
            )
            invoice.items = self._build_items(data.items)
            db.add(invoice)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("IntegrityError creating invoice: %s", e.orig)
            raise ConflictError("Invoice number already in use, retry the request")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error creating invoice: %s - %s", e.__class__.__name__, e)
            raise ConflictError("Database error creating the invoice")

        logger.info(
            "Created invoice %s (%s) for customer %s: subtotal %s, tax %s, total %s",
            invoice.number, invoice.id, invoice.customer_id,
            totals.subtotal, totals.tax_amount, totals.total,
        )
        return await self.get_by_id(db, invoice.id)

    async def update(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """
        Apply a partial update.

        Sent `items` replace the whole item set. The totals are recomputed
        whenever the items or the tax rate change, reusing the stored tax
        rate or the stored items for the part not sent.

        Raises:
            NotFoundError: unknown invoice, customer or product
            InvalidInputError: invalid items or tax rate
            ConflictError: database error
        """
        invoice = await self.get_by_id(db, invoice_id, for_update=True)
        fields = data.model_fields_set

        if "customer_id" in fields and data.customer_id != invoice.customer_id:
            await self._ensure_customer_exists(db, data.customer_id)
        if "items" in fields:
            await self._ensure_products_exist(db, (item.product_id for item in data.items))

        if "items" in fields or "tax_rate" in fields:
            tax_rate = data.tax_rate if "tax_rate" in fields else invoice.tax_rate
            source = data.items if "items" in fields else invoice.items
            totals = compute_invoice_totals(lines_from(source), tax_rate)

            if "items" in fields:
                invoice.items.clear()
                await db.flush()
                invoice.items.extend(self._build_items(data.items))

            invoice.tax_rate = tax_rate
            invoice.subtotal = totals.subtotal
            invoice.tax_amount = totals.tax_amount
            invoice.total = totals.total
            logger.info(
                "Invoice %s totals recomputed: subtotal %s, tax %s, total %s",
                invoice.number, totals.subtotal, totals.tax_amount, totals.total,
            )

        if "customer_id" in fields:
            invoice.customer_id = data.customer_id
        if "due_date" in fields:
            invoice.due_date = data.due_date
        if "status" in fields:
            invoice.status, _ = apply_status(invoice.status, data.status)
        if "notes" in fields:
            invoice.notes = data.notes

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("IntegrityError updating invoice %s: %s", invoice_id, e.orig)
            raise ConflictError("Error updating the invoice")
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error updating invoice: %s - %s", e.__class__.__name__, e)
            raise ConflictError("Database error updating the invoice")

        logger.info("Updated invoice %s (fields: %s)", invoice.number, ", ".join(sorted(fields)) or "-")
        return await self.get_by_id(db, invoice_id)

    async def delete(self, db: AsyncSession, invoice_id: uuid.UUID) -> None:
        """
        Delete an invoice together with its items and payments.

        Raises:
            NotFoundError: the invoice does not exist
        """
        invoice = await self.get_by_id(db, invoice_id)
        number = invoice.number

        try:
            await db.delete(invoice)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error deleting invoice %s: %s", invoice_id, e)
            raise ConflictError("Database error deleting the invoice")

        logger.info("Deleted invoice %s (%s)", number, invoice_id)

    # ------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------

    async def update_status(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
        new_status: InvoiceStatus,
    ) -> Invoice:
        """
        Set the status explicitly. Setting the current status is a no-op.

        Raises:
            NotFoundError: the invoice does not exist
        """
        invoice = await self.get_by_id(db, invoice_id, for_update=True)
        old_status = invoice.status
        status, changed = apply_status(old_status, new_status)

        if not changed:
            logger.debug("Invoice %s already %s, nothing to do", invoice.number, status)
            # Releases the row lock; nothing was changed
            await db.commit()
            return invoice

        invoice.status = status
        await db.commit()

        logger.info("Invoice %s status: %s -> %s", invoice.number, old_status, status)
        return await self.get_by_id(db, invoice_id)

    async def mark_overdue_invoices(
        self,
        db: AsyncSession,
        now: Optional[datetime.datetime] = None,
    ) -> int:
        """
        Overdue sweep: every sweep candidate (SENT) past its due date becomes OVERDUE.

        One UPDATE statement; running it again changes nothing.

        Returns:
            Number of invoices moved to OVERDUE
        """
        now = now or _utcnow()
        stmt = (
            update(Invoice)
            .where(
                Invoice.status.in_(sorted(OVERDUE_CANDIDATE_STATUSES)),
                Invoice.due_date < now,
            )
            .values(status=InvoiceStatus.OVERDUE.value, updated_at=now)
            .returning(Invoice.id)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await db.execute(stmt)
            updated = len(result.scalars().all())
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Overdue sweep failed: %s", e)
            raise ConflictError("Database error during the overdue sweep")

        if updated:
            logger.info("Overdue sweep: %s invoices marked OVERDUE", updated)
        else:
            logger.debug("Overdue sweep: no invoices past due")
        return updated

    # ------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------

    async def add_payment(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
        payment_data: PaymentCreate,
    ) -> Payment:
        """
        Record a payment against an invoice.

        The invoice row stays locked (SELECT ... FOR UPDATE) until commit, so
        concurrent payments on the same invoice are applied one at a time.
        The invoice becomes PAID when the payments reach its total.

        Raises:
            NotFoundError: the invoice does not exist
            InvoiceStateError: the invoice is CANCELLED and payments on
                cancelled invoices are disabled
            OverpaymentError: the amount exceeds the remaining balance
        """
        invoice = await self.get_by_id(db, invoice_id, for_update=True)

        try:
            check_payment_allowed(invoice.status, self.allow_payments_on_cancelled)
            decision = evaluate_payment(
                invoice.total,
                [p.amount for p in invoice.payments],
                payment_data.amount,
            )
        except (ConflictError, ValueError) as e:
            await db.rollback()
            logger.warning("Payment rejected on invoice %s: %s", invoice.number, e)
            raise

        payment = Payment(
            invoice_id=invoice.id,
            amount=payment_data.amount,
            method=payment_data.method.value,
            date=payment_data.date or _utcnow(),
            reference=payment_data.reference,
            notes=payment_data.notes,
        )
        db.add(payment)

        if decision.settles_invoice:
            invoice.status = InvoiceStatus.PAID.value

        try:
            await db.commit()
            await db.refresh(payment)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error recording payment on invoice %s: %s", invoice_id, e)
            raise ConflictError("Database error recording the payment")

        logger.info(
            "Payment %s of %s (%s) on invoice %s, remaining %s%s",
            payment.id, payment.amount, payment.method, invoice.number,
            decision.remaining - payment.amount,
            ", invoice PAID" if decision.settles_invoice else "",
        )
        return payment

    # ------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------

    async def get_statistics(self, db: AsyncSession) -> InvoiceStatistics:
        """Counts per status, collected and pending revenue."""
        stmt = select(
            Invoice.status,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.total), 0),
        ).group_by(Invoice.status)
        result = await db.execute(stmt)
        return summarize_status_rows(result.all())

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    @staticmethod
    def _build_items(items: list[InvoiceItemCreate]) -> list[InvoiceItem]:
        return [
            InvoiceItem(
                product_id=item.product_id,
                position=position,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total=line_total(item.quantity, item.unit_price),
            )
            for position, item in enumerate(items, start=1)
        ]

    async def _ensure_customer_exists(self, db: AsyncSession, customer_id: uuid.UUID) -> None:
        result = await db.execute(select(Customer.id).where(Customer.id == customer_id))
        if result.scalar_one_or_none() is None:
            logger.warning("Invoice references unknown customer %s", customer_id)
            raise NotFoundError(f"Customer {customer_id} not found")

    async def _ensure_products_exist(
        self,
        db: AsyncSession,
        product_ids: Iterable[uuid.UUID],
    ) -> None:
        """
        Raises:
            NotFoundError: at least one product does not exist
        """
        wanted = set(product_ids)
        result = await db.execute(select(Product.id).where(Product.id.in_(wanted)))
        found = set(result.scalars().all())
        missing = wanted - found
        if missing:
            logger.warning("Invoice references unknown products: %s", missing)
            raise NotFoundError(
                "One or more products not found",
                extra={"missing_product_ids": sorted(str(m) for m in missing)},
            )
