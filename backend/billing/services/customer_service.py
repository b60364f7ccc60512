"""
Service layer for the Customer entity
Project: Billing Backend

Business logic for the customer registry:
- proactive uniqueness check of the email
- filtered, sorted, paginated listing
- detail with invoice count and most recent invoices
- deletion refused while invoices reference the customer
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.exceptions import ConflictError, DuplicateError, NotFoundError
from billing.models import Customer, Invoice
from billing.schemas.common import PageParams
from billing.schemas.customer import CustomerCreate, CustomerFilters, CustomerUpdate
from billing.services.paging import count_rows, order_clause

# Logger for this module
logger = logging.getLogger(__name__)

RECENT_INVOICES_LIMIT = 10

SORTABLE_FIELDS = {
    "name": Customer.name,
    "email": Customer.email,
    "city": Customer.city,
    "country": Customer.country,
    "created_at": Customer.created_at,
    "updated_at": Customer.updated_at,
}


class CustomerService:
    """
    CRUD operations on customers.

    Methods only flush; the router owns the transaction and commits.

    Usage with Dependency Injection:
        @router.get("/customers")
        async def list_customers(service: CustomerService = Depends(get_customer_service)):
            ...
    """

    async def get_all(
        self,
        db: AsyncSession,
        filters: Optional[CustomerFilters] = None,
        params: Optional[PageParams] = None,
    ) -> tuple[list[Customer], int]:
        """
        Paginated list of customers.

        Args:
            db: database session
            filters: optional search/location filters
            params: paging and sorting

        Returns:
            Tuple of (customers, total count)
        """
        filters = filters or CustomerFilters()
        params = params or PageParams()

        conditions = []
        if filters.search:
            term = f"%{filters.search}%"
            conditions.append(or_(Customer.name.ilike(term), Customer.email.ilike(term)))
        if filters.city:
            conditions.append(Customer.city.ilike(f"%{filters.city}%"))
        if filters.state:
            conditions.append(Customer.state.ilike(f"%{filters.state}%"))
        if filters.country:
            conditions.append(Customer.country.ilike(f"%{filters.country}%"))

        stmt = select(Customer)
        if conditions:
            stmt = stmt.where(*conditions)

        total = await count_rows(db, stmt)

        stmt = (
            stmt.order_by(order_clause(params, SORTABLE_FIELDS, Customer.created_at))
            .offset(params.offset)
            .limit(params.limit)
        )
        result = await db.execute(stmt)
        customers = list(result.scalars().all())

        logger.debug(
            "Fetched %s customers of %s (page %s)", len(customers), total, params.page
        )
        return customers, total

    async def get_by_id(self, db: AsyncSession, customer_id: uuid.UUID) -> Customer:
        """
        Fetch a customer by ID.

        Raises:
            NotFoundError: the customer does not exist
        """
        result = await db.execute(select(Customer).where(Customer.id == customer_id))
        customer = result.scalar_one_or_none()

        if customer is None:
            logger.warning("Customer not found: %s", customer_id)
            raise NotFoundError(f"Customer {customer_id} not found")

        return customer

    async def get_detail(
        self,
        db: AsyncSession,
        customer_id: uuid.UUID,
    ) -> tuple[Customer, int, list[Invoice]]:
        """
        Customer with invoice count and the most recent invoices.

        Returns:
            Tuple of (customer, invoice count, up to 10 newest invoices)
        """
        customer = await self.get_by_id(db, customer_id)

        count_result = await db.execute(
            select(func.count(Invoice.id)).where(Invoice.customer_id == customer_id)
        )
        invoice_count = count_result.scalar() or 0

        recent_result = await db.execute(
            select(Invoice)
            .where(Invoice.customer_id == customer_id)
            .order_by(Invoice.created_at.desc())
            .limit(RECENT_INVOICES_LIMIT)
        )
        recent = list(recent_result.scalars().all())

        return customer, invoice_count, recent

    async def create(self, db: AsyncSession, customer_data: CustomerCreate) -> Customer:
        """
        Create a customer.

        Raises:
            DuplicateError: the email is already registered
            ConflictError: unexpected database error
        """
        existing = await self._check_email_exists(db, customer_data.email)
        if existing:
            logger.warning(
                "Attempt to create customer with duplicate email: %s (existing: %s)",
                customer_data.email, existing.id,
            )
            raise DuplicateError(f"Email '{customer_data.email}' is already registered")

        customer = Customer(**customer_data.model_dump())

        try:
            db.add(customer)
            await db.flush()
            await db.refresh(customer)
        except IntegrityError as e:
            logger.error("IntegrityError creating customer: %s", e.orig)
            await db.rollback()
            if "email" in str(e.orig).lower():
                raise DuplicateError(f"Email '{customer_data.email}' is already registered")
            raise ConflictError("Error creating the customer")
        except SQLAlchemyError as e:
            logger.error("Database error creating customer: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Database error creating the customer")

        logger.info("Created customer: %s - %s <%s>", customer.id, customer.name, customer.email)
        return customer

    async def update(
        self,
        db: AsyncSession,
        customer_id: uuid.UUID,
        customer_data: CustomerUpdate,
    ) -> Customer:
        """
        Apply a partial update; only the fields present in the payload change.

        Raises:
            NotFoundError: the customer does not exist
            DuplicateError: the new email belongs to another customer
            ConflictError: unexpected database error
        """
        customer = await self.get_by_id(db, customer_id)
        update_data = customer_data.model_dump(exclude_unset=True)

        new_email = update_data.get("email")
        if new_email and new_email != customer.email:
            existing = await self._check_email_exists(db, new_email, exclude_id=customer_id)
            if existing:
                logger.warning(
                    "Attempt to update customer %s with duplicate email: %s",
                    customer_id, new_email,
                )
                raise DuplicateError(f"Email '{new_email}' is already registered")

        for field, value in update_data.items():
            setattr(customer, field, value)

        try:
            await db.flush()
            await db.refresh(customer)
        except IntegrityError as e:
            logger.error("IntegrityError updating customer %s: %s", customer_id, e.orig)
            await db.rollback()
            if "email" in str(e.orig).lower():
                raise DuplicateError(f"Email '{new_email}' is already registered")
            raise ConflictError("Error updating the customer")
        except SQLAlchemyError as e:
            logger.error("Database error updating customer: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Database error updating the customer")

        logger.info("Updated customer: %s (fields: %s)", customer.id, ", ".join(update_data) or "-")
        return customer

    async def delete(self, db: AsyncSession, customer_id: uuid.UUID) -> None:
        """
        Delete a customer.

        Raises:
            NotFoundError: the customer does not exist
            ConflictError: invoices still reference the customer
        """
        customer = await self.get_by_id(db, customer_id)

        count_result = await db.execute(
            select(func.count(Invoice.id)).where(Invoice.customer_id == customer_id)
        )
        invoice_count = count_result.scalar() or 0
        if invoice_count:
            logger.warning(
                "Refused delete of customer %s: %s invoices reference it",
                customer_id, invoice_count,
            )
            raise ConflictError(
                f"Customer has {invoice_count} invoice(s) and cannot be deleted",
                extra={"invoice_count": invoice_count},
            )

        try:
            await db.delete(customer)
            await db.flush()
        except IntegrityError as e:
            logger.error("IntegrityError deleting customer %s: %s", customer_id, e.orig)
            await db.rollback()
            raise ConflictError("Customer is referenced by other records and cannot be deleted")

        logger.info("Deleted customer: %s - %s", customer.id, customer.name)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def _check_email_exists(
        self,
        db: AsyncSession,
        email: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Customer]:
        """Customer already using `email`, ignoring `exclude_id`."""
        stmt = select(Customer).where(func.lower(Customer.email) == email.lower())
        if exclude_id:
            stmt = stmt.where(Customer.id != exclude_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
