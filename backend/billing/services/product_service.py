"""
Service layer for the Product entity
Project: Billing Backend

Product catalog: CRUD with SKU uniqueness, filtered listing, usage count
and the ranking of the products most used on invoices.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.exceptions import ConflictError, DuplicateError, NotFoundError
from billing.models import InvoiceItem, Product
from billing.schemas.common import PageParams
from billing.schemas.product import ProductCreate, ProductFilters, ProductUpdate
from billing.services.paging import count_rows, order_clause

# Logger for this module
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "name": Product.name,
    "price": Product.price,
    "category": Product.category,
    "sku": Product.sku,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


class ProductService:
    """
    CRUD operations on the product catalog.

    Methods only flush; the router commits.
    """

    async def get_all(
        self,
        db: AsyncSession,
        filters: Optional[ProductFilters] = None,
        params: Optional[PageParams] = None,
    ) -> tuple[list[Product], int]:
        """
        Paginated list of products.

        Args:
            db: database session
            filters: search, category and price range
            params: paging and sorting

        Returns:
            Tuple of (products, total count)
        """
        filters = filters or ProductFilters()
        params = params or PageParams()

        conditions = []
        if filters.search:
            term = f"%{filters.search}%"
            conditions.append(
                or_(
                    Product.name.ilike(term),
                    Product.description.ilike(term),
                    Product.sku.ilike(term),
                )
            )
        if filters.category:
            conditions.append(Product.category.ilike(f"%{filters.category}%"))
        if filters.min_price is not None:
            conditions.append(Product.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Product.price <= filters.max_price)

        stmt = select(Product)
        if conditions:
            stmt = stmt.where(*conditions)

        total = await count_rows(db, stmt)

        stmt = (
            stmt.order_by(order_clause(params, SORTABLE_FIELDS, Product.created_at))
            .offset(params.offset)
            .limit(params.limit)
        )
        result = await db.execute(stmt)
        products = list(result.scalars().all())

        logger.debug("Fetched %s products of %s (page %s)", len(products), total, params.page)
        return products, total

    async def get_by_id(self, db: AsyncSession, product_id: uuid.UUID) -> Product:
        """
        Raises:
            NotFoundError: the product does not exist
        """
        result = await db.execute(select(Product).where(Product.id == product_id))
        product = result.scalar_one_or_none()

        if product is None:
            logger.warning("Product not found: %s", product_id)
            raise NotFoundError(f"Product {product_id} not found")

        return product

    async def get_detail(self, db: AsyncSession, product_id: uuid.UUID) -> tuple[Product, int]:
        """Product and the number of invoice lines referencing it."""
        product = await self.get_by_id(db, product_id)
        return product, await self._usage_count(db, product_id)

    async def get_popular(self, db: AsyncSession, limit: int = 10) -> list[tuple[Product, int]]:
        """
        Products ranked by the number of invoice lines referencing them.

        Products never invoiced are ranked last with a count of zero.

        Returns:
            List of (product, usage count), most used first
        """
        usage = func.count(InvoiceItem.id).label("usage_count")
        stmt = (
            select(Product, usage)
            .outerjoin(InvoiceItem, InvoiceItem.product_id == Product.id)
            .group_by(Product.id)
            .order_by(usage.desc(), Product.name.asc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return [(product, int(count)) for product, count in result.all()]

    async def create(self, db: AsyncSession, product_data: ProductCreate) -> Product:
        """
        Create a product.

        Raises:
            DuplicateError: the SKU is already in use
            ConflictError: unexpected database error
        """
        if product_data.sku:
            existing = await self._check_sku_exists(db, product_data.sku)
            if existing:
                logger.warning(
                    "Attempt to create product with duplicate SKU: %s (existing: %s)",
                    product_data.sku, existing.id,
                )
                raise DuplicateError(f"SKU '{product_data.sku}' is already in use")

        product = Product(**product_data.model_dump())

        try:
            db.add(product)
            await db.flush()
            await db.refresh(product)
        except IntegrityError as e:
            logger.error("IntegrityError creating product: %s", e.orig)
            await db.rollback()
            if "sku" in str(e.orig).lower():
                raise DuplicateError(f"SKU '{product_data.sku}' is already in use")
            raise ConflictError("Error creating the product")
        except SQLAlchemyError as e:
            logger.error("Database error creating product: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Database error creating the product")

        logger.info("Created product: %s - %s (price %s)", product.id, product.name, product.price)
        return product

    async def update(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        product_data: ProductUpdate,
    ) -> Product:
        """
        Apply a partial update. Issued invoices keep their price snapshot.

        Raises:
            NotFoundError: the product does not exist
            DuplicateError: the new SKU belongs to another product
        """
        product = await self.get_by_id(db, product_id)
        update_data = product_data.model_dump(exclude_unset=True)

        new_sku = update_data.get("sku")
        if new_sku and new_sku != product.sku:
            existing = await self._check_sku_exists(db, new_sku, exclude_id=product_id)
            if existing:
                logger.warning(
                    "Attempt to update product %s with duplicate SKU: %s", product_id, new_sku
                )
                raise DuplicateError(f"SKU '{new_sku}' is already in use")

        old_price: Decimal = product.price
        for field, value in update_data.items():
            setattr(product, field, value)

        try:
            await db.flush()
            await db.refresh(product)
        except IntegrityError as e:
            logger.error("IntegrityError updating product %s: %s", product_id, e.orig)
            await db.rollback()
            if "sku" in str(e.orig).lower():
                raise DuplicateError(f"SKU '{new_sku}' is already in use")
            raise ConflictError("Error updating the product")
        except SQLAlchemyError as e:
            logger.error("Database error updating product: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Database error updating the product")

        if "price" in update_data and product.price != old_price:
            logger.info("Product %s price changed: %s -> %s", product.id, old_price, product.price)
        logger.info("Updated product: %s - %s", product.id, product.name)
        return product

    async def delete(self, db: AsyncSession, product_id: uuid.UUID) -> None:
        """
        Delete a product.

        Raises:
            NotFoundError: the product does not exist
            ConflictError: invoice lines still reference the product
        """
        product = await self.get_by_id(db, product_id)

        usage = await self._usage_count(db, product_id)
        if usage:
            logger.warning("Refused delete of product %s: used on %s invoice lines", product_id, usage)
            raise ConflictError(
                f"Product is used on {usage} invoice line(s) and cannot be deleted",
                extra={"usage_count": usage},
            )

        try:
            await db.delete(product)
            await db.flush()
        except IntegrityError as e:
            logger.error("IntegrityError deleting product %s: %s", product_id, e.orig)
            await db.rollback()
            raise ConflictError("Product is referenced by invoices and cannot be deleted")

        logger.info("Deleted product: %s - %s", product.id, product.name)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def _usage_count(self, db: AsyncSession, product_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count(InvoiceItem.id)).where(InvoiceItem.product_id == product_id)
        )
        return result.scalar() or 0

    async def _check_sku_exists(
        self,
        db: AsyncSession,
        sku: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Product]:
        stmt = select(Product).where(Product.sku == sku)
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
