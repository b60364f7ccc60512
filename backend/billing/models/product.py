"""
SQLAlchemy model for the Product entity
Project: Billing Backend

Product catalog. Invoice items snapshot the price at creation time, so a
later price change never alters an issued invoice.
"""


from __future__ import annotations
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from billing.models import Base
from billing.models.mixins import TimestampMixin, UUIDMixin


class Product(Base, UUIDMixin, TimestampMixin):
    """
    Product catalog entry.

    Attributes:
        id: UUID primary key
        name: product name
        description: free text description
        price: list price (positive, 2 decimals)
        category: free text category
        sku: stock keeping unit, unique when present
        created_at: record creation time
        updated_at: record last update time
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Product name",
    )

    description: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Product description",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        doc="List price",
    )

    category: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Product category",
    )

    sku: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        unique=True,
        doc="Stock keeping unit (unique when present)",
    )

    __table_args__ = (
        Index("ix_products_name", "name"),
        Index("ix_products_category", "category"),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, sku={self.sku})>"
