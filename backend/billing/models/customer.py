"""
SQLAlchemy model for the Customer entity
Project: Billing Backend

Customer registry. Invoices reference customers by identifier.
"""


from __future__ import annotations
from typing import Optional, TYPE_CHECKING, List

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing.models import Base
from billing.models.mixins import TimestampMixin, UUIDMixin

# Type hints for relationships (avoids circular imports)
if TYPE_CHECKING:
    from billing.models.invoice import Invoice


class Customer(Base, UUIDMixin, TimestampMixin):
    """
    Customer registry.

    Attributes:
        id: UUID primary key
        name: customer or company name
        email: contact email, unique across customers
        phone: phone number
        address: street address
        city: city
        state: state / region
        zip_code: postal code
        country: country
        created_at: record creation time
        updated_at: record last update time

    Relationships:
        invoices: invoices issued to the customer
    """

    __tablename__ = "customers"

    # ------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Customer or company name",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="Contact email (unique)",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Phone number",
    )

    # ------------------------------------------------------------
    # Address
    # ------------------------------------------------------------
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="customer",
        lazy="noload",
        passive_deletes="all",
        doc="Invoices issued to the customer",
    )

    __table_args__ = (
        Index("ix_customers_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name}, email={self.email})>"
