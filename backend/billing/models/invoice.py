"""
SQLAlchemy models for invoicing
Project: Billing Backend

Contains:
- Invoice: invoice header with computed totals and status
- InvoiceItem: product lines of the invoice (price snapshot)
- Payment: payments recorded against the invoice (append-only)
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from billing.core.money import sum_money
from billing.models import Base
from billing.models.mixins import TimestampMixin, UUIDMixin

# Type hints for relationships (avoids circular imports)
if TYPE_CHECKING:
    from billing.models.customer import Customer
    from billing.models.product import Product


class Invoice(Base, UUIDMixin, TimestampMixin):
    """
    Invoice header.

    Totals are derived from the items and the tax rate when the invoice is
    created and every time its items are replaced; they are stored, never
    computed on read.

    Attributes:
        id: UUID primary key
        customer_id: UUID of the billed customer
        number: human readable label (PREFIX-YYYY-NNNN), unique
        issue_date: issue time (defaults to creation time)
        due_date: payment due time
        tax_rate: tax rate as a fraction in [0, 1]
        subtotal: sum of quantity x unit price
        tax_amount: subtotal x tax_rate
        total: subtotal + tax_amount
        status: DRAFT, SENT, PAID, OVERDUE or CANCELLED
        notes: free text notes

    Relationships:
        customer: billed customer
        items: ordered line items
        payments: recorded payments, newest first
    """

    __tablename__ = "invoices"

    # ------------------------------------------------------------
    # Relationship columns
    # ------------------------------------------------------------
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID of the billed customer",
    )

    # ------------------------------------------------------------
    # Identification
    # ------------------------------------------------------------
    number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        doc="Invoice label (PREFIX-YYYY-NNNN)",
    )

    issue_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        doc="Issue time",
    )

    due_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Payment due time",
    )

    # ------------------------------------------------------------
    # Amounts
    # ------------------------------------------------------------
    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4),
        nullable=False,
        default=Decimal("0"),
        doc="Tax rate as a fraction (0.08 = 8%)",
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="Sum of the line totals",
    )

    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="Tax on the subtotal",
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="Subtotal plus tax",
    )

    # ------------------------------------------------------------
    # Status and notes
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DRAFT",
        doc="DRAFT, SENT, PAID, OVERDUE, CANCELLED",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Free text notes",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="invoices",
        lazy="selectin",
        doc="Billed customer",
    )

    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceItem.position",
        lazy="selectin",
        doc="Line items in invoice order",
    )

    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Payment.date.desc()",
        lazy="selectin",
        doc="Recorded payments, newest first",
    )

    # ------------------------------------------------------------
    # Computed properties
    # ------------------------------------------------------------
    @property
    def amount_paid(self) -> Decimal:
        """Sum of the recorded payments."""
        return sum_money(p.amount for p in self.payments)

    @property
    def balance_due(self) -> Decimal:
        """Remaining balance: total minus recorded payments."""
        return self.total - self.amount_paid

    # ------------------------------------------------------------
    # Indexes and constraints
    # ------------------------------------------------------------
    __table_args__ = (
        Index("ix_invoices_customer_id", "customer_id"),
        Index("ix_invoices_issue_date", "issue_date"),
        # Overdue sweep: status = 'SENT' AND due_date < now()
        Index("ix_invoices_status_due_date", "status", "due_date"),
        CheckConstraint(
            "status IN ('DRAFT', 'SENT', 'PAID', 'OVERDUE', 'CANCELLED')",
            name="ck_invoices_status",
        ),
        CheckConstraint(
            "tax_rate >= 0 AND tax_rate <= 1",
            name="ck_invoices_tax_rate_range",
        ),
        CheckConstraint("subtotal >= 0", name="ck_invoices_subtotal_positive"),
        CheckConstraint("tax_amount >= 0", name="ck_invoices_tax_amount_positive"),
        CheckConstraint("total >= 0", name="ck_invoices_total_positive"),
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.number}, total={self.total}, status={self.status})>"


class InvoiceItem(Base, UUIDMixin, TimestampMixin):
    """
    Invoice line item.

    Immutable once created: updating the items of an invoice deletes them
    all and recreates the new set. The unit price is a snapshot and is
    never re-read from the product.

    Attributes:
        id: UUID primary key
        invoice_id: UUID of the parent invoice
        product_id: UUID of the referenced product
        position: 1-based order within the invoice
        quantity: positive integer quantity
        unit_price: unit price at creation time
        total: quantity x unit_price

    Relationships:
        invoice: parent invoice
        product: referenced product
    """

    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID of the parent invoice",
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="UUID of the product",
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Order of the line within the invoice",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Quantity",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        doc="Unit price snapshot",
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="quantity x unit_price",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="items",
        doc="Parent invoice",
    )

    product: Mapped["Product"] = relationship(
        "Product",
        lazy="selectin",
        doc="Referenced product",
    )

    __table_args__ = (
        Index("ix_invoice_items_invoice_position", "invoice_id", "position"),
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        CheckConstraint("unit_price > 0", name="ck_invoice_items_unit_price_positive"),
    )

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, product={self.product_id}, qty={self.quantity}, price={self.unit_price})>"


class Payment(Base, UUIDMixin, TimestampMixin):
    """
    Payment recorded against one invoice.

    Append-only: payments are created by the reconciliation flow and never
    updated or deleted by it (they go away only with their invoice).

    Attributes:
        id: UUID primary key
        invoice_id: UUID of the paid invoice
        amount: paid amount (positive)
        method: CASH, CREDIT_CARD, BANK_TRANSFER, CHECK, PAYPAL, OTHER
        date: payment time (defaults to submission time)
        reference: external reference (check number, transfer id, ...)
        notes: free text notes

    Relationships:
        invoice: paid invoice
    """

    __tablename__ = "payments"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID of the paid invoice",
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        doc="Paid amount",
    )

    method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Payment method",
    )

    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Payment time",
    )

    reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="External reference (check number, transfer id, ...)",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Free text notes",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="payments",
        doc="Paid invoice",
    )

    __table_args__ = (
        Index("ix_payments_invoice_id", "invoice_id"),
        Index("ix_payments_date", "date"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "method IN ('CASH', 'CREDIT_CARD', 'BANK_TRANSFER', 'CHECK', 'PAYPAL', 'OTHER')",
            name="ck_payments_method",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, method={self.method})>"
