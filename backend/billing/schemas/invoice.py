"""
Pydantic schemas for invoicing
Project: Billing Backend

Contains:
- Enums: InvoiceStatus, PaymentMethod
- Schemas for InvoiceItem
- Schemas for Payment
- Schemas for Invoice
- Filters and statistics
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from billing.schemas.common import CamelModel
from billing.schemas.product import MAX_PRICE, ProductSummary

MAX_QUANTITY = 10000
MAX_ITEMS = 100


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """Supported payment methods."""
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    PAYPAL = "PAYPAL"
    OTHER = "OTHER"


def _aware(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Naive datetimes are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


# -------------------------------------------------------------------
# Schemas for InvoiceItem
# -------------------------------------------------------------------

class InvoiceItemCreate(CamelModel):
    """One line of an invoice being created or replaced."""

    product_id: uuid.UUID = Field(..., description="UUID of the product")
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY, description="Quantity")
    unit_price: Decimal = Field(
        ...,
        gt=0,
        le=MAX_PRICE,
        decimal_places=2,
        description="Unit price charged on this invoice",
    )


class InvoiceItemRead(CamelModel):
    """Invoice line as returned by the API."""

    id: uuid.UUID
    product_id: uuid.UUID
    product: Optional[ProductSummary] = None
    position: int
    quantity: int
    unit_price: Decimal
    total: Decimal


# -------------------------------------------------------------------
# Schemas for Payment
# -------------------------------------------------------------------

class PaymentCreate(CamelModel):
    """Payment submitted against an invoice."""

    amount: Decimal = Field(..., gt=0, le=MAX_PRICE, decimal_places=2, description="Paid amount")
    method: PaymentMethod = Field(..., description="Payment method")
    date: Optional[datetime.datetime] = Field(None, description="Payment time (defaults to now)")
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def date_aware(cls, v: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        return _aware(v)


class PaymentRead(CamelModel):
    """Recorded payment."""

    id: uuid.UUID
    invoice_id: uuid.UUID
    amount: Decimal
    method: PaymentMethod
    date: datetime.datetime
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime.datetime


# -------------------------------------------------------------------
# Schemas for Invoice
# -------------------------------------------------------------------

class InvoiceCreate(CamelModel):
    """Payload to create an invoice. The number and the totals are computed."""

    customer_id: uuid.UUID = Field(..., description="UUID of the billed customer")
    due_date: datetime.datetime = Field(..., description="Payment due time")
    items: list[InvoiceItemCreate] = Field(..., min_length=1, max_length=MAX_ITEMS)
    tax_rate: Optional[Decimal] = Field(
        None,
        ge=0,
        le=1,
        decimal_places=4,
        description="Tax rate as a fraction (defaults to 0)",
    )
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("due_date")
    @classmethod
    def due_date_aware(cls, v: datetime.datetime) -> datetime.datetime:
        return _aware(v)


class InvoiceUpdate(CamelModel):
    """
    Partial update of an invoice.

    Sending `items` replaces the whole item set and recomputes the totals;
    sending only `tax_rate` recomputes the totals over the current items.
    `notes` may be cleared with null, the other fields may not.
    """

    customer_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime.datetime] = None
    status: Optional[InvoiceStatus] = None
    items: Optional[list[InvoiceItemCreate]] = Field(None, min_length=1, max_length=MAX_ITEMS)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, decimal_places=4)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("due_date")
    @classmethod
    def due_date_aware(cls, v: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        return _aware(v)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "InvoiceUpdate":
        for field in ("customer_id", "due_date", "status", "items", "tax_rate"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class InvoiceStatusUpdate(CamelModel):
    """Explicit status change."""

    status: InvoiceStatus


class CustomerSummary(CamelModel):
    """Compact customer reference embedded in invoices."""

    id: uuid.UUID
    name: str
    email: str


class InvoiceSummary(CamelModel):
    """Invoice header without items and payments (lists, customer detail)."""

    id: uuid.UUID
    number: str
    customer_id: uuid.UUID
    issue_date: datetime.datetime
    due_date: datetime.datetime
    total: Decimal
    status: InvoiceStatus
    created_at: datetime.datetime


class InvoiceRead(InvoiceSummary):
    """Full invoice with customer, items, payments and balance."""

    customer: Optional[CustomerSummary] = None
    items: list[InvoiceItemRead] = Field(default_factory=list)
    payments: list[PaymentRead] = Field(default_factory=list)
    tax_rate: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    notes: Optional[str] = None
    updated_at: datetime.datetime


# -------------------------------------------------------------------
# Filters
# -------------------------------------------------------------------

class InvoiceFilters(BaseModel):
    """
    Invoice list filters.

    `from_date`/`to_date` bound the issue date (inclusive),
    `min_amount`/`max_amount` bound the total (inclusive).
    """

    status: Optional[InvoiceStatus] = None
    customer_id: Optional[uuid.UUID] = None
    from_date: Optional[datetime.datetime] = None
    to_date: Optional[datetime.datetime] = None
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)

    @field_validator("from_date", "to_date")
    @classmethod
    def dates_aware(cls, v: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        return _aware(v)

    @model_validator(mode="after")
    def check_ranges(self) -> "InvoiceFilters":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("from_date cannot be after to_date")
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError("min_amount cannot exceed max_amount")
        return self


# -------------------------------------------------------------------
# Statistics
# -------------------------------------------------------------------

class InvoiceStatistics(CamelModel):
    """Invoice counts per status and revenue rollups."""

    total_invoices: int = 0
    draft: int = 0
    sent: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_revenue: Decimal = Decimal("0.00")
    pending_revenue: Decimal = Decimal("0.00")


class InvoiceBreakdown(CamelModel):
    """Per-status invoice counts shown on the dashboard."""

    draft: int = 0
    sent: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0


class DashboardStats(CamelModel):
    """Dashboard figures."""

    total_customers: int
    total_products: int
    total_invoices: int
    total_revenue: Decimal
    pending_revenue: Decimal
    invoice_breakdown: InvoiceBreakdown


class OverdueSweepResult(CamelModel):
    """Outcome of an overdue sweep."""

    updated: int
