"""
Pydantic schemas for the Customer entity
Project: Billing Backend
"""

import datetime
import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from billing.schemas.common import CamelModel
from billing.schemas.invoice import InvoiceSummary


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    """Trim surrounding whitespace; empty strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


# -------------------------------------------------------------------
# Write schemas
# -------------------------------------------------------------------

class CustomerBase(CamelModel):
    """Fields shared by create and read."""

    name: str = Field(..., min_length=1, max_length=100, description="Customer or company name")
    email: EmailStr = Field(..., description="Contact email (unique)")
    phone: Optional[str] = Field(None, max_length=20, description="Phone number")
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)


class CustomerCreate(CustomerBase):
    """Payload to create a customer."""

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone", "address", "city", "state", "zip_code", "country")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class CustomerUpdate(CamelModel):
    """
    Partial update. Only the fields present in the payload are applied;
    optional fields may be cleared with an explicit null.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("phone", "address", "city", "state", "zip_code", "country")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "CustomerUpdate":
        """name and email can be changed but not cleared."""
        for field in ("name", "email"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


# -------------------------------------------------------------------
# Read schemas
# -------------------------------------------------------------------

class CustomerRead(CustomerBase):
    """Customer as returned by the API."""

    id: uuid.UUID
    created_at: datetime.datetime
    updated_at: datetime.datetime


class CustomerDetail(CustomerRead):
    """Customer with invoice count and most recent invoices."""

    invoice_count: int = 0
    recent_invoices: list[InvoiceSummary] = Field(default_factory=list)


# -------------------------------------------------------------------
# Filters
# -------------------------------------------------------------------

class CustomerFilters(BaseModel):
    """
    Customer list filters. Every predicate is optional; the text ones are
    case-insensitive substring matches.
    """

    search: Optional[str] = Field(None, max_length=100, description="Matches name or email")
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
