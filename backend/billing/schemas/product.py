"""
Pydantic schemas for the Product entity
Project: Billing Backend
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from billing.schemas.common import CamelModel

MAX_PRICE = Decimal("999999.99")


class ProductBase(CamelModel):
    """Fields shared by create and read."""

    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., gt=0, le=MAX_PRICE, decimal_places=2, description="List price")
    category: Optional[str] = Field(None, max_length=50)
    sku: Optional[str] = Field(None, max_length=50, description="Stock keeping unit (unique)")


class ProductCreate(ProductBase):
    """Payload to create a product."""

    @field_validator("sku", "category", "description")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ProductUpdate(CamelModel):
    """Partial update; only the fields present in the payload are applied."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, gt=0, le=MAX_PRICE, decimal_places=2)
    category: Optional[str] = Field(None, max_length=50)
    sku: Optional[str] = Field(None, max_length=50)

    @field_validator("sku", "category", "description")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "ProductUpdate":
        for field in ("name", "price"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class ProductRead(ProductBase):
    """Product as returned by the API."""

    id: uuid.UUID
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ProductDetail(ProductRead):
    """Product with the number of invoice lines referencing it."""

    usage_count: int = 0


class ProductSummary(CamelModel):
    """Compact product reference embedded in invoice items."""

    id: uuid.UUID
    name: str
    sku: Optional[str] = None


class PopularProduct(CamelModel):
    """Product ranked by the number of invoice lines referencing it."""

    id: uuid.UUID
    name: str
    sku: Optional[str] = None
    price: Decimal
    usage_count: int


class ProductFilters(BaseModel):
    """
    Product list filters. `search` matches name, description or SKU
    (case-insensitive substring).
    """

    search: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, gt=0)

    @model_validator(mode="after")
    def check_price_range(self) -> "ProductFilters":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot exceed max_price")
        return self
