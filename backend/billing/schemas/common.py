"""
Shared Pydantic schemas
Project: Billing Backend

Response envelope, pagination metadata and paging parameters used by
every router.
"""

import math
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """
    Base for API schemas: camelCase on the wire, snake_case in Python.

    Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -------------------------------------------------------------------
# Response envelope
# -------------------------------------------------------------------

class ApiResponse(CamelModel, Generic[T]):
    """Success envelope: {success, data, message}."""

    success: bool = Field(default=True, description="Always true for success responses")
    data: Optional[T] = Field(default=None, description="Response payload")
    message: Optional[str] = Field(default=None, description="Human readable message")


class ErrorResponse(CamelModel):
    """Error envelope: {success: false, error, errorCode, details}."""

    success: bool = False
    error: str
    error_code: str
    details: Optional[object] = None


# -------------------------------------------------------------------
# Pagination
# -------------------------------------------------------------------

class PaginationMeta(CamelModel):
    """Pagination metadata of a list response."""

    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total > 0 else 0,
        )


class Page(CamelModel, Generic[T]):
    """A page of items plus its pagination metadata."""

    items: list[T] = Field(default_factory=list)
    pagination: PaginationMeta


class PageParams(BaseModel):
    """
    Paging and sorting parameters.

    `sort_by` is checked by each service against its own whitelist of
    sortable columns; unknown values fall back to the creation time.
    """

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    sort_by: Optional[str] = Field(default=None, max_length=50)
    sort_order: Literal["asc", "desc"] = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
