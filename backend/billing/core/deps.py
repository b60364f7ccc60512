"""
Shared FastAPI dependencies
Project: Billing Backend

Dependency injection functions used by several routers.
"""

from typing import Literal, Optional

from fastapi import Query

from billing.core.config import settings
from billing.schemas.common import PageParams


async def get_page_params(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(
        settings.default_page_size,
        ge=1,
        le=settings.max_page_size,
        description="Items per page",
    ),
    sort_by: Optional[str] = Query(
        None,
        alias="sortBy",
        max_length=50,
        description="Sort field (camelCase or snake_case)",
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder", description="asc | desc"),
) -> PageParams:
    """
    Paging and sorting query parameters.

    Returns:
        PageParams for the service layer
    """
    return PageParams(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
