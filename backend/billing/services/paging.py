"""
Sorting and pagination helpers shared by the list queries
Project: Billing Backend
"""

import re
from typing import Mapping, Optional

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from billing.schemas.common import PageParams

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_sort_field(name: Optional[str]) -> Optional[str]:
    """createdAt -> created_at; snake_case names are returned unchanged."""
    if not name:
        return None
    return _CAMEL_BOUNDARY.sub("_", name.strip()).lower()


def order_clause(
    params: PageParams,
    sortable: Mapping[str, InstrumentedAttribute],
    default: InstrumentedAttribute,
) -> ColumnElement:
    """
    ORDER BY expression for the requested sort.

    `sort_by` is looked up (camelCase or snake_case) in the whitelist of
    sortable columns; anything else sorts by `default`.
    """
    column = sortable.get(normalize_sort_field(params.sort_by), default)
    return column.asc() if params.sort_order == "asc" else column.desc()


async def count_rows(db: AsyncSession, stmt: Select) -> int:
    """COUNT(*) over the rows selected by `stmt`, ignoring its ordering."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    result = await db.execute(count_stmt)
    return result.scalar() or 0
