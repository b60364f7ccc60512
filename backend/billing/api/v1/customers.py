"""
FastAPI router for the Customer entity
Project: Billing Backend

Customer registry endpoints.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.database import get_db
from billing.core.deps import get_page_params
from billing.schemas.common import ApiResponse, Page, PageParams, PaginationMeta
from billing.schemas.customer import (
    CustomerCreate,
    CustomerDetail,
    CustomerFilters,
    CustomerRead,
    CustomerUpdate,
)
from billing.schemas.invoice import InvoiceSummary
from billing.services.customer_service import CustomerService

# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["Customers"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_customer_service() -> CustomerService:
    """Dependency returning a CustomerService (overridable in tests)."""
    return CustomerService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "",
    summary="List customers",
    description="Paginated list of customers, filtered by name/email search and location.",
    response_model=ApiResponse[Page[CustomerRead]],
    status_code=status.HTTP_200_OK,
)
async def list_customers(
    search: Optional[str] = Query(None, max_length=100, description="Matches name or email"),
    city: Optional[str] = Query(None, max_length=100),
    state: Optional[str] = Query(None, max_length=100),
    country: Optional[str] = Query(None, max_length=100),
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> ApiResponse[Page[CustomerRead]]:
    filters = CustomerFilters(search=search, city=city, state=state, country=country)
    customers, total = await service.get_all(db=db, filters=filters, params=params)

    return ApiResponse(
        data=Page(
            items=[CustomerRead.model_validate(c) for c in customers],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        ),
    )


@router.post(
    "",
    summary="Create customer",
    response_model=ApiResponse[CustomerRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(
    customer_data: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> ApiResponse[CustomerRead]:
    """
    Create a customer.

    Raises:
        DuplicateError: the email is already registered
    """
    customer = await service.create(db=db, customer_data=customer_data)
    await db.commit()
    return ApiResponse(
        data=CustomerRead.model_validate(customer),
        message="Customer created successfully",
    )


@router.get(
    "/{customer_id}",
    summary="Customer detail",
    description="Customer with invoice count and the 10 most recent invoices.",
    response_model=ApiResponse[CustomerDetail],
    status_code=status.HTTP_200_OK,
)
async def get_customer(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> ApiResponse[CustomerDetail]:
    customer, invoice_count, recent = await service.get_detail(db=db, customer_id=customer_id)

    detail = CustomerDetail.model_validate(customer).model_copy(
        update={
            "invoice_count": invoice_count,
            "recent_invoices": [InvoiceSummary.model_validate(i) for i in recent],
        }
    )
    return ApiResponse(data=detail)


@router.put(
    "/{customer_id}",
    summary="Update customer",
    response_model=ApiResponse[CustomerRead],
    status_code=status.HTTP_200_OK,
)
async def update_customer(
    customer_id: uuid.UUID,
    customer_data: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> ApiResponse[CustomerRead]:
    """
    Partially update a customer.

    Raises:
        NotFoundError: the customer does not exist
        DuplicateError: the email is already registered
    """
    customer = await service.update(db=db, customer_id=customer_id, customer_data=customer_data)
    await db.commit()
    return ApiResponse(
        data=CustomerRead.model_validate(customer),
        message="Customer updated successfully",
    )


@router.delete(
    "/{customer_id}",
    summary="Delete customer",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
)
async def delete_customer(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> ApiResponse[None]:
    """
    Delete a customer without invoices.

    Raises:
        NotFoundError: the customer does not exist
        ConflictError: the customer still has invoices
    """
    await service.delete(db=db, customer_id=customer_id)
    await db.commit()
    return ApiResponse(message="Customer deleted successfully")
