"""
FastAPI router for invoicing
Project: Billing Backend

Invoice endpoints: CRUD, explicit status change, payments and the overdue
sweep.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from billing.core.database import get_db
from billing.core.deps import get_page_params
from billing.schemas.common import ApiResponse, Page, PageParams, PaginationMeta
from billing.schemas.invoice import (
    InvoiceCreate,
    InvoiceFilters,
    InvoiceRead,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceUpdate,
    OverdueSweepResult,
    PaymentCreate,
    PaymentRead,
)
from billing.services.invoice_service import InvoiceService

# Logger for this module
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_invoice_service() -> InvoiceService:
    """Dependency returning an InvoiceService (overridable in tests)."""
    return InvoiceService()


# -------------------------------------------------------------------
# Invoices
# -------------------------------------------------------------------

@router.get(
    "",
    summary="List invoices",
    description="Paginated invoice list filtered by status, customer, issue date and total.",
    response_model=ApiResponse[Page[InvoiceRead]],
    status_code=status.HTTP_200_OK,
)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[uuid.UUID] = Query(None, alias="customerId"),
    from_date: Optional[datetime.datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime.datetime] = Query(None, alias="toDate"),
    min_amount: Optional[Decimal] = Query(None, alias="minAmount", ge=0),
    max_amount: Optional[Decimal] = Query(None, alias="maxAmount", ge=0),
    params: PageParams = Depends(get_page_params),
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[Page[InvoiceRead]]:
    filters = InvoiceFilters(
        status=status_filter,
        customer_id=customer_id,
        from_date=from_date,
        to_date=to_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    invoices, total = await service.get_all(db=db, filters=filters, params=params)

    return ApiResponse(
        data=Page(
            items=[InvoiceRead.model_validate(i) for i in invoices],
            pagination=PaginationMeta.build(params.page, params.limit, total),
        ),
    )


@router.post(
    "",
    summary="Create invoice",
    description="Create a DRAFT invoice; number and totals are computed by the server.",
    response_model=ApiResponse[InvoiceRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[InvoiceRead]:
    """
    Raises:
        NotFoundError: unknown customer or product
        InvalidInputError: invalid items or tax rate
    """
    invoice = await service.create(db=db, data=invoice_data)
    return ApiResponse(
        data=InvoiceRead.model_validate(invoice),
        message="Invoice created successfully",
    )


@router.post(
    "/overdue-sweep",
    summary="Overdue sweep",
    description="Mark every SENT invoice past its due date as OVERDUE.",
    response_model=ApiResponse[OverdueSweepResult],
    status_code=status.HTTP_200_OK,
)
async def overdue_sweep(
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[OverdueSweepResult]:
    updated = await service.mark_overdue_invoices(db=db)
    return ApiResponse(
        data=OverdueSweepResult(updated=updated),
        message=f"{updated} invoice(s) marked as overdue",
    )


@router.get(
    "/{invoice_id}",
    summary="Invoice detail",
    response_model=ApiResponse[InvoiceRead],
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[InvoiceRead]:
    invoice = await service.get_by_id(db=db, invoice_id=invoice_id)
    return ApiResponse(data=InvoiceRead.model_validate(invoice))


@router.put(
    "/{invoice_id}",
    summary="Update invoice",
    description="Partial update; sending items replaces them all and recomputes the totals.",
    response_model=ApiResponse[InvoiceRead],
    status_code=status.HTTP_200_OK,
)
async def update_invoice(
    invoice_id: uuid.UUID,
    invoice_data: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[InvoiceRead]:
    invoice = await service.update(db=db, invoice_id=invoice_id, data=invoice_data)
    return ApiResponse(
        data=InvoiceRead.model_validate(invoice),
        message="Invoice updated successfully",
    )


@router.delete(
    "/{invoice_id}",
    summary="Delete invoice",
    response_model=ApiResponse[None],
    status_code=status.HTTP_200_OK,
)
async def delete_invoice(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[None]:
    await service.delete(db=db, invoice_id=invoice_id)
    return ApiResponse(message="Invoice deleted successfully")


@router.patch(
    "/{invoice_id}/status",
    summary="Change invoice status",
    response_model=ApiResponse[InvoiceRead],
    status_code=status.HTTP_200_OK,
)
async def update_invoice_status(
    invoice_id: uuid.UUID,
    status_data: InvoiceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[InvoiceRead]:
    invoice = await service.update_status(db=db, invoice_id=invoice_id, new_status=status_data.status)
    return ApiResponse(
        data=InvoiceRead.model_validate(invoice),
        message=f"Invoice status updated to {invoice.status}",
    )


# -------------------------------------------------------------------
# Payments
# -------------------------------------------------------------------

@router.post(
    "/{invoice_id}/payments",
    summary="Record payment",
    description="Apply a payment to the outstanding balance; the invoice becomes PAID when settled.",
    response_model=ApiResponse[PaymentRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_payment(
    invoice_id: uuid.UUID,
    payment_data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[PaymentRead]:
    """
    Raises:
        NotFoundError: the invoice does not exist
        OverpaymentError: the amount exceeds the remaining balance
        InvoiceStateError: the invoice is cancelled
    """
    payment = await service.add_payment(db=db, invoice_id=invoice_id, payment_data=payment_data)
    return ApiResponse(
        data=PaymentRead.model_validate(payment),
        message="Payment recorded successfully",
    )


@router.get(
    "/{invoice_id}/payments",
    summary="List payments",
    response_model=ApiResponse[list[PaymentRead]],
    status_code=status.HTTP_200_OK,
)
async def list_payments(
    invoice_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: InvoiceService = Depends(get_invoice_service),
) -> ApiResponse[list[PaymentRead]]:
    payments = await service.list_payments(db=db, invoice_id=invoice_id)
    return ApiResponse(data=[PaymentRead.model_validate(p) for p in payments])
