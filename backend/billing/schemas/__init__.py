"""
Pydantic schemas for the Billing Backend

Validation of incoming payloads and serialization of API responses.
"""

# e.g. from billing.schemas import CustomerRead, InvoiceRead

from billing.schemas.common import (
    ApiResponse,
    ErrorResponse,
    Page,
    PageParams,
    PaginationMeta,
)
from billing.schemas.product import (
    PopularProduct,
    ProductCreate,
    ProductDetail,
    ProductFilters,
    ProductRead,
    ProductSummary,
    ProductUpdate,
)
from billing.schemas.invoice import (
    CustomerSummary,
    DashboardStats,
    InvoiceBreakdown,
    InvoiceCreate,
    InvoiceFilters,
    InvoiceItemCreate,
    InvoiceItemRead,
    InvoiceRead,
    InvoiceStatistics,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceSummary,
    InvoiceUpdate,
    OverdueSweepResult,
    PaymentCreate,
    PaymentMethod,
    PaymentRead,
)
from billing.schemas.customer import (
    CustomerCreate,
    CustomerDetail,
    CustomerFilters,
    CustomerRead,
    CustomerUpdate,
)

__all__ = [
    # Common
    "ApiResponse",
    "ErrorResponse",
    "Page",
    "PageParams",
    "PaginationMeta",
    # Customer
    "CustomerCreate",
    "CustomerDetail",
    "CustomerFilters",
    "CustomerRead",
    "CustomerUpdate",
    # Product
    "PopularProduct",
    "ProductCreate",
    "ProductDetail",
    "ProductFilters",
    "ProductRead",
    "ProductSummary",
    "ProductUpdate",
    # Invoice
    "CustomerSummary",
    "DashboardStats",
    "InvoiceBreakdown",
    "InvoiceCreate",
    "InvoiceFilters",
    "InvoiceItemCreate",
    "InvoiceItemRead",
    "InvoiceRead",
    "InvoiceStatistics",
    "InvoiceStatus",
    "InvoiceStatusUpdate",
    "InvoiceSummary",
    "InvoiceUpdate",
    "OverdueSweepResult",
    "PaymentCreate",
    "PaymentMethod",
    "PaymentRead",
]
