"""
SQLAlchemy database models
Project: Billing Backend

Central import of every model, for metadata creation and general use.

Models:
- Customer: customer registry
- Product: product catalog
- Invoice: invoices
- InvoiceItem: invoice line items
- Payment: payments recorded against an invoice
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for every SQLAlchemy model."""
    pass


from billing.models.customer import Customer
from billing.models.product import Product
from billing.models.invoice import Invoice, InvoiceItem, Payment

__all__ = [
    "Base",
    "Customer",
    "Product",
    "Invoice",
    "InvoiceItem",
    "Payment",
]
