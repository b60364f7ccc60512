"""
Pytest configuration and fixtures.

Services are tested against a mocked AsyncSession; model factories build
real (transient) ORM objects that are never attached to a database.
"""

import datetime
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from billing.models import Customer, Invoice, InvoiceItem, Payment, Product

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


# ============================================================
# AsyncSession mock
# ============================================================


@pytest.fixture
def mock_db():
    """AsyncSession mock; queue query results on db.execute.side_effect."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    return db


def make_result(scalar=None, one=None, scalars=None, rows=None):
    """
    Fake result of db.execute().

    Args:
        scalar: value of .scalar()
        one: value of .scalar_one_or_none()
        scalars: list returned by .scalars().all()
        rows: list returned by .all()
    """
    result = MagicMock()
    result.scalar.return_value = scalar
    result.scalar_one_or_none.return_value = one
    result.scalars.return_value.all.return_value = scalars or []
    result.all.return_value = rows or []
    return result


# ============================================================
# Model factories
# ============================================================


def make_customer(**kwargs) -> Customer:
    values = dict(
        id=uuid.uuid4(),
        name="Acme Corp",
        email="billing@acme.com",
        city="Springfield",
        country="US",
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(kwargs)
    return Customer(**values)


def make_product(**kwargs) -> Product:
    values = dict(
        id=uuid.uuid4(),
        name="Widget",
        description="Standard widget",
        price=Decimal("99.99"),
        category="Hardware",
        sku="WID-001",
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(kwargs)
    return Product(**values)


def make_payment(amount, **kwargs) -> Payment:
    values = dict(
        id=uuid.uuid4(),
        invoice_id=uuid.uuid4(),
        amount=Decimal(str(amount)),
        method="BANK_TRANSFER",
        date=NOW,
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(kwargs)
    return Payment(**values)


def make_invoice(
    total="215.98",
    status="DRAFT",
    payments=None,
    items=None,
    **kwargs,
) -> Invoice:
    """Invoice for [{2 x 99.99}] at 8% unless overridden."""
    customer = kwargs.pop("customer", None) or make_customer()
    product = make_product()
    if items is None:
        items = [
            InvoiceItem(
                id=uuid.uuid4(),
                product_id=product.id,
                product=product,
                position=1,
                quantity=2,
                unit_price=Decimal("99.99"),
                total=Decimal("199.98"),
            )
        ]
    values = dict(
        id=uuid.uuid4(),
        number="INV-2024-0001",
        customer_id=customer.id,
        customer=customer,
        issue_date=NOW,
        due_date=NOW + datetime.timedelta(days=30),
        tax_rate=Decimal("0.08"),
        subtotal=Decimal("199.98"),
        tax_amount=Decimal("16.00"),
        total=Decimal(total),
        status=status,
        notes=None,
        items=items,
        payments=payments or [],
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(kwargs)
    return Invoice(**values)


@pytest.fixture
def customer() -> Customer:
    return make_customer()


@pytest.fixture
def product() -> Product:
    return make_product()


@pytest.fixture
def invoice() -> Invoice:
    return make_invoice()
