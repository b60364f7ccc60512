"""
Unit tests for InvoiceService.

The AsyncSession is mocked: each test queues the results of the queries
the service runs, in order, on mock_db.execute.side_effect.
"""

import datetime
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from billing.core.exceptions import (
    ConflictError,
    InvoiceStateError,
    NotFoundError,
    OverpaymentError,
)
from billing.models import Invoice, Payment
from billing.schemas.invoice import (
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceStatus,
    InvoiceUpdate,
    PaymentCreate,
    PaymentMethod,
)
from billing.services.invoice_service import InvoiceService
from conftest import NOW, make_invoice, make_payment, make_result


@pytest.fixture
def service():
    return InvoiceService()


def added(mock_db, cls):
    """Objects of type `cls` passed to db.add()."""
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], cls)]


# ============================================================
# Creation
# ============================================================


class TestCreateInvoice:

    @pytest.fixture
    def payload(self):
        self.customer_id = uuid.uuid4()
        self.product_id = uuid.uuid4()
        return InvoiceCreate(
            customer_id=self.customer_id,
            due_date=NOW + datetime.timedelta(days=30),
            items=[InvoiceItemCreate(product_id=self.product_id, quantity=2, unit_price=Decimal("99.99"))],
            tax_rate=Decimal("0.08"),
        )

    @pytest.mark.asyncio
    async def test_totals_number_and_status(self, service, mock_db, payload):
        stored = make_invoice()
        mock_db.execute.side_effect = [
            make_result(one=self.customer_id),
            make_result(scalars=[self.product_id]),
            make_result(one=stored),
        ]

        with patch(
            "billing.services.invoice_service.allocate_invoice_number",
            AsyncMock(return_value="INV-2024-0001"),
        ):
            result = await service.create(mock_db, payload)

        assert result is stored
        [invoice] = added(mock_db, Invoice)
        assert invoice.number == "INV-2024-0001"
        assert invoice.status == "DRAFT"
        assert invoice.subtotal == Decimal("199.98")
        assert invoice.tax_amount == Decimal("16.00")
        assert invoice.total == Decimal("215.98")
        assert [(i.position, i.quantity, i.total) for i in invoice.items] == [(1, 2, Decimal("199.98"))]
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tax_rate_defaults_to_zero(self, service, mock_db, payload):
        payload = payload.model_copy(update={"tax_rate": None})
        mock_db.execute.side_effect = [
            make_result(one=self.customer_id),
            make_result(scalars=[self.product_id]),
            make_result(one=make_invoice()),
        ]

        with patch(
            "billing.services.invoice_service.allocate_invoice_number",
            AsyncMock(return_value="INV-2024-0002"),
        ):
            await service.create(mock_db, payload)

        [invoice] = added(mock_db, Invoice)
        assert invoice.tax_amount == Decimal("0.00")
        assert invoice.total == Decimal("199.98")

    @pytest.mark.asyncio
    async def test_unknown_customer(self, service, mock_db, payload):
        mock_db.execute.side_effect = [make_result(one=None)]

        with pytest.raises(NotFoundError):
            await service.create(mock_db, payload)

        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_product(self, service, mock_db, payload):
        mock_db.execute.side_effect = [
            make_result(one=self.customer_id),
            make_result(scalars=[]),
        ]

        with pytest.raises(NotFoundError) as exc_info:
            await service.create(mock_db, payload)

        assert exc_info.value.extra["missing_product_ids"] == [str(self.product_id)]
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_product_on_two_lines(self, service, mock_db, payload):
        item = payload.items[0]
        payload = payload.model_copy(update={"items": [item, item]})
        mock_db.execute.side_effect = [
            make_result(one=self.customer_id),
            make_result(scalars=[self.product_id]),
            make_result(one=make_invoice()),
        ]

        with patch(
            "billing.services.invoice_service.allocate_invoice_number",
            AsyncMock(return_value="INV-2024-0003"),
        ):
            await service.create(mock_db, payload)

        [invoice] = added(mock_db, Invoice)
        assert invoice.subtotal == Decimal("399.96")
        assert [i.position for i in invoice.items] == [1, 2]

    @pytest.mark.asyncio
    async def test_number_collision_rolls_back(self, service, mock_db, payload):
        mock_db.execute.side_effect = [
            make_result(one=self.customer_id),
            make_result(scalars=[self.product_id]),
        ]
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("invoices_number_key"))

        with patch(
            "billing.services.invoice_service.allocate_invoice_number",
            AsyncMock(return_value="INV-2024-0001"),
        ):
            with pytest.raises(ConflictError):
                await service.create(mock_db, payload)

        mock_db.rollback.assert_awaited_once()


# ============================================================
# Update
# ============================================================


class TestUpdateInvoice:

    @pytest.mark.asyncio
    async def test_items_replaced_and_totals_recomputed(self, service, mock_db):
        invoice = make_invoice()
        old_items = list(invoice.items)
        product_id = uuid.uuid4()
        mock_db.execute.side_effect = [
            make_result(one=invoice),
            make_result(scalars=[product_id]),
            make_result(one=invoice),
        ]

        data = InvoiceUpdate(
            items=[InvoiceItemCreate(product_id=product_id, quantity=1, unit_price=Decimal("50.00"))]
        )
        await service.update(mock_db, invoice.id, data)

        assert all(item not in invoice.items for item in old_items)
        assert [(i.product_id, i.quantity) for i in invoice.items] == [(product_id, 1)]
        assert invoice.subtotal == Decimal("50.00")
        assert invoice.tax_amount == Decimal("4.00")
        assert invoice.total == Decimal("54.00")
        mock_db.flush.assert_awaited()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tax_rate_only_reuses_items(self, service, mock_db):
        invoice = make_invoice()
        mock_db.execute.side_effect = [make_result(one=invoice), make_result(one=invoice)]

        await service.update(mock_db, invoice.id, InvoiceUpdate(tax_rate=Decimal("0.10")))

        assert invoice.tax_rate == Decimal("0.10")
        assert invoice.subtotal == Decimal("199.98")
        assert invoice.tax_amount == Decimal("20.00")
        assert invoice.total == Decimal("219.98")

    @pytest.mark.asyncio
    async def test_plain_fields_keep_totals(self, service, mock_db):
        invoice = make_invoice()
        mock_db.execute.side_effect = [make_result(one=invoice), make_result(one=invoice)]

        await service.update(mock_db, invoice.id, InvoiceUpdate(notes="Net 30", status=InvoiceStatus.SENT))

        assert invoice.notes == "Net 30"
        assert invoice.status == "SENT"
        assert invoice.total == Decimal("215.98")

    @pytest.mark.asyncio
    async def test_missing_invoice(self, service, mock_db):
        mock_db.execute.side_effect = [make_result(one=None)]

        with pytest.raises(NotFoundError):
            await service.update(mock_db, uuid.uuid4(), InvoiceUpdate(notes="x"))


# ============================================================
# Status lifecycle
# ============================================================


class TestStatus:

    @pytest.mark.asyncio
    async def test_setting_same_status_is_noop(self, service, mock_db):
        invoice = make_invoice(status="PAID")
        mock_db.execute.side_effect = [make_result(one=invoice)]

        result = await service.update_status(mock_db, invoice.id, InvoiceStatus.PAID)

        assert result.status == "PAID"
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_status_change(self, service, mock_db):
        invoice = make_invoice(status="DRAFT")
        mock_db.execute.side_effect = [make_result(one=invoice), make_result(one=invoice)]

        result = await service.update_status(mock_db, invoice.id, InvoiceStatus.SENT)

        assert result.status == "SENT"
        mock_db.commit.assert_awaited_once()


class TestOverdueSweep:

    def compiled(self, mock_db):
        stmt = mock_db.execute.call_args_list[0].args[0]
        return stmt.compile(dialect=postgresql.dialect())

    @pytest.mark.asyncio
    async def test_only_sent_invoices_past_due_are_selected(self, service, mock_db):
        mock_db.execute.side_effect = [make_result(scalars=[uuid.uuid4(), uuid.uuid4()])]

        assert await service.mark_overdue_invoices(mock_db, now=NOW) == 2

        compiled = self.compiled(mock_db)
        sql = str(compiled)
        assert sql.startswith("UPDATE invoices SET status=")
        assert "invoices.status IN " in sql
        assert "invoices.due_date < " in sql
        values = list(compiled.params.values())
        # DRAFT, PAID, CANCELLED and OVERDUE are never candidates
        assert ["SENT"] in values
        assert "OVERDUE" in values
        assert NOW in values
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, service, mock_db):
        mock_db.execute.side_effect = [
            make_result(scalars=[uuid.uuid4()]),
            make_result(scalars=[]),
        ]

        assert await service.mark_overdue_invoices(mock_db, now=NOW) == 1
        assert await service.mark_overdue_invoices(mock_db, now=NOW) == 0


# ============================================================
# Payments
# ============================================================


class TestAddPayment:

    def payment(self, amount):
        return PaymentCreate(amount=Decimal(amount), method=PaymentMethod.BANK_TRANSFER)

    @pytest.mark.asyncio
    async def test_partial_payment_keeps_status(self, service, mock_db):
        invoice = make_invoice(status="SENT")
        mock_db.execute.side_effect = [make_result(one=invoice)]

        await service.add_payment(mock_db, invoice.id, self.payment("50.00"))

        [payment] = added(mock_db, Payment)
        assert payment.amount == Decimal("50.00")
        assert payment.method == "BANK_TRANSFER"
        assert payment.date is not None
        assert invoice.status == "SENT"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_settling_payment_marks_paid(self, service, mock_db):
        invoice = make_invoice(status="SENT", payments=[make_payment("50.00")])
        mock_db.execute.side_effect = [make_result(one=invoice)]

        await service.add_payment(mock_db, invoice.id, self.payment("165.98"))

        assert invoice.status == "PAID"

    @pytest.mark.asyncio
    async def test_overpayment_rejected(self, service, mock_db):
        invoice = make_invoice(
            status="PAID",
            payments=[make_payment("50.00"), make_payment("165.98")],
        )
        mock_db.execute.side_effect = [make_result(one=invoice)]

        with pytest.raises(OverpaymentError):
            await service.add_payment(mock_db, invoice.id, self.payment("0.01"))

        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_row_is_locked(self, service, mock_db):
        invoice = make_invoice()
        mock_db.execute.side_effect = [make_result(one=invoice)]

        await service.add_payment(mock_db, invoice.id, self.payment("1.00"))

        stmt = mock_db.execute.call_args_list[0].args[0]
        assert "FOR UPDATE" in str(stmt.compile(dialect=postgresql.dialect()))

    @pytest.mark.asyncio
    async def test_cancelled_invoice_settled_by_default(self, service, mock_db):
        invoice = make_invoice(status="CANCELLED")
        mock_db.execute.side_effect = [make_result(one=invoice)]

        payment = await service.add_payment(mock_db, invoice.id, self.payment("215.98"))

        assert payment.amount == Decimal("215.98")
        assert invoice.status == "PAID"
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_partial_payment_leaves_cancelled_status(self, service, mock_db):
        invoice = make_invoice(status="CANCELLED")
        mock_db.execute.side_effect = [make_result(one=invoice)]

        await service.add_payment(mock_db, invoice.id, self.payment("10.00"))

        assert invoice.status == "CANCELLED"

    @pytest.mark.asyncio
    async def test_cancelled_invoice_rejected_when_disabled(self, mock_db):
        invoice = make_invoice(status="CANCELLED")
        mock_db.execute.side_effect = [make_result(one=invoice)]

        with pytest.raises(InvoiceStateError):
            await InvoiceService(allow_payments_on_cancelled=False).add_payment(
                mock_db, invoice.id, self.payment("10.00")
            )

        mock_db.add.assert_not_called()
        mock_db.rollback.assert_awaited_once()
        assert invoice.status == "CANCELLED"

    @pytest.mark.asyncio
    async def test_missing_invoice(self, service, mock_db):
        mock_db.execute.side_effect = [make_result(one=None)]

        with pytest.raises(NotFoundError):
            await service.add_payment(mock_db, uuid.uuid4(), self.payment("10.00"))


# ============================================================
# Statistics
# ============================================================


class TestStatistics:

    @pytest.mark.asyncio
    async def test_group_by_rows(self, service, mock_db):
        mock_db.execute.side_effect = [
            make_result(rows=[
                ("PAID", 1, Decimal("100.00")),
                ("SENT", 1, Decimal("200.00")),
                ("OVERDUE", 1, Decimal("300.00")),
            ])
        ]

        stats = await service.get_statistics(mock_db)

        assert stats.total_revenue == Decimal("100.00")
        assert stats.pending_revenue == Decimal("500.00")
        assert stats.total_invoices == 3
