"""
HTTP tests for the v1 API: envelopes, status codes and validation.

Services and the session are replaced through FastAPI dependency
overrides; no database is involved.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from billing.api.v1.customers import get_customer_service
from billing.api.v1.dashboard import get_dashboard_service
from billing.api.v1.invoices import get_invoice_service
from billing.api.v1.products import get_product_service
from billing.core.database import get_db
from billing.core.exceptions import (
    DuplicateError,
    InvoiceStateError,
    NotFoundError,
    OverpaymentError,
)
from billing.main import app
from billing.schemas.invoice import DashboardStats, InvoiceBreakdown
from conftest import make_customer, make_invoice, make_payment, make_product

API = "/api/v1"


@pytest.fixture
def db_session():
    session = AsyncMock()
    return session


@pytest.fixture
def client(db_session):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def override(dependency, service):
    app.dependency_overrides[dependency] = lambda: service
    return service


# ============================================================
# Customers
# ============================================================


class TestCustomersApi:

    def test_list_envelope_and_pagination(self, client):
        service = override(get_customer_service, AsyncMock())
        service.get_all.return_value = ([make_customer(), make_customer(email="b@acme.com")], 12)

        response = client.get(f"{API}/customers", params={"page": 2, "limit": 5, "sortBy": "createdAt"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]["items"]) == 2
        assert body["data"]["pagination"] == {"page": 2, "limit": 5, "total": 12, "totalPages": 3}
        assert "createdAt" in body["data"]["items"][0]
        params = service.get_all.await_args.kwargs["params"]
        assert params.sort_by == "createdAt"
        assert params.offset == 5

    def test_create(self, client, db_session):
        service = override(get_customer_service, AsyncMock())
        service.create.return_value = make_customer(name="Acme", zip_code="12345")

        response = client.post(
            f"{API}/customers",
            json={"name": "Acme", "email": "billing@acme.com", "zipCode": "12345"},
        )

        assert response.status_code == 201
        assert response.json()["data"]["zipCode"] == "12345"
        assert response.json()["message"] == "Customer created successfully"
        db_session.commit.assert_awaited_once()

    def test_duplicate_email_is_409(self, client):
        service = override(get_customer_service, AsyncMock())
        service.create.side_effect = DuplicateError("Email 'billing@acme.com' is already registered")

        response = client.post(f"{API}/customers", json={"name": "Acme", "email": "billing@acme.com"})

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == "DUPLICATE_RESOURCE"
        assert "already registered" in body["error"]

    def test_invalid_email_is_400(self, client):
        override(get_customer_service, AsyncMock())

        response = client.post(f"{API}/customers", json={"name": "Acme", "email": "not-an-email"})

        assert response.status_code == 400
        assert response.json()["errorCode"] == "VALIDATION_ERROR"
        assert response.json()["details"]

    def test_detail_includes_invoices(self, client):
        customer = make_customer()
        service = override(get_customer_service, AsyncMock())
        service.get_detail.return_value = (customer, 1, [make_invoice(customer=customer)])

        response = client.get(f"{API}/customers/{customer.id}")

        data = response.json()["data"]
        assert data["invoiceCount"] == 1
        assert data["recentInvoices"][0]["number"] == "INV-2024-0001"

    def test_missing_is_404(self, client):
        service = override(get_customer_service, AsyncMock())
        service.get_detail.side_effect = NotFoundError("Customer not found")

        response = client.get(f"{API}/customers/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["errorCode"] == "RESOURCE_NOT_FOUND"

    def test_malformed_id_is_400(self, client):
        override(get_customer_service, AsyncMock())

        response = client.get(f"{API}/customers/not-a-uuid")

        assert response.status_code == 400


# ============================================================
# Products
# ============================================================


class TestProductsApi:

    def test_price_range_inverted_is_400(self, client):
        override(get_product_service, AsyncMock())

        response = client.get(f"{API}/products", params={"minPrice": "50", "maxPrice": "10"})

        assert response.status_code == 400
        assert response.json()["errorCode"] == "VALIDATION_ERROR"

    def test_popular(self, client):
        service = override(get_product_service, AsyncMock())
        product = make_product()
        service.get_popular.return_value = [(product, 4)]

        response = client.get(f"{API}/products/popular", params={"limit": 3})

        assert response.status_code == 200
        assert response.json()["data"] == [
            {"id": str(product.id), "name": "Widget", "sku": "WID-001", "price": "99.99", "usageCount": 4}
        ]
        assert service.get_popular.await_args.kwargs["limit"] == 3

    def test_negative_price_rejected(self, client):
        override(get_product_service, AsyncMock())

        response = client.post(f"{API}/products", json={"name": "Widget", "price": "-1"})

        assert response.status_code == 400


# ============================================================
# Invoices
# ============================================================


class TestInvoicesApi:

    def test_create(self, client):
        service = override(get_invoice_service, AsyncMock())
        invoice = make_invoice()
        service.create.return_value = invoice

        response = client.post(
            f"{API}/invoices",
            json={
                "customerId": str(invoice.customer_id),
                "dueDate": "2024-07-01T00:00:00Z",
                "taxRate": "0.08",
                "items": [{"productId": str(uuid.uuid4()), "quantity": 2, "unitPrice": "99.99"}],
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["number"] == "INV-2024-0001"
        assert Decimal(data["subtotal"]) == Decimal("199.98")
        assert Decimal(data["taxAmount"]) == Decimal("16.00")
        assert Decimal(data["total"]) == Decimal("215.98")
        assert Decimal(data["balanceDue"]) == Decimal("215.98")
        assert data["status"] == "DRAFT"
        assert data["items"][0]["product"]["name"] == "Widget"

    def test_create_without_items_is_400(self, client):
        override(get_invoice_service, AsyncMock())

        response = client.post(
            f"{API}/invoices",
            json={"customerId": str(uuid.uuid4()), "dueDate": "2024-07-01T00:00:00Z", "items": []},
        )

        assert response.status_code == 400

    def test_tax_rate_above_one_is_400(self, client):
        override(get_invoice_service, AsyncMock())

        response = client.post(
            f"{API}/invoices",
            json={
                "customerId": str(uuid.uuid4()),
                "dueDate": "2024-07-01T00:00:00Z",
                "taxRate": "8",
                "items": [{"productId": str(uuid.uuid4()), "quantity": 1, "unitPrice": "10.00"}],
            },
        )

        assert response.status_code == 400

    def test_unknown_status_filter_is_400(self, client):
        override(get_invoice_service, AsyncMock())

        response = client.get(f"{API}/invoices", params={"status": "ARCHIVED"})

        assert response.status_code == 400

    def test_list_filters_passed_to_service(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.get_all.return_value = ([], 0)
        customer_id = uuid.uuid4()

        response = client.get(
            f"{API}/invoices",
            params={"status": "SENT", "customerId": str(customer_id), "minAmount": "10"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["pagination"]["totalPages"] == 0
        filters = service.get_all.await_args.kwargs["filters"]
        assert filters.status.value == "SENT"
        assert filters.customer_id == customer_id
        assert filters.min_amount == Decimal("10")

    def test_status_patch(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.update_status.return_value = make_invoice(status="SENT")

        response = client.patch(f"{API}/invoices/{uuid.uuid4()}/status", json={"status": "SENT"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "SENT"

    def test_status_patch_rejects_unknown_value(self, client):
        override(get_invoice_service, AsyncMock())

        response = client.patch(f"{API}/invoices/{uuid.uuid4()}/status", json={"status": "VOID"})

        assert response.status_code == 400

    def test_overdue_sweep(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.mark_overdue_invoices.return_value = 3

        response = client.post(f"{API}/invoices/overdue-sweep")

        assert response.status_code == 200
        assert response.json()["data"] == {"updated": 3}


class TestPaymentsApi:

    def test_record_payment(self, client):
        service = override(get_invoice_service, AsyncMock())
        invoice_id = uuid.uuid4()
        service.add_payment.return_value = make_payment("50.00", invoice_id=invoice_id)

        response = client.post(
            f"{API}/invoices/{invoice_id}/payments",
            json={"amount": "50.00", "method": "BANK_TRANSFER", "reference": "TR-1"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert Decimal(data["amount"]) == Decimal("50.00")
        assert data["invoiceId"] == str(invoice_id)
        payment_data = service.add_payment.await_args.kwargs["payment_data"]
        assert payment_data.reference == "TR-1"

    def test_overpayment_is_400(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.add_payment.side_effect = OverpaymentError(
            "Payment amount 0.01 exceeds remaining balance 0.00",
            extra={"remaining": "0.00", "amount": "0.01"},
        )

        response = client.post(
            f"{API}/invoices/{uuid.uuid4()}/payments",
            json={"amount": "0.01", "method": "CASH"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["errorCode"] == "OVERPAYMENT_REJECTED"
        assert body["details"] == {"remaining": "0.00", "amount": "0.01"}

    def test_cancelled_invoice_is_409(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.add_payment.side_effect = InvoiceStateError("Cannot record a payment on a cancelled invoice")

        response = client.post(
            f"{API}/invoices/{uuid.uuid4()}/payments",
            json={"amount": "10.00", "method": "CASH"},
        )

        assert response.status_code == 409
        assert response.json()["errorCode"] == "INVALID_INVOICE_STATE"

    @pytest.mark.parametrize("payload", [
        {"amount": "0", "method": "CASH"},
        {"amount": "10.00", "method": "BITCOIN"},
        {"amount": "10.001", "method": "CASH"},
    ])
    def test_invalid_payment_is_400(self, client, payload):
        override(get_invoice_service, AsyncMock())

        response = client.post(f"{API}/invoices/{uuid.uuid4()}/payments", json=payload)

        assert response.status_code == 400

    def test_list_payments(self, client):
        service = override(get_invoice_service, AsyncMock())
        service.list_payments.return_value = [make_payment("20.00"), make_payment("10.00")]

        response = client.get(f"{API}/invoices/{uuid.uuid4()}/payments")

        assert [Decimal(p["amount"]) for p in response.json()["data"]] == [Decimal("20.00"), Decimal("10.00")]


# ============================================================
# Dashboard and health
# ============================================================


class TestDashboardAndHealth:

    def test_dashboard_stats(self, client):
        service = override(get_dashboard_service, AsyncMock())
        service.get_stats.return_value = DashboardStats(
            total_customers=4,
            total_products=9,
            total_invoices=3,
            total_revenue=Decimal("100.00"),
            pending_revenue=Decimal("500.00"),
            invoice_breakdown=InvoiceBreakdown(paid=1, sent=1, overdue=1),
        )

        response = client.get(f"{API}/dashboard/stats")

        data = response.json()["data"]
        assert data["totalCustomers"] == 4
        assert Decimal(data["pendingRevenue"]) == Decimal("500.00")
        assert data["invoiceBreakdown"]["overdue"] == 1

    def test_health_ok(self, client):
        with patch("billing.main.check_db", AsyncMock(return_value=True)):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["database"] == "connected"

    def test_health_database_down(self, client):
        with patch("billing.main.check_db", AsyncMock(return_value=False)):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_unhandled_error_is_500_without_internals(self, client):
        service = override(get_customer_service, AsyncMock())
        service.get_all.side_effect = RuntimeError("connection string leaked")

        response = client.get(f"{API}/customers")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Internal server error",
            "errorCode": "INTERNAL_SERVER_ERROR",
        }
