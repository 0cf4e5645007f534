"""API tests through FastAPI's TestClient."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from ledger_engine.api import create_app
from ledger_engine.errors import ConcurrentModificationError

BASE = "/api/v1"


@pytest.fixture
def app(engine):
    return create_app(engine=engine)


@pytest.fixture
def api(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def invoice_body(client_id):
    def _make(**overrides):
        body = {
            "client_id": str(client_id),
            "items": [
                {"description": "Website design", "quantity": 2, "unit_price": "100.00"},
                {"description": "Hosting (1 year)", "quantity": 1, "unit_price": "150.00"},
            ],
            "issue_date": "2024-03-01",
            "due_date": "2024-03-31",
            "tax_rate": "16",
            "discount": "10.00",
        }
        body.update(overrides)
        return body

    return _make


def create(api, body, **headers):
    response = api.post(f"{BASE}/invoices", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_without_database(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "not_configured"

    def test_health_with_database(self, engine, session_factory):
        api = TestClient(create_app(engine=engine, session_factory=session_factory))
        assert api.get("/health").json()["database"] == "healthy"

    def test_ready_and_live(self, api):
        assert api.get("/ready").json() == {"status": "ready"}
        assert api.get("/live").json() == {"status": "alive"}


class TestInvoiceEndpoints:
    """Create, read, update and delete."""

    def test_create(self, api, invoice_body):
        data = create(api, invoice_body(), **{"X-Actor-ID": "user-1"})

        assert data["status"] == "pending"
        assert data["subtotal"] == "350.00"
        assert data["tax_amount"] == "56.00"
        assert data["total_amount"] == "396.00"
        assert data["balance_due"] == "396.00"
        assert data["payment_history"] == []
        assert data["created_by"] == "user-1"
        assert data["currency"] == "KES"

    def test_get(self, api, invoice_body):
        created = create(api, invoice_body())
        response = api.get(f"{BASE}/invoices/{created['invoice_id']}")
        assert response.status_code == 200
        assert response.json()["invoice_number"] == created["invoice_number"]

    def test_get_missing(self, api):
        response = api.get(f"{BASE}/invoices/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_unknown_client(self, api, invoice_body):
        response = api.post(f"{BASE}/invoices", json=invoice_body(client_id=str(uuid4())))
        assert response.status_code == 404
        assert response.json()["detail"].startswith("Client ")

    def test_unknown_field_rejected(self, api, invoice_body):
        response = api.post(f"{BASE}/invoices", json=invoice_body(amount_paid="396"))
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_cannot_create_paid(self, api, invoice_body):
        response = api.post(f"{BASE}/invoices", json=invoice_body(status="paid"))
        assert response.status_code == 422

    def test_domain_validation(self, api, invoice_body):
        response = api.post(f"{BASE}/invoices", json=invoice_body(discount="999"))
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_update(self, api, invoice_body):
        created = create(api, invoice_body())
        response = api.patch(
            f"{BASE}/invoices/{created['invoice_id']}",
            json={"items": [{"description": "Audit", "quantity": 1, "unit_price": "500"}]},
        )
        assert response.status_code == 200
        assert response.json()["total_amount"] == "570.00"

    def test_update_rejects_status(self, api, invoice_body):
        created = create(api, invoice_body())
        response = api.patch(
            f"{BASE}/invoices/{created['invoice_id']}", json={"status": "paid"}
        )
        assert response.status_code == 422

    def test_delete_draft(self, api, invoice_body):
        created = create(api, invoice_body(status="draft"))
        response = api.delete(f"{BASE}/invoices/{created['invoice_id']}")
        assert response.status_code == 204
        assert api.get(f"{BASE}/invoices/{created['invoice_id']}").status_code == 404

    def test_delete_pending_conflicts(self, api, invoice_body):
        created = create(api, invoice_body())
        response = api.delete(f"{BASE}/invoices/{created['invoice_id']}")
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

    def test_finalize_and_cancel(self, api, invoice_body):
        created = create(api, invoice_body(status="draft"))
        invoice_id = created["invoice_id"]

        finalized = api.post(f"{BASE}/invoices/{invoice_id}/finalize")
        assert finalized.json()["status"] == "pending"

        cancelled = api.post(f"{BASE}/invoices/{invoice_id}/cancel")
        assert cancelled.json()["status"] == "cancelled"

        again = api.post(f"{BASE}/invoices/{invoice_id}/cancel")
        assert again.status_code == 409

    def test_list_overdue(self, api, invoice_body):
        create(api, invoice_body())
        overdue = create(api, invoice_body(due_date="2024-03-10"))

        response = api.get(f"{BASE}/invoices", params={"status": "overdue"})

        data = response.json()
        assert data["total_count"] == 1
        assert data["items"][0]["invoice_id"] == overdue["invoice_id"]
        assert data["items"][0]["status"] == "overdue"

    def test_list_pagination(self, api, invoice_body):
        for _ in range(3):
            create(api, invoice_body())

        data = api.get(f"{BASE}/invoices", params={"page": 2, "page_size": 2}).json()

        assert data["total_count"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    def test_list_bad_sort_field(self, api):
        response = api.get(f"{BASE}/invoices", params={"sort_field": "password"})
        assert response.status_code == 422


class TestPaymentEndpoints:
    """Payment application and error mapping."""

    def test_partial_then_full(self, api, invoice_body):
        invoice_id = create(api, invoice_body())["invoice_id"]

        partial = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "100", "method": "mpesa", "reference": "QK12"},
            headers={"X-Actor-ID": "cashier"},
        )
        assert partial.status_code == 201
        assert partial.json()["status"] == "partially_paid"
        assert partial.json()["payment_history"][0]["processed_by"] == "cashier"

        full = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "296.00", "method": "card"},
        )
        assert full.json()["status"] == "paid"
        assert full.json()["balance_due"] == "0.00"

    def test_overpayment(self, api, invoice_body):
        invoice_id = create(api, invoice_body())["invoice_id"]
        response = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "396.01", "method": "cash"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "AMOUNT_EXCEEDS_BALANCE"

    def test_sub_cent_amount_rejected(self, api, invoice_body):
        invoice_id = create(api, invoice_body())["invoice_id"]
        response = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "396.004", "method": "cash"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert api.get(f"{BASE}/invoices/{invoice_id}").json()["status"] == "pending"

    def test_currency_mismatch(self, api, invoice_body):
        invoice_id = create(api, invoice_body())["invoice_id"]
        response = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "10", "method": "cash", "currency": "USD"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "CURRENCY_MISMATCH"

    def test_draft_conflict(self, api, invoice_body):
        invoice_id = create(api, invoice_body(status="draft"))["invoice_id"]
        response = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "10", "method": "cash"},
        )
        assert response.status_code == 409

    def test_exhausted_retries_conflict(self, api, engine, invoice_body, monkeypatch):
        invoice_id = create(api, invoice_body())["invoice_id"]

        def busy(invoice_id, *args, **kwargs):
            raise ConcurrentModificationError(invoice_id, 1)

        monkeypatch.setattr(engine, "apply_payment", busy)
        response = api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "10", "method": "cash", "currency": "KES"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONCURRENT_MODIFICATION"

    def test_unexpected_error_hides_internals(self, app, engine, monkeypatch):
        def broken(invoice_id):
            raise RuntimeError("connection string postgres://secret")

        monkeypatch.setattr(engine, "get_invoice", broken)
        api = TestClient(app, raise_server_exceptions=False)

        response = api.get(f"{BASE}/invoices/{uuid4()}")

        assert response.status_code == 500
        assert response.json() == {
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }


class TestPayrollEndpoint:
    """Payroll batch computation over HTTP."""

    def test_run(self, api):
        response = api.post(
            f"{BASE}/payroll/runs",
            json={
                "month": 3,
                "year": 2024,
                "employees": [
                    {
                        "employee_id": str(uuid4()),
                        "employee_code": "EMP-001",
                        "full_name": "Wanjiku Kamau",
                        "basic_salary": "30000",
                        "hire_date": "2023-06-01",
                        "department": "development",
                    },
                    {
                        "employee_id": str(uuid4()),
                        "employee_code": "EMP-002",
                        "full_name": "Not Yet Started",
                        "basic_salary": "50000",
                        "hire_date": "2024-04-01",
                    },
                ],
            },
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["period"] == "3/2024"
        assert data["control_totals"]["employee_count"] == 1
        assert data["entries"][0]["deductions"]["tax"] == "3900.00"
        assert data["entries"][0]["net_salary"] == "37570.00"
        assert data["summary"]["highest_net"] == "37570.00"

    def test_invalid_month(self, api):
        response = api.post(
            f"{BASE}/payroll/runs", json={"month": 13, "year": 2024, "employees": []}
        )
        assert response.status_code == 422


class TestReportEndpoints:
    """Reports over HTTP."""

    def test_financial(self, api, invoice_body):
        invoice_id = create(api, invoice_body())["invoice_id"]
        api.post(
            f"{BASE}/invoices/{invoice_id}/payments",
            json={"amount": "396", "method": "mpesa"},
        )

        data = api.get(f"{BASE}/reports/financial", params={"currency": "KES"}).json()

        assert data["summary"]["total_sales"] == "396.00"
        assert data["summary"]["invoice_count"] == 1
        assert data["trends"] == [{"period": "2024-03-01", "total": "396.00", "count": 1}]

    def test_sales_by_status(self, api, invoice_body):
        create(api, invoice_body(due_date="2024-03-10"))
        rows = api.get(f"{BASE}/reports/sales-by-status").json()
        assert rows == [{"status": "overdue", "count": 1, "total": "396.00"}]

    def test_inverted_window(self, api):
        response = api.get(
            f"{BASE}/reports/sales-summary",
            params={"start_date": "2024-03-01", "end_date": "2024-02-01"},
        )
        assert response.status_code == 422

    def test_top_clients_limit_bounds(self, api):
        response = api.get(f"{BASE}/reports/top-clients", params={"limit": 0})
        assert response.status_code == 422
