"""Contract tests for the dashboard API (in-memory databases)."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from society_dues.api import create_app
from society_dues.api.dashboard import get_today
from society_dues.config import Settings

ADMIN = {"email": "admin@sbdivine.com", "password": "admin-secret"}
RESIDENT = {"email": "flat101@email.com", "password": "password"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        local_store_url="sqlite:///:memory:",
        log_file=str(tmp_path / "server.log"),
    )


@pytest.fixture
def client(settings):
    """Create FastAPI test client with the date pinned to March."""
    app = create_app(settings)
    app.dependency_overrides[get_today] = lambda: date(2024, 3, 15)
    with TestClient(app) as client:
        yield client


def sign_in(client, credentials: dict, action: str = "login") -> str:
    """Start a new session and send its token on every later request."""
    client.headers.pop("Authorization", None)
    response = client.post(f"/api/session/{action}", json=credentials)
    assert response.status_code == 200
    token = response.json()["token"]
    client.headers["Authorization"] = f"Bearer {token}"
    return token


@pytest.fixture
def admin_client(client):
    sign_in(client, ADMIN, "register")
    return client


def unit_by_id(response, unit_id: str) -> dict:
    return next(u for u in response.json()["units"] if u["id"] == unit_id)


class TestHealthAndSession:
    """Tests for /health and session endpoints."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_anonymous_session(self, client):
        body = client.get("/api/session").json()

        assert body["session_state"] == "anonymous"
        assert body["remote_state"] == "unbound"
        assert body["save_policy"] == "manual"
        assert body["role"] is None

    def test_anonymous_cannot_list_units(self, client):
        response = client.get("/api/units")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "not_signed_in"

    def test_login_unknown_identity(self, client):
        response = client.post("/api/session/login", json=ADMIN)

        assert response.status_code == 401
        assert response.json()["error"] == {
            "code": "auth_rejected",
            "message": "Invalid credentials",
        }

    def test_register_admin_binds_remote(self, admin_client):
        body = admin_client.get("/api/session").json()

        assert body["session_state"] == "active"
        assert body["role"] == "admin"
        assert body["remote_state"] == "bound"
        assert body["has_unsynced_changes"] is False

    def test_logout_then_login(self, admin_client):
        assert admin_client.post("/api/session/logout").json()["session_state"] == "anonymous"

        assert admin_client.get("/api/session").json()["session_state"] == "anonymous"
        assert admin_client.get("/api/units").status_code == 401

        sign_in(admin_client, ADMIN)
        body = admin_client.get("/api/session").json()

        assert body["role"] == "admin"
        assert body["email"] == "admin@sbdivine.com"
        assert body["token"] is None

    def test_login_with_current_token_keeps_it(self, admin_client):
        current = admin_client.headers["Authorization"].split()[1]

        body = admin_client.post("/api/session/login", json=ADMIN).json()

        assert body["token"] == current
        assert body["role"] == "admin"

    def test_unknown_email_leaves_no_session(self, client):
        response = client.post(
            "/api/session/register", json={"email": "stranger@email.com", "password": "password"}
        )

        assert response.status_code == 401
        assert "token" not in response.json()
        assert client.get("/api/session").json()["session_state"] == "anonymous"

    def test_requests_without_token_are_rejected(self, admin_client):
        del admin_client.headers["Authorization"]

        response = admin_client.put("/api/fee-schedule", json={"residential_fee": 1})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "not_signed_in"
        assert admin_client.get("/api/session").json()["role"] is None

    def test_unknown_token_is_rejected(self, admin_client):
        admin_client.headers["Authorization"] = "Bearer not-a-session"

        assert admin_client.post("/api/save").status_code == 401
        assert admin_client.get("/api/units").status_code == 401

    def test_sessions_are_isolated(self, client):
        admin_token = sign_in(client, ADMIN, "register")
        resident_token = sign_in(client, RESIDENT, "register")
        assert admin_token != resident_token

        as_admin = {"Authorization": f"Bearer {admin_token}"}
        as_resident = {"Authorization": f"Bearer {resident_token}"}

        assert client.get("/api/session", headers=as_admin).json()["role"] == "admin"
        assert client.get("/api/session", headers=as_resident).json()["role"] == "resident"
        assert len(client.get("/api/units", headers=as_admin).json()["units"]) == 18
        assert len(client.get("/api/units", headers=as_resident).json()["units"]) == 1
        response = client.put(
            "/api/fee-schedule", json={"residential_fee": 1}, headers=as_resident
        )
        assert response.status_code == 403


class TestUnits:
    """Tests for unit listing and admin edits."""

    def test_list_units_with_dues(self, admin_client):
        response = admin_client.get("/api/units")

        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 18
        assert body["current_period"] == 2
        flat = unit_by_id(response, "flat-101")
        assert flat["category"] == "flat"
        assert flat["periodic_fee"] == "1000.00"
        assert flat["total_due"] == "3000.00"
        assert [p["label"] for p in flat["periods"]] == ["Jan", "Feb", "Mar"]
        assert unit_by_id(response, "shop-S1")["total_due"] == "600.00"
        assert "password" not in flat

    def test_record_payment_and_save(self, admin_client):
        admin_client.put("/api/units/flat-101/payments/0", json={"amount": 1000})
        response = admin_client.put("/api/units/flat-101/payments/1", json={"amount": "500"})

        assert response.status_code == 200
        body = response.json()
        assert body["payments"] == {"0": "1000.00", "1": "500.00"}
        assert body["total_paid"] == "1500.00"
        assert body["total_due"] == "1500.00"
        assert admin_client.get("/api/session").json()["has_unsynced_changes"] is True

        saved = admin_client.post("/api/save").json()

        assert saved["has_unsynced_changes"] is False

    def test_update_unit(self, admin_client):
        response = admin_client.patch(
            "/api/units/flat-101", json={"owner_name": "Asha Rao", "prior_due": "200"}
        )

        body = response.json()
        assert body["owner_name"] == "Asha Rao"
        assert body["prior_due"] == "200.00"
        assert body["total_due"] == "3200.00"

    def test_malformed_amount_is_zero(self, admin_client):
        response = admin_client.patch("/api/units/shop-S1", json={"prior_due": "lots"})

        assert response.json()["prior_due"] == "0.00"

    def test_invalid_period(self, admin_client):
        response = admin_client.put("/api/units/flat-101/payments/12", json={"amount": 1})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "invalid_period"

    def test_unknown_unit(self, admin_client):
        assert admin_client.get("/api/units/flat-999").status_code == 404
        assert admin_client.patch("/api/units/flat-999", json={"owner_name": "x"}).status_code == 404

    def test_reset_credentials(self, admin_client):
        response = admin_client.post("/api/units/shop-S3/reset-credentials")

        assert response.json() == {"unit_id": "shop-S3", "password": "password"}


class TestResidentAccess:
    """Residents see their own unit only and cannot edit."""

    @pytest.fixture
    def resident_client(self, client):
        sign_in(client, RESIDENT, "register")
        assert client.get("/api/session").json()["unit_id"] == "flat-101"
        return client

    def test_only_own_unit_visible(self, resident_client):
        body = resident_client.get("/api/units").json()

        assert [u["id"] for u in body["units"]] == ["flat-101"]
        assert resident_client.get("/api/units/flat-102").status_code == 404

    def test_cannot_edit(self, resident_client):
        response = resident_client.put("/api/units/flat-101/payments/0", json={"amount": 1000})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"
        assert resident_client.post("/api/save").status_code == 403
        assert resident_client.put("/api/fee-schedule", json={}).status_code == 403

    def test_cannot_view_society_totals(self, resident_client):
        response = resident_client.get("/api/summary")

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permission_denied"


class TestExpensesAndSettings:
    """Tests for expenses, fee schedule and summary."""

    def test_expense_lifecycle(self, admin_client):
        created = admin_client.post(
            "/api/expenses",
            json={"description": "Lift repair", "amount": 900, "date": "2024-03-02"},
        )
        assert created.status_code == 201
        expense = created.json()
        assert expense["amount"] == "900.00"
        assert expense["date"] == "2024-03-02"

        listed = admin_client.get("/api/expenses").json()
        assert listed["total_count"] == 1

        assert admin_client.delete(f"/api/expenses/{expense['id']}").status_code == 204
        missing = admin_client.delete(f"/api/expenses/{expense['id']}")
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "expense_not_found"

    def test_expense_requires_date(self, admin_client):
        response = admin_client.post("/api/expenses", json={"description": "x", "amount": 1})

        assert response.status_code == 422

    def test_fee_schedule_update_changes_dues(self, admin_client):
        response = admin_client.put(
            "/api/fee-schedule", json={"residential_fee": 1200, "commercial_fee": "250"}
        )

        assert response.json() == {"residential_fee": "1200.00", "commercial_fee": "250.00"}
        units = admin_client.get("/api/units")
        assert unit_by_id(units, "flat-101")["total_due"] == "3600.00"
        assert admin_client.get("/api/fee-schedule").json()["commercial_fee"] == "250.00"

    def test_summary(self, admin_client):
        admin_client.put("/api/units/flat-101/payments/0", json={"amount": 1000})
        admin_client.put("/api/units/shop-S1/payments/0", json={"amount": 200})
        admin_client.post(
            "/api/expenses",
            json={"description": "Cleaning", "amount": "150.25", "date": "2024-01-10"},
        )

        body = admin_client.get("/api/summary").json()

        assert body["total_collected"] == "1200.00"
        assert body["total_expenses"] == "150.25"
        assert body["balance"] == "1049.75"
        assert body["unit_count"] == 18

    def test_save_persists_across_logins(self, admin_client):
        admin_client.patch("/api/units/flat-101", json={"owner_name": "Asha Rao"})
        admin_client.post("/api/save")
        admin_client.post("/api/session/logout")

        sign_in(admin_client, ADMIN)
        response = admin_client.get("/api/units/flat-101")

        assert response.json()["owner_name"] == "Asha Rao"
