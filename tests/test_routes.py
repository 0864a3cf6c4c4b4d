"""
API tests for the notice tracker routes.

Services are built on the in-memory store and attached to the app state.
Run with: python -m pytest tests/test_routes.py -v
"""

import io
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from notice_tracker.main import app

from conftest import make_call, make_notice

client = TestClient(app)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def api(services):
    """Attach services to the app for the duration of one test."""
    previous = app.state.services
    app.state.services = services
    yield client
    app.state.services = previous


@pytest.fixture
def seeded(fake_supabase):
    fake_supabase.tables["clients"].extend([
        {"id": "c1", "name": "Acme LLC"},
        {"id": "c2", "name": "Beta Corp"},
    ])
    fake_supabase.tables["notices"].extend([
        make_notice(id="n1", client_id="c1", form_number="2848", tax_period="202306"),
        make_notice(id="n2", client_id="c2", notice_issue="Final Notice of Intent to Levy", days_to_respond=None),
        make_notice(id="n3", client_id="c1", status="Closed", escalated=True, date_completed="2024-06-05T15:00:00"),
    ])
    fake_supabase.tables["calls"].extend([
        make_call(id="r1", notice_id="n1", client_id="c1", duration_minutes=20),
        make_call(id="r2", notice_id="n1", client_id="c1", date="2024-06-04T09:00:00", duration_minutes=25),
        make_call(id="r3", notice_id="n2", client_id="c2", response_method="Research", duration_minutes=10),
    ])
    fake_supabase.tables["poa_records"].append(
        {"id": "p1", "client_id": "c1", "form": "2848", "period_start": "202301", "period_end": "202312"}
    )
    return fake_supabase


# =============================================================================
# HEALTH
# =============================================================================

class TestHealthEndpoints:
    """System health reflects whether the store is wired."""

    def test_health_check(self, api):
        response = api.get("/api/system/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["environment"] == "test"
        assert data["services"]["store"] == "configured"

    def test_health_degraded_without_store(self):
        response = client.get("/api/system/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_endpoints_unavailable_without_store(self):
        response = client.get("/api/dashboard/stats")
        assert response.status_code == 503


# =============================================================================
# NOTICES
# =============================================================================

class TestNoticeEndpoints:
    def test_get_notice_with_derivation(self, api, seeded):
        response = api.get("/api/notices/n1")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["notice"]["id"] == "n1"
        assert data["derived"]["status"] == "In Progress"
        assert data["derived"]["response_deadline"] == "2024-07-01"
        assert data["derived"]["days_remaining"] == 21

    def test_get_derived(self, api, seeded):
        data = api.get("/api/notices/n2/derived").json()["data"]
        assert data["status"] == "Escalated"
        assert data["escalated"] is True
        assert data["days_remaining"] is None

    def test_unknown_notice_is_404(self, api, seeded):
        response = api.get("/api/notices/missing")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"

    def test_reconcile_one_then_no_op(self, api, seeded):
        first = api.post("/api/notices/n1/reconcile").json()["data"]
        second = api.post("/api/notices/n1/reconcile").json()["data"]
        assert first["updated"] is True
        assert second["updated"] is False

    def test_reconcile_all(self, api, seeded):
        data = api.post("/api/notices/reconcile").json()["data"]
        assert data["checked"] == 2
        assert data["skipped"] == 1
        assert data["updated"] == 2
        assert data["errors"] == []

    def test_reconcile_for_client(self, api, seeded):
        data = api.post("/api/notices/reconcile/client/c2").json()["data"]
        assert data["checked"] == 1
        assert data["updated"] == 1

    def test_cleanup_closed(self, api, seeded):
        data = api.post("/api/notices/cleanup-closed").json()["data"]
        assert data["total"] == 1
        assert data["fixed"] == 1

    def test_store_failure_is_503(self, api, seeded):
        seeded.failing_tables.add("notices")
        response = api.get("/api/notices/n1")
        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["code"] == "STORE_UNAVAILABLE"
        assert detail["target"] == "notices"


# =============================================================================
# POA
# =============================================================================

class TestPOAEndpoints:
    def test_check_syncs_flag(self, api, seeded):
        data = api.get("/api/poa/notices/n1").json()["data"]
        assert data["result"]["has_valid_poa"] is True
        assert data["coverage"] == "Jan 2023 - Dec 2023"
        assert ("notices", "n1", {"poa_on_file": True}) in seeded.updates

    def test_check_without_match(self, api, seeded):
        data = api.get("/api/poa/notices/n2").json()["data"]
        assert data["result"]["has_valid_poa"] is False
        assert data["coverage"] is None

    def test_list_client_poa(self, api, seeded):
        data = api.get("/api/poa/clients/c1").json()["data"]
        assert [e["record"]["id"] for e in data] == ["p1"]
        assert data[0]["coverage"] == "Jan 2023 - Dec 2023"
        assert data[0]["valid_period"] is True

    def test_list_client_poa_flags_bad_period(self, api, seeded):
        seeded.tables["poa_records"].append(
            {"id": "p2", "client_id": "c2", "form": "941", "period_start": "sometime", "period_end": "2023"}
        )
        data = api.get("/api/poa/clients/c2").json()["data"]
        assert data[0]["valid_period"] is False

    def test_client_notice_coverage(self, api, seeded):
        data = api.get("/api/poa/clients/c1/notices").json()["data"]
        covered = {e["notice_id"]: e["result"]["has_valid_poa"] for e in data}
        assert covered == {"n1": True, "n3": False}
        assert seeded.updates == []


# =============================================================================
# BILLING
# =============================================================================

class TestBillingEndpoints:
    def test_summary_defaults_to_unbilled(self, api, seeded):
        data = api.get("/api/billing/summary").json()["data"]
        assert data["filter"] == "unbilled"
        totals = {c["client"]["id"]: Decimal(str(c["total_amount"])) for c in data["clients"]}
        assert totals == {"c1": Decimal("250"), "c2": Decimal("45")}
        assert Decimal(str(data["totals"]["total"])) == Decimal("295")

    def test_invalid_filter_rejected(self, api, seeded):
        response = api.get("/api/billing/summary?billing=sometimes")
        assert response.status_code == 422

    def test_notice_billing(self, api, seeded):
        data = api.get("/api/billing/notices/n1").json()["data"]
        amounts = {l["call"]["id"]: Decimal(str(l["billable_amount"])) for l in data["lines"]}
        assert amounts == {"r1": Decimal("250"), "r2": Decimal("0")}
        assert Decimal(str(data["total"])) == Decimal("250")

    def test_mark_billed(self, api, seeded):
        response = api.post("/api/billing/mark-billed", json={"call_ids": ["r1", "r2"]})
        assert response.json()["data"]["updated"] == 2

        data = api.get("/api/billing/summary?billing=billed").json()["data"]
        assert [c["client"]["id"] for c in data["clients"]] == ["c1"]

    def test_mark_billed_requires_ids(self, api, seeded):
        response = api.post("/api/billing/mark-billed", json={"call_ids": []})
        assert response.status_code == 422

    def test_export_workbook(self, api, seeded):
        response = api.get("/api/billing/export")
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]

        workbook = load_workbook(io.BytesIO(response.content))
        assert workbook.sheetnames == ["Client Summary", "Responses"]
        assert workbook["Responses"].max_row == 4


# =============================================================================
# DASHBOARD
# =============================================================================

class TestDashboardEndpoints:
    def test_stats(self, api, seeded):
        data = api.get("/api/dashboard/stats").json()["data"]
        assert data == {
            "total_clients": 2,
            "active_notices": 2,
            "escalated_notices": 1,
            "due_this_week": 0,
            "missing_poa": 2,
            "closed_this_month": 1,
            "total_responses": 3,
        }

    def test_escalated_list(self, api, seeded):
        data = api.get("/api/dashboard/escalated").json()["data"]
        assert [e["notice"]["id"] for e in data] == ["n2"]
        assert data[0]["derived"]["escalated"] is True
        assert data[0]["priority"] == "Low"

    def test_due_soon_window(self, api, seeded):
        data = api.get("/api/dashboard/due-soon?days=30").json()["data"]
        assert [e["notice"]["id"] for e in data] == ["n1"]
        assert data[0]["derived"]["days_remaining"] == 21
        assert data[0]["priority"] == "Medium"
