#!/usr/bin/env python3
"""Tests for the Flask JSON API."""

import pytest

from carbook.config import DATA_DIR_ENV
from web.app import app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    monkeypatch.setitem(app.config, "CARBOOK_DATA_DIR", str(tmp_path))
    monkeypatch.setitem(app.config, "TESTING", True)
    return app.test_client()


class TestRecordRoutes:
    """Tests for /api/<collection> CRUD routes."""

    def test_create_and_get(self, client):
        response = client.post("/api/fuel", json={"odometer": 1000, "liters": 30, "pricePerLiter": 2})
        assert response.status_code == 201
        record_id = response.get_json()["id"]

        record = client.get(f"/api/fuel/{record_id}").get_json()
        assert record["totalCost"] == 60

    def test_list_sorted(self, client):
        client.post("/api/fuel", json={"odometer": 1000, "date": "2025-01-01"})
        client.post("/api/fuel", json={"odometer": 1400, "date": "2025-02-01"})
        records = client.get("/api/fuel?sort=date&order=asc").get_json()
        assert [r["odometer"] for r in records] == [1000, 1400]

    def test_update(self, client):
        client.post("/api/suppliers", json={"name": "Corner Garage", "rating": 3})
        response = client.put("/api/suppliers/1", json={"name": "Corner Garage", "rating": 5})
        assert response.status_code == 200
        assert response.get_json()["rating"] == 5

    def test_delete(self, client):
        client.post("/api/parts", json={"name": "Wiper", "sku": "W1"})
        assert client.delete("/api/parts/1").status_code == 204
        assert client.get("/api/parts/1").status_code == 404

    def test_unknown_collection_404(self, client):
        response = client.get("/api/boats")
        assert response.status_code == 404
        assert "error" in response.get_json()

    def test_invalid_record_400(self, client):
        response = client.post("/api/savings", json={"amount": "lots"})
        assert response.status_code == 400

    def test_non_json_body_400(self, client):
        response = client.post("/api/savings", data="amount=5")
        assert response.status_code == 400

    def test_maintenance_with_expense(self, client):
        response = client.post(
            "/api/maintenance?expense=true",
            json={"odometer": 1000, "services": [{"name": "Oil change", "cost": 50}]},
        )
        assert response.status_code == 201
        body = response.get_json()
        expense = client.get(f"/api/expenses/{body['expenseId']}").get_json()
        assert expense["linkedMaintenanceId"] == body["id"]


class TestDerivedRoutes:
    """Tests for totals, efficiency, reminders and dashboard routes."""

    def test_totals(self, client):
        client.post("/api/carSavings", json={"amount": 60, "description": "Side job"})
        client.post("/api/carSavings", json={"amount": 40, "description": "Gift"})
        body = client.get("/api/totals/carSavings").get_json()
        assert body["total"] == 100
        assert body["recordCount"] == 2
        assert [s["percentage"] for s in body["breakdown"]["sources"]] == [60.0, 40.0]

    def test_totals_unknown_kind(self, client):
        assert client.get("/api/totals/fuel").status_code == 404

    def test_goal(self, client):
        assert client.put("/api/goal", json={"amount": 2500}).get_json() == {"amount": 2500}
        assert client.get("/api/goal").get_json() == {"amount": 2500}

    def test_fuel_efficiency(self, client):
        client.post("/api/fuel", json={"odometer": 1000, "liters": 40})
        client.post("/api/fuel", json={"odometer": 1400, "liters": 30})
        body = client.get("/api/fuel/efficiency").get_json()
        assert body["intervals"][0]["km_per_liter"] == 13.33
        assert body["average"]["liters_per_100km"] == 7.5

    def test_reminders_and_complete(self, client):
        client.post("/api/maintenance", json={"odometer": 1000, "nextServiceKm": 300})
        body = client.get("/api/reminders").get_json()
        assert body["odometer"] == 1000
        assert body["reminders"][0]["status"] == "urgent"
        assert client.get("/api/reminders?status=overdue").get_json()["reminders"] == []

        response = client.post("/api/maintenance/1/complete", json={"odometer": 1300})
        assert response.status_code == 200
        assert client.get("/api/reminders").get_json()["reminders"] == []

    def test_odometer(self, client):
        response = client.put("/api/odometer", json={"odometer": 12345})
        assert response.get_json()["odometer"] == 12345
        assert client.put("/api/odometer", json={"odometer": -1}).status_code == 400

    def test_dashboard(self, client):
        client.post("/api/expenses", json={"amount": 25})
        body = client.get("/api/dashboard").get_json()
        assert body["expense_total"] == 25
        assert body["efficiency"] is None

    def test_malformed_goal_setting_rejected(self, client):
        client.put("/api/goal", json={"amount": 2500})
        response = client.put("/api/settings/carGoal", json={"amount": "lots"})
        assert response.status_code == 400
        assert client.get("/api/totals/carSavings").get_json()["breakdown"]["goal"] == 2500

    def test_running_total_delete_rejected(self, client):
        client.post("/api/carSavings", json={"amount": 100})
        assert client.delete("/api/runningTotals/carSavings").status_code == 400
        assert client.get("/api/totals/carSavings").get_json()["total"] == 100

    def test_orphaned_expenses(self, client):
        client.post("/api/expenses", json={"amount": 25, "linkedMaintenanceId": 7})
        assert [e["amount"] for e in client.get("/api/expenses/orphaned").get_json()] == [25]


class TestBackupRoutes:
    """Tests for export and import routes."""

    def test_export_json_attachment(self, client):
        client.post("/api/carSavings", json={"amount": 60})
        response = client.get("/api/export")
        assert "car_maintenance_data_" in response.headers["Content-Disposition"]
        assert len(response.get_json()["carSavings"]) == 1

    def test_export_csv(self, client):
        client.post("/api/carSavings", json={"amount": 60})
        response = client.get("/api/export?format=csv")
        assert response.mimetype == "text/csv"
        assert "### carSavings ###" in response.get_data(as_text=True)

    def test_export_bad_format(self, client):
        assert client.get("/api/export?format=xml").status_code == 400

    def test_import_round_trip(self, client):
        client.post("/api/carSavings", json={"amount": 60})
        bundle = client.get("/api/export").get_json()
        client.delete("/api/carSavings/1")

        response = client.post("/api/import", json=bundle)
        assert response.status_code == 200
        assert response.get_json()["ok"] is True
        assert client.get("/api/totals/carSavings").get_json()["total"] == 60

    def test_import_partial_failure(self, client):
        response = client.post("/api/import", json={"fuel": "not a list", "parts": []})
        assert response.status_code == 207
        body = response.get_json()
        assert "fuel" in body["failed"]
        assert "parts" in body["succeeded"]


class TestReportRoutes:
    """Tests for /api/reports/<kind>."""

    def test_fuel_report(self, client):
        client.post("/api/fuel", json={"date": "2025-01-01", "odometer": 1000, "liters": 40, "pricePerLiter": 2})
        client.post("/api/fuel", json={"date": "2025-02-01", "odometer": 1400, "liters": 30, "pricePerLiter": 2.5})
        body = client.get("/api/reports/fuel?start=2025-01-15&end=2025-02-28").get_json()
        assert body["count"] == 1
        assert body["total_cost"] == 75
        assert body["total_liters"] == 30

    def test_price_filter(self, client):
        client.post("/api/fuel", json={"date": "2025-01-01", "odometer": 1000, "liters": 40, "pricePerLiter": 2})
        client.post("/api/fuel", json={"date": "2025-02-01", "odometer": 1400, "liters": 30, "pricePerLiter": 2.5})
        assert client.get("/api/reports/fuel?maxPrice=2").get_json()["count"] == 1

    def test_maintenance_report(self, client):
        client.post("/api/maintenance", json={
            "date": "2025-01-10", "odometer": 1000, "supplier": "Corner Garage",
            "services": [{"name": "Oil change", "cost": 65}],
        })
        body = client.get("/api/reports/maintenance?serviceType=oil").get_json()
        assert body["visits"] == 1
        assert body["total_cost"] == 65

    def test_savings_report(self, client):
        client.post("/api/carSavings", json={"date": "2025-01-10", "amount": 60})
        assert client.get("/api/reports/carSavings?end=2025-01-31").get_json()["total"] == 60

    def test_bad_date_400(self, client):
        assert client.get("/api/reports/fuel?start=someday").status_code == 400

    def test_bad_price_400(self, client):
        assert client.get("/api/reports/fuel?minPrice=cheap").status_code == 400

    def test_unknown_kind_404(self, client):
        assert client.get("/api/reports/parts").status_code == 404
