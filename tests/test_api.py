import inspect

import pytest
from fastapi.testclient import TestClient

from api import cycles as cycles_api
from db import SQLiteAlertStore
from alerts import AlertEngine
from main import create_app


@pytest.fixture
def store(tmp_path):
    return SQLiteAlertStore(str(tmp_path / "alerts.db"))


@pytest.fixture
def client(clock, store):
    engine = AlertEngine(clock=clock, sinks=[store])
    return TestClient(create_app(engine=engine, store=store))


BATCH = {
    "jobs": [
        {"job_id": "356001", "status": "Entered", "job_date": "2025-11-10"},
        {"job_id": "356002", "status": "Attempted", "truck_id": "42", "driver_id": "D7"},
        {"job_id": "356003", "status": "Entered", "truck_id": "17", "driver_id": "D2"},
    ],
    "verifications": {
        "356003": {"status": "off_schedule", "distance": 3.4, "has_tracking": True},
    },
}


def run_cycle(client, body=BATCH):
    response = client.post("/api/cycles", json=body)
    assert response.status_code == 200
    return response.json()


class TestCycles:
    def test_cycle_summary(self, client):
        data = run_cycle(client)
        assert data["new"] == 3
        assert data["total"] == 3
        assert data["bySeverity"]["HIGH"] == 3
        assert {a["id"] for a in data["newAlerts"]} == {
            "missing-truck-assignment-356001",
            "attempted-status-356002",
            "gps-location-mismatch-356003",
        }

    def test_repeat_cycle_is_quiet(self, client):
        run_cycle(client)
        data = run_cycle(client)
        assert (data["new"], data["resolved"]) == (0, 0)

    def test_malformed_jobs_counted(self, client):
        data = run_cycle(client, {"jobs": [{"status": "Entered"}, {"job_id": "5", "status": "Attempted"}]})
        assert data["new"] == 1
        assert data["jobs_skipped"] == 1

    def test_corrupt_record_does_not_fail_cycle(self, client):
        data = run_cycle(client, {"jobs": [
            {"recordId": "9", "fieldData": "corrupt"},
            {"job_id": "356001", "status": "Entered"},
        ]})
        assert data["jobs_skipped"] == 1
        assert [a["id"] for a in data["newAlerts"]] == ["missing-truck-assignment-356001"]

    def test_cycle_route_runs_on_event_loop(self):
        assert inspect.iscoroutinefunction(cycles_api.run_cycle)

    def test_request_examples_in_schema(self, client):
        schemas = client.get("/openapi.json").json()["components"]["schemas"]
        assert "example" in schemas["CycleRequest"]
        assert "example" in schemas["BulkRequest"]

    def test_missing_jobs_rejected(self, client):
        assert client.post("/api/cycles", json={}).status_code == 422


class TestAlertQueries:
    def test_list(self, client):
        run_cycle(client)
        data = client.get("/api/alerts").json()
        assert data["count"] == 3
        assert data["stats"]["HIGH"] == 3
        assert all(a["severity"] == "HIGH" for a in data["alerts"])

    def test_filters(self, client):
        run_cycle(client)
        assert client.get("/api/alerts", params={"job_id": "356002"}).json()["count"] == 1
        assert client.get("/api/alerts", params={"severity": "low"}).json()["count"] == 0
        assert client.get("/api/alerts", params={"limit": 2}).json()["count"] == 2

    def test_invalid_severity(self, client):
        response = client.get("/api/alerts", params={"severity": "urgent"})
        assert response.status_code == 400
        assert "Invalid severity" in response.json()["detail"]

    def test_highest(self, client):
        assert client.get("/api/alerts/highest").json() == {"alert": None}
        run_cycle(client)
        assert client.get("/api/alerts/highest").json()["alert"]["severity"] == "HIGH"

    def test_get_one(self, client):
        run_cycle(client)
        response = client.get("/api/alerts/attempted-status-356002")
        assert response.status_code == 200
        assert response.json()["alert"]["job_id"] == "356002"
        assert client.get("/api/alerts/nope").status_code == 404

    def test_stats_rules_dedup(self, client):
        run_cycle(client)
        assert client.get("/api/alerts/stats").json()["total"] == 3
        rules = client.get("/api/alerts/rules").json()
        assert rules["count"] == 10
        assert rules["rules"][0]["id"] == "arrival-without-completion"
        assert client.get("/api/alerts/dedup").json()["cache_size"] == 3

    def test_history(self, client):
        run_cycle(client)
        client.post("/api/alerts/attempted-status-356002/acknowledge")
        events = client.get("/api/alerts/history", params={"action": "acknowledged"}).json()
        assert events["count"] == 1
        assert events["events"][0]["actor"] == "user"
        assert client.get("/api/alerts/history", params={"action": "exploded"}).status_code == 400


class TestLifecycleEndpoints:
    def test_acknowledge(self, client):
        run_cycle(client)
        response = client.post(
            "/api/alerts/missing-truck-assignment-356001/acknowledge", json={"actor": "dispatcher"}
        )
        assert response.status_code == 200
        alert = response.json()["alert"]
        assert alert["acknowledged"]
        assert alert["acknowledged_by"] == "dispatcher"
        assert client.get("/api/alerts").json()["count"] == 3

    def test_dismiss(self, client):
        run_cycle(client)
        response = client.post("/api/alerts/missing-truck-assignment-356001/dismiss")
        assert response.status_code == 200
        assert client.get("/api/alerts/missing-truck-assignment-356001").status_code == 404
        assert run_cycle(client)["new"] == 0

    def test_unknown_alert(self, client):
        assert client.post("/api/alerts/nope/acknowledge").status_code == 404
        assert client.post("/api/alerts/nope/dismiss").status_code == 404

    def test_bulk(self, client):
        run_cycle(client)
        response = client.post("/api/alerts/bulk/acknowledge", json={
            "ids": ["attempted-status-356002", "nope"], "actor": "ops",
        })
        assert response.json() == {
            "action": "acknowledged", "succeeded": 1, "failed": 1, "failed_ids": ["nope"],
        }

        response = client.post("/api/alerts/bulk/dismiss", json={"ids": ["attempted-status-356002"]})
        assert response.json()["succeeded"] == 1
        assert client.get("/api/alerts").json()["count"] == 2

    def test_bulk_requires_ids(self, client):
        assert client.post("/api/alerts/bulk/dismiss", json={"ids": []}).status_code == 422


class TestHistoryEndpoints:
    def test_stored_alerts(self, client):
        run_cycle(client)
        client.post("/api/alerts/attempted-status-356002/acknowledge")
        data = client.get("/api/history/alerts", params={"job_id": "356002"}).json()
        assert data["count"] == 1
        assert data["alerts"][0]["acknowledged"]

    def test_daily(self, client):
        run_cycle(client)
        days = client.get("/api/history/daily").json()["days"]
        assert len(days) == 1
        assert days[0]["alert_date"] == "2025-11-10"
        assert days[0]["alert_count"] == 3
        assert days[0]["avg_response_seconds"] is None

    def test_store_stats(self, client):
        run_cycle(client)
        assert client.get("/api/history/stats").json()["alert_count"] == 3


class TestRoot:
    def test_health(self, client):
        run_cycle(client)
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["engine"]["active_alerts"] == 3
        assert data["engine"]["cycles"] == 1

    def test_health_before_startup(self):
        client = TestClient(create_app())
        assert client.get("/health").json() == {"status": "starting"}

    def test_missing_store(self, clock):
        client = TestClient(create_app(engine=AlertEngine(clock=clock)))
        assert client.get("/api/history/stats").status_code == 503
