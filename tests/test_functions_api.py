"""
Named functions: search endpoints and fixed-payload stubs.
"""

import pytest


@pytest.fixture
def seeded(client):
    client.post("/api/entities/Pipeline/batch", json={"items": [
        {"name": "Nightly Load", "status": "active"},
        {"name": "Other", "status": "active"},
    ]})
    client.post("/api/entities/Connection/batch", json={"items": [
        {"name": "Warehouse", "platform": "snowflake", "password": "pw"},
        {"name": "Scheduler", "platform": "airflow"},
    ]})
    client.post("/api/entities/ActivityLog/batch", json={"items": [
        {"message": "Pipeline loaded 10 rows", "category": "ingestion"},
        {"message": "Connection failed", "category": "error"},
    ]})


class TestSearchFunctions:

    def test_search_pipelines_by_term(self, client, seeded):
        resp = client.post("/api/functions/searchPipelines", json={"searchTerm": "load"})
        assert resp.status_code == 200
        assert [r["name"] for r in resp.json()] == ["Nightly Load"]

    def test_search_with_filters(self, client, seeded):
        resp = client.post("/api/functions/searchPipelines", json={"filters": {"status": "active"}, "limit": 1})
        assert len(resp.json()) == 1

    def test_search_connections_redacts(self, client, seeded):
        results = client.post("/api/functions/searchConnections", json={"searchTerm": "snowflake"}).json()
        assert [r["name"] for r in results] == ["Warehouse"]
        assert results[0]["password"] != "pw"

    def test_search_activity_logs_shape(self, client, seeded):
        body = client.post("/api/functions/searchActivityLogs", json={"searchTerm": "error"}).json()
        assert body["nextCursor"] is None
        assert body["hasMore"] is False
        assert [r["message"] for r in body["items"]] == ["Connection failed"]

    def test_search_without_body(self, client, seeded):
        assert len(client.post("/api/functions/searchPipelines").json()) == 2

    def test_invalid_filter_field(self, client, seeded):
        resp = client.post("/api/functions/searchPipelines", json={"filters": {"%%": "x"}})
        assert resp.status_code == 400


class TestStubFunctions:

    @pytest.mark.parametrize("name,expected", [
        ("fetchVaultCredentials", {"error": "Vault not configured in local environment"}),
        ("generateLineage", {"error": "Lineage feature has been removed"}),
        ("triggerDependentPipelines", {"triggered": []}),
    ])
    def test_fixed_payloads(self, client, name, expected):
        resp = client.post(f"/api/functions/{name}", json={"anything": 1})
        assert resp.status_code == 200
        assert resp.json() == expected

    def test_sync_airflow_dags(self, client):
        assert client.post("/api/functions/syncAirflowDagsAsync").json()["status"] == "sync_not_available"

    def test_unknown_function(self, client):
        resp = client.post("/api/functions/dropEverything", json={})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Function 'dropEverything' not found"}
