"""
Health, mock auth and admin routes.
"""

from unittest.mock import patch

from dataflow.core.db import EntityStore


class TestHealth:

    def test_healthy(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"
        assert body["uptime"] >= 0

    def test_degraded(self, client):
        with patch.object(EntityStore, "health_check", return_value=False):
            resp = client.get("/api/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"


class TestMockAuth:

    def test_me(self, client):
        body = client.get("/api/auth/me").json()
        assert body["is_authenticated"] is True
        assert body["id"] == "1"
        assert {"email", "name", "role"} <= set(body)

    def test_logout(self, client):
        assert client.post("/api/auth/logout").json() == {"success": True}

    def test_public_settings(self, client):
        body = client.get("/api/apps/public/prod/public-settings/by-id/abc").json()
        assert body == {"appId": "abc", "name": "DataFlow", "requiresAuth": False, "status": "active"}


class TestAdmin:

    def test_purge_logs(self, client, store):
        client.post("/api/entities/ActivityLog", json={"message": "ancient"})
        client.post("/api/entities/ActivityLog", json={"message": "fresh"})
        store.execute_write(
            'UPDATE "activity_log" SET created_date = ?1 WHERE id = 1',
            ["2001-01-01T00:00:00.000000+00:00"]
        )
        resp = client.post("/api/admin/purge-logs", json={"days": 7})
        assert resp.json() == {"deleted": 1}
        assert client.post("/api/admin/purge-logs").json() == {"deleted": 0}

    def test_data_model(self, client):
        body = client.get("/api/admin/data-model").json()
        assert "pipeline" in [t["name"] for t in body["tables"]]
        assert all({"tablename", "indexname", "indexdef"} <= set(i) for i in body["indexes"])

    def test_closed_store(self, client, store):
        store.close()
        resp = client.get("/api/entities/Pipeline")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Entity store is closed"}
