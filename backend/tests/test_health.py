"""Tests for /health and / endpoints."""

from tests.conftest import make_grid


class TestHealth:

    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] in ("healthy", "degraded")
        assert "db" in data
        assert "uptime_seconds" in data
        assert "version" in data
        assert "cell_count" in data
        assert "pending_bulk_jobs" in data

    def test_health_counts_cells(self, client, db):
        make_grid(db, columns={"Name": {}, "Role": {}}, rows=[{"Name": "Alice"}, {"Name": "Bob"}])
        data = client.get("/health").json()
        assert data["db"] == "ok"
        assert data["cell_count"] == 4
        assert data["pending_bulk_jobs"] == 0

    def test_root_returns_api_info(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Gridfill API"


class TestResponseHeaders:

    def test_response_includes_middleware_headers(self, client):
        resp = client.get("/health")
        assert "x-request-id" in resp.headers
        assert "x-response-time" in resp.headers

    def test_request_id_is_propagated(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "trace-123"})
        assert resp.headers["x-request-id"] == "trace-123"
