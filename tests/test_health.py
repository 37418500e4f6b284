"""Tests for the /health endpoint."""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from questline.api.health import get_db


class _BrokenSession:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))


def test_health_returns_ok(client: TestClient) -> None:
    """GET /health should return 200 with status 'ok'."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"


def test_health_db_status(client: TestClient) -> None:
    """GET /health response must contain a 'database' field."""
    response = client.get("/health")
    data = response.json()
    assert "database" in data


def test_health_reports_disconnected_database(client: TestClient) -> None:
    client.app.dependency_overrides[get_db] = lambda: _BrokenSession()
    try:
        response = client.get("/health")
    finally:
        client.app.dependency_overrides.clear()
    assert response.status_code == 200
    assert response.json() == {"status": "error", "database": "disconnected"}
