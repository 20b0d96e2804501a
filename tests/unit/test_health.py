"""Tests for Health Check Endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:
    """Test health probes."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_ready(self, client):
        with patch("app.api.routes.health.check_db_health", AsyncMock(return_value=True)), \
                patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=True)):
            response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"] == {"database": "ok", "redis": "ok"}

    def test_not_ready_when_database_down(self, client):
        with patch("app.api.routes.health.check_db_health", AsyncMock(return_value=False)), \
                patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=True)):
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
        assert response.json()["checks"]["database"] == "failed"

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"
