"""Tests for health, readiness, and request correlation."""

import pytest

from billing_sync.core.config import get_settings

pytestmark = pytest.mark.integration


async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "billing-sync"}


async def test_health_reports_draining(app, client):
    app.state.shutting_down = True

    response = await client.get("/api/health")

    assert response.status_code == 503


async def test_ready_checks_database(client):
    response = await client.get("/api/ready")

    assert response.status_code == 200
    body = response.json()
    assert body["checks"] == {"database": True, "webhook_secret": True}
    assert body["plans"] == ["enterprise", "pro"]


async def test_not_ready_without_webhook_secret(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "stripe_webhook_secret", "")

    response = await client.get("/api/ready")

    assert response.status_code == 503
    assert response.json()["checks"]["webhook_secret"] is False


async def test_request_id_generated(client):
    response = await client.get("/api/health")

    assert response.headers.get("x-request-id")


async def test_request_id_echoed(client):
    response = await client.get("/api/health", headers={"X-Request-ID": "stripe-delivery-42"})

    assert response.headers["x-request-id"] == "stripe-delivery-42"


async def test_unusable_request_id_replaced(client):
    response = await client.get("/api/health", headers={"X-Request-ID": "bad id with spaces"})

    assert response.headers["x-request-id"] != "bad id with spaces"
