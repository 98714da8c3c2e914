"""Route tests for health probes, metrics and the root endpoint."""

from datetime import timedelta

import httpx
import pytest

from moveup.main import app


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["service"] == "moveup-api"
    assert body["timestamp"].endswith("Z")


def test_health_lite(client):
    assert client.get("/health/lite").json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_health_lite_async():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        response = await http.get("/health/lite")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_prometheus_metrics(client, clock):
    client.post(
        "/api/v1/bookings",
        json={
            "lesson_id": "lesson_1",
            "instructor_id": "trainer_01",
            "user_id": "student_01",
            "scheduled_at": (clock() + timedelta(hours=1)).isoformat(),
            "total_amount": "30.00",
        },
    )
    response = client.get("/metrics/prometheus")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "moveup_service_operations_total" in response.text


def test_root(client):
    body = client.get("/").json()
    assert body["version"] == "1.0.0"
    assert body["docs"] == "/docs"
