"""API health tests against the real application factory."""

import pytest
from httpx import ASGITransport, AsyncClient

from reserva.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoints():
    """Test the health endpoints of the configured application."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"

        response = await client.get("/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"] == "ok"

        response = await client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert "service" in data
        assert data["holds"]["max_lifetime_seconds"] >= data["holds"]["default_ttl_seconds"]
        assert data["endpoints"]["booking"] == "/v1/booking"


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Test the metrics endpoint."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_request_id_is_echoed():
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_openapi_docs_hidden_outside_development():
    """Docs are only served when debug is on."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/docs")
        assert response.status_code == 404


def test_app_registers_booking_core_routes():
    app = create_app()
    paths = {route.path for route in app.routes}

    assert {
        "/v1/availability/slots",
        "/v1/hold/issue",
        "/v1/hold/extend",
        "/v1/hold/release",
        "/v1/booking/commit",
        "/v1/booking/cancel",
        "/v1/booking/reschedule",
        "/v1/schedule/get",
    } <= paths
