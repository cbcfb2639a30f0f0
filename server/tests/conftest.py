"""Test configuration and fixtures."""

import os

# Must be set before reserva.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("HOLD_REAPER_ENABLED", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient  # noqa: E402

from factories import (  # noqa: E402
    FrozenClock,
    create_engine_with_schema,
    seed_tenant,
    session_factory,
)
from reserva.core.database import Base, get_db  # noqa: E402
from reserva.core.dependencies import get_clock  # noqa: E402
from reserva.models import *  # noqa: E402,F403 - Import all models


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = await create_engine_with_schema()

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async with session_factory(test_engine)() as session:
        yield session


@pytest.fixture
def clock():
    """Clock frozen at 2030-01-01 08:00 UTC."""
    return FrozenClock()


@pytest_asyncio.fixture(scope="function")
async def seeded(test_session):
    """Tenant open 09:00-21:00 every day with two staff members and a 60 minute menu."""
    return await seed_tenant(test_session)


@pytest_asyncio.fixture(scope="function")
async def other_tenant(test_session, seeded):
    """A second tenant with its own catalog."""
    return await seed_tenant(test_session, name="Other Salon")


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, clock):
    """Create a test FastAPI application."""
    from fastapi import FastAPI

    from reserva.core.exceptions import ProblemDetailsException, generic_exception_handler, problem_details_handler
    from reserva.routers import availability, booking, health, hold, metrics, schedule

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Reserva Booking Core (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "reserva-booking-core",
            "version": "1.0.0",
            "environment": "test",
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "reserva-booking-core",
            "checks": {
                "database": "ok",
                "workers": {},
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(availability.router)
    app.include_router(hold.router)
    app.include_router(booking.router)
    app.include_router(schedule.router)
    app.include_router(metrics.router)

    # Override database and clock dependencies
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def tenant_headers(seeded):
    """Headers scoping requests to the seeded tenant."""
    return {"X-Tenant-ID": str(seeded.tenant.id)}
