"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .core.config import settings
from .core.database import close_db, engine, get_db, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_NAME,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import availability, booking, health, hold, metrics, schedule
from .routers.health import check_database
from .workers.manager import worker_manager

# Configure structured logging
setup_structured_logging()

logger = logging.getLogger(__name__)

DB_DEPENDENCY = Depends(get_db)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events for the FastAPI application.
    """
    logger.info(
        "Starting booking core",
        extra={"environment": settings.environment, "debug": settings.debug}
    )

    try:
        setup_tracing(SERVICE_NAME)
        setup_metrics(SERVICE_NAME)
        instrument_sqlalchemy(engine)

        # Migrations own the schema outside development
        if settings.debug:
            await init_db()

        await worker_manager.start_all()
    except Exception:
        logger.error("Failed to initialize application", exc_info=True)
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down booking core")

    try:
        await worker_manager.stop_all()
        await close_db()
    except Exception:
        logger.error("Error during application cleanup", exc_info=True)

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Reserva Booking Core",
        description="RPC-over-HTTP API for multi-tenant resource availability, slot holds and conflict-free booking commits",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    setup_middleware(app, enable_logging=True)

    # Instrument FastAPI with OpenTelemetry
    instrument_fastapi(app)

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        response_model=dict,
    )
    async def health_check():
        """Liveness: the process is up and serving."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": "1.0.0",
            "environment": settings.environment,
        }

    @app.get(
        "/ready",
        tags=["Health"],
        summary="Readiness Check",
        response_model=dict,
    )
    async def readiness_check(db: AsyncSession = DB_DEPENDENCY):
        """Readiness: the database answers and the background workers are running."""
        database = await check_database(db)
        workers = worker_manager.get_worker_status()
        ready = database == "ok"
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if ready else "not_ready",
                "service": SERVICE_NAME,
                "checks": {"database": database, "workers": workers},
            },
        )

    @app.get(
        "/info",
        status_code=status.HTTP_200_OK,
        tags=["Info"],
        summary="Service Information",
        response_model=dict,
    )
    async def service_info():
        """Service configuration relevant to clients."""
        return {
            "service": SERVICE_NAME,
            "version": "1.0.0",
            "environment": settings.environment,
            "holds": {
                "default_ttl_seconds": settings.hold_ttl_seconds,
                "max_ttl_seconds": settings.hold_max_ttl_seconds,
                "max_lifetime_seconds": settings.hold_max_lifetime_seconds,
            },
            "endpoints": {
                "availability": "/v1/availability",
                "hold": "/v1/hold",
                "booking": "/v1/booking",
                "schedule": "/v1/schedule",
                "metrics": "/metrics",
                "docs": "/docs" if settings.debug else None,
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(availability.router)
    app.include_router(hold.router)
    app.include_router(booking.router)
    app.include_router(schedule.router)
    app.include_router(metrics.router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reserva.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
