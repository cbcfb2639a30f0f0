"""Health check router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.database import get_db
from ..schemas.health import HealthResponse, HealthStatus
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])

DB_DEPENDENCY = Depends(get_db)


async def check_database(db: AsyncSession) -> str:
    """Round-trip the database; returns "ok" or the error class name."""
    try:
        await db.execute(text("SELECT 1"))
        return "ok"
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return type(e).__name__


@router.post("/ping", response_model=HealthResponse)
async def health_ping(db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """
    Health check endpoint.

    Reports degraded, still with 200, when the database round trip fails.
    """
    database = await check_database(db)
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY if database == "ok" else HealthStatus.DEGRADED,
        timestamp=utcnow(),
        version="1.0.0",
        database=database,
        workers=worker_manager.get_worker_status(),
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status,
            "database": database,
        }
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )
