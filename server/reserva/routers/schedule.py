"""Schedule router for business hours and calendar entries."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.database import get_db
from ..core.dependencies import get_tenant_id
from ..core.exceptions import ProblemDetailsException
from ..schemas.schedule import (
    CalendarEntryRequest,
    GetScheduleRequest,
    ScheduleDay,
    ScheduleResponse,
    SetBusinessHoursRequest,
)
from ..scheduling.hours import DayHours
from ..services.schedule_service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/schedule", tags=["schedule"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
TENANT_DEPENDENCY = Depends(get_tenant_id)


def _convert_schedule_to_schema(
    resource_id: int | None,
    days: list[tuple[date, DayHours | None, bool]],
) -> ScheduleResponse:
    """Convert effective hours to schema."""
    return ScheduleResponse(
        resource_id=resource_id,
        days=[
            ScheduleDay(
                entry_date=day,
                closed=hours is None,
                blackout=blackout,
                opens_at=hours.opens_at if hours else None,
                closes_at=hours.closes_at if hours else None,
            )
            for day, hours, blackout in days
        ],
    )


@router.post("/hours", response_model=ScheduleResponse)
async def set_business_hours(
    request: SetBusinessHoursRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """
    Replace the weekly hours of the tenant or of one resource.

    Returns the effective hours of the coming week.
    """
    try:
        schedule_service = ScheduleService(db)
        await schedule_service.set_business_hours(tenant_id, request)
        days = await schedule_service.get_schedule(tenant_id, utcnow().date(), 7, request.resource_id)
        response_data = _convert_schedule_to_schema(request.resource_id, days)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in business hours update",
            extra={"tenant_id": tenant_id, "resource_id": request.resource_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/blackout", response_model=ScheduleResponse)
async def add_calendar_entry(
    request: CalendarEntryRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """Close a date or set special hours for it; returns the effective hours of that date."""
    try:
        schedule_service = ScheduleService(db)
        await schedule_service.add_calendar_entry(tenant_id, request)
        days = await schedule_service.get_schedule(tenant_id, request.entry_date, 1, request.resource_id)
        response_data = _convert_schedule_to_schema(request.resource_id, days)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in calendar entry creation",
            extra={
                "tenant_id": tenant_id,
                "resource_id": request.resource_id,
                "entry_date": request.entry_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=ScheduleResponse)
async def get_schedule(
    request: GetScheduleRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """Get the effective hours of the tenant or one resource for a date range."""
    try:
        schedule_service = ScheduleService(db)
        days = await schedule_service.get_schedule(tenant_id, request.start_date, request.days, request.resource_id)
        response_data = _convert_schedule_to_schema(request.resource_id, days)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in schedule retrieval",
            extra={"tenant_id": tenant_id, "start_date": request.start_date.isoformat(), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
