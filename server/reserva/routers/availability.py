"""Availability router for slot searches and quotes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import get_clock, get_tenant_id
from ..core.exceptions import ProblemDetailsException
from ..schemas.availability import (
    AvailabilityCalendarRequest,
    AvailabilityCalendarResponse,
    AvailabilityRequest,
    AvailabilityResponse,
    AvailableSlot,
    CalendarDay,
    NextAvailableRequest,
    NextAvailableResponse,
    QuoteLine,
    QuoteRequest,
    QuoteResponse,
)
from ..scheduling.resource_ref import resource_ref
from ..services.availability_service import AvailabilityService, DayAvailability, Slot
from ..services.duration_price import DurationPriceResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/availability", tags=["availability"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
TENANT_DEPENDENCY = Depends(get_tenant_id)
CLOCK_DEPENDENCY = Depends(get_clock)


def _convert_slot_to_schema(slot: Slot) -> AvailableSlot:
    """Convert slot to schema."""
    return AvailableSlot(
        start_time=slot.start_time,
        end_time=slot.end_time,
        resource_ids=list(slot.resource_ids),
    )


def _convert_day_to_schema(day: DayAvailability) -> CalendarDay:
    """Convert one day of availability to schema."""
    return CalendarDay(
        booking_date=day.day,
        available=day.available,
        slot_count=len(day.slots),
        first_start=day.slots[0].start_time if day.slots else None,
        last_start=day.slots[-1].start_time if day.slots else None,
    )


@router.post("/slots", response_model=AvailabilityResponse)
async def get_availability(
    request: AvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Get bookable slots for a menu on one date.

    Omit ``resource_id`` to search across every eligible resource.
    """
    try:
        availability_service = AvailabilityService(db, clock=clock)
        day = await availability_service.get_day_availability(
            tenant_id,
            request.menu_id,
            resource_ref(request.resource_id),
            request.booking_date,
            request.option_ids,
        )
        response_data = AvailabilityResponse(
            booking_date=request.booking_date,
            menu_id=request.menu_id,
            resource_id=request.resource_id,
            duration_minutes=day.duration_minutes,
            slots=[_convert_slot_to_schema(slot) for slot in day.slots],
        )
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in availability search",
            extra={
                "tenant_id": tenant_id,
                "menu_id": request.menu_id,
                "resource_id": request.resource_id,
                "booking_date": request.booking_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/calendar", response_model=AvailabilityCalendarResponse)
async def get_availability_calendar(
    request: AvailabilityCalendarRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Get a per-day availability summary for a date range."""
    try:
        availability_service = AvailabilityService(db, clock=clock)
        days = await availability_service.get_availability_calendar(
            tenant_id,
            request.menu_id,
            resource_ref(request.resource_id),
            request.start_date,
            request.days,
            request.option_ids,
        )
        response_data = AvailabilityCalendarResponse(
            menu_id=request.menu_id,
            resource_id=request.resource_id,
            days=[_convert_day_to_schema(day) for day in days],
        )
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in availability calendar",
            extra={
                "tenant_id": tenant_id,
                "menu_id": request.menu_id,
                "start_date": request.start_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/next", response_model=NextAvailableResponse)
async def find_next_available(
    request: NextAvailableRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Find the earliest bookable slot on or after a date."""
    try:
        availability_service = AvailabilityService(db, clock=clock)
        found = await availability_service.find_next_available(
            tenant_id,
            request.menu_id,
            resource_ref(request.resource_id),
            request.from_date,
            request.horizon_days,
            request.option_ids,
        )
        if found is None:
            response_data = NextAvailableResponse(found=False)
        else:
            day, slot = found
            response_data = NextAvailableResponse(
                found=True,
                booking_date=day,
                slot=_convert_slot_to_schema(slot),
            )
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in next available search",
            extra={"tenant_id": tenant_id, "menu_id": request.menu_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    request: QuoteRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """Get the total duration and price of a menu selection."""
    try:
        price_quote = await DurationPriceResolver(db).resolve(
            tenant_id, request.menu_id, request.option_ids, resource_id=request.resource_id
        )
        response_data = QuoteResponse(
            menu_id=price_quote.menu_id,
            total_duration_minutes=price_quote.total_duration,
            total_price=price_quote.total_price,
            lines=[
                QuoteLine(
                    kind=line.kind,
                    name=line.name,
                    amount=line.amount,
                    duration_minutes=line.duration_minutes,
                    option_id=line.option_id,
                )
                for line in price_quote.lines
            ],
        )
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in quote",
            extra={"tenant_id": tenant_id, "menu_id": request.menu_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
