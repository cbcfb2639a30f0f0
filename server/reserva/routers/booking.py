"""Booking router for commits and lifecycle transitions."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import get_clock, get_tenant_id
from ..core.exceptions import ProblemDetailsException
from ..schemas.common import Problem
from ..schemas.booking import (
    Booking,
    BookingActionRequest,
    BookingList,
    BookingOptionLine,
    CancelBookingRequest,
    CommitBookingRequest,
    ListBookingsRequest,
    RescheduleBookingRequest,
)
from ..services.booking_service import BookingConflictResolver, parse_booking_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
TENANT_DEPENDENCY = Depends(get_tenant_id)
CLOCK_DEPENDENCY = Depends(get_clock)


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        booking_number=booking_model.booking_number,
        customer_id=booking_model.customer_id,
        menu_id=booking_model.menu_id,
        resource_id=booking_model.resource_id,
        booking_date=booking_model.booking_date,
        start_time=booking_model.start_time,
        end_time=booking_model.end_time,
        duration_minutes=booking_model.duration_minutes,
        total_price=booking_model.total_price,
        status=booking_model.status,
        hold_token=booking_model.hold_token,
        options=[
            BookingOptionLine(
                menu_option_id=option.menu_option_id,
                name=option.name,
                price=option.price,
                duration_minutes=option.duration_minutes,
            )
            for option in booking_model.options
        ],
        notes=booking_model.notes,
        cancelled_at=booking_model.cancelled_at,
        cancellation_reason=booking_model.cancellation_reason,
        completed_at=booking_model.completed_at,
        created_at=booking_model.created_at,
    )


def _booking_response(booking_model) -> JSONResponse:
    return JSONResponse(content=_convert_booking_to_schema(booking_model).model_dump(mode="json"))


@router.post(
    "/commit",
    response_model=Booking,
    responses={
        409: {"model": Problem, "description": "Interval already booked or held"},
        410: {"model": Problem, "description": "Hold token expired, consumed or not matching"},
        422: {"model": Problem, "description": "Outside business hours"},
    },
)
async def commit_booking(
    request: CommitBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Commit a booking, directly or by consuming a hold token.

    Fails with 409 BOOKING_CONFLICT on overlap, 410 HOLD_TOKEN_EXPIRED for a
    stale token and 422 OUTSIDE_BUSINESS_HOURS outside the working window.
    """
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.commit_booking(tenant_id, request)
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking commit",
            extra={
                "tenant_id": tenant_id,
                "menu_id": request.menu_id,
                "resource_id": request.resource_id,
                "booking_date": request.booking_date.isoformat(),
                "start_time": request.start_time.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Cancel a booking, freeing its interval.

    Cancelling an already cancelled booking returns it unchanged.
    """
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.cancel_booking(tenant_id, parse_booking_id(request.booking_id), request.reason)
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking cancellation",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post(
    "/reschedule",
    response_model=Booking,
    responses={
        409: {"model": Problem, "description": "New interval already booked or held, or booking not active"},
        422: {"model": Problem, "description": "Outside business hours"},
    },
)
async def reschedule_booking(
    request: RescheduleBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Move a booking to a new start, resource or option set.

    The booking's current interval never conflicts with the new one.
    """
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.reschedule_booking(
            tenant_id,
            parse_booking_id(request.booking_id),
            request.booking_date,
            request.start_time,
            option_ids=request.option_ids,
            resource_id=request.resource_id,
        )
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking reschedule",
            extra={
                "tenant_id": tenant_id,
                "booking_id": request.booking_id,
                "booking_date": request.booking_date.isoformat(),
                "start_time": request.start_time.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Booking)
async def get_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """Get booking details by ID."""
    try:
        resolver = BookingConflictResolver(db)
        booking = await resolver.get_booking(tenant_id, parse_booking_id(request.booking_id))
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking retrieval",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/list", response_model=BookingList)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
) -> JSONResponse:
    """List the bookings of a date, optionally for one resource."""
    try:
        resolver = BookingConflictResolver(db)
        bookings = await resolver.list_bookings(
            tenant_id, request.booking_date, request.resource_id, request.include_inactive
        )
        response_data = BookingList(bookings=[_convert_booking_to_schema(booking) for booking in bookings])
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking list",
            extra={"tenant_id": tenant_id, "booking_date": request.booking_date.isoformat(), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/approve", response_model=Booking)
async def approve_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Confirm a pending booking."""
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.approve_booking(tenant_id, parse_booking_id(request.booking_id))
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking approval",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/complete", response_model=Booking)
async def complete_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Mark a confirmed booking completed."""
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.complete_booking(tenant_id, parse_booking_id(request.booking_id))
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking completion",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/no-show", response_model=Booking)
async def mark_no_show(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Mark a confirmed booking as a no-show."""
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        booking = await resolver.mark_no_show(tenant_id, parse_booking_id(request.booking_id))
        return _booking_response(booking)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in no-show marking",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/delete")
async def delete_booking(
    request: BookingActionRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Soft-delete a booking."""
    try:
        resolver = BookingConflictResolver(db, clock=clock)
        await resolver.soft_delete_booking(tenant_id, parse_booking_id(request.booking_id))
        return JSONResponse(content={"booking_id": request.booking_id, "deleted": True})

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking deletion",
            extra={"tenant_id": tenant_id, "booking_id": request.booking_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
