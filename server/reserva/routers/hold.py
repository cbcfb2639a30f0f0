"""Hold router for slot hold tokens."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import get_db
from ..core.dependencies import get_clock, get_tenant_id
from ..core.exceptions import ProblemDetailsException
from ..models.hold import HoldToken
from ..schemas.common import Problem
from ..schemas.hold import (
    ExtendHoldRequest,
    Hold,
    HoldExpiry,
    HoldTokenRequest,
    IssueHoldRequest,
    ReleaseHoldResponse,
)
from ..services.hold_service import HoldService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/hold", tags=["hold"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
TENANT_DEPENDENCY = Depends(get_tenant_id)
CLOCK_DEPENDENCY = Depends(get_clock)


def _convert_hold_to_schema(hold_model: HoldToken, clock: Clock) -> Hold:
    """Convert hold model to schema."""
    now = clock()
    return Hold(
        token=hold_model.token,
        resource_id=hold_model.resource_id,
        menu_id=hold_model.menu_id,
        booking_date=hold_model.hold_date,
        start_time=hold_model.start_time,
        end_time=hold_model.end_time,
        option_ids=list(hold_model.option_ids or []),
        expires_at=hold_model.expires_at,
        state=hold_model.state(now).value,
        remaining_seconds=hold_model.remaining_seconds(now),
    )


@router.post(
    "/issue",
    response_model=Hold,
    responses={
        409: {"model": Problem, "description": "Interval already booked or held"},
        422: {"model": Problem, "description": "Outside business hours"},
    },
)
async def issue_hold(
    request: IssueHoldRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Hold a slot for a short time while the customer completes the booking.

    Fails with 409 SLOT_CONFLICT when the slot is already booked or held.
    """
    try:
        hold_service = HoldService(db, clock=clock)
        hold = await hold_service.issue_hold(tenant_id, request)
        response_data = _convert_hold_to_schema(hold, clock)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in hold issuance",
            extra={
                "tenant_id": tenant_id,
                "resource_id": request.resource_id,
                "booking_date": request.booking_date.isoformat(),
                "start_time": request.start_time.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post(
    "/extend",
    response_model=HoldExpiry,
    responses={
        409: {"model": Problem, "description": "Maximum hold lifetime reached"},
        410: {"model": Problem, "description": "Hold expired or unknown"},
    },
)
async def extend_hold(
    request: ExtendHoldRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Push a live hold's expiry back, up to its maximum lifetime."""
    try:
        hold_service = HoldService(db, clock=clock)
        hold = await hold_service.extend(tenant_id, request.token, request.additional_seconds)
        response_data = HoldExpiry(token=hold.token, expires_at=hold.expires_at)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in hold extension",
            extra={"tenant_id": tenant_id, "token_prefix": request.token[:8], "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/release", response_model=ReleaseHoldResponse)
async def release_hold(
    request: HoldTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """
    Release a hold.

    Idempotent: releasing an unknown, expired or already released token succeeds.
    """
    try:
        hold_service = HoldService(db, clock=clock)
        await hold_service.release(tenant_id, request.token)
        response_data = ReleaseHoldResponse(token=request.token)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in hold release",
            extra={"tenant_id": tenant_id, "token_prefix": request.token[:8], "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/get", response_model=Hold)
async def get_hold(
    request: HoldTokenRequest,
    db: AsyncSession = DB_DEPENDENCY,
    tenant_id: int = TENANT_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> JSONResponse:
    """Get a hold by token, with its state evaluated now."""
    try:
        hold_service = HoldService(db, clock=clock)
        hold = await hold_service.get_hold(tenant_id, request.token)
        response_data = _convert_hold_to_schema(hold, clock)
        return JSONResponse(content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in hold retrieval",
            extra={"tenant_id": tenant_id, "token_prefix": request.token[:8], "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
