"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .clock import utcnow

logger = logging.getLogger(__name__)


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if detail:
            self.problem_details["detail"] = detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def code(self) -> Optional[str]:
        """Application-specific error code, when one was attached."""
        return self.problem_details.get("code")


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class TenantRequiredError(ProblemDetailsException):
    """Raised when an operation is attempted without an explicit tenant."""

    def __init__(self, detail: str = "An explicit tenant identifier is required"):
        super().__init__(
            status_code=400,
            title="Tenant Required",
            detail=detail,
            type_uri="https://example.com/problems/tenant-required",
            extensions={"code": "TENANT_REQUIRED", "retryable": False},
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        title: str = "Resource Conflict",
        type_uri: str = "https://example.com/problems/resource-conflict",
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title=title,
            detail=detail,
            type_uri=type_uri,
            instance=instance,
            extensions=extensions,
        )


# Booking domain exceptions

class OutsideBusinessHoursError(ProblemDetailsException):
    """The requested interval falls outside the working window or on a blackout date."""

    def __init__(
        self,
        business_hours: Dict[str, Any],
        reason: str = "outside_hours",
        detail: Optional[str] = None,
    ):
        super().__init__(
            status_code=422,
            title="Outside Business Hours",
            detail=detail or "The requested time is outside business hours",
            type_uri="https://example.com/problems/outside-business-hours",
            extensions={
                "code": "OUTSIDE_BUSINESS_HOURS",
                "retryable": False,
                "reason": reason,
                "business_hours": business_hours,
            },
        )


class BookingConflictError(ConflictError):
    """A pending or confirmed booking (or a live hold) already occupies the interval."""

    def __init__(self, conflicting_window: Optional[Dict[str, Any]] = None, detail: Optional[str] = None):
        super().__init__(
            detail=detail or "The requested time overlaps an existing booking",
            title="Booking Conflict",
            type_uri="https://example.com/problems/booking-conflict",
        )
        self.problem_details.update({
            "code": "BOOKING_CONFLICT",
            "retryable": False,
            "conflicting_window": conflicting_window,
        })


class SlotConflictError(ConflictError):
    """A hold could not be issued because the interval is already taken."""

    def __init__(self, conflicting_window: Dict[str, Any], detail: Optional[str] = None):
        super().__init__(
            detail=detail or "The requested slot is already held or booked",
            title="Slot Conflict",
            type_uri="https://example.com/problems/slot-conflict",
        )
        self.problem_details.update({
            "code": "SLOT_CONFLICT",
            "retryable": False,
            "conflicting_window": conflicting_window,
        })


class MaxExtensionExceededError(ConflictError):
    """Extending the hold would push it past its maximum lifetime."""

    def __init__(self, token: str, max_expires_at: datetime):
        super().__init__(
            detail=f"Hold cannot be extended beyond {max_expires_at.isoformat()}Z",
            title="Max Extension Exceeded",
            type_uri="https://example.com/problems/max-extension-exceeded",
        )
        self.problem_details.update({
            "code": "MAX_EXTENSION_EXCEEDED",
            "retryable": False,
            "token": token,
            "max_expires_at": max_expires_at.isoformat() + "Z",
        })


class InvalidBookingTransitionError(ConflictError):
    """The booking's current status does not allow the requested transition."""

    def __init__(self, booking_id: str, from_status: str, to_status: str, detail: Optional[str] = None):
        super().__init__(
            detail=detail or f"Booking {booking_id} cannot move from {from_status} to {to_status}",
            title="Invalid Booking Transition",
            type_uri="https://example.com/problems/invalid-booking-transition",
        )
        self.problem_details.update({
            "code": "INVALID_TRANSITION",
            "retryable": False,
            "booking_id": booking_id,
            "from_status": from_status,
            "to_status": to_status,
        })


class HoldTokenExpiredError(ProblemDetailsException):
    """The hold token is expired, consumed, released, unknown or does not match the request."""

    def __init__(
        self,
        token: str,
        expired_at: Optional[datetime] = None,
        detail: Optional[str] = None,
    ):
        if not detail:
            detail = "Hold token is no longer valid; select the slot again"

        extensions: Dict[str, Any] = {
            "code": "HOLD_TOKEN_EXPIRED",
            "retryable": False,
            "token": token,
        }
        if expired_at:
            extensions["expired_at"] = expired_at.isoformat() + "Z"

        super().__init__(
            status_code=410,
            title="Hold Token Expired",
            detail=detail,
            type_uri="https://example.com/problems/hold-token-expired",
            extensions=extensions,
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Storage and infrastructure failures end up here and are always reported
    as server faults.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path},
    )

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
