"""Booking-related Pydantic schemas."""

from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, Field


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class CommitBookingRequest(BaseModel):
    """Request schema for committing a booking, directly or from a hold."""

    customer_id: int = Field(..., ge=1, description="Customer the booking is for")
    menu_id: int = Field(..., ge=1, description="Menu being booked")
    resource_id: int | None = Field(None, ge=1, description="Resource to book; omit to auto-assign")
    booking_date: date = Field(..., description="Date (tenant local)")
    start_time: time = Field(..., description="Start time (tenant local)")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")
    hold_token: str | None = Field(None, max_length=64, description="Hold token to consume")
    auto_approve: bool = Field(True, description="Confirm immediately unless the menu requires approval")
    notes: str | None = Field(None, max_length=1000, description="Free-text notes")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: str = Field(..., description="Booking to cancel")
    reason: str | None = Field(None, max_length=500, description="Cancellation reason")


class RescheduleBookingRequest(BaseModel):
    """Request schema for moving a booking to a new time, resource or option set."""

    booking_id: str = Field(..., description="Booking to move")
    booking_date: date = Field(..., description="New date (tenant local)")
    start_time: time = Field(..., description="New start time (tenant local)")
    resource_id: int | None = Field(None, ge=1, description="New resource; omit to keep the current one")
    option_ids: list[int] | None = Field(None, description="New option selection; omit to keep the current options")


class BookingActionRequest(BaseModel):
    """Request schema for operations addressed by booking id."""

    booking_id: str = Field(..., description="Booking to act on")


class ListBookingsRequest(BaseModel):
    """Request schema for listing the bookings of a date."""

    booking_date: date = Field(..., description="Date (tenant local)")
    resource_id: int | None = Field(None, ge=1, description="Restrict to one resource")
    include_inactive: bool = Field(False, description="Include cancelled, completed and no-show bookings")


class BookingOptionLine(BaseModel):
    """Option snapshot on a booking."""

    menu_option_id: int | None = Field(None, description="Source menu option")
    name: str = Field(..., description="Option name")
    price: int = Field(..., description="Price charged for the option")
    duration_minutes: int = Field(..., description="Duration the option added")


class Booking(BaseModel):
    """Booking response schema."""

    id: str = Field(..., description="Unique booking ID")
    booking_number: str = Field(..., description="Booking number, unique per tenant")
    customer_id: int = Field(..., description="Customer")
    menu_id: int = Field(..., description="Menu")
    resource_id: int | None = Field(None, description="Assigned resource")
    booking_date: date = Field(..., description="Date (tenant local)")
    start_time: time = Field(..., description="Start time (tenant local)")
    end_time: time = Field(..., description="End time, exclusive (tenant local)")
    duration_minutes: int = Field(..., description="Length of the interval")
    total_price: int = Field(..., ge=0, description="Total price in minor units")
    status: BookingStatus = Field(..., description="Booking status")
    hold_token: str | None = Field(None, description="Hold the booking was materialized from")
    options: list[BookingOptionLine] = Field(default_factory=list, description="Applied options")
    notes: str | None = Field(None, description="Notes")
    cancelled_at: datetime | None = Field(None, description="Cancellation instant (UTC)")
    cancellation_reason: str | None = Field(None, description="Cancellation reason")
    completed_at: datetime | None = Field(None, description="Completion or no-show instant (UTC)")
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")

    model_config = {"from_attributes": True}


class BookingList(BaseModel):
    """Response schema for a list of bookings."""

    bookings: list[Booking] = Field(..., description="Bookings in start order")
