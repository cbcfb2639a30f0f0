"""Availability and quote Pydantic schemas."""

from datetime import date, time

from pydantic import BaseModel, Field


class AvailabilityRequest(BaseModel):
    """Request schema for bookable start times on one date."""

    menu_id: int = Field(..., ge=1, description="Menu to be booked")
    resource_id: int | None = Field(None, ge=1, description="Resource to book; omit for any eligible resource")
    booking_date: date = Field(..., description="Date to search (tenant local)")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")


class AvailableSlot(BaseModel):
    """A bookable start time and the resources free for it."""

    start_time: time = Field(..., description="Slot start (tenant local)")
    end_time: time = Field(..., description="Slot end, exclusive (tenant local)")
    resource_ids: list[int] = Field(..., description="Resources free for the whole slot")


class AvailabilityResponse(BaseModel):
    """Response schema for availability on one date."""

    booking_date: date = Field(..., description="Date searched")
    menu_id: int = Field(..., description="Menu searched")
    resource_id: int | None = Field(None, description="Resource searched, null when unassigned")
    duration_minutes: int = Field(..., description="Length of every slot")
    slots: list[AvailableSlot] = Field(..., description="Bookable slots in start order")


class AvailabilityCalendarRequest(BaseModel):
    """Request schema for a per-day availability summary."""

    menu_id: int = Field(..., ge=1, description="Menu to be booked")
    resource_id: int | None = Field(None, ge=1, description="Resource to book; omit for any eligible resource")
    start_date: date = Field(..., description="First date of the range")
    days: int = Field(30, ge=1, le=90, description="Number of days in the range")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")


class CalendarDay(BaseModel):
    """Availability summary for one date."""

    booking_date: date = Field(..., description="Date")
    available: bool = Field(..., description="Whether any slot is bookable")
    slot_count: int = Field(..., ge=0, description="Number of bookable slots")
    first_start: time | None = Field(None, description="Earliest bookable start")
    last_start: time | None = Field(None, description="Latest bookable start")


class AvailabilityCalendarResponse(BaseModel):
    """Response schema for the availability calendar."""

    menu_id: int = Field(..., description="Menu searched")
    resource_id: int | None = Field(None, description="Resource searched")
    days: list[CalendarDay] = Field(..., description="One entry per date")


class NextAvailableRequest(BaseModel):
    """Request schema for the earliest bookable slot."""

    menu_id: int = Field(..., ge=1, description="Menu to be booked")
    resource_id: int | None = Field(None, ge=1, description="Resource to book; omit for any eligible resource")
    from_date: date = Field(..., description="First date to search")
    horizon_days: int | None = Field(None, ge=1, le=90, description="How many days to search")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")


class NextAvailableResponse(BaseModel):
    """Response schema for the earliest bookable slot."""

    found: bool = Field(..., description="Whether a slot was found in the horizon")
    booking_date: date | None = Field(None, description="Date of the slot")
    slot: AvailableSlot | None = Field(None, description="The slot itself")


class QuoteRequest(BaseModel):
    """Request schema for duration and price of a menu selection."""

    menu_id: int = Field(..., ge=1, description="Menu to price")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")
    resource_id: int | None = Field(None, ge=1, description="Resource whose rate differential applies")


class QuoteLine(BaseModel):
    """One contribution to a quote."""

    kind: str = Field(..., description="base, option, discount or resource")
    name: str = Field(..., description="Label of the line")
    amount: int = Field(..., description="Price contribution (negative for discounts)")
    duration_minutes: int = Field(0, description="Duration contribution")
    option_id: int | None = Field(None, description="Menu option of an option line")


class QuoteResponse(BaseModel):
    """Response schema for a quote."""

    menu_id: int = Field(..., description="Menu priced")
    total_duration_minutes: int = Field(..., description="Interval length the selection occupies")
    total_price: int = Field(..., ge=0, description="Total price in minor units")
    lines: list[QuoteLine] = Field(..., description="Price breakdown")
