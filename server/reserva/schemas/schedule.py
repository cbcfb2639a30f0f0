"""Typed business-hours configuration schemas."""

from datetime import date, time

from pydantic import BaseModel, Field, model_validator

from ..scheduling.hours import DayHours, OverrideKind


class DayHoursSchema(BaseModel):
    """Hours of one weekday."""

    closed: bool = Field(False, description="Closed all day")
    opens_at: time | None = Field(None, description="Opening time")
    closes_at: time | None = Field(None, description="Closing time (exclusive)")

    @model_validator(mode="after")
    def check_window(self) -> "DayHoursSchema":
        if self.closed:
            return self
        if self.opens_at is None or self.closes_at is None:
            raise ValueError("opens_at and closes_at are required unless closed")
        if self.closes_at <= self.opens_at:
            raise ValueError("closes_at must be after opens_at")
        return self

    def to_domain(self) -> DayHours | None:
        if self.closed:
            return None
        return DayHours(self.opens_at, self.closes_at)


class SetBusinessHoursRequest(BaseModel):
    """
    Replace the weekly hours of the tenant or of one resource.

    For the tenant a missing weekday means closed. For a resource a missing
    weekday means the tenant's hours apply unchanged.
    """

    resource_id: int | None = Field(None, ge=1, description="Resource to override; omit for tenant hours")
    monday: DayHoursSchema | None = None
    tuesday: DayHoursSchema | None = None
    wednesday: DayHoursSchema | None = None
    thursday: DayHoursSchema | None = None
    friday: DayHoursSchema | None = None
    saturday: DayHoursSchema | None = None
    sunday: DayHoursSchema | None = None

    def by_weekday(self) -> dict[int, DayHoursSchema]:
        days = (self.monday, self.tuesday, self.wednesday, self.thursday, self.friday, self.saturday, self.sunday)
        return {weekday: hours for weekday, hours in enumerate(days) if hours is not None}


class CalendarEntryRequest(BaseModel):
    """Add a blackout date or special hours for one date."""

    entry_date: date = Field(..., description="Date the entry applies to")
    resource_id: int | None = Field(None, ge=1, description="Resource; omit for the whole tenant")
    kind: OverrideKind = Field(OverrideKind.CLOSED, description="closed or special_hours")
    opens_at: time | None = Field(None, description="Opening time for special_hours")
    closes_at: time | None = Field(None, description="Closing time for special_hours")
    note: str | None = Field(None, max_length=255, description="Reason shown to staff")

    @model_validator(mode="after")
    def check_hours(self) -> "CalendarEntryRequest":
        if self.kind is OverrideKind.SPECIAL_HOURS:
            if self.opens_at is None or self.closes_at is None or self.closes_at <= self.opens_at:
                raise ValueError("special_hours needs opens_at before closes_at")
        return self


class ScheduleDay(BaseModel):
    """Effective hours of one date."""

    entry_date: date = Field(..., description="Date")
    closed: bool = Field(..., description="No working window")
    blackout: bool = Field(..., description="A closed calendar entry applies")
    opens_at: time | None = Field(None, description="Effective opening")
    closes_at: time | None = Field(None, description="Effective closing")


class ScheduleResponse(BaseModel):
    """Effective schedule of the tenant or one resource for a date range."""

    resource_id: int | None = Field(None, description="Resource, null for the tenant")
    days: list[ScheduleDay] = Field(..., description="One entry per date")


class GetScheduleRequest(BaseModel):
    """Request schema for the effective schedule of a date range."""

    start_date: date = Field(..., description="First date of the range")
    days: int = Field(7, ge=1, le=90, description="Number of days in the range")
    resource_id: int | None = Field(None, ge=1, description="Resource; omit for the tenant")
