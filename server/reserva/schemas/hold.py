"""Hold token Pydantic schemas."""

from datetime import date, datetime, time

from pydantic import BaseModel, Field


class IssueHoldRequest(BaseModel):
    """Request schema for holding a slot."""

    resource_id: int = Field(..., ge=1, description="Resource to hold")
    menu_id: int = Field(..., ge=1, description="Menu that determines the interval length")
    booking_date: date = Field(..., description="Date of the slot (tenant local)")
    start_time: time = Field(..., description="Slot start (tenant local)")
    option_ids: list[int] = Field(default_factory=list, description="Selected menu options")
    customer_id: int | None = Field(None, ge=1, description="Customer the hold is for, if known")
    ttl_seconds: int | None = Field(None, ge=60, le=1800, description="Hold lifetime in seconds")


class ExtendHoldRequest(BaseModel):
    """Request schema for extending a hold."""

    token: str = Field(..., min_length=1, max_length=64, description="Hold token")
    additional_seconds: int | None = Field(None, ge=60, le=1800, description="Seconds to add")


class HoldTokenRequest(BaseModel):
    """Request schema for operations addressed by token only."""

    token: str = Field(..., min_length=1, max_length=64, description="Hold token")


class Hold(BaseModel):
    """Hold response schema."""

    token: str = Field(..., description="Opaque single-use hold token")
    resource_id: int = Field(..., description="Held resource")
    menu_id: int | None = Field(None, description="Menu the hold was priced for")
    booking_date: date = Field(..., description="Held date")
    start_time: time = Field(..., description="Held interval start")
    end_time: time = Field(..., description="Held interval end, exclusive")
    option_ids: list[int] = Field(default_factory=list, description="Options selected at hold time")
    expires_at: datetime = Field(..., description="Expiry instant (UTC)")
    state: str = Field(..., description="active, expired, consumed or released")
    remaining_seconds: int = Field(..., ge=0, description="Seconds left before expiry")


class HoldExpiry(BaseModel):
    """Response schema for a hold extension."""

    token: str = Field(..., description="Hold token")
    expires_at: datetime = Field(..., description="New expiry instant (UTC)")


class ReleaseHoldResponse(BaseModel):
    """Response schema for a hold release."""

    token: str = Field(..., description="Hold token")
    released: bool = Field(True, description="Always true; release is idempotent")
