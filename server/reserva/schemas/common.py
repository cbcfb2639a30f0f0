"""Common Pydantic schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class TimeWindow(BaseModel):
    """A half-open window on one date, as carried by conflict problems."""

    date: str = Field(..., description="Date (ISO 8601)")
    start: str = Field(..., description="Start time, HH:MM")
    end: str = Field(..., description="End time, HH:MM (exclusive)")
    resource_id: Optional[int] = Field(None, description="Resource the window belongs to")
    source: Optional[str] = Field(None, description="What occupies the window: booking or hold")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    conflicting_window: Optional[TimeWindow] = Field(None, description="Interval that won a conflict")
    business_hours: Optional[dict] = Field(None, description="Business hours for the requested date")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")
