"""Typed business hours, calendar overrides and effective working windows.

Business hours are loaded from rows into these structures once per
request; nothing downstream ever sees a free-form mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Mapping

from .intervals import Interval

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class OverrideKind(str, Enum):
    """Kind of dated calendar entry."""
    CLOSED = "closed"
    SPECIAL_HOURS = "special_hours"


@dataclass(frozen=True)
class DayHours:
    """Open/close pair for a single day."""

    opens_at: time
    closes_at: time

    def __post_init__(self) -> None:
        if self.closes_at <= self.opens_at:
            raise ValueError(f"closing time {self.closes_at} must be after opening time {self.opens_at}")

    def window(self, day: date) -> Interval:
        return Interval.on_day(day, self.opens_at, self.closes_at)

    def summary(self) -> dict:
        return {"open": self.opens_at.strftime("%H:%M"), "close": self.closes_at.strftime("%H:%M")}


@dataclass(frozen=True)
class WeeklyHours:
    """Seven entries, Monday first; ``None`` means closed that weekday."""

    days: tuple[DayHours | None, ...]

    def __post_init__(self) -> None:
        if len(self.days) != 7:
            raise ValueError("WeeklyHours needs exactly seven entries")

    @classmethod
    def from_mapping(cls, by_weekday: Mapping[int, DayHours | None]) -> WeeklyHours:
        return cls(tuple(by_weekday.get(weekday) for weekday in range(7)))

    @classmethod
    def every_day(cls, opens_at: time, closes_at: time) -> WeeklyHours:
        hours = DayHours(opens_at, closes_at)
        return cls((hours,) * 7)

    @classmethod
    def closed(cls) -> WeeklyHours:
        return cls((None,) * 7)

    def for_day(self, day: date) -> DayHours | None:
        return self.days[day.weekday()]


@dataclass(frozen=True)
class CalendarOverride:
    """A dated exception to the weekly hours, tenant-wide or for one resource."""

    day: date
    kind: OverrideKind
    hours: DayHours | None = None
    resource_id: int | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        if self.kind is OverrideKind.SPECIAL_HOURS and self.hours is None:
            raise ValueError("special_hours overrides need opening hours")


@dataclass
class TenantSchedule:
    """Everything needed to answer 'when may this resource work on this date'."""

    tenant_hours: WeeklyHours
    resource_hours: dict[int, dict[int, DayHours | None]] = field(default_factory=dict)
    overrides: list[CalendarOverride] = field(default_factory=list)

    def _override_for(self, day: date, resource_id: int | None) -> CalendarOverride | None:
        for override in self.overrides:
            if override.day == day and override.resource_id == resource_id:
                return override
        return None

    def tenant_hours_on(self, day: date) -> DayHours | None:
        override = self._override_for(day, None)
        if override is not None:
            return override.hours if override.kind is OverrideKind.SPECIAL_HOURS else None
        return self.tenant_hours.for_day(day)

    def resource_hours_on(self, day: date, resource_id: int) -> DayHours | None:
        store_hours = self.tenant_hours_on(day)
        if store_hours is None:
            return None

        override = self._override_for(day, resource_id)
        if override is not None:
            if override.kind is OverrideKind.CLOSED:
                return None
            own = override.hours
        else:
            weekly = self.resource_hours.get(resource_id)
            if weekly is None or day.weekday() not in weekly:
                return store_hours
            own = weekly[day.weekday()]
            if own is None:
                return None

        # A resource never works while the store is closed
        opens_at = max(store_hours.opens_at, own.opens_at)
        closes_at = min(store_hours.closes_at, own.closes_at)
        if closes_at <= opens_at:
            return None
        return DayHours(opens_at, closes_at)

    def hours_on(self, day: date, resource_id: int | None = None) -> DayHours | None:
        if resource_id is None:
            return self.tenant_hours_on(day)
        return self.resource_hours_on(day, resource_id)

    def working_window(self, day: date, resource_id: int | None = None) -> Interval | None:
        hours = self.hours_on(day, resource_id)
        return hours.window(day) if hours else None

    def is_blackout(self, day: date, resource_id: int | None = None) -> bool:
        for candidate in (None, resource_id):
            override = self._override_for(day, candidate)
            if override is not None and override.kind is OverrideKind.CLOSED:
                return True
        return False

    def summary(self, day: date, resource_id: int | None = None) -> dict:
        """Business-hours description returned with OutsideBusinessHours errors."""
        hours = self.hours_on(day, resource_id)
        result = {
            "date": day.isoformat(),
            "weekday": WEEKDAY_NAMES[day.weekday()],
            "closed": hours is None,
            "blackout": self.is_blackout(day, resource_id),
        }
        if resource_id is not None:
            result["resource_id"] = resource_id
        if hours is not None:
            result.update(hours.summary())
        return result
