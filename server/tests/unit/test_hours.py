"""Unit tests for typed business hours and calendar overrides."""

from datetime import date, time

import pytest

from reserva.scheduling.hours import CalendarOverride, DayHours, OverrideKind, TenantSchedule, WeeklyHours
from reserva.scheduling.intervals import Interval

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


@pytest.fixture
def schedule():
    weekly = WeeklyHours.from_mapping({
        weekday: DayHours(time(9, 0), time(21, 0)) for weekday in range(7) if weekday != 1
    })
    return TenantSchedule(tenant_hours=weekly)


def test_day_hours_must_close_after_opening():
    with pytest.raises(ValueError):
        DayHours(time(18, 0), time(9, 0))


def test_weekly_hours_need_seven_days():
    with pytest.raises(ValueError):
        WeeklyHours((None,) * 6)


def test_closed_weekday_has_no_window(schedule):
    assert schedule.working_window(TUESDAY) is None
    assert schedule.working_window(MONDAY) == Interval.on_day(MONDAY, time(9, 0), time(21, 0))


def test_blackout_closes_tenant_and_resources(schedule):
    """A tenant-wide closed entry removes every resource's window for that date."""
    schedule.overrides.append(CalendarOverride(day=MONDAY, kind=OverrideKind.CLOSED))

    assert schedule.working_window(MONDAY) is None
    assert schedule.working_window(MONDAY, resource_id=1) is None
    assert schedule.is_blackout(MONDAY)
    assert schedule.is_blackout(MONDAY, resource_id=1)


def test_resource_blackout_leaves_others_open(schedule):
    schedule.overrides.append(CalendarOverride(day=MONDAY, kind=OverrideKind.CLOSED, resource_id=1))

    assert schedule.working_window(MONDAY, resource_id=1) is None
    assert schedule.working_window(MONDAY, resource_id=2) is not None
    assert not schedule.is_blackout(MONDAY)


def test_special_hours_replace_weekly_hours(schedule):
    schedule.overrides.append(
        CalendarOverride(day=MONDAY, kind=OverrideKind.SPECIAL_HOURS, hours=DayHours(time(12, 0), time(16, 0)))
    )
    assert schedule.hours_on(MONDAY) == DayHours(time(12, 0), time(16, 0))


def test_special_hours_require_hours():
    with pytest.raises(ValueError):
        CalendarOverride(day=MONDAY, kind=OverrideKind.SPECIAL_HOURS)


def test_resource_hours_are_clipped_to_store_hours(schedule):
    """A resource never works outside the tenant's hours."""
    schedule.resource_hours[1] = {0: DayHours(time(8, 0), time(13, 0))}

    assert schedule.hours_on(MONDAY, resource_id=1) == DayHours(time(9, 0), time(13, 0))
    # Weekdays the resource does not override fall back to the store
    assert schedule.hours_on(date(2030, 1, 9), resource_id=1) == DayHours(time(9, 0), time(21, 0))


def test_resource_day_off(schedule):
    schedule.resource_hours[2] = {0: None}
    assert schedule.working_window(MONDAY, resource_id=2) is None


def test_summary_describes_the_day(schedule):
    summary = schedule.summary(MONDAY, resource_id=3)
    assert summary == {
        "date": "2030-01-07",
        "weekday": "monday",
        "closed": False,
        "blackout": False,
        "resource_id": 3,
        "open": "09:00",
        "close": "21:00",
    }
    assert schedule.summary(TUESDAY)["closed"] is True
