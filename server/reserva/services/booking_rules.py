"""Business-hours preconditions shared by availability, holds and commits."""

from datetime import date, datetime, timedelta

from ..core.exceptions import OutsideBusinessHoursError
from ..models.menu import Menu
from ..models.tenant import Tenant
from ..scheduling.hours import TenantSchedule
from ..scheduling.intervals import Interval


def earliest_start(menu: Menu, local_now: datetime) -> datetime:
    """First start a menu may be booked for, given its minimum advance notice."""
    return local_now + timedelta(hours=menu.minimum_advance_hours)


def last_bookable_date(tenant: Tenant, local_now: datetime) -> date:
    return local_now.date() + timedelta(days=tenant.max_advance_days)


def check_bookable(
    tenant: Tenant,
    menu: Menu,
    schedule: TenantSchedule,
    interval: Interval,
    local_now: datetime,
    resource_id: int | None = None,
) -> None:
    """
    Reject an interval that cannot be booked regardless of other bookings.

    With a resource the resource's effective window is used, otherwise the
    tenant's business hours.

    Raises:
        OutsideBusinessHoursError: With ``reason`` one of crosses_midnight,
            blackout, outside_hours, lead_time or beyond_horizon
    """
    day = interval.day

    def fail(reason: str, detail: str) -> OutsideBusinessHoursError:
        return OutsideBusinessHoursError(
            business_hours=schedule.summary(day, resource_id),
            reason=reason,
            detail=detail,
        )

    if not interval.within_single_day():
        raise fail("crosses_midnight", "Bookings must start and end on the same date")

    if schedule.is_blackout(day, resource_id):
        raise fail("blackout", f"{day.isoformat()} is closed for bookings")

    window = schedule.working_window(day, resource_id)
    if window is None or not window.contains(interval):
        raise fail("outside_hours", "The requested time is outside business hours")

    if interval.start < earliest_start(menu, local_now):
        raise fail(
            "lead_time",
            f"Bookings for this menu need {menu.minimum_advance_hours} hours advance notice",
        )

    if day > last_bookable_date(tenant, local_now):
        raise fail(
            "beyond_horizon",
            f"Bookings can be made at most {tenant.max_advance_days} days ahead",
        )


def conflict_window(interval: Interval, resource_id: int | None, source: str) -> dict:
    """Payload describing the interval that won a conflict."""
    window = interval.as_window()
    window["resource_id"] = resource_id
    window["source"] = source
    return window
