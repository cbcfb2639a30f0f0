"""Read-side index of busy intervals per tenant, resource and date range."""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from ..models.resource import Resource
from ..models.tenant import BusinessHours, CalendarEntry
from ..scheduling.hours import CalendarOverride, DayHours, OverrideKind, TenantSchedule, WeeklyHours
from ..scheduling.intervals import Interval, intersect_interval_sets, merge_intervals
from ..scheduling.resource_ref import Assigned, ResourceRef
from .catalog_service import CatalogService, require_tenant

logger = logging.getLogger(__name__)


def _day_hours(opens_at: time | None, closes_at: time | None, is_closed: bool) -> DayHours | None:
    if is_closed or opens_at is None or closes_at is None:
        return None
    return DayHours(opens_at, closes_at)


def _dates(date_from: date, date_to: date) -> list[date]:
    return [date_from + timedelta(days=offset) for offset in range((date_to - date_from).days + 1)]


def non_working_intervals(schedule: TenantSchedule, resource_id: int, days: Iterable[date]) -> list[Interval]:
    """Parts of each day that fall outside the resource's effective window."""
    blocked: list[Interval] = []
    for day in days:
        whole_day = Interval.whole_day(day)
        window = schedule.working_window(day, resource_id)
        if window is None:
            blocked.append(whole_day)
            continue
        if window.start > whole_day.start:
            blocked.append(Interval(whole_day.start, window.start))
        if window.end < whole_day.end:
            blocked.append(Interval(window.end, whole_day.end))
    return blocked


class CalendarIndex:
    """
    Aggregates bookings, blackout dates and non-working hours into busy intervals.

    Holds are not part of the index; availability layers them on top.
    Every method takes the tenant id explicitly.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)

    async def load_schedule(self, tenant_id: int, date_from: date, date_to: date) -> TenantSchedule:
        """Build the typed schedule (weekly hours plus dated overrides) for a date range."""
        require_tenant(tenant_id)

        hours_result = await self.db.execute(
            select(BusinessHours).where(BusinessHours.tenant_id == tenant_id)
        )
        tenant_days: dict[int, DayHours | None] = {}
        resource_hours: dict[int, dict[int, DayHours | None]] = defaultdict(dict)
        for row in hours_result.scalars():
            hours = _day_hours(row.opens_at, row.closes_at, row.is_closed)
            if row.resource_id is None:
                tenant_days[row.weekday] = hours
            else:
                resource_hours[row.resource_id][row.weekday] = hours

        entries_result = await self.db.execute(
            select(CalendarEntry)
            .where(
                CalendarEntry.tenant_id == tenant_id,
                CalendarEntry.entry_date >= date_from,
                CalendarEntry.entry_date <= date_to,
            )
            .order_by(CalendarEntry.id)
        )
        overrides = []
        for entry in entries_result.scalars():
            kind = OverrideKind(entry.kind)
            hours = _day_hours(entry.opens_at, entry.closes_at, kind is OverrideKind.CLOSED)
            overrides.append(
                CalendarOverride(
                    day=entry.entry_date,
                    kind=kind,
                    hours=hours,
                    resource_id=entry.resource_id,
                    note=entry.note,
                )
            )

        return TenantSchedule(
            tenant_hours=WeeklyHours.from_mapping(tenant_days),
            resource_hours=dict(resource_hours),
            overrides=overrides,
        )

    async def active_bookings(
        self,
        tenant_id: int,
        resource_ids: Iterable[int],
        date_from: date,
        date_to: date,
    ) -> list[Booking]:
        """Pending and confirmed, non-deleted bookings of the resources in the range."""
        require_tenant(tenant_id)
        ids = list(resource_ids)
        if not ids:
            return []
        stmt = (
            select(Booking)
            .where(
                Booking.tenant_id == tenant_id,
                Booking.resource_id.in_(ids),
                Booking.booking_date >= date_from,
                Booking.booking_date <= date_to,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.deleted_at.is_(None),
            )
            .order_by(Booking.booking_date, Booking.start_time)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def busy_by_resource(
        self,
        tenant_id: int,
        resource_ids: Iterable[int],
        date_from: date,
        date_to: date,
        schedule: TenantSchedule | None = None,
    ) -> dict[int, list[Interval]]:
        """Merged busy intervals for several resources, with one booking query."""
        require_tenant(tenant_id)
        ids = list(resource_ids)
        if schedule is None:
            schedule = await self.load_schedule(tenant_id, date_from, date_to)

        days = _dates(date_from, date_to)
        raw: dict[int, list[Interval]] = {
            resource_id: non_working_intervals(schedule, resource_id, days) for resource_id in ids
        }
        for booking in await self.active_bookings(tenant_id, ids, date_from, date_to):
            raw[booking.resource_id].append(booking.interval)

        return {resource_id: merge_intervals(intervals) for resource_id, intervals in raw.items()}

    async def get_busy_intervals(
        self,
        tenant_id: int,
        resource: ResourceRef,
        date_from: date,
        date_to: date,
        eligible_resource_ids: Iterable[int] | None = None,
    ) -> list[Interval]:
        """
        Sorted, non-overlapping busy intervals for a resource or for the unassigned pool.

        For ``Unassigned`` an instant is busy when no eligible resource is
        free at it. Without eligible resources the whole range is busy.

        Raises:
            TenantRequiredError: If no tenant id is given
            NotFoundError: If an assigned resource is not the tenant's
        """
        require_tenant(tenant_id)
        if date_to < date_from:
            raise ValueError("date_to must not precede date_from")

        if isinstance(resource, Assigned):
            await self.catalog.get_resource_or_raise(tenant_id, resource.resource_id)
            busy = await self.busy_by_resource(tenant_id, [resource.resource_id], date_from, date_to)
            return busy[resource.resource_id]

        if eligible_resource_ids is None:
            result = await self.db.execute(
                select(Resource.id).where(Resource.tenant_id == tenant_id, Resource.is_active.is_(True))
            )
            eligible_resource_ids = list(result.scalars())
        ids = list(eligible_resource_ids)

        if not ids:
            return [
                Interval(
                    datetime.combine(date_from, time.min),
                    datetime.combine(date_to + timedelta(days=1), time.min),
                )
            ]

        busy = await self.busy_by_resource(tenant_id, ids, date_from, date_to)
        return intersect_interval_sets([busy[resource_id] for resource_id in ids])

    async def find_booking_conflict(
        self,
        tenant_id: int,
        resource_id: int,
        interval: Interval,
        exclude_booking_id: UUID | None = None,
    ) -> Booking | None:
        """Earliest pending/confirmed booking on the resource overlapping a same-day interval."""
        require_tenant(tenant_id)
        stmt = (
            select(Booking)
            .where(
                Booking.tenant_id == tenant_id,
                Booking.resource_id == resource_id,
                Booking.booking_date == interval.day,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.deleted_at.is_(None),
                Booking.start_time < interval.end.time(),
                Booking.end_time > interval.start.time(),
            )
            .order_by(Booking.start_time)
            .limit(1)
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
