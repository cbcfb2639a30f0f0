"""Availability calculation: bookable start times derived from the calendar index."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, daterange, to_local, utcnow
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.observability import metrics_collector
from ..models.menu import Menu
from ..models.resource import Resource
from ..models.tenant import Tenant
from ..scheduling.hours import TenantSchedule
from ..scheduling.intervals import Interval, first_overlap, merge_intervals
from ..scheduling.resource_ref import Assigned, ResourceRef
from .booking_rules import earliest_start, last_bookable_date
from .calendar_index import CalendarIndex
from .catalog_service import CatalogService, require_tenant
from .duration_price import DurationPriceResolver, PriceQuote
from .hold_service import HoldService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class Slot:
    """A bookable interval and the resources free for all of it."""

    interval: Interval
    resource_ids: list[int] = field(default_factory=list)

    @property
    def start_time(self):
        return self.interval.start.time()

    @property
    def end_time(self):
        return self.interval.end.time()


@dataclass
class DayAvailability:
    day: date
    slots: list[Slot]
    duration_minutes: int = 0

    @property
    def available(self) -> bool:
        return bool(self.slots)


@dataclass
class _Context:
    tenant: Tenant
    menu: Menu
    quote: PriceQuote
    resources: list[Resource]
    local_now: datetime


def candidate_starts(
    window: Interval,
    duration_minutes: int,
    granularity_minutes: int,
    grid_origin: datetime | None = None,
) -> list[Interval]:
    """
    Intervals of the given length inside ``window`` whose starts lie on the
    granularity grid counted from ``grid_origin`` (the window start by default).
    """
    step = timedelta(minutes=granularity_minutes)
    length = timedelta(minutes=duration_minutes)
    candidates = []
    start = window.start if grid_origin is None else grid_origin
    if start < window.start:
        start += step * -(-(window.start - start) // step)
    while start + length <= window.end:
        candidates.append(Interval(start, start + length))
        start += step
    return candidates


class AvailabilityService:
    """
    Computes bookable slots for a menu selection.

    A slot is offered for a resource only if the resource's working window
    contains it and it overlaps no pending/confirmed booking, blackout or
    live hold. For the unassigned pool a slot is offered when at least one
    eligible resource is free for it.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.catalog = CatalogService(db)
        self.calendar = CalendarIndex(db)
        self.resolver = DurationPriceResolver(db)
        self.holds = HoldService(db, clock=clock)

    async def _context(
        self,
        tenant_id: int,
        menu_id: int,
        resource: ResourceRef,
        option_ids,
    ) -> _Context:
        require_tenant(tenant_id)
        tenant = await self.catalog.get_tenant_or_raise(tenant_id)
        menu = await self.catalog.get_menu_or_raise(tenant_id, menu_id)

        if isinstance(resource, Assigned):
            resources = [await self.catalog.get_eligible_resource_or_raise(tenant_id, menu, resource.resource_id)]
        else:
            resources = await self.catalog.list_eligible_resources(tenant_id, menu)

        # Resource surcharges change price, never duration
        quote = await self.resolver.resolve(tenant_id, menu.id, option_ids, menu=menu)
        return _Context(
            tenant=tenant,
            menu=menu,
            quote=quote,
            resources=resources,
            local_now=to_local(self.clock(), tenant.timezone),
        )

    async def _compute_range(self, ctx: _Context, date_from: date, date_to: date) -> list[DayAvailability]:
        tenant_id = ctx.tenant.id
        resource_ids = [resource.id for resource in ctx.resources]
        days = list(daterange(date_from, (date_to - date_from).days + 1))

        if not resource_ids:
            return [DayAvailability(day, [], ctx.quote.total_duration) for day in days]

        schedule = await self.calendar.load_schedule(tenant_id, date_from, date_to)
        busy = await self.calendar.busy_by_resource(tenant_id, resource_ids, date_from, date_to, schedule)

        now = self.clock()
        for hold in await self.holds.live_holds(tenant_id, resource_ids, date_from, date_to, now=now):
            busy[hold.resource_id].append(hold.interval)
        busy = {resource_id: merge_intervals(intervals) for resource_id, intervals in busy.items()}

        return [
            DayAvailability(day, self._slots_for_day(ctx, schedule, busy, day), ctx.quote.total_duration)
            for day in days
        ]

    def _slots_for_day(
        self,
        ctx: _Context,
        schedule: TenantSchedule,
        busy: dict[int, list[Interval]],
        day: date,
    ) -> list[Slot]:
        if day < ctx.local_now.date() or day > last_bookable_date(ctx.tenant, ctx.local_now):
            return []

        opening = schedule.working_window(day)
        if opening is None:
            return []

        not_before = earliest_start(ctx.menu, ctx.local_now)
        by_start: dict[datetime, Slot] = {}
        for resource in ctx.resources:
            window = schedule.working_window(day, resource.id)
            if window is None:
                continue
            # One grid per day, anchored at the tenant's opening
            for candidate in candidate_starts(
                window, ctx.quote.total_duration, ctx.tenant.slot_granularity_minutes, opening.start
            ):
                if candidate.start < not_before:
                    continue
                if first_overlap(busy[resource.id], candidate) is not None:
                    continue
                slot = by_start.setdefault(candidate.start, Slot(candidate))
                slot.resource_ids.append(resource.id)

        return [by_start[start] for start in sorted(by_start)]

    async def get_availability(
        self,
        tenant_id: int,
        menu_id: int,
        resource: ResourceRef,
        day: date,
        option_ids=(),
    ) -> list[Slot]:
        """Bookable slots on one date, in start order."""
        result = await self.get_day_availability(tenant_id, menu_id, resource, day, option_ids)
        return result.slots

    async def get_day_availability(
        self,
        tenant_id: int,
        menu_id: int,
        resource: ResourceRef,
        day: date,
        option_ids=(),
    ) -> DayAvailability:
        """
        Bookable slots on one date together with the slot length.

        Args:
            tenant_id: Tenant scope
            menu_id: Menu whose duration determines slot length
            resource: ``Assigned(id)`` for one resource or ``UNASSIGNED`` for any eligible one
            day: Tenant-local date
            option_ids: Selected options, which lengthen the slot

        Returns:
            Slots with the resources free for each; empty when nothing is bookable
        """
        mode = "assigned" if isinstance(resource, Assigned) else "unassigned"
        with tracer.start_as_current_span("availability.get_availability") as span:
            span.set_attribute("reserva.tenant_id", tenant_id if isinstance(tenant_id, int) else -1)
            span.set_attribute("reserva.menu_id", menu_id)
            span.set_attribute("reserva.resource_mode", mode)
            span.set_attribute("reserva.date", day.isoformat())

            ctx = await self._context(tenant_id, menu_id, resource, option_ids)
            [result] = await self._compute_range(ctx, day, day)

            span.set_attribute("reserva.slot_count", len(result.slots))

        metrics_collector.record_availability_query(mode, len(result.slots))
        logger.debug(
            "Computed availability",
            extra={
                "tenant_id": tenant_id,
                "menu_id": menu_id,
                "resource_mode": mode,
                "date": day.isoformat(),
                "duration_minutes": ctx.quote.total_duration,
                "slot_count": len(result.slots),
            }
        )
        return result

    async def get_availability_calendar(
        self,
        tenant_id: int,
        menu_id: int,
        resource: ResourceRef,
        start_date: date,
        days: int = 30,
        option_ids=(),
    ) -> list[DayAvailability]:
        """Per-day availability over a date range, computed with one pass over the index."""
        if not 1 <= days <= settings.availability_max_days:
            raise ValidationError(
                detail=f"days must be between 1 and {settings.availability_max_days}",
                errors={"days": days},
            )
        mode = "assigned" if isinstance(resource, Assigned) else "unassigned"
        ctx = await self._context(tenant_id, menu_id, resource, option_ids)
        end_date = start_date + timedelta(days=days - 1)
        result = await self._compute_range(ctx, start_date, end_date)

        for day in result:
            metrics_collector.record_availability_query(mode, len(day.slots))
        logger.debug(
            "Computed availability calendar",
            extra={
                "tenant_id": tenant_id,
                "menu_id": menu_id,
                "start_date": start_date.isoformat(),
                "days": days,
                "available_days": sum(1 for day in result if day.available),
            }
        )
        return result

    async def find_next_available(
        self,
        tenant_id: int,
        menu_id: int,
        resource: ResourceRef,
        from_date: date | None = None,
        horizon_days: int | None = None,
        option_ids=(),
    ) -> tuple[date, Slot] | None:
        """Earliest bookable slot on or after ``from_date`` within the horizon, or None."""
        ctx = await self._context(tenant_id, menu_id, resource, option_ids)
        start = max(from_date or ctx.local_now.date(), ctx.local_now.date())
        horizon = horizon_days or settings.next_slot_horizon_days
        end = min(start + timedelta(days=horizon - 1), last_bookable_date(ctx.tenant, ctx.local_now))
        if end < start:
            return None

        for day in await self._compute_range(ctx, start, end):
            if day.slots:
                return day.day, day.slots[0]
        return None
