"""Business hours and calendar entry management."""

import logging
from datetime import date, timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import daterange
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.tenant import BusinessHours, CalendarEntry
from ..schemas.schedule import CalendarEntryRequest, SetBusinessHoursRequest
from ..scheduling.hours import DayHours
from .calendar_index import CalendarIndex
from .catalog_service import CatalogService, require_tenant

logger = logging.getLogger(__name__)


class ScheduleService:
    """Writes the weekly hours and dated overrides the calendar index reads."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)
        self.calendar = CalendarIndex(db)

    async def set_business_hours(self, tenant_id: int, request: SetBusinessHoursRequest) -> None:
        """
        Replace the weekly hours of the tenant or of one resource.

        Tenant weekdays left out are stored as closed. Resource weekdays left
        out are not stored, so the tenant's hours apply to them.
        """
        require_tenant(tenant_id)
        await self.catalog.get_tenant_or_raise(tenant_id)
        if request.resource_id is not None:
            await self.catalog.get_resource_or_raise(tenant_id, request.resource_id)

        await self.db.execute(
            delete(BusinessHours).where(
                BusinessHours.tenant_id == tenant_id,
                BusinessHours.resource_id.is_(None)
                if request.resource_id is None
                else BusinessHours.resource_id == request.resource_id,
            )
        )

        given = request.by_weekday()
        weekdays = range(7) if request.resource_id is None else sorted(given)
        for weekday in weekdays:
            hours = given[weekday].to_domain() if weekday in given else None
            self.db.add(
                BusinessHours(
                    tenant_id=tenant_id,
                    resource_id=request.resource_id,
                    weekday=weekday,
                    opens_at=hours.opens_at if hours else None,
                    closes_at=hours.closes_at if hours else None,
                    is_closed=hours is None,
                )
            )

        await self.db.commit()
        logger.info(
            "Business hours replaced",
            extra={
                "tenant_id": tenant_id,
                "resource_id": request.resource_id,
                "weekdays": sorted(given),
            }
        )

    async def add_calendar_entry(self, tenant_id: int, request: CalendarEntryRequest) -> CalendarEntry:
        """Add a blackout or special-hours entry, replacing any entry for the same date and scope."""
        require_tenant(tenant_id)
        await self.catalog.get_tenant_or_raise(tenant_id)
        if request.resource_id is not None:
            await self.catalog.get_resource_or_raise(tenant_id, request.resource_id)

        await self.db.execute(
            delete(CalendarEntry).where(
                CalendarEntry.tenant_id == tenant_id,
                CalendarEntry.entry_date == request.entry_date,
                CalendarEntry.resource_id.is_(None)
                if request.resource_id is None
                else CalendarEntry.resource_id == request.resource_id,
            )
        )

        entry = CalendarEntry(
            tenant_id=tenant_id,
            resource_id=request.resource_id,
            entry_date=request.entry_date,
            kind=request.kind.value,
            opens_at=request.opens_at,
            closes_at=request.closes_at,
            note=request.note,
        )
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)

        logger.info(
            "Calendar entry added",
            extra={
                "tenant_id": tenant_id,
                "resource_id": request.resource_id,
                "entry_date": request.entry_date.isoformat(),
                "kind": request.kind.value,
            }
        )
        return entry

    async def get_schedule(
        self,
        tenant_id: int,
        start_date: date,
        days: int,
        resource_id: int | None = None,
    ) -> list[tuple[date, DayHours | None, bool]]:
        """Effective hours per date: (date, hours or None when closed, blackout flag)."""
        require_tenant(tenant_id)
        if not 1 <= days <= settings.availability_max_days:
            raise ValidationError(
                detail=f"days must be between 1 and {settings.availability_max_days}",
                errors={"days": days},
            )
        if resource_id is not None:
            await self.catalog.get_resource_or_raise(tenant_id, resource_id)

        end_date = start_date + timedelta(days=days - 1)
        schedule = await self.calendar.load_schedule(tenant_id, start_date, end_date)
        return [
            (day, schedule.hours_on(day, resource_id), schedule.is_blackout(day, resource_id))
            for day in daterange(start_date, days)
        ]
