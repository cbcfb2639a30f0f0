"""Service layer package."""

from .availability_service import AvailabilityService
from .booking_service import BookingConflictResolver
from .calendar_index import CalendarIndex
from .catalog_service import CatalogService
from .duration_price import DurationPriceResolver
from .hold_service import HoldService
from .schedule_service import ScheduleService

__all__ = [
    "AvailabilityService",
    "BookingConflictResolver",
    "CalendarIndex",
    "CatalogService",
    "DurationPriceResolver",
    "HoldService",
    "ScheduleService",
]
