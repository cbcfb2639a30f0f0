"""Models module exporting all database models."""

from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingOption, BookingStatus
from .customer import Customer
from .hold import HoldState, HoldToken
from .menu import ComboDiscount, Menu, MenuOption, PriceType
from .resource import Resource, ResourceType
from .tenant import BusinessHours, CalendarEntry, Tenant

__all__ = [
    # Tenant and calendar
    "Tenant",
    "BusinessHours",
    "CalendarEntry",

    # Catalog
    "Resource",
    "ResourceType",
    "Menu",
    "MenuOption",
    "PriceType",
    "ComboDiscount",
    "Customer",

    # Booking entities
    "Booking",
    "BookingOption",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",

    # Hold entity
    "HoldToken",
    "HoldState",
]
