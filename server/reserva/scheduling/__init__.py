"""Pure scheduling primitives shared by the read and write paths."""

from .hours import CalendarOverride, DayHours, OverrideKind, TenantSchedule, WeeklyHours
from .intervals import Interval, first_overlap, intersect_interval_sets, merge_intervals
from .resource_ref import UNASSIGNED, Assigned, ResourceRef, Unassigned, resource_ref

__all__ = [
    "Interval",
    "merge_intervals",
    "intersect_interval_sets",
    "first_overlap",
    "DayHours",
    "WeeklyHours",
    "CalendarOverride",
    "OverrideKind",
    "TenantSchedule",
    "Assigned",
    "Unassigned",
    "UNASSIGNED",
    "ResourceRef",
    "resource_ref",
]
