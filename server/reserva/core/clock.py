"""Wall-clock access for services that compare against the current time."""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def tenant_zone(name: str | None) -> tzinfo:
    """Resolve a tenant timezone name."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_local(utc_now: datetime, zone_name: str | None) -> datetime:
    """Convert a naive UTC instant to naive tenant-local wall time."""
    return utc_now.replace(tzinfo=timezone.utc).astimezone(tenant_zone(zone_name)).replace(tzinfo=None)


def daterange(start: date, days: int):
    """Yield ``days`` consecutive dates beginning with ``start``."""
    for offset in range(days):
        yield start + timedelta(days=offset)
