"""Half-open ``[start, end)`` time intervals and set operations over them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence


@dataclass(frozen=True, order=True)
class Interval:
    """A half-open interval of tenant-local wall time."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(f"Interval end {self.end} must be after start {self.start}")

    @classmethod
    def on_day(cls, day: date, start: time, end: time) -> Interval:
        return cls(datetime.combine(day, start), datetime.combine(day, end))

    @classmethod
    def starting_at(cls, day: date, start: time, minutes: int) -> Interval:
        begin = datetime.combine(day, start)
        return cls(begin, begin + timedelta(minutes=minutes))

    @classmethod
    def whole_day(cls, day: date) -> Interval:
        begin = datetime.combine(day, time.min)
        return cls(begin, begin + timedelta(days=1))

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def within_single_day(self) -> bool:
        """True when the interval starts and ends on the same calendar date."""
        return self.end.date() == self.start.date()

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: Interval) -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersection(self, other: Interval) -> Interval | None:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        return Interval(start, end)

    def as_window(self) -> dict:
        """Wire form used in conflict payloads."""
        return {
            "date": self.start.date().isoformat(),
            "start": self.start.time().strftime("%H:%M"),
            "end": self.end.time().strftime("%H:%M") if self.within_single_day() else "24:00",
        }


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Sort and coalesce overlapping or touching intervals."""
    merged: list[Interval] = []
    for current in sorted(intervals):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = Interval(last.start, current.end)
            continue
        merged.append(current)
    return merged


def _intersect_pair(left: Sequence[Interval], right: Sequence[Interval]) -> list[Interval]:
    result: list[Interval] = []
    i = j = 0
    while i < len(left) and j < len(right):
        overlap = left[i].intersection(right[j])
        if overlap is not None:
            result.append(overlap)
        if left[i].end <= right[j].end:
            i += 1
        else:
            j += 1
    return result


def intersect_interval_sets(interval_sets: Sequence[Iterable[Interval]]) -> list[Interval]:
    """Times covered by every one of the given interval sets."""
    if not interval_sets:
        return []
    result = merge_intervals(interval_sets[0])
    for other in interval_sets[1:]:
        result = merge_intervals(_intersect_pair(result, merge_intervals(other)))
        if not result:
            break
    return result


def first_overlap(intervals: Iterable[Interval], target: Interval) -> Interval | None:
    """Earliest interval that intersects ``target``, if any."""
    hits = [interval for interval in intervals if interval.overlaps(target)]
    return min(hits) if hits else None
