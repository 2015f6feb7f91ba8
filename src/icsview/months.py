from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Event

logger = logging.getLogger(__name__)

_DISPLAY_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_display_datetime(value: str) -> Optional[datetime]:
    """Parse a normalized event date string as a naive wall-clock datetime."""
    value = value.strip()
    if not value:
        return None
    for fmt in _DISPLAY_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def month_key(value: datetime | date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _event_hours(e: Event) -> float:
    start = parse_display_datetime(e.start)
    end = parse_display_datetime(e.end)
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds() / 3600


@dataclass(frozen=True)
class MonthBucket:
    key: str                     # "YYYY-MM"
    events: Tuple[Event, ...]

    @property
    def year(self) -> int:
        return int(self.key[:4])

    @property
    def month(self) -> int:
        return int(self.key[5:7])

    @property
    def label(self) -> str:
        # e.g. "March 2024"
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def total_hours(self) -> float:
        return sum(_event_hours(e) for e in self.events)


def group_by_month(events: Sequence[Event]) -> List[MonthBucket]:
    grouped: Dict[str, List[Event]] = {}
    for e in events:
        start = parse_display_datetime(e.start)
        if start is None:
            logger.debug("Skipping event %r with unparseable start %r", e.summary, e.start)
            continue
        grouped.setdefault(month_key(start), []).append(e)
    return [MonthBucket(key=k, events=tuple(grouped[k])) for k in sorted(grouped)]


@dataclass(frozen=True)
class DayCell:
    day: int
    events: Tuple[Event, ...] = field(default_factory=tuple)


def month_grid(bucket: MonthBucket) -> List[List[Optional[DayCell]]]:
    """Sunday-first weeks for the bucket's month; days outside the month are None."""
    by_day: Dict[int, List[Event]] = {}
    for e in bucket.events:
        start = parse_display_datetime(e.start)
        if start is not None:
            by_day.setdefault(start.day, []).append(e)

    weeks: List[List[Optional[DayCell]]] = []
    cal = calendar.Calendar(firstweekday=calendar.SUNDAY)
    for week in cal.monthdayscalendar(bucket.year, bucket.month):
        weeks.append([
            DayCell(day=d, events=tuple(by_day.get(d, []))) if d else None
            for d in week
        ])
    return weeks


class MonthNavigator:
    """Ordered month buckets plus a clamped cursor into them."""

    def __init__(self, events: Sequence[Event], today: Optional[date] = None) -> None:
        self.buckets = group_by_month(events)
        self.index = 0
        today = today or date.today()
        keys = [b.key for b in self.buckets]
        if month_key(today) in keys:
            self.index = keys.index(month_key(today))

    def __len__(self) -> int:
        return len(self.buckets)

    @property
    def current(self) -> Optional[MonthBucket]:
        if not self.buckets:
            return None
        return self.buckets[self.index]

    @property
    def has_previous(self) -> bool:
        return self.index > 0

    @property
    def has_next(self) -> bool:
        return self.index < len(self.buckets) - 1

    def next(self) -> Optional[MonthBucket]:
        if self.has_next:
            self.index += 1
        return self.current

    def previous(self) -> Optional[MonthBucket]:
        if self.has_previous:
            self.index -= 1
        return self.current
