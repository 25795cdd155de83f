"""Month grid for the calendar view.

The grid is always five weeks (35 cells) starting on the Sunday on or before
the 1st of the month. Months that need a sixth row lose their last days.

Only events that *start* in the displayed month are placed on the grid; a
multi-day event carried over from the previous month is not shown in the
following month.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from angostura.models import Event
from angostura.timeutils import as_utc

GRID_CELLS = 35

DISPLAY_TZ = ZoneInfo(os.getenv("CALENDAR_TIMEZONE", "UTC"))


@dataclass
class CalendarGrid:
    year: int
    month: int
    days: List[date]
    events_by_day: Dict[date, List[Event]] = field(default_factory=dict)

    def events_on(self, day: date) -> List[Event]:
        return self.events_by_day.get(day, [])

    def in_month(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month


def _local(value: datetime, tz: tzinfo) -> datetime:
    return as_utc(value).astimezone(tz)


def grid_start(year: int, month: int) -> date:
    first = date(year, month, 1)
    # date.weekday() counts from Monday; the grid starts on Sunday
    return first - timedelta(days=(first.weekday() + 1) % 7)


def grid_days(year: int, month: int) -> List[date]:
    try:
        start = grid_start(year, month)
        return [start + timedelta(days=offset) for offset in range(GRID_CELLS)]
    except OverflowError as exc:
        raise ValueError(f"{year:04d}-{month:02d} is outside the supported calendar range") from exc


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Previous / next month navigation. `delta` may be any integer."""
    new_year, new_index = divmod(year * 12 + (month - 1) + delta, 12)
    return new_year, new_index + 1


def events_starting_in(events: Iterable[Event], year: int, month: int, tz: tzinfo) -> List[Event]:
    selected = []
    for event in events:
        start = _local(event.start_time, tz)
        if start.year == year and start.month == month:
            selected.append(event)
    return selected


def occupies_day(event: Event, day: date, tz: tzinfo) -> bool:
    start = _local(event.start_time, tz)
    end = _local(event.end_time, tz)
    start_of_day = datetime.combine(start.date(), time.min, tzinfo=tz)
    end_of_day = datetime.combine(end.date(), time.max, tzinfo=tz)
    # noon keeps DST shifts from moving the cell onto a neighbouring day
    noon = datetime.combine(day, time(12), tzinfo=tz)
    return start_of_day <= noon <= end_of_day


def compute_grid(year: int, month: int, events: Sequence[Event], tz: tzinfo | None = None) -> CalendarGrid:
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    tz = tz or DISPLAY_TZ
    days = grid_days(year, month)
    eligible = events_starting_in(events, year, month, tz)
    events_by_day = {day: [event for event in eligible if occupies_day(event, day, tz)] for day in days}
    return CalendarGrid(year=year, month=month, days=days, events_by_day=events_by_day)
