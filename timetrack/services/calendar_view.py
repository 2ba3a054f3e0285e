"""
Calendar bucketing for the day, week, month and year views.

Events are matched to days by exact equality of their `date` string with the
cell's YYYY-MM-DD key. Weeks start on Sunday; the month view is always a
6-week grid of 42 days beginning on the Sunday on/before the 1st.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence

import pandas as pd

from timetrack.models.events import CalendarEvent

MONTH_GRID_CELLS = 42


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class DayCell:
    day: date
    events: tuple[CalendarEvent, ...]
    total_hours: float
    in_month: bool
    is_today: bool


@dataclass(frozen=True)
class MonthSummary:
    month: int                # 1-12
    total_hours: float
    event_count: int


def date_key(d: date) -> str:
    return d.isoformat()


def events_for_date(events: Iterable[CalendarEvent], d: date) -> list[CalendarEvent]:
    key = date_key(d)
    return [e for e in events if e.date == key]


def sunday_offset(d: date) -> int:
    """Column of `d` in a Sunday-first week (Sunday=0 ... Saturday=6)."""
    return (d.weekday() + 1) % 7


def _month_bounds(d: date) -> tuple[date, date]:
    first = d.replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return first, last


def _add_months(d: date, months: int) -> date:
    total = d.year * 12 + (d.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    # clamp e.g. Jan 31 + 1 month to the last day of February
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def shift(ref: date, mode: ViewMode, steps: int = 1) -> date:
    """Move the reference date by `steps` units of the view (negative goes back)."""
    mode = ViewMode(mode)
    if mode is ViewMode.DAY:
        return ref + timedelta(days=steps)
    if mode is ViewMode.WEEK:
        return ref + timedelta(days=7 * steps)
    if mode is ViewMode.MONTH:
        return _add_months(ref, steps)
    return _add_months(ref, 12 * steps)


def week_days(ref: date) -> list[date]:
    start = ref - timedelta(days=sunday_offset(ref))
    return [start + timedelta(days=i) for i in range(7)]


def month_grid(ref: date) -> list[date]:
    first, _ = _month_bounds(ref)
    start = first - timedelta(days=sunday_offset(first))
    return [ts.date() for ts in pd.date_range(start, periods=MONTH_GRID_CELLS, freq="D")]


def _cell(day: date, events: Sequence[CalendarEvent], ref: date, today: date) -> DayCell:
    day_events = tuple(events_for_date(events, day))
    return DayCell(
        day=day,
        events=day_events,
        total_hours=sum(e.hours for e in day_events),
        in_month=(day.year, day.month) == (ref.year, ref.month),
        is_today=day == today,
    )


def day_view(ref: date, events: Sequence[CalendarEvent], today: Optional[date] = None) -> DayCell:
    return _cell(ref, events, ref, today or date.today())


def week_view(ref: date, events: Sequence[CalendarEvent], today: Optional[date] = None) -> list[DayCell]:
    today = today or date.today()
    return [_cell(d, events, ref, today) for d in week_days(ref)]


def month_view(ref: date, events: Sequence[CalendarEvent], today: Optional[date] = None) -> list[DayCell]:
    today = today or date.today()
    return [_cell(d, events, ref, today) for d in month_grid(ref)]


def year_view(ref: date, events: Sequence[CalendarEvent]) -> list[MonthSummary]:
    """Hours and event counts per month of `ref.year`. Undated events are skipped."""
    df = pd.DataFrame(
        {"date": [e.date for e in events], "hours": [e.hours for e in events]},
        columns=["date", "hours"],
    )
    df["date_dt"] = pd.to_datetime(df["date"], format="%Y-%m-%d", errors="coerce")
    df = df[df["date_dt"].dt.year == ref.year]

    grouped = df.groupby(df["date_dt"].dt.month)["hours"].agg(["sum", "count"])

    out = []
    for month in range(1, 13):
        if month in grouped.index:
            out.append(
                MonthSummary(
                    month=month,
                    total_hours=float(grouped.loc[month, "sum"]),
                    event_count=int(grouped.loc[month, "count"]),
                )
            )
        else:
            out.append(MonthSummary(month=month, total_hours=0.0, event_count=0))
    return out


def cells_for(ref: date, mode: ViewMode, events: Sequence[CalendarEvent], today: Optional[date] = None):
    mode = ViewMode(mode)
    if mode is ViewMode.DAY:
        return [day_view(ref, events, today)]
    if mode is ViewMode.WEEK:
        return week_view(ref, events, today)
    if mode is ViewMode.MONTH:
        return month_view(ref, events, today)
    return year_view(ref, events)
