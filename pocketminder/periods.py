# pocketminder/periods.py
"""
Calendar helpers shared by the expander, the budget monitor and the bill scheduler.

Definitions
- month bounds: half-open [first day 00:00, first day of next month 00:00)

Public API:
- add_months(dt, n) -> datetime            # clamps to the last day of short months
- add_years(dt, n) -> datetime             # Feb 29 -> Feb 28 in non-leap years
- days_in_month(year, month) -> int
- month_bounds(dt) -> (start, end)
- on_day_of_month(year, month, day) -> datetime   # local midnight, clamped
- next_day_of_month(day, as_of) -> datetime
- day_suffix(day) -> "st" | "nd" | "rd" | "th"
"""

from __future__ import annotations

import calendar
from datetime import datetime
from typing import Tuple

from dateutil.relativedelta import relativedelta

__all__ = [
    "add_months",
    "add_years",
    "days_in_month",
    "month_bounds",
    "on_day_of_month",
    "next_day_of_month",
    "day_suffix",
]


# ---------- Month lengths ----------


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


# ---------- Stepping ----------


def add_months(dt: datetime, months: int) -> datetime:
    """
    Calendar-aware month step.
    Jan 31 + 1 month -> Feb 28/29 (clamped, never overflows into March).
    """
    return dt + relativedelta(months=months)


def add_years(dt: datetime, years: int) -> datetime:
    return dt + relativedelta(years=years)


# ---------- Month windows ----------


def month_bounds(dt: datetime) -> Tuple[datetime, datetime]:
    """Half-open [start, end) covering the calendar month of dt."""
    start = datetime(dt.year, dt.month, 1)
    return start, start + relativedelta(months=1)


def on_day_of_month(year: int, month: int, day: int) -> datetime:
    """Midnight of `day` in the given month; day 31 in a 30-day month -> the 30th."""
    return datetime(year, month, min(day, days_in_month(year, month)))


def next_day_of_month(day: int, as_of: datetime) -> datetime:
    """
    Next midnight falling on `day` (clamped) at or after as_of.
    Policy: this month if not yet passed, else next month.
    """
    candidate = on_day_of_month(as_of.year, as_of.month, day)
    if candidate < as_of:
        following = datetime(as_of.year, as_of.month, 1) + relativedelta(months=1)
        candidate = on_day_of_month(following.year, following.month, day)
    return candidate


# ---------- Copy ----------


def day_suffix(day: int) -> str:
    """1 -> st, 2 -> nd, 3 -> rd, 11/12/13 -> th, else by the last digit."""
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
