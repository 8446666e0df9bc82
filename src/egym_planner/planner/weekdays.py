"""Weekday helpers for locating today's entry in a stored plan."""

from __future__ import annotations

from datetime import date
from typing import Any

from .schema import WEEKDAYS

DEFAULT_START_WEEKDAY = "Mon"


def weekday_token(day: date) -> str:
    """Return the Mon..Sun token for a calendar date."""
    return WEEKDAYS[day.weekday()]


def plan_day_for(today: date, start_weekday: str | None = DEFAULT_START_WEEKDAY) -> str:
    """
    Map a calendar date onto the plan's day token.

    Plans are always written Mon..Sun; ``start_weekday`` is the calendar
    weekday on which the user started the plan, so day one ("Mon" in the plan)
    lines up with it.
    """
    start = start_weekday if start_weekday in WEEKDAYS else DEFAULT_START_WEEKDAY
    offset = (today.weekday() - WEEKDAYS.index(start)) % 7
    return WEEKDAYS[offset]


def pick_today(
    week: list[dict[str, Any]],
    start_weekday: str | None = DEFAULT_START_WEEKDAY,
    today: date | None = None,
) -> dict[str, Any] | None:
    """Return the DayPlan for today, falling back to the first day of the plan."""
    if not week:
        return None
    key = plan_day_for(today or date.today(), start_weekday)
    for day in week:
        if day.get("day") == key:
            return day
    return week[0]
