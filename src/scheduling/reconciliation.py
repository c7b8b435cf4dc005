from __future__ import annotations

import datetime as dt
import logging
import math
import os
from typing import Any, Dict, Hashable, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendar_ai.errors import InvalidDateInput
from calendar_ai.timecodec import MINUTES_PER_HOUR, time_to_minutes

logger = logging.getLogger(__name__)

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/Los_Angeles").strip()


def resolve_timezone(name: Optional[str] = None) -> ZoneInfo:
    try:
        return ZoneInfo(name or APP_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Unknown timezone {name!r}: {e}, falling back to UTC")
        return ZoneInfo("UTC")


def today_in(tz: Optional[dt.tzinfo] = None) -> dt.date:
    return dt.datetime.now(tz or resolve_timezone()).date()


def to_calendar_date(value: Any) -> dt.date:
    """Return a new date built only from the year/month/day of ``value``.

    Accepts date, datetime and ISO strings. Raises InvalidDateInput otherwise.
    """
    if isinstance(value, dt.datetime):
        return dt.date(value.year, value.month, value.day)
    if isinstance(value, dt.date):
        return dt.date(value.year, value.month, value.day)
    if isinstance(value, float) and math.isnan(value):
        raise InvalidDateInput("Date is not a number")
    if isinstance(value, str) and value.strip():
        s = value.strip()
        try:
            parsed = dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidDateInput(f"Unparseable date: {value!r}")
        return dt.date(parsed.year, parsed.month, parsed.day)
    raise InvalidDateInput(f"Unparseable date: {value!r}")


def anchor(
    day: dt.date,
    time_of_day: str,
    duration_min: int,
    tz: Optional[dt.tzinfo] = None,
) -> Tuple[dt.datetime, dt.datetime]:
    """Combine a calendar date and an "HH:MM" time into timezone-aware start/end instants."""
    tz = tz or resolve_timezone()
    minutes = time_to_minutes(time_of_day)
    hours, mins = divmod(minutes, MINUTES_PER_HOUR)
    start = dt.datetime(day.year, day.month, day.day, hours % 24, mins, tzinfo=tz)
    end = start + dt.timedelta(minutes=duration_min)
    return start, end


class TaskDateBook:
    """Dates assigned to a set of not-yet-confirmed tasks.

    ``selected_date`` is the default for every task without its own override.
    Invalid input raises InvalidDateInput and leaves the book unchanged.
    """

    def __init__(self, task_keys: Iterable[Hashable] = (), selected_date: Any = None):
        self._selected_date = (
            to_calendar_date(selected_date) if selected_date is not None else today_in()
        )
        self._overrides: Dict[Hashable, dt.date] = {}
        self._keys = list(task_keys)

    @property
    def selected_date(self) -> dt.date:
        return self._selected_date

    @property
    def keys(self) -> list:
        return list(self._keys)

    def add_key(self, key: Hashable) -> None:
        if key not in self._keys:
            self._keys.append(key)

    def remove_key(self, key: Hashable) -> None:
        if key in self._keys:
            self._keys.remove(key)
        self._overrides.pop(key, None)

    def has_override(self, key: Hashable) -> bool:
        return key in self._overrides

    def date_for(self, key: Hashable) -> dt.date:
        return self._overrides.get(key, self._selected_date)

    def set_selected_date(self, value: Any) -> dt.date:
        self._selected_date = to_calendar_date(value)
        return self._selected_date

    def set_task_date(self, key: Hashable, value: Any) -> dt.date:
        """Override one task's date. The selected date is not touched."""
        if key not in self._keys:
            raise KeyError(key)
        new_date = to_calendar_date(value)
        self._overrides[key] = new_date
        return new_date

    def apply_to_all(self, value: Any) -> dt.date:
        """Give every task its own copy of ``value`` and make it the selected date."""
        new_date = to_calendar_date(value)
        self._selected_date = to_calendar_date(new_date)
        for key in self._keys:
            self._overrides[key] = to_calendar_date(new_date)
        logger.info(f"Applied date {new_date.isoformat()} to {len(self._keys)} tasks")
        return new_date
