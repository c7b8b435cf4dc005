"""Conversions between "HH:MM" strings, minutes since midnight and timeline pixels."""

from __future__ import annotations

import math
import re
from typing import Any

from calendar_ai.errors import InvalidTimeFormat

DEFAULT_START_TIME = "12:00"

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1

HOUR_HEIGHT_PX = 60
CONFIRMATION_SNAP_MINUTES = 15
DAY_VIEW_SNAP_MINUTES = 30

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_HOUR_ONLY_RE = re.compile(r"^\d{1,2}$")
_MILITARY_RE = re.compile(r"^(\d{2})(\d{2})$")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def time_to_minutes(time: str) -> int:
    """Minutes since midnight for an "H:MM" or "HH:MM" string.

    Raises InvalidTimeFormat for anything else.
    """
    if not isinstance(time, str):
        raise InvalidTimeFormat(f"Expected HH:MM, got {time!r}")
    match = _TIME_RE.match(time.strip())
    if not match:
        raise InvalidTimeFormat(f"Expected HH:MM, got {time!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    return hours * MINUTES_PER_HOUR + minutes


def minutes_to_time(minutes: int) -> str:
    minutes = int(minutes)
    hours = (minutes // MINUTES_PER_HOUR) % 24
    mins = minutes % MINUTES_PER_HOUR
    return f"{hours:02d}:{mins:02d}"


def clamp_minutes(minutes: int) -> int:
    return max(0, min(LAST_MINUTE_OF_DAY, int(minutes)))


def minutes_to_pixels(minutes: float, hour_height_px: float = HOUR_HEIGHT_PX) -> float:
    return minutes / MINUTES_PER_HOUR * hour_height_px


def pixels_to_minutes(
    px: float,
    hour_height_px: float = HOUR_HEIGHT_PX,
    snap_minutes: int = CONFIRMATION_SNAP_MINUTES,
) -> int:
    """Minute offset for a vertical pixel offset, snapped to ``snap_minutes``."""
    if hour_height_px <= 0:
        raise ValueError("hour_height_px must be positive")
    if snap_minutes <= 0:
        raise ValueError("snap_minutes must be positive")
    raw_minutes = _round_half_up(px / hour_height_px * MINUTES_PER_HOUR)
    return _round_half_up(raw_minutes / snap_minutes) * snap_minutes


def round_to_nearest_increment(time: str, increment_minutes: int = 15) -> str:
    """Round the minutes of ``time`` to the nearest increment.

    A minute value of 60 after rounding rolls into the next hour (mod 24).
    Invalid input falls back to DEFAULT_START_TIME so callers always get a
    renderable value.
    """
    try:
        match = _TIME_RE.match(time.strip())
    except AttributeError:
        return DEFAULT_START_TIME
    if not match or increment_minutes <= 0:
        return DEFAULT_START_TIME

    hours, minutes = int(match.group(1)), int(match.group(2))
    rounded = _round_half_up(minutes / increment_minutes) * increment_minutes
    return minutes_to_time(hours * MINUTES_PER_HOUR + rounded)


def coerce_time_string(value: Any) -> str:
    """Best-effort normalisation of model output into "HH:MM".

    Accepts "9:00", "09:00", "9" and "0900". Anything else becomes
    DEFAULT_START_TIME.
    """
    if not isinstance(value, str):
        return DEFAULT_START_TIME
    s = value.strip()

    match = _TIME_RE.match(s)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"
    if _HOUR_ONLY_RE.match(s):
        return f"{int(s):02d}:00"
    match = _MILITARY_RE.match(s)
    if match:
        return f"{match.group(1)}:{match.group(2)}"
    return DEFAULT_START_TIME
