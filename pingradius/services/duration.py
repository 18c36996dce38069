from __future__ import annotations

import math
import re
from datetime import datetime, timedelta
from typing import Optional

from pingradius.core.match_config import ACTIVE_BUFFER_MINUTES

ALL_DAY_MINUTES = 24 * 60

# Values offered by the ping creation form
PRESET_DURATIONS = {
    "30 minutes": 30,
    "1 hour": 60,
    "2 hours": 120,
    "3 hours": 180,
    "4 hours": 240,
    "all day": ALL_DAY_MINUTES,
}

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")
_ANY_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_BARE_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")


def _leading(text: str) -> Optional[float]:
    m = _LEADING_NUMBER.match(text)
    return float(m.group(1)) if m else None


def _first(text: str) -> Optional[float]:
    m = _ANY_NUMBER.search(text)
    return float(m.group(1)) if m else None


def parse_duration_minutes(duration: str | None) -> Optional[float]:
    """
    Minutes described by a free-form duration string, or None when nothing
    sensible can be read out of it.

      "1 hour" -> 60, "1.5h" -> 90, "45m" -> 45, "All day" -> 1440, "90" -> 90
    """
    if not duration:
        return None

    d = duration.strip().lower()
    if d in PRESET_DURATIONS:
        return float(PRESET_DURATIONS[d])

    minutes: Optional[float] = None
    if d.endswith("h"):
        hours = _leading(d)
        minutes = hours * 60 if hours is not None else None
    elif d.endswith("m"):
        minutes = _leading(d)
    elif "hour" in d:
        hours = _first(d)
        minutes = hours * 60 if hours is not None else None
    elif "all day" in d:
        minutes = float(ALL_DAY_MINUTES)
    elif "min" in d:
        minutes = _first(d)
    elif _BARE_NUMBER.match(d):
        minutes = float(d)

    if minutes is None or not math.isfinite(minutes) or minutes < 0:
        return None
    return minutes


def expires_at(created_at: datetime | None, duration: str | None) -> Optional[datetime]:
    if created_at is None:
        return None
    minutes = parse_duration_minutes(duration)
    if minutes is None:
        return None
    return created_at + timedelta(minutes=minutes)


def is_still_active(
    activity,
    now: datetime | None = None,
    buffer_minutes: float = ACTIVE_BUFFER_MINUTES,
) -> bool:
    """
    True while `now` is before expiry + buffer. A ping whose expiry cannot
    be computed is never active.
    """
    expiry = expires_at(activity.created_at, activity.duration)
    if expiry is None:
        return False
    now = now or datetime.now()
    return now < expiry + timedelta(minutes=buffer_minutes)
