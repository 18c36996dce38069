"""
Weekly availability windows.

A schedule maps lowercase weekday names to {start, end} "HH:MM" strings.
Windows whose end is earlier than their start run past midnight: 22:00-02:00
on Friday covers Friday 22:00-24:00 and Saturday 00:00-02:00, and the
after-midnight part is always read from the previous day's entry.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Optional

from pingradius.schemas.enums import WEEKDAYS

ZERO_TIMES = ("0:00", "00:00")

_CLOCK = re.compile(r"(\d{1,2}):(\d{2})")

DAY_LABELS = {
    "monday": "Monday",
    "tuesday": "Tuesday",
    "wednesday": "Wednesday",
    "thursday": "Thursday",
    "friday": "Friday",
    "saturday": "Saturday",
    "sunday": "Sunday",
}


@dataclass(frozen=True)
class NextAvailability:
    label: str
    start_time_text: str

    def __str__(self) -> str:
        return f"{self.label} at {self.start_time_text}"


def _weekday(at: datetime) -> str:
    return WEEKDAYS[at.weekday()]


def _hhmm(at: datetime) -> str:
    return at.strftime("%H:%M")


def _to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _entry(schedule, day: str):
    if schedule is None:
        return None
    if isinstance(schedule, Mapping):
        return schedule.get(day)
    return getattr(schedule, day, None)


def _field(entry, name: str) -> Optional[str]:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def normalize_hhmm(value: str | None) -> Optional[str]:
    """'9:05' -> '09:05'; anything that is not a 24-hour clock time -> None."""
    if not isinstance(value, str):
        return None
    m = _CLOCK.fullmatch(value.strip())
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def day_window(schedule, day: str) -> Optional[tuple[str, str]]:
    """
    (start, end) for `day`, or None when the entry is absent, incomplete,
    zero-length, or carries a zero value ("0:00" / "00:00").
    """
    entry = _entry(schedule, day)
    if not entry:
        return None

    start = _field(entry, "start")
    end = _field(entry, "end")
    if not start or not end:
        return None
    # an unset time picker stores zero; never read it as midnight
    if start in ZERO_TIMES or end in ZERO_TIMES:
        return None

    start, end = normalize_hhmm(start), normalize_hhmm(end)
    if not start or not end or start == end:
        return None
    return start, end


def _is_overnight(window: tuple[str, str]) -> bool:
    start, end = window
    return end < start


def is_available_at(schedule, at: datetime) -> bool:
    current = _hhmm(at)

    today = day_window(schedule, _weekday(at))
    if today:
        start, end = today
        if _is_overnight(today):
            if current >= start:
                return True
        elif start <= current <= end:
            return True

    yesterday = day_window(schedule, _weekday(at - timedelta(days=1)))
    if yesterday and _is_overnight(yesterday):
        return current <= yesterday[1]

    return False


def is_available_now(schedule, now: datetime | None = None) -> bool:
    return is_available_at(schedule, now or datetime.now())


def _format_remaining(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m left"
    return f"{minutes}m left"


def remaining_today(schedule, now: datetime | None = None) -> Optional[str]:
    """'Xh Ym left' until the current window closes, or None."""
    now = now or datetime.now()
    current = now.hour * 3600 + now.minute * 60 + now.second

    # still inside last night's overnight window
    yesterday = day_window(schedule, _weekday(now - timedelta(days=1)))
    if yesterday and _is_overnight(yesterday):
        end = _to_minutes(yesterday[1]) * 60
        if current < end:
            return _format_remaining((end - current) // 60)

    today = day_window(schedule, _weekday(now))
    if not today:
        return None

    end = _to_minutes(today[1]) * 60
    if _is_overnight(today):
        end += 24 * 3600

    diff = end - current
    if diff <= 0:
        return None
    return _format_remaining(diff // 60)


def next_available(schedule, now: datetime | None = None) -> Optional[NextAvailability]:
    now = now or datetime.now()

    for offset in range(7):
        day = now + timedelta(days=offset)
        window = day_window(schedule, _weekday(day))
        if not window:
            continue

        if offset == 0 and window[0] <= _hhmm(now):
            continue

        if offset == 0:
            label = "Today"
        elif offset == 1:
            label = "Tomorrow"
        else:
            label = DAY_LABELS[_weekday(day)]

        return NextAvailability(label=label, start_time_text=format_ampm(window[0]))

    return None


def format_ampm(hhmm: str | None) -> str:
    """'13:05' -> '1:05 PM'. Empty and '00:00' read as midnight."""
    if not hhmm or hhmm == "00:00":
        return "12:00 AM"

    hours, minutes = (int(part) for part in hhmm.split(":"))
    period = "PM" if hours >= 12 else "AM"
    display = 12 if hours == 0 else hours - 12 if hours > 12 else hours
    return f"{display}:{minutes:02d} {period}"


def today_range(schedule, now: datetime | None = None) -> Optional[str]:
    now = now or datetime.now()
    window = day_window(schedule, _weekday(now))
    if not window:
        return None
    return f"{format_ampm(window[0])} - {format_ampm(window[1])}"


def has_any_valid_day(schedule) -> bool:
    return any(day_window(schedule, day) for day in WEEKDAYS)
