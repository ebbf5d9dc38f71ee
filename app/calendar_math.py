"""Civil-date and time-of-day helpers shared by the shift and staffing logic."""

from __future__ import annotations

import datetime
import math
from typing import List, Tuple, Union

DateLike = Union[datetime.date, datetime.datetime, str]
TimeLike = Union[datetime.time, str]

MINUTES_PER_DAY = 24 * 60
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_date(value: DateLike) -> datetime.date:
    """Return a civil date from a date, datetime or YYYY-MM-DD string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.date.fromisoformat(text[:10])
        except ValueError:
            raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from None
    raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD")


def format_date(value: DateLike) -> str:
    return parse_date(value).isoformat()


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative when ``end`` is earlier)."""
    return (parse_date(end) - parse_date(start)).days


def add_days(value: DateLike, days: int) -> datetime.date:
    return parse_date(value) + datetime.timedelta(days=days)


def date_range(start: DateLike, end: DateLike) -> List[datetime.date]:
    """Inclusive list of dates; empty when ``end`` precedes ``start``."""
    first = parse_date(start)
    span = days_between(first, end)
    return [first + datetime.timedelta(days=offset) for offset in range(span + 1)]


def day_of_week_name(value: DateLike) -> str:
    return DAY_NAMES[parse_date(value).weekday()]


def week_range(value: DateLike, start_of_week: int = 0) -> Tuple[datetime.date, datetime.date]:
    """Return (first, last) day of the week containing ``value``; 0 = Monday."""
    current = parse_date(value)
    back = (current.weekday() - start_of_week) % 7
    first = current - datetime.timedelta(days=back)
    return first, first + datetime.timedelta(days=6)


def weeks_between(start: DateLike, end: DateLike) -> int:
    return math.ceil(days_between(start, end) / 7)


def time_to_minutes(value: TimeLike) -> int:
    """Parse HH:MM or HH:MM:SS into minutes since midnight."""
    if isinstance(value, datetime.time):
        return value.hour * 60 + value.minute
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time {value!r}; expected HH:MM or HH:MM:SS")
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(float(parts[2])) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM or HH:MM:SS") from None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59 and 0 <= seconds <= 59):
        raise ValueError(f"Invalid time {value!r}; out of range")
    return hours * 60 + minutes


def parse_time(value: TimeLike) -> datetime.time:
    if isinstance(value, datetime.time):
        return value
    minutes = time_to_minutes(value)
    return datetime.time(minutes // 60, minutes % 60)


def minutes_to_time(minutes: int) -> str:
    minutes = int(minutes) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time(value: TimeLike) -> str:
    """Normalise to HH:MM:SS."""
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M:%S")
    return f"{minutes_to_time(time_to_minutes(value))}:00"


def calculate_time_overlap(start1: TimeLike, end1: TimeLike, start2: TimeLike, end2: TimeLike) -> int:
    """Minutes shared by two time-of-day windows.

    A window whose end is earlier than its start runs past midnight; each
    window is unwrapped independently before intersecting.
    """
    s1 = time_to_minutes(start1)
    e1 = time_to_minutes(end1)
    s2 = time_to_minutes(start2)
    e2 = time_to_minutes(end2)
    if e1 < s1:
        e1 += MINUTES_PER_DAY
    if e2 < s2:
        e2 += MINUTES_PER_DAY
    return max(0, min(e1, e2) - max(s1, s2))


def is_time_in_range(value: TimeLike, start: TimeLike, end: TimeLike) -> bool:
    point = time_to_minutes(value)
    lower = time_to_minutes(start)
    upper = time_to_minutes(end)
    if upper < lower:
        return point >= lower or point <= upper
    return lower <= point <= upper
