"""Time, date and train number helpers for display."""

import math
import re
from datetime import date, datetime
from typing import Optional, Tuple, Union

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

_TRAILING_DIGITS = re.compile(r"([0-9]+)\Z")

DateLike = Union[date, datetime, float, int]


def time_to_seconds(time_str: str) -> Optional[int]:
    """
    Convert a GTFS time string to seconds since service-day midnight.

    Args:
        time_str: Time in HH:MM:SS or HH:MM format (hours may be >= 24).

    Returns:
        Seconds since midnight, or None if the string is not a valid time.
    """
    try:
        parts = time_str.strip().split(":")
        if len(parts) not in (2, 3):
            return None
        hours, minutes = int(parts[0]), int(parts[1])
        seconds = int(parts[2]) if len(parts) == 3 else 0
        return hours * 3600 + minutes * 60 + seconds
    except (ValueError, AttributeError):
        return None


def seconds_to_time(total_seconds: int) -> str:
    """Convert seconds since service-day midnight back to HH:MM:SS."""
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_time_with_day_offset(time24: str) -> Tuple[str, int]:
    """
    Format a GTFS time as 12-hour clock time plus a day offset.

    Overnight trains use hours >= 24, which roll into the following day(s).

    Returns:
        Tuple of (display time, day offset), e.g. ("1:30 AM", 1) for "25:30:00".
    """
    seconds = time_to_seconds(time24)
    if seconds is None:
        return time24, 0

    hours, minutes = divmod(seconds // 60, 60)
    day_offset, hours = divmod(hours, 24)

    meridian = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes:02d} {meridian}", day_offset


def format_time(time24: str) -> str:
    """Format a GTFS time as "h:mm AM/PM", suffixed with "+N" past midnight."""
    display, day_offset = format_time_with_day_offset(time24)
    return f"{display} +{day_offset}" if day_offset > 0 else display


def shift_time(time24: str, delay_minutes: int) -> str:
    """Return a GTFS time moved by ``delay_minutes`` (negative for early)."""
    seconds = time_to_seconds(time24)
    if seconds is None:
        return time24
    return seconds_to_time(max(0, seconds + delay_minutes * 60))


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Unix timestamps, local time
    return datetime.fromtimestamp(value).date()


def format_date_for_display(value: DateLike) -> str:
    """Format a travel date as e.g. "Jan 4"."""
    day = _as_date(value)
    return f"{MONTH_NAMES[day.month - 1]} {day.day}"


def calculate_days_away(travel_date: DateLike, today: Optional[DateLike] = None) -> int:
    """
    Number of calendar days from today until ``travel_date``.

    Both dates are compared at local midnight, so the result is the ceiling of
    the day difference. Negative values mean the date is in the past.
    """
    start = _as_date(today) if today is not None else date.today()
    delta = _as_date(travel_date) - start
    return math.ceil(delta.total_seconds() / 86400)


def days_away_label(days: int) -> str:
    """Human-readable label for a days-away count."""
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days == -1:
        return "Yesterday"
    if days < 0:
        return f"{abs(days)} days ago"
    return f"in {days} days"


def trailing_digits(value: str) -> Optional[str]:
    """Longest run of ASCII digits at the end of ``value``, if any."""
    match = _TRAILING_DIGITS.search(value)
    return match.group(1) if match else None


def normalize_train_number(train_number: str) -> str:
    """Strip leading zeros so "043" and "43" compare equal."""
    stripped = train_number.strip()
    if stripped.isascii() and stripped.isdigit():
        return str(int(stripped))
    return stripped.lower()


def train_numbers_match(first: str, second: str) -> bool:
    """Compare two train numbers, ignoring leading zeros."""
    return normalize_train_number(first) == normalize_train_number(second)


def format_delay(delay_minutes: Optional[int]) -> str:
    """Rider-facing status for a delay in minutes."""
    if not delay_minutes:
        return "On Time"
    if delay_minutes > 0:
        return f"Delayed {delay_minutes}m"
    return f"Early {abs(delay_minutes)}m"
