"""
Utility helper functions for the summer planner

The free-text parsers in this module are total: they return ``None`` for
anything they cannot read instead of raising.
"""

import logging
import math
import re
import secrets
from datetime import date, datetime, timedelta
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(am|pm)?$")
_HOUR_RE = re.compile(r"^(\d{1,2})\s*(am|pm)$")
_BARE_HOUR_RE = re.compile(r"^\d{1,2}$")
_RANGE_RE = re.compile(r"^\s*(.+?)\s*(?:-|–|—|\bto\b)\s*(.+?)\s*$", re.IGNORECASE)
_EMBEDDED_RANGE_RE = re.compile(
    r"(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)\s*(?:-|–|—|\bto\b)\s*(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)",
    re.IGNORECASE,
)

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}
_MONTH_DAY_RE = re.compile(
    r"\b(" + "|".join(sorted(_MONTHS, key=len, reverse=True)) + r")\.?(?:\s+(\d{1,2})(?:st|nd|rd|th)?)?(?:,?\s+(\d{4}))?\b",
    re.IGNORECASE,
)


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse a `YYYY-MM-DD` string (or pass a date through)"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def _normalize_time_text(text: str) -> str:
    normalized = text.lower().strip()
    normalized = normalized.replace("a.m.", "am").replace("p.m.", "pm")
    if normalized == "noon":
        return "12:00pm"
    if normalized == "midnight":
        return "12:00am"
    return normalized


def _apply_period(hours: int, minutes: int, period: Optional[str]) -> Optional[int]:
    if minutes > 59:
        return None
    if period:
        if not 1 <= hours <= 12:
            return None
        if period == "pm" and hours < 12:
            hours += 12
        if period == "am" and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    return hours * 60 + minutes


def parse_time_to_minutes(time_str: Optional[str]) -> Optional[int]:
    """Parse "9am", "9:30 am", "09:00" or "17:30" to minutes since midnight"""
    if not time_str or not isinstance(time_str, str):
        return None

    normalized = _normalize_time_text(time_str)

    match = _CLOCK_RE.match(normalized)
    if match:
        return _apply_period(int(match.group(1)), int(match.group(2)), match.group(3))

    match = _HOUR_RE.match(normalized)
    if match:
        return _apply_period(int(match.group(1)), 0, match.group(2))

    return None


def format_minutes(minutes: Optional[int]) -> Optional[str]:
    """Format minutes since midnight like "9am" or "5:30pm" """
    if minutes is None:
        return None

    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    period = "pm" if hours >= 12 else "am"
    display_hours = hours - 12 if hours > 12 else 12 if hours == 0 else hours
    if mins == 0:
        return f"{display_hours}{period}"
    return f"{display_hours}:{mins:02d}{period}"


def _period_of(text: str) -> Optional[str]:
    normalized = _normalize_time_text(text)
    if normalized.endswith("am"):
        return "am"
    if normalized.endswith("pm"):
        return "pm"
    return None


def _parse_range_parts(start_text: str, end_text: str) -> Tuple[Optional[int], Optional[int]]:
    end = parse_time_to_minutes(end_text)
    start = parse_time_to_minutes(start_text)

    # "9-3pm": the start borrows the end's period, falling back to morning
    if start is None and end is not None and _BARE_HOUR_RE.match(start_text.strip()):
        period = _period_of(end_text)
        if period:
            start = parse_time_to_minutes(f"{start_text.strip()}{period}")
            if start is not None and start > end:
                start = parse_time_to_minutes(f"{start_text.strip()}am")

    return start, end


def parse_time_range(range_str: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """Parse an hours string like "9am-3pm" into (start, end) minutes"""
    if not range_str or not isinstance(range_str, str):
        return None, None

    match = _RANGE_RE.match(range_str)
    if not match:
        return None, None

    return _parse_range_parts(match.group(1), match.group(2))


def find_time_range(text: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """Find the first time range embedded in free text ("Extended care 7:30am-6pm")"""
    if not text or not isinstance(text, str):
        return None, None

    match = _EMBEDDED_RANGE_RE.search(text)
    if not match:
        return None, None

    return _parse_range_parts(match.group(1), match.group(2))


def parse_month_day(text: Optional[str], today: date) -> Optional[date]:
    """
    Parse the first month/day pair in free text such as "Opens March 15".

    An explicit four-digit year is used as given. Otherwise the current year
    is assumed, and a month earlier than today's month rolls to next year.
    A month without a day means the first of that month; a month followed by
    any other number is unreadable.
    """
    if not text or not isinstance(text, str):
        return None

    match = _MONTH_DAY_RE.search(text)
    if not match:
        return None

    day_text, year_text = match.group(2), match.group(3)
    if day_text is None and year_text is None and re.match(r"\s*\d", text[match.end():]):
        logger.debug(f"Ignoring ambiguous registration date in {text!r}")
        return None

    month = _MONTHS[match.group(1).lower()]
    day = int(day_text) if day_text else 1
    if year_text:
        year = int(year_text)
    else:
        year = today.year + (1 if month < today.month else 0)

    try:
        return date(year, month, day)
    except ValueError:
        logger.debug(f"Ignoring impossible registration date in {text!r}")
        return None


def intervals_overlap(start1: date, end1: date, start2: date, end2: date) -> bool:
    """Inclusive overlap of two closed date intervals"""
    return start1 <= end2 and start2 <= end1


def next_monday_after(date_obj: date) -> date:
    """First Monday strictly after the given date"""
    return date_obj + timedelta(days=7 - date_obj.weekday())


def safe_division(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default if denominator is zero"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ValueError):
        return default


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def coerce_price(value: Any) -> int:
    """Whole-dollar price; missing or unreadable prices count as zero"""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return round_half_up(float(value))
    except (TypeError, ValueError):
        return 0


def format_short_date(date_obj: date) -> str:
    """Format like "Jun 8" """
    return f"{date_obj.strftime('%b')} {date_obj.day}"


def generate_invite_code() -> str:
    """Six random bytes rendered as twelve hex characters"""
    return secrets.token_hex(6)
