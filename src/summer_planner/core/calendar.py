"""
Season calendar: school dates in, Monday-Friday week slots out
"""
import logging
from datetime import date, timedelta
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..models import AccountProfile, Record, SeasonGap, WeekSlot
from ..utils.exceptions import InvalidDateRangeError
from ..utils.helpers import format_short_date, next_monday_after, parse_iso_date

logger = logging.getLogger(__name__)

PRE_SEASON_LABEL = "Before Camps Start"
POST_SEASON_LABEL = "Before School Starts"


class Season(Record):
    school_end: date
    school_start: date
    weeks: Tuple[WeekSlot, ...]
    pre_season_gap: Optional[SeasonGap] = None
    post_season_gap: Optional[SeasonGap] = None


def _coerce_bounds(school_end: Any, school_start: Any) -> Tuple[date, date]:
    end = parse_iso_date(school_end)
    start = parse_iso_date(school_start)

    if end is None or start is None:
        raise InvalidDateRangeError(
            "School dates must be ISO dates (YYYY-MM-DD)",
            school_end=school_end,
            school_start=school_start,
        )
    if end >= start:
        raise InvalidDateRangeError(
            f"School end {end} must be before school start {start}",
            school_end=end,
            school_start=start,
        )
    return end, start


def _make_slot(week_number: int, start: date, end: date) -> WeekSlot:
    return WeekSlot(
        week_number=week_number,
        start_date=start,
        end_date=end,
        label=f"Week {week_number}",
        display=f"{format_short_date(start)} - {format_short_date(end)}",
    )


def iter_season_weeks(school_end: Any, school_start: Any) -> Iterator[WeekSlot]:
    """
    Yield the season's week slots in order.

    The season starts the first Monday strictly after `school_end`. The last
    slot is cut short the day before `school_start` and dropped if nothing
    of it remains. Raises InvalidDateRangeError before yielding anything.
    """
    end, start = _coerce_bounds(school_end, school_start)
    return _generate_slots(end, start)


def _generate_slots(school_end: date, school_start: date) -> Iterator[WeekSlot]:
    week_start = next_monday_after(school_end)
    week_number = 1

    while week_start < school_start:
        week_end = week_start + timedelta(days=4)
        if week_end >= school_start:
            week_end = school_start - timedelta(days=1)

        if week_end >= week_start:
            yield _make_slot(week_number, week_start, week_end)
            week_number += 1

        week_start += timedelta(days=7)


def season_weeks(school_end: Any, school_start: Any) -> List[WeekSlot]:
    return list(iter_season_weeks(school_end, school_start))


def _gap(start: date, end: date, label: str) -> Optional[SeasonGap]:
    days = (end - start).days + 1
    if days <= 0:
        return None
    return SeasonGap(start_date=start, end_date=end, days=days, label=label)


def pre_season_gap(school_end: Any, school_start: Any, weeks: Optional[Sequence[WeekSlot]] = None) -> Optional[SeasonGap]:
    """Days between the last school day and the first slot"""
    end, start = _coerce_bounds(school_end, school_start)
    weeks = season_weeks(end, start) if weeks is None else weeks
    if not weeks:
        return None
    return _gap(end + timedelta(days=1), weeks[0].start_date - timedelta(days=1), PRE_SEASON_LABEL)


def post_season_gap(school_end: Any, school_start: Any, weeks: Optional[Sequence[WeekSlot]] = None) -> Optional[SeasonGap]:
    """Days between the last slot and the first school day"""
    end, start = _coerce_bounds(school_end, school_start)
    weeks = season_weeks(end, start) if weeks is None else weeks
    if not weeks:
        return None
    return _gap(weeks[-1].end_date + timedelta(days=1), start - timedelta(days=1), POST_SEASON_LABEL)


def build_season(school_end: Any, school_start: Any) -> Season:
    end, start = _coerce_bounds(school_end, school_start)
    weeks = season_weeks(end, start)

    logger.debug(f"Built season {end} -> {start} with {len(weeks)} weeks")

    return Season(
        school_end=end,
        school_start=start,
        weeks=tuple(weeks),
        pre_season_gap=pre_season_gap(end, start, weeks),
        post_season_gap=post_season_gap(end, start, weeks),
    )


def season_bounds_for_profile(profile: Optional[AccountProfile], settings: Optional[Settings] = None) -> Tuple[date, date]:
    """School dates from the profile, falling back to the configured defaults"""
    settings = settings or get_settings()
    school_end = settings.DEFAULT_SCHOOL_END
    school_start = settings.DEFAULT_SCHOOL_START

    if profile is not None and profile.school_year_end and profile.school_year_start:
        if profile.school_year_end < profile.school_year_start:
            return profile.school_year_end, profile.school_year_start
        logger.warning(f"Ignoring inverted school dates on profile {profile.id}")

    return school_end, school_start


def season_for_profile(profile: Optional[AccountProfile], settings: Optional[Settings] = None) -> Season:
    return build_season(*season_bounds_for_profile(profile, settings))


def week_numbers_for_range(weeks: Sequence[WeekSlot], start: Optional[date], end: Optional[date]) -> Tuple[int, ...]:
    """Week numbers whose span intersects `[start, end]`"""
    if start is None or end is None:
        return ()
    return tuple(week.week_number for week in weeks if week.intersects(start, end))


def week_for_date(weeks: Sequence[WeekSlot], day: date) -> Optional[WeekSlot]:
    for week in weeks:
        if week.start_date <= day <= week.end_date:
            return week
    return None


def week_by_number(weeks: Sequence[WeekSlot], week_number: int) -> Optional[WeekSlot]:
    for week in weeks:
        if week.week_number == week_number:
            return week
    return None
