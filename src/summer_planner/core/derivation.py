"""
Derivation engine

Pure functions over a Snapshot. None of them mutate their input or raise on
odd data: items without dates are skipped, missing camps become a
placeholder and unreadable free text yields an "unknown" answer.
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..models import (
    UNKNOWN_CAMP_NAME,
    AccountProfile,
    BudgetLevel,
    BudgetStatus,
    CalendarEvent,
    Camp,
    CoverageReport,
    DerivedSnapshot,
    FriendInterestCount,
    ItemKind,
    RegistrationKind,
    RegistrationStatus,
    ScheduledItem,
    ScheduleEntry,
    Severity,
    Snapshot,
    SquadInterestRow,
    WeekSlot,
    WorkHourFit,
)
from ..utils.helpers import (
    coerce_price,
    find_time_range,
    format_minutes,
    intervals_overlap,
    parse_month_day,
    parse_time_range,
    parse_time_to_minutes,
    round_half_up,
    safe_division,
)
from .calendar import week_numbers_for_range

logger = logging.getLogger(__name__)

_OPEN_MARKERS = ("open", "now", "rolling")
_WAITLIST_MARKERS = ("waitlist", "wait list", "wait-list")
_CLOSED_MARKERS = ("closed", "full", "sold out")


def item_order_key(item: ScheduledItem) -> Tuple[date, str]:
    """Output order for scheduled items: start date, then id"""
    return (item.start_date or date.max, item.id)


def _dated_active_items(items: Iterable[ScheduledItem], child_id: Optional[str] = None) -> List[ScheduledItem]:
    return [
        item for item in items
        if item.is_active and item.has_dates and (child_id is None or item.child_id == child_id)
    ]


# Coverage and gaps
def covered_week_numbers(weeks: Sequence[WeekSlot], items: Iterable[ScheduledItem], child_id: str) -> Tuple[int, ...]:
    active = _dated_active_items(items, child_id)
    covered = set()
    for item in active:
        covered.update(week_numbers_for_range(weeks, item.start_date, item.end_date))
    return tuple(week.week_number for week in weeks if week.week_number in covered)


def coverage(snapshot: Snapshot, child_id: str) -> CoverageReport:
    """Covered and gap weeks for a child; they partition the season"""
    weeks = snapshot.weeks
    covered = covered_week_numbers(weeks, snapshot.scheduled_items, child_id)
    covered_set = set(covered)
    gaps = tuple(week.week_number for week in weeks if week.week_number not in covered_set)

    percent = round_half_up(safe_division(len(covered) * 100, len(weeks)))

    return CoverageReport(
        child_id=child_id,
        total_weeks=len(weeks),
        covered_weeks=covered,
        gap_weeks=gaps,
        coverage_percent=percent,
    )


# Cost
def total_cost(items: Iterable[ScheduledItem], child_id: Optional[str] = None) -> int:
    """Integer dollars over non-cancelled items; null prices count as zero"""
    return sum(coerce_price(item.price) for item in _dated_active_items(items, child_id))


def family_total_cost(items: Sequence[ScheduledItem]) -> int:
    child_ids = {item.child_id for item in items}
    return sum(total_cost(items, child_id) for child_id in child_ids)


def budget_status(total: int, budget: Optional[int], warn_fraction: float) -> BudgetStatus:
    if budget is None:
        return BudgetStatus(budget=None, total=total, level=BudgetLevel.UNSET)

    remaining = budget - total
    if budget == 0:
        level = BudgetLevel.EXCEEDED if total > 0 else BudgetLevel.OK
        return BudgetStatus(budget=budget, total=total, remaining=remaining, level=level)

    fraction = total / budget
    if total > budget:
        level = BudgetLevel.EXCEEDED
    elif fraction >= warn_fraction:
        level = BudgetLevel.WARNING
    else:
        level = BudgetLevel.OK

    return BudgetStatus(
        budget=budget,
        total=total,
        remaining=remaining,
        fraction_used=round(fraction, 4),
        level=level,
    )


# Conflicts
def conflicts_by_item_id(
    items: Iterable[ScheduledItem],
    child_id: Optional[str] = None,
    exclude_id: Optional[str] = None,
) -> Dict[str, List[str]]:
    """
    Map each conflicting item id to the ids it overlaps.

    Two non-cancelled items of the same child conflict when their date
    ranges share at least one day. The relation is symmetric and never
    reflexive; items without conflicts are absent from the result.
    """
    by_child: Dict[str, List[ScheduledItem]] = defaultdict(list)
    for item in _dated_active_items(items, child_id):
        if item.id != exclude_id:
            by_child[item.child_id].append(item)

    found: Dict[str, List[ScheduledItem]] = defaultdict(list)
    for child_items in by_child.values():
        child_items.sort(key=item_order_key)
        open_items: List[ScheduledItem] = []
        for item in child_items:
            open_items = [other for other in open_items if other.end_date >= item.start_date]
            for other in open_items:
                found[item.id].append(other)
                found[other.id].append(item)
            open_items.append(item)

    return {
        item_id: [other.id for other in sorted(others, key=item_order_key)]
        for item_id, others in sorted(found.items())
    }


def find_conflicts_for_range(
    items: Iterable[ScheduledItem],
    child_id: str,
    start_date: date,
    end_date: date,
    exclude_id: Optional[str] = None,
) -> List[ScheduledItem]:
    """Items of a child overlapping `[start_date, end_date]`"""
    matches = [
        item for item in _dated_active_items(items, child_id)
        if item.id != exclude_id and intervals_overlap(item.start_date, item.end_date, start_date, end_date)
    ]
    return sorted(matches, key=item_order_key)


# Registration status
def _upcoming(days: int, opens_on: date, label: str, critical_days: int) -> RegistrationStatus:
    return RegistrationStatus(
        kind=RegistrationKind.UPCOMING,
        days_until=days,
        label=label,
        severity=Severity.CRITICAL if days <= critical_days else Severity.INFO,
        opens_on=opens_on,
    )


def _opens_label(days: int) -> str:
    return "Opens tomorrow" if days == 1 else f"Opens in {days}d"


def _open_now(opens_on: Optional[date] = None) -> RegistrationStatus:
    return RegistrationStatus(kind=RegistrationKind.OPEN, label="Register Now", severity=Severity.INFO, opens_on=opens_on)


def registration_status(camp: Camp, today: date, critical_days: int = 7) -> RegistrationStatus:
    """
    Registration urgency for a camp.

    A future `registration_opens` date wins. Otherwise the free-text
    `reg_status` decides, then a past `registration_opens` date means open,
    then the first month/day found in `reg_date`.
    """
    if camp.registration_opens is not None:
        days = (camp.registration_opens - today).days
        if days > 0:
            return _upcoming(days, camp.registration_opens, _opens_label(days), critical_days)

    status_text = (camp.reg_status or "").lower()
    if status_text:
        if any(marker in status_text for marker in _WAITLIST_MARKERS):
            return RegistrationStatus(kind=RegistrationKind.WAITLIST, label="Waitlist Only", severity=Severity.INFO)
        if any(marker in status_text for marker in _CLOSED_MARKERS):
            return RegistrationStatus(kind=RegistrationKind.CLOSED, label="Closed", severity=Severity.INFO)
        if any(marker in status_text for marker in _OPEN_MARKERS):
            return _open_now(camp.registration_opens)

    if camp.registration_opens is not None:
        return _open_now(camp.registration_opens)

    opens_on = parse_month_day(camp.reg_date, today)
    if opens_on is not None:
        days = (opens_on - today).days
        if days > 0:
            label = _opens_label(days) if days <= critical_days else f"Opens {camp.reg_date.strip()}"
            return _upcoming(days, opens_on, label, critical_days)
        return _open_now(opens_on)

    return RegistrationStatus(kind=RegistrationKind.UNKNOWN, label="Check Website")


# Work-hour fit
def work_window(profile: Optional[AccountProfile], settings: Settings) -> Tuple[int, int]:
    """Profile work window in minutes, each end falling back to the defaults"""
    default_start, default_end = settings.work_window_minutes
    if profile is None:
        return default_start, default_end

    start = parse_time_to_minutes(profile.work_hours_start)
    end = parse_time_to_minutes(profile.work_hours_end)
    return (
        default_start if start is None else start,
        default_end if end is None else end,
    )


def camp_window(camp: Camp) -> Tuple[Optional[int], Optional[int]]:
    """Drop-off and pick-up minutes, read from the `hours` string when missing"""
    drop_off = parse_time_to_minutes(camp.drop_off)
    pick_up = parse_time_to_minutes(camp.pick_up)

    if drop_off is None or pick_up is None:
        hours_start, hours_end = parse_time_range(camp.hours)
        drop_off = hours_start if drop_off is None else drop_off
        pick_up = hours_end if pick_up is None else pick_up

    return drop_off, pick_up


def work_hour_fit(camp: Camp, work_start: int, work_end: int) -> WorkHourFit:
    """Whether camp hours, possibly stretched by extended care, envelop the work day"""
    drop_off, pick_up = camp_window(camp)
    work_start_text = format_minutes(work_start)
    work_end_text = format_minutes(work_end)

    if drop_off is None or pick_up is None:
        return WorkHourFit(covers=None, work_start=work_start_text, work_end=work_end_text)

    if drop_off <= work_start and pick_up >= work_end:
        return WorkHourFit(
            covers=True,
            needs_extended_care=False,
            effective_drop_off=format_minutes(drop_off),
            effective_pick_up=format_minutes(pick_up),
            work_start=work_start_text,
            work_end=work_end_text,
        )

    ext_start, ext_end = find_time_range(camp.extended_care)
    if ext_start is None and ext_end is None:
        return WorkHourFit(
            covers=False,
            effective_drop_off=format_minutes(drop_off),
            effective_pick_up=format_minutes(pick_up),
            work_start=work_start_text,
            work_end=work_end_text,
        )

    ext_drop_off = drop_off if ext_start is None else min(ext_start, drop_off)
    ext_pick_up = pick_up if ext_end is None else max(ext_end, pick_up)
    covered = ext_drop_off <= work_start and ext_pick_up >= work_end

    return WorkHourFit(
        covers=covered,
        needs_extended_care=covered,
        effective_drop_off=format_minutes(ext_drop_off),
        effective_pick_up=format_minutes(ext_pick_up),
        work_start=work_start_text,
        work_end=work_end_text,
    )


# Friend interests
def friend_interest_counts(rows: Iterable[SquadInterestRow], caller_id: Optional[str] = None) -> Tuple[FriendInterestCount, ...]:
    """Peer interest counts per (camp, week), each interest counted once"""
    seen = set()
    counts: Dict[Tuple[str, int], int] = defaultdict(int)

    for row in rows:
        if row.interest_id in seen:
            continue
        seen.add(row.interest_id)
        if caller_id is not None and row.owner_id == caller_id:
            continue
        counts[(row.camp_id, row.week_number)] += 1

    return tuple(
        FriendInterestCount(camp_id=camp_id, week_number=week_number, count=count)
        for (camp_id, week_number), count in sorted(counts.items())
    )


def friend_interest_count_map(counts: Iterable[FriendInterestCount]) -> Dict[str, int]:
    """Flat `"{camp_id}-{week_number}"` keyed counts"""
    return {count.flat_key: count.count for count in counts}


# Schedule view and calendar events
def resolve_camp(item: ScheduledItem, camps: Dict[str, Camp]) -> Optional[Camp]:
    """The item's camp, a placeholder if it vanished, None for blocks"""
    if item.kind == ItemKind.BLOCK:
        return None
    return camps.get(item.camp_id) or Camp.placeholder(item.camp_id)


def item_title(item: ScheduledItem, camp: Optional[Camp]) -> str:
    if item.kind == ItemKind.BLOCK:
        return item.camp_name or item.block_type.value.replace("-", " ").title()
    if camp is not None and camp.name != UNKNOWN_CAMP_NAME:
        return camp.name
    return item.camp_name or UNKNOWN_CAMP_NAME


def schedule_view(snapshot: Snapshot, child_id: Optional[str] = None) -> Tuple[ScheduleEntry, ...]:
    camps = snapshot.camp_index()
    entries = []

    for item in sorted(snapshot.scheduled_items, key=item_order_key):
        if child_id is not None and item.child_id != child_id:
            continue
        if not item.has_dates:
            continue
        week_numbers = week_numbers_for_range(snapshot.weeks, item.start_date, item.end_date)
        entries.append(ScheduleEntry(
            item=item,
            camp=resolve_camp(item, camps),
            week_numbers=week_numbers,
            in_season=bool(week_numbers),
        ))

    return tuple(entries)


def calendar_events(snapshot: Snapshot, child_id: Optional[str] = None) -> Tuple[CalendarEvent, ...]:
    camps = snapshot.camp_index()
    children = {child.id: child for child in snapshot.children}
    events = []

    for item in sorted(_dated_active_items(snapshot.scheduled_items, child_id), key=item_order_key):
        camp = resolve_camp(item, camps)
        child = children.get(item.child_id)
        events.append(CalendarEvent.from_item(
            item,
            title=item_title(item, camp),
            child_name=child.name if child else None,
            location=camp.address if camp else None,
        ))

    return tuple(events)


# Full derivation
def derive(
    snapshot: Snapshot,
    child_id: str,
    today: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> DerivedSnapshot:
    """Compute every derived view for one child in a single call"""
    settings = settings or get_settings()
    today = today or date.today()

    report = coverage(snapshot, child_id)
    child_total = total_cost(snapshot.scheduled_items, child_id)
    family_total = family_total_cost(snapshot.scheduled_items)
    budget = snapshot.profile.summer_budget if snapshot.profile else None

    work_start, work_end = work_window(snapshot.profile, settings)
    counts = friend_interest_counts(snapshot.peer_interests, snapshot.owner_id)

    return DerivedSnapshot(
        child_id=child_id,
        weeks=snapshot.weeks,
        covered_weeks=report.covered_weeks,
        gap_weeks=report.gap_weeks,
        coverage_percent=report.coverage_percent,
        total_cost=child_total,
        family_total_cost=family_total,
        conflicts_by_item_id=conflicts_by_item_id(snapshot.scheduled_items, child_id),
        registration_by_camp_id={
            camp.id: registration_status(camp, today, settings.REGISTRATION_CRITICAL_DAYS)
            for camp in snapshot.camps
        },
        work_hour_by_camp_id={
            camp.id: work_hour_fit(camp, work_start, work_end)
            for camp in snapshot.camps
        },
        friend_interest_counts=counts,
        friend_interest_count_map=friend_interest_count_map(counts),
        pre_season_gap=snapshot.pre_season_gap,
        post_season_gap=snapshot.post_season_gap,
        budget=budget_status(family_total, budget, settings.SEASON_BUDGET_WARN_FRACTION),
        schedule=schedule_view(snapshot, child_id),
        is_preview=snapshot.is_preview,
    )
