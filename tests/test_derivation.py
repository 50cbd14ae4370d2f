"""Tests for the derivation engine."""

from datetime import date
from uuid import uuid4

import pytest

from summer_planner.config import Settings
from summer_planner.core.calendar import build_season
from summer_planner.core.derivation import (
    budget_status,
    calendar_events,
    conflicts_by_item_id,
    coverage,
    derive,
    family_total_cost,
    friend_interest_counts,
    registration_status,
    schedule_view,
    total_cost,
    work_hour_fit,
)
from summer_planner.models import (
    AccountProfile,
    BudgetLevel,
    Camp,
    Child,
    RegistrationKind,
    ScheduledItem,
    ScheduleStatus,
    Severity,
    Snapshot,
    SquadInterestRow,
)

OWNER = "user-1"


class TestCoverage:
    """Covered and gap weeks partition the season."""

    @pytest.fixture
    def season(self):
        return build_season("2026-06-05", "2026-08-19")

    def test_coverage_scenario(self, season):
        """Items on weeks 1, 2 and 5 of an 11 week season."""
        items = [
            self._create_week_item(season, 1),
            self._create_week_item(season, 2),
            self._create_week_item(season, 5),
        ]
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=tuple(items))

        report = coverage(snapshot, "c1")

        assert report.covered_weeks == (1, 2, 5)
        assert report.gap_weeks == (3, 4, 6, 7, 8, 9, 10, 11)
        assert report.coverage_percent == 27

    def test_cancelled_items_do_not_cover(self, season):
        items = [self._create_week_item(season, 1, status=ScheduleStatus.CANCELLED)]
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=tuple(items))

        report = coverage(snapshot, "c1")

        assert report.covered_weeks == ()
        assert len(report.gap_weeks) == 11
        assert report.coverage_percent == 0

    def test_blocks_count_as_coverage(self, season):
        week = season.weeks[2]
        block = ScheduledItem(
            id="block-1", owner_id=OWNER, child_id="c1", block_type="vacation",
            start_date=week.start_date, end_date=week.end_date,
        )
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=(block,))

        assert coverage(snapshot, "c1").covered_weeks == (3,)

    def test_multi_week_item_covers_each_week(self, season):
        item = ScheduledItem(
            id="i1", owner_id=OWNER, child_id="c1", camp_id="camp-1", multi_week=True,
            start_date=season.weeks[0].start_date, end_date=season.weeks[2].end_date,
        )
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=(item,))

        assert coverage(snapshot, "c1").covered_weeks == (1, 2, 3)

    def test_other_children_ignored(self, season):
        items = [self._create_week_item(season, 1, child_id="c2")]
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=tuple(items))

        assert coverage(snapshot, "c1").covered_weeks == ()

    def test_items_without_dates_skipped(self, season):
        item = ScheduledItem(id="i1", owner_id=OWNER, child_id="c1", camp_id="camp-1")
        snapshot = Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=(item,))

        assert coverage(snapshot, "c1").covered_weeks == ()

    @pytest.mark.parametrize("week_number", [1, 3, 5, 11])
    def test_adding_an_item_never_uncovers_a_week(self, season, week_number):
        items = (self._create_week_item(season, 1), self._create_week_item(season, 5))
        before = coverage(Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=items), "c1")

        added = items + (self._create_week_item(season, week_number),)
        after = coverage(Snapshot(owner_id=OWNER, weeks=season.weeks, scheduled_items=added), "c1")

        assert set(before.covered_weeks) <= set(after.covered_weeks)
        assert set(after.gap_weeks) <= set(before.gap_weeks)
        assert week_number in after.covered_weeks

    def test_empty_season(self):
        report = coverage(Snapshot(owner_id=OWNER), "c1")

        assert report.total_weeks == 0
        assert report.coverage_percent == 0

    def _create_week_item(self, season, week_number, child_id="c1", status=ScheduleStatus.PLANNED, price=None):
        week = season.weeks[week_number - 1]
        return ScheduledItem(
            id=str(uuid4()),
            owner_id=OWNER,
            child_id=child_id,
            camp_id="camp-1",
            start_date=week.start_date,
            end_date=week.end_date,
            status=status,
            price=price,
        )


class TestCost:

    def test_cancelled_items_excluded(self):
        items = [
            self._create_item("a", ScheduleStatus.PLANNED, 400),
            self._create_item("b", ScheduleStatus.CONFIRMED, 250),
            self._create_item("c", ScheduleStatus.CANCELLED, 500),
        ]

        assert total_cost(items) == 650

    def test_null_price_counts_as_zero(self):
        items = [self._create_item("a", ScheduleStatus.PLANNED, None), self._create_item("b", ScheduleStatus.PLANNED, 300)]

        assert total_cost(items) == 300

    def test_cost_for_one_child(self):
        items = [
            self._create_item("a", ScheduleStatus.PLANNED, 400, child_id="c1"),
            self._create_item("b", ScheduleStatus.PLANNED, 300, child_id="c2"),
        ]

        assert total_cost(items, "c1") == 400
        assert family_total_cost(items) == 700

    def test_items_without_dates_excluded(self):
        item = ScheduledItem(id="a", owner_id=OWNER, child_id="c1", camp_id="camp-1", price=900)

        assert total_cost([item]) == 0

    @pytest.mark.parametrize("status,price,increase", [
        (ScheduleStatus.PLANNED, 425, 425),
        (ScheduleStatus.CONFIRMED, 0, 0),
        (ScheduleStatus.PLANNED, None, 0),
        (ScheduleStatus.CANCELLED, 500, 0),
    ])
    def test_cost_is_additive(self, status, price, increase):
        items = [
            self._create_item("a", ScheduleStatus.PLANNED, 400),
            self._create_item("b", ScheduleStatus.REGISTERED, 250),
        ]

        assert total_cost(items + [self._create_item("new", status, price)]) == total_cost(items) + increase

    def _create_item(self, item_id, status, price, child_id="c1"):
        return ScheduledItem(
            id=item_id, owner_id=OWNER, child_id=child_id, camp_id="camp-1",
            start_date=date(2026, 6, 8), end_date=date(2026, 6, 12),
            status=status, price=price,
        )


class TestBudget:

    def test_no_budget(self):
        assert budget_status(500, None, 0.8).level == BudgetLevel.UNSET

    def test_under_budget(self):
        status = budget_status(500, 2000, 0.8)

        assert status.level == BudgetLevel.OK
        assert status.remaining == 1500
        assert status.fraction_used == 0.25

    def test_warning_threshold(self):
        assert budget_status(1600, 2000, 0.8).level == BudgetLevel.WARNING

    def test_exceeded(self):
        status = budget_status(2100, 2000, 0.8)

        assert status.level == BudgetLevel.EXCEEDED
        assert status.remaining == -100

    def test_zero_budget(self):
        assert budget_status(0, 0, 0.8).level == BudgetLevel.OK
        assert budget_status(1, 0, 0.8).level == BudgetLevel.EXCEEDED


class TestConflicts:

    def test_overlapping_items_conflict_both_ways(self):
        a = self._create_item("A", date(2026, 6, 8), date(2026, 6, 12))
        b = self._create_item("B", date(2026, 6, 10), date(2026, 6, 16))

        conflicts = conflicts_by_item_id([a, b])

        assert conflicts == {"A": ["B"], "B": ["A"]}

    def test_shared_single_day_conflicts(self):
        a = self._create_item("A", date(2026, 6, 8), date(2026, 6, 12))
        b = self._create_item("B", date(2026, 6, 12), date(2026, 6, 12))

        assert conflicts_by_item_id([a, b]) == {"A": ["B"], "B": ["A"]}

    def test_adjacent_items_do_not_conflict(self):
        a = self._create_item("A", date(2026, 6, 8), date(2026, 6, 12))
        b = self._create_item("B", date(2026, 6, 15), date(2026, 6, 19))

        assert conflicts_by_item_id([a, b]) == {}

    def test_different_children_do_not_conflict(self):
        a = self._create_item("A", date(2026, 6, 8), date(2026, 6, 12), child_id="c1")
        b = self._create_item("B", date(2026, 6, 8), date(2026, 6, 12), child_id="c2")

        assert conflicts_by_item_id([a, b]) == {}

    def test_cancelled_items_do_not_conflict(self):
        a = self._create_item("A", date(2026, 6, 8), date(2026, 6, 12))
        b = self._create_item("B", date(2026, 6, 8), date(2026, 6, 12), status=ScheduleStatus.CANCELLED)

        assert conflicts_by_item_id([a, b]) == {}

    def test_relation_is_symmetric_and_irreflexive(self):
        items = [
            self._create_item("A", date(2026, 6, 8), date(2026, 6, 26)),
            self._create_item("B", date(2026, 6, 10), date(2026, 6, 11)),
            self._create_item("C", date(2026, 6, 22), date(2026, 6, 30)),
            self._create_item("D", date(2026, 7, 6), date(2026, 7, 10)),
        ]

        conflicts = conflicts_by_item_id(items)

        assert conflicts["A"] == ["B", "C"]
        assert "D" not in conflicts
        for item_id, others in conflicts.items():
            assert item_id not in others
            for other in others:
                assert item_id in conflicts[other]

    def _create_item(self, item_id, start, end, child_id="c1", status=ScheduleStatus.PLANNED):
        return ScheduledItem(
            id=item_id, owner_id=OWNER, child_id=child_id, camp_id="camp-1",
            start_date=start, end_date=end, status=status,
        )


class TestRegistrationStatus:

    def test_upcoming_within_critical_window(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="March 15")

        status = registration_status(camp, date(2026, 3, 10))

        assert status.kind == RegistrationKind.UPCOMING
        assert status.days_until == 5
        assert status.severity == Severity.CRITICAL
        assert status.label == "Opens in 5d"

    def test_open_after_date_passed(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="March 15")

        status = registration_status(camp, date(2026, 3, 20))

        assert status.kind == RegistrationKind.OPEN
        assert status.label == "Register Now"

    def test_upcoming_far_away_is_info(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="April 20")

        status = registration_status(camp, date(2026, 3, 10))

        assert status.kind == RegistrationKind.UPCOMING
        assert status.days_until == 41
        assert status.severity == Severity.INFO
        assert status.label == "Opens April 20"

    def test_earlier_month_rolls_to_next_year(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="January 10")

        status = registration_status(camp, date(2026, 10, 19))

        assert status.kind == RegistrationKind.UPCOMING
        assert status.opens_on == date(2027, 1, 10)

    @pytest.mark.parametrize("reg_date,opens_on", [
        ("Opens March 2027", date(2027, 3, 1)),
        ("March 15, 2027", date(2027, 3, 15)),
        ("Opens March 15 at 9am", date(2027, 3, 15)),
    ])
    def test_explicit_year_is_used(self, reg_date, opens_on):
        camp = Camp(id="camp-1", name="Art Camp", reg_date=reg_date)

        assert registration_status(camp, date(2026, 10, 19)).opens_on == opens_on

    def test_month_with_stray_number_is_unknown(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="March 202")

        assert registration_status(camp, date(2026, 10, 19)).kind == RegistrationKind.UNKNOWN

    def test_opens_tomorrow(self):
        camp = Camp(id="camp-1", name="Art Camp", registration_opens=date(2026, 3, 11))

        status = registration_status(camp, date(2026, 3, 10))

        assert status.label == "Opens tomorrow"
        assert status.days_until == 1

    def test_future_structured_date_wins_over_text(self):
        camp = Camp(id="camp-1", name="Art Camp", registration_opens=date(2026, 3, 20), reg_status="Open now")

        assert registration_status(camp, date(2026, 3, 10)).kind == RegistrationKind.UPCOMING

    @pytest.mark.parametrize("reg_status,kind", [
        ("Closed", RegistrationKind.CLOSED),
        ("Full", RegistrationKind.CLOSED),
        ("Waitlist only", RegistrationKind.WAITLIST),
    ])
    def test_status_text_decides_after_opening(self, reg_status, kind):
        camp = Camp(id="camp-1", name="Art Camp", registration_opens=date(2026, 1, 10), reg_status=reg_status)

        assert registration_status(camp, date(2026, 3, 1)).kind == kind

    def test_past_structured_date_is_open(self):
        camp = Camp(id="camp-1", name="Art Camp", registration_opens=date(2026, 1, 10), reg_date="March 30")

        status = registration_status(camp, date(2026, 3, 1))

        assert status.kind == RegistrationKind.OPEN
        assert status.label == "Register Now"
        assert status.opens_on == date(2026, 1, 10)

    @pytest.mark.parametrize("reg_status,kind", [
        ("Open now", RegistrationKind.OPEN),
        ("Rolling admission", RegistrationKind.OPEN),
        ("Waitlist only", RegistrationKind.WAITLIST),
        ("Open - waitlist", RegistrationKind.WAITLIST),
        ("Sold out", RegistrationKind.CLOSED),
        ("FULL", RegistrationKind.CLOSED),
    ])
    def test_status_text(self, reg_status, kind):
        camp = Camp(id="camp-1", name="Art Camp", reg_status=reg_status)

        assert registration_status(camp, date(2026, 3, 10)).kind == kind

    def test_unreadable_is_unknown(self):
        camp = Camp(id="camp-1", name="Art Camp", reg_date="TBD, check back soon")

        status = registration_status(camp, date(2026, 3, 10))

        assert status.kind == RegistrationKind.UNKNOWN
        assert status.label == "Check Website"
        assert status.severity is None

    def test_nothing_known(self):
        camp = Camp(id="camp-1", name="Art Camp")

        assert registration_status(camp, date(2026, 3, 10)).kind == RegistrationKind.UNKNOWN


class TestWorkHourFit:

    def test_extended_care_bridges_work_day(self):
        camp = Camp(id="camp-1", name="Art Camp", hours="9am-3pm", extended_care="7:30am-6pm")

        fit = work_hour_fit(camp, 8 * 60, 17 * 60 + 30)

        assert fit.covers is True
        assert fit.needs_extended_care is True
        assert fit.effective_drop_off == "7:30am"
        assert fit.effective_pick_up == "6pm"

    def test_regular_hours_cover(self):
        camp = Camp(id="camp-1", name="Art Camp", drop_off="7:30am", pick_up="6pm")

        fit = work_hour_fit(camp, 8 * 60, 17 * 60 + 30)

        assert fit.covers is True
        assert fit.needs_extended_care is False

    def test_no_extended_care(self):
        camp = Camp(id="camp-1", name="Art Camp", hours="9am-3pm")

        fit = work_hour_fit(camp, 8 * 60, 17 * 60 + 30)

        assert fit.covers is False
        assert fit.needs_extended_care is False

    def test_extended_care_not_enough(self):
        camp = Camp(id="camp-1", name="Art Camp", hours="9am-3pm", extended_care="3pm-4:30pm")

        fit = work_hour_fit(camp, 8 * 60, 17 * 60 + 30)

        assert fit.covers is False

    def test_unreadable_hours(self):
        camp = Camp(id="camp-1", name="Art Camp", hours="varies")

        fit = work_hour_fit(camp, 8 * 60, 17 * 60)

        assert fit.covers is None
        assert fit.work_start == "8am"
        assert fit.work_end == "5pm"

    def test_borrowed_period(self):
        camp = Camp(id="camp-1", name="Art Camp", hours="8-6pm")

        assert work_hour_fit(camp, 8 * 60, 17 * 60).covers is True


class TestFriendInterests:

    def test_counts_exclude_caller_and_duplicates(self):
        rows = [
            self._create_row("i1", "camp-1", 1, owner_id="friend-1"),
            self._create_row("i1", "camp-1", 1, owner_id="friend-1", squad_id="s2"),
            self._create_row("i2", "camp-1", 1, owner_id=None),
            self._create_row("i3", "camp-2", 3, owner_id="friend-2"),
            self._create_row("i4", "camp-2", 3, owner_id=OWNER),
        ]

        counts = friend_interest_counts(rows, OWNER)

        assert [(c.camp_id, c.week_number, c.count) for c in counts] == [("camp-1", 1, 2), ("camp-2", 3, 1)]
        assert counts[0].flat_key == "camp-1-1"

    def _create_row(self, interest_id, camp_id, week_number, owner_id=None, squad_id="s1"):
        return SquadInterestRow(
            interest_id=interest_id,
            squad_id=squad_id,
            camp_id=camp_id,
            week_number=week_number,
            reveal_identity=owner_id is not None,
            owner_id=owner_id,
            member_name="Friend" if owner_id else "A friend",
        )


class TestDerive:
    """The combined derivation over a full snapshot."""

    @pytest.fixture
    def snapshot(self):
        season = build_season("2026-06-05", "2026-08-19")
        week1, week2 = season.weeks[0], season.weeks[1]
        items = (
            ScheduledItem(
                id="i1", owner_id=OWNER, child_id="c1", camp_id="camp-1",
                start_date=week1.start_date, end_date=week1.end_date, price=400,
            ),
            ScheduledItem(
                id="i2", owner_id=OWNER, child_id="c1", camp_id="gone",
                start_date=week2.start_date, end_date=week2.end_date, price=300, camp_name="Old Camp",
            ),
            ScheduledItem(
                id="i3", owner_id=OWNER, child_id="c2", camp_id="camp-1",
                start_date=week1.start_date, end_date=week1.end_date, price=500,
            ),
        )
        return Snapshot(
            owner_id=OWNER,
            weeks=season.weeks,
            pre_season_gap=season.pre_season_gap,
            children=(
                Child(id="c1", owner_id=OWNER, name="Emma"),
                Child(id="c2", owner_id=OWNER, name="Jake"),
            ),
            scheduled_items=items,
            camps=(Camp(id="camp-1", name="Art Camp", hours="9am-3pm", reg_status="open", address="1 Main St"),),
            profile=AccountProfile(id=OWNER, summer_budget=1500),
        )

    def test_derive_for_child(self, snapshot):
        derived = derive(snapshot, "c1", today=date(2026, 3, 1), settings=Settings())

        assert derived.covered_weeks == (1, 2)
        assert derived.coverage_percent == 18
        assert derived.total_cost == 700
        assert derived.family_total_cost == 1200
        assert derived.conflicts_by_item_id == {}
        assert derived.registration_by_camp_id["camp-1"].kind == RegistrationKind.OPEN
        assert derived.work_hour_by_camp_id["camp-1"].covers is False
        assert derived.pre_season_gap.days == 2
        assert derived.is_preview is False

    def test_budget_uses_family_total(self, snapshot):
        derived = derive(snapshot, "c1", today=date(2026, 3, 1), settings=Settings())

        assert derived.budget.total == 1200
        assert derived.budget.level == BudgetLevel.WARNING

    def test_missing_camp_gets_placeholder(self, snapshot):
        entries = schedule_view(snapshot, "c1")

        assert [entry.item.id for entry in entries] == ["i1", "i2"]
        assert entries[1].camp.name == "Unknown Camp"
        assert entries[1].week_numbers == (2,)
        assert entries[1].in_season

    def test_calendar_events_are_all_day_with_exclusive_end(self, snapshot):
        events = calendar_events(snapshot, "c1")

        assert events[0].title == "Art Camp"
        assert events[0].location == "1 Main St"
        assert events[0].end_date == date(2026, 6, 13)
        assert events[0].child_name == "Emma"
        assert events[1].title == "Old Camp"

    def test_derive_does_not_mutate_snapshot(self, snapshot):
        before = snapshot.model_dump()

        derive(snapshot, "c1", today=date(2026, 3, 1), settings=Settings())

        assert snapshot.model_dump() == before
