"""Tests for the planner facade."""

from datetime import date

import pytest

from summer_planner.config import Settings
from summer_planner.core.planner import SummerPlanner, check_item_invariants
from summer_planner.core.calendar import season_weeks
from summer_planner.models import ScheduledItem, ScheduleStatus
from summer_planner.schemas import CREATE, validate
from summer_planner.store import EntityStore, InMemoryBackend
from summer_planner.utils.exceptions import InvalidInputError

OWNER = "user-1"


class TestItemInvariants:

    @pytest.fixture
    def weeks(self):
        return season_weeks("2026-06-05", "2026-08-19")

    def test_single_week_item_accepted(self, weeks):
        check_item_invariants(weeks, [], self._create_item("new", date(2026, 6, 8), date(2026, 6, 12)))

    def test_overlap_rejected(self, weeks):
        existing = self._create_item("old", date(2026, 6, 8), date(2026, 6, 12))

        with pytest.raises(InvalidInputError) as exc_info:
            check_item_invariants(weeks, [existing], self._create_item("new", date(2026, 6, 10), date(2026, 6, 11)))

        assert exc_info.value.error_code == "SCHEDULE_CONFLICT"
        assert exc_info.value.details["conflicting_item_ids"] == ["old"]

    def test_overlap_allowed_when_not_enforced(self, weeks):
        existing = self._create_item("old", date(2026, 6, 8), date(2026, 6, 12))

        check_item_invariants(
            weeks, [existing], self._create_item("new", date(2026, 6, 8), date(2026, 6, 12)), enforce_no_overlap=False
        )

    def test_cancelled_items_do_not_block(self, weeks):
        existing = self._create_item("old", date(2026, 6, 8), date(2026, 6, 12), status=ScheduleStatus.CANCELLED)

        check_item_invariants(weeks, [existing], self._create_item("new", date(2026, 6, 8), date(2026, 6, 12)))

    def test_spanning_weeks_needs_flag(self, weeks):
        with pytest.raises(InvalidInputError) as exc_info:
            check_item_invariants(weeks, [], self._create_item("new", date(2026, 6, 8), date(2026, 6, 19)))

        assert exc_info.value.field == "end_date"
        assert exc_info.value.details["week_numbers"] == [1, 2]

    def test_spanning_weeks_with_flag(self, weeks):
        item = self._create_item("new", date(2026, 6, 8), date(2026, 6, 19), multi_week=True)

        check_item_invariants(weeks, [], item)

    def test_out_of_season_item_accepted(self, weeks):
        check_item_invariants(weeks, [], self._create_item("new", date(2026, 9, 7), date(2026, 9, 18)))

    @pytest.mark.parametrize("status", [ScheduleStatus.PLANNED, ScheduleStatus.CANCELLED])
    def test_end_before_start_rejected(self, weeks, status):
        item = self._create_item("new", date(2026, 6, 10), date(2026, 6, 8), status=status)

        with pytest.raises(InvalidInputError) as exc_info:
            check_item_invariants(weeks, [], item)

        assert exc_info.value.field == "end_date"

    def _create_item(self, item_id, start, end, status=ScheduleStatus.PLANNED, multi_week=False):
        return ScheduledItem(
            id=item_id, owner_id=OWNER, child_id="c1", camp_id="camp-1",
            start_date=start, end_date=end, status=status, multi_week=multi_week,
        )


class TestSummerPlanner:

    @pytest.fixture
    def backend(self):
        return InMemoryBackend({
            "profiles": [{"id": OWNER, "full_name": "Sam", "summer_budget": 1000}],
            "camps": [
                {"id": "art", "name": "Art Camp", "category": "Art", "min_age": 5, "max_age": 12, "min_price": 350},
                {"id": "beach", "name": "Beach Camp", "category": "Beach", "min_age": 6, "max_age": 12},
                {"id": "sports", "name": "Sports Camp", "category": "Sports", "min_age": 8, "max_age": 14},
                {"id": "science", "name": "Science Lab", "category": "Science", "min_age": 9, "max_age": 14},
            ],
        })

    @pytest.fixture
    def store(self, backend):
        return EntityStore(backend)

    @pytest.fixture
    def planner(self, store):
        planner = SummerPlanner(store, OWNER, Settings())
        yield planner
        planner.close()

    @pytest.mark.asyncio
    async def test_snapshot_goes_stale_after_mutation(self, planner):
        await planner.snapshot()
        assert not planner.is_stale

        await planner.add_child({"name": "Emma", "age": 8})

        assert planner.is_stale
        snapshot = await planner.snapshot()
        assert [child.name for child in snapshot.children] == ["Emma"]
        assert not planner.is_stale

    @pytest.mark.asyncio
    async def test_snapshot_reference_is_swapped_not_mutated(self, planner):
        first = await planner.snapshot()

        await planner.add_child({"name": "Emma"})
        second = await planner.snapshot()

        assert first.children == ()
        assert second is not first

    @pytest.mark.asyncio
    async def test_schedule_and_derive(self, planner):
        child = await planner.add_child({"name": "Emma", "age": 8})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12", price=400))

        derived = await planner.derive(child.id, today=date(2026, 3, 1))

        assert derived.covered_weeks == (1,)
        assert derived.total_cost == 400
        assert derived.budget.remaining == 600

    @pytest.mark.asyncio
    async def test_overlapping_item_rejected(self, planner, backend):
        child = await planner.add_child({"name": "Emma"})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12"))

        with pytest.raises(InvalidInputError) as exc_info:
            await planner.schedule_item(self._create_payload(child.id, "2026-06-11", "2026-06-12", camp_id="beach"))

        assert exc_info.value.error_code == "SCHEDULE_CONFLICT"
        assert len(backend.rows("scheduled_camps")) == 1

    @pytest.mark.asyncio
    async def test_overlap_allowed_after_cancel(self, planner):
        child = await planner.add_child({"name": "Emma"})
        first = await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12"))

        cancelled = await planner.cancel_item(first.id)
        second = await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12", camp_id="beach"))

        assert cancelled.status == ScheduleStatus.CANCELLED
        assert second.camp_id == "beach"

    @pytest.mark.asyncio
    async def test_update_into_overlap_rejected(self, planner):
        child = await planner.add_child({"name": "Emma"})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12"))
        second = await planner.schedule_item(self._create_payload(child.id, "2026-06-15", "2026-06-19", camp_id="beach"))

        with pytest.raises(InvalidInputError):
            await planner.update_item(second.id, {"start_date": "2026-06-12", "end_date": "2026-06-12"})

    @pytest.mark.asyncio
    async def test_multi_week_item(self, planner):
        child = await planner.add_child({"name": "Emma"})

        with pytest.raises(InvalidInputError):
            await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-19"))

        item = await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-19", multi_week=True))
        derived = await planner.derive(child.id, today=date(2026, 3, 1))

        assert item.multi_week
        assert derived.covered_weeks == (1, 2)

    @pytest.mark.asyncio
    async def test_family_time_block(self, planner):
        child = await planner.add_child({"name": "Emma"})

        block = await planner.schedule_item({
            "child_id": child.id, "block_type": "family-time", "camp_name": "Grandma's",
            "start_date": "2026-07-06", "end_date": "2026-07-10",
        })

        assert block.camp_id is None
        assert block.kind.value == "block"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, planner):
        with pytest.raises(InvalidInputError):
            await planner.add_child({"name": ""})

    @pytest.mark.asyncio
    async def test_null_for_required_field_keeps_child(self, planner, backend):
        child = await planner.add_child({"name": "Emma"})

        with pytest.raises(InvalidInputError):
            await planner.update_child(child.id, {"name": None})

        assert backend.tables["children"][child.id]["name"] == "Emma"
        assert [c.name for c in (await planner.snapshot()).children] == ["Emma"]

    @pytest.mark.asyncio
    async def test_persisted_rows_validate_again(self, planner, backend):
        child = await planner.add_child({"name": "<i>Emma</i>", "age": 8})
        await planner.update_child(child.id, {"color": "#EC4899", "age": None})
        item = await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12", price=400))
        await planner.update_item(item.id, {"notes": "<b>Bring</b> lunch", "price": 425})
        await planner.cancel_item(item.id)

        for collection, table in (("children", "children"), ("scheduled_items", "scheduled_camps")):
            rows = backend.rows(table)
            assert rows
            for row in rows:
                outcome = validate(collection, CREATE, row)
                assert outcome.ok, outcome.messages
                assert all(outcome.value[key] == row[key] for key in outcome.value if key in row)

        snapshot = await planner.snapshot()
        assert len(snapshot.children) == 1
        assert len(snapshot.scheduled_items) == 1

    @pytest.mark.asyncio
    async def test_scheduling_adds_exactly_the_price(self, planner):
        child = await planner.add_child({"name": "Emma"})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12", price=400))
        before = await planner.derive(child.id, today=date(2026, 3, 1))

        await planner.schedule_item(self._create_payload(child.id, "2026-06-22", "2026-06-26", camp_id="beach", price=375))
        after = await planner.derive(child.id, today=date(2026, 3, 1))

        assert after.total_cost == before.total_cost + 375
        assert set(before.covered_weeks) <= set(after.covered_weeks)

    @pytest.mark.asyncio
    async def test_schedule_then_remove_restores_derived_view(self, planner):
        child = await planner.add_child({"name": "Emma"})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12", price=400))
        before = await planner.derive(child.id, today=date(2026, 3, 1))

        item = await planner.schedule_item(self._create_payload(child.id, "2026-07-06", "2026-07-10", camp_id="beach", price=300))
        await planner.remove_item(item.id)
        after = await planner.derive(child.id, today=date(2026, 3, 1))

        assert after.covered_weeks == before.covered_weeks
        assert after.gap_weeks == before.gap_weeks
        assert after.coverage_percent == before.coverage_percent
        assert after.total_cost == before.total_cost

    @pytest.mark.asyncio
    async def test_delete_child_removes_schedule(self, planner):
        child = await planner.add_child({"name": "Emma"})
        await planner.schedule_item(self._create_payload(child.id, "2026-06-08", "2026-06-12"))

        await planner.delete_child(child.id)
        snapshot = await planner.snapshot()

        assert snapshot.children == ()
        assert snapshot.scheduled_items == ()

    @pytest.mark.asyncio
    async def test_profile_update_drops_role(self, planner, backend):
        profile = await planner.update_profile({"role": "admin", "summer_budget": 2000})

        assert profile.summer_budget == 2000
        assert profile.role == "user"
        assert "role" not in backend.tables["profiles"][OWNER]

    @pytest.mark.asyncio
    async def test_interest_toggle(self, planner):
        child = await planner.add_child({"name": "Emma"})
        interest = await planner.set_interest({"child_id": child.id, "camp_id": "art", "week_number": 3})

        toggled = await planner.toggle_looking_for_friends(interest.id)

        assert toggled.looking_for_friends is True

    @pytest.mark.asyncio
    async def test_join_requires_code(self, planner):
        with pytest.raises(InvalidInputError):
            await planner.join_squad("   ")

    @pytest.mark.asyncio
    async def test_favorites(self, planner):
        favorite = await planner.add_favorite({"camp_id": "art", "notes": "<b>Great</b> reviews", "priority": 2})

        updated = await planner.update_favorite(favorite.id, {"priority": 5})
        await planner.remove_favorite(favorite.id)

        assert favorite.notes == "Great reviews"
        assert updated.priority == 5
        assert (await planner.snapshot()).favorites == ()

    @pytest.mark.asyncio
    async def test_sample_data_lifecycle(self, planner, backend):
        items = await planner.load_sample_data()

        assert len(items) == 6
        assert await planner.has_sample_data()

        result = await planner.clear_sample_data()

        assert result["deleted_children"] == 2
        assert result["deleted_camps"] == 6
        assert not await planner.has_sample_data()
        assert backend.rows("scheduled_camps") == []

    @pytest.mark.asyncio
    async def test_sample_schedule_weeks(self, planner):
        await planner.load_sample_data()
        snapshot = await planner.snapshot()
        children = {child.name.split()[0]: child.id for child in snapshot.children}

        emma = await planner.derive(children["Emma"], today=date(2026, 3, 1))
        jake = await planner.derive(children["Jake"], today=date(2026, 3, 1))

        assert emma.covered_weeks == (1, 3, 5)
        assert jake.covered_weeks == (1, 2, 4)

    @pytest.mark.asyncio
    async def test_commit_preview(self, planner, backend):
        child = await planner.add_child({"name": "Emma"})
        overlay = await planner.start_preview()
        overlay.insert("scheduled_items", self._create_payload(child.id, "2026-06-08", "2026-06-12"))
        overlay.insert("scheduled_items", self._create_payload(child.id, "2026-06-15", "2026-06-19", camp_id="beach"))

        result = await planner.commit_preview(overlay)

        assert result.ok
        assert len(backend.rows("scheduled_camps")) == 2

    @pytest.mark.asyncio
    async def test_commit_preview_with_overlap_writes_nothing(self, planner, backend):
        child = await planner.add_child({"name": "Emma"})
        overlay = await planner.start_preview()
        overlay.insert("scheduled_items", self._create_payload(child.id, "2026-06-08", "2026-06-12"))
        overlay.insert("scheduled_items", self._create_payload(child.id, "2026-06-10", "2026-06-12", camp_id="beach"))

        with pytest.raises(InvalidInputError):
            await planner.commit_preview(overlay)

        assert backend.rows("scheduled_camps") == []
        assert overlay.pending == 2

    @pytest.mark.asyncio
    async def test_commit_preview_with_inverted_dates_writes_nothing(self, planner, backend):
        child = await planner.add_child({"name": "Emma"})
        item = await planner.schedule_item(self._create_payload(child.id, "2026-06-10", "2026-06-12"))
        overlay = await planner.start_preview()
        overlay.update("scheduled_items", item.id, {"end_date": "2026-06-08"})

        with pytest.raises(InvalidInputError) as exc_info:
            await planner.commit_preview(overlay)

        assert exc_info.value.field == "end_date"
        assert backend.tables["scheduled_camps"][item.id]["end_date"] == "2026-06-12"
        assert overlay.pending == 1

    @pytest.mark.asyncio
    async def test_watch_inserts_marks_stale(self, planner, store):
        await planner.snapshot()
        planner.watch_inserts("children")

        await store.backend.insert("children", {"user_id": OWNER, "name": "From another device"})

        assert planner.is_stale

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, store):
        planner = SummerPlanner(store, OWNER, Settings())
        await planner.snapshot()

        planner.close()
        await store.insert("children", OWNER, {"name": "Emma"})

        assert not planner.is_stale

    def _create_payload(self, child_id, start, end, camp_id="art", price=None, multi_week=False):
        payload = {
            "child_id": child_id,
            "camp_id": camp_id,
            "start_date": start,
            "end_date": end,
            "multi_week": multi_week,
        }
        if price is not None:
            payload["price"] = price
        return payload
