"""
Service facade tying validation, the store, the invalidation bus and the
derivation engine together for one account
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings, get_settings
from ..models import (
    AccountProfile,
    CampInterest,
    Child,
    DerivedSnapshot,
    Favorite,
    ScheduledItem,
    ScheduleStatus,
    Snapshot,
    Squad,
    SquadInterestRow,
    SquadMember,
    Topic,
    WeekSlot,
)
from ..schemas import CREATE, UPDATE, validate
from ..store.adapter import EntityStore
from ..store.backend import Unsubscribe
from ..utils.exceptions import InvalidInputError
from .calendar import week_numbers_for_range
from .derivation import derive, find_conflicts_for_range
from .preview import CommitResult, OpKind, PreviewOverlay
from .sample_data import generate_sample_children, generate_sample_schedule

logger = logging.getLogger(__name__)


def check_item_invariants(
    weeks: Iterable[WeekSlot],
    items: Iterable[ScheduledItem],
    candidate: ScheduledItem,
    enforce_no_overlap: bool = True,
):
    """
    Reject an item that would break the schedule invariants.

    A dated item may never end before it starts. An active item may not
    overlap another active item of the same child, and an item touching two
    or more season weeks must be flagged `multi_week`. Items entirely outside
    the season are accepted.
    """
    if candidate.has_dates and candidate.end_date < candidate.start_date:
        raise InvalidInputError(
            "end_date must not be before start_date",
            field="end_date",
            details={"item_id": candidate.id},
        )

    if not candidate.is_active or not candidate.has_dates:
        return

    if enforce_no_overlap:
        clashes = find_conflicts_for_range(
            items, candidate.child_id, candidate.start_date, candidate.end_date, exclude_id=candidate.id
        )
        if clashes:
            ids = [item.id for item in clashes]
            raise InvalidInputError(
                f"Overlaps {len(ids)} existing item(s) for this child",
                field="start_date",
                error_code="SCHEDULE_CONFLICT",
                details={"conflicting_item_ids": ids},
            )

    touched = week_numbers_for_range(list(weeks), candidate.start_date, candidate.end_date)
    if len(touched) > 1 and not candidate.multi_week:
        raise InvalidInputError(
            f"Item spans weeks {', '.join(str(n) for n in touched)}; mark it multi_week to allow that",
            field="end_date",
            details={"week_numbers": list(touched)},
        )


class SummerPlanner:
    """
    Mutations and derived views for one account.

    The planner keeps a reference to the latest snapshot. Every successful
    write publishes on the bus, which marks the snapshot stale; the next
    read re-fetches it as a whole and swaps the reference.
    """

    def __init__(self, store: EntityStore, owner_id: str, settings: Optional[Settings] = None):
        self.store = store
        self.owner_id = owner_id
        self.settings = settings or get_settings()
        self._snapshot: Optional[Snapshot] = None
        self._stale = True
        self._subscriptions = [store.bus.subscribe(topic, self._mark_stale) for topic in Topic]
        self._watchers: List[Unsubscribe] = []

    def _mark_stale(self):
        self._stale = True

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def current(self) -> Optional[Snapshot]:
        """Last loaded snapshot, without any I/O"""
        return self._snapshot

    async def refresh(self) -> Snapshot:
        snapshot = await self.store.load_snapshot(self.owner_id, self.settings)
        self._snapshot = snapshot
        self._stale = False
        return snapshot

    async def snapshot(self) -> Snapshot:
        if self._snapshot is None or self._stale:
            return await self.refresh()
        return self._snapshot

    async def derive(self, child_id: str, today: Optional[date] = None) -> DerivedSnapshot:
        return derive(await self.snapshot(), child_id, today, self.settings)

    # Children
    async def add_child(self, payload: Dict[str, Any]) -> Child:
        value = validate("children", CREATE, payload).raise_for_error()
        return await self.store.insert("children", self.owner_id, value)

    async def update_child(self, child_id: str, changes: Dict[str, Any]) -> Child:
        value = validate("children", UPDATE, changes).raise_for_error()
        return await self.store.update("children", self.owner_id, child_id, value)

    async def delete_child(self, child_id: str) -> Child:
        return await self.store.delete("children", self.owner_id, child_id)

    # Scheduled items
    def _check(self, snapshot: Snapshot, candidate: ScheduledItem, items: Optional[Iterable[ScheduledItem]] = None):
        check_item_invariants(
            snapshot.weeks,
            snapshot.scheduled_items if items is None else items,
            candidate,
            self.settings.ENFORCE_NO_OVERLAP,
        )

    async def schedule_item(self, payload: Dict[str, Any]) -> ScheduledItem:
        """Assign a child to a camp or a block after checking the invariants"""
        value = validate("scheduled_items", CREATE, payload).raise_for_error()
        snapshot = await self.snapshot()

        candidate = ScheduledItem.model_validate({**value, "id": "pending", "owner_id": self.owner_id})
        self._check(snapshot, candidate)
        return await self.store.insert("scheduled_items", self.owner_id, value)

    async def update_item(self, item_id: str, changes: Dict[str, Any]) -> ScheduledItem:
        value = validate("scheduled_items", UPDATE, changes).raise_for_error()
        snapshot = await self.snapshot()

        existing = next((item for item in snapshot.scheduled_items if item.id == item_id), None)
        if existing is None:
            existing = await self.store.get("scheduled_items", item_id, self.owner_id)

        candidate = ScheduledItem.model_validate({**existing.model_dump(), **value})
        self._check(snapshot, candidate)
        return await self.store.update("scheduled_items", self.owner_id, item_id, value)

    async def cancel_item(self, item_id: str) -> ScheduledItem:
        return await self.update_item(item_id, {"status": ScheduleStatus.CANCELLED.value})

    async def remove_item(self, item_id: str) -> ScheduledItem:
        return await self.store.delete("scheduled_items", self.owner_id, item_id)

    # Interests
    async def set_interest(self, payload: Dict[str, Any]) -> CampInterest:
        value = validate("interests", CREATE, payload).raise_for_error()
        return await self.store.upsert_interest(self.owner_id, value)

    async def toggle_looking_for_friends(self, interest_id: str) -> CampInterest:
        return await self.store.toggle_looking_for_friends(self.owner_id, interest_id)

    # Profile
    async def update_profile(self, changes: Dict[str, Any]) -> AccountProfile:
        value = validate("profiles", UPDATE, changes).raise_for_error()
        return await self.store.update_profile(self.owner_id, value)

    # Favorites
    async def add_favorite(self, payload: Dict[str, Any]) -> Favorite:
        value = validate("favorites", CREATE, payload).raise_for_error()
        return await self.store.insert("favorites", self.owner_id, value)

    async def update_favorite(self, favorite_id: str, changes: Dict[str, Any]) -> Favorite:
        value = validate("favorites", UPDATE, changes).raise_for_error()
        return await self.store.update("favorites", self.owner_id, favorite_id, value)

    async def remove_favorite(self, favorite_id: str) -> Favorite:
        return await self.store.delete("favorites", self.owner_id, favorite_id)

    # Squads
    async def create_squad(self, payload: Dict[str, Any]) -> Squad:
        value = validate("squads", CREATE, payload).raise_for_error()
        return await self.store.create_squad(self.owner_id, value["name"], value.get("display_name"))

    async def join_squad(self, invite_code: str, display_name: Optional[str] = None) -> Squad:
        if not invite_code or not invite_code.strip():
            raise InvalidInputError("Invite code is required", field="invite_code")
        return await self.store.join_squad(self.owner_id, invite_code, display_name)

    async def leave_squad(self, squad_id: str):
        await self.store.leave_squad(self.owner_id, squad_id)

    async def update_membership(self, squad_id: str, changes: Dict[str, Any]) -> SquadMember:
        value = validate("squad_members", UPDATE, changes).raise_for_error()
        return await self.store.update_membership(self.owner_id, squad_id, value)

    async def regenerate_invite_code(self, squad_id: str) -> str:
        return await self.store.regenerate_invite_code(self.owner_id, squad_id)

    async def squad_interests(self, squad_id: str) -> List[SquadInterestRow]:
        return await self.store.squad_interests(self.owner_id, squad_id)

    # Sample data
    async def load_sample_data(self) -> List[ScheduledItem]:
        """Create the sample children and their sample schedule"""
        children = [await self.add_child(payload) for payload in generate_sample_children()]
        snapshot = await self.snapshot()

        items = []
        for payload in generate_sample_schedule(children, snapshot.camps, snapshot.weeks):
            value = validate("scheduled_items", CREATE, payload).raise_for_error()
            items.append(await self.store.insert("scheduled_items", self.owner_id, value))
        logger.info(f"Loaded {len(children)} sample children and {len(items)} sample items for {self.owner_id}")
        return items

    async def clear_sample_data(self) -> Dict[str, Any]:
        return await self.store.clear_sample_data(self.owner_id)

    async def has_sample_data(self) -> bool:
        return await self.store.has_sample_data(self.owner_id)

    # Preview
    async def start_preview(self) -> PreviewOverlay:
        return PreviewOverlay(await self.snapshot(), self.owner_id)

    async def commit_preview(self, overlay: PreviewOverlay) -> CommitResult:
        """
        Check the previewed schedule against the invariants, then replay it.

        Nothing is written if any previewed item would break an invariant.
        """
        overlay.rebase(await self.snapshot())
        materialized = overlay.materialize()

        touched = {
            op.entity_id for op in overlay.ops
            if op.collection == "scheduled_items" and op.kind != OpKind.DELETE
        }
        for item in materialized.scheduled_items:
            if item.id in touched:
                self._check(materialized, item, materialized.scheduled_items)

        return await overlay.commit(self.store)

    # Real-time
    def watch_inserts(self, collection: str) -> Unsubscribe:
        unsubscribe = self.store.watch_inserts(collection, self.owner_id)
        self._watchers.append(unsubscribe)
        return unsubscribe

    def close(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        for unsubscribe in self._watchers:
            unsubscribe()
        self._subscriptions = []
        self._watchers = []
