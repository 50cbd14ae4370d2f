"""
Entity store adapter

Uniform typed CRUD over the backend's tables, with the ownership rules the
core relies on:

* inserts carry the caller's id, written after the payload so it cannot be
  overridden;
* updates and deletes only touch rows owned by the caller, and a delete of
  someone else's row fails with NotOwnerError;
* cross-user reads go through the disclosure filter before they leave.

Payloads are expected to be validated already. Every successful mutation
publishes on the collection's invalidation topic.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from pydantic import ValidationError

from ..config import Settings
from ..core.calendar import season_for_profile
from ..core.disclosure import collect_peer_interests, filter_squad_interests
from ..core.events import InvalidationBus
from ..logging_config import PlannerEventLogger
from ..models import (
    AccountProfile,
    Camp,
    CampInterest,
    Child,
    Favorite,
    Record,
    ScheduledItem,
    Snapshot,
    Squad,
    SquadInterestRow,
    SquadMember,
    SquadRole,
    Topic,
)
from ..utils.exceptions import InvalidInputError, NotFoundError, NotOwnerError, StoreError
from ..utils.helpers import generate_invite_code
from .backend import Filter, Order, Row, StorageBackend, Unsubscribe

logger = logging.getLogger(__name__)

# Statuses written by older clients
LEGACY_STATUSES = {"tentative": "planned", "paid": "confirmed"}


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    table: str
    model: Type[Record]
    topic: Optional[Topic] = None
    owner_column: Optional[str] = None
    cascade: Tuple[str, ...] = field(default=())
    order: Tuple[Order, ...] = field(default=())


COLLECTIONS: Dict[str, CollectionSpec] = {
    "children": CollectionSpec(
        "children", "children", Child, Topic.CHILDREN, "user_id",
        cascade=("scheduled_items", "interests"),
        order=(Order("name"), Order("id")),
    ),
    "scheduled_items": CollectionSpec(
        "scheduled_items", "scheduled_camps", ScheduledItem, Topic.SCHEDULED_ITEMS, "user_id",
        order=(Order("start_date"), Order("id")),
    ),
    "interests": CollectionSpec(
        "interests", "camp_interests", CampInterest, Topic.INTERESTS, "user_id",
        order=(Order("week_number"), Order("id")),
    ),
    "squads": CollectionSpec(
        "squads", "squads", Squad, Topic.SQUADS, "created_by",
        cascade=("squad_members",),
    ),
    "squad_members": CollectionSpec("squad_members", "squad_members", SquadMember, Topic.SQUADS, "user_id"),
    "profiles": CollectionSpec("profiles", "profiles", AccountProfile, Topic.PROFILE, "id"),
    "favorites": CollectionSpec(
        "favorites", "favorites", Favorite, Topic.FAVORITES, "user_id",
        order=(Order("priority"), Order("id")),
    ),
    "camps": CollectionSpec("camps", "camps", Camp, order=(Order("name"), Order("id"))),
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise InvalidInputError(f"Unknown collection: {name}", field="collection") from None


def row_to_record(spec: CollectionSpec, row: Row) -> Record:
    """Parse a stored row; the owner column always surfaces as `owner_id`"""
    data = dict(row)
    if spec.owner_column == "user_id":
        data["owner_id"] = data.get("user_id")
    if spec.name == "scheduled_items" and data.get("status") in LEGACY_STATUSES:
        data["status"] = LEGACY_STATUSES[data["status"]]
    return spec.model.model_validate(data)


def rows_to_records(spec: CollectionSpec, rows: Iterable[Row]) -> List[Record]:
    """Parse rows, skipping any that no longer satisfy the record schema"""
    records = []
    for row in rows:
        try:
            records.append(row_to_record(spec, row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {spec.name} row {row.get('id')}: {e.error_count()} errors")
    return records


class EntityStore:
    """Typed, ownership-checked access to every collection"""

    def __init__(
        self,
        backend: StorageBackend,
        bus: Optional[InvalidationBus] = None,
        event_logger: Optional[PlannerEventLogger] = None,
    ):
        self.backend = backend
        self.bus = bus or InvalidationBus()
        self.event_logger = event_logger or PlannerEventLogger()

    # Helpers
    def _owner_filters(self, spec: CollectionSpec, owner_id: Optional[str]) -> List[Filter]:
        if owner_id is None or spec.owner_column is None:
            return []
        return [Filter.eq(spec.owner_column, owner_id)]

    def _published(self, spec: CollectionSpec, operation: str, owner_id: str, entity_id: Optional[str]):
        self.event_logger.log_mutation(spec.name, operation, owner_id, entity_id)
        if spec.topic is not None:
            self.bus.publish(spec.topic)

    def _not_found(self, spec: CollectionSpec, entity_id: str) -> NotFoundError:
        return NotFoundError(f"No {spec.name} row with id {entity_id}", collection=spec.name, entity_id=entity_id)

    def _not_owner(self, spec: CollectionSpec, entity_id: str, caller_id: str, operation: str) -> NotOwnerError:
        logger.warning(f"Ownership check failed: {caller_id} -> {spec.name}/{entity_id} ({operation})")
        self.event_logger.log_ownership_violation(spec.name, entity_id, caller_id, operation)
        return NotOwnerError(collection=spec.name, entity_id=entity_id)

    async def _fetch_row(self, spec: CollectionSpec, entity_id: str) -> Optional[Row]:
        rows = await self.backend.select(spec.table, [Filter.eq("id", entity_id)], limit=1)
        return rows[0] if rows else None

    # Generic CRUD
    async def list(
        self,
        collection: str,
        owner_id: Optional[str] = None,
        filters: Sequence[Filter] = (),
        order: Optional[Sequence[Order]] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        spec = get_collection(collection)
        rows = await self.backend.select(
            spec.table,
            self._owner_filters(spec, owner_id) + list(filters),
            spec.order if order is None else order,
            limit,
        )
        return rows_to_records(spec, rows)

    async def get(self, collection: str, entity_id: str, owner_id: Optional[str] = None) -> Record:
        spec = get_collection(collection)
        rows = await self.backend.select(
            spec.table,
            [Filter.eq("id", entity_id)] + self._owner_filters(spec, owner_id),
            limit=1,
        )
        if not rows:
            raise self._not_found(spec, entity_id)
        return row_to_record(spec, rows[0])

    async def insert(self, collection: str, owner_id: str, payload: Dict[str, Any]) -> Record:
        spec = get_collection(collection)
        if spec.owner_column is None:
            raise InvalidInputError(f"{collection} is read-only", field="collection")

        row = {key: value for key, value in payload.items() if key != "owner_id"}
        row[spec.owner_column] = owner_id
        stored = await self.backend.insert(spec.table, row)
        record = row_to_record(spec, stored)

        self._published(spec, "insert", owner_id, stored.get("id"))
        return record

    async def update(self, collection: str, owner_id: str, entity_id: str, changes: Dict[str, Any]) -> Record:
        spec = get_collection(collection)
        if spec.owner_column is None:
            raise InvalidInputError(f"{collection} is read-only", field="collection")

        changes = {key: value for key, value in changes.items() if key not in ("id", spec.owner_column, "owner_id")}
        filters = [Filter.eq("id", entity_id)] + self._owner_filters(spec, owner_id)

        rows = await self.backend.select(spec.table, filters, limit=1)
        if not rows:
            raise self._not_found(spec, entity_id)
        if not changes:
            return row_to_record(spec, rows[0])

        # The merged row must still parse, or it would drop out of every snapshot
        try:
            row_to_record(spec, {**rows[0], **changes})
        except ValidationError as e:
            messages = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()]
            field = str(e.errors()[0]["loc"][0]) if e.errors() and e.errors()[0]["loc"] else None
            raise InvalidInputError(
                f"Update would leave {spec.name}/{entity_id} invalid", field=field, messages=messages
            ) from None

        rows = await self.backend.update(spec.table, filters, changes)
        if not rows:
            raise self._not_found(spec, entity_id)

        self._published(spec, "update", owner_id, entity_id)
        return row_to_record(spec, rows[0])

    async def delete(self, collection: str, owner_id: str, entity_id: str) -> Record:
        spec = get_collection(collection)
        if spec.owner_column is None:
            raise InvalidInputError(f"{collection} is read-only", field="collection")

        row = await self._fetch_row(spec, entity_id)
        if row is None:
            raise self._not_found(spec, entity_id)
        if row.get(spec.owner_column) != owner_id:
            raise self._not_owner(spec, entity_id, owner_id, "delete")

        topics = [spec.topic]
        for child_collection in spec.cascade:
            child_spec = get_collection(child_collection)
            parent_column = "child_id" if spec.name == "children" else "squad_id"
            cascade_filters = [Filter.eq(parent_column, entity_id)]
            if spec.name == "children":
                cascade_filters += self._owner_filters(child_spec, owner_id)
            removed = await self.backend.delete(child_spec.table, cascade_filters)
            logger.debug(f"Cascade removed {len(removed)} {child_collection} rows for {spec.name}/{entity_id}")
            topics.append(child_spec.topic)

        removed = await self.backend.delete(
            spec.table, [Filter.eq("id", entity_id), Filter.eq(spec.owner_column, owner_id)]
        )
        if not removed:
            raise self._not_found(spec, entity_id)

        self.event_logger.log_mutation(spec.name, "delete", owner_id, entity_id)
        self.bus.publish_many(topic for topic in topics if topic is not None)
        return row_to_record(spec, removed[0])

    # Interests
    async def upsert_interest(self, owner_id: str, payload: Dict[str, Any]) -> CampInterest:
        """Insert or update the interest keyed by (owner, child, camp, week)"""
        spec = get_collection("interests")
        key_filters = [
            Filter.eq("user_id", owner_id),
            Filter.eq("child_id", payload["child_id"]),
            Filter.eq("camp_id", payload["camp_id"]),
            Filter.eq("week_number", payload["week_number"]),
        ]
        existing = await self.backend.select(spec.table, key_filters, limit=1)
        if existing:
            return await self.update(
                "interests", owner_id, existing[0]["id"],
                {"looking_for_friends": payload.get("looking_for_friends", False)},
            )
        return await self.insert("interests", owner_id, payload)

    async def toggle_looking_for_friends(self, owner_id: str, interest_id: str) -> CampInterest:
        interest = await self.get("interests", interest_id, owner_id)
        return await self.update(
            "interests", owner_id, interest_id,
            {"looking_for_friends": not interest.looking_for_friends},
        )

    # Sample data
    async def clear_sample_data(self, owner_id: str) -> Dict[str, Any]:
        """
        Remove the caller's sample children and items in one server-side call.

        If the routine is missing or fails, the StoreError propagates and
        nothing is deleted client-side.
        """
        result = await self.backend.rpc("clear_sample_data", {"p_user_id": owner_id})
        logger.info(f"Cleared sample data for {owner_id}: {result}")

        self.event_logger.log_mutation("sample_data", "clear", owner_id)
        self.bus.publish_many([Topic.CHILDREN, Topic.SCHEDULED_ITEMS, Topic.INTERESTS, Topic.FAVORITES, Topic.PROFILE])
        return result or {}

    async def has_sample_data(self, owner_id: str) -> bool:
        for collection in ("children", "scheduled_items"):
            spec = get_collection(collection)
            rows = await self.backend.select(
                spec.table, [Filter.eq("user_id", owner_id), Filter.eq("is_sample", True)], limit=1
            )
            if rows:
                return True
        return False

    # Profile
    async def get_profile(self, owner_id: str) -> Optional[AccountProfile]:
        rows = await self.backend.select("profiles", [Filter.eq("id", owner_id)], limit=1)
        return row_to_record(COLLECTIONS["profiles"], rows[0]) if rows else None

    async def update_profile(self, owner_id: str, changes: Dict[str, Any]) -> AccountProfile:
        return await self.update("profiles", owner_id, owner_id, changes)

    # Squads
    async def _members_for(self, squad_ids: Sequence[str]) -> Dict[str, List[SquadMember]]:
        members: Dict[str, List[SquadMember]] = {squad_id: [] for squad_id in squad_ids}
        if not squad_ids:
            return members
        rows = await self.backend.select(
            "squad_members", [Filter.is_in("squad_id", squad_ids)], [Order("squad_id"), Order("user_id")]
        )
        for member in rows_to_records(COLLECTIONS["squad_members"], rows):
            members.setdefault(member.squad_id, []).append(member)
        return members

    def _assemble_squads(self, squad_rows: Iterable[Row], members: Dict[str, List[SquadMember]]) -> List[Squad]:
        return [
            Squad.model_validate({**row, "members": tuple(members.get(row["id"], ()))})
            for row in squad_rows
        ]

    async def list_squads(self, owner_id: str) -> List[Squad]:
        """Squads the caller belongs to, with their members"""
        memberships = await self.backend.select("squad_members", [Filter.eq("user_id", owner_id)])
        squad_ids = sorted({row["squad_id"] for row in memberships})
        if not squad_ids:
            return []
        squad_rows = await self.backend.select("squads", [Filter.is_in("id", squad_ids)], [Order("name"), Order("id")])
        return self._assemble_squads(squad_rows, await self._members_for(squad_ids))

    async def get_squad(self, squad_id: str) -> Squad:
        rows = await self.backend.select("squads", [Filter.eq("id", squad_id)], limit=1)
        if not rows:
            raise self._not_found(COLLECTIONS["squads"], squad_id)
        return self._assemble_squads(rows, await self._members_for([squad_id]))[0]

    async def create_squad(self, owner_id: str, name: str, display_name: Optional[str] = None) -> Squad:
        """Create a squad; the creator joins it as its owner"""
        squad_row = await self.backend.insert(
            "squads", {"name": name, "invite_code": generate_invite_code(), "created_by": owner_id}
        )
        try:
            await self.backend.insert("squad_members", {
                "squad_id": squad_row["id"],
                "user_id": owner_id,
                "display_name": display_name,
                "role": SquadRole.OWNER.value,
                "reveal_identity": False,
                "share_schedule": True,
            })
        except StoreError:
            await self.backend.delete("squads", [Filter.eq("id", squad_row["id"])])
            raise

        self._published(COLLECTIONS["squads"], "insert", owner_id, squad_row["id"])
        return await self.get_squad(squad_row["id"])

    async def join_squad(self, owner_id: str, invite_code: str, display_name: Optional[str] = None) -> Squad:
        found = await self.backend.rpc("get_squad_by_invite_code", {"code": invite_code.strip()})
        if not found:
            raise NotFoundError("Invalid invite code", collection="squads")
        squad_row = found[0] if isinstance(found, list) else found

        squad = await self.get_squad(squad_row["id"])
        if squad.member(owner_id) is not None:
            return squad

        await self.backend.insert("squad_members", {
            "squad_id": squad.id,
            "user_id": owner_id,
            "display_name": display_name,
            "role": SquadRole.MEMBER.value,
            "reveal_identity": False,
            "share_schedule": True,
        })
        self._published(COLLECTIONS["squad_members"], "insert", owner_id, squad.id)
        return await self.get_squad(squad.id)

    async def leave_squad(self, owner_id: str, squad_id: str):
        removed = await self.backend.delete(
            "squad_members", [Filter.eq("squad_id", squad_id), Filter.eq("user_id", owner_id)]
        )
        if not removed:
            raise self._not_found(COLLECTIONS["squad_members"], squad_id)
        self._published(COLLECTIONS["squad_members"], "delete", owner_id, squad_id)

    async def update_membership(self, owner_id: str, squad_id: str, changes: Dict[str, Any]) -> SquadMember:
        """Change the caller's own membership flags in a squad"""
        spec = COLLECTIONS["squad_members"]
        changes = {key: value for key, value in changes.items() if key not in ("role", "user_id", "squad_id")}
        filters = [Filter.eq("squad_id", squad_id), Filter.eq("user_id", owner_id)]

        rows = await self.backend.update(spec.table, filters, changes) if changes else \
            await self.backend.select(spec.table, filters, limit=1)
        if not rows:
            raise self._not_found(spec, squad_id)
        if changes:
            self._published(spec, "update", owner_id, squad_id)
        return row_to_record(spec, rows[0])

    async def regenerate_invite_code(self, owner_id: str, squad_id: str) -> str:
        spec = COLLECTIONS["squads"]
        code = generate_invite_code()
        rows = await self.backend.update(
            spec.table, [Filter.eq("id", squad_id), Filter.eq("created_by", owner_id)], {"invite_code": code}
        )
        if not rows:
            if await self._fetch_row(spec, squad_id) is not None:
                raise self._not_owner(spec, squad_id, owner_id, "regenerate_invite_code")
            raise self._not_found(spec, squad_id)

        self._published(spec, "update", owner_id, squad_id)
        return code

    # Cross-user reads
    async def _interests_of(self, user_ids: Sequence[str]) -> Tuple[List[CampInterest], Dict[str, str]]:
        if not user_ids:
            return [], {}
        interest_rows = await self.backend.select(
            "camp_interests", [Filter.is_in("user_id", user_ids)], [Order("week_number"), Order("id")]
        )
        interests = rows_to_records(COLLECTIONS["interests"], interest_rows)

        child_ids = sorted({interest.child_id for interest in interests})
        child_names: Dict[str, str] = {}
        if child_ids:
            for row in await self.backend.select("children", [Filter.is_in("id", child_ids)]):
                child_names[row["id"]] = row.get("name")
        return interests, child_names

    async def squad_interests(self, caller_id: str, squad_id: str) -> List[SquadInterestRow]:
        """Interests shared inside one squad, with identities disclosed per member choice"""
        squad = await self.get_squad(squad_id)
        if squad.member(caller_id) is None:
            raise self._not_owner(COLLECTIONS["squads"], squad_id, caller_id, "read_interests")

        sharing = [member.user_id for member in squad.members if member.share_schedule]
        interests, child_names = await self._interests_of(sharing)
        return filter_squad_interests(squad, interests, child_names)

    async def peer_interests(self, caller_id: str, squads: Optional[Sequence[Squad]] = None) -> List[SquadInterestRow]:
        """Interests of every sharing peer across the caller's squads"""
        squads = await self.list_squads(caller_id) if squads is None else squads
        peers = sorted({
            member.user_id
            for squad in squads
            for member in squad.members
            if member.share_schedule and member.user_id != caller_id
        })
        interests, child_names = await self._interests_of(peers)
        return collect_peer_interests(squads, interests, caller_id, child_names)

    # Snapshot
    async def load_snapshot(self, owner_id: str, settings: Optional[Settings] = None) -> Snapshot:
        """Read everything one account's derivations need"""
        profile = await self.get_profile(owner_id)
        season = season_for_profile(profile, settings)
        squads = await self.list_squads(owner_id)

        return Snapshot(
            owner_id=owner_id,
            weeks=season.weeks,
            pre_season_gap=season.pre_season_gap,
            post_season_gap=season.post_season_gap,
            children=tuple(await self.list("children", owner_id)),
            scheduled_items=tuple(await self.list("scheduled_items", owner_id)),
            interests=tuple(await self.list("interests", owner_id)),
            camps=tuple(await self.list("camps")),
            profile=profile,
            squads=tuple(squads),
            peer_interests=tuple(await self.peer_interests(owner_id, squads)),
            favorites=tuple(await self.list("favorites", owner_id)),
        )

    # Real-time
    def watch_inserts(self, collection: str, owner_id: str) -> Unsubscribe:
        """Publish the collection's topic whenever a row for this owner is inserted"""
        spec = get_collection(collection)
        if spec.owner_column is None or spec.topic is None:
            raise InvalidInputError(f"{collection} has no insert stream", field="collection")

        topic = spec.topic

        def on_insert(row: Row):
            logger.debug(f"INSERT event on {spec.table}: {row.get('id')}")
            self.bus.publish(topic)

        return self.backend.subscribe_inserts(spec.table, spec.owner_column, owner_id, on_insert)

    async def close(self):
        await self.backend.close()
