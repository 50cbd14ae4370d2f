"""
Preview / what-if layer

A PreviewOverlay is an ordered log of pending operations on top of an
immutable base snapshot. Materializing it is pure and touches no store;
only `commit` talks to the store, replaying the log in order.
"""
import logging
import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from ..config import Settings
from ..logging_config import PlannerEventLogger
from ..models import (
    AccountProfile,
    CampInterest,
    Child,
    DerivedSnapshot,
    Favorite,
    Record,
    ScheduledItem,
    Snapshot,
)
from ..schemas import CREATE, UPDATE, validate
from ..utils.exceptions import InvalidInputError, NotFoundError, PlannerError, PreviewConflictError
from .derivation import derive

if TYPE_CHECKING:
    from ..store.adapter import EntityStore

logger = logging.getLogger(__name__)

PREVIEW_ID_PREFIX = "preview-"
# Stands in for the owner of records inserted over an anonymous snapshot
PREVIEW_OWNER_ID = "preview-owner"

# Snapshot attribute and record type for each previewable collection
PREVIEW_COLLECTIONS = {
    "children": ("children", Child),
    "scheduled_items": ("scheduled_items", ScheduledItem),
    "interests": ("interests", CampInterest),
    "favorites": ("favorites", Favorite),
}


class OpKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class PendingOp(Record):
    kind: OpKind
    collection: str
    entity_id: str
    payload: Dict[str, Any] = {}


class CommitResult(BaseModel):
    """Outcome of replaying an overlay through the store"""
    model_config = ConfigDict(frozen=True)

    ok: bool
    applied: List[Dict[str, Any]] = []
    failed_index: Optional[int] = None
    error: Optional[Dict[str, Any]] = None
    remaining: int = 0
    id_map: Dict[str, str] = {}


def is_preview_id(entity_id: str) -> bool:
    return entity_id.startswith(PREVIEW_ID_PREFIX)


def new_preview_id() -> str:
    return f"{PREVIEW_ID_PREFIX}{uuid.uuid4().hex}"


def _merge(record: Record, changes: Dict[str, Any]) -> Record:
    return type(record).model_validate({**record.model_dump(), **changes})


def _apply(state: Dict[str, Dict[str, Record]], profile: Optional[AccountProfile], op: PendingOp, owner_id: Optional[str]):
    """Apply one op to the working state; returns the (possibly new) profile"""
    if op.collection == "profiles":
        if op.kind == OpKind.UPDATE and profile is not None:
            return _merge(profile, op.payload)
        logger.debug(f"Skipping preview op {op.kind.value} on profiles")
        return profile

    if op.collection not in PREVIEW_COLLECTIONS:
        logger.debug(f"Skipping preview op on unsupported collection {op.collection}")
        return profile

    _, model = PREVIEW_COLLECTIONS[op.collection]
    records = state[op.collection]

    if op.kind == OpKind.INSERT:
        record = model.model_validate({**op.payload, "id": op.entity_id, "owner_id": owner_id})
        if op.collection == "interests":
            for existing_id, existing in list(records.items()):
                if existing.key == record.key:
                    records[existing_id] = _merge(existing, {"looking_for_friends": record.looking_for_friends})
                    return profile
        records[op.entity_id] = record

    elif op.entity_id not in records:
        logger.debug(f"Preview op {op.kind.value} targets missing {op.collection}/{op.entity_id}")

    elif op.kind == OpKind.UPDATE:
        records[op.entity_id] = _merge(records[op.entity_id], op.payload)

    elif op.kind == OpKind.DELETE:
        del records[op.entity_id]
        if op.collection == "children":
            for dependent in ("scheduled_items", "interests"):
                state[dependent] = {
                    key: value for key, value in state[dependent].items() if value.child_id != op.entity_id
                }

    return profile


def materialize(snapshot: Snapshot, ops: Sequence[PendingOp], owner_id: Optional[str] = None) -> Snapshot:
    """
    Apply ops in order to a copy of the snapshot.

    Pure: the input snapshot is never modified. Ops that target ids absent
    from the snapshot, or whose payload no longer forms a valid record, are
    skipped.
    """
    owner_id = owner_id or snapshot.owner_id or PREVIEW_OWNER_ID
    state: Dict[str, Dict[str, Record]] = {
        collection: {record.id: record for record in getattr(snapshot, attribute)}
        for collection, (attribute, _) in PREVIEW_COLLECTIONS.items()
    }
    profile = snapshot.profile

    for op in ops:
        try:
            profile = _apply(state, profile, op, owner_id)
        except ValidationError as e:
            logger.warning(f"Skipping preview op on {op.collection}/{op.entity_id}: {e.error_count()} errors")

    changes: Dict[str, Any] = {
        attribute: tuple(state[collection].values())
        for collection, (attribute, _) in PREVIEW_COLLECTIONS.items()
    }
    changes["profile"] = profile
    changes["is_preview"] = True
    return snapshot.model_copy(update=changes)


class PreviewOverlay:
    """Pending mutations composed over a base snapshot"""

    def __init__(self, base: Snapshot, owner_id: Optional[str] = None, event_logger: Optional[PlannerEventLogger] = None):
        self.base = base
        self.owner_id = owner_id or base.owner_id
        self.ops: List[PendingOp] = []
        self.event_logger = event_logger or PlannerEventLogger()

    @property
    def pending(self) -> int:
        return len(self.ops)

    def insert(self, collection: str, payload: Dict[str, Any]) -> str:
        """Queue an insert and return the temporary id standing in for it"""
        value = validate(collection, CREATE, payload).raise_for_error()
        entity_id = new_preview_id()
        self.ops.append(PendingOp(kind=OpKind.INSERT, collection=collection, entity_id=entity_id, payload=value))
        return entity_id

    def update(self, collection: str, entity_id: str, changes: Dict[str, Any]):
        value = validate(collection, UPDATE, changes).raise_for_error()
        self.ops.append(PendingOp(kind=OpKind.UPDATE, collection=collection, entity_id=entity_id, payload=value))

    def delete(self, collection: str, entity_id: str):
        if collection == "profiles":
            raise InvalidInputError("Profiles cannot be deleted", field="collection")
        self.ops.append(PendingOp(kind=OpKind.DELETE, collection=collection, entity_id=entity_id))

    def materialize(self) -> Snapshot:
        return materialize(self.base, self.ops, self.owner_id)

    def derive(self, child_id: str, today: Optional[date] = None, settings: Optional[Settings] = None) -> DerivedSnapshot:
        return derive(self.materialize(), child_id, today, settings)

    def discard(self):
        self.ops.clear()

    def rebase(self, snapshot: Snapshot):
        """Keep the pending ops but apply them over a fresher snapshot"""
        self.base = snapshot

    async def commit(self, store: "EntityStore") -> CommitResult:
        """
        Replay pending ops through the store, in order.

        Stops at the first failure. Ops that were applied are removed from
        the overlay; the failed op and everything after it stay queued, with
        temporary ids replaced by the real ids already assigned. A target
        that vanished from the store is reported as PreviewConflictError.
        """
        if self.owner_id is None:
            raise InvalidInputError("Committing a preview needs an owner", field="owner_id")

        id_map: Dict[str, str] = {}
        applied: List[Dict[str, Any]] = []
        total = len(self.ops)

        def resolve(value: Any) -> Any:
            return id_map.get(value, value) if isinstance(value, str) else value

        for index, op in enumerate(self.ops):
            entity_id = resolve(op.entity_id)
            payload = {key: resolve(value) for key, value in op.payload.items()}

            try:
                if op.kind == OpKind.INSERT:
                    if op.collection == "interests":
                        record = await store.upsert_interest(self.owner_id, payload)
                    else:
                        record = await store.insert(op.collection, self.owner_id, payload)
                    id_map[op.entity_id] = record.id
                    entity_id = record.id
                elif op.kind == OpKind.UPDATE:
                    if is_preview_id(entity_id):
                        raise NotFoundError("Target was never created", collection=op.collection, entity_id=entity_id)
                    if op.collection == "profiles":
                        await store.update_profile(self.owner_id, payload)
                    else:
                        await store.update(op.collection, self.owner_id, entity_id, payload)
                else:
                    if is_preview_id(entity_id):
                        raise NotFoundError("Target was never created", collection=op.collection, entity_id=entity_id)
                    await store.delete(op.collection, self.owner_id, entity_id)

            except PlannerError as e:
                error = e
                if isinstance(e, NotFoundError):
                    error = PreviewConflictError(
                        f"Pending {op.kind.value} on {op.collection}/{entity_id} no longer matches the store",
                        op_index=index,
                        entity_id=entity_id,
                    )

                self.ops = [
                    pending.model_copy(update={
                        "entity_id": resolve(pending.entity_id),
                        "payload": {key: resolve(value) for key, value in pending.payload.items()},
                    })
                    for pending in self.ops[index:]
                ]
                self.event_logger.log_preview_commit_failed(index, len(applied), total, error.kind.value)

                return CommitResult(
                    ok=False,
                    applied=applied,
                    failed_index=index,
                    error=error.to_dict(),
                    remaining=len(self.ops),
                    id_map=id_map,
                )

            applied.append({
                "index": index,
                "kind": op.kind.value,
                "collection": op.collection,
                "entity_id": entity_id,
            })

        self.ops = []
        self.event_logger.log_preview_commit(len(applied), total)
        return CommitResult(ok=True, applied=applied, remaining=0, id_map=id_map)
