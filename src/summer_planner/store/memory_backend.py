"""
In-memory storage backend for tests and offline use
"""
import copy
import logging
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..utils.exceptions import StoreError
from .backend import Filter, InsertCallback, Order, Row, StorageBackend, Unsubscribe

logger = logging.getLogger(__name__)

# Columns that must be unique together, per table
UNIQUE_KEYS: Dict[str, Tuple[str, ...]] = {
    "camp_interests": ("user_id", "child_id", "camp_id", "week_number"),
    "squad_members": ("squad_id", "user_id"),
    "squads": ("invite_code",),
}


def _sort_rows(rows: List[Row], order: Sequence[Order]) -> List[Row]:
    for spec in reversed(order):
        present = [row for row in rows if row.get(spec.column) is not None]
        missing = [row for row in rows if row.get(spec.column) is None]
        present.sort(key=lambda row: row[spec.column], reverse=not spec.ascending)
        rows = present + missing
    return rows


class InMemoryBackend(StorageBackend):
    """
    Dictionary-backed tables keyed by row id.

    Routines run against a copy of the tables that is swapped in only on
    success, so a failing routine leaves nothing half-done. INSERT events are
    delivered synchronously before `insert` returns.
    """

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None):
        self.tables: Dict[str, Dict[str, Row]] = defaultdict(dict)
        self._listeners: Dict[str, List[Tuple[str, Any, InsertCallback]]] = defaultdict(list)
        self._failures: List[Tuple[Optional[str], Optional[str], StoreError]] = []
        self.routines: Dict[str, Callable[[Dict[str, Dict[str, Row]], Dict[str, Any]], Any]] = {
            "clear_sample_data": self._clear_sample_data,
            "get_squad_by_invite_code": self._get_squad_by_invite_code,
        }
        self.calls: List[Tuple[str, str]] = []

        for table, rows in (tables or {}).items():
            for row in rows:
                stored = copy.deepcopy(row)
                stored.setdefault("id", str(uuid.uuid4()))
                self.tables[table][stored["id"]] = stored

    # Test hooks
    def inject_failure(self, error: StoreError, operation: Optional[str] = None, table: Optional[str] = None):
        """Fail the next call matching operation/table with `error`"""
        self._failures.append((operation, table, error))

    def remove_routine(self, name: str):
        self.routines.pop(name, None)

    def rows(self, table: str) -> List[Row]:
        return [copy.deepcopy(row) for row in self.tables[table].values()]

    def _check_failure(self, operation: str, table: str):
        self.calls.append((operation, table))
        for index, (op, tbl, error) in enumerate(self._failures):
            if (op is None or op == operation) and (tbl is None or tbl == table):
                del self._failures[index]
                raise error

    @staticmethod
    def _matching(table_rows: Dict[str, Row], filters: Sequence[Filter]) -> List[Row]:
        return [row for row in table_rows.values() if all(f.matches(row) for f in filters)]

    def _check_unique(self, table: str, row: Row, ignore_id: Optional[str] = None):
        if row.get("id") in self.tables[table] and row.get("id") != ignore_id:
            raise StoreError("23505", f"Duplicate id in {table}", {"id": row.get("id")})

        columns = UNIQUE_KEYS.get(table)
        if not columns:
            return
        key = tuple(row.get(column) for column in columns)
        for existing in self.tables[table].values():
            if existing["id"] == ignore_id:
                continue
            if tuple(existing.get(column) for column in columns) == key:
                raise StoreError(
                    "23505",
                    f"Duplicate key value violates unique constraint on {table}",
                    {"columns": list(columns)},
                )

    # StorageBackend
    async def select(self, table, filters=(), order=(), limit=None):
        self._check_failure("select", table)
        rows = _sort_rows(self._matching(self.tables[table], filters), order)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def insert(self, table, row):
        self._check_failure("insert", table)
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self._check_unique(table, stored)
        self.tables[table][stored["id"]] = stored

        for column, value, callback in list(self._listeners[table]):
            if stored.get(column) == value:
                try:
                    callback(copy.deepcopy(stored))
                except Exception:
                    logger.exception(f"Insert listener failed for {table}")

        return copy.deepcopy(stored)

    async def update(self, table, filters, changes):
        self._check_failure("update", table)
        updated = []
        for row in self._matching(self.tables[table], filters):
            candidate = {**row, **copy.deepcopy(changes), "id": row["id"]}
            self._check_unique(table, candidate, ignore_id=row["id"])
            self.tables[table][row["id"]] = candidate
            updated.append(copy.deepcopy(candidate))
        return updated

    async def delete(self, table, filters):
        self._check_failure("delete", table)
        removed = []
        for row in self._matching(self.tables[table], filters):
            removed.append(self.tables[table].pop(row["id"]))
        return removed

    async def rpc(self, name, params=None):
        self._check_failure("rpc", name)
        routine = self.routines.get(name)
        if routine is None:
            raise StoreError("42883", f"Function {name} does not exist")

        working = copy.deepcopy(self.tables)
        result = routine(working, params or {})
        self.tables = defaultdict(dict, working)
        return copy.deepcopy(result)

    def subscribe_inserts(self, table, column, value, callback) -> Unsubscribe:
        entry = (column, value, callback)
        self._listeners[table].append(entry)

        def unsubscribe():
            if entry in self._listeners[table]:
                self._listeners[table].remove(entry)

        return unsubscribe

    # Routines
    @staticmethod
    def _clear_sample_data(tables: Dict[str, Dict[str, Row]], params: Dict[str, Any]) -> Dict[str, Any]:
        user_id = params.get("p_user_id")
        if not user_id:
            raise StoreError("PGRST116", "clear_sample_data requires p_user_id")

        items = tables["scheduled_camps"]
        sample_items = [key for key, row in items.items() if row.get("user_id") == user_id and row.get("is_sample")]
        for key in sample_items:
            del items[key]

        children = tables["children"]
        sample_children = {key for key, row in children.items() if row.get("user_id") == user_id and row.get("is_sample")}
        for key in sample_children:
            del children[key]

        # Rows that referenced the removed children go with them
        for table in ("scheduled_camps", "camp_interests", "favorites"):
            orphans = [key for key, row in tables[table].items() if row.get("child_id") in sample_children]
            for key in orphans:
                del tables[table][key]

        profile = tables["profiles"].get(user_id)
        if profile is not None:
            profile["tour_completed"] = True

        return {
            "success": True,
            "deleted_children": len(sample_children),
            "deleted_camps": len(sample_items),
        }

    @staticmethod
    def _get_squad_by_invite_code(tables: Dict[str, Dict[str, Row]], params: Dict[str, Any]) -> List[Row]:
        code = (params.get("code") or "").lower()
        return [row for row in tables["squads"].values() if row.get("invite_code", "").lower() == code]
