"""
Storage backend interface

Backends speak in plain row dictionaries addressed by table name; the
adapter turns rows into records and owns every domain rule.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

Row = Dict[str, Any]
InsertCallback = Callable[[Row], None]
Unsubscribe = Callable[[], None]


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    CONTAINS = "ilike"
    IN = "in"


@dataclass(frozen=True)
class Filter:
    """A single column predicate"""
    column: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.EQ, value)

    @classmethod
    def neq(cls, column: str, value: Any) -> "Filter":
        return cls(column, FilterOp.NEQ, value)

    @classmethod
    def contains(cls, column: str, value: str) -> "Filter":
        """Case-insensitive substring match"""
        return cls(column, FilterOp.CONTAINS, value)

    @classmethod
    def is_in(cls, column: str, values: Sequence[Any]) -> "Filter":
        return cls(column, FilterOp.IN, tuple(values))

    def matches(self, row: Row) -> bool:
        actual = row.get(self.column)
        if self.op == FilterOp.EQ:
            return actual == self.value
        if self.op == FilterOp.NEQ:
            return actual != self.value
        if self.op == FilterOp.CONTAINS:
            return actual is not None and str(self.value).lower() in str(actual).lower()
        if self.op == FilterOp.IN:
            return actual in self.value
        return False

    def to_query_param(self) -> tuple[str, str]:
        """PostgREST query parameter for this predicate"""
        if self.op == FilterOp.CONTAINS:
            return self.column, f"ilike.*{self.value}*"
        if self.op == FilterOp.IN:
            joined = ",".join(_format_value(value) for value in self.value)
            return self.column, f"in.({joined})"
        return self.column, f"{self.op.value}.{_format_value(self.value)}"


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True

    def to_query_value(self) -> str:
        direction = "asc" if self.ascending else "desc"
        return f"{self.column}.{direction}.nullslast"


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StorageBackend(ABC):
    """Typed collections addressable by name, with row-level authorization"""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Rows matching every filter"""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """Insert one row and return it as stored"""

    @abstractmethod
    async def update(self, table: str, filters: Sequence[Filter], changes: Row) -> List[Row]:
        """Apply changes to matching rows and return them"""

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        """Delete matching rows and return what was removed"""

    @abstractmethod
    async def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Call a server-side routine; it runs as a single unit"""

    @abstractmethod
    def subscribe_inserts(self, table: str, column: str, value: Any, callback: InsertCallback) -> Unsubscribe:
        """Deliver INSERT events on `table` where `column == value`"""

    async def close(self):
        """Release transport resources"""
