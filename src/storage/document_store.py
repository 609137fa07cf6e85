"""
Document store interface and an in-memory implementation.

The production store is an external collaborator reached through six
primitives on named collections. ``InMemoryDocumentStore`` implements the
same protocol for local runs and tests; it gives per-record atomicity
and last-write-wins, nothing more.

Usage:
    store = InMemoryDocumentStore()
    record = await store.insert("Customers", {"customerEmail": "a@b.com"})
    result = await store.query("Customers", Query().eq("customerEmail", "a@b.com"))
"""

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 1000


class RecordNotFoundError(KeyError):
    """Raised by a store when an addressed record does not exist."""


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is None or right is None:
        return False
    try:
        return left >= right if op == "ge" else left <= right
    except TypeError:
        return False


@dataclass
class Query:
    """Chainable filter, sort and limit over one collection."""

    filters: list[tuple[str, str, Any]] = field(default_factory=list)
    sort: list[tuple[str, bool]] = field(default_factory=list)
    max_items: int = DEFAULT_QUERY_LIMIT

    def eq(self, field_name: str, value: Any) -> "Query":
        self.filters.append(("eq", field_name, value))
        return self

    def ge(self, field_name: str, value: Any) -> "Query":
        self.filters.append(("ge", field_name, value))
        return self

    def le(self, field_name: str, value: Any) -> "Query":
        self.filters.append(("le", field_name, value))
        return self

    def has_some(self, field_name: str, values: Iterable[Any]) -> "Query":
        self.filters.append(("has_some", field_name, list(values)))
        return self

    def ascending(self, field_name: str) -> "Query":
        self.sort.append((field_name, False))
        return self

    def descending(self, field_name: str) -> "Query":
        self.sort.append((field_name, True))
        return self

    def limit(self, count: int) -> "Query":
        self.max_items = max(1, min(int(count), MAX_QUERY_LIMIT))
        return self

    def matches(self, record: dict[str, Any]) -> bool:
        for op, field_name, value in self.filters:
            current = record.get(field_name)
            if op == "eq" and current != value:
                return False
            if op in ("ge", "le") and not _compare(current, value, op):
                return False
            if op == "has_some":
                present = current if isinstance(current, (list, tuple, set)) else [current]
                if not any(item in present for item in value):
                    return False
        return True


@dataclass
class QueryResult:
    items: list[dict[str, Any]]
    total_count: int


@runtime_checkable
class DocumentStore(Protocol):
    """Primitive operations the persistence adapter relies on."""

    async def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def update(
        self, collection: str, record_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]: ...

    async def remove(self, collection: str, record_id: str) -> bool: ...

    async def query(self, collection: str, query: Query) -> QueryResult: ...

    async def bulk_insert(
        self, collection: str, records: list[dict[str, Any]]
    ) -> list[dict[str, Any]]: ...


class InMemoryDocumentStore:
    """Dict-backed store. Records are copied on the way in and out."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.operations: list[tuple[str, str]] = []

    def _table(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        self.operations.append(("insert", collection))
        stored = copy.deepcopy(record)
        stored.setdefault("_id", uuid.uuid4().hex)
        self._table(collection)[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def update(
        self, collection: str, record_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        self.operations.append(("update", collection))
        table = self._table(collection)
        if record_id not in table:
            raise RecordNotFoundError(f"{collection}/{record_id}")
        merged = {**table[record_id], **copy.deepcopy(patch), "_id": record_id}
        table[record_id] = merged
        return copy.deepcopy(merged)

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        self.operations.append(("get", collection))
        record = self._table(collection).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def remove(self, collection: str, record_id: str) -> bool:
        self.operations.append(("remove", collection))
        return self._table(collection).pop(record_id, None) is not None

    async def query(self, collection: str, query: Query) -> QueryResult:
        self.operations.append(("query", collection))
        matched = [r for r in self._table(collection).values() if query.matches(r)]
        # Stable sorts applied last-key-first give multi-key ordering.
        for field_name, descending in reversed(query.sort):
            matched.sort(
                key=lambda r: (r.get(field_name) is None, r.get(field_name) or 0),
                reverse=descending,
            )
        return QueryResult(
            items=[copy.deepcopy(r) for r in matched[: query.max_items]],
            total_count=len(matched),
        )

    async def bulk_insert(
        self, collection: str, records: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        return [await self.insert(collection, record) for record in records]

