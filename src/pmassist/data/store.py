"""Data store boundary for project records.

The orchestration layer only talks to project data through the
:class:`DataStore` protocol: scoped reads and writes keyed by entity type and
a list of filter predicates. :class:`InMemoryDataStore` is the reference
implementation used by tests and local runs.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from threading import RLock
from typing import Any, Iterable, Literal, Mapping, Protocol, Sequence, runtime_checkable

__all__ = [
    "Entity",
    "Filter",
    "FilterOp",
    "DataStore",
    "DataStoreError",
    "RecordNotFoundError",
    "ConflictError",
    "TransientStoreError",
    "StorePermissionError",
    "InMemoryDataStore",
]

LOGGER = logging.getLogger(__name__)


class Entity:
    """Entity (table) names understood by the bundled tools."""

    MILESTONES = "milestones"
    DELIVERABLES = "deliverables"
    TASKS = "tasks"
    RAID_ITEMS = "raid_items"
    TIMESHEETS = "timesheets"
    EXPENSES = "expenses"
    RESOURCES = "resources"


# -----------------------------------------------------------------------------
# Error signatures
# -----------------------------------------------------------------------------


class DataStoreError(Exception):
    """Base class for errors raised by a data store."""

    signature = "data_store_error"


class RecordNotFoundError(DataStoreError):
    signature = "not_found"


class ConflictError(DataStoreError):
    signature = "conflict"


class TransientStoreError(DataStoreError):
    """Timeouts, connection resets and 5xx-class gateway failures."""

    signature = "transient_unavailable"

    def __init__(self, message: str = "data store temporarily unavailable", *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorePermissionError(DataStoreError):
    signature = "permission"


# -----------------------------------------------------------------------------
# Filters
# -----------------------------------------------------------------------------

FilterOp = Literal["eq", "ilike", "gte", "lte", "in"]


@dataclass(slots=True, frozen=True)
class Filter:
    """A single filter predicate.

    ``ilike`` performs a case-insensitive substring match, ``in`` expects a
    sequence value.
    """

    field: str
    op: FilterOp
    value: Any

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field, "eq", value)

    def matches(self, record: Mapping[str, Any]) -> bool:
        actual = record.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "ilike":
            return actual is not None and str(self.value).lower() in str(actual).lower()
        if self.op == "in":
            return actual in tuple(self.value)
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= self.value
        if self.op == "lte":
            return actual <= self.value
        raise ValueError(f"Unsupported filter op: {self.op}")

    def to_key(self) -> tuple[str, str, Any]:
        value = self.value
        if self.op == "in":
            value = tuple(sorted(str(item) for item in value))
        return (self.field, self.op, value)


# -----------------------------------------------------------------------------
# Protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class DataStore(Protocol):
    """Protocol for project data access."""

    async def select(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return records of ``entity`` matching every filter."""
        ...

    async def get(self, entity: str, record_id: str) -> dict[str, Any] | None:
        """Return one record by id, or None."""
        ...

    async def update(
        self,
        entity: str,
        record_ids: Sequence[str],
        changes: Mapping[str, Any],
    ) -> int:
        """Apply ``changes`` to the given records; returns the number updated.

        Raises:
            RecordNotFoundError: If any id does not exist.
        """
        ...


# -----------------------------------------------------------------------------
# In-memory implementation
# -----------------------------------------------------------------------------


class InMemoryDataStore:
    """Thread-safe in-memory :class:`DataStore`.

    Records are deep-copied on the way in and out so callers can never mutate
    stored state by accident. ``calls`` counts operations per entity, which
    tests use to assert cache behaviour.

    Example:
        store = InMemoryDataStore({"milestones": [{"id": "m1", "name": "Kickoff"}]})
        rows = await store.select("milestones", [Filter.eq("name", "Kickoff")])
    """

    def __init__(self, records: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = RLock()
        self.calls: Counter[str] = Counter()
        self._failures: list[BaseException] = []
        for entity, rows in (records or {}).items():
            for row in rows:
                self.insert(entity, row)

    def insert(self, entity: str, record: Mapping[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(dict(record))
        row.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            self._tables.setdefault(entity, {})[str(row["id"])] = row
        return copy.deepcopy(row)

    def fail_next(self, *errors: BaseException) -> None:
        """Queue errors raised by the next operations, one per call."""
        with self._lock:
            self._failures.extend(errors)

    def snapshot(self, entity: str, record_id: str) -> dict[str, Any] | None:
        """Synchronous read used by tests to inspect state."""
        with self._lock:
            row = self._tables.get(entity, {}).get(record_id)
            return copy.deepcopy(row) if row is not None else None

    async def select(
        self,
        entity: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        with self._lock:
            self._record_call(f"select:{entity}")
            rows = [row for row in self._tables.get(entity, {}).values() if all(f.matches(row) for f in filters)]
            if order_by:
                rows.sort(key=lambda row: (row.get(order_by) is None, row.get(order_by)))
            if limit is not None:
                rows = rows[: max(0, limit)]
            return copy.deepcopy(rows)

    async def get(self, entity: str, record_id: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        with self._lock:
            self._record_call(f"get:{entity}")
            row = self._tables.get(entity, {}).get(str(record_id))
            return copy.deepcopy(row) if row is not None else None

    async def update(
        self,
        entity: str,
        record_ids: Sequence[str],
        changes: Mapping[str, Any],
    ) -> int:
        await asyncio.sleep(0)
        with self._lock:
            self._record_call(f"update:{entity}")
            table = self._tables.get(entity, {})
            missing = [record_id for record_id in record_ids if str(record_id) not in table]
            if missing:
                raise RecordNotFoundError(f"{entity} record(s) not found: {', '.join(map(str, missing))}")
            for record_id in record_ids:
                table[str(record_id)].update(copy.deepcopy(dict(changes)))
            LOGGER.debug("Updated %d %s record(s)", len(record_ids), entity)
            return len(record_ids)

    def _record_call(self, key: str) -> None:
        self.calls[key] += 1
        if self._failures:
            raise self._failures.pop(0)
