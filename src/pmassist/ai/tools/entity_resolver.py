"""Turn free-text references ("Phase 1 Review", "R-007") into concrete records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ...data.store import DataStore, Entity, Filter
from ..orchestration.services.retry import RetryPolicy
from ..orchestration.types import SessionContext
from .errors import AmbiguousEntityError, EntityNotFoundError

__all__ = [
    "ResolvedEntity",
    "EntityResolver",
    "RAID_TYPE_PREFIXES",
    "ENTITY_LABELS",
    "name_field_for",
]

LOGGER = logging.getLogger(__name__)

_UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_RAID_REFERENCE_PATTERN = re.compile(r"^([RAID])-?(\d+)$", re.IGNORECASE)

RAID_TYPE_PREFIXES: Mapping[str, str] = {
    "R": "Risk",
    "A": "Assumption",
    "I": "Issue",
    "D": "Dependency",
}

ENTITY_LABELS: Mapping[str, str] = {
    Entity.MILESTONES: "milestone",
    Entity.DELIVERABLES: "deliverable",
    Entity.TASKS: "task",
    Entity.RAID_ITEMS: "RAID item",
    Entity.TIMESHEETS: "timesheet",
    Entity.EXPENSES: "expense",
    Entity.RESOURCES: "resource",
}


def name_field_for(entity_type: str) -> str:
    return "title" if entity_type == Entity.RAID_ITEMS else "name"


@dataclass(slots=True, frozen=True)
class ResolvedEntity:
    """Result of resolving one identifier.

    Attributes:
        id: Id of the chosen record; empty when ambiguous.
        display_name: Name (or title) of the chosen record.
        ambiguity_count: Number of matching records. Greater than one means
            nothing was chosen and the user must pick from ``candidates``.
        candidates: Summaries of every match when ambiguous.
        record: The chosen record.
    """

    id: str
    display_name: str
    ambiguity_count: int = 1
    candidates: tuple[dict[str, Any], ...] = ()
    record: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_ambiguous(self) -> bool:
        return self.ambiguity_count > 1

    def to_dict(self) -> dict[str, Any]:
        if self.is_ambiguous:
            return {
                "ambiguous": True,
                "count": self.ambiguity_count,
                "candidates": [dict(candidate) for candidate in self.candidates],
            }
        return {"id": self.id, "name": self.display_name, "record": dict(self.record)}


class EntityResolver:
    """Resolves identifiers within the caller's project scope.

    Lookup order: exact id (UUIDs case-insensitively), RAID reference shapes
    (``R-007``, ``i23``) by type and reference number, then a
    case-insensitive substring match on the name field. A unique exact
    full-name match breaks ties; otherwise multiple matches are reported and
    never auto-selected.
    """

    def __init__(self, store: DataStore, retry: RetryPolicy | None = None) -> None:
        self._store = store
        self._retry = retry

    async def resolve(
        self,
        identifier: str,
        entity_type: str,
        context: SessionContext,
        *,
        filters: Sequence[Filter] = (),
    ) -> ResolvedEntity | None:
        text = (identifier or "").strip()
        if not text:
            return None
        scope = self._scope_filters(context, filters)
        name_field = name_field_for(entity_type)

        rows = await self._select(entity_type, [*scope, Filter.eq("id", text)])
        if not rows and _UUID_PATTERN.match(text) and text != text.lower():
            rows = await self._select(entity_type, [*scope, Filter.eq("id", text.lower())])
        if rows:
            return self._single(rows[0], name_field)

        if entity_type == Entity.RAID_ITEMS:
            match = _RAID_REFERENCE_PATTERN.match(text)
            if match:
                raid_type = RAID_TYPE_PREFIXES[match.group(1).upper()]
                reference = int(match.group(2), 10)
                rows = await self._select(
                    entity_type,
                    [*scope, Filter.eq("type", raid_type), Filter.eq("reference_number", reference)],
                )
                if len(rows) == 1:
                    return self._single(rows[0], name_field)
                if rows:
                    return self._ambiguous(rows, name_field)

        rows = await self._select(
            entity_type,
            [*scope, Filter(name_field, "ilike", text)],
            order_by=name_field,
        )
        if not rows:
            LOGGER.debug("No %s matched %r", entity_type, text)
            return None
        if len(rows) == 1:
            return self._single(rows[0], name_field)

        lowered = text.lower()
        exact = [row for row in rows if str(row.get(name_field) or "").lower() == lowered]
        if len(exact) == 1:
            return self._single(exact[0], name_field)
        LOGGER.debug("%d %s records matched %r", len(rows), entity_type, text)
        return self._ambiguous(rows, name_field)

    async def require(
        self,
        identifier: str,
        entity_type: str,
        context: SessionContext,
        *,
        filters: Sequence[Filter] = (),
    ) -> ResolvedEntity:
        """Resolve exactly one record or raise.

        Raises:
            EntityNotFoundError: Nothing matched.
            AmbiguousEntityError: Several records matched.
        """
        label = ENTITY_LABELS.get(entity_type, entity_type)
        resolved = await self.resolve(identifier, entity_type, context, filters=filters)
        if resolved is None:
            raise EntityNotFoundError(
                message=f'No {label} matching "{identifier}" was found',
                entity_type=entity_type,
                identifier=identifier,
            )
        if resolved.is_ambiguous:
            names = ", ".join(str(candidate.get("name")) for candidate in resolved.candidates)
            raise AmbiguousEntityError(
                message=f'Multiple {label}s match "{identifier}": {names}. Please be more specific.',
                entity_type=entity_type,
                identifier=identifier,
                candidates=resolved.candidates,
            )
        return resolved

    async def _select(
        self,
        entity_type: str,
        filters: Sequence[Filter],
        *,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        if self._retry is None:
            return await self._store.select(entity_type, filters, order_by=order_by)
        return await self._retry.run(self._store.select, entity_type, filters, order_by=order_by)

    @staticmethod
    def _scope_filters(context: SessionContext, filters: Sequence[Filter]) -> list[Filter]:
        scoped = list(filters)
        if not any(item.field == "project_id" for item in scoped):
            scoped.insert(0, Filter.eq("project_id", context.project_id))
        return scoped

    @staticmethod
    def _single(row: Mapping[str, Any], name_field: str) -> ResolvedEntity:
        return ResolvedEntity(
            id=str(row["id"]),
            display_name=str(row.get(name_field) or ""),
            ambiguity_count=1,
            record=dict(row),
        )

    @staticmethod
    def _ambiguous(rows: Sequence[Mapping[str, Any]], name_field: str) -> ResolvedEntity:
        candidates = []
        for row in rows:
            candidate: dict[str, Any] = {"id": str(row["id"]), "name": row.get(name_field)}
            if row.get("status") is not None:
                candidate["status"] = row.get("status")
            if row.get("reference_number") is not None:
                candidate["reference"] = row.get("reference_number")
            candidates.append(candidate)
        return ResolvedEntity(
            id="",
            display_name="",
            ambiguity_count=len(rows),
            candidates=tuple(candidates),
        )
