"""Role-based permission scoping for assistant tools.

The permission matrix is declarative data: each role maps resources to the
operations it may perform and the record scope those operations apply to.
A (role, resource, operation) triple that is absent from the matrix is
denied. Owned-record scope narrows every query and mutation to the caller's
own resource id; it is never widened by anything the model asks for.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from ...data.store import Filter
from ..orchestration.types import SessionContext
from .errors import PermissionDeniedError

__all__ = [
    "Resource",
    "Operation",
    "RecordScope",
    "ResourcePolicy",
    "ROLE_PERMISSIONS",
    "PermissionScope",
]

LOGGER = logging.getLogger(__name__)


class Resource:
    """Permission resources (one per data area)."""

    TIMESHEETS = "timesheets"
    EXPENSES = "expenses"
    MILESTONES = "milestones"
    DELIVERABLES = "deliverables"
    TASKS = "tasks"
    RAID = "raid"
    RESOURCES = "resources"


class Operation:
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    SUBMIT = "submit"
    VALIDATE = "validate"
    APPROVE = "approve"
    SIGNOFF = "signoff"


class RecordScope(str, Enum):
    PROJECT = "project"
    OWN = "own"


@dataclass(slots=True, frozen=True)
class ResourcePolicy:
    operations: frozenset[str]
    scope: RecordScope = RecordScope.PROJECT


def _policy(*operations: str, scope: RecordScope = RecordScope.PROJECT) -> ResourcePolicy:
    return ResourcePolicy(operations=frozenset(operations), scope=scope)


_ALL_OPERATIONS = (
    Operation.VIEW,
    Operation.CREATE,
    Operation.EDIT,
    Operation.DELETE,
    Operation.SUBMIT,
    Operation.VALIDATE,
    Operation.APPROVE,
    Operation.SIGNOFF,
)

ROLE_PERMISSIONS: Mapping[str, Mapping[str, ResourcePolicy]] = {
    "admin": {
        resource: _policy(*_ALL_OPERATIONS)
        for resource in (
            Resource.TIMESHEETS,
            Resource.EXPENSES,
            Resource.MILESTONES,
            Resource.DELIVERABLES,
            Resource.TASKS,
            Resource.RAID,
            Resource.RESOURCES,
        )
    },
    "supplier_pm": {
        Resource.TIMESHEETS: _policy("view", "create", "edit", "submit", "validate", "approve"),
        Resource.EXPENSES: _policy("view", "create", "edit", "submit", "validate", "approve"),
        Resource.MILESTONES: _policy("view", "create", "edit", "delete"),
        Resource.DELIVERABLES: _policy("view", "create", "edit", "delete", "signoff"),
        Resource.TASKS: _policy("view", "create", "edit", "delete"),
        Resource.RAID: _policy("view", "create", "edit", "delete"),
        Resource.RESOURCES: _policy("view"),
    },
    "customer_pm": {
        Resource.TIMESHEETS: _policy("view", "validate", "approve"),
        Resource.EXPENSES: _policy("view", "validate", "approve"),
        Resource.MILESTONES: _policy("view"),
        Resource.DELIVERABLES: _policy("view", "signoff"),
        Resource.TASKS: _policy("view"),
        Resource.RAID: _policy("view", "create", "edit"),
        Resource.RESOURCES: _policy("view"),
    },
    "supplier_finance": {
        Resource.TIMESHEETS: _policy("view", "approve"),
        Resource.EXPENSES: _policy("view", "approve"),
        Resource.MILESTONES: _policy("view"),
        Resource.DELIVERABLES: _policy("view"),
        Resource.TASKS: _policy("view"),
        Resource.RAID: _policy("view"),
        Resource.RESOURCES: _policy("view"),
    },
    "customer_finance": {
        Resource.TIMESHEETS: _policy("view", "approve"),
        Resource.EXPENSES: _policy("view", "approve"),
        Resource.MILESTONES: _policy("view"),
        Resource.DELIVERABLES: _policy("view"),
        Resource.TASKS: _policy("view"),
        Resource.RAID: _policy("view"),
        Resource.RESOURCES: _policy("view"),
    },
    "contributor": {
        Resource.TIMESHEETS: _policy("view", "create", "edit", "submit", scope=RecordScope.OWN),
        Resource.EXPENSES: _policy("view", "create", "edit", "submit", scope=RecordScope.OWN),
        Resource.MILESTONES: _policy("view"),
        Resource.DELIVERABLES: _policy("view", "edit"),
        Resource.TASKS: _policy("view", "edit"),
        Resource.RAID: _policy("view", "create", "edit"),
        Resource.RESOURCES: _policy("view"),
    },
    "viewer": {
        Resource.TIMESHEETS: _policy("view"),
        Resource.EXPENSES: _policy("view"),
        Resource.MILESTONES: _policy("view"),
        Resource.DELIVERABLES: _policy("view"),
        Resource.TASKS: _policy("view"),
        Resource.RAID: _policy("view"),
        Resource.RESOURCES: _policy("view"),
    },
}


class PermissionScope:
    """Permission view of one session context.

    Example:
        scope = PermissionScope.for_context(context)
        scope.require("milestones", "edit")
        rows = await store.select("milestones", scope.filters_for("milestones"))
    """

    def __init__(
        self,
        context: SessionContext,
        matrix: Mapping[str, Mapping[str, ResourcePolicy]] | None = None,
    ) -> None:
        self._context = context
        source = ROLE_PERMISSIONS if matrix is None else matrix
        self._policies: Mapping[str, ResourcePolicy] = source.get(context.user.role, {})

    @classmethod
    def for_context(cls, context: SessionContext) -> "PermissionScope":
        return cls(context)

    @property
    def context(self) -> SessionContext:
        return self._context

    def policy(self, resource: str) -> ResourcePolicy | None:
        return self._policies.get(resource)

    def allows(self, resource: str, operation: str) -> bool:
        policy = self._policies.get(resource)
        if policy is None or operation not in policy.operations:
            return False
        if policy.scope is RecordScope.OWN and not self._context.user.resource_id:
            return False
        return True

    def require(self, resource: str, operation: str) -> None:
        """Raise :class:`PermissionDeniedError` unless ``operation`` is allowed."""
        policy = self._policies.get(resource)
        if policy is None or operation not in policy.operations:
            LOGGER.info(
                "Denied %s on %s for role %s",
                operation,
                resource,
                self._context.user.role,
            )
            raise PermissionDeniedError(
                message=f"You don't have permission to {operation} {resource}",
                resource=resource,
                operation=operation,
            )
        if policy.scope is RecordScope.OWN and not self._context.user.resource_id:
            raise PermissionDeniedError(
                message=f"You don't have a linked resource profile, so your {resource} can't be identified",
                resource=resource,
                operation=operation,
            )

    def is_own_only(self, resource: str) -> bool:
        policy = self._policies.get(resource)
        return policy is not None and policy.scope is RecordScope.OWN

    def filters_for(self, resource: str) -> list[Filter]:
        """Data-store filters every query against ``resource`` must carry."""
        filters = [Filter.eq("project_id", self._context.project_id)]
        if self.is_own_only(resource):
            resource_id = self._context.user.resource_id
            if not resource_id:
                raise PermissionDeniedError(
                    message=f"You don't have a linked resource profile, so your {resource} can't be identified",
                    resource=resource,
                    operation=Operation.VIEW,
                )
            filters.append(Filter.eq("resource_id", resource_id))
        return filters

    def narrow(self, resource: str, params: Mapping[str, Any], owner_field: str) -> dict[str, Any]:
        """Return ``params`` with ``owner_field`` pinned to the caller for own-only resources."""
        narrowed = dict(params)
        if not self.is_own_only(resource):
            return narrowed
        resource_id = self._context.user.resource_id
        if not resource_id:
            raise PermissionDeniedError(
                message=f"You don't have a linked resource profile, so your {resource} can't be identified",
                resource=resource,
                operation=Operation.VIEW,
            )
        requested = narrowed.get(owner_field)
        if requested and requested != resource_id:
            LOGGER.debug("Narrowed %s.%s from %s to caller's own resource", resource, owner_field, requested)
        narrowed[owner_field] = resource_id
        return narrowed

    def owns(self, record: Mapping[str, Any], owner_field: str = "resource_id") -> bool:
        resource_id = self._context.user.resource_id
        return bool(resource_id) and record.get(owner_field) == resource_id
