"""Read tools: project data queries the model can run without confirmation."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, ClassVar, Mapping

from ...data.store import Entity, Filter
from .base import ReadTool, ToolContext
from .permissions import Resource

__all__ = [
    "DATE_RANGES",
    "date_range_bounds",
    "GetMilestonesTool",
    "GetDeliverablesTool",
    "GetTimesheetsTool",
    "GetExpensesTool",
    "GetRaidItemsTool",
    "GetTasksTool",
    "GetResourcesTool",
    "FindEntityTool",
    "QUERY_TOOLS",
]

DATE_RANGES = ("thisWeek", "lastWeek", "thisMonth", "all")

_DATE_RANGE_SCHEMA = {
    "type": "string",
    "enum": list(DATE_RANGES),
    "description": "Optional date range filter. Default is 'all'.",
}


def date_range_bounds(name: str | None, today: date) -> tuple[date, date] | None:
    """Inclusive (start, end) dates for a named range; None for 'all'.

    Weeks start on Sunday.
    """
    if not name or name == "all":
        return None
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    if name == "thisWeek":
        return week_start, week_start + timedelta(days=6)
    if name == "lastWeek":
        return week_start - timedelta(days=7), week_start - timedelta(days=1)
    if name == "thisMonth":
        month_start = today.replace(day=1)
        next_month = (month_start + timedelta(days=32)).replace(day=1)
        return month_start, next_month - timedelta(days=1)
    return None


def date_filters(name: str | None, today: date, field: str = "date") -> list[Filter]:
    bounds = date_range_bounds(name, today)
    if bounds is None:
        return []
    start, end = bounds
    return [Filter(field, "gte", start.isoformat()), Filter(field, "lte", end.isoformat())]


def _status_schema(values: tuple[str, ...], label: str) -> dict[str, Any]:
    return {"type": "string", "enum": list(values), "description": f"Optional {label} status filter"}


def object_schema(properties: Mapping[str, Any], required: tuple[str, ...] = ()) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": dict(properties),
        "required": list(required),
        "additionalProperties": False,
    }


MILESTONE_STATUSES = ("Not Started", "In Progress", "Completed")
DELIVERABLE_STATUSES = ("Not Started", "In Progress", "Submitted for Review", "Review Complete", "Delivered")
TASK_STATUSES = ("Not Started", "In Progress", "Complete")
VALIDATION_STATUSES = ("Draft", "Submitted", "Validated", "Approved", "Rejected")
RAID_TYPES = ("Risk", "Assumption", "Issue", "Dependency")
RAID_STATUSES = ("Open", "In Progress", "Mitigated", "Closed")


class _ListTool(ReadTool):
    """Lists records of one entity with optional equality filters."""

    entity: ClassVar[str] = ""
    result_key: ClassVar[str] = ""
    order_by: ClassVar[str | None] = None
    # parameter name -> record field
    equality_filters: ClassVar[Mapping[str, str]] = {}
    date_field: ClassVar[str | None] = None

    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        filters = context.scope.filters_for(self.resource)
        for param, record_field in self.equality_filters.items():
            value = params.get(param)
            if value is not None:
                filters.append(Filter.eq(record_field, value))
        if self.date_field:
            filters.extend(date_filters(params.get("dateRange"), context.today(), self.date_field))
        rows = await context.select(self.entity, filters, order_by=self.order_by)
        payload: dict[str, Any] = {self.result_key: [self.summarize(row) for row in rows], "count": len(rows)}
        self.add_totals(payload, rows)
        return payload

    def summarize(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in row.items() if key != "project_id"}

    def add_totals(self, payload: dict[str, Any], rows: list[dict[str, Any]]) -> None:
        return None


class GetMilestonesTool(_ListTool):
    name = "getMilestones"
    description = "List the project's milestones with status, progress and dates."
    parameters = object_schema({"status": _status_schema(MILESTONE_STATUSES, "milestone")})
    resource = Resource.MILESTONES
    entity = Entity.MILESTONES
    result_key = "milestones"
    order_by = "name"
    equality_filters = {"status": "status"}


class GetDeliverablesTool(_ListTool):
    name = "getDeliverables"
    description = "List the project's deliverables with their status."
    parameters = object_schema({"status": _status_schema(DELIVERABLE_STATUSES, "deliverable")})
    resource = Resource.DELIVERABLES
    entity = Entity.DELIVERABLES
    result_key = "deliverables"
    order_by = "name"
    equality_filters = {"status": "status"}


class GetTimesheetsTool(_ListTool):
    name = "getTimesheets"
    description = (
        "List timesheet entries. Filter by resource, validation status or date range. "
        "Contributors only ever see their own timesheets."
    )
    parameters = object_schema(
        {
            "resourceId": {"type": "string", "description": "Only timesheets of this resource"},
            "status": _status_schema(VALIDATION_STATUSES, "validation"),
            "dateRange": _DATE_RANGE_SCHEMA,
        }
    )
    resource = Resource.TIMESHEETS
    owner_param = "resourceId"
    entity = Entity.TIMESHEETS
    result_key = "timesheets"
    order_by = "date"
    equality_filters = {"resourceId": "resource_id", "status": "validation_status"}
    date_field = "date"

    def add_totals(self, payload: dict[str, Any], rows: list[dict[str, Any]]) -> None:
        payload["totalHours"] = sum(float(row.get("hours") or 0) for row in rows)


class GetExpensesTool(_ListTool):
    name = "getExpenses"
    description = (
        "List expenses. Filter by resource, validation status or date range. "
        "Contributors only ever see their own expenses."
    )
    parameters = object_schema(
        {
            "resourceId": {"type": "string", "description": "Only expenses of this resource"},
            "status": _status_schema(VALIDATION_STATUSES, "validation"),
            "dateRange": _DATE_RANGE_SCHEMA,
        }
    )
    resource = Resource.EXPENSES
    owner_param = "resourceId"
    entity = Entity.EXPENSES
    result_key = "expenses"
    order_by = "date"
    equality_filters = {"resourceId": "resource_id", "status": "validation_status"}
    date_field = "date"

    def add_totals(self, payload: dict[str, Any], rows: list[dict[str, Any]]) -> None:
        payload["totalAmount"] = sum(float(row.get("amount") or 0) for row in rows)


class GetRaidItemsTool(_ListTool):
    name = "getRaidItems"
    description = "List RAID items (risks, assumptions, issues, dependencies) by type and status."
    parameters = object_schema(
        {
            "type": {"type": "string", "enum": list(RAID_TYPES), "description": "Optional RAID type filter"},
            "status": _status_schema(RAID_STATUSES, "RAID"),
        }
    )
    resource = Resource.RAID
    entity = Entity.RAID_ITEMS
    result_key = "raidItems"
    order_by = "reference_number"
    equality_filters = {"type": "type", "status": "status"}


class GetTasksTool(_ListTool):
    name = "getTasks"
    description = "List the project's tasks with status, progress and assignee."
    parameters = object_schema({"status": _status_schema(TASK_STATUSES, "task")})
    resource = Resource.TASKS
    entity = Entity.TASKS
    result_key = "tasks"
    order_by = "name"
    equality_filters = {"status": "status"}


class GetResourcesTool(_ListTool):
    name = "getResources"
    description = "List the people (resources) working on the project."
    parameters = object_schema({})
    resource = Resource.RESOURCES
    entity = Entity.RESOURCES
    result_key = "resources"
    order_by = "name"


_FINDABLE = {
    Entity.MILESTONES: Resource.MILESTONES,
    Entity.DELIVERABLES: Resource.DELIVERABLES,
    Entity.TASKS: Resource.TASKS,
    Entity.RAID_ITEMS: Resource.RAID,
    Entity.RESOURCES: Resource.RESOURCES,
}


class FindEntityTool(ReadTool):
    """Resolve a name, id or RAID reference to a record, reporting ambiguity."""

    name = "findEntity"
    description = (
        "Find a single record by name, id or RAID reference (e.g. R-007). "
        "If several records match, the candidates are returned and the user must choose."
    )
    parameters = object_schema(
        {
            "identifier": {"type": "string", "minLength": 1, "description": "Name, id or reference"},
            "entityType": {"type": "string", "enum": list(_FINDABLE)},
        },
        required=("identifier", "entityType"),
    )
    resource = Resource.RESOURCES
    cacheable = False

    async def read(self, context: ToolContext, params: dict[str, Any]) -> dict[str, Any]:
        entity_type = params["entityType"]
        resource = _FINDABLE[entity_type]
        context.scope.require(resource, "view")
        resolved = await context.resolver.resolve(
            params["identifier"],
            entity_type,
            context.session,
            filters=context.scope.filters_for(resource),
        )
        if resolved is None:
            return {"found": False, "entityType": entity_type, "identifier": params["identifier"]}
        payload = resolved.to_dict()
        payload["found"] = True
        payload["entityType"] = entity_type
        return payload


QUERY_TOOLS = (
    GetMilestonesTool,
    GetDeliverablesTool,
    GetTimesheetsTool,
    GetExpensesTool,
    GetRaidItemsTool,
    GetTasksTool,
    GetResourcesTool,
    FindEntityTool,
)
