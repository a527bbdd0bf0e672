"""Mutating tools. Every one of them runs through the confirmation gate.

``prepare`` resolves free-text references to record ids, enforces the
business rules against the record's current state and renders the preview;
``apply`` performs the write described by the resulting plan.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any, ClassVar, Mapping

from ...data.store import Entity, Filter
from .base import ActionPlan, MutatingTool, ToolContext
from .entity_resolver import ResolvedEntity
from .errors import ActionRejectedError, EntityNotFoundError
from .permissions import Operation, Resource
from .query_tools import (
    DATE_RANGES,
    DELIVERABLE_STATUSES,
    MILESTONE_STATUSES,
    RAID_STATUSES,
    object_schema,
    date_filters,
)

__all__ = [
    "SubmitTimesheetTool",
    "SubmitAllTimesheetsTool",
    "SubmitExpenseTool",
    "SubmitAllExpensesTool",
    "UpdateMilestoneStatusTool",
    "UpdateMilestoneProgressTool",
    "UpdateDeliverableStatusTool",
    "CompleteTaskTool",
    "UpdateTaskProgressTool",
    "ReassignTaskTool",
    "UpdateRaidStatusTool",
    "ResolveRaidItemTool",
    "AssignRaidOwnerTool",
    "ACTION_TOOLS",
]

_DEFAULT_CURRENCY = "£"
_PROGRESS_SCHEMA = {
    "type": "integer",
    "minimum": 0,
    "maximum": 100,
    "description": "The new progress percentage (0-100)",
}
_RAID_IDENTIFIER_SCHEMA = {
    "type": "string",
    "minLength": 1,
    "description": "The RAID item reference (e.g., R-001, I-023) or title",
}
_DATE_RANGE_SCHEMA = {
    "type": "string",
    "enum": list(DATE_RANGES),
    "description": "Optional date range filter. Default is 'all'.",
}


def _fmt(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stamped_note(existing: str | None, note: str, stamp: str) -> str:
    entry = f"[{stamp}] {note}"
    return f"{existing}\n{entry}" if existing else entry


def _raid_reference(record: Mapping[str, Any]) -> str:
    number = record.get("reference_number")
    prefix = str(record.get("type") or "?")[:1].upper()
    return f"{prefix}-{int(number):03d}" if number is not None else ""


async def _resource_name(context: ToolContext, resource_id: str | None) -> str:
    if not resource_id:
        return "Unassigned"
    record = await context.get(Entity.RESOURCES, resource_id)
    if record is None or record.get("project_id") != context.session.project_id:
        return "Unassigned"
    return str(record.get("name") or "Unassigned")


async def _resolve_person(context: ToolContext, identifier: str) -> ResolvedEntity:
    return await context.resolver.require(
        identifier,
        Entity.RESOURCES,
        context.session,
        filters=context.scope.filters_for(Resource.RESOURCES),
    )


# -----------------------------------------------------------------------------
# Timesheets and expenses
# -----------------------------------------------------------------------------


class _SubmitOneTool(MutatingTool):
    """Submit a single Draft record owned by the caller."""

    operation = Operation.SUBMIT
    entity: ClassVar[str] = ""
    id_param: ClassVar[str] = ""
    label: ClassVar[str] = ""

    async def prepare(self, context: ToolContext, params: dict[str, Any]) -> ActionPlan:
        record_id = str(params[self.id_param])
        filters = [*context.scope.filters_for(self.resource), Filter.eq("id", record_id)]
        rows = await context.select(self.entity, filters)
        if not rows:
            raise EntityNotFoundError(
                message=f"That {self.label} could not be found",
                entity_type=self.entity,
                identifier=record_id,
            )
        record = rows[0]
        if not context.scope.owns(record):
            raise ActionRejectedError(message=f"You can only submit your own {self.label}s")
        status = record.get("validation_status")
        if status != "Draft":
            raise ActionRejectedError(message=f"{self.label.capitalize()} is already {status}, cannot submit")
        data = await self.preview_data(context, record)
        return ActionPlan(
            parameters={self.id_param: record["id"]},
            preview=self.render(data),
            data=data,
            targets=(record,),
        )

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        await context.store.update(
            self.entity,
            [record["id"]],
            {"validation_status": "Submitted", "submitted_at": _now_iso()},
        )
        return self.success_message(plan.data)

    @abstractmethod
    async def preview_data(self, context: ToolContext, record: Mapping[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def render(self, data: Mapping[str, Any]) -> str:
        ...

    @abstractmethod
    def success_message(self, data: Mapping[str, Any]) -> str:
        ...


class SubmitTimesheetTool(_SubmitOneTool):
    name = "submitTimesheet"
    description = (
        "Submit a single draft timesheet for approval. The timesheet must be in Draft "
        "status and belong to the current user. Returns a preview the user must confirm."
    )
    parameters = object_schema(
        {"timesheetId": {"type": "string", "minLength": 1, "description": "The ID of the timesheet to submit"}},
        required=("timesheetId",),
    )
    resource = Resource.TIMESHEETS
    entity = Entity.TIMESHEETS
    id_param = "timesheetId"
    label = "timesheet"

    async def preview_data(self, context: ToolContext, record: Mapping[str, Any]) -> dict[str, Any]:
        deliverable = "General"
        if record.get("deliverable_id"):
            row = await context.get(Entity.DELIVERABLES, str(record["deliverable_id"]))
            if row is not None and row.get("name"):
                deliverable = str(row["name"])
        return {
            "date": record.get("date"),
            "hours": record.get("hours"),
            "deliverable": deliverable,
            "currentStatus": record.get("validation_status"),
        }

    def render(self, data: Mapping[str, Any]) -> str:
        return f"Submit timesheet for {data['date']}: {_fmt(data['hours'])} hours on {data['deliverable'] or 'project work'}"

    def success_message(self, data: Mapping[str, Any]) -> str:
        return f"Timesheet submitted for approval ({data['date']}: {_fmt(data['hours'])} hours)"


class SubmitExpenseTool(_SubmitOneTool):
    name = "submitExpense"
    description = (
        "Submit a single draft expense for approval. The expense must be in Draft status "
        "and belong to the current user."
    )
    parameters = object_schema(
        {"expenseId": {"type": "string", "minLength": 1, "description": "The ID of the expense to submit"}},
        required=("expenseId",),
    )
    resource = Resource.EXPENSES
    entity = Entity.EXPENSES
    id_param = "expenseId"
    label = "expense"

    async def preview_data(self, context: ToolContext, record: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "description": record.get("description"),
            "amount": record.get("amount"),
            "currency": record.get("currency") or _DEFAULT_CURRENCY,
            "currentStatus": record.get("validation_status"),
        }

    def render(self, data: Mapping[str, Any]) -> str:
        return f"Submit expense: {data['description']} - {data['currency']}{_fmt(data['amount'])}"

    def success_message(self, data: Mapping[str, Any]) -> str:
        return f"Expense submitted for approval ({data['description']}: {data['currency']}{_fmt(data['amount'])})"


class _SubmitAllTool(MutatingTool):
    """Submit every Draft record of the caller in an optional date range."""

    operation = Operation.SUBMIT
    entity: ClassVar[str] = ""
    label: ClassVar[str] = ""

    async def prepare(self, context: ToolContext, params: dict[str, Any]) -> ActionPlan:
        date_range = params.get("dateRange") or "all"
        resource_id = context.session.user.resource_id
        if not resource_id:
            raise ActionRejectedError(
                message=f"You don't have a linked resource profile. Cannot identify your {self.label}s."
            )
        filters = [
            Filter.eq("project_id", context.session.project_id),
            Filter.eq("resource_id", resource_id),
            Filter.eq("validation_status", "Draft"),
            *date_filters(date_range, context.today()),
        ]
        rows = await context.select(self.entity, filters, order_by="date")
        if not rows:
            raise ActionRejectedError(message=f"No draft {self.label}s found to submit")
        data = self.preview_data(rows)
        return ActionPlan(
            parameters={"dateRange": date_range},
            preview=self.render(data),
            data=data,
            targets=tuple(rows),
        )

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        ids = [record["id"] for record in plan.targets]
        await context.store.update(
            self.entity,
            ids,
            {"validation_status": "Submitted", "submitted_at": _now_iso()},
        )
        return self.success_message(plan.data)

    @abstractmethod
    def preview_data(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        ...

    @abstractmethod
    def render(self, data: Mapping[str, Any]) -> str:
        ...

    @abstractmethod
    def success_message(self, data: Mapping[str, Any]) -> str:
        ...


class SubmitAllTimesheetsTool(_SubmitAllTool):
    name = "submitAllTimesheets"
    description = (
        "Submit all of the current user's draft timesheets for approval, optionally limited "
        "to a date range. Returns a preview listing every timesheet that will be submitted."
    )
    parameters = object_schema({"dateRange": _DATE_RANGE_SCHEMA})
    resource = Resource.TIMESHEETS
    entity = Entity.TIMESHEETS
    label = "timesheet"

    def preview_data(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "count": len(rows),
            "totalHours": sum(row.get("hours") or 0 for row in rows),
            "timesheets": [{"date": row.get("date"), "hours": row.get("hours")} for row in rows],
        }

    def render(self, data: Mapping[str, Any]) -> str:
        lines = [f"  - {item['date']}: {_fmt(item['hours'])}h" for item in data["timesheets"]]
        header = f"Submit {data['count']} timesheet(s) totaling {_fmt(data['totalHours'])} hours:"
        return "\n".join([header, *lines])

    def success_message(self, data: Mapping[str, Any]) -> str:
        return f"{data['count']} timesheet(s) submitted for approval ({_fmt(data['totalHours'])} hours total)"


class SubmitAllExpensesTool(_SubmitAllTool):
    name = "submitAllExpenses"
    description = (
        "Submit all of the current user's draft expenses for approval, optionally limited to a date range."
    )
    parameters = object_schema({"dateRange": _DATE_RANGE_SCHEMA})
    resource = Resource.EXPENSES
    entity = Entity.EXPENSES
    label = "expense"

    def preview_data(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "count": len(rows),
            "totalAmount": sum(row.get("amount") or 0 for row in rows),
            "currency": rows[0].get("currency") or _DEFAULT_CURRENCY,
            "expenses": [
                {"date": row.get("date"), "description": row.get("description"), "amount": row.get("amount")}
                for row in rows
            ],
        }

    def render(self, data: Mapping[str, Any]) -> str:
        currency = data["currency"]
        lines = [
            f"  - {item['date']}: {item['description']} - {currency}{_fmt(item['amount'])}"
            for item in data["expenses"]
        ]
        header = f"Submit {data['count']} expense(s) totaling {currency}{_fmt(data['totalAmount'])}:"
        return "\n".join([header, *lines])

    def success_message(self, data: Mapping[str, Any]) -> str:
        return f"{data['count']} expense(s) submitted for approval ({data['currency']}{_fmt(data['totalAmount'])} total)"


# -----------------------------------------------------------------------------
# Named-record actions
# -----------------------------------------------------------------------------


class _RecordActionTool(MutatingTool):
    """Resolves ``identifier_param`` to exactly one record before describing the change."""

    entity: ClassVar[str] = ""
    identifier_param: ClassVar[str] = ""

    async def prepare(self, context: ToolContext, params: dict[str, Any]) -> ActionPlan:
        resolved = await context.resolver.require(
            str(params[self.identifier_param]),
            self.entity,
            context.session,
            filters=context.scope.filters_for(self.resource),
        )
        record = dict(resolved.record)
        resolved_params = {key: value for key, value in params.items() if value is not None}
        resolved_params[self.identifier_param] = record["id"]
        return await self.describe(context, record, resolved_params)

    @abstractmethod
    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        ...


class UpdateMilestoneStatusTool(_RecordActionTool):
    name = "updateMilestoneStatus"
    description = (
        "Update a milestone's status, e.g. 'mark milestone X as done'. "
        "Valid statuses: Not Started, In Progress, Completed."
    )
    parameters = object_schema(
        {
            "milestoneIdentifier": {"type": "string", "minLength": 1, "description": "The milestone name or ID"},
            "newStatus": {"type": "string", "enum": list(MILESTONE_STATUSES)},
        },
        required=("milestoneIdentifier", "newStatus"),
    )
    resource = Resource.MILESTONES
    entity = Entity.MILESTONES
    identifier_param = "milestoneIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        data = {"name": record.get("name"), "currentStatus": record.get("status")}
        preview = f'Change milestone "{data["name"]}" status from {data["currentStatus"]} to {params["newStatus"]}'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        new_status = plan.parameters["newStatus"]
        changes: dict[str, Any] = {"status": new_status}
        if new_status == "Completed":
            changes["progress"] = 100
            changes["actual_end_date"] = context.today().isoformat()
        await context.store.update(self.entity, [record["id"]], changes)
        return f'Milestone "{record.get("name")}" status updated to {new_status}'


class UpdateMilestoneProgressTool(_RecordActionTool):
    name = "updateMilestoneProgress"
    description = "Update a milestone's progress percentage, e.g. 'set milestone X progress to 50%'."
    parameters = object_schema(
        {
            "milestoneIdentifier": {"type": "string", "minLength": 1, "description": "The milestone name or ID"},
            "progress": _PROGRESS_SCHEMA,
        },
        required=("milestoneIdentifier", "progress"),
    )
    resource = Resource.MILESTONES
    entity = Entity.MILESTONES
    identifier_param = "milestoneIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        data = {"name": record.get("name"), "currentProgress": record.get("progress") or 0}
        preview = (
            f'Update milestone "{data["name"]}" progress from {data["currentProgress"]}% to {params["progress"]}%'
        )
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        progress = int(plan.parameters["progress"])
        changes: dict[str, Any] = {"progress": progress}
        if progress == 100 and record.get("status") != "Completed":
            changes["status"] = "Completed"
            changes["actual_end_date"] = context.today().isoformat()
        elif 0 < progress < 100 and record.get("status") == "Not Started":
            changes["status"] = "In Progress"
        await context.store.update(self.entity, [record["id"]], changes)
        message = f'Milestone "{record.get("name")}" progress updated to {progress}%'
        if "status" in changes:
            message += f" (status changed to {changes['status']})"
        return message


class UpdateDeliverableStatusTool(_RecordActionTool):
    name = "updateDeliverableStatus"
    description = (
        "Update a deliverable's status. Valid statuses: Not Started, In Progress, "
        "Submitted for Review, Review Complete, Delivered."
    )
    parameters = object_schema(
        {
            "deliverableIdentifier": {"type": "string", "minLength": 1, "description": "The deliverable name or ID"},
            "newStatus": {"type": "string", "enum": list(DELIVERABLE_STATUSES)},
        },
        required=("deliverableIdentifier", "newStatus"),
    )
    resource = Resource.DELIVERABLES
    entity = Entity.DELIVERABLES
    identifier_param = "deliverableIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        data = {"name": record.get("name"), "currentStatus": record.get("status")}
        preview = f'Change deliverable "{data["name"]}" status from {data["currentStatus"]} to {params["newStatus"]}'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        new_status = plan.parameters["newStatus"]
        await context.store.update(self.entity, [record["id"]], {"status": new_status})
        return f'Deliverable "{record.get("name")}" status updated to {new_status}'


class CompleteTaskTool(_RecordActionTool):
    name = "completeTask"
    description = "Mark a task as complete. Sets status to Complete and progress to 100%."
    parameters = object_schema(
        {"taskIdentifier": {"type": "string", "minLength": 1, "description": "The task name or ID"}},
        required=("taskIdentifier",),
    )
    resource = Resource.TASKS
    entity = Entity.TASKS
    identifier_param = "taskIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        if record.get("status") == "Complete":
            raise ActionRejectedError(message=f'Task "{record.get("name")}" is already complete')
        data = {
            "name": record.get("name"),
            "currentStatus": record.get("status"),
            "currentProgress": record.get("progress") or 0,
        }
        preview = f'Mark task "{data["name"]}" as complete'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        await context.store.update(
            self.entity,
            [record["id"]],
            {"status": "Complete", "progress": 100, "actual_end_date": context.today().isoformat()},
        )
        return f'Task "{record.get("name")}" marked as complete'


class UpdateTaskProgressTool(_RecordActionTool):
    name = "updateTaskProgress"
    description = "Update a task's progress percentage."
    parameters = object_schema(
        {
            "taskIdentifier": {"type": "string", "minLength": 1, "description": "The task name or ID"},
            "progress": _PROGRESS_SCHEMA,
        },
        required=("taskIdentifier", "progress"),
    )
    resource = Resource.TASKS
    entity = Entity.TASKS
    identifier_param = "taskIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        data = {"name": record.get("name"), "currentProgress": record.get("progress") or 0}
        preview = f'Update task "{data["name"]}" progress from {data["currentProgress"]}% to {params["progress"]}%'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        progress = int(plan.parameters["progress"])
        changes: dict[str, Any] = {"progress": progress}
        if progress == 100:
            changes["status"] = "Complete"
            changes["actual_end_date"] = context.today().isoformat()
        elif progress > 0 and record.get("status") == "Not Started":
            changes["status"] = "In Progress"
        await context.store.update(self.entity, [record["id"]], changes)
        return f'Task "{record.get("name")}" progress updated to {progress}%'


class ReassignTaskTool(_RecordActionTool):
    name = "reassignTask"
    description = "Reassign a task to a different person on the project."
    parameters = object_schema(
        {
            "taskIdentifier": {"type": "string", "minLength": 1, "description": "The task name or ID"},
            "newAssignee": {"type": "string", "minLength": 1, "description": "Name or ID of the new assignee"},
        },
        required=("taskIdentifier", "newAssignee"),
    )
    resource = Resource.TASKS
    entity = Entity.TASKS
    identifier_param = "taskIdentifier"

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        assignee = await _resolve_person(context, str(params["newAssignee"]))
        params["newAssignee"] = assignee.id
        data = {
            "name": record.get("name"),
            "currentAssignee": await _resource_name(context, record.get("assigned_to")),
            "newAssignee": assignee.display_name,
        }
        preview = f'Reassign task "{data["name"]}" from {data["currentAssignee"]} to {data["newAssignee"]}'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        await context.store.update(self.entity, [record["id"]], {"assigned_to": plan.parameters["newAssignee"]})
        return f'Task "{record.get("name")}" reassigned to {plan.data["newAssignee"]}'


# -----------------------------------------------------------------------------
# RAID actions
# -----------------------------------------------------------------------------


class _RaidActionTool(_RecordActionTool):
    resource = Resource.RAID
    entity = Entity.RAID_ITEMS
    identifier_param = "raidIdentifier"


class UpdateRaidStatusTool(_RaidActionTool):
    name = "updateRaidStatus"
    description = "Update a RAID item's status. Valid statuses: Open, In Progress, Mitigated, Closed."
    parameters = object_schema(
        {
            "raidIdentifier": _RAID_IDENTIFIER_SCHEMA,
            "newStatus": {"type": "string", "enum": list(RAID_STATUSES)},
            "note": {"type": "string", "description": "Optional note explaining the status change"},
        },
        required=("raidIdentifier", "newStatus"),
    )

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        data = {"type": record.get("type"), "title": record.get("title"), "currentStatus": record.get("status")}
        preview = f'Change {data["type"]} "{data["title"]}" status from {data["currentStatus"]} to {params["newStatus"]}'
        if params.get("note"):
            preview += f'\nNote: "{params["note"]}"'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        new_status = plan.parameters["newStatus"]
        changes: dict[str, Any] = {"status": new_status}
        note = plan.parameters.get("note")
        if note:
            changes["resolution_notes"] = _stamped_note(record.get("resolution_notes"), note, context.today().isoformat())
        await context.store.update(self.entity, [record["id"]], changes)
        return f'{record.get("type")} "{record.get("title")}" status updated to {new_status}'


class ResolveRaidItemTool(_RaidActionTool):
    name = "resolveRaidItem"
    description = "Close (resolve) a RAID item with an optional resolution note. Sets status to Closed."
    parameters = object_schema(
        {
            "raidIdentifier": _RAID_IDENTIFIER_SCHEMA,
            "resolutionNote": {"type": "string", "description": "How the item was resolved"},
        },
        required=("raidIdentifier",),
    )

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        if record.get("status") == "Closed":
            raise ActionRejectedError(message=f'{record.get("type")} "{record.get("title")}" is already closed')
        data = {"type": record.get("type"), "title": record.get("title"), "currentStatus": record.get("status")}
        reference = _raid_reference(record)
        subject = f'{data["type"]} {reference} "{data["title"]}"' if reference else f'{data["type"]} "{data["title"]}"'
        preview = f"Close {subject} (status {data['currentStatus']} → Closed)"
        if params.get("resolutionNote"):
            preview += f' with note: "{params["resolutionNote"]}"'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        today = context.today().isoformat()
        changes: dict[str, Any] = {"status": "Closed", "closed_date": today}
        note = plan.parameters.get("resolutionNote")
        if note:
            changes["resolution_notes"] = _stamped_note(record.get("resolution_notes"), f"Resolved: {note}", today)
        await context.store.update(self.entity, [record["id"]], changes)
        return f'{record.get("type")} "{record.get("title")}" has been closed'


class AssignRaidOwnerTool(_RaidActionTool):
    name = "assignRaidOwner"
    description = "Assign or reassign a RAID item to a different owner."
    parameters = object_schema(
        {
            "raidIdentifier": _RAID_IDENTIFIER_SCHEMA,
            "newOwner": {"type": "string", "minLength": 1, "description": "Name or ID of the new owner"},
        },
        required=("raidIdentifier", "newOwner"),
    )

    async def describe(self, context: ToolContext, record: dict[str, Any], params: dict[str, Any]) -> ActionPlan:
        owner = await _resolve_person(context, str(params["newOwner"]))
        params["newOwner"] = owner.id
        data = {
            "type": record.get("type"),
            "title": record.get("title"),
            "currentOwner": await _resource_name(context, record.get("owner_id")),
            "newOwner": owner.display_name,
        }
        preview = f'Reassign {data["type"]} "{data["title"]}" from {data["currentOwner"]} to {data["newOwner"]}'
        return ActionPlan(parameters=params, preview=preview, data=data, targets=(record,))

    async def apply(self, context: ToolContext, plan: ActionPlan) -> str:
        record = plan.targets[0]
        await context.store.update(self.entity, [record["id"]], {"owner_id": plan.parameters["newOwner"]})
        return f'{record.get("type")} "{record.get("title")}" reassigned to {plan.data["newOwner"]}'


ACTION_TOOLS = (
    SubmitTimesheetTool,
    SubmitAllTimesheetsTool,
    SubmitExpenseTool,
    SubmitAllExpensesTool,
    UpdateMilestoneStatusTool,
    UpdateMilestoneProgressTool,
    UpdateDeliverableStatusTool,
    CompleteTaskTool,
    UpdateTaskProgressTool,
    ReassignTaskTool,
    UpdateRaidStatusTool,
    ResolveRaidItemTool,
    AssignRaidOwnerTool,
)
