# tests/conftest.py
import asyncio
import os
from collections import Counter
from datetime import datetime, timedelta, timezone

# keep the demo store in memory for the whole test run
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402

from helpdesk_console.core.errors import NotFound, RemoteError  # noqa: E402
from helpdesk_console.ticket.schemas import Ticket, TicketStatistics, TicketStatus  # noqa: E402
from helpdesk_console.workflow.schemas import (  # noqa: E402
    Execution,
    ExecutionStatus,
    Workflow,
    WorkflowStatistics,
)

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_ticket(n: int, status: str = "OPEN", **fields) -> Ticket:
    data = {
        "id": f"T-{n}",
        "title": f"Ticket {n}",
        "description": f"Description {n}",
        "status": status,
        "priority": "MEDIUM",
        "type_of_request": "INCIDENT",
        "building": "Main",
        "room": "101",
        "requester_id": "u-1",
        "created_at": BASE_TIME + timedelta(minutes=n),
        "updated_at": BASE_TIME + timedelta(minutes=n),
    }
    data.update(fields)
    return Ticket.model_validate(data)


class FakeTicketService:
    """In-memory ticket service that counts calls and can be made to fail or stall."""

    def __init__(self, tickets: list[Ticket]):
        self.tickets = {t.id: t for t in tickets}
        self.calls: Counter = Counter()
        self.gate: asyncio.Event | None = None
        self.fail_with: Exception | None = None

    async def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    def _window(self, items, limit, offset):
        return items[offset:offset + limit], len(items)

    async def list_tickets(self, filters, sort_by, sort_order, limit, offset):
        await self._enter("list_tickets")
        items = [t for t in self.tickets.values()
                 if not filters.get("status") or t.status == filters["status"]]
        return self._window(items, limit, offset)

    async def list_tickets_by_requester(self, requester_id, filters, limit, offset):
        await self._enter("list_tickets_by_requester")
        items = [t for t in self.tickets.values() if t.requester_id == requester_id]
        return self._window(items, limit, offset)

    async def get_ticket(self, ticket_id):
        await self._enter("get_ticket")
        if ticket_id not in self.tickets:
            raise NotFound("Ticket not found")
        return self.tickets[ticket_id]

    async def create_ticket(self, payload):
        await self._enter("create_ticket")
        ticket = make_ticket(len(self.tickets) + 1000, **payload.model_dump(exclude_none=True))
        self.tickets[ticket.id] = ticket
        return ticket

    async def update_ticket(self, ticket_id, fields):
        await self._enter("update_ticket")
        ticket = self.tickets[ticket_id].model_copy(update={
            **fields,
            "status": TicketStatus(fields.get("status", self.tickets[ticket_id].status)),
        })
        self.tickets[ticket_id] = ticket
        return ticket

    async def update_status(self, ticket_id, status, resolution_summary=""):
        await self._enter("update_status")
        changes = {"status": TicketStatus(status), "updated_at": datetime.now(timezone.utc)}
        if resolution_summary:
            changes["resolution_summary"] = resolution_summary
        ticket = self.tickets[ticket_id].model_copy(update=changes)
        self.tickets[ticket_id] = ticket
        return ticket

    async def delete_ticket(self, ticket_id):
        await self._enter("delete_ticket")
        del self.tickets[ticket_id]

    async def get_statistics(self):
        await self._enter("get_statistics")
        return TicketStatistics(total=len(self.tickets))


def make_workflow(n: int, status: str = "active", trigger: str = "manual", **fields) -> Workflow:
    data = {
        "id": f"WF-{n}",
        "name": f"Workflow {n}",
        "description": f"Does thing {n}",
        "trigger": trigger,
        "status": status,
        "steps": [{"name": "Step", "type": "action"}],
        "created_at": BASE_TIME + timedelta(days=n),
    }
    data.update(fields)
    return Workflow.model_validate(data)


def make_execution(n: int, status: str = "running", workflow_id: str = "WF-1", **fields) -> Execution:
    data = {
        "id": f"EX-{n}",
        "workflow_id": workflow_id,
        "status": status,
        "started_at": datetime.now(timezone.utc) - timedelta(minutes=n),
    }
    if status != "running":
        data["duration"] = 1000 * n
    if status == "failed":
        data["error"] = "boom"
    data.update(fields)
    return Execution.model_validate(data)


class FakeWorkflowService:
    def __init__(self, workflows: list[Workflow], executions: list[Execution] = ()):
        self.workflows = {w.id: w for w in workflows}
        self.executions = {e.id: e for e in executions}
        self.calls: Counter = Counter()
        self.contexts: list = []
        self.fail_with: Exception | None = None

    async def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail_with is not None:
            raise self.fail_with

    async def list_workflows(self):
        await self._enter("list_workflows")
        return list(self.workflows.values())

    async def get_workflow(self, workflow_id):
        await self._enter("get_workflow")
        if workflow_id not in self.workflows:
            raise NotFound("Workflow not found")
        return self.workflows[workflow_id]

    async def create_workflow(self, payload):
        await self._enter("create_workflow")
        workflow = make_workflow(len(self.workflows) + 100, **payload.model_dump())
        self.workflows[workflow.id] = workflow
        return workflow

    async def set_workflow_status(self, workflow_id, status):
        await self._enter("set_workflow_status")
        workflow = self.workflows[workflow_id].model_copy(update={"status": status})
        self.workflows[workflow_id] = workflow
        return workflow

    async def list_executions(self, filters):
        await self._enter("list_executions")
        return [e for e in self.executions.values()
                if not filters.get("status") or e.status == filters["status"]]

    async def get_execution(self, execution_id):
        await self._enter("get_execution")
        if execution_id not in self.executions:
            raise NotFound("Execution not found")
        return self.executions[execution_id]

    async def trigger_execution(self, workflow_id, context=None):
        await self._enter("trigger_execution")
        self.contexts.append(context)
        execution = make_execution(len(self.executions) + 500, workflow_id=workflow_id)
        self.executions[execution.id] = execution
        return execution

    async def cancel_execution(self, execution_id):
        await self._enter("cancel_execution")
        if self.executions[execution_id].status is not ExecutionStatus.RUNNING:
            raise RemoteError("Execution is not running", status_code=409)

    async def get_statistics(self):
        await self._enter("get_statistics")
        return WorkflowStatistics(total=len(self.workflows))


@pytest.fixture
def ticket_service():
    return FakeTicketService([make_ticket(n) for n in range(1, 26)])


@pytest.fixture
def workflow_service():
    workflows = [
        make_workflow(1, name="Auto-assign", description="Route new tickets", trigger="ticket_created"),
        make_workflow(2, name="SLA escalation", description="Escalate late tickets", trigger="sla_breach"),
        make_workflow(3, name="Weekly report", status="inactive", trigger="scheduled"),
        make_workflow(4, name="Draft flow", status="draft"),
    ]
    executions = [
        make_execution(1),
        make_execution(2, status="completed"),
        make_execution(3, status="failed"),
        make_execution(4, status="cancelled"),
    ]
    return FakeWorkflowService(workflows, executions)
