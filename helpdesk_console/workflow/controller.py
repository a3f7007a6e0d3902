# helpdesk_console/workflow/controller.py
import logging
from typing import Any

from helpdesk_console.core.errors import ValidationError, parse_fields
from helpdesk_console.query.criteria import FilterCriteria, date_bounds
from helpdesk_console.query.engine import (
    MemorySource,
    Page,
    QueryFields,
    check_page,
    query,
    run_local,
    settle_local,
)
from helpdesk_console.view.confirmation import ConfirmationBook, PendingConfirmation
from helpdesk_console.view.state import ViewState
from helpdesk_console.workflow import lifecycle
from helpdesk_console.workflow.schemas import Execution, Workflow, WorkflowCreate
from helpdesk_console.workflow.services import WorkflowService

logger = logging.getLogger(__name__)

TOGGLE_WORKFLOW = "toggle_workflow"
TRIGGER_WORKFLOW = "trigger_workflow"
CANCEL_EXECUTION = "cancel_execution"

TABS = ("workflows", "executions")

WORKFLOW_FIELDS = QueryFields.build(
    searchable=("name", "description"),
    filters=("status", "trigger"),
    date_attr="created_at",
    sortable={
        "name": "name",
        "created": "created_at",
        "created_at": "created_at",
        "status": "status",
        "trigger": "trigger",
        "steps": lambda wf: len(wf.steps),
    },
)

EXECUTION_FIELDS = QueryFields.build(
    filters=("status", "workflow_id"),
    date_attr="started_at",
    sortable={
        "started": "started_at",
        "started_at": "started_at",
        "duration": "duration",
        "status": "status",
        "workflow": "workflow_name",
    },
)


class WorkflowsController:
    """Workflows view and its executions tab.

    The workflow service returns whole lists, so both views keep the full set
    they were given and page it in memory. Changing a filter re-projects the
    held set without calling the service again.
    """

    intents = (TOGGLE_WORKFLOW, TRIGGER_WORKFLOW, CANCEL_EXECUTION)

    def __init__(
        self,
        service: WorkflowService,
        confirmations: ConfirmationBook,
        fallback: WorkflowService | None = None,
        page_size: int = 12,
        executions_page_size: int = 20,
    ):
        self.service = service
        self.fallback = fallback
        self.confirmations = confirmations
        self.view: ViewState[Workflow] = ViewState("workflows", FilterCriteria(page_size=page_size))
        start, end = date_bounds("week")
        self.executions: ViewState[Execution] = ViewState(
            "executions",
            FilterCriteria(
                sort_by="started", sort_order="desc",
                date_from=start, date_to=end, page_size=executions_page_size,
            ),
        )
        self.tab = "workflows"
        self._workflows: list[Workflow] = []
        self._executions: list[Execution] = []

    # -- workflows listing -------------------------------------------------

    async def _load_workflows(self, criteria: FilterCriteria) -> Page:
        workflows = await self.service.list_workflows()
        page = await query(criteria, MemorySource(workflows, WORKFLOW_FIELDS))
        self._workflows = workflows
        return page

    async def load(self) -> bool:
        loaded = await self.view.load(self._load_workflows)
        if loaded:
            await self._follow_intent()
        return loaded

    async def load_fallback(self) -> Page:
        if self.fallback is None:
            raise ValidationError("No demo data source configured")
        logger.warning("workflows: showing demo data")
        workflows = await self.fallback.list_workflows()
        page = await query(self.view.criteria, MemorySource(workflows, WORKFLOW_FIELDS))
        self._workflows = workflows
        self.view.show(page)
        return page

    def _reproject(self) -> Page:
        # the held set may have shrunk under the current page
        page = settle_local(self.view.criteria, MemorySource(self._workflows, WORKFLOW_FIELDS))
        self.view.show(page)
        return page

    async def apply_filters(self, **changes: Any) -> Page | None:
        self.view.criteria = self.view.criteria.with_filters(**changes)
        if not self.view.has_loaded:
            await self.load()
            return self.view.page
        return self._reproject()

    async def clear_filters(self) -> Page | None:
        self.view.criteria = self.view.criteria.cleared()
        return await self.apply_filters()

    async def toggle_sort(self, sort_by: str) -> Page | None:
        self.view.criteria = self.view.criteria.toggle_sort(sort_by)
        return await self.apply_filters()

    def go_to_page(self, page: int) -> Page:
        check_page(page, self.view.known_total, self.view.criteria.page_size)
        self.view.criteria = self.view.criteria.with_page(page)
        return self._reproject()

    def deep_link(self, workflow_id: str | None = None, tab: str | None = None) -> None:
        if tab and tab not in TABS:
            raise ValidationError(f"Unknown tab: {tab}")
        self.view.set_intent(entity_id=workflow_id, tab=tab)

    async def _follow_intent(self) -> None:
        intent = self.view.consume_intent()
        if intent is None:
            return
        if intent.tab:
            self.tab = intent.tab
            if intent.tab == "executions":
                await self.load_executions()
        if intent.entity_id:
            await self.open_detail(intent.entity_id)

    # -- workflow detail and actions ---------------------------------------

    def _held(self, workflow_id: str) -> Workflow | None:
        return next((w for w in self._workflows if w.id == workflow_id), None)

    async def _fetch_workflow(self, workflow_id: str) -> Workflow:
        return self._held(workflow_id) or await self.service.get_workflow(workflow_id)

    async def open_detail(self, workflow_id: str) -> Workflow:
        return await self.view.open_detail(workflow_id, self._fetch_workflow)

    def _remember(self, workflow: Workflow) -> None:
        self._workflows = [workflow if w.id == workflow.id else w for w in self._workflows]
        if self.view.has_loaded:
            self._reproject()

    async def create_workflow(self, fields: dict[str, Any]) -> Workflow:
        payload: WorkflowCreate = parse_fields(WorkflowCreate, fields)
        created = await self.service.create_workflow(payload)
        logger.info("workflows: created %s", created.id)
        self._workflows = [*self._workflows, created]
        if self.view.has_loaded:
            self._reproject()
        return created

    def request_toggle(self, workflow_id: str) -> PendingConfirmation:
        return self.confirmations.request(TOGGLE_WORKFLOW, workflow_id, f"Change status of workflow {workflow_id}?")

    async def toggle_status(self, workflow_id: str) -> Workflow:
        workflow = await self._fetch_workflow(workflow_id)
        new_status = lifecycle.next_toggle_status(workflow)
        updated = await self.service.set_workflow_status(workflow_id, new_status)
        self._remember(updated)
        logger.info("workflows: %s is now %s", workflow_id, updated.status.value)
        return updated

    def request_trigger(self, workflow_id: str, context: dict[str, Any] | None = None) -> PendingConfirmation:
        workflow = self._held(workflow_id)
        if workflow is not None:
            # fail early, before the operator is asked anything
            lifecycle.ensure_triggerable(workflow)
        prompt = f"Execute workflow {workflow_id} now?"
        return self.confirmations.request(TRIGGER_WORKFLOW, workflow_id, prompt, context=context)

    async def trigger(self, workflow_id: str, context: dict[str, Any] | None = None) -> Execution:
        workflow = await self._fetch_workflow(workflow_id)
        execution = await lifecycle.trigger(workflow, self.service.trigger_execution, context)
        self._executions = [execution, *self._executions]
        if self.executions.has_loaded:
            self._reproject_executions()
        return execution

    # -- executions --------------------------------------------------------

    async def _load_executions(self, criteria: FilterCriteria) -> Page:
        filters = {k: v for k, v in criteria.active_filters().items()
                   if k in ("workflow_id", "status", "date_from", "date_to")}
        executions = await self.service.list_executions(filters)
        page = await query(criteria, MemorySource(executions, EXECUTION_FIELDS))
        self._executions = executions
        return page

    async def load_executions(self) -> bool:
        return await self.executions.load(self._load_executions)

    async def filter_executions(self, workflow_id: str | None = None, status: str | None = None,
                                date_range: str | None = None) -> bool:
        changes: dict[str, Any] = {}
        if workflow_id is not None:
            changes["workflow_id"] = workflow_id
        if status is not None:
            changes["status"] = status
        if date_range is not None:
            try:
                changes["date_from"], changes["date_to"] = date_bounds(date_range)
            except ValueError as e:
                raise ValidationError(str(e)) from None
        self.executions.criteria = self.executions.criteria.with_filters(**changes)
        return await self.load_executions()

    def _reproject_executions(self) -> Page:
        page = settle_local(self.executions.criteria, MemorySource(self._executions, EXECUTION_FIELDS))
        self.executions.show(page)
        return page

    def executions_page(self, page: int) -> Page:
        check_page(page, self.executions.known_total, self.executions.criteria.page_size)
        self.executions.criteria = self.executions.criteria.with_page(page)
        result = run_local(self.executions.criteria, MemorySource(self._executions, EXECUTION_FIELDS))
        self.executions.show(result)
        return result

    def _held_execution(self, execution_id: str) -> Execution | None:
        return next((e for e in self._executions if e.id == execution_id), None)

    async def _fetch_execution(self, execution_id: str) -> Execution:
        return self._held_execution(execution_id) or await self.service.get_execution(execution_id)

    async def open_execution(self, execution_id: str) -> Execution:
        return await self.executions.open_detail(execution_id, self._fetch_execution)

    def _remember_execution(self, execution: Execution) -> None:
        self._executions = [execution if e.id == execution.id else e for e in self._executions]
        self.executions.replace(execution)

    def request_cancel(self, execution_id: str) -> PendingConfirmation:
        execution = self._held_execution(execution_id)
        if execution is not None:
            lifecycle.ensure_cancellable(execution)
        return self.confirmations.request(CANCEL_EXECUTION, execution_id, f"Cancel execution {execution_id}?")

    async def cancel(self, execution_id: str) -> Execution:
        execution = await self._fetch_execution(execution_id)
        cancelled = await lifecycle.cancel(execution, self.service.cancel_execution)
        self._remember_execution(cancelled)
        return cancelled

    async def refresh_execution(self, execution_id: str) -> Execution:
        """Poll the service for the current state of an execution."""
        cached = self._held_execution(execution_id)
        if cached is not None:
            lifecycle.ensure_open(cached)
        reported = await self.service.get_execution(execution_id)
        current = lifecycle.observe(cached, reported) if cached is not None else reported
        self._remember_execution(current)
        return current

    # -- confirmations -----------------------------------------------------

    async def confirm(self, pending: PendingConfirmation) -> Workflow | Execution:
        if pending.intent == TOGGLE_WORKFLOW:
            return await self.toggle_status(pending.target_id)
        if pending.intent == TRIGGER_WORKFLOW:
            return await self.trigger(pending.target_id, pending.context or None)
        if pending.intent == CANCEL_EXECUTION:
            return await self.cancel(pending.target_id)
        raise ValidationError(f"workflows cannot handle {pending.intent}")

    async def statistics(self):
        return await self.service.get_statistics()

    def snapshot(self) -> dict[str, Any]:
        return {
            "tab": self.tab,
            "workflows": self.view.snapshot(),
            "executions": self.executions.snapshot(),
        }

