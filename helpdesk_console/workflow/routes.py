# helpdesk_console/workflow/routes.py
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from helpdesk_console.console.registry import Console, get_console
from helpdesk_console.view.confirmation import PendingConfirmation
from helpdesk_console.workflow.schemas import Execution, Workflow, WorkflowStatistics

router = APIRouter(prefix="/workflows", tags=["Workflows"])
executions_router = APIRouter(prefix="/executions", tags=["Executions"])


class WorkflowFilterChange(BaseModel):
    search: str | None = None
    status: str | None = None
    trigger: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None


class ExecutionFilterChange(BaseModel):
    workflow_id: str | None = None
    status: str | None = None
    date_range: Literal["", "today", "week", "month"] | None = None


@router.get("/")
async def view(
    id: str | None = Query(default=None, description="Open this workflow after loading"),
    tab: str | None = Query(default=None, description="workflows or executions"),
    console: Console = Depends(get_console),
):
    workflows = console.workflows
    if id or tab:
        workflows.deep_link(workflow_id=id, tab=tab)
        await workflows.load()
    elif not workflows.view.has_loaded:
        await workflows.load()
    return workflows.snapshot()


@router.patch("/view")
async def change_filters(change: WorkflowFilterChange, console: Console = Depends(get_console)):
    await console.workflows.apply_filters(**change.model_dump(exclude_unset=True))
    return console.workflows.snapshot()


@router.delete("/view/filters")
async def clear_filters(console: Console = Depends(get_console)):
    await console.workflows.clear_filters()
    return console.workflows.snapshot()


@router.post("/view/page/{page}")
async def go_to_page(page: int, console: Console = Depends(get_console)):
    console.workflows.go_to_page(page)
    return console.workflows.snapshot()


@router.post("/view/sort/{field}")
async def sort(field: str, console: Console = Depends(get_console)):
    await console.workflows.toggle_sort(field)
    return console.workflows.snapshot()


@router.post("/view/refresh")
async def refresh(console: Console = Depends(get_console)):
    await console.workflows.load()
    return console.workflows.snapshot()


@router.post("/view/demo")
async def demo(console: Console = Depends(get_console)):
    await console.workflows.load_fallback()
    return {**console.workflows.snapshot(), "demo": True}


@router.get("/statistics", response_model=WorkflowStatistics)
async def statistics(console: Console = Depends(get_console)):
    return await console.workflows.statistics()


@router.post("/", response_model=Workflow, status_code=201)
async def create(fields: dict[str, Any] = Body(...), console: Console = Depends(get_console)):
    return await console.workflows.create_workflow(fields)


@router.get("/{workflow_id}", response_model=Workflow)
async def get(workflow_id: str, console: Console = Depends(get_console)):
    return await console.workflows.open_detail(workflow_id)


@router.post("/{workflow_id}/toggle", response_model=PendingConfirmation, status_code=202)
async def request_toggle(workflow_id: str, console: Console = Depends(get_console)):
    return console.workflows.request_toggle(workflow_id)


@router.post("/{workflow_id}/trigger", response_model=PendingConfirmation, status_code=202)
async def request_trigger(workflow_id: str, console: Console = Depends(get_console)):
    return console.workflows.request_trigger(workflow_id)


@executions_router.get("/")
async def executions(console: Console = Depends(get_console)):
    workflows = console.workflows
    if not workflows.executions.has_loaded:
        await workflows.load_executions()
    return workflows.executions.snapshot()


@executions_router.patch("/view")
async def change_execution_filters(change: ExecutionFilterChange, console: Console = Depends(get_console)):
    await console.workflows.filter_executions(**change.model_dump(exclude_unset=True))
    return console.workflows.executions.snapshot()


@executions_router.post("/view/page/{page}")
async def executions_page(page: int, console: Console = Depends(get_console)):
    console.workflows.executions_page(page)
    return console.workflows.executions.snapshot()


@executions_router.post("/view/refresh")
async def refresh_executions(console: Console = Depends(get_console)):
    await console.workflows.load_executions()
    return console.workflows.executions.snapshot()


@executions_router.get("/{execution_id}", response_model=Execution)
async def get_execution(execution_id: str, console: Console = Depends(get_console)):
    return await console.workflows.open_execution(execution_id)


@executions_router.post("/{execution_id}/refresh", response_model=Execution)
async def refresh_execution(execution_id: str, console: Console = Depends(get_console)):
    return await console.workflows.refresh_execution(execution_id)


@executions_router.post("/{execution_id}/cancel", response_model=PendingConfirmation, status_code=202)
async def request_cancel(execution_id: str, console: Console = Depends(get_console)):
    return console.workflows.request_cancel(execution_id)
