# helpdesk_console/ticket/routes.py
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from helpdesk_console.console.registry import Console, get_console
from helpdesk_console.ticket.schemas import Ticket, TicketStatistics
from helpdesk_console.view.confirmation import PendingConfirmation

router = APIRouter(prefix="/tickets", tags=["Tickets"])


class TicketFilterChange(BaseModel):
    search: str | None = None
    status: str | None = None
    priority: str | None = None
    type_of_request: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: str | None = None
    sort_order: Literal["asc", "desc"] | None = None


class StatusChange(BaseModel):
    status: str
    resolution_summary: str = ""


@router.get("/")
async def view(
    id: str | None = Query(default=None, description="Open this ticket after loading"),
    status: str | None = Query(default=None),
    priority: str | None = Query(default=None),
    console: Console = Depends(get_console),
):
    tickets = console.tickets
    if id or status or priority:
        tickets.deep_link(ticket_id=id, status=status, priority=priority)
        await tickets.load()
    elif not tickets.view.has_loaded:
        await tickets.load()
    return tickets.snapshot()


@router.patch("/view")
async def change_filters(change: TicketFilterChange, console: Console = Depends(get_console)):
    await console.tickets.apply_filters(**change.model_dump(exclude_unset=True))
    return console.tickets.snapshot()


@router.delete("/view/filters")
async def clear_filters(console: Console = Depends(get_console)):
    await console.tickets.clear_filters()
    return console.tickets.snapshot()


@router.post("/view/page/{page}")
async def go_to_page(page: int, console: Console = Depends(get_console)):
    await console.tickets.go_to_page(page)
    return console.tickets.snapshot()


@router.post("/view/sort/{field}")
async def sort(field: str, console: Console = Depends(get_console)):
    await console.tickets.toggle_sort(field)
    return console.tickets.snapshot()


@router.post("/view/refresh")
async def refresh(console: Console = Depends(get_console)):
    await console.tickets.load()
    return console.tickets.snapshot()


@router.post("/view/demo")
async def demo(console: Console = Depends(get_console)):
    await console.tickets.load_fallback()
    return {**console.tickets.snapshot(), "demo": True}


@router.get("/statistics", response_model=TicketStatistics)
async def statistics(console: Console = Depends(get_console)):
    return await console.tickets.statistics()


@router.post("/", response_model=Ticket, status_code=201)
async def create(fields: dict[str, Any] = Body(...), console: Console = Depends(get_console)):
    return await console.tickets.create_ticket(fields)


@router.get("/{ticket_id}", response_model=Ticket)
async def get(ticket_id: str, console: Console = Depends(get_console)):
    return await console.tickets.open_detail(ticket_id)


@router.put("/{ticket_id}", response_model=Ticket)
async def update(ticket_id: str, fields: dict[str, Any] = Body(...), console: Console = Depends(get_console)):
    return await console.tickets.update_ticket(ticket_id, fields)


@router.patch("/{ticket_id}/status", response_model=Ticket)
async def update_status(ticket_id: str, change: StatusChange, console: Console = Depends(get_console)):
    return await console.tickets.update_status(ticket_id, change.status, change.resolution_summary)


@router.post("/{ticket_id}/delete", response_model=PendingConfirmation, status_code=202)
async def request_delete(ticket_id: str, console: Console = Depends(get_console)):
    return console.tickets.request_delete(ticket_id)


@router.post("/{ticket_id}/workflows/{workflow_id}/trigger", response_model=PendingConfirmation, status_code=202)
async def request_workflow(ticket_id: str, workflow_id: str, console: Console = Depends(get_console)):
    return console.request_ticket_workflow(ticket_id, workflow_id)
