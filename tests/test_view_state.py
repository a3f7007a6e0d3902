# tests/test_view_state.py
import asyncio

import pytest
from conftest import make_ticket

from helpdesk_console.core.auth import AuthContext
from helpdesk_console.core.errors import NotFound, RemoteError
from helpdesk_console.query.criteria import FilterCriteria
from helpdesk_console.query.engine import Page
from helpdesk_console.ticket.controller import TicketsController
from helpdesk_console.view.confirmation import ConfirmationBook
from helpdesk_console.view.state import ViewState

ADMIN = AuthContext(user_id="admin-1", role="ADMIN")


def _controller(service):
    return TicketsController(service, ADMIN, ConfirmationBook())


@pytest.mark.anyio
async def test_second_load_while_in_flight_is_ignored(ticket_service):
    controller = _controller(ticket_service)
    ticket_service.gate = asyncio.Event()

    first = asyncio.create_task(controller.load())
    await asyncio.sleep(0)
    assert controller.view.is_loading

    assert await controller.load() is False
    ticket_service.gate.set()
    assert await first is True

    assert ticket_service.calls["list_tickets"] == 1
    assert controller.view.is_loading is False
    assert controller.view.page.total_count == 25


@pytest.mark.anyio
async def test_failed_reload_keeps_previous_page(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()
    before = controller.view.page

    ticket_service.fail_with = RemoteError("ticket service unreachable")
    with pytest.raises(RemoteError):
        await controller.go_to_page(2)

    assert controller.view.page is before
    assert controller.view.error is None
    assert controller.view.is_loading is False


@pytest.mark.anyio
async def test_failed_first_load_records_error(ticket_service):
    controller = _controller(ticket_service)
    ticket_service.fail_with = RemoteError("ticket service unreachable")

    with pytest.raises(RemoteError):
        await controller.load()

    assert controller.view.page is None
    assert controller.view.error == "ticket service unreachable"

    ticket_service.fail_with = None
    await controller.load()
    assert controller.view.error is None


@pytest.mark.anyio
async def test_deep_link_is_consumed_once(ticket_service):
    controller = _controller(ticket_service)
    controller.deep_link(ticket_id="T-3", status="OPEN")

    await controller.load()
    assert controller.view.selected_id == "T-3"
    assert controller.view.criteria.status == "OPEN"

    controller.view.clear_selection()
    await controller.load()
    assert controller.view.selected_id is None


@pytest.mark.anyio
async def test_open_detail_fetches_uncached_entity(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()

    ticket = await controller.open_detail("T-24")
    assert ticket.id == "T-24"
    assert ticket_service.calls["get_ticket"] == 1
    assert controller.view.selected_id == "T-24"

    await controller.open_detail("T-2")
    assert ticket_service.calls["get_ticket"] == 1
    assert controller.view.selected_id == "T-2"


@pytest.mark.anyio
async def test_open_detail_missing_keeps_selection(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()
    await controller.open_detail("T-1")

    with pytest.raises(NotFound):
        await controller.open_detail("T-404")
    assert controller.view.selected_id == "T-1"


def test_replace_ignores_uncached_entity():
    view = ViewState("tickets", FilterCriteria())
    view.show(Page(items=[make_ticket(1)], total_count=1, page=1, page_size=10))

    assert view.replace(make_ticket(1, title="Renamed")) is True
    assert view.items[0].title == "Renamed"
    assert view.replace(make_ticket(2)) is False
    assert [t.id for t in view.items] == ["T-1"]


def test_snapshot_reports_window():
    view = ViewState("tickets", FilterCriteria())
    view.show(Page(items=[make_ticket(n) for n in range(1, 11)], total_count=25, page=1, page_size=10))
    snap = view.snapshot()
    assert snap["summary"] == "Showing 1-10 of 25"
    assert snap["page"]["total_pages"] == 3
    assert snap["is_loading"] is False


@pytest.mark.anyio
async def test_reload_after_collection_shrinks_lands_on_last_page(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()
    await controller.go_to_page(3)
    assert controller.view.page.summary() == "Showing 21-25 of 25"

    for n in range(6, 26):
        del ticket_service.tickets[f"T-{n}"]
    await controller.load()

    page = controller.view.page
    assert controller.view.criteria.page == 1
    assert page.page == 1
    assert page.window_start <= page.window_end
    assert page.summary() == "Showing 1-5 of 5"
    assert [t.id for t in page.items] == ["T-1", "T-2", "T-3", "T-4", "T-5"]
