# tests/test_tickets_controller.py
import pytest
from conftest import FakeTicketService, make_ticket

from helpdesk_console.core.auth import AuthContext
from helpdesk_console.core.errors import (
    ConfirmationError,
    InvalidTransition,
    MissingFields,
    MissingResolution,
    PageOutOfRange,
    RemoteError,
    ValidationError,
)
from helpdesk_console.ticket.controller import TicketsController
from helpdesk_console.ticket.schemas import TicketStatus
from helpdesk_console.view.confirmation import ConfirmationBook

ADMIN = AuthContext(user_id="admin-1", role="ADMIN")


def _controller(service, auth=ADMIN, fallback=None):
    return TicketsController(service, auth, ConfirmationBook(), fallback=fallback)


@pytest.mark.anyio
async def test_resolving_without_summary_never_reaches_service():
    service = FakeTicketService([make_ticket(1, status="IN_PROGRESS")])
    controller = _controller(service)
    await controller.load()

    with pytest.raises(MissingResolution):
        await controller.update_status("T-1", "RESOLVED", "   ")

    assert service.calls["update_status"] == 0
    assert controller.view.find("T-1").status is TicketStatus.IN_PROGRESS


@pytest.mark.anyio
async def test_skipping_a_state_is_rejected_locally():
    service = FakeTicketService([make_ticket(1)])
    controller = _controller(service)
    await controller.load()

    with pytest.raises(InvalidTransition) as exc:
        await controller.update_status("T-1", "closed", "done")

    assert exc.value.allowed == ["IN_PROGRESS"]
    assert service.calls["update_status"] == 0


@pytest.mark.anyio
async def test_confirmed_status_change_updates_cache():
    service = FakeTicketService([make_ticket(1, status="IN_PROGRESS")])
    controller = _controller(service)
    await controller.load()

    updated = await controller.update_status("T-1", TicketStatus.RESOLVED, " Replaced toner ")

    assert updated.status is TicketStatus.RESOLVED
    assert updated.resolution_summary == "Replaced toner"
    assert controller.view.find("T-1").status is TicketStatus.RESOLVED


@pytest.mark.anyio
async def test_remote_failure_leaves_cache_unchanged():
    service = FakeTicketService([make_ticket(1)])
    controller = _controller(service)
    await controller.load()
    service.fail_with = RemoteError("ticket service unreachable")

    with pytest.raises(RemoteError):
        await controller.update_status("T-1", "IN_PROGRESS")

    assert controller.view.find("T-1").status is TicketStatus.OPEN


@pytest.mark.anyio
async def test_unknown_status_is_a_validation_error(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()
    with pytest.raises(ValidationError):
        await controller.update_status("T-1", "ARCHIVED")


@pytest.mark.anyio
async def test_update_ticket_requires_fields(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()

    with pytest.raises(MissingFields) as exc:
        await controller.update_ticket("T-1", {"title": "New", "description": ""})

    assert exc.value.fields == ["building", "description", "room", "type_of_request"]
    assert ticket_service.calls["update_ticket"] == 0


@pytest.mark.anyio
async def test_update_ticket_with_status_checks_transition(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()
    fields = {
        "title": "Printer jam",
        "description": "Tray 2",
        "type_of_request": "INCIDENT",
        "building": "Main",
        "room": "101",
        "status": "RESOLVED",
    }
    with pytest.raises(MissingResolution):
        await controller.update_ticket("T-1", fields)

    updated = await controller.update_ticket("T-1", {**fields, "status": "IN_PROGRESS"})
    assert updated.title == "Printer jam"
    assert controller.view.find("T-1").status is TicketStatus.IN_PROGRESS


@pytest.mark.anyio
async def test_create_ticket_fills_requester_and_refreshes(ticket_service):
    controller = _controller(ticket_service, auth=AuthContext(user_id="u-9", role="ADMIN"))
    await controller.load()

    created = await controller.create_ticket({
        "title": "No network",
        "description": "Port dead",
        "type_of_request": "INCIDENT",
        "building": "Annex",
        "room": "12",
    })

    assert created.requester_id == "u-9"
    assert ticket_service.calls["list_tickets"] == 2
    assert controller.view.page.total_count == 26


@pytest.mark.anyio
async def test_create_ticket_reports_missing_fields(ticket_service):
    controller = _controller(ticket_service)
    with pytest.raises(MissingFields) as exc:
        await controller.create_ticket({"title": "Only a title"})
    assert "building" in exc.value.fields
    assert ticket_service.calls["create_ticket"] == 0


@pytest.mark.anyio
async def test_delete_needs_confirmation(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()

    pending = controller.request_delete("T-2")
    assert ticket_service.calls["delete_ticket"] == 0
    assert "T-2" in pending.prompt

    await controller.confirm(controller.confirmations.take(pending.token))
    assert "T-2" not in ticket_service.tickets
    assert controller.view.find("T-2") is None
    assert controller.view.page.total_count == 24

    with pytest.raises(ConfirmationError):
        controller.confirmations.take(pending.token)


@pytest.mark.anyio
async def test_declined_delete_changes_nothing(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()

    pending = controller.request_delete("T-2")
    controller.confirmations.discard(pending.token)

    assert ticket_service.calls["delete_ticket"] == 0
    assert len(controller.confirmations) == 0


@pytest.mark.anyio
async def test_deleting_last_item_of_last_page_steps_back():
    service = FakeTicketService([make_ticket(n) for n in range(1, 12)])
    controller = _controller(service)
    await controller.load()
    await controller.go_to_page(2)
    assert [t.id for t in controller.view.items] == ["T-11"]

    await controller.delete_ticket("T-11")

    assert controller.view.criteria.page == 1
    assert controller.view.page.total_count == 10


@pytest.mark.anyio
async def test_page_past_the_end_is_not_dispatched(ticket_service):
    controller = _controller(ticket_service)
    await controller.load()

    with pytest.raises(PageOutOfRange):
        await controller.go_to_page(4)
    assert ticket_service.calls["list_tickets"] == 1
    assert controller.view.criteria.page == 1


@pytest.mark.anyio
async def test_non_admin_lists_own_tickets():
    service = FakeTicketService([
        make_ticket(1, requester_id="u-1"),
        make_ticket(2, requester_id="u-2"),
        make_ticket(3, requester_id="u-1"),
    ])
    controller = _controller(service, auth=AuthContext(user_id="u-1", role="USER"))
    await controller.load()

    assert service.calls["list_tickets"] == 0
    assert service.calls["list_tickets_by_requester"] == 1
    assert [t.id for t in controller.view.items] == ["T-1", "T-3"]


@pytest.mark.anyio
async def test_demo_data_needs_a_fallback(ticket_service):
    controller = _controller(ticket_service)
    with pytest.raises(ValidationError):
        await controller.load_fallback()

    demo = FakeTicketService([make_ticket(n) for n in range(100, 103)])
    controller = _controller(ticket_service, fallback=demo)
    page = await controller.load_fallback()
    assert page.total_count == 3
    assert ticket_service.calls["list_tickets"] == 0
