# tests/test_console.py
import pytest

from helpdesk_console.console.registry import Console, ConsoleRegistry, build_console
from helpdesk_console.core.auth import AuthContext
from helpdesk_console.core.config import Settings
from helpdesk_console.core.database import Base, make_engine, make_session_factory
from helpdesk_console.core.errors import ValidationError
from helpdesk_console.ticket.controller import TicketsController
from helpdesk_console.view.confirmation import ConfirmationBook
from helpdesk_console.workflow.controller import TRIGGER_WORKFLOW, WorkflowsController

ADMIN = AuthContext(user_id="admin-1", role="ADMIN")


def _console(ticket_service, workflow_service, closers=()):
    book = ConfirmationBook()
    return Console(
        TicketsController(ticket_service, ADMIN, book),
        WorkflowsController(workflow_service, book),
        book,
        closers,
    )


def _session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return make_session_factory(engine)


@pytest.mark.anyio
async def test_ticket_workflow_needs_the_open_ticket(ticket_service, workflow_service):
    console = _console(ticket_service, workflow_service)
    await console.tickets.load()

    with pytest.raises(ValidationError):
        console.request_ticket_workflow("T-1", "WF-1")

    await console.tickets.open_detail("T-2")
    with pytest.raises(ValidationError):
        console.request_ticket_workflow("T-1", "WF-1")
    assert len(console.confirmations) == 0


@pytest.mark.anyio
async def test_ticket_workflow_carries_ticket_id(ticket_service, workflow_service):
    console = _console(ticket_service, workflow_service)
    await console.tickets.load()
    await console.tickets.open_detail("T-1")

    pending = console.request_ticket_workflow("T-1", "WF-1")
    assert pending.context == {"ticketId": "T-1"}
    assert workflow_service.calls["trigger_execution"] == 0

    intent, execution = await console.confirm(pending.token)

    assert intent == TRIGGER_WORKFLOW
    assert execution.workflow_id == "WF-1"
    assert workflow_service.contexts == [{"ticketId": "T-1"}]


@pytest.mark.anyio
async def test_registry_evicts_least_recently_used(ticket_service, workflow_service):
    closed = []

    def factory(auth):
        console = None

        async def close():
            closed.append(console)

        console = _console(ticket_service, workflow_service, closers=(close,))
        return console

    registry = ConsoleRegistry(factory, max_sessions=2)
    first = await registry.get("s1", ADMIN)
    second = await registry.get("s2", ADMIN)
    assert await registry.get("s1", ADMIN) is first

    await registry.get("s3", ADMIN)

    assert len(registry) == 2
    assert "s2" not in registry and "s1" in registry
    assert closed == [second]

    for n in range(4, 50):
        await registry.get(f"s{n}", ADMIN)
    assert len(registry) == 2
    assert len(closed) == 47


@pytest.mark.anyio
async def test_changed_caller_closes_old_console(ticket_service, workflow_service):
    closed = []

    def factory(auth):
        async def close():
            closed.append(auth)

        return _console(ticket_service, workflow_service, closers=(close,))

    registry = ConsoleRegistry(factory)
    await registry.get("s1", ADMIN)
    await registry.get("s1", AuthContext(user_id="u-2", role="USER"))

    assert closed == [ADMIN]
    assert len(registry) == 1


@pytest.mark.anyio
async def test_demo_store_has_tickets_for_requesters():
    auth = AuthContext(user_id="u-5", role="USER")
    console = build_console(auth, Settings(DATA_SOURCE="demo"), _session_factory())

    await console.tickets.load()

    page = console.tickets.view.page
    assert page.total_count == 6
    assert {t.requester_id for t in page.items} == {"u-5"}


@pytest.mark.anyio
async def test_demo_fallback_has_tickets_for_requesters():
    auth = AuthContext(user_id="u-6", role="USER")
    factory = _session_factory()
    console = build_console(auth, Settings(DATA_SOURCE="remote", DEMO_FALLBACK=True), factory)
    try:
        page = await console.tickets.load_fallback()
    finally:
        await console.aclose()

    assert page.total_count == 6
    # a second session for the same requester does not duplicate the seed
    build_console(auth, Settings(DATA_SOURCE="demo"), factory)
    again = build_console(auth, Settings(DATA_SOURCE="demo"), factory)
    await again.tickets.load()
    assert again.tickets.view.page.total_count == 6
