# helpdesk_console/console/registry.py
"""One console per operator session.

A ``Console`` is the state object handed to every request of a session: the
tickets and workflows controllers plus the confirmations they have issued.
"""
import logging
from collections import OrderedDict
from functools import lru_cache
from typing import Any, Callable

from fastapi import Depends, Header

from helpdesk_console.core.auth import AuthContext, get_auth_context
from helpdesk_console.core.config import Settings, get_settings
from helpdesk_console.core.database import SessionLocal
from helpdesk_console.core.errors import ValidationError
from helpdesk_console.ticket.controller import TicketsController
from helpdesk_console.ticket.local import LocalTicketService
from helpdesk_console.ticket.services import HttpTicketService
from helpdesk_console.view.confirmation import ConfirmationBook, PendingConfirmation
from helpdesk_console.workflow.controller import WorkflowsController
from helpdesk_console.workflow.local import LocalWorkflowService
from helpdesk_console.workflow.services import HttpWorkflowService

logger = logging.getLogger(__name__)


class Console:
    def __init__(self, tickets: TicketsController, workflows: WorkflowsController,
                 confirmations: ConfirmationBook, closers: tuple = ()):
        self.tickets = tickets
        self.workflows = workflows
        self.confirmations = confirmations
        self._closers = closers

    async def confirm(self, token: str) -> tuple[str, Any]:
        pending = self.confirmations.take(token)
        for controller in (self.tickets, self.workflows):
            if pending.intent in controller.intents:
                return pending.intent, await controller.confirm(pending)
        raise ValidationError(f"Nothing handles {pending.intent}")

    def request_ticket_workflow(self, ticket_id: str, workflow_id: str) -> PendingConfirmation:
        """Ask to run ``workflow_id`` for the ticket open in the tickets view."""
        context = self.tickets.workflow_context(ticket_id)
        return self.workflows.request_trigger(workflow_id, context)

    async def aclose(self) -> None:
        for close in self._closers:
            await close()


def build_console(auth: AuthContext, settings: Settings, session_factory=SessionLocal) -> Console:
    confirmations = ConfirmationBook()
    local_tickets = LocalTicketService(session_factory)
    local_workflows = LocalWorkflowService(session_factory)
    closers: tuple = ()

    def seed_demo() -> None:
        local_tickets.seed()
        local_workflows.seed()
        if auth.user_id and not auth.is_admin:
            local_tickets.seed_for(auth.user_id)

    if settings.DATA_SOURCE == "demo":
        seed_demo()
        ticket_service, workflow_service = local_tickets, local_workflows
        ticket_fallback = workflow_fallback = None
    else:
        headers = auth.headers()
        ticket_service = HttpTicketService(settings.TICKET_SERVICE_URL, settings.REQUEST_TIMEOUT, headers)
        workflow_service = HttpWorkflowService(settings.WORKFLOW_SERVICE_URL, settings.REQUEST_TIMEOUT, headers)
        closers = (ticket_service.aclose, workflow_service.aclose)
        ticket_fallback = workflow_fallback = None
        if settings.DEMO_FALLBACK:
            seed_demo()
            ticket_fallback, workflow_fallback = local_tickets, local_workflows

    tickets = TicketsController(
        ticket_service, auth, confirmations,
        fallback=ticket_fallback, page_size=settings.TICKETS_PAGE_SIZE,
    )
    workflows = WorkflowsController(
        workflow_service, confirmations,
        fallback=workflow_fallback,
        page_size=settings.WORKFLOWS_PAGE_SIZE,
        executions_page_size=settings.EXECUTIONS_PAGE_SIZE,
    )
    return Console(tickets, workflows, confirmations, closers)


class ConsoleRegistry:
    """Consoles by session id, least recently used evicted past ``max_sessions``."""

    def __init__(self, factory: Callable[[AuthContext], Console], max_sessions: int = 100):
        self._factory = factory
        self.max_sessions = max_sessions
        self._consoles: OrderedDict[str, tuple[AuthContext, Console]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._consoles)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._consoles

    async def get(self, session_id: str, auth: AuthContext) -> Console:
        entry = self._consoles.get(session_id)
        if entry is not None and entry[0] == auth:
            self._consoles.move_to_end(session_id)
            return entry[1]
        if entry is not None:
            # a different caller on the same session starts from scratch
            del self._consoles[session_id]
            await entry[1].aclose()
        console = self._factory(auth)
        self._consoles[session_id] = (auth, console)
        logger.info("Console session %s opened", session_id)
        while len(self._consoles) > self.max_sessions:
            evicted_id, (_, evicted) = self._consoles.popitem(last=False)
            logger.info("Console session %s evicted", evicted_id)
            await evicted.aclose()
        return console

    async def aclose(self) -> None:
        for _, console in self._consoles.values():
            await console.aclose()
        self._consoles.clear()


@lru_cache
def get_registry() -> ConsoleRegistry:
    settings = get_settings()
    return ConsoleRegistry(lambda auth: build_console(auth, settings), settings.MAX_CONSOLE_SESSIONS)


async def get_console(
    x_console_session: str = Header(default="default"),
    auth: AuthContext = Depends(get_auth_context),
    registry: ConsoleRegistry = Depends(get_registry),
) -> Console:
    return await registry.get(x_console_session, auth)
