# helpdesk_console/ticket/controller.py
import logging
from typing import Any

from helpdesk_console.core.auth import AuthContext
from helpdesk_console.core.errors import ConsoleError, ValidationError, parse_fields
from helpdesk_console.query.criteria import FilterCriteria
from helpdesk_console.query.engine import Page, RemoteSource, check_page, query, total_pages
from helpdesk_console.ticket import lifecycle
from helpdesk_console.ticket.schemas import Ticket, TicketCreate, TicketStatus, TicketUpdate
from helpdesk_console.ticket.services import TicketService
from helpdesk_console.view.confirmation import ConfirmationBook, PendingConfirmation
from helpdesk_console.view.state import ViewState

logger = logging.getLogger(__name__)

DELETE_TICKET = "delete_ticket"


def parse_status(value: Any) -> TicketStatus:
    if isinstance(value, TicketStatus):
        return value
    try:
        return TicketStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown ticket status: {value}") from None


class TicketsController:
    """Tickets view: listing, detail, status changes, edits and deletion.

    Listing is delegated to the ticket service, which filters, sorts and pages
    natively. The cached page is only changed after the service confirms a write.
    """

    intents = (DELETE_TICKET,)

    def __init__(
        self,
        service: TicketService,
        auth: AuthContext,
        confirmations: ConfirmationBook,
        fallback: TicketService | None = None,
        page_size: int = 10,
    ):
        self.service = service
        self.auth = auth
        self.fallback = fallback
        self.confirmations = confirmations
        self.view: ViewState[Ticket] = ViewState(
            "tickets", FilterCriteria(sort_by="created", sort_order="desc", page_size=page_size)
        )

    # -- listing -----------------------------------------------------------

    def _source(self, service: TicketService) -> RemoteSource:
        async def fetch(criteria: FilterCriteria, limit: int, offset: int):
            filters = criteria.active_filters()
            if not self.auth.is_admin and self.auth.user_id:
                return await service.list_tickets_by_requester(self.auth.user_id, filters, limit, offset)
            return await service.list_tickets(filters, criteria.sort_by, criteria.sort_order, limit, offset)

        return RemoteSource(fetch)

    async def _load_page(self, criteria: FilterCriteria) -> Page:
        return await query(criteria, self._source(self.service), self.view.known_total)

    async def load(self) -> bool:
        loaded = await self.view.load(self._load_page)
        if loaded:
            await self._follow_intent()
        return loaded

    async def load_fallback(self) -> Page:
        """Explicitly show demo data in place of the service's."""
        if self.fallback is None:
            raise ValidationError("No demo data source configured")
        logger.warning("tickets: showing demo data")
        page = await query(self.view.criteria, self._source(self.fallback))
        self.view.show(page)
        return page

    async def _follow_intent(self) -> Ticket | None:
        intent = self.view.consume_intent()
        if intent is None or not intent.entity_id:
            return None
        return await self.open_detail(intent.entity_id)

    def deep_link(self, ticket_id: str | None = None, status: str | None = None,
                  priority: str | None = None) -> None:
        changes = {k: v for k, v in (("status", status), ("priority", priority)) if v}
        if changes:
            self.view.criteria = self.view.criteria.with_filters(**changes)
        self.view.set_intent(entity_id=ticket_id)

    async def apply_filters(self, **changes: Any) -> bool:
        criteria = self.view.criteria.with_filters(**changes)
        if criteria is self.view.criteria and self.view.has_loaded:
            return False
        self.view.criteria = criteria
        return await self.load()

    async def clear_filters(self) -> bool:
        self.view.criteria = self.view.criteria.cleared()
        return await self.load()

    async def toggle_sort(self, sort_by: str) -> bool:
        self.view.criteria = self.view.criteria.toggle_sort(sort_by)
        return await self.load()

    async def go_to_page(self, page: int) -> bool:
        check_page(page, self.view.known_total, self.view.criteria.page_size)
        self.view.criteria = self.view.criteria.with_page(page)
        return await self.load()

    # -- detail and mutations ----------------------------------------------

    async def open_detail(self, ticket_id: str) -> Ticket:
        return await self.view.open_detail(ticket_id, self.service.get_ticket)

    async def _current(self, ticket_id: str) -> Ticket:
        cached = self.view.find(ticket_id)
        if cached is not None:
            return cached
        return await self.service.get_ticket(ticket_id)

    async def update_status(self, ticket_id: str, status: Any, resolution_summary: str = "") -> Ticket:
        requested = parse_status(status)
        resolution = (resolution_summary or "").strip()
        ticket = await self._current(ticket_id)
        try:
            lifecycle.validate_status_change(ticket, requested, resolution)
        except ValidationError as e:
            logger.info("tickets: %s rejected: %s", ticket_id, e.message)
            raise
        updated = await self.service.update_status(ticket_id, requested, resolution)
        self.view.replace(updated)
        logger.info("tickets: %s moved %s -> %s", ticket_id, ticket.status.value, updated.status.value)
        return updated

    async def update_ticket(self, ticket_id: str, fields: dict[str, Any]) -> Ticket:
        payload: TicketUpdate = parse_fields(TicketUpdate, fields)
        ticket = await self._current(ticket_id)
        body = payload.model_dump(mode="json", exclude={"status", "resolution_summary"})

        target = payload.status or ticket.status
        if target != ticket.status:
            lifecycle.validate_status_change(ticket, target, payload.resolution_summary)
            body["status"] = target.value
        if payload.resolution_summary and target.needs_resolution:
            body["resolution_summary"] = payload.resolution_summary

        updated = await self.service.update_ticket(ticket_id, body)
        self.view.replace(updated)
        logger.info("tickets: %s updated", ticket_id)
        return updated

    async def create_ticket(self, fields: dict[str, Any]) -> Ticket:
        data = dict(fields)
        if not data.get("requester_id") and self.auth.user_id:
            data["requester_id"] = self.auth.user_id
        payload: TicketCreate = parse_fields(TicketCreate, data)
        created = await self.service.create_ticket(payload)
        logger.info("tickets: created %s", created.id)
        await self._refresh_after_write()
        return created

    def request_delete(self, ticket_id: str) -> PendingConfirmation:
        return self.confirmations.request(
            DELETE_TICKET, ticket_id, f"Delete ticket {ticket_id}? This cannot be undone."
        )

    async def confirm(self, pending: PendingConfirmation) -> None:
        if pending.intent != DELETE_TICKET:
            raise ValidationError(f"tickets cannot handle {pending.intent}")
        await self.delete_ticket(pending.target_id)

    async def delete_ticket(self, ticket_id: str) -> None:
        await self.service.delete_ticket(ticket_id)
        self.view.remove(ticket_id)
        logger.info("tickets: deleted %s", ticket_id)
        page = self.view.page
        if page is not None and self.view.criteria.page > total_pages(page.total_count, page.page_size):
            # the last page just emptied, step back instead of going out of range
            self.view.criteria = self.view.criteria.with_page(page.total_pages)
        await self._refresh_after_write()

    async def _refresh_after_write(self) -> None:
        try:
            await self.load()
        except ConsoleError as e:
            # the write went through; the stale page stays until the next refresh
            logger.warning("tickets: refresh after write failed: %s", e.message)

    def workflow_context(self, ticket_id: str) -> dict[str, Any]:
        """Context for a workflow run started from the open ticket."""
        selected = self.view.selected_id
        if selected is None:
            raise ValidationError("Open a ticket before running a workflow for it")
        if selected != ticket_id:
            raise ValidationError(f"Ticket {ticket_id} is not the open ticket ({selected})")
        return {"ticketId": selected}

    async def statistics(self):
        return await self.service.get_statistics()

    def snapshot(self) -> dict[str, Any]:
        return self.view.snapshot()
