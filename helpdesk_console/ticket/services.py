# helpdesk_console/ticket/services.py
from typing import Any, Protocol

from helpdesk_console.core.http import RemoteClient, normalize, normalize_all, unwrap_list
from helpdesk_console.ticket.schemas import (
    Ticket,
    TicketCreate,
    TicketStatistics,
    TicketStatus,
)

# The requester-scoped listing only understands these filters
REQUESTER_FILTERS = ("status", "priority")


class TicketService(Protocol):
    async def list_tickets(
        self, filters: dict[str, Any], sort_by: str, sort_order: str, limit: int, offset: int
    ) -> tuple[list[Ticket], int]: ...

    async def list_tickets_by_requester(
        self, requester_id: str, filters: dict[str, Any], limit: int, offset: int
    ) -> tuple[list[Ticket], int]: ...

    async def get_ticket(self, ticket_id: str) -> Ticket: ...

    async def create_ticket(self, payload: TicketCreate) -> Ticket: ...

    async def update_ticket(self, ticket_id: str, fields: dict[str, Any]) -> Ticket: ...

    async def update_status(
        self, ticket_id: str, status: TicketStatus, resolution_summary: str = ""
    ) -> Ticket: ...

    async def delete_ticket(self, ticket_id: str) -> None: ...

    async def get_statistics(self) -> TicketStatistics: ...


class HttpTicketService(RemoteClient):
    service_name = "ticket service"

    async def list_tickets(self, filters, sort_by, sort_order, limit, offset):
        params = {**filters, "limit": limit, "offset": offset}
        if sort_by:
            params["sortBy"] = sort_by
            params["sortOrder"] = sort_order
        items, total = unwrap_list(await self._request("GET", "/tickets", params=params))
        return normalize_all(Ticket, items), total

    async def list_tickets_by_requester(self, requester_id, filters, limit, offset):
        params = {k: v for k, v in filters.items() if k in REQUESTER_FILTERS and v}
        params.update(limit=limit, offset=offset)
        payload = await self._request("GET", f"/tickets/requester/{requester_id}", params=params)
        items, total = unwrap_list(payload)
        return normalize_all(Ticket, items), total

    async def get_ticket(self, ticket_id):
        return normalize(Ticket, _entity(await self._request("GET", f"/tickets/{ticket_id}")))

    async def create_ticket(self, payload):
        body = payload.model_dump(mode="json", exclude_none=True)
        return normalize(Ticket, _entity(await self._request("POST", "/tickets", json=body)))

    async def update_ticket(self, ticket_id, fields):
        payload = await self._request("PATCH", f"/tickets/{ticket_id}", json=fields)
        return normalize(Ticket, _entity(payload))

    async def update_status(self, ticket_id, status, resolution_summary=""):
        body: dict[str, Any] = {"status": TicketStatus(status).value}
        if resolution_summary:
            body["resolution_summary"] = resolution_summary
        payload = await self._request("PATCH", f"/tickets/{ticket_id}", json=body)
        return normalize(Ticket, _entity(payload))

    async def delete_ticket(self, ticket_id):
        await self._request("DELETE", f"/tickets/{ticket_id}")

    async def get_statistics(self):
        return normalize(TicketStatistics, _entity(await self._request("GET", "/tickets/statistics")))


def _entity(payload: Any) -> Any:
    # some deployments wrap single objects: {"ticket": {...}} or {"data": {...}}
    if isinstance(payload, dict):
        for key in ("ticket", "data"):
            if isinstance(payload.get(key), dict):
                return payload[key]
    return payload
