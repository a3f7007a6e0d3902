# helpdesk_console/ticket/lifecycle.py
"""Ticket status state machine.

    OPEN -> IN_PROGRESS -> RESOLVED -> CLOSED

No skipping, no going back. Requesting the current status again is a field-only
update and always passes. Entering RESOLVED or CLOSED needs a non-empty
resolution summary in the same update; once stored it is never removed.
"""
from datetime import datetime, timezone

from helpdesk_console.core.errors import InvalidTransition, MissingResolution
from helpdesk_console.ticket.schemas import Ticket, TicketStatus

TRANSITIONS: dict[TicketStatus, tuple[TicketStatus, ...]] = {
    TicketStatus.OPEN: (TicketStatus.IN_PROGRESS,),
    TicketStatus.IN_PROGRESS: (TicketStatus.RESOLVED,),
    TicketStatus.RESOLVED: (TicketStatus.CLOSED,),
    TicketStatus.CLOSED: (),
}


def allowed_transitions(current: TicketStatus) -> list[TicketStatus]:
    return list(TRANSITIONS[TicketStatus(current)])


def validate_transition(current: TicketStatus, requested: TicketStatus) -> None:
    current, requested = TicketStatus(current), TicketStatus(requested)
    if current == requested:
        return
    allowed = TRANSITIONS[current]
    if requested not in allowed:
        raise InvalidTransition(current.value, requested.value, [s.value for s in allowed])


def validate_status_change(
    ticket: Ticket, requested: TicketStatus, resolution_summary: str | None = None
) -> None:
    """Check a status update against ``ticket`` before anything is sent."""
    requested = TicketStatus(requested)
    if requested != ticket.status and requested.needs_resolution:
        if not (resolution_summary or "").strip():
            raise MissingResolution(requested.value)
    validate_transition(ticket.status, requested)


def apply_status(
    ticket: Ticket,
    requested: TicketStatus,
    resolution_summary: str | None = None,
    now: datetime | None = None,
) -> Ticket:
    """Return ``ticket`` moved to ``requested``; validates first."""
    validate_status_change(ticket, requested, resolution_summary)
    changes: dict = {
        "status": TicketStatus(requested),
        "updated_at": now or datetime.now(timezone.utc),
    }
    if resolution_summary and resolution_summary.strip():
        changes["resolution_summary"] = resolution_summary.strip()
    return ticket.model_copy(update=changes)
