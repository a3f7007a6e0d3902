# helpdesk_console/ticket/local.py
"""Demo ticket store.

Stands in for the ticket service when it cannot be reached, behind the same
``TicketService`` protocol. It behaves like the backend would: native
filtering and paging, and its own enforcement of the status graph.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session, sessionmaker

from helpdesk_console.core.errors import NotFound, RemoteError, ValidationError
from helpdesk_console.ticket import lifecycle
from helpdesk_console.ticket.models import TicketRecord
from helpdesk_console.ticket.schemas import (
    Priority,
    Ticket,
    TicketCreate,
    TicketStatistics,
    TicketStatus,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created": TicketRecord.created_at,
    "created_at": TicketRecord.created_at,
    "updated": TicketRecord.updated_at,
    "updated_at": TicketRecord.updated_at,
    "title": TicketRecord.title,
    "status": TicketRecord.status,
    "priority": TicketRecord.priority,
}

DEMO_TICKETS = [
    ("Printer not working on 3rd floor", "HP LaserJet shows paper jam error", "INCIDENT",
     "Main", "301", "HIGH", "OPEN", None),
    ("New laptop request", "Onboarding laptop for a new hire in accounting", "SERVICE_REQUEST",
     "Annex", "12", "MEDIUM", "IN_PROGRESS", None),
    ("VPN connection drops", "VPN disconnects every 10 minutes from home", "INCIDENT",
     "Remote", "-", "CRITICAL", "OPEN", None),
    ("Projector bulb replacement", "Conference room B projector is dim", "MAINTENANCE",
     "Main", "B", "LOW", "RESOLVED", "Bulb replaced"),
    ("Email quota exceeded", "Mailbox full, cannot receive mail", "INCIDENT",
     "Main", "204", "MEDIUM", "CLOSED", "Quota raised to 50GB"),
    ("Software install: design suite", "Install design software on workstation 17", "SERVICE_REQUEST",
     "Annex", "17", "LOW", "OPEN", None),
]


class LocalTicketService:
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def seed(self) -> None:
        with self._sessions() as db:
            if db.query(func.count(TicketRecord.id)).scalar():
                return
            self._add_demo(db, "demo-user", lambda i: f"TKT-{1001 + i}")
            db.commit()
            logger.info("Seeded %d demo tickets", len(DEMO_TICKETS))

    def seed_for(self, requester_id: str) -> None:
        """Give ``requester_id`` their own copy of the demo tickets.

        Requester-scoped listings only show the caller's tickets, which would
        otherwise leave the demo data empty for everyone but administrators.
        """
        with self._sessions() as db:
            owned = db.query(func.count(TicketRecord.id)).filter(TicketRecord.requester_id == requester_id)
            if owned.scalar():
                return
            self._add_demo(db, requester_id, lambda i: f"TKT-{uuid.uuid4().hex[:6].upper()}")
            db.commit()
            logger.info("Seeded %d demo tickets for %s", len(DEMO_TICKETS), requester_id)

    def _add_demo(self, db: Session, requester_id: str, make_id) -> None:
        now = datetime.now(timezone.utc)
        for i, (title, desc_, kind, building, room, prio, status, resolution) in enumerate(DEMO_TICKETS):
            stamp = now - timedelta(hours=6 * (len(DEMO_TICKETS) - i))
            db.add(TicketRecord(
                id=make_id(i),
                title=title,
                description=desc_,
                type_of_request=kind,
                building=building,
                room=room,
                requester_id=requester_id,
                priority=prio,
                status=status,
                resolution_summary=resolution,
                created_at=stamp,
                updated_at=stamp,
            ))

    def _get(self, db: Session, ticket_id: str) -> TicketRecord:
        record = db.query(TicketRecord).filter(TicketRecord.id == ticket_id).first()
        if not record:
            raise NotFound("Ticket not found")
        return record

    def _page(self, q, sort_by: str, sort_order: str, limit: int, offset: int):
        total = q.count()
        column = SORT_COLUMNS.get(sort_by)
        if column is not None:
            q = q.order_by(asc(column) if sort_order == "asc" else desc(column))
        q = q.order_by(TicketRecord.created_at.desc())
        return [Ticket.model_validate(r) for r in q.offset(offset).limit(limit).all()], total

    def _filtered(self, db: Session, filters: dict[str, Any]):
        q = db.query(TicketRecord)
        for name in ("status", "priority", "type_of_request"):
            if filters.get(name):
                q = q.filter(getattr(TicketRecord, name) == filters[name])
        if filters.get("search"):
            needle = f"%{filters['search']}%"
            q = q.filter(or_(TicketRecord.title.ilike(needle), TicketRecord.description.ilike(needle)))
        if filters.get("date_from"):
            q = q.filter(TicketRecord.created_at >= _parse(filters["date_from"]))
        if filters.get("date_to"):
            q = q.filter(TicketRecord.created_at <= _parse(filters["date_to"]))
        return q

    async def list_tickets(self, filters, sort_by, sort_order, limit, offset):
        with self._sessions() as db:
            return self._page(self._filtered(db, filters), sort_by, sort_order, limit, offset)

    async def list_tickets_by_requester(self, requester_id, filters, limit, offset):
        with self._sessions() as db:
            scoped = {k: filters.get(k) for k in ("status", "priority")}
            q = self._filtered(db, scoped).filter(TicketRecord.requester_id == requester_id)
            return self._page(q, "", "desc", limit, offset)

    async def get_ticket(self, ticket_id):
        with self._sessions() as db:
            return Ticket.model_validate(self._get(db, ticket_id))

    async def create_ticket(self, payload: TicketCreate):
        with self._sessions() as db:
            record = TicketRecord(
                id=f"TKT-{uuid.uuid4().hex[:6].upper()}",
                priority=(payload.priority or Priority.MEDIUM).value,
                status=TicketStatus.OPEN.value,
                **payload.model_dump(exclude={"priority"}),
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return Ticket.model_validate(record)

    async def update_ticket(self, ticket_id, fields):
        with self._sessions() as db:
            record = self._get(db, ticket_id)
            fields = dict(fields)
            status = fields.pop("status", None)
            resolution = fields.pop("resolution_summary", None)
            if status:
                self._move(record, status, resolution)
            for field, value in fields.items():
                setattr(record, field, value)
            db.commit()
            db.refresh(record)
            return Ticket.model_validate(record)

    async def update_status(self, ticket_id, status, resolution_summary=""):
        with self._sessions() as db:
            record = self._get(db, ticket_id)
            self._move(record, status, resolution_summary)
            db.commit()
            db.refresh(record)
            return Ticket.model_validate(record)

    def _move(self, record: TicketRecord, status: str, resolution: str | None) -> None:
        current = Ticket.model_validate(record)
        try:
            moved = lifecycle.apply_status(current, TicketStatus(status), resolution)
        except (ValidationError, ValueError) as e:
            # the backend answers bad requests with a 400, not a console error
            raise RemoteError(str(e), status_code=400) from e
        record.status = moved.status.value
        record.resolution_summary = moved.resolution_summary
        record.updated_at = moved.updated_at

    async def delete_ticket(self, ticket_id):
        with self._sessions() as db:
            db.delete(self._get(db, ticket_id))
            db.commit()

    async def get_statistics(self):
        with self._sessions() as db:
            rows = dict(db.query(TicketRecord.status, func.count()).group_by(TicketRecord.status).all())
            return TicketStatistics(
                total=sum(rows.values()),
                open=rows.get("OPEN", 0),
                in_progress=rows.get("IN_PROGRESS", 0),
                resolved=rows.get("RESOLVED", 0),
                closed=rows.get("CLOSED", 0),
            )


def _parse(value: Any) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)
