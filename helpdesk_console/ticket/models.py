# helpdesk_console/ticket/models.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from helpdesk_console.core.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TicketRecord(Base):
    __tablename__ = "demo_tickets"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, default="OPEN", index=True)
    priority = Column(String, default="MEDIUM", index=True)
    type_of_request = Column(String, nullable=False)
    building = Column(String, nullable=False)
    room = Column(String, nullable=False)
    requester_id = Column(String, index=True, nullable=False)
    assigned_to = Column(String, nullable=True)
    resolution_summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)
