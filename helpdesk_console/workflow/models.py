# helpdesk_console/workflow/models.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from helpdesk_console.core.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowRecord(Base):
    __tablename__ = "demo_workflows"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text, default="")
    trigger = Column(String, default="manual", index=True)
    status = Column(String, default="draft", index=True)
    steps = Column(JSON, default=list)  # [{"name": ..., "kind": ...}]
    created_at = Column(DateTime(timezone=True), default=_now)


class ExecutionRecord(Base):
    __tablename__ = "demo_executions"

    id = Column(String, primary_key=True, index=True)
    workflow_id = Column(String, index=True, nullable=False)
    workflow_name = Column(String, default="")
    status = Column(String, default="running", index=True)
    started_at = Column(DateTime(timezone=True), default=_now, index=True)
    duration = Column(Integer, nullable=True)  # milliseconds, set once finished
    error = Column(Text, nullable=True)
    triggered_by = Column(String, default="")
    steps = Column(JSON, default=list)
