# helpdesk_console/workflow/local.py
"""Demo workflow store, standing in for the workflow service."""
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from helpdesk_console.core.errors import NotFound, RemoteError
from helpdesk_console.workflow.models import ExecutionRecord, WorkflowRecord
from helpdesk_console.workflow.schemas import (
    Execution,
    ExecutionStatus,
    Workflow,
    WorkflowCreate,
    WorkflowStatistics,
    WorkflowStatus,
)

logger = logging.getLogger(__name__)

DEMO_WORKFLOWS = [
    ("Auto-assign new tickets", "Route incoming tickets to the least loaded technician",
     "ticket_created", "active",
     [("Check ticket category", "condition"), ("Find available technician", "action"),
      ("Assign ticket", "action"), ("Send notification", "notification")]),
    ("SLA breach escalation", "Escalate tickets that exceed their SLA",
     "sla_breach", "active",
     [("Check SLA status", "condition"), ("Escalate to supervisor", "action"),
      ("Notify requester", "notification")]),
    ("Critical ticket alert", "Page the on-call engineer for critical incidents",
     "ticket_created", "active",
     [("Is priority critical", "condition"), ("Page on-call", "notification")]),
    ("Manual cleanup", "Close resolved tickets older than 14 days",
     "manual", "active",
     [("Find stale resolved tickets", "action"), ("Close tickets", "action")]),
    ("Weekly report", "Email the weekly ticket summary",
     "scheduled", "inactive",
     [("Build report", "action"), ("Email managers", "notification")]),
    ("Onboarding checklist", "Create the onboarding tasks for a new hire",
     "manual", "draft", []),
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(started: datetime, now: datetime) -> int:
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    return max(0, int((now - started).total_seconds() * 1000))


class LocalWorkflowService:
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def seed(self) -> None:
        with self._sessions() as db:
            if db.query(func.count(WorkflowRecord.id)).scalar():
                return
            now = _now()
            for i, (name, description, trigger, status, steps) in enumerate(DEMO_WORKFLOWS):
                db.add(WorkflowRecord(
                    id=f"WF-{i + 1:03d}",
                    name=name,
                    description=description,
                    trigger=trigger,
                    status=status,
                    steps=[{"name": n, "kind": k} for n, k in steps],
                    created_at=now - timedelta(days=len(DEMO_WORKFLOWS) - i),
                ))
            db.commit()
            logger.info("Seeded %d demo workflows", len(DEMO_WORKFLOWS))

    def _workflow(self, db: Session, workflow_id: str) -> WorkflowRecord:
        record = db.query(WorkflowRecord).filter(WorkflowRecord.id == workflow_id).first()
        if not record:
            raise NotFound("Workflow not found")
        return record

    def _execution(self, db: Session, execution_id: str) -> ExecutionRecord:
        record = db.query(ExecutionRecord).filter(ExecutionRecord.id == execution_id).first()
        if not record:
            raise NotFound("Execution not found")
        return record

    async def list_workflows(self):
        with self._sessions() as db:
            records = db.query(WorkflowRecord).order_by(WorkflowRecord.created_at).all()
            return [Workflow.model_validate(r) for r in records]

    async def get_workflow(self, workflow_id):
        with self._sessions() as db:
            return Workflow.model_validate(self._workflow(db, workflow_id))

    async def create_workflow(self, payload: WorkflowCreate):
        with self._sessions() as db:
            record = WorkflowRecord(
                id=f"WF-{uuid.uuid4().hex[:6].upper()}",
                name=payload.name,
                description=payload.description,
                trigger=payload.trigger.value,
                status=payload.status.value,
                steps=[s.model_dump(mode="json") for s in payload.steps],
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return Workflow.model_validate(record)

    async def set_workflow_status(self, workflow_id, status):
        with self._sessions() as db:
            record = self._workflow(db, workflow_id)
            record.status = WorkflowStatus(status).value
            db.commit()
            db.refresh(record)
            return Workflow.model_validate(record)

    async def list_executions(self, filters):
        with self._sessions() as db:
            q = db.query(ExecutionRecord)
            if filters.get("workflow_id"):
                q = q.filter(ExecutionRecord.workflow_id == filters["workflow_id"])
            if filters.get("status"):
                q = q.filter(ExecutionRecord.status == filters["status"])
            records = q.order_by(ExecutionRecord.started_at.desc()).all()
            return [Execution.model_validate(r) for r in records]

    async def get_execution(self, execution_id):
        with self._sessions() as db:
            return Execution.model_validate(self._execution(db, execution_id))

    async def trigger_execution(self, workflow_id, context=None):
        with self._sessions() as db:
            workflow = self._workflow(db, workflow_id)
            if workflow.status != WorkflowStatus.ACTIVE.value:
                raise RemoteError("Workflow is not active", status_code=409)
            now = _now()
            record = ExecutionRecord(
                id=f"EX-{uuid.uuid4().hex[:8].upper()}",
                workflow_id=workflow.id,
                workflow_name=workflow.name,
                status=ExecutionStatus.RUNNING.value,
                started_at=now,
                triggered_by=(context or {}).get("triggered_by", "Manual"),
                steps=[
                    {"name": s["name"], "status": "pending", "started_at": None, "message": None}
                    for s in workflow.steps or []
                ],
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return Execution.model_validate(record)

    async def cancel_execution(self, execution_id):
        with self._sessions() as db:
            record = self._execution(db, execution_id)
            if record.status != ExecutionStatus.RUNNING.value:
                raise RemoteError("Execution is not running", status_code=409)
            record.status = ExecutionStatus.CANCELLED.value
            record.duration = _elapsed_ms(record.started_at, _now())
            db.commit()

    def complete_execution(self, execution_id: str, failed: bool = False, error: str | None = None) -> Execution:
        """Report an outcome the way the real service would."""
        with self._sessions() as db:
            record = self._execution(db, execution_id)
            if record.status != ExecutionStatus.RUNNING.value:
                raise RemoteError("Execution is not running", status_code=409)
            now = _now()
            record.status = (ExecutionStatus.FAILED if failed else ExecutionStatus.COMPLETED).value
            record.duration = _elapsed_ms(record.started_at, now)
            record.error = (error or "Execution failed") if failed else None
            step_status = "failed" if failed else "completed"
            record.steps = [
                {**s, "status": step_status, "started_at": now.isoformat()} for s in record.steps or []
            ]
            db.commit()
            db.refresh(record)
            return Execution.model_validate(record)

    async def get_statistics(self):
        with self._sessions() as db:
            start_of_day = _now().replace(hour=0, minute=0, second=0, microsecond=0)
            return WorkflowStatistics(
                total=db.query(func.count(WorkflowRecord.id)).scalar() or 0,
                active=db.query(func.count(WorkflowRecord.id))
                .filter(WorkflowRecord.status == WorkflowStatus.ACTIVE.value).scalar() or 0,
                running=db.query(func.count(ExecutionRecord.id))
                .filter(ExecutionRecord.status == ExecutionStatus.RUNNING.value).scalar() or 0,
                executions_today=db.query(func.count(ExecutionRecord.id))
                .filter(ExecutionRecord.started_at >= start_of_day).scalar() or 0,
            )
