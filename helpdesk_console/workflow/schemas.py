# helpdesk_console/workflow/schemas.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowTrigger(str, Enum):
    MANUAL = "manual"
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    SLA_BREACH = "sla_breach"
    SCHEDULED = "scheduled"


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"


class StepKind(str, Enum):
    CONDITION = "condition"
    ACTION = "action"
    NOTIFICATION = "notification"


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.RUNNING


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower().replace(" ", "_").replace("-", "_")
    return value


def _stringify(value: Any) -> Any:
    return str(value) if isinstance(value, int) else value


class WorkflowStep(BaseModel):
    name: str
    kind: StepKind = Field(default=StepKind.ACTION, validation_alias=AliasChoices("kind", "type"))

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("kind", mode="before")
    @classmethod
    def _fold(cls, value: Any) -> Any:
        return _lower(value) or StepKind.ACTION


class Workflow(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id", "workflow_id", "workflowId"))
    name: str
    description: str = ""
    trigger: WorkflowTrigger = WorkflowTrigger.MANUAL
    status: WorkflowStatus = WorkflowStatus.DRAFT
    steps: tuple[WorkflowStep, ...] = ()
    created_at: datetime = Field(
        default_factory=_now, validation_alias=AliasChoices("created_at", "createdAt")
    )

    model_config = {"frozen": True, "from_attributes": True, "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("trigger", "status", mode="before")
    @classmethod
    def _fold(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_active(self) -> bool:
        return self.status is WorkflowStatus.ACTIVE


class WorkflowCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    trigger: WorkflowTrigger
    status: WorkflowStatus = WorkflowStatus.DRAFT
    steps: list[WorkflowStep] = Field(default_factory=list)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("trigger", "status", mode="before")
    @classmethod
    def _fold(cls, value: Any) -> Any:
        return _lower(value)


class ExecutionStep(BaseModel):
    name: str
    status: str = ""
    started_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("started_at", "startedAt")
    )
    message: str | None = None

    model_config = {"frozen": True, "populate_by_name": True}


class Execution(BaseModel):
    """One run of a workflow.

    ``duration`` (milliseconds) exists exactly when the run is over; ``error``
    only when it failed.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id", "execution_id", "executionId"))
    workflow_id: str = Field(validation_alias=AliasChoices("workflow_id", "workflowId"))
    workflow_name: str = Field(
        default="", validation_alias=AliasChoices("workflow_name", "workflowName")
    )
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime = Field(
        default_factory=_now, validation_alias=AliasChoices("started_at", "startedAt")
    )
    duration: int | None = None
    error: str | None = None
    triggered_by: str = Field(
        default="", validation_alias=AliasChoices("triggered_by", "triggeredBy")
    )
    steps: tuple[ExecutionStep, ...] = ()

    model_config = {"frozen": True, "from_attributes": True, "populate_by_name": True}

    @field_validator("id", "workflow_id", mode="before")
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("status", mode="before")
    @classmethod
    def _fold(cls, value: Any) -> Any:
        return _lower(value)

    @model_validator(mode="before")
    @classmethod
    def _derive_duration(cls, data: Any) -> Any:
        # services report a finish time instead of a duration now and then
        if not isinstance(data, dict):
            return data
        status = _lower(data.get("status"))
        if status != "failed" and not data.get("error"):
            data = {**data, "error": None}
        if status in (None, "running") or data.get("duration") is not None:
            return data
        started = data.get("started_at") or data.get("startedAt")
        finished = data.get("finished_at") or data.get("finishedAt") or data.get("completedAt")
        duration = 0
        if started and finished:
            try:
                start = _as_datetime(started)
                end = _as_datetime(finished)
                duration = max(0, int((end - start).total_seconds() * 1000))
            except ValueError:
                duration = 0
        return {**data, "duration": duration}

    @model_validator(mode="after")
    def _check_outcome_fields(self) -> "Execution":
        if self.status is ExecutionStatus.RUNNING and self.duration is not None:
            raise ValueError("a running execution has no duration")
        if self.status.is_terminal and self.duration is None:
            raise ValueError("a finished execution needs a duration")
        if self.error is not None and self.status is not ExecutionStatus.FAILED:
            raise ValueError("only failed executions carry an error")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class WorkflowStatistics(BaseModel):
    total: int = 0
    active: int = 0
    running: int = 0
    executions_today: int = Field(
        default=0, validation_alias=AliasChoices("executions_today", "executionsToday")
    )

    model_config = {"extra": "allow", "populate_by_name": True}


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
