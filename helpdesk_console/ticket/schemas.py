# helpdesk_console/ticket/schemas.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @property
    def rank(self) -> int:
        return list(TicketStatus).index(self)

    @property
    def needs_resolution(self) -> bool:
        return self in (TicketStatus.RESOLVED, TicketStatus.CLOSED)


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


def _upper(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper().replace(" ", "_").replace("-", "_")
    return value


class Ticket(BaseModel):
    """Canonical ticket shape. Backend spelling variants are folded in here."""

    id: str = Field(validation_alias=AliasChoices("id", "_id", "ticket_id", "ticketId"))
    title: str = Field(default="", validation_alias=AliasChoices("title", "subject"))
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: Priority = Priority.MEDIUM
    type_of_request: str = Field(
        default="", validation_alias=AliasChoices("type_of_request", "typeOfRequest", "category")
    )
    building: str = ""
    room: str = ""
    requester_id: str = Field(
        default="", validation_alias=AliasChoices("requester_id", "requesterId")
    )
    assigned_to: str | None = Field(
        default=None, validation_alias=AliasChoices("assigned_to", "assignedTo")
    )
    resolution_summary: str | None = Field(
        default=None, validation_alias=AliasChoices("resolution_summary", "resolutionSummary")
    )
    created_at: datetime = Field(
        default_factory=_now, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: datetime = Field(
        default_factory=_now, validation_alias=AliasChoices("updated_at", "updatedAt")
    )

    model_config = {"frozen": True, "from_attributes": True, "populate_by_name": True}

    @field_validator("id", "requester_id", "assigned_to", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("status", "priority", mode="before")
    @classmethod
    def _fold_case(cls, value: Any) -> Any:
        return _upper(value)

    @field_validator("title", "description", "building", "room", "type_of_request", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type_of_request: str = Field(..., min_length=1)
    building: str = Field(..., min_length=1)
    room: str = Field(..., min_length=1)
    requester_id: str = Field(..., min_length=1)
    priority: Priority | None = None

    @field_validator("title", "description", "type_of_request", "building", "room", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("priority", mode="before")
    @classmethod
    def _fold_case(cls, value: Any) -> Any:
        return _upper(value) or None


class TicketUpdate(BaseModel):
    """Full edit of a ticket's descriptive fields, optionally moving its status."""

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type_of_request: str = Field(..., min_length=1)
    building: str = Field(..., min_length=1)
    room: str = Field(..., min_length=1)
    status: TicketStatus | None = None
    resolution_summary: str | None = None

    @field_validator("title", "description", "type_of_request", "building", "room",
                     "resolution_summary", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("status", mode="before")
    @classmethod
    def _fold_case(cls, value: Any) -> Any:
        return _upper(value) or None


class StatusUpdate(BaseModel):
    status: TicketStatus
    resolution_summary: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _fold_case(cls, value: Any) -> Any:
        return _upper(value)


class TicketStatistics(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0

    model_config = {"extra": "allow"}
