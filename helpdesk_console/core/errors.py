# helpdesk_console/core/errors.py
"""Error kinds surfaced by the console.

``ValidationError`` subclasses are raised before any remote call is made and
are never retried. ``RemoteError`` wraps a failed collaborator call and is
surfaced unchanged. Nothing here is retried automatically.
"""
from typing import Any

from pydantic import ValidationError as PydanticValidationError


class ConsoleError(Exception):
    kind = "console_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.kind}


class ValidationError(ConsoleError):
    kind = "validation_error"


class MissingFields(ValidationError):
    kind = "missing_fields"

    def __init__(self, fields: list[str]):
        super().__init__(f"Required fields missing: {', '.join(fields)}")
        self.fields = fields

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields}


class InvalidTransition(ValidationError):
    kind = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, allowed: list[str]):
        allowed_text = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Invalid transition. From {from_status} you can only go to: {allowed_text}"
        )
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "from": self.from_status,
            "to": self.to_status,
            "allowed": self.allowed,
        }


class MissingResolution(ValidationError):
    kind = "missing_resolution"

    def __init__(self, status: str):
        super().__init__(f"A resolution summary is required to move a ticket to {status}")
        self.status = status


class WorkflowNotActive(ValidationError):
    kind = "workflow_not_active"

    def __init__(self, workflow_id: str, status: str):
        super().__init__(f"Workflow {workflow_id} is {status}; only active workflows can run")
        self.workflow_id = workflow_id
        self.status = status


class NotCancellable(ValidationError):
    kind = "not_cancellable"

    def __init__(self, execution_id: str, status: str, message: str | None = None):
        super().__init__(message or f"Execution {execution_id} is {status} and cannot be cancelled")
        self.execution_id = execution_id
        self.status = status


class AlreadyTerminal(NotCancellable):
    kind = "already_terminal"

    def __init__(self, execution_id: str, status: str):
        super().__init__(
            execution_id,
            status,
            f"Execution {execution_id} already finished as {status}",
        )


class PageOutOfRange(ValidationError):
    kind = "page_out_of_range"

    def __init__(self, page: int, total_pages: int):
        super().__init__(f"Page {page} is out of range (1-{total_pages})")
        self.page = page
        self.total_pages = total_pages

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "page": self.page, "total_pages": self.total_pages}


class ConfirmationError(ValidationError):
    kind = "confirmation_error"


class RemoteError(ConsoleError):
    kind = "remote_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(RemoteError):
    kind = "not_found"

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


def parse_fields(model, data: dict[str, Any]):
    """Build ``model`` from user input, reporting bad fields as ``MissingFields``."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
        raise MissingFields(fields or ["payload"]) from e
