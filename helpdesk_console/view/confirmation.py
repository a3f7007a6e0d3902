# helpdesk_console/view/confirmation.py
"""Two-phase gate for destructive actions.

``request`` hands out a ``PendingConfirmation``; ``take`` redeems it once.
How the question is put to the operator is not this module's business.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from helpdesk_console.core.errors import ConfirmationError

logger = logging.getLogger(__name__)


class PendingConfirmation(BaseModel):
    token: str = Field(default_factory=lambda: uuid.uuid4().hex)
    intent: str
    target_id: str
    prompt: str = ""
    # carried through to the action, e.g. the ticket a workflow runs for
    context: dict[str, Any] = Field(default_factory=dict)
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}


class ConfirmationBook:
    def __init__(self):
        self._pending: dict[str, PendingConfirmation] = {}

    def request(
        self, intent: str, target_id: str, prompt: str = "", context: dict[str, Any] | None = None
    ) -> PendingConfirmation:
        pending = PendingConfirmation(
            intent=intent, target_id=target_id, prompt=prompt, context=context or {}
        )
        self._pending[pending.token] = pending
        logger.debug("Confirmation requested: %s %s", intent, target_id)
        return pending

    def take(self, token: str) -> PendingConfirmation:
        pending = self._pending.pop(token, None)
        if pending is None:
            raise ConfirmationError("Unknown or already used confirmation")
        return pending

    def discard(self, token: str) -> None:
        self._pending.pop(token, None)

    def __len__(self) -> int:
        return len(self._pending)
