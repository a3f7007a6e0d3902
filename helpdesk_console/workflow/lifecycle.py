# helpdesk_console/workflow/lifecycle.py
"""Execution lifecycle of a triggered workflow.

    running -> completed | failed | cancelled

``running`` is entered when the workflow service accepts a trigger. The
console itself may only ask for ``cancelled``; ``completed`` and ``failed`` are
reported by the service. A finished execution never changes again.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from helpdesk_console.core.errors import AlreadyTerminal, WorkflowNotActive
from helpdesk_console.workflow.schemas import Execution, ExecutionStatus, Workflow, WorkflowStatus

logger = logging.getLogger(__name__)

StartRun = Callable[[str, dict[str, Any] | None], Awaitable[Execution]]
StopRun = Callable[[str], Awaitable[None]]


def ensure_triggerable(workflow: Workflow) -> None:
    if not workflow.is_active:
        raise WorkflowNotActive(workflow.id, workflow.status.value)


async def trigger(workflow: Workflow, start: StartRun, context: dict[str, Any] | None = None) -> Execution:
    ensure_triggerable(workflow)
    execution = await start(workflow.id, context)
    logger.info("Workflow %s started execution %s", workflow.id, execution.id)
    return execution


def ensure_open(execution: Execution) -> None:
    """Any operation on a finished execution fails the same way."""
    if execution.is_terminal:
        raise AlreadyTerminal(execution.id, execution.status.value)


# only running executions can be cancelled; AlreadyTerminal is a NotCancellable
ensure_cancellable = ensure_open


def mark_cancelled(execution: Execution, now: datetime | None = None) -> Execution:
    ensure_cancellable(execution)
    now = now or datetime.now(timezone.utc)
    started = execution.started_at
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    elapsed = max(0, int((now - started).total_seconds() * 1000))
    return execution.model_copy(update={"status": ExecutionStatus.CANCELLED, "duration": elapsed})


async def cancel(execution: Execution, stop: StopRun, now: datetime | None = None) -> Execution:
    ensure_cancellable(execution)
    await stop(execution.id)
    logger.info("Execution %s cancelled", execution.id)
    return mark_cancelled(execution, now)


def observe(current: Execution, reported: Execution) -> Execution:
    """Reconcile a cached execution with what the service now reports.

    A running execution takes whatever the service says. A finished one is
    immutable: reporting the same outcome is a no-op, anything else fails.
    """
    if current.id != reported.id:
        raise ValueError(f"Cannot reconcile {current.id} with {reported.id}")
    if not current.is_terminal:
        return reported
    if reported.status is not current.status:
        logger.warning(
            "Execution %s reported %s after finishing as %s",
            current.id, reported.status.value, current.status.value,
        )
        raise AlreadyTerminal(current.id, current.status.value)
    return current


def next_toggle_status(workflow: Workflow) -> WorkflowStatus:
    """active <-> inactive; a draft can be activated but nothing goes back to draft."""
    if workflow.status is WorkflowStatus.ACTIVE:
        return WorkflowStatus.INACTIVE
    return WorkflowStatus.ACTIVE
