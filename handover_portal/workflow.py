"""
Workflow rules: help-request state machine, task acknowledgment and
handover closure.

Help requests move pending -> replied -> resolved. No state is skipped and
resolved is terminal.
"""
from typing import Iterable, Optional

from handover_portal.config import COMPLETION_THRESHOLD

HELP_PENDING = 'pending'
HELP_REPLIED = 'replied'
HELP_RESOLVED = 'resolved'

# (current status, action) -> next status
HELP_TRANSITIONS = {
    (HELP_PENDING, 'respond'): HELP_REPLIED,
    (HELP_REPLIED, 'resolve'): HELP_RESOLVED,
}


class WorkflowError(ValueError):
    """An action that the current state does not allow."""


def next_help_status(current: str, action: str) -> str:
    """Return the status a help request moves to, or raise WorkflowError."""
    if current == HELP_RESOLVED:
        raise WorkflowError("Help request is already resolved")
    target = HELP_TRANSITIONS.get((current, action))
    if target is None:
        raise WorkflowError(f"Cannot {action} a help request that is {current}")
    return target


def can_transition(current: str, action: str) -> bool:
    return (current, action) in HELP_TRANSITIONS


def check_acknowledgeable(task: dict) -> None:
    """A successor may only acknowledge a completed task."""
    if task.get('status') not in ('completed', 'done'):
        raise WorkflowError("Only completed tasks can be acknowledged")


def check_handover_open(handover: dict) -> None:
    """Tasks of an approved handover are frozen."""
    if handover and handover.get('status') == 'completed':
        raise WorkflowError("Handover is closed")


def derive_handover_status(progress: int, stored: Optional[str] = None) -> str:
    """
    Status shown for a handover. An approved (completed) handover stays
    completed; otherwise the status follows progress.
    """
    if stored == 'completed':
        return 'completed'
    if progress >= COMPLETION_THRESHOLD:
        return 'review'
    if progress > 0:
        return 'in-progress'
    return 'pending'


def check_closable(tasks: Iterable[dict]) -> None:
    """A handover closes only when every task is completed and acknowledged."""
    tasks = list(tasks)
    if not tasks:
        raise WorkflowError("Handover has no tasks")
    open_tasks = [t for t in tasks if t.get('status') != 'completed']
    if open_tasks:
        raise WorkflowError(f"{len(open_tasks)} task(s) are not completed")
    unacknowledged = [t for t in tasks if not t.get('successor_acknowledged')]
    if unacknowledged:
        raise WorkflowError(f"{len(unacknowledged)} task(s) are not acknowledged by the successor")
