"""
Handover data shaping and mutations.

Loaders read the rows a user may see and shape them into the handover and
task view models used by the dashboards. Every mutation re-reads the entity
afterwards and returns the fresh view model; callers never patch local
copies.

The acting user is always passed in explicitly.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from handover_portal import data_access
from handover_portal.aggregation import filter_by_department, handover_progress
from handover_portal.config import (
    COMPLETION_THRESHOLD, HANDOVER_DEADLINE_DAYS, LOW_PROGRESS_THRESHOLD, STALLED_UPPER_THRESHOLD,
)
from handover_portal.database import get_db, now_iso, recalculate_handover_progress, apply_checklist_template
from handover_portal.projection import project_task
from handover_portal.roles import ROLE_ADMIN, ROLE_HR_MANAGER, ROLE_EXITING, ROLE_SUCCESSOR, can_view_handover
from handover_portal.workflow import (
    WorkflowError, check_acknowledgeable, check_closable, check_handover_open, derive_handover_status,
    next_help_status,
)

logger = logging.getLogger(__name__)

HANDOVER_SELECT = """
    SELECT h.*,
           e.email AS employee_email, e.name AS employee_name, e.department AS employee_department,
           s.email AS successor_email, s.name AS successor_name,
           (SELECT COUNT(*) FROM tasks t WHERE t.handover_id = h.id) AS task_count,
           (SELECT COUNT(*) FROM tasks t
             WHERE t.handover_id = h.id AND t.status IN ('completed', 'done')) AS completed_tasks
    FROM handovers h
    JOIN users e ON h.employee_id = e.id
    LEFT JOIN users s ON h.successor_id = s.id
"""


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _display_name(name, email, fallback=None):
    if name:
        return name
    if email:
        return email.split('@')[0]
    return fallback


def advisory_risk(progress: int, has_successor: bool, overdue: bool = False) -> tuple:
    """
    Risk level and recommendation shown until the insight process has
    attached its own assessment to the handover.
    """
    if not has_successor:
        return 'critical', 'URGENT: Assign successor immediately - critical knowledge at risk'
    if progress < LOW_PROGRESS_THRESHOLD:
        return 'high', 'Schedule urgent knowledge transfer sessions'
    if overdue:
        return 'high', 'Handover is past its target date - escalate to the manager'
    if progress < STALLED_UPPER_THRESHOLD:
        return 'medium', 'Increase handover meeting frequency'
    if progress >= COMPLETION_THRESHOLD:
        return 'low', 'Ready for final review and completion'
    return 'low', 'Handover progressing well - monitor regularly'


def shape_handover(row: dict, now: datetime = None) -> dict:
    """Handover view model from a HANDOVER_SELECT row."""
    now = now or datetime.now()
    task_count = row.get('task_count') or 0
    completed = row.get('completed_tasks') or 0
    progress = handover_progress(task_count, completed, row.get('progress'))
    status = derive_handover_status(progress, row.get('status'))

    created_at = _parse_timestamp(row.get('created_at'))
    due_date = (created_at + timedelta(days=HANDOVER_DEADLINE_DAYS)).date() if created_at else None
    overdue = bool(due_date) and status != 'completed' and now.date() > due_date

    risk, recommendation = advisory_risk(progress, bool(row.get('successor_email')), overdue)

    return {
        'id': row['id'],
        'tenant_id': row.get('tenant_id'),
        'employee_id': row.get('employee_id'),
        'exiting_employee_id': row.get('employee_id'),
        'exiting_employee_email': row.get('employee_email') or '',
        'exiting_employee_name': _display_name(row.get('employee_name'), row.get('employee_email'), 'Unknown Employee'),
        'successor_id': row.get('successor_id'),
        'successor_email': row.get('successor_email'),
        'successor_name': _display_name(row.get('successor_name'), row.get('successor_email')),
        'department': row.get('employee_department'),
        'status': status,
        'progress': progress,
        'task_count': task_count,
        'completed_tasks': completed,
        'ai_risk_level': row.get('ai_risk_level') or risk,
        'ai_recommendation': row.get('ai_recommendation') or recommendation,
        'due_date': due_date.isoformat() if due_date else None,
        'overdue': overdue,
        'created_at': row.get('created_at'),
        'approved_at': row.get('approved_at'),
    }


def _scope_clause(user: dict):
    role = user.get('role')
    if role == ROLE_ADMIN:
        return "", []
    if role == ROLE_HR_MANAGER:
        return "WHERE h.tenant_id = ?", [user.get('tenant_id')]
    if role == ROLE_SUCCESSOR:
        return "WHERE h.successor_id = ?", [user['id']]
    return "WHERE h.employee_id = ?", [user['id']]


def load_handovers(user: dict, department: str = None) -> list:
    """Handovers visible to the user, newest first."""
    where, params = _scope_clause(user)
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"{HANDOVER_SELECT} {where} ORDER BY h.created_at DESC, h.id DESC", params)
        rows = [dict(r) for r in cursor.fetchall()]

    handovers = [shape_handover(r) for r in rows]
    return filter_by_department(handovers, department)


def get_handover(user: dict, handover_id: int) -> Optional[dict]:
    """One handover view model, or None if missing or not visible to the user."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"{HANDOVER_SELECT} WHERE h.id = ?", (handover_id,))
        row = cursor.fetchone()
    if not row:
        return None
    handover = shape_handover(dict(row))
    if user is not None and not can_view_handover(user, handover):
        return None
    return handover


def load_tasks(handover_id: int) -> list:
    """Projected tasks of a handover with their notes and insights."""
    raw_tasks = data_access.query('tasks', {'handover_id': handover_id}, order_by='id')
    task_ids = [t['id'] for t in raw_tasks]

    notes_by_task, insights_by_task = {}, {}
    if task_ids:
        for note in data_access.query('notes', {'task_id': task_ids}, order_by=['created_at', 'id']):
            notes_by_task.setdefault(note['task_id'], []).append(note)
        for insight in data_access.query('task_insights', {'task_id': task_ids}, order_by=['created_at', 'id']):
            insights_by_task.setdefault(insight['task_id'], []).append(insight)

    return [
        project_task(t, notes_by_task.get(t['id'], ()), insights_by_task.get(t['id'], ()))
        for t in raw_tasks
    ]


def get_task(task_id: int) -> Optional[dict]:
    """Projected task, or None."""
    raw = data_access.get_by_id('tasks', task_id)
    if not raw:
        return None
    notes = data_access.query('notes', {'task_id': task_id}, order_by=['created_at', 'id'])
    insights = data_access.query('task_insights', {'task_id': task_id}, order_by=['created_at', 'id'])
    return project_task(raw, notes, insights)


def get_task_handover(task_id: int) -> tuple:
    """(raw task row, raw handover row) or (None, None)."""
    task = data_access.get_by_id('tasks', task_id)
    if not task:
        return None, None
    return task, data_access.get_by_id('handovers', task['handover_id'])


def _open_task(task_id: int) -> dict:
    """Raw task row whose handover still accepts changes."""
    task, handover = get_task_handover(task_id)
    if not task:
        raise LookupError(f"Task {task_id} not found")
    check_handover_open(handover)
    return task


# ── Handover mutations ───────────────────────────────────────────────

def create_handover(actor: dict, employee_id: int, successor_id: int = None, template_id: int = None) -> dict:
    employee = data_access.get_by_id('users', employee_id)
    if not employee:
        raise LookupError(f"Employee {employee_id} not found")
    if successor_id and not data_access.get_by_id('users', successor_id):
        raise LookupError(f"Successor {successor_id} not found")

    timestamp = now_iso()
    row = data_access.insert('handovers', {
        'tenant_id': employee['tenant_id'],
        'employee_id': employee_id,
        'successor_id': successor_id or None,
        'status': 'pending',
        'progress': 0,
        'created_at': timestamp,
        'updated_at': timestamp,
    })
    logger.info("Handover %s created for employee %s by %s", row['id'], employee_id, actor.get('id'))
    data_access.log_activity('handover_created', user_id=actor.get('id'), resource_type='handover',
                             resource_id=row['id'], details={'employee_id': employee_id, 'successor_id': successor_id})

    if template_id:
        apply_checklist_template(row['id'], template_id)
    return get_handover(None, row['id'])


def assign_successor(actor: dict, handover_id: int, successor_id: int) -> dict:
    if not data_access.get_by_id('users', successor_id):
        raise LookupError(f"Successor {successor_id} not found")
    if not data_access.update('handovers', handover_id, {'successor_id': successor_id, 'updated_at': now_iso()}):
        raise LookupError(f"Handover {handover_id} not found")
    data_access.log_activity('successor_assigned', user_id=actor.get('id'), resource_type='handover',
                             resource_id=handover_id, details={'successor_id': successor_id})
    return get_handover(None, handover_id)


def apply_template(actor: dict, handover_id: int, template_id: int) -> dict:
    created = apply_checklist_template(handover_id, template_id)
    data_access.log_activity('template_applied', user_id=actor.get('id'), resource_type='handover',
                             resource_id=handover_id, details={'template_id': template_id, 'created': created})
    handover = get_handover(None, handover_id)
    handover['tasks_created'] = created
    return handover


def approve_handover(actor: dict, handover_id: int) -> dict:
    """Close a handover. Every task must be completed and acknowledged."""
    handover = data_access.get_by_id('handovers', handover_id)
    if not handover:
        raise LookupError(f"Handover {handover_id} not found")
    check_handover_open(handover)
    check_closable(load_tasks(handover_id))

    timestamp = now_iso()
    data_access.update('handovers', handover_id, {
        'status': 'completed',
        'progress': 100,
        'approved_by': actor.get('id'),
        'approved_at': timestamp,
        'updated_at': timestamp,
    })
    logger.info("Handover %s approved by %s", handover_id, actor.get('id'))
    data_access.log_activity('handover_approved', user_id=actor.get('id'), resource_type='handover',
                             resource_id=handover_id)
    return get_handover(None, handover_id)


def record_ai_assessment(handover_id: int, risk_level: str = None, recommendation: str = None) -> None:
    patch = {}
    if risk_level:
        patch['ai_risk_level'] = risk_level
    if recommendation:
        patch['ai_recommendation'] = recommendation
    if patch:
        patch['updated_at'] = now_iso()
        data_access.update('handovers', handover_id, patch)


# ── Task mutations ───────────────────────────────────────────────────

def set_task_status(actor: dict, task_id: int, completed: bool) -> dict:
    """Mark a task completed or pending. Reverting to pending drops the acknowledgment."""
    task = _open_task(task_id)

    patch = {'status': 'completed' if completed else 'pending', 'updated_at': now_iso()}
    if not completed:
        patch['successor_acknowledged'] = 0
        patch['successor_acknowledged_at'] = None
    data_access.update('tasks', task_id, patch)
    recalculate_handover_progress(task['handover_id'])

    logger.info("Task %s set to %s by %s", task_id, patch['status'], actor.get('id'))
    data_access.log_activity('task_status_changed', user_id=actor.get('id'), resource_type='task',
                             resource_id=task_id, details={'status': patch['status']})
    return get_task(task_id)


def add_note(actor: dict, task_id: int, content: str) -> dict:
    _open_task(task_id)
    data_access.insert('notes', {
        'task_id': task_id,
        'content': content,
        'created_by': actor.get('id'),
        'created_at': now_iso(),
    })
    return get_task(task_id)


def add_insight(actor: dict, task_id: int, topic: str, content: str, attachments: list = None) -> dict:
    _open_task(task_id)
    timestamp = now_iso()
    data_access.insert('task_insights', {
        'task_id': task_id,
        'topic': topic,
        'content': content,
        'attachments': json.dumps(attachments or []),
        'created_at': timestamp,
        'updated_at': timestamp,
    })
    data_access.log_activity('insight_added', user_id=actor.get('id'), resource_type='task', resource_id=task_id)
    return get_task(task_id)


def update_insight(actor: dict, insight_id: int, topic: str = None, content: str = None,
                   attachments: list = None) -> dict:
    insight = data_access.get_by_id('task_insights', insight_id)
    if not insight:
        raise LookupError(f"Insight {insight_id} not found")
    _open_task(insight['task_id'])
    patch ={'updated_at': now_iso()}
    if topic is not None:
        patch['topic'] = topic
    if content is not None:
        patch['content'] = content
    if attachments is not None:
        patch['attachments'] = json.dumps(attachments)
    data_access.update('task_insights', insight_id, patch)
    return get_task(insight['task_id'])


def acknowledge_task(actor: dict, task_id: int) -> dict:
    """Successor confirms a completed task's knowledge was reviewed."""
    task = _open_task(task_id)
    check_acknowledgeable(task)

    # the status may have been reverted since it was read
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE tasks SET successor_acknowledged = 1, successor_acknowledged_at = ? "
            "WHERE id = ? AND status IN ('completed', 'done')",
            (now_iso(), task_id),
        )
        updated = cursor.rowcount
    if not updated:
        raise WorkflowError("Only completed tasks can be acknowledged")
    logger.info("Task %s acknowledged by %s", task_id, actor.get('id'))
    data_access.log_activity('task_acknowledged', user_id=actor.get('id'), resource_type='task', resource_id=task_id)
    return get_task(task_id)


# ── Help requests ────────────────────────────────────────────────────

HELP_SELECT = """
    SELECT r.*, t.title AS task_title, u.email AS requester_email, ru.email AS responder_email
    FROM help_requests r
    JOIN handovers h ON r.handover_id = h.id
    LEFT JOIN tasks t ON r.task_id = t.id
    LEFT JOIN users u ON r.requester_id = u.id
    LEFT JOIN users ru ON r.responded_by = ru.id
"""


def load_help_requests(user: dict, handover_id: int = None) -> list:
    """
    Help requests the user takes part in, newest first. HR sees its
    tenant's requests; exiting employees the questions addressed to them;
    successors their own requests.
    """
    role = user.get('role')
    clauses, params = [], []
    if role == ROLE_HR_MANAGER:
        clauses.append("h.tenant_id = ?")
        params.append(user.get('tenant_id'))
    elif role == ROLE_EXITING:
        clauses.append("h.employee_id = ? AND r.request_type = 'employee'")
        params.append(user['id'])
    elif role == ROLE_SUCCESSOR:
        clauses.append("r.requester_id = ?")
        params.append(user['id'])
    if handover_id is not None:
        clauses.append("r.handover_id = ?")
        params.append(handover_id)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"{HELP_SELECT} {where} ORDER BY r.created_at DESC, r.id DESC", params)
        return [dict(r) for r in cursor.fetchall()]


def get_help_request(request_id: int) -> Optional[dict]:
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"{HELP_SELECT} WHERE r.id = ?", (request_id,))
        row = cursor.fetchone()
    return dict(row) if row else None


def create_help_request(actor: dict, task_id: int, request_type: str, message: str) -> dict:
    task = data_access.get_by_id('tasks', task_id)
    if not task:
        raise LookupError(f"Task {task_id} not found")
    timestamp = now_iso()
    row = data_access.insert('help_requests', {
        'task_id': task_id,
        'handover_id': task['handover_id'],
        'requester_id': actor['id'],
        'request_type': request_type,
        'message': message,
        'status': 'pending',
        'created_at': timestamp,
        'updated_at': timestamp,
    })
    logger.info("Help request %s (%s) raised on task %s", row['id'], request_type, task_id)
    data_access.log_activity('help_requested', user_id=actor['id'], resource_type='help_request',
                             resource_id=row['id'], details={'request_type': request_type})
    return get_help_request(row['id'])


def respond_to_request(actor: dict, request_id: int, response: str) -> dict:
    request = data_access.get_by_id('help_requests', request_id)
    if not request:
        raise LookupError(f"Help request {request_id} not found")
    status = next_help_status(request['status'], 'respond')

    timestamp = now_iso()
    data_access.update('help_requests', request_id, {
        'response': response,
        'responded_by': actor['id'],
        'responded_at': timestamp,
        'status': status,
        'updated_at': timestamp,
    })
    logger.info("Help request %s answered by %s", request_id, actor['id'])
    data_access.log_activity('help_replied', user_id=actor['id'], resource_type='help_request', resource_id=request_id)
    return get_help_request(request_id)


def resolve_request(actor: dict, request_id: int) -> dict:
    request = data_access.get_by_id('help_requests', request_id)
    if not request:
        raise LookupError(f"Help request {request_id} not found")
    status = next_help_status(request['status'], 'resolve')

    data_access.update('help_requests', request_id, {'status': status, 'updated_at': now_iso()})
    data_access.log_activity('help_resolved', user_id=actor['id'], resource_type='help_request', resource_id=request_id)
    return get_help_request(request_id)
