"""
Shared test fixtures -- mock data for unit and integration tests.
"""
import datetime


# ── User fixtures ────────────────────────────────────────────────────

def make_user(
    id=1,
    name="Test User",
    email="test@example.com",
    role="exiting",
    department="Sales",
    tenant_id=1,
    permissions=None,
):
    """Build a user dict as returned by validate_session()."""
    from handover_portal.roles import ROLE_PERMISSIONS, get_role_display

    return {
        "id": id,
        "name": name,
        "email": email,
        "role": role,
        "department": department,
        "tenant_id": tenant_id,
        "is_admin": role == "admin",
        "role_display": get_role_display(role),
        "permissions": permissions if permissions is not None else list(ROLE_PERMISSIONS.get(role, [])),
    }


ADMIN_USER = make_user(id=1, name="System Administrator", email="admin@handover.local", role="admin",
                       department=None)
HR_USER = make_user(id=2, name="Helen Ross", email="hr@example.com", role="hr-manager", department="HR")
EXITING_USER = make_user(id=3, name="John Doe", email="john@example.com", role="exiting")
SUCCESSOR_USER = make_user(id=4, name="Sam Patel", email="sam@example.com", role="successor")
OTHER_TENANT_HR = make_user(id=5, name="Other HR", email="hr@other.example.com", role="hr-manager",
                            tenant_id=2)


# ── Handover fixtures ────────────────────────────────────────────────

def make_handover(
    id=1,
    department="Sales",
    progress=0,
    status="pending",
    successor_email="sam@example.com",
    ai_risk_level="low",
    task_count=0,
    completed_tasks=0,
    **kwargs,
):
    """Build a handover view model as produced by shape_handover()."""
    base = {
        "id": id,
        "tenant_id": 1,
        "employee_id": 3,
        "exiting_employee_id": 3,
        "exiting_employee_email": "john@example.com",
        "exiting_employee_name": "John Doe",
        "successor_id": 4 if successor_email else None,
        "successor_email": successor_email,
        "successor_name": successor_email.split("@")[0] if successor_email else None,
        "department": department,
        "status": status,
        "progress": progress,
        "task_count": task_count,
        "completed_tasks": completed_tasks,
        "ai_risk_level": ai_risk_level,
        "ai_recommendation": None,
        "due_date": None,
        "overdue": False,
        "created_at": "2025-01-01 09:00:00",
        "approved_at": None,
    }
    base.update(kwargs)
    return base


# ── Task fixtures ────────────────────────────────────────────────────

def make_raw_task(
    id=1,
    handover_id=1,
    title="Weekly report",
    status="pending",
    priority=None,
    category=None,
    successor_acknowledged=0,
    **kwargs,
):
    """Build a raw task row as stored in the tasks table."""
    now = datetime.datetime(2025, 1, 1, 9, 0, 0).isoformat(sep=" ")
    base = {
        "id": id,
        "handover_id": handover_id,
        "template_task_id": None,
        "title": title,
        "description": "",
        "category": category,
        "priority": priority,
        "status": status,
        "due_date": None,
        "successor_acknowledged": successor_acknowledged,
        "successor_acknowledged_at": "2025-01-02 10:00:00" if successor_acknowledged else None,
        "created_at": now,
        "updated_at": now,
    }
    base.update(kwargs)
    return base


def make_task(id=1, status="pending", successor_acknowledged=False, category="General", priority="medium"):
    """Build a projected task view model."""
    return {
        "id": id,
        "handover_id": 1,
        "title": f"Task {id}",
        "description": "",
        "category": category,
        "status": status,
        "priority": priority,
        "notes": "",
        "due_date": None,
        "successor_acknowledged": successor_acknowledged,
        "successor_acknowledged_at": None,
        "insights": [],
    }


def make_note(content, created_at, task_id=1):
    return {"id": None, "task_id": task_id, "content": content, "created_by": 3, "created_at": created_at}
