"""
Seed a demo organization: an HR manager, an exiting employee with a
handover in progress, their successor and a default checklist template.

The demo tasks use the legacy status values ('done', 'critical') and no
priority/category, so the dashboards exercise the status and title
heuristics. Running the script again resets the demo handover's tasks.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handover_portal import data_access
from handover_portal.checklists import add_template_task, create_template
from handover_portal.config import DEFAULT_TENANT_SLUG
from handover_portal.database import get_db, init_database, now_iso, recalculate_handover_progress
from handover_portal.users import create_user

DEMO_PASSWORD = "demo1234"

DEMO_USERS = [
    {"email": "hr.manager@example.com", "name": "Helen Ross", "role": "hr-manager", "department": "HR"},
    {"email": "john.doe@example.com", "name": "John Doe", "role": "exiting", "department": "Sales"},
    {"email": "sam.successor@example.com", "name": "Sam Patel", "role": "successor", "department": "Sales"},
]

DEMO_TASKS = [
    {
        "title": "Client Account Handover - TechCorp",
        "description": "Transfer all TechCorp account details, meeting notes, and contact information",
        "status": "done",
        "note": "Successfully completed client handover meeting. Next steps documented in shared folder.",
    },
    {
        "title": "CRM Workflow Documentation",
        "description": "Document the custom CRM workflows and automation rules",
        "status": "done",
        "note": "CRM workflows documented in wiki. Screenshots added for complex rules.",
    },
    {
        "title": "Renewal Risk Assessment",
        "description": "Identify accounts at risk for renewal and provide mitigation strategies",
        "status": "critical",
    },
    {
        "title": "Team Introduction Sessions",
        "description": "Introduce successor to key team members and stakeholders",
        "status": "pending",
    },
]

DEFAULT_TEMPLATE_TASKS = [
    ("Document recurring responsibilities", "General", "high"),
    ("List key client contacts", "Client Management", "high"),
    ("Transfer system access and credentials", "Systems & Tools", "critical"),
    ("Share open risks and pending decisions", "Strategic Planning", "medium"),
    ("Introduce successor to the team", "Relationships", "medium"),
]


def ensure_user(spec, tenant_id):
    existing = data_access.query('users', {'email': spec['email']}, limit=1)
    if existing:
        return existing[0]
    user, _ = create_user(spec['email'], spec['role'], tenant_id, name=spec['name'],
                          department=spec['department'], password=DEMO_PASSWORD)
    print(f"  Created {spec['role']}: {spec['email']} / {DEMO_PASSWORD}")
    return user


def seed_demo():
    init_database()
    tenant = data_access.query('tenants', {'slug': DEFAULT_TENANT_SLUG}, limit=1)[0]

    print("Creating demo users...")
    users = {u['role']: ensure_user(u, tenant['id']) for u in DEMO_USERS}
    employee, successor = users['exiting'], users['successor']

    handovers = data_access.query('handovers', {'employee_id': employee['id'], 'successor_id': successor['id']},
                                  limit=1)
    timestamp = now_iso()
    if handovers:
        handover = handovers[0]
    else:
        handover = data_access.insert('handovers', {
            'tenant_id': tenant['id'],
            'employee_id': employee['id'],
            'successor_id': successor['id'],
            'status': 'in-progress',
            'progress': 0,
            'created_at': timestamp,
            'updated_at': timestamp,
        })
    print(f"Demo handover: {handover['id']}")

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            DELETE FROM notes WHERE task_id IN (SELECT id FROM tasks WHERE handover_id = ?)
        """, (handover['id'],))
        cursor.execute("DELETE FROM help_requests WHERE handover_id = ?", (handover['id'],))
        cursor.execute("DELETE FROM tasks WHERE handover_id = ?", (handover['id'],))

    for spec in DEMO_TASKS:
        task = data_access.insert('tasks', {
            'handover_id': handover['id'],
            'title': spec['title'],
            'description': spec['description'],
            'status': spec['status'],
            'created_at': timestamp,
            'updated_at': timestamp,
        })
        if spec.get('note'):
            data_access.insert('notes', {
                'task_id': task['id'],
                'content': spec['note'],
                'created_by': employee['id'],
                'created_at': timestamp,
            })
    result = recalculate_handover_progress(handover['id'])
    print(f"  {len(DEMO_TASKS)} tasks, progress {result.get('progress')}%")

    if not data_access.query('checklist_templates', {'name': 'Standard Exit Checklist'}, limit=1):
        template = create_template(users['hr-manager'], 'Standard Exit Checklist', 'exiting',
                                   description='Default knowledge transfer checklist')
        for index, (title, category, priority) in enumerate(DEFAULT_TEMPLATE_TASKS):
            add_template_task(template['id'], title, category=category, priority=priority, order_index=index)
        print(f"Created checklist template {template['id']}")

    print("Demo data ready.")


if __name__ == "__main__":
    seed_demo()
