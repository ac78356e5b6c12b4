"""
Checklist templates: role/department task lists applied to handovers.
"""
import logging
from typing import Optional

from handover_portal import data_access
from handover_portal.config import PRIORITY_OPTIONS
from handover_portal.database import now_iso
from handover_portal.roles import ROLE_ADMIN

logger = logging.getLogger(__name__)


def templates_for_role(templates: list, role: str, department: Optional[str] = None) -> list:
    """
    Templates matching a role. A template without a department fits every
    department; no department filter keeps every template of the role.
    """
    return [
        t for t in templates
        if t.get('role') == role
        and (not department or not t.get('department') or t.get('department') == department)
    ]


def load_templates(user: dict, role: str = None, department: str = None) -> list:
    """Active templates visible to the user (own tenant plus shared ones), newest first."""
    templates = data_access.query('checklist_templates', {'is_active': 1}, order_by=['-created_at', '-id'])
    if user.get('role') != ROLE_ADMIN:
        templates = [t for t in templates if t.get('tenant_id') in (None, user.get('tenant_id'))]
    if role:
        templates = templates_for_role(templates, role, department)
    return templates


def get_template(template_id: int) -> Optional[dict]:
    template = data_access.get_by_id('checklist_templates', template_id)
    if not template:
        return None
    template['tasks'] = data_access.query('checklist_template_tasks', {'template_id': template_id},
                                          order_by=['order_index', 'id'])
    return template


def create_template(actor: dict, name: str, role: str, description: str = None, department: str = None) -> dict:
    timestamp = now_iso()
    row = data_access.insert('checklist_templates', {
        'tenant_id': actor.get('tenant_id'),
        'name': name,
        'description': description,
        'role': role,
        'department': department or None,
        'is_active': 1,
        'created_by': actor.get('id'),
        'created_at': timestamp,
        'updated_at': timestamp,
    })
    logger.info("Checklist template %s created by %s", row['id'], actor.get('id'))
    data_access.log_activity('template_created', user_id=actor.get('id'), resource_type='checklist_template',
                             resource_id=row['id'])
    return get_template(row['id'])


def add_template_task(template_id: int, title: str, description: str = None, category: str = 'General',
                      priority: str = 'medium', order_index: int = None) -> dict:
    if not data_access.get_by_id('checklist_templates', template_id):
        raise LookupError(f"Template {template_id} not found")
    if priority not in PRIORITY_OPTIONS:
        raise ValueError(f"Invalid priority: {priority}")
    if order_index is None:
        order_index = len(data_access.query('checklist_template_tasks', {'template_id': template_id}))
    data_access.insert('checklist_template_tasks', {
        'template_id': template_id,
        'title': title,
        'description': description,
        'category': category or 'General',
        'priority': priority,
        'order_index': order_index,
        'created_at': now_iso(),
    })
    return get_template(template_id)


def deactivate_template(actor: dict, template_id: int) -> bool:
    changed = data_access.update('checklist_templates', template_id, {'is_active': 0, 'updated_at': now_iso()})
    if changed:
        data_access.log_activity('template_deactivated', user_id=actor.get('id'),
                                 resource_type='checklist_template', resource_id=template_id)
    return changed
