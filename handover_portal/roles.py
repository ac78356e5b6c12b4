"""
Role-based access control for the Handover Portal.

Roles:
1. ADMIN - manages tenants and users, plus everything an HR manager can do
2. HR_MANAGER - creates, staffs, approves and monitors handovers
3. EXITING - the departing employee who documents tasks
4. SUCCESSOR - the employee receiving the knowledge
"""

# Role Constants
ROLE_ADMIN = 'admin'
ROLE_HR_MANAGER = 'hr-manager'
ROLE_EXITING = 'exiting'
ROLE_SUCCESSOR = 'successor'

ALL_ROLES = [ROLE_ADMIN, ROLE_HR_MANAGER, ROLE_EXITING, ROLE_SUCCESSOR]

ROLE_NAMES = {
    ROLE_ADMIN: 'Administrator',
    ROLE_HR_MANAGER: 'HR Manager',
    ROLE_EXITING: 'Exiting Employee',
    ROLE_SUCCESSOR: 'Successor',
}

# Permissions
PERM_MANAGE_TENANTS = 'manage_tenants'
PERM_MANAGE_USERS = 'manage_users'
PERM_VIEW_ACTIVITY = 'view_activity'
PERM_EXPORT_DATA = 'export_data'
PERM_VIEW_ALL_HANDOVERS = 'view_all_handovers'
PERM_MANAGE_HANDOVERS = 'manage_handovers'
PERM_APPROVE_HANDOVER = 'approve_handover'
PERM_MANAGE_TEMPLATES = 'manage_templates'
PERM_VIEW_REPORTS = 'view_reports'
PERM_ANSWER_ESCALATION = 'answer_escalation'
PERM_EDIT_TASKS = 'edit_tasks'
PERM_ANSWER_QUESTION = 'answer_question'
PERM_ACKNOWLEDGE_TASK = 'acknowledge_task'
PERM_RAISE_HELP_REQUEST = 'raise_help_request'
PERM_RESOLVE_HELP_REQUEST = 'resolve_help_request'

HR_PERMISSIONS = [
    PERM_VIEW_ALL_HANDOVERS,
    PERM_MANAGE_HANDOVERS,
    PERM_APPROVE_HANDOVER,
    PERM_MANAGE_TEMPLATES,
    PERM_VIEW_REPORTS,
    PERM_ANSWER_ESCALATION,
    PERM_EXPORT_DATA,
]

ROLE_PERMISSIONS = {
    ROLE_ADMIN: HR_PERMISSIONS + [
        PERM_MANAGE_TENANTS,
        PERM_MANAGE_USERS,
        PERM_VIEW_ACTIVITY,
    ],
    ROLE_HR_MANAGER: list(HR_PERMISSIONS),
    ROLE_EXITING: [
        PERM_EDIT_TASKS,
        PERM_ANSWER_QUESTION,
    ],
    ROLE_SUCCESSOR: [
        PERM_ACKNOWLEDGE_TASK,
        PERM_RAISE_HELP_REQUEST,
        PERM_RESOLVE_HELP_REQUEST,
    ],
}


def get_role_display(role: str) -> str:
    return ROLE_NAMES.get(role, role or 'Unknown')


def get_user_permissions(user: dict) -> list:
    """Permissions granted by the user's role."""
    if not user:
        return []
    return list(ROLE_PERMISSIONS.get(user.get('role'), []))


def has_permission(user: dict, permission: str) -> bool:
    if not user:
        return False
    permissions = user.get('permissions')
    if permissions is None:
        permissions = get_user_permissions(user)
    return permission in permissions


def is_admin(user: dict) -> bool:
    return bool(user) and user.get('role') == ROLE_ADMIN


def is_hr(user: dict) -> bool:
    """HR managers and admins both run the HR dashboard."""
    return bool(user) and user.get('role') in (ROLE_ADMIN, ROLE_HR_MANAGER)


def is_exiting(user: dict) -> bool:
    return bool(user) and user.get('role') == ROLE_EXITING


def is_successor(user: dict) -> bool:
    return bool(user) and user.get('role') == ROLE_SUCCESSOR


def can_view_handover(user: dict, handover: dict) -> bool:
    """Whether the user may see a handover (raw row or view model)."""
    if not user or not handover:
        return False
    if is_admin(user):
        return True
    if user.get('role') == ROLE_HR_MANAGER:
        return handover.get('tenant_id') == user.get('tenant_id')
    employee_id = handover.get('employee_id', handover.get('exiting_employee_id'))
    if user.get('id') == employee_id:
        return True
    return user.get('id') == handover.get('successor_id')


def dashboard_template(user: dict) -> str:
    """Template used for the user's landing dashboard."""
    if is_hr(user):
        return 'hr_dashboard.html'
    if is_successor(user):
        return 'successor_dashboard.html'
    return 'employee_dashboard.html'
