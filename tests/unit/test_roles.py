"""
Unit tests for handover_portal/roles.py -- RBAC and handover visibility.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from handover_portal.roles import (
    ROLE_ADMIN, ROLE_HR_MANAGER, ROLE_EXITING, ROLE_SUCCESSOR,
    ALL_ROLES, ROLE_PERMISSIONS,
    PERM_MANAGE_USERS, PERM_MANAGE_HANDOVERS, PERM_ACKNOWLEDGE_TASK, PERM_EDIT_TASKS,
    get_role_display, get_user_permissions, has_permission,
    is_admin, is_hr, is_exiting, is_successor,
    can_view_handover, dashboard_template,
)

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import (
    ADMIN_USER, HR_USER, EXITING_USER, SUCCESSOR_USER, OTHER_TENANT_HR, make_handover, make_user,
)

pytestmark = pytest.mark.unit


class TestRoleConstants:
    def test_every_role_has_permissions(self):
        for role in ALL_ROLES:
            assert ROLE_PERMISSIONS[role]

    def test_admin_superset_of_hr(self):
        assert set(ROLE_PERMISSIONS[ROLE_HR_MANAGER]) <= set(ROLE_PERMISSIONS[ROLE_ADMIN])

    def test_display_names(self):
        assert get_role_display(ROLE_HR_MANAGER) == "HR Manager"
        assert get_role_display("unknown-role") == "unknown-role"
        assert get_role_display(None) == "Unknown"


class TestPermissions:
    def test_admin_manages_users(self):
        assert has_permission(ADMIN_USER, PERM_MANAGE_USERS)

    def test_hr_cannot_manage_users(self):
        assert not has_permission(HR_USER, PERM_MANAGE_USERS)
        assert has_permission(HR_USER, PERM_MANAGE_HANDOVERS)

    def test_successor_acknowledges(self):
        assert has_permission(SUCCESSOR_USER, PERM_ACKNOWLEDGE_TASK)
        assert not has_permission(SUCCESSOR_USER, PERM_EDIT_TASKS)

    def test_permissions_from_role_when_missing(self):
        user = {"id": 9, "role": ROLE_EXITING}
        assert has_permission(user, PERM_EDIT_TASKS)
        assert get_user_permissions(user) == ROLE_PERMISSIONS[ROLE_EXITING]

    def test_no_user(self):
        assert has_permission(None, PERM_EDIT_TASKS) is False
        assert get_user_permissions(None) == []


class TestRoleChecks:
    def test_predicates(self):
        assert is_admin(ADMIN_USER) and is_hr(ADMIN_USER)
        assert is_hr(HR_USER) and not is_admin(HR_USER)
        assert is_exiting(EXITING_USER)
        assert is_successor(SUCCESSOR_USER)
        assert not is_hr(None)

    def test_dashboard_template(self):
        assert dashboard_template(ADMIN_USER) == "hr_dashboard.html"
        assert dashboard_template(HR_USER) == "hr_dashboard.html"
        assert dashboard_template(SUCCESSOR_USER) == "successor_dashboard.html"
        assert dashboard_template(EXITING_USER) == "employee_dashboard.html"


class TestCanViewHandover:
    def test_admin_sees_everything(self):
        assert can_view_handover(ADMIN_USER, make_handover(tenant_id=99))

    def test_hr_same_tenant_only(self):
        handover = make_handover(tenant_id=1)
        assert can_view_handover(HR_USER, handover)
        assert not can_view_handover(OTHER_TENANT_HR, handover)

    def test_participants(self):
        handover = make_handover()
        assert can_view_handover(EXITING_USER, handover)
        assert can_view_handover(SUCCESSOR_USER, handover)

    def test_stranger(self):
        stranger = make_user(id=42, role=ROLE_SUCCESSOR)
        assert not can_view_handover(stranger, make_handover())

    def test_raw_row(self):
        row = {"id": 1, "tenant_id": 1, "employee_id": 3, "successor_id": None}
        assert can_view_handover(EXITING_USER, row)
        assert not can_view_handover(SUCCESSOR_USER, row)

    def test_missing(self):
        assert not can_view_handover(ADMIN_USER, None)
