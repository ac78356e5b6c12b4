"""
Root conftest.py -- shared fixtures for all test levels.
"""
import os
import sys
import pytest

# Ensure handover_portal is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Force SQLite for testing (never hit production PostgreSQL)
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["AI_WEBHOOK_TOKEN"] = "test-webhook-token"


@pytest.fixture(scope="session")
def app():
    """Create the FastAPI app instance for testing."""
    # Must import after env vars are set
    from handover_portal.main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """A fresh SQLite database file for one test."""
    import handover_portal.config as config
    import handover_portal.database as database_mod

    db_path = tmp_path / "unit_test.db"
    monkeypatch.setattr(config, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database_mod, "DATABASE_PATH", db_path)
    database_mod.init_database()
    return db_path


@pytest.fixture
def handover_db(temp_db):
    """
    Default tenant with an HR manager, an exiting employee, a successor and
    one handover holding two pending tasks.
    """
    from handover_portal import data_access
    from handover_portal.auth import hash_password

    tenant = data_access.query('tenants', {'slug': 'default'})[0]
    password_hash = hash_password("password123")

    def add_user(email, role, name, department=None):
        return data_access.insert('users', {
            'tenant_id': tenant['id'], 'email': email, 'name': name, 'role': role,
            'department': department, 'password_hash': password_hash,
        })

    hr = add_user("hr@example.com", "hr-manager", "HR Manager")
    employee = add_user("leaver@example.com", "exiting", "Lee Leaver", "Sales")
    successor = add_user("next@example.com", "successor", "Nia Next", "Sales")

    handover = data_access.insert('handovers', {
        'tenant_id': tenant['id'], 'employee_id': employee['id'], 'successor_id': successor['id'],
        'status': 'pending', 'progress': 0,
    })
    tasks = [
        data_access.insert('tasks', {'handover_id': handover['id'], 'title': title, 'status': 'pending',
                                     'priority': 'high', 'category': 'General'})
        for title in ("Document client list", "Hand over CRM access")
    ]
    return {
        'tenant': tenant, 'hr': hr, 'employee': employee, 'successor': successor,
        'handover': handover, 'tasks': tasks,
    }
