"""
Integration test conftest -- a seeded SQLite database and logged-in TestClients.
"""
import os
import sys
from contextlib import ExitStack

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

# Force SQLite for integration tests
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("SECRET_KEY", "integration-test-secret-key")

from starlette.testclient import TestClient

PASSWORD = "password123"


@pytest.fixture
def test_db(handover_db):
    """Seeded database: HR manager, exiting employee, successor and one handover."""
    return handover_db


@pytest.fixture
def client(app, test_db):
    """Anonymous TestClient."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def login(app, test_db):
    """
    Factory returning a TestClient logged in as the given email. Each client
    keeps its own cookie jar, so several users can act in one test.
    """
    with ExitStack() as stack:
        def _login(email, password=PASSWORD):
            c = stack.enter_context(TestClient(app, raise_server_exceptions=False))
            response = c.post("/login", data={"email": email, "password": password}, follow_redirects=False)
            assert response.status_code == 302, f"login failed for {email}"
            return c
        yield _login


@pytest.fixture
def admin_client(login):
    from handover_portal.config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
    return login(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)


@pytest.fixture
def hr_client(login, test_db):
    return login(test_db['hr']['email'])


@pytest.fixture
def employee_client(login, test_db):
    return login(test_db['employee']['email'])


@pytest.fixture
def successor_client(login, test_db):
    return login(test_db['successor']['email'])


@pytest.fixture
def create_user(test_db):
    """Helper to add an account to the seeded organization (or another one)."""
    from handover_portal import users

    def _create(email, role, tenant_id=None, name=None, department=None, password=PASSWORD):
        user, _ = users.create_user(email, role, tenant_id or test_db['tenant']['id'], name, department, password)
        return user

    return _create
