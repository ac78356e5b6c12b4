"""
Integration tests for checklist template management.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")

pytestmark = pytest.mark.integration


@pytest.fixture
def template(hr_client):
    response = hr_client.post("/api/templates", data={
        "name": "Sales Exit", "role": "exiting", "department": "Sales", "description": "For sales staff",
    })
    assert response.status_code == 201
    return response.json()["template"]


class TestTemplates:
    def test_create_and_list(self, hr_client, template):
        templates = hr_client.get("/api/templates").json()["templates"]
        assert [t["name"] for t in templates] == ["Sales Exit"]

    def test_filter_by_role_and_department(self, hr_client, template):
        assert hr_client.get("/api/templates", params={"role": "exiting", "department": "Sales"}).json()["templates"]
        assert hr_client.get("/api/templates", params={"role": "exiting", "department": "Ops"}).json()["templates"] == []
        assert hr_client.get("/api/templates", params={"role": "successor"}).json()["templates"] == []

    def test_invalid_role(self, hr_client):
        response = hr_client.post("/api/templates", data={"name": "x", "role": "boss"})
        assert response.status_code == 400

    def test_add_tasks_in_order(self, hr_client, template):
        url = f"/api/templates/{template['id']}/tasks"
        hr_client.post(url, data={"title": "Second", "order_index": 2})
        response = hr_client.post(url, data={"title": "First", "order_index": 1, "priority": "high"})
        assert response.status_code == 201
        tasks = response.json()["template"]["tasks"]
        assert [t["title"] for t in tasks] == ["First", "Second"]
        assert tasks[0]["priority"] == "high"

    def test_invalid_priority(self, hr_client, template):
        response = hr_client.post(f"/api/templates/{template['id']}/tasks", data={"title": "x", "priority": "asap"})
        assert response.status_code == 400

    def test_deactivate(self, hr_client, template):
        assert hr_client.post(f"/api/templates/{template['id']}/deactivate").json() == {"success": True}
        assert hr_client.get("/api/templates").json()["templates"] == []


class TestTemplateAccess:
    def test_employee_forbidden(self, employee_client):
        assert employee_client.get("/api/templates").status_code == 403

    def test_other_tenant_cannot_see(self, login, create_user, template):
        from handover_portal import data_access
        tenant = data_access.insert('tenants', {'name': 'Other', 'slug': 'other'})
        create_user("hr@other.example.com", "hr-manager", tenant_id=tenant['id'])
        client = login("hr@other.example.com")
        assert client.get(f"/api/templates/{template['id']}").status_code == 404
        assert client.get("/api/templates").json()["templates"] == []
