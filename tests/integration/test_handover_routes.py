"""
Integration tests for the handover API -- creation, staffing, checklists and
the full completion/acknowledgment/approval lifecycle.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")

pytestmark = pytest.mark.integration


@pytest.fixture
def template_id(hr_client):
    response = hr_client.post("/api/templates", data={"name": "Standard Exit", "role": "exiting"})
    tid = response.json()["template"]["id"]
    for title in ("Return equipment", "Transfer documents"):
        hr_client.post(f"/api/templates/{tid}/tasks", data={"title": title})
    return tid


class TestListAndDetail:
    def test_hr_lists_tenant_handovers(self, hr_client, test_db):
        handovers = hr_client.get("/api/handovers").json()["handovers"]
        assert [h["id"] for h in handovers] == [test_db['handover']['id']]
        assert handovers[0]["exiting_employee_name"] == "Lee Leaver"
        assert handovers[0]["successor_name"] == "Nia Next"

    def test_detail(self, employee_client, test_db):
        data = employee_client.get(f"/api/handovers/{test_db['handover']['id']}").json()
        assert data["summary"]["total"] == 2
        assert len(data["tasks"]) == 2

    def test_unrelated_user_gets_404(self, login, create_user, test_db):
        create_user("stranger@example.com", "exiting")
        response = login("stranger@example.com").get(f"/api/handovers/{test_db['handover']['id']}")
        assert response.status_code == 404

    def test_missing(self, hr_client):
        assert hr_client.get("/api/handovers/999").status_code == 404


class TestCreate:
    def test_create_with_template(self, hr_client, create_user, template_id):
        leaver = create_user("leaving@example.com", "exiting", department="Ops")
        response = hr_client.post("/api/handovers", data={"employee_id": leaver["id"], "template_id": template_id})
        assert response.status_code == 201
        handover = response.json()["handover"]
        assert handover["task_count"] == 2
        assert handover["status"] == "pending"
        assert handover["ai_risk_level"] == "critical"

    def test_employee_cannot_create(self, employee_client, test_db):
        response = employee_client.post("/api/handovers", data={"employee_id": test_db['employee']['id']})
        assert response.status_code == 403

    def test_unknown_employee(self, hr_client):
        assert hr_client.post("/api/handovers", data={"employee_id": 999}).status_code == 404

    def test_other_tenant_employee(self, hr_client, create_user):
        from handover_portal import data_access
        tenant = data_access.insert('tenants', {'name': 'Other', 'slug': 'other'})
        outsider = create_user("out@other.example.com", "exiting", tenant_id=tenant['id'])
        assert hr_client.post("/api/handovers", data={"employee_id": outsider["id"]}).status_code == 403


class TestStaffing:
    def test_assign_successor(self, hr_client, create_user, test_db):
        new = create_user("new.successor@example.com", "successor", name="New Successor")
        response = hr_client.post(f"/api/handovers/{test_db['handover']['id']}/successor",
                                  data={"successor_id": new["id"]})
        assert response.status_code == 200
        assert response.json()["handover"]["successor_name"] == "New Successor"

    def test_candidates(self, hr_client, test_db):
        candidates = hr_client.get("/api/handovers/successor-candidates").json()["candidates"]
        assert [c["email"] for c in candidates] == [test_db['successor']['email']]

    def test_apply_template_twice(self, hr_client, test_db, template_id):
        url = f"/api/handovers/{test_db['handover']['id']}/apply-template"
        first = hr_client.post(url, data={"template_id": template_id}).json()["handover"]
        second = hr_client.post(url, data={"template_id": template_id}).json()["handover"]
        assert first["tasks_created"] == 2
        assert second["tasks_created"] == 0
        assert second["task_count"] == 4


class TestLifecycle:
    def test_complete_acknowledge_approve(self, hr_client, employee_client, successor_client, test_db):
        handover_id = test_db['handover']['id']
        approve_url = f"/api/handovers/{handover_id}/approve"

        assert hr_client.post(approve_url).status_code == 409

        for task in test_db['tasks']:
            response = employee_client.post(f"/api/tasks/{task['id']}/status", data={"completed": "true"})
            assert response.json()["task"]["status"] == "completed"

        detail = hr_client.get(f"/api/handovers/{handover_id}").json()
        assert detail["handover"]["progress"] == 100
        assert detail["handover"]["status"] == "review"

        response = hr_client.post(approve_url)
        assert response.status_code == 409
        assert "acknowledged" in response.json()["error"]

        for task in test_db['tasks']:
            assert successor_client.post(f"/api/tasks/{task['id']}/acknowledge").status_code == 200

        response = hr_client.post(approve_url)
        assert response.status_code == 200
        assert response.json()["handover"]["status"] == "completed"

    def test_closed_handover_is_frozen(self, hr_client, employee_client, successor_client, test_db):
        handover_id = test_db['handover']['id']
        task_id = test_db['tasks'][0]['id']
        for task in test_db['tasks']:
            employee_client.post(f"/api/tasks/{task['id']}/status", data={"completed": "true"})
            successor_client.post(f"/api/tasks/{task['id']}/acknowledge")
        assert hr_client.post(f"/api/handovers/{handover_id}/approve").status_code == 200

        response = employee_client.post(f"/api/tasks/{task_id}/status", data={"completed": "false"})
        assert response.status_code == 409
        assert "closed" in response.json()["error"]
        assert employee_client.post(f"/api/tasks/{task_id}/notes", data={"content": "late"}).status_code == 409
        assert hr_client.post(f"/api/handovers/{handover_id}/approve").status_code == 409

        detail = hr_client.get(f"/api/handovers/{handover_id}").json()
        assert detail["handover"]["status"] == "completed"
        assert detail["handover"]["progress"] == 100

    def test_employee_cannot_approve(self, employee_client, test_db):
        response = employee_client.post(f"/api/handovers/{test_db['handover']['id']}/approve")
        assert response.status_code == 403
