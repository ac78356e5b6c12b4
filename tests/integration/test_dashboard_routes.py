"""
Integration tests for dashboard routes -- role landing pages and HR data endpoints.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")

pytestmark = pytest.mark.integration


@pytest.fixture
def second_handover(test_db, create_user):
    """A Finance handover with no successor and no tasks."""
    from handover_portal import data_access
    leaver = create_user("fin@example.com", "exiting", name="Fin Leaver", department="Finance")
    return data_access.insert('handovers', {
        'tenant_id': test_db['tenant']['id'], 'employee_id': leaver['id'], 'progress': 10,
    })


class TestLandingPages:
    def test_hr_dashboard(self, hr_client, test_db):
        response = hr_client.get("/dashboard")
        assert response.status_code == 200
        assert "Lee Leaver" in response.text

    def test_employee_dashboard_lists_tasks(self, employee_client):
        response = employee_client.get("/dashboard")
        assert response.status_code == 200
        assert "Document client list" in response.text

    def test_successor_dashboard(self, successor_client):
        response = successor_client.get("/dashboard")
        assert response.status_code == 200
        assert "Hand over CRM access" in response.text

    def test_member_without_handover(self, login, create_user):
        create_user("idle@example.com", "successor")
        response = login("idle@example.com").get("/dashboard")
        assert response.status_code == 200

    def test_reply_form_for_pending_question(self, employee_client, successor_client, test_db):
        request = successor_client.post("/api/help-requests", data={
            "task_id": test_db['tasks'][0]['id'], "request_type": "employee", "message": "Where?",
        }).json()["help_request"]
        response = employee_client.get("/dashboard")
        assert f"/api/help-requests/{request['id']}/respond" in response.text

    def test_resolve_form_only_after_reply(self, employee_client, successor_client, test_db):
        request = successor_client.post("/api/help-requests", data={
            "task_id": test_db['tasks'][0]['id'], "request_type": "employee", "message": "Where?",
        }).json()["help_request"]
        resolve_url = f"/api/help-requests/{request['id']}/resolve"
        assert resolve_url not in successor_client.get("/dashboard").text

        employee_client.post(f"/api/help-requests/{request['id']}/respond", data={"response": "Shared drive"})
        assert resolve_url in successor_client.get("/dashboard").text
        assert f"/api/help-requests/{request['id']}/respond" not in employee_client.get("/dashboard").text


class TestStats:
    def test_counts(self, hr_client, second_handover):
        data = hr_client.get("/dashboard/api/stats").json()
        assert data["total_handovers"] == 2
        assert data["successors_assigned"] == 1
        assert data["department_distribution"] == {"Sales": 1, "Finance": 1}

    def test_department_filter(self, hr_client, second_handover):
        data = hr_client.get("/dashboard/api/stats", params={"department": "Finance"}).json()
        assert data["total_handovers"] == 1

    def test_employee_forbidden(self, employee_client):
        response = employee_client.get("/dashboard/api/stats")
        assert response.status_code == 403

    def test_other_tenant_sees_nothing(self, login, create_user):
        from handover_portal import data_access
        tenant = data_access.insert('tenants', {'name': 'Other', 'slug': 'other'})
        create_user("hr@other.example.com", "hr-manager", tenant_id=tenant['id'])
        data = login("hr@other.example.com").get("/dashboard/api/stats").json()
        assert data["total_handovers"] == 0


class TestAttentionAndInsights:
    def test_buckets(self, hr_client, second_handover):
        data = hr_client.get("/dashboard/api/attention").json()
        assert data["counts"]["no_successor"] == 1
        assert data["counts"]["low_progress"] == 1
        assert [h["id"] for h in data["buckets"]["no_successor"]] == [second_handover["id"]]

    def test_departments(self, hr_client, second_handover):
        departments = hr_client.get("/dashboard/api/departments").json()["departments"]
        assert {d["department"] for d in departments} == {"Sales", "Finance"}

    def test_insights_capped_and_typed(self, hr_client, second_handover):
        insights = hr_client.get("/dashboard/api/insights").json()["insights"]
        assert 0 < len(insights) <= 6
        assert insights[0]["type"] == "alert"


class TestMyHandover:
    def test_successor_view(self, successor_client, test_db):
        data = successor_client.get("/dashboard/api/my-handover").json()
        assert data["handover"]["id"] == test_db['handover']['id']
        assert data["summary"]["total"] == 2
        assert set(data["tasks_by_category"]) == {"General"}

    def test_no_handover(self, login, create_user):
        create_user("idle@example.com", "exiting")
        data = login("idle@example.com").get("/dashboard/api/my-handover").json()
        assert data["handover"] is None
        assert data["tasks"] == []
