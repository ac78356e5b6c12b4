"""
Integration tests for help requests -- questions, escalations and their lifecycle.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")

pytestmark = pytest.mark.integration


def _raise(client, task_id, request_type="employee", message="Where are the client files?"):
    return client.post("/api/help-requests", data={
        "task_id": task_id, "request_type": request_type, "message": message,
    })


class TestCreate:
    def test_successor_asks(self, successor_client, test_db):
        response = _raise(successor_client, test_db['tasks'][0]['id'])
        assert response.status_code == 201
        item = response.json()["help_request"]
        assert item["status"] == "pending"
        assert item["handover_id"] == test_db['handover']['id']

    def test_invalid_type(self, successor_client, test_db):
        assert _raise(successor_client, test_db['tasks'][0]['id'], request_type="peer").status_code == 400

    def test_empty_message(self, successor_client, test_db):
        assert _raise(successor_client, test_db['tasks'][0]['id'], message="   ").status_code == 400

    def test_only_successor_role(self, employee_client, test_db):
        assert _raise(employee_client, test_db['tasks'][0]['id']).status_code == 403

    def test_not_assigned_successor(self, login, create_user, test_db):
        create_user("other.successor@example.com", "successor")
        client = login("other.successor@example.com")
        assert _raise(client, test_db['tasks'][0]['id']).status_code == 404


class TestLifecycle:
    def test_question_answered_by_employee(self, successor_client, employee_client, hr_client, test_db):
        request_id = _raise(successor_client, test_db['tasks'][0]['id']).json()["help_request"]["id"]

        # HR does not answer questions meant for the employee
        assert hr_client.post(f"/api/help-requests/{request_id}/respond",
                              data={"response": "x"}).status_code == 403

        response = employee_client.post(f"/api/help-requests/{request_id}/respond",
                                        data={"response": "Shared drive, folder Clients"})
        assert response.status_code == 200
        assert response.json()["help_request"]["status"] == "replied"

        response = successor_client.post(f"/api/help-requests/{request_id}/resolve")
        assert response.json()["help_request"]["status"] == "resolved"

        again = employee_client.post(f"/api/help-requests/{request_id}/respond", data={"response": "more"})
        assert again.status_code == 409

    def test_escalation_answered_by_hr(self, successor_client, employee_client, hr_client, test_db):
        request_id = _raise(successor_client, test_db['tasks'][0]['id'], "manager",
                            "No answer from Lee").json()["help_request"]["id"]
        assert employee_client.post(f"/api/help-requests/{request_id}/respond",
                                    data={"response": "x"}).status_code == 403
        response = hr_client.post(f"/api/help-requests/{request_id}/respond", data={"response": "On it"})
        assert response.json()["help_request"]["responder_email"] == test_db['hr']['email']

    def test_cannot_resolve_pending(self, successor_client, test_db):
        request_id = _raise(successor_client, test_db['tasks'][0]['id']).json()["help_request"]["id"]
        assert successor_client.post(f"/api/help-requests/{request_id}/resolve").status_code == 409

    def test_missing(self, employee_client):
        assert employee_client.post("/api/help-requests/999/respond", data={"response": "x"}).status_code == 404


class TestListing:
    def test_employee_sees_only_questions(self, successor_client, employee_client, test_db):
        task_id = test_db['tasks'][0]['id']
        _raise(successor_client, task_id)
        _raise(successor_client, task_id, "manager", "Escalating")

        assert len(successor_client.get("/api/help-requests").json()["help_requests"]) == 2
        employee_view = employee_client.get("/api/help-requests").json()["help_requests"]
        assert [r["request_type"] for r in employee_view] == ["employee"]

    def test_filter_by_handover(self, successor_client, test_db):
        _raise(successor_client, test_db['tasks'][0]['id'])
        response = successor_client.get("/api/help-requests", params={"handover_id": 999})
        assert response.json()["help_requests"] == []
