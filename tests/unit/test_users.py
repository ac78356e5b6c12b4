"""
Unit tests for handover_portal/users.py -- account creation and bulk import.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from handover_portal import users
from handover_portal.auth import authenticate_user

pytestmark = pytest.mark.unit

CSV = (
    b"Email,Name,Role,Department\n"
    b"ann@example.com,Ann,exiting,Sales\n"
    b"ben@example.com,Ben,,Finance\n"
    b"ann@example.com,Ann Again,successor,Sales\n"
    b"cat@example.com,Cat,boss,\n"
)


class TestPublicUser:
    def test_drops_hash(self):
        assert users.public_user({"id": 1, "password_hash": "x"}) == {"id": 1}


class TestCreateUser:
    def test_generated_password_works(self, temp_db):
        user, password = users.create_user("New@Example.com ", "successor", 1, name="New")
        assert user["email"] == "new@example.com"
        assert "password_hash" not in user
        assert authenticate_user("new@example.com", password)["role"] == "successor"

    @pytest.mark.parametrize("email,role", [("not-an-email", "exiting"), ("a@example.com", "boss")])
    def test_invalid(self, temp_db, email, role):
        with pytest.raises(ValueError):
            users.create_user(email, role, 1)

    def test_duplicate(self, temp_db):
        users.create_user("a@example.com", "exiting", 1)
        with pytest.raises(ValueError, match="already exists"):
            users.create_user("a@example.com", "exiting", 1)

    def test_set_role_and_reset(self, temp_db):
        user, _ = users.create_user("a@example.com", "exiting", 1)
        assert users.set_role(user["id"], "successor") is True
        with pytest.raises(ValueError):
            users.set_role(user["id"], "boss")
        password = users.reset_password(user["id"])
        assert authenticate_user("a@example.com", password) is not None
        assert users.reset_password(999) is None


class TestImport:
    def test_read_csv_normalizes_columns(self):
        df = users.read_user_file("people.csv", CSV)
        assert list(df.columns) == ["email", "name", "role", "department"]
        assert len(df) == 4

    def test_rejects_other_formats(self):
        with pytest.raises(ValueError):
            users.read_user_file("people.txt", CSV)

    def test_requires_email_column(self):
        with pytest.raises(ValueError, match="email"):
            users.read_user_file("people.csv", b"name\nAnn\n")

    def test_import_reports_skipped_rows(self, temp_db):
        result = users.import_users(users.read_user_file("people.csv", CSV), 1)
        assert [c["email"] for c in result["created"]] == ["ann@example.com", "ben@example.com"]
        assert result["created"][1]["role"] == "exiting"
        assert [s["row"] for s in result["skipped"]] == [4, 5]

    def test_passwords_csv(self):
        text = users.passwords_csv([{"email": "a@example.com", "role": "exiting", "password": "pw"}])
        assert text.splitlines() == ["email,role,password", "a@example.com,exiting,pw"]
