"""
Authentication utilities: password hashing, session management, and auth helpers.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer

from handover_portal.config import SECRET_KEY, SESSION_MAX_AGE
from handover_portal.database import get_db

logger = logging.getLogger(__name__)


def generate_password(length: int = 12) -> str:
    """Generate a random password."""
    alphabet = string.ascii_letters + string.digits + "!@#$%"
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError, AttributeError):
        return False


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return secrets.token_urlsafe(32)


def create_session(user_id: int) -> str:
    """Create a new session for a user and return the session ID."""
    session_id = generate_session_id()
    expires_at = datetime.now() + timedelta(seconds=SESSION_MAX_AGE)

    with get_db() as conn:
        cursor = conn.cursor()
        # One session per user
        cursor.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
        cursor.execute(
            "INSERT INTO sessions (session_id, user_id, expires_at) VALUES (?, ?, ?)",
            (session_id, user_id, expires_at.isoformat(sep=' ', timespec='seconds'))
        )

    return session_id


def validate_session(session_id: str) -> Optional[dict]:
    """
    Validate a session ID and return user info if valid.
    Returns None if session is invalid or expired.
    """
    if not session_id:
        return None

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT s.user_id, s.expires_at, u.email, u.name, u.role, u.department, u.tenant_id
               FROM sessions s
               JOIN users u ON s.user_id = u.id
               WHERE s.session_id = ? AND u.is_active = 1""",
            (session_id,)
        )
        row = cursor.fetchone()

        if not row:
            return None

        # PostgreSQL returns datetime objects, SQLite returns strings
        expires_at = row['expires_at']
        if isinstance(expires_at, str):
            expires_at = datetime.fromisoformat(expires_at)
        if datetime.now() > expires_at:
            cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            return None

    from handover_portal.roles import get_role_display, get_user_permissions, ROLE_ADMIN

    user_data = {
        'id': row['user_id'],
        'email': row['email'],
        'name': row['name'] or row['email'].split('@')[0],
        'role': row['role'],
        'department': row['department'],
        'tenant_id': row['tenant_id'],
        'is_admin': row['role'] == ROLE_ADMIN,
    }
    user_data['role_display'] = get_role_display(user_data['role'])
    user_data['permissions'] = get_user_permissions(user_data)
    return user_data


def delete_session(session_id: str) -> None:
    """Delete a session (logout)."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))


def authenticate_user(email: str, password: str) -> Optional[dict]:
    """
    Authenticate a user by email and password.
    Returns user info if successful, None otherwise.
    """
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            """SELECT id, email, name, role, department, tenant_id, password_hash, is_active
               FROM users WHERE email = ?""",
            (email.lower().strip(),)
        )
        row = cursor.fetchone()

    if not row or not row['is_active']:
        return None

    if not verify_password(password, row['password_hash']):
        logger.info("Failed login for %s", email)
        return None

    return {
        'id': row['id'],
        'email': row['email'],
        'name': row['name'],
        'role': row['role'],
        'department': row['department'],
        'tenant_id': row['tenant_id'],
    }


def change_password(user_id: int, current_password: str, new_password: str) -> bool:
    """Change a user's password after checking the current one."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT password_hash FROM users WHERE id = ?", (user_id,))
        row = cursor.fetchone()
        if not row or not verify_password(current_password, row['password_hash']):
            return False
        cursor.execute("UPDATE users SET password_hash = ? WHERE id = ?", (hash_password(new_password), user_id))
    return True


def get_serializer():
    """Get the URL-safe serializer for session cookies."""
    return URLSafeTimedSerializer(SECRET_KEY)


def serialize_session(session_id: str) -> str:
    """Serialize session ID for cookie storage."""
    return get_serializer().dumps(session_id)


def deserialize_session(token: str) -> Optional[str]:
    """Deserialize session ID from cookie."""
    try:
        return get_serializer().loads(token, max_age=SESSION_MAX_AGE)
    except BadSignature:
        return None
