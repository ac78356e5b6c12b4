"""
Common dependencies for route handlers.
"""
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse

from handover_portal.auth import validate_session, deserialize_session
from handover_portal.config import SESSION_COOKIE_NAME
from handover_portal import roles


def get_current_user(request: Request) -> Optional[dict]:
    """
    Get the current logged-in user from session cookie.
    Returns user dict or None if not authenticated.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None

    session_id = deserialize_session(token)
    if not session_id:
        return None

    return validate_session(session_id)


def is_admin(user: dict) -> bool:
    return roles.is_admin(user)


def is_hr(user: dict) -> bool:
    return roles.is_hr(user)


def has_permission(user: dict, permission: str) -> bool:
    return roles.has_permission(user, permission)


def require_permission(request: Request, permission: str):
    """
    Check if user has specific permission for a page.
    Returns (user, None) if authorized, (None, redirect) otherwise.
    """
    user = get_current_user(request)
    if not user:
        return None, RedirectResponse(url="/login", status_code=302)
    if not has_permission(user, permission):
        return None, RedirectResponse(url="/dashboard?error=unauthorized", status_code=302)
    return user, None


def require_api_user(request: Request, permission: str = None):
    """
    Same check for JSON endpoints.
    Returns (user, None) if authorized, (None, error response) otherwise.
    """
    user = get_current_user(request)
    if not user:
        return None, JSONResponse({"error": "Not authenticated"}, status_code=401)
    if permission and not has_permission(user, permission):
        return None, JSONResponse({"error": "Not authorized"}, status_code=403)
    return user, None


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    """JSON error naming the failed action."""
    return JSONResponse({"error": message}, status_code=status_code)


def client_info(request: Request) -> dict:
    """IP address and user agent for activity logging."""
    return {
        'ip_address': request.client.host if request.client else None,
        'user_agent': request.headers.get('user-agent'),
    }
