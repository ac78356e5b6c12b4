"""
User Profile routes: view profile, change password.
"""
from fastapi import APIRouter, Request, Form
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import data_access
from handover_portal.auth import change_password
from handover_portal.dependencies import require_api_user, error_response, client_info
from handover_portal.users import public_user

router = APIRouter()

MIN_PASSWORD_LENGTH = 8


@router.get("", response_class=JSONResponse)
async def view_profile(request: Request):
    """The current user's account, organization and permissions."""
    user, denied = require_api_user(request)
    if denied:
        return denied

    account = public_user(data_access.get_by_id('users', user['id']))
    tenant = data_access.get_by_id('tenants', user['tenant_id']) if user.get('tenant_id') else None
    return JSONResponse(jsonable_encoder({
        "user": account,
        "tenant": tenant,
        "role_display": user['role_display'],
        "permissions": user['permissions'],
    }))


@router.post("/password", response_class=JSONResponse)
async def change_password_submit(
    request: Request,
    current_password: str = Form(...),
    new_password: str = Form(...),
    confirm_password: str = Form(...)
):
    """Process password change request."""
    user, denied = require_api_user(request)
    if denied:
        return denied

    # Validate new password
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return error_response(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if new_password != confirm_password:
        return error_response("New passwords do not match")

    if not change_password(user['id'], current_password, new_password):
        return error_response("Current password is incorrect", 403)

    data_access.log_activity('password_changed', user_id=user['id'], resource_type='user',
                             resource_id=user['id'], **client_info(request))
    return JSONResponse({"success": True, "message": "Password changed successfully"})
