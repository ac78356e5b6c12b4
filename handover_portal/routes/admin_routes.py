"""
Admin routes: organizations, user accounts, bulk import, activity log and
data export. Admin only.
"""
import io
import json
import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Request, Form, Query, UploadFile, File
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment

from handover_portal import data_access, users as user_service
from handover_portal.data_access import DataAccessError
from handover_portal.database import now_iso
from handover_portal.dependencies import require_api_user, require_permission, error_response, client_info
from handover_portal.handovers import load_handovers
from handover_portal.roles import (
    PERM_EXPORT_DATA, PERM_MANAGE_TENANTS, PERM_MANAGE_USERS, PERM_VIEW_ACTIVITY,
)

router = APIRouter()
logger = logging.getLogger(__name__)

ACTIVITY_PAGE_SIZE = 100

HANDOVER_EXPORT_COLUMNS = [
    ("ID", "id"),
    ("Exiting Employee", "exiting_employee_name"),
    ("Email", "exiting_employee_email"),
    ("Department", "department"),
    ("Successor", "successor_name"),
    ("Status", "status"),
    ("Progress %", "progress"),
    ("Tasks", "task_count"),
    ("Completed Tasks", "completed_tasks"),
    ("Risk Level", "ai_risk_level"),
    ("Recommendation", "ai_recommendation"),
    ("Due Date", "due_date"),
    ("Created", "created_at"),
]


def _slugify(value: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')


# ── Tenants ──────────────────────────────────────────────────────────

@router.get("/api/tenants", response_class=JSONResponse)
async def list_tenants(request: Request):
    user, denied = require_api_user(request, PERM_MANAGE_TENANTS)
    if denied:
        return denied
    try:
        tenants = data_access.query('tenants', order_by='name')
    except DataAccessError:
        logger.exception("Tenant fetch failed")
        return error_response("Failed to fetch organizations", 500)
    return JSONResponse(jsonable_encoder({"tenants": tenants}))


@router.post("/api/tenants", response_class=JSONResponse)
async def create_tenant(request: Request, name: str = Form(...), slug: Optional[str] = Form(None)):
    user, denied = require_api_user(request, PERM_MANAGE_TENANTS)
    if denied:
        return denied
    slug = _slugify(slug or name)
    if not name.strip() or not slug:
        return error_response("Organization name is required")
    if data_access.query('tenants', {'slug': slug}, limit=1):
        return error_response(f"Organization '{slug}' already exists", 409)
    try:
        tenant = data_access.insert('tenants', {
            'name': name.strip(), 'slug': slug, 'is_active': 1, 'created_at': now_iso(),
        })
        data_access.log_activity('tenant_created', user_id=user['id'], resource_type='tenant',
                                 resource_id=tenant['id'], **client_info(request))
    except DataAccessError:
        logger.exception("Tenant creation failed")
        return error_response("Failed to create organization", 500)
    return JSONResponse(jsonable_encoder({"tenant": tenant}), status_code=201)


@router.post("/api/tenants/{tenant_id}/toggle", response_class=JSONResponse)
async def toggle_tenant(request: Request, tenant_id: int):
    user, denied = require_api_user(request, PERM_MANAGE_TENANTS)
    if denied:
        return denied
    tenant = data_access.get_by_id('tenants', tenant_id)
    if not tenant:
        return error_response("Organization not found", 404)
    if tenant['id'] == user.get('tenant_id'):
        return error_response("Cannot deactivate your own organization")
    try:
        data_access.update('tenants', tenant_id, {'is_active': 0 if tenant['is_active'] else 1})
        data_access.log_activity('tenant_toggled', user_id=user['id'], resource_type='tenant',
                                 resource_id=tenant_id, **client_info(request))
    except DataAccessError:
        logger.exception("Tenant update failed")
        return error_response("Failed to update organization", 500)
    return JSONResponse(jsonable_encoder({"tenant": data_access.get_by_id('tenants', tenant_id)}))


# ── Users ────────────────────────────────────────────────────────────

@router.get("/api/users", response_class=JSONResponse)
async def list_users(
    request: Request,
    tenant_id: Optional[int] = Query(None),
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    filters = {}
    if tenant_id:
        filters['tenant_id'] = tenant_id
    if role:
        filters['role'] = role
    try:
        rows = data_access.query('users', filters, order_by='email')
    except DataAccessError:
        logger.exception("User fetch failed")
        return error_response("Failed to fetch users", 500)

    if search:
        needle = search.lower()
        rows = [r for r in rows if needle in r['email'].lower() or needle in (r['name'] or '').lower()]
    return JSONResponse(jsonable_encoder({"users": [user_service.public_user(r) for r in rows]}))


@router.post("/api/users", response_class=JSONResponse)
async def create_user(
    request: Request,
    email: str = Form(...),
    role: str = Form(...),
    name: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    tenant_id: Optional[int] = Form(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    tenant_id = tenant_id or user.get('tenant_id')
    if not data_access.get_by_id('tenants', tenant_id):
        return error_response("Organization not found", 404)
    try:
        created, password = user_service.create_user(email, role, tenant_id, name, department)
        data_access.log_activity('user_created', user_id=user['id'], resource_type='user',
                                 resource_id=created['id'], details={'role': role}, **client_info(request))
    except ValueError as e:
        return error_response(str(e))
    except DataAccessError:
        logger.exception("User creation failed")
        return error_response("Failed to create user", 500)
    # The generated password is shown once; only its hash is stored.
    return JSONResponse(jsonable_encoder({"user": created, "password": password}), status_code=201)


@router.post("/api/users/{user_id}/role", response_class=JSONResponse)
async def update_user_role(request: Request, user_id: int, role: str = Form(...)):
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    if user_id == user['id']:
        return error_response("Cannot change your own role")
    try:
        if not user_service.set_role(user_id, role):
            return error_response("User not found", 404)
        data_access.log_activity('user_role_changed', user_id=user['id'], resource_type='user',
                                 resource_id=user_id, details={'role': role}, **client_info(request))
    except ValueError as e:
        return error_response(str(e))
    except DataAccessError:
        logger.exception("Role update failed")
        return error_response("Failed to update role", 500)
    return JSONResponse(jsonable_encoder({"user": user_service.public_user(data_access.get_by_id('users', user_id))}))


@router.post("/api/users/{user_id}/deactivate", response_class=JSONResponse)
async def deactivate_user(request: Request, user_id: int):
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    if user_id == user['id']:
        return error_response("Cannot deactivate your own account")
    try:
        if not data_access.update('users', user_id, {'is_active': 0}):
            return error_response("User not found", 404)
        data_access.log_activity('user_deactivated', user_id=user['id'], resource_type='user',
                                 resource_id=user_id, **client_info(request))
    except DataAccessError:
        logger.exception("User deactivation failed")
        return error_response("Failed to deactivate user", 500)
    return JSONResponse({"success": True})


@router.post("/api/users/{user_id}/reset-password", response_class=JSONResponse)
async def reset_user_password(request: Request, user_id: int):
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    try:
        password = user_service.reset_password(user_id)
        if password is None:
            return error_response("User not found", 404)
        data_access.log_activity('password_reset', user_id=user['id'], resource_type='user',
                                 resource_id=user_id, **client_info(request))
    except DataAccessError:
        logger.exception("Password reset failed")
        return error_response("Failed to reset password", 500)
    return JSONResponse({"user_id": user_id, "password": password})


@router.post("/api/users/import", response_class=JSONResponse)
async def import_users(
    request: Request,
    file: UploadFile = File(...),
    tenant_id: Optional[int] = Form(None),
    default_role: str = Form("exiting"),
):
    """Bulk-create accounts from an Excel or CSV sheet (email, name, role, department)."""
    user, denied = require_api_user(request, PERM_MANAGE_USERS)
    if denied:
        return denied
    tenant_id = tenant_id or user.get('tenant_id')

    content = await file.read()
    try:
        df = user_service.read_user_file(file.filename or '', content)
    except ValueError as e:
        return error_response(str(e))

    try:
        result = user_service.import_users(df, tenant_id, default_role)
        data_access.log_activity('users_imported', user_id=user['id'], resource_type='user',
                                 details={'created': len(result['created']), 'skipped': len(result['skipped'])},
                                 **client_info(request))
    except DataAccessError:
        logger.exception("User import failed")
        return error_response("Failed to import users", 500)
    return JSONResponse(jsonable_encoder(result))


# ── Activity log ─────────────────────────────────────────────────────

@router.get("/api/activity", response_class=JSONResponse)
async def activity_log(
    request: Request,
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    limit: int = Query(ACTIVITY_PAGE_SIZE),
):
    user, denied = require_api_user(request, PERM_VIEW_ACTIVITY)
    if denied:
        return denied
    filters = {}
    if action:
        filters['action'] = action
    if user_id:
        filters['user_id'] = user_id
    try:
        rows = data_access.query('activity_logs', filters, order_by=['-created_at', '-id'],
                                 limit=max(1, min(limit, 1000)))
    except DataAccessError:
        logger.exception("Activity log fetch failed")
        return error_response("Failed to fetch activity log", 500)

    for row in rows:
        if row.get('details'):
            try:
                row['details'] = json.loads(row['details'])
            except ValueError:
                logger.warning("Activity %s has non-JSON details", row['id'])
    return JSONResponse(jsonable_encoder({"activity": rows}))


# ── Export ───────────────────────────────────────────────────────────

@router.get("/export/handovers")
async def export_handovers(request: Request):
    """Download every visible handover as Excel."""
    user, redirect = require_permission(request, PERM_EXPORT_DATA)
    if redirect:
        return redirect

    handovers = load_handovers(user)

    wb = Workbook()
    ws = wb.active
    ws.title = "Handovers"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    for col, (header, _) in enumerate(HANDOVER_EXPORT_COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center')

    for row_idx, handover in enumerate(handovers, 2):
        for col_idx, (_, key) in enumerate(HANDOVER_EXPORT_COLUMNS, 1):
            ws.cell(row=row_idx, column=col_idx, value=handover.get(key))

    for col_idx in range(1, len(HANDOVER_EXPORT_COLUMNS) + 1):
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = 18

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)

    data_access.log_activity('handovers_exported', user_id=user['id'], resource_type='handover',
                             details={'rows': len(handovers)}, **client_info(request))

    filename = f"Handovers_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
