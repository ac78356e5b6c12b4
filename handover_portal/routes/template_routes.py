"""
Checklist template API.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Form, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import checklists
from handover_portal.config import USER_ROLES
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import require_api_user, error_response
from handover_portal.roles import PERM_MANAGE_TEMPLATES, is_admin

router = APIRouter()
logger = logging.getLogger(__name__)


def _owned_template(user: dict, template_id: int):
    template = checklists.get_template(template_id)
    if not template or (not is_admin(user) and template.get('tenant_id') not in (None, user.get('tenant_id'))):
        return None, error_response("Template not found", 404)
    return template, None


@router.get("", response_class=JSONResponse)
async def list_templates(
    request: Request,
    role: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_TEMPLATES)
    if denied:
        return denied
    try:
        items = checklists.load_templates(user, role, department)
    except DataAccessError:
        logger.exception("Template fetch failed")
        return error_response("Failed to fetch templates", 500)
    return JSONResponse(jsonable_encoder({"templates": items}))


@router.get("/{template_id}", response_class=JSONResponse)
async def template_detail(request: Request, template_id: int):
    user, denied = require_api_user(request, PERM_MANAGE_TEMPLATES)
    if denied:
        return denied
    template, missing = _owned_template(user, template_id)
    if missing:
        return missing
    return JSONResponse(jsonable_encoder({"template": template}))


@router.post("", response_class=JSONResponse)
async def create_template(
    request: Request,
    name: str = Form(...),
    role: str = Form(...),
    description: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_TEMPLATES)
    if denied:
        return denied
    if role not in USER_ROLES:
        return error_response(f"Invalid role: {role}")
    if not name.strip():
        return error_response("Template name is required")
    try:
        template = checklists.create_template(user, name.strip(), role, description, department)
    except DataAccessError:
        logger.exception("Template creation failed")
        return error_response("Failed to create template", 500)
    return JSONResponse(jsonable_encoder({"template": template}), status_code=201)


@router.post("/{template_id}/tasks", response_class=JSONResponse)
async def add_task(
    request: Request,
    template_id: int,
    title: str = Form(...),
    description: Optional[str] = Form(None),
    category: str = Form("General"),
    priority: str = Form("medium"),
    order_index: Optional[int] = Form(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_TEMPLATES)
    if denied:
        return denied
    _, missing = _owned_template(user, template_id)
    if missing:
        return missing
    try:
        template = checklists.add_template_task(template_id, title, description, category, priority, order_index)
    except ValueError as e:
        return error_response(str(e))
    except DataAccessError:
        logger.exception("Template task creation failed")
        return error_response("Failed to add template task", 500)
    return JSONResponse(jsonable_encoder({"template": template}), status_code=201)


@router.post("/{template_id}/deactivate", response_class=JSONResponse)
async def deactivate(request: Request, template_id: int):
    user, denied = require_api_user(request, PERM_MANAGE_TEMPLATES)
    if denied:
        return denied
    _, missing = _owned_template(user, template_id)
    if missing:
        return missing
    try:
        checklists.deactivate_template(user, template_id)
    except DataAccessError:
        logger.exception("Template deactivation failed")
        return error_response("Failed to deactivate template", 500)
    return JSONResponse({"success": True})
