"""
Handover API: list, create, staff, apply checklists and approve handovers.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Form, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import data_access, handovers as handover_service
from handover_portal.aggregation import task_summary
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import require_api_user, error_response
from handover_portal.roles import PERM_MANAGE_HANDOVERS, PERM_APPROVE_HANDOVER, is_admin
from handover_portal.workflow import WorkflowError

router = APIRouter()
logger = logging.getLogger(__name__)


def _visible_handover(user: dict, handover_id: int):
    """(handover, None) or (None, error response)."""
    handover = handover_service.get_handover(user, handover_id)
    if not handover:
        return None, error_response("Handover not found", 404)
    return handover, None


@router.get("", response_class=JSONResponse)
async def list_handovers(request: Request, department: Optional[str] = Query(None)):
    user, denied = require_api_user(request)
    if denied:
        return denied
    try:
        items = handover_service.load_handovers(user, department)
    except DataAccessError:
        logger.exception("Handover list fetch failed")
        return error_response("Failed to fetch handovers", 500)
    return JSONResponse(jsonable_encoder({"handovers": items}))


@router.post("", response_class=JSONResponse)
async def create_handover(
    request: Request,
    employee_id: int = Form(...),
    successor_id: Optional[int] = Form(None),
    template_id: Optional[int] = Form(None),
):
    user, denied = require_api_user(request, PERM_MANAGE_HANDOVERS)
    if denied:
        return denied

    employee = data_access.get_by_id('users', employee_id)
    if employee and not is_admin(user) and employee['tenant_id'] != user.get('tenant_id'):
        return error_response("Employee belongs to another organization", 403)
    try:
        handover = handover_service.create_handover(user, employee_id, successor_id, template_id)
    except LookupError as e:
        return error_response(str(e), 404)
    except DataAccessError:
        logger.exception("Handover creation failed")
        return error_response("Failed to create handover", 500)
    return JSONResponse(jsonable_encoder({"handover": handover}), status_code=201)


@router.get("/successor-candidates", response_class=JSONResponse)
async def successor_candidates(request: Request):
    user, denied = require_api_user(request, PERM_MANAGE_HANDOVERS)
    if denied:
        return denied
    body = {} if is_admin(user) else {"tenant_id": user.get('tenant_id')}
    try:
        candidates = data_access.call_procedure('list_successor_candidates', body)
    except DataAccessError:
        logger.exception("Successor candidate fetch failed")
        return error_response("Failed to fetch successor candidates", 500)
    return JSONResponse(jsonable_encoder({"candidates": candidates}))


@router.get("/{handover_id}", response_class=JSONResponse)
async def handover_detail(request: Request, handover_id: int):
    user, denied = require_api_user(request)
    if denied:
        return denied
    handover, missing = _visible_handover(user, handover_id)
    if missing:
        return missing
    try:
        tasks = handover_service.load_tasks(handover_id)
        help_requests = handover_service.load_help_requests(user, handover_id)
    except DataAccessError:
        logger.exception("Handover detail fetch failed")
        return error_response("Failed to fetch handover", 500)
    return JSONResponse(jsonable_encoder({
        "handover": handover,
        "tasks": tasks,
        "summary": task_summary(tasks),
        "help_requests": help_requests,
    }))


@router.get("/{handover_id}/tasks", response_class=JSONResponse)
async def handover_tasks(request: Request, handover_id: int):
    user, denied = require_api_user(request)
    if denied:
        return denied
    _, missing = _visible_handover(user, handover_id)
    if missing:
        return missing
    try:
        tasks = handover_service.load_tasks(handover_id)
    except DataAccessError:
        logger.exception("Task fetch failed")
        return error_response("Failed to fetch tasks", 500)
    return JSONResponse(jsonable_encoder({"tasks": tasks, "summary": task_summary(tasks)}))


@router.post("/{handover_id}/successor", response_class=JSONResponse)
async def assign_successor(request: Request, handover_id: int, successor_id: int = Form(...)):
    user, denied = require_api_user(request, PERM_MANAGE_HANDOVERS)
    if denied:
        return denied
    _, missing = _visible_handover(user, handover_id)
    if missing:
        return missing
    try:
        handover = handover_service.assign_successor(user, handover_id, successor_id)
    except LookupError as e:
        return error_response(str(e), 404)
    except DataAccessError:
        logger.exception("Successor assignment failed")
        return error_response("Failed to assign successor", 500)
    return JSONResponse(jsonable_encoder({"handover": handover}))


@router.post("/{handover_id}/apply-template", response_class=JSONResponse)
async def apply_template(request: Request, handover_id: int, template_id: int = Form(...)):
    user, denied = require_api_user(request, PERM_MANAGE_HANDOVERS)
    if denied:
        return denied
    _, missing = _visible_handover(user, handover_id)
    if missing:
        return missing
    try:
        handover = handover_service.apply_template(user, handover_id, template_id)
    except LookupError as e:
        return error_response(str(e), 404)
    except WorkflowError as e:
        return error_response(f"Failed to apply checklist template: {e}", 409)
    except DataAccessError:
        logger.exception("Template application failed")
        return error_response("Failed to apply checklist template", 500)
    return JSONResponse(jsonable_encoder({"handover": handover}))


@router.post("/{handover_id}/approve", response_class=JSONResponse)
async def approve_handover(request: Request, handover_id: int):
    user, denied = require_api_user(request, PERM_APPROVE_HANDOVER)
    if denied:
        return denied
    _, missing = _visible_handover(user, handover_id)
    if missing:
        return missing
    try:
        handover = handover_service.approve_handover(user, handover_id)
    except WorkflowError as e:
        return error_response(f"Failed to approve handover: {e}", 409)
    except DataAccessError:
        logger.exception("Handover approval failed")
        return error_response("Failed to approve handover", 500)
    return JSONResponse(jsonable_encoder({"handover": handover}))
