"""
Task API: completion, notes, knowledge insights and successor acknowledgment.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Form
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import data_access, handovers as handover_service
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import require_api_user, error_response
from handover_portal.roles import (
    PERM_ACKNOWLEDGE_TASK, PERM_EDIT_TASKS, PERM_MANAGE_HANDOVERS, can_view_handover, has_permission,
)
from handover_portal.workflow import WorkflowError

router = APIRouter()
logger = logging.getLogger(__name__)


def _can_edit(user: dict, handover: dict) -> bool:
    """The exiting employee edits their own tasks; HR may edit any task it can see."""
    if has_permission(user, PERM_MANAGE_HANDOVERS):
        return can_view_handover(user, handover)
    return has_permission(user, PERM_EDIT_TASKS) and handover.get('employee_id') == user['id']


def _load_editable(user: dict, task_id: int):
    """(task row, None) when the user may edit the task, else (None, error response)."""
    task, handover = handover_service.get_task_handover(task_id)
    if not task or not can_view_handover(user, handover):
        return None, error_response("Task not found", 404)
    if not _can_edit(user, handover):
        return None, error_response("Not authorized", 403)
    return task, None


def _split_attachments(value: Optional[str]) -> Optional[list]:
    if value is None:
        return None
    return [line.strip() for line in value.splitlines() if line.strip()]


@router.post("/insights/{insight_id}", response_class=JSONResponse)
async def update_insight(
    request: Request,
    insight_id: int,
    topic: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    attachments: Optional[str] = Form(None),
):
    user, denied = require_api_user(request)
    if denied:
        return denied
    insight = data_access.get_by_id('task_insights', insight_id)
    if not insight:
        return error_response("Insight not found", 404)
    _, refused = _load_editable(user, insight['task_id'])
    if refused:
        return refused
    try:
        task = handover_service.update_insight(user, insight_id, topic, content, _split_attachments(attachments))
    except WorkflowError as e:
        return error_response(f"Failed to update insight: {e}", 409)
    except DataAccessError:
        logger.exception("Insight update failed")
        return error_response("Failed to update insight", 500)
    return JSONResponse(jsonable_encoder({"task": task}))


@router.get("/{task_id}", response_class=JSONResponse)
async def task_detail(request: Request, task_id: int):
    user, denied = require_api_user(request)
    if denied:
        return denied
    task, handover = handover_service.get_task_handover(task_id)
    if not task or not can_view_handover(user, handover):
        return error_response("Task not found", 404)
    return JSONResponse(jsonable_encoder({"task": handover_service.get_task(task_id)}))


@router.post("/{task_id}/status", response_class=JSONResponse)
async def set_status(request: Request, task_id: int, completed: bool = Form(...)):
    user, denied = require_api_user(request)
    if denied:
        return denied
    _, refused = _load_editable(user, task_id)
    if refused:
        return refused
    try:
        task = handover_service.set_task_status(user, task_id, completed)
    except WorkflowError as e:
        return error_response(f"Failed to update task: {e}", 409)
    except DataAccessError:
        logger.exception("Task status update failed")
        return error_response("Failed to update task", 500)
    return JSONResponse(jsonable_encoder({"task": task}))


@router.post("/{task_id}/notes", response_class=JSONResponse)
async def add_note(request: Request, task_id: int, content: str = Form(...)):
    user, denied = require_api_user(request)
    if denied:
        return denied
    _, refused = _load_editable(user, task_id)
    if refused:
        return refused
    if not content.strip():
        return error_response("Note cannot be empty")
    try:
        task = handover_service.add_note(user, task_id, content.strip())
    except WorkflowError as e:
        return error_response(f"Failed to save note: {e}", 409)
    except DataAccessError:
        logger.exception("Note creation failed")
        return error_response("Failed to save note", 500)
    return JSONResponse(jsonable_encoder({"task": task}), status_code=201)


@router.post("/{task_id}/insights", response_class=JSONResponse)
async def add_insight(
    request: Request,
    task_id: int,
    topic: str = Form(...),
    content: str = Form(""),
    attachments: Optional[str] = Form(None),
):
    user, denied = require_api_user(request)
    if denied:
        return denied
    _, refused = _load_editable(user, task_id)
    if refused:
        return refused
    try:
        task = handover_service.add_insight(user, task_id, topic, content, _split_attachments(attachments))
    except WorkflowError as e:
        return error_response(f"Failed to save insight: {e}", 409)
    except DataAccessError:
        logger.exception("Insight creation failed")
        return error_response("Failed to save insight", 500)
    return JSONResponse(jsonable_encoder({"task": task}), status_code=201)


@router.post("/{task_id}/acknowledge", response_class=JSONResponse)
async def acknowledge(request: Request, task_id: int):
    user, denied = require_api_user(request, PERM_ACKNOWLEDGE_TASK)
    if denied:
        return denied
    task, handover = handover_service.get_task_handover(task_id)
    if not task or handover.get('successor_id') != user['id']:
        return error_response("Task not found", 404)
    try:
        projected = handover_service.acknowledge_task(user, task_id)
    except WorkflowError as e:
        return error_response(f"Failed to acknowledge task: {e}", 409)
    except DataAccessError:
        logger.exception("Task acknowledgment failed")
        return error_response("Failed to acknowledge task", 500)
    return JSONResponse(jsonable_encoder({"task": projected}))
