"""
Help request API: successors ask the exiting employee a question or escalate
to their manager; the addressee answers and the successor resolves.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Form, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import handovers as handover_service
from handover_portal.config import HELP_REQUEST_TYPES
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import require_api_user, error_response
from handover_portal.roles import (
    PERM_ANSWER_ESCALATION, PERM_ANSWER_QUESTION, PERM_RAISE_HELP_REQUEST, PERM_RESOLVE_HELP_REQUEST,
    can_view_handover, has_permission,
)
from handover_portal.workflow import WorkflowError

router = APIRouter()
logger = logging.getLogger(__name__)


def can_respond(user: dict, help_request: dict, handover: dict) -> bool:
    """
    Employee questions go to the exiting employee of the handover, manager
    escalations to HR of the same organization.
    """
    if help_request['request_type'] == 'employee':
        return has_permission(user, PERM_ANSWER_QUESTION) and handover.get('employee_id') == user['id']
    return has_permission(user, PERM_ANSWER_ESCALATION) and can_view_handover(user, handover)


@router.get("", response_class=JSONResponse)
async def list_requests(request: Request, handover_id: Optional[int] = Query(None)):
    user, denied = require_api_user(request)
    if denied:
        return denied
    try:
        items = handover_service.load_help_requests(user, handover_id)
    except DataAccessError:
        logger.exception("Help request fetch failed")
        return error_response("Failed to fetch help requests", 500)
    return JSONResponse(jsonable_encoder({"help_requests": items}))


@router.post("", response_class=JSONResponse)
async def create_request(
    request: Request,
    task_id: int = Form(...),
    request_type: str = Form(...),
    message: str = Form(...),
):
    user, denied = require_api_user(request, PERM_RAISE_HELP_REQUEST)
    if denied:
        return denied
    if request_type not in HELP_REQUEST_TYPES:
        return error_response(f"Invalid request type: {request_type}")
    if not message.strip():
        return error_response("Message cannot be empty")

    task, handover = handover_service.get_task_handover(task_id)
    if not task or handover.get('successor_id') != user['id']:
        return error_response("Task not found", 404)
    try:
        item = handover_service.create_help_request(user, task_id, request_type, message.strip())
    except DataAccessError:
        logger.exception("Help request creation failed")
        return error_response("Failed to create help request", 500)
    return JSONResponse(jsonable_encoder({"help_request": item}), status_code=201)


@router.post("/{request_id}/respond", response_class=JSONResponse)
async def respond(request: Request, request_id: int, response: str = Form(...)):
    user, denied = require_api_user(request)
    if denied:
        return denied
    item = handover_service.get_help_request(request_id)
    if not item:
        return error_response("Help request not found", 404)
    handover = handover_service.get_handover(None, item['handover_id'])
    if not can_respond(user, item, handover):
        return error_response("Not authorized", 403)
    if not response.strip():
        return error_response("Response cannot be empty")
    try:
        item = handover_service.respond_to_request(user, request_id, response.strip())
    except WorkflowError as e:
        return error_response(f"Failed to respond: {e}", 409)
    except DataAccessError:
        logger.exception("Help request response failed")
        return error_response("Failed to respond to help request", 500)
    return JSONResponse(jsonable_encoder({"help_request": item}))


@router.post("/{request_id}/resolve", response_class=JSONResponse)
async def resolve(request: Request, request_id: int):
    user, denied = require_api_user(request, PERM_RESOLVE_HELP_REQUEST)
    if denied:
        return denied
    item = handover_service.get_help_request(request_id)
    if not item or item['requester_id'] != user['id']:
        return error_response("Help request not found", 404)
    try:
        item = handover_service.resolve_request(user, request_id)
    except WorkflowError as e:
        return error_response(f"Failed to resolve: {e}", 409)
    except DataAccessError:
        logger.exception("Help request resolution failed")
        return error_response("Failed to resolve help request", 500)
    return JSONResponse(jsonable_encoder({"help_request": item}))
