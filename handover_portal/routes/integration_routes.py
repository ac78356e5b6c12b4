"""
Integration endpoints: the insight webhook called by the external analysis
process, and the JSON procedure gateway.
"""
import hmac
import logging

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from handover_portal import data_access
from handover_portal.config import AI_WEBHOOK_TOKEN
from handover_portal.data_access import DataAccessError
from handover_portal.database import now_iso
from handover_portal.dependencies import require_api_user, error_response, client_info
from handover_portal.handovers import get_handover, record_ai_assessment
from handover_portal.insights import serialize_insights, validate_webhook_payload
from handover_portal.roles import PERM_MANAGE_HANDOVERS, is_admin

router = APIRouter()
logger = logging.getLogger(__name__)

# Procedures that change handovers need HR rights; the rest only a session.
PROCEDURE_PERMISSIONS = {
    'apply_checklist_template': PERM_MANAGE_HANDOVERS,
    'list_successor_candidates': PERM_MANAGE_HANDOVERS,
}


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/api/ai-insights/webhook", response_class=JSONResponse)
async def ai_insights_webhook(request: Request):
    """Store insights produced for a handover and attach its risk assessment."""
    if AI_WEBHOOK_TOKEN:
        token = request.headers.get('x-webhook-token', '')
        if not hmac.compare_digest(token, AI_WEBHOOK_TOKEN):
            return error_response("Invalid webhook token", 401)

    payload = await _json_body(request)
    errors = validate_webhook_payload(payload)
    if errors:
        return JSONResponse({"error": "Invalid payload", "details": errors}, status_code=400)

    handover_id = payload['handover_id']
    if not get_handover(None, handover_id):
        return error_response("Handover not found", 404)

    try:
        row = data_access.insert('ai_knowledge_insights', {
            'handover_id': handover_id,
            'user_id': payload.get('user_id'),
            'insights': serialize_insights(payload['insights']),
            'file_path': payload.get('file_path'),
            'created_at': now_iso(),
        })
        record_ai_assessment(handover_id, payload.get('risk_level'), payload.get('recommendation'))
    except DataAccessError:
        logger.exception("Insight webhook storage failed for handover %s", handover_id)
        return error_response("Failed to store insights", 500)

    logger.info("Stored insights %s for handover %s", row['id'], handover_id)
    return JSONResponse({"success": True, "id": row['id']}, status_code=201)


@router.post("/rpc/{procedure}", response_class=JSONResponse)
async def call_procedure(request: Request, procedure: str):
    permission = PROCEDURE_PERMISSIONS.get(procedure)
    user, denied = require_api_user(request, permission)
    if denied:
        return denied
    if procedure not in data_access.PROCEDURES:
        return error_response(f"Unknown procedure: {procedure}", 404)

    body = await _json_body(request)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        return error_response("Request body must be a JSON object")

    if procedure == 'apply_checklist_template':
        if not get_handover(user, body.get('handover_id')):
            return error_response("Handover not found", 404)
    elif procedure == 'list_successor_candidates' and not is_admin(user):
        body['tenant_id'] = user.get('tenant_id')
    elif procedure == 'log_activity':
        body.update(user_id=user['id'], **client_info(request))

    try:
        result = data_access.call_procedure(procedure, body)
    except DataAccessError as e:
        logger.warning("Procedure %s failed: %s", procedure, e)
        return error_response(f"Failed to run {procedure}: {e}", 400)
    return JSONResponse(jsonable_encoder({"result": result}))
