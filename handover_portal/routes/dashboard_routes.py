"""
Dashboard routes: role landing pages and the HR dashboard data endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from handover_portal import data_access
from handover_portal.aggregation import (
    attention_buckets, attention_label, department_health, group_tasks_by_category,
    handover_stats, pending_help_counts, task_summary,
)
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import get_current_user, require_api_user
from handover_portal.handovers import load_handovers, load_help_requests, load_tasks
from handover_portal.insights import build_hr_insights
from handover_portal.roles import PERM_VIEW_ALL_HANDOVERS, dashboard_template, is_hr
from handover_portal.templates_config import templates

router = APIRouter()
logger = logging.getLogger(__name__)

STORED_INSIGHT_LIMIT = 10


def get_stored_insights(handovers: list) -> list:
    """Latest stored insight rows for the given handovers."""
    ids = [h['id'] for h in handovers]
    if not ids:
        return []
    return data_access.query('ai_knowledge_insights', {'handover_id': ids},
                             order_by=['-created_at', '-id'], limit=STORED_INSIGHT_LIMIT)


def build_hr_context(user: dict, department: Optional[str] = None) -> dict:
    """Everything the HR dashboard shows, computed from one handover fetch."""
    handovers = load_handovers(user, department)
    help_counts = pending_help_counts(load_help_requests(user))
    for h in handovers:
        h['attention'] = attention_label(h)
        h['pending_help'] = help_counts.get(h['id'], 0)

    return {
        "handovers": handovers,
        "stats": handover_stats(handovers),
        "buckets": attention_buckets(handovers),
        "departments": department_health(handovers),
        "insights": build_hr_insights(handovers, get_stored_insights(handovers)),
        "department": department,
    }


def build_member_context(user: dict) -> dict:
    """Context for the exiting-employee and successor dashboards."""
    handovers = load_handovers(user)
    handover = handovers[0] if handovers else None
    tasks = load_tasks(handover['id']) if handover else []
    help_requests = load_help_requests(user, handover['id']) if handover else []

    return {
        "handover": handover,
        "tasks": tasks,
        "tasks_by_category": group_tasks_by_category(tasks),
        "summary": task_summary(tasks),
        "help_requests": help_requests,
        "pending_help": sum(1 for r in help_requests if r['status'] == 'pending'),
    }


@router.get("", response_class=HTMLResponse)
@router.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, department: Optional[str] = Query(None), error: Optional[str] = None):
    """Role landing page."""
    user = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=302)

    try:
        context = build_hr_context(user, department) if is_hr(user) else build_member_context(user)
    except DataAccessError:
        logger.exception("Dashboard fetch failed for user %s", user['id'])
        context = {"load_failed": True}
        error = "Failed to fetch handovers"

    context.update({"user": user, "error": error})
    return templates.TemplateResponse(request, dashboard_template(user), context)


@router.get("/api/stats", response_class=JSONResponse)
async def api_stats(request: Request, department: Optional[str] = Query(None)):
    user, denied = require_api_user(request, PERM_VIEW_ALL_HANDOVERS)
    if denied:
        return denied
    try:
        handovers = load_handovers(user, department)
    except DataAccessError:
        logger.exception("Stats fetch failed")
        return JSONResponse({"error": "Failed to fetch stats"}, status_code=500)
    return JSONResponse(jsonable_encoder(handover_stats(handovers)))


@router.get("/api/attention", response_class=JSONResponse)
async def api_attention(request: Request, department: Optional[str] = Query(None)):
    user, denied = require_api_user(request, PERM_VIEW_ALL_HANDOVERS)
    if denied:
        return denied
    try:
        handovers = load_handovers(user, department)
    except DataAccessError:
        logger.exception("Attention fetch failed")
        return JSONResponse({"error": "Failed to fetch handovers"}, status_code=500)
    buckets = attention_buckets(handovers)
    return JSONResponse(jsonable_encoder({
        "buckets": buckets,
        "counts": {name: len(items) for name, items in buckets.items()},
    }))


@router.get("/api/departments", response_class=JSONResponse)
async def api_departments(request: Request):
    user, denied = require_api_user(request, PERM_VIEW_ALL_HANDOVERS)
    if denied:
        return denied
    try:
        handovers = load_handovers(user)
    except DataAccessError:
        logger.exception("Department fetch failed")
        return JSONResponse({"error": "Failed to fetch handovers"}, status_code=500)
    return JSONResponse(jsonable_encoder({"departments": department_health(handovers)}))


@router.get("/api/insights", response_class=JSONResponse)
async def api_insights(request: Request):
    user, denied = require_api_user(request, PERM_VIEW_ALL_HANDOVERS)
    if denied:
        return denied
    try:
        handovers = load_handovers(user)
        insights = build_hr_insights(handovers, get_stored_insights(handovers))
    except DataAccessError:
        logger.exception("Insight fetch failed")
        return JSONResponse({"error": "Failed to fetch insights"}, status_code=500)
    return JSONResponse(jsonable_encoder({"insights": insights}))


@router.get("/api/my-handover", response_class=JSONResponse)
async def api_my_handover(request: Request):
    """The handover the current employee or successor works on, with tasks."""
    user, denied = require_api_user(request)
    if denied:
        return denied
    try:
        context = build_member_context(user)
    except DataAccessError:
        logger.exception("Handover fetch failed")
        return JSONResponse({"error": "Failed to fetch handover"}, status_code=500)
    return JSONResponse(jsonable_encoder(context))
