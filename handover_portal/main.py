"""
Main FastAPI application entry point.
Handover Portal - knowledge transfer between exiting employees and successors
"""
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from handover_portal.config import LOG_LEVEL
from handover_portal.database import init_database
from handover_portal.templates_config import templates
from handover_portal.routes import (
    auth_routes, dashboard_routes, report_routes, handover_routes, task_routes,
    help_request_routes, template_routes, admin_routes, profile_routes, integration_routes,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Handover Portal",
    description="Knowledge handover between exiting employees and their successors",
    version="1.0.0"
)

BASE_DIR = Path(__file__).resolve().parent
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")


@app.on_event("startup")
async def startup_event():
    init_database()


@app.get("/")
async def root():
    return RedirectResponse(url="/login", status_code=302)


app.include_router(auth_routes.router, tags=["Authentication"])
app.include_router(dashboard_routes.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(report_routes.router, prefix="/reports", tags=["Reports"])
app.include_router(handover_routes.router, prefix="/api/handovers", tags=["Handovers"])
app.include_router(task_routes.router, prefix="/api/tasks", tags=["Tasks"])
app.include_router(help_request_routes.router, prefix="/api/help-requests", tags=["Help Requests"])
app.include_router(template_routes.router, prefix="/api/templates", tags=["Checklist Templates"])
app.include_router(admin_routes.router, prefix="/admin", tags=["Admin"])
app.include_router(profile_routes.router, prefix="/api/profile", tags=["User Profile"])
app.include_router(integration_routes.router, tags=["Integrations"])


def _wants_json(request: Request) -> bool:
    path = request.url.path
    return "/api/" in path or path.startswith("/rpc/")


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    if _wants_json(request):
        return JSONResponse({"error": "Not found"}, status_code=404)
    return templates.TemplateResponse(
        request,
        "error.html",
        {"error_code": 404, "error_message": "Page not found"},
        status_code=404
    )


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    if _wants_json(request):
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    return templates.TemplateResponse(
        request,
        "error.html",
        {"error_code": 500, "error_message": "Internal server error"},
        status_code=500
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("handover_portal.main:app", host="127.0.0.1", port=8000, reload=True)
