"""
Pivot report routes: ad-hoc group-by/aggregate tables over the handover list.
"""
import io
import logging
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from handover_portal.aggregation import build_pivot_report
from handover_portal.config import (
    REPORT_DIMENSIONS, REPORT_MEASURES, REPORT_DIMENSION_LABELS, REPORT_MEASURE_LABELS,
)
from handover_portal.data_access import DataAccessError
from handover_portal.dependencies import require_permission, require_api_user
from handover_portal.handovers import load_handovers
from handover_portal.roles import PERM_VIEW_REPORTS
from handover_portal.templates_config import templates

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = ["department"]
DEFAULT_MEASURES = list(REPORT_MEASURES)


def report_config(request: Request) -> tuple:
    """
    Dimensions and measures from the query string. A request without any
    report parameters gets the default configuration; once the form has been
    submitted (configured=1) empty selections are kept as they are.
    """
    params = request.query_params
    dimensions = params.getlist("dimension")
    measures = params.getlist("measure")
    if not params.get("configured") and not dimensions and not measures:
        return list(DEFAULT_DIMENSIONS), list(DEFAULT_MEASURES)
    return dimensions, measures


@router.get("", response_class=HTMLResponse)
@router.get("/", response_class=HTMLResponse)
async def report_page(request: Request):
    """Pivot report builder."""
    user, redirect = require_permission(request, PERM_VIEW_REPORTS)
    if redirect:
        return redirect

    dimensions, measures = report_config(request)
    error = request.query_params.get("error")
    try:
        report = build_pivot_report(load_handovers(user), dimensions, measures)
    except ValueError as e:
        error = str(e)
        report = build_pivot_report([], [], [])
    except DataAccessError:
        logger.exception("Report fetch failed")
        error = "Failed to fetch handovers"
        report = build_pivot_report([], [], [])

    return templates.TemplateResponse(request, "report.html", {
        "user": user,
        "report": report,
        "all_dimensions": REPORT_DIMENSIONS,
        "all_measures": REPORT_MEASURES,
        "selected_dimensions": dimensions,
        "selected_measures": measures,
        "error": error,
    })


@router.get("/api/pivot", response_class=JSONResponse)
async def api_pivot(request: Request):
    user, denied = require_api_user(request, PERM_VIEW_REPORTS)
    if denied:
        return denied

    dimensions, measures = report_config(request)
    try:
        report = build_pivot_report(load_handovers(user), dimensions, measures)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except DataAccessError:
        logger.exception("Report fetch failed")
        return JSONResponse({"error": "Failed to build report"}, status_code=500)
    return JSONResponse(jsonable_encoder(report))


@router.get("/export")
async def export_report(request: Request):
    """Download the current pivot table as Excel."""
    user, redirect = require_permission(request, PERM_VIEW_REPORTS)
    if redirect:
        return redirect

    dimensions, measures = report_config(request)
    try:
        report = build_pivot_report(load_handovers(user), dimensions, measures)
    except ValueError as e:
        return RedirectResponse(url=f"/reports?error={e}", status_code=302)
    except DataAccessError:
        logger.exception("Report export failed")
        return RedirectResponse(url="/reports?error=Failed to fetch handovers", status_code=302)
    if not report["rows"]:
        return RedirectResponse(url="/reports?error=Nothing to export", status_code=302)

    wb = Workbook()
    ws = wb.active
    ws.title = "Handover Report"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    headers = [REPORT_DIMENSION_LABELS[d] for d in dimensions] + [REPORT_MEASURE_LABELS[m] for m in measures]
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center')
        cell.border = thin_border

    for row_idx, row in enumerate(report["rows"], 2):
        values = [row["values"][d] for d in dimensions] + [row[m] for m in measures]
        for col_idx, value in enumerate(values, 1):
            ws.cell(row=row_idx, column=col_idx, value=value).border = thin_border

    totals_row = len(report["rows"]) + 2
    totals = report["totals"]
    totals_values = ["Total"] + [""] * (len(dimensions) - 1) + [totals[m] for m in measures]
    for col_idx, value in enumerate(totals_values, 1):
        cell = ws.cell(row=totals_row, column=col_idx, value=value)
        cell.font = Font(bold=True)
        cell.border = thin_border

    for col_idx in range(1, len(headers) + 1):
        ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = 20

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)

    filename = f"Handover_Report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
