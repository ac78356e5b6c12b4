"""
Aggregation engine for the HR dashboard and progress views.

Pure functions over lists of handover view models (dicts as produced by
handovers.shape_handover). Nothing is cached: callers recompute on every
change of input or report configuration.
"""
import math
from typing import Iterable, Optional

from handover_portal.config import (
    AT_RISK_LEVELS,
    COMPLETION_THRESHOLD,
    HIGH_RISK_PROGRESS_THRESHOLD,
    LOW_PROGRESS_THRESHOLD,
    REPORT_DIMENSIONS,
    REPORT_KEY_SEPARATOR,
    REPORT_MEASURES,
    REPORT_UNKNOWN_VALUE,
    STALLED_UPPER_THRESHOLD,
    UNASSIGNED_DEPARTMENT,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (as the browser's Math.round does for percentages)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def pct(completed: int, total: int) -> int:
    """Percentage used by every progress bar."""
    if not total or total <= 0:
        return 0
    return round_half_up(completed / total * 100)


def handover_progress(task_count: int, completed_tasks: int, stored: Optional[int] = None) -> int:
    """Derived progress when the handover has tasks, else the stored value."""
    if task_count and task_count > 0:
        return pct(completed_tasks or 0, task_count)
    return int(stored or 0)


def _has_successor(handover: dict) -> bool:
    return bool(handover.get("successor_email"))


def _progress(handover: dict) -> int:
    return handover.get("progress") or 0


# ── Attention buckets ────────────────────────────────────────────────

def is_no_successor(handover: dict) -> bool:
    return not _has_successor(handover)


def is_low_progress(handover: dict) -> bool:
    # Handovers without a successor are reported under no_successor only
    return _progress(handover) < LOW_PROGRESS_THRESHOLD and _has_successor(handover)


def is_stalled(handover: dict) -> bool:
    return 0 < _progress(handover) < STALLED_UPPER_THRESHOLD and handover.get("status") == "in-progress"


def attention_buckets(handovers: Iterable[dict]) -> dict:
    """
    Partition handovers into the three attention lists.
    The lists are independent: one handover may appear in several.
    """
    handovers = list(handovers)
    return {
        "no_successor": [h for h in handovers if is_no_successor(h)],
        "low_progress": [h for h in handovers if is_low_progress(h)],
        "stalled": [h for h in handovers if is_stalled(h)],
    }


def attention_label(handover: dict) -> Optional[str]:
    """Single badge for list display: no_successor, then low_progress, then stalled."""
    if is_no_successor(handover):
        return "no_successor"
    if is_low_progress(handover):
        return "low_progress"
    if is_stalled(handover):
        return "stalled"
    return None


# ── Department rollup ────────────────────────────────────────────────

def department_health(handovers: Iterable[dict]) -> list:
    """Per-department totals, sorted by handover count (ties keep first-seen order)."""
    groups = {}
    for h in handovers:
        dept = h.get("department") or UNASSIGNED_DEPARTMENT
        group = groups.setdefault(dept, {"department": dept, "total": 0, "progress_sum": 0,
                                         "at_risk": 0, "completed": 0})
        group["total"] += 1
        group["progress_sum"] += _progress(h)
        if h.get("ai_risk_level") in AT_RISK_LEVELS:
            group["at_risk"] += 1
        if _progress(h) >= COMPLETION_THRESHOLD:
            group["completed"] += 1

    rows = []
    for group in groups.values():
        rows.append({
            "department": group["department"],
            "total": group["total"],
            "avg_progress": round_half_up(group["progress_sum"] / group["total"]),
            "at_risk": group["at_risk"],
            "completed": group["completed"],
        })
    rows.sort(key=lambda r: r["total"], reverse=True)
    return rows


# ── Pivot report ─────────────────────────────────────────────────────

def dimension_value(handover: dict, dimension: str) -> str:
    """String value of one report dimension for a handover."""
    if dimension == "successor_assigned":
        return "Assigned" if _has_successor(handover) else "Unassigned"
    value = handover.get(dimension)
    if value is None or value == "":
        return REPORT_UNKNOWN_VALUE
    return str(value)


def build_pivot_report(handovers: Iterable[dict], dimensions: Iterable[str], measures: Iterable[str]) -> dict:
    """
    Group handovers by the chosen dimensions and aggregate them.

    Group keys join the dimension values with REPORT_KEY_SEPARATOR; values
    containing the separator would collide (known limitation). Rows are
    sorted by count, ties in first-seen order, followed by a totals row whose
    average progress is weighted by group count.

    No dimensions is the "no report configured" state: no rows, no totals.
    No measures asks the caller to show a configuration prompt instead of a table.
    """
    dimensions = list(dimensions)
    measures = list(measures)

    unknown = [d for d in dimensions if d not in REPORT_DIMENSIONS]
    if unknown:
        raise ValueError(f"Unknown report dimension(s): {', '.join(unknown)}")
    unknown = [m for m in measures if m not in REPORT_MEASURES]
    if unknown:
        raise ValueError(f"Unknown report measure(s): {', '.join(unknown)}")

    report = {
        "dimensions": dimensions,
        "measures": measures,
        "rows": [],
        "totals": None,
        "needs_configuration": False,
        "message": None,
    }
    if not dimensions:
        return report
    if not measures:
        report["needs_configuration"] = True
        report["message"] = "Select at least one measure to build the report."
        return report

    groups = {}
    for h in handovers:
        values = [dimension_value(h, d) for d in dimensions]
        key = REPORT_KEY_SEPARATOR.join(values)
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                "key": key,
                "values": dict(zip(dimensions, values)),
                "count": 0,
                "progress_sum": 0,
                "total_tasks": 0,
                "completed_tasks": 0,
            }
        group["count"] += 1
        group["progress_sum"] += _progress(h)
        group["total_tasks"] += h.get("task_count") or 0
        group["completed_tasks"] += h.get("completed_tasks") or 0

    rows = []
    for group in groups.values():
        rows.append({
            "key": group["key"],
            "values": group["values"],
            "count": group["count"],
            "avg_progress": round_half_up(group["progress_sum"] / group["count"]),
            "total_tasks": group["total_tasks"],
            "completed_tasks": group["completed_tasks"],
        })
    rows.sort(key=lambda r: r["count"], reverse=True)

    total_count = sum(r["count"] for r in rows)
    weighted = sum(r["avg_progress"] * r["count"] for r in rows)
    report["rows"] = rows
    report["totals"] = {
        "key": "Total",
        "count": total_count,
        "avg_progress": round_half_up(weighted / max(total_count, 1)),
        "total_tasks": sum(r["total_tasks"] for r in rows),
        "completed_tasks": sum(r["completed_tasks"] for r in rows),
    }
    return report


# ── Dashboard stats ──────────────────────────────────────────────────

def normalize_department(dept: Optional[str]) -> Optional[str]:
    """Collapse common spellings of department names for filtering."""
    if not dept:
        return None
    normalized = dept.lower().strip()
    if 'human' in normalized or normalized == 'hr':
        return 'HR'
    if 'engineering' in normalized or normalized == 'eng':
        return 'Engineering'
    if 'sales' in normalized:
        return 'Sales'
    if 'marketing' in normalized:
        return 'Marketing'
    return dept


def filter_by_department(handovers: Iterable[dict], department: Optional[str]) -> list:
    target = normalize_department(department)
    if not target:
        return list(handovers)
    return [h for h in handovers if normalize_department(h.get("department")) == target]


def handover_stats(handovers: Iterable[dict]) -> dict:
    """Headline numbers for the HR dashboard cards."""
    handovers = list(handovers)
    total = len(handovers)
    progresses = [_progress(h) for h in handovers]

    distribution = {}
    for h in handovers:
        dept = h.get("department") or UNASSIGNED_DEPARTMENT
        distribution[dept] = distribution.get(dept, 0) + 1

    return {
        "total_handovers": total,
        "completed_handovers": sum(1 for p in progresses if p >= COMPLETION_THRESHOLD),
        "in_progress_handovers": sum(1 for p in progresses if 0 < p < COMPLETION_THRESHOLD),
        "overall_progress": round_half_up(sum(progresses) / total) if total else 0,
        "high_risk_count": sum(
            1 for h in handovers
            if _progress(h) < HIGH_RISK_PROGRESS_THRESHOLD or not _has_successor(h)
        ),
        "exiting_employees": total,
        "successors_assigned": sum(1 for h in handovers if _has_successor(h)),
        "department_distribution": distribution,
    }


def pending_help_counts(help_requests: Iterable[dict]) -> dict:
    """Pending help-request count per handover id (escalation badges)."""
    counts = {}
    for req in help_requests:
        if req.get("status") == "pending":
            counts[req.get("handover_id")] = counts.get(req.get("handover_id"), 0) + 1
    return counts


# ── Task views ───────────────────────────────────────────────────────

def task_summary(tasks: Iterable[dict]) -> dict:
    """Completion and acknowledgment counts over projected tasks."""
    tasks = list(tasks)
    completed = sum(1 for t in tasks if t.get("status") == "completed")
    acknowledged = sum(1 for t in tasks if t.get("successor_acknowledged"))
    return {
        "total": len(tasks),
        "completed": completed,
        "pending": len(tasks) - completed,
        "acknowledged": acknowledged,
        "progress": pct(completed, len(tasks)),
        "acknowledged_progress": pct(acknowledged, completed),
    }


def group_tasks_by_category(tasks: Iterable[dict]) -> dict:
    """Tasks keyed by category, categories in first-seen order."""
    grouped = {}
    for task in tasks:
        grouped.setdefault(task.get("category") or "General", []).append(task)
    return grouped
