"""
Task status projection: turns raw task rows and their notes into the task
view model shared by the employee, successor and manager views.

Everything here is a pure function of its inputs.
"""
import json
from typing import Iterable, Optional

NOTES_SEPARATOR = "\n\n"

# Title keyword rules, first match wins
CATEGORY_RULES = [
    (("client",), "Client Management"),
    (("crm", "system"), "Systems & Tools"),
    (("risk", "strategy"), "Strategic Planning"),
    (("team", "introduction"), "Relationships"),
]
DEFAULT_CATEGORY = "General"

# Legacy status value -> display priority
STATUS_PRIORITY = {
    "critical": "critical",
    "done": "medium",
    "pending": "high",
}
DEFAULT_PRIORITY = "medium"


def normalize_task_status(raw_status: Optional[str]) -> str:
    """Map any stored status to 'pending' or 'completed'."""
    if raw_status in ("completed", "done"):
        return "completed"
    return "pending"


def priority_from_status(raw_status: Optional[str]) -> str:
    """Legacy heuristic: derive a priority from the stored status string."""
    return STATUS_PRIORITY.get(raw_status, DEFAULT_PRIORITY)


def category_from_title(title: Optional[str]) -> str:
    """Legacy heuristic: derive a category from keywords in the title."""
    lowered = (title or "").lower()
    for keywords, category in CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def join_notes(notes: Iterable[dict]) -> str:
    """Concatenate note contents in ascending creation order."""
    ordered = sorted(notes, key=lambda n: str(n.get("created_at") or ""))
    return NOTES_SEPARATOR.join(n["content"] for n in ordered if n.get("content"))


def _decode_attachments(value) -> list:
    if not value:
        return []
    if isinstance(value, list):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        return [value]
    return decoded if isinstance(decoded, list) else [decoded]


def project_insight(raw: dict) -> dict:
    """Build a TaskInsight view model."""
    return {
        "id": raw.get("id"),
        "topic": raw.get("topic") or "",
        "content": raw.get("content") or "",
        "created_at": raw.get("created_at"),
        "attachments": _decode_attachments(raw.get("attachments")),
    }


def project_task(raw: dict, notes: Iterable[dict] = (), insights: Iterable[dict] = ()) -> dict:
    """
    Build the normalized task view model.

    Stored priority and category win; the status/title heuristics only fill
    in rows that predate those columns. Acknowledgment is only reported for
    completed tasks.
    """
    raw_status = raw.get("status")
    status = normalize_task_status(raw_status)
    acknowledged = bool(raw.get("successor_acknowledged")) and status == "completed"

    return {
        "id": raw.get("id"),
        "handover_id": raw.get("handover_id"),
        "title": raw.get("title") or "",
        "description": raw.get("description") or "",
        "category": raw.get("category") or category_from_title(raw.get("title")),
        "status": status,
        "priority": raw.get("priority") or priority_from_status(raw_status),
        "notes": join_notes(notes),
        "due_date": raw.get("due_date"),
        "successor_acknowledged": acknowledged,
        "successor_acknowledged_at": raw.get("successor_acknowledged_at") if acknowledged else None,
        "insights": [project_insight(i) for i in insights],
    }


def backfill_labels(raw: dict) -> dict:
    """Explicit priority/category values for a legacy row (used by the one-time backfill)."""
    return {
        "priority": raw.get("priority") or priority_from_status(raw.get("status")),
        "category": raw.get("category") or category_from_title(raw.get("title")),
    }
