"""
AI insight handling for the HR dashboard.

Stored insights arrive from the external insight process through the
webhook. They are either JSON (a list of items or a single object) or
free text. The HR panel merges them with alerts derived from the current
handover list.
"""
import json
from datetime import datetime
from typing import Iterable

from handover_portal.aggregation import round_half_up
from handover_portal.config import (
    LOW_PROGRESS_THRESHOLD, MAX_HR_INSIGHTS, RISK_LEVELS, STRONG_DEPARTMENT_THRESHOLD,
)


def _item(type_, title, description, priority, created_at):
    return {
        'type': type_,
        'title': title,
        'description': description,
        'priority': priority,
        'created_at': created_at,
    }


def parse_stored_insights(rows: Iterable[dict]) -> list:
    """Flatten stored insight rows into panel items."""
    items = []
    for row in rows:
        raw = row.get('insights')
        created_at = row.get('created_at')
        if not raw:
            continue
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except ValueError:
                items.append(_item('recommendation', 'AI Insight', raw, 'medium', created_at))
                continue
        else:
            parsed = raw

        if isinstance(parsed, dict):
            parsed = [parsed]
        if not isinstance(parsed, list):
            items.append(_item('recommendation', 'AI Knowledge Insight', str(parsed), 'medium', created_at))
            continue

        for entry in parsed:
            if not isinstance(entry, dict):
                items.append(_item('recommendation', 'AI Insight', str(entry), 'medium', created_at))
                continue
            items.append(_item(
                entry.get('type') or 'recommendation',
                entry.get('title') or 'AI Analysis',
                entry.get('description') or entry.get('insight') or 'No details available',
                entry.get('priority') or 'medium',
                created_at,
            ))
    return items


def build_hr_insights(handovers: Iterable[dict], stored_rows: Iterable[dict] = (), now: datetime = None) -> list:
    """
    Insight panel items: alerts derived from the handover list first, then
    stored insights, then a department performance trend. At most
    MAX_HR_INSIGHTS items.
    """
    handovers = list(handovers)
    timestamp = (now or datetime.now()).isoformat(timespec='seconds')
    items = parse_stored_insights(stored_rows)

    if handovers:
        total = len(handovers)
        unassigned = sum(1 for h in handovers if not h.get('successor_email'))
        low_progress = sum(1 for h in handovers if (h.get('progress') or 0) < LOW_PROGRESS_THRESHOLD)

        if low_progress:
            items.insert(0, _item(
                'prediction', 'Knowledge Loss Risk Forecast',
                f"{round_half_up(low_progress / total * 100)}% of transitions at risk due to slow progress",
                'high', timestamp,
            ))
        if unassigned:
            plural = 's' if unassigned > 1 else ''
            items.insert(0, _item(
                'alert', 'Unassigned Successors Alert',
                f"{unassigned} handover{plural} without assigned successors - immediate action required",
                'critical', timestamp,
            ))

        dept_stats = {}
        for h in handovers:
            stats = dept_stats.setdefault(h.get('department') or 'Unknown', {'total': 0, 'progress': 0})
            stats['total'] += 1
            stats['progress'] += h.get('progress') or 0
        best_dept, best = max(dept_stats.items(), key=lambda kv: kv[1]['progress'] / kv[1]['total'])
        best_avg = best['progress'] / best['total']
        if best_avg > STRONG_DEPARTMENT_THRESHOLD:
            items.append(_item(
                'trend', 'Department Performance Excellence',
                f"{best_dept} department showing {round_half_up(best_avg)}% average progress in knowledge transfers",
                'positive', timestamp,
            ))

    return items[:MAX_HR_INSIGHTS]


def validate_webhook_payload(payload) -> list:
    """Problems with an insight webhook payload; empty when valid."""
    if not isinstance(payload, dict):
        return ["Payload must be a JSON object"]
    errors = []
    if not payload.get('handover_id'):
        errors.append("handover_id is required")
    if not payload.get('insights'):
        errors.append("insights is required")
    risk = payload.get('risk_level')
    if risk and risk not in RISK_LEVELS:
        errors.append(f"risk_level must be one of {', '.join(RISK_LEVELS)}")
    return errors


def serialize_insights(value) -> str:
    """Stored form of the insights field: JSON for structured data, text as is."""
    if isinstance(value, str):
        return value
    return json.dumps(value)
