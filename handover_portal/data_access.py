"""
Generic row and procedure access over the application database.

query / insert / update / delete / upsert work on any table of the schema;
call_procedure runs one of the registered server-side procedures with a
JSON-style body. Table and column names are checked against the schema
before they reach SQL.
"""
import json
import logging
import sqlite3

from handover_portal.config import USE_POSTGRES
from handover_portal.database import SCHEMA_COLUMNS, get_db, now_iso, apply_checklist_template
from handover_portal.workflow import WorkflowError

if USE_POSTGRES:
    import psycopg2
    DB_ERRORS = (sqlite3.Error, psycopg2.Error)
else:
    DB_ERRORS = (sqlite3.Error,)

logger = logging.getLogger(__name__)


class DataAccessError(Exception):
    """A read, write or procedure call against the store failed."""

    def __init__(self, message, resource=None):
        super().__init__(message)
        self.resource = resource


def _check_table(table: str) -> list:
    if table not in SCHEMA_COLUMNS:
        raise DataAccessError(f"Unknown table: {table}", resource=table)
    return SCHEMA_COLUMNS[table]


def _check_columns(table: str, columns) -> None:
    allowed = _check_table(table)
    bad = [c for c in columns if c not in allowed]
    if bad:
        raise DataAccessError(f"Unknown column(s) for {table}: {', '.join(bad)}", resource=table)


def _where_clause(table: str, filters: dict):
    if not filters:
        return "", []
    _check_columns(table, filters.keys())
    clauses, params = [], []
    for column, value in filters.items():
        if value is None:
            clauses.append(f"{column} IS NULL")
        elif isinstance(value, (list, tuple, set)):
            values = list(value)
            if not values:
                clauses.append("1 = 0")
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " WHERE " + " AND ".join(clauses), params


def query(table: str, filters: dict = None, order_by=None, limit: int = None) -> list:
    """
    Read rows as dicts. filters: column -> value (list means IN, None means IS NULL).
    order_by: "column" or "-column" (descending), or a list of those.
    """
    _check_table(table)
    where, params = _where_clause(table, filters)
    sql = f"SELECT * FROM {table}{where}"

    if order_by:
        orders = [order_by] if isinstance(order_by, str) else list(order_by)
        parts = []
        for item in orders:
            column = item.lstrip('-')
            _check_columns(table, [column])
            parts.append(f"{column} {'DESC' if item.startswith('-') else 'ASC'}")
        sql += " ORDER BY " + ", ".join(parts)
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]
    except DB_ERRORS as e:
        raise DataAccessError(f"Failed to read {table}: {e}", resource=table) from e


def get_by_id(table: str, record_id):
    rows = query(table, {'id': record_id}, limit=1)
    return rows[0] if rows else None


def insert(table: str, record: dict) -> dict:
    """Insert a row and return it as stored."""
    _check_columns(table, record.keys())
    columns = list(record.keys())
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})"
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, [record[c] for c in columns])
            new_id = cursor.lastrowid if 'id' in SCHEMA_COLUMNS[table] else None
    except DB_ERRORS as e:
        raise DataAccessError(f"Failed to insert into {table}: {e}", resource=table) from e

    if new_id is None:
        return dict(record)
    return get_by_id(table, new_id)


def update(table: str, record_id, patch: dict) -> bool:
    """Apply a partial update. Returns False when no row matched."""
    if not patch:
        return False
    _check_columns(table, patch.keys())
    assignments = ", ".join(f"{c} = ?" for c in patch)
    sql = f"UPDATE {table} SET {assignments} WHERE id = ?"
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, list(patch.values()) + [record_id])
            return cursor.rowcount > 0
    except DB_ERRORS as e:
        raise DataAccessError(f"Failed to update {table}: {e}", resource=table) from e


def delete(table: str, record_id) -> bool:
    _check_table(table)
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0
    except DB_ERRORS as e:
        raise DataAccessError(f"Failed to delete from {table}: {e}", resource=table) from e


def upsert(table: str, record: dict, conflict_key: str) -> dict:
    """Insert a row, or update the existing row sharing conflict_key."""
    _check_columns(table, list(record.keys()) + [conflict_key])
    if conflict_key not in record:
        raise DataAccessError(f"Upsert into {table} needs a value for {conflict_key}", resource=table)

    columns = list(record.keys())
    updates = [c for c in columns if c != conflict_key]
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})"
    if updates:
        sql += f" ON CONFLICT ({conflict_key}) DO UPDATE SET " + ", ".join(
            f"{c} = excluded.{c}" for c in updates
        )
    else:
        sql += f" ON CONFLICT ({conflict_key}) DO NOTHING"

    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute(sql, [record[c] for c in columns])
    except DB_ERRORS as e:
        raise DataAccessError(f"Failed to upsert into {table}: {e}", resource=table) from e

    rows = query(table, {conflict_key: record[conflict_key]}, limit=1)
    return rows[0] if rows else dict(record)


# ── Procedures ───────────────────────────────────────────────────────

def log_activity(action: str, user_id=None, resource_type=None, resource_id=None,
                 details=None, ip_address=None, user_agent=None) -> dict:
    """Append an activity-log row."""
    return insert('activity_logs', {
        'user_id': user_id,
        'action': action,
        'resource_type': resource_type,
        'resource_id': str(resource_id) if resource_id is not None else None,
        'details': json.dumps(details) if details is not None else None,
        'ip_address': ip_address,
        'user_agent': user_agent,
        'created_at': now_iso(),
    })


def _proc_apply_checklist_template(body: dict):
    handover_id = body.get('handover_id')
    template_id = body.get('template_id')
    if not handover_id or not template_id:
        raise DataAccessError("handover_id and template_id are required", resource='apply_checklist_template')
    try:
        created = apply_checklist_template(int(handover_id), int(template_id))
    except (LookupError, WorkflowError) as e:
        raise DataAccessError(str(e), resource='apply_checklist_template') from e
    return {'handover_id': int(handover_id), 'template_id': int(template_id), 'created': created}


def _proc_log_activity(body: dict):
    if not body.get('action'):
        raise DataAccessError("action is required", resource='log_activity')
    row = log_activity(
        body['action'],
        user_id=body.get('user_id'),
        resource_type=body.get('resource_type'),
        resource_id=body.get('resource_id'),
        details=body.get('details'),
        ip_address=body.get('ip_address'),
        user_agent=body.get('user_agent'),
    )
    return {'id': row['id']}


def _proc_list_successor_candidates(body: dict):
    filters = {'role': 'successor', 'is_active': 1}
    if body.get('tenant_id'):
        filters['tenant_id'] = body['tenant_id']
    return [
        {'id': u['id'], 'email': u['email'], 'name': u['name'], 'role': u['role']}
        for u in query('users', filters, order_by='email')
    ]


PROCEDURES = {
    'apply_checklist_template': _proc_apply_checklist_template,
    'log_activity': _proc_log_activity,
    'list_successor_candidates': _proc_list_successor_candidates,
}


def call_procedure(name: str, body: dict = None):
    """Run a registered procedure with a JSON body and return its JSON-able result."""
    procedure = PROCEDURES.get(name)
    if procedure is None:
        raise DataAccessError(f"Unknown procedure: {name}", resource=name)
    try:
        return procedure(body or {})
    except DB_ERRORS as e:
        raise DataAccessError(f"Procedure {name} failed: {e}", resource=name) from e
