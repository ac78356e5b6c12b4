"""
Database connection and session management.
Supports both SQLite (local development) and PostgreSQL (production).
Also owns the schema, the default tenant/admin bootstrap and the
handover bookkeeping helpers (progress recompute, checklist templates).
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from handover_portal.config import (
    DATABASE_PATH, DATABASE_URL, USE_POSTGRES,
    DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, DEFAULT_TENANT_SLUG,
)

# PostgreSQL support
if USE_POSTGRES:
    import psycopg2
    from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)


class DictRow:
    """Wrapper to make psycopg2 results behave like sqlite3.Row"""
    def __init__(self, data):
        self._data = data
        self._keys = list(data.keys()) if data else []

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._data[self._keys[key]]
        return self._data[key]

    def __iter__(self):
        return iter(self._data.values())

    def keys(self):
        return self._keys


def get_db_connection():
    """Create a database connection with row factory."""
    if USE_POSTGRES:
        return psycopg2.connect(DATABASE_URL)
    conn = sqlite3.connect(str(DATABASE_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class PostgresCursorWrapper:
    """Wrapper to make a PostgreSQL cursor accept the SQLite dialect used in queries"""
    def __init__(self, cursor):
        self._cursor = cursor

    def execute(self, query, params=None):
        query = query.replace('?', '%s')
        query = query.replace('INTEGER PRIMARY KEY AUTOINCREMENT', 'SERIAL PRIMARY KEY')
        if 'INSERT OR IGNORE' in query.upper():
            query = query.replace('INSERT OR IGNORE', 'INSERT')
            query = query.replace('insert or ignore', 'INSERT')
            query = query.rstrip().rstrip(';') + ' ON CONFLICT DO NOTHING'
        if query.strip().upper().startswith('PRAGMA'):
            return self
        if params:
            self._cursor.execute(query, params)
        else:
            self._cursor.execute(query)
        return self

    def executemany(self, query, params_list):
        query = query.replace('?', '%s')
        for params in params_list:
            self._cursor.execute(query, params)
        return self

    def fetchone(self):
        row = self._cursor.fetchone()
        return DictRow(row) if row else None

    def fetchall(self):
        rows = self._cursor.fetchall()
        return [DictRow(row) for row in rows]

    @property
    def lastrowid(self):
        self._cursor.execute("SELECT lastval()")
        return self._cursor.fetchone()['lastval']

    @property
    def rowcount(self):
        return self._cursor.rowcount


class PostgresConnection:
    """Connection facade exposing the sqlite3 connection methods the app uses."""
    def __init__(self, conn):
        self._conn = conn
        self._cursor = PostgresCursorWrapper(conn.cursor(cursor_factory=RealDictCursor))

    def cursor(self):
        return self._cursor

    def execute(self, *args, **kwargs):
        return self._cursor.execute(*args, **kwargs)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()


@contextmanager
def get_db():
    """Context manager for database connections. Commits on success, rolls back on error."""
    conn = get_db_connection()
    try:
        if USE_POSTGRES:
            yield PostgresConnection(conn)
        else:
            yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def now_iso() -> str:
    """Current local time as an ISO-8601 string (seconds precision)."""
    return datetime.now().isoformat(sep=' ', timespec='seconds')


# Table -> columns. Used by data_access to whitelist identifiers.
SCHEMA_COLUMNS = {
    'tenants': ['id', 'name', 'slug', 'is_active', 'created_at'],
    'users': [
        'id', 'tenant_id', 'email', 'name', 'role', 'department',
        'password_hash', 'is_active', 'created_at',
    ],
    'sessions': ['session_id', 'user_id', 'expires_at', 'created_at'],
    'handovers': [
        'id', 'tenant_id', 'employee_id', 'successor_id', 'status', 'progress',
        'ai_risk_level', 'ai_recommendation', 'approved_by', 'approved_at',
        'created_at', 'updated_at',
    ],
    'tasks': [
        'id', 'handover_id', 'template_task_id', 'title', 'description',
        'category', 'priority', 'status', 'due_date', 'successor_acknowledged',
        'successor_acknowledged_at', 'created_at', 'updated_at',
    ],
    'notes': ['id', 'task_id', 'content', 'created_by', 'created_at'],
    'task_insights': [
        'id', 'task_id', 'topic', 'content', 'attachments', 'created_at', 'updated_at',
    ],
    'help_requests': [
        'id', 'task_id', 'handover_id', 'requester_id', 'request_type', 'message',
        'status', 'response', 'responded_by', 'responded_at', 'created_at', 'updated_at',
    ],
    'checklist_templates': [
        'id', 'tenant_id', 'name', 'description', 'role', 'department',
        'is_active', 'created_by', 'created_at', 'updated_at',
    ],
    'checklist_template_tasks': [
        'id', 'template_id', 'title', 'description', 'category', 'priority',
        'order_index', 'created_at',
    ],
    'activity_logs': [
        'id', 'user_id', 'action', 'resource_type', 'resource_id', 'details',
        'ip_address', 'user_agent', 'created_at',
    ],
    'ai_knowledge_insights': [
        'id', 'handover_id', 'user_id', 'insights', 'file_path', 'created_at',
    ],
}


def init_database():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tenants (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                is_active INTEGER DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id INTEGER,
                email TEXT UNIQUE NOT NULL,
                name TEXT,
                role TEXT NOT NULL DEFAULT 'exiting',
                department TEXT,
                password_hash TEXT NOT NULL,
                is_active INTEGER DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (tenant_id) REFERENCES tenants(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                user_id INTEGER NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS handovers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id INTEGER,
                employee_id INTEGER NOT NULL,
                successor_id INTEGER,
                status TEXT DEFAULT 'pending',
                progress INTEGER DEFAULT 0,
                ai_risk_level TEXT,
                ai_recommendation TEXT,
                approved_by INTEGER,
                approved_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (tenant_id) REFERENCES tenants(id),
                FOREIGN KEY (employee_id) REFERENCES users(id),
                FOREIGN KEY (successor_id) REFERENCES users(id)
            )
        """)

        # template_task_id keeps template application idempotent
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                handover_id INTEGER NOT NULL,
                template_task_id INTEGER,
                title TEXT NOT NULL,
                description TEXT,
                category TEXT,
                priority TEXT,
                status TEXT DEFAULT 'pending',
                due_date DATE,
                successor_acknowledged INTEGER DEFAULT 0,
                successor_acknowledged_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (handover_id, template_task_id),
                FOREIGN KEY (handover_id) REFERENCES handovers(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL,
                content TEXT,
                created_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (task_id) REFERENCES tasks(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS task_insights (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL,
                topic TEXT NOT NULL,
                content TEXT,
                attachments TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (task_id) REFERENCES tasks(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS help_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL,
                handover_id INTEGER NOT NULL,
                requester_id INTEGER NOT NULL,
                request_type TEXT NOT NULL CHECK(request_type IN ('employee', 'manager')),
                message TEXT NOT NULL,
                status TEXT DEFAULT 'pending',
                response TEXT,
                responded_by INTEGER,
                responded_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (task_id) REFERENCES tasks(id),
                FOREIGN KEY (handover_id) REFERENCES handovers(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checklist_templates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id INTEGER,
                name TEXT NOT NULL,
                description TEXT,
                role TEXT NOT NULL,
                department TEXT,
                is_active INTEGER DEFAULT 1,
                created_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checklist_template_tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                template_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                category TEXT DEFAULT 'General',
                priority TEXT DEFAULT 'medium',
                order_index INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (template_id) REFERENCES checklist_templates(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS activity_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER,
                action TEXT NOT NULL,
                resource_type TEXT,
                resource_id TEXT,
                details TEXT,
                ip_address TEXT,
                user_agent TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ai_knowledge_insights (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                handover_id INTEGER NOT NULL,
                user_id INTEGER,
                insights TEXT NOT NULL,
                file_path TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_tenant ON users(tenant_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_handovers_employee ON handovers(employee_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_handovers_successor ON handovers(successor_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_handover ON tasks(handover_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_notes_task ON notes(task_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_task_insights_task ON task_insights(task_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_help_requests_handover ON help_requests(handover_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_template_tasks_template ON checklist_template_tasks(template_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_activity_logs_user ON activity_logs(user_id)")

        _create_default_tenant(cursor)
        _create_admin_user(cursor)

    logger.info("Database initialized (%s)", "PostgreSQL" if USE_POSTGRES else "SQLite")


def _create_default_tenant(cursor):
    """Create the default tenant if not exists."""
    cursor.execute("""
        INSERT OR IGNORE INTO tenants (name, slug) VALUES ('Default Organization', ?)
    """, (DEFAULT_TENANT_SLUG,))


def _create_admin_user(cursor):
    """Create default admin user if not exists."""
    import bcrypt

    cursor.execute("SELECT id FROM users WHERE email = ?", (DEFAULT_ADMIN_EMAIL,))
    if cursor.fetchone():
        return

    cursor.execute("SELECT id FROM tenants WHERE slug = ?", (DEFAULT_TENANT_SLUG,))
    tenant = cursor.fetchone()

    password_hash = bcrypt.hashpw(DEFAULT_ADMIN_PASSWORD.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')
    cursor.execute("""
        INSERT OR IGNORE INTO users (tenant_id, email, name, role, password_hash, is_active)
        VALUES (?, ?, 'System Administrator', 'admin', ?, 1)
    """, (tenant['id'] if tenant else None, DEFAULT_ADMIN_EMAIL, password_hash))

    logger.info("Created default admin user: %s", DEFAULT_ADMIN_EMAIL)


def reset_database():
    """Drop all tables and recreate them. Use with caution!"""
    with get_db() as conn:
        cursor = conn.cursor()
        for table in reversed(list(SCHEMA_COLUMNS)):
            cursor.execute(f"DROP TABLE IF EXISTS {table}")
    init_database()
    logger.warning("Database reset complete")


def recalculate_handover_progress(handover_id: int) -> dict:
    """
    Recompute the stored progress and status of a handover from its tasks.
    Progress is the rounded share of completed tasks; with no tasks the
    stored value is kept.
    """
    from handover_portal.aggregation import handover_progress
    from handover_portal.workflow import derive_handover_status

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT progress, status FROM handovers WHERE id = ?", (handover_id,))
        handover = cursor.fetchone()
        if not handover:
            return {}

        cursor.execute("""
            SELECT COUNT(*) AS task_count,
                   SUM(CASE WHEN status IN ('completed', 'done') THEN 1 ELSE 0 END) AS completed_tasks
            FROM tasks WHERE handover_id = ?
        """, (handover_id,))
        counts = cursor.fetchone()
        task_count = counts['task_count'] or 0
        completed = counts['completed_tasks'] or 0

        progress = handover_progress(task_count, completed, handover['progress'])
        status = derive_handover_status(progress, handover['status'])

        cursor.execute(
            "UPDATE handovers SET progress = ?, status = ?, updated_at = ? WHERE id = ?",
            (progress, status, now_iso(), handover_id)
        )

    return {'progress': progress, 'status': status}


def apply_checklist_template(handover_id: int, template_id: int) -> int:
    """
    Copy a checklist template's tasks onto a handover, in template order.
    Tasks already created from the same template task are skipped, so
    applying a template twice creates nothing the second time.
    Returns the number of tasks created.
    """
    from handover_portal.workflow import check_handover_open

    created = 0
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT id, status FROM handovers WHERE id = ?", (handover_id,))
        handover = cursor.fetchone()
        if not handover:
            raise LookupError(f"Handover {handover_id} not found")
        check_handover_open(dict(handover))

        cursor.execute("""
            SELECT id, title, description, category, priority
            FROM checklist_template_tasks
            WHERE template_id = ?
            ORDER BY order_index, id
        """, (template_id,))
        template_tasks = cursor.fetchall()

        cursor.execute(
            "SELECT template_task_id FROM tasks WHERE handover_id = ? AND template_task_id IS NOT NULL",
            (handover_id,)
        )
        existing = {row['template_task_id'] for row in cursor.fetchall()}

        timestamp = now_iso()
        for tt in template_tasks:
            if tt['id'] in existing:
                continue
            cursor.execute("""
                INSERT OR IGNORE INTO tasks
                (handover_id, template_task_id, title, description, category, priority,
                 status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?)
            """, (handover_id, tt['id'], tt['title'], tt['description'],
                  tt['category'], tt['priority'], timestamp, timestamp))
            created += cursor.rowcount if cursor.rowcount > 0 else 0

    logger.info("Applied template %s to handover %s: %d task(s) created", template_id, handover_id, created)
    if created:
        recalculate_handover_progress(handover_id)
    return created


def backfill_task_labels() -> int:
    """
    One-time backfill of the explicit priority/category columns from the
    legacy status and title heuristics. Only rows with null columns change.
    Returns the number of rows updated.
    """
    from handover_portal.projection import backfill_labels

    updated = 0
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT id, title, status, priority, category FROM tasks
            WHERE priority IS NULL OR priority = '' OR category IS NULL OR category = ''
        """)
        for row in cursor.fetchall():
            labels = backfill_labels(dict(row))
            cursor.execute(
                "UPDATE tasks SET priority = ?, category = ? WHERE id = ?",
                (labels['priority'], labels['category'], row['id'])
            )
            updated += 1

    logger.info("Backfilled priority/category on %d task(s)", updated)
    return updated
