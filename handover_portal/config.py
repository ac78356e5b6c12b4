"""
Application configuration settings.
"""
import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file if it exists (for local development)
env_file = BASE_DIR / ".env"
if env_file.exists():
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                os.environ.setdefault(key.strip(), value.strip())

# Database - SQLite locally, PostgreSQL when DATABASE_URL points at one
DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_PATH = BASE_DIR / "handover_portal.db"

USE_POSTGRES = DATABASE_URL.startswith("postgres")

# Hosted providers hand out postgres:// but psycopg2 needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-handover-portal-secret")
SESSION_COOKIE_NAME = "handover_session"
SESSION_MAX_AGE = 60 * 60 * 24  # 24 hours in seconds

# Shared secret expected in the X-Webhook-Token header of the insight webhook.
# Empty disables the check (local development only).
AI_WEBHOOK_TOKEN = os.getenv("AI_WEBHOOK_TOKEN", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Default admin account created on first initialisation
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@handover.local")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "Admin@Handover1")
DEFAULT_TENANT_SLUG = "default"

# File paths
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
INITIAL_PASSWORDS_FILE = BASE_DIR / "initial_passwords.csv"

# User roles
USER_ROLES = ["admin", "hr-manager", "exiting", "successor"]

# Handover lifecycle
HANDOVER_STATUS_OPTIONS = ["pending", "in-progress", "review", "completed"]
HANDOVER_DEADLINE_DAYS = 30

# Tasks
TASK_STATUS_OPTIONS = ["pending", "completed"]
PRIORITY_OPTIONS = ["low", "medium", "high", "critical"]
TASK_CATEGORIES = [
    "Client Management",
    "Systems & Tools",
    "Strategic Planning",
    "Relationships",
    "General",
]

# Advisory risk levels attached by the insight process
RISK_LEVELS = ["low", "medium", "high", "critical"]
AT_RISK_LEVELS = ("high", "critical")

# Help requests / escalations
HELP_REQUEST_TYPES = ["employee", "manager"]
HELP_REQUEST_STATUSES = ["pending", "replied", "resolved"]

# Departments offered in forms
DEPARTMENT_OPTIONS = [
    "Sales",
    "Engineering",
    "HR",
    "Marketing",
    "Finance",
    "Operations",
]
UNASSIGNED_DEPARTMENT = "Unassigned"

# Dashboard thresholds (progress percentages)
LOW_PROGRESS_THRESHOLD = 30
STALLED_UPPER_THRESHOLD = 60
COMPLETION_THRESHOLD = 90
HIGH_RISK_PROGRESS_THRESHOLD = 50
STRONG_DEPARTMENT_THRESHOLD = 60

# Pivot report
REPORT_DIMENSIONS = ["department", "status", "ai_risk_level", "successor_assigned"]
REPORT_MEASURES = ["count", "avg_progress", "total_tasks", "completed_tasks"]
REPORT_KEY_SEPARATOR = " | "
REPORT_UNKNOWN_VALUE = "Unknown"

REPORT_DIMENSION_LABELS = {
    "department": "Department",
    "status": "Status",
    "ai_risk_level": "AI Risk Level",
    "successor_assigned": "Successor",
}

REPORT_MEASURE_LABELS = {
    "count": "Handovers",
    "avg_progress": "Avg Progress %",
    "total_tasks": "Total Tasks",
    "completed_tasks": "Completed Tasks",
}

# HR insight panel
MAX_HR_INSIGHTS = 6
