"""
User accounts: creation, role changes and bulk import from spreadsheets.
"""
import csv
import io
import logging
from typing import Optional

import pandas as pd

from handover_portal import data_access
from handover_portal.auth import generate_password, hash_password
from handover_portal.config import USER_ROLES
from handover_portal.database import now_iso

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = ['email', 'name', 'role', 'department']


def public_user(row: dict) -> dict:
    """User row without the password hash."""
    return {k: v for k, v in row.items() if k != 'password_hash'}


def create_user(email: str, role: str, tenant_id: Optional[int], name: str = None,
                department: str = None, password: str = None) -> tuple:
    """
    Create an account. Returns (user, plain password); a password is
    generated when none is given.
    """
    email = (email or '').strip().lower()
    if not email or '@' not in email:
        raise ValueError(f"Invalid email: {email!r}")
    if role not in USER_ROLES:
        raise ValueError(f"Invalid role: {role}")
    if data_access.query('users', {'email': email}, limit=1):
        raise ValueError(f"User {email} already exists")

    password = password or generate_password()
    row = data_access.insert('users', {
        'tenant_id': tenant_id,
        'email': email,
        'name': name or None,
        'role': role,
        'department': department or None,
        'password_hash': hash_password(password),
        'is_active': 1,
        'created_at': now_iso(),
    })
    logger.info("Created %s account %s", role, email)
    return public_user(row), password


def set_role(user_id: int, role: str) -> bool:
    if role not in USER_ROLES:
        raise ValueError(f"Invalid role: {role}")
    return data_access.update('users', user_id, {'role': role})


def reset_password(user_id: int) -> Optional[str]:
    """New random password for the user, or None if the user does not exist."""
    password = generate_password()
    if not data_access.update('users', user_id, {'password_hash': hash_password(password)}):
        return None
    return password


def read_user_file(filename: str, content: bytes) -> pd.DataFrame:
    """Load an uploaded .xlsx/.xls or .csv file with normalized column names."""
    if filename.lower().endswith('.csv'):
        df = pd.read_csv(io.BytesIO(content))
    elif filename.lower().endswith(('.xlsx', '.xls')):
        df = pd.read_excel(io.BytesIO(content))
    else:
        raise ValueError("Please upload an Excel (.xlsx) or CSV file")
    df.columns = [str(c).strip().lower() for c in df.columns]
    if 'email' not in df.columns:
        raise ValueError("The file needs an 'email' column")
    return df.where(pd.notnull(df), None)


def _cell(row, column):
    value = row.get(column)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    value = str(value).strip()
    return value or None


def import_users(df: pd.DataFrame, tenant_id: Optional[int], default_role: str = 'exiting') -> dict:
    """
    Create an account for every row of the frame. Rows with an existing
    email or an invalid role are reported, not imported.
    """
    created, skipped = [], []
    for idx, row in df.iterrows():
        email = _cell(row, 'email')
        role = (_cell(row, 'role') or default_role).lower()
        try:
            user, password = create_user(
                email, role, tenant_id,
                name=_cell(row, 'name'),
                department=_cell(row, 'department'),
            )
        except ValueError as e:
            skipped.append({'row': int(idx) + 2, 'email': email, 'reason': str(e)})
            continue
        created.append({'id': user['id'], 'email': user['email'], 'role': user['role'], 'password': password})

    logger.info("Imported %d user(s), skipped %d", len(created), len(skipped))
    return {'created': created, 'skipped': skipped}


def passwords_csv(created: list) -> str:
    """CSV text with the generated passwords of imported accounts."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['email', 'role', 'password'])
    for item in created:
        writer.writerow([item['email'], item['role'], item['password']])
    return output.getvalue()
