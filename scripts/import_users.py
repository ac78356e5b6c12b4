"""
Import user accounts from an Excel or CSV file and save the generated
passwords to initial_passwords.csv.

Expected columns: email, name, role, department (role defaults to 'exiting').

Usage: python scripts/import_users.py FILE [TENANT_SLUG]
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pathlib import Path

from handover_portal import data_access
from handover_portal.config import DEFAULT_TENANT_SLUG, INITIAL_PASSWORDS_FILE
from handover_portal.database import init_database
from handover_portal.users import import_users, passwords_csv, read_user_file


def main(path, tenant_slug=DEFAULT_TENANT_SLUG):
    init_database()

    tenant = data_access.query('tenants', {'slug': tenant_slug}, limit=1)
    if not tenant:
        print(f"Organization '{tenant_slug}' not found")
        sys.exit(1)

    file_path = Path(path)
    print(f"Reading users from: {file_path}")
    df = read_user_file(file_path.name, file_path.read_bytes())
    print(f"Found {len(df)} rows")

    result = import_users(df, tenant[0]['id'])
    for item in result['skipped']:
        print(f"  Skipping row {item['row']} ({item['email']}): {item['reason']}")

    if result['created']:
        INITIAL_PASSWORDS_FILE.write_text(passwords_csv(result['created']))
        print(f"Passwords saved to: {INITIAL_PASSWORDS_FILE}")

    print(f"\nImported {len(result['created'])} user(s), skipped {len(result['skipped'])}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    main(*sys.argv[1:3])
