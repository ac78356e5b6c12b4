"""
Create an admin user for the Handover Portal.

Usage: python scripts/create_admin.py EMAIL [NAME]
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handover_portal import data_access
from handover_portal.config import DEFAULT_TENANT_SLUG
from handover_portal.database import init_database
from handover_portal.users import create_user


def create_admin_user(email, name="System Administrator"):
    """Create an admin account in the default organization."""
    init_database()

    existing = data_access.query('users', {'email': email.lower()}, limit=1)
    if existing:
        print(f"Admin user already exists: {email}")
        data_access.update('users', existing[0]['id'], {'role': 'admin', 'is_active': 1})
        print("Admin role confirmed.")
        return

    tenant = data_access.query('tenants', {'slug': DEFAULT_TENANT_SLUG}, limit=1)
    user, password = create_user(email, 'admin', tenant[0]['id'] if tenant else None, name=name)

    print("=" * 50)
    print("Admin user created successfully!")
    print("=" * 50)
    print(f"  Email: {user['email']}")
    print(f"  Password: {password}")
    print("=" * 50)
    print("IMPORTANT: Change the password after first login!")
    print("=" * 50)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    create_admin_user(sys.argv[1], *sys.argv[2:3])
