"""
Database initialization script.
Creates tables, the default organization and the default admin account.
Pass --reset to drop and recreate every table first.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handover_portal.config import DEFAULT_ADMIN_EMAIL
from handover_portal.database import init_database, reset_database, USE_POSTGRES


def main(reset=False):
    print("=" * 60, flush=True)
    print("Handover Portal - Database Initialization", flush=True)
    print(f"Database: {'PostgreSQL' if USE_POSTGRES else 'SQLite'}", flush=True)
    print("=" * 60, flush=True)

    if reset:
        print("\nDropping and recreating all tables...")
        reset_database()
    else:
        init_database()

    print(f"\nDefault admin: {DEFAULT_ADMIN_EMAIL}")
    print("=" * 60)
    print("DATABASE INITIALIZATION COMPLETE!")
    print("=" * 60)


if __name__ == "__main__":
    main(reset="--reset" in sys.argv[1:])
