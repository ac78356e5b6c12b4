"""
One-time backfill of the task priority and category columns for rows
created before those columns existed.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handover_portal.database import backfill_task_labels, init_database


if __name__ == "__main__":
    init_database()
    updated = backfill_task_labels()
    print(f"Backfilled priority/category on {updated} task(s)")
