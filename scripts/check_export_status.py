"""
Check Google Earth Engine Export Task Status

Lists recent export tasks (or the ids given on the command line) with
their state, and optionally waits until the given tasks finish.

Usage:
    python scripts/check_export_status.py
    python scripts/check_export_status.py --task-id ABC123 --wait
"""

import argparse
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import ee

from gee_primer.data.acquisition.exporter import summarize_states, task_status_table, wait_for_task
from gee_primer.utils.config_loader import load_config
from gee_primer.utils.initialization import initialize_earth_engine
from gee_primer.utils.logging import setup_logging_from_config


def check_task_status(task_ids=None, limit=20, wait=False, poll_interval=30):
    """Check status of export tasks. If task_ids provided, only check those."""
    print("=" * 70)
    print("Checking GEE Export Task Status")
    print("=" * 70)

    try:
        config = load_config()
        setup_logging_from_config(config, PROJECT_ROOT)
        initialize_earth_engine(config)

        all_tasks = ee.batch.Task.list()
        table = task_status_table(tasks=all_tasks, task_ids=task_ids, limit=limit)

        if table.empty:
            print("\nNo tasks found.")
            return True

        print("\nTask Status:")
        print("-" * 70)
        for row in table.itertuples(index=False):
            print(f"  {row.state:10} | {row.id} | {str(row.description)[:50]}")
            if row.error:
                print(f"    Error: {str(row.error)[:100]}")
        print("-" * 70)

        counts = summarize_states(table)
        print("\nSummary:")
        for state, count in counts.items():
            print(f"  {state.title() + ':':11} {count}")

        if wait and task_ids:
            wanted = set(task_ids)
            for task in all_tasks:
                if task.id in wanted:
                    status = wait_for_task(task, poll_interval=poll_interval)
                    print(f"  {task.id} finished: {status.get('state')}")

        return counts['FAILED'] == 0

    except Exception as e:
        print(f"\n[ERROR] Failed: {e}")
        import traceback
        traceback.print_exc()
        return False


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check Earth Engine export task status")
    parser.add_argument("--task-id", action="append", default=None)
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--wait", action="store_true", help="Wait for the given task ids to finish")
    parser.add_argument("--poll-interval", type=float, default=30)
    args = parser.parse_args()

    success = check_task_status(args.task_id, args.limit, args.wait, args.poll_interval)
    sys.exit(0 if success else 1)
