#!/usr/bin/env python3
"""
Delete activity logs older than a retention window.

Runs against the same database as the API; safe to schedule from cron.
"""

import argparse
import json
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dataflow.core import config
from dataflow.core.dao import purge_activity_logs, retention_days
from dataflow.core.db import EntityStore
from dataflow.core.errors import StoreError


def positive_days(value):
    """argparse type for --days: a whole number of days, at least 1."""
    try:
        days = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of days: {value!r}")
    if days < 1:
        raise argparse.ArgumentTypeError("days must be at least 1")
    return days


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Purge old activity logs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                 # Delete logs older than PURGE_LOGS_DEFAULT_DAYS
  %(prog)s --days 7        # Keep one week of logs
  %(prog)s --days 7 --json # Output results as JSON
        """
    )
    parser.add_argument(
        "--days", "-d",
        type=positive_days,
        default=config.PURGE_LOGS_DEFAULT_DAYS,
        help="Retention window in days"
    )
    parser.add_argument(
        "--db-path",
        default=config.DB_PATH,
        help="SQLite database file"
    )
    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Output results as JSON instead of human-readable text"
    )

    args = parser.parse_args(argv)
    days = retention_days(args.days)

    try:
        store = EntityStore(args.db_path)
        deleted = purge_activity_logs(store, days)
        store.close()
    except StoreError as e:
        print(f"Purge failed: {e.message}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps({"deleted": deleted, "days": days}))
    else:
        print(f"Deleted {deleted} activity log(s) older than {days} day(s)")


if __name__ == "__main__":
    main()
