#!/usr/bin/env python3
"""
Settle overdue test sessions.

Force-submits in-progress sessions whose time limit has passed and expires
created sessions that were never begun within their start window. Intended
to run from cron every few minutes; overlapping runs and concurrent client
requests are safe because a session is scored at most once.

Usage:
    DATABASE_URL="postgresql://..." python scripts/sweep_expired_sessions.py

    # Show what would be settled without changing anything
    python scripts/sweep_expired_sessions.py --dry-run
"""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hiring_assessment.core import session_engine  # noqa: E402
from hiring_assessment.core.datetime_utils import utc_now  # noqa: E402
from hiring_assessment.core.logging_config import setup_logging  # noqa: E402
from hiring_assessment.models import SessionLocal  # noqa: E402

logger = logging.getLogger("hiring_assessment.scripts.sweep")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Settle overdue test sessions")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List overdue sessions without settling them",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    now = utc_now()

    db = SessionLocal()
    try:
        if args.dry_run:
            codes = list(session_engine.find_overdue_session_codes(db, now))
            print(f"[DRY RUN] {len(codes)} overdue session(s)")
            for code in codes:
                print(f"  {code}")
            return 0

        result = session_engine.sweep_expired_sessions(db, now)
    finally:
        db.close()

    print(
        f"Evaluated: {len(result.evaluated)}  "
        f"Expired: {len(result.expired)}  "
        f"Failed: {len(result.failed)}"
    )
    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
