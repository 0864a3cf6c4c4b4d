#!/usr/bin/env python3
"""
Clear Escalation On Closed Notices

One-off repair for closed or resolved notices that still carry the escalated
flag from before they were closed.

Usage:
    python scripts/cleanup_closed_notices.py
    python scripts/cleanup_closed_notices.py --notice-id=<id>
"""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from notice_tracker.config import load_settings
from notice_tracker.services import build_services
from notice_tracker.supabase_client import create_supabase

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("notice_tracker.cleanup")


def main():
    parser = argparse.ArgumentParser(description="Clear escalation on closed notices")
    parser.add_argument(
        "--notice-id",
        type=str,
        default=None,
        help="Fix a single notice instead of scanning all of them"
    )
    args = parser.parse_args()

    settings = load_settings()
    supabase = create_supabase(settings)
    if supabase is None:
        logger.error("Store is not configured; set SUPABASE_URL and a Supabase key")
        sys.exit(1)

    orchestrator = build_services(supabase, settings).orchestrator

    if args.notice_id:
        fixed = orchestrator.fix_single_notice(args.notice_id)
        logger.info(f"Notice {args.notice_id}: {'fixed' if fixed else 'unchanged'}")
        return

    report = orchestrator.cleanup_closed_notices()
    for error in report.errors:
        logger.error(error)
    if report.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
