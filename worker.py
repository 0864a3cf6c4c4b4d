#!/usr/bin/env python3
"""
IRS Notice Tracker Escalation Worker

A dedicated process that recomputes the derived state (status, escalation,
days remaining, response deadline) of every active notice once a day.

Usage:
    python worker.py [--run-hour=H] [--run-now] [--once]

Features:
- Daily run at a configurable local hour
- Per-notice failures are logged and do not stop the run
- Graceful shutdown on signals
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta
from typing import Optional
import argparse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("notice_tracker.worker")

from notice_tracker.config import load_settings
from notice_tracker.escalation_service import EscalationOrchestrator
from notice_tracker.schemas import ReconcileReport
from notice_tracker.services import build_services
from notice_tracker.supabase_client import create_supabase


def seconds_until_next_run(now: datetime, run_hour: int) -> float:
    """Seconds from now until the next occurrence of run_hour:00 local time."""
    next_run = now.replace(hour=run_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class EscalationWorker:
    """
    Worker that reconciles all active notices on a daily schedule.
    """

    def __init__(self, orchestrator: EscalationOrchestrator, run_hour: int = 0):
        if not 0 <= run_hour <= 23:
            raise ValueError(f"run_hour must be between 0 and 23, got {run_hour}")
        self.orchestrator = orchestrator
        self.run_hour = run_hour

        self._running = False
        self._shutdown_event = asyncio.Event()

        logger.info(f"Escalation worker initialized, daily run at {run_hour:02d}:00")

    async def run_once(self) -> Optional[ReconcileReport]:
        """Run one reconciliation pass in a thread so the loop stays responsive."""
        started = datetime.now()
        loop = asyncio.get_running_loop()
        try:
            report = await loop.run_in_executor(None, self.orchestrator.reconcile_all_report)
        except Exception as e:
            logger.error(f"Reconciliation run failed: {e}")
            return None

        elapsed = (datetime.now() - started).total_seconds()
        logger.info(
            f"Reconciliation run finished in {elapsed:.1f}s: "
            f"checked={report.checked} updated={report.updated} "
            f"skipped={report.skipped} errors={len(report.errors)}"
        )
        return report

    async def start(self, run_now: bool = False):
        """Start the scheduler loop."""
        self._running = True
        logger.info("Escalation worker starting...")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                pass

        if run_now:
            await self.run_once()

        try:
            await self._schedule_loop()
        except asyncio.CancelledError:
            logger.info("Worker cancelled")

        logger.info("Escalation worker stopped")

    def _handle_shutdown(self):
        """Handle shutdown signal."""
        logger.info("Escalation worker received shutdown signal")
        self._running = False
        self._shutdown_event.set()

    async def _schedule_loop(self):
        while self._running:
            delay = seconds_until_next_run(datetime.now(), self.run_hour)
            logger.info(f"Next reconciliation run in {delay / 3600:.1f}h")

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
                # If we get here, shutdown was requested
                break
            except asyncio.TimeoutError:
                pass

            await self.run_once()


def main():
    """Main entry point for the worker."""
    settings = load_settings()

    parser = argparse.ArgumentParser(description="IRS Notice Tracker Escalation Worker")
    parser.add_argument(
        "--run-hour",
        type=int,
        default=settings.worker_run_hour,
        help="Local hour (0-23) of the daily run (default: WORKER_RUN_HOUR or 0)"
    )
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run one reconciliation immediately before waiting for the schedule"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one reconciliation and exit"
    )

    args = parser.parse_args()

    supabase = create_supabase(settings)
    if supabase is None:
        logger.error("Store is not configured; set SUPABASE_URL and a Supabase key")
        sys.exit(1)

    services = build_services(supabase, settings)

    try:
        worker = EscalationWorker(services.orchestrator, run_hour=args.run_hour)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        if args.once:
            report = asyncio.run(worker.run_once())
            if report is None:
                sys.exit(1)
        else:
            asyncio.run(worker.start(run_now=args.run_now))
    except KeyboardInterrupt:
        logger.info("Worker interrupted")

    logger.info("Worker stopped")


if __name__ == "__main__":
    main()
