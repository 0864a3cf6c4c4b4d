"""
Escalation Service

Reconciles the cached derived fields stored on each notice with a fresh
derivation from its response log. Writes happen only when something drifted,
so re-running with unchanged inputs is a no-op.

Concurrent runs against the same notice are tolerated: both writers compute
the same values from the same calls and the last write wins. Any staleness
from a response log edited mid-run is corrected by the next pass.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from notice_tracker.config import EscalationSettings
from notice_tracker.notice_logic import derive
from notice_tracker.schemas import (
    CleanupReport, DerivedNoticeFields, Notice, ReconcileError,
    ReconcileReport, is_terminal_status
)
from notice_tracker.stores import CallStore, NoticeStore

logger = logging.getLogger(__name__)


def _has_changes(notice: Notice, derived: DerivedNoticeFields) -> bool:
    return (
        notice.status != derived.status
        or notice.escalated != derived.escalated
        or notice.days_remaining != derived.days_remaining
        or notice.response_deadline != derived.response_deadline
    )


class EscalationOrchestrator:
    """
    Batch and single-notice reconciliation of derived notice fields.

    Stores and the clock are injected; nothing here reaches for a global.
    """

    def __init__(
        self,
        notice_store: NoticeStore,
        call_store: CallStore,
        settings: Optional[EscalationSettings] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.notice_store = notice_store
        self.call_store = call_store
        self.settings = settings or EscalationSettings()
        self.clock = clock or date.today

    # -------------------------------------------------------------------------
    # Single notice
    # -------------------------------------------------------------------------

    def derive_for(self, notice: Notice) -> DerivedNoticeFields:
        """Fresh derivation for a notice, loading its calls from the store."""
        calls = self.call_store.list_by_notice(notice.id)
        return derive(notice, calls, today=self.clock(), settings=self.settings)

    def reconcile_one(self, notice_id: str) -> bool:
        """
        Recompute one notice and persist it if any derived field changed.

        Returns True when a write occurred. Store failures propagate.
        """
        notice = self.notice_store.get_by_id(notice_id)
        if notice is None:
            logger.warning(f"Notice {notice_id} not found")
            return False

        if is_terminal_status(notice.status):
            logger.debug(f"Skipping closed notice {notice_id}")
            return False

        derived = self.derive_for(notice)

        if is_terminal_status(derived.status):
            derived.escalated = False

        if not _has_changes(notice, derived):
            return False

        now = datetime.utcnow().isoformat()
        update = derived.to_update()
        update["last_auto_update"] = now
        update["updated_at"] = now
        self.notice_store.update(notice_id, update)

        logger.info(f"Updated notice {notice_id}: {derived.status} (escalated: {derived.escalated})")
        return True

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def _reconcile_batch(self, notices: List[Notice]) -> ReconcileReport:
        report = ReconcileReport()

        for notice in notices:
            if is_terminal_status(notice.status):
                report.skipped += 1
                continue

            report.checked += 1
            try:
                if self.reconcile_one(notice.id):
                    report.updated += 1
            except Exception as e:
                logger.error(f"Error updating notice {notice.id}: {e}")
                report.errors.append(ReconcileError(notice_id=notice.id, error=str(e)))

        return report

    def reconcile_all_report(self) -> ReconcileReport:
        logger.info("Starting auto-escalation update for all notices")
        report = self._reconcile_batch(self.notice_store.list())
        logger.info(
            f"Auto-escalation update complete: {report.updated} of {report.checked} notices updated, "
            f"{len(report.errors)} failed"
        )
        return report

    def reconcile_all(self) -> int:
        """Reconcile every non-terminal notice. Returns the number updated."""
        return self.reconcile_all_report().updated

    def reconcile_for_client_report(self, client_id: str) -> ReconcileReport:
        report = self._reconcile_batch(self.notice_store.list_by_client(client_id))
        logger.info(f"Client {client_id}: {report.updated} notices updated")
        return report

    def reconcile_for_client(self, client_id: str) -> int:
        return self.reconcile_for_client_report(client_id).updated

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _active_derivations(self) -> List[Tuple[Notice, DerivedNoticeFields]]:
        return [(n, self.derive_for(n)) for n in self.notice_store.list_active()]

    def escalated_derivations(self) -> List[Tuple[Notice, DerivedNoticeFields]]:
        return [(n, d) for n, d in self._active_derivations() if d.escalated]

    def get_escalated_notices(self) -> List[Notice]:
        """Active notices whose fresh derivation is escalated."""
        return [n for n, _ in self.escalated_derivations()]

    def due_soon_derivations(self, days: Optional[int] = None) -> List[Tuple[Notice, DerivedNoticeFields]]:
        """Active notices due within the window with their derivations, soonest first."""
        window = self.settings.due_soon_days if days is None else days
        due_soon = [
            (n, d) for n, d in self._active_derivations()
            if d.days_remaining is not None and 0 <= d.days_remaining <= window
        ]
        due_soon.sort(key=lambda pair: pair[1].days_remaining)
        return due_soon

    def get_notices_due_soon(self, days: Optional[int] = None) -> List[Notice]:
        return [n for n, _ in self.due_soon_derivations(days)]

    # -------------------------------------------------------------------------
    # Invariant repair
    # -------------------------------------------------------------------------

    def cleanup_closed_notices(self) -> CleanupReport:
        """Clear the escalated flag on terminal notices that still carry it."""
        report = CleanupReport()

        flagged = [
            n for n in self.notice_store.list()
            if is_terminal_status(n.status) and n.escalated
        ]
        report.total = len(flagged)

        if not flagged:
            logger.info("No cleanup needed")
            return report

        logger.info(f"Found {report.total} closed notices incorrectly marked as escalated")

        for notice in flagged:
            try:
                self.notice_store.update(notice.id, {"escalated": False, "days_remaining": None})
                report.fixed += 1
            except Exception as e:
                message = f"Failed to fix {notice.id}: {e}"
                logger.error(message)
                report.errors.append(message)

        logger.info(f"Cleanup complete: {report.fixed} of {report.total} fixed")
        return report

    def fix_single_notice(self, notice_id: str) -> bool:
        notice = self.notice_store.get_by_id(notice_id)
        if notice is None:
            logger.warning(f"Notice {notice_id} not found")
            return False

        if not is_terminal_status(notice.status):
            logger.info(f"Notice {notice_id} is not closed, no fix needed")
            return False

        self.notice_store.update(notice_id, {"escalated": False, "days_remaining": None})
        return True
