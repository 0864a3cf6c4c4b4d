"""
Dashboard statistics.

Counts are computed from freshly derived values wherever a derived field is
involved; cached notice fields are only used for the poa_on_file flag, which
the POA sync keeps current.
"""

import logging
from datetime import date
from typing import Callable, Optional

from notice_tracker.escalation_service import EscalationOrchestrator
from notice_tracker.schemas import DashboardStats, NoticeStatus, is_terminal_status, to_local_date
from notice_tracker.stores import CallStore, ClientStore, NoticeStore

logger = logging.getLogger(__name__)


def build_dashboard_stats(
    client_store: ClientStore,
    notice_store: NoticeStore,
    call_store: CallStore,
    orchestrator: EscalationOrchestrator,
    clock: Optional[Callable[[], date]] = None,
) -> DashboardStats:
    today = (clock or date.today)()
    start_of_month = date(today.year, today.month, 1)

    clients = client_store.list()
    notices = notice_store.list()
    calls = call_store.list()

    active = [n for n in notices if not is_terminal_status(n.status)]
    escalated = orchestrator.get_escalated_notices()
    due_soon = orchestrator.get_notices_due_soon()
    missing_poa = [n for n in active if not n.poa_on_file]

    def _closed_this_month(notice) -> bool:
        if notice.status != NoticeStatus.CLOSED.value or not notice.date_completed:
            return False
        return to_local_date(notice.date_completed) >= start_of_month

    return DashboardStats(
        total_clients=len(clients),
        active_notices=len(active),
        escalated_notices=len(escalated),
        due_this_week=len(due_soon),
        missing_poa=len(missing_poa),
        closed_this_month=sum(1 for n in notices if _closed_this_month(n)),
        total_responses=len(calls),
    )
