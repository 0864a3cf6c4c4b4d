"""
Notice Derivation Engine
========================
Computes a notice's status, escalation flag, days remaining and response
deadline from the notice and its full response log.

Status is a label recomputed from scratch on every call, not a state machine:
nothing about earlier transitions is remembered. All functions are pure; the
current day is an explicit input.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

from notice_tracker.config import EscalationSettings
from notice_tracker.schemas import (
    Call, DerivedNoticeFields, Notice, NoticeStatus, is_terminal_status
)

logger = logging.getLogger(__name__)

# Outcome labels (compared case-insensitively)
OUTCOME_RESOLVED = "resolved"
OUTCOME_WAITING_ON_CLIENT = "waiting on client"
OUTCOMES_WAITING_ON_IRS = {"awaiting irs response", "waiting on irs"}


def _outcome(call: Call) -> str:
    return (call.outcome or "").strip().lower()


def _today(today: Optional[date]) -> date:
    return today or date.today()


# =============================================================================
# DEADLINE
# =============================================================================

def calculate_response_deadline(notice: Notice, calls: Iterable[Call]) -> Optional[date]:
    """
    Earliest follow-up date among this notice's calls that recorded an
    outcome; otherwise date received plus days to respond; otherwise None.
    """
    follow_ups = sorted(
        c.follow_up_date
        for c in calls
        if c.notice_id == notice.id and c.outcome and c.follow_up_date
    )
    if follow_ups:
        return follow_ups[0]

    if notice.date_received and notice.days_to_respond:
        return notice.date_received + timedelta(days=notice.days_to_respond)

    return None


def days_until(deadline: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Whole days from today to the deadline; 0 is due today, negative is overdue."""
    if deadline is None:
        return None
    return (deadline - _today(today)).days


def calculate_days_remaining(notice: Notice, calls: Iterable[Call], today: Optional[date] = None) -> Optional[int]:
    return days_until(calculate_response_deadline(notice, calls), today)


# =============================================================================
# ESCALATION
# =============================================================================

def has_critical_issue(notice: Notice, settings: Optional[EscalationSettings] = None) -> bool:
    settings = settings or EscalationSettings()
    issue = (notice.notice_issue or "").lower()
    return any(keyword in issue for keyword in settings.critical_keywords)


def _escalated_for(notice: Notice, days_remaining: Optional[int], settings: EscalationSettings) -> bool:
    if not notice.client_id:
        return False

    # Terminal notices are never escalated
    if is_terminal_status(notice.status):
        return False

    if days_remaining is not None and days_remaining <= settings.threshold_days:
        return True

    return has_critical_issue(notice, settings)


def is_escalated(
    notice: Notice,
    calls: Iterable[Call],
    today: Optional[date] = None,
    settings: Optional[EscalationSettings] = None,
) -> bool:
    settings = settings or EscalationSettings()
    return _escalated_for(notice, calculate_days_remaining(notice, calls, today), settings)


# =============================================================================
# STATUS
# =============================================================================

def _status_for(calls: List[Call], escalated: bool) -> str:
    outcomes = [_outcome(c) for c in calls]

    if OUTCOME_RESOLVED in outcomes:
        return NoticeStatus.CLOSED.value

    if escalated:
        return NoticeStatus.ESCALATED.value

    if OUTCOME_WAITING_ON_CLIENT in outcomes:
        return NoticeStatus.WAITING_ON_CLIENT.value

    if any(o in OUTCOMES_WAITING_ON_IRS for o in outcomes):
        return NoticeStatus.AWAITING_IRS_RESPONSE.value

    if calls:
        return NoticeStatus.IN_PROGRESS.value

    return NoticeStatus.OPEN.value


def calculate_status(
    notice: Notice,
    calls: Iterable[Call],
    today: Optional[date] = None,
    settings: Optional[EscalationSettings] = None,
) -> str:
    """Priority-ordered status label; the first matching rule wins."""
    calls = list(calls)
    return _status_for(calls, is_escalated(notice, calls, today, settings))


def derive(
    notice: Notice,
    calls: Iterable[Call],
    today: Optional[date] = None,
    settings: Optional[EscalationSettings] = None,
) -> DerivedNoticeFields:
    """Compute all four derived fields in one pass."""
    settings = settings or EscalationSettings()
    calls = list(calls)

    deadline = calculate_response_deadline(notice, calls)
    days_remaining = days_until(deadline, today)
    escalated = _escalated_for(notice, days_remaining, settings)
    status = _status_for(calls, escalated)

    if is_terminal_status(status) or is_terminal_status(notice.status):
        escalated = False

    return DerivedNoticeFields(
        status=status,
        escalated=escalated,
        days_remaining=days_remaining,
        response_deadline=deadline,
    )


def priority_for(days_remaining: Optional[int]) -> str:
    """Dashboard priority bucket for a days-remaining value."""
    if days_remaining is None:
        return "Low"
    if days_remaining <= 7:
        return "High"
    if days_remaining <= 30:
        return "Medium"
    return "Low"
