"""
Dashboard Routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from notice_tracker.dashboard_service import build_dashboard_stats
from notice_tracker.notice_logic import priority_for
from notice_tracker.router_utils import store_unavailable, wrap_response
from notice_tracker.services import Services, get_services
from notice_tracker.stores import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _with_priority(pairs):
    return [
        {"notice": notice, "derived": derived, "priority": priority_for(derived.days_remaining)}
        for notice, derived in pairs
    ]


@router.get("/stats")
def get_dashboard_stats(services: Services = Depends(get_services)):
    try:
        stats = build_dashboard_stats(
            services.clients,
            services.notices,
            services.calls,
            services.orchestrator,
            clock=services.clock,
        )
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(stats)


@router.get("/escalated")
def get_escalated(services: Services = Depends(get_services)):
    """Active notices that are escalated right now, by fresh derivation."""
    try:
        pairs = services.orchestrator.escalated_derivations()
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(_with_priority(pairs))


@router.get("/due-soon")
def get_due_soon(
    days: Optional[int] = Query(None, ge=0),
    services: Services = Depends(get_services),
):
    try:
        pairs = services.orchestrator.due_soon_derivations(days)
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(_with_priority(pairs))
