"""
Notice Routes - derived state and reconciliation
Implements:
- Notice view with a fresh derivation next to the cached fields
- Single, per-client and full reconciliation
- Closed-notice invariant repair
"""

import logging

from fastapi import APIRouter, Depends

from notice_tracker.router_utils import not_found, store_unavailable, wrap_response
from notice_tracker.services import Services, get_services
from notice_tracker.stores import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notices", tags=["notices"])


@router.post("/reconcile")
def reconcile_all_notices(services: Services = Depends(get_services)):
    """Recompute every active notice. Per-notice failures are reported, not raised."""
    try:
        report = services.orchestrator.reconcile_all_report()
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(report)


@router.post("/reconcile/client/{client_id}")
def reconcile_client_notices(client_id: str, services: Services = Depends(get_services)):
    try:
        report = services.orchestrator.reconcile_for_client_report(client_id)
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(report)


@router.post("/cleanup-closed")
def cleanup_closed(services: Services = Depends(get_services)):
    try:
        report = services.orchestrator.cleanup_closed_notices()
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response(report)


@router.get("/{notice_id}")
def get_notice(notice_id: str, services: Services = Depends(get_services)):
    """Stored notice plus derived fields computed from its current response log."""
    try:
        notice = services.notices.get_by_id(notice_id)
        if notice is None:
            raise not_found("Notice", notice_id)
        derived = services.orchestrator.derive_for(notice)
    except StoreError as e:
        raise store_unavailable(e)

    return wrap_response({"notice": notice, "derived": derived})


@router.get("/{notice_id}/derived")
def get_derived_fields(notice_id: str, services: Services = Depends(get_services)):
    try:
        notice = services.notices.get_by_id(notice_id)
        if notice is None:
            raise not_found("Notice", notice_id)
        derived = services.orchestrator.derive_for(notice)
    except StoreError as e:
        raise store_unavailable(e)

    return wrap_response(derived)


@router.post("/{notice_id}/reconcile")
def reconcile_notice(notice_id: str, services: Services = Depends(get_services)):
    """Recompute one notice, writing only if a derived field drifted."""
    try:
        if services.notices.get_by_id(notice_id) is None:
            raise not_found("Notice", notice_id)
        updated = services.orchestrator.reconcile_one(notice_id)
    except StoreError as e:
        raise store_unavailable(e)

    return wrap_response({"notice_id": notice_id, "updated": updated})
