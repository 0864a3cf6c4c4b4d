"""
POA Routes

Coverage check for a notice. Viewing the check also brings the cached
poa_on_file flag in line with the result.
"""

import logging

from fastapi import APIRouter, Depends

from notice_tracker.period_matcher import (
    PeriodRole, format_period_range, is_valid_period_format, normalize_period
)
from notice_tracker.poa_checker import check_notices
from notice_tracker.router_utils import not_found, store_unavailable, wrap_response
from notice_tracker.services import Services, get_services
from notice_tracker.stores import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/poa", tags=["poa"])


@router.get("/notices/{notice_id}")
def check_notice_poa(notice_id: str, services: Services = Depends(get_services)):
    try:
        notice = services.notices.get_by_id(notice_id)
        if notice is None:
            raise not_found("Notice", notice_id)
        result = services.poa_sync.sync_notice(notice)
    except StoreError as e:
        raise store_unavailable(e)

    coverage = None
    if result.matching_poa:
        coverage = format_period_range(result.matching_poa.period_start, result.matching_poa.period_end)

    return wrap_response({"result": result, "coverage": coverage})


@router.get("/clients/{client_id}")
def list_client_poa(client_id: str, services: Services = Depends(get_services)):
    """POA records of a client, flagging periods that do not reduce to YYYYMM."""
    try:
        records = services.poa_records.list_by_client(client_id)
    except StoreError as e:
        raise store_unavailable(e)

    entries = []
    for record in records:
        start = normalize_period(record.period_start, PeriodRole.START)
        end = normalize_period(record.period_end, PeriodRole.END)
        entries.append({
            "record": record,
            "coverage": format_period_range(start, end),
            "valid_period": is_valid_period_format(start) and is_valid_period_format(end),
        })
    return wrap_response(entries)


@router.get("/clients/{client_id}/notices")
def check_client_notices(client_id: str, services: Services = Depends(get_services)):
    """Coverage of every notice of a client. Read-only; cached flags are not synced."""
    try:
        notices = services.notices.list_by_client(client_id)
        records = services.poa_records.list_by_client(client_id)
    except StoreError as e:
        raise store_unavailable(e)

    results = check_notices(notices, {client_id: records})
    return wrap_response([
        {"notice_id": notice.id, "result": results[notice.id]}
        for notice in notices
    ])
