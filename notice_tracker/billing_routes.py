"""
Billing Routes

Amounts are always recomputed from the full response log on read; nothing
here persists a computed amount.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from notice_tracker.billing_engine import (
    BillingFilter, annotate_calls, billing_totals, notice_total, summarize_by_client
)
from notice_tracker.billing_export import export_filename, generate_billing_workbook
from notice_tracker.router_utils import not_found, store_unavailable, wrap_response
from notice_tracker.schemas import MarkBilledRequest
from notice_tracker.services import Services, get_services
from notice_tracker.stores import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/summary")
def get_billing_summary(
    billing: BillingFilter = Query(BillingFilter.UNBILLED),
    services: Services = Depends(get_services),
):
    """Per-client billing summary plus unbilled/billed totals."""
    try:
        lines = annotate_calls(services.calls.list(), services.settings.billing)
        clients = services.clients.list()
    except StoreError as e:
        raise store_unavailable(e)

    summaries = summarize_by_client(lines, clients, billing)
    totals = billing_totals(lines)

    return wrap_response({
        "filter": billing.value,
        "clients": summaries,
        "totals": totals,
    })


@router.get("/notices/{notice_id}")
def get_notice_billing(notice_id: str, services: Services = Depends(get_services)):
    try:
        if services.notices.get_by_id(notice_id) is None:
            raise not_found("Notice", notice_id)
        calls = services.calls.list_by_notice(notice_id)
    except StoreError as e:
        raise store_unavailable(e)

    return wrap_response({
        "notice_id": notice_id,
        "lines": annotate_calls(calls, services.settings.billing),
        "total": notice_total(calls, services.settings.billing),
    })


@router.post("/mark-billed")
def mark_billed(request: MarkBilledRequest, services: Services = Depends(get_services)):
    try:
        count = services.calls.mark_as_billed(request.call_ids)
    except StoreError as e:
        raise store_unavailable(e)
    return wrap_response({"updated": count})


@router.get("/export")
def export_billing(services: Services = Depends(get_services)):
    """Download every response with its computed amount as an Excel workbook."""
    try:
        lines = annotate_calls(services.calls.list(), services.settings.billing)
        clients = services.clients.list()
    except StoreError as e:
        raise store_unavailable(e)

    summaries = summarize_by_client(lines, clients, BillingFilter.ALL)
    output = generate_billing_workbook(lines, summaries, billing_totals(lines))
    filename = export_filename()

    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
