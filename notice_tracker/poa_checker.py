"""
POA Coverage Checker

Decides whether a notice's form and tax period are covered by one of the
client's power-of-attorney records. The check itself is pure; the sync
service at the bottom is the only place that writes poa_on_file.
"""

import logging
from typing import Dict, Iterable, List

from notice_tracker.period_matcher import covers_period
from notice_tracker.schemas import Notice, POACheckResult, POARecord
from notice_tracker.stores import NoticeStore, POAStore, StoreError

logger = logging.getLogger(__name__)

MISSING_FORM_OR_PERIOD = "missing form or period"
NO_RECORDS_FOR_CLIENT = "No POA records found for client"
STORE_ERROR_REASON = "Error checking POA records"


def _normalize_form(form: str) -> str:
    return form.strip().lower()


def find_valid_poa(notice: Notice, poa_records: Iterable[POARecord]) -> POACheckResult:
    """
    Find the first POA record covering the notice's form and period.

    Records are visited in id order so the chosen match does not depend on
    the order the store returned them in. First match wins; there is no
    ranking between several valid records.
    """
    if not notice.form_number or not notice.tax_period:
        return POACheckResult(has_valid_poa=False, reason=MISSING_FORM_OR_PERIOD)

    records = sorted(poa_records, key=lambda r: r.id)
    if not records:
        return POACheckResult(has_valid_poa=False, reason=NO_RECORDS_FOR_CLIENT)

    notice_form = _normalize_form(notice.form_number)

    for poa in records:
        if _normalize_form(poa.form) != notice_form:
            continue
        if covers_period(poa.period_start, poa.period_end, notice.tax_period):
            return POACheckResult(has_valid_poa=True, matching_poa=poa)

    return POACheckResult(
        has_valid_poa=False,
        reason=f"No POA found for form {notice.form_number} covering period {notice.tax_period}",
    )


def check_notices(
    notices: Iterable[Notice],
    records_by_client: Dict[str, List[POARecord]],
) -> Dict[str, POACheckResult]:
    """Run find_valid_poa for several notices at once, keyed by notice id."""
    results = {}
    for notice in notices:
        records = records_by_client.get(notice.client_id or "", [])
        results[notice.id] = find_valid_poa(notice, records)
    return results


class POASyncService:
    """
    Keeps the cached poa_on_file flag on a notice in line with the computed
    coverage. Writes at most once per call and only on change.
    """

    def __init__(self, notice_store: NoticeStore, poa_store: POAStore):
        self.notice_store = notice_store
        self.poa_store = poa_store

    def check(self, notice: Notice) -> POACheckResult:
        """POA check that degrades to "no valid POA" if the store is down."""
        if not notice.form_number or not notice.tax_period:
            return POACheckResult(has_valid_poa=False, reason=MISSING_FORM_OR_PERIOD)
        if not notice.client_id:
            return POACheckResult(has_valid_poa=False, reason=NO_RECORDS_FOR_CLIENT)

        try:
            records = self.poa_store.list_by_client(notice.client_id)
        except StoreError as e:
            logger.warning(f"POA lookup failed for notice {notice.id}: {e}")
            return POACheckResult(has_valid_poa=False, reason=STORE_ERROR_REASON)

        return find_valid_poa(notice, records)

    def sync_notice(self, notice: Notice) -> POACheckResult:
        result = self.check(notice)

        # A degraded check must not overwrite a stored flag
        if result.reason == STORE_ERROR_REASON:
            return result

        if notice.poa_on_file != result.has_valid_poa:
            self.notice_store.update(notice.id, {"poa_on_file": result.has_valid_poa})
            logger.info(f"Notice {notice.id} poa_on_file -> {result.has_valid_poa}")

        return result
