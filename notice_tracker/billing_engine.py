"""
Billing Engine

Computes the billable amount of each logged response under the per-notice
minimum-fee rule:

1. Research responses bill actual time, rounded up to the rounding unit.
2. Other billable responses on the same notice are pooled. If the pool
   reaches the threshold (one hour by default) each response bills actual
   time. Otherwise the minimum fee is charged once, on the chronologically
   first response, and the rest bill zero.
3. Non-billable responses bill zero and never join a pool.

Amounts depend on every other response of the notice, so they are always
recomputed over the full per-notice set and never patched one call at a time.
"""

import logging
from collections import defaultdict
from decimal import Decimal, ROUND_CEILING
from enum import Enum
from typing import Dict, Iterable, List, Optional

from notice_tracker.config import BillingSettings
from notice_tracker.schemas import (
    BillingLine, BillingState, BillingTotals, Call, Client, ClientBilling
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")
MINUTES_PER_HOUR = Decimal(60)


class BillingFilter(str, Enum):
    UNBILLED = "unbilled"
    BILLED = "billed"
    ALL = "all"


def is_research(call: Call) -> bool:
    return "research" in (call.response_method or "").lower()


def billed_minutes(call: Call) -> Decimal:
    """Duration that counts toward billing; non-positive durations count as zero."""
    minutes = Decimal(str(call.duration_minutes or 0))
    return minutes if minutes > 0 else Decimal(0)


def time_based_amount(minutes: Decimal, hourly_rate: Decimal) -> Decimal:
    return minutes / MINUTES_PER_HOUR * hourly_rate


def round_up_to_unit(amount: Decimal, unit: Decimal) -> Decimal:
    """Round up to the next multiple of unit (ceil(amount / unit) * unit)."""
    if unit <= 0:
        return amount.quantize(CENTS)
    multiples = (amount / unit).to_integral_value(rounding=ROUND_CEILING)
    return (multiples * unit).quantize(CENTS)


def _rate_for(call: Call, settings: BillingSettings) -> Decimal:
    return Decimal(str(call.hourly_rate)) if call.hourly_rate else settings.hourly_rate


def _actual_time_amount(call: Call, settings: BillingSettings) -> Decimal:
    amount = time_based_amount(billed_minutes(call), _rate_for(call, settings))
    return round_up_to_unit(amount, settings.rounding_unit)


def _chronological_key(call: Call):
    return (call.date, call.id)


def calculate_notice_amounts(
    calls: Iterable[Call],
    settings: Optional[BillingSettings] = None,
) -> Dict[str, Decimal]:
    """
    Billable amount per call id for the calls of a single notice.

    The caller must pass every call logged against the notice; a partial list
    produces different attributions.
    """
    settings = settings or BillingSettings()
    amounts: Dict[str, Decimal] = {}
    pooled: List[Call] = []

    for call in calls:
        if not call.billable:
            amounts[call.id] = ZERO
        elif is_research(call):
            amounts[call.id] = _actual_time_amount(call, settings)
        else:
            pooled.append(call)

    if not pooled:
        return amounts

    total_minutes = sum((billed_minutes(c) for c in pooled), Decimal(0))

    if total_minutes >= settings.minimum_threshold_minutes:
        for call in pooled:
            amounts[call.id] = _actual_time_amount(call, settings)
        return amounts

    first = min(pooled, key=_chronological_key)
    for call in pooled:
        amounts[call.id] = settings.minimum_fee.quantize(CENTS) if call.id == first.id else ZERO

    return amounts


def calculate_billable_amounts(
    calls: Iterable[Call],
    settings: Optional[BillingSettings] = None,
) -> Dict[str, Decimal]:
    """Billable amount per call id for calls spanning any number of notices."""
    by_notice: Dict[str, List[Call]] = defaultdict(list)
    for call in calls:
        by_notice[call.notice_id].append(call)

    amounts: Dict[str, Decimal] = {}
    for notice_calls in by_notice.values():
        amounts.update(calculate_notice_amounts(notice_calls, settings))
    return amounts


def notice_total(calls: Iterable[Call], settings: Optional[BillingSettings] = None) -> Decimal:
    amounts = calculate_notice_amounts(calls, settings)
    return sum(amounts.values(), ZERO)


def annotate_calls(
    calls: Iterable[Call],
    settings: Optional[BillingSettings] = None,
) -> List[BillingLine]:
    """Pair each call with its computed amount, newest first."""
    calls = list(calls)
    amounts = calculate_billable_amounts(calls, settings)
    lines = [BillingLine(call=c, billable_amount=amounts[c.id]) for c in calls]
    lines.sort(key=lambda line: line.call.date, reverse=True)
    return lines


def _matches_filter(line: BillingLine, billing_filter: BillingFilter) -> bool:
    if billing_filter == BillingFilter.UNBILLED:
        return line.call.billing == BillingState.UNBILLED
    if billing_filter == BillingFilter.BILLED:
        return line.call.billing == BillingState.BILLED
    return True


def summarize_by_client(
    lines: Iterable[BillingLine],
    clients: Iterable[Client],
    billing_filter: BillingFilter = BillingFilter.ALL,
) -> List[ClientBilling]:
    """
    Group billing lines per client, highest total first.

    Lines are filtered after amounts were computed, so filtering never changes
    which call carries a notice's minimum fee. Calls pointing at an unknown
    client are grouped under a placeholder client.
    """
    clients_by_id = {c.id: c for c in clients}
    grouped: Dict[str, List[BillingLine]] = defaultdict(list)

    for line in lines:
        if not _matches_filter(line, billing_filter):
            continue
        grouped[line.call.client_id or ""].append(line)

    summaries = []
    for client_id, client_lines in grouped.items():
        client = clients_by_id.get(client_id)
        if client is None:
            logger.warning(f"No client found for billing lines with client_id {client_id!r}")
            client = Client(id=client_id, name=f"Client {client_id}")

        billable = [l for l in client_lines if l.call.billable]
        summaries.append(ClientBilling(
            client=client,
            lines=client_lines,
            total_amount=sum((l.billable_amount for l in billable), ZERO),
            billable_hours=sum(float(billed_minutes(l.call)) for l in billable) / 60,
        ))

    summaries.sort(key=lambda s: s.total_amount, reverse=True)
    return summaries


def billing_totals(lines: Iterable[BillingLine]) -> BillingTotals:
    unbilled = billed = ZERO
    for line in lines:
        if not line.call.billable:
            continue
        if line.call.billing == BillingState.BILLED:
            billed += line.billable_amount
        else:
            unbilled += line.billable_amount
    return BillingTotals(unbilled=unbilled, billed=billed, total=unbilled + billed)
