"""
Tests for the per-notice minimum-fee billing rules.
"""

from decimal import Decimal

import pytest

from notice_tracker.billing_engine import (
    BillingFilter, annotate_calls, billing_totals, calculate_billable_amounts,
    calculate_notice_amounts, notice_total, round_up_to_unit, summarize_by_client
)
from notice_tracker.config import BillingSettings
from notice_tracker.schemas import Call, Client

from conftest import make_call


def call(**overrides):
    return Call.model_validate(make_call(**overrides))


class TestRounding:
    @pytest.mark.parametrize("amount,expected", [
        (Decimal("83.33"), Decimal("85.00")),
        (Decimal("85"), Decimal("85.00")),
        (Decimal("0"), Decimal("0.00")),
        (Decimal("0.01"), Decimal("5.00")),
    ])
    def test_round_up_to_unit(self, amount, expected):
        assert round_up_to_unit(amount, Decimal("5")) == expected


class TestNoticeAmounts:
    """Amount attribution within one notice."""

    def test_below_threshold_charges_minimum_once(self):
        calls = [
            call(id="r2", date="2024-06-03T09:00:00", duration_minutes=25),
            call(id="r1", date="2024-06-02T09:00:00", duration_minutes=20),
        ]
        amounts = calculate_notice_amounts(calls)
        assert amounts == {"r1": Decimal("250.00"), "r2": Decimal("0.00")}

    def test_reaching_threshold_bills_actual_time(self):
        calls = [
            call(id="r1", date="2024-06-02T09:00:00", duration_minutes=20),
            call(id="r2", date="2024-06-03T09:00:00", duration_minutes=25),
            call(id="r3", date="2024-06-04T09:00:00", duration_minutes=20),
        ]
        amounts = calculate_notice_amounts(calls)
        assert amounts == {
            "r1": Decimal("85.00"),
            "r2": Decimal("105.00"),
            "r3": Decimal("85.00"),
        }

    def test_research_bills_actual_time_outside_pool(self):
        calls = [
            call(id="r1", response_method="IRS Research", duration_minutes=10),
            call(id="r2", date="2024-06-05T09:00:00", duration_minutes=15),
        ]
        amounts = calculate_notice_amounts(calls)
        assert amounts["r1"] == Decimal("45.00")
        assert amounts["r2"] == Decimal("250.00")

    def test_non_billable_is_zero_and_not_pooled(self):
        calls = [
            call(id="r1", billable=False, duration_minutes=120),
            call(id="r2", date="2024-06-05T09:00:00", duration_minutes=10),
        ]
        amounts = calculate_notice_amounts(calls)
        assert amounts["r1"] == Decimal("0.00")
        assert amounts["r2"] == Decimal("250.00")

    def test_zero_minute_pool_still_charges_minimum(self):
        amounts = calculate_notice_amounts([call(id="r1", duration_minutes=0)])
        assert amounts["r1"] == Decimal("250.00")

    def test_negative_and_missing_durations_count_as_zero(self):
        calls = [
            call(id="r1", duration_minutes=-30, response_method="Research"),
            call(id="r2", duration_minutes=None, response_method="Research"),
        ]
        amounts = calculate_notice_amounts(calls)
        assert amounts == {"r1": Decimal("0.00"), "r2": Decimal("0.00")}

    def test_call_rate_overrides_default(self):
        amounts = calculate_notice_amounts([
            call(id="r1", response_method="Research", duration_minutes=60, hourly_rate="300"),
        ])
        assert amounts["r1"] == Decimal("300.00")

    def test_same_timestamp_ties_break_on_id(self):
        calls = [call(id="r2"), call(id="r1")]
        assert calculate_notice_amounts(calls)["r1"] == Decimal("250.00")

    def test_settings_are_respected(self):
        settings = BillingSettings(minimum_fee=Decimal("100"), minimum_threshold_minutes=30)
        amounts = calculate_notice_amounts([call(id="r1", duration_minutes=20)], settings)
        assert amounts["r1"] == Decimal("100.00")

    def test_notice_total(self):
        calls = [call(id="r1", duration_minutes=20), call(id="r2", date="2024-06-05T09:00:00", duration_minutes=20)]
        assert notice_total(calls) == Decimal("250.00")


class TestAcrossNotices:
    def test_each_notice_pools_separately(self):
        calls = [
            call(id="r1", notice_id="n1", duration_minutes=20),
            call(id="r2", notice_id="n2", duration_minutes=20),
        ]
        amounts = calculate_billable_amounts(calls)
        assert amounts == {"r1": Decimal("250.00"), "r2": Decimal("250.00")}

    def test_annotate_orders_newest_first(self):
        lines = annotate_calls([
            call(id="r1", date="2024-06-01T09:00:00"),
            call(id="r2", date="2024-06-03T09:00:00"),
        ])
        assert [l.call.id for l in lines] == ["r2", "r1"]


class TestClientSummary:
    """Per-client grouping and billed/unbilled totals."""

    def _lines(self):
        return annotate_calls([
            call(id="r1", client_id="c1", notice_id="n1", duration_minutes=20),
            call(id="r2", client_id="c1", notice_id="n1", date="2024-06-04T09:00:00", billing="Billed"),
            call(id="r3", client_id="c2", notice_id="n2", response_method="Research", duration_minutes=90),
        ])

    def test_totals_split_by_billing_state(self):
        totals = billing_totals(self._lines())
        assert totals.unbilled == Decimal("625.00")
        assert totals.billed == Decimal("0.00")
        assert totals.total == Decimal("625.00")

    def test_filter_does_not_move_minimum_fee(self):
        clients = [Client(id="c1", name="Acme"), Client(id="c2", name="Beta")]
        summaries = summarize_by_client(self._lines(), clients, BillingFilter.BILLED)
        assert len(summaries) == 1
        assert summaries[0].client.name == "Acme"
        assert summaries[0].total_amount == Decimal("0.00")

    def test_sorted_by_total_descending(self):
        clients = [Client(id="c1", name="Acme"), Client(id="c2", name="Beta")]
        summaries = summarize_by_client(self._lines(), clients, BillingFilter.ALL)
        assert [s.client.id for s in summaries] == ["c2", "c1"]

    def test_unknown_client_gets_placeholder(self):
        summaries = summarize_by_client(self._lines(), [], BillingFilter.UNBILLED)
        assert {s.client.name for s in summaries} == {"Client c1", "Client c2"}

    def test_billable_hours(self):
        clients = [Client(id="c2", name="Beta")]
        summaries = summarize_by_client(self._lines(), clients, BillingFilter.ALL)
        beta = next(s for s in summaries if s.client.id == "c2")
        assert beta.billable_hours == pytest.approx(1.5)
