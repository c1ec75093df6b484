"""
test_accounting.py - Unit and property tests for the balance accounting engine

Tests:
- Accrual from the creation month, archive pro-rating
- Outstanding balance and monthly reconciliation (worked scenarios)
- Daily classification and roster aggregation
- Properties: monotonic accrual, zero-target invariance, classification exclusivity
"""

from datetime import date, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dailyledger.errors import DataQualityWarning
from dailyledger.models import TransactionType
from dailyledger.services.accounting import (
    Classification,
    add_months,
    compute_daily_stats,
    compute_monthly_stats,
    daily_classification,
    expected_accrual,
    month_start,
    monthly_reconciliation,
    outstanding_balance,
    parse_month,
    target_for_month,
)

from tests.builders import make_member, make_transaction

CLEARED = TransactionType.OUTSTANDING_CLEARED


# =============================================================================
# STRATEGIES
# =============================================================================

days = st.dates(min_value=date(2020, 1, 1), max_value=date(2026, 12, 31))
targets = st.integers(min_value=0, max_value=100_000).map(float)


@st.composite
def members(draw, member_id=1):
    created = draw(days)
    archive_offset = draw(st.none() | st.integers(min_value=0, max_value=1500))
    archived = created + timedelta(days=archive_offset) if archive_offset is not None else None
    return make_member(
        member_id=member_id,
        monthly_target=draw(targets),
        created_on=created,
        archived_on=archived,
    )


@st.composite
def ledgers(draw):
    """A small roster and a transaction log around March 2024."""
    roster = [
        make_member(
            member_id=i,
            monthly_target=draw(targets),
            created_on=draw(st.dates(date(2023, 10, 1), date(2024, 3, 31))),
        )
        for i in range(1, draw(st.integers(min_value=1, max_value=4)) + 1)
    ]
    transactions = draw(
        st.lists(
            st.builds(
                make_transaction,
                member_id=st.integers(min_value=1, max_value=len(roster)),
                on_date=st.dates(date(2024, 1, 1), date(2024, 3, 31)),
                amount=st.integers(min_value=0, max_value=5000).map(float),
                transaction_type=st.sampled_from(list(TransactionType)),
            ),
            max_size=20,
        )
    )
    day = draw(st.dates(date(2024, 1, 1), date(2024, 3, 31)))
    return roster, transactions, day


# =============================================================================
# ACCRUAL
# =============================================================================


class TestAccrual:
    """Tests for expected_accrual and target_for_month."""

    def test_scenario_a_counts_every_month_in_full(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 1))
        assert expected_accrual(member, date(2024, 3, 15)) == 3000.0

    def test_first_day_of_month_accrues_that_month(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 20))
        assert expected_accrual(member, date(2024, 1, 20)) == 1000.0
        assert expected_accrual(member, date(2024, 2, 1)) == 2000.0

    def test_nothing_accrues_before_creation_month(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 1))
        assert expected_accrual(member, date(2023, 12, 31)) == 0.0
        assert target_for_month(member, date(2023, 12, 1)) == 0.0

    def test_archive_month_is_prorated_and_later_months_are_free(self):
        # April has 30 days: 10/30 of 3000 = 1000
        member = make_member(
            monthly_target=3000.0,
            created_on=date(2024, 1, 1),
            archived_on=date(2024, 4, 10),
        )
        assert target_for_month(member, date(2024, 3, 1)) == 3000.0
        assert target_for_month(member, date(2024, 4, 1)) == 1000.0
        assert target_for_month(member, date(2024, 5, 1)) == 0.0
        assert expected_accrual(member, date(2024, 4, 2)) == 10000.0
        assert expected_accrual(member, date(2024, 8, 1)) == 10000.0

    def test_prorated_target_rounds_half_up(self):
        # 15/30 of 101 = 50.5
        member = make_member(
            monthly_target=101.0,
            created_on=date(2024, 4, 1),
            archived_on=date(2024, 4, 15),
        )
        assert target_for_month(member, date(2024, 4, 1)) == 51.0

    def test_member_archived_in_creation_month(self):
        member = make_member(
            monthly_target=3100.0,
            created_on=date(2024, 1, 5),
            archived_on=date(2024, 1, 10),
        )
        assert expected_accrual(member, date(2024, 6, 1)) == 1000.0

    def test_missing_created_on_falls_back_to_epoch(self):
        member = make_member(monthly_target=100.0, created_on=None)
        with pytest.warns(DataQualityWarning):
            assert expected_accrual(member, date(1970, 3, 1)) == 300.0

    @pytest.mark.parametrize("aggregate", [compute_daily_stats, compute_monthly_stats])
    def test_legacy_member_warns_once_per_aggregation(self, aggregate):
        legacy = make_member(1, monthly_target=100.0, created_on=None)
        current = make_member(2)
        transactions = [make_transaction(legacy.id, date(2024, 2, 1), 10.0)]
        period = date(2024, 3, 15) if aggregate is compute_daily_stats else "2024-03"

        with pytest.warns(DataQualityWarning) as record:
            aggregate([legacy, current], transactions, period)

        assert len([w for w in record if w.category is DataQualityWarning]) == 1


class TestAccrualProperties:
    """Property tests for accrual."""

    @given(member=members(), first=days, second=days)
    @settings(max_examples=50)
    def test_accrual_never_decreases(self, member, first, second):
        earlier, later = sorted([first, second])
        assert expected_accrual(member, earlier) <= expected_accrual(member, later)

    @given(member=members(), as_of=days)
    @settings(max_examples=50)
    def test_accrual_matches_month_by_month_sum(self, member, as_of):
        total = 0.0
        month = month_start(member.created_on.date())
        while month <= as_of:
            total += target_for_month(member, month)
            month = add_months(month, 1)
        assert expected_accrual(member, as_of) == total

    @given(
        created=days,
        as_of=days,
        amounts=st.lists(st.integers(min_value=1, max_value=10_000), max_size=10),
    )
    @settings(max_examples=50)
    def test_zero_target_balance_is_minus_payments(self, created, as_of, amounts):
        member = make_member(monthly_target=0.0, created_on=created)
        transactions = [
            make_transaction(member.id, created + timedelta(days=i), float(a))
            for i, a in enumerate(amounts)
        ]
        paid = sum(t.amount for t in transactions if t.date <= as_of)

        assert expected_accrual(member, as_of) == 0.0
        assert outstanding_balance(member, transactions, as_of) == -paid


# =============================================================================
# BALANCES AND RECONCILIATION
# =============================================================================


class TestReconciliation:
    """Tests for outstanding_balance and monthly_reconciliation."""

    def test_scenario_b_carries_nothing_forward_when_paid_up(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 1))
        transactions = [make_transaction(member.id, date(2024, 2, 10), 2000.0)]

        rec = monthly_reconciliation(member, transactions, "2024-03")

        assert rec.previous_balance == 0.0
        assert rec.paid_this_month == 0.0
        assert rec.monthly_target == 1000.0
        assert rec.final_balance == 1000.0
        assert rec.has_dues

    def test_scenario_c_overpayment_leaves_credit(self):
        member = make_member(monthly_target=500.0, created_on=date(2024, 5, 1))
        transactions = [make_transaction(member.id, date(2024, 5, 1), 600.0)]

        rec = monthly_reconciliation(member, transactions, "2024-05")

        assert rec.previous_balance == 0.0
        assert rec.final_balance == -100.0
        assert not rec.has_dues

    def test_unpaid_months_carry_forward(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 1))
        rec = monthly_reconciliation(member, [], "2024-03")
        assert rec.previous_balance == 2000.0
        assert rec.final_balance == 3000.0

    def test_final_balance_matches_outstanding_at_month_end(self):
        member = make_member(monthly_target=750.0, created_on=date(2023, 11, 1))
        transactions = [
            make_transaction(member.id, date(2023, 12, 5), 300.0),
            make_transaction(member.id, date(2024, 2, 29), 900.0),
            make_transaction(member.id, date(2024, 3, 2), 100.0),
        ]
        rec = monthly_reconciliation(member, transactions, "2024-02")
        assert rec.final_balance == outstanding_balance(
            member, transactions, date(2024, 2, 29)
        )

    def test_clearing_transactions_reduce_the_balance(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 1, 1))
        transactions = [make_transaction(member.id, date(2024, 1, 31), 1000.0, CLEARED)]

        assert outstanding_balance(member, transactions, date(2024, 1, 31)) == 0.0
        rec = monthly_reconciliation(member, transactions, "2024-01")
        assert rec.paid_this_month == 1000.0
        assert rec.final_balance == 0.0

    def test_other_members_transactions_are_ignored(self):
        member = make_member(member_id=1)
        transactions = [make_transaction(2, date(2024, 1, 5), 5000.0)]
        assert outstanding_balance(member, transactions, date(2024, 1, 31)) == 1000.0

    def test_invalid_month_is_rejected(self):
        with pytest.raises(ValueError):
            parse_month("March 2024")
        with pytest.raises(ValueError):
            monthly_reconciliation(make_member(), [], "2024-13")


# =============================================================================
# DAILY CLASSIFICATION
# =============================================================================


class TestDailyClassification:
    """Tests for daily_classification."""

    def test_payment_today_means_paid(self):
        member = make_member()
        day = date(2024, 3, 15)
        today = [make_transaction(member.id, day, 40.0), make_transaction(member.id, day, 10.0)]

        result = daily_classification(member, today, today, day)

        assert result.status is Classification.PAID
        assert result.amount == 50.0

    def test_no_payment_and_owing_means_pending(self):
        member = make_member()
        result = daily_classification(member, [], [], date(2024, 3, 15))
        assert result.status is Classification.PENDING
        assert result.amount == 3000.0

    def test_clearing_today_is_not_a_payment(self):
        member = make_member()
        day = date(2024, 1, 31)
        clearing = [make_transaction(member.id, day, 1000.0, CLEARED)]
        assert daily_classification(member, clearing, clearing, day) is None

    def test_paid_up_member_is_in_neither_list(self):
        member = make_member()
        history = [make_transaction(member.id, date(2024, 3, 1), 3000.0)]
        assert daily_classification(member, [], history, date(2024, 3, 15)) is None


class TestClassificationProperties:
    """Property tests for roster classification."""

    @given(ledger=ledgers())
    @settings(max_examples=50)
    def test_member_is_never_both_paid_and_pending(self, ledger):
        roster, transactions, day = ledger
        stats = compute_daily_stats(roster, transactions, day)

        paid = {m.member_id for m in stats.paid_members}
        pending = {m.member_id for m in stats.pending_members}

        assert not paid & pending
        assert all(m.amount > 0 for m in stats.paid_members)
        assert all(m.outstanding > 0 for m in stats.pending_members)
        assert stats.paid_count + stats.pending_count <= stats.total_members

    @given(ledger=ledgers())
    @settings(max_examples=50)
    def test_collected_total_excludes_clearing(self, ledger):
        roster, transactions, day = ledger
        stats = compute_daily_stats(roster, transactions, day)
        expected = sum(
            t.amount for t in transactions if t.date == day and t.type.is_payment
        )
        assert stats.total_collected == expected


# =============================================================================
# ROSTER AGGREGATION
# =============================================================================


class TestDailyStats:
    """Tests for compute_daily_stats."""

    def test_paid_and_pending_lists(self):
        alice = make_member(1, name="Alice")
        bob = make_member(2, name="Bob")
        day = date(2024, 3, 15)
        transactions = [
            make_transaction(alice.id, date(2024, 3, 1), 1000.0),
            make_transaction(alice.id, day, 200.0),
        ]

        stats = compute_daily_stats([bob, alice], transactions, day, recent_limit=10)

        assert stats.date == day
        assert stats.total_members == 2
        assert stats.total_collected == 200.0
        assert [(m.member_name, m.amount) for m in stats.paid_members] == [("Alice", 200.0)]
        assert [(m.member_name, m.outstanding) for m in stats.pending_members] == [
            ("Bob", 3000.0)
        ]
        assert [t.amount for t in stats.recent_transactions] == [200.0]

    def test_members_archived_on_or_before_the_day_are_skipped(self):
        active = make_member(1)
        archived_today = make_member(2, archived_on=date(2024, 3, 15))
        archived_later = make_member(3, archived_on=date(2024, 3, 20))

        stats = compute_daily_stats(
            [active, archived_today, archived_later], [], date(2024, 3, 15)
        )

        assert stats.total_members == 2
        assert {m.member_id for m in stats.pending_members} == {1, 3}

    def test_recent_transactions_are_newest_first_and_limited(self):
        member = make_member()
        day = date(2024, 3, 15)
        transactions = [make_transaction(member.id, day, float(i)) for i in range(1, 6)]
        for i, t in enumerate(transactions):
            t.timestamp = t.timestamp + timedelta(minutes=i)

        stats = compute_daily_stats([member], transactions, day, recent_limit=3)

        assert [t.amount for t in stats.recent_transactions] == [5.0, 4.0, 3.0]


class TestMonthlyStats:
    """Tests for compute_monthly_stats."""

    def test_totals_dues_and_rate(self):
        alice = make_member(1, name="Alice")
        bob = make_member(2, name="Bob")
        transactions = [
            make_transaction(alice.id, date(2024, 2, 10), 2000.0),
            make_transaction(alice.id, date(2024, 3, 1), 500.0),
        ]

        stats = compute_monthly_stats([alice, bob], transactions, "2024-03")

        assert stats.total_collected == 500.0
        assert stats.total_target == 2000.0
        assert stats.total_outstanding == 3500.0
        assert stats.collection_rate == 25
        assert stats.total_members == 2
        assert [(d.member_name, d.due) for d in stats.members_with_dues] == [
            ("Alice", 500.0),
            ("Bob", 3000.0),
        ]
        assert stats.members_with_dues[1].previous_balance == 2000.0

    def test_credit_does_not_offset_dues(self):
        owing = make_member(1, monthly_target=1000.0, created_on=date(2024, 3, 1))
        ahead = make_member(2, monthly_target=1000.0, created_on=date(2024, 3, 1))
        transactions = [make_transaction(ahead.id, date(2024, 3, 3), 5000.0)]

        stats = compute_monthly_stats([owing, ahead], transactions, "2024-03")

        assert stats.total_outstanding == 1000.0
        assert [d.member_id for d in stats.members_with_dues] == [1]

    def test_collection_rate_rounds_half_up(self):
        member = make_member(monthly_target=8.0, created_on=date(2024, 3, 1))
        transactions = [make_transaction(member.id, date(2024, 3, 2), 1.0)]
        stats = compute_monthly_stats([member], transactions, "2024-03")
        assert stats.collection_rate == 13

    def test_no_target_means_zero_rate(self):
        member = make_member(monthly_target=0.0)
        stats = compute_monthly_stats([member], [], "2024-03")
        assert stats.collection_rate == 0
        assert stats.members_with_dues == []

    def test_clearing_counts_toward_balance_not_collection(self):
        member = make_member(monthly_target=1000.0, created_on=date(2024, 3, 1))
        transactions = [make_transaction(member.id, date(2024, 3, 31), 1000.0, CLEARED)]

        stats = compute_monthly_stats([member], transactions, "2024-03")

        assert stats.total_collected == 0.0
        assert stats.total_outstanding == 0.0
        assert stats.members_with_dues == []

    def test_member_archived_during_month_is_included_prorated(self):
        member = make_member(
            monthly_target=3000.0,
            created_on=date(2024, 1, 1),
            archived_on=date(2024, 4, 10),
        )
        april = compute_monthly_stats([member], [], "2024-04")
        may = compute_monthly_stats([member], [], "2024-05")

        assert april.total_target == 1000.0
        assert april.total_members == 0
        assert [d.due for d in april.members_with_dues] == [10000.0]
        assert may.total_target == 0.0
        assert may.members_with_dues == []
