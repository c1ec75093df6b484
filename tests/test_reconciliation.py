"""
test_reconciliation.py - Tests for the reconciliation trigger

Tests:
- Invalidation scope of a ledger write
- Payment recording and amount correction
- Clearing outstanding balances (idempotence, nothing to clear)
- Roster changes: add, edit, archive, delete, move
- Overlapping clears and writes during a running recompute
"""

import asyncio
from datetime import date

import pytest

from dailyledger.errors import (
    AlreadyCleared,
    MemberNotFound,
    NothingToClear,
    TransactionNotFound,
)
from dailyledger.models import TransactionType
from dailyledger.services.cache import CacheState, SnapshotKey

from tests.builders import TODAY, USER, at_noon

CLEARED = TransactionType.OUTSTANDING_CLEARED


def settle(trigger, coro):
    """Run a trigger call and wait for the recomputes it scheduled."""

    async def scenario():
        try:
            return await coro
        finally:
            await trigger.stats.cache.drain()

    return asyncio.run(scenario())


class TestInvalidation:
    """Tests for on_transaction_written scope."""

    def test_backdated_payment_invalidates_its_day_and_month(
        self, trigger, stats_service, repository, roster
    ):
        _, bob = roster
        cache = stats_service.cache
        jan = SnapshotKey.monthly(USER, "2024-01")
        feb = SnapshotKey.monthly(USER, "2024-02")
        feb_day = SnapshotKey.daily(USER, date(2024, 2, 20))

        async def scenario():
            await stats_service.refresh_monthly(USER, "2024-01")
            await stats_service.refresh_monthly(USER, "2024-02")
            await stats_service.refresh_daily(USER, date(2024, 2, 20))

            await trigger.record_payment(USER, bob.id, 300.0, on_date=date(2024, 2, 20))

            assert cache.state(feb) is CacheState.STALE
            assert cache.state(feb_day) is CacheState.STALE
            assert cache.state(jan) is CacheState.FRESH
            await cache.drain()

        asyncio.run(scenario())

        # Current month recomputed eagerly, February left for the next read
        assert repository.stats.read_monthly(USER, "2024-03").total_outstanding == 3200.0
        assert repository.stats.read_monthly(USER, "2024-02").total_outstanding == 2000.0
        assert cache.state(feb) is CacheState.STALE

    def test_stale_past_month_refreshes_on_read(
        self, trigger, stats_service, roster
    ):
        _, bob = roster

        async def scenario():
            await stats_service.refresh_monthly(USER, "2024-02")
            await trigger.record_payment(USER, bob.id, 300.0, on_date=date(2024, 2, 20))

            served = await stats_service.get_monthly_stats(USER, "2024-02")
            await stats_service.cache.drain()
            refreshed = await stats_service.get_monthly_stats(USER, "2024-02")
            return served, refreshed

        served, refreshed = asyncio.run(scenario())

        assert served.total_outstanding == 2000.0
        assert refreshed.total_outstanding == 1700.0
        assert refreshed.total_collected == 2300.0

    def test_payment_today_updates_todays_snapshot(self, trigger, repository, roster):
        _, bob = roster
        settle(trigger, trigger.record_payment(USER, bob.id, 100.0))

        daily = repository.stats.read_daily(USER, TODAY)
        assert daily.total_collected == 100.0
        assert [m.member_id for m in daily.paid_members] == [bob.id]


class TestPayments:
    """Tests for record_payment and correct_amount."""

    def test_payment_defaults_to_today(self, trigger, roster):
        alice, _ = roster
        transaction = settle(trigger, trigger.record_payment(USER, alice.id, 50.0))

        assert transaction.date == TODAY
        assert transaction.member_name == "Alice"
        assert transaction.type is TransactionType.NORMAL

    @pytest.mark.parametrize("amount", [0, -10.0])
    def test_non_positive_amount_is_rejected(self, trigger, repository, roster, amount):
        alice, _ = roster
        with pytest.raises(ValueError):
            settle(trigger, trigger.record_payment(USER, alice.id, amount))
        assert repository.transactions.count(USER) == 2

    def test_unknown_member_is_rejected(self, trigger, roster):
        with pytest.raises(MemberNotFound):
            settle(trigger, trigger.record_payment(USER, 999, 10.0))

    def test_correct_amount(self, trigger, repository, roster):
        alice, _ = roster
        original = repository.transactions.query(
            USER, member_id=alice.id, date_equals=date(2024, 3, 1)
        )[0]

        corrected = settle(trigger, trigger.correct_amount(USER, original.id, 700.0))

        assert corrected.amount == 700.0
        assert corrected.id == original.id
        assert repository.stats.read_monthly(USER, "2024-03").total_collected == 700.0

    def test_correct_unknown_transaction(self, trigger, roster):
        with pytest.raises(TransactionNotFound):
            settle(trigger, trigger.correct_amount(USER, 9999, 10.0))

    def test_correction_must_not_be_negative(self, trigger, repository, roster):
        transaction = repository.transactions.query(USER)[0]
        with pytest.raises(ValueError):
            settle(trigger, trigger.correct_amount(USER, transaction.id, -1.0))


class TestClearOutstanding:
    """Tests for clear_outstanding."""

    def test_clear_inserts_final_balance_on_last_day(self, trigger, repository, roster):
        _, bob = roster
        transaction = settle(trigger, trigger.clear_outstanding(USER, bob.id, "2024-03"))

        assert transaction.type is CLEARED
        assert transaction.amount == 3000.0
        assert transaction.date == date(2024, 3, 31)

        monthly = repository.stats.read_monthly(USER, "2024-03")
        assert monthly.total_outstanding == 500.0
        assert monthly.total_collected == 500.0
        assert bob.id not in [d.member_id for d in monthly.members_with_dues]

    def test_second_clear_is_rejected(self, trigger, repository, roster):
        _, bob = roster
        settle(trigger, trigger.clear_outstanding(USER, bob.id, "2024-03"))

        with pytest.raises(AlreadyCleared):
            settle(trigger, trigger.clear_outstanding(USER, bob.id, "2024-03"))

        cleared = repository.transactions.query(
            USER, member_id=bob.id, transaction_type=CLEARED
        )
        assert len(cleared) == 1

    def test_nothing_to_clear(self, trigger, repository, roster):
        alice, _ = roster
        with pytest.raises(NothingToClear) as exc_info:
            settle(trigger, trigger.clear_outstanding(USER, alice.id, "2024-02"))

        assert exc_info.value.balance == 0.0
        assert repository.transactions.count(USER) == 2

    def test_clearing_past_month_carries_forward(self, trigger, stats_service, roster):
        _, bob = roster
        transaction = settle(trigger, trigger.clear_outstanding(USER, bob.id, "2024-01"))
        assert transaction.amount == 1000.0
        assert transaction.date == date(2024, 1, 31)

        march = asyncio.run(stats_service.refresh_monthly(USER, "2024-03"))
        bob_due = [d for d in march.members_with_dues if d.member_id == bob.id][0]
        assert bob_due.previous_balance == 1000.0
        assert bob_due.due == 2000.0

    def test_clear_unknown_member(self, trigger, roster):
        with pytest.raises(MemberNotFound):
            settle(trigger, trigger.clear_outstanding(USER, 999, "2024-03"))

    def test_clear_recorded_elsewhere_after_the_check(
        self, trigger, repository, monkeypatch, roster
    ):
        _, bob = roster
        repository.transactions.insert(
            USER, bob.id, 2000.0, date(2024, 2, 29), transaction_type=CLEARED
        )
        query = repository.transactions.query

        def query_missing_clears(*args, **kwargs):
            return [t for t in query(*args, **kwargs) if t.type is not CLEARED]

        monkeypatch.setattr(repository.transactions, "query", query_missing_clears)

        with pytest.raises(AlreadyCleared):
            settle(trigger, trigger.clear_outstanding(USER, bob.id, "2024-02"))
        assert repository.transactions.count(USER) == 3


class TestRosterChanges:
    """Tests for member lifecycle writes."""

    def test_backdated_member_accrues_from_creation(self, trigger, repository, roster):
        member = settle(
            trigger,
            trigger.add_member(USER, "Cara", 1000.0, created_on=at_noon(date(2024, 2, 1))),
        )

        assert member.rank == 3
        monthly = repository.stats.read_monthly(USER, "2024-03")
        assert monthly.total_outstanding == 5500.0
        assert monthly.total_members == 3

    def test_new_member_defaults_to_now(self, trigger, clock, roster):
        member = settle(trigger, trigger.add_member(USER, "Dan", 100.0))
        assert member.created_on == clock.now

    def test_target_change_drops_every_snapshot(self, trigger, stats_service, repository, roster):
        _, bob = roster
        asyncio.run(stats_service.refresh_monthly(USER, "2024-01"))

        updated = settle(trigger, trigger.update_member(USER, bob.id, monthly_target=500.0))

        assert updated.monthly_target == 500.0
        assert repository.stats.read_monthly(USER, "2024-01") is None
        assert repository.stats.read_monthly(USER, "2024-03").total_outstanding == 2000.0

    def test_rename_keeps_past_snapshots(self, trigger, stats_service, repository, roster):
        alice, _ = roster
        asyncio.run(stats_service.refresh_monthly(USER, "2024-01"))

        updated = settle(trigger, trigger.update_member(USER, alice.id, name="Alicia"))

        assert updated.name == "Alicia"
        assert repository.stats.read_monthly(USER, "2024-01") is not None

    def test_archive_with_past_date(self, trigger, repository, roster):
        _, bob = roster
        member = settle(
            trigger,
            trigger.archive_member(
                USER, bob.id, reason="moved away", archived_on=at_noon(date(2024, 3, 10))
            ),
        )

        assert member.archived
        assert member.archived_reason == "moved away"
        assert repository.stats.read_daily(USER, TODAY).total_members == 1

        # 10/31 of March's target is still owed
        monthly = repository.stats.read_monthly(USER, "2024-03")
        assert monthly.total_outstanding == 2823.0
        assert monthly.total_members == 1

    def test_unarchive_restores_full_accrual(self, trigger, repository, roster):
        _, bob = roster
        settle(
            trigger,
            trigger.archive_member(USER, bob.id, archived_on=at_noon(date(2024, 3, 10))),
        )
        member = settle(trigger, trigger.unarchive_member(USER, bob.id))

        assert not member.archived
        assert member.archived_on is None
        assert repository.stats.read_monthly(USER, "2024-03").total_outstanding == 3500.0

    def test_delete_cascades_and_drops_snapshots(
        self, trigger, stats_service, repository, roster
    ):
        alice, _ = roster
        asyncio.run(stats_service.refresh_monthly(USER, "2024-01"))

        settle(trigger, trigger.delete_member(USER, alice.id))

        assert repository.members.get(USER, alice.id) is None
        assert repository.transactions.query(USER) == []
        assert repository.stats.read_monthly(USER, "2024-01") is None
        assert repository.stats.read_monthly(USER, "2024-03").total_outstanding == 3000.0

    def test_delete_unknown_member(self, trigger, roster):
        with pytest.raises(MemberNotFound):
            settle(trigger, trigger.delete_member(USER, 999))

    def test_move_member(self, trigger, repository, roster):
        alice, bob = roster
        settle(trigger, trigger.move_member(USER, bob.id, 1))

        members = repository.members.list_members(USER)
        assert [m.id for m in members] == [bob.id, alice.id]
        assert [m.rank for m in members] == [1, 2]


class TestConcurrentWrites:
    """Tests for writes that overlap each other or a running recompute."""

    def test_simultaneous_clears_record_one_transaction(self, trigger, repository, roster):
        _, bob = roster

        async def scenario():
            results = await asyncio.gather(
                trigger.clear_outstanding(USER, bob.id, "2024-02"),
                trigger.clear_outstanding(USER, bob.id, "2024-02"),
                return_exceptions=True,
            )
            await trigger.stats.cache.drain()
            return results

        results = asyncio.run(scenario())

        assert sorted(type(r).__name__ for r in results) == ["AlreadyCleared", "Transaction"]
        cleared = repository.transactions.query(
            USER,
            member_id=bob.id,
            date_range=(date(2024, 2, 1), date(2024, 2, 29)),
            transaction_type=CLEARED,
        )
        assert [t.amount for t in cleared] == [2000.0]

    @pytest.mark.parametrize("new_compute_first", [True, False])
    def test_backdated_payment_during_current_month_recompute(
        self, trigger, stats_service, repository, monkeypatch, roster, new_compute_first
    ):
        _, bob = roster
        key = SnapshotKey.monthly(USER, "2024-03")
        compute_monthly = stats_service.compute_monthly
        calls = []

        async def scenario():
            started = asyncio.Event()
            release = asyncio.Event()

            async def held_compute(user_id, month_year):
                snapshot = await compute_monthly(user_id, month_year)
                calls.append(month_year)
                if len(calls) == 1:
                    # First recompute has read the ledger before the payment
                    started.set()
                    await release.wait()
                return snapshot

            monkeypatch.setattr(stats_service, "compute_monthly", held_compute)

            stats_service.schedule_monthly(USER, "2024-03")
            await started.wait()

            await trigger.record_payment(USER, bob.id, 700.0, on_date=date(2024, 1, 5))

            if new_compute_first:
                await stats_service.cache.schedule(
                    key, lambda: stats_service.compute_monthly(USER, "2024-03")
                )
            release.set()
            await stats_service.cache.drain()

        asyncio.run(scenario())

        assert len(calls) == 2
        assert stats_service.cache.state(key) is CacheState.FRESH
        march = repository.stats.read_monthly(USER, "2024-03")
        bob_due = [d for d in march.members_with_dues if d.member_id == bob.id][0]
        assert bob_due.previous_balance == 1300.0
        assert bob_due.due == 2300.0
