"""
Reconciliation trigger.

Every ledger write goes through here so the affected stats snapshots are
invalidated, and the current day and month are recomputed eagerly. Past
months are not cascaded; their snapshots refresh on the next read.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from dailyledger.config import MAX_AMOUNT
from dailyledger.db.models import Member, Transaction
from dailyledger.db.repository import LedgerRepository
from dailyledger.errors import (
    AlreadyCleared,
    ComputeFailure,
    MemberNotFound,
    NothingToClear,
    TransactionNotFound,
)
from dailyledger.models import TransactionType

from .accounting import month_end, month_key, monthly_reconciliation, parse_month
from .cache import SnapshotKey, run_io
from .stats import StatsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionWritten:
    """A transaction for member_id dated `date` was inserted or changed."""

    user_id: str
    member_id: int
    date: date


class ReconciliationTrigger:
    """Routes ledger and roster writes and keeps snapshots consistent."""

    def __init__(self, repository: LedgerRepository, stats: StatsService):
        self.repository = repository
        self.stats = stats
        # Serializes clears of the same member and month
        self._clear_locks: dict[tuple[str, int, str], asyncio.Lock] = {}

    # =========================================================================
    # Events
    # =========================================================================

    def on_transaction_written(self, event: TransactionWritten):
        """
        Invalidate the day and month of the write together with today and the
        current month, then recompute the current ones.

        Balances carry forward, so a write to any past day changes the
        current figures as well.
        """
        cache = self.stats.cache
        cache.invalidate(SnapshotKey.daily(event.user_id, event.date))
        cache.invalidate(SnapshotKey.monthly(event.user_id, month_key(event.date)))
        self._invalidate_current(event.user_id)

    def _schedule_current(self, user_id: str):
        self.stats.schedule_monthly(user_id, self.stats.current_month())
        self.stats.schedule_daily(user_id, self.stats.today())

    def _invalidate_current(self, user_id: str):
        today = self.stats.today()
        self.stats.cache.invalidate(SnapshotKey.daily(user_id, today))
        self.stats.cache.invalidate(SnapshotKey.monthly(user_id, month_key(today)))
        self._schedule_current(user_id)

    async def get_member(self, user_id: str, member_id: int) -> Member:
        """
        Load a member.

        Raises:
            MemberNotFound: If the member does not exist
        """
        member = await run_io(self.repository.members.get, user_id, member_id)
        if member is None:
            raise MemberNotFound(member_id)
        return member

    # =========================================================================
    # Ledger writes
    # =========================================================================

    async def record_payment(
        self,
        user_id: str,
        member_id: int,
        amount: float,
        on_date: Optional[date] = None,
    ) -> Transaction:
        """
        Record a payment for a member.

        Args:
            user_id: Owner of the ledger
            member_id: Paying member
            amount: Amount paid, must be positive
            on_date: Accounting day, defaults to today

        Raises:
            ValueError: If the amount is out of range
            MemberNotFound: If the member does not exist
        """
        if amount is None or amount <= 0 or amount > MAX_AMOUNT:
            raise ValueError(f"Invalid amount: {amount}")

        member = await self.get_member(user_id, member_id)
        on_date = on_date or self.stats.today()

        transaction = await run_io(
            self.repository.transactions.insert,
            user_id,
            member_id,
            amount,
            on_date,
            member_name=member.name,
        )
        logger.info(
            f"Recorded payment of {amount} for member {member_id} on {on_date}"
        )
        self.on_transaction_written(TransactionWritten(user_id, member_id, on_date))
        return transaction

    async def correct_amount(
        self, user_id: str, transaction_id: int, amount: float
    ) -> Transaction:
        """
        Correct the amount of a recorded transaction.

        Raises:
            ValueError: If the amount is negative or too large
            TransactionNotFound: If the transaction does not exist
        """
        transaction = await run_io(
            self.repository.transactions.update_amount, user_id, transaction_id, amount
        )
        if transaction is None:
            raise TransactionNotFound(transaction_id)

        self.on_transaction_written(
            TransactionWritten(user_id, transaction.member_id, transaction.date)
        )
        return transaction

    def _clear_lock(self, user_id: str, member_id: int, month_year: str) -> asyncio.Lock:
        key = (user_id, member_id, month_year)
        lock = self._clear_locks.get(key)
        if lock is None:
            lock = self._clear_locks[key] = asyncio.Lock()
        return lock

    async def clear_outstanding(
        self, user_id: str, member_id: int, month_year: str
    ) -> Transaction:
        """
        Wipe a member's outstanding balance for a month.

        Inserts one outstanding_cleared transaction dated the last day of the
        month for the month's final balance, then waits for the monthly
        snapshot to be recomputed. Clears of the same member and month run
        one at a time.

        Raises:
            MemberNotFound: If the member does not exist
            AlreadyCleared: If the month was already cleared for the member
            NothingToClear: If the member owes nothing for the month
        """
        first = parse_month(month_year)
        last = month_end(first)
        month_year = month_key(first)
        member = await self.get_member(user_id, member_id)

        async with self._clear_lock(user_id, member_id, month_year):
            transaction = await self._insert_clear(member, user_id, first, last)

        self.on_transaction_written(TransactionWritten(user_id, member_id, last))
        try:
            await self.stats.refresh_monthly(user_id, month_year)
        except ComputeFailure as e:
            # The clear itself is committed; the snapshot heals on next read.
            logger.warning(f"Clear recorded but snapshot refresh failed: {e}")
        return transaction

    async def _insert_clear(
        self, member: Member, user_id: str, first: date, last: date
    ) -> Transaction:
        month_year = month_key(first)
        cleared = await run_io(
            self.repository.transactions.query,
            user_id,
            member_id=member.id,
            date_range=(first, last),
            transaction_type=TransactionType.OUTSTANDING_CLEARED,
        )
        if cleared:
            raise AlreadyCleared(member.id, month_year)

        history = await run_io(
            self.repository.transactions.query,
            user_id,
            member_id=member.id,
            date_range=(date.min, last),
        )
        reconciliation = monthly_reconciliation(member, history, month_year)
        if reconciliation.final_balance <= 0:
            raise NothingToClear(member.id, month_year, reconciliation.final_balance)

        try:
            transaction = await run_io(
                self.repository.transactions.insert,
                user_id,
                member.id,
                reconciliation.final_balance,
                last,
                transaction_type=TransactionType.OUTSTANDING_CLEARED,
                member_name=member.name,
            )
        except sqlite3.IntegrityError as e:
            # Another process cleared the month between the check and the insert
            raise AlreadyCleared(member.id, month_year) from e

        logger.info(
            f"Cleared outstanding {reconciliation.final_balance} for member "
            f"{member.id} in {month_year}"
        )
        return transaction

    # =========================================================================
    # Roster writes
    # =========================================================================

    async def _invalidate_since(self, user_id: str, day: date):
        """Invalidate after a roster change that takes effect on `day`."""
        if day < self.stats.today():
            # Snapshots of past days and months changed as well.
            await self.stats.cache.invalidate_user(user_id)
            self._schedule_current(user_id)
        else:
            self._invalidate_current(user_id)

    async def add_member(
        self,
        user_id: str,
        name: str,
        monthly_target: float,
        default_daily_payment: float = 0.0,
        created_on: Optional[datetime] = None,
    ) -> Member:
        """Add a member; a backdated creation accrues from its creation month."""
        created_on = created_on or self.stats.now()
        member = await run_io(
            self.repository.members.add,
            user_id,
            name,
            monthly_target,
            default_daily_payment=default_daily_payment,
            created_on=created_on,
        )
        await self._invalidate_since(user_id, created_on.date())
        return member

    async def update_member(
        self,
        user_id: str,
        member_id: int,
        name: Optional[str] = None,
        monthly_target: Optional[float] = None,
        default_daily_payment: Optional[float] = None,
    ) -> Member:
        """
        Edit a member.

        A target change rewrites accrual for every month, so all of the
        user's snapshots are dropped.

        Raises:
            MemberNotFound: If the member does not exist
            ValueError: If a field is invalid
        """
        await self.get_member(user_id, member_id)
        await run_io(
            self.repository.members.update,
            user_id,
            member_id,
            name=name,
            monthly_target=monthly_target,
            default_daily_payment=default_daily_payment,
        )
        if monthly_target is not None:
            await self._invalidate_since(user_id, date.min)
        else:
            self._invalidate_current(user_id)
        return await self.get_member(user_id, member_id)

    async def archive_member(
        self,
        user_id: str,
        member_id: int,
        reason: Optional[str] = None,
        archived_on: Optional[datetime] = None,
    ) -> Member:
        await self.get_member(user_id, member_id)
        archived_on = archived_on or self.stats.now()
        await run_io(
            self.repository.members.archive,
            user_id,
            member_id,
            reason=reason,
            archived_on=archived_on,
        )
        await self._invalidate_since(user_id, archived_on.date())
        return await self.get_member(user_id, member_id)

    async def unarchive_member(self, user_id: str, member_id: int) -> Member:
        member = await self.get_member(user_id, member_id)
        await run_io(self.repository.members.unarchive, user_id, member_id)
        if member.archived_on is not None:
            await self._invalidate_since(user_id, member.archived_on.date())
        else:
            self._invalidate_current(user_id)
        return await self.get_member(user_id, member_id)

    async def delete_member(self, user_id: str, member_id: int):
        """Delete a member together with its transactions."""
        await self.get_member(user_id, member_id)
        await run_io(self.repository.members.delete, user_id, member_id)
        await self._invalidate_since(user_id, date.min)

    async def move_member(self, user_id: str, member_id: int, new_rank: int):
        """Reorder a member; stats list members by rank."""
        await self.get_member(user_id, member_id)
        await run_io(self.repository.members.move, user_id, member_id, new_rank)
        self._invalidate_current(user_id)
