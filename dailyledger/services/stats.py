"""
Stats service for daily and monthly dashboards.

Provides functionality for:
- Full recomputation of daily/monthly snapshots from the ledger
- Cached reads through the aggregate cache
- Forced refreshes after writes
"""

import logging
from datetime import date, datetime
from typing import Optional

from dailyledger.config import RECENT_TRANSACTIONS_LIMIT
from dailyledger.db.repository import LedgerRepository
from dailyledger.models import DailyStats, MonthlyStats

from .accounting import (
    compute_daily_stats,
    compute_monthly_stats,
    month_end,
    parse_month,
)
from .cache import AggregateCache, Clock, SnapshotKey, run_io, utc_now

logger = logging.getLogger(__name__)


class StatsService:
    """Service computing and serving stats snapshots."""

    def __init__(
        self,
        repository: LedgerRepository,
        cache: Optional[AggregateCache] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the stats service.

        Args:
            repository: Repository facade for members, transactions and snapshots
            cache: Aggregate cache; one over repository.stats is built if omitted
            clock: Source of "now", injectable for tests
        """
        self.repository = repository
        self._clock = clock or utc_now
        self.cache = cache or AggregateCache(repository.stats, clock=self._clock)
        logger.info("StatsService initialized successfully")

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.now().date()

    def current_month(self) -> str:
        return self.today().strftime("%Y-%m")

    # =========================================================================
    # Full recomputation
    # =========================================================================

    async def compute_daily(self, user_id: str, for_date: date) -> DailyStats:
        """Rebuild the daily snapshot from the member registry and ledger."""
        members = await run_io(self.repository.members.list_members, user_id)
        # Balances need every transaction up to the day, not only the day's.
        transactions = await run_io(
            self.repository.transactions.query,
            user_id,
            date_range=(date.min, for_date),
        )
        return compute_daily_stats(
            members,
            transactions,
            for_date,
            recent_limit=RECENT_TRANSACTIONS_LIMIT,
            computed_at=self._clock(),
        )

    async def compute_monthly(self, user_id: str, month_year: str) -> MonthlyStats:
        """Rebuild the monthly snapshot from the member registry and ledger."""
        last = month_end(parse_month(month_year))
        members = await run_io(self.repository.members.list_members, user_id)
        transactions = await run_io(
            self.repository.transactions.query,
            user_id,
            date_range=(date.min, last),
        )
        return compute_monthly_stats(
            members, transactions, month_year, computed_at=self._clock()
        )

    # =========================================================================
    # Cached reads
    # =========================================================================

    async def get_daily_stats(self, user_id: str, for_date: date) -> DailyStats:
        """
        Get the daily snapshot, or an empty placeholder while it is computed.

        A placeholder has updated_at set to None.
        """
        key = SnapshotKey.daily(user_id, for_date)
        snapshot = await self.cache.get_or_compute(
            key, lambda: self.compute_daily(user_id, for_date)
        )
        return snapshot or DailyStats.empty(for_date)

    async def get_monthly_stats(self, user_id: str, month_year: str) -> MonthlyStats:
        """Get the monthly snapshot, or an empty placeholder while it is computed."""
        parse_month(month_year)
        key = SnapshotKey.monthly(user_id, month_year)
        snapshot = await self.cache.get_or_compute(
            key, lambda: self.compute_monthly(user_id, month_year)
        )
        return snapshot or MonthlyStats.empty(month_year)

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh_daily(self, user_id: str, for_date: date) -> DailyStats:
        """Recompute and store the daily snapshot, waiting for the result."""
        return await self.cache.refresh(
            SnapshotKey.daily(user_id, for_date),
            lambda: self.compute_daily(user_id, for_date),
        )

    async def refresh_monthly(self, user_id: str, month_year: str) -> MonthlyStats:
        """Recompute and store the monthly snapshot, waiting for the result."""
        return await self.cache.refresh(
            SnapshotKey.monthly(user_id, month_year),
            lambda: self.compute_monthly(user_id, month_year),
        )

    def schedule_daily(self, user_id: str, for_date: date):
        self.cache.schedule(
            SnapshotKey.daily(user_id, for_date),
            lambda: self.compute_daily(user_id, for_date),
        )

    def schedule_monthly(self, user_id: str, month_year: str):
        self.cache.schedule(
            SnapshotKey.monthly(user_id, month_year),
            lambda: self.compute_monthly(user_id, month_year),
        )
