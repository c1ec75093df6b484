"""
Snapshot persistence for the aggregate cache.

Daily and monthly stats are stored as JSON documents keyed by
(user_id, date) and (user_id, month_year). Writes overwrite the whole
document; the last writer wins.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Optional

from dailyledger.models import DailyStats, MonthlyStats

from .base import BaseRepository

logger = logging.getLogger(__name__)


class StatsRepository(BaseRepository):
    """Repository for cached daily/monthly stats snapshots."""

    def __init__(self, db_path=None, init_schema: bool = False):
        super().__init__(db_path, init_schema=init_schema)

    def read_daily(self, user_id: str, for_date: date) -> Optional[DailyStats]:
        """Read the daily snapshot, or None if it was never written."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM daily_stats WHERE user_id = ? AND date = ?",
                (user_id, for_date.isoformat()),
            ).fetchone()
            if not row:
                return None
            return DailyStats.from_dict(json.loads(row["payload"]))

    def write_daily(self, user_id: str, stats: DailyStats) -> DailyStats:
        """Overwrite the daily snapshot, stamping updated_at if missing."""
        if stats.updated_at is None:
            stats.updated_at = datetime.now(timezone.utc)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO daily_stats (user_id, date, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, date) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    stats.date.isoformat(),
                    json.dumps(stats.to_dict()),
                    stats.updated_at.isoformat(),
                ),
            )
        logger.debug(f"Wrote daily stats for user {user_id} on {stats.date}")
        return stats

    def read_monthly(self, user_id: str, month_year: str) -> Optional[MonthlyStats]:
        """Read the monthly snapshot, or None if it was never written."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM monthly_stats WHERE user_id = ? AND month_year = ?",
                (user_id, month_year),
            ).fetchone()
            if not row:
                return None
            return MonthlyStats.from_dict(json.loads(row["payload"]))

    def write_monthly(self, user_id: str, stats: MonthlyStats) -> MonthlyStats:
        """Overwrite the monthly snapshot, stamping updated_at if missing."""
        if stats.updated_at is None:
            stats.updated_at = datetime.now(timezone.utc)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO monthly_stats (user_id, month_year, payload, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, month_year) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    stats.month_year,
                    json.dumps(stats.to_dict()),
                    stats.updated_at.isoformat(),
                ),
            )
        logger.debug(f"Wrote monthly stats for user {user_id} in {stats.month_year}")
        return stats

    def clear_user(self, user_id: str) -> int:
        """Drop every snapshot of a user; returns the number of rows removed."""
        with self._get_connection() as conn:
            daily = conn.execute(
                "DELETE FROM daily_stats WHERE user_id = ?", (user_id,)
            ).rowcount
            monthly = conn.execute(
                "DELETE FROM monthly_stats WHERE user_id = ?", (user_id,)
            ).rowcount
        logger.info(f"Cleared {daily + monthly} cached snapshots for user {user_id}")
        return daily + monthly
