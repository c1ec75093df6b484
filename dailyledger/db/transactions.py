"""
Transactions repository module - the ledger store.

Handles all transaction-related database operations including:
- Recording payments and clearing transactions (insert)
- Querying the event log by member, day or date range
- Correcting amounts (update)

Rows are never deleted here; they disappear only when their member is deleted.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from dailyledger.config import MAX_AMOUNT
from dailyledger.models import TransactionType

from .base import BaseRepository
from .models import Transaction

logger = logging.getLogger(__name__)

_TRANSACTION_COLUMNS = (
    "id, user_id, member_id, member_name, amount, date, timestamp, type"
)


class TransactionRepository(BaseRepository):
    """Repository for the append-only transaction log."""

    def __init__(self, db_path=None, init_schema: bool = False):
        super().__init__(db_path, init_schema=init_schema)

    # =========================================================================
    # Create Operations
    # =========================================================================

    def insert(
        self,
        user_id: str,
        member_id: int,
        amount: float,
        on_date: date,
        transaction_type: TransactionType = TransactionType.NORMAL,
        member_name: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Transaction:
        """
        Insert a transaction.

        Args:
            user_id: Owner of the ledger
            member_id: Member the amount is credited to
            amount: Non-negative amount
            on_date: Accounting day of the transaction
            transaction_type: NORMAL for payments, OUTSTANDING_CLEARED for wipes
            member_name: Denormalized name for display
            timestamp: Exact instant, defaults to now

        Returns:
            The created Transaction with its ID

        Raises:
            ValueError: If validation fails
        """
        if not user_id or not isinstance(user_id, str):
            raise ValueError(f"Invalid user_id: {user_id}")

        if amount is None or amount < 0 or amount > MAX_AMOUNT:
            raise ValueError(f"Invalid amount: {amount}")

        if not isinstance(on_date, date):
            raise ValueError(f"Invalid date: {on_date}")

        timestamp = timestamp or datetime.now(timezone.utc)

        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO transactions (
                        user_id, member_id, member_name, amount, date,
                        timestamp, type
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        member_id,
                        member_name,
                        amount,
                        on_date.isoformat(),
                        timestamp.isoformat(),
                        transaction_type.value,
                    ),
                )
                transaction_id = cursor.lastrowid
        except Exception as e:
            logger.error(
                f"Error inserting transaction for member {member_id}: {e}",
                exc_info=True,
            )
            raise

        logger.debug(
            f"Inserted {transaction_type.value} transaction {transaction_id} "
            f"for member {member_id} on {on_date}: {amount}"
        )
        return Transaction(
            id=transaction_id,
            user_id=user_id,
            member_id=member_id,
            member_name=member_name,
            amount=amount,
            date=on_date,
            timestamp=timestamp,
            type=transaction_type,
        )

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get(self, user_id: str, transaction_id: int) -> Optional[Transaction]:
        """Get a transaction by its ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_TRANSACTION_COLUMNS} FROM transactions "
                "WHERE user_id = ? AND id = ?",
                (user_id, transaction_id),
            ).fetchone()
            return Transaction.from_row(row) if row else None

    def query(
        self,
        user_id: str,
        member_id: Optional[int] = None,
        date_equals: Optional[date] = None,
        date_range: Optional[tuple[date, date]] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """
        Query the transaction log.

        Args:
            user_id: Owner of the ledger
            member_id: Only this member's transactions
            date_equals: Only transactions on this day
            date_range: Inclusive (start, end) day range
            transaction_type: Only transactions of this type

        Returns:
            Transactions ordered by date, then timestamp
        """
        if not user_id or not isinstance(user_id, str):
            raise ValueError(f"Invalid user_id: {user_id}")

        query = f"SELECT {_TRANSACTION_COLUMNS} FROM transactions WHERE user_id = ?"
        params: list = [user_id]

        if member_id is not None:
            query += " AND member_id = ?"
            params.append(member_id)
        if date_equals is not None:
            query += " AND date = ?"
            params.append(date_equals.isoformat())
        if date_range is not None:
            start, end = date_range
            query += " AND date >= ? AND date <= ?"
            params.extend([start.isoformat(), end.isoformat()])
        if transaction_type is not None:
            query += " AND type = ?"
            params.append(transaction_type.value)

        query += " ORDER BY date ASC, timestamp ASC, id ASC"

        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
                return [Transaction.from_row(row) for row in rows]
        except Exception as e:
            logger.error(
                f"Error querying transactions for user {user_id}: {e}", exc_info=True
            )
            raise

    def count(self, user_id: str) -> int:
        """Count all transactions for a user."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row[0]

    # =========================================================================
    # Update Operations
    # =========================================================================

    def update_amount(
        self, user_id: str, transaction_id: int, amount: float
    ) -> Optional[Transaction]:
        """
        Correct the amount of an existing transaction.

        Returns:
            The updated Transaction, or None if it does not exist
        """
        if amount is None or amount < 0 or amount > MAX_AMOUNT:
            raise ValueError(f"Invalid amount: {amount}")

        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE transactions SET amount = ? WHERE user_id = ? AND id = ?",
                (amount, user_id, transaction_id),
            )
            if cursor.rowcount == 0:
                logger.warning(
                    f"Transaction {transaction_id} not found for user {user_id}"
                )
                return None

        logger.info(f"Corrected transaction {transaction_id} amount to {amount}")
        return self.get(user_id, transaction_id)
