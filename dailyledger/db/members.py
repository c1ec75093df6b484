"""
Member registry module.

Handles the per-user member roster: recurring targets, ordering rank and the
archive lifecycle. Deleting a member cascades to its transactions.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from dailyledger.config import MAX_ARCHIVE_REASON_LENGTH, MAX_MEMBER_NAME_LENGTH

from .base import BaseRepository
from .models import Member

logger = logging.getLogger(__name__)

_MEMBER_COLUMNS = (
    "id, user_id, name, monthly_target, default_daily_payment, created_on, "
    "rank, archived, archived_on, archived_reason"
)


def _validate_user_id(user_id: str):
    if not user_id or not isinstance(user_id, str):
        raise ValueError(f"Invalid user_id: {user_id}")


def _validate_amount(name: str, value: float):
    if value is None or value < 0:
        raise ValueError(f"Invalid {name}: {value}")


class MemberRepository(BaseRepository):
    """Repository for the member registry."""

    def __init__(self, db_path=None, init_schema: bool = False):
        super().__init__(db_path, init_schema=init_schema)

    # =========================================================================
    # Create Operations
    # =========================================================================

    def add(
        self,
        user_id: str,
        name: str,
        monthly_target: float,
        default_daily_payment: float = 0.0,
        created_on: Optional[datetime] = None,
    ) -> Member:
        """
        Add a member at the end of the user's ordering.

        Args:
            user_id: Owner of the ledger
            name: Display name
            monthly_target: Expected contribution per calendar month
            default_daily_payment: Suggested per-day amount (informational)
            created_on: Creation timestamp, defaults to now

        Returns:
            The created Member

        Raises:
            ValueError: If validation fails
        """
        _validate_user_id(user_id)
        name = (name or "").strip()
        if not name or len(name) > MAX_MEMBER_NAME_LENGTH:
            raise ValueError(f"Invalid member name: {name!r}")
        _validate_amount("monthly_target", monthly_target)
        _validate_amount("default_daily_payment", default_daily_payment)

        created_on = created_on or datetime.now(timezone.utc)

        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(rank), 0) FROM members WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            rank = row[0] + 1

            cursor = conn.execute(
                """
                INSERT INTO members (
                    user_id, name, monthly_target, default_daily_payment,
                    created_on, rank
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    name,
                    monthly_target,
                    default_daily_payment,
                    created_on.isoformat(),
                    rank,
                ),
            )
            member_id = cursor.lastrowid

        logger.info(f"Added member {member_id} ({name}) for user {user_id}")
        return Member(
            id=member_id,
            user_id=user_id,
            name=name,
            monthly_target=monthly_target,
            default_daily_payment=default_daily_payment,
            created_on=created_on,
            rank=rank,
        )

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get(self, user_id: str, member_id: int) -> Optional[Member]:
        """Get a member by ID, scoped to its owner."""
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_MEMBER_COLUMNS} FROM members WHERE user_id = ? AND id = ?",
                (user_id, member_id),
            ).fetchone()
            return Member.from_row(row) if row else None

    def list_members(
        self,
        user_id: str,
        include_archived: bool = True,
        member_ids: Optional[list[int]] = None,
    ) -> list[Member]:
        """
        List a user's members ordered by rank.

        Args:
            user_id: Owner of the ledger
            include_archived: Whether archived members are returned
            member_ids: Restrict to these IDs (used by shared lists)
        """
        _validate_user_id(user_id)
        query = f"SELECT {_MEMBER_COLUMNS} FROM members WHERE user_id = ?"
        params: list = [user_id]
        if not include_archived:
            query += " AND archived = 0"
        if member_ids is not None:
            if not member_ids:
                return []
            placeholders = ", ".join("?" for _ in member_ids)
            query += f" AND id IN ({placeholders})"
            params.extend(member_ids)
        query += " ORDER BY rank ASC, id ASC"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [Member.from_row(row) for row in rows]

    # =========================================================================
    # Update Operations
    # =========================================================================

    def update(
        self,
        user_id: str,
        member_id: int,
        name: Optional[str] = None,
        monthly_target: Optional[float] = None,
        default_daily_payment: Optional[float] = None,
    ) -> bool:
        """
        Update a member's editable fields.

        Returns:
            True if a row was updated
        """
        updates = []
        params: list = []

        if name is not None:
            name = name.strip()
            if not name or len(name) > MAX_MEMBER_NAME_LENGTH:
                raise ValueError(f"Invalid member name: {name!r}")
            updates.append("name = ?")
            params.append(name)
        if monthly_target is not None:
            _validate_amount("monthly_target", monthly_target)
            updates.append("monthly_target = ?")
            params.append(monthly_target)
        if default_daily_payment is not None:
            _validate_amount("default_daily_payment", default_daily_payment)
            updates.append("default_daily_payment = ?")
            params.append(default_daily_payment)

        if not updates:
            return False

        params.extend([user_id, member_id])
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE members SET {', '.join(updates)} WHERE user_id = ? AND id = ?",
                params,
            )
            return cursor.rowcount > 0

    def archive(
        self,
        user_id: str,
        member_id: int,
        reason: Optional[str] = None,
        archived_on: Optional[datetime] = None,
    ) -> bool:
        """Archive a member; accrual stops after the archive date."""
        if reason and len(reason) > MAX_ARCHIVE_REASON_LENGTH:
            raise ValueError("Archive reason is too long")
        archived_on = archived_on or datetime.now(timezone.utc)

        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET archived = 1, archived_on = ?, archived_reason = ?
                WHERE user_id = ? AND id = ?
                """,
                (archived_on.isoformat(), reason, user_id, member_id),
            )
            archived = cursor.rowcount > 0

        if archived:
            logger.info(f"Archived member {member_id} for user {user_id}: {reason}")
        return archived

    def unarchive(self, user_id: str, member_id: int) -> bool:
        """Return an archived member to the active roster."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET archived = 0, archived_on = NULL, archived_reason = NULL
                WHERE user_id = ? AND id = ?
                """,
                (user_id, member_id),
            )
            return cursor.rowcount > 0

    def move(self, user_id: str, member_id: int, new_rank: int) -> bool:
        """
        Move a member to a new rank, shifting the members in between.

        Ranks are shifted by one in the direction opposite to the move so the
        ordering stays dense.
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT rank FROM members WHERE user_id = ? AND id = ?",
                (user_id, member_id),
            ).fetchone()
            if not row:
                return False

            old_rank = row["rank"]
            if new_rank == old_rank:
                return True

            if new_rank > old_rank:
                conn.execute(
                    """
                    UPDATE members SET rank = rank - 1
                    WHERE user_id = ? AND rank > ? AND rank <= ?
                    """,
                    (user_id, old_rank, new_rank),
                )
            else:
                conn.execute(
                    """
                    UPDATE members SET rank = rank + 1
                    WHERE user_id = ? AND rank >= ? AND rank < ?
                    """,
                    (user_id, new_rank, old_rank),
                )
            conn.execute(
                "UPDATE members SET rank = ? WHERE user_id = ? AND id = ?",
                (new_rank, user_id, member_id),
            )
            return True

    # =========================================================================
    # Delete Operations
    # =========================================================================

    def delete(self, user_id: str, member_id: int) -> bool:
        """Delete a member and, through the foreign key, its transactions."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM members WHERE user_id = ? AND id = ?",
                (user_id, member_id),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted member {member_id} for user {user_id}")
        return deleted
