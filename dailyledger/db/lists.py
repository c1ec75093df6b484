"""
Member list repository.

Lists are named subsets of an owner's members. An owner can share a list
read-only with other users; each grant is one row in list_shares.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from dailyledger.config import MAX_DESCRIPTION_LENGTH, MAX_LIST_NAME_LENGTH
from dailyledger.errors import ListNotFound
from dailyledger.models import ShareSettings

from .base import BaseRepository
from .models import MemberList, ShareGrant

logger = logging.getLogger(__name__)


class ListRepository(BaseRepository):
    """Repository for member lists and their share grants."""

    def __init__(self, db_path=None, init_schema: bool = False):
        super().__init__(db_path, init_schema=init_schema)

    def _load_grants(self, conn, list_id: int) -> list[ShareGrant]:
        rows = conn.execute(
            """
            SELECT recipient_id, username, access_level, shared_at
            FROM list_shares WHERE list_id = ?
            ORDER BY shared_at DESC
            """,
            (list_id,),
        ).fetchall()
        return [ShareGrant.from_row(row) for row in rows]

    def create_list(
        self,
        owner_id: str,
        name: str,
        description: str = "",
        member_ids: Optional[list[int]] = None,
        settings: Optional[ShareSettings] = None,
    ) -> MemberList:
        """
        Create a new list.

        Raises:
            ValueError: If the name or description is invalid
        """
        if not owner_id or not isinstance(owner_id, str):
            raise ValueError(f"Invalid owner_id: {owner_id}")
        name = (name or "").strip()
        if not name or len(name) > MAX_LIST_NAME_LENGTH:
            raise ValueError(f"Invalid list name: {name!r}")
        if len(description or "") > MAX_DESCRIPTION_LENGTH:
            raise ValueError("List description is too long")

        now = datetime.now(timezone.utc)
        settings = settings or ShareSettings()
        member_ids = list(member_ids or [])

        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO member_lists (
                    owner_id, name, description, member_ids, share_settings,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id,
                    name,
                    description or "",
                    json.dumps(member_ids),
                    json.dumps(settings.to_dict()),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            list_id = cursor.lastrowid

        logger.info(f"Created list {list_id} ({name}) for user {owner_id}")
        return MemberList(
            id=list_id,
            owner_id=owner_id,
            name=name,
            description=description or "",
            member_ids=member_ids,
            share_settings=settings,
            created_at=now,
            updated_at=now,
        )

    def get_list(self, owner_id: str, list_id: int) -> Optional[MemberList]:
        """Get a list with its share grants."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM member_lists WHERE owner_id = ? AND id = ?",
                (owner_id, list_id),
            ).fetchone()
            if not row:
                return None
            return MemberList.from_row(row, self._load_grants(conn, list_id))

    def get_user_lists(self, owner_id: str) -> list[MemberList]:
        """Get all lists owned by a user, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM member_lists WHERE owner_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (owner_id,),
            ).fetchall()
            return [
                MemberList.from_row(row, self._load_grants(conn, row["id"]))
                for row in rows
            ]

    def update_list(
        self,
        owner_id: str,
        list_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        member_ids: Optional[list[int]] = None,
        settings: Optional[ShareSettings] = None,
    ) -> bool:
        """Update the editable fields of a list."""
        updates = []
        params: list = []

        if name is not None:
            name = name.strip()
            if not name or len(name) > MAX_LIST_NAME_LENGTH:
                raise ValueError(f"Invalid list name: {name!r}")
            updates.append("name = ?")
            params.append(name)
        if description is not None:
            if len(description) > MAX_DESCRIPTION_LENGTH:
                raise ValueError("List description is too long")
            updates.append("description = ?")
            params.append(description)
        if member_ids is not None:
            updates.append("member_ids = ?")
            params.append(json.dumps(list(member_ids)))
        if settings is not None:
            updates.append("share_settings = ?")
            params.append(json.dumps(settings.to_dict()))

        if not updates:
            return False

        updates.append("updated_at = ?")
        params.append(datetime.now(timezone.utc).isoformat())
        params.extend([owner_id, list_id])

        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE member_lists SET {', '.join(updates)} "
                "WHERE owner_id = ? AND id = ?",
                params,
            )
            return cursor.rowcount > 0

    def delete_list(self, owner_id: str, list_id: int) -> bool:
        """Delete a list; its share grants go with it."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM member_lists WHERE owner_id = ? AND id = ?",
                (owner_id, list_id),
            )
            return cursor.rowcount > 0

    def share_list(
        self,
        owner_id: str,
        list_id: int,
        recipient_id: str,
        username: str,
        settings: Optional[ShareSettings] = None,
    ) -> ShareGrant:
        """
        Grant a user read access to a list.

        Sharing again with the same recipient refreshes the grant. When
        settings are given they replace the list's share settings.

        Raises:
            ListNotFound: If the list does not exist for this owner
            ValueError: If the recipient is the owner
        """
        if not recipient_id or recipient_id == owner_id:
            raise ValueError(f"Invalid recipient: {recipient_id}")

        now = datetime.now(timezone.utc)
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM member_lists WHERE owner_id = ? AND id = ?",
                (owner_id, list_id),
            ).fetchone()
            if not row:
                raise ListNotFound(list_id)

            conn.execute(
                """
                INSERT INTO list_shares (
                    list_id, owner_id, recipient_id, username, access_level, shared_at
                ) VALUES (?, ?, ?, ?, 'view', ?)
                ON CONFLICT(list_id, recipient_id) DO UPDATE SET
                    username = excluded.username,
                    shared_at = excluded.shared_at
                """,
                (list_id, owner_id, recipient_id, username, now.isoformat()),
            )
            if settings is not None:
                conn.execute(
                    """
                    UPDATE member_lists SET share_settings = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (json.dumps(settings.to_dict()), now.isoformat(), list_id),
                )

        logger.info(f"Shared list {list_id} of {owner_id} with {recipient_id}")
        return ShareGrant(recipient_id=recipient_id, username=username, shared_at=now)

    def revoke_access(self, owner_id: str, list_id: int, recipient_id: str) -> bool:
        """
        Revoke a recipient's access.

        Raises:
            ListNotFound: If the list does not exist for this owner
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM member_lists WHERE owner_id = ? AND id = ?",
                (owner_id, list_id),
            ).fetchone()
            if not row:
                raise ListNotFound(list_id)

            cursor = conn.execute(
                "DELETE FROM list_shares WHERE list_id = ? AND recipient_id = ?",
                (list_id, recipient_id),
            )
            revoked = cursor.rowcount > 0

        if revoked:
            logger.info(f"Revoked {recipient_id} from list {list_id}")
        return revoked

    def get_shared_lists(self, recipient_id: str) -> list[MemberList]:
        """Get the lists other users shared with this recipient."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT l.* FROM member_lists l
                JOIN list_shares s ON s.list_id = l.id
                WHERE s.recipient_id = ?
                ORDER BY s.shared_at DESC
                """,
                (recipient_id,),
            ).fetchall()
            return [
                MemberList.from_row(row, self._load_grants(conn, row["id"]))
                for row in rows
            ]

    def get_shared_list(self, recipient_id: str, list_id: int) -> Optional[MemberList]:
        """Get one list shared with this recipient, or None."""
        for member_list in self.get_shared_lists(recipient_id):
            if member_list.id == list_id:
                return member_list
        return None

    def exists(self, list_id: int) -> bool:
        """Whether a list with this ID exists for any owner."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM member_lists WHERE id = ?", (list_id,)
            ).fetchone()
            return row is not None
