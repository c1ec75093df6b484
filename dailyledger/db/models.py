"""
Database models for the Daily Ledger.

Defines the records stored in SQLite: members with their recurring target,
dated payment transactions, and shareable member lists.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from dailyledger.models import ShareSettings, TransactionType


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Member:
    """
    A member who owes a recurring monthly contribution.

    `rank` only orders members for display. `default_daily_payment` is the
    suggested amount for members paying day by day; it never affects balances.
    """

    id: Optional[int]
    user_id: str
    name: str
    monthly_target: float = 0.0
    default_daily_payment: float = 0.0
    created_on: Optional[datetime] = None
    rank: int = 0
    archived: bool = False
    archived_on: Optional[datetime] = None
    archived_reason: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "monthly_target": self.monthly_target,
            "default_daily_payment": self.default_daily_payment,
            "created_on": self.created_on.isoformat() if self.created_on else None,
            "rank": self.rank,
            "archived": self.archived,
            "archived_on": self.archived_on.isoformat() if self.archived_on else None,
            "archived_reason": self.archived_reason,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Member":
        """Create a Member from a database row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            monthly_target=row["monthly_target"],
            default_daily_payment=row["default_daily_payment"],
            created_on=_parse_datetime(row["created_on"]),
            rank=row["rank"],
            archived=bool(row["archived"]),
            archived_on=_parse_datetime(row["archived_on"]),
            archived_reason=row["archived_reason"],
        )


@dataclass
class Transaction:
    """
    A dated payment event for one member.

    `date` is the accounting key; `timestamp` only orders rows for display.
    """

    id: Optional[int]
    user_id: str
    member_id: int
    amount: float
    date: date
    timestamp: datetime
    type: TransactionType = TransactionType.NORMAL
    member_name: Optional[str] = None

    @property
    def month_year(self) -> str:
        return self.date.strftime("%Y-%m")

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Transaction":
        """Create a Transaction from a database row."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            member_id=row["member_id"],
            member_name=row["member_name"],
            amount=row["amount"],
            date=date.fromisoformat(row["date"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            type=TransactionType(row["type"]),
        )


@dataclass
class ShareGrant:
    """Read access to a list granted to another user."""

    recipient_id: str
    username: str
    access_level: str = "view"
    shared_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "recipient_id": self.recipient_id,
            "username": self.username,
            "access_level": self.access_level,
            "shared_at": self.shared_at.isoformat() if self.shared_at else None,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ShareGrant":
        return cls(
            recipient_id=row["recipient_id"],
            username=row["username"],
            access_level=row["access_level"],
            shared_at=_parse_datetime(row["shared_at"]),
        )


@dataclass
class MemberList:
    """A named subset of an owner's members that can be shared read-only."""

    id: Optional[int]
    owner_id: str
    name: str
    description: str = ""
    member_ids: list[int] = field(default_factory=list)
    share_settings: ShareSettings = field(default_factory=ShareSettings)
    shared_with: dict[str, ShareGrant] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_shared_with(self, user_id: str) -> bool:
        return user_id in self.shared_with

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "member_ids": list(self.member_ids),
            "share_settings": self.share_settings.to_dict(),
            "shared_with": {k: v.to_dict() for k, v in self.shared_with.items()},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_row(
        cls, row: sqlite3.Row, grants: Optional[list[ShareGrant]] = None
    ) -> "MemberList":
        """Create a MemberList from a database row plus its share grants."""
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"] or "",
            member_ids=json.loads(row["member_ids"] or "[]"),
            share_settings=ShareSettings.from_dict(
                json.loads(row["share_settings"] or "{}")
            ),
            shared_with={g.recipient_id: g for g in grants or []},
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )
