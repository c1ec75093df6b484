"""
Stats snapshot models.

DailyStats and MonthlyStats are the derived documents persisted by the
aggregate cache. They round-trip through plain dictionaries so the store can
keep them as JSON.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass
class PaidMember:
    member_id: int
    member_name: str
    rank: int
    amount: float

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "rank": self.rank,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PaidMember":
        return cls(**data)


@dataclass
class PendingMember:
    member_id: int
    member_name: str
    rank: int
    outstanding: float

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "rank": self.rank,
            "outstanding": self.outstanding,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingMember":
        return cls(**data)


@dataclass
class RecentTransaction:
    """A transaction as shown in the daily activity feed."""

    transaction_id: int
    member_id: int
    member_name: str
    amount: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecentTransaction":
        return cls(
            transaction_id=data["transaction_id"],
            member_id=data["member_id"],
            member_name=data["member_name"],
            amount=data["amount"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class MemberDue:
    """One row of the monthly dues list."""

    member_id: int
    member_name: str
    rank: int
    monthly_target: float
    previous_balance: float
    paid_this_month: float
    due: float

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "rank": self.rank,
            "monthly_target": self.monthly_target,
            "previous_balance": self.previous_balance,
            "paid_this_month": self.paid_this_month,
            "due": self.due,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MemberDue":
        return cls(**data)


@dataclass
class DailyStats:
    """Snapshot of one day: who paid, who still owes, what came in."""

    date: date
    total_collected: float = 0.0
    total_members: int = 0
    paid_members: list[PaidMember] = field(default_factory=list)
    pending_members: list[PendingMember] = field(default_factory=list)
    recent_transactions: list[RecentTransaction] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @property
    def paid_count(self) -> int:
        return len(self.paid_members)

    @property
    def pending_count(self) -> int:
        return len(self.pending_members)

    @property
    def is_placeholder(self) -> bool:
        """True for the empty result served before the first computation."""
        return self.updated_at is None

    @classmethod
    def empty(cls, for_date: date) -> "DailyStats":
        return cls(date=for_date)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "date": self.date.isoformat(),
            "total_collected": self.total_collected,
            "total_members": self.total_members,
            "paid_count": self.paid_count,
            "pending_count": self.pending_count,
            "paid_members": [m.to_dict() for m in self.paid_members],
            "pending_members": [m.to_dict() for m in self.pending_members],
            "recent_transactions": [t.to_dict() for t in self.recent_transactions],
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyStats":
        """Create DailyStats from its dictionary representation."""
        return cls(
            date=date.fromisoformat(data["date"]),
            total_collected=data["total_collected"],
            total_members=data["total_members"],
            paid_members=[PaidMember.from_dict(m) for m in data["paid_members"]],
            pending_members=[
                PendingMember.from_dict(m) for m in data["pending_members"]
            ],
            recent_transactions=[
                RecentTransaction.from_dict(t)
                for t in data.get("recent_transactions", [])
            ],
            updated_at=(
                datetime.fromisoformat(data["updated_at"])
                if data.get("updated_at")
                else None
            ),
        )


@dataclass
class MonthlyStats:
    """Snapshot of one calendar month, including carried-forward dues."""

    month_year: str  # YYYY-MM
    total_collected: float = 0.0
    total_outstanding: float = 0.0
    total_target: float = 0.0
    collection_rate: int = 0  # percent
    total_members: int = 0
    members_with_dues: list[MemberDue] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @property
    def is_placeholder(self) -> bool:
        return self.updated_at is None

    @classmethod
    def empty(cls, month_year: str) -> "MonthlyStats":
        return cls(month_year=month_year)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "month_year": self.month_year,
            "total_collected": self.total_collected,
            "total_outstanding": self.total_outstanding,
            "total_target": self.total_target,
            "collection_rate": self.collection_rate,
            "total_members": self.total_members,
            "members_with_dues": [m.to_dict() for m in self.members_with_dues],
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MonthlyStats":
        """Create MonthlyStats from its dictionary representation."""
        return cls(
            month_year=data["month_year"],
            total_collected=data["total_collected"],
            total_outstanding=data["total_outstanding"],
            total_target=data["total_target"],
            collection_rate=data["collection_rate"],
            total_members=data["total_members"],
            members_with_dues=[
                MemberDue.from_dict(m) for m in data["members_with_dues"]
            ],
            updated_at=(
                datetime.fromisoformat(data["updated_at"])
                if data.get("updated_at")
                else None
            ),
        )
