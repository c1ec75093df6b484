from .sharing import ShareMode, ShareSettings, StatsView
from .stats import (
    DailyStats,
    MemberDue,
    MonthlyStats,
    PaidMember,
    PendingMember,
    RecentTransaction,
)
from .transaction import TransactionType

__all__ = [
    "DailyStats",
    "MemberDue",
    "MonthlyStats",
    "PaidMember",
    "PendingMember",
    "RecentTransaction",
    "ShareMode",
    "ShareSettings",
    "StatsView",
    "TransactionType",
]
