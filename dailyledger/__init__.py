"""
Daily Ledger - member payment tracking

Tracks recurring monthly targets for a roster of members against the
payments they make day by day, and serves cached daily and monthly stats.
"""

from .errors import (
    AccessDenied,
    AlreadyCleared,
    ComputeFailure,
    DataQualityWarning,
    LedgerError,
    ListNotFound,
    MemberNotFound,
    NothingToClear,
    TransactionNotFound,
)
from .models import DailyStats, MonthlyStats, TransactionType
from .services import (
    AggregateCache,
    ReconciliationTrigger,
    StatsService,
    expected_accrual,
    monthly_reconciliation,
    outstanding_balance,
)

__version__ = "0.1.0"

__all__ = [
    "AccessDenied",
    "AggregateCache",
    "AlreadyCleared",
    "ComputeFailure",
    "DailyStats",
    "DataQualityWarning",
    "LedgerError",
    "ListNotFound",
    "MemberNotFound",
    "MonthlyStats",
    "NothingToClear",
    "ReconciliationTrigger",
    "StatsService",
    "TransactionNotFound",
    "TransactionType",
    "expected_accrual",
    "monthly_reconciliation",
    "outstanding_balance",
]
