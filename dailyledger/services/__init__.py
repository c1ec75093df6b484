from .accounting import (
    Reconciliation,
    compute_daily_stats,
    compute_monthly_stats,
    daily_classification,
    expected_accrual,
    monthly_reconciliation,
    outstanding_balance,
)
from .cache import AggregateCache, CacheState, SnapshotKey
from .export import ExportFormat, ExportService
from .reconciliation import ReconciliationTrigger, TransactionWritten
from .sharing import SharingService, resolve_period
from .stats import StatsService

__all__ = [
    "AggregateCache",
    "CacheState",
    "ExportFormat",
    "ExportService",
    "Reconciliation",
    "ReconciliationTrigger",
    "SharingService",
    "SnapshotKey",
    "StatsService",
    "TransactionWritten",
    "compute_daily_stats",
    "compute_monthly_stats",
    "daily_classification",
    "expected_accrual",
    "monthly_reconciliation",
    "outstanding_balance",
    "resolve_period",
]
