"""
Database module for the Daily Ledger.

This module provides the storage layer behind the accounting engine.

Structure:
- base.py: Base repository with connection management and schema
- models.py: Data models (Member, Transaction, MemberList, ShareGrant)
- members.py: Member registry (targets, ranks, archive state)
- transactions.py: Ledger store (dated payment events)
- stats.py: Daily/monthly snapshot documents for the aggregate cache
- lists.py: Member lists and sharing
- repository.py: Main facade that composes all sub-repositories
"""

from .base import BaseRepository
from .lists import ListRepository
from .members import MemberRepository
from .models import Member, MemberList, ShareGrant, Transaction
from .repository import LedgerRepository, get_repository
from .stats import StatsRepository
from .transactions import TransactionRepository

__all__ = [
    # Base
    "BaseRepository",
    # Models
    "Member",
    "MemberList",
    "ShareGrant",
    "Transaction",
    # Repositories
    "LedgerRepository",
    "ListRepository",
    "MemberRepository",
    "StatsRepository",
    "TransactionRepository",
    # Utilities
    "get_repository",
]
