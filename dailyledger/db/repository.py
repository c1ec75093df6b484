"""
Repository facade for the Daily Ledger.

Composes the member registry, the transaction log, the snapshot store and
the list store over one SQLite database file.
"""

import logging
from pathlib import Path
from typing import Optional

from .base import BaseRepository
from .lists import ListRepository
from .members import MemberRepository
from .stats import StatsRepository
from .transactions import TransactionRepository

logger = logging.getLogger(__name__)


class LedgerRepository(BaseRepository):
    """
    Main repository that owns the schema and exposes the sub-repositories.

    Attributes:
        members: Member registry
        transactions: Ledger store
        stats: Aggregate snapshot store
        lists: Member lists and share grants
    """

    def __init__(self, db_path: Optional[Path] = None):
        super().__init__(db_path, init_schema=True)
        self.members = MemberRepository(self.db_path)
        self.transactions = TransactionRepository(self.db_path)
        self.stats = StatsRepository(self.db_path)
        self.lists = ListRepository(self.db_path)
        logger.info(f"LedgerRepository initialized with db_path: {self.db_path}")


# Singleton instance
_default_repository: Optional[LedgerRepository] = None


def get_repository() -> LedgerRepository:
    """Get or create the default repository instance."""
    global _default_repository
    if _default_repository is None:
        _default_repository = LedgerRepository()
    return _default_repository
