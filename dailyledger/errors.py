"""
Error taxonomy for the Daily Ledger core.

Recoverable user-facing conditions (AlreadyCleared, NothingToClear, ...) are
raised by the reconciliation layer and turned into messages by the bot.
ComputeFailure wraps store errors met while recomputing a snapshot.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all Daily Ledger errors."""


class MemberNotFound(LedgerError):
    def __init__(self, member_id: int):
        super().__init__(f"Member {member_id} not found")
        self.member_id = member_id


class AlreadyCleared(LedgerError):
    def __init__(self, member_id: int, month_year: str):
        super().__init__(
            f"Outstanding balance for member {member_id} already cleared in {month_year}"
        )
        self.member_id = member_id
        self.month_year = month_year


class NothingToClear(LedgerError):
    def __init__(self, member_id: int, month_year: str, balance: float):
        super().__init__(
            f"Member {member_id} has no outstanding balance in {month_year} "
            f"(balance {balance:,.2f})"
        )
        self.member_id = member_id
        self.month_year = month_year
        self.balance = balance


class TransactionNotFound(LedgerError):
    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class ListNotFound(LedgerError):
    def __init__(self, list_id: int):
        super().__init__(f"List {list_id} not found")
        self.list_id = list_id


class AccessDenied(LedgerError):
    """Raised when a user reads a list or view they were not granted."""


class ComputeFailure(LedgerError):
    """A snapshot recomputation failed at the storage boundary."""

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to recompute snapshot {key}: {cause}")
        self.key = key
        self.cause = cause


class DataQualityWarning(UserWarning):
    """Malformed legacy data was tolerated through a fallback."""
