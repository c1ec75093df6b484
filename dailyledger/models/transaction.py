from enum import Enum


class TransactionType(str, Enum):
    NORMAL = "normal"
    OUTSTANDING_CLEARED = "outstanding_cleared"

    @property
    def is_payment(self) -> bool:
        """Whether the row stands for real cash collected."""
        return self is TransactionType.NORMAL
