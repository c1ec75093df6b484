from .client import DailyLedgerBot, create_bot
from .cogs import (
    ExportCog,
    GeneralCog,
    LedgerCog,
    ListsCog,
    MembersCog,
    StatsCog,
)
from .cogs.ledger import format_transaction
from .cogs.stats import format_daily_stats, format_monthly_stats
from .runner import run

__all__ = [
    # Bot
    "DailyLedgerBot",
    "create_bot",
    "run",
    # Cogs
    "ExportCog",
    "GeneralCog",
    "LedgerCog",
    "ListsCog",
    "MembersCog",
    "StatsCog",
    # Utilities
    "format_daily_stats",
    "format_monthly_stats",
    "format_transaction",
]
