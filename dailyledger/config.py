"""
Paths, logging settings, limits and user-facing messages for Daily Ledger.
"""

import os
from pathlib import Path

# Application paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LOG_DIR = PROJECT_ROOT / "logs"

# Database configuration
DEFAULT_DB_PATH = DATA_DIR / "dailyledger.db"
DB_TIMEOUT = 10.0  # seconds

# Stats cache
STATS_FRESHNESS_SECONDS = 10.0
RECENT_TRANSACTIONS_LIMIT = 50

# Payment amounts
MAX_AMOUNT = 999_999_999.99

# Member constraints
MAX_MEMBER_NAME_LENGTH = 100
MAX_ARCHIVE_REASON_LENGTH = 200

# List constraints
MAX_LIST_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 200

# Discord configuration
DISCORD_MESSAGE_MAX_LENGTH = 2000
MAX_LISTED_MEMBERS = 25

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "dailyledger_bot.log"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Currency display
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")

# Error messages
ERROR_MESSAGES = {
    "invalid_token": "Invalid Discord bot token format",
    "database_error": "Database error occurred. Please try again later.",
    "member_not_found": "That member does not exist in your ledger.",
    "list_not_found": "That list does not exist.",
    "access_denied": "You don't have access to this list.",
    "already_cleared": "Outstanding balance was already cleared for this month.",
    "nothing_to_clear": "This member has nothing outstanding for this month.",
    "internal_error": "An internal error occurred. Please try again.",
}


def ensure_directories():
    """Ensure required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def get_log_level():
    """Get the configured log level."""
    import logging

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(LOG_LEVEL.upper(), logging.INFO)
