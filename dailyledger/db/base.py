"""
SQLite connection handling and the ledger schema shared by every repository.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from dailyledger.config import DB_TIMEOUT, DEFAULT_DB_PATH

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Owns the database path, opens connections and creates the ledger tables.

    Every operation opens its own connection, so repositories can be called
    from executor threads without sharing connection state.
    """

    def __init__(self, db_path: Optional[Path] = None, init_schema: bool = True):
        """
        Initialize the base repository.

        Args:
            db_path: Path to the SQLite database file. Defaults to data/dailyledger.db
            init_schema: Whether to initialize the schema on startup
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._ensure_db_directory()
        if init_schema:
            self._init_schema()

    def _ensure_db_directory(self):
        """Ensure the database directory exists."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Database directory ensured: {self.db_path.parent}")
        except Exception as e:
            logger.error(f"Failed to create database directory: {e}", exc_info=True)
            raise

    @contextmanager
    def _get_connection(self):
        """Yield a connection that commits on success and rolls back on error."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=DB_TIMEOUT)
            conn.row_factory = sqlite3.Row
            # Enable foreign keys
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            logger.error(f"Database locked or operational error: {e}", exc_info=True)
            if conn:
                conn.rollback()
            raise
        except Exception as e:
            logger.error(f"Database error: {e}", exc_info=True)
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def _init_schema(self):
        """Initialize the database schema."""
        with self._get_connection() as conn:
            # Members - per-user roster with recurring targets
            conn.execute("""
                CREATE TABLE IF NOT EXISTS members (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL CHECK(length(user_id) > 0),
                    name TEXT NOT NULL CHECK(length(name) > 0),
                    monthly_target REAL NOT NULL DEFAULT 0 CHECK(monthly_target >= 0),
                    default_daily_payment REAL NOT NULL DEFAULT 0
                        CHECK(default_daily_payment >= 0),
                    created_on TEXT,
                    rank INTEGER NOT NULL DEFAULT 0,
                    archived INTEGER NOT NULL DEFAULT 0 CHECK(archived IN (0, 1)),
                    archived_on TEXT,
                    archived_reason TEXT
                )
            """)

            # Transactions - dated payment events, keyed for accounting by date
            conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL CHECK(length(user_id) > 0),
                    member_id INTEGER NOT NULL
                        REFERENCES members(id) ON DELETE CASCADE,
                    member_name TEXT,
                    amount REAL NOT NULL CHECK(amount >= 0),
                    date TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'normal' CHECK(
                        type IN ('normal', 'outstanding_cleared')
                    )
                )
            """)

            # Cached aggregate snapshots
            conn.execute("""
                CREATE TABLE IF NOT EXISTS daily_stats (
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, date)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS monthly_stats (
                    user_id TEXT NOT NULL,
                    month_year TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, month_year)
                )
            """)

            # Member lists and their share grants
            conn.execute("""
                CREATE TABLE IF NOT EXISTS member_lists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id TEXT NOT NULL CHECK(length(owner_id) > 0),
                    name TEXT NOT NULL CHECK(length(name) > 0),
                    description TEXT,
                    member_ids TEXT NOT NULL DEFAULT '[]',
                    share_settings TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS list_shares (
                    list_id INTEGER NOT NULL
                        REFERENCES member_lists(id) ON DELETE CASCADE,
                    owner_id TEXT NOT NULL,
                    recipient_id TEXT NOT NULL CHECK(length(recipient_id) > 0),
                    username TEXT NOT NULL,
                    access_level TEXT NOT NULL DEFAULT 'view',
                    shared_at TEXT NOT NULL,
                    PRIMARY KEY (list_id, recipient_id)
                )
            """)

            # Create indexes for performance
            self._create_indexes(conn)

            logger.debug("Daily ledger schema initialized successfully")

    def _create_indexes(self, conn):
        """Create the per-user lookup indexes."""
        indexes = [
            ("idx_members_user_id", "members", "user_id"),
            ("idx_members_user_rank", "members", "user_id, rank"),
            ("idx_transactions_user_date", "transactions", "user_id, date"),
            ("idx_transactions_member_date", "transactions", "member_id, date"),
            ("idx_member_lists_owner", "member_lists", "owner_id"),
            ("idx_list_shares_recipient", "list_shares", "recipient_id"),
        ]

        for index_name, table, columns in indexes:
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS {index_name}
                ON {table}({columns})
            """)

        # At most one clearing row per member per month
        conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_single_clear
            ON transactions(member_id, substr(date, 1, 7))
            WHERE type = 'outstanding_cleared'
        """)
