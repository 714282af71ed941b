"""SQLite database connection management."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional, Union

from numisma.db.sqlite.schema import SCHEMA_SQL
from numisma.models.temporal import as_utc

if TYPE_CHECKING:
    from sqlite3 import Connection

# Fixed-width UTC format so stored timestamps sort lexicographically
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def format_timestamp(moment: datetime) -> str:
    """Render *moment* in the sortable UTC storage format."""
    return as_utc(moment).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Inverse of :func:`format_timestamp`; always timezone-aware."""
    return as_utc(datetime.fromisoformat(text))


class Database:
    """
    SQLite database connection manager.

    Handles connection lifecycle, schema initialization, and transactions.

    Attributes:
        db_path: Path to the SQLite database file or ":memory:" for in-memory
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        """
        Initialize the database.

        Args:
            db_path: Path to database file or ":memory:" for in-memory database.
                     If None, uses the default path from AppConfig.
        """
        if db_path is None:
            from numisma.models.config import AppConfig
            config = AppConfig()
            db_path = config.database_path

        # Convert to string for sqlite3
        self.db_path = str(db_path) if isinstance(db_path, Path) else db_path
        self._is_memory = self.db_path == ":memory:"

        # For in-memory databases, keep a persistent connection
        self._memory_conn: Optional[Connection] = None

        if not self._is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)

    def _open(self) -> Connection:
        if self._is_memory:
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:")
                self._memory_conn.row_factory = sqlite3.Row
            return self._memory_conn
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _release(self, conn: Connection) -> None:
        if not self._is_memory:
            conn.close()

    @contextmanager
    def connect(self) -> Generator[Connection, None, None]:
        """
        Get a database connection as a context manager.

        Handles transaction commit/rollback automatically.
        Returns dict-like Row objects for query results.

        For in-memory databases, reuses the same connection.
        For file databases, creates a new connection each time.

        Example:
            with db.connect() as conn:
                cursor = conn.execute("SELECT * FROM portfolios")
                rows = cursor.fetchall()
        """
        conn = self._open()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """
        Run a block as one write transaction.

        Takes the write lock up front (``BEGIN IMMEDIATE``) so readers see
        either none or all of the block's changes. Any exception rolls the
        whole block back and is re-raised.

        Example:
            with db.transaction() as conn:
                conn.execute("UPDATE portfolios SET is_pinned = 0 WHERE user_id = ?", (uid,))
                conn.execute("UPDATE portfolios SET is_pinned = 1 WHERE id = ?", (pid,))
        """
        conn = self._open()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """
        Execute a single SQL statement.

        For simple queries that don't need explicit transaction control.

        Args:
            sql: SQL statement to execute
            params: Parameters for the statement

        Returns:
            Cursor with query results
        """
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                (table_name,)
            )
            return cursor.fetchone() is not None

    def get_row_count(self, table_name: str) -> int:
        """Get the number of rows in a table."""
        with self.connect() as conn:
            cursor = conn.execute(f"SELECT COUNT(*) FROM {table_name}")  # noqa: S608
            result = cursor.fetchone()
            return result[0] if result else 0

    def close(self) -> None:
        """Close the database connection (for in-memory databases)."""
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
