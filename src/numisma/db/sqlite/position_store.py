"""SQLite-backed store for positions.

Positions are stored as camelCase JSON documents (the same shape the
import format uses) with a few indexed columns beside them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from numisma.db.sqlite.connection import format_timestamp
from numisma.models.position import Position

if TYPE_CHECKING:
    from sqlite3 import Row

    from numisma.db.sqlite.connection import Database


class SQLitePositionStore:
    """SQLite implementation of ``PositionStore`` protocol."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _row_to_position(row: Row) -> Position:
        """Convert a database row to a ``Position``."""
        return Position.model_validate_json(row["data"])

    def save_position(self, position: Position) -> str:
        """Insert or update a position; insertion order is kept on update."""
        now = format_timestamp(datetime.now(timezone.utc))
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO positions (id, portfolio, name, ticker, status, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    portfolio = excluded.portfolio,
                    name = excluded.name,
                    ticker = excluded.ticker,
                    status = excluded.status,
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (
                    position.id,
                    position.portfolio,
                    position.name,
                    position.asset.ticker,
                    position.position_details.status.value,
                    position.model_dump_json(by_alias=True),
                    now,
                    now,
                ),
            )
        return position.id

    def get_position(self, position_id: str) -> Optional[Position]:
        """Retrieve a position by ID."""
        with self.db.connect() as conn:
            cursor = conn.execute("SELECT data FROM positions WHERE id = ?", (position_id,))
            row = cursor.fetchone()
        return self._row_to_position(row) if row else None

    def list_positions(self, portfolio_id: Optional[str] = None) -> list[Position]:
        """List positions in insertion order, optionally for one portfolio ID."""
        query = "SELECT data FROM positions"
        params: tuple = ()
        if portfolio_id is not None:
            query += " WHERE portfolio = ?"
            params = (portfolio_id,)
        query += " ORDER BY rowid"
        with self.db.connect() as conn:
            cursor = conn.execute(query, params)
            rows = cursor.fetchall()
        return [self._row_to_position(r) for r in rows]

    def delete_position(self, position_id: str) -> bool:
        """Delete a position by ID."""
        with self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM positions WHERE id = ?", (position_id,))
            return cursor.rowcount > 0
