"""SQLite-backed store for the historical valuation series."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from numisma.db.sqlite.connection import format_timestamp, parse_timestamp
from numisma.errors import DuplicateTimestamp
from numisma.models.valuation import DateStatus, HistoricalValuation

if TYPE_CHECKING:
    from sqlite3 import Connection, Row

    from numisma.db.sqlite.connection import Database

logger = logging.getLogger(__name__)


class SQLiteValuationStore:
    """SQLite implementation of ``ValuationStore`` protocol.

    Writes run in ``BEGIN IMMEDIATE`` transactions so the insert of a new
    ACTIVE record and the demotion of the old one land together.

    Attributes:
        batch_size: Rows fetched per round-trip while iterating a series
    """

    def __init__(self, db: Database, batch_size: int = 200) -> None:
        self.db = db
        self.batch_size = batch_size

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _row_to_valuation(row: Row) -> HistoricalValuation:
        """Convert a database row to a ``HistoricalValuation``."""
        return HistoricalValuation(
            id=row["id"],
            portfolio_id=row["portfolio_id"],
            value=Decimal(row["value"]),
            timestamp=parse_timestamp(row["timestamp"]),
            date_status=DateStatus(row["date_status"]),
            is_retroactive=bool(row["is_retroactive"]),
            notes=row["notes"],
        )

    @staticmethod
    def _insert(
        conn: Connection,
        portfolio_id: str,
        value: Decimal,
        timestamp: datetime,
        status: DateStatus,
        is_retroactive: bool = False,
    ) -> HistoricalValuation:
        record = HistoricalValuation(
            id=str(uuid4())[:8],
            portfolio_id=portfolio_id,
            value=value,
            timestamp=parse_timestamp(format_timestamp(timestamp)),
            date_status=status,
            is_retroactive=is_retroactive,
        )
        conn.execute(
            """
            INSERT INTO valuations (id, portfolio_id, value, timestamp, date_status, is_retroactive)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                portfolio_id,
                str(value),
                format_timestamp(timestamp),
                status.value,
                int(is_retroactive),
            ),
        )
        return record

    def _fetch_active(self, conn: Connection, portfolio_id: str) -> Optional[HistoricalValuation]:
        cursor = conn.execute(
            "SELECT * FROM valuations WHERE portfolio_id = ? AND date_status = 'ACTIVE'",
            (portfolio_id,),
        )
        row = cursor.fetchone()
        return self._row_to_valuation(row) if row else None

    # -- protocol methods ----------------------------------------------------

    def append(self, portfolio_id: str, value: Decimal, timestamp: datetime) -> HistoricalValuation:
        """Record a valuation and demote the previous ACTIVE record.

        Raises:
            DuplicateTimestamp: If a HISTORICAL record exists at *timestamp*.
        """
        stamp = format_timestamp(timestamp)
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "SELECT * FROM valuations WHERE portfolio_id = ? AND timestamp = ?",
                (portfolio_id, stamp),
            )
            row = cursor.fetchone()
            if row is not None:
                existing = self._row_to_valuation(row)
                if existing.date_status == DateStatus.HISTORICAL:
                    raise DuplicateTimestamp(portfolio_id, existing.timestamp)
                if existing.date_status == DateStatus.ACTIVE:
                    conn.execute(
                        "UPDATE valuations SET value = ? WHERE id = ?",
                        (str(value), existing.id),
                    )
                    return existing.model_copy(update={"value": value})
                # A projection at this timestamp is superseded by the real value
                conn.execute("DELETE FROM valuations WHERE id = ?", (existing.id,))

            active = self._fetch_active(conn, portfolio_id)
            if active is not None and active.timestamp > parse_timestamp(stamp):
                logger.info(
                    f"Back-filling valuation for {portfolio_id} at {stamp} "
                    f"(behind active {format_timestamp(active.timestamp)})"
                )
                return self._insert(
                    conn, portfolio_id, value, timestamp, DateStatus.HISTORICAL, is_retroactive=True
                )

            if active is not None:
                conn.execute(
                    "UPDATE valuations SET date_status = 'HISTORICAL' WHERE id = ?",
                    (active.id,),
                )
            return self._insert(conn, portfolio_id, value, timestamp, DateStatus.ACTIVE)

    def add_projection(
        self, portfolio_id: str, value: Decimal, timestamp: datetime
    ) -> HistoricalValuation:
        """Record a PROJECTED valuation after the ACTIVE timestamp.

        An earlier projection at the same timestamp is replaced.

        Raises:
            ValueError: If *timestamp* is not after the ACTIVE record.
            DuplicateTimestamp: If a non-projected record holds the timestamp.
        """
        stamp = format_timestamp(timestamp)
        with self.db.transaction() as conn:
            active = self._fetch_active(conn, portfolio_id)
            if active is not None and parse_timestamp(stamp) <= active.timestamp:
                raise ValueError(
                    f"Projection at {stamp} must come after the active valuation "
                    f"at {format_timestamp(active.timestamp)}"
                )
            cursor = conn.execute(
                "SELECT * FROM valuations WHERE portfolio_id = ? AND timestamp = ?",
                (portfolio_id, stamp),
            )
            row = cursor.fetchone()
            if row is not None:
                existing = self._row_to_valuation(row)
                if existing.date_status != DateStatus.PROJECTED:
                    raise DuplicateTimestamp(portfolio_id, existing.timestamp)
                conn.execute("DELETE FROM valuations WHERE id = ?", (existing.id,))
            return self._insert(conn, portfolio_id, value, timestamp, DateStatus.PROJECTED)

    def get_active(self, portfolio_id: str) -> Optional[HistoricalValuation]:
        """Return the portfolio's ACTIVE record, if any."""
        with self.db.connect() as conn:
            return self._fetch_active(conn, portfolio_id)

    def iter_valuations(
        self,
        portfolio_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        date_status: Optional[DateStatus] = None,
        limit: Optional[int] = None,
    ) -> Iterator[HistoricalValuation]:
        """Yield valuations oldest first, fetching rows in batches."""
        query = "SELECT * FROM valuations WHERE portfolio_id = ?"
        params: list = [portfolio_id]
        if start is not None:
            query += " AND timestamp >= ?"
            params.append(format_timestamp(start))
        if end is not None:
            query += " AND timestamp <= ?"
            params.append(format_timestamp(end))
        if date_status is not None:
            query += " AND date_status = ?"
            params.append(DateStatus(date_status).value)
        if limit is not None:
            # Most recent `limit` rows, returned oldest first
            query = f"SELECT * FROM ({query} ORDER BY timestamp DESC LIMIT ?) ORDER BY timestamp"  # noqa: S608
            params.append(limit)
        else:
            query += " ORDER BY timestamp"

        with self.db.connect() as conn:
            cursor = conn.execute(query, tuple(params))
            while True:
                rows = cursor.fetchmany(self.batch_size)
                if not rows:
                    break
                for row in rows:
                    yield self._row_to_valuation(row)

    def delete_valuations(self, portfolio_id: str) -> int:
        """Delete a portfolio's whole series."""
        with self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM valuations WHERE portfolio_id = ?", (portfolio_id,))
            return cursor.rowcount
