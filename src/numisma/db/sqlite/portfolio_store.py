"""SQLite-backed store for portfolios and the pinned-portfolio swap."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from numisma.db.sqlite.connection import format_timestamp, parse_timestamp
from numisma.errors import PinnedPortfolioConflict, PortfolioNotFoundError
from numisma.models.portfolio import Portfolio, RiskProfile, TargetAllocation

if TYPE_CHECKING:
    from sqlite3 import Row

    from numisma.db.sqlite.connection import Database

logger = logging.getLogger(__name__)


class SQLitePortfolioStore:
    """SQLite implementation of ``PortfolioStore`` protocol.

    A partial unique index rejects a second pinned portfolio per user;
    :meth:`set_pinned` swaps the pin inside one ``BEGIN IMMEDIATE``
    transaction so readers never observe zero or two pins.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # -- helpers -------------------------------------------------------------

    @staticmethod
    def _row_to_portfolio(row: Row) -> Portfolio:
        """Convert a database row to a ``Portfolio``."""
        return Portfolio(
            id=row["id"],
            name=row["name"],
            user_id=row["user_id"],
            description=row["description"],
            total_value=Decimal(row["total_value"]),
            is_pinned=bool(row["is_pinned"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            day_change=Decimal(row["day_change"]) if row["day_change"] is not None else None,
            day_change_percent=row["day_change_percent"],
            top_holdings=json.loads(row["top_holdings"]) if row["top_holdings"] else [],
            base_currency=row["base_currency"],
            risk_profile=RiskProfile(row["risk_profile"]) if row["risk_profile"] else None,
            target_allocations=[
                TargetAllocation(**item) for item in json.loads(row["target_allocations"])
            ]
            if row["target_allocations"]
            else [],
            initial_investment=(
                Decimal(row["initial_investment"]) if row["initial_investment"] is not None else None
            ),
            is_public=bool(row["is_public"]),
        )

    # -- protocol methods ----------------------------------------------------

    def save_portfolio(self, portfolio: Portfolio) -> str:
        """Insert or update a portfolio.

        Raises:
            PinnedPortfolioConflict: If saving a pinned portfolio while the
                user already has another one pinned.
        """
        with self.db.transaction() as conn:
            if portfolio.is_pinned:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM portfolios WHERE user_id = ? AND is_pinned = 1 AND id != ?",
                    (portfolio.user_id, portfolio.id),
                )
                others = cursor.fetchone()[0]
                if others:
                    raise PinnedPortfolioConflict(portfolio.user_id, others + 1)
            conn.execute(
                """
                INSERT INTO portfolios (
                    id, name, user_id, description, total_value, is_pinned,
                    created_at, updated_at, day_change, day_change_percent,
                    top_holdings, base_currency, risk_profile, target_allocations,
                    initial_investment, is_public
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    user_id = excluded.user_id,
                    description = excluded.description,
                    total_value = excluded.total_value,
                    is_pinned = excluded.is_pinned,
                    updated_at = excluded.updated_at,
                    day_change = excluded.day_change,
                    day_change_percent = excluded.day_change_percent,
                    top_holdings = excluded.top_holdings,
                    base_currency = excluded.base_currency,
                    risk_profile = excluded.risk_profile,
                    target_allocations = excluded.target_allocations,
                    initial_investment = excluded.initial_investment,
                    is_public = excluded.is_public
                """,
                (
                    portfolio.id,
                    portfolio.name,
                    portfolio.user_id,
                    portfolio.description,
                    str(portfolio.total_value),
                    int(portfolio.is_pinned),
                    format_timestamp(portfolio.created_at),
                    format_timestamp(portfolio.updated_at),
                    str(portfolio.day_change) if portfolio.day_change is not None else None,
                    portfolio.day_change_percent,
                    json.dumps(portfolio.top_holdings),
                    portfolio.base_currency,
                    portfolio.risk_profile.value if portfolio.risk_profile else None,
                    json.dumps([a.model_dump() for a in portfolio.target_allocations]),
                    str(portfolio.initial_investment) if portfolio.initial_investment is not None else None,
                    int(portfolio.is_public),
                ),
            )
        return portfolio.id

    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        """Retrieve a portfolio by ID."""
        with self.db.connect() as conn:
            cursor = conn.execute("SELECT * FROM portfolios WHERE id = ?", (portfolio_id,))
            row = cursor.fetchone()
        return self._row_to_portfolio(row) if row else None

    def get_portfolio_by_name(self, user_id: str, name: str) -> Optional[Portfolio]:
        """Retrieve one of a user's portfolios by name."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM portfolios WHERE user_id = ? AND name = ?",
                (user_id, name),
            )
            row = cursor.fetchone()
        return self._row_to_portfolio(row) if row else None

    def list_portfolios(self, user_id: Optional[str] = None) -> list[Portfolio]:
        """List portfolios, pinned first then most recently updated."""
        query = "SELECT * FROM portfolios"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY is_pinned DESC, updated_at DESC"
        with self.db.connect() as conn:
            cursor = conn.execute(query, params)
            rows = cursor.fetchall()
        return [self._row_to_portfolio(r) for r in rows]

    def get_pinned(self, user_id: str) -> Optional[Portfolio]:
        """Return the user's pinned portfolio, if any."""
        with self.db.connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM portfolios WHERE user_id = ? AND is_pinned = 1",
                (user_id,),
            )
            row = cursor.fetchone()
        return self._row_to_portfolio(row) if row else None

    def set_pinned(self, user_id: str, portfolio_id: str) -> Portfolio:
        """Unpin every portfolio of *user_id*, then pin *portfolio_id*.

        Raises:
            PortfolioNotFoundError: If the portfolio is missing or not the user's.
            PinnedPortfolioConflict: If the swap did not leave exactly one pin.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute("SELECT user_id FROM portfolios WHERE id = ?", (portfolio_id,))
            row = cursor.fetchone()
            if row is None or row["user_id"] != user_id:
                raise PortfolioNotFoundError(portfolio_id)

            conn.execute(
                "UPDATE portfolios SET is_pinned = 0 WHERE user_id = ? AND is_pinned = 1",
                (user_id,),
            )
            conn.execute("UPDATE portfolios SET is_pinned = 1 WHERE id = ?", (portfolio_id,))

            cursor = conn.execute(
                "SELECT COUNT(*) FROM portfolios WHERE user_id = ? AND is_pinned = 1",
                (user_id,),
            )
            pinned = cursor.fetchone()[0]
            if pinned != 1:
                raise PinnedPortfolioConflict(user_id, pinned)

            cursor = conn.execute("SELECT * FROM portfolios WHERE id = ?", (portfolio_id,))
            row = cursor.fetchone()
        return self._row_to_portfolio(row)

    def delete_portfolio(self, portfolio_id: str) -> bool:
        """Delete a portfolio along with its positions and valuations."""
        with self.db.transaction() as conn:
            cursor = conn.execute("SELECT id FROM portfolios WHERE id = ?", (portfolio_id,))
            if cursor.fetchone() is None:
                return False
            conn.execute("DELETE FROM valuations WHERE portfolio_id = ?", (portfolio_id,))
            conn.execute("DELETE FROM positions WHERE portfolio = ?", (portfolio_id,))
            conn.execute("DELETE FROM portfolios WHERE id = ?", (portfolio_id,))
        logger.info(f"Deleted portfolio {portfolio_id} with its positions and valuations")
        return True

