"""Factory for creating store bundles backed by different storage engines."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from numisma.db.protocols import PortfolioStore, PositionStore, ValuationStore
    from numisma.db.sqlite.connection import Database


@dataclass
class StoreBundle:
    """All stores wired to the same backend.

    Provides convenient access to all repository stores
    from a single object. Used at composition roots (CLI, tests)
    to wire up the full dependency graph.
    """

    portfolios: PortfolioStore
    positions: PositionStore
    valuations: ValuationStore
    db: Optional[Database] = None

    def close(self) -> None:
        """Release the underlying connection, if any."""
        if self.db is not None:
            self.db.close()


def create_sqlite_stores(db_path: Optional[Union[Path, str]] = None) -> StoreBundle:
    """Create all stores backed by SQLite.

    Args:
        db_path: Optional path to SQLite database file.
                 If None, uses the default path from AppConfig.
                 Use ":memory:" for in-memory testing.

    Returns:
        StoreBundle with all stores wired to the same SQLite database.
    """
    from numisma.db.sqlite.connection import Database
    from numisma.db.sqlite.portfolio_store import SQLitePortfolioStore
    from numisma.db.sqlite.position_store import SQLitePositionStore
    from numisma.db.sqlite.valuation_store import SQLiteValuationStore

    db = Database(db_path)
    return StoreBundle(
        portfolios=SQLitePortfolioStore(db),
        positions=SQLitePositionStore(db),
        valuations=SQLiteValuationStore(db),
        db=db,
    )
