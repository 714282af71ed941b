"""SQLite implementations of repository protocols."""

from numisma.db.sqlite.connection import Database
from numisma.db.sqlite.portfolio_store import SQLitePortfolioStore
from numisma.db.sqlite.position_store import SQLitePositionStore
from numisma.db.sqlite.valuation_store import SQLiteValuationStore

__all__ = [
    "Database",
    "SQLitePortfolioStore",
    "SQLitePositionStore",
    "SQLiteValuationStore",
]
