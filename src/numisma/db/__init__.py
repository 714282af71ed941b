"""Database layer: Protocol interfaces + SQLite implementations.

Usage:
    # Protocol types (for type hints in business logic)
    from numisma.db.protocols import PortfolioStore, ValuationStore

    # SQLite implementations (for composition roots)
    from numisma.db.sqlite import SQLitePortfolioStore, SQLiteValuationStore

    # Factory (convenience)
    from numisma.db.factory import create_sqlite_stores
"""

from numisma.db.factory import StoreBundle, create_sqlite_stores
from numisma.db.protocols import PortfolioStore, PositionStore, ValuationStore
from numisma.db.sqlite.schema import SCHEMA_SQL, SCHEMA_VERSION

__all__ = [
    # Protocols
    "PortfolioStore",
    "PositionStore",
    "ValuationStore",
    # Schema
    "SCHEMA_SQL",
    "SCHEMA_VERSION",
    # Factory
    "StoreBundle",
    "create_sqlite_stores",
]
