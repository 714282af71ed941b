"""Repository protocol definitions for Numisma.

Defines structural typing protocols (PEP 544) for all data persistence
interfaces. The engine, tracker and CLI depend on these Protocols and
never on a concrete implementation, so the storage backend can be swapped
without touching any consumers.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numisma.models.portfolio import Portfolio
    from numisma.models.position import Position
    from numisma.models.valuation import DateStatus, HistoricalValuation


@runtime_checkable
class PortfolioStore(Protocol):
    """Interface for portfolio persistence.

    Implementations must keep at most one pinned portfolio per user, and
    make :meth:`set_pinned` atomic.

    Implementations: ``SQLitePortfolioStore``.
    """

    def save_portfolio(self, portfolio: Portfolio) -> str:
        """Insert or replace a portfolio.

        Args:
            portfolio: The portfolio to store.

        Returns:
            The portfolio ID.
        """
        ...

    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        """Retrieve a portfolio by ID.

        Returns:
            The portfolio, or ``None`` if not found.
        """
        ...

    def get_portfolio_by_name(self, user_id: str, name: str) -> Optional[Portfolio]:
        """Retrieve one of a user's portfolios by name."""
        ...

    def list_portfolios(self, user_id: Optional[str] = None) -> list[Portfolio]:
        """List portfolios, optionally for one user only."""
        ...

    def get_pinned(self, user_id: str) -> Optional[Portfolio]:
        """Return the user's pinned portfolio, if any."""
        ...

    def set_pinned(self, user_id: str, portfolio_id: str) -> Portfolio:
        """Unpin the user's portfolios and pin *portfolio_id*, atomically.

        Readers see the old pin or the new pin, never zero or two.

        Raises:
            PortfolioNotFoundError: If the portfolio is not the user's.
            PinnedPortfolioConflict: If the result is not exactly one pin.
        """
        ...

    def delete_portfolio(self, portfolio_id: str) -> bool:
        """Delete a portfolio with its positions and valuations.

        Returns:
            ``True`` if a portfolio was deleted.
        """
        ...


@runtime_checkable
class PositionStore(Protocol):
    """Interface for position persistence.

    Implementations: ``SQLitePositionStore``.
    """

    def save_position(self, position: Position) -> str:
        """Insert or replace a position document.

        Returns:
            The position ID.
        """
        ...

    def get_position(self, position_id: str) -> Optional[Position]:
        """Retrieve a position by ID."""
        ...

    def list_positions(self, portfolio_id: Optional[str] = None) -> list[Position]:
        """List positions in insertion order, optionally for one portfolio ID."""
        ...

    def delete_position(self, position_id: str) -> bool:
        """Delete a position.

        Returns:
            ``True`` if a position was deleted.
        """
        ...


@runtime_checkable
class ValuationStore(Protocol):
    """Interface for the historical valuation series.

    :meth:`append` writes the new record and demotes the previous ACTIVE
    record in one atomic step.

    Implementations: ``SQLiteValuationStore``.
    """

    def append(self, portfolio_id: str, value: Decimal, timestamp: datetime) -> HistoricalValuation:
        """Record a valuation, demoting the previous ACTIVE record.

        Raises:
            DuplicateTimestamp: If a HISTORICAL record exists at *timestamp*.
        """
        ...

    def add_projection(
        self, portfolio_id: str, value: Decimal, timestamp: datetime
    ) -> HistoricalValuation:
        """Record a PROJECTED valuation after the ACTIVE timestamp."""
        ...

    def get_active(self, portfolio_id: str) -> Optional[HistoricalValuation]:
        """Return the portfolio's ACTIVE record, if any."""
        ...

    def iter_valuations(
        self,
        portfolio_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        date_status: Optional[DateStatus] = None,
        limit: Optional[int] = None,
    ) -> Iterator[HistoricalValuation]:
        """Yield valuations in chronological order.

        Args:
            portfolio_id: Portfolio whose series is read.
            start: Inclusive lower bound.
            end: Inclusive upper bound.
            date_status: Only records with this status.
            limit: Only the most recent *limit* records (still chronological).
        """
        ...

    def delete_valuations(self, portfolio_id: str) -> int:
        """Delete a portfolio's whole series.

        Returns:
            Number of records deleted.
        """
        ...
