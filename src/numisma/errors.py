"""Exception hierarchy for the valuation engine and its storage collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class NumismaError(Exception):
    """Base exception for all Numisma errors."""

    pass


class InvalidOrderState(NumismaError):
    """A filled order is missing data required for cost-basis math.

    Attributes:
        order_id: Offending order ID.
        position_id: Owning position ID, if known.
        reason: What is missing or inconsistent.
    """

    def __init__(self, order_id: str, reason: str, position_id: Optional[str] = None) -> None:
        self.order_id: str = order_id
        self.position_id: Optional[str] = position_id
        self.reason: str = reason
        where = f" in position {position_id}" if position_id else ""
        super().__init__(f"Order {order_id}{where} is invalid: {reason}")


class InsufficientData(NumismaError):
    """A size conversion needs a price that is not available.

    Recoverable: callers may substitute a zero value as long as the
    result is flagged as partial.
    """

    def __init__(self, order_id: str, unit: str) -> None:
        self.order_id: str = order_id
        self.unit: str = unit
        super().__init__(
            f"Cannot resolve {unit} size of order {order_id} to base units without a price"
        )


class DuplicateTimestamp(NumismaError):
    """A valuation already exists at this timestamp and is immutable."""

    def __init__(self, portfolio_id: str, timestamp: datetime) -> None:
        self.portfolio_id: str = portfolio_id
        self.timestamp: datetime = timestamp
        super().__init__(
            f"Portfolio {portfolio_id} already has a historical valuation at {timestamp.isoformat()}"
        )


class PinnedPortfolioConflict(NumismaError):
    """A pin change would leave a user with zero or several pinned portfolios."""

    def __init__(self, user_id: str, pinned_count: int) -> None:
        self.user_id: str = user_id
        self.pinned_count: int = pinned_count
        super().__init__(
            f"User {user_id} would have {pinned_count} pinned portfolios (expected exactly 1)"
        )


class PositionClosedError(NumismaError):
    """Closed positions are terminal and refuse further mutation."""

    def __init__(self, position_id: str) -> None:
        self.position_id: str = position_id
        super().__init__(f"Position {position_id} is closed")


class PortfolioNotFoundError(NumismaError):
    """Raised when a portfolio does not exist or belongs to another user."""

    def __init__(self, portfolio_id: str) -> None:
        self.portfolio_id: str = portfolio_id
        super().__init__(f"Portfolio not found: {portfolio_id}")
