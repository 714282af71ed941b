"""Test configuration and fixtures for pytest."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import pytest

from numisma.db.factory import StoreBundle, create_sqlite_stores
from numisma.models.order import Order, StopLossOrder, TakeProfitOrder
from numisma.models.position import Asset, Position, PositionDetails

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _order(
    total_cost: Optional[str] = "100",
    average_price: Optional[str] = "100",
    filled: Optional[str] = "1",
    unit: str = "base",
    status: str = "filled",
    **overrides: Any,
) -> Order:
    """Build an entry order; amounts are strings so Decimal stays exact."""
    data: dict[str, Any] = {
        "date_open": overrides.pop("date_open", T0),
        "status": status,
        "unit": unit,
    }
    if total_cost is not None:
        data["total_cost"] = Decimal(total_cost)
    if average_price is not None:
        data["average_price"] = Decimal(average_price)
    if filled is not None:
        data["filled"] = Decimal(filled)
    data.update(overrides)
    return Order(**data)


def _exit(kind: str = "stop_loss", **overrides: Any) -> Order:
    """Build a stop-loss or take-profit order."""
    data: dict[str, Any] = {
        "date_open": T0,
        "status": "submitted",
        "type": "trigger",
        "size": Decimal("1"),
        "unit": "base",
    }
    data.update(overrides)
    cls = StopLossOrder if kind == "stop_loss" else TakeProfitOrder
    return cls(**data)


def _position(
    orders: tuple = (),
    side: str = "buy",
    ticker: str = "BTC",
    name: Optional[str] = None,
    portfolio: str = "main",
    risk_level: int = 5,
    strategy: str = "swing",
    **details: Any,
) -> Position:
    """Build a position holding *orders*."""
    details.setdefault("date_opened", T0)
    return Position(
        name=name or f"{ticker} position",
        risk_level=risk_level,
        portfolio=portfolio,
        strategy=strategy,
        asset=Asset(name=ticker, ticker=ticker, pair=f"{ticker}/USDT", exchange="binance", wallet="spot"),
        position_details=PositionDetails(side=side, orders=list(orders), **details),
    )


@pytest.fixture
def make_order():
    """Factory for entry orders."""
    return _order


@pytest.fixture
def make_exit():
    """Factory for stop-loss / take-profit orders."""
    return _exit


@pytest.fixture
def make_position():
    """Factory for positions."""
    return _position


@pytest.fixture
def stores() -> StoreBundle:
    """All stores on one in-memory database."""
    bundle = create_sqlite_stores(":memory:")
    yield bundle
    bundle.close()
