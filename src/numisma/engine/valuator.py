"""Position valuator: value, P&L and return of one position at a given price.

All functions are pure. Prices come in as an explicit ``ticker -> price``
mapping; a ticker missing from it means the price is unknown, which values
the position at 0 rather than failing.
"""

from __future__ import annotations

import locale
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Literal, Optional

from numisma.engine.ledger import (
    ZERO,
    exit_price,
    filled_size,
    total_invested,
)
from numisma.errors import InsufficientData
from numisma.models.order import OrderStatus
from numisma.models.position import Position, TradeSide

logger = logging.getLogger(__name__)

SortField = Literal["name", "ticker", "strategy", "risk_level", "value", "pnl"]
SORT_FIELDS: tuple[str, ...] = ("name", "ticker", "strategy", "risk_level", "value", "pnl")


@dataclass(frozen=True)
class PositionValuation:
    """Valuation of one position at one price snapshot.

    Attributes:
        position_id: Valued position
        ticker: Asset ticker the price was looked up by
        price: Effective price used (exit price for closed positions)
        size: Filled size in base units
        invested: Capital in filled entry orders
        value: Market value, ``size * price``
        pnl: Unrealized P&L (frozen P&L for closed positions)
        pnl_percent: ``pnl / invested * 100``
        realized_pnl: P&L locked in by a closed position, else 0
        is_open: Whether the position is still active
        price_known: Whether a price was available
        partial: Whether a size conversion lacked a price and was zeroed
    """

    position_id: str
    ticker: str
    price: Optional[Decimal]
    size: Decimal
    invested: Decimal
    value: Decimal
    pnl: Decimal
    pnl_percent: float
    realized_pnl: Decimal
    is_open: bool
    price_known: bool
    partial: bool = False


@dataclass(frozen=True)
class LevelDistance:
    """Distance from the current price to a stop-loss or take-profit trigger."""

    order_id: str
    kind: Literal["stop_loss", "take_profit"]
    trigger: Decimal
    distance: Decimal
    distance_percent: float


@dataclass(frozen=True)
class RiskMetrics:
    """ROI (as a fraction) and ROI scaled by the position's risk level."""

    roi: float
    risk_adjusted_return: float
    risk_level: int


def effective_price(position: Position, current_price: Optional[Decimal]) -> Optional[Decimal]:
    """Price a position is valued at.

    Closed positions are frozen at the fill price of their exit orders when
    one is known; otherwise, and for open positions, *current_price* is used.
    """
    if position.is_closed:
        frozen = exit_price(position)
        if frozen is not None:
            return frozen
    return current_price


def _pnl(side: TradeSide, invested: Decimal, size: Decimal, price: Decimal) -> Decimal:
    if size == ZERO:
        return ZERO
    average = invested / size
    if side == TradeSide.SELL:
        return (average - price) * size
    return (price - average) * size


def current_value(position: Position, current_prices: Mapping[str, Decimal]) -> Decimal:
    """Market value ``|net size| * price``; 0 when the ticker has no price.

    Raises:
        InvalidOrderState: If a filled order is malformed.
        InsufficientData: If a size conversion needs a price and has none.
    """
    price = effective_price(position, current_prices.get(position.asset.ticker))
    if price is None:
        return ZERO
    return filled_size(position, price) * price


def unrealized_pnl(position: Position, current_price: Optional[Decimal]) -> Decimal:
    """P&L against the average entry price.

    Buy: ``(price - avg) * size``. Sell: ``(avg - price) * size``.
    Returns 0 when nothing is filled or no price is known.
    """
    price = effective_price(position, current_price)
    if price is None:
        return ZERO
    size = filled_size(position, price)
    return _pnl(position.side, total_invested(position), size, price)


def percentage_return(pnl: Decimal, invested: Decimal) -> float:
    """``pnl / invested * 100``, defined as 0 when nothing is invested."""
    if invested == ZERO:
        return 0.0
    return float(pnl / invested * 100)


def value_position(position: Position, current_prices: Mapping[str, Decimal]) -> PositionValuation:
    """Full valuation record for *position*.

    A missing price to convert a quote/percentage size is recovered here: the
    result is zero-valued and flagged ``partial``. Malformed orders
    (``InvalidOrderState``) propagate.
    """
    ticker = position.asset.ticker
    price = effective_price(position, current_prices.get(ticker))
    try:
        invested = total_invested(position)
        size = filled_size(position, price)
    except InsufficientData as e:
        logger.warning(f"Position {position.id} ({ticker}) valued at 0: {e}")
        return PositionValuation(
            position_id=position.id,
            ticker=ticker,
            price=price,
            size=ZERO,
            invested=ZERO,
            value=ZERO,
            pnl=ZERO,
            pnl_percent=0.0,
            realized_pnl=ZERO,
            is_open=position.is_active,
            price_known=price is not None,
            partial=True,
        )

    if price is None:
        value = ZERO
        pnl = ZERO
    else:
        value = size * price
        pnl = _pnl(position.side, invested, size, price)

    return PositionValuation(
        position_id=position.id,
        ticker=ticker,
        price=price,
        size=size,
        invested=invested,
        value=value,
        pnl=pnl,
        pnl_percent=percentage_return(pnl, invested),
        realized_pnl=pnl if position.is_closed else ZERO,
        is_open=position.is_active,
        price_known=price is not None,
    )


def _text_key(text: str) -> str:
    return locale.strxfrm(text.casefold())


def sort_positions(
    positions: Sequence[Position],
    field: SortField,
    current_prices: Mapping[str, Decimal],
    descending: bool = False,
) -> list[Position]:
    """Sort positions by one field.

    Strings compare locale-aware and case-folded; numbers compare
    numerically. The sort is stable in both directions, so ties keep their
    input order. Descending is therefore the exact reverse of ascending only
    when every key is distinct; tied positions appear in input order either
    way.

    Raises:
        ValueError: If *field* is not a sortable field.
    """
    keys: dict[str, Callable[[Position], Any]] = {
        "name": lambda p: _text_key(p.name),
        "ticker": lambda p: _text_key(p.asset.ticker),
        "strategy": lambda p: _text_key(p.strategy),
        "risk_level": lambda p: p.risk_level,
        "value": lambda p: value_position(p, current_prices).value,
        "pnl": lambda p: value_position(p, current_prices).pnl,
    }
    if field not in keys:
        raise ValueError(f"Cannot sort by {field!r}. Use one of {', '.join(SORT_FIELDS)}")
    return sorted(positions, key=keys[field], reverse=descending)


def filter_positions(positions: Iterable[Position], term: str) -> list[Position]:
    """Positions whose name, ticker or strategy contains *term* (case-insensitive)."""
    needle = term.strip().casefold()
    if not needle:
        return list(positions)
    return [
        p
        for p in positions
        if needle in p.name.casefold()
        or needle in p.asset.ticker.casefold()
        or needle in p.strategy.casefold()
    ]


def level_distances(position: Position, current_price: Decimal) -> list[LevelDistance]:
    """Distance to every live stop-loss and take-profit trigger.

    Positive distance means the trigger is above the current price.
    Cancelled orders and orders without a trigger are skipped.
    """
    details = position.position_details
    levels = [("stop_loss", o) for o in details.stop_loss] + [
        ("take_profit", o) for o in details.take_profit
    ]
    distances = []
    for kind, order in levels:
        if order.status == OrderStatus.CANCELLED or order.trigger is None:
            continue
        distance = order.trigger - current_price
        percent = float(distance / current_price * 100) if current_price > ZERO else 0.0
        distances.append(
            LevelDistance(
                order_id=order.id,
                kind=kind,
                trigger=order.trigger,
                distance=distance,
                distance_percent=percent,
            )
        )
    return distances


def risk_metrics(position: Position, current_price: Decimal) -> RiskMetrics:
    """ROI and a simple risk-adjusted return, ``roi / (risk_level / 10)``."""
    invested = total_invested(position)
    pnl = unrealized_pnl(position, current_price)
    roi = float(pnl / invested) if invested > ZERO else 0.0
    return RiskMetrics(
        roi=roi,
        risk_adjusted_return=roi / (position.risk_level / 10),
        risk_level=position.risk_level,
    )
