"""Order ledger: cost basis and filled size derived from a position's orders.

Only ``filled`` orders count. Submitted and cancelled orders never touch
cost basis or size. Amounts are converted to base units before they are
summed; percentage and quote sizes need a price to do that.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from numisma.errors import InsufficientData, InvalidOrderState
from numisma.models.order import (
    BaseSize,
    Order,
    OrderStatus,
    PercentageSize,
    QuoteSize,
)
from numisma.models.position import Position, TradeSide

ZERO = Decimal("0")

Size = Union[PercentageSize, BaseSize, QuoteSize]


def _pricing(order: Order, reference_price: Optional[Decimal]) -> Optional[Decimal]:
    """Price used to convert *order*'s size: its own fill price, else the reference."""
    if order.average_price is not None and order.average_price > ZERO:
        return order.average_price
    if reference_price is not None and reference_price > ZERO:
        return reference_price
    return None


def _require_cost(order: Order, position_id: Optional[str] = None) -> Decimal:
    if order.total_cost is None:
        raise InvalidOrderState(order.id, "filled order has no total_cost", position_id)
    return order.total_cost


def to_base_units(
    size: Size,
    order: Order,
    reference_price: Optional[Decimal] = None,
    position_id: Optional[str] = None,
) -> Decimal:
    """Resolve *size* to base-asset units.

    - base: the amount itself
    - quote: amount / price
    - percentage: amount * total_cost / price

    Raises:
        InsufficientData: If a price is needed and none is available.
        InvalidOrderState: If a percentage size has no total_cost to apply to.
    """
    if isinstance(size, BaseSize):
        return size.amount
    price = _pricing(order, reference_price)
    if price is None:
        raise InsufficientData(order.id, size.unit)
    if isinstance(size, QuoteSize):
        return size.amount / price
    return size.amount * _require_cost(order, position_id) / price


def filled_orders(position: Position) -> list[Order]:
    """Entry orders that have executed."""
    return [o for o in position.position_details.orders if o.status == OrderStatus.FILLED]


def total_invested(position: Position) -> Decimal:
    """Sum of ``total_cost`` over filled entry orders; 0 when there are none.

    Raises:
        InvalidOrderState: If a filled order has no ``total_cost``.
    """
    total = ZERO
    for order in filled_orders(position):
        total += _require_cost(order, position.id)
    return total


def net_filled_size(position: Position, reference_price: Optional[Decimal] = None) -> Decimal:
    """Signed filled size in base units: positive for buys, negative for sells.

    Args:
        position: Position whose entry orders are summed
        reference_price: Price used when an order has no fill price of its own

    Raises:
        InvalidOrderState: If a filled order lacks the data to size it.
        InsufficientData: If a quote/percentage amount has no usable price.
    """
    size = ZERO
    for order in filled_orders(position):
        _require_cost(order, position.id)
        if order.filled is not None:
            size += to_base_units(order.filled, order, reference_price, position.id)
        elif order.average_price:
            size += order.total_cost / order.average_price
        else:
            raise InvalidOrderState(
                order.id, "filled order has neither a filled amount nor an average price", position.id
            )
    if position.side == TradeSide.SELL:
        return -size
    return size


def filled_size(position: Position, reference_price: Optional[Decimal] = None) -> Decimal:
    """Magnitude of the net filled size."""
    return abs(net_filled_size(position, reference_price))


def average_entry_price(position: Position, reference_price: Optional[Decimal] = None) -> Decimal:
    """Invested capital per base unit; 0 when nothing is filled."""
    size = filled_size(position, reference_price)
    if size == ZERO:
        return ZERO
    return total_invested(position) / size


def committed_capital(position: Position) -> Decimal:
    """Invested capital plus the estimated cost of still-submitted orders.

    Reported next to invested capital; percentage return never uses it.
    """
    pending = sum(
        (
            o.estimated_cost
            for o in position.position_details.orders
            if o.status == OrderStatus.SUBMITTED and o.estimated_cost is not None
        ),
        ZERO,
    )
    return total_invested(position) + pending


def total_fees(position: Position) -> Decimal:
    """Known fees over every filled order; genesis (unknown) fees are skipped."""
    details = position.position_details
    total = ZERO
    for order in [*details.orders, *details.stop_loss, *details.take_profit]:
        if order.status == OrderStatus.FILLED and isinstance(order.fee, Decimal):
            total += order.fee
    return total


def exit_price(position: Position) -> Optional[Decimal]:
    """Volume-weighted fill price of executed stop-loss/take-profit orders.

    Percentage exits are weighted against the position's filled size; when
    no weight can be derived the fill prices are averaged plainly. Returns
    ``None`` when no exit order has filled at a known price.
    """
    details = position.position_details
    exits = [
        o
        for o in [*details.stop_loss, *details.take_profit]
        if o.status == OrderStatus.FILLED and o.average_price is not None
    ]
    if not exits:
        return None

    held: Optional[Decimal] = None
    weighted = ZERO
    volume = ZERO
    for order in exits:
        size = order.filled or order.size
        if isinstance(size, PercentageSize):
            if held is None:
                try:
                    held = filled_size(position)
                except InsufficientData:
                    held = ZERO
            quantity = size.amount * held
        elif isinstance(size, QuoteSize):
            quantity = size.amount / order.average_price if order.average_price else ZERO
        else:
            quantity = size.amount
        weighted += quantity * order.average_price
        volume += quantity

    if volume == ZERO:
        return sum((o.average_price for o in exits), ZERO) / len(exits)
    return weighted / volume
