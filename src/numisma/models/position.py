"""Position models: assets, position details and the position aggregate.

A position is one directional holding in one asset. It owns its orders,
stop-loss and take-profit ladders, and free-form thesis/journal notes.
The lifecycle is one-way: ``active -> closed``.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import Field, model_validator

from numisma.errors import PositionClosedError
from numisma.models.base import DomainModel
from numisma.models.order import FeeAmount, Order, StopLossOrder, TakeProfitOrder
from numisma.models.temporal import Absolute, Genesis, TemporalValue

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class WalletType(str, Enum):
    """Hot wallets are online (exchanges); cold wallets are offline."""

    HOT = "hot"
    COLD = "cold"


class AssetLocation(str, Enum):
    """Where an asset is held."""

    EXCHANGE = "exchange"
    COLD_STORAGE = "ColdStorage"


class PositionStatus(str, Enum):
    """Lifecycle status of a position."""

    ACTIVE = "active"
    CLOSED = "closed"


class TradeSide(str, Enum):
    """Buy is long; sell is short and inverts the P&L sign."""

    BUY = "buy"
    SELL = "sell"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Asset(DomainModel):
    """What is priced, and where it is held."""

    name: str = Field(description="Full asset name")
    ticker: str = Field(description="Ticker used as the price-map key")
    pair: str = Field(description="Market pair notation, e.g. BTC/USDT")
    location: AssetLocation = Field(default=AssetLocation.EXCHANGE, description="Holding location")
    exchange: Optional[str] = Field(default=None, description="Exchange name, if on an exchange")
    wallet: str = Field(description="Wallet or account within the location")


class Thesis(DomainModel):
    """Documented reasoning and exit conditions for a position."""

    reasoning: str = Field(description="Primary rationale")
    invalidation: Optional[str] = Field(default=None, description="What would prove it wrong")
    fulfillment: Optional[str] = Field(default=None, description="What would prove it right")
    notes: Optional[str] = Field(default=None)


class JournalEntry(DomainModel):
    """A dated note attached to a position."""

    id: str = Field(default_factory=lambda: str(uuid4())[:8])
    thought: str
    timestamp: TemporalValue
    sentiment: Optional[str] = Field(default=None, description="bullish | bearish | neutral")
    is_key_learning: bool = False


class PositionDetails(DomainModel):
    """Execution details: status, side, and the order ledger."""

    status: PositionStatus = Field(default=PositionStatus.ACTIVE)
    side: TradeSide = Field(default=TradeSide.BUY)
    fractal: str = Field(default="1D", description="Chart timeframe the trade is managed on")
    transaction_fee: Optional[FeeAmount] = Field(default=None)
    date_opened: Optional[TemporalValue] = Field(default=None)
    date_closed: Optional[TemporalValue] = Field(default=None)
    orders: list[Order] = Field(default_factory=list)
    stop_loss: list[StopLossOrder] = Field(default_factory=list)
    take_profit: list[TakeProfitOrder] = Field(default_factory=list)

    @model_validator(mode="after")
    def _closed_requires_date(self) -> PositionDetails:
        if self.status == PositionStatus.CLOSED and self.date_closed is None:
            raise ValueError("a closed position must have date_closed set")
        return self


class Position(DomainModel):
    """A single directional trade or holding in one asset."""

    id: str = Field(default_factory=lambda: str(uuid4())[:8], description="Unique position ID")
    name: str = Field(description="Human-readable name")
    risk_level: int = Field(ge=1, le=10, description="1 = conservative, 10 = speculative")
    portfolio: str = Field(description="Owning portfolio ID (a name is resolved on import)")
    wallet_type: WalletType = Field(default=WalletType.HOT)
    seed_capital_tier: str = Field(default="C1", description="Capital provenance tag")
    strategy: str = Field(default="", description="Strategy label")
    thesis: Optional[Thesis] = Field(default=None)
    journal: list[JournalEntry] = Field(default_factory=list)
    asset: Asset
    position_details: PositionDetails = Field(default_factory=PositionDetails)

    @property
    def is_active(self) -> bool:
        return self.position_details.status == PositionStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.position_details.status == PositionStatus.CLOSED

    @property
    def side(self) -> TradeSide:
        return self.position_details.side

    @property
    def ticker(self) -> str:
        return self.asset.ticker

    def _with_details(self, **changes: object) -> Position:
        details = self.position_details.model_copy(update=changes)
        # Re-validate so invariants on the details still hold after the update
        details = PositionDetails.model_validate(details.model_dump())
        return self.model_copy(update={"position_details": details})

    def with_order(self, order: Order) -> Position:
        """Return a copy with *order* appended.

        Raises:
            PositionClosedError: If the position is closed.
        """
        if self.is_closed:
            raise PositionClosedError(self.id)
        return self._with_details(orders=[*self.position_details.orders, order])

    def replace_order(self, order: Order) -> Position:
        """Return a copy with the order of the same ID replaced by *order*.

        Raises:
            PositionClosedError: If the position is closed.
            KeyError: If no order with that ID exists.
        """
        if self.is_closed:
            raise PositionClosedError(self.id)
        orders = list(self.position_details.orders)
        for index, existing in enumerate(orders):
            if existing.id == order.id:
                orders[index] = order
                return self._with_details(orders=orders)
        raise KeyError(order.id)

    def close(self, date_closed: Union[Absolute, Genesis]) -> Position:
        """Return a closed copy. Closing is terminal.

        Raises:
            PositionClosedError: If the position is already closed.
        """
        if self.is_closed:
            raise PositionClosedError(self.id)
        return self._with_details(status=PositionStatus.CLOSED, date_closed=date_closed)

    @property
    def transaction_fee(self) -> Optional[Union[Decimal, Genesis]]:
        return self.position_details.transaction_fee
