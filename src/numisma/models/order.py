"""Order models: entry fills, stop-loss and take-profit orders.

Sizes are tagged variants (``PercentageSize | BaseSize | QuoteSize``) so the
unit always travels with its amount. Flat input of the form
``{"filled": 0.5, "unit": "base"}`` is folded into the variant on load.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BeforeValidator, Field, PlainSerializer, model_validator

from numisma.models.base import DomainModel
from numisma.models.temporal import GENESIS, GENESIS_LITERAL, Genesis, TemporalValue

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class OrderStatus(str, Enum):
    """Execution state of an order."""

    SUBMITTED = "submitted"
    FILLED = "filled"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    """How the order is placed on the venue."""

    TRIGGER = "trigger"
    MARKET = "market"
    LIMIT = "limit"


class SizeUnit(str, Enum):
    """Unit an order size is expressed in."""

    PERCENTAGE = "percentage"
    BASE = "base"
    QUOTE = "quote"


# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------


class PercentageSize(DomainModel):
    """Fraction of the order's notional, 0 < amount <= 1."""

    unit: Literal["percentage"] = "percentage"
    amount: Decimal = Field(gt=0, le=1)


class BaseSize(DomainModel):
    """Amount in base-asset units (e.g. BTC in BTC/USDT)."""

    unit: Literal["base"] = "base"
    amount: Decimal = Field(ge=0)


class QuoteSize(DomainModel):
    """Amount in quote-currency units (e.g. USDT in BTC/USDT)."""

    unit: Literal["quote"] = "quote"
    amount: Decimal = Field(ge=0)


OrderSize = Annotated[
    Union[PercentageSize, BaseSize, QuoteSize],
    Field(discriminator="unit"),
]


def _fold_sizes(data: Any, *amount_keys: str) -> Any:
    """Turn flat ``{<key>: n, "unit": u}`` input into size variants.

    A single flat ``unit`` applies to every listed key; it defaults to base.
    """
    if not isinstance(data, dict):
        return data
    folded = dict(data)
    unit = folded.pop("unit", None) or SizeUnit.BASE.value
    if isinstance(unit, SizeUnit):
        unit = unit.value
    for key in amount_keys:
        raw = folded.get(key)
        if raw is None or isinstance(raw, (dict, PercentageSize, BaseSize, QuoteSize)):
            continue
        folded[key] = {"unit": unit, "amount": raw}
    return folded


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------


def _parse_fee(value: Any) -> Any:
    if isinstance(value, Genesis):
        return value
    if isinstance(value, str) and value.strip().lower() == GENESIS_LITERAL:
        return GENESIS
    if isinstance(value, dict) and value.get("kind") == GENESIS_LITERAL:
        return GENESIS
    return value


def _serialize_fee(value: Union[Decimal, Genesis]) -> str:
    if isinstance(value, Genesis):
        return GENESIS_LITERAL
    return str(value)


FeeAmount = Annotated[
    Union[Genesis, Decimal],
    BeforeValidator(_parse_fee),
    PlainSerializer(_serialize_fee, return_type=str),
]


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class Order(DomainModel):
    """One planned or executed transaction within a position.

    ``total_cost`` and ``average_price`` only carry meaning once the order
    is filled; cancelled and submitted orders never count toward cost basis.
    """

    id: str = Field(default_factory=lambda: str(uuid4())[:8], description="Unique order ID")
    date_open: TemporalValue = Field(description="When the order was placed (or genesis)")
    average_price: Optional[Decimal] = Field(default=None, ge=0, description="Average fill price")
    total_cost: Optional[Decimal] = Field(default=None, ge=0, description="Quote amount spent")
    status: OrderStatus = Field(default=OrderStatus.SUBMITTED, description="Execution state")
    type: OrderType = Field(default=OrderType.MARKET, description="Order type")
    fee: Optional[FeeAmount] = Field(default=None, description="Fee paid, or genesis if unknown")
    fee_unit: Optional[str] = Field(default=None, description="Currency the fee was paid in")
    filled: Optional[OrderSize] = Field(default=None, description="Filled amount with its unit")
    trigger: Optional[Decimal] = Field(default=None, ge=0, description="Trigger price")
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0, description="Expected cost if filled")
    notes: Optional[str] = Field(default=None, description="Free-form notes")

    @model_validator(mode="before")
    @classmethod
    def _fold_units(cls, data: Any) -> Any:
        return _fold_sizes(data, "filled")

    @property
    def is_filled(self) -> bool:
        """Whether this order contributes to cost basis."""
        return self.status == OrderStatus.FILLED

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED


class StopLossOrder(Order):
    """Exit order bounding the downside of a position."""

    size: OrderSize = Field(description="Size to exit, with its unit")

    @model_validator(mode="before")
    @classmethod
    def _fold_units(cls, data: Any) -> Any:
        return _fold_sizes(data, "size", "filled")


class TakeProfitOrder(Order):
    """Exit order locking in a target price."""

    size: OrderSize = Field(description="Size to exit, with its unit")
    tier: Optional[int] = Field(default=None, ge=1, description="Ladder tier (1 = first target)")

    @model_validator(mode="before")
    @classmethod
    def _fold_units(cls, data: Any) -> Any:
        return _fold_sizes(data, "size", "filled")
