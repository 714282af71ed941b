"""Pydantic models for data representation."""

from numisma.models.config import AppConfig
from numisma.models.order import (
    BaseSize,
    Order,
    OrderSize,
    OrderStatus,
    OrderType,
    PercentageSize,
    QuoteSize,
    SizeUnit,
    StopLossOrder,
    TakeProfitOrder,
)
from numisma.models.portfolio import Portfolio, RiskProfile, TargetAllocation
from numisma.models.position import (
    Asset,
    AssetLocation,
    JournalEntry,
    Position,
    PositionDetails,
    PositionStatus,
    Thesis,
    TradeSide,
    WalletType,
)
from numisma.models.temporal import (
    GENESIS,
    Absolute,
    Genesis,
    TemporalValue,
    format_temporal,
    is_genesis,
    parse_temporal,
)
from numisma.models.valuation import (
    Bucket,
    DateStatus,
    HistoricalValuation,
    ValuationRange,
    ValuationStats,
)

__all__ = [
    # Temporal
    "GENESIS",
    "Absolute",
    "Genesis",
    "TemporalValue",
    "format_temporal",
    "is_genesis",
    "parse_temporal",
    # Orders
    "BaseSize",
    "Order",
    "OrderSize",
    "OrderStatus",
    "OrderType",
    "PercentageSize",
    "QuoteSize",
    "SizeUnit",
    "StopLossOrder",
    "TakeProfitOrder",
    # Positions
    "Asset",
    "AssetLocation",
    "JournalEntry",
    "Position",
    "PositionDetails",
    "PositionStatus",
    "Thesis",
    "TradeSide",
    "WalletType",
    # Portfolios and valuations
    "Portfolio",
    "RiskProfile",
    "TargetAllocation",
    "Bucket",
    "DateStatus",
    "HistoricalValuation",
    "ValuationRange",
    "ValuationStats",
    # Config
    "AppConfig",
]
