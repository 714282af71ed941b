"""Valuation engine: pure functions from orders and prices to value and P&L."""

from numisma.engine.aggregator import (
    AssetAllocation,
    DayChange,
    PortfolioSummary,
    PortfolioTotals,
    day_change,
    summarize_portfolio,
    top_holdings,
    total_value,
)
from numisma.engine.ledger import net_filled_size, total_invested
from numisma.engine.series import ValuationQuery, ValuationSeries, aggregate, series_stats
from numisma.engine.valuator import (
    PositionValuation,
    current_value,
    percentage_return,
    sort_positions,
    unrealized_pnl,
    value_position,
)

__all__ = [
    # Ledger
    "net_filled_size",
    "total_invested",
    # Valuator
    "PositionValuation",
    "current_value",
    "percentage_return",
    "sort_positions",
    "unrealized_pnl",
    "value_position",
    # Aggregator
    "AssetAllocation",
    "DayChange",
    "PortfolioSummary",
    "PortfolioTotals",
    "day_change",
    "summarize_portfolio",
    "top_holdings",
    "total_value",
    # Series
    "ValuationQuery",
    "ValuationSeries",
    "aggregate",
    "series_stats",
]
