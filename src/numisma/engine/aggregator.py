"""Portfolio aggregator: roll positions and valuations up into a summary.

Everything here is a pure function over a snapshot of positions, a price
map and (for day change) a valuation series. The one exception,
:func:`set_pinned_portfolio`, delegates the pin swap to a store that makes
it atomic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from numisma.engine.ledger import ZERO
from numisma.engine.valuator import PositionValuation, percentage_return, value_position
from numisma.models.portfolio import Portfolio
from numisma.models.position import Position
from numisma.models.temporal import Absolute, Genesis, as_utc
from numisma.models.valuation import DateStatus, HistoricalValuation

if TYPE_CHECKING:
    from numisma.db.protocols import PortfolioStore

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(hours=24)
DEFAULT_TOLERANCE = timedelta(hours=6)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PortfolioTotals:
    """Sum of position valuations.

    ``total_value`` counts open positions only. Closed positions add their
    locked-in P&L to ``realized_pnl`` instead.
    """

    total_value: Decimal
    invested: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    open_count: int
    closed_count: int
    partial: bool
    valuations: tuple[PositionValuation, ...] = ()

    @property
    def profit_loss(self) -> Decimal:
        return self.unrealized_pnl + self.realized_pnl


@dataclass(frozen=True)
class DayChange:
    """Change between the latest valuation and one ~24h earlier.

    ``approximate`` is set when no valuation lies close enough to the 24h
    mark and another reference was used, or when there is no reference.
    """

    change: Decimal
    change_percent: float
    latest: Optional[HistoricalValuation]
    reference: Optional[HistoricalValuation]
    approximate: bool


@dataclass(frozen=True)
class AssetAllocation:
    """Share of total value held in one asset."""

    asset: str
    value: Decimal
    percentage: float


@dataclass(frozen=True)
class PortfolioRisk:
    """Simple risk indicators over a set of positions.

    Attributes:
        average_risk_level: Mean of the positions' 1-10 risk levels
        max_drawdown: Largest unrealized loss (<= 0)
        volatility: Mean squared return (returns as fractions)
    """

    average_risk_level: float
    max_drawdown: Decimal
    volatility: float


@dataclass(frozen=True)
class PeriodMetrics:
    """Totals for positions that were open at some point in a period."""

    value: Decimal
    profit_loss: Decimal
    return_percent: float
    valuations: tuple[PositionValuation, ...] = ()


@dataclass(frozen=True)
class PortfolioSummary:
    """Everything a dashboard shows for one portfolio."""

    portfolio_id: str
    name: str
    total_value: Decimal
    invested: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    return_percent: float
    day_change: DayChange
    top_holdings: list[str]
    allocation: list[AssetAllocation] = field(default_factory=list)
    position_count: int = 0
    open_count: int = 0
    partial: bool = False


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def positions_in_portfolio(positions: Iterable[Position], portfolio: Portfolio) -> list[Position]:
    """Positions owned by *portfolio*.

    Membership is by portfolio ID only; names are not unique across users.
    """
    return [p for p in positions if p.portfolio == portfolio.id]


def total_value(
    positions: Iterable[Position],
    current_prices: Mapping[str, Decimal],
) -> PortfolioTotals:
    """Sum current value over open positions.

    Closed positions contribute 0 to value; their realized P&L is summed
    separately. ``partial`` is set if any position could not be sized.
    """
    valuations = tuple(value_position(p, current_prices) for p in positions)
    value = invested = unrealized = realized = ZERO
    open_count = closed_count = 0
    for v in valuations:
        if v.is_open:
            open_count += 1
            value += v.value
            invested += v.invested
            unrealized += v.pnl
        else:
            closed_count += 1
            realized += v.realized_pnl
    partial = any(v.partial for v in valuations)
    if partial:
        logger.info("Portfolio total is partial: some positions lacked a price")
    return PortfolioTotals(
        total_value=value,
        invested=invested,
        unrealized_pnl=unrealized,
        realized_pnl=realized,
        open_count=open_count,
        closed_count=closed_count,
        partial=partial,
        valuations=valuations,
    )


def top_holdings(
    positions: Iterable[Position],
    current_prices: Mapping[str, Decimal],
    n: int = 3,
) -> list[str]:
    """Tickers of the *n* most valuable open positions.

    Ranked by value descending, ties by ticker ascending.
    """
    ranked = [(value_position(p, current_prices).value, p.asset.ticker) for p in positions if p.is_active]
    ranked.sort(key=lambda item: (-item[0], item[1]))
    return [ticker for _, ticker in ranked[:n]]


def asset_allocation(
    positions: Iterable[Position],
    current_prices: Mapping[str, Decimal],
) -> list[AssetAllocation]:
    """Value per asset ticker over open positions, largest first.

    Returns an empty list when the total value is 0.
    """
    by_asset: dict[str, Decimal] = {}
    for p in positions:
        if not p.is_active:
            continue
        v = value_position(p, current_prices)
        by_asset[p.asset.ticker] = by_asset.get(p.asset.ticker, ZERO) + v.value

    total = sum(by_asset.values(), ZERO)
    if total == ZERO:
        return []
    allocation = [
        AssetAllocation(asset=asset, value=value, percentage=float(value / total * 100))
        for asset, value in by_asset.items()
    ]
    allocation.sort(key=lambda a: a.value, reverse=True)
    return allocation


def portfolio_return(total: Decimal, initial_investment: Decimal) -> float:
    """``(total - initial) / initial * 100``; 0 when nothing was invested."""
    if initial_investment == ZERO:
        return 0.0
    return float((total - initial_investment) / initial_investment * 100)


def portfolio_risk(
    positions: Sequence[Position],
    current_prices: Mapping[str, Decimal],
) -> PortfolioRisk:
    """Average risk level, largest unrealized loss and mean squared return."""
    if not positions:
        return PortfolioRisk(average_risk_level=0.0, max_drawdown=ZERO, volatility=0.0)

    valuations = [value_position(p, current_prices) for p in positions]
    average_risk = sum(p.risk_level for p in positions) / len(positions)
    drawdown = min([ZERO, *(v.pnl for v in valuations)])
    volatility = sum((v.pnl_percent / 100) ** 2 for v in valuations) / len(valuations)
    return PortfolioRisk(
        average_risk_level=average_risk,
        max_drawdown=drawdown,
        volatility=volatility,
    )


def _opened_by(position: Position, end: datetime) -> bool:
    opened = position.position_details.date_opened
    if isinstance(opened, Genesis):
        return True
    if isinstance(opened, Absolute):
        return as_utc(opened.timestamp) <= as_utc(end)
    return False


def _open_at(position: Position, start: datetime) -> bool:
    closed = position.position_details.date_closed
    if closed is None:
        return True
    if isinstance(closed, Absolute):
        return as_utc(closed.timestamp) >= as_utc(start)
    # Closed before tracking began
    return False


def period_metrics(
    positions: Iterable[Position],
    current_prices: Mapping[str, Decimal],
    start: datetime,
    end: datetime,
) -> PeriodMetrics:
    """Value, P&L and return of positions open at some point in ``[start, end]``.

    Positions without an opening date are left out; genesis openings count
    as opened before any period.
    """
    in_period = [p for p in positions if _opened_by(p, end) and _open_at(p, start)]
    valuations = tuple(value_position(p, current_prices) for p in in_period)
    value = sum((v.value for v in valuations), ZERO)
    pnl = sum((v.pnl for v in valuations), ZERO)
    invested = sum((v.invested for v in valuations), ZERO)
    return PeriodMetrics(
        value=value,
        profit_loss=pnl,
        return_percent=portfolio_return(value, invested),
        valuations=valuations,
    )


# ---------------------------------------------------------------------------
# Valuation series
# ---------------------------------------------------------------------------


def day_change(
    valuations: Iterable[HistoricalValuation],
    now: Optional[datetime] = None,
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> DayChange:
    """Change of the latest valuation against one from ~24h earlier.

    The reference is the valuation closest to ``latest - 24h`` within
    *tolerance*. Without one, the most recent valuation before the latest
    is used and the result is flagged approximate. Projected records and
    records after *now* are ignored.
    """
    cutoff = as_utc(now) if now is not None else None
    points = sorted(
        (
            v
            for v in valuations
            if v.date_status != DateStatus.PROJECTED
            and (cutoff is None or as_utc(v.timestamp) <= cutoff)
        ),
        key=lambda v: as_utc(v.timestamp),
    )
    if len(points) < 2:
        latest = points[-1] if points else None
        return DayChange(change=ZERO, change_percent=0.0, latest=latest, reference=None, approximate=True)

    latest = points[-1]
    target = as_utc(latest.timestamp) - ONE_DAY
    candidates = [v for v in points[:-1] if abs(as_utc(v.timestamp) - target) <= tolerance]
    if candidates:
        reference = min(candidates, key=lambda v: abs(as_utc(v.timestamp) - target))
        approximate = False
    else:
        reference = points[-2]
        approximate = True
        logger.debug(
            f"No valuation near 24h before {latest.timestamp.isoformat()}; "
            f"using {reference.timestamp.isoformat()}"
        )

    change = latest.value - reference.value
    percent = float(change / reference.value * 100) if reference.value != ZERO else 0.0
    return DayChange(
        change=change,
        change_percent=percent,
        latest=latest,
        reference=reference,
        approximate=approximate,
    )


# ---------------------------------------------------------------------------
# Portfolios
# ---------------------------------------------------------------------------


def summarize_portfolio(
    portfolio: Portfolio,
    positions: Sequence[Position],
    current_prices: Mapping[str, Decimal],
    valuations: Iterable[HistoricalValuation] = (),
    now: Optional[datetime] = None,
    top_n: int = 3,
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> PortfolioSummary:
    """Build the dashboard summary for *portfolio*.

    Return is measured against ``initial_investment`` when the portfolio
    has one, otherwise against the capital in open positions.
    """
    owned = positions_in_portfolio(positions, portfolio)
    totals = total_value(owned, current_prices)
    if portfolio.initial_investment:
        ret = portfolio_return(totals.total_value, portfolio.initial_investment)
    else:
        ret = percentage_return(totals.unrealized_pnl, totals.invested)

    return PortfolioSummary(
        portfolio_id=portfolio.id,
        name=portfolio.name,
        total_value=totals.total_value,
        invested=totals.invested,
        unrealized_pnl=totals.unrealized_pnl,
        realized_pnl=totals.realized_pnl,
        return_percent=ret,
        day_change=day_change(valuations, now=now, tolerance=tolerance),
        top_holdings=top_holdings(owned, current_prices, n=top_n),
        allocation=asset_allocation(owned, current_prices),
        position_count=len(owned),
        open_count=totals.open_count,
        partial=totals.partial,
    )


def apply_summary(
    portfolio: Portfolio,
    summary: PortfolioSummary,
    now: Optional[datetime] = None,
) -> Portfolio:
    """Copy of *portfolio* with its cached summary fields refreshed.

    Day change is left unset when the series has no reference point.
    """
    has_reference = summary.day_change.reference is not None
    return portfolio.model_copy(
        update={
            "total_value": summary.total_value,
            "day_change": summary.day_change.change if has_reference else None,
            "day_change_percent": summary.day_change.change_percent if has_reference else None,
            "top_holdings": list(summary.top_holdings),
            "updated_at": now or datetime.now(timezone.utc),
        }
    )


def order_portfolios(portfolios: Iterable[Portfolio]) -> list[Portfolio]:
    """Pinned portfolio first, then most recently updated."""
    by_recency = sorted(portfolios, key=lambda p: as_utc(p.updated_at), reverse=True)
    return sorted(by_recency, key=lambda p: not p.is_pinned)


def set_pinned_portfolio(store: PortfolioStore, user_id: str, portfolio_id: str) -> Portfolio:
    """Make *portfolio_id* the user's only pinned portfolio.

    The unpin-then-pin swap is atomic in the store.

    Raises:
        PortfolioNotFoundError: If the portfolio does not exist for the user.
        PinnedPortfolioConflict: If the swap would not leave exactly one pin.
    """
    portfolio = store.set_pinned(user_id, portfolio_id)
    logger.info(f"Pinned portfolio {portfolio_id} for user {user_id}")
    return portfolio
