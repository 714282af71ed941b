"""Portfolio tracker: wires stores, price maps and the valuation engine together.

The engine is pure; this service is where reads, writes and logging
happen. The CLI is a thin layer over it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from numisma.core.config import get_settings
from numisma.db.factory import StoreBundle
from numisma.engine.aggregator import (
    PortfolioSummary,
    apply_summary,
    order_portfolios,
    set_pinned_portfolio,
    summarize_portfolio,
    total_value,
)
from numisma.engine.series import ValuationSeries, aggregate
from numisma.errors import PortfolioNotFoundError
from numisma.models.config import AppConfig
from numisma.models.portfolio import Portfolio
from numisma.models.position import Position
from numisma.models.temporal import Absolute, Genesis
from numisma.models.valuation import Bucket, HistoricalValuation, ValuationRange

logger = logging.getLogger(__name__)


class PortfolioTracker:
    """Application service for one user's portfolios.

    Attributes:
        stores: Portfolio, position and valuation stores on one backend
        config: Application settings
        series: Valuation series over ``stores.valuations``
    """

    def __init__(self, stores: StoreBundle, config: Optional[AppConfig] = None) -> None:
        self.stores = stores
        self.config = config or get_settings()
        self.series = ValuationSeries(stores.valuations)

    @property
    def _tolerance(self) -> timedelta:
        return timedelta(hours=self.config.day_change_tolerance_hours)

    # -- portfolios ----------------------------------------------------------

    def create_portfolio(
        self,
        user_id: str,
        name: str,
        pin: bool = False,
        **fields: Any,
    ) -> Portfolio:
        """Create a portfolio; a user's first portfolio is pinned automatically.

        Raises:
            ValueError: If the user already has a portfolio with this name.
        """
        if self.stores.portfolios.get_portfolio_by_name(user_id, name) is not None:
            raise ValueError(f"Portfolio '{name}' already exists")
        fields.setdefault("base_currency", self.config.base_currency)
        portfolio = Portfolio(name=name, user_id=user_id, **fields)
        self.stores.portfolios.save_portfolio(portfolio)
        logger.info(f"Created portfolio {portfolio.id} ({name}) for user {user_id}")

        if pin or self.stores.portfolios.get_pinned(user_id) is None:
            portfolio = set_pinned_portfolio(self.stores.portfolios, user_id, portfolio.id)
        return portfolio

    def resolve_portfolio(self, user_id: str, key: Optional[str] = None) -> Portfolio:
        """Find a portfolio by ID or name; with no key, the pinned one.

        Raises:
            PortfolioNotFoundError: If nothing matches.
        """
        store = self.stores.portfolios
        if key is None:
            pinned = store.get_pinned(user_id)
            if pinned is None:
                raise PortfolioNotFoundError("(pinned)")
            return pinned
        portfolio = store.get_portfolio(key)
        if portfolio is not None and portfolio.user_id == user_id:
            return portfolio
        portfolio = store.get_portfolio_by_name(user_id, key)
        if portfolio is None:
            raise PortfolioNotFoundError(key)
        return portfolio

    def list_portfolios(self, user_id: str) -> list[Portfolio]:
        """The user's portfolios, pinned first then most recently updated."""
        return order_portfolios(self.stores.portfolios.list_portfolios(user_id))

    def pin(self, user_id: str, key: str) -> Portfolio:
        """Make a portfolio the user's only pinned one."""
        portfolio = self.resolve_portfolio(user_id, key)
        return set_pinned_portfolio(self.stores.portfolios, user_id, portfolio.id)

    def delete_portfolio(self, user_id: str, key: str) -> Portfolio:
        """Delete a portfolio with its positions and valuations."""
        portfolio = self.resolve_portfolio(user_id, key)
        self.stores.portfolios.delete_portfolio(portfolio.id)
        return portfolio

    # -- positions -----------------------------------------------------------

    def _owns(self, user_id: str, position: Position) -> bool:
        owner = self.stores.portfolios.get_portfolio(position.portfolio)
        return owner is not None and owner.user_id == user_id

    def positions(self, portfolio: Portfolio) -> list[Position]:
        """Positions that belong to *portfolio*, in insertion order."""
        return self.stores.positions.list_positions(portfolio.id)

    def import_positions(
        self,
        user_id: str,
        source: Union[Path, list, dict],
        portfolio_key: Optional[str] = None,
    ) -> list[Position]:
        """Import positions from a JSON file or already-parsed data.

        Accepts a list of positions or an object with a ``positions`` list,
        in camelCase or snake_case. With *portfolio_key*, every imported
        position is moved into that portfolio; otherwise each position's own
        ``portfolio`` must name one of *user_id*'s portfolios by ID or name.
        Positions are stored against the resolved portfolio ID, and nothing
        is saved unless every position validates and resolves.

        Raises:
            ValueError: If the data is not a list of valid positions, or a
                position ID already belongs to another user.
            PortfolioNotFoundError: If a position names no portfolio of the user.
        """
        data = source
        if isinstance(source, Path):
            with open(source, encoding="utf-8") as f:
                data = json.load(f)
        if isinstance(data, dict):
            data = data.get("positions", [])
        if not isinstance(data, list):
            raise ValueError("Expected a list of positions")

        target = self.resolve_portfolio(user_id, portfolio_key) if portfolio_key else None
        resolved: dict[str, Portfolio] = {}
        imported = []
        for index, raw in enumerate(data):
            try:
                position = Position.model_validate(raw)
            except ValidationError as e:
                raise ValueError(f"Position #{index + 1} is invalid: {e}") from e
            owner = target
            if owner is None:
                if position.portfolio not in resolved:
                    resolved[position.portfolio] = self.resolve_portfolio(user_id, position.portfolio)
                owner = resolved[position.portfolio]
            existing = self.stores.positions.get_position(position.id)
            if existing is not None and not self._owns(user_id, existing):
                raise ValueError(f"Position #{index + 1} has an ID already used by another user")
            imported.append(position.model_copy(update={"portfolio": owner.id}))

        for position in imported:
            self.stores.positions.save_position(position)
        logger.info(f"Imported {len(imported)} positions for user {user_id}")
        return imported

    def close_position(
        self,
        user_id: str,
        position_id: str,
        when: Optional[Union[datetime, Absolute, Genesis]] = None,
    ) -> Position:
        """Close one of *user_id*'s positions; closing is terminal.

        Raises:
            KeyError: If the position does not exist or belongs to a portfolio
                the user does not own.
            PositionClosedError: If it is already closed.
        """
        position = self.stores.positions.get_position(position_id)
        if position is None or not self._owns(user_id, position):
            raise KeyError(position_id)
        if when is None:
            when = datetime.now(timezone.utc)
        if isinstance(when, datetime):
            when = Absolute(timestamp=when)
        closed = position.close(when)
        self.stores.positions.save_position(closed)
        logger.info(f"Closed position {position_id}")
        return closed

    # -- valuation -----------------------------------------------------------

    def summarize(
        self,
        user_id: str,
        prices: Mapping[str, Decimal],
        key: Optional[str] = None,
        now: Optional[datetime] = None,
        refresh: bool = True,
    ) -> PortfolioSummary:
        """Summarize a portfolio and, with *refresh*, cache the summary on it."""
        portfolio = self.resolve_portfolio(user_id, key)
        valuations = self.series.query(portfolio.id)
        summary = summarize_portfolio(
            portfolio,
            self.positions(portfolio),
            prices,
            valuations=valuations,
            now=now,
            top_n=self.config.top_holdings,
            tolerance=self._tolerance,
        )
        if summary.partial:
            logger.warning(f"Summary for {portfolio.name} is partial: some prices were missing")
        if refresh:
            self.stores.portfolios.save_portfolio(apply_summary(portfolio, summary, now=now))
        return summary

    def record_valuation(
        self,
        user_id: str,
        prices: Mapping[str, Decimal],
        key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> HistoricalValuation:
        """Value a portfolio at *prices* and append it to the series.

        Raises:
            DuplicateTimestamp: If a historical record exists at *now*.
        """
        portfolio = self.resolve_portfolio(user_id, key)
        totals = total_value(self.positions(portfolio), prices)
        if totals.partial:
            logger.warning(f"Recording a partial valuation for {portfolio.name}")
        moment = now or datetime.now(timezone.utc)
        return self.series.append(portfolio.id, totals.total_value, moment)

    def history(
        self,
        user_id: str,
        key: Optional[str] = None,
        period: Optional[str] = None,
        bucket: Optional[Union[Bucket, str]] = None,
        now: Optional[datetime] = None,
    ) -> list[HistoricalValuation]:
        """A portfolio's valuation series, optionally windowed and bucketed."""
        portfolio = self.resolve_portfolio(user_id, key)
        window = None
        if period is not None:
            window = ValuationRange.for_period(period, now or datetime.now(timezone.utc))
        points = self.series.query(portfolio.id, range=window)
        if bucket is not None:
            return aggregate(points, bucket)
        return points.to_list()
