"""Shared CLI state and option parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer

from numisma.core.prices import load_prices, validate_prices
from numisma.models.config import AppConfig
from numisma.models.temporal import as_utc
from numisma.tracker import PortfolioTracker


@dataclass
class CLIState:
    """Per-invocation settings resolved by the root callback."""

    config: AppConfig
    user: str
    _tracker: Optional[PortfolioTracker] = field(default=None, repr=False)

    def tracker(self) -> PortfolioTracker:
        """Open the stores on first use."""
        if self._tracker is None:
            from numisma.db.factory import create_sqlite_stores

            stores = create_sqlite_stores(self.config.database_path)
            self._tracker = PortfolioTracker(stores, self.config)
        return self._tracker


def get_state(ctx: typer.Context) -> CLIState:
    """Return the state set up by the root callback."""
    state = ctx.find_root().obj
    if not isinstance(state, CLIState):
        raise typer.BadParameter("CLI state missing; run through the 'nms' entry point")
    return state


def parse_prices(prices_file: Optional[Path], price: Optional[list[str]]) -> dict[str, Decimal]:
    """Merge a price file with ``TICKER=PRICE`` options; options win."""
    prices: dict[str, Decimal] = {}
    try:
        if prices_file is not None:
            prices.update(load_prices(prices_file))
        raw: dict[str, str] = {}
        for item in price or []:
            ticker, sep, value = item.partition("=")
            if not sep or not ticker.strip():
                raise ValueError(f"Expected TICKER=PRICE, got '{item}'")
            raw[ticker.strip()] = value.strip()
        prices.update(validate_prices(raw))
    except FileNotFoundError as e:
        raise typer.BadParameter(f"Price file not found: {prices_file}") from e
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    return prices


def parse_moment(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp option; naive values are UTC."""
    if text is None:
        return None
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise typer.BadParameter(f"Invalid timestamp: {text}. Use ISO-8601, e.g. 2024-05-01T12:00") from e
