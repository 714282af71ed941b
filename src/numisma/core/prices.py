"""Price maps: validation and loading from files.

A price map is ``ticker -> price``. Absent tickers mean "unknown price",
which the valuator handles explicitly; a price of zero is a real quote.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from numisma.core.config import load_toml

logger = logging.getLogger(__name__)

PriceMap = Mapping[str, Decimal]


def validate_prices(raw: Mapping[str, Any]) -> dict[str, Decimal]:
    """Normalize a raw ticker/price mapping.

    Values are converted through ``str`` so floats do not leak binary
    rounding into Decimal math.

    Raises:
        ValueError: If a price is not numeric or is negative.
    """
    prices: dict[str, Decimal] = {}
    for ticker, value in raw.items():
        if value is None:
            raise ValueError(f"Price for {ticker} is missing; omit the ticker instead")
        try:
            price = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Price for {ticker} is not a number: {value!r}") from e
        if not price.is_finite():
            raise ValueError(f"Price for {ticker} is not finite: {value!r}")
        if price < 0:
            raise ValueError(f"Price for {ticker} is negative: {price}")
        prices[str(ticker)] = price
    return prices


def load_prices(path: Path) -> dict[str, Decimal]:
    """Load a price map from a TOML or JSON file.

    Both formats accept either a flat ``ticker = price`` table or one
    nested under a ``prices`` key.

    Example TOML format:
        [prices]
        BTC = 65000
        ETH = "3200.50"

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the format is unsupported or a price is invalid
    """
    suffix = path.suffix.lower()
    if suffix == ".toml":
        data = load_toml(path)
    elif suffix == ".json":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unsupported price file format: {path.suffix or path.name}")

    if not isinstance(data, dict):
        raise ValueError(f"Price file {path} must contain a table of ticker prices")
    table = data.get("prices", data)
    if not isinstance(table, dict):
        raise ValueError(f"'prices' in {path} must be a table")

    prices = validate_prices(table)
    logger.debug(f"Loaded {len(prices)} prices from {path}")
    return prices
