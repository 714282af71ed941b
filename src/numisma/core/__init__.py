"""Core utilities and configuration."""

from numisma.core.config import (
    get_settings,
    load_app_config,
    load_toml,
)
from numisma.core.prices import PriceMap, load_prices, validate_prices

__all__ = [
    "load_toml",
    "load_app_config",
    "get_settings",
    "PriceMap",
    "load_prices",
    "validate_prices",
]
