"""Settings and price-file loading for numisma."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from numisma.models.config import AppConfig


def load_toml(path: Path) -> dict[str, Any]:
    """Read a TOML price file such as ``[prices] BTC = 65000``.

    Values come back as TOML typed them; :mod:`numisma.core.prices` turns
    them into Decimals.

    Raises:
        FileNotFoundError: If the price file is missing
        tomllib.TOMLDecodeError: If it is not valid TOML
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_app_config() -> AppConfig:
    """Build fresh settings from ``NUMISMA_*`` variables, bypassing the cache.

    The CLI calls this once per invocation so that ``--db`` and ``--user``
    overrides start from the current environment.
    """
    return AppConfig()


_settings: AppConfig | None = None


def get_settings() -> AppConfig:
    """Process-wide settings used when a tracker is built without a config.

    The first call reads ``.env`` into the environment, then ``NUMISMA_*``.
    """
    global _settings
    if _settings is None:
        from dotenv import load_dotenv
        load_dotenv()
        _settings = AppConfig()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads them."""
    global _settings
    _settings = None
