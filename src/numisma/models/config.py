"""Configuration models for Numisma."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Main application configuration.

    Loads configuration from environment variables with NUMISMA_ prefix.

    Attributes:
        data_dir: Directory for data storage
        db_path: Path to SQLite database (defaults to data_dir/numisma.db)
        log_level: Root log level for the CLI
        log_file: Optional file to mirror log output into
        user_id: User whose portfolios the CLI manages
        base_currency: Quote currency used when a portfolio has none
        top_holdings: Number of tickers kept in a portfolio summary
        day_change_tolerance_hours: How far from 24h a reference point may be
    """

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".numisma",
        description="Data directory"
    )
    db_path: Optional[Path] = Field(default=None, description="Database path")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", description="Log level"
    )
    log_file: Optional[Path] = Field(default=None, description="Log file path")
    user_id: str = Field(default="default", description="User whose portfolios the CLI manages")
    base_currency: str = Field(default="USD", description="Default quote currency")
    top_holdings: int = Field(default=3, ge=1, le=20, description="Top holdings in summaries")
    day_change_tolerance_hours: float = Field(
        default=6.0,
        gt=0,
        description="Max distance from the 24h mark for a day-change reference",
    )

    model_config = SettingsConfigDict(
        env_prefix="NUMISMA_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def database_path(self) -> Path:
        """Get the database path, defaulting to data_dir/numisma.db."""
        return self.db_path or (self.data_dir / "numisma.db")

    def ensure_data_dir(self) -> Path:
        """Ensure data directory exists and return its path."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir
