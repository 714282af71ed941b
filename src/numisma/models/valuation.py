"""Historical valuation records and series query/result types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field

from numisma.models.base import DomainModel


class DateStatus(str, Enum):
    """Role of a valuation within its portfolio's series.

    ACTIVE is the single "now" record and the only mutable one. Each new
    tick demotes it to HISTORICAL, which is immutable. PROJECTED records
    are forecasts placed after the ACTIVE timestamp.
    """

    ACTIVE = "ACTIVE"
    HISTORICAL = "HISTORICAL"
    PROJECTED = "PROJECTED"


class Bucket(str, Enum):
    """Aggregation bucket for a valuation series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class HistoricalValuation(DomainModel):
    """A point-in-time snapshot of a portfolio's total value."""

    id: str = Field(default_factory=lambda: str(uuid4())[:8], description="Unique valuation ID")
    portfolio_id: str = Field(description="Owning portfolio ID")
    value: Decimal = Field(ge=0, description="Total portfolio value")
    timestamp: datetime = Field(description="Time the value was observed")
    date_status: DateStatus = Field(default=DateStatus.ACTIVE)
    is_retroactive: bool = Field(default=False, description="Back-filled behind the ACTIVE record")
    notes: Optional[str] = Field(default=None)


# Default number of points shown per preset period
PERIOD_LIMITS = {"week": 50, "month": 100, "year": 365}

_PERIOD_SPANS = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


@dataclass(frozen=True)
class ValuationRange:
    """Inclusive time window for a series query.

    Either bound may be ``None`` (open-ended). ``limit`` caps the number of
    most recent points returned.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: Optional[int] = None

    @classmethod
    def for_period(cls, period: str, now: datetime) -> ValuationRange:
        """Preset window ending at *now* for ``week``, ``month`` or ``year``.

        Raises:
            ValueError: If *period* is unknown.
        """
        if period not in _PERIOD_SPANS:
            raise ValueError(f"Unknown period: {period}. Use one of {sorted(_PERIOD_SPANS)}")
        return cls(start=now - _PERIOD_SPANS[period], end=now, limit=PERIOD_LIMITS[period])


@dataclass(frozen=True)
class ValuationStats:
    """Summary statistics over a valuation series."""

    count: int
    latest: Optional[Decimal]
    oldest: Optional[Decimal]
    highest: Optional[Decimal]
    lowest: Optional[Decimal]
    average: Optional[Decimal]
    change: Decimal
    change_percent: float
