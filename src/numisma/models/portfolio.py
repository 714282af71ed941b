"""Portfolio models: the portfolio record and its summary fields."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field

from numisma.models.base import DomainModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskProfile(str, Enum):
    """Risk classification a user assigns to a portfolio."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"
    CUSTOM = "custom"


class TargetAllocation(DomainModel):
    """Target share of the portfolio for one asset."""

    asset: str = Field(description="Asset ticker")
    percentage: float = Field(ge=0, le=100, description="Target percentage (0-100)")


class Portfolio(DomainModel):
    """A named collection of positions owned by one user.

    ``total_value``, ``day_change``, ``day_change_percent`` and
    ``top_holdings`` are cached summary fields; they are refreshed from
    :func:`numisma.engine.aggregator.apply_summary`.
    """

    id: str = Field(default_factory=lambda: str(uuid4())[:8], description="Unique portfolio ID")
    name: str = Field(description="User-friendly portfolio name")
    user_id: str = Field(description="Owning user")
    description: Optional[str] = Field(default=None)
    total_value: Decimal = Field(default=Decimal("0"), description="Last computed total value")
    is_pinned: bool = Field(default=False, description="Primary portfolio for the user")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # Summary fields
    day_change: Optional[Decimal] = Field(default=None)
    day_change_percent: Optional[float] = Field(default=None)
    top_holdings: list[str] = Field(default_factory=list)

    base_currency: Optional[str] = Field(default=None, description="Quote currency for valuation")
    risk_profile: Optional[RiskProfile] = Field(default=None)
    target_allocations: list[TargetAllocation] = Field(default_factory=list)
    initial_investment: Optional[Decimal] = Field(default=None, ge=0)
    is_public: bool = Field(default=False)
