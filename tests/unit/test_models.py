"""Unit tests for order, position, portfolio and valuation models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from numisma.errors import PositionClosedError
from numisma.models import (
    GENESIS,
    Absolute,
    BaseSize,
    Genesis,
    HistoricalValuation,
    Order,
    OrderStatus,
    PercentageSize,
    Portfolio,
    Position,
    PositionStatus,
    QuoteSize,
    StopLossOrder,
    TakeProfitOrder,
    TradeSide,
    ValuationRange,
)


class TestOrder:
    """Tests for the Order model."""

    def test_flat_unit_is_folded(self) -> None:
        """A flat filled/unit pair becomes a tagged size."""
        order = Order(date_open="2024-01-01T00:00:00", filled="0.5", unit="quote", status="filled")
        assert order.filled == QuoteSize(amount=Decimal("0.5"))

    def test_unit_defaults_to_base(self) -> None:
        """Without a unit the amount is in base units."""
        order = Order(date_open="genesis", filled="2")
        assert isinstance(order.filled, BaseSize)

    def test_camel_case_input(self) -> None:
        """Exported camelCase keys are accepted."""
        order = Order.model_validate(
            {
                "dateOpen": "2024-01-01T00:00:00",
                "averagePrice": "100",
                "totalCost": "250",
                "status": "filled",
                "filled": 2.5,
                "unit": "base",
                "estimatedCost": "250",
            }
        )
        assert order.total_cost == Decimal("250")
        assert order.average_price == Decimal("100")
        assert order.is_filled

    def test_percentage_bounds(self) -> None:
        """Percentage sizes must lie in (0, 1]."""
        Order(date_open=GENESIS, filled="1", unit="percentage")
        with pytest.raises(ValidationError):
            Order(date_open=GENESIS, filled="1.5", unit="percentage")
        with pytest.raises(ValidationError):
            Order(date_open=GENESIS, filled="0", unit="percentage")

    def test_genesis_fee(self) -> None:
        """Fees may be the genesis marker."""
        order = Order(date_open=GENESIS, fee="genesis")
        assert isinstance(order.fee, Genesis)
        assert order.model_dump(by_alias=True)["fee"] == "genesis"

    def test_numeric_fee(self) -> None:
        """Numeric fees stay Decimal."""
        order = Order(date_open=GENESIS, fee="0.25", fee_unit="USDT")
        assert order.fee == Decimal("0.25")

    def test_defaults(self) -> None:
        """New orders are submitted market orders with a short ID."""
        order = Order(date_open=GENESIS)
        assert order.status == OrderStatus.SUBMITTED
        assert len(order.id) == 8
        assert not order.is_filled
        assert not order.is_cancelled

    def test_frozen(self) -> None:
        """Orders are immutable."""
        order = Order(date_open=GENESIS)
        with pytest.raises(ValidationError):
            order.status = OrderStatus.FILLED  # type: ignore


class TestExitOrders:
    """Tests for stop-loss and take-profit orders."""

    def test_size_is_required(self) -> None:
        """Exit orders need a size."""
        with pytest.raises(ValidationError):
            StopLossOrder(date_open=GENESIS, trigger="90")

    def test_one_unit_applies_to_size_and_filled(self) -> None:
        """A flat unit tags both size and filled."""
        order = TakeProfitOrder(date_open=GENESIS, size="0.5", filled="0.25", unit="percentage", tier=1)
        assert order.size == PercentageSize(amount=Decimal("0.5"))
        assert order.filled == PercentageSize(amount=Decimal("0.25"))

    def test_tagged_size_input(self) -> None:
        """Already-tagged sizes pass through."""
        order = StopLossOrder(date_open=GENESIS, size={"unit": "quote", "amount": "500"})
        assert order.size == QuoteSize(amount=Decimal("500"))


class TestPosition:
    """Tests for the Position model and its lifecycle."""

    def test_defaults(self, make_position) -> None:
        """New positions are active buys."""
        position = make_position()
        assert position.is_active
        assert position.side == TradeSide.BUY
        assert position.ticker == "BTC"

    def test_risk_level_bounds(self, make_position) -> None:
        """Risk level must be between 1 and 10."""
        with pytest.raises(ValidationError):
            make_position(risk_level=11)
        with pytest.raises(ValidationError):
            make_position(risk_level=0)

    def test_closed_requires_date(self, make_position) -> None:
        """A closed position without date_closed is rejected."""
        with pytest.raises(ValidationError):
            make_position(status="closed")

    def test_closed_with_genesis_date(self, make_position) -> None:
        """Genesis is a valid close date."""
        position = make_position(status="closed", date_closed="genesis")
        assert position.is_closed

    def test_with_order_returns_copy(self, make_position, make_order) -> None:
        """Adding an order leaves the original untouched."""
        position = make_position()
        updated = position.with_order(make_order())
        assert len(position.position_details.orders) == 0
        assert len(updated.position_details.orders) == 1

    def test_replace_order(self, make_position, make_order) -> None:
        """An order is replaced by ID."""
        order = make_order(status="submitted")
        position = make_position(orders=(order,))
        filled = order.model_copy(update={"status": OrderStatus.FILLED})
        updated = position.replace_order(filled)
        assert updated.position_details.orders[0].is_filled

    def test_replace_unknown_order(self, make_position, make_order) -> None:
        """Replacing a missing order raises KeyError."""
        with pytest.raises(KeyError):
            make_position().replace_order(make_order())

    def test_close_is_terminal(self, make_position, make_order) -> None:
        """Closed positions refuse mutation and a second close."""
        closed = make_position().close(Absolute(timestamp=datetime(2024, 2, 1, tzinfo=timezone.utc)))
        assert closed.position_details.status == PositionStatus.CLOSED
        with pytest.raises(PositionClosedError):
            closed.with_order(make_order())
        with pytest.raises(PositionClosedError):
            closed.replace_order(make_order())
        with pytest.raises(PositionClosedError):
            closed.close(GENESIS)

    def test_json_round_trip(self, make_position, make_order, make_exit) -> None:
        """A position survives a camelCase JSON round trip."""
        position = make_position(
            orders=(make_order(fee="genesis"), make_order(unit="quote", filled="50")),
            stop_loss=[make_exit(trigger=Decimal("90"))],
        )
        restored = Position.model_validate_json(position.model_dump_json(by_alias=True))
        assert restored.model_dump() == position.model_dump()
        assert '"positionDetails"' in position.model_dump_json(by_alias=True)


class TestPortfolio:
    """Tests for the Portfolio model."""

    def test_defaults(self) -> None:
        """New portfolios are unpinned and empty."""
        portfolio = Portfolio(name="Main", user_id="u1")
        assert not portfolio.is_pinned
        assert portfolio.total_value == Decimal("0")
        assert portfolio.top_holdings == []

    def test_target_allocation_bounds(self) -> None:
        """Target percentages are 0-100."""
        with pytest.raises(ValidationError):
            Portfolio(name="Main", user_id="u1", target_allocations=[{"asset": "BTC", "percentage": 120}])


class TestValuationModels:
    """Tests for valuation records and ranges."""

    def test_negative_value_rejected(self) -> None:
        """Valuations are non-negative."""
        with pytest.raises(ValidationError):
            HistoricalValuation(portfolio_id="p", value=Decimal("-1"), timestamp=datetime.now())

    def test_period_presets(self) -> None:
        """Preset periods carry their default limits."""
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        week = ValuationRange.for_period("week", now)
        assert week.limit == 50
        assert (week.end - week.start).days == 7
        assert ValuationRange.for_period("month", now).limit == 100
        assert ValuationRange.for_period("year", now).limit == 365

    def test_unknown_period(self) -> None:
        """Unknown periods raise."""
        with pytest.raises(ValueError):
            ValuationRange.for_period("decade", datetime.now())
