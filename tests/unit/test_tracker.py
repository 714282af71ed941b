"""Unit tests for the portfolio tracker service."""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from numisma.errors import PortfolioNotFoundError, PositionClosedError
from numisma.models import AppConfig, Bucket, DateStatus
from numisma.tracker import PortfolioTracker

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _raw_position(name: str = "BTC swing", ticker: str = "BTC", portfolio: str = "Main") -> dict:
    """A position as found in an exported JSON file."""
    return {
        "name": name,
        "riskLevel": 5,
        "portfolio": portfolio,
        "asset": {"name": ticker, "ticker": ticker, "pair": f"{ticker}/USDT", "wallet": "spot"},
        "positionDetails": {
            "side": "buy",
            "dateOpened": "genesis",
            "orders": [
                {
                    "dateOpen": "genesis",
                    "status": "filled",
                    "totalCost": "100",
                    "averagePrice": "100",
                    "filled": 1,
                    "unit": "base",
                }
            ],
        },
    }


@pytest.fixture
def tracker(stores) -> PortfolioTracker:
    return PortfolioTracker(stores, AppConfig(base_currency="EUR"))


class TestPortfolios:
    """Tests for portfolio management."""

    def test_first_portfolio_is_pinned(self, tracker) -> None:
        first = tracker.create_portfolio("u1", "Main")
        second = tracker.create_portfolio("u1", "Side")
        assert first.is_pinned
        assert not second.is_pinned
        assert first.base_currency == "EUR"

    def test_create_with_pin_swaps(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        tracker.create_portfolio("u1", "Side", pin=True)
        assert [p.name for p in tracker.list_portfolios("u1") if p.is_pinned] == ["Side"]

    def test_duplicate_name(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        with pytest.raises(ValueError, match="already exists"):
            tracker.create_portfolio("u1", "Main")
        tracker.create_portfolio("u2", "Main")

    def test_resolve(self, tracker) -> None:
        """Portfolios resolve by ID, by name, or to the pinned one."""
        main = tracker.create_portfolio("u1", "Main")
        side = tracker.create_portfolio("u1", "Side")
        assert tracker.resolve_portfolio("u1").id == main.id
        assert tracker.resolve_portfolio("u1", side.id).id == side.id
        assert tracker.resolve_portfolio("u1", "Side").id == side.id
        with pytest.raises(PortfolioNotFoundError):
            tracker.resolve_portfolio("u2", main.id)
        with pytest.raises(PortfolioNotFoundError):
            tracker.resolve_portfolio("u2")

    def test_pin(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        tracker.create_portfolio("u1", "Side")
        tracker.pin("u1", "Side")
        tracker.pin("u1", "Side")
        assert tracker.resolve_portfolio("u1").name == "Side"

    def test_delete(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        tracker.import_positions("u1", [_raw_position()])
        tracker.delete_portfolio("u1", "Main")
        assert tracker.list_portfolios("u1") == []
        assert tracker.stores.positions.list_positions() == []


class TestPositions:
    """Tests for importing and closing positions."""

    def test_import_list(self, tracker) -> None:
        main = tracker.create_portfolio("u1", "Main")
        imported = tracker.import_positions("u1", [_raw_position(), _raw_position("ETH", "ETH")])
        assert len(imported) == 2
        assert [p.ticker for p in tracker.positions(main)] == ["BTC", "ETH"]

    def test_import_file_into_portfolio(self, tracker, tmp_path) -> None:
        """A file wrapped in {"positions": [...]} can be moved into a portfolio."""
        side = tracker.create_portfolio("u1", "Side")
        path = tmp_path / "positions.json"
        path.write_text(json.dumps({"positions": [_raw_position(portfolio="Elsewhere")]}))
        imported = tracker.import_positions("u1", path, portfolio_key="Side")
        assert imported[0].portfolio == side.id
        assert len(tracker.positions(side)) == 1

    def test_import_invalid(self, tracker) -> None:
        bad = _raw_position()
        bad["riskLevel"] = 42
        with pytest.raises(ValueError, match="#1"):
            tracker.import_positions("u1", [bad])
        with pytest.raises(ValueError):
            tracker.import_positions("u1", {"positions": "nope"})

    def test_close(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        position = tracker.import_positions("u1", [_raw_position()])[0]
        closed = tracker.close_position("u1", position.id, T0)
        assert closed.is_closed
        assert tracker.stores.positions.get_position(position.id).is_closed
        with pytest.raises(PositionClosedError):
            tracker.close_position("u1", position.id)
        with pytest.raises(KeyError):
            tracker.close_position("u1", "missing")

    def test_close_other_users_position(self, tracker) -> None:
        tracker.create_portfolio("u1", "Main")
        tracker.create_portfolio("u2", "Main")
        position = tracker.import_positions("u1", [_raw_position()])[0]
        with pytest.raises(KeyError):
            tracker.close_position("u2", position.id, T0)
        assert not tracker.stores.positions.get_position(position.id).is_closed

    def test_import_unknown_portfolio(self, tracker) -> None:
        """Nothing is saved when any position names a portfolio the user lacks."""
        tracker.create_portfolio("u1", "Main")
        tracker.create_portfolio("u2", "Side")
        with pytest.raises(PortfolioNotFoundError):
            tracker.import_positions("u1", [_raw_position(), _raw_position("ETH", "ETH", portfolio="Side")])
        assert tracker.stores.positions.list_positions() == []

    def test_import_stores_portfolio_id(self, tracker) -> None:
        main = tracker.create_portfolio("u1", "Main")
        imported = tracker.import_positions("u1", [_raw_position(), _raw_position("ETH", "ETH", portfolio=main.id)])
        assert [p.portfolio for p in imported] == [main.id, main.id]
        assert [p.portfolio for p in tracker.stores.positions.list_positions()] == [main.id, main.id]


class TestUserIsolation:
    """Two users with same-named portfolios never see each other's positions."""

    @pytest.fixture
    def shared_name(self, tracker) -> PortfolioTracker:
        tracker.create_portfolio("alice", "Main")
        tracker.create_portfolio("bob", "Main")
        tracker.import_positions("alice", [_raw_position()])
        return tracker

    def test_positions_scoped_to_owner(self, shared_name) -> None:
        alice = shared_name.resolve_portfolio("alice", "Main")
        bob = shared_name.resolve_portfolio("bob", "Main")
        assert [p.ticker for p in shared_name.positions(alice)] == ["BTC"]
        assert shared_name.positions(bob) == []

    def test_summary_scoped_to_owner(self, shared_name) -> None:
        summary = shared_name.summarize("bob", {"BTC": Decimal("120")}, now=T0)
        assert summary.total_value == Decimal("0")
        assert summary.top_holdings == []
        assert summary.position_count == 0

    def test_import_cannot_overwrite_other_users_position(self, shared_name) -> None:
        alice = shared_name.resolve_portfolio("alice", "Main")
        taken = shared_name.positions(alice)[0]
        raw = _raw_position("Hijack", "ETH")
        raw["id"] = taken.id
        with pytest.raises(ValueError, match="another user"):
            shared_name.import_positions("bob", [raw])
        assert shared_name.stores.positions.get_position(taken.id).ticker == "BTC"

    def test_delete_keeps_other_users_positions(self, shared_name) -> None:
        shared_name.delete_portfolio("bob", "Main")
        alice = shared_name.resolve_portfolio("alice", "Main")
        assert len(shared_name.positions(alice)) == 1


class TestValuation:
    """Tests for summaries and the valuation history."""

    @pytest.fixture
    def seeded(self, tracker) -> PortfolioTracker:
        tracker.create_portfolio("u1", "Main")
        tracker.import_positions("u1", [_raw_position(), _raw_position("ETH", "ETH")])
        return tracker

    def test_summarize_refreshes_cache(self, seeded) -> None:
        summary = seeded.summarize("u1", {"BTC": Decimal("150"), "ETH": Decimal("120")}, now=T0)
        assert summary.total_value == Decimal("270")
        assert summary.top_holdings == ["BTC", "ETH"]
        cached = seeded.resolve_portfolio("u1")
        assert cached.total_value == Decimal("270")
        assert cached.top_holdings == ["BTC", "ETH"]

    def test_summarize_without_refresh(self, seeded) -> None:
        seeded.summarize("u1", {"BTC": Decimal("150")}, refresh=False)
        assert seeded.resolve_portfolio("u1").total_value == Decimal("0")

    def test_day_change_from_history(self, seeded) -> None:
        seeded.record_valuation("u1", {"BTC": Decimal("100"), "ETH": Decimal("100")}, now=T0 - timedelta(days=1))
        seeded.record_valuation("u1", {"BTC": Decimal("110"), "ETH": Decimal("110")}, now=T0)
        summary = seeded.summarize("u1", {"BTC": Decimal("110"), "ETH": Decimal("110")}, now=T0)
        assert summary.day_change.change == Decimal("20")
        assert summary.day_change.change_percent == pytest.approx(10.0)
        assert seeded.resolve_portfolio("u1").day_change == Decimal("20")

    def test_record_and_history(self, seeded) -> None:
        prices = {"BTC": Decimal("100"), "ETH": Decimal("100")}
        for hours in (0, 6, 30):
            seeded.record_valuation("u1", prices, now=T0 + timedelta(hours=hours))
        points = seeded.history("u1")
        assert len(points) == 3
        assert points[-1].date_status == DateStatus.ACTIVE
        assert len(seeded.history("u1", bucket=Bucket.DAY)) == 2

    def test_history_period(self, seeded) -> None:
        prices = {"BTC": Decimal("100")}
        seeded.record_valuation("u1", prices, now=T0 - timedelta(days=20))
        seeded.record_valuation("u1", prices, now=T0)
        assert len(seeded.history("u1", period="week", now=T0)) == 1
        assert len(seeded.history("u1", period="month", now=T0)) == 2
        with pytest.raises(ValueError):
            seeded.history("u1", period="fortnight", now=T0)
