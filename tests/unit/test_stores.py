"""Unit tests for the SQLite stores."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from numisma.db.protocols import PortfolioStore, PositionStore, ValuationStore
from numisma.db.sqlite.connection import Database, format_timestamp, parse_timestamp
from numisma.errors import PinnedPortfolioConflict, PortfolioNotFoundError
from numisma.models import Absolute, Portfolio, RiskProfile, TargetAllocation

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestProtocolConformance:
    """The SQLite stores satisfy the storage protocols."""

    def test_protocols(self, stores) -> None:
        assert isinstance(stores.portfolios, PortfolioStore)
        assert isinstance(stores.positions, PositionStore)
        assert isinstance(stores.valuations, ValuationStore)


class TestDatabase:
    """Tests for connection handling."""

    def test_schema_created(self, stores) -> None:
        for table in ("portfolios", "positions", "valuations"):
            assert stores.db.table_exists(table)

    def test_transaction_rolls_back(self, stores) -> None:
        """A failing block leaves no partial writes behind."""
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="Main", user_id="u1"))
        with pytest.raises(RuntimeError):
            with stores.db.transaction() as conn:
                conn.execute("UPDATE portfolios SET name = 'Renamed' WHERE id = 'p1'")
                raise RuntimeError("boom")
        assert stores.portfolios.get_portfolio("p1").name == "Main"

    def test_file_database(self, tmp_path) -> None:
        db = Database(tmp_path / "nested" / "numisma.db")
        assert db.table_exists("valuations")
        assert db.get_row_count("portfolios") == 0

    def test_timestamps_sort_as_text(self) -> None:
        early = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        late = datetime(2024, 1, 1, 10, 0, 0, 1, tzinfo=timezone.utc)
        assert format_timestamp(early) < format_timestamp(late)
        assert parse_timestamp(format_timestamp(late)) == late


class TestPortfolioStore:
    """Tests for portfolio persistence and pinning."""

    def test_round_trip(self, stores) -> None:
        portfolio = Portfolio(
            id="p1",
            name="Main",
            user_id="u1",
            total_value=Decimal("1234.56"),
            day_change=Decimal("-3.5"),
            day_change_percent=-0.28,
            top_holdings=["BTC", "ETH"],
            base_currency="EUR",
            risk_profile=RiskProfile.MODERATE,
            target_allocations=[TargetAllocation(asset="BTC", percentage=60)],
            initial_investment=Decimal("1000"),
            created_at=T0,
            updated_at=T0,
        )
        stores.portfolios.save_portfolio(portfolio)
        assert stores.portfolios.get_portfolio("p1").model_dump() == portfolio.model_dump()

    def test_get_by_name(self, stores) -> None:
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="Main", user_id="u1"))
        assert stores.portfolios.get_portfolio_by_name("u1", "Main").id == "p1"
        assert stores.portfolios.get_portfolio_by_name("u2", "Main") is None

    def test_set_pinned_swaps(self, stores) -> None:
        """Pinning twice leaves exactly one pinned portfolio."""
        for pid in ("p1", "p2"):
            stores.portfolios.save_portfolio(Portfolio(id=pid, name=pid, user_id="u1"))
        stores.portfolios.set_pinned("u1", "p1")
        pinned = stores.portfolios.set_pinned("u1", "p2")
        assert pinned.is_pinned
        assert [p.id for p in stores.portfolios.list_portfolios("u1") if p.is_pinned] == ["p2"]
        assert stores.portfolios.get_pinned("u1").id == "p2"

    def test_set_pinned_other_user(self, stores) -> None:
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="Main", user_id="u1"))
        with pytest.raises(PortfolioNotFoundError):
            stores.portfolios.set_pinned("u2", "p1")
        with pytest.raises(PortfolioNotFoundError):
            stores.portfolios.set_pinned("u1", "missing")

    def test_pins_are_per_user(self, stores) -> None:
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="A", user_id="u1", is_pinned=True))
        stores.portfolios.save_portfolio(Portfolio(id="p2", name="B", user_id="u2", is_pinned=True))
        assert stores.portfolios.get_pinned("u1").id == "p1"
        assert stores.portfolios.get_pinned("u2").id == "p2"

    def test_second_pinned_save_rejected(self, stores) -> None:
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="A", user_id="u1", is_pinned=True))
        with pytest.raises(PinnedPortfolioConflict):
            stores.portfolios.save_portfolio(Portfolio(id="p2", name="B", user_id="u1", is_pinned=True))
        assert stores.portfolios.get_portfolio("p2") is None

    def test_list_order(self, stores) -> None:
        """Pinned first, then most recently updated."""
        stores.portfolios.save_portfolio(
            Portfolio(id="old", name="old", user_id="u1", updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        )
        stores.portfolios.save_portfolio(Portfolio(id="new", name="new", user_id="u1", updated_at=T0))
        stores.portfolios.save_portfolio(
            Portfolio(
                id="pin",
                name="pin",
                user_id="u1",
                is_pinned=True,
                updated_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
            )
        )
        assert [p.id for p in stores.portfolios.list_portfolios("u1")] == ["pin", "new", "old"]

    def test_delete_cascades(self, stores, make_position) -> None:
        """Deleting a portfolio drops its own positions and valuations only."""
        stores.portfolios.save_portfolio(Portfolio(id="p1", name="Main", user_id="u1"))
        stores.portfolios.save_portfolio(Portfolio(id="p2", name="Main", user_id="u2"))
        stores.positions.save_position(make_position(portfolio="p1"))
        stores.positions.save_position(make_position(portfolio="p2"))
        stores.valuations.append("p1", Decimal("100"), T0)

        assert stores.portfolios.delete_portfolio("p1")
        assert stores.portfolios.get_portfolio("p1") is None
        assert [p.portfolio for p in stores.positions.list_positions()] == ["p2"]
        assert list(stores.valuations.iter_valuations("p1")) == []
        assert not stores.portfolios.delete_portfolio("p1")


class TestPositionStore:
    """Tests for position persistence."""

    def test_round_trip(self, stores, make_position, make_order, make_exit) -> None:
        position = make_position(
            orders=(make_order(fee="genesis"), make_order(unit="quote", filled="50")),
            take_profit=[make_exit("take_profit", trigger=Decimal("150"), size="0.5", unit="percentage", tier=1)],
        )
        stores.positions.save_position(position)
        loaded = stores.positions.get_position(position.id)
        assert loaded.model_dump() == position.model_dump()

    def test_update_in_place(self, stores, make_position) -> None:
        position = make_position()
        stores.positions.save_position(position)
        stores.positions.save_position(position.close(Absolute(timestamp=T0)))
        assert stores.positions.get_position(position.id).is_closed
        assert len(stores.positions.list_positions()) == 1

    def test_list_by_portfolio(self, stores, make_position) -> None:
        first = make_position(portfolio="main")
        second = make_position(portfolio="side")
        third = make_position(portfolio="main")
        for p in (first, second, third):
            stores.positions.save_position(p)
        assert [p.id for p in stores.positions.list_positions("main")] == [first.id, third.id]

    def test_delete(self, stores, make_position) -> None:
        position = make_position()
        stores.positions.save_position(position)
        assert stores.positions.delete_position(position.id)
        assert not stores.positions.delete_position(position.id)
        assert stores.positions.get_position(position.id) is None
