"""Unit tests for price maps."""

import json
from decimal import Decimal

import pytest

from numisma.core.prices import load_prices, validate_prices


class TestValidatePrices:
    """Tests for price normalization."""

    def test_floats_go_through_str(self) -> None:
        """Floats keep their printed value, not binary noise."""
        assert validate_prices({"BTC": 0.1}) == {"BTC": Decimal("0.1")}

    def test_zero_is_a_price(self) -> None:
        assert validate_prices({"DEAD": 0}) == {"DEAD": Decimal("0")}

    @pytest.mark.parametrize("value", [None, "abc", "NaN", "Infinity", -1])
    def test_rejected(self, value) -> None:
        with pytest.raises(ValueError):
            validate_prices({"BTC": value})


class TestLoadPrices:
    """Tests for price files."""

    def test_toml_table(self, tmp_path) -> None:
        path = tmp_path / "prices.toml"
        path.write_text('[prices]\nBTC = 65000\nETH = "3200.50"\n')
        assert load_prices(path) == {"BTC": Decimal("65000"), "ETH": Decimal("3200.50")}

    def test_flat_json(self, tmp_path) -> None:
        path = tmp_path / "prices.json"
        path.write_text(json.dumps({"BTC": "65000", "SOL": 150}))
        assert load_prices(path) == {"BTC": Decimal("65000"), "SOL": Decimal("150")}

    def test_unsupported_suffix(self, tmp_path) -> None:
        path = tmp_path / "prices.csv"
        path.write_text("BTC,65000")
        with pytest.raises(ValueError, match="Unsupported"):
            load_prices(path)

    def test_non_table(self, tmp_path) -> None:
        path = tmp_path / "prices.json"
        path.write_text(json.dumps([1, 2]))
        with pytest.raises(ValueError):
            load_prices(path)
