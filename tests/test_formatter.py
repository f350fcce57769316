"""Unit tests for display rounding and rendering."""

import pytest
from decimal import Decimal

from core.formatter import (
    decimal_places,
    format_market_human,
    format_market_value,
    format_rows_human,
    rows_payload,
)
from models.expression import DisplayRow
from models.market import CacheMetadata, CacheStatus, MarketKind, MarketOutput


class TestMarketRounding:
    """Test suite for magnitude-dependent rounding."""

    @pytest.mark.parametrize("value, expected", [
        ("9.876", "9.88"),
        ("12.345", "12.35"),
        ("0.005", "0.01"),
        ("456.78", "456.8"),
        ("456.75", "456.8"),
        ("1234.56", "1235"),
        ("1234.5", "1235"),
        ("10000000", "10000000"),
        ("-12.345", "-12.35"),
    ])
    def test_format_market_value(self, value: str, expected: str) -> None:
        assert format_market_value(Decimal(value)) == expected

    def test_boundaries(self) -> None:
        assert decimal_places(Decimal("99.99")) == 2
        assert decimal_places(Decimal("100")) == 1
        assert decimal_places(Decimal("999.99")) == 1
        assert decimal_places(Decimal("1000")) == 0
        assert decimal_places(Decimal("-1500")) == 0

    def test_places_follow_unrounded_magnitude(self) -> None:
        assert format_market_value(Decimal("99.999")) == "100.00"

    def test_negative_zero_is_normalized(self) -> None:
        assert format_market_value(Decimal("-0.001")) == "0.00"

    def test_values_beyond_context_precision(self) -> None:
        assert format_market_value(Decimal("1e30")) == "1" + "0" * 30
        assert format_market_value(Decimal("12345678901234567890123456789.5")) == (
            "12345678901234567890123456790"
        )


class TestRendering:
    """Test suite for row and market output rendering."""

    def test_rows_payload(self) -> None:
        rows = [DisplayRow(title="6", subtitle="Numeric result", arg="6")]
        assert rows_payload(rows) == {
            "items": [{"title": "6", "subtitle": "Numeric result", "arg": "6", "valid": True}]
        }

    def test_rows_human(self) -> None:
        rows = [
            DisplayRow(title="1 BTC = 60000 USD", subtitle="provider: coinbase", arg="60000 USD"),
            DisplayRow(title="bare"),
        ]
        assert format_rows_human(rows) == "1 BTC = 60000 USD | provider: coinbase\nbare"

    def test_market_human(self) -> None:
        output = MarketOutput(
            kind=MarketKind.FX,
            base="USD",
            quote="JPY",
            amount="100",
            unit_price="31.25",
            converted="3125",
            provider="frankfurter",
            fetched_at="2024-01-01T12:00:00Z",
            cache=CacheMetadata(
                status=CacheStatus.LIVE,
                key="fx-usd-jpy",
                ttl_secs=86400,
                age_secs=0
            )
        )
        assert format_market_human(output) == (
            "FX 100 USD -> 3125 JPY (price=31.25 provider=frankfurter cache=live)"
        )
