"""Unit tests for the market service."""

import asyncio
import pytest
import re
from datetime import timedelta
from decimal import Decimal

from errors import ProviderUnavailableError, UserInputError
from models.market import (
    CacheEntry,
    CacheStatus,
    MarketKind,
    MarketRequest,
    PriceQuote,
)


class TestResolveMarket:
    """Test suite for fx and crypto conversions."""

    def test_fx_output(self, service) -> None:
        request = MarketRequest.build(MarketKind.FX, "usd", "jpy", "100")
        output = asyncio.run(service.resolve_market(request))

        assert output.kind == MarketKind.FX
        assert output.base == "USD"
        assert output.quote == "JPY"
        assert output.amount == "100"
        assert output.unit_price == "31.25"
        assert output.converted == "3125"
        assert output.provider == "frankfurter"
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", output.fetched_at)
        assert output.cache.status == CacheStatus.LIVE
        assert output.cache.key == "fx-usd-jpy"
        assert output.cache.ttl_secs == 86400

    def test_crypto_output(self, service) -> None:
        request = MarketRequest.build(MarketKind.CRYPTO, "btc", "usd", "0.5")
        output = asyncio.run(service.resolve_market(request))

        assert output.converted == "33660.56"
        assert output.provider == "coinbase"
        assert output.cache.key == "crypto-btc-usd"
        assert output.cache.ttl_secs == 300

    def test_second_lookup_is_served_from_cache(self, service, fx_provider) -> None:
        request = MarketRequest.build(MarketKind.FX, "usd", "jpy", "1")

        async def twice():
            await service.resolve_market(request)
            return await service.resolve_market(request)

        output = asyncio.run(twice())

        assert output.cache.status == CacheStatus.CACHE_FRESH
        assert fx_provider.calls == [("USD", "JPY")]

    def test_unknown_pair(self, service) -> None:
        request = MarketRequest.build(MarketKind.FX, "usd", "xyz", "1")

        with pytest.raises(ProviderUnavailableError, match="frankfurter: unsupported trading pair"):
            asyncio.run(service.resolve_market(request))

    def test_amount_beyond_context_precision(self, service) -> None:
        request = MarketRequest.build(MarketKind.FX, "usd", "jpy", "1e25")
        output = asyncio.run(service.resolve_market(request))

        assert output.amount == "1" + "0" * 25
        assert output.converted == "3125" + "0" * 23

    def test_converted_keeps_full_precision(self, service) -> None:
        request = MarketRequest.build(MarketKind.FX, "usd", "jpy", "123456789012345678901234567.5")
        output = asyncio.run(service.resolve_market(request))

        assert output.amount == "123456789012345678901234567.5"
        assert output.converted == "3858024656635802465663580234.375"

    def test_stale_fallback(self, service, clock) -> None:
        old = clock() - timedelta(days=2)
        service.price_cache.store.write(CacheEntry(
            key="fx-usd-chf",
            quote=PriceQuote(
                base="USD",
                quote="CHF",
                unit_price=Decimal("0.9"),
                provider="frankfurter",
                fetched_at=old
            ),
            fetched_at=old,
            ttl_seconds=86400
        ))

        request = MarketRequest.build(MarketKind.FX, "usd", "chf", "10")
        output = asyncio.run(service.resolve_market(request))

        assert output.cache.status == CacheStatus.CACHE_STALE_FALLBACK
        assert output.cache.age_secs == 2 * 86400
        assert output.converted == "9"


class TestMarketRequest:
    """Test suite for request validation."""

    @pytest.mark.parametrize("kind, base, quote, amount, message", [
        (MarketKind.FX, "usdx", "jpy", "1", "invalid base symbol"),
        (MarketKind.FX, "usd", "j1y", "1", "invalid quote symbol"),
        (MarketKind.CRYPTO, "b", "usd", "1", "invalid base symbol"),
        (MarketKind.FX, "usd", "jpy", "abc", "invalid amount"),
        (MarketKind.FX, "usd", "jpy", "0", "amount must be positive"),
        (MarketKind.FX, "usd", "jpy", "-1", "amount must be positive"),
        (MarketKind.FX, "usd", "jpy", "NaN", "invalid amount"),
    ])
    def test_invalid_requests(self, kind, base, quote, amount, message) -> None:
        with pytest.raises(UserInputError, match=message):
            MarketRequest.build(kind, base, quote, amount)


class TestEvaluateQuery:
    """Test suite for expression queries."""

    def test_numeric_query(self, service) -> None:
        rows = asyncio.run(service.evaluate_query("1+5"))
        assert [row.title for row in rows] == ["6"]

    def test_asset_query(self, service) -> None:
        rows = asyncio.run(service.evaluate_query("1 btc + 3 eth to jpy"))
        assert rows[-1].title == "Total = 11050000 JPY"

    def test_fiat_looking_symbol_tries_fx_first(self, service, fx_provider, crypto_provider) -> None:
        rows = asyncio.run(service.evaluate_query("2 eur to jpy"))

        assert rows[0].title == "1 EUR = 160.5 JPY"
        assert rows[-1].title == "Total = 321.0 JPY"
        assert crypto_provider.calls == []

    def test_three_letter_crypto_falls_through_to_crypto(self, service, fx_provider) -> None:
        rows = asyncio.run(service.evaluate_query("1 btc"))

        assert ("BTC", "USD") in fx_provider.calls
        assert rows[0].title == "1 BTC = 67321 USD"
        assert rows[0].subtitle == "provider: coinbase · freshness: live"

    def test_default_fiat_override(self, service, crypto_provider) -> None:
        asyncio.run(service.evaluate_query("1 btc", default_fiat="jpy"))
        assert crypto_provider.calls == [("BTC", "JPY")]

    def test_unresolvable_asset(self, service) -> None:
        with pytest.raises(ProviderUnavailableError) as info:
            asyncio.run(service.evaluate_query("1 zzz"))

        message = info.value.message
        assert message.startswith("failed to resolve quote for ZZZ/USD")
        assert "fx: " in message
        assert "crypto: " in message
