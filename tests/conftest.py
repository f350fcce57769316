"""Pytest configuration and shared fixtures."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Tuple, Union

from config.settings import RetryPolicy, Settings, get_settings
from core.cache import InMemoryCacheStore, PriceCache
from core.service import MarketService
from errors import ProviderError, UnsupportedPairError
from models.market import (
    CacheMetadata,
    CacheStatus,
    CachedQuote,
    MarketKind,
    PriceQuote,
)
from providers.base import BasePriceProvider
from providers.client import ProviderClient
from utils.logger import configure_logging


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep structured log lines out of test output."""
    configure_logging("CRITICAL")
    yield


class FakeClock:
    """Mutable UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedProvider(BasePriceProvider):
    """Provider whose HTTP attempts follow a fixed script of prices and errors."""

    def __init__(self, name: str, outcomes: List[Union[Decimal, ProviderError]], sleep):
        super().__init__(rest_base="http://test.invalid", retry_policy=RetryPolicy(), sleep=sleep)
        self.name = name
        self.outcomes = list(outcomes)
        self.attempts = 0

    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        self.attempts += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class PricedProvider(BasePriceProvider):
    """Provider backed by a price table; unknown pairs are unsupported."""

    def __init__(
        self,
        name: str,
        kind: MarketKind,
        prices: Dict[Tuple[str, str], Union[Decimal, ProviderError]],
        sleep
    ):
        super().__init__(rest_base="http://test.invalid", retry_policy=RetryPolicy(), sleep=sleep)
        self.name = name
        self.kind = kind
        self.prices = prices
        self.calls: List[Tuple[str, str]] = []

    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        self.calls.append((base, quote))
        outcome = self.prices.get((base, quote))
        if outcome is None:
            raise UnsupportedPairError(f"{base}/{quote}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings isolated from the developer environment."""
    monkeypatch.setenv("MARKET_CACHE_DIR", str(tmp_path))
    monkeypatch.delenv("DEFAULT_FIAT", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def scripted_provider(sleep_recorder):
    def factory(outcomes, name: str = "scripted") -> ScriptedProvider:
        return ScriptedProvider(name, outcomes, sleep_recorder)
    return factory


@pytest.fixture
def priced_provider(sleep_recorder):
    def factory(name: str, kind: MarketKind, prices) -> PricedProvider:
        return PricedProvider(name, kind, prices, sleep_recorder)
    return factory


@pytest.fixture
def make_quote(clock):
    """Build a CachedQuote for evaluator and formatter tests."""
    def factory(
        base: str,
        unit_price: str,
        quote: str = "USD",
        provider: str = "coinbase",
        status: CacheStatus = CacheStatus.LIVE
    ) -> CachedQuote:
        key = f"crypto-{base.lower()}-{quote.lower()}"
        return CachedQuote(
            quote=PriceQuote(
                base=base,
                quote=quote,
                unit_price=Decimal(unit_price),
                provider=provider,
                fetched_at=clock()
            ),
            cache=CacheMetadata(status=status, key=key, ttl_secs=300, age_secs=0)
        )
    return factory


@pytest.fixture
def fx_provider(priced_provider) -> PricedProvider:
    return priced_provider("frankfurter", MarketKind.FX, {
        ("USD", "JPY"): Decimal("31.25"),
        ("EUR", "JPY"): Decimal("160.5"),
    })


@pytest.fixture
def crypto_provider(priced_provider) -> PricedProvider:
    return priced_provider("coinbase", MarketKind.CRYPTO, {
        ("BTC", "USD"): Decimal("67321.12"),
        ("BTC", "JPY"): Decimal("10000000"),
        ("ETH", "JPY"): Decimal("350000"),
    })


@pytest.fixture
def service(settings, fx_provider, crypto_provider, clock, sleep_recorder) -> MarketService:
    """Service wired to in-memory cache and table-backed providers."""
    client = ProviderClient(
        settings,
        providers={
            MarketKind.FX: (fx_provider,),
            MarketKind.CRYPTO: (crypto_provider,),
        },
        sleep=sleep_recorder
    )
    cache = PriceCache(InMemoryCacheStore(), now_fn=clock)
    return MarketService(client, cache, default_fiat="USD")
