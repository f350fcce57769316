"""
Ranked provider chain.
Tries each provider for a market kind in order until one returns a quote.
"""
import asyncio
from typing import Dict, List, Optional, Sequence
import aiohttp
import orjson
import structlog

from config.settings import Settings
from errors import ProviderError, ProviderUnavailableError
from models.market import MarketKind, PriceQuote
from providers.base import BasePriceProvider
from providers.coinbase.client import CoinbaseProvider
from providers.frankfurter.client import FrankfurterProvider
from providers.kraken.client import KrakenProvider
from utils.decorators import SleepFn

logger = structlog.get_logger()


class ProviderClient:
    """
    Fetches unit prices from a fixed, ranked provider list per market kind:
    fx -> frankfurter, crypto -> coinbase then kraken.
    """

    def __init__(
        self,
        settings: Settings,
        providers: Optional[Dict[MarketKind, Sequence[BasePriceProvider]]] = None,
        sleep: SleepFn = asyncio.sleep
    ):
        """
        Initialize provider client.

        Args:
            settings: Application settings (timeouts, retry policy)
            providers: Override of the ranked provider chains
            sleep: Coroutine used to wait between retries
        """
        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

        if providers is None:
            policy = settings.retry_policy
            providers = {
                MarketKind.FX: (
                    FrankfurterProvider(retry_policy=policy, sleep=sleep),
                ),
                MarketKind.CRYPTO: (
                    CoinbaseProvider(retry_policy=policy, sleep=sleep),
                    KrakenProvider(retry_policy=policy, sleep=sleep),
                ),
            }
        self.providers: Dict[MarketKind, Sequence[BasePriceProvider]] = providers

    async def initialize(self):
        """Open the shared HTTP session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.settings.PROVIDER_TIMEOUT_SECS)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                json_serialize=lambda x: orjson.dumps(x).decode()
            )

        for provider in self._all_providers():
            provider.attach_session(self._session)

        logger.debug(
            "Provider client initialized",
            providers=[p.name for p in self._all_providers()]
        )

    async def close(self):
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "ProviderClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def fetch(self, kind: MarketKind, base: str, quote: str) -> PriceQuote:
        """
        Fetch a quote, escalating to the next provider on failure.

        Raises:
            ProviderUnavailableError: every provider failed
        """
        trace: List[str] = []

        for provider in self.providers.get(kind, ()):
            try:
                return await provider.fetch_quote(base, quote)
            except ProviderError as e:
                trace.append(f"{provider.name}: {e}")
                logger.warning(
                    "Provider failed",
                    provider=provider.name,
                    kind=kind.value,
                    base=base,
                    quote=quote,
                    retryable=e.retryable,
                    error=str(e)
                )

        raise ProviderUnavailableError(
            f"failed to fetch {kind.value} price for {base}/{quote}",
            trace
        )

    def _all_providers(self) -> List[BasePriceProvider]:
        return [p for chain in self.providers.values() for p in chain]

    def get_stats(self) -> List[Dict]:
        """Get per-provider statistics."""
        return [p.get_stats() for p in self._all_providers()]
