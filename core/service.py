"""
Market service.
Ties the provider chain, the quote cache and the expression evaluator together.
"""
from typing import List, Optional
import structlog

from core.cache import PriceCache, cache_key, ttl_for_kind
from core.evaluator import evaluate
from core.formatter import build_rows
from core.parser import parse
from errors import ProviderError, ProviderUnavailableError
from models.expression import DisplayRow
from models.market import (
    CachedQuote,
    MarketKind,
    MarketOutput,
    MarketRequest,
    build_output,
    normalize_crypto_symbol,
)
from providers.client import ProviderClient

logger = structlog.get_logger()


class MarketService:
    """
    Resolves fx/crypto conversions and asset expressions.
    Every price lookup goes through the cache.
    """

    def __init__(
        self,
        provider_client: ProviderClient,
        price_cache: PriceCache,
        default_fiat: str = "USD"
    ):
        """
        Initialize market service.

        Args:
            provider_client: Ranked provider chains
            price_cache: Freshness-aware quote cache
            default_fiat: Target fiat for expressions without a 'to' clause
        """
        self.provider_client = provider_client
        self.price_cache = price_cache
        self.default_fiat = default_fiat

    async def quote_pair(self, kind: MarketKind, base: str, quote: str) -> CachedQuote:
        """Cached unit price of base in quote."""
        key = cache_key(kind, base, quote)

        async def fetch():
            return await self.provider_client.fetch(kind, base, quote)

        return await self.price_cache.get_or_fetch(key, ttl_for_kind(kind), fetch)

    async def resolve_market(self, request: MarketRequest) -> MarketOutput:
        """Convert `request.amount` of base into quote."""
        cached = await self.quote_pair(request.kind, request.base, request.quote)

        logger.info(
            "Market resolved",
            kind=request.kind.value,
            base=request.base,
            quote=request.quote,
            provider=cached.quote.provider,
            cache_status=cached.status.value
        )
        return build_output(request, cached)

    async def quote_asset(self, symbol: str, target_fiat: str) -> CachedQuote:
        """
        Unit price of an expression asset in the target fiat.

        Three-letter alphabetic symbols are tried as fiat first, then as crypto.
        """
        trace: List[str] = []

        if looks_like_fiat_symbol(symbol):
            try:
                return await self.quote_pair(MarketKind.FX, symbol, target_fiat)
            except ProviderError as e:
                trace.append(f"fx: {e}")

        base = normalize_crypto_symbol(symbol, "base")
        try:
            return await self.quote_pair(MarketKind.CRYPTO, base, target_fiat)
        except ProviderError as e:
            trace.append(f"crypto: {e}")

        raise ProviderUnavailableError(
            f"failed to resolve quote for {symbol}/{target_fiat}",
            trace
        )

    async def evaluate_query(
        self,
        query: str,
        default_fiat: Optional[str] = None
    ) -> List[DisplayRow]:
        """Parse, evaluate and render an expression."""
        expression = parse(query, default_fiat or self.default_fiat)
        result = await evaluate(expression, self.quote_asset)

        logger.info(
            "Expression evaluated",
            mode=result.mode.value,
            assets=[line.symbol for line in result.assets],
            target=result.target_fiat
        )
        return build_rows(result)


def looks_like_fiat_symbol(symbol: str) -> bool:
    return len(symbol) == 3 and symbol.isascii() and symbol.isalpha()
