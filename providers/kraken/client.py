"""
Kraken ticker provider.
Fallback source for crypto quotes.
"""
import asyncio
from decimal import Decimal
from typing import Optional

from config.settings import PROVIDER_CONFIG, RetryPolicy
from errors import InvalidResponseError, ProviderHttpError, UnsupportedPairError
from models.market import MarketKind
from providers.base import BasePriceProvider, check_status, load_json, parse_decimal_value
from utils.decorators import SleepFn

# Kraken uses XBT for bitcoin
SYMBOL_MAP = {
    "BTC": "XBT",
}


class KrakenProvider(BasePriceProvider):
    """Kraken public ticker endpoint."""

    name = "kraken"
    kind = MarketKind.CRYPTO

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        rest_base: str = PROVIDER_CONFIG["kraken"]["rest_base"],
        sleep: SleepFn = asyncio.sleep
    ):
        super().__init__(rest_base=rest_base, retry_policy=retry_policy, sleep=sleep)

    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        pair = normalize_pair(base, quote)
        status, body = await self._rest_request(self.rest_base, params={"pair": pair})
        return parse_ticker_body(status, body)


def normalize_pair(base: str, quote: str) -> str:
    """Map a base/quote pair to Kraken's pair name (BTC/USD -> XBTUSD)."""
    if not _is_valid_symbol(base) or not _is_valid_symbol(quote):
        raise UnsupportedPairError(f"{base}/{quote}")
    return f"{SYMBOL_MAP.get(base, base)}{SYMBOL_MAP.get(quote, quote)}"


def parse_ticker_body(status: int, body: str) -> Decimal:
    """
    Extract the last trade price from a Kraken ticker response.

    Expected shape: {"error": [], "result": {"XXBTZUSD": {"c": ["67321.1", "0.1"]}}}
    """
    check_status(status, body)

    payload = load_json(body)
    if not isinstance(payload, dict):
        raise InvalidResponseError("expected kraken ticker object")

    error_list = payload.get("error") or []
    if error_list:
        first_error = str(error_list[0])
        if "unknown asset pair" in first_error.lower():
            raise UnsupportedPairError(first_error)
        raise ProviderHttpError(400, first_error)

    result = payload.get("result") or {}
    if not isinstance(result, dict) or not result:
        raise InvalidResponseError("missing kraken result")

    entry = next(iter(result.values()))
    close = entry.get("c") if isinstance(entry, dict) else None
    if not close:
        raise InvalidResponseError("missing kraken close price")

    price = parse_decimal_value(close[0]) if isinstance(close[0], str) else None
    if price is None:
        raise InvalidResponseError("invalid kraken close price")
    return price


def _is_valid_symbol(value: str) -> bool:
    return 2 <= len(value) <= 10 and value.isascii() and value.isalnum()
