"""
Frankfurter FX provider.
Daily reference rates published by the European Central Bank.
"""
import asyncio
from decimal import Decimal
from typing import Optional

from config.settings import PROVIDER_CONFIG, RetryPolicy
from errors import InvalidResponseError
from models.market import MarketKind
from providers.base import BasePriceProvider, check_status, load_json, parse_decimal_value
from utils.decorators import SleepFn


class FrankfurterProvider(BasePriceProvider):
    """Frankfurter latest-rate endpoint."""

    name = "frankfurter"
    kind = MarketKind.FX

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        rest_base: str = PROVIDER_CONFIG["frankfurter"]["rest_base"],
        sleep: SleepFn = asyncio.sleep
    ):
        super().__init__(rest_base=rest_base, retry_policy=retry_policy, sleep=sleep)

    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        status, body = await self._rest_request(
            self.rest_base,
            params={"base": base, "symbols": quote}
        )
        return parse_fx_body(status, body, quote)


def parse_fx_body(status: int, body: str, quote: str) -> Decimal:
    """
    Extract the rate for `quote` from a Frankfurter response.

    Expected shape: {"base": "USD", "rates": {"JPY": 150.1}}
    """
    check_status(status, body)

    payload = load_json(body)
    rates = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(rates, dict) or quote not in rates:
        raise InvalidResponseError(f"missing rate for {quote}")

    raw = rates[quote]
    rate = parse_decimal_value(raw)
    if rate is None:
        raise InvalidResponseError(f"invalid numeric rate for {quote}: {raw}")
    return rate
