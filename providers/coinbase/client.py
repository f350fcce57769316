"""
Coinbase spot price provider.
Primary source for crypto quotes.
"""
import asyncio
from decimal import Decimal
from typing import Optional

from config.settings import PROVIDER_CONFIG, RetryPolicy
from errors import InvalidResponseError
from models.market import MarketKind
from providers.base import BasePriceProvider, check_status, load_json, parse_decimal_value
from utils.decorators import SleepFn


class CoinbaseProvider(BasePriceProvider):
    """Coinbase public spot price endpoint."""

    name = "coinbase"
    kind = MarketKind.CRYPTO

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        rest_base: str = PROVIDER_CONFIG["coinbase"]["rest_base"],
        sleep: SleepFn = asyncio.sleep
    ):
        super().__init__(rest_base=rest_base, retry_policy=retry_policy, sleep=sleep)

    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        url = f"{self.rest_base}/{base}-{quote}/spot"
        status, body = await self._rest_request(url)
        return parse_spot_body(status, body)


def parse_spot_body(status: int, body: str) -> Decimal:
    """Expected shape: {"data": {"base": "BTC", "currency": "USD", "amount": "67321.12"}}"""
    check_status(status, body)

    payload = load_json(body)
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict) or "amount" not in data:
        raise InvalidResponseError("missing coinbase amount")

    amount = data["amount"]
    price = parse_decimal_value(amount) if isinstance(amount, str) else None
    if price is None:
        raise InvalidResponseError("invalid coinbase amount")
    return price
