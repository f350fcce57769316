"""
Base price provider interface.
"""
import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple
import aiohttp
import orjson
import structlog

from config.settings import RetryPolicy
from errors import InvalidResponseError, ProviderHttpError, ProviderTransportError
from models.market import MarketKind, PriceQuote, utc_now
from utils.decorators import SleepFn, execute_with_retry

logger = structlog.get_logger()


class BasePriceProvider(ABC):
    """
    Abstract base class for price providers.
    Implements HTTP access and retry; subclasses build the request and
    decode the payload.
    """

    name: str = ""
    kind: MarketKind = MarketKind.CRYPTO

    def __init__(
        self,
        rest_base: str,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: SleepFn = asyncio.sleep
    ):
        """
        Initialize provider.

        Args:
            rest_base: Base URL of the REST endpoint
            retry_policy: Retry settings applied to every quote request
            session: Shared HTTP session, usually attached later by ProviderClient
            sleep: Coroutine used to wait between retries
        """
        self.rest_base = rest_base
        self.retry_policy = retry_policy or RetryPolicy()
        self._session = session
        self._sleep = sleep

        # Statistics
        self._stats = {
            "rest_requests": 0,
            "quotes": 0,
            "errors": 0,
            "last_update": None
        }

    def attach_session(self, session: aiohttp.ClientSession):
        """Use a shared HTTP session."""
        self._session = session

    async def fetch_quote(self, base: str, quote: str) -> PriceQuote:
        """Fetch the unit price of `base` in `quote` with bounded retry."""
        unit_price = await execute_with_retry(
            self.name,
            self.retry_policy,
            lambda: self._fetch_once(base, quote),
            sleep=self._sleep
        )

        fetched_at = utc_now()
        self._stats["quotes"] += 1
        self._stats["last_update"] = fetched_at.isoformat()

        logger.info(
            "Quote fetched",
            provider=self.name,
            base=base,
            quote=quote,
            unit_price=str(unit_price)
        )

        return PriceQuote(
            base=base,
            quote=quote,
            unit_price=unit_price,
            provider=self.name,
            fetched_at=fetched_at
        )

    @abstractmethod
    async def _fetch_once(self, base: str, quote: str) -> Decimal:
        """Single HTTP attempt returning the unit price."""
        pass

    async def _rest_request(
        self,
        url: str,
        params: Optional[Dict] = None
    ) -> Tuple[int, str]:
        """Make a GET request and return status and body text."""
        if self._session is None:
            raise ProviderTransportError("HTTP session is not initialized", provider=self.name)

        self._stats["rest_requests"] += 1

        try:
            async with self._session.get(url, params=params) as response:
                return response.status, await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._stats["errors"] += 1
            logger.warning(
                "REST request failed",
                provider=self.name,
                url=url,
                error=str(e) or e.__class__.__name__
            )
            raise ProviderTransportError(str(e) or e.__class__.__name__, provider=self.name)

    def get_stats(self) -> Dict:
        """Get provider statistics."""
        return {
            "provider": self.name,
            "kind": self.kind.value,
            **self._stats
        }


def load_json(body: str) -> Any:
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise InvalidResponseError(str(e))


def check_status(status: int, body: str):
    """Raise ProviderHttpError for any non-2xx response."""
    if 200 <= status <= 299:
        return
    raise ProviderHttpError(status, extract_error_message(body) or f"HTTP {status}")


def extract_error_message(body: str) -> Optional[str]:
    """Best-effort error text from a provider error payload."""
    try:
        value = orjson.loads(body)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None

    candidates = [value.get("message"), value.get("error")]

    error = value.get("error")
    if isinstance(error, dict):
        candidates.append(error.get("message"))
    if isinstance(error, list) and error:
        candidates.append(error[0])

    errors = value.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        candidates.append(errors[0].get("message"))

    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def parse_decimal_value(value: Any) -> Optional[Decimal]:
    """Decimal from a JSON string or number, None when not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None

    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None
