"""
Data models for market quotes and cache entries.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, localcontext
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from errors import UserInputError


class MarketKind(str, Enum):
    """Asset classes with their own provider chain and TTL."""
    FX = "fx"
    CRYPTO = "crypto"


class CacheStatus(str, Enum):
    """Freshness of a returned quote."""
    LIVE = "live"
    CACHE_FRESH = "cache_fresh"
    CACHE_STALE_FALLBACK = "cache_stale_fallback"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PriceQuote(BaseModel):
    """Unit price of one base asset in a quote asset."""
    base: str = Field(..., description="Base symbol (e.g., BTC)")
    quote: str = Field(..., description="Quote symbol (e.g., USD)")
    unit_price: Decimal = Field(..., description="Price of one base unit")
    provider: str = Field(..., description="Provider that produced the price")
    fetched_at: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True


class ErrorRecord(BaseModel):
    """Last failed fetch for a cache key."""
    message: str
    failed_at: datetime = Field(default_factory=utc_now)


class CacheEntry(BaseModel):
    """
    Stored state for one cache key.

    `quote` is the last successful quote; a failed fetch rewrites the entry
    with `last_error` set and the previous quote carried forward.
    """
    key: str
    quote: Optional[PriceQuote] = None
    last_error: Optional[ErrorRecord] = None
    fetched_at: datetime
    ttl_seconds: int


class CacheMetadata(BaseModel):
    status: CacheStatus
    key: str
    ttl_secs: int
    age_secs: int


class CachedQuote(BaseModel):
    """Quote together with where it came from."""
    quote: PriceQuote
    cache: CacheMetadata

    @property
    def status(self) -> CacheStatus:
        return self.cache.status


class MarketRequest(BaseModel):
    """Validated fx/crypto conversion request."""
    kind: MarketKind
    base: str
    quote: str
    amount: Decimal

    @classmethod
    def build(cls, kind: MarketKind, base: str, quote: str, amount: str) -> "MarketRequest":
        if kind == MarketKind.FX:
            normalized_base = normalize_fx_symbol(base, "base")
            normalized_quote = normalize_fx_symbol(quote, "quote")
        else:
            normalized_base = normalize_crypto_symbol(base, "base")
            normalized_quote = normalize_crypto_symbol(quote, "quote")

        return cls(
            kind=kind,
            base=normalized_base,
            quote=normalized_quote,
            amount=parse_amount(amount)
        )


class MarketOutput(BaseModel):
    """Success payload of the fx and crypto commands."""
    kind: MarketKind
    base: str
    quote: str
    amount: str
    unit_price: str
    converted: str
    provider: str
    fetched_at: str
    cache: CacheMetadata


def decimal_to_string(value: Decimal) -> str:
    """Render a decimal without trailing zeros or exponent."""
    if value.is_zero():
        return "0"
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(value.as_tuple().digits))
        return format(value.normalize(), "f")


def quantize_places(value: Decimal, places: int, rounding: str) -> Decimal:
    """
    Round to a fixed number of decimal places.

    Precision is widened to fit the result so large values never exceed
    the context precision during quantize.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return value.quantize(Decimal(1).scaleb(-places), rounding=rounding)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_output(request: MarketRequest, cached: CachedQuote) -> MarketOutput:
    """Combine a request with its resolved quote."""
    quote = cached.quote
    with localcontext() as ctx:
        # Exact product
        ctx.prec = max(
            ctx.prec,
            len(request.amount.as_tuple().digits) + len(quote.unit_price.as_tuple().digits)
        )
        product = request.amount * quote.unit_price
    converted = quantize_places(product, 8, ROUND_HALF_EVEN)

    return MarketOutput(
        kind=request.kind,
        base=request.base,
        quote=request.quote,
        amount=decimal_to_string(request.amount),
        unit_price=decimal_to_string(quote.unit_price),
        converted=decimal_to_string(converted),
        provider=quote.provider,
        fetched_at=format_timestamp(quote.fetched_at),
        cache=cached.cache
    )


def normalize_fx_symbol(raw: str, field: str) -> str:
    value = raw.strip().upper()
    if len(value) != 3 or not (value.isascii() and value.isalpha()):
        raise UserInputError(
            f"invalid {field} symbol: {raw} (expected 3-letter ISO currency code)"
        )
    return value


def normalize_crypto_symbol(raw: str, field: str) -> str:
    value = raw.strip().upper()
    if not 2 <= len(value) <= 10 or not (value.isascii() and value.isalnum()):
        raise UserInputError(
            f"invalid {field} symbol: {raw} (expected 2-10 uppercase alphanumeric symbol)"
        )
    return value


def parse_amount(raw: str) -> Decimal:
    """Parse a strictly positive decimal amount."""
    try:
        parsed = Decimal(raw.strip())
    except InvalidOperation:
        raise UserInputError(f"invalid amount: {raw}")

    if not parsed.is_finite():
        raise UserInputError(f"invalid amount: {raw}")
    if parsed <= 0:
        raise UserInputError(f"amount must be positive: {raw}")
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(parsed.as_tuple().digits))
        return parsed.normalize()
