"""
Quote cache with TTL-based freshness and stale fallback.
"""
import asyncio
import os
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Any, Protocol
from datetime import datetime
from collections import defaultdict
import orjson
import structlog
from pydantic import ValidationError

from config.settings import CRYPTO_TTL_SECS, FX_TTL_SECS
from errors import CacheError, MarketError
from models.market import (
    CacheEntry,
    CacheMetadata,
    CacheStatus,
    CachedQuote,
    ErrorRecord,
    MarketKind,
    PriceQuote,
    utc_now,
)

logger = structlog.get_logger()

FetchFn = Callable[[], Awaitable[PriceQuote]]


def cache_key(kind: MarketKind, base: str, quote: str) -> str:
    """Key of the form <kind>-<base>-<quote>, lowercase."""
    return f"{kind.value}-{base.lower()}-{quote.lower()}"


def ttl_for_kind(kind: MarketKind) -> int:
    if kind == MarketKind.FX:
        return FX_TTL_SECS
    return CRYPTO_TTL_SECS


def age_seconds(fetched_at: datetime, now: datetime) -> int:
    return max(int((now - fetched_at).total_seconds()), 0)


class CacheStore(Protocol):
    """Storage capability for cache entries."""

    def read(self, key: str) -> Optional[CacheEntry]:
        ...

    def write(self, entry: CacheEntry) -> None:
        ...


class InMemoryCacheStore:
    """Process-local store."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def read(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def write(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry


class FileCacheStore:
    """
    One JSON file per key under <cache_dir>/market-cli/.

    Writes go to a temp file in the same directory and are renamed into
    place, so concurrent readers never see a partial entry. Last writer wins.
    """

    def __init__(self, cache_dir: Path):
        self.root = Path(cache_dir) / "market-cli"

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def read(self, key: str) -> Optional[CacheEntry]:
        path = self.path_for(key)
        try:
            payload = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"failed to read cache entry {path}: {e}")

        try:
            return CacheEntry.model_validate(orjson.loads(payload))
        except (orjson.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring corrupt cache entry", path=str(path), error=str(e))
            return None

    def write(self, entry: CacheEntry) -> None:
        path = self.path_for(entry.key)
        payload = orjson.dumps(entry.model_dump(mode="json"))

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{entry.key}.",
                suffix=".tmp",
                dir=self.root
            )
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise CacheError(f"failed to write cache entry {path}: {e}")


class PriceCache:
    """
    Freshness-aware cache in front of a fetch function.

    Fresh entries are served without fetching; stale entries trigger a
    fetch and are served as a fallback if that fetch fails.
    """

    def __init__(
        self,
        store: CacheStore,
        now_fn: Callable[[], datetime] = utc_now
    ):
        """
        Initialize price cache.

        Args:
            store: Backing store for cache entries
            now_fn: Clock returning an aware UTC datetime
        """
        self.store = store
        self._now = now_fn
        self._locks: Dict[str, asyncio.Lock] = {}

        # Statistics
        self._stats = defaultdict(lambda: {"live": 0, "hits": 0, "stale": 0, "failures": 0})

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_or_fetch(
        self,
        key: str,
        ttl_seconds: int,
        fetch_fn: FetchFn
    ) -> CachedQuote:
        """Return a quote for `key`, fetching when missing or stale."""
        async with self._lock_for(key):
            now = self._now()
            entry = self.store.read(key)

            if entry is not None and entry.quote is not None:
                age = age_seconds(entry.fetched_at, now)
                if age <= ttl_seconds:
                    self._stats[key]["hits"] += 1
                    logger.debug("Cache hit", key=key, age_secs=age)
                    return self._build(entry.quote, CacheStatus.CACHE_FRESH, key, ttl_seconds, age)

            try:
                quote = await fetch_fn()
            except MarketError as e:
                return self._handle_failure(key, ttl_seconds, entry, e, now)

            self.store.write(CacheEntry(
                key=key,
                quote=quote,
                fetched_at=quote.fetched_at,
                ttl_seconds=ttl_seconds
            ))
            self._stats[key]["live"] += 1
            return self._build(quote, CacheStatus.LIVE, key, ttl_seconds, 0)

    def _handle_failure(
        self,
        key: str,
        ttl_seconds: int,
        entry: Optional[CacheEntry],
        error: MarketError,
        now: datetime
    ) -> CachedQuote:
        self._stats[key]["failures"] += 1
        previous = entry.quote if entry is not None else None

        # Record the failure but keep the last good quote and its timestamp
        failed = CacheEntry(
            key=key,
            quote=previous,
            last_error=ErrorRecord(message=str(error), failed_at=now),
            fetched_at=entry.fetched_at if previous is not None else now,
            ttl_seconds=ttl_seconds
        )
        try:
            self.store.write(failed)
        except CacheError as write_error:
            logger.warning("Failed to record fetch error", key=key, error=str(write_error))

        if previous is None:
            raise error

        age = age_seconds(entry.fetched_at, now)
        self._stats[key]["stale"] += 1
        logger.warning(
            "Serving stale cache entry",
            key=key,
            age_secs=age,
            ttl_secs=ttl_seconds,
            error=str(error)
        )
        return self._build(previous, CacheStatus.CACHE_STALE_FALLBACK, key, ttl_seconds, age)

    @staticmethod
    def _build(
        quote: PriceQuote,
        status: CacheStatus,
        key: str,
        ttl_seconds: int,
        age: int
    ) -> CachedQuote:
        return CachedQuote(
            quote=quote,
            cache=CacheMetadata(status=status, key=key, ttl_secs=ttl_seconds, age_secs=age)
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        totals = {"live": 0, "hits": 0, "stale": 0, "failures": 0}
        for counters in self._stats.values():
            for name, value in counters.items():
                totals[name] += value

        lookups = totals["live"] + totals["hits"] + totals["stale"]
        return {
            "keys": len(self._stats),
            **totals,
            "hit_rate": totals["hits"] / lookups if lookups > 0 else 0
        }
