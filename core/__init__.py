"""Core package."""
from core.service import MarketService
from core.cache import PriceCache, FileCacheStore, InMemoryCacheStore
from core.parser import parse, tokenize
from core.evaluator import evaluate, resolve_mode
from core.formatter import format_market_value

__all__ = [
    "MarketService",
    "PriceCache",
    "FileCacheStore",
    "InMemoryCacheStore",
    "parse",
    "tokenize",
    "evaluate",
    "resolve_mode",
    "format_market_value",
]
