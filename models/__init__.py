"""
Models package.
"""
from models.market import (
    MarketKind,
    CacheStatus,
    PriceQuote,
    ErrorRecord,
    CacheEntry,
    CacheMetadata,
    CachedQuote,
    MarketRequest,
    MarketOutput,
)
from models.expression import (
    TokenKind,
    Token,
    TermKind,
    Term,
    Expression,
    ExpressionMode,
    AssetLine,
    EvalResult,
    DisplayRow,
)

__all__ = [
    "MarketKind",
    "CacheStatus",
    "PriceQuote",
    "ErrorRecord",
    "CacheEntry",
    "CacheMetadata",
    "CachedQuote",
    "MarketRequest",
    "MarketOutput",
    "TokenKind",
    "Token",
    "TermKind",
    "Term",
    "Expression",
    "ExpressionMode",
    "AssetLine",
    "EvalResult",
    "DisplayRow",
]
