"""
Structured exception hierarchy.

Each error names the layer that produced it (input, syntax, evaluation,
provider, cache) and the exit code the command surface reports.
"""

from .exceptions import (
    MarketError,
    UserInputError,
    ExpressionSyntaxError,
    EvaluationError,
    MixedModesError,
    DivisionByZeroError,
    ProviderError,
    ProviderTransportError,
    ProviderHttpError,
    InvalidResponseError,
    UnsupportedPairError,
    ProviderUnavailableError,
    CacheError,
)

__all__ = [
    # Base
    "MarketError",
    # User errors
    "UserInputError",
    "ExpressionSyntaxError",
    "EvaluationError",
    "MixedModesError",
    "DivisionByZeroError",
    # Provider errors
    "ProviderError",
    "ProviderTransportError",
    "ProviderHttpError",
    "InvalidResponseError",
    "UnsupportedPairError",
    "ProviderUnavailableError",
    # Cache errors
    "CacheError",
]
