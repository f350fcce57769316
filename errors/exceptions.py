"""
Error taxonomy.

Every failure carries the layer that produced it and the process exit code
the command surface should use. User errors exit with 2, everything else
with 1.
"""
from typing import List, Optional


class MarketError(Exception):
    """Base class for all market-cli failures."""

    code = "runtime.error"
    layer = "runtime"
    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "layer": self.layer,
            "message": self.message,
            "exit_code": self.exit_code,
        }


class UserInputError(MarketError):
    """Bad symbol, bad amount or other invalid user input."""

    code = "user.invalid_input"
    layer = "input"
    exit_code = 2


class ExpressionSyntaxError(UserInputError):
    """Malformed expression text."""

    code = "user.syntax_error"
    layer = "syntax"


class EvaluationError(UserInputError):
    """Expression parsed but cannot be evaluated."""

    code = "user.evaluation_error"
    layer = "evaluation"


class MixedModesError(ExpressionSyntaxError, EvaluationError):
    """Numeric and asset terms in the same expression."""

    code = "user.evaluation_error"
    layer = "evaluation"

    def __init__(self, message: str = "mixed numeric and asset terms are not supported"):
        super().__init__(message)


class DivisionByZeroError(EvaluationError):
    def __init__(self, message: str = "division by zero is not allowed"):
        super().__init__(message)


class ProviderError(MarketError):
    """Failure talking to a price provider."""

    code = "runtime.provider_failed"
    layer = "provider"
    retryable = False

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider

    def with_provider(self, provider: str) -> "ProviderError":
        """Tag the error with the provider that raised it."""
        self.provider = provider
        return self

    def __str__(self) -> str:
        return f"{self.describe()}: {self.message}"

    def describe(self) -> str:
        return "provider error"


class ProviderTransportError(ProviderError):
    """Connection failure or timeout."""

    retryable = True

    def describe(self) -> str:
        return "transport error"


class ProviderHttpError(ProviderError):
    """Non-2xx HTTP response."""

    def __init__(self, status: int, message: str, provider: Optional[str] = None):
        super().__init__(message, provider=provider)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status == 429 or 500 <= self.status <= 599

    def describe(self) -> str:
        return f"http error ({self.status})"


class InvalidResponseError(ProviderError):
    """Payload could not be decoded into a price."""

    def describe(self) -> str:
        return "invalid provider response"


class UnsupportedPairError(ProviderError):
    """Provider does not trade the requested pair."""

    def describe(self) -> str:
        return "unsupported trading pair"


class ProviderUnavailableError(ProviderError):
    """Every provider in the chain failed."""

    def __init__(self, message: str, trace: Optional[List[str]] = None):
        super().__init__(message)
        self.trace = list(trace or [])
        if self.trace:
            self.message = f"{message} (provider trace: {' | '.join(self.trace)})"
            self.args = (self.message,)

    def __str__(self) -> str:
        return self.message


class CacheError(MarketError):
    """Cache storage could not be read or written."""

    code = "runtime.cache_failed"
    layer = "cache"
