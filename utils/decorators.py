"""
Retry helpers for provider calls.
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
import structlog

from config.settings import RetryPolicy
from errors import ProviderError

logger = structlog.get_logger()
T = TypeVar('T')

SleepFn = Callable[[float], Awaitable[None]]


def is_retryable(error: BaseException) -> bool:
    """Only transient provider failures consume retry budget."""
    return isinstance(error, ProviderError) and error.retryable


def _log_retry(provider: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying provider request",
            provider=provider,
            attempt=retry_state.attempt_number,
            wait_secs=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error)
        )
    return before_sleep


def provider_retry(
    provider: str,
    policy: RetryPolicy,
    sleep: SleepFn = asyncio.sleep
) -> AsyncRetrying:
    """
    Build the retry controller for one provider attempt.

    Waits grow as base, 2*base, 4*base... between attempts; non-retryable
    errors are re-raised immediately.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_backoff_ms / 1000.0, exp_base=2),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry(provider),
        sleep=sleep,
        reraise=True
    )


async def execute_with_retry(
    provider: str,
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[T]],
    sleep: SleepFn = asyncio.sleep
) -> T:
    """Run `operation` under the provider retry policy, tagging errors with the provider."""
    try:
        async for attempt in provider_retry(provider, policy, sleep=sleep):
            with attempt:
                return await operation()
    except ProviderError as e:
        e.with_provider(provider)
        raise
    raise ProviderError(f"{provider}: exhausted retry attempts", provider=provider)
