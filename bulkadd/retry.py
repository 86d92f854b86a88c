"""
Bounded exponential backoff for transient network failures, built on tenacity.
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

from aiohttp import ClientConnectionError
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from bulkadd.config import BASE_DELAY_MS, MAX_RETRIES
from bulkadd.errors import PermanentAPIError, TransientAPIError

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Timeouts, dropped connections and 5xx are worth retrying; 4xx never are."""
    if isinstance(exc, PermanentAPIError):
        return False
    return isinstance(exc, (TransientAPIError, asyncio.TimeoutError, ClientConnectionError))


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    sleep = state.next_action.sleep if state.next_action else 0
    logger.debug(f"🔁 Attempt {state.attempt_number} failed ({exc}); retrying in {sleep:.2f}s")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay_ms: int = BASE_DELAY_MS,
    jitter: bool = True,
) -> T:
    """
    Await `fn()` and retry it on transient errors.

    Args:
        fn: Zero-argument coroutine function performing one network call.
        max_retries (int): Retries after the first attempt.
        base_delay_ms (int): First delay; doubles on every retry.
        jitter (bool): Add up to `base_delay_ms` of random delay per retry.

    Returns:
        Whatever `fn` returns.

    Raises:
        The last error once retries are exhausted, or a non-transient error immediately.
    """
    base = base_delay_ms / 1000.0
    wait = wait_exponential(multiplier=base, exp_base=2, min=base)
    if jitter:
        wait = wait + wait_random(0, base)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait,
        retry=retry_if_exception(is_transient),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
