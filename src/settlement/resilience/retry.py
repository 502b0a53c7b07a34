"""Retry policy for calls to the external metrics provider.

Retries a configurable number of times with exponential backoff and jitter,
logs a warning before each retry and an error once attempts are exhausted,
then re-raises the original exception so the caller can record the failure.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

logger = structlog.get_logger()

T = TypeVar("T")


def _before_sleep_log(api_name: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retrying_api_call",
            api_name=api_name,
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep if retry_state.next_action else 0,
            exception=str(exception),
        )

    return log


def _log_final_failure(api_name: str, attempts: int, exception: BaseException) -> None:
    logger.error(
        "api_call_failed_after_retries",
        api_name=api_name,
        attempts=attempts,
        exception=str(exception),
    )


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    api_name: str,
    attempts: int = 3,
    wait_initial: float = 1.0,
    wait_max: float = 30.0,
    jitter: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Await *func* with retry on failure.

    Args:
        func: Zero-argument coroutine factory; called once per attempt.
        api_name: Human-readable name used in log events.
        attempts: Maximum number of attempts (at least 1).
        wait_initial: Initial backoff in seconds.
        wait_max: Upper bound for the exponential part of a backoff in seconds.
        jitter: Maximum random jitter added on top of each backoff.
        retry_on: Exception types that trigger another attempt.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        Exception: The last attempt's exception, after all attempts fail.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=(
            wait_exponential(multiplier=wait_initial, max=wait_max)
            + wait_random(0, jitter)
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_before_sleep_log(api_name),
        reraise=True,
    )
    attempt_number = 0
    try:
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                return await func()
    except Exception as exc:
        _log_final_failure(api_name, attempt_number, exc)
        raise
    raise AssertionError("unreachable: AsyncRetrying stopped without an outcome")
