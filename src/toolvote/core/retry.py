"""Generic retry helpers for generator and tool calls.

Every helper returns a :class:`RetryOutcome` instead of raising on
exhaustion; the caller decides whether a missing result is fatal.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from toolvote.core.sampling import SamplingParams, params_for
from toolvote.errors import NonRetryableError

T = TypeVar("T")

OnRetry = Callable[[int, str], None]


@dataclass
class RetryOutcome(Generic[T]):
    result: T | None
    attempts: int
    error: BaseException | None = None


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


async def _pause(delay_seconds: float) -> None:
    if delay_seconds > 0:
        await asyncio.sleep(delay_seconds)


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    should_retry: Callable[[T], bool],
    *,
    max_attempts: int = 3,
    delay_seconds: float = 0.0,
    on_retry: OnRetry | None = None,
) -> RetryOutcome[T]:
    """Call ``fn`` until ``should_retry`` rejects its result or attempts run out."""
    max_attempts = max(1, max_attempts)
    attempts = 0
    last: T | None = None
    while attempts < max_attempts:
        attempts += 1
        last = await fn()
        if not should_retry(last):
            return RetryOutcome(result=last, attempts=attempts)
        if attempts < max_attempts:
            if on_retry is not None:
                on_retry(attempts, "retry condition met")
            await _pause(delay_seconds)
    return RetryOutcome(result=last, attempts=attempts)


async def retry_on_empty(
    fn: Callable[[], Awaitable[T | None]],
    empty: Callable[[T | None], bool] = is_empty,
    *,
    max_attempts: int = 3,
    delay_seconds: float = 0.0,
    on_retry: OnRetry | None = None,
) -> RetryOutcome[T]:
    return await run_with_retry(
        fn,
        empty,
        max_attempts=max_attempts,
        delay_seconds=delay_seconds,
        on_retry=on_retry,
    )


async def retry_on_error(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    delay_seconds: float = 0.0,
    on_retry: OnRetry | None = None,
) -> RetryOutcome[T]:
    """Retry while ``fn`` raises; the last exception is returned, not raised.

    ``NonRetryableError`` and task cancellation propagate immediately.
    """
    max_attempts = max(1, max_attempts)
    attempts = 0
    last_error: BaseException | None = None
    while attempts < max_attempts:
        attempts += 1
        try:
            result = await fn()
        except NonRetryableError:
            raise
        except Exception as exc:
            last_error = exc
            if attempts < max_attempts:
                if on_retry is not None:
                    on_retry(attempts, str(exc) or type(exc).__name__)
                await _pause(delay_seconds)
            continue
        return RetryOutcome(result=result, attempts=attempts)
    return RetryOutcome(result=None, attempts=attempts, error=last_error)


async def retry_with_varying_params(
    fn: Callable[[SamplingParams], Awaitable[T]],
    should_retry: Callable[[T], bool],
    *,
    max_attempts: int = 3,
    delay_seconds: float = 0.0,
    on_retry: OnRetry | None = None,
    stop: Sequence[str] | None = None,
) -> RetryOutcome[T]:
    """Like :func:`run_with_retry` but attempt ``i`` samples with ``params_for(i)``."""
    counter = {"attempt": 0}

    async def attempt() -> T:
        params = params_for(counter["attempt"], stop)
        counter["attempt"] += 1
        return await fn(params)

    return await run_with_retry(
        attempt,
        should_retry,
        max_attempts=max_attempts,
        delay_seconds=delay_seconds,
        on_retry=on_retry,
    )
