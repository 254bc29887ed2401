"""Retry utilities (fixed or exponential backoff + jitter)."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 1  # total attempts = 1 + retries
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    jitter: float = 0.0  # 0.2 = 20% jitter


def _sleep_seconds(attempt: int, policy: RetryPolicy) -> float:
    # attempt starts at 1 for the first retry sleep
    delay = policy.base_delay_seconds * (2 ** (attempt - 1))
    delay = min(delay, policy.max_delay_seconds)
    # jitter in range [1-jitter, 1+jitter]
    factor = 1.0 + random.uniform(-policy.jitter, policy.jitter)
    return max(0.0, delay * factor)


async def retry_call(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool],
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await fn() with retries.

    - Retries on exceptions that satisfy should_retry.
    - Raises the last exception if all attempts fail.
    """
    attempts = 1 + max(policy.retries, 0)
    last_err: Exception | None = None

    for i in range(attempts):
        try:
            return await fn()
        except Exception as e:  # noqa: BLE001
            last_err = e
            if i == attempts - 1 or not should_retry(e):
                raise
            delay = _sleep_seconds(i + 1, policy)
            logger.debug("Retrying after %.2fs (attempt %d/%d): %s", delay, i + 1, attempts - 1, e)
            await sleep(delay)

    # unreachable, but keeps mypy happy
    raise last_err  # type: ignore[misc]
