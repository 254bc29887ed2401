"""Source adapter.

An adapter wraps one source `check` coroutine with the behavior every source
shares: verdict cache lookup, per-call timeout, one retry after a 1s backoff,
cache write on success, and mapping of any failure to Unknown plus an error
string. It must be safe to run concurrently for different URLs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..cache import VerdictCache
from ..cancellation import CancellationToken
from ..errors import AuthFailure, CancelledFailure, NetworkFailure
from ..models import RiskState, SourceId
from ..retry import RetryPolicy, retry_call
from ..sources.base import CheckFn, SourceContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_RETRY_POLICY = RetryPolicy(retries=1, base_delay_seconds=1.0, max_delay_seconds=1.0)


@dataclass(frozen=True)
class SourceOutcome:
    source: SourceId
    state: RiskState
    error: Optional[str] = None
    cached: bool = False


def _should_retry(e: Exception) -> bool:
    return not isinstance(e, (AuthFailure, CancelledFailure))


class SourceAdapter:
    def __init__(
        self,
        source: SourceId,
        check_fn: CheckFn,
        ctx: SourceContext,
        cache: VerdictCache,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        available_fn: Optional[Callable[[], object]] = None,
    ) -> None:
        self.source = source
        self._check_fn = check_fn
        self._available_fn = available_fn
        self.ctx = ctx
        self.cache = cache
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy

    def is_available(self) -> bool:
        """Whether the source is configured (e.g. has its API key)."""
        if self._available_fn:
            return bool(self._available_fn())
        return True

    async def _attempt(self, url: str, token: Optional[CancellationToken]) -> RiskState:
        if token is not None:
            token.raise_if_cancelled()
        try:
            return await asyncio.wait_for(self._check_fn(url, self.ctx), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"timed out after {self.timeout_seconds:g}s") from e

    async def check(self, url: str, token: Optional[CancellationToken] = None) -> SourceOutcome:
        """Never raises; failures come back as Unknown with an error string."""
        if token is not None and token.cancelled:
            return SourceOutcome(self.source, RiskState.UNKNOWN, error=f"{self.source.value}: {CancelledFailure()}")

        cached = await self.cache.get(url, self.source)
        if cached is not None:
            return SourceOutcome(self.source, cached, cached=True)

        try:
            state = await retry_call(
                lambda: self._attempt(url, token),
                policy=self.retry_policy,
                should_retry=_should_retry,
            )
        except Exception as e:  # noqa: BLE001
            logger.warning("%s failed for %s: %s", self.source.value, url, e)
            return SourceOutcome(self.source, RiskState.UNKNOWN, error=f"{self.source.value}: {e}")

        await self.cache.put(url, self.source, state)
        return SourceOutcome(self.source, state)

    async def check_url(self, url: str, token: Optional[CancellationToken] = None) -> RiskState:
        return (await self.check(url, token)).state
