"""Locally mirrored threat feeds.

A mirror is two store keys: the feed payload and the epoch timestamp of the
last successful refresh. Refreshes happen under the store lock so concurrent
analyses download a feed at most once. When a refresh fails, a stale mirror
is still used; with no mirror at all the failure propagates.

A payload over the store's size quota is held in memory for the life of the
store object instead, with its own refresh time, so it is still downloaded at
most once per `max_age_seconds`.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..errors import QuotaFailure, SourceError
from ..store import KeyValueStore
from .base import SourceContext

logger = logging.getLogger(__name__)

# store -> {data_key: (refreshed_at, payload)} for payloads the store rejected
_OVERSIZED: weakref.WeakKeyDictionary[KeyValueStore, dict[str, tuple[float, Any]]] = weakref.WeakKeyDictionary()


@dataclass(frozen=True)
class FeedMirror:
    name: str
    data_key: str
    timestamp_key: str
    max_age_seconds: float

    async def _age(self, ctx: SourceContext) -> float:
        last = await ctx.store.get(self.timestamp_key)
        if isinstance(last, bool) or not isinstance(last, (int, float)):
            return float("inf")
        return ctx.clock() - float(last)

    def _held(self, ctx: SourceContext) -> Optional[tuple[float, Any]]:
        return _OVERSIZED.get(ctx.store, {}).get(self.data_key)

    async def load(
        self,
        ctx: SourceContext,
        download: Callable[[SourceContext], Awaitable[Any]],
    ) -> Any:
        """Return the mirrored payload, refreshing it first when too old."""
        async with ctx.store.lock(self.data_key):
            held = self._held(ctx)
            if held is not None and ctx.clock() - held[0] <= self.max_age_seconds:
                return held[1]

            if held is not None or await self._age(ctx) > self.max_age_seconds:
                try:
                    data = await download(ctx)
                except SourceError as e:
                    cached = held[1] if held is not None else await ctx.store.get(self.data_key)
                    if cached is None:
                        raise
                    logger.warning("%s refresh failed, using stale mirror: %s", self.name, e)
                    return cached

                try:
                    await ctx.store.set(self.data_key, data)
                    await ctx.store.set(self.timestamp_key, ctx.clock())
                    _OVERSIZED.get(ctx.store, {}).pop(self.data_key, None)
                    logger.info("%s mirror updated", self.name)
                except QuotaFailure as e:
                    logger.warning("%s mirror too large for the store, keeping it in memory: %s", self.name, e)
                    _OVERSIZED.setdefault(ctx.store, {})[self.data_key] = (ctx.clock(), data)
                return data

        return await ctx.store.get(self.data_key)
