"""Link history and per-url result cache.

Both are whole-value lists/maps under a single store key, updated with a
fresh read inside the store lock. History is most-recent-first; a final
result for a url removes that url's interim entries.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from .models import AnalysisResult
from .store import KeyValueStore

logger = logging.getLogger(__name__)

LINK_HISTORY_KEY = "linkHistory"
URL_CACHE_KEY = "urlCache"
MAX_HISTORY_ENTRIES = 50
MAX_URL_CACHE_ENTRIES = 100


def _parse_results(raw: Any) -> list[AnalysisResult]:
    if not isinstance(raw, list):
        return []
    out: list[AnalysisResult] = []
    for item in raw:
        try:
            out.append(AnalysisResult.from_dict(item))
        except ValueError:
            logger.debug("Dropping malformed history entry")
    return out


class HistoryStore:
    def __init__(self, store: KeyValueStore, *, max_entries: int = MAX_HISTORY_ENTRIES) -> None:
        self.store = store
        self.max_entries = max_entries

    async def entries(self) -> list[AnalysisResult]:
        return _parse_results(await self.store.get(LINK_HISTORY_KEY))

    async def save(self, result: AnalysisResult) -> None:
        """Insert an interim result, or replace the url's interim entries with a final one."""
        async with self.store.lock(LINK_HISTORY_KEY):
            history = await self.entries()
            if not result.is_interim:
                history = [h for h in history if not (h.url == result.url and h.is_interim)]
            updated = [result, *history][: self.max_entries]
            await self.store.set(LINK_HISTORY_KEY, [h.to_dict() for h in updated])

    async def clear_for_url(self, url: str) -> bool:
        async with self.store.lock(LINK_HISTORY_KEY):
            history = await self.entries()
            kept = [h for h in history if h.url != url]
            if len(kept) == len(history):
                return False
            await self.store.set(LINK_HISTORY_KEY, [h.to_dict() for h in kept])
        logger.info("History cleared for %s", url)
        return True


class ResultCache:
    """Final results by url, capped at `max_entries` (oldest dropped first)."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_entries: int = MAX_URL_CACHE_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.max_entries = max_entries
        self.clock = clock

    async def _load(self) -> dict[str, Any]:
        raw = await self.store.get(URL_CACHE_KEY)
        return raw if isinstance(raw, dict) else {}

    async def get(self, url: str) -> Optional[AnalysisResult]:
        raw = (await self._load()).get(url)
        if not isinstance(raw, dict):
            return None
        try:
            return AnalysisResult.from_dict(raw.get("result"))
        except ValueError:
            return None

    async def save(self, result: AnalysisResult) -> None:
        async with self.store.lock(URL_CACHE_KEY):
            cache = await self._load()
            cache.pop(result.url, None)
            cache[result.url] = {"result": result.to_dict(), "cachedAt": self.clock()}
            overflow = len(cache) - self.max_entries
            if overflow > 0:
                for stale in list(cache.keys())[:overflow]:
                    del cache[stale]
            await self.store.set(URL_CACHE_KEY, cache)

    async def clear_for_url(self, url: str) -> bool:
        async with self.store.lock(URL_CACHE_KEY):
            cache = await self._load()
            if url not in cache:
                return False
            del cache[url]
            await self.store.set(URL_CACHE_KEY, cache)
        logger.info("Cache cleared for %s", url)
        return True
