"""Per-(url, source) verdict cache.

Goal: skip network calls for URLs a source has already judged recently.

The whole cache lives under one store key as a map of
"<url>:<sourceId>" -> {"verdict": ..., "recordedAt": ...}:
- TTL handled at read time (expired entries are deleted lazily)
- size capped on write by dropping the oldest-inserted keys
- reads fail open: any storage or schema problem is a miss
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from .errors import StoreError
from .models import CacheEntry, RiskState, SourceId
from .store import KeyValueStore

logger = logging.getLogger(__name__)

API_CACHE_KEY = "apiCache"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
MAX_CACHE_ENTRIES = 500


def parse_ttl(ttl: str) -> int:
    """Parse TTL strings like: 3600, 10m, 24h, 7d."""
    s = ttl.strip().lower()
    if s.isdigit():
        return int(s)

    units = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = s[-1:]
    if unit not in units or not s[:-1].isdigit():
        raise ValueError(f"Invalid TTL: {ttl}")
    return int(s[:-1]) * units[unit]


def make_cache_key(url: str, source: SourceId) -> str:
    return f"{url}:{source.value}"


class VerdictCache:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock

    async def _load(self) -> dict[str, Any]:
        raw = await self.store.get(API_CACHE_KEY)
        return raw if isinstance(raw, dict) else {}

    async def get(self, url: str, source: SourceId) -> Optional[RiskState]:
        key = make_cache_key(url, source)
        try:
            raw = (await self._load()).get(key)
            if raw is None:
                return None
            try:
                entry = CacheEntry.from_dict(raw)
            except ValueError:
                logger.debug("Dropping malformed cache entry %s", key)
                await self._evict(key)
                return None
            if entry.is_expired(self.clock(), self.ttl_seconds):
                await self._evict(key)
                return None
            logger.debug("Cache hit for %s", key)
            return entry.verdict
        except Exception as e:  # noqa: BLE001
            logger.debug("Cache read failed for %s: %s", key, e)
            return None

    async def _evict(self, key: str) -> None:
        async with self.store.lock(API_CACHE_KEY):
            cache = await self._load()
            if cache.pop(key, None) is not None:
                await self.store.set(API_CACHE_KEY, cache)

    async def put(self, url: str, source: SourceId, verdict: RiskState) -> None:
        key = make_cache_key(url, source)
        entry = CacheEntry(verdict=verdict, recorded_at=self.clock())
        try:
            async with self.store.lock(API_CACHE_KEY):
                cache = await self._load()
                now = self.clock()
                merged: dict[str, Any] = {}
                for k, v in cache.items():
                    try:
                        if CacheEntry.from_dict(v).is_expired(now, self.ttl_seconds):
                            continue
                    except ValueError:
                        continue
                    merged[k] = v
                # Re-inserted keys move to the end so the fresh entry survives the cap.
                merged.pop(key, None)
                merged[key] = entry.to_dict()

                overflow = len(merged) - self.max_entries
                if overflow > 0:
                    for stale in list(merged.keys())[:overflow]:
                        del merged[stale]

                await self.store.set(API_CACHE_KEY, merged)
        except StoreError as e:
            logger.warning("Skipping cache write for %s: %s", key, e)

    async def clear(self) -> None:
        async with self.store.lock(API_CACHE_KEY):
            await self.store.delete(API_CACHE_KEY)

    async def size(self) -> int:
        return len(await self._load())
