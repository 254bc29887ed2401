"""Source interface.

A source is a module exposing `async def check(url, ctx) -> RiskState`.
It raises a SourceError subclass on failure; caching, retries, timeouts and
the mapping of failures to Unknown are the adapter's job, not the source's.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..config import Settings
from ..http import Fetcher
from ..models import RiskState
from ..store import KeyValueStore


@dataclass(frozen=True)
class SourceContext:
    fetcher: Fetcher
    store: KeyValueStore
    settings: Settings = field(default_factory=Settings)
    clock: Callable[[], float] = time.time


CheckFn = Callable[[str, SourceContext], Awaitable[RiskState]]
