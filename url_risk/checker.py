"""URL Risk Analyzer - core orchestration.

One `analyze()` call is one cycle for one navigation:

1. clear the url's cached final result, publish analysisStarted
2. fast phase: heuristic + TLS concurrently
3. interim result saved to history, historyUpdated published
4. slow phase: the six network sources as tasks, raced against the phase
   timeout; tasks still running when it fires are detached and their late
   verdicts dropped
5. final result replaces the interim in history, goes to the result cache,
   setBadge + historyUpdated published, result sinks notified
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from .cache import VerdictCache
from .cancellation import CancellationToken
from .config import Settings
from .events import EventBus
from .history import HistoryStore, ResultCache
from .http import Fetcher
from .models import (
    FAST_SOURCES,
    SLOW_SOURCES,
    AnalysisResult,
    RiskState,
    SourceId,
    SourceResultMap,
    complete_sources,
)
from .normalize import is_http_url
from .providers import Registry, SourceAdapter, builtin_adapters
from .scoring import badge_for, combine, impact_message, score
from .sources import SourceContext
from .store import KeyValueStore, SqliteStore

logger = logging.getLogger(__name__)

TOTAL_CHECKS = len(FAST_SOURCES) + len(SLOW_SOURCES)
DEFAULT_PHASE_TIMEOUT_SECONDS = 30.0

TIMED_OUT_ERROR = "Analysis timed out"
CANCELLED_ERROR = "Analysis was cancelled by the user."
FALLBACK_ERROR = "All API checks failed or were cancelled. Using heuristic and SSL checks only."

ResultSink = Callable[[AnalysisResult], Awaitable[object]]


class AnalysisPhase(str, Enum):
    IDLE = "Idle"
    FAST_PHASE = "FastPhase"
    INTERIM_PUBLISHED = "InterimPublished"
    SLOW_PHASE = "SlowPhase"
    FINALIZED = "Finalized"
    CANCELLED = "Cancelled"


@dataclass
class _Cycle:
    url: str
    tab_id: Optional[int]
    token: CancellationToken
    started: float
    sources: SourceResultMap = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    completed: int = 0
    open: bool = True
    phase: AnalysisPhase = AnalysisPhase.IDLE


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RiskAnalyzer:
    def __init__(
        self,
        registry: Registry,
        history: HistoryStore,
        result_cache: ResultCache,
        bus: Optional[EventBus] = None,
        *,
        phase_timeout_seconds: float = DEFAULT_PHASE_TIMEOUT_SECONDS,
        max_concurrency: Optional[int] = None,
        weights: Optional[Mapping[SourceId, float]] = None,
        sinks: Iterable[ResultSink] = (),
        fetcher: Optional[Fetcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.history = history
        self.result_cache = result_cache
        self.bus = bus or EventBus()
        self.phase_timeout_seconds = phase_timeout_seconds
        self.max_concurrency = max_concurrency
        self.weights = weights
        self.sinks = list(sinks)
        self.fetcher = fetcher
        self.clock = clock
        # phase per cycle token; an entry lives as long as the caller keeps the token
        self._phases: weakref.WeakKeyDictionary[CancellationToken, AnalysisPhase] = weakref.WeakKeyDictionary()
        self._background: set[asyncio.Task] = set()

    async def close(self) -> None:
        if self.fetcher is not None:
            await self.fetcher.close()

    def phase_of(self, token: CancellationToken) -> AnalysisPhase:
        """Phase of the cycle started with `token` (Idle if none has started)."""
        return self._phases.get(token, AnalysisPhase.IDLE)

    def _enter(self, cycle: _Cycle, phase: AnalysisPhase) -> None:
        logger.debug("%s: %s -> %s", cycle.url, cycle.phase.value, phase.value)
        cycle.phase = phase
        self._phases[cycle.token] = phase

    async def _run(
        self,
        cycle: _Cycle,
        adapter: SourceAdapter,
        sem: Optional[asyncio.Semaphore] = None,
    ) -> None:
        if sem is not None:
            async with sem:
                outcome = await adapter.check(cycle.url, cycle.token)
        else:
            outcome = await adapter.check(cycle.url, cycle.token)

        if not cycle.open:
            logger.debug("Dropping late %s verdict for %s", adapter.source.value, cycle.url)
            return

        cycle.sources[adapter.source] = outcome.state
        if outcome.error:
            cycle.errors.append(outcome.error)
        cycle.completed += 1
        # round half up: 1/8 -> 13
        await self.bus.progress((cycle.completed * 100 + TOTAL_CHECKS // 2) // TOTAL_CHECKS)

    def _detach(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _result(
        self,
        cycle: _Cycle,
        sources: SourceResultMap,
        *,
        interim: bool,
    ) -> AnalysisResult:
        # sources left out of the stored map still count as Unknown
        full = complete_sources(sources)
        state = combine(full.values())
        vs = score(full, weights=self.weights)
        return AnalysisResult(
            url=cycle.url,
            state=state,
            score=vs.score,
            reporting_source=vs.reporting_source,
            sources=dict(sources),
            errors=list(cycle.errors),
            timestamp=_utc_now(),
            elapsed_ms=(self.clock() - cycle.started) * 1000.0,
            is_interim=interim,
            impact=impact_message(state),
        )

    async def _slow_phase(self, cycle: _Cycle) -> None:
        sem = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        tasks = [asyncio.create_task(self._run(cycle, a, sem)) for a in self.registry.slow()]
        if not tasks:
            return

        _done, pending = await asyncio.wait(tasks, timeout=self.phase_timeout_seconds)
        if pending:
            logger.warning("Slow phase timed out for %s (%d checks pending)", cycle.url, len(pending))
            cycle.errors.append(TIMED_OUT_ERROR)
            for t in pending:
                self._detach(t)

    def _final_sources(self, cycle: _Cycle) -> SourceResultMap:
        full = complete_sources(cycle.sources)
        if all(full[s] == RiskState.UNKNOWN for s in SLOW_SOURCES):
            cycle.errors.append(FALLBACK_ERROR)
            return {s: full[s] for s in FAST_SOURCES}
        return full

    async def _notify_sinks(self, result: AnalysisResult) -> None:
        for sink in self.sinks:
            try:
                await sink(result)
            except Exception:
                logger.exception("Result sink failed for %s", result.url)

    async def analyze(
        self,
        url: str,
        tab_id: Optional[int] = None,
        token: Optional[CancellationToken] = None,
    ) -> Optional[AnalysisResult]:
        """Run one analysis cycle and return the final result.

        Non-http(s) URLs are ignored and return None. Store failures while
        persisting history or the result cache propagate to the caller.
        """
        if not is_http_url(url):
            logger.debug("Skipping non-HTTP URL: %s", url)
            return None

        cycle = _Cycle(url=url, tab_id=tab_id, token=token or CancellationToken(), started=self.clock())

        await self.result_cache.clear_for_url(url)
        await self.bus.analysis_started(url)

        self._enter(cycle, AnalysisPhase.FAST_PHASE)
        logger.info("Analyzing %s", url)
        await asyncio.gather(*(self._run(cycle, a) for a in self.registry.fast()))

        fast_sources = {s: cycle.sources.get(s, RiskState.UNKNOWN) for s in FAST_SOURCES}
        interim = self._result(cycle, complete_sources(fast_sources), interim=True)
        await self.history.save(interim)
        await self.bus.history_updated()
        self._enter(cycle, AnalysisPhase.INTERIM_PUBLISHED)

        self._enter(cycle, AnalysisPhase.SLOW_PHASE)
        await self._slow_phase(cycle)
        cycle.open = False

        if cycle.token.cancelled:
            cycle.errors.append(CANCELLED_ERROR)

        final = self._result(cycle, self._final_sources(cycle), interim=False)
        await self.result_cache.save(final)
        await self.history.save(final)
        await self.bus.set_badge(tab_id, badge_for(final.state))
        await self.bus.history_updated()

        self._enter(cycle, AnalysisPhase.CANCELLED if cycle.token.cancelled else AnalysisPhase.FINALIZED)
        logger.info(
            "Analysis of %s finished: %s (%d/100) in %.0fms",
            url, final.state.value, final.score, final.elapsed_ms,
        )
        await self._notify_sinks(final)
        return final


def build_analyzer(
    settings: Optional[Settings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    fetcher: Optional[Fetcher] = None,
    bus: Optional[EventBus] = None,
    sinks: Iterable[ResultSink] = (),
) -> RiskAnalyzer:
    """Wire the default adapters, caches and history onto one store."""
    settings = settings or Settings.from_env()
    store = store or SqliteStore(settings.store_path)
    fetcher = fetcher or Fetcher(timeout_seconds=settings.source_timeout_seconds)

    ctx = SourceContext(fetcher=fetcher, store=store, settings=settings)
    cache = VerdictCache(store, ttl_seconds=settings.cache_ttl_seconds)
    registry = Registry(builtin_adapters(ctx, cache, timeout_seconds=settings.source_timeout_seconds))

    return RiskAnalyzer(
        registry,
        HistoryStore(store),
        ResultCache(store),
        bus,
        phase_timeout_seconds=settings.phase_timeout_seconds,
        max_concurrency=settings.max_concurrency,
        sinks=sinks,
        fetcher=fetcher,
    )


async def analyze_url(
    url: str,
    *,
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
) -> Optional[AnalysisResult]:
    """One-shot convenience wrapper: build an analyzer, run one cycle, close it."""
    analyzer = build_analyzer(settings, store=store)
    try:
        return await analyzer.analyze(url)
    finally:
        await analyzer.close()
