import asyncio
import unittest

from url_risk.cache import VerdictCache
from url_risk.cancellation import CancellationToken
from url_risk.checker import (
    CANCELLED_ERROR,
    FALLBACK_ERROR,
    TIMED_OUT_ERROR,
    AnalysisPhase,
    RiskAnalyzer,
)
from url_risk.errors import NetworkFailure, StoreError
from url_risk.events import EventBus, Recorder
from url_risk.history import HistoryStore, ResultCache
from url_risk.http import Fetcher
from url_risk.models import FAST_SOURCES, SLOW_SOURCES, RiskState, SourceId
from url_risk.providers import Registry, SourceAdapter
from url_risk.retry import RetryPolicy
from url_risk.scoring import impact_message
from url_risk.sources import SourceContext
from url_risk.store import MemoryStore

NO_DELAY = RetryPolicy(retries=1, base_delay_seconds=0.0, max_delay_seconds=0.0)
URL = "http://example.com"


def returns(state, delay=0.0):
    async def check(url, ctx):
        if delay:
            await asyncio.sleep(delay)
        return state
    return check


def fails(message="down"):
    async def check(url, ctx):
        raise NetworkFailure(message)
    return check


class BrokenHistoryStore(MemoryStore):
    async def set(self, key, value):
        if key == "linkHistory":
            raise StoreError("history unavailable")
        await super().set(key, value)


class AnalyzerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.fetcher = Fetcher()
        self.recorder = Recorder()
        self.bus = EventBus()
        self.bus.subscribe(self.recorder)

    async def asyncTearDown(self):
        await self.fetcher.close()

    def make_analyzer(self, checks=None, *, store=None, **kwargs):
        """All sources Safe unless overridden in `checks`."""
        store = store or MemoryStore()
        self.store = store
        ctx = SourceContext(fetcher=self.fetcher, store=store)
        cache = VerdictCache(store)
        checks = {**{s: returns(RiskState.SAFE) for s in SourceId}, **(checks or {})}
        adapters = {
            s: SourceAdapter(s, fn, ctx, cache, retry_policy=NO_DELAY)
            for s, fn in checks.items()
        }
        kwargs.setdefault("max_concurrency", 6)
        return RiskAnalyzer(
            Registry(adapters),
            HistoryStore(store),
            ResultCache(store),
            self.bus,
            **kwargs,
        )

    def progress_values(self):
        return [m["progress"] for m in self.recorder.messages if m["action"] == "progressUpdate"]


class TestScenarios(AnalyzerTestCase):
    async def test_all_safe(self):
        analyzer = self.make_analyzer()
        token = CancellationToken()
        self.assertEqual(analyzer.phase_of(token), AnalysisPhase.IDLE)
        result = await analyzer.analyze(URL, tab_id=7, token=token)

        self.assertEqual(result.state, RiskState.SAFE)
        self.assertEqual(result.score, 0)
        self.assertIsNone(result.reporting_source)
        self.assertFalse(result.is_interim)
        self.assertEqual(set(result.sources), set(SourceId))
        self.assertEqual(result.errors, [])
        self.assertEqual(analyzer.phase_of(token), AnalysisPhase.FINALIZED)

        badge = [m for m in self.recorder.messages if m["action"] == "setBadge"]
        self.assertEqual(badge, [{"action": "setBadge", "tabId": 7, "text": "SAFE", "color": "#388e3c"}])

    async def test_single_phishing_network_source(self):
        analyzer = self.make_analyzer({SourceId.GOOGLE_SAFE_BROWSING: returns(RiskState.PHISHING)})
        result = await analyzer.analyze(URL)

        self.assertEqual(result.state, RiskState.PHISHING)
        self.assertEqual(result.reporting_source, SourceId.GOOGLE_SAFE_BROWSING)
        self.assertEqual(result.score, 35)
        self.assertGreater(result.score, 20)

    async def test_network_outage_falls_back_to_fast_sources(self):
        analyzer = self.make_analyzer({s: fails() for s in SLOW_SOURCES})
        result = await analyzer.analyze(URL)

        self.assertEqual(set(result.sources), set(FAST_SOURCES))
        # the missing network verdicts keep the outcome Unknown
        self.assertEqual(result.state, RiskState.UNKNOWN)
        self.assertEqual(result.impact, impact_message(RiskState.UNKNOWN))
        badge = [m for m in self.recorder.messages if m["action"] == "setBadge"]
        self.assertEqual(badge[0]["text"], "UNKN")
        self.assertEqual(result.errors[-1], FALLBACK_ERROR)
        for s in SLOW_SOURCES:
            self.assertIn(f"{s.value}: down", result.errors)

    async def test_fast_failure_is_recorded(self):
        analyzer = self.make_analyzer({SourceId.SSL: fails("tls broke")})
        result = await analyzer.analyze(URL)
        self.assertEqual(result.sources[SourceId.SSL], RiskState.UNKNOWN)
        self.assertIn("ssl: tls broke", result.errors)
        self.assertEqual(result.state, RiskState.UNKNOWN)

    async def test_non_http_url_is_ignored(self):
        analyzer = self.make_analyzer()
        self.assertIsNone(await analyzer.analyze("chrome://settings"))
        self.assertEqual(self.recorder.messages, [])


class TestLifecycle(AnalyzerTestCase):
    async def test_message_sequence(self):
        analyzer = self.make_analyzer()
        await analyzer.analyze(URL)
        actions = self.recorder.actions()

        self.assertEqual(actions[0], "analysisStarted")
        self.assertEqual(actions[1:3], ["progressUpdate", "progressUpdate"])
        self.assertEqual(actions[3], "historyUpdated")
        self.assertEqual(actions[-2:], ["setBadge", "historyUpdated"])
        self.assertEqual(self.progress_values(), [13, 25, 38, 50, 63, 75, 88, 100])

    async def test_interim_persisted_before_slow_phase(self):
        seen = {}
        analyzer = self.make_analyzer()

        async def slow_check(url, ctx):
            entries = await analyzer.history.entries()
            seen["interim"] = [(e.url, e.is_interim) for e in entries]
            seen["historyUpdated"] = "historyUpdated" in self.recorder.actions()
            return RiskState.SAFE

        analyzer.registry.get(SourceId.PHISHTANK)._check_fn = slow_check
        await analyzer.analyze(URL)

        self.assertEqual(seen["interim"], [(URL, True)])
        self.assertTrue(seen["historyUpdated"])

    async def test_interim_with_safe_fast_sources_is_unknown(self):
        analyzer = self.make_analyzer()
        seen = {}

        async def slow_check(url, ctx):
            seen["interim"] = (await analyzer.history.entries())[0]
            return RiskState.SAFE

        analyzer.registry.get(SourceId.OPENPHISH)._check_fn = slow_check
        await analyzer.analyze(URL)

        interim = seen["interim"]
        self.assertTrue(interim.is_interim)
        self.assertEqual(interim.state, RiskState.UNKNOWN)
        self.assertEqual(interim.sources[SourceId.HEURISTIC], RiskState.SAFE)
        self.assertEqual(interim.sources[SourceId.OPENPHISH], RiskState.UNKNOWN)

    async def test_interim_sources_and_state(self):
        analyzer = self.make_analyzer({SourceId.SSL: returns(RiskState.SUSPICIOUS)})
        seen = {}

        async def slow_check(url, ctx):
            seen["interim"] = (await analyzer.history.entries())[0]
            return RiskState.SAFE

        analyzer.registry.get(SourceId.URLHAUS)._check_fn = slow_check
        await analyzer.analyze(URL)

        interim = seen["interim"]
        self.assertTrue(interim.is_interim)
        self.assertEqual(interim.state, RiskState.SUSPICIOUS)
        self.assertEqual(interim.reporting_source, SourceId.SSL)
        self.assertEqual(interim.sources[SourceId.SSL], RiskState.SUSPICIOUS)
        self.assertEqual(interim.sources[SourceId.PHISHTANK], RiskState.UNKNOWN)

    async def test_final_replaces_interim_in_history_and_is_cached(self):
        analyzer = self.make_analyzer()
        result = await analyzer.analyze(URL)

        entries = await analyzer.history.entries()
        self.assertEqual(len(entries), 1)
        self.assertFalse(entries[0].is_interim)
        self.assertEqual(await analyzer.result_cache.get(URL), result)

    async def test_second_run_hits_verdict_cache(self):
        calls = {"n": 0}

        async def counted(url, ctx):
            calls["n"] += 1
            return RiskState.SAFE

        analyzer = self.make_analyzer({SourceId.OPENPHISH: counted})
        await analyzer.analyze(URL)
        await analyzer.analyze(URL)
        self.assertEqual(calls["n"], 1)

    async def test_store_failure_propagates(self):
        analyzer = self.make_analyzer(store=BrokenHistoryStore())
        with self.assertRaises(StoreError):
            await analyzer.analyze(URL)

    async def test_sinks_receive_final_result(self):
        received = []

        async def sink(result):
            received.append(result)

        async def broken_sink(result):
            raise RuntimeError("sink down")

        analyzer = self.make_analyzer(sinks=[broken_sink, sink])
        with self.assertLogs("url_risk.checker", level="ERROR"):
            result = await analyzer.analyze(URL)
        self.assertEqual(received, [result])


class TestTimeoutAndCancellation(AnalyzerTestCase):
    async def test_phase_timeout(self):
        analyzer = self.make_analyzer(
            {SourceId.ABUSEIPDB: returns(RiskState.PHISHING, delay=0.3)},
            phase_timeout_seconds=0.05,
        )
        result = await analyzer.analyze(URL)

        self.assertIn(TIMED_OUT_ERROR, result.errors)
        self.assertEqual(result.sources[SourceId.ABUSEIPDB], RiskState.UNKNOWN)
        self.assertEqual(result.state, RiskState.UNKNOWN)
        progress_at_final = list(self.progress_values())
        self.assertEqual(progress_at_final[-1], 88)

        # the detached check finishes later without touching the finished cycle
        await asyncio.sleep(0.4)
        self.assertEqual(self.progress_values(), progress_at_final)
        entries = await analyzer.history.entries()
        self.assertEqual(entries[0].sources[SourceId.ABUSEIPDB], RiskState.UNKNOWN)
        # but its verdict still warms the cache
        cache = analyzer.registry.get(SourceId.ABUSEIPDB).cache
        self.assertEqual(await cache.get(URL, SourceId.ABUSEIPDB), RiskState.PHISHING)

    async def test_cancel_mid_slow_phase(self):
        token = CancellationToken()

        async def first_then_cancel(url, ctx):
            token.cancel()
            return RiskState.SUSPICIOUS

        analyzer = self.make_analyzer({SourceId.PHISHTANK: first_then_cancel}, max_concurrency=1)
        result = await analyzer.analyze(URL, token=token)

        self.assertEqual(result.sources[SourceId.PHISHTANK], RiskState.SUSPICIOUS)
        for s in SLOW_SOURCES[1:]:
            self.assertEqual(result.sources[s], RiskState.UNKNOWN)
            self.assertIn(f"{s.value}: Analysis cancelled", result.errors)
        self.assertEqual(result.errors[-1], CANCELLED_ERROR)
        self.assertNotIn(FALLBACK_ERROR, result.errors)
        self.assertEqual(analyzer.phase_of(token), AnalysisPhase.CANCELLED)

    async def test_cancel_before_slow_phase_falls_back(self):
        token = CancellationToken()

        async def cancel_in_fast_phase(url, ctx):
            token.cancel()
            return RiskState.SAFE

        analyzer = self.make_analyzer({SourceId.HEURISTIC: cancel_in_fast_phase})
        result = await analyzer.analyze(URL, token=token)

        self.assertEqual(set(result.sources), set(FAST_SOURCES))
        self.assertIn(CANCELLED_ERROR, result.errors)
        self.assertEqual(result.errors[-1], FALLBACK_ERROR)

    async def test_concurrent_cycles_track_their_own_phase(self):
        entered = asyncio.Event()
        gate = asyncio.Event()

        async def gated(url, ctx):
            if url == "http://slow.example":
                entered.set()
                await gate.wait()
            return RiskState.SAFE

        analyzer = self.make_analyzer({SourceId.URLHAUS: gated})
        slow_token, fast_token = CancellationToken(), CancellationToken()
        slow = asyncio.create_task(analyzer.analyze("http://slow.example", token=slow_token))
        await asyncio.wait_for(entered.wait(), timeout=5)

        fast_token.cancel()
        await analyzer.analyze(URL, token=fast_token)
        self.assertEqual(analyzer.phase_of(fast_token), AnalysisPhase.CANCELLED)
        self.assertEqual(analyzer.phase_of(slow_token), AnalysisPhase.SLOW_PHASE)

        gate.set()
        await slow
        self.assertEqual(analyzer.phase_of(slow_token), AnalysisPhase.FINALIZED)

    async def test_token_is_per_cycle(self):
        token = CancellationToken()
        token.cancel()
        analyzer = self.make_analyzer()
        await analyzer.analyze(URL, token=token)

        result = await analyzer.analyze(URL)
        self.assertNotIn(CANCELLED_ERROR, result.errors)
        self.assertEqual(result.state, RiskState.SAFE)


if __name__ == "__main__":
    unittest.main()
