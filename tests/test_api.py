import unittest

import httpx
from fastapi.testclient import TestClient

from url_risk.api import create_app
from url_risk.cache import VerdictCache
from url_risk.checker import RiskAnalyzer
from url_risk.config import Settings
from url_risk.errors import NetworkFailure
from url_risk.history import HistoryStore, ResultCache
from url_risk.http import Fetcher
from url_risk.models import RiskState, SourceId
from url_risk.providers import Registry, SourceAdapter
from url_risk.retry import RetryPolicy
from url_risk.sources import SourceContext
from url_risk.store import MemoryStore


def offline(request):
    raise httpx.ConnectError("offline", request=request)


async def safe(url, ctx):
    return RiskState.SAFE


async def phishing(url, ctx):
    return RiskState.PHISHING


async def down(url, ctx):
    raise NetworkFailure("down")


def make_analyzer(checks=None, settings=None):
    store = MemoryStore()
    fetcher = Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(offline)))
    ctx = SourceContext(fetcher=fetcher, store=store, settings=settings or Settings())
    cache = VerdictCache(store)
    policy = RetryPolicy(retries=1, base_delay_seconds=0.0, max_delay_seconds=0.0)
    checks = {**{s: safe for s in SourceId}, **(checks or {})}
    adapters = {s: SourceAdapter(s, fn, ctx, cache, retry_policy=policy) for s, fn in checks.items()}
    return RiskAnalyzer(Registry(adapters), HistoryStore(store), ResultCache(store))


class TestApi(unittest.TestCase):
    def client(self, analyzer=None):
        return TestClient(create_app(analyzer or make_analyzer()))

    def test_health(self):
        with self.client() as client:
            r = client.get("/api/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "ok")

    def test_analyze_returns_final_result(self):
        analyzer = make_analyzer({SourceId.OPENPHISH: phishing})
        with self.client(analyzer) as client:
            r = client.post("/api/analyze", json={"url": "http://example.com", "tabId": 1})
            history = client.get("/api/history").json()

        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["state"], "Phishing")
        self.assertEqual(body["reportingSource"], "openPhish")
        self.assertFalse(body["isInterim"])
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["url"], "http://example.com")

    def test_analyze_outage_falls_back(self):
        analyzer = make_analyzer({s: down for s in SourceId if s not in (SourceId.HEURISTIC, SourceId.SSL)})
        with self.client(analyzer) as client:
            body = client.post("/api/analyze", json={"url": "https://example.com/"}).json()
        self.assertEqual(set(body["sources"]), {"heuristic", "ssl"})
        self.assertEqual(body["state"], "Unknown")
        self.assertTrue(any(e.startswith("All API checks failed") for e in body["errors"]))

    def test_analyze_rejects_non_http(self):
        with self.client() as client:
            r = client.post("/api/analyze", json={"url": "file:///etc/passwd"})
        self.assertEqual(r.status_code, 400)

    def test_navigation(self):
        with self.client() as client:
            accepted = client.post("/api/navigation", json={"url": "https://example.com/", "tabId": 2}).json()
            ignored = client.post("/api/navigation", json={"url": "about:blank"}).json()
        self.assertEqual(accepted, {"accepted": True})
        self.assertEqual(ignored, {"accepted": False})

    def test_messages(self):
        with self.client() as client:
            cancel = client.post("/api/messages", json={"action": "cancelAnalysis"}).json()
            unknown = client.post("/api/messages", json={"action": "nope"}).json()
            clear = client.post(
                "/api/messages", json={"action": "clearCacheAndHistoryForUrl", "url": "https://example.com/"}
            ).json()
        self.assertEqual(cancel, {"success": True})
        self.assertEqual(unknown, {"success": False, "error": "Unknown action"})
        self.assertEqual(clear, {"success": True})

    def test_sources(self):
        analyzer = make_analyzer(settings=Settings(google_safebrowsing_api_key="k"))
        # configured status comes from the adapters' availability hooks
        analyzer.registry.get(SourceId.ABUSEIPDB)._available_fn = lambda: None
        with self.client(analyzer) as client:
            sources = client.get("/api/sources").json()["sources"]

        by_id = {s["id"]: s for s in sources}
        self.assertEqual(list(by_id), [s.value for s in SourceId])
        self.assertEqual(by_id["heuristic"]["phase"], "fast")
        self.assertEqual(by_id["phishTank"]["phase"], "slow")
        self.assertFalse(by_id["abuseIpDb"]["configured"])
        self.assertTrue(by_id["heuristic"]["configured"])


if __name__ == "__main__":
    unittest.main()
