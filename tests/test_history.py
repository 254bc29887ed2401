import unittest

from url_risk.history import LINK_HISTORY_KEY, URL_CACHE_KEY, HistoryStore, ResultCache
from url_risk.models import AnalysisResult, RiskState, SourceId
from url_risk.store import MemoryStore


def make_result(url: str, *, interim: bool = False, state: RiskState = RiskState.SAFE) -> AnalysisResult:
    return AnalysisResult(
        url=url,
        state=state,
        score=0,
        reporting_source=None,
        sources={SourceId.HEURISTIC: state, SourceId.SSL: state},
        timestamp="2026-01-01T00:00:00+00:00",
        is_interim=interim,
    )


class TestHistoryStore(unittest.IsolatedAsyncioTestCase):
    async def test_final_replaces_interim(self):
        history = HistoryStore(MemoryStore())
        await history.save(make_result("https://u.example/", interim=True))
        await history.save(make_result("https://u.example/", interim=False))

        entries = [e for e in await history.entries() if e.url == "https://u.example/"]
        self.assertEqual(len(entries), 1)
        self.assertFalse(entries[0].is_interim)

    async def test_final_keeps_other_urls_and_older_finals(self):
        history = HistoryStore(MemoryStore())
        await history.save(make_result("https://u.example/"))
        await history.save(make_result("https://v.example/", interim=True))
        await history.save(make_result("https://u.example/"))

        urls = [(e.url, e.is_interim) for e in await history.entries()]
        self.assertEqual(urls, [
            ("https://u.example/", False),
            ("https://v.example/", True),
            ("https://u.example/", False),
        ])

    async def test_most_recent_first_and_capped(self):
        history = HistoryStore(MemoryStore(), max_entries=50)
        for i in range(60):
            await history.save(make_result(f"https://site{i}.example/"))
        entries = await history.entries()
        self.assertEqual(len(entries), 50)
        self.assertEqual(entries[0].url, "https://site59.example/")

    async def test_clear_for_url(self):
        history = HistoryStore(MemoryStore())
        await history.save(make_result("https://u.example/"))
        await history.save(make_result("https://v.example/"))
        self.assertTrue(await history.clear_for_url("https://u.example/"))
        self.assertFalse(await history.clear_for_url("https://u.example/"))
        self.assertEqual([e.url for e in await history.entries()], ["https://v.example/"])

    async def test_malformed_entries_are_skipped(self):
        store = MemoryStore()
        await store.set(LINK_HISTORY_KEY, [{"url": "https://bad.example/", "score": 900}])
        self.assertEqual(await HistoryStore(store).entries(), [])


class TestResultCache(unittest.IsolatedAsyncioTestCase):
    async def test_save_get_clear(self):
        cache = ResultCache(MemoryStore())
        result = make_result("https://u.example/", state=RiskState.PHISHING)
        await cache.save(result)
        self.assertEqual(await cache.get("https://u.example/"), result)
        self.assertTrue(await cache.clear_for_url("https://u.example/"))
        self.assertIsNone(await cache.get("https://u.example/"))

    async def test_cap_drops_oldest(self):
        store = MemoryStore()
        cache = ResultCache(store, max_entries=100)
        for i in range(101):
            await cache.save(make_result(f"https://site{i}.example/"))
        raw = await store.get(URL_CACHE_KEY)
        self.assertEqual(len(raw), 100)
        self.assertNotIn("https://site0.example/", raw)
        self.assertIn("https://site100.example/", raw)


if __name__ == "__main__":
    unittest.main()
