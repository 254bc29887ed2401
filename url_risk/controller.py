"""Inbound events and commands.

Navigation events start an analysis cycle in the background; message
commands are answered immediately with a {"success": ...} dict.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from .cancellation import CancellationToken
from .checker import RiskAnalyzer
from .models import AnalysisResult, NavigationEvent
from .normalize import is_http_url

logger = logging.getLogger(__name__)


class Controller:
    def __init__(self, analyzer: RiskAnalyzer) -> None:
        self.analyzer = analyzer
        self._active: dict[asyncio.Task, CancellationToken] = {}

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def _analyze(self, url: str, tab_id: Optional[int], token: CancellationToken) -> Optional[AnalysisResult]:
        try:
            return await self.analyzer.analyze(url, tab_id, token)
        except Exception:
            logger.exception("Analysis of %s failed", url)
            return None

    def start(self, url: str, tab_id: Optional[int] = None) -> Optional[asyncio.Task]:
        if not is_http_url(url):
            logger.debug("Ignoring navigation to %s", url)
            return None
        token = CancellationToken()
        task = asyncio.create_task(self._analyze(url, tab_id, token))
        self._active[task] = token
        task.add_done_callback(lambda t: self._active.pop(t, None))
        return task

    def on_navigation(self, event: NavigationEvent) -> Optional[asyncio.Task]:
        return self.start(event.url, event.tab_id)

    def cancel_all(self) -> int:
        for token in self._active.values():
            token.cancel()
        return len(self._active)

    async def clear_url(self, url: str) -> bool:
        cache_cleared, history_cleared = await asyncio.gather(
            self.analyzer.result_cache.clear_for_url(url),
            self.analyzer.history.clear_for_url(url),
        )
        return cache_cleared or history_cleared

    async def drain(self) -> None:
        """Wait for every running cycle (used by tests and shutdown)."""
        if self._active:
            await asyncio.gather(*list(self._active), return_exceptions=True)

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any]:
        action = message.get("action")

        if action == "cancelAnalysis":
            cancelled = self.cancel_all()
            logger.info("Cancelled %d running analyses", cancelled)
            return {"success": True}

        if action == "clearCacheAndHistoryForUrl":
            url = message.get("url")
            if not isinstance(url, str) or not url:
                return {"success": False, "error": "Missing url"}
            await self.clear_url(url)
            return {"success": True}

        if action == "refreshAnalysis":
            url = message.get("url")
            if not isinstance(url, str) or not url:
                return {"success": False, "error": "Missing url"}
            await self.clear_url(url)
            if self.start(url, message.get("tabId")) is None:
                return {"success": False, "error": "Only http(s) URLs can be analyzed"}
            return {"success": True}

        logger.warning("Unknown action: %s", action)
        return {"success": False, "error": "Unknown action"}
