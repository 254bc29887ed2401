"""
URL Risk Web API
FastAPI surface for navigation events, commands and on-demand analysis
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from pydantic import BaseModel

from . import __version__
from .checker import RiskAnalyzer, build_analyzer
from .controller import Controller
from .models import FAST_SOURCES, NavigationEvent, SourceId
from .normalize import is_http_url

logger = logging.getLogger(__name__)

SOURCE_INFO: dict[SourceId, tuple[str, str]] = {
    SourceId.PHISHTANK: ("PhishTank", "Verified phishing URLs (local mirror)"),
    SourceId.GOOGLE_SAFE_BROWSING: ("Google Safe Browsing", "Phishing/malware"),
    SourceId.OPENPHISH: ("OpenPhish", "Phishing URL feed"),
    SourceId.URLHAUS: ("URLhaus", "Malware URLs (abuse.ch)"),
    SourceId.ABUSEIPDB: ("AbuseIPDB", "Host IP abuse reports"),
    SourceId.IP_REPUTATION: ("IP reputation", "AbuseIPDB / IPQualityScore"),
    SourceId.HEURISTIC: ("Heuristic", "Lexical URL analysis"),
    SourceId.SSL: ("HTTPS check", "HTTPS and security headers"),
}


class NavigationRequest(BaseModel):
    url: str
    tabId: Optional[int] = None


class AnalyzeRequest(BaseModel):
    url: str
    tabId: Optional[int] = None


def create_app(analyzer: Optional[RiskAnalyzer] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = analyzer is None
        app.state.analyzer = analyzer or build_analyzer()
        app.state.controller = Controller(app.state.analyzer)
        try:
            yield
        finally:
            await app.state.controller.drain()
            if owned:
                await app.state.analyzer.close()

    app = FastAPI(
        title="URL Risk",
        description="Concurrent multi-source URL risk aggregation",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/api/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/navigation")
    async def navigation(request: Request, body: NavigationRequest):
        """Start a background analysis cycle, as a browser navigation would"""
        task = request.app.state.controller.on_navigation(NavigationEvent(url=body.url, tab_id=body.tabId))
        return {"accepted": task is not None}

    @app.post("/api/messages")
    async def messages(request: Request, message: dict[str, Any] = Body(...)):
        """Command channel: cancelAnalysis, refreshAnalysis, clearCacheAndHistoryForUrl"""
        return await request.app.state.controller.handle_message(message)

    @app.post("/api/analyze")
    async def analyze(request: Request, body: AnalyzeRequest):
        """Run one full cycle and return the final result"""
        if not is_http_url(body.url):
            raise HTTPException(status_code=400, detail="Only http(s) URLs can be analyzed")
        try:
            result = await request.app.state.analyzer.analyze(body.url, body.tabId)
        except Exception as e:
            logger.exception("Analysis of %s failed", body.url)
            raise HTTPException(status_code=500, detail=str(e)) from e
        return result.to_dict()

    @app.get("/api/history")
    async def history(request: Request):
        """Link history, most recent first"""
        entries = await request.app.state.analyzer.history.entries()
        return [e.to_dict() for e in entries]

    @app.get("/api/sources")
    async def list_sources(request: Request):
        """List sources with their phase and whether they are configured"""
        registry = request.app.state.analyzer.registry
        out = []
        for adapter in registry.select():
            name, description = SOURCE_INFO[adapter.source]
            out.append({
                "id": adapter.source.value,
                "name": name,
                "description": description,
                "phase": "fast" if adapter.source in FAST_SOURCES else "slow",
                "configured": adapter.is_available(),
            })
        return {"sources": out}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
