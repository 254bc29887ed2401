"""
PhishTank - Community phishing verification
Uses a local mirror of the online-valid database (refreshed every 24h)
No API key required for the data feed
https://phishtank.org/
"""

from __future__ import annotations

from typing import Any

from ..errors import ParseFailure
from ..http import response_json
from ..models import RiskState
from .base import SourceContext
from .feeds import FeedMirror

DATABASE_URL = "https://data.phishtank.com/data/online-valid.json"

MIRROR = FeedMirror(
    name="PhishTank",
    data_key="phishTankDatabase",
    timestamp_key="phishTankDbTimestamp",
    max_age_seconds=24 * 60 * 60,
)


def _is_valid(item: dict[str, Any]) -> bool:
    valid = item.get("valid")
    if isinstance(valid, bool):
        return valid
    return str(item.get("verified", "")).lower() == "yes"


def parse_database(payload: Any) -> dict[str, bool]:
    """Reduce the PhishTank dump to {url: valid}."""
    if not isinstance(payload, list):
        raise ParseFailure("PhishTank database is not a list")
    db: dict[str, bool] = {}
    for item in payload:
        if isinstance(item, dict) and isinstance(item.get("url"), str):
            db[item["url"]] = _is_valid(item)
    return db


async def _download(ctx: SourceContext) -> dict[str, bool]:
    response = await ctx.fetcher.get(DATABASE_URL)
    return parse_database(response_json(response))


async def check(url: str, ctx: SourceContext) -> RiskState:
    db = await MIRROR.load(ctx, _download) or {}
    if url not in db:
        return RiskState.SAFE
    return RiskState.PHISHING if db[url] else RiskState.SUSPICIOUS
