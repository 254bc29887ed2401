"""
OpenPhish - Phishing URL feed
Uses the public plain-text feed (mirrored locally, refreshed hourly)
No API key required
https://openphish.com/
"""

from __future__ import annotations

from ..models import RiskState
from .base import SourceContext
from .feeds import FeedMirror

FEED_URL = "https://openphish.com/feed.txt"

MIRROR = FeedMirror(
    name="OpenPhish",
    data_key="openPhishData",
    timestamp_key="openPhishDataTimestamp",
    max_age_seconds=60 * 60,
)


def parse_feed(content: str) -> list[str]:
    return [line.strip() for line in content.splitlines() if line.strip()]


async def _download(ctx: SourceContext) -> list[str]:
    response = await ctx.fetcher.get(FEED_URL)
    return parse_feed(response.text)


async def check(url: str, ctx: SourceContext) -> RiskState:
    urls = await MIRROR.load(ctx, _download) or []
    return RiskState.PHISHING if url in set(urls) else RiskState.SAFE
