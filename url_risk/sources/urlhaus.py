"""
URLhaus (abuse.ch) - Malware URL database
Queries the URL lookup API per URL
No API key required
https://urlhaus.abuse.ch/
"""

from __future__ import annotations

from typing import Any

from ..errors import ParseFailure
from ..http import response_json
from ..models import RiskState
from .base import SourceContext

API_URL = "https://urlhaus-api.abuse.ch/v1/url/"


def parse_response(data: Any) -> RiskState:
    if not isinstance(data, dict):
        raise ParseFailure("URLhaus response is not an object")

    status = data.get("query_status")
    if status == "no_results":
        return RiskState.SAFE
    if status != "ok":
        raise ParseFailure(f"URLhaus query failed: {status}")

    url_status = data.get("url_status")
    if url_status == "online":
        return RiskState.PHISHING
    if url_status == "offline":
        return RiskState.SUSPICIOUS
    return RiskState.SAFE


async def check(url: str, ctx: SourceContext) -> RiskState:
    response = await ctx.fetcher.post(API_URL, data={"url": url})
    return parse_response(response_json(response))
