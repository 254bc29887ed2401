"""
AbuseIPDB - IP address reputation database
Requires API key (free tier: 1000 requests/day)
https://www.abuseipdb.com/
"""

from __future__ import annotations

from typing import Any

from ..errors import AuthFailure, ParseFailure
from ..http import response_json
from ..models import RiskState
from .base import SourceContext
from .dns import resolve_ipv4

API_URL = "https://api.abuseipdb.com/api/v2/check"


def abuse_score(data: Any) -> float:
    payload = data.get("data") if isinstance(data, dict) else None
    if not isinstance(payload, dict):
        raise ParseFailure("AbuseIPDB response has no data")
    score = payload.get("abuseConfidenceScore", 0)
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ParseFailure(f"Invalid abuseConfidenceScore: {score!r}")
    return float(score)


def verdict_for_score(score: float) -> RiskState:
    if score > 75:
        return RiskState.PHISHING
    if score > 25:
        return RiskState.SUSPICIOUS
    return RiskState.SAFE


async def query(ip: str, api_key: str, ctx: SourceContext) -> float:
    response = await ctx.fetcher.get(
        API_URL,
        params={"ipAddress": ip, "maxAgeInDays": "90"},
        headers={"Key": api_key, "Accept": "application/json"},
    )
    return abuse_score(response_json(response))


async def check(url: str, ctx: SourceContext) -> RiskState:
    api_key = ctx.settings.abuseipdb_api_key
    if not api_key:
        raise AuthFailure("ABUSEIPDB_API_KEY not set")

    ip = await resolve_ipv4(url, ctx)
    return verdict_for_score(await query(ip, api_key, ctx))
