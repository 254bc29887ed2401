"""
IP reputation - resolves the host and asks the configured IP reputation
services in order (AbuseIPDB, then IPQualityScore); first answer wins.
Thresholds are stricter than the dedicated AbuseIPDB source.
https://www.ipqualityscore.com/
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from ..errors import AuthFailure, NetworkFailure, ParseFailure, SourceError
from ..http import response_json
from ..models import RiskState
from . import abuseipdb
from .base import SourceContext
from .dns import resolve_ipv4

logger = logging.getLogger(__name__)

IPQS_URL = "https://ipqualityscore.com/api/json/ip/{key}/{ip}"


def verdict_for_score(score: float) -> RiskState:
    if score >= 85:
        return RiskState.PHISHING
    if score >= 50:
        return RiskState.SUSPICIOUS
    return RiskState.SAFE


def fraud_score(data: Any) -> float:
    if not isinstance(data, dict):
        raise ParseFailure("IPQualityScore response is not an object")
    if not data.get("success", False):
        raise ParseFailure(str(data.get("message") or "IPQualityScore API error"))
    score = data.get("fraud_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ParseFailure(f"Invalid fraud_score: {score!r}")
    return float(score)


async def _query_ipqualityscore(ip: str, api_key: str, ctx: SourceContext) -> float:
    response = await ctx.fetcher.get(IPQS_URL.format(key=api_key, ip=ip))
    return fraud_score(response_json(response))


def _services(ctx: SourceContext) -> list[tuple[str, Callable[[str], Awaitable[float]]]]:
    settings = ctx.settings
    services: list[tuple[str, Callable[[str], Awaitable[float]]]] = []
    if settings.abuseipdb_api_key:
        key = settings.abuseipdb_api_key
        services.append(("abuseipdb", lambda ip: abuseipdb.query(ip, key, ctx)))
    if settings.ipqualityscore_api_key:
        ipqs_key = settings.ipqualityscore_api_key
        services.append(("ipqualityscore", lambda ip: _query_ipqualityscore(ip, ipqs_key, ctx)))
    return services


async def check(url: str, ctx: SourceContext) -> RiskState:
    services = _services(ctx)
    if not services:
        raise AuthFailure("No IP reputation API key set (ABUSEIPDB_API_KEY or IPQUALITYSCORE_API_KEY)")

    ip = await resolve_ipv4(url, ctx)

    failures: list[str] = []
    for name, query in services:
        try:
            return verdict_for_score(await query(ip))
        except SourceError as e:
            logger.warning("IP reputation service %s failed for %s: %s", name, ip, e)
            failures.append(f"{name}: {e}")
    raise NetworkFailure("; ".join(failures))
