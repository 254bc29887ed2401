"""
Google Safe Browsing - Phishing and malware detection
Requires API key (free tier: 10,000 requests/day)
https://safebrowsing.google.com/
"""

from __future__ import annotations

from typing import Any

from ..errors import AuthFailure, ParseFailure
from ..http import response_json
from ..models import RiskState
from .base import SourceContext

API_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"

PHISHING_TYPES = {"SOCIAL_ENGINEERING"}
SUSPICIOUS_TYPES = {"MALWARE", "UNWANTED_SOFTWARE", "POTENTIALLY_HARMFUL_APPLICATION"}


def build_request(url: str) -> dict[str, Any]:
    return {
        "client": {"clientId": "url-risk", "clientVersion": "1.0.0"},
        "threatInfo": {
            "threatTypes": sorted(PHISHING_TYPES | SUSPICIOUS_TYPES),
            "platformTypes": ["ANY_PLATFORM"],
            "threatEntryTypes": ["URL"],
            "threatEntries": [{"url": url}],
        },
    }


def parse_response(data: Any) -> RiskState:
    if not isinstance(data, dict):
        raise ParseFailure("Safe Browsing response is not an object")
    matches = data.get("matches") or []
    if not isinstance(matches, list):
        raise ParseFailure("Safe Browsing matches is not a list")

    threat_types = {m.get("threatType") for m in matches if isinstance(m, dict)}
    if threat_types & PHISHING_TYPES:
        return RiskState.PHISHING
    if threat_types & SUSPICIOUS_TYPES:
        return RiskState.SUSPICIOUS
    return RiskState.SAFE


async def check(url: str, ctx: SourceContext) -> RiskState:
    api_key = ctx.settings.google_safebrowsing_api_key
    if not api_key:
        raise AuthFailure("GOOGLE_SAFEBROWSING_API_KEY not set")

    response = await ctx.fetcher.post(API_URL, params={"key": api_key}, json=build_request(url))
    return parse_response(response_json(response))
