"""
HTTPS / security-header check.

Plain HTTP is Suspicious without any request. For HTTPS the origin is fetched
with HEAD and must send every header in REQUIRED_HEADERS to be Safe.
This source never reports Phishing.
"""

from __future__ import annotations

from ..errors import ParseFailure
from ..models import RiskState
from ..normalize import parse_url
from .base import SourceContext

REQUIRED_HEADERS = ("strict-transport-security", "x-frame-options")

SECURITY_HEADERS = (
    "strict-transport-security",
    "x-frame-options",
    "x-content-type-options",
    "content-security-policy",
    "referrer-policy",
)


def present_security_headers(headers) -> list[str]:
    return [h for h in SECURITY_HEADERS if headers.get(h)]


def verdict_for_headers(headers) -> RiskState:
    present = set(present_security_headers(headers))
    return RiskState.SAFE if all(h in present for h in REQUIRED_HEADERS) else RiskState.SUSPICIOUS


async def check(url: str, ctx: SourceContext) -> RiskState:
    if not url.lower().startswith("https://"):
        return RiskState.SUSPICIOUS

    try:
        host = parse_url(url).host
    except ValueError as e:
        raise ParseFailure(str(e)) from e

    response = await ctx.fetcher.head(
        f"https://{host}",
        headers={"Cache-Control": "no-store"},
        check_status=False,
    )
    return verdict_for_headers(response.headers)
