"""
Hostname -> IPv4 resolution over DNS-over-HTTPS (Google public resolver)
https://developers.google.com/speed/public-dns/docs/doh/json
"""

from __future__ import annotations

from ..errors import NetworkFailure
from ..http import response_json
from ..normalize import is_ipv4, parse_url, to_punycode
from .base import SourceContext

DOH_URL = "https://dns.google/resolve"
A_RECORD = 1


async def resolve_ipv4(url: str, ctx: SourceContext) -> str:
    """Return the first A record for the URL's host (IP literals pass through)."""
    try:
        host = parse_url(url).host
    except ValueError as e:
        raise NetworkFailure(str(e)) from e

    if is_ipv4(host):
        return host

    response = await ctx.fetcher.get(DOH_URL, params={"name": to_punycode(host), "type": "A"})
    data = response_json(response)
    answers = data.get("Answer") if isinstance(data, dict) else None
    for record in answers or []:
        if isinstance(record, dict) and record.get("type") == A_RECORD and is_ipv4(str(record.get("data"))):
            return str(record["data"])
    raise NetworkFailure(f"Could not resolve domain: {host}")
