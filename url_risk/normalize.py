"""URL helpers shared by the analyzer and the sources."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass(frozen=True)
class ParsedUrl:
    url: str
    scheme: str
    host: str  # lowercase, unicode as typed
    path: str


def is_http_url(url: str) -> bool:
    return isinstance(url, str) and url.lower().startswith(("http://", "https://"))


def parse_url(url: str) -> ParsedUrl:
    """Split an http(s) URL; raises ValueError when there is no host."""
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    if not host:
        raise ValueError(f"URL has no host: {url!r}")
    return ParsedUrl(url=url, scheme=(parsed.scheme or "").lower(), host=host, path=parsed.path or "")


def to_punycode(host: str) -> str:
    """Convert unicode hostname to punycode (idna)."""
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def is_ipv4(host: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(host), ipaddress.IPv4Address)
    except ValueError:
        return False
