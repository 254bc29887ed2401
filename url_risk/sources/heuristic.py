"""
Heuristic URL analysis (no network).

Lexical/structural signals each add fixed points:
- suspicious keyword in host or path: 30
- suspicious TLD: 20
- known phishing pattern: 40
- non-ASCII or punycode hostname (homograph risk): 30
- URL shortener host: 20

Total >= 70 is Phishing, >= 40 Suspicious, anything lower Safe.
Hosts on the trusted allowlist are Safe without scoring.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import ParseFailure
from ..models import RiskState
from ..normalize import parse_url
from .base import SourceContext

SUSPICIOUS_KEYWORDS = (
    "login", "signin", "verify", "account", "secure",
    "update", "password", "bank", "paypal", "amazon",
    "ebay", "apple", "microsoft", "support", "service",
    "alert", "urgent", "important", "security", "confirm",
)

SUSPICIOUS_TLDS = (
    ".xyz", ".top", ".gq", ".ml", ".cf",
    ".tk", ".rest", ".buzz", ".country", ".stream",
)

PHISHING_PATTERNS = (
    re.compile(r"^http://[^/]+/[^?]+\.php\?"),  # PHP with query params over plain HTTP
    re.compile(r"^https?://\d{1,3}(?:\.\d{1,3}){3}(?::\d+)?(?:[/?#]|$)"),  # raw IPv4 host
    re.compile(r"[\u0400-\u04FF]"),  # Cyrillic
    re.compile(r"[\u4E00-\u9FFF]"),  # CJK
    re.compile(r"[\u0600-\u06FF]"),  # Arabic
)

SHORTENERS = (
    "bit.ly", "goo.gl", "tinyurl.com", "ow.ly", "t.co",
    "is.gd", "buff.ly", "adf.ly", "shorte.st", "bc.vc",
)

TRUSTED_DOMAINS = (
    "google.com", "youtube.com", "microsoft.com", "live.com", "apple.com",
    "amazon.com", "paypal.com", "github.com", "wikipedia.org", "mozilla.org",
    "python.org",
)

POINTS = {
    "keyword": 30,
    "tld": 20,
    "pattern": 40,
    "idn": 30,
    "shortener": 20,
}

PHISHING_THRESHOLD = 70
SUSPICIOUS_THRESHOLD = 40


def _matches_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def is_trusted(host: str) -> bool:
    return any(_matches_domain(host, d) for d in TRUSTED_DOMAINS)


@dataclass(frozen=True)
class HeuristicReport:
    score: int
    signals: tuple[str, ...]

    @property
    def state(self) -> RiskState:
        if self.score >= PHISHING_THRESHOLD:
            return RiskState.PHISHING
        if self.score >= SUSPICIOUS_THRESHOLD:
            return RiskState.SUSPICIOUS
        return RiskState.SAFE


def score_url(url: str) -> HeuristicReport:
    try:
        parsed = parse_url(url)
    except ValueError as e:
        raise ParseFailure(str(e)) from e

    host = parsed.host
    if is_trusted(host):
        return HeuristicReport(score=0, signals=("trusted",))

    path = parsed.path.lower()
    full = url.strip().lower()

    signals: list[str] = []
    if any(k in host or k in path for k in SUSPICIOUS_KEYWORDS):
        signals.append("keyword")
    if host.endswith(SUSPICIOUS_TLDS):
        signals.append("tld")
    if any(p.search(full) for p in PHISHING_PATTERNS):
        signals.append("pattern")
    if not host.isascii() or any(label.startswith("xn--") for label in host.split(".")):
        signals.append("idn")
    if any(_matches_domain(host, s) for s in SHORTENERS):
        signals.append("shortener")

    return HeuristicReport(score=sum(POINTS[s] for s in signals), signals=tuple(signals))


def analyze(url: str) -> RiskState:
    return score_url(url).state


async def check(url: str, ctx: SourceContext) -> RiskState:
    return analyze(url)
