"""Models for url-risk.

Verdict vocabulary, source identifiers and the persisted record shapes.
The JSON form of every record uses camelCase keys; `from_dict` helpers
validate stored data and raise ValueError on schema mismatch so callers can
drop bad entries instead of trusting the stored shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class RiskState(str, Enum):
    SAFE = "Safe"
    SUSPICIOUS = "Suspicious"
    PHISHING = "Phishing"
    UNKNOWN = "Unknown"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


# Phishing > Suspicious > Unknown > Safe
_SEVERITY = {
    RiskState.SAFE: 0,
    RiskState.UNKNOWN: 1,
    RiskState.SUSPICIOUS: 2,
    RiskState.PHISHING: 3,
}


class SourceId(str, Enum):
    # Declaration order is the canonical iteration order.
    PHISHTANK = "phishTank"
    GOOGLE_SAFE_BROWSING = "googleSafeBrowsing"
    OPENPHISH = "openPhish"
    URLHAUS = "urlHaus"
    ABUSEIPDB = "abuseIpDb"
    IP_REPUTATION = "ipReputation"
    HEURISTIC = "heuristic"
    SSL = "ssl"


FAST_SOURCES: tuple[SourceId, ...] = (SourceId.HEURISTIC, SourceId.SSL)
SLOW_SOURCES: tuple[SourceId, ...] = tuple(s for s in SourceId if s not in FAST_SOURCES)

SourceResultMap = dict[SourceId, RiskState]


def complete_sources(sources: Mapping[SourceId, RiskState]) -> SourceResultMap:
    """Return a map with all eight sources, absent ones defaulted to Unknown."""
    return {s: sources.get(s, RiskState.UNKNOWN) for s in SourceId}


def _sources_to_dict(sources: Mapping[SourceId, RiskState]) -> dict[str, str]:
    return {s.value: sources[s].value for s in SourceId if s in sources}


def _sources_from_dict(raw: Any) -> SourceResultMap:
    if not isinstance(raw, dict):
        raise ValueError("sources must be an object")
    return {SourceId(k): RiskState(v) for k, v in raw.items()}


@dataclass(frozen=True)
class CacheEntry:
    verdict: RiskState
    recorded_at: float  # epoch seconds

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.recorded_at >= ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        return {"verdict": self.verdict.value, "recordedAt": self.recorded_at}

    @classmethod
    def from_dict(cls, raw: Any) -> CacheEntry:
        if not isinstance(raw, dict):
            raise ValueError("cache entry must be an object")
        recorded_at = raw.get("recordedAt")
        if isinstance(recorded_at, bool) or not isinstance(recorded_at, (int, float)):
            raise ValueError("cache entry has no recordedAt")
        return cls(verdict=RiskState(raw.get("verdict")), recorded_at=float(recorded_at))


@dataclass(frozen=True)
class Badge:
    text: str
    color: str


@dataclass(frozen=True)
class AnalysisResult:
    url: str
    state: RiskState
    score: int
    reporting_source: Optional[SourceId]
    sources: SourceResultMap
    errors: list[str] = field(default_factory=list)
    timestamp: str = ""  # ISO-8601 UTC
    elapsed_ms: float = 0.0
    is_interim: bool = False
    impact: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "state": self.state.value,
            "score": int(self.score),
            "reportingSource": self.reporting_source.value if self.reporting_source else None,
            "sources": _sources_to_dict(self.sources),
            "errors": list(self.errors),
            "timestamp": self.timestamp,
            "elapsedMs": float(self.elapsed_ms),
            "isInterim": bool(self.is_interim),
            "impact": self.impact,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> AnalysisResult:
        if not isinstance(raw, dict):
            raise ValueError("analysis result must be an object")
        url = raw.get("url")
        if not isinstance(url, str):
            raise ValueError("analysis result has no url")
        score = raw.get("score")
        if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
            raise ValueError(f"invalid score: {score!r}")
        errors = raw.get("errors") or []
        if not isinstance(errors, list):
            raise ValueError("errors must be a list")
        reporting = raw.get("reportingSource")
        return cls(
            url=url,
            state=RiskState(raw.get("state")),
            score=score,
            reporting_source=SourceId(reporting) if reporting is not None else None,
            sources=_sources_from_dict(raw.get("sources")),
            errors=[str(e) for e in errors],
            timestamp=str(raw.get("timestamp") or ""),
            elapsed_ms=float(raw.get("elapsedMs") or 0.0),
            is_interim=bool(raw.get("isInterim", False)),
            impact=str(raw.get("impact") or ""),
        )


@dataclass(frozen=True)
class NavigationEvent:
    url: str
    tab_id: Optional[int] = None
