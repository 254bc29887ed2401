"""Verdict combination and vulnerability scoring.

Pure functions, no IO:
- combine: one RiskState from many
- score: weighted 0-100 score, with the most severe reporting source's weight
  boosted and the remaining weights scaled so the total stays 1.0
- impact_message / badge_for: fixed presentation mappings
"""

from __future__ import annotations

import json
import logging
import math
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

from .models import Badge, RiskState, SourceId

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_WEIGHTS: dict[SourceId, float] = {
    SourceId.PHISHTANK: 0.20,
    SourceId.GOOGLE_SAFE_BROWSING: 0.20,
    SourceId.OPENPHISH: 0.15,
    SourceId.URLHAUS: 0.05,
    SourceId.ABUSEIPDB: 0.10,
    SourceId.IP_REPUTATION: 0.10,
    SourceId.HEURISTIC: 0.10,
    SourceId.SSL: 0.10,
}

STATE_POINTS: dict[RiskState, int] = {
    RiskState.PHISHING: 100,
    RiskState.SUSPICIOUS: 50,
    RiskState.UNKNOWN: 25,
    RiskState.SAFE: 0,
}

SEVERITY_BONUS = 0.15

# States that make a source eligible to be the reporting source.
REPORTING_STATES = (RiskState.PHISHING, RiskState.SUSPICIOUS)

IMPACT_MESSAGES: dict[RiskState, str] = {
    RiskState.PHISHING: "High risk: This appears to be a phishing site. Do not enter any personal information!",
    RiskState.SUSPICIOUS: "Caution: This site shows suspicious characteristics. Proceed with extreme caution.",
    RiskState.SAFE: "Safe: This site appears legitimate. No significant risks detected.",
    RiskState.UNKNOWN: "Unknown: Unable to determine the safety of this site. Exercise caution.",
}

BADGES: dict[RiskState, Badge] = {
    RiskState.PHISHING: Badge(text="RISK", color="#d32f2f"),  # red
    RiskState.SUSPICIOUS: Badge(text="WARN", color="#f57c00"),  # orange
    RiskState.SAFE: Badge(text="SAFE", color="#388e3c"),  # green
    RiskState.UNKNOWN: Badge(text="UNKN", color="#616161"),  # gray
}


@dataclass(frozen=True)
class VulnerabilityScore:
    score: int
    reporting_source: Optional[SourceId]


def _round_half_up(x: float) -> int:
    # Deterministic round-half-up for positive contributions.
    if x <= 0:
        return 0
    return int(x + 0.5)


def _sums_to_one(weights: Mapping[SourceId, float]) -> bool:
    return math.isclose(sum(weights.values()), 1.0, abs_tol=1e-6)


def load_source_weights_from_env(
    env_var: str = "URL_RISK_SOURCE_WEIGHTS",
) -> dict[SourceId, float]:
    """Load per-source weights from a JSON env var.

    Example:
      URL_RISK_SOURCE_WEIGHTS='{"phishTank": 0.25, "openPhish": 0.10}'

    Missing sources keep their default weight. The result must still sum to
    1.0, otherwise the defaults are used.
    """

    raw = os.getenv(env_var)
    weights = dict(DEFAULT_SOURCE_WEIGHTS)
    if not raw:
        return weights

    try:
        parsed = json.loads(raw)
    except ValueError:
        return dict(DEFAULT_SOURCE_WEIGHTS)

    if not isinstance(parsed, dict):
        return dict(DEFAULT_SOURCE_WEIGHTS)

    for k, v in parsed.items():
        try:
            source = SourceId(k)
        except ValueError:
            continue
        if isinstance(v, (int, float)) and not isinstance(v, bool) and v >= 0:
            weights[source] = float(v)

    if not _sums_to_one(weights):
        logger.warning("%s does not sum to 1.0; using default weights", env_var)
        return dict(DEFAULT_SOURCE_WEIGHTS)
    return weights


def combine(states: Iterable[RiskState]) -> RiskState:
    """Phishing beats Suspicious; Safe only when every state is Safe; else Unknown."""
    items = list(states)
    if RiskState.PHISHING in items:
        return RiskState.PHISHING
    if RiskState.SUSPICIOUS in items:
        return RiskState.SUSPICIOUS
    if all(s == RiskState.SAFE for s in items):
        return RiskState.SAFE
    return RiskState.UNKNOWN


def most_severe_source(sources: Mapping[SourceId, RiskState]) -> Optional[SourceId]:
    best: Optional[SourceId] = None
    best_points = -1
    for source in SourceId:
        state = sources.get(source, RiskState.UNKNOWN)
        if state not in REPORTING_STATES:
            continue
        points = STATE_POINTS[state]
        if points > best_points:
            best, best_points = source, points
    return best


def adjusted_weights(
    weights: Mapping[SourceId, float],
    boosted: Optional[SourceId],
    bonus: float = SEVERITY_BONUS,
) -> dict[SourceId, float]:
    out = {s: float(weights.get(s, 0.0)) for s in SourceId}
    if boosted is None:
        return out

    base = out[boosted]
    new = min(1.0, base + bonus)
    rest = 1.0 - base
    scale = (1.0 - new) / rest if rest > 0 else 0.0
    for s in SourceId:
        out[s] = new if s == boosted else out[s] * scale
    return out


def score(
    sources: Mapping[SourceId, RiskState],
    *,
    weights: Optional[Mapping[SourceId, float]] = None,
) -> VulnerabilityScore:
    """Weighted 0-100 vulnerability score; absent sources count as Unknown."""
    base = dict(weights) if weights is not None else load_source_weights_from_env()
    if not _sums_to_one(base):
        raise ValueError("source weights must sum to 1.0")

    reporting = most_severe_source(sources)
    effective = adjusted_weights(base, reporting)

    total = 0.0
    for source in SourceId:
        state = sources.get(source, RiskState.UNKNOWN)
        total += STATE_POINTS[state] * effective[source]

    return VulnerabilityScore(
        score=max(0, min(100, _round_half_up(total))),
        reporting_source=reporting,
    )


def impact_message(state: RiskState) -> str:
    return IMPACT_MESSAGES.get(state, IMPACT_MESSAGES[RiskState.UNKNOWN])


def badge_for(state: RiskState) -> Badge:
    return BADGES.get(state, BADGES[RiskState.UNKNOWN])
