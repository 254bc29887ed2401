"""Built-in adapters wrapping the source modules."""

from __future__ import annotations

from ..cache import VerdictCache
from ..models import SourceId
from ..sources import (
    SourceContext,
    abuseipdb,
    heuristic,
    ipreputation,
    openphish,
    phishtank,
    safebrowsing,
    tls,
    urlhaus,
)
from .base import DEFAULT_TIMEOUT_SECONDS, SourceAdapter


def builtin_adapters(
    ctx: SourceContext,
    cache: VerdictCache,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> dict[SourceId, SourceAdapter]:
    settings = ctx.settings

    def adapter(source: SourceId, fn, available_fn=None) -> SourceAdapter:
        return SourceAdapter(
            source,
            fn,
            ctx,
            cache,
            timeout_seconds=timeout_seconds,
            available_fn=available_fn,
        )

    adapters = [
        # Feeds and keyless APIs
        adapter(SourceId.PHISHTANK, phishtank.check),
        adapter(SourceId.OPENPHISH, openphish.check),
        adapter(SourceId.URLHAUS, urlhaus.check),

        # API key required
        adapter(
            SourceId.GOOGLE_SAFE_BROWSING,
            safebrowsing.check,
            lambda: settings.google_safebrowsing_api_key,
        ),
        adapter(
            SourceId.ABUSEIPDB,
            abuseipdb.check,
            lambda: settings.abuseipdb_api_key,
        ),
        adapter(
            SourceId.IP_REPUTATION,
            ipreputation.check,
            lambda: settings.abuseipdb_api_key or settings.ipqualityscore_api_key,
        ),

        # Local checks
        adapter(SourceId.HEURISTIC, heuristic.check),
        adapter(SourceId.SSL, tls.check),
    ]
    return {a.source: a for a in adapters}
