"""URL Risk - Concurrent multi-source URL risk aggregation."""

from .cancellation import CancellationToken
from .checker import AnalysisPhase, RiskAnalyzer, analyze_url, build_analyzer
from .config import Settings
from .models import AnalysisResult, RiskState, SourceId
from .scoring import combine, score
from .webhook import WebhookSink, send_webhook, verify_signature

__version__ = "1.0.0"
__all__ = [
    "AnalysisPhase",
    "AnalysisResult",
    "CancellationToken",
    "RiskAnalyzer",
    "RiskState",
    "Settings",
    "SourceId",
    "WebhookSink",
    "analyze_url",
    "build_analyzer",
    "combine",
    "score",
    "send_webhook",
    "verify_signature",
]
