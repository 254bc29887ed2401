"""
Webhook notifications with HMAC signature security.

Security model (similar to GitHub/Stripe webhooks):
- HMAC-SHA256 signature in X-Signature-256 header
- Timestamp in X-Timestamp header (prevents replay attacks)
- Signature = HMAC(secret, timestamp + "." + payload)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Optional

import httpx

from .models import AnalysisResult, RiskState

logger = logging.getLogger(__name__)


def _generate_signature(payload: str, secret: str, timestamp: int) -> str:
    """Generate HMAC-SHA256 signature."""
    message = f"{timestamp}.{payload}"
    signature = hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"sha256={signature}"


async def send_webhook(
    url: str,
    data: dict,
    secret: Optional[str] = None,
    timeout: float = 10,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> dict:
    """
    Send webhook notification with optional HMAC signature.

    Args:
        url: Webhook endpoint URL
        data: Data to send (will be JSON encoded)
        secret: HMAC secret for signing (if None, no signature)
        timeout: Request timeout in seconds
        client: Optional shared httpx.AsyncClient

    Returns:
        dict with 'success', 'status_code', 'error' if failed

    Headers sent:
        Content-Type: application/json
        X-Timestamp: Unix timestamp
        X-Signature-256: sha256=<hmac_hex> (if secret provided)
        User-Agent: url-risk-webhook/1.0
    """
    timestamp = int(time.time())
    payload = json.dumps(data, separators=(",", ":"), sort_keys=True)

    headers = {
        "Content-Type": "application/json",
        "User-Agent": "url-risk-webhook/1.0",
        "X-Timestamp": str(timestamp),
    }

    if secret:
        headers["X-Signature-256"] = _generate_signature(payload, secret, timestamp)

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.post(url, content=payload.encode("utf-8"), headers=headers)
    except httpx.HTTPError as e:
        return {"success": False, "error": f"Request error: {e}"}
    finally:
        if owns_client:
            await http.aclose()

    if response.is_success:
        return {
            "success": True,
            "status_code": response.status_code,
            "response": response.text[:500],
        }
    return {
        "success": False,
        "status_code": response.status_code,
        "error": f"HTTP {response.status_code}: {response.reason_phrase}",
    }


def build_payload(result: AnalysisResult) -> dict[str, Any]:
    flagged = {
        s.value: state.value
        for s, state in result.sources.items()
        if state in (RiskState.PHISHING, RiskState.SUSPICIOUS)
    }
    return {
        "event": "url.risk_detected",
        "timestamp": int(time.time()),
        "data": {
            "url": result.url,
            "state": result.state.value,
            "score": result.score,
            "reportingSource": result.reporting_source.value if result.reporting_source else None,
            "checkedAt": result.timestamp,
            "flagged": flagged,
        },
    }


class WebhookSink:
    """Result sink posting final results at or above `min_state` severity."""

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        *,
        min_state: RiskState = RiskState.SUSPICIOUS,
        timeout: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.secret = secret
        self.min_state = min_state
        self.timeout = timeout
        self.client = client

    def should_notify(self, result: AnalysisResult) -> bool:
        return not result.is_interim and result.state.severity >= self.min_state.severity

    async def __call__(self, result: AnalysisResult) -> Optional[dict]:
        if not self.should_notify(result):
            return None
        response = await send_webhook(
            self.url, build_payload(result), self.secret, self.timeout, client=self.client
        )
        if response.get("success"):
            logger.info("Webhook sent for %s: %s", result.url, response.get("status_code"))
        else:
            logger.warning("Webhook failed for %s: %s", result.url, response.get("error"))
        return response


# Verification helper for webhook receivers
def verify_signature(
    payload: str, signature: str, timestamp: str, secret: str, max_age_seconds: int = 300
) -> tuple[bool, str]:
    """
    Verify webhook signature (for use by receivers).

    Returns:
        (is_valid, error_message)
    """
    try:
        ts = int(timestamp)
        age = abs(time.time() - ts)
        if age > max_age_seconds:
            return False, f"Timestamp too old: {int(age)}s > {max_age_seconds}s"
    except (ValueError, TypeError):
        return False, "Invalid timestamp"

    if not signature or not signature.startswith("sha256="):
        return False, "Invalid signature format"

    expected = _generate_signature(payload, secret, ts)

    if not hmac.compare_digest(signature, expected):
        return False, "Signature mismatch"

    return True, ""
