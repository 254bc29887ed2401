"""Runtime configuration.

Settings come from environment variables; a `.env` file is loaded first if
present (current dir, then home dir, then ~/.urlrisk.env).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .cache import DEFAULT_TTL_SECONDS, parse_ttl
from .store import default_store_path

logger = logging.getLogger(__name__)


def load_env_files() -> Optional[Path]:
    for env_path in [Path(".env"), Path.home() / ".env", Path.home() / ".urlrisk.env"]:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default


def _int_env(name: str, default: int) -> int:
    return int(_float_env(name, float(default)))


@dataclass(frozen=True)
class Settings:
    google_safebrowsing_api_key: Optional[str] = None
    abuseipdb_api_key: Optional[str] = None
    ipqualityscore_api_key: Optional[str] = None

    source_timeout_seconds: float = 5.0
    phase_timeout_seconds: float = 30.0
    max_concurrency: int = 6
    cache_ttl_seconds: int = DEFAULT_TTL_SECONDS

    store_path: str = ""
    log_level: str = "WARNING"

    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None

    @classmethod
    def from_env(cls, *, load_files: bool = True) -> Settings:
        if load_files:
            load_env_files()

        ttl_raw = os.getenv("URL_RISK_CACHE_TTL")
        ttl = DEFAULT_TTL_SECONDS
        if ttl_raw:
            try:
                ttl = parse_ttl(ttl_raw)
            except ValueError:
                logger.warning("Ignoring invalid URL_RISK_CACHE_TTL=%r", ttl_raw)

        return cls(
            google_safebrowsing_api_key=os.getenv("GOOGLE_SAFEBROWSING_API_KEY") or None,
            abuseipdb_api_key=os.getenv("ABUSEIPDB_API_KEY") or None,
            ipqualityscore_api_key=os.getenv("IPQUALITYSCORE_API_KEY") or None,
            source_timeout_seconds=_float_env("URL_RISK_SOURCE_TIMEOUT", 5.0),
            phase_timeout_seconds=_float_env("URL_RISK_PHASE_TIMEOUT", 30.0),
            max_concurrency=max(1, _int_env("URL_RISK_MAX_CONCURRENCY", 6)),
            cache_ttl_seconds=ttl,
            store_path=os.getenv("URL_RISK_STORE_PATH") or default_store_path(),
            log_level=(os.getenv("URL_RISK_LOG_LEVEL") or "WARNING").upper(),
            webhook_url=os.getenv("WEBHOOK_URL") or None,
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
        )
