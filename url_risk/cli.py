#!/usr/bin/env python3
"""
URL Risk - CLI entry point
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Optional

from .checker import build_analyzer
from .config import Settings
from .events import EventBus
from .models import AnalysisResult, RiskState
from .store import KeyValueStore, MemoryStore, SqliteStore
from .webhook import WebhookSink

STATE_EMOJI = {
    RiskState.SAFE: "✅",
    RiskState.SUSPICIOUS: "🟠",
    RiskState.PHISHING: "🔴",
    RiskState.UNKNOWN: "❓",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Classify a URL as Safe/Suspicious/Phishing across multiple threat-intel sources"
    )
    parser.add_argument("url", nargs="?", help="URL to analyze (http or https)")
    parser.add_argument(
        "--json", "-j", action="store_true", help="Output as JSON (alias for --format json)"
    )
    parser.add_argument(
        "--format",
        choices=["pretty", "json"],
        default=None,
        help="Output format (default: pretty; --json is an alias for json)",
    )
    parser.add_argument(
        "--store", default=None, help="sqlite store path (default: URL_RISK_STORE_PATH or cache dir)"
    )
    parser.add_argument(
        "--memory", action="store_true", help="Use a throwaway in-memory store (no caching across runs)"
    )
    parser.add_argument(
        "--timeout", "-t", type=float, default=None, help="Timeout per source call in seconds (default: 5)"
    )
    parser.add_argument(
        "--phase-timeout", type=float, default=None, help="Global slow-phase timeout in seconds (default: 30)"
    )
    parser.add_argument(
        "--fail-on",
        choices=[s.value for s in RiskState],
        default=None,
        help="Exit 1 when the final state is at or above this severity (useful for CI)",
    )
    parser.add_argument(
        "--webhook", help="Webhook URL for risky results (or set WEBHOOK_URL env var)", default=None
    )
    parser.add_argument(
        "--webhook-secret", help="Webhook HMAC secret (or set WEBHOOK_SECRET env var)", default=None
    )
    parser.add_argument("--history", action="store_true", help="Print the stored link history and exit")
    parser.add_argument("--clear", metavar="URL", default=None, help="Clear cached result and history for URL")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")
    return parser


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    settings = base or Settings.from_env()
    overrides: dict[str, Any] = {}
    if args.timeout is not None:
        overrides["source_timeout_seconds"] = args.timeout
    if args.phase_timeout is not None:
        overrides["phase_timeout_seconds"] = args.phase_timeout
    if args.store:
        overrides["store_path"] = args.store
    if args.webhook:
        overrides["webhook_url"] = args.webhook
    if args.webhook_secret:
        overrides["webhook_secret"] = args.webhook_secret
    if args.verbose:
        overrides["log_level"] = "INFO"
    return replace(settings, **overrides) if overrides else settings


def exit_code_for(state: RiskState, fail_on: Optional[str]) -> int:
    if fail_on is None:
        return 0
    return 1 if state.severity >= RiskState(fail_on).severity else 0


def print_human_readable(result: AnalysisResult) -> None:
    """Print human-readable output."""
    print("\n🔍 URL Risk Report")
    print(f"{'=' * 50}")
    print(f"URL:    {result.url}")
    print(f"{'=' * 50}")

    print(f"\n{STATE_EMOJI.get(result.state, '❓')} State: {result.state.value}")
    print(f"📊 Vulnerability Score: {result.score}/100")
    if result.reporting_source:
        print(f"📣 Reporting source: {result.reporting_source.value}")
    print(f"💬 {result.impact}")

    print("\n📋 Source Results:")
    print(f"{'-' * 50}")
    for source, state in result.sources.items():
        print(f"  {source.value}: {STATE_EMOJI.get(state, '❓')} {state.value}")

    if result.errors:
        print("\n⚠️ Errors:")
        for err in result.errors:
            print(f"  • {err}")

    print(f"\n⏱️  Checked at: {result.timestamp} ({result.elapsed_ms:.0f}ms)")


def print_history(entries: list[AnalysisResult]) -> None:
    print("\n🕘 Link History")
    print(f"{'=' * 60}")
    if not entries:
        print("  (empty)")
    for e in entries:
        tag = " (interim)" if e.is_interim else ""
        print(f"  {STATE_EMOJI.get(e.state, '❓')} [{e.score:>3}/100] {e.state.value:<10} {e.url}{tag}")
    print()


def _open_store(args: argparse.Namespace, settings: Settings) -> KeyValueStore:
    if args.memory:
        return MemoryStore()
    return SqliteStore(settings.store_path)


async def run(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(args, settings)

    sinks = []
    if settings.webhook_url:
        sinks.append(WebhookSink(settings.webhook_url, settings.webhook_secret))

    bus = EventBus()
    if args.verbose:
        log = logging.getLogger("url_risk.cli")
        bus.subscribe(lambda m: log.info("%s", m))

    analyzer = build_analyzer(settings, store=store, bus=bus, sinks=sinks)
    try:
        if args.history:
            entries = await analyzer.history.entries()
            if args.format == "json":
                print(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
            else:
                print_history(entries)
            return 0

        if args.clear:
            cache_cleared = await analyzer.result_cache.clear_for_url(args.clear)
            history_cleared = await analyzer.history.clear_for_url(args.clear)
            print(json.dumps({"success": True, "cleared": cache_cleared or history_cleared}))
            return 0

        result = await analyzer.analyze(args.url)
        if result is None:
            print(f"Not an http(s) URL: {args.url}")
            return 2

        if args.format == "json":
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        else:
            print_human_readable(result)
        return exit_code_for(result.state, args.fail_on)
    finally:
        await analyzer.close()


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.format is None:
        args.format = "json" if args.json else "pretty"

    if not args.url and not args.history and not args.clear:
        parser.error("A URL is required (or use --history / --clear)")

    settings = settings_from_args(args)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    raise SystemExit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
