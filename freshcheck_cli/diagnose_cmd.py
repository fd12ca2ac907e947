# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Diagnostic CLI Commands

Runs one engine diagnostic action per invocation and prints the result.
The cache lives in process memory, so cache commands only see entries
written within the same run.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, NoReturn


async def _run(action: str, params: dict[str, Any]) -> dict[str, Any]:
    from freshcheck_core.diagnostics import run_diagnostic
    from freshcheck_core.engine import FreshCheckEngine

    engine = FreshCheckEngine()
    try:
        return await run_diagnostic(engine, action, params)
    finally:
        await engine.aclose()


def _execute(action: str, params: dict[str, Any], args: argparse.Namespace) -> int:
    out = asyncio.run(_run(action, params))

    if getattr(args, "json", False):
        print(json.dumps(out, ensure_ascii=False, indent=2, default=str))
        return 0 if out.get("success") else 1

    elapsed = (out.get("telemetry") or {}).get("elapsed_ms", 0)
    if not out.get("success"):
        print(f"✗ {action}: {out.get('error', 'failed')}", file=sys.stderr)
        return 1

    print(f"✓ {action} ({elapsed}ms)")
    body = {k: v for k, v in out.items() if k not in ("success", "action", "telemetry")}
    print(json.dumps(body, ensure_ascii=False, indent=2, default=str))
    return 0


def cmd_classify(args: argparse.Namespace) -> int:
    """Classify a query's truth type."""
    return _execute("classify", {"q": args.query}, args)


def cmd_route(args: argparse.Namespace) -> int:
    """Show claim type, hierarchy and whether external lookup is required."""
    return _execute("route", {"q": args.query, "mode": args.mode}, args)


def cmd_fingerprint(args: argparse.Namespace) -> int:
    """Print the semantic fingerprint used as the cache key."""
    return _execute("fingerprint", {"q": args.query}, args)


def cmd_cache_get(args: argparse.Namespace) -> int:
    return _execute("cache_get", {"q": args.query}, args)


def cmd_cache_set(args: argparse.Namespace) -> int:
    return _execute("cache_set", {
        "q": args.query,
        "data": args.data,
        "truth_type": args.truth_type,
        "sources": args.sources,
        "confidence": args.confidence,
    }, args)


def cmd_cache_invalidate(args: argparse.Namespace) -> int:
    return _execute("cache_invalidate", {"q": args.query, "truth_type": args.truth_type}, args)


def cmd_cache_stats(args: argparse.Namespace) -> int:
    return _execute("cache_stats", {}, args)


def cmd_cache_clear(args: argparse.Namespace) -> int:
    return _execute("cache_clear", {}, args)


def cmd_lookup(args: argparse.Namespace) -> int:
    """Run a full freshness-aware lookup against live sources."""
    return _execute("lookup", {
        "q": args.query,
        "internal_confidence": args.internal_confidence,
        "internal_answer": args.internal_answer,
        "force_refresh": args.force_refresh,
    }, args)


def cmd_enforce(args: argparse.Namespace) -> int:
    """Run the doctrine gates over a response."""
    try:
        metadata = json.loads(args.metadata) if args.metadata else {}
    except json.JSONDecodeError as e:
        print(f"✗ Invalid --metadata JSON: {e}", file=sys.stderr)
        return 1
    return _execute("enforce", {"response": args.response, "metadata": metadata, "mode": args.mode}, args)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="freshcheck",
        description="FreshCheck engine diagnostics",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Print the raw result as JSON")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("classify", parents=[common], help="Classify a query's truth type")
    p.add_argument("query")
    p.set_defaults(func=cmd_classify)

    p = subparsers.add_parser("route", parents=[common], help="Route a query to a source hierarchy")
    p.add_argument("query")
    p.add_argument("--mode", help="Operating mode (default: from config)")
    p.set_defaults(func=cmd_route)

    p = subparsers.add_parser("fingerprint", parents=[common], help="Show the cache fingerprint")
    p.add_argument("query")
    p.set_defaults(func=cmd_fingerprint)

    p = subparsers.add_parser("cache-get", parents=[common], help="Probe the cache")
    p.add_argument("query")
    p.set_defaults(func=cmd_cache_get)

    p = subparsers.add_parser("cache-set", parents=[common], help="Store a cache entry")
    p.add_argument("query")
    p.add_argument("data")
    p.add_argument("--truth-type", default="SEMI_STABLE", help="VOLATILE, SEMI_STABLE or PERMANENT")
    p.add_argument("--sources", default="", help="Comma-separated source names")
    p.add_argument("--confidence", type=float, default=0.5)
    p.set_defaults(func=cmd_cache_set)

    p = subparsers.add_parser("cache-invalidate", parents=[common], help="Invalidate cache entries")
    p.add_argument("query", nargs="?")
    p.add_argument("--truth-type", help="Invalidate every entry of this truth type")
    p.set_defaults(func=cmd_cache_invalidate)

    p = subparsers.add_parser("cache-stats", parents=[common], help="Show cache statistics")
    p.set_defaults(func=cmd_cache_stats)

    p = subparsers.add_parser("cache-clear", parents=[common], help="Clear the cache")
    p.set_defaults(func=cmd_cache_clear)

    p = subparsers.add_parser("lookup", parents=[common], help="Run a freshness-aware lookup")
    p.add_argument("query")
    p.add_argument("--internal-confidence", type=float, default=0.5)
    p.add_argument("--internal-answer", help="Answer to label and return if lookup fails")
    p.add_argument("--force-refresh", action="store_true", help="Bypass the cache")
    p.set_defaults(func=cmd_lookup)

    p = subparsers.add_parser("enforce", parents=[common], help="Run doctrine gates on a response")
    p.add_argument("response")
    p.add_argument("--metadata", help="Response metadata as a JSON object")
    p.add_argument("--mode", help="Operating mode (default: from config)")
    p.set_defaults(func=cmd_enforce)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the diagnostics CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
