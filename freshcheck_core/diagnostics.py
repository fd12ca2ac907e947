# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Diagnostic actions.

One entry point, `run_diagnostic(engine, action, params)`, exposing each
pipeline stage on its own. Every action returns a plain dict with a
`telemetry` block; bad input yields `success: False`, never an exception.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Mapping

from freshcheck_core.engine import FreshCheckEngine
from freshcheck_core.schema.truth import TruthType

logger = logging.getLogger(__name__)

Handler = Callable[[FreshCheckEngine, Mapping[str, Any]], Awaitable[dict[str, Any]]]


def _query(params: Mapping[str, Any]) -> str | None:
    q = params.get("q", params.get("query"))
    return q if isinstance(q, str) and q.strip() else None


def _missing(name: str = "q") -> dict[str, Any]:
    return {"success": False, "error": f"Missing required parameter '{name}'"}


async def _classify(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    result = engine.classifier.classify(q)
    return {"success": True, "query": q, "result": result.to_dict()}


async def _route(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    mode = params.get("mode") or engine.config.default_mode
    return {"success": True, "query": q, "result": engine.router.route(q, mode).to_dict()}


async def _fingerprint(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    return {"success": True, "query": q, "fingerprint": engine.cache.fingerprint(q)}


async def _cache_get(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    probe = engine.cache.probe(q)
    return {"success": True, "query": q, "result": probe.to_dict()}


async def _cache_set(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    data = params.get("data")
    if data is None:
        return _missing("data")
    try:
        truth_type = TruthType(params.get("truth_type") or TruthType.SEMI_STABLE.value)
    except ValueError:
        return {"success": False, "error": f"Unknown truth type: {params.get('truth_type')}"}

    sources = params.get("sources") or []
    if isinstance(sources, str):
        sources = [s.strip() for s in sources.split(",") if s.strip()]
    try:
        confidence = float(params.get("confidence", 0.5))
    except (TypeError, ValueError):
        return {"success": False, "error": "confidence must be a number"}

    entry = engine.cache.set(q, data, truth_type, list(sources), confidence)
    if entry is None:
        return {"success": False, "error": f"{truth_type.value} results are not cacheable"}
    return {"success": True, "query": q, "entry": entry.to_dict()}


async def _cache_invalidate(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    truth_type = params.get("truth_type")
    if truth_type:
        try:
            tt = TruthType(truth_type)
        except ValueError:
            return {"success": False, "error": f"Unknown truth type: {truth_type}"}
        return {"success": True, "truth_type": tt.value, "invalidated": engine.cache.invalidate_by_type(tt)}

    q = _query(params)
    if q is None:
        return _missing()
    return {"success": True, "query": q, "invalidated": int(engine.cache.invalidate(q))}


async def _cache_stats(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    return {"success": True, "stats": engine.cache.stats()}


async def _cache_clear(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    return {"success": True, "cleared": engine.cache.clear()}


async def _lookup(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    q = _query(params)
    if q is None:
        return _missing()
    try:
        confidence = float(params.get("internal_confidence", 0.5))
    except (TypeError, ValueError):
        return {"success": False, "error": "internal_confidence must be a number"}
    result = await engine.lookup(
        q,
        internal_confidence=confidence,
        internal_answer=params.get("internal_answer"),
        force_refresh=bool(params.get("force_refresh", False)),
    )
    return {"success": True, "query": q, "result": result.to_dict()}


async def _enforce(engine: FreshCheckEngine, params: Mapping[str, Any]) -> dict[str, Any]:
    response = params.get("response")
    if not isinstance(response, str):
        return _missing("response")
    metadata = params.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        return {"success": False, "error": "metadata must be an object"}
    mode = params.get("mode") or engine.config.default_mode
    return {"success": True, "result": engine.enforce(response, dict(metadata), mode)}


ACTIONS: dict[str, Handler] = {
    "classify": _classify,
    "route": _route,
    "fingerprint": _fingerprint,
    "cache_get": _cache_get,
    "cache_set": _cache_set,
    "cache_invalidate": _cache_invalidate,
    "cache_stats": _cache_stats,
    "cache_clear": _cache_clear,
    "lookup": _lookup,
    "enforce": _enforce,
}


async def run_diagnostic(
    engine: FreshCheckEngine,
    action: str,
    params: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    handler = ACTIONS.get(action)
    if handler is None:
        return {
            "success": False,
            "error": f"Unknown action: {action}",
            "available_actions": sorted(ACTIONS),
        }

    start = time.monotonic()
    try:
        out = await handler(engine, params or {})
    except Exception as e:
        logger.exception("[Diagnostics] %s failed", action)
        out = {"success": False, "error": str(e)}

    out["action"] = action
    out["telemetry"] = {
        "elapsed_ms": int((time.monotonic() - start) * 1000),
        "cache": asdict(engine.cache.counters),
    }
    return out
