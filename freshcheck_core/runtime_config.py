from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any


def _parse_bool(raw: Any, *, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if not s:
        return default
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, int):
            v = raw
        else:
            v = int(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_float(raw: Any, *, default: float, min_v: float, max_v: float) -> float:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, (int, float)):
            v = float(raw)
        else:
            v = float(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_csv(raw: str | None) -> tuple[str, ...]:
    s = (raw or "").strip()
    if not s:
        return ()
    out: list[str] = []
    for part in re.split(r"[,\n]", s):
        p = part.strip().lower()
        if p and p not in out:
            out.append(p)
    return tuple(out)


@dataclass(frozen=True)
class EngineFeatureFlags:
    # Trace is a local-only debug feature; it is enabled by default and can be disabled via env.
    trace_enabled: bool = True
    # Corroboration check for high-stakes breaking news.
    news_corroboration: bool = True
    # Disclose when a price query was only answered by headline feeds.
    price_quote_disclosure: bool = True


@dataclass(frozen=True)
class EngineDebugFlags:
    engine_debug: bool = False
    trace_max_head_chars: int = 120


@dataclass(frozen=True)
class EngineLookupConfig:
    max_sources_per_query: int = 3
    max_fetched_text: int = 15_000
    timeout_sec: float = 5.0
    max_lookups_per_request: int = 1
    high_stakes_max_lookups: int = 2
    confidence_threshold: float = 0.70
    # Lookups are never attempted above this length.
    max_lookup_query_chars: int = 10_000
    # Queries are truncated to this length before classification.
    max_query_chars: int = 50_000


@dataclass(frozen=True)
class EngineCacheConfig:
    volatile_ttl_ms: int = 5 * 60 * 1000
    semi_stable_ttl_ms: int = 24 * 60 * 60 * 1000
    permanent_ttl_ms: int = 30 * 24 * 60 * 60 * 1000
    # Verified external data default confidence.
    external_confidence: float = 0.8


@dataclass(frozen=True)
class EngineDegradationConfig:
    max_response_words: int = 30
    max_verification_sources: int = 2


@dataclass(frozen=True)
class EngineDoctrineConfig:
    truth_confidence_threshold: float = 0.5
    disclosure_confidence_threshold: float = 0.6
    max_volatile_ttl_ms: int = 5 * 60 * 1000
    protected_modes: tuple[str, ...] = field(default_factory=lambda: ("vault_enforced",))
    escalation_min_steps: int = 3
    bounded_reasoning_confidence_threshold: float = 0.6


@dataclass(frozen=True)
class EngineRuntimeConfig:
    lookup: EngineLookupConfig
    cache: EngineCacheConfig
    degradation: EngineDegradationConfig
    doctrine: EngineDoctrineConfig
    features: EngineFeatureFlags
    debug: EngineDebugFlags

    @staticmethod
    def defaults() -> "EngineRuntimeConfig":
        return EngineRuntimeConfig(
            lookup=EngineLookupConfig(),
            cache=EngineCacheConfig(),
            degradation=EngineDegradationConfig(),
            doctrine=EngineDoctrineConfig(),
            features=EngineFeatureFlags(),
            debug=EngineDebugFlags(),
        )

    @staticmethod
    def load_from_env() -> "EngineRuntimeConfig":
        lookup = EngineLookupConfig(
            max_sources_per_query=_parse_int(
                os.getenv("FRESHCHECK_MAX_SOURCES_PER_QUERY"), default=3, min_v=1, max_v=10
            ),
            max_fetched_text=_parse_int(
                os.getenv("FRESHCHECK_MAX_FETCHED_TEXT"), default=15_000, min_v=500, max_v=200_000
            ),
            timeout_sec=_parse_float(os.getenv("FRESHCHECK_LOOKUP_TIMEOUT"), default=5.0, min_v=0.5, max_v=60.0),
            max_lookups_per_request=_parse_int(
                os.getenv("FRESHCHECK_MAX_LOOKUPS_PER_REQUEST"), default=1, min_v=1, max_v=5
            ),
            high_stakes_max_lookups=_parse_int(
                os.getenv("FRESHCHECK_HIGH_STAKES_MAX_LOOKUPS"), default=2, min_v=1, max_v=5
            ),
            confidence_threshold=_parse_float(
                os.getenv("FRESHCHECK_CONFIDENCE_THRESHOLD"), default=0.70, min_v=0.0, max_v=1.0
            ),
            max_lookup_query_chars=_parse_int(
                os.getenv("FRESHCHECK_MAX_LOOKUP_QUERY_CHARS"), default=10_000, min_v=100, max_v=100_000
            ),
            max_query_chars=_parse_int(
                os.getenv("FRESHCHECK_MAX_QUERY_CHARS"), default=50_000, min_v=1_000, max_v=500_000
            ),
        )

        # TTLs are only tunable within their own class band so ordering stays strict.
        cache = EngineCacheConfig(
            volatile_ttl_ms=_parse_int(
                os.getenv("FRESHCHECK_VOLATILE_TTL_MS"), default=5 * 60 * 1000, min_v=1_000, max_v=5 * 60 * 1000
            ),
            semi_stable_ttl_ms=_parse_int(
                os.getenv("FRESHCHECK_SEMI_STABLE_TTL_MS"),
                default=24 * 60 * 60 * 1000,
                min_v=5 * 60 * 1000 + 1,
                max_v=7 * 24 * 60 * 60 * 1000,
            ),
            permanent_ttl_ms=_parse_int(
                os.getenv("FRESHCHECK_PERMANENT_TTL_MS"),
                default=30 * 24 * 60 * 60 * 1000,
                min_v=7 * 24 * 60 * 60 * 1000 + 1,
                max_v=365 * 24 * 60 * 60 * 1000,
            ),
            external_confidence=_parse_float(
                os.getenv("FRESHCHECK_EXTERNAL_CONFIDENCE"), default=0.8, min_v=0.0, max_v=1.0
            ),
        )

        degradation = EngineDegradationConfig(
            max_response_words=_parse_int(
                os.getenv("FRESHCHECK_DEGRADED_MAX_WORDS"), default=30, min_v=10, max_v=120
            ),
            max_verification_sources=_parse_int(
                os.getenv("FRESHCHECK_DEGRADED_MAX_POINTERS"), default=2, min_v=1, max_v=2
            ),
        )

        doctrine = EngineDoctrineConfig(
            truth_confidence_threshold=_parse_float(
                os.getenv("FRESHCHECK_TRUTH_GATE_THRESHOLD"), default=0.5, min_v=0.0, max_v=1.0
            ),
            disclosure_confidence_threshold=_parse_float(
                os.getenv("FRESHCHECK_DISCLOSURE_GATE_THRESHOLD"), default=0.6, min_v=0.0, max_v=1.0
            ),
            protected_modes=_parse_csv(os.getenv("FRESHCHECK_PROTECTED_MODES")) or ("vault_enforced",),
            escalation_min_steps=_parse_int(
                os.getenv("FRESHCHECK_ESCALATION_MIN_STEPS"), default=3, min_v=1, max_v=5
            ),
        )

        features = EngineFeatureFlags(
            trace_enabled=not _parse_bool(os.getenv("FRESHCHECK_TRACE_DISABLE"), default=False),
            news_corroboration=_parse_bool(os.getenv("FRESHCHECK_NEWS_CORROBORATION"), default=True),
            price_quote_disclosure=_parse_bool(os.getenv("FRESHCHECK_PRICE_QUOTE_DISCLOSURE"), default=True),
        )

        debug = EngineDebugFlags(
            engine_debug=_parse_bool(os.getenv("FRESHCHECK_ENGINE_DEBUG"), default=False),
            trace_max_head_chars=_parse_int(os.getenv("TRACE_MAX_HEAD_CHARS"), default=120, min_v=50, max_v=1000),
        )

        return EngineRuntimeConfig(
            lookup=lookup,
            cache=cache,
            degradation=degradation,
            doctrine=doctrine,
            features=features,
            debug=debug,
        )

    def to_safe_log_dict(self) -> dict[str, Any]:
        return {
            "features": {
                "trace_enabled": bool(self.features.trace_enabled),
                "news_corroboration": bool(self.features.news_corroboration),
                "price_quote_disclosure": bool(self.features.price_quote_disclosure),
            },
            "debug": {
                "engine_debug": bool(self.debug.engine_debug),
                "trace_max_head_chars": int(self.debug.trace_max_head_chars),
            },
            "lookup": {
                "max_sources_per_query": int(self.lookup.max_sources_per_query),
                "max_fetched_text": int(self.lookup.max_fetched_text),
                "timeout_sec": float(self.lookup.timeout_sec),
                "max_lookups_per_request": int(self.lookup.max_lookups_per_request),
                "high_stakes_max_lookups": int(self.lookup.high_stakes_max_lookups),
                "confidence_threshold": float(self.lookup.confidence_threshold),
                "max_query_chars": int(self.lookup.max_query_chars),
            },
            "cache": {
                "volatile_ttl_ms": int(self.cache.volatile_ttl_ms),
                "semi_stable_ttl_ms": int(self.cache.semi_stable_ttl_ms),
                "permanent_ttl_ms": int(self.cache.permanent_ttl_ms),
            },
            "degradation": {
                "max_response_words": int(self.degradation.max_response_words),
                "max_verification_sources": int(self.degradation.max_verification_sources),
            },
            "doctrine": {
                "truth_confidence_threshold": float(self.doctrine.truth_confidence_threshold),
                "disclosure_confidence_threshold": float(self.doctrine.disclosure_confidence_threshold),
                "protected_modes": list(self.doctrine.protected_modes),
                "escalation_min_steps": int(self.doctrine.escalation_min_steps),
            },
        }
