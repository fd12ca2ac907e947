# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Freshness cache
===============

Process-local TTL cache for verified answers, keyed by a semantic
fingerprint so paraphrases of the same question share one entry.

The TTL of an entry is derived from its truth type and frozen into the entry
when it is stored. Expiry is checked lazily on every read.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Protocol

from freshcheck_core.runtime_config import EngineCacheConfig
from freshcheck_core.schema.lookup import CacheEntry, CacheHit, CacheMiss, CacheProbe, SourceClass
from freshcheck_core.schema.truth import TruthType
from freshcheck_core.utils.runtime import utc_now

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were",
    "what", "who", "when", "where", "how",
    "does", "do", "did", "can", "could", "would", "should",
    "of", "for", "to", "in", "on", "at", "by",
    # Contracted question words once the apostrophe is stripped
    "whats", "whos", "wheres", "whens", "hows",
})

_NON_WORD = re.compile(r"[^\w]")


def build_ttl_table(cfg: EngineCacheConfig | None = None) -> dict[TruthType, int]:
    cfg = cfg or EngineCacheConfig()
    return {
        TruthType.VOLATILE: cfg.volatile_ttl_ms,
        TruthType.SEMI_STABLE: cfg.semi_stable_ttl_ms,
        TruthType.PERMANENT: cfg.permanent_ttl_ms,
        TruthType.DOCUMENT_REVIEW: 0,
    }


def ttl_for(truth_type: TruthType | str | None, table: dict[TruthType, int] | None = None) -> int:
    """TTL in milliseconds; unknown and ambiguous types get the SEMI_STABLE TTL."""
    table = table or build_ttl_table()
    try:
        tt = TruthType(truth_type)
    except ValueError:
        return table[TruthType.SEMI_STABLE]
    if tt in table:
        return table[tt]
    return table[TruthType.SEMI_STABLE]


def semantic_fingerprint(query: Any) -> str:
    """
    Normalize a query into an order-independent cache key.

    lowercase -> split on whitespace -> strip punctuation per token
    -> drop stop words -> drop empty tokens -> sort -> join with "|".
    """
    if not isinstance(query, str) or not query.strip():
        return ""
    words = (_NON_WORD.sub("", w) for w in query.lower().split())
    kept = sorted(w for w in words if w and w not in STOP_WORDS)
    return "|".join(kept)


class CacheBackend(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> bool: ...

    def items(self) -> Iterable[tuple[str, CacheEntry]]: ...

    def clear(self) -> int: ...

    def __len__(self) -> int: ...


class InMemoryBackend:
    """Plain dict storage. Last write wins; no locking."""

    def __init__(self) -> None:
        self._data: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._data.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._data[key] = entry

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def items(self) -> list[tuple[str, CacheEntry]]:
        # Snapshot so callers may delete while iterating.
        return list(self._data.items())

    def clear(self) -> int:
        n = len(self._data)
        self._data.clear()
        return n

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class CacheCounters:
    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total, 3) if total else 0.0


class FreshnessCache:
    def __init__(
        self,
        *,
        clock: Callable[[], datetime] | None = None,
        backend: CacheBackend | None = None,
        config: EngineCacheConfig | None = None,
        ttl_table: dict[TruthType, int] | None = None,
    ) -> None:
        self._clock = clock or utc_now
        self._backend: CacheBackend = backend if backend is not None else InMemoryBackend()
        # Copied so later edits to the caller's table do not touch this cache.
        self._ttl_table = dict(ttl_table or build_ttl_table(config))
        self.counters = CacheCounters()

    @property
    def ttl_table(self) -> dict[TruthType, int]:
        return dict(self._ttl_table)

    def fingerprint(self, query: Any) -> str:
        return semantic_fingerprint(query)

    def now(self) -> datetime:
        return self._clock()

    def ttl_for(self, truth_type: TruthType | str | None) -> int:
        return ttl_for(truth_type, self._ttl_table)

    def is_valid(self, entry: CacheEntry | None) -> bool:
        return entry is not None and self.now() < entry.expires_at

    def time_remaining_ms(self, entry: CacheEntry | None) -> int:
        """Milliseconds until expiry; negative once expired, -1 without an entry."""
        if entry is None:
            return -1
        return int((entry.expires_at - self.now()).total_seconds() * 1000)

    def set(
        self,
        query: str,
        data: Any,
        truth_type: TruthType | str,
        sources: list[str] | None = None,
        confidence: float = 0.5,
    ) -> CacheEntry | None:
        fp = self.fingerprint(query)
        if not fp:
            logger.warning("[Cache] Cannot cache empty or invalid query")
            return None

        try:
            tt = TruthType(truth_type)
        except ValueError:
            tt = TruthType.SEMI_STABLE
        ttl_ms = self.ttl_for(tt)
        if ttl_ms <= 0:
            logger.debug("[Cache] Skipping store for %s (TTL 0)", tt.value)
            return None

        sources = list(sources or [])
        now = self.now()
        entry = CacheEntry(
            fingerprint=fp,
            original_query=query,
            data=data,
            truth_type=tt,
            source_class=SourceClass.EXTERNAL if sources else SourceClass.INTERNAL,
            sources_used=sources,
            confidence=max(0.0, min(1.0, float(confidence))),
            verified_at=now,
            expires_at=now + timedelta(milliseconds=ttl_ms),
            ttl_ms=ttl_ms,
        )
        self._backend.set(fp, entry)
        self.counters.stores += 1
        logger.debug("[Cache] Stored %r (%s, TTL %dms)", query[:50], tt.value, ttl_ms)
        return entry

    def probe(self, query: Any) -> CacheProbe:
        fp = self.fingerprint(query)
        if not fp:
            self.counters.misses += 1
            return CacheMiss(reason="invalid_query")

        entry = self._backend.get(fp)
        if entry is None:
            self.counters.misses += 1
            logger.debug("[Cache] Miss: %r", str(query)[:50])
            return CacheMiss(reason="not_found")

        if not self.is_valid(entry):
            self._backend.delete(fp)
            self.counters.misses += 1
            self.counters.evictions += 1
            logger.debug("[Cache] Expired: %r", str(query)[:50])
            return CacheMiss(reason="expired")

        self.counters.hits += 1
        remaining = self.time_remaining_ms(entry)
        logger.debug("[Cache] Hit: %r (%dms remaining)", str(query)[:50], remaining)
        return CacheHit(entry=entry, time_remaining_ms=remaining)

    def get(self, query: Any) -> CacheEntry | None:
        probe = self.probe(query)
        return probe.entry if isinstance(probe, CacheHit) else None

    def invalidate(self, query: Any) -> bool:
        fp = self.fingerprint(query)
        if not fp:
            return False
        existed = self._backend.delete(fp)
        if existed:
            self.counters.evictions += 1
            logger.debug("[Cache] Invalidated: %r", str(query)[:50])
        return existed

    def invalidate_by_type(self, truth_type: TruthType | str) -> int:
        count = 0
        for fp, entry in self._backend.items():
            if entry.truth_type == truth_type:
                self._backend.delete(fp)
                count += 1
        self.counters.evictions += count
        logger.debug("[Cache] Invalidated %d entries of type %s", count, truth_type)
        return count

    def clear_expired(self) -> int:
        count = 0
        for fp, entry in self._backend.items():
            if not self.is_valid(entry):
                self._backend.delete(fp)
                count += 1
        self.counters.evictions += count
        if count:
            logger.debug("[Cache] Cleared %d expired entries", count)
        return count

    def clear(self) -> int:
        count = self._backend.clear()
        self.counters.evictions += count
        logger.info("[Cache] Cleared all %d entries", count)
        return count

    def stats(self) -> dict[str, Any]:
        self.clear_expired()
        by_type = {
            TruthType.VOLATILE.value: 0,
            TruthType.SEMI_STABLE.value: 0,
            TruthType.PERMANENT.value: 0,
        }
        for _, entry in self._backend.items():
            key = entry.truth_type.value
            if key in by_type:
                by_type[key] += 1
        return {
            "total_entries": len(self._backend),
            "by_truth_type": by_type,
            "hits": self.counters.hits,
            "misses": self.counters.misses,
            "stores": self.counters.stores,
            "evictions": self.counters.evictions,
            "hit_rate": self.counters.hit_rate,
        }
