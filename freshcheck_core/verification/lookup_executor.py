# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Lookup executor.

Fetches the selected sources one at a time under a per-source timeout, a
source-count cap and a global fetched-text budget. Every source failure is
recorded as a status tag and the executor moves on; nothing raised by a
source escapes `perform_lookup`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

from freshcheck_core.runtime_config import EngineFeatureFlags, EngineLookupConfig
from freshcheck_core.schema.lookup import (
    CacheHit,
    LookupFailure,
    LookupResult,
    LookupSuccess,
    SourceAttempt,
)
from freshcheck_core.schema.truth import TruthType
from freshcheck_core.tools.errors import FetchFailureKind, SourceFetchError
from freshcheck_core.tools.freshness_cache import FreshnessCache
from freshcheck_core.tools.source_catalog import CredentialLookup, Source, resolve_url
from freshcheck_core.tools.source_client import SourceClient
from freshcheck_core.tools.source_parsers import EXTRACTORS, ParserKind, parse_payload
from freshcheck_core.utils.runtime import utc_now
from freshcheck_core.utils.text_processing import extract_search_query
from freshcheck_core.utils.trace import Trace
from freshcheck_core.verification.lookup_policy import (
    CORROBORATION_DISCLOSURE,
    has_reputable_source,
    is_price_query,
    requires_corroboration,
)

logger = logging.getLogger(__name__)

PRICE_QUOTE_DISCLOSURE = (
    "I could not retrieve a live price quote for this. The information below comes from news headlines "
    "and may not include a current figure."
)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class LookupExecutor:
    def __init__(
        self,
        *,
        client: SourceClient,
        cache: FreshnessCache,
        credentials: CredentialLookup,
        config: EngineLookupConfig | None = None,
        features: EngineFeatureFlags | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client
        self.cache = cache
        self._credentials = credentials
        self.config = config or EngineLookupConfig()
        self.features = features or EngineFeatureFlags()
        self._clock = clock or utc_now

    async def perform_lookup(
        self,
        query: str,
        sources: list[Source],
        truth_type: TruthType | None = None,
        *,
        check_cache: bool = True,
    ) -> LookupResult:
        start = time.monotonic()
        search_query = extract_search_query(query)
        if search_query != query:
            logger.debug("[Lookup] Cleaned query: %r -> %r", query[:80], search_query)

        # Cache is keyed by the original query, not the cleaned one.
        if check_cache:
            probe = self.cache.probe(query)
            if isinstance(probe, CacheHit):
                entry = probe.entry
                logger.debug("[Lookup] Cache hit")
                return LookupSuccess(
                    data=str(entry.data),
                    from_cache=True,
                    sources_used=list(entry.sources_used),
                    sources_succeeded=len(entry.sources_used),
                    truth_type=entry.truth_type,
                    confidence=entry.confidence,
                    verified_at=entry.verified_at,
                    cache_valid_until=entry.expires_at,
                    lookup_time_ms=_elapsed_ms(start),
                )

        cfg = self.config
        attempts: list[SourceAttempt] = []
        results: list[tuple[Source, str]] = []
        total = 0

        candidates = list(sources)[: cfg.max_sources_per_query]
        Trace.event("lookup.start", {"query": search_query, "sources": [s.name for s in candidates]})

        for i, source in enumerate(candidates):
            if total >= cfg.max_fetched_text:
                logger.debug("[Lookup] Fetched-text budget exhausted, skipping %d source(s)", len(candidates) - i)
                attempts.extend(
                    SourceAttempt(name=s.name, category=s.category.value, status="skipped_budget")
                    for s in candidates[i:]
                )
                break

            attempt = await self._consult(source, search_query, cfg.max_fetched_text - total)
            if attempt is None:
                continue
            row, text = attempt
            attempts.append(row)
            if text:
                results.append((source, text))
                total += len(text)

        if not results:
            return LookupFailure(
                error="All sources failed or returned no data",
                sources_consulted=attempts,
                verified_at=self._clock(),
                lookup_time_ms=_elapsed_ms(start),
            )

        combined = self._combine(results)
        out = LookupSuccess(
            data=combined,
            sources_consulted=attempts,
            sources_succeeded=len(results),
            sources_used=[s.name for s, _ in results],
            total_text_fetched=total,
            truth_type=truth_type,
            verified_at=self._clock(),
            lookup_time_ms=_elapsed_ms(start),
        )

        if self.features.news_corroboration and truth_type and requires_corroboration(query, truth_type):
            corroborated = has_reputable_source(combined)
            out.news_corroborated = corroborated
            if not corroborated:
                out.corroboration_disclosure = CORROBORATION_DISCLOSURE

        if (
            self.features.price_quote_disclosure
            and is_price_query(query)
            and all(s.is_headline_feed for s, _ in results)
        ):
            out.price_quote_disclosure = PRICE_QUOTE_DISCLOSURE

        Trace.event("lookup.done", {
            "sources_succeeded": out.sources_succeeded,
            "total_text_fetched": total,
            "attempts": [a.to_dict() for a in attempts],
        })
        return out

    async def _consult(
        self,
        source: Source,
        search_query: str,
        remaining_budget: int,
    ) -> tuple[SourceAttempt, str | None] | None:
        """Fetch and extract one source. None means the source resolved to no URL."""
        category = source.category.value

        def failed(status: str, error: str | None = None) -> tuple[SourceAttempt, None]:
            return SourceAttempt(name=source.name, category=category, status=status, error=error), None

        try:
            url = resolve_url(source, search_query, self._credentials)
        except Exception as e:
            logger.warning("[Lookup] %s URL builder failed: %s", source.name, e)
            return failed("error", str(e))
        if not url:
            logger.debug("[Lookup] %s resolved to no URL, skipping", source.name)
            return None

        if source.parser == ParserKind.TEXT and not source.parseable:
            return failed("non_parseable")

        try:
            body = await self.client.fetch(url, timeout_s=self.config.timeout_sec)
        except SourceFetchError as e:
            logger.info("[Lookup] %s failed: %s", source.name, e)
            return failed(e.attempt_status, None if e.kind == FetchFailureKind.TIMEOUT else e.message)

        try:
            payload = parse_payload(source.parser, body)
            text = EXTRACTORS[source.extractor](payload, search_query)
        except Exception as e:
            logger.info("[Lookup] %s extractor failed: %s", source.name, e)
            return failed("extractor_error", str(e))

        text = (text or "").strip()
        if not text:
            status = "no_data" if source.parser == ParserKind.TEXT else "extraction_failed"
            return failed(status)

        if len(text) > remaining_budget:
            text = text[:remaining_budget]

        logger.info("[Lookup] ✓ %s: %d chars extracted", source.name, len(text))
        return SourceAttempt(name=source.name, category=category, status="success", text_length=len(text)), text

    @staticmethod
    def _combine(results: list[tuple[Source, str]]) -> str:
        if len(results) == 1:
            return results[0][1]
        return "\n\n".join(f"[{s.name}]\n{text}" for s, text in results)
