# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Freshness-aware lookup.

    query -> classify -> policy -> cache -> select -> fetch -> cache store
                                                        \\-> degradation

Every stage is a collaborator injected at construction so tests can swap the
clock, the cache backend and the HTTP transport. `lookup()` never raises.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from freshcheck_core.runtime_config import EngineRuntimeConfig
from freshcheck_core.schema.lookup import (
    CacheHit,
    LookupFailure,
    LookupResponse,
    SourceClass,
)
from freshcheck_core.schema.truth import TruthClassification, TruthType
from freshcheck_core.tools.freshness_cache import FreshnessCache
from freshcheck_core.utils.text_processing import truncate_query
from freshcheck_core.utils.trace import Trace
from freshcheck_core.verification.degradation import DegradationHandler
from freshcheck_core.verification.lookup_executor import LookupExecutor
from freshcheck_core.verification.lookup_policy import LookupRequirementPolicy
from freshcheck_core.verification.source_selector import SourceSelector
from freshcheck_core.verification.truth_classifier import TruthClassifier

logger = logging.getLogger(__name__)

NO_SOURCE_ERROR = "No reliable parseable source available for this query type"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class FreshnessLookupEngine:
    def __init__(
        self,
        *,
        classifier: TruthClassifier,
        policy: LookupRequirementPolicy,
        cache: FreshnessCache,
        selector: SourceSelector,
        executor: LookupExecutor,
        degradation: DegradationHandler,
        runtime: EngineRuntimeConfig | None = None,
    ):
        self.classifier = classifier
        self.policy = policy
        self.cache = cache
        self.selector = selector
        self.executor = executor
        self.degradation = degradation
        self.runtime = runtime or EngineRuntimeConfig.defaults()

    async def lookup(
        self,
        query: Any,
        internal_confidence: float = 0.5,
        internal_answer: str | None = None,
        force_refresh: bool = False,
        classification: TruthClassification | None = None,
    ) -> LookupResponse:
        """Pass `classification` when the caller already classified this query."""
        start = time.monotonic()
        if not isinstance(query, str) or not query.strip():
            return LookupResponse(
                success=False,
                reason="Invalid query; expected a non-empty string",
                confidence=internal_confidence,
            )

        q = truncate_query(query, self.runtime.lookup.max_query_chars)
        try:
            return await self._lookup(q, internal_confidence, internal_answer, force_refresh, start, classification)
        except Exception as e:
            logger.exception("[LookupEngine] Lookup pipeline failed")
            Trace.event("lookup.pipeline_error", {"error": str(e)})
            degraded = self.degradation.graceful_degradation(q, internal_answer=internal_answer, error=str(e))
            return LookupResponse(
                success=False,
                degraded=True,
                disclosure=degraded.disclosure,
                internal_answer=degraded.internal_answer_labeled,
                verification_path=degraded.verification_path,
                error=f"Lookup pipeline error: {e}",
                lookup_time_ms=_elapsed_ms(start),
            )

    async def _lookup(
        self,
        q: str,
        internal_confidence: float,
        internal_answer: str | None,
        force_refresh: bool,
        start: float,
        classification: TruthClassification | None = None,
    ) -> LookupResponse:
        if classification is None:
            classification = self.classifier.classify(q)
        requirement = self.policy.is_lookup_required(q, classification, internal_confidence)
        Trace.event("lookup.classified", {
            "truth_type": classification.type.value,
            "confidence": classification.confidence,
            "required": requirement.required,
            "reasons": requirement.reasons,
        })

        base = {
            "truth_type": classification.type,
            "truth_ttl_ms": classification.ttl_ms,
            "lookup_reasons": requirement.reasons,
            "lookup_priority": requirement.priority,
            "high_stakes": requirement.high_stakes,
        }

        if not requirement.required and not self._can_force(q, classification, force_refresh):
            logger.debug("[LookupEngine] Lookup not required (%s)", classification.type.value)
            return LookupResponse(
                success=True,
                reason="Lookup not required",
                source_class=SourceClass.INTERNAL,
                confidence=internal_confidence,
                lookup_time_ms=_elapsed_ms(start),
                **base,
            )

        if not force_refresh:
            probe = self.cache.probe(q)
            if isinstance(probe, CacheHit):
                entry = probe.entry
                logger.info("[LookupEngine] Served from cache (%dms left)", probe.time_remaining_ms)
                return LookupResponse(
                    success=True,
                    from_cache=True,
                    data=entry.data,
                    sources_used=list(entry.sources_used),
                    verified_at=entry.verified_at,
                    cache_valid_until=entry.expires_at,
                    source_class=entry.source_class,
                    confidence=entry.confidence,
                    lookup_time_ms=_elapsed_ms(start),
                    **base,
                )

        sources = self.selector.select_sources_for_query(q, classification.type, classification.high_stakes)
        if not sources:
            logger.info("[LookupEngine] %s", NO_SOURCE_ERROR)
            return self._degrade(q, classification, LookupFailure(error=NO_SOURCE_ERROR), internal_answer, base, start)

        result = await self.executor.perform_lookup(q, sources, classification.type, check_cache=False)
        if isinstance(result, LookupFailure):
            logger.info("[LookupEngine] Lookup failed, degrading: %s", result.error)
            return self._degrade(q, classification, result, internal_answer, base, start, performed=True)

        confidence = self.runtime.cache.external_confidence
        entry = self.cache.set(q, result.data, classification.type, result.sources_used, confidence)
        disclosures = [d for d in (result.corroboration_disclosure, result.price_quote_disclosure) if d]

        return LookupResponse(
            success=True,
            lookup_performed=True,
            data=result.data,
            sources_used=result.sources_used,
            sources_consulted=result.sources_consulted,
            disclosure=" ".join(disclosures) or None,
            verified_at=result.verified_at,
            cache_valid_until=entry.expires_at if entry is not None else None,
            source_class=SourceClass.EXTERNAL,
            confidence=confidence,
            lookup_time_ms=_elapsed_ms(start),
            **base,
        )

    def _can_force(self, q: str, classification: TruthClassification, force_refresh: bool) -> bool:
        # Documents and long inputs stay local even when a refresh is forced.
        return (
            force_refresh
            and classification.type != TruthType.DOCUMENT_REVIEW
            and len(q) <= self.runtime.lookup.max_lookup_query_chars
        )

    def _degrade(
        self,
        q: str,
        classification: TruthClassification,
        failure: LookupFailure,
        internal_answer: str | None,
        base: dict[str, Any],
        start: float,
        *,
        performed: bool = False,
    ) -> LookupResponse:
        degraded = self.degradation.graceful_degradation(
            q, failure, internal_answer, high_stakes=classification.high_stakes
        )
        return LookupResponse(
            success=False,
            lookup_performed=performed,
            degraded=True,
            disclosure=degraded.disclosure,
            internal_answer=degraded.internal_answer_labeled,
            verification_path=degraded.verification_path,
            sources_consulted=failure.sources_consulted,
            verified_at=failure.verified_at,
            error=failure.error,
            lookup_time_ms=_elapsed_ms(start),
            **base,
        )
