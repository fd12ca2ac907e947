# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Claim hierarchy routing.

Business-policy claims (our pricing, our procedures) are answered vault
first. Objective factual claims (prices, officeholders, news) are answered
external first. In a protected mode the vault also wins ties and ambiguity.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

from pydantic import Field

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import ClaimType, HierarchyName
from freshcheck_core.schema.serialization import SchemaModel
from freshcheck_core.schema.truth import TruthClassification, TruthType
from freshcheck_core.verification.truth_classifier import TruthClassifier

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

HIERARCHIES: dict[HierarchyName, tuple[str, ...]] = {
    HierarchyName.VAULT_FIRST: ("vault", "memory", "docs", "external"),
    HierarchyName.EXTERNAL_FIRST: ("external", "vault", "docs", "memory"),
}

BUSINESS_POLICY_PATTERNS = tuple(re.compile(p, _I) for p in (
    r"\b(our|my|we|us)\s+(pricing|price|rate|fee|cost|charge)",
    r"\b(our|my|we|us)\s+(policy|procedure|process|rule|guideline)",
    r"\b(our|my|we|us)\s+(service|offering|package|product)",
    r"\b(our|my|we|us)\s+(minimum|maximum|standard|default)",
    r"\b(do we|should we|can we|how do we)\b",
    r"\b(founder|owner|internal|company)\s+(rule|policy|decision)",
    r"\bwhat('s| is) (our|my)\b",
    r"\bhow much (do we|should we) charge\b",
    r"\b(client|customer) (qualification|criteria|requirements)\b",
    r"\bminimum (package|project|engagement)\b",
))

OBJECTIVE_FACTUAL_PATTERNS = tuple(re.compile(p, _I) for p in (
    r"\b(current|latest|today'?s?|now|live)\s+(price|stock|rate|value)",
    r"\b(who is|who's) the (current )?(ceo|president|chairman|leader)",
    r"\b(what is|what's) the (current )?(population|temperature|weather)",
    r"\b(news|headline|announcement|update) (about|on|for)",
    r"\b(stock|share|market|exchange) (price|value|rate)",
    r"\b(did|has|have|is|are|was|were) [^.?!\n]{1,80} (announced|released|published|reported)",
    r"\b(fda|sec|government|court) (approval|ruling|decision)",
    r"\b(latest|recent|new) (study|research|finding|report)",
    r"\bbreaking\b",
    r"\bhappening (now|today|right now)\b",
))


class ClaimDetection(SchemaModel):
    claim_type: ClaimType
    confidence: float
    reasoning: str
    business_patterns: list[str] = Field(default_factory=list)
    factual_patterns: list[str] = Field(default_factory=list)
    conflict_detected: bool = False


class RouteDecision(SchemaModel):
    query: str
    mode: str
    claim_type: ClaimType
    claim_confidence: float
    claim_reasoning: str
    hierarchy_name: HierarchyName
    hierarchy: list[str]
    classification: TruthClassification
    external_lookup_required: bool
    conflict_detected: bool = False
    routing_time_ms: int = 0


def _matches(patterns: tuple[re.Pattern[str], ...], q: str) -> list[str]:
    return [p.pattern for p in patterns if p.search(q)]


class ClaimRouter:
    def __init__(
        self,
        classifier: TruthClassifier | None = None,
        config: EngineDoctrineConfig | None = None,
    ) -> None:
        self.classifier = classifier or TruthClassifier()
        self.config = config or EngineDoctrineConfig()

    def is_protected(self, mode: str | None) -> bool:
        return mode in self.config.protected_modes

    def detect_claim_type(self, query: Any, mode: str | None = None) -> ClaimDetection:
        if not isinstance(query, str) or not query.strip():
            return ClaimDetection(claim_type=ClaimType.AMBIGUOUS, confidence=0.0, reasoning="Invalid or empty query")

        q = query[: self.classifier.max_scan_chars].lower().strip()
        protected = self.is_protected(mode)
        business = _matches(BUSINESS_POLICY_PATTERNS, q)
        factual = _matches(OBJECTIVE_FACTUAL_PATTERNS, q)

        # Protected modes treat every claim as potentially governed by policy.
        is_business = bool(business) or protected
        business_conf = min(1.0, min(0.9, 0.5 + 0.15 * len(business)) + (0.3 if protected else 0.0))
        factual_conf = min(0.95, 0.6 + 0.12 * len(factual))

        if is_business and factual:
            winner = ClaimType.BUSINESS_POLICY if protected else ClaimType.OBJECTIVE_FACTUAL
            return ClaimDetection(
                claim_type=winner,
                confidence=business_conf if protected else factual_conf,
                reasoning=f"Both patterns matched; {winner.value} wins in {mode or 'default'} mode",
                business_patterns=business,
                factual_patterns=factual,
                conflict_detected=True,
            )

        if is_business:
            return ClaimDetection(
                claim_type=ClaimType.BUSINESS_POLICY,
                confidence=business_conf,
                reasoning=f"Matched {len(business)} business policy pattern(s)",
                business_patterns=business,
            )

        if factual:
            return ClaimDetection(
                claim_type=ClaimType.OBJECTIVE_FACTUAL,
                confidence=factual_conf,
                reasoning=f"Matched {len(factual)} objective factual pattern(s)",
                factual_patterns=factual,
            )

        return ClaimDetection(
            claim_type=ClaimType.AMBIGUOUS,
            confidence=0.3,
            reasoning="No clear pattern match; claim type ambiguous",
        )

    def get_source_hierarchy(self, claim_type: ClaimType, mode: str | None = None) -> HierarchyName:
        if claim_type == ClaimType.BUSINESS_POLICY:
            return HierarchyName.VAULT_FIRST
        if claim_type == ClaimType.OBJECTIVE_FACTUAL:
            return HierarchyName.EXTERNAL_FIRST
        return HierarchyName.VAULT_FIRST if self.is_protected(mode) else HierarchyName.EXTERNAL_FIRST

    def route(self, query: Any, mode: str | None = None) -> RouteDecision:
        start = time.monotonic()
        claim = self.detect_claim_type(query, mode)
        classification = self.classifier.classify(query)
        hierarchy = self.get_source_hierarchy(claim.claim_type, mode)

        external_required = (
            hierarchy == HierarchyName.EXTERNAL_FIRST
            or classification.type == TruthType.VOLATILE
            or classification.is_high_stakes
        )
        # Document review never goes outside.
        if classification.type == TruthType.DOCUMENT_REVIEW:
            external_required = False

        logger.debug(
            "[ClaimRouter] claim=%s hierarchy=%s truth=%s external=%s",
            claim.claim_type.value, hierarchy.value, classification.type.value, external_required,
        )
        return RouteDecision(
            query=query if isinstance(query, str) else "",
            mode=mode or "",
            claim_type=claim.claim_type,
            claim_confidence=claim.confidence,
            claim_reasoning=claim.reasoning,
            hierarchy_name=hierarchy,
            hierarchy=list(HIERARCHIES[hierarchy]),
            classification=classification,
            external_lookup_required=external_required,
            conflict_detected=claim.conflict_detected,
            routing_time_ms=int((time.monotonic() - start) * 1000),
        )
