# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Truth Classifier
================

Buckets a query into a truth-volatility class. Stages run in strict order and
the first stage producing a non-ambiguous result wins:

0. Document review: very long input with review phrasing or document
   structure. Never looked up, never cached. Any other input longer than
   `max_scan_chars` stops here as SEMI_STABLE without pattern scoring.
1. Stable procedural: "how do I boil/tie/spell ..." without a temporal
   qualifier. Then pattern scoring: one ordered rule table, evaluated once.
   VOLATILE wins whenever any volatile marker matched; otherwise PERMANENT
   beats SEMI_STABLE.
2. Ambiguous fallback: conservative SEMI_STABLE default, or a pluggable
   classifier. Never raises.

`classify()` is a pure function of its input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from freshcheck_core.runtime_config import EngineCacheConfig
from freshcheck_core.schema.truth import MatchedPattern, TruthClassification, TruthType
from freshcheck_core.tools.freshness_cache import build_ttl_table, ttl_for
from freshcheck_core.verification.high_stakes import detect_high_stakes_domain

logger = logging.getLogger(__name__)

DOCUMENT_MIN_CHARS = 10_000
DOCUMENT_REVIEW_HEAD_CHARS = 500
DOCUMENT_MIN_STRUCTURE_MARKERS = 2
# Longer inputs are never pattern-scored; only the document check runs.
MAX_SCAN_CHARS = 10_000

# Returns a truth type, optionally with a confidence.
AmbiguousClassifier = Callable[[str], "TruthType | tuple[TruthType, float]"]


@dataclass(frozen=True)
class TruthRule:
    pattern: re.Pattern[str]
    truth_type: TruthType
    priority: int

    @property
    def source(self) -> str:
        return self.pattern.pattern


_PRIORITY = {
    TruthType.VOLATILE: 3,
    TruthType.PERMANENT: 2,
    TruthType.SEMI_STABLE: 1,
}


def _rules(truth_type: TruthType, patterns: tuple[str, ...]) -> list[TruthRule]:
    return [TruthRule(re.compile(p, re.IGNORECASE), truth_type, _PRIORITY[truth_type]) for p in patterns]


_VOLATILE = (
    r"\b(current|latest|today|now|live|breaking|real-?time)\b",
    r"\b(price|stock|market|trading|exchange rate)\b",
    r"\b(weather|forecast|temperature)\b",
    r"\b(news|happening|update|situation)\b",
    r"\bwhat('s| is) [^.?!\n]{0,80} (right now|today|currently)\b",
    r"\bhow much (is|does|are) [^.?!\n]{0,80} (cost|worth)\b",
    # Currency conversion quotes a live rate.
    r"\b(forex|fx rate|currency rate|currencies)\b",
    r"\b(dollars?|euros?|pounds?|yen|usd|eur|gbp|jpy|chf|cny|inr|mxn|cad|aud|uah) (to|in|into) "
    r"(dollars?|euros?|pounds?|yen|usd|eur|gbp|jpy|chf|cny|inr|mxn|cad|aud|uah)\b",
    r"\bconvert\b[^.?!\n]{0,40}\b(to|into|in) (dollars?|euros?|pounds?|yen|usd|eur|gbp|jpy)\b",
    r"\b(venezuela|ukraine|russia|china|iran|israel|gaza|palestine|greenland|denmark|congress|senate"
    r"|white house|attack|election|president|war|invasion|military|conflict|strike|bombing|sanctions"
    r"|diplomatic|crisis|coup|protest|riot|trump|biden|harris|putin|netanyahu|xi jinping)\b",
)

_SEMI_STABLE = (
    r"\b(who is the (current )?(ceo|president|chairman|director|head))\b",
    r"\b(regulation|policy|law|statute|requirement|compliance)\b",
    r"\b(tax rate|interest rate|fee|tariff)\b",
    r"\b(fda|sec|irs|government) (approval|ruling|guidance)\b",
    r"\b(product spec|specification|version)\b",
    r"\b(hours|schedule|availability|open|closed)\b",
    r"\bis [^.?!\n]{0,80} (still|currently) (available|supported|active)\b",
)

_PERMANENT = (
    r"\b(what is|define|definition of|meaning of)\b",
    r"\b(history|historical|when was|when did)\b",
    r"\b(theorem|principle|law of|theory of)\b",
    r"\b(how does [^.?!\n]{0,80} work|explain|describe)\b",
    r"\b(math|mathematics|calculation|formula)\b",
    r"\b(science|scientific|physics|chemistry|biology)\b",
    r"\b(invented|discovered|founded|established|created)\b",
    r"\b(capital of|located in|born in|died in)\b",
    # Arithmetic
    r"^what is \d+[+\-*/%]\d+",
    r"^\d+[+\-*/%]\d+",
    r"^calculate \d+",
    r"\bsimple (math|arithmetic|calculation)\b",
    r"\bwhat('s| is| are)? \d+\s*[×x*+\-/÷]\s*\d+",
    r"\b\d+\s*[×x*+\-/÷]\s*\d+\s*[=?]",
    # Word definitions
    r"\bwhat does ['\"]?\w+['\"]? mean\b",
    r"\bwhat is the meaning of\b",
    # Procedures, crafts and basic skills
    r"\bhow (do|to) (i |you |we )?(boil|cook|make|bake|fry|roast|grill|steam|poach|blanch|sauté|simmer|braise)\b",
    r"\bhow (do|to) (i |you |we )?(tie|fold|cut|slice|chop|dice|mince|grate|peel|core)\b",
    r"\bhow (do|to) (i |you |we )?(write|spell|pronounce|say|read)\b",
    r"\bhow (do|to) (i |you |we )?(clean|wash|dry|iron|sew|knit|crochet)\b",
    r"\bhow (do|to) (i |you |we )?(build|fix|repair|assemble|install)\b",
    r"\bhow (do|to) (i |you |we )?(grow|plant|prune|water|harvest)\b",
    # Recipes and composition
    r"\bwhat is (a |an |the )?(recipe|ingredient|step|process|method|technique)\b",
    r"\bwhat (is|are) [^.?!\n]{0,80} (made of|composed of|consist of)\b",
    # Constants and named results
    r"\b(pythagorean|fibonacci|newton|einstein|archimedes|euclid)\b",
    r"\b(speed of light|gravity|pi|golden ratio|periodic table)\b",
    r"\bhow many (feet|inches|meters|miles|kilometers|pounds|ounces|grams|kilograms|liters|gallons|cups"
    r"|tablespoons|teaspoons) (in|per|are in) (a |an |one )?\w+",
    r"\bwhat is (a |an )?(zip|pdf|jpg|png|gif|mp3|mp4|csv|json|xml|html|css|javascript) file\b",
)

# Volatile rules first so matched_patterns reads in precedence order.
TRUTH_RULES: tuple[TruthRule, ...] = tuple(
    _rules(TruthType.VOLATILE, _VOLATILE)
    + _rules(TruthType.PERMANENT, _PERMANENT)
    + _rules(TruthType.SEMI_STABLE, _SEMI_STABLE)
)

_STABLE_PROCEDURAL = re.compile(
    r"\bhow (do|to|can|should) (i |you |we )?(make|cook|boil|bake|tie|fold|write|create|build|fix|clean"
    r"|wash|open|close|start|stop|grow|plant|cut|slice|chop|spell|pronounce)\b",
    re.IGNORECASE,
)
_TEMPORAL_QUALIFIER = re.compile(
    r"\b(today|now|current|latest|recent|this morning|yesterday|right now)\b", re.IGNORECASE
)

_REVIEW_PHRASES = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"your thoughts",
    r"please (be )?comprehensive",
    r"review (this|the following)",
    r"analyze (this|the following)",
    r"what do you think (about|of)",
    r"feedback on",
    r"evaluate (this|the following)",
    r"the following is",
    r"here is (the|a|my)",
))

_DOCUMENT_STRUCTURE = tuple(re.compile(p, f) for p, f in (
    (r"SECTION \d+", re.IGNORECASE),
    (r"^#+\s", re.MULTILINE),
    (r"Table of Contents", re.IGNORECASE),
    (r"Version \d+\.\d+", re.IGNORECASE),
    (r"^[-•]\s", re.MULTILINE),
    (r"file:", re.IGNORECASE),
    (r"implementation", re.IGNORECASE),
    (r"specification", re.IGNORECASE),
    (r"architecture", re.IGNORECASE),
))


def is_stable_procedural(query: str) -> bool:
    return bool(_STABLE_PROCEDURAL.search(query)) and not _TEMPORAL_QUALIFIER.search(query)


def is_document_review(query: str) -> bool:
    if len(query) <= DOCUMENT_MIN_CHARS:
        return False
    head = query[:DOCUMENT_REVIEW_HEAD_CHARS]
    if any(p.search(head) for p in _REVIEW_PHRASES):
        return True
    markers = sum(1 for p in _DOCUMENT_STRUCTURE if p.search(query))
    return markers >= DOCUMENT_MIN_STRUCTURE_MARKERS


def score_patterns(query: str) -> list[MatchedPattern]:
    q = query.lower().strip()
    return [MatchedPattern(type=r.truth_type, pattern=r.source) for r in TRUTH_RULES if r.pattern.search(q)]


class TruthClassifier:
    def __init__(
        self,
        *,
        cache_config: EngineCacheConfig | None = None,
        ambiguous_classifier: AmbiguousClassifier | None = None,
        max_scan_chars: int = MAX_SCAN_CHARS,
    ) -> None:
        self._ttl_table = build_ttl_table(cache_config)
        self._ambiguous_classifier = ambiguous_classifier
        self.max_scan_chars = max_scan_chars

    def get_ttl(self, truth_type: TruthType | str | None) -> int:
        return ttl_for(truth_type, self._ttl_table)

    def classify(self, query: Any) -> TruthClassification:
        if not isinstance(query, str) or not query.strip():
            return TruthClassification(
                type=TruthType.AMBIGUOUS,
                confidence=0.0,
                stage=1,
                reason="Invalid or empty query",
                ttl_ms=self.get_ttl(TruthType.AMBIGUOUS),
            )

        high_stakes = detect_high_stakes_domain(query[: self.max_scan_chars])
        result = self._classify_by_pattern(query)
        if result.type == TruthType.AMBIGUOUS:
            result = self._classify_ambiguous(query)

        return result.model_copy(update={
            "high_stakes": high_stakes,
            "ttl_ms": self.get_ttl(result.type),
        })

    async def detect_truth_type(self, query: Any) -> TruthClassification:
        return self.classify(query)

    def _classify_by_pattern(self, query: str) -> TruthClassification:
        if is_document_review(query):
            logger.debug("[TruthClassifier] Document review detected, skipping volatility patterns")
            return TruthClassification(
                type=TruthType.DOCUMENT_REVIEW,
                confidence=0.9,
                stage=0,
                matched_patterns=[MatchedPattern(type=TruthType.DOCUMENT_REVIEW, pattern="document_review_request")],
                reason="Long-form document detected",
                skip_external_lookup=True,
            )

        if len(query) > self.max_scan_chars:
            logger.debug("[TruthClassifier] Long input (%d chars), patterns not scored", len(query))
            return TruthClassification(
                type=TruthType.SEMI_STABLE,
                confidence=0.5,
                stage=2,
                reason="Long-form input; volatility patterns not scored",
            )

        normalized = query.lower().strip()
        if is_stable_procedural(normalized):
            return TruthClassification(
                type=TruthType.PERMANENT,
                confidence=0.9,
                stage=1,
                matched_patterns=[MatchedPattern(type=TruthType.PERMANENT, pattern="stable_procedural_fact")],
                reason="Stable procedural fact (unchanging process)",
            )

        matched = score_patterns(normalized)
        if not matched:
            return TruthClassification(
                type=TruthType.AMBIGUOUS,
                confidence=0.0,
                stage=1,
                reason="No deterministic patterns matched",
            )

        counts = {TruthType.VOLATILE: 0, TruthType.PERMANENT: 0, TruthType.SEMI_STABLE: 0}
        for m in matched:
            counts[m.type] += 1

        winner = max((t for t, c in counts.items() if c), key=lambda t: _PRIORITY[t])
        count = counts[winner]
        kinds = sum(1 for c in counts.values() if c)

        if winner == TruthType.VOLATILE:
            reason = f"Matched {count} VOLATILE pattern(s)"
            if kinds > 1:
                reason += "; VOLATILE markers take precedence"
            return TruthClassification(
                type=winner,
                confidence=min(0.95, 0.7 + 0.1 * count),
                stage=1,
                matched_patterns=matched,
                reason=reason,
            )

        if kinds > 1:
            return TruthClassification(
                type=TruthType.PERMANENT,
                confidence=0.6,
                stage=1,
                matched_patterns=matched,
                conflict_detected=True,
                reason="Multiple truth types detected, PERMANENT wins without VOLATILE markers",
            )

        return TruthClassification(
            type=winner,
            confidence=min(0.95, 0.7 + 0.1 * count),
            stage=1,
            matched_patterns=matched,
            reason=f"Matched {count} {winner.value} pattern(s)",
        )

    def _classify_ambiguous(self, query: str) -> TruthClassification:
        if self._ambiguous_classifier is None:
            return TruthClassification(
                type=TruthType.SEMI_STABLE,
                confidence=0.5,
                stage=2,
                reason="Ambiguous query, defaulting to SEMI_STABLE",
            )
        try:
            out = self._ambiguous_classifier(query)
            if isinstance(out, tuple):
                truth_type, confidence = TruthType(out[0]), float(out[1])
            else:
                truth_type, confidence = TruthType(out), 0.5
            if truth_type == TruthType.AMBIGUOUS:
                truth_type = TruthType.SEMI_STABLE
            return TruthClassification(
                type=truth_type,
                confidence=max(0.0, min(1.0, confidence)),
                stage=2,
                reason="Ambiguous query classified by fallback classifier",
            )
        except Exception as e:
            logger.warning("[TruthClassifier] Fallback classifier failed: %s", e)
            return TruthClassification(
                type=TruthType.SEMI_STABLE,
                confidence=0.3,
                stage=2,
                reason="Fallback classifier failed, defaulting to SEMI_STABLE",
                error=str(e),
            )
