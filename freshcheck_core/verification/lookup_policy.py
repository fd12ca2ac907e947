# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Lookup requirement policy.

Decides whether a query needs live external verification and how many
lookups it may spend. News intent is detected from question structure plus
named entities, not from lists of names.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from freshcheck_core.runtime_config import EngineLookupConfig
from freshcheck_core.schema.lookup import LookupPriority, LookupRequirement
from freshcheck_core.schema.truth import TruthClassification, TruthType
from freshcheck_core.utils.text_processing import has_proper_nouns

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

FRESHNESS_MARKERS = tuple(re.compile(p, _I) for p in (
    r"\b(current|latest|today|now|live|real-?time)\b",
    r"\b(price|stock|rate|value|cost)\b",
    r"\b(weather|forecast|temperature)\b",
    r"\b(news|update|announcement|breaking|situation|happening)\b",
    r"\b(available|in stock|open|closed)\b",
))

HIGH_STAKES_NEWS_MARKERS = re.compile(
    r"attack|bombing|invasion|coup|killed|missile|war|strike|assassination|military action|troops|casualties", _I
)

NEWS_STRUCTURE_PATTERNS = tuple(re.compile(p, _I) for p in (
    r"\bwhat'?s\s+(the\s+)?(situation|happening|going\s+on|news|latest|update)\s+(with|about|regarding|on|in)\b",
    r"\bwhat\s+is\s+(the\s+)?(situation|happening|going\s+on|news|latest|update)\s+(with|about|regarding|on|in)\b",
    r"\btell\s+me\s+(about|regarding)\b",
    r"\bany\s+(news|updates?|developments?)\s+(about|on|regarding)\b",
    r"\b(news|situation|update|happening|development)\s+(with|about|regarding|on|in)\b",
    r"\b(current\s+events?|breaking|this\s+morning|today|yesterday|just\s+now)\b",
    r"\bwhat\s+happened\s+(with|to|in)\b",
    r"\bwhat'?s\s+going\s+on\s+(with|in)\b",
    r"\bwhat\s+(are|is)\s+(the\s+)?(top|latest|today'?s|recent)\s+(news|stories|headlines|updates)\b",
    r"\b(top|latest|recent|breaking)\s+(news|stories|headlines|updates)\b",
    r"\bwhat'?s\s+the\s+weather\b",
    r"\bweather\s+(in|at|for)\b",
    r"\b(latest|recent)\s+(celebrity|entertainment)\s+(news|gossip|stories)\b",
))

GEOPOLITICAL_CONTEXT_MARKERS = tuple(re.compile(p, _I) for p in (
    r"\b(election|diplomatic|military|conflict|treaty|summit|sanctions|trade\s+war)\b",
    r"\b(president|prime\s+minister|chancellor|leader|government|parliament|congress|senate)\b",
    r"\b(country|nation|state|territory|border|international)\b",
))

_TIME_MARKER = re.compile(r"\b(today|this morning|yesterday|right now|currently|latest|recent|just now)\b", _I)
_BREAKING = re.compile(r"\b(breaking|current\s+events?)\b", _I)

REPUTABLE_SOURCES = re.compile(
    r"reuters|associated press|ap news|bbc|afp|npr|guardian|new york times|nytimes|washington post"
    r"|wall street journal|wsj|cnn|abc news|cbs news|nbc news",
    _I,
)

CORROBORATION_DISCLOSURE = (
    "Multiple outlets are reporting this, but I cannot confirm from reputable sources like Reuters or AP. "
    "Please verify independently."
)


def check_freshness_markers(query: Any) -> list[str]:
    if not isinstance(query, str) or not query:
        return []
    q = query.lower().strip()
    return [p.pattern for p in FRESHNESS_MARKERS if p.search(q)]


def has_news_intent(query: Any) -> bool:
    """
    News intent is any of:
    - news structure + named entity ("What's the situation with Starmer")
    - news structure + geopolitical context ("what's happening with the election")
    - named entity + time marker + geopolitical context
    - news structure + explicit "breaking" / "current events"
    """
    if not isinstance(query, str) or not query:
        return False

    q = query.lower().strip()
    structure = any(p.search(q) for p in NEWS_STRUCTURE_PATTERNS)
    entity = has_proper_nouns(query)
    geo = any(p.search(q) for p in GEOPOLITICAL_CONTEXT_MARKERS)
    timely = bool(_TIME_MARKER.search(q))

    return (
        (structure and entity)
        or (structure and geo)
        or (entity and timely and geo)
        or (structure and bool(_BREAKING.search(q)))
    )


def requires_corroboration(query: str, truth_type: TruthType | str | None) -> bool:
    return truth_type == TruthType.VOLATILE and bool(HIGH_STAKES_NEWS_MARKERS.search(query or ""))


def has_reputable_source(fetched_text: str) -> bool:
    return bool(REPUTABLE_SOURCES.search(fetched_text or ""))


class LookupRequirementPolicy:
    def __init__(self, config: EngineLookupConfig | None = None) -> None:
        self.config = config or EngineLookupConfig()

    def is_lookup_required(
        self,
        query: Any,
        classification: TruthClassification,
        internal_confidence: float = 0.5,
    ) -> LookupRequirement:
        cfg = self.config

        if not isinstance(query, str):
            logger.warning("[LookupPolicy] Non-string query, skipping lookup check")
            return LookupRequirement(reasons=["Invalid query type for lookup; expected string"])

        if classification.type == TruthType.DOCUMENT_REVIEW or classification.skip_external_lookup:
            logger.debug("[LookupPolicy] Skipping lookup for document review")
            return LookupRequirement(
                reasons=["Document review requests do not require external lookup"],
                truth_type=classification.type,
            )

        if len(query) > cfg.max_lookup_query_chars:
            logger.debug("[LookupPolicy] Skipping lookup for long input (%d chars)", len(query))
            return LookupRequirement(
                reasons=["Long-form inputs are not lookup candidates"],
                truth_type=classification.type,
            )

        reasons: list[str] = []
        priority = LookupPriority.NORMAL
        max_lookups = cfg.max_lookups_per_request
        news = has_news_intent(query)
        corroborate = requires_corroboration(query, classification.type)

        if check_freshness_markers(query):
            reasons.append("freshness_markers_detected")

        if news:
            reasons.append("news_intent_detected")
            priority = LookupPriority.HIGH

        if classification.type == TruthType.VOLATILE:
            reasons.append("volatile_truth_type")
            priority = LookupPriority.HIGH

        domains = [d.value for d in classification.high_stakes.domains]
        if classification.high_stakes.is_high_stakes:
            reasons.append("high_stakes_domain: " + ", ".join(domains))
            priority = LookupPriority.HIGH

        if corroborate:
            reasons.append("news_corroboration_required")
            priority = LookupPriority.HIGH
            max_lookups = 2

        if internal_confidence < cfg.confidence_threshold:
            reasons.append(f"low_internal_confidence: {internal_confidence}")

        if not reasons:
            priority = LookupPriority.NONE

        return LookupRequirement(
            required=bool(reasons),
            reasons=reasons,
            priority=priority,
            max_lookups=cfg.high_stakes_max_lookups if priority == LookupPriority.HIGH else (max_lookups if reasons else 0),
            truth_type=classification.type,
            high_stakes=domains,
            is_news_query=news,
            requires_corroboration=corroborate,
        )


_PRICE_QUERY = re.compile(r"\b(price|prices|cost|costs|worth|trading at|quote|how much|exchange rate)\b", _I)


def is_price_query(query: Any) -> bool:
    return isinstance(query, str) and bool(_PRICE_QUERY.search(query))
