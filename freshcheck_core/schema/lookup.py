# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Lookup, cache and degradation schema.

Stage results are small discriminated unions: `CacheHit | CacheMiss` and
`LookupSuccess | LookupFailure`. Callers branch on the `hit` / `success`
literal instead of probing optional fields.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Union

from pydantic import Field

from freshcheck_core.schema.serialization import SchemaModel
from freshcheck_core.schema.truth import TruthType


class SourceClass(str, Enum):
    """Where a piece of data came from."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    VAULT = "vault"
    DOCUMENT = "document"


class LookupPriority(str, Enum):
    NONE = "none"
    NORMAL = "normal"
    HIGH = "high"


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────


class CacheEntry(SchemaModel):
    fingerprint: str
    original_query: str
    data: Any = None
    truth_type: TruthType
    source_class: SourceClass = SourceClass.INTERNAL
    sources_used: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    verified_at: datetime
    expires_at: datetime
    ttl_ms: int = 0


class CacheHit(SchemaModel):
    hit: Literal[True] = True
    entry: CacheEntry
    time_remaining_ms: int = 0


class CacheMiss(SchemaModel):
    hit: Literal[False] = False
    # "not_found" | "expired" | "invalid_query"
    reason: str = "not_found"


CacheProbe = Union[CacheHit, CacheMiss]


# ─────────────────────────────────────────────────────────────────────────────
# Lookup
# ─────────────────────────────────────────────────────────────────────────────


class SourceAttempt(SchemaModel):
    """One row of the per-source log kept by the executor."""

    name: str
    category: str = ""
    # success | error_<code> | timeout | error | extraction_failed | no_data
    # | non_parseable | extractor_error | skipped_budget
    status: str
    text_length: int | None = None
    error: str | None = None


class LookupRequirement(SchemaModel):
    required: bool = False
    reasons: list[str] = Field(default_factory=list)
    priority: LookupPriority = LookupPriority.NONE
    max_lookups: int = 0
    truth_type: TruthType | None = None
    high_stakes: list[str] = Field(default_factory=list)
    is_news_query: bool = False
    requires_corroboration: bool = False


class _LookupOutcome(SchemaModel):
    sources_consulted: list[SourceAttempt] = Field(default_factory=list)
    sources_succeeded: int = 0
    total_text_fetched: int = 0
    verified_at: datetime | None = None
    from_cache: bool = False
    lookup_time_ms: int = 0


class LookupSuccess(_LookupOutcome):
    success: Literal[True] = True
    data: str
    sources_used: list[str] = Field(default_factory=list)
    truth_type: TruthType | None = None
    confidence: float | None = None
    cache_valid_until: datetime | None = None
    news_corroborated: bool | None = None
    corroboration_disclosure: str | None = None
    price_quote_disclosure: str | None = None


class LookupFailure(_LookupOutcome):
    success: Literal[False] = False
    error: str = "All sources failed"


LookupResult = Union[LookupSuccess, LookupFailure]


# ─────────────────────────────────────────────────────────────────────────────
# Degradation
# ─────────────────────────────────────────────────────────────────────────────


class VerificationPointer(SchemaModel):
    name: str
    url: str


class VerificationPath(SchemaModel):
    message: str = "You can verify this information at:"
    sources: list[VerificationPointer] = Field(default_factory=list, max_length=2)


class DegradedResponse(SchemaModel):
    degraded: Literal[True] = True
    disclosure: str
    internal_answer: str | None = None
    internal_answer_labeled: str | None = None
    verification_path: VerificationPath
    lookup_error: str | None = None
    max_response_words: int = 30
    timestamp: datetime


# ─────────────────────────────────────────────────────────────────────────────
# Inbound lookup contract
# ─────────────────────────────────────────────────────────────────────────────


class LookupResponse(SchemaModel):
    """What the response-generation layer receives from `lookup()`."""

    success: bool
    lookup_performed: bool = False
    from_cache: bool = False
    data: Any = None
    sources_used: list[str] = Field(default_factory=list)
    truth_type: TruthType | None = None
    truth_ttl_ms: int = 0
    lookup_reasons: list[str] = Field(default_factory=list)
    lookup_priority: LookupPriority = LookupPriority.NONE
    high_stakes: list[str] = Field(default_factory=list)
    degraded: bool = False
    disclosure: str | None = None
    internal_answer: str | None = None
    verification_path: VerificationPath | None = None
    sources_consulted: list[SourceAttempt] = Field(default_factory=list)
    verified_at: datetime | None = None
    cache_valid_until: datetime | None = None
    source_class: SourceClass | None = None
    confidence: float | None = None
    reason: str | None = None
    error: str | None = None
    lookup_time_ms: int = 0
