# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Truth classification schema.

A classification is computed fresh for every query and never persisted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from freshcheck_core.schema.serialization import SchemaModel


class TruthType(str, Enum):
    """How quickly a fact can become outdated."""

    VOLATILE = "VOLATILE"
    """Prices, weather, breaking news. Re-verify after minutes."""

    SEMI_STABLE = "SEMI_STABLE"
    """Office holders, regulations, schedules. Re-verify daily."""

    PERMANENT = "PERMANENT"
    """Definitions, history, science, procedures."""

    DOCUMENT_REVIEW = "DOCUMENT_REVIEW"
    """User-supplied document to analyse. Never looked up, never cached."""

    AMBIGUOUS = "AMBIGUOUS"
    """No deterministic marker matched."""


class HighStakesDomain(str, Enum):
    MEDICAL = "MEDICAL"
    LEGAL = "LEGAL"
    FINANCIAL = "FINANCIAL"
    SAFETY = "SAFETY"


class MatchedPattern(SchemaModel):
    type: TruthType
    pattern: str


class HighStakesResult(SchemaModel):
    is_high_stakes: bool = False
    domains: list[HighStakesDomain] = Field(default_factory=list)

    def has(self, domain: HighStakesDomain) -> bool:
        return domain in self.domains


class TruthClassification(SchemaModel):
    type: TruthType
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    stage: int = Field(default=1, ge=0, le=2)
    matched_patterns: list[MatchedPattern] = Field(default_factory=list)
    high_stakes: HighStakesResult = Field(default_factory=HighStakesResult)
    conflict_detected: bool = False
    reason: str = ""
    skip_external_lookup: bool = False
    ttl_ms: int = 0
    error: str | None = None

    @property
    def is_high_stakes(self) -> bool:
        return self.high_stakes.is_high_stakes
