# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Doctrine gates.

Each gate is a pure function of the response text and its metadata (plus the
operating mode or the current time where needed). A gate either passes,
fails with a text correction, or fails metadata-only (correction is None).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import ClaimType, GateResult, HierarchyName, ResponseMetadata
from freshcheck_core.schema.lookup import SourceClass
from freshcheck_core.schema.truth import TruthType

DEFAULT_CONFIDENCE = 0.5

TRUTH_DISCLAIMER = (
    "I want to be transparent: my confidence in this answer is limited, and I was unable to verify it "
    "against external sources. Please verify this information independently."
)

POLICY_RECONCILE_NOTE = (
    "Note: This response should be based on internal policy documentation, not external sources. "
    "Please reconcile it with your vault documentation."
)

LOOKUP_FAILED_NOTE = (
    "**Note:** I was unable to verify this information against current external sources. "
    "This response is based on my training data and may not reflect the most recent information."
)

_I = re.IGNORECASE

DISCLOSURE_PATTERNS = tuple(re.compile(p, _I) for p in (
    r"\bI('m| am) not (certain|sure|confident)\b",
    r"\bmy confidence (is|in this (answer|response) is) (low|limited|\d+%)",
    r"\bunable to verify\b",
    r"\bcould(n't| not) verify\b",
    r"\bplease verify\b",
    r"\bI recommend verifying\b",
    r"\bthis (may|might) (not be|be outdated)\b",
    r"\bpossibly outdated\b",
    r"\bcan'?t access current\b",
    r"\bbased on (my training|internal data)\b",
))


def _confidence(metadata: ResponseMetadata) -> float:
    return DEFAULT_CONFIDENCE if metadata.confidence is None else metadata.confidence


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def has_disclosure_language(text: str) -> bool:
    return any(p.search(text or "") for p in DISCLOSURE_PATTERNS)


def truth_gate(
    response: str,
    metadata: ResponseMetadata,
    config: EngineDoctrineConfig | None = None,
) -> GateResult:
    cfg = config or EngineDoctrineConfig()
    confidence = _confidence(metadata)

    if confidence >= cfg.truth_confidence_threshold:
        return GateResult()
    if metadata.external_lookup:
        return GateResult()
    # Low confidence is acceptable for settled facts.
    if metadata.truth_type == TruthType.PERMANENT:
        return GateResult()

    truth_type = metadata.truth_type.value if metadata.truth_type else "unclassified"
    return GateResult(
        passed=False,
        violation=f"Low confidence ({confidence}) without external verification for {truth_type} claim",
        correction=TRUTH_DISCLAIMER,
    )


def provenance_gate(response: str, metadata: ResponseMetadata) -> GateResult:
    if metadata.source_class != SourceClass.EXTERNAL:
        return GateResult()

    missing = [
        name for name, value in (
            ("source_class", metadata.source_class),
            ("verified_at", metadata.verified_at),
            ("confidence", metadata.confidence),
        )
        if value is None
    ]
    if not missing:
        return GateResult()

    return GateResult(
        passed=False,
        violation=f"External claim missing provenance tags: {', '.join(missing)}",
    )


def volatility_gate(
    response: str,
    metadata: ResponseMetadata,
    now: datetime,
    config: EngineDoctrineConfig | None = None,
) -> GateResult:
    cfg = config or EngineDoctrineConfig()
    if metadata.truth_type != TruthType.VOLATILE or metadata.cache_valid_until is None:
        return GateResult()

    ttl_ms = (_aware(metadata.cache_valid_until) - _aware(now)).total_seconds() * 1000
    if ttl_ms <= cfg.max_volatile_ttl_ms:
        return GateResult()

    return GateResult(
        passed=False,
        violation=(
            f"VOLATILE data cached for {round(ttl_ms / 60000)} minutes "
            f"(max: {round(cfg.max_volatile_ttl_ms / 60000)} minutes)"
        ),
    )


def business_policy_gate(
    response: str,
    metadata: ResponseMetadata,
    mode: str | None,
    config: EngineDoctrineConfig | None = None,
) -> GateResult:
    cfg = config or EngineDoctrineConfig()
    if mode not in cfg.protected_modes or metadata.source_class != SourceClass.EXTERNAL:
        return GateResult()

    if metadata.claim_type == ClaimType.BUSINESS_POLICY:
        return GateResult(
            passed=False,
            violation=f"External source used for business policy claim in {mode} mode",
            correction=POLICY_RECONCILE_NOTE,
        )

    if metadata.hierarchy_name == HierarchyName.VAULT_FIRST:
        return GateResult(
            passed=False,
            violation="VAULT_FIRST hierarchy violated: external source overrode vault",
            correction=POLICY_RECONCILE_NOTE,
        )

    return GateResult()


def disclosure_gate(
    response: str,
    metadata: ResponseMetadata,
    config: EngineDoctrineConfig | None = None,
) -> GateResult:
    """
    Append a disclosure note when one is owed and missing.

    Never fails: a missing disclosure is fixed in place rather than blocking
    the response.
    """
    cfg = config or EngineDoctrineConfig()
    confidence = _confidence(metadata)
    lookup_failed = metadata.lookup_attempted and not metadata.external_lookup
    low_confidence = confidence < cfg.disclosure_confidence_threshold

    if not (low_confidence or metadata.degraded or lookup_failed):
        return GateResult()
    if has_disclosure_language(response):
        return GateResult()

    if lookup_failed or metadata.degraded:
        note = LOOKUP_FAILED_NOTE
    else:
        note = (
            f"**Note:** My confidence in this response is {round(confidence * 100)}%. "
            "I recommend verifying this information from authoritative sources."
        )
    return GateResult(passed=True, correction=note, disclosure_added=True)
