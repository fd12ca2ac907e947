# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
FreshCheck Core Schema Module

Truth classification, lookup/cache results and doctrine enforcement outcomes.
"""

from freshcheck_core.schema.serialization import SchemaModel, dump_schema

from freshcheck_core.schema.truth import (
    TruthType,
    HighStakesDomain,
    MatchedPattern,
    HighStakesResult,
    TruthClassification,
)

from freshcheck_core.schema.lookup import (
    SourceClass,
    LookupPriority,
    CacheEntry,
    CacheHit,
    CacheMiss,
    CacheProbe,
    SourceAttempt,
    LookupRequirement,
    LookupSuccess,
    LookupFailure,
    LookupResult,
    VerificationPointer,
    VerificationPath,
    DegradedResponse,
    LookupResponse,
)

from freshcheck_core.schema.enforcement import (
    GateName,
    ClaimType,
    HierarchyName,
    ResponseMetadata,
    GateResult,
    GateViolation,
    EnforcementOutcome,
    EscalationViolation,
    EscalationOutcome,
    LowConfidenceAction,
    EscalationKind,
    PlannedEscalation,
    LowConfidencePlan,
    BoundedReasoningRequirement,
)

__all__ = [
    "SchemaModel",
    "dump_schema",
    "TruthType",
    "HighStakesDomain",
    "MatchedPattern",
    "HighStakesResult",
    "TruthClassification",
    "SourceClass",
    "LookupPriority",
    "CacheEntry",
    "CacheHit",
    "CacheMiss",
    "CacheProbe",
    "SourceAttempt",
    "LookupRequirement",
    "LookupSuccess",
    "LookupFailure",
    "LookupResult",
    "VerificationPointer",
    "VerificationPath",
    "DegradedResponse",
    "LookupResponse",
    "GateName",
    "ClaimType",
    "HierarchyName",
    "ResponseMetadata",
    "GateResult",
    "GateViolation",
    "EnforcementOutcome",
    "EscalationViolation",
    "EscalationOutcome",
    "LowConfidenceAction",
    "EscalationKind",
    "PlannedEscalation",
    "LowConfidencePlan",
    "BoundedReasoningRequirement",
]
