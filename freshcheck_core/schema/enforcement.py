# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Doctrine enforcement and reasoning escalation schema.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from freshcheck_core.schema.lookup import SourceClass
from freshcheck_core.schema.serialization import SchemaModel
from freshcheck_core.schema.truth import TruthType


class GateName(str, Enum):
    TRUTH = "truth"
    PROVENANCE = "provenance"
    VOLATILITY = "volatility"
    BUSINESS_POLICY = "business_policy"
    DISCLOSURE = "disclosure"


class ClaimType(str, Enum):
    BUSINESS_POLICY = "BUSINESS_POLICY"
    OBJECTIVE_FACTUAL = "OBJECTIVE_FACTUAL"
    AMBIGUOUS = "AMBIGUOUS"


class HierarchyName(str, Enum):
    VAULT_FIRST = "VAULT_FIRST"
    EXTERNAL_FIRST = "EXTERNAL_FIRST"


class ResponseMetadata(SchemaModel):
    """
    Everything the gates know about a generated response.

    Assembled by the engine from the classification, the route and the
    lookup result. Every field is optional: gates treat a missing value as
    "not established".
    """

    confidence: float | None = None
    truth_type: TruthType | None = None
    source_class: SourceClass | None = None
    verified_at: datetime | None = None
    cache_valid_until: datetime | None = None
    external_lookup: bool = False
    lookup_attempted: bool = False
    degraded: bool = False
    claim_type: ClaimType | None = None
    hierarchy_name: HierarchyName | None = None
    sources_used: int = 0
    high_stakes: list[str] = Field(default_factory=list)


class GateResult(SchemaModel):
    passed: bool = True
    violation: str | None = None
    correction: str | None = None
    disclosure_added: bool = False

    @property
    def metadata_only(self) -> bool:
        return not self.passed and self.correction is None


class GateViolation(SchemaModel):
    gate: GateName
    violation: str
    correction: str | None = None


class EnforcementOutcome(SchemaModel):
    enforcement_passed: bool = True
    gate_results: dict[GateName, GateResult] = Field(default_factory=dict)
    violations: list[GateViolation] = Field(default_factory=list)
    corrected_response: str | None = None
    gates_run: list[GateName] = Field(default_factory=list)
    timestamp: datetime

    def contract(self) -> dict[str, Any]:
        """The three fields the caller acts upon."""
        return {
            "enforcement_passed": self.enforcement_passed,
            "corrected_response": self.corrected_response,
            "violations": [v.to_dict() for v in self.violations],
        }


class EscalationViolation(SchemaModel):
    type: str
    message: str
    steps_completed: int | None = None
    steps_required: int | None = None


class EscalationOutcome(SchemaModel):
    enforced: bool = False
    passed: bool = True
    insufficient: bool = False
    steps_completed: int = 0
    steps_total: int = 5
    attempted: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    termination_detected: bool = False
    violations: list[EscalationViolation] = Field(default_factory=list)
    corrected_response: str | None = None
    reason: str | None = None


class LowConfidenceAction(str, Enum):
    NONE = "none"
    ESCALATE = "escalate"


class EscalationKind(str, Enum):
    EXTERNAL_LOOKUP = "external_lookup"
    REASONING_ESCALATION = "reasoning_escalation"
    CLARIFY = "clarify"
    BOUNDED_REASONING = "bounded_reasoning"


class PlannedEscalation(SchemaModel):
    type: EscalationKind
    reason: str
    priority: str
    steps: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)


class LowConfidencePlan(SchemaModel):
    action: LowConfidenceAction
    confidence: float
    threshold: float
    reason: str | None = None
    message: str | None = None
    escalations: list[PlannedEscalation] = Field(default_factory=list)
    recommended: PlannedEscalation | None = None


class BoundedReasoningRequirement(SchemaModel):
    required: bool
    reason: str
