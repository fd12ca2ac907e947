"""Post-generation doctrine enforcement."""

from .bounded_reasoning import requires_bounded_reasoning
from .enforcer import DoctrineEnforcer
from .gates import (
    business_policy_gate,
    disclosure_gate,
    has_disclosure_language,
    provenance_gate,
    truth_gate,
    volatility_gate,
)
from .reasoning_escalation import ReasoningEscalationEnforcer, handle_low_confidence

__all__ = [
    "DoctrineEnforcer",
    "ReasoningEscalationEnforcer",
    "requires_bounded_reasoning",
    "handle_low_confidence",
    # Gates
    "truth_gate",
    "provenance_gate",
    "volatility_gate",
    "business_policy_gate",
    "disclosure_gate",
    "has_disclosure_language",
]
