# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Reasoning escalation.

When bounded reasoning is required, the response has to do the reasoning:
state what is known, name the unknowns, draw on parallels, give bounded
scenarios, and say what would raise confidence. A response that both skips
most of these and bails out ("you should consult a professional") gets a
labeled scaffold appended. The enforcer never blocks a response.

`handle_low_confidence` plans the escalation for answers below the confidence
threshold before they are shipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import (
    EscalationKind,
    EscalationOutcome,
    EscalationViolation,
    LowConfidenceAction,
    LowConfidencePlan,
    PlannedEscalation,
)
from freshcheck_core.schema.truth import TruthType

logger = logging.getLogger(__name__)

_I = re.IGNORECASE


@dataclass(frozen=True)
class EscalationStep:
    key: str
    title: str
    markers: tuple[re.Pattern[str], ...]
    prompt: str


ESCALATION_STEPS: tuple[EscalationStep, ...] = (
    EscalationStep(
        "known_facts",
        "What is known",
        (
            re.compile(r"\b(what (we|i) (do )?know|known|established|generally|typically|the pattern is"
                       r"|it's clear that|facts? (are|is)|we can say)\b", _I),
            re.compile(r"\b(research (shows|indicates)|data (shows|suggests)|evidence (shows|suggests))\b", _I),
        ),
        "_[Based on established patterns and principles...]_",
    ),
    EscalationStep(
        "unknowns_identified",
        "What is unknown",
        (
            re.compile(r"\b(what (we|i) don't know|unknown|unclear|uncertain|can't (determine|verify)"
                       r"|missing (information|data)|depends on|would need to know)\b", _I),
            re.compile(r"\b(without knowing|the key question is)\b", _I),
        ),
        "_[Key factors that would change the answer...]_",
    ),
    EscalationStep(
        "parallels_used",
        "Similar situations suggest",
        (
            re.compile(r"\b(similar (situation|case|scenario)s?|comparable|analogous|historically|in the past"
                       r"|pattern suggests|typically when|usually when)\b", _I),
            re.compile(r"\b(other (people|companies|cases|situations)|common (outcome|pattern)|precedent)\b", _I),
        ),
        "_[From similar situations...]_",
    ),
    EscalationStep(
        "scenarios_presented",
        "Possible scenarios",
        (
            re.compile(r"\b(scenarios?|best case|worst case|most likely|optimistic|pessimistic|could range"
                       r"|between \S+ and \S+)\b", _I),
            re.compile(r"\b(at (minimum|maximum)|at least|at most|roughly|approximately|estimate)\b", _I),
        ),
        "_[Possible outcomes range from... to...]_",
    ),
    EscalationStep(
        "confidence_path",
        "What would increase confidence",
        (
            re.compile(r"\b(to (know|be) (more certain|sure)|increase confidence|would help to know"
                       r"|if (you|we) (could|knew)|key (factor|variable|question))\b", _I),
            re.compile(r"\b(what would (change|resolve)|more information about|critical (factor|variable))\b", _I),
        ),
        "_[To increase certainty, you would need...]_",
    ),
)

TERMINATION_MARKERS = tuple(re.compile(p, _I) for p in (
    r"\bi (can't|cannot|am unable to) (help|assist|provide|answer|advise|determine)",
    r"\byou (should|need to|must) (consult|speak with|contact|see) (a |an )?"
    r"(professional|lawyer|doctor|accountant|expert|specialist)",
    r"\bi don't have (enough|sufficient|adequate) information",
    r"\b(this is|that's) (beyond|outside) (my|the system's)",
    r"\bi('m| am) not (able|qualified|equipped|in a position) to",
    r"\bi can only (suggest|recommend) (that you|you) (consult|speak|contact)",
))

SCAFFOLD_RULE = "\n\n---\n"


def steps_present(response: str) -> tuple[list[EscalationStep], list[EscalationStep]]:
    attempted: list[EscalationStep] = []
    missing: list[EscalationStep] = []
    for step in ESCALATION_STEPS:
        (attempted if any(m.search(response) for m in step.markers) else missing).append(step)
    return attempted, missing


def detect_premature_termination(response: str) -> bool:
    return any(m.search(response) for m in TERMINATION_MARKERS)


def build_reasoning_scaffold(missing: list[EscalationStep]) -> str:
    parts = [SCAFFOLD_RULE]
    for step in missing:
        parts.append(f"\n**{step.title}:**\n{step.prompt}\n")
    return "".join(parts)


class ReasoningEscalationEnforcer:
    def __init__(self, config: EngineDoctrineConfig | None = None) -> None:
        self.config = config or EngineDoctrineConfig()

    def enforce(
        self,
        response: Any,
        bounded_reasoning_required: bool,
        context: Mapping[str, Any] | None = None,
    ) -> EscalationOutcome:
        if not bounded_reasoning_required:
            return EscalationOutcome(reason="Bounded reasoning not required")

        text = response if isinstance(response, str) else ""
        min_steps = self.config.escalation_min_steps
        attempted, missing = steps_present(text)
        terminated = detect_premature_termination(text)
        done = len(attempted)
        keys = {s.key for s in attempted}

        violations: list[EscalationViolation] = []
        if terminated:
            violations.append(EscalationViolation(
                type="premature_termination",
                message="Response gives up without exhausting reasoning paths",
            ))
        if done < min_steps:
            violations.append(EscalationViolation(
                type="insufficient_escalation",
                message=f"Only {done}/{len(ESCALATION_STEPS)} reasoning steps attempted",
                steps_completed=done,
                steps_required=min_steps,
            ))
        if "known_facts" in keys and not keys & {"parallels_used", "scenarios_presented"}:
            violations.append(EscalationViolation(
                type="facts_not_utilized",
                message="Facts were stated but not used for inference or scenarios",
            ))

        insufficient = done < min_steps and terminated
        corrected = None
        # Re-running on a scaffolded response is a no-op.
        if insufficient and not any(s.prompt in text for s in ESCALATION_STEPS):
            corrected = text + build_reasoning_scaffold(missing)

        logger.debug(
            "[Escalation] steps=%d/%d terminated=%s violations=%d scaffold=%s",
            done, len(ESCALATION_STEPS), terminated, len(violations), corrected is not None,
        )

        return EscalationOutcome(
            enforced=True,
            passed=not violations,
            insufficient=insufficient,
            steps_completed=done,
            steps_total=len(ESCALATION_STEPS),
            attempted=[s.key for s in attempted],
            missing=[s.key for s in missing],
            termination_detected=terminated,
            violations=violations,
            corrected_response=corrected,
            reason=(context or {}).get("reason"),
        )


LOW_CONFIDENCE_THRESHOLD = 0.6
CLARIFY_MIN_WORDS = 5
CLARIFY_CLAIM_CONFIDENCE = 0.7

_UNCERTAINTY = re.compile(r"\b(unclear|uncertain|not sure|depends|varies|could be)\b", _I)

CLARIFYING_QUESTIONS = (
    "Could you provide more context about what you're looking for?",
    "What specific aspect are you most interested in?",
    "Is there additional information that would help me give you a better answer?",
)


def handle_low_confidence(
    confidence: float,
    context: Mapping[str, Any] | None = None,
    *,
    threshold: float = LOW_CONFIDENCE_THRESHOLD,
) -> LowConfidencePlan:
    """
    Plan how to raise a low-confidence answer instead of shipping it with a
    disclaimer. Escalations are listed in priority order: external lookup,
    reasoning escalation, clarifying questions. When none applies the plan
    falls back to bounded reasoning over known facts.

    Context keys (all optional): ``truth_type``, ``has_proper_nouns``,
    ``has_news_intent``, ``lookup_performed``, ``query``, ``claim_confidence``,
    ``clarification_asked``.
    """
    if confidence >= threshold:
        return LowConfidencePlan(
            action=LowConfidenceAction.NONE,
            confidence=confidence,
            threshold=threshold,
            reason="Confidence acceptable",
        )

    ctx = context or {}
    logger.info("[Escalation] Confidence %.2f below threshold %.2f", confidence, threshold)
    escalations: list[PlannedEscalation] = []

    can_lookup = (
        ctx.get("truth_type") in (TruthType.VOLATILE, TruthType.SEMI_STABLE)
        or bool(ctx.get("has_proper_nouns"))
        or bool(ctx.get("has_news_intent"))
    )
    if can_lookup and not ctx.get("lookup_performed"):
        escalations.append(PlannedEscalation(
            type=EscalationKind.EXTERNAL_LOOKUP,
            reason="Low confidence on a changing topic; external lookup needed",
            priority="high",
        ))

    query = ctx.get("query")
    query = query if isinstance(query, str) else ""
    if query and (_UNCERTAINTY.search(query) or confidence < 0.5):
        escalations.append(PlannedEscalation(
            type=EscalationKind.REASONING_ESCALATION,
            reason="Uncertainty detected; apply bounded reasoning",
            priority="high",
            steps=[s.key for s in ESCALATION_STEPS],
        ))

    claim_confidence = ctx.get("claim_confidence")
    vague = (
        (claim_confidence is not None and claim_confidence < CLARIFY_CLAIM_CONFIDENCE)
        or (bool(query) and len(query.split()) < CLARIFY_MIN_WORDS)
    )
    if vague and not ctx.get("clarification_asked"):
        escalations.append(PlannedEscalation(
            type=EscalationKind.CLARIFY,
            reason="Ambiguous query; more context needed",
            priority="medium",
            questions=list(CLARIFYING_QUESTIONS),
        ))

    if not escalations:
        escalations.append(PlannedEscalation(
            type=EscalationKind.BOUNDED_REASONING,
            reason="Low confidence and no external source available; use known facts and scenarios",
            priority="medium",
        ))

    return LowConfidencePlan(
        action=LowConfidenceAction.ESCALATE,
        confidence=confidence,
        threshold=threshold,
        message=f"Confidence {confidence * 100:.0f}% requires escalation",
        escalations=escalations,
        recommended=escalations[0],
    )
