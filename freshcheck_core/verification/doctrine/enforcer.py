# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Doctrine enforcer: runs the gate battery over a generated response.

Order is fixed: truth, provenance, volatility, business policy, disclosure.
Disclosure runs last and sees the text after earlier corrections, so an
already-present disclaimer is never duplicated.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import (
    EnforcementOutcome,
    GateName,
    GateResult,
    GateViolation,
    ResponseMetadata,
)
from freshcheck_core.utils.runtime import utc_now
from freshcheck_core.utils.trace import Trace
from freshcheck_core.verification.doctrine.gates import (
    business_policy_gate,
    disclosure_gate,
    provenance_gate,
    truth_gate,
    volatility_gate,
)

logger = logging.getLogger(__name__)


def _response_text(response: Any) -> str:
    if isinstance(response, Mapping):
        response = response.get("response")
    return response if isinstance(response, str) else ""


def _prepend(text: str, correction: str) -> str:
    if correction in text:
        return text
    return f"{correction}\n\n{text}" if text else correction


def _append(text: str, correction: str, sep: str = "\n\n") -> str:
    if correction in text:
        return text
    return f"{text}{sep}{correction}" if text else correction


class DoctrineEnforcer:
    def __init__(
        self,
        config: EngineDoctrineConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or EngineDoctrineConfig()
        self._clock = clock or utc_now

    def enforce_all(
        self,
        response: Any,
        metadata: ResponseMetadata | Mapping[str, Any] | None,
        mode: str | None = None,
    ) -> EnforcementOutcome:
        cfg = self.config
        meta = metadata if isinstance(metadata, ResponseMetadata) else ResponseMetadata.from_dict(dict(metadata or {}))
        original = _response_text(response)
        text = original
        now = self._clock()

        results: dict[GateName, GateResult] = {}
        violations: list[GateViolation] = []

        def record(name: GateName, result: GateResult) -> None:
            results[name] = result
            if not result.passed:
                violations.append(GateViolation(gate=name, violation=result.violation or "", correction=result.correction))

        truth = truth_gate(text, meta, cfg)
        record(GateName.TRUTH, truth)
        if not truth.passed and truth.correction:
            text = _prepend(text, truth.correction)

        record(GateName.PROVENANCE, provenance_gate(text, meta))
        record(GateName.VOLATILITY, volatility_gate(text, meta, now, cfg))

        policy = business_policy_gate(text, meta, mode, cfg)
        record(GateName.BUSINESS_POLICY, policy)
        if not policy.passed and policy.correction:
            text = _append(text, policy.correction)

        disclosure = disclosure_gate(text, meta, cfg)
        record(GateName.DISCLOSURE, disclosure)
        if disclosure.correction:
            text = _append(text, disclosure.correction)

        passed = not violations
        if passed:
            logger.debug("[Doctrine] Enforcement passed")
        else:
            logger.info("[Doctrine] Violations: %s", ", ".join(v.gate.value for v in violations))

        Trace.event("doctrine.enforced", {
            "mode": mode,
            "passed": passed,
            "violations": [v.gate.value for v in violations],
            "modified": text != original,
        })

        return EnforcementOutcome(
            enforcement_passed=passed,
            gate_results=results,
            violations=violations,
            corrected_response=text if text != original else None,
            gates_run=list(results),
            timestamp=now,
        )
