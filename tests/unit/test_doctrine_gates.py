# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Unit tests for the doctrine gates and the enforcer that runs them.
"""

from datetime import timedelta

import pytest

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import ClaimType, GateName, HierarchyName, ResponseMetadata
from freshcheck_core.schema.lookup import SourceClass
from freshcheck_core.schema.truth import TruthType
from freshcheck_core.verification.doctrine import (
    DoctrineEnforcer,
    business_policy_gate,
    disclosure_gate,
    has_disclosure_language,
    provenance_gate,
    truth_gate,
    volatility_gate,
)
from freshcheck_core.verification.doctrine.gates import (
    LOOKUP_FAILED_NOTE,
    POLICY_RECONCILE_NOTE,
    TRUTH_DISCLAIMER,
)


def verified_meta(clock, **overrides) -> ResponseMetadata:
    base = dict(
        confidence=0.8,
        truth_type=TruthType.VOLATILE,
        source_class=SourceClass.EXTERNAL,
        verified_at=clock.now,
        cache_valid_until=clock.now + timedelta(minutes=5),
        external_lookup=True,
        lookup_attempted=True,
        sources_used=1,
    )
    base.update(overrides)
    return ResponseMetadata(**base)


class TestTruthGate:
    def test_low_confidence_unverified_fails(self):
        meta = ResponseMetadata(confidence=0.3, truth_type=TruthType.VOLATILE)
        result = truth_gate("Bitcoin is $40k.", meta)
        assert result.passed is False
        assert result.correction == TRUTH_DISCLAIMER
        assert result.violation == "Low confidence (0.3) without external verification for VOLATILE claim"

    def test_missing_confidence_counts_as_half(self):
        assert truth_gate("x", ResponseMetadata(truth_type=TruthType.VOLATILE)).passed is True

    def test_verified_claim_passes(self):
        meta = ResponseMetadata(confidence=0.3, truth_type=TruthType.VOLATILE, external_lookup=True)
        assert truth_gate("x", meta).passed is True

    def test_permanent_claim_passes(self):
        meta = ResponseMetadata(confidence=0.1, truth_type=TruthType.PERMANENT)
        assert truth_gate("x", meta).passed is True

    def test_threshold_configurable(self):
        meta = ResponseMetadata(confidence=0.6, truth_type=TruthType.SEMI_STABLE)
        assert truth_gate("x", meta, EngineDoctrineConfig(truth_confidence_threshold=0.7)).passed is False


class TestProvenanceGate:
    def test_complete_external_claim(self, clock):
        assert provenance_gate("x", verified_meta(clock)).passed is True

    def test_missing_tags_is_metadata_only(self):
        meta = ResponseMetadata(source_class=SourceClass.EXTERNAL)
        result = provenance_gate("x", meta)
        assert result.passed is False
        assert result.metadata_only is True
        assert result.violation == "External claim missing provenance tags: verified_at, confidence"

    def test_internal_claim_not_checked(self):
        assert provenance_gate("x", ResponseMetadata(source_class=SourceClass.INTERNAL)).passed is True


class TestVolatilityGate:
    def test_fresh_volatile_data(self, clock):
        assert volatility_gate("x", verified_meta(clock), clock.now).passed is True

    def test_stale_ttl_fails(self, clock):
        meta = verified_meta(clock, cache_valid_until=clock.now + timedelta(minutes=10))
        result = volatility_gate("x", meta, clock.now)
        assert result.passed is False
        assert result.correction is None
        assert result.violation == "VOLATILE data cached for 10 minutes (max: 5 minutes)"

    def test_non_volatile_ignored(self, clock):
        meta = verified_meta(clock, truth_type=TruthType.SEMI_STABLE, cache_valid_until=clock.now + timedelta(days=1))
        assert volatility_gate("x", meta, clock.now).passed is True

    def test_naive_datetimes_treated_as_utc(self, clock):
        naive_now = clock.now.replace(tzinfo=None)
        meta = verified_meta(clock, cache_valid_until=naive_now + timedelta(minutes=10))
        assert volatility_gate("x", meta, clock.now).passed is False


class TestBusinessPolicyGate:
    def test_external_business_claim_in_protected_mode(self, clock):
        meta = verified_meta(clock, claim_type=ClaimType.BUSINESS_POLICY, hierarchy_name=HierarchyName.VAULT_FIRST)
        result = business_policy_gate("x", meta, "vault_enforced")
        assert result.passed is False
        assert result.correction == POLICY_RECONCILE_NOTE

    def test_vault_first_hierarchy_overridden(self, clock):
        meta = verified_meta(clock, claim_type=ClaimType.AMBIGUOUS, hierarchy_name=HierarchyName.VAULT_FIRST)
        result = business_policy_gate("x", meta, "vault_enforced")
        assert result.passed is False
        assert "VAULT_FIRST" in result.violation

    def test_unprotected_mode_passes(self, clock):
        meta = verified_meta(clock, claim_type=ClaimType.BUSINESS_POLICY)
        assert business_policy_gate("x", meta, "truth_general").passed is True

    def test_custom_protected_modes(self, clock):
        meta = verified_meta(clock, claim_type=ClaimType.BUSINESS_POLICY)
        config = EngineDoctrineConfig(protected_modes=("strict",))
        assert business_policy_gate("x", meta, "strict", config).passed is False
        assert business_policy_gate("x", meta, "vault_enforced", config).passed is True


class TestDisclosureGate:
    def test_low_confidence_adds_note(self):
        result = disclosure_gate("Paris is lovely.", ResponseMetadata(confidence=0.4))
        assert result.passed is True
        assert result.disclosure_added is True
        assert result.correction.startswith("**Note:** My confidence in this response is 40%.")

    def test_failed_lookup_note(self):
        meta = ResponseMetadata(confidence=0.9, lookup_attempted=True, external_lookup=False)
        assert disclosure_gate("x", meta).correction == LOOKUP_FAILED_NOTE

    def test_existing_disclosure_respected(self):
        result = disclosure_gate("I'm not certain, but it is Paris.", ResponseMetadata(confidence=0.4))
        assert result.correction is None
        assert result.disclosure_added is False

    def test_confident_response_untouched(self):
        assert disclosure_gate("x", ResponseMetadata(confidence=0.9)).correction is None

    @pytest.mark.parametrize("text", [
        "I am not sure about this.",
        "Please verify this with your bank.",
        "This may be outdated.",
        "I can't access current prices.",
    ])
    def test_disclosure_language(self, text):
        assert has_disclosure_language(text) is True


class TestDoctrineEnforcer:
    @pytest.fixture
    def enforcer(self, clock):
        return DoctrineEnforcer(clock=clock)

    def test_clean_response(self, enforcer, clock):
        outcome = enforcer.enforce_all("Bitcoin is $43,250.", verified_meta(clock), "truth_general")
        assert outcome.enforcement_passed is True
        assert outcome.corrected_response is None
        assert outcome.violations == []
        assert outcome.gates_run == [
            GateName.TRUTH,
            GateName.PROVENANCE,
            GateName.VOLATILITY,
            GateName.BUSINESS_POLICY,
            GateName.DISCLOSURE,
        ]

    def test_truth_disclaimer_prepended_once(self, enforcer):
        meta = ResponseMetadata(confidence=0.3, truth_type=TruthType.VOLATILE)
        outcome = enforcer.enforce_all("Bitcoin is $40k.", meta)

        assert outcome.enforcement_passed is False
        assert [v.gate for v in outcome.violations] == [GateName.TRUTH]
        assert outcome.corrected_response == f"{TRUTH_DISCLAIMER}\n\nBitcoin is $40k."
        # The disclaimer already discloses, so no second note is appended.
        assert outcome.gate_results[GateName.DISCLOSURE].correction is None

    def test_enforcement_is_idempotent(self, enforcer):
        meta = ResponseMetadata(confidence=0.3, truth_type=TruthType.VOLATILE)
        first = enforcer.enforce_all("Bitcoin is $40k.", meta)
        second = enforcer.enforce_all(first.corrected_response, meta)

        assert second.corrected_response is None
        assert second.enforcement_passed is False

    def test_policy_note_appended_in_protected_mode(self, enforcer, clock):
        meta = verified_meta(clock, claim_type=ClaimType.BUSINESS_POLICY, hierarchy_name=HierarchyName.VAULT_FIRST)
        outcome = enforcer.enforce_all("Our fee is $500.", meta, "vault_enforced")
        assert outcome.corrected_response == f"Our fee is $500.\n\n{POLICY_RECONCILE_NOTE}"
        assert [v.gate for v in outcome.violations] == [GateName.BUSINESS_POLICY]

    def test_accepts_plain_dicts(self, enforcer):
        outcome = enforcer.enforce_all({"response": "Bitcoin is $40k."}, {"confidence": 0.3, "truth_type": "VOLATILE"})
        assert outcome.corrected_response.startswith(TRUTH_DISCLAIMER)

    def test_missing_metadata(self, enforcer):
        outcome = enforcer.enforce_all("Paris is the capital of France.", None)
        assert outcome.enforcement_passed is True
        assert "50%" in outcome.corrected_response

    def test_contract(self, enforcer):
        meta = ResponseMetadata(confidence=0.3, truth_type=TruthType.VOLATILE)
        contract = enforcer.enforce_all("x", meta).contract()
        assert set(contract) == {"enforcement_passed", "corrected_response", "violations"}
        assert contract["violations"][0]["gate"] == "truth"
