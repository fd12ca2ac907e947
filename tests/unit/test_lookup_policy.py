# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Unit tests for the lookup requirement policy and news-intent detection.
"""

import pytest

from freshcheck_core.runtime_config import EngineLookupConfig
from freshcheck_core.schema.lookup import LookupPriority
from freshcheck_core.schema.truth import TruthClassification, TruthType
from freshcheck_core.verification.lookup_policy import (
    LookupRequirementPolicy,
    check_freshness_markers,
    has_news_intent,
    has_reputable_source,
    is_price_query,
    requires_corroboration,
)
from freshcheck_core.verification.truth_classifier import TruthClassifier


@pytest.fixture
def policy() -> LookupRequirementPolicy:
    return LookupRequirementPolicy()


@pytest.fixture
def classify():
    return TruthClassifier().classify


class TestLookupRequirement:
    def test_volatile_query_is_high_priority(self, policy, classify):
        q = "What is the current price of Bitcoin?"
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.9)
        assert req.required is True
        assert req.priority == LookupPriority.HIGH
        assert "volatile_truth_type" in req.reasons
        assert "freshness_markers_detected" in req.reasons
        assert req.max_lookups == 2

    def test_confident_permanent_fact_needs_nothing(self, policy, classify):
        q = "What is the capital of France?"
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.9)
        assert req.required is False
        assert req.priority == LookupPriority.NONE
        assert req.max_lookups == 0
        assert req.reasons == []

    def test_low_internal_confidence(self, policy, classify):
        q = "What is the capital of France?"
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.4)
        assert req.required is True
        assert req.reasons == ["low_internal_confidence: 0.4"]
        assert req.priority == LookupPriority.NORMAL
        assert req.max_lookups == 1

    def test_long_input_never_looked_up(self, policy, classify):
        q = "x" * 10_001
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.1)
        assert req.required is False
        assert req.max_lookups == 0

    def test_threshold_is_configurable(self, classify):
        policy = LookupRequirementPolicy(EngineLookupConfig(max_lookup_query_chars=100))
        q = "What is the current price of Bitcoin? " * 5
        assert policy.is_lookup_required(q, classify(q)).required is False

    def test_document_review_skipped(self, policy):
        classification = TruthClassification(type=TruthType.DOCUMENT_REVIEW, skip_external_lookup=True)
        req = policy.is_lookup_required("review this", classification, internal_confidence=0.1)
        assert req.required is False
        assert req.truth_type == TruthType.DOCUMENT_REVIEW

    def test_high_stakes_domain(self, policy, classify):
        q = "What are the side effects of ibuprofen?"
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.9)
        assert req.required is True
        assert req.priority == LookupPriority.HIGH
        assert req.high_stakes == ["MEDICAL"]
        assert "high_stakes_domain: MEDICAL" in req.reasons

    def test_breaking_conflict_requires_corroboration(self, policy, classify):
        q = "Reports of a missile strike today"
        req = policy.is_lookup_required(q, classify(q), internal_confidence=0.9)
        assert req.requires_corroboration is True
        assert "news_corroboration_required" in req.reasons
        assert req.priority == LookupPriority.HIGH

    def test_non_string_query(self, policy):
        req = policy.is_lookup_required(None, TruthClassification(type=TruthType.AMBIGUOUS))
        assert req.required is False
        assert req.reasons == ["Invalid query type for lookup; expected string"]


class TestNewsIntent:
    @pytest.mark.parametrize("query", [
        "What's the situation with Starmer?",
        "what's happening with the election",
        "Any breaking news today?",
        "What's going on with Tesla?",
    ])
    def test_news_queries(self, query):
        assert has_news_intent(query) is True

    @pytest.mark.parametrize("query", [
        "Tell me a joke",
        "What is the capital of France?",
        "How do I boil an egg?",
        "",
        None,
    ])
    def test_non_news_queries(self, query):
        assert has_news_intent(query) is False


class TestMarkers:
    def test_freshness_markers(self):
        assert check_freshness_markers("What is the latest bitcoin price?")
        assert check_freshness_markers("Who wrote Hamlet?") == []
        assert check_freshness_markers(None) == []

    def test_corroboration_needs_volatile_type(self):
        assert requires_corroboration("missile strike", TruthType.VOLATILE) is True
        assert requires_corroboration("missile strike", TruthType.PERMANENT) is False
        assert requires_corroboration("bitcoin price", TruthType.VOLATILE) is False

    def test_reputable_source(self):
        assert has_reputable_source("[Reuters] Troops cross border") is True
        assert has_reputable_source("[Some Blog] Troops cross border") is False

    def test_price_query(self):
        assert is_price_query("How much is an ounce of gold?") is True
        assert is_price_query("Who is the pope?") is False
