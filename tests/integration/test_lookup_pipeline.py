# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
End-to-end tests through FreshCheckEngine: classification, lookup, cache,
degradation and doctrine enforcement, with HTTP served by MockTransport.
"""

import time
from datetime import timedelta

import httpx
import pytest

from freshcheck_core.engine import SAFE_FALLBACK_RESPONSE
from freshcheck_core.schema.lookup import LookupPriority, SourceClass
from freshcheck_core.schema.truth import TruthType
from freshcheck_core.verification.degradation import NEWS_DISCLOSURE
from freshcheck_core.verification.doctrine.gates import LOOKUP_FAILED_NOTE
from freshcheck_core.verification.lookup_engine import NO_SOURCE_ERROR

BITCOIN_Q = "What is the current price of Bitcoin?"
NEWS_Q = "What's the latest news about Starmer?"
PRICES = {"bitcoin": {"usd": 43250}, "ethereum": {"usd": 2300.5}}
FX_RATES = {"amount": 1.0, "base": "USD", "date": "2026-01-15", "rates": {"EUR": 0.92}}
LONG_INPUT = ("is " * 20_000)[:50_000]


def timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


@pytest.fixture
def coingecko(transport, ok_json):
    return transport({"api.coingecko.com": lambda r: ok_json(PRICES)})


@pytest.fixture
def news_down(transport):
    return transport({"news.google.com": timeout, "en.wikipedia.org": timeout})


class TestVolatileLookup:
    @pytest.mark.asyncio
    async def test_bitcoin_price(self, make_engine, coingecko, clock):
        engine = make_engine(coingecko)
        result = await engine.lookup(BITCOIN_Q, internal_confidence=0.9)

        assert result.success is True
        assert result.lookup_performed is True
        assert result.from_cache is False
        assert result.truth_type == TruthType.VOLATILE
        assert result.lookup_priority == LookupPriority.HIGH
        assert result.data == "Bitcoin: $43250, Ethereum: $2300.5"
        assert result.sources_used == ["CoinGecko"]
        assert result.source_class == SourceClass.EXTERNAL
        assert result.confidence == 0.8
        assert result.verified_at == clock.now
        assert result.cache_valid_until == clock.now + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_paraphrase_served_from_cache(self, make_engine, coingecko):
        engine = make_engine(coingecko)
        await engine.lookup(BITCOIN_Q)
        again = await engine.lookup("current bitcoin price")

        assert again.success is True
        assert again.from_cache is True
        assert again.lookup_performed is False
        assert again.data == "Bitcoin: $43250, Ethereum: $2300.5"
        assert len(coingecko.seen) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, make_engine, coingecko, clock):
        engine = make_engine(coingecko)
        await engine.lookup(BITCOIN_Q)
        clock.advance(5 * 60 * 1000)
        again = await engine.lookup(BITCOIN_Q)

        assert again.from_cache is False
        assert len(coingecko.seen) == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, make_engine, coingecko):
        engine = make_engine(coingecko)
        await engine.lookup(BITCOIN_Q)
        again = await engine.lookup(BITCOIN_Q, force_refresh=True)

        assert again.from_cache is False
        assert again.lookup_performed is True
        assert len(coingecko.seen) == 2


class TestCurrencyConversion:
    @pytest.mark.asyncio
    async def test_conversion_cached_as_volatile(self, make_engine, transport, ok_json, clock):
        fx = transport({"api.frankfurter.app": lambda r: ok_json(FX_RATES)})
        engine = make_engine(fx)
        result = await engine.lookup("How much is 100 dollars in euros?", internal_confidence=0.4)

        assert result.success is True
        assert result.truth_type == TruthType.VOLATILE
        assert result.sources_used == ["Frankfurter"]
        assert result.cache_valid_until == clock.now + timedelta(minutes=5)

        clock.advance(5 * 60 * 1000)
        again = await engine.lookup("How much is 100 dollars in euros?", internal_confidence=0.4)
        assert again.from_cache is False
        assert len(fx.seen) == 2


class TestDegradedLookup:
    @pytest.mark.asyncio
    async def test_all_sources_time_out(self, make_engine, news_down):
        engine = make_engine(news_down)
        result = await engine.lookup(NEWS_Q, internal_answer="Starmer is prime minister.")

        assert result.success is False
        assert result.degraded is True
        assert result.lookup_performed is True
        assert result.disclosure == NEWS_DISCLOSURE
        assert [a.status for a in result.sources_consulted] == ["timeout", "timeout"]
        assert [p.name for p in result.verification_path.sources] == ["Reuters", "Associated Press"]
        assert result.internal_answer.endswith("Starmer is prime minister.")
        assert engine.cache.stats()["total_entries"] == 0

    @pytest.mark.asyncio
    async def test_no_source_for_query(self, make_engine):
        engine = make_engine()
        result = await engine.lookup("Who is the CEO of Acme Corp", internal_confidence=0.3)

        assert result.success is False
        assert result.degraded is True
        assert result.lookup_performed is False
        assert result.error == NO_SOURCE_ERROR


class TestLookupSkipped:
    @pytest.mark.asyncio
    async def test_confident_permanent_fact(self, make_engine):
        mock = httpx.MockTransport(lambda r: pytest.fail("no request expected"))
        engine = make_engine(mock)
        result = await engine.lookup("What is the capital of France?", internal_confidence=0.9)

        assert result.success is True
        assert result.reason == "Lookup not required"
        assert result.source_class == SourceClass.INTERNAL

    @pytest.mark.asyncio
    async def test_long_input_never_looked_up(self, make_engine, coingecko):
        engine = make_engine(coingecko)
        result = await engine.lookup("x" * 10_001, internal_confidence=0.1, force_refresh=True)

        assert result.reason == "Lookup not required"
        assert coingecko.seen == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", None])
    async def test_invalid_query(self, make_engine, query):
        result = await make_engine().lookup(query)
        assert result.success is False
        assert result.reason == "Invalid query; expected a non-empty string"


class TestRespond:
    @pytest.mark.asyncio
    async def test_verified_answer_passes_doctrine(self, make_engine, coingecko):
        engine = make_engine(coingecko)
        seen = {}

        async def generate(query, context):
            seen.update(context)
            return "Bitcoin is trading at $43,250."

        out = await engine.respond(BITCOIN_Q, generate)

        assert seen["external_data"] == "Bitcoin: $43250, Ethereum: $2300.5"
        assert seen["sources"] == ["CoinGecko"]
        assert out["response"] == "Bitcoin is trading at $43,250."
        assert out["metadata"]["source_class"] == "external"
        assert out["metadata"]["external_lookup"] is True
        assert out["enforcement"]["enforcement_passed"] is True
        assert out["escalation"]["enforced"] is False
        assert out["low_confidence"]["action"] == "none"
        assert "low_confidence" not in seen

    @pytest.mark.asyncio
    async def test_failed_lookup_is_disclosed(self, make_engine, news_down):
        engine = make_engine(news_down)
        seen = {}

        async def generate(query, context):
            seen.update(context)
            return "Starmer announced a new policy."

        out = await engine.respond(NEWS_Q, generate)

        assert seen["degraded"] is True
        assert seen["external_data"] is None
        assert out["metadata"]["degraded"] is True
        assert out["metadata"]["lookup_attempted"] is True
        assert out["response"] == f"Starmer announced a new policy.\n\n{LOOKUP_FAILED_NOTE}"
        assert out["escalation"]["enforced"] is True
        assert out["low_confidence"]["action"] == "escalate"
        assert out["low_confidence"]["recommended"]["type"] == "bounded_reasoning"
        assert seen["low_confidence"] == out["low_confidence"]

    @pytest.mark.asyncio
    async def test_policy_question_stays_internal(self, make_engine):
        mock = httpx.MockTransport(lambda r: pytest.fail("no request expected"))
        engine = make_engine(mock)

        async def generate(query, context):
            assert context["hierarchy"][0] == "vault"
            return "Our premium package is $500."

        out = await engine.respond("What is our pricing for the premium package?", generate, mode="vault_enforced")

        assert out["metadata"]["claim_type"] == "BUSINESS_POLICY"
        assert out["metadata"]["lookup_attempted"] is False
        assert "50%" in out["response"]

    @pytest.mark.asyncio
    async def test_generator_failure_falls_back(self, make_engine):
        async def generate(query, context):
            raise RuntimeError("model unavailable")

        out = await make_engine().respond("What is the capital of France?", generate)

        assert out["response"] == SAFE_FALLBACK_RESPONSE
        assert out["error"] == "model unavailable"
        assert out["metadata"]["degraded"] is True
        assert out["low_confidence"] is None


class TestLongInput:
    @pytest.mark.asyncio
    async def test_lookup_stays_fast(self, make_engine):
        mock = httpx.MockTransport(lambda r: pytest.fail("no request expected"))
        engine = make_engine(mock)
        start = time.monotonic()
        result = await engine.lookup(LONG_INPUT, internal_confidence=0.1)

        assert time.monotonic() - start < 2.0
        assert result.lookup_performed is False
        assert result.lookup_reasons == ["Long-form inputs are not lookup candidates"]

    @pytest.mark.asyncio
    async def test_respond_classifies_once(self, make_engine, monkeypatch):
        engine = make_engine(httpx.MockTransport(lambda r: pytest.fail("no request expected")))
        calls = []
        classify = engine.classifier.classify

        def counting(q):
            calls.append(len(q))
            return classify(q)

        monkeypatch.setattr(engine.classifier, "classify", counting)

        async def generate(query, context):
            return "Thanks for sharing."

        start = time.monotonic()
        out = await engine.respond(LONG_INPUT, generate)

        assert time.monotonic() - start < 2.0
        assert calls == [50_000]
        assert out["response"].startswith("Thanks for sharing.")
        assert out["metadata"]["lookup_attempted"] is False
