# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Unit tests for diagnostic actions and the diagnostics CLI.
"""

import json

import pytest

from freshcheck_cli import diagnose_cmd
from freshcheck_core.diagnostics import ACTIONS, run_diagnostic

PRICES = {"bitcoin": {"usd": 43250}, "ethereum": {"usd": 2300.5}}


class TestRunDiagnostic:
    @pytest.mark.asyncio
    async def test_unknown_action(self, make_engine):
        out = await run_diagnostic(make_engine(), "explode")
        assert out["success"] is False
        assert out["available_actions"] == sorted(ACTIONS)
        assert "telemetry" not in out

    @pytest.mark.asyncio
    async def test_classify(self, make_engine):
        out = await run_diagnostic(make_engine(), "classify", {"q": "What is the current price of Bitcoin?"})
        assert out["success"] is True
        assert out["action"] == "classify"
        assert out["result"]["type"] == "VOLATILE"
        assert set(out["telemetry"]) == {"elapsed_ms", "cache"}

    @pytest.mark.asyncio
    async def test_missing_query(self, make_engine):
        out = await run_diagnostic(make_engine(), "classify", {"q": "   "})
        assert out["success"] is False
        assert out["error"] == "Missing required parameter 'q'"

    @pytest.mark.asyncio
    async def test_route_uses_default_mode(self, make_engine):
        out = await run_diagnostic(make_engine(), "route", {"query": "What is our pricing today?"})
        assert out["result"]["mode"] == "truth_general"
        assert out["result"]["hierarchy_name"] == "VAULT_FIRST"

    @pytest.mark.asyncio
    async def test_fingerprint(self, make_engine):
        out = await run_diagnostic(make_engine(), "fingerprint", {"q": "What is the current price of Bitcoin?"})
        assert out["fingerprint"] == "bitcoin|current|price"

    @pytest.mark.asyncio
    async def test_cache_round_trip(self, make_engine):
        engine = make_engine()
        stored = await run_diagnostic(engine, "cache_set", {
            "q": "bitcoin price",
            "data": "Bitcoin: $1",
            "truth_type": "VOLATILE",
            "sources": "CoinGecko, Kraken",
            "confidence": "0.8",
        })
        assert stored["entry"]["sources_used"] == ["CoinGecko", "Kraken"]
        assert stored["entry"]["ttl_ms"] == 300_000

        got = await run_diagnostic(engine, "cache_get", {"q": "price of bitcoin"})
        assert got["result"]["hit"] is True
        assert got["telemetry"]["cache"]["hits"] == 1

        stats = await run_diagnostic(engine, "cache_stats")
        assert stats["stats"]["by_truth_type"]["VOLATILE"] == 1

    @pytest.mark.asyncio
    async def test_document_review_not_cacheable(self, make_engine):
        out = await run_diagnostic(make_engine(), "cache_set", {
            "q": "review this", "data": "x", "truth_type": "DOCUMENT_REVIEW",
        })
        assert out["success"] is False
        assert "not cacheable" in out["error"]

    @pytest.mark.asyncio
    async def test_cache_set_rejects_unknown_type(self, make_engine):
        out = await run_diagnostic(make_engine(), "cache_set", {"q": "x", "data": "y", "truth_type": "SOMETIMES"})
        assert out["success"] is False

    @pytest.mark.asyncio
    async def test_invalidate_by_type(self, make_engine):
        engine = make_engine()
        engine.cache.set("bitcoin price", "a", "VOLATILE")
        engine.cache.set("weather paris", "b", "VOLATILE")
        engine.cache.set("who is the pope", "c", "SEMI_STABLE")

        out = await run_diagnostic(engine, "cache_invalidate", {"truth_type": "VOLATILE"})
        assert out["invalidated"] == 2
        cleared = await run_diagnostic(engine, "cache_clear")
        assert cleared["cleared"] == 1

    @pytest.mark.asyncio
    async def test_lookup(self, make_engine, transport, ok_json):
        engine = make_engine(transport({"api.coingecko.com": lambda r: ok_json(PRICES)}))
        out = await run_diagnostic(engine, "lookup", {"q": "What is the current price of Bitcoin?"})
        assert out["result"]["success"] is True
        assert out["result"]["sources_used"] == ["CoinGecko"]

    @pytest.mark.asyncio
    async def test_enforce(self, make_engine):
        out = await run_diagnostic(make_engine(), "enforce", {
            "response": "Bitcoin is $40k.",
            "metadata": {"confidence": 0.3, "truth_type": "VOLATILE"},
        })
        assert out["result"]["enforcement_passed"] is False
        assert out["result"]["violations"][0]["gate"] == "truth"

    @pytest.mark.asyncio
    async def test_handler_errors_are_reported(self, make_engine, monkeypatch):
        engine = make_engine()

        def boom(q):
            raise RuntimeError("classifier down")

        monkeypatch.setattr(engine.classifier, "classify", boom)
        out = await run_diagnostic(engine, "classify", {"q": "bitcoin"})
        assert out["success"] is False
        assert out["error"] == "classifier down"


class TestCli:
    def test_parser(self):
        parser = diagnose_cmd.create_parser()
        args = parser.parse_args(["cache-set", "bitcoin price", "Bitcoin: $1", "--truth-type", "VOLATILE", "--json"])
        assert args.func is diagnose_cmd.cmd_cache_set
        assert args.truth_type == "VOLATILE"
        assert args.json is True

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            diagnose_cmd.create_parser().parse_args([])

    def test_fingerprint_json(self, capsys):
        with pytest.raises(SystemExit) as exc:
            diagnose_cmd.main(["fingerprint", "What's the weather in Paris?", "--json"])
        assert exc.value.code == 0
        out = json.loads(capsys.readouterr().out)
        assert out["fingerprint"] == "paris|weather"

    def test_human_output(self, capsys):
        with pytest.raises(SystemExit) as exc:
            diagnose_cmd.main(["classify", "Who wrote Hamlet?"])
        assert exc.value.code == 0
        assert capsys.readouterr().out.startswith("✓ classify (")

    def test_failure_exit_code(self, capsys):
        with pytest.raises(SystemExit) as exc:
            diagnose_cmd.main(["cache-invalidate"])
        assert exc.value.code == 1
        assert "✗ cache_invalidate" in capsys.readouterr().err

    def test_bad_metadata(self, capsys):
        with pytest.raises(SystemExit) as exc:
            diagnose_cmd.main(["enforce", "Bitcoin is $40k.", "--metadata", "{not json"])
        assert exc.value.code == 1
        assert "Invalid --metadata JSON" in capsys.readouterr().err
