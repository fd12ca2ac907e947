# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from freshcheck_core.config import FreshCheckConfig
from freshcheck_core.runtime_config import EngineRuntimeConfig


def test_defaults_match_env_free_load():
    assert EngineRuntimeConfig.load_from_env() == EngineRuntimeConfig.defaults()


def test_max_sources_is_clamped(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_MAX_SOURCES_PER_QUERY", "99")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.lookup.max_sources_per_query == 10

    monkeypatch.setenv("FRESHCHECK_MAX_SOURCES_PER_QUERY", "0")
    cfg2 = EngineRuntimeConfig.load_from_env()
    assert cfg2.lookup.max_sources_per_query == 1


def test_garbage_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_MAX_SOURCES_PER_QUERY", "lots")
    monkeypatch.setenv("FRESHCHECK_LOOKUP_TIMEOUT", "soon")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.lookup.max_sources_per_query == 3
    assert cfg.lookup.timeout_sec == 5.0


def test_volatile_ttl_never_exceeds_five_minutes(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_VOLATILE_TTL_MS", "900000")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.cache.volatile_ttl_ms == 300_000


def test_ttl_bands_stay_ordered(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_SEMI_STABLE_TTL_MS", "1")
    monkeypatch.setenv("FRESHCHECK_PERMANENT_TTL_MS", "1")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.cache.volatile_ttl_ms < cfg.cache.semi_stable_ttl_ms < cfg.cache.permanent_ttl_ms


def test_protected_modes_csv(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_PROTECTED_MODES", "vault_enforced, Strict_Mode,\nvault_enforced")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.doctrine.protected_modes == ("vault_enforced", "strict_mode")


def test_empty_protected_modes_keep_default(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_PROTECTED_MODES", " ")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.doctrine.protected_modes == ("vault_enforced",)


def test_trace_can_be_disabled(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_TRACE_DISABLE", "yes")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.features.trace_enabled is False


def test_feature_flags(monkeypatch):
    monkeypatch.setenv("FRESHCHECK_NEWS_CORROBORATION", "off")
    monkeypatch.setenv("FRESHCHECK_PRICE_QUOTE_DISCLOSURE", "maybe")
    cfg = EngineRuntimeConfig.load_from_env()
    assert cfg.features.news_corroboration is False
    assert cfg.features.price_quote_disclosure is True


def test_safe_log_dict_has_no_credentials(monkeypatch):
    monkeypatch.setenv("METALS_API_KEY", "super-secret")
    cfg = EngineRuntimeConfig.load_from_env()
    dumped = cfg.to_safe_log_dict()
    assert "super-secret" not in repr(dumped)
    assert dumped["doctrine"]["protected_modes"] == ["vault_enforced"]


def test_credentials_override_env(monkeypatch):
    monkeypatch.setenv("METALS_API_KEY", "from-env")
    config = FreshCheckConfig(credentials={"METALS_API_KEY": "explicit"}, runtime=EngineRuntimeConfig.defaults())
    assert config.credential("METALS_API_KEY") == "explicit"


def test_credentials_fall_back_to_env(monkeypatch):
    monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "  from-env  ")
    config = FreshCheckConfig(runtime=EngineRuntimeConfig.defaults())
    assert config.credential("ALPHA_VANTAGE_API_KEY") == "from-env"
    assert config.credential("OPENWEATHER_API_KEY") is None


def test_blank_credential_is_missing():
    config = FreshCheckConfig(credentials={"METALS_API_KEY": "   "}, runtime=EngineRuntimeConfig.defaults())
    assert config.credential("METALS_API_KEY") is None
