# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import json
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from freshcheck_core.config import FreshCheckConfig
from freshcheck_core.runtime_config import EngineRuntimeConfig
from freshcheck_core.tools.freshness_cache import FreshnessCache

API_KEY_ENV_VARS = (
    "EXCHANGERATE_API_KEY",
    "METALS_API_KEY",
    "ALPHA_VANTAGE_API_KEY",
    "OPENWEATHER_API_KEY",
)


class FakeClock:
    """Settable clock shared by the cache, the executor and the gates."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> None:
        self.now = self.now + timedelta(milliseconds=ms)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No real credentials and no trace files leak into tests."""
    for name in API_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("FRESHCHECK_ENV", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("FRESHCHECK_TRACE_DIR", str(tmp_path / "trace"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> FreshnessCache:
    return FreshnessCache(clock=clock)


@pytest.fixture
def runtime() -> EngineRuntimeConfig:
    return EngineRuntimeConfig.defaults()


def json_response(payload) -> httpx.Response:
    return httpx.Response(200, content=json.dumps(payload).encode("utf-8"), headers={"Content-Type": "application/json"})


def routed_transport(routes: dict[str, Callable[[httpx.Request], httpx.Response]]) -> httpx.MockTransport:
    """
    MockTransport dispatching on host. Unknown hosts get a 404.

    A handler may raise (e.g. httpx.ReadTimeout) to simulate a network failure.
    """
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        route = routes.get(request.url.host)
        if route is None:
            return httpx.Response(404)
        return route(request)

    transport = httpx.MockTransport(handler)
    transport.seen = seen  # type: ignore[attr-defined]
    return transport


def timeout_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


@pytest.fixture
def make_engine(clock, runtime):
    """Factory for engines wired to a mock transport and the fake clock."""
    from freshcheck_core.engine import FreshCheckEngine

    def _make(transport: httpx.MockTransport | None = None, **config_kwargs) -> FreshCheckEngine:
        config = FreshCheckConfig(credentials={}, runtime=runtime, **config_kwargs)
        engine = FreshCheckEngine(
            config,
            transport=transport or routed_transport({}),
            clock=clock,
        )
        return engine

    return _make


@pytest.fixture
def transport():
    return routed_transport


@pytest.fixture
def ok_json():
    return json_response
