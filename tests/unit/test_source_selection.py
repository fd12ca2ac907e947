# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
Unit tests for the source catalog and category-first source selection.
"""

import pytest

from freshcheck_core.schema.truth import HighStakesDomain, HighStakesResult, TruthType
from freshcheck_core.tools.source_catalog import (
    GOOGLE_NEWS_RSS,
    SOURCE_CATALOG,
    SourceCategory,
    get_authoritative_sources,
    get_sources,
    is_available,
    resolve_url,
    validate_catalog,
)
from freshcheck_core.verification.source_selector import SourceSelector, match_category


def no_keys(name):
    return None


def all_keys(name):
    return "test-key"


class TestCatalog:
    def test_every_entry_has_an_implementation(self):
        assert validate_catalog() == []

    def test_every_category_has_sources(self):
        for category in SourceCategory:
            assert get_sources(category), category

    def test_get_sources_returns_a_copy(self):
        sources = get_sources(SourceCategory.CRYPTO)
        sources.clear()
        assert get_sources(SourceCategory.CRYPTO)

    def test_gated_sources_need_credentials(self):
        gated = [s for sources in SOURCE_CATALOG.values() for s in sources if s.is_gated]
        assert gated
        for source in gated:
            assert is_available(source, no_keys) is False
            assert is_available(source, all_keys) is True

    def test_static_url(self):
        coingecko = get_sources(SourceCategory.CRYPTO)[0]
        url = resolve_url(coingecko, "bitcoin price", no_keys)
        assert url == "https://api.coingecko.com/api/v3/simple/price?ids=bitcoin,ethereum&vs_currencies=usd"

    def test_gated_url_resolves_to_none_without_key(self):
        exchangerate = get_sources(SourceCategory.CURRENCY)[0]
        assert resolve_url(exchangerate, "USD to EUR", no_keys) is None
        assert resolve_url(exchangerate, "USD to EUR", lambda n: "abc") == (
            "https://v6.exchangerate-api.com/v6/abc/latest/USD"
        )

    def test_query_built_url(self):
        frankfurter = get_sources(SourceCategory.CURRENCY)[1]
        assert resolve_url(frankfurter, "USD to EUR", no_keys) == "https://api.frankfurter.app/latest?from=USD&to=EUR"

    def test_authoritative_sources_for_domain(self):
        hs = HighStakesResult(is_high_stakes=True, domains=[HighStakesDomain.MEDICAL])
        names = [s.name for s in get_authoritative_sources(hs, limit=2)]
        assert names == ["FDA", "NIH"]
        assert all(not s.parseable for s in get_authoritative_sources(hs))

    def test_authoritative_sources_fall_back_to_general(self):
        names = [s.name for s in get_authoritative_sources(None, limit=2)]
        assert names == ["Google Search", "Wikipedia"]


class TestSourceSelector:
    @pytest.fixture
    def selector(self):
        return SourceSelector(no_keys)

    @pytest.mark.parametrize("query,truth_type,expected", [
        ("What is the current price of Bitcoin?", TruthType.VOLATILE, ["CoinGecko"]),
        ("What is the exchange rate from USD to EUR?", TruthType.VOLATILE, ["Frankfurter"]),
        ("Who is the president of France?", TruthType.VOLATILE, ["Wikipedia Office Holder"]),
        ("What are the side effects of ibuprofen?", TruthType.SEMI_STABLE, ["FDA Drug Labels"]),
        ("What's the weather in Paris?", TruthType.VOLATILE, ["wttr.in"]),
        ("What is photosynthesis?", TruthType.PERMANENT, ["Wikipedia"]),
    ])
    def test_category_routing(self, selector, query, truth_type, expected):
        sources = selector.select_sources_for_query(query, truth_type)
        assert [s.name for s in sources] == expected

    def test_news_query(self, selector):
        sources = selector.select_sources_for_query("What's the latest news about Starmer?", TruthType.VOLATILE)
        assert [s.name for s in sources] == ["Google News RSS", "Wikipedia Current Events"]

    def test_credentials_unlock_gated_sources(self):
        sources = SourceSelector(all_keys).select_sources_for_query(
            "What is the exchange rate from USD to EUR?", TruthType.VOLATILE
        )
        assert [s.name for s in sources] == ["ExchangeRate-API", "Frankfurter"]

    def test_commodity_falls_back_to_headlines(self, selector):
        sources = selector.select_sources_for_query("What is the gold price today?", TruthType.VOLATILE)
        assert sources == [GOOGLE_NEWS_RSS]

    def test_stock_falls_back_to_headlines(self, selector):
        sources = selector.select_sources_for_query("What is the Apple stock price?", TruthType.VOLATILE)
        assert sources == [GOOGLE_NEWS_RSS]

    def test_crypto_is_not_a_currency_or_stock(self):
        assert match_category("bitcoin to usd price", TruthType.VOLATILE).category == SourceCategory.CRYPTO

    def test_no_category_means_no_sources(self, selector):
        assert selector.select_sources_for_query("Who is the CEO of Acme Corp", TruthType.SEMI_STABLE) == []

    def test_high_stakes_permanent_query_gets_no_reference(self, selector):
        hs = HighStakesResult(is_high_stakes=True, domains=[HighStakesDomain.MEDICAL])
        assert selector.select_sources_for_query("What is diabetes?", TruthType.PERMANENT, hs) == []

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_invalid_query(self, selector, query):
        assert selector.select_sources_for_query(query, TruthType.VOLATILE) == []
