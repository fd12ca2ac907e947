# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
External Source Catalog
=======================
Declarative registry of the external sources a lookup may consult.

Each source carries one URL rule:
- StaticUrl: fixed URL
- QueryBuiltUrl: built from the cleaned query by a registered builder
- EnvKeyGatedUrl: like QueryBuiltUrl, but needs a credential; without it
  the source resolves to no URL and is skipped

and one parser kind (json / rss / text) paired with a registered extractor.

Categories:
- CRYPTO: CoinGecko spot prices
- CURRENCY: ExchangeRate-API (key), Frankfurter (ECB reference rates)
- COMMODITIES: Metals-API (key)
- STOCKS: Alpha Vantage global quote (key)
- GOVERNMENT: Wikipedia summary of a political office
- MEDICAL: openFDA drug labels
- WEATHER: OpenWeatherMap (key), wttr.in one-line text
- NEWS: Google News RSS, Wikipedia Current Events portal
- GENERAL_CURRENT: Google News RSS
- REFERENCE: Wikipedia summary

Authoritative pointers (FDA, SEC, CPSC, ...) are not fetched; they back the
verification paths shown to users.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from freshcheck_core.schema.truth import HighStakesDomain, HighStakesResult
from freshcheck_core.tools.source_parsers import EXTRACTORS, URL_BUILDERS, ParserKind

CredentialLookup = Callable[[str], "str | None"]


class SourceCategory(str, Enum):
    CRYPTO = "CRYPTO"
    CURRENCY = "CURRENCY"
    COMMODITIES = "COMMODITIES"
    STOCKS = "STOCKS"
    GOVERNMENT = "GOVERNMENT"
    MEDICAL = "MEDICAL"
    WEATHER = "WEATHER"
    NEWS = "NEWS"
    GENERAL_CURRENT = "GENERAL_CURRENT"
    REFERENCE = "REFERENCE"


@dataclass(frozen=True)
class StaticUrl:
    url: str


@dataclass(frozen=True)
class QueryBuiltUrl:
    builder: str


@dataclass(frozen=True)
class EnvKeyGatedUrl:
    env_var: str
    builder: str


UrlRule = Union[StaticUrl, QueryBuiltUrl, EnvKeyGatedUrl]


@dataclass(frozen=True)
class Source:
    name: str
    url_rule: UrlRule
    parser: ParserKind
    extractor: str
    category: SourceCategory
    parseable: bool = True
    # "api" for structured endpoints, "feed" for headline feeds
    kind: str = "api"

    @property
    def is_gated(self) -> bool:
        return isinstance(self.url_rule, EnvKeyGatedUrl)

    @property
    def is_headline_feed(self) -> bool:
        return self.kind == "feed"


@dataclass(frozen=True)
class AuthoritativeSource:
    name: str
    url: str
    type: str
    parseable: bool = False


def resolve_url(source: Source, cleaned_query: str, credentials: CredentialLookup) -> str | None:
    rule = source.url_rule
    if isinstance(rule, StaticUrl):
        return rule.url
    if isinstance(rule, QueryBuiltUrl):
        return URL_BUILDERS[rule.builder](cleaned_query, None)
    if isinstance(rule, EnvKeyGatedUrl):
        credential = credentials(rule.env_var)
        if not credential:
            return None
        return URL_BUILDERS[rule.builder](cleaned_query, credential)
    raise TypeError(f"Unknown url rule: {rule!r}")


def is_available(source: Source, credentials: CredentialLookup) -> bool:
    if isinstance(source.url_rule, EnvKeyGatedUrl):
        return bool(credentials(source.url_rule.env_var))
    return True


GOOGLE_NEWS_RSS = Source(
    name="Google News RSS",
    url_rule=QueryBuiltUrl("google_news_rss"),
    parser=ParserKind.RSS,
    extractor="rss_headlines",
    category=SourceCategory.NEWS,
    kind="feed",
)

SOURCE_CATALOG: dict[SourceCategory, tuple[Source, ...]] = {
    SourceCategory.CRYPTO: (
        Source(
            name="CoinGecko",
            url_rule=StaticUrl("https://api.coingecko.com/api/v3/simple/price?ids=bitcoin,ethereum&vs_currencies=usd"),
            parser=ParserKind.JSON,
            extractor="coingecko_prices",
            category=SourceCategory.CRYPTO,
        ),
    ),
    SourceCategory.CURRENCY: (
        Source(
            name="ExchangeRate-API",
            url_rule=EnvKeyGatedUrl("EXCHANGERATE_API_KEY", "exchangerate_api"),
            parser=ParserKind.JSON,
            extractor="exchangerate_api_rates",
            category=SourceCategory.CURRENCY,
        ),
        Source(
            name="Frankfurter",
            url_rule=QueryBuiltUrl("frankfurter"),
            parser=ParserKind.JSON,
            extractor="frankfurter_rates",
            category=SourceCategory.CURRENCY,
        ),
    ),
    SourceCategory.COMMODITIES: (
        Source(
            name="Metals-API",
            url_rule=EnvKeyGatedUrl("METALS_API_KEY", "metals_api"),
            parser=ParserKind.JSON,
            extractor="metals_api_rates",
            category=SourceCategory.COMMODITIES,
        ),
    ),
    SourceCategory.STOCKS: (
        Source(
            name="Alpha Vantage",
            url_rule=EnvKeyGatedUrl("ALPHA_VANTAGE_API_KEY", "alpha_vantage_quote"),
            parser=ParserKind.JSON,
            extractor="alpha_vantage_global_quote",
            category=SourceCategory.STOCKS,
        ),
    ),
    SourceCategory.GOVERNMENT: (
        Source(
            name="Wikipedia Office Holder",
            url_rule=QueryBuiltUrl("wikipedia_office"),
            parser=ParserKind.JSON,
            extractor="wikipedia_summary",
            category=SourceCategory.GOVERNMENT,
        ),
    ),
    SourceCategory.MEDICAL: (
        Source(
            name="FDA Drug Labels",
            url_rule=QueryBuiltUrl("openfda_label"),
            parser=ParserKind.JSON,
            extractor="openfda_label_sections",
            category=SourceCategory.MEDICAL,
        ),
    ),
    SourceCategory.WEATHER: (
        Source(
            name="OpenWeatherMap",
            url_rule=EnvKeyGatedUrl("OPENWEATHER_API_KEY", "openweathermap"),
            parser=ParserKind.JSON,
            extractor="openweathermap_current",
            category=SourceCategory.WEATHER,
        ),
        Source(
            name="wttr.in",
            url_rule=QueryBuiltUrl("wttr_in"),
            parser=ParserKind.TEXT,
            extractor="plain_text",
            category=SourceCategory.WEATHER,
        ),
    ),
    SourceCategory.NEWS: (
        GOOGLE_NEWS_RSS,
        Source(
            name="Wikipedia Current Events",
            url_rule=StaticUrl("https://en.wikipedia.org/api/rest_v1/page/summary/Portal:Current_events"),
            parser=ParserKind.JSON,
            extractor="wikipedia_summary",
            category=SourceCategory.NEWS,
        ),
    ),
    SourceCategory.GENERAL_CURRENT: (
        Source(
            name="Google News RSS",
            url_rule=QueryBuiltUrl("google_news_rss"),
            parser=ParserKind.RSS,
            extractor="rss_headlines",
            category=SourceCategory.GENERAL_CURRENT,
            kind="feed",
        ),
    ),
    SourceCategory.REFERENCE: (
        Source(
            name="Wikipedia",
            url_rule=QueryBuiltUrl("wikipedia_reference"),
            parser=ParserKind.JSON,
            extractor="wikipedia_summary",
            category=SourceCategory.REFERENCE,
        ),
    ),
}

AUTHORITATIVE_SOURCES: dict[HighStakesDomain, tuple[AuthoritativeSource, ...]] = {
    HighStakesDomain.MEDICAL: (
        AuthoritativeSource("FDA", "https://www.fda.gov", "government"),
        AuthoritativeSource("NIH", "https://www.nih.gov", "government"),
        AuthoritativeSource("CDC", "https://www.cdc.gov", "government"),
        AuthoritativeSource("Mayo Clinic", "https://www.mayoclinic.org", "medical"),
        AuthoritativeSource("PubMed", "https://pubmed.ncbi.nlm.nih.gov", "research"),
    ),
    HighStakesDomain.LEGAL: (
        AuthoritativeSource("Congress.gov", "https://www.congress.gov", "government"),
        AuthoritativeSource("Supreme Court", "https://www.supremecourt.gov", "government"),
        AuthoritativeSource("Federal Register", "https://www.federalregister.gov", "government"),
        AuthoritativeSource("Cornell Law", "https://www.law.cornell.edu", "legal"),
    ),
    HighStakesDomain.FINANCIAL: (
        AuthoritativeSource("SEC", "https://www.sec.gov", "government"),
        AuthoritativeSource("IRS", "https://www.irs.gov", "government"),
        AuthoritativeSource("Federal Reserve", "https://www.federalreserve.gov", "government"),
        AuthoritativeSource("Treasury", "https://home.treasury.gov", "government"),
    ),
    HighStakesDomain.SAFETY: (
        AuthoritativeSource("CPSC", "https://www.cpsc.gov", "government"),
        AuthoritativeSource("NHTSA", "https://www.nhtsa.gov", "government"),
        AuthoritativeSource("OSHA", "https://www.osha.gov", "government"),
        AuthoritativeSource("FDA Recalls", "https://www.fda.gov/safety/recalls", "government"),
    ),
}

GENERAL_POINTERS: tuple[AuthoritativeSource, ...] = (
    AuthoritativeSource("Google Search", "https://www.google.com", "search"),
    AuthoritativeSource("Wikipedia", "https://en.wikipedia.org", "encyclopedia"),
)


def get_sources(category: SourceCategory) -> list[Source]:
    return list(SOURCE_CATALOG.get(category, ()))


def get_authoritative_sources(high_stakes: HighStakesResult | None, *, limit: int = 3) -> list[AuthoritativeSource]:
    """Pointers for the flagged domains, topped up with general ones."""
    out: list[AuthoritativeSource] = []
    if high_stakes is not None and high_stakes.is_high_stakes:
        for domain in high_stakes.domains:
            out.extend(AUTHORITATIVE_SOURCES.get(domain, ()))
    if len(out) < limit:
        out.extend(GENERAL_POINTERS)
    return out[:limit]


def validate_catalog() -> list[str]:
    """Names referenced by catalog entries that have no registered implementation."""
    missing: list[str] = []
    for sources in SOURCE_CATALOG.values():
        for s in sources:
            if s.extractor not in EXTRACTORS:
                missing.append(f"{s.name}: extractor {s.extractor}")
            builder = getattr(s.url_rule, "builder", None)
            if builder and builder not in URL_BUILDERS:
                missing.append(f"{s.name}: builder {builder}")
    return missing
