# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Source selection.

An ordered matcher table maps a query to one catalog category. The first
matching category wins. Gated sources without credentials are dropped. An
empty result means "no reliable source" and is a degradation trigger, not an
error.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable

from freshcheck_core.schema.truth import HighStakesResult, TruthType
from freshcheck_core.tools.source_catalog import (
    GOOGLE_NEWS_RSS,
    CredentialLookup,
    Source,
    SourceCategory,
    get_sources,
    is_available,
)
from freshcheck_core.utils.query_entities import (
    COMMODITY_WORDS,
    KNOWN_DRUGS,
    detect_ticker,
    extract_office_title,
)
from freshcheck_core.verification.lookup_policy import has_news_intent

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

_CURRENCY = re.compile(
    r"\b(exchange rate|exchange rates|forex|fx rate|currency|currencies|convert \d*\s*\w+ to"
    r"|usd|eur|gbp|jpy|chf|cny|inr|mxn|cad|aud|uah"
    r"|dollars? to|euros? to|pounds? to|yen to|to euros?|to dollars?|to pounds?|in euros?|in yen)\b",
    _I,
)
_PRICE = re.compile(r"\b(price|prices|cost|worth|trading at|quote|value|rate)\b", _I)
_STOCK = re.compile(r"\b(stock|stocks|share price|shares|ticker|nasdaq|nyse|dow jones|s&p 500)\b", _I)
_CRYPTO = re.compile(r"\b(bitcoin|btc|ethereum|eth|crypto|cryptocurrency)\b", _I)
_DRUG_CONTEXT = re.compile(r"\b(side effects?|dosage|drug interactions?|warnings?|used for)\b", _I)
_WEATHER = re.compile(r"\b(weather|temperature|forecast|rain|snow|storm)\b", _I)
_GENERIC_NEWS = re.compile(r"\b(top|latest|recent|breaking)\s+(news|stories|headlines|updates)\b", _I)
_ENTERTAINMENT = re.compile(r"\b(celebrity|entertainment|gossip|hollywood)\b", _I)
_NEWS_EVENTS = re.compile(r"\b(attack|breaking|killed|died|war|invasion|military|bombing|coup|strike)\b", _I)
_GENERIC_CURRENT = re.compile(r"\b(current|latest|today'?s|right now|currently)\b", _I)


@dataclass(frozen=True)
class CategoryMatcher:
    category: SourceCategory
    matches: Callable[[str, TruthType, HighStakesResult], bool]
    # Append the headline feed when no priced source survives filtering.
    news_fallback: bool = False


def _is_currency(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return bool(_CURRENCY.search(q)) and not _CRYPTO.search(q)


def _is_commodity(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return bool(COMMODITY_WORDS.search(q)) and bool(_PRICE.search(q))


def _is_stock(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    if _CRYPTO.search(q):
        return False
    return bool(_STOCK.search(q)) and (bool(_PRICE.search(q)) or detect_ticker(q) is not None)


def _is_government(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return extract_office_title(q) is not None


def _is_crypto(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return bool(_CRYPTO.search(q))


def _is_medical_drug(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return bool(_DRUG_CONTEXT.search(q)) and bool(KNOWN_DRUGS.search(q))


def _is_weather(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return bool(_WEATHER.search(q))


def _is_news(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    if has_news_intent(q) or _GENERIC_NEWS.search(q) or _NEWS_EVENTS.search(q):
        return True
    return bool(_ENTERTAINMENT.search(q)) and bool(re.search(r"\b(news|latest|recent|stories)\b", q, _I))


def _is_generic_current(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return tt == TruthType.VOLATILE and bool(_GENERIC_CURRENT.search(q))


def _is_reference(q: str, tt: TruthType, hs: HighStakesResult) -> bool:
    return tt == TruthType.PERMANENT and not hs.is_high_stakes


CATEGORY_MATCHERS: tuple[CategoryMatcher, ...] = (
    CategoryMatcher(SourceCategory.CURRENCY, _is_currency),
    CategoryMatcher(SourceCategory.COMMODITIES, _is_commodity, news_fallback=True),
    CategoryMatcher(SourceCategory.STOCKS, _is_stock, news_fallback=True),
    CategoryMatcher(SourceCategory.GOVERNMENT, _is_government),
    CategoryMatcher(SourceCategory.CRYPTO, _is_crypto),
    CategoryMatcher(SourceCategory.MEDICAL, _is_medical_drug),
    CategoryMatcher(SourceCategory.WEATHER, _is_weather),
    CategoryMatcher(SourceCategory.NEWS, _is_news),
    CategoryMatcher(SourceCategory.GENERAL_CURRENT, _is_generic_current),
    CategoryMatcher(SourceCategory.REFERENCE, _is_reference),
)


def _env_credentials(name: str) -> str | None:
    return (os.getenv(name) or "").strip() or None


def match_category(
    query: str,
    truth_type: TruthType,
    high_stakes: HighStakesResult | None = None,
) -> CategoryMatcher | None:
    hs = high_stakes or HighStakesResult()
    for matcher in CATEGORY_MATCHERS:
        if matcher.matches(query, truth_type, hs):
            return matcher
    return None


class SourceSelector:
    def __init__(self, credentials: CredentialLookup | None = None) -> None:
        self._credentials = credentials or _env_credentials

    def select_sources_for_query(
        self,
        query: str,
        truth_type: TruthType,
        high_stakes: HighStakesResult | None = None,
    ) -> list[Source]:
        if not isinstance(query, str) or not query.strip():
            return []

        matcher = match_category(query, truth_type, high_stakes)
        if matcher is None:
            logger.debug("[SourceSelector] No category matched")
            return []

        sources = [s for s in get_sources(matcher.category) if is_available(s, self._credentials)]
        if not sources and matcher.news_fallback:
            logger.info("[SourceSelector] %s has no usable sources, falling back to headlines", matcher.category.value)
            sources.append(GOOGLE_NEWS_RSS)

        logger.debug(
            "[SourceSelector] category=%s sources=%s",
            matcher.category.value,
            [s.name for s in sources],
        )
        return sources
