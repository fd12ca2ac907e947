# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Graceful degradation when no source yields usable data.

The user gets a short admission plus at most two places to verify manually.
Everything here is static lookup tables; `graceful_degradation` never fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from freshcheck_core.runtime_config import EngineDegradationConfig
from freshcheck_core.schema.lookup import DegradedResponse, LookupFailure, VerificationPath, VerificationPointer
from freshcheck_core.schema.truth import HighStakesResult
from freshcheck_core.tools.source_catalog import get_authoritative_sources
from freshcheck_core.utils.query_entities import COMMODITY_WORDS, extract_office_title
from freshcheck_core.utils.runtime import utc_now
from freshcheck_core.verification.lookup_policy import has_news_intent

logger = logging.getLogger(__name__)

BASE_DISCLOSURE = "I can't access current data for this query."
NEWS_DISCLOSURE = "I can't access current news coverage for this query. It may be too recent to be indexed."
UNVERIFIED_LABEL = "Unverified, based on training data and possibly outdated:"
MAX_VERIFICATION_POINTERS = 2

_I = re.IGNORECASE


@dataclass(frozen=True)
class PointerRule:
    name: str
    matches: Callable[[str], bool]
    pointers: tuple[VerificationPointer, ...]


def _p(name: str, url: str) -> VerificationPointer:
    return VerificationPointer(name=name, url=url)


POINTER_RULES: tuple[PointerRule, ...] = (
    PointerRule(
        "currency",
        lambda q: bool(re.search(r"\b(exchange rate|currency|forex|usd|eur|gbp|jpy|euros?|dollars? to|pounds? to)\b", q, _I)),
        (_p("XE Currency Converter", "https://www.xe.com/currencyconverter/"), _p("Google Finance", "https://www.google.com/finance")),
    ),
    PointerRule(
        "crypto",
        lambda q: bool(re.search(r"\b(bitcoin|btc|ethereum|eth|crypto|cryptocurrency)\b", q, _I)),
        (_p("CoinGecko", "https://www.coingecko.com"), _p("CoinMarketCap", "https://coinmarketcap.com")),
    ),
    PointerRule(
        "commodities",
        lambda q: bool(COMMODITY_WORDS.search(q)),
        (_p("Kitco", "https://www.kitco.com"), _p("Bloomberg Commodities", "https://www.bloomberg.com/markets/commodities")),
    ),
    PointerRule(
        "stocks",
        lambda q: bool(re.search(r"\b(stock|stocks|shares?|ticker|nasdaq|nyse|dow jones|s&p)\b", q, _I)),
        (_p("Yahoo Finance", "https://finance.yahoo.com"), _p("Google Finance", "https://www.google.com/finance")),
    ),
    PointerRule(
        "political_office",
        lambda q: extract_office_title(q) is not None
        or bool(re.search(r"\bwho is the (current )?(president|prime minister|chancellor|governor|mayor)\b", q, _I)),
        (_p("Wikipedia", "https://en.wikipedia.org"), _p("USA.gov", "https://www.usa.gov")),
    ),
    PointerRule(
        "weather",
        lambda q: bool(re.search(r"\b(weather|temperature|forecast|rain|snow|storm)\b", q, _I)),
        (_p("National Weather Service", "https://www.weather.gov"), _p("Weather.com", "https://weather.com")),
    ),
    PointerRule(
        "news",
        has_news_intent,
        (_p("Reuters", "https://www.reuters.com"), _p("Associated Press", "https://apnews.com")),
    ),
)

DEFAULT_POINTERS = (
    _p("Google Search", "https://www.google.com"),
    _p("Wikipedia", "https://en.wikipedia.org"),
)


def cap_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]).rstrip(",;:") + "..."


class DegradationHandler:
    def __init__(
        self,
        config: EngineDegradationConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or EngineDegradationConfig()
        self._clock = clock or utc_now

    def verification_pointers(
        self,
        query: str,
        high_stakes: HighStakesResult | None = None,
    ) -> tuple[str, list[VerificationPointer]]:
        limit = max(1, min(self.config.max_verification_sources, MAX_VERIFICATION_POINTERS))
        for rule in POINTER_RULES:
            try:
                hit = rule.matches(query)
            except Exception:
                hit = False
            if hit:
                return rule.name, list(rule.pointers)[:limit]

        if high_stakes is not None and high_stakes.is_high_stakes:
            pointers = [_p(s.name, s.url) for s in get_authoritative_sources(high_stakes, limit=limit)]
            return "high_stakes", pointers[:limit]

        return "default", list(DEFAULT_POINTERS)[:limit]

    def graceful_degradation(
        self,
        query: Any,
        lookup_failure: LookupFailure | None = None,
        internal_answer: str | None = None,
        *,
        high_stakes: HighStakesResult | None = None,
        error: str | None = None,
    ) -> DegradedResponse:
        q = query if isinstance(query, str) else ""
        rule, pointers = self.verification_pointers(q, high_stakes)

        disclosure = NEWS_DISCLOSURE if rule == "news" else BASE_DISCLOSURE
        disclosure = cap_words(disclosure, self.config.max_response_words)

        labeled = f"{UNVERIFIED_LABEL} {internal_answer}" if internal_answer else None
        lookup_error = error or (lookup_failure.error if lookup_failure is not None else None) or "Lookup did not complete"

        logger.info("[Degradation] %s (pointers=%s)", lookup_error, [p.name for p in pointers])
        return DegradedResponse(
            disclosure=disclosure,
            internal_answer=internal_answer,
            internal_answer_labeled=labeled,
            verification_path=VerificationPath(sources=pointers),
            lookup_error=lookup_error,
            max_response_words=self.config.max_response_words,
            timestamp=self._clock(),
        )
