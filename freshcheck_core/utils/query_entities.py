# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Entity extraction helpers shared by source selection and URL builders.

All helpers are pure and return None / empty when nothing usable is found,
which callers treat as "skip this source".
"""

from __future__ import annotations

import re

CURRENCY_NAMES: dict[str, str] = {
    "dollar": "USD",
    "dollars": "USD",
    "usd": "USD",
    "euro": "EUR",
    "euros": "EUR",
    "eur": "EUR",
    "pound": "GBP",
    "pounds": "GBP",
    "sterling": "GBP",
    "gbp": "GBP",
    "yen": "JPY",
    "jpy": "JPY",
    "yuan": "CNY",
    "renminbi": "CNY",
    "cny": "CNY",
    "franc": "CHF",
    "francs": "CHF",
    "chf": "CHF",
    "rupee": "INR",
    "rupees": "INR",
    "inr": "INR",
    "peso": "MXN",
    "pesos": "MXN",
    "mxn": "MXN",
    "cad": "CAD",
    "aud": "AUD",
    "hryvnia": "UAH",
    "uah": "UAH",
}

_CURRENCY_PAIR = re.compile(r"\b([A-Za-z]{3})\s*(?:/|to|in|vs\.?|versus)\s*([A-Za-z]{3})\b")

METALS: dict[str, str] = {
    "gold": "XAU",
    "silver": "XAG",
    "platinum": "XPT",
    "palladium": "XPD",
}
METAL_LABELS = {v: k.title() for k, v in METALS.items()}

COMMODITY_WORDS = re.compile(
    r"\b(gold|silver|platinum|palladium|copper|oil|crude|brent|wti|natural gas|wheat|corn|commodit(y|ies))\b",
    re.IGNORECASE,
)

COMPANY_TICKERS: dict[str, str] = {
    "apple": "AAPL",
    "microsoft": "MSFT",
    "google": "GOOGL",
    "alphabet": "GOOGL",
    "amazon": "AMZN",
    "tesla": "TSLA",
    "nvidia": "NVDA",
    "meta": "META",
    "facebook": "META",
    "netflix": "NFLX",
    "intel": "INTC",
    "ibm": "IBM",
}

_TICKER_EXPLICIT = re.compile(r"\$([A-Z]{1,5})\b")
_TICKER_CONTEXT = re.compile(r"\b([A-Z]{1,5})\s+(?:stock|shares?|ticker)\b")
# Words that look like tickers but are not.
_TICKER_STOP = frozenset({"I", "A", "US", "USA", "UK", "EU", "CEO", "THE", "AND", "OR", "WHAT", "IS"})

_CITY = re.compile(
    r"\b(?:in|at|for)\s+([A-Za-z][A-Za-z .'\-]{1,40}?)"
    r"(?:\s+(?:today|tomorrow|tonight|now|right now|this week|this weekend))?\s*[?.!]*\s*$",
    re.IGNORECASE,
)
_CITY_NOISE = frozenset({"the", "today", "tomorrow", "now", "general", "celsius", "fahrenheit"})

_OFFICE = re.compile(
    r"\b(president|prime minister|chancellor|governor|mayor|king|queen|pope|secretary general"
    r"|speaker of the house|chief justice)\s+of\s+(?:the\s+)?([a-z][a-z .\-]{1,40}?)\s*[?.!]*$",
    re.IGNORECASE,
)
_OFFICE_BARE = re.compile(r"\bwho is (?:the )?(?:current )?(pope|uk prime minister|us president)\b", re.IGNORECASE)
_OFFICE_ALIASES = {
    "us president": "President of the United States",
    "uk prime minister": "Prime Minister of the United Kingdom",
    "pope": "Pope",
}

_DRUG_PATTERNS = (
    re.compile(r"(?:what is|about|regarding|side effects of|information on)\s+([a-z]{3,20})\b", re.IGNORECASE),
    re.compile(r"\b([a-z]{3,20})\s+(?:drug|medication|medicine|pill|tablet|capsule|dosage|prescription)\b", re.IGNORECASE),
    re.compile(r"(?:drug|medication|medicine)\s+(?:called|named)\s+([a-z]{3,20})\b", re.IGNORECASE),
)
_DRUG_NOISE = frozenset({"the", "this", "that", "your", "common", "typical", "usual", "daily", "max", "maximum"})

KNOWN_DRUGS = re.compile(r"\b(aspirin|ibuprofen|acetaminophen|tylenol|advil|naproxen|metformin|amoxicillin)\b", re.IGNORECASE)


def detect_currencies(query: str) -> list[str]:
    """ISO codes mentioned in the query, in order of appearance, deduplicated."""
    found: list[str] = []
    pair = _CURRENCY_PAIR.search(query or "")
    if pair:
        for token in pair.groups():
            code = CURRENCY_NAMES.get(token.lower())
            if code and code not in found:
                found.append(code)
    for word in re.findall(r"[A-Za-z]+", (query or "").lower()):
        code = CURRENCY_NAMES.get(word)
        if code and code not in found:
            found.append(code)
    return found


def currency_pair(query: str) -> tuple[str, str] | None:
    codes = detect_currencies(query)
    if not codes:
        return None
    if len(codes) == 1:
        base = codes[0]
        return ("USD", base) if base != "USD" else ("USD", "EUR")
    return codes[0], codes[1]


def detect_metals(query: str) -> list[str]:
    q = (query or "").lower()
    return [code for name, code in METALS.items() if re.search(rf"\b{name}\b", q)]


def detect_ticker(query: str) -> str | None:
    if not query:
        return None
    m = _TICKER_EXPLICIT.search(query)
    if m:
        return m.group(1)
    m = _TICKER_CONTEXT.search(query)
    if m and m.group(1) not in _TICKER_STOP:
        return m.group(1)
    q = query.lower()
    for name, ticker in COMPANY_TICKERS.items():
        if re.search(rf"\b{name}\b", q):
            return ticker
    return None


def extract_city(query: str) -> str | None:
    m = _CITY.search((query or "").strip())
    if not m:
        return None
    city = m.group(1).strip(" .'-")
    if not city or city.lower() in _CITY_NOISE:
        return None
    return city


def extract_office_title(query: str) -> str | None:
    q = (query or "").strip()
    m = _OFFICE.search(q)
    if m:
        office, place = m.group(1), m.group(2).strip()
        place = place.title().replace(" Of ", " of ").replace(" The ", " the ")
        if place.lower() in ("us", "usa", "united states", "america"):
            place = "the United States"
        elif place.lower() in ("uk", "united kingdom", "britain"):
            place = "the United Kingdom"
        return f"{office.title()} of {place}"
    m = _OFFICE_BARE.search(q)
    if m:
        return _OFFICE_ALIASES[m.group(1).lower()]
    return None


def extract_drug_name(query: str) -> str | None:
    known = KNOWN_DRUGS.search(query or "")
    if known:
        return known.group(1).lower()
    for pattern in _DRUG_PATTERNS:
        m = pattern.search(query or "")
        if m and m.group(1).lower() not in _DRUG_NOISE:
            return m.group(1).lower()
    return None
