# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Parser, extractor and URL-builder registries for the source catalog.

Catalog entries refer to these by name, so source definitions stay plain data:

- PAYLOAD_PARSERS: parser kind -> body decoder (json / rss / text)
- EXTRACTORS: name -> pure `(payload, query) -> str | None`
- URL_BUILDERS: name -> pure `(cleaned_query, credential) -> str | None`

A builder returning None means "skip this source"; an extractor returning
None (or "") means the payload had nothing usable.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable
from urllib.parse import quote, quote_plus

import feedparser

from freshcheck_core.utils.query_entities import (
    METAL_LABELS,
    currency_pair,
    detect_metals,
    detect_ticker,
    extract_city,
    extract_drug_name,
    extract_office_title,
)

RSS_MAX_ITEMS = 5
SUMMARY_MAX_CHARS = 2000
TEXT_MAX_CHARS = 2000

Extractor = Callable[[Any, str], "str | None"]
UrlBuilder = Callable[[str, "str | None"], "str | None"]


class ParserKind(str, Enum):
    JSON = "json"
    RSS = "rss"
    TEXT = "text"


def _parse_json(body: bytes) -> Any:
    return json.loads(body)


def _parse_rss(body: bytes) -> Any:
    return feedparser.parse(body)


def _parse_text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


PAYLOAD_PARSERS: dict[ParserKind, Callable[[bytes], Any]] = {
    ParserKind.JSON: _parse_json,
    ParserKind.RSS: _parse_rss,
    ParserKind.TEXT: _parse_text,
}

EXTRACTORS: dict[str, Extractor] = {}
URL_BUILDERS: dict[str, UrlBuilder] = {}


def register_extractor(name: str) -> Callable[[Extractor], Extractor]:
    def deco(fn: Extractor) -> Extractor:
        EXTRACTORS[name] = fn
        return fn

    return deco


def register_url_builder(name: str) -> Callable[[UrlBuilder], UrlBuilder]:
    def deco(fn: UrlBuilder) -> UrlBuilder:
        URL_BUILDERS[name] = fn
        return fn

    return deco


def parse_payload(kind: ParserKind | str, body: bytes) -> Any:
    return PAYLOAD_PARSERS[ParserKind(kind)](body)


def _fmt_number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _dig(payload: Any, *keys: str) -> Any:
    cur = payload
    for k in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(k)
    return cur


# ─────────────────────────────────────────────────────────────────────────────
# URL builders
# ─────────────────────────────────────────────────────────────────────────────


@register_url_builder("google_news_rss")
def build_google_news_rss(query: str, credential: str | None) -> str | None:
    q = (query or "").strip()
    if not q:
        return None
    return f"https://news.google.com/rss/search?q={quote_plus(q)}&hl=en-US&gl=US&ceid=US:en"


@register_url_builder("exchangerate_api")
def build_exchangerate_api(query: str, credential: str | None) -> str | None:
    pair = currency_pair(query)
    if not credential or not pair:
        return None
    return f"https://v6.exchangerate-api.com/v6/{quote(credential)}/latest/{pair[0]}"


@register_url_builder("frankfurter")
def build_frankfurter(query: str, credential: str | None) -> str | None:
    pair = currency_pair(query)
    if not pair:
        return None
    return f"https://api.frankfurter.app/latest?from={pair[0]}&to={pair[1]}"


@register_url_builder("metals_api")
def build_metals_api(query: str, credential: str | None) -> str | None:
    metals = detect_metals(query)
    if not credential or not metals:
        return None
    return f"https://metals-api.com/api/latest?access_key={quote(credential)}&base=USD&symbols={','.join(metals)}"


@register_url_builder("alpha_vantage_quote")
def build_alpha_vantage_quote(query: str, credential: str | None) -> str | None:
    symbol = detect_ticker(query)
    if not credential or not symbol:
        return None
    return f"https://www.alphavantage.co/query?function=GLOBAL_QUOTE&symbol={symbol}&apikey={quote(credential)}"


@register_url_builder("wikipedia_office")
def build_wikipedia_office(query: str, credential: str | None) -> str | None:
    title = extract_office_title(query)
    if not title:
        return None
    return f"https://en.wikipedia.org/api/rest_v1/page/summary/{quote(title.replace(' ', '_'))}"


@register_url_builder("openfda_label")
def build_openfda_label(query: str, credential: str | None) -> str | None:
    drug = extract_drug_name(query)
    if not drug:
        return None
    return f"https://api.fda.gov/drug/label.json?search=openfda.generic_name:{quote(drug)}&limit=1"


@register_url_builder("openweathermap")
def build_openweathermap(query: str, credential: str | None) -> str | None:
    city = extract_city(query)
    if not credential or not city:
        return None
    return f"https://api.openweathermap.org/data/2.5/weather?q={quote_plus(city)}&appid={quote(credential)}&units=metric"


@register_url_builder("wttr_in")
def build_wttr_in(query: str, credential: str | None) -> str | None:
    city = extract_city(query)
    if not city:
        return None
    return f"https://wttr.in/{quote(city)}?format=3"


_REFERENCE_PREFIX = ("what is", "define", "definition of", "meaning of", "explain")


@register_url_builder("wikipedia_reference")
def build_wikipedia_reference(query: str, credential: str | None) -> str | None:
    q = (query or "").strip().rstrip("?.!")
    low = q.lower()
    for prefix in _REFERENCE_PREFIX:
        idx = low.find(prefix)
        if idx != -1:
            q = (q[:idx] + q[idx + len(prefix):]).strip()
            low = q.lower()
    words = [w for w in q.split() if w.lower() not in ("a", "an", "the")][:3]
    if not words:
        return None
    return f"https://en.wikipedia.org/api/rest_v1/page/summary/{quote(' '.join(words))}"


# ─────────────────────────────────────────────────────────────────────────────
# Extractors
# ─────────────────────────────────────────────────────────────────────────────


@register_extractor("coingecko_prices")
def extract_coingecko_prices(payload: Any, query: str) -> str | None:
    btc = _dig(payload, "bitcoin", "usd")
    eth = _dig(payload, "ethereum", "usd")
    if not btc and not eth:
        return None
    btc_s = _fmt_number(btc) if btc else "N/A"
    eth_s = _fmt_number(eth) if eth else "N/A"
    return f"Bitcoin: ${btc_s}, Ethereum: ${eth_s}"


@register_extractor("exchangerate_api_rates")
def extract_exchangerate_api(payload: Any, query: str) -> str | None:
    if not isinstance(payload, dict) or payload.get("result") != "success":
        return None
    base = payload.get("base_code")
    rates = payload.get("conversion_rates") or {}
    pair = currency_pair(query)
    if not base or not pair or pair[1] not in rates:
        return None
    updated = payload.get("time_last_update_utc")
    line = f"1 {base} = {_fmt_number(rates[pair[1]])} {pair[1]}"
    return f"{line} (updated {updated})" if updated else line


@register_extractor("frankfurter_rates")
def extract_frankfurter(payload: Any, query: str) -> str | None:
    rates = _dig(payload, "rates")
    base = _dig(payload, "base")
    if not isinstance(rates, dict) or not rates or not base:
        return None
    amount = _fmt_number(payload.get("amount", 1))
    date = payload.get("date")
    parts = [f"{amount} {base} = {_fmt_number(v)} {k}" for k, v in rates.items()]
    out = ", ".join(parts)
    return f"{out} (as of {date})" if date else out


@register_extractor("metals_api_rates")
def extract_metals_api(payload: Any, query: str) -> str | None:
    if not isinstance(payload, dict) or payload.get("success") is False:
        return None
    rates = payload.get("rates") or {}
    lines = []
    for code, label in METAL_LABELS.items():
        rate = rates.get(code)
        if isinstance(rate, (int, float)) and rate > 0:
            # Rates are quoted as troy ounces per 1 USD.
            lines.append(f"{label} ({code}): ${1 / rate:,.2f} per troy ounce")
    return ", ".join(lines) or None


@register_extractor("alpha_vantage_global_quote")
def extract_alpha_vantage_quote(payload: Any, query: str) -> str | None:
    quote_data = _dig(payload, "Global Quote")
    if not isinstance(quote_data, dict) or not quote_data.get("05. price"):
        return None
    symbol = quote_data.get("01. symbol", "?")
    try:
        price = f"{float(quote_data['05. price']):.2f}"
    except ValueError:
        return None
    out = f"{symbol}: ${price}"
    change = quote_data.get("10. change percent")
    day = quote_data.get("07. latest trading day")
    details = [d for d in (f"change {change}" if change else None, f"latest trading day {day}" if day else None) if d]
    return f"{out} ({', '.join(details)})" if details else out


@register_extractor("wikipedia_summary")
def extract_wikipedia_summary(payload: Any, query: str) -> str | None:
    text = _dig(payload, "extract")
    if not isinstance(text, str) or not text.strip():
        return None
    return text[:SUMMARY_MAX_CHARS]


@register_extractor("openfda_label_sections")
def extract_openfda_label(payload: Any, query: str) -> str | None:
    results = _dig(payload, "results")
    if not isinstance(results, list) or not results:
        return None
    label = results[0]

    def first(key: str, limit: int) -> str | None:
        values = label.get(key)
        if isinstance(values, list) and values and isinstance(values[0], str):
            return values[0][:limit]
        return None

    parts = [
        first("warnings", 1000),
        first("adverse_reactions", 1000),
        first("indications_and_usage", 500),
    ]
    return "\n\n".join(p for p in parts if p) or None


@register_extractor("openweathermap_current")
def extract_openweathermap(payload: Any, query: str) -> str | None:
    temp = _dig(payload, "main", "temp")
    if temp is None:
        return None
    name = payload.get("name") or "Location"
    weather = payload.get("weather") or []
    desc = weather[0].get("description") if weather and isinstance(weather[0], dict) else None
    humidity = _dig(payload, "main", "humidity")
    parts = [f"{name}: {_fmt_number(temp)}°C"]
    if desc:
        parts.append(str(desc))
    if humidity is not None:
        parts.append(f"humidity {_fmt_number(humidity)}%")
    return ", ".join(parts)


@register_extractor("plain_text")
def extract_plain_text(payload: Any, query: str) -> str | None:
    if not isinstance(payload, str):
        return None
    text = payload.strip()
    if not text or text.lstrip().lower().startswith(("<!doctype", "<html")):
        return None
    return text[:TEXT_MAX_CHARS]


@register_extractor("rss_headlines")
def extract_rss_headlines(payload: Any, query: str) -> str | None:
    entries = getattr(payload, "entries", None) or []
    lines = []
    for entry in entries[:RSS_MAX_ITEMS]:
        title = (entry.get("title") or "").strip()
        if not title:
            continue
        source = entry.get("source") or {}
        outlet = (source.get("title") or "").strip() if hasattr(source, "get") else ""
        published = (entry.get("published") or "").strip()
        line = f"[{outlet}] {title}" if outlet else title
        lines.append(f"{line} ({published})" if published else line)
    return "\n\n".join(lines) or None
