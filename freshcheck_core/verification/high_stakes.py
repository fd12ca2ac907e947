# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
High-stakes domain detection.

Runs independently of the truth class. One matching marker is enough to flag
a domain; several domains may be flagged at once.
"""

from __future__ import annotations

import re
from typing import Any

from freshcheck_core.schema.truth import HighStakesDomain, HighStakesResult

_I = re.IGNORECASE

HIGH_STAKES_PATTERNS: dict[HighStakesDomain, tuple[re.Pattern[str], ...]] = {
    HighStakesDomain.MEDICAL: tuple(re.compile(p, _I) for p in (
        r"\b(symptom|diagnosis|treatment|medication|dosage|drug|prescription)\b",
        r"\bsymptoms? of\b",
        r"\bside effects?\b",
        r"\bdrug interactions?\b",
        r"\b(disease|condition|syndrome|disorder)\b",
        r"\b(interaction|contraindications?)\b",
        r"\b(aspirin|ibuprofen|tylenol|advil|acetaminophen)\b",
        r"\b(overdose|prognosis)\b",
        r"\bcan i take [^.?!\n]{1,80} with\b",
        r"\bmixing [^.?!\n]{1,80} (and|with)\b",
        r"\bcombine [^.?!\n]{1,80} medication\b",
        r"\bblood pressure\b",
        r"\bdiabetes\b",
        r"\bheart\b",
        r"\bcholesterol\b",
        # Emergency symptoms
        r"\b(chest (pain|hurts?)|arm (tingling|numb)|difficulty breathing|can't breathe|heart (racing|attack)"
        r"|severe headache|numbness|dizz(y|iness)|faint|unconscious|bleeding heavily|allergic reaction"
        r"|throat (closing|swelling))\b",
        r"\b(lips|fingers|skin|face) (turning|are|is|look|looks) (blue|purple|gray|grey)\b",
        r"\b(blue|purple) (lips|fingers|skin|face)\b",
        r"\bcyanosis\b",
        r"\b(trouble|difficulty|struggling|can't|cannot|hard to) breath(e|ing)\b",
        r"\b(short|shortness) of breath\b",
        r"\bchok(e|ing|ed)\b",
        r"\b(severe|intense|crushing|sharp) (chest |abdominal |stomach |head )?(pain|ache)\b",
        r"\bcan't (breathe|breath|stop bleeding)\b",
        r"\b(passing|passed|blacking|blacked) out\b",
        r"\bseizure\b",
        r"\bstroke symptoms?\b",
        r"\bsuicid(e|al)\b",
        r"\bsevere (bleeding|burn|allergic reaction)\b",
        r"\banaphyla(xis|ctic)\b",
        # Substance combinations
        r"\bis it safe to (mix|combine|take|drink|use)\b",
        r"\b(alcohol|drinking)[^.?!\n]{0,80}(with|and)[^.?!\n]{0,80}(medication|antibiotics|medicine|pills|drugs)\b",
        r"\bcan i (take|mix|combine|drink)[^.?!\n]{0,80}(with|and|while)\b",
    )),
    HighStakesDomain.LEGAL: tuple(re.compile(p, _I) for p in (
        r"\b(legal|law|lawsuit|court|attorney|lawyer)\b",
        r"\b(contract|liability|sue|regulation|statute)\b",
        r"\b(rights|illegal|criminal|civil)\b",
    )),
    HighStakesDomain.FINANCIAL: tuple(re.compile(p, _I) for p in (
        r"\b(invest|investment|stock|bond|portfolio)\b",
        r"\b(tax|irs|deduction|credit|filing)\b",
        r"\b(loan|mortgage|interest rate|credit score)\b",
    )),
    HighStakesDomain.SAFETY: tuple(re.compile(p, _I) for p in (
        r"\b(recall|warning|hazard|danger|emergency)\b",
        r"\b(toxic|poisonous|flammable|explosive)\b",
        r"\b(safety|risk|accident|injury)\b",
    )),
}


def detect_high_stakes_domain(query: Any) -> HighStakesResult:
    if not isinstance(query, str) or not query.strip():
        return HighStakesResult()

    q = query.lower().strip()
    domains = [
        domain
        for domain, patterns in HIGH_STAKES_PATTERNS.items()
        if any(p.search(q) for p in patterns)
    ]
    return HighStakesResult(is_high_stakes=bool(domains), domains=domains)
