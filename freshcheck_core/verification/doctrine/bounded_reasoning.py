# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of FreshCheck Engine.
#
# FreshCheck Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import re
from typing import Any, Mapping

from freshcheck_core.runtime_config import EngineDoctrineConfig
from freshcheck_core.schema.enforcement import BoundedReasoningRequirement, ResponseMetadata
from freshcheck_core.schema.lookup import SourceClass
from freshcheck_core.schema.truth import TruthType

SPECULATIVE_PATTERNS = re.compile(
    r"\b(will [^.?!\n]{1,80} in the (next|future)|predict|forecast|going to happen|what will|years from now"
    r"|by 20\d\d|in \d+ years)\b",
    re.IGNORECASE,
)


def requires_bounded_reasoning(
    metadata: ResponseMetadata | Mapping[str, Any],
    query: str = "",
    config: EngineDoctrineConfig | None = None,
) -> BoundedReasoningRequirement:
    """First matching rule decides; PERMANENT short-circuits everything."""
    cfg = config or EngineDoctrineConfig()
    meta = metadata if isinstance(metadata, ResponseMetadata) else ResponseMetadata.from_dict(dict(metadata))

    if meta.truth_type == TruthType.PERMANENT:
        return BoundedReasoningRequirement(required=False, reason="Permanent fact")

    if query and SPECULATIVE_PATTERNS.search(query):
        return BoundedReasoningRequirement(required=True, reason="Speculative or predictive query")

    if meta.external_lookup and meta.sources_used > 0:
        return BoundedReasoningRequirement(required=False, reason="Verified external data available")

    if meta.source_class in (SourceClass.VAULT, SourceClass.DOCUMENT):
        return BoundedReasoningRequirement(required=False, reason="Verified internal data available")

    if meta.truth_type == TruthType.VOLATILE and meta.verified_at is None:
        return BoundedReasoningRequirement(required=True, reason="Volatile claim without external verification")

    if meta.high_stakes and meta.verified_at is None:
        return BoundedReasoningRequirement(required=True, reason="High-stakes claim without external verification")

    confidence = 0.5 if meta.confidence is None else meta.confidence
    if confidence < cfg.bounded_reasoning_confidence_threshold:
        return BoundedReasoningRequirement(required=True, reason="Low confidence without verification")

    return BoundedReasoningRequirement(required=False, reason="Sufficient verified data available")
