# FreshCheck Engine - main entry point

import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

import httpx

from freshcheck_core.config import FreshCheckConfig
from freshcheck_core.schema.enforcement import LowConfidenceAction, LowConfidencePlan, ResponseMetadata
from freshcheck_core.schema.lookup import LookupResponse, SourceClass
from freshcheck_core.tools.freshness_cache import CacheBackend, FreshnessCache
from freshcheck_core.tools.source_client import SourceClient
from freshcheck_core.utils.runtime import utc_now
from freshcheck_core.utils.text_processing import has_proper_nouns, truncate_query
from freshcheck_core.utils.trace import Trace
from freshcheck_core.verification.claim_routing import ClaimRouter, RouteDecision
from freshcheck_core.verification.degradation import DegradationHandler
from freshcheck_core.verification.doctrine import (
    DoctrineEnforcer,
    ReasoningEscalationEnforcer,
    handle_low_confidence,
    requires_bounded_reasoning,
)
from freshcheck_core.verification.lookup_engine import FreshnessLookupEngine
from freshcheck_core.verification.lookup_executor import LookupExecutor
from freshcheck_core.verification.lookup_policy import LookupRequirementPolicy, has_news_intent
from freshcheck_core.verification.source_selector import SourceSelector
from freshcheck_core.verification.truth_classifier import AmbiguousClassifier, TruthClassifier

logger = logging.getLogger(__name__)

# (query, context) -> response text
Generator = Callable[[str, Dict[str, Any]], Awaitable[str]]

SAFE_FALLBACK_RESPONSE = (
    "I ran into a problem while checking this answer, so I can't give you a verified response right now. "
    "Please try again, or verify the information with an authoritative source."
)


def _trace_id() -> str:
    return f"{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}_{str(uuid4())[:6]}"


def build_generation_context(route: RouteDecision, lookup: Optional[LookupResponse]) -> Dict[str, Any]:
    """What the response generator is told about freshness and sourcing."""
    ctx: Dict[str, Any] = {
        "truth_type": route.classification.type.value,
        "claim_type": route.claim_type.value,
        "hierarchy": route.hierarchy,
        "high_stakes": [d.value for d in route.classification.high_stakes.domains],
        "external_data": None,
        "sources": [],
    }
    if lookup is None:
        return ctx
    if lookup.success and lookup.data:
        ctx["external_data"] = lookup.data
        ctx["sources"] = list(lookup.sources_used)
        ctx["verified_at"] = lookup.verified_at.isoformat() if lookup.verified_at else None
    if lookup.disclosure:
        ctx["disclosure"] = lookup.disclosure
    if lookup.degraded:
        ctx["degraded"] = True
        if lookup.verification_path is not None:
            ctx["verification_path"] = lookup.verification_path.to_dict()
        if lookup.internal_answer:
            ctx["internal_answer"] = lookup.internal_answer
    return ctx


class FreshCheckEngine:
    """The main entry point for the FreshCheck engine."""

    def __init__(
        self,
        config: Optional[FreshCheckConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cache_backend: Optional[CacheBackend] = None,
        ambiguous_classifier: Optional[AmbiguousClassifier] = None,
    ):
        self.config = config or FreshCheckConfig()
        runtime = self.config.runtime
        clock = clock or utc_now

        self.classifier = TruthClassifier(
            cache_config=runtime.cache,
            ambiguous_classifier=ambiguous_classifier,
            max_scan_chars=runtime.lookup.max_lookup_query_chars,
        )
        self.cache = FreshnessCache(clock=clock, backend=cache_backend, config=runtime.cache)
        self.client = SourceClient(
            user_agent=self.config.user_agent,
            timeout_s=runtime.lookup.timeout_sec,
            transport=transport,
        )
        self.router = ClaimRouter(self.classifier, runtime.doctrine)
        self.lookup_engine = FreshnessLookupEngine(
            classifier=self.classifier,
            policy=LookupRequirementPolicy(runtime.lookup),
            cache=self.cache,
            selector=SourceSelector(self.config.credential),
            executor=LookupExecutor(
                client=self.client,
                cache=self.cache,
                credentials=self.config.credential,
                config=runtime.lookup,
                features=runtime.features,
                clock=clock,
            ),
            degradation=DegradationHandler(runtime.degradation, clock=clock),
            runtime=runtime,
        )
        self.enforcer = DoctrineEnforcer(runtime.doctrine, clock=clock)
        self.escalation = ReasoningEscalationEnforcer(runtime.doctrine)

        try:
            logger.debug("Effective config: %s", json.dumps(runtime.to_safe_log_dict(), ensure_ascii=False))
        except (TypeError, ValueError):
            pass

    async def aclose(self) -> None:
        await self.client.aclose()

    async def lookup(
        self,
        query: str,
        internal_confidence: float = 0.5,
        internal_answer: Optional[str] = None,
        force_refresh: bool = False,
    ) -> LookupResponse:
        Trace.start(_trace_id(), runtime=self.config.runtime)
        try:
            return await self.lookup_engine.lookup(
                query,
                internal_confidence=internal_confidence,
                internal_answer=internal_answer,
                force_refresh=force_refresh,
            )
        finally:
            Trace.stop()

    def enforce(
        self,
        response: Any,
        metadata: ResponseMetadata | Dict[str, Any] | None,
        mode: Optional[str] = None,
    ) -> Dict[str, Any]:
        outcome = self.enforcer.enforce_all(response, metadata, mode or self.config.default_mode)
        return outcome.contract()

    async def respond(
        self,
        query: str,
        generate: Generator,
        mode: Optional[str] = None,
        internal_confidence: float = 0.5,
    ) -> Dict[str, Any]:
        """
        Full pipeline for one query.

        Route the claim, look up fresh data where the route calls for it, let
        the caller's generator write the answer, then enforce doctrine and
        reasoning escalation on the generated text.

        Returns:
            Dict with `response`, `metadata`, `enforcement`, `escalation` and
            `low_confidence` (the escalation plan for answers below threshold).
        """
        mode = mode or self.config.default_mode
        Trace.start(_trace_id(), runtime=self.config.runtime)
        try:
            if isinstance(query, str):
                query = truncate_query(query, self.config.runtime.lookup.max_query_chars)
            route = self.router.route(query, mode)
            Trace.event("engine.respond.routed", {
                "claim_type": route.claim_type.value,
                "hierarchy": route.hierarchy_name.value,
                "external_lookup_required": route.external_lookup_required,
            })

            lookup: Optional[LookupResponse] = None
            if route.external_lookup_required:
                lookup = await self.lookup_engine.lookup(
                    query,
                    internal_confidence=internal_confidence,
                    classification=route.classification,
                )

            metadata = self._metadata(route, lookup, internal_confidence)
            plan = self._plan_low_confidence(query, route, metadata)
            context = build_generation_context(route, lookup)
            if plan.action == LowConfidenceAction.ESCALATE:
                context["low_confidence"] = plan.to_dict()
            text = await generate(query, context)
            text = text if isinstance(text, str) else str(text or "")

            enforcement = self.enforcer.enforce_all(text, metadata, mode)
            final = enforcement.corrected_response or text

            bounded = requires_bounded_reasoning(metadata, query, self.config.runtime.doctrine)
            escalation = self.escalation.enforce(final, bounded.required, {"reason": bounded.reason})
            final = escalation.corrected_response or final

            Trace.event("engine.respond.done", {
                "enforcement_passed": enforcement.enforcement_passed,
                "escalation_passed": escalation.passed,
                "response_len": len(final),
            })
            return {
                "response": final,
                "metadata": metadata.to_dict(),
                "enforcement": enforcement.contract(),
                "escalation": escalation.to_dict(),
                "low_confidence": plan.to_dict(),
            }
        except Exception as e:
            logger.exception("[Engine] respond failed")
            return {
                "response": SAFE_FALLBACK_RESPONSE,
                "metadata": ResponseMetadata(degraded=True, confidence=0.0).to_dict(),
                "enforcement": None,
                "escalation": None,
                "low_confidence": None,
                "error": str(e),
            }
        finally:
            Trace.stop()

    @staticmethod
    def _metadata(
        route: RouteDecision,
        lookup: Optional[LookupResponse],
        internal_confidence: float,
    ) -> ResponseMetadata:
        classification = route.classification
        meta = ResponseMetadata(
            confidence=internal_confidence,
            truth_type=classification.type,
            source_class=SourceClass.INTERNAL,
            claim_type=route.claim_type,
            hierarchy_name=route.hierarchy_name,
            high_stakes=[d.value for d in classification.high_stakes.domains],
        )
        if lookup is None:
            return meta

        verified = lookup.success and lookup.source_class == SourceClass.EXTERNAL
        return meta.model_copy(update={
            "confidence": lookup.confidence if verified else internal_confidence,
            "source_class": lookup.source_class or SourceClass.INTERNAL,
            "verified_at": lookup.verified_at if verified else None,
            "cache_valid_until": lookup.cache_valid_until,
            "external_lookup": verified,
            "lookup_attempted": lookup.lookup_performed or lookup.degraded,
            "degraded": lookup.degraded,
            "sources_used": len(lookup.sources_used),
        })

    def _plan_low_confidence(
        self,
        query: str,
        route: RouteDecision,
        metadata: ResponseMetadata,
    ) -> LowConfidencePlan:
        head = query[: self.classifier.max_scan_chars] if isinstance(query, str) else ""
        return handle_low_confidence(metadata.confidence, {
            "truth_type": metadata.truth_type,
            "has_proper_nouns": has_proper_nouns(head),
            "has_news_intent": has_news_intent(head),
            "lookup_performed": metadata.lookup_attempted,
            "query": head,
            "claim_confidence": route.claim_confidence,
        })
