"""
careerhub/features/generation/pipeline.py

One generation call, start to finish:

    cache (practice questions) -> gate -> prompt -> provider -> parse -> commit
    (provider or parse failure)                  -> fallback -> persist

Insufficient credits and storage failures propagate to the caller. Provider
and parse failures are answered with a deterministic fallback that is stored
but never charged.
"""

from typing import Optional

from careerhub.core.errors import (
    GenerationError,
    InsufficientCreditsError,
    ProviderError,
)
from careerhub.core.logging import log_event
from careerhub.core.metrics import (
    entitlement_rejections_total,
    fallback_served_total,
    generation_in_flight,
    generation_requests_total,
    provider_tokens_total,
)
from careerhub.core.tracing import annotate, start_span
from careerhub.features.artifacts.service import get_artifact
from careerhub.features.credits.service import can_use_feature
from careerhub.features.generation.client import Completion, GenerationClient
from careerhub.features.generation.fallbacks import generate_fallback
from careerhub.features.generation.ledger import commit_generation, persist_fallback
from careerhub.features.generation.parser import parse_result
from careerhub.features.generation.postprocess import finalize_result
from careerhub.features.generation.prompts import GENERATION_PARAMS, build_prompt, system_prompt
from careerhub.models.generation import (
    RESULT_MODELS,
    FeatureKey,
    GenerationOutcome,
    GenerationRequest,
)


CACHED_FEATURES = {FeatureKey.PRACTICE_QUESTIONS}


class GenerationPipeline:
    def __init__(self, client: GenerationClient):
        self.client = client

    def run(self, request: GenerationRequest) -> GenerationOutcome:
        """
        Execute one generation request.

        Raises:
            InsufficientCreditsError: rejected by the gate, or the race was lost at commit
            PersistenceError: the result could not be stored; nothing was charged
        """
        feature = request.feature_key
        labels = {"feature": feature.value}
        generation_in_flight.inc(labels=labels)
        try:
            with start_span("generation.run", {"feature_key": feature.value, "user_id": request.principal_id}) as span:
                outcome = self._run(request)
                annotate(span, {
                    "generation.source": outcome.source,
                    "generation.cached": outcome.cached,
                    "generation.fallback_reason": outcome.fallback_reason,
                    "generation.tokens_used": outcome.tokens_used,
                })
                return outcome
        finally:
            generation_in_flight.dec(labels=labels)

    def _run(self, request: GenerationRequest) -> GenerationOutcome:
        cached = self._lookup_cache(request)
        if cached is not None:
            return cached

        self._gate(request)

        try:
            completion = self._generate(request)
            result = parse_result(request.feature_key, completion.text)
        except (ProviderError, GenerationError) as e:
            return self._serve_fallback(request, e)

        return self._commit(request, result, completion)

    def _lookup_cache(self, request: GenerationRequest) -> Optional[GenerationOutcome]:
        feature = request.feature_key
        if feature not in CACHED_FEATURES:
            return None

        record = get_artifact(request.principal_id, feature.value, request.payload.cache_key(), source="ai")
        if record is None:
            return None

        count = request.payload.count
        if len(record.payload.get("questions") or []) < count:
            return None

        stored = RESULT_MODELS[feature].model_validate({**record.payload, "feature_key": feature.value})
        result = stored.model_copy(update={"questions": stored.questions[:count]})
        generation_requests_total.inc(labels={"feature": feature.value, "source": "cache"})
        log_event(
            "info",
            "generation.cache_hit",
            user_id=request.principal_id,
            feature_key=feature.value,
            event_type="cache_hit",
            extra={"artifact_id": record.id},
        )
        return GenerationOutcome(
            feature_key=feature,
            result=result,
            source="ai",
            is_fallback=False,
            artifact_id=record.id,
            tokens_used=0,
            model=record.model,
            cached=True,
        )

    def _gate(self, request: GenerationRequest) -> None:
        feature = request.feature_key
        with start_span("generation.gate", {"feature_key": feature.value}):
            check = can_use_feature(request.principal_id, feature)
        if check.can_use:
            return

        entitlement_rejections_total.inc(labels={"feature": feature.value, "stage": "gate"})
        log_event(
            "warning",
            "generation.rejected",
            user_id=request.principal_id,
            feature_key=feature.value,
            event_type="gate",
            error_code=InsufficientCreditsError.code,
            extra={"reason": check.reason},
        )
        raise InsufficientCreditsError(
            check.reason,
            feature_key=feature.value,
            credits_required=check.credits_required,
            credits_available=check.credits_available,
            usage_count=check.usage_count,
            usage_limit=check.usage_limit,
        )

    def _generate(self, request: GenerationRequest) -> Completion:
        feature = request.feature_key
        params = GENERATION_PARAMS[feature]
        prompt = build_prompt(feature, request.payload)
        with start_span("generation.provider", {"feature_key": feature.value}):
            completion = self.client.complete(
                prompt,
                system=system_prompt(feature),
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                json_mode=params.json_mode,
                top_p=params.top_p,
            )
        provider_tokens_total.inc(labels={"feature": feature.value}, amount=completion.tokens_used)
        return completion

    def _commit(self, request: GenerationRequest, result, completion: Completion) -> GenerationOutcome:
        feature = request.feature_key
        result = finalize_result(feature, result, request.payload)
        try:
            with start_span("generation.commit", {"feature_key": feature.value}):
                committed = commit_generation(
                    request.principal_id,
                    feature.value,
                    result,
                    cache_key=request.payload.cache_key(),
                    model=completion.model,
                    tokens_used=completion.tokens_used,
                    input_snapshot=request.payload.model_dump(mode="json"),
                )
        except InsufficientCreditsError:
            entitlement_rejections_total.inc(labels={"feature": feature.value, "stage": "commit"})
            raise

        generation_requests_total.inc(labels={"feature": feature.value, "source": "ai"})
        log_event(
            "info",
            "generation.completed",
            user_id=request.principal_id,
            feature_key=feature.value,
            event_type="generation",
            extra={
                "source": "ai",
                "attempt": completion.attempts,
                "tokens_used": completion.tokens_used,
                "artifact_id": committed.artifact_id,
            },
        )
        return GenerationOutcome(
            feature_key=feature,
            result=result,
            source="ai",
            is_fallback=False,
            artifact_id=committed.artifact_id,
            transaction_id=committed.deduction.transaction_id,
            new_balance=committed.deduction.new_balance,
            tokens_used=completion.tokens_used,
            model=completion.model,
        )

    def _serve_fallback(self, request: GenerationRequest, exc: Exception) -> GenerationOutcome:
        feature = request.feature_key
        reason = getattr(exc, "code", type(exc).__name__)
        log_event(
            "warning",
            "generation.fallback",
            user_id=request.principal_id,
            feature_key=feature.value,
            event_type="fallback",
            error_code=reason,
            extra={"error": str(exc)},
        )

        result = finalize_result(feature, generate_fallback(feature, request.payload), request.payload)
        committed = persist_fallback(
            request.principal_id,
            feature.value,
            result,
            cache_key=request.payload.cache_key(),
            input_snapshot=request.payload.model_dump(mode="json"),
            reason=reason,
        )

        fallback_served_total.inc(labels={"feature": feature.value, "reason": reason})
        generation_requests_total.inc(labels={"feature": feature.value, "source": "fallback"})
        return GenerationOutcome(
            feature_key=feature,
            result=result,
            source="fallback",
            is_fallback=True,
            fallback_reason=reason,
            artifact_id=committed.artifact_id,
        )
