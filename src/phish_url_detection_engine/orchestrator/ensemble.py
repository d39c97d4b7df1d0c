"""Edge ensemble predictor.

Runs every registered backend concurrently next to the deterministic pattern
matcher, fuses whatever answered in time and blends the fused ML signal with
the pattern score. Authoritative reputation hits short-circuit the whole
ensemble. Backend failures are data (tagged outcomes), never exceptions.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
import logging
import time

from phish_url_detection_engine.backends.base import Backend, BackendRegistry
from phish_url_detection_engine.domain.scan import (
    BackendOutcome,
    EdgePrediction,
    ModelPrediction,
    ReputationHit,
    UrlFeatures,
)
from phish_url_detection_engine.orchestrator.fusion import EnsembleWeights, FusedPrediction, fuse_predictions
from phish_url_detection_engine.tools.intel.pattern_matcher import PatternMatcher, PatternMatchResult
from phish_url_detection_engine.tools.text.tokenizer import EncodedInput, WordPieceTokenizer

logger = logging.getLogger(__name__)

WHITELIST_PROBABILITY = 0.05
BLACKLIST_PROBABILITY = 0.95
REPUTATION_CONFIDENCE = 0.99
CREDENTIAL_STUFFING_SCORE = 0.85
CREDENTIAL_STUFFING_FLOOR = 0.95
ML_UNAVAILABLE_NOTE = "ML models unavailable - using pattern matching (edge-only)"


@dataclass(frozen=True)
class EnsemblePolicy:
    ml_weight: float = 0.70
    pattern_weight: float = 0.30
    ml_confidence_floor: float = 0.70
    pattern_confidence_floor: float = 0.50
    # Share of the blended confidence taken from the fused ML confidence.
    ml_confidence_share: float = 0.60
    fast_timeout_s: float = 5.0
    transformer_timeout_s: float = 30.0
    reasoning_limit: int = 12
    pattern_reason_limit: int = 3

    def timeout_for(self, backend: Backend) -> float:
        if getattr(backend, "kind", "fast") == "transformer":
            return self.transformer_timeout_s
        return self.fast_timeout_s


def reputation_prediction(hit: ReputationHit, started: float) -> EdgePrediction | None:
    """Authoritative verdict for allow/block list hits; a blacklist entry overrides the whitelist."""

    if hit.is_whitelisted and not hit.is_blacklisted:
        return EdgePrediction(
            probability=WHITELIST_PROBABILITY,
            confidence=REPUTATION_CONFIDENCE,
            reasoning=[f"Reputation: WHITELISTED (source: {hit.source})"],
            reputation=hit,
            latency_ms=_elapsed_ms(started),
        )
    if hit.is_blacklisted:
        severity = hit.severity or "unknown"
        return EdgePrediction(
            probability=BLACKLIST_PROBABILITY,
            confidence=REPUTATION_CONFIDENCE,
            reasoning=[f"Reputation: BLACKLISTED (source: {hit.source}, severity: {severity})"],
            reputation=hit,
            latency_ms=_elapsed_ms(started),
        )
    return None


def feature_observations(features: UrlFeatures) -> list[str]:
    lex = features.lexical
    notes: list[str] = []
    if lex.has_ip_address:
        notes.append("URL uses IP address instead of domain")
    if not lex.is_https:
        notes.append("No HTTPS encryption")
    if lex.suspicious_keywords > 2:
        notes.append(f"{lex.suspicious_keywords} suspicious keywords detected")
    if lex.tld_risk > 0.7:
        notes.append(f"High-risk TLD: .{lex.tld}")
    if lex.entropy > 4.5:
        notes.append("High URL entropy (possible random generation)")
    if lex.subdomain_count > 3:
        notes.append(f"Excessive subdomains: {lex.subdomain_count}")
    dom = features.dom
    if dom is not None:
        if dom.has_login_form and dom.form_target_external:
            notes.append("Login form with external target (credential harvesting risk)")
        if dom.obfuscated_scripts:
            notes.append("Obfuscated JavaScript detected")
        if dom.hidden_iframe_count > 0:
            notes.append(f"{dom.hidden_iframe_count} hidden iframes detected")
    return notes


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


def _outcome_line(outcome: BackendOutcome) -> str:
    if outcome.ok and outcome.prediction is not None:
        return f"{outcome.name}: {outcome.prediction.probability * 100:.1f}% phishing risk"
    return f"{outcome.name}: {outcome.status} ({outcome.error})" if outcome.error else f"{outcome.name}: {outcome.status}"


class EnsemblePredictor:
    def __init__(
        self,
        registry: BackendRegistry,
        *,
        tokenizer: WordPieceTokenizer | None = None,
        pattern_matcher: PatternMatcher | None = None,
        policy: EnsemblePolicy | None = None,
        weights: EnsembleWeights | None = None,
    ) -> None:
        self.registry = registry
        self.tokenizer = tokenizer or WordPieceTokenizer()
        self.pattern_matcher = pattern_matcher or PatternMatcher()
        self.policy = policy or EnsemblePolicy()
        self.weights = weights or EnsembleWeights(weights=registry.weights())
    def close(self) -> None:
        """Release backend resources (HTTP sessions, loaded models) where a backend holds any."""

        for backend in self.registry.backends():
            closer = getattr(backend, "close", None)
            if callable(closer):
                closer()

    def run_backends(self, encoded: EncodedInput, features: UrlFeatures) -> list[BackendOutcome]:
        """Fire all backends, then collect each against its own deadline."""

        backends = self.registry.backends()
        if not backends:
            return []
        # One worker per backend, owned by this call: a backend that hangs past
        # its deadline keeps only its own thread and never delays another scan.
        pool = ThreadPoolExecutor(max_workers=len(backends), thread_name_prefix="edge-backend")
        try:
            pending: list[tuple[Backend, Future[ModelPrediction], float]] = []
            for backend in backends:
                deadline = time.monotonic() + self.policy.timeout_for(backend)
                pending.append((backend, pool.submit(backend.predict, encoded, features), deadline))
            return [self._collect(backend, future, deadline) for backend, future, deadline in pending]
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _collect(self, backend: Backend, future: Future[ModelPrediction], deadline: float) -> BackendOutcome:
        try:
            prediction = future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            future.cancel()
            logger.warning("Backend %s missed its %.1fs deadline", backend.name, self.policy.timeout_for(backend))
            return BackendOutcome(name=backend.name, status="timeout", error="deadline exceeded")
        except Exception as exc:  # noqa: BLE001 - backend failures become tagged outcomes
            logger.warning("Backend %s failed: %s", backend.name, exc)
            return BackendOutcome(name=backend.name, status="error", error=f"{type(exc).__name__}: {exc}")
        if not isinstance(prediction, ModelPrediction):
            return BackendOutcome(name=backend.name, status="error", error="invalid prediction payload")
        return BackendOutcome(name=backend.name, status="success", prediction=prediction)

    def blend(
        self,
        fused: FusedPrediction | None,
        pattern: PatternMatchResult,
    ) -> tuple[float, float]:
        active = self.policy
        if fused is not None:
            total = active.ml_weight + active.pattern_weight
            if total <= 0:
                total = 1.0
            probability = (fused.probability * active.ml_weight + pattern.score * active.pattern_weight) / total
            share = max(0.0, min(1.0, active.ml_confidence_share))
            confidence = fused.confidence * share + pattern.confidence * (1.0 - share)
            confidence = max(confidence, active.ml_confidence_floor)
        else:
            probability = pattern.score
            confidence = max(pattern.confidence, active.pattern_confidence_floor)
        if pattern.score >= CREDENTIAL_STUFFING_SCORE and pattern.has_flag("credential_stuffing"):
            probability = max(probability, CREDENTIAL_STUFFING_FLOOR)
            confidence = max(confidence, CREDENTIAL_STUFFING_FLOOR)
        return max(0.0, min(1.0, probability)), max(0.0, min(1.0, confidence))

    def predict(self, features: UrlFeatures) -> EdgePrediction:
        started = time.perf_counter()
        if features.reputation is not None:
            short_circuit = reputation_prediction(features.reputation, started)
            if short_circuit is not None:
                return short_circuit

        encoded = self.tokenizer.encode(features.url)
        pattern = self.pattern_matcher.analyze(features.url)
        outcomes = self.run_backends(encoded, features)
        successes = {item.name: item.prediction for item in outcomes if item.ok and item.prediction is not None}
        fused = fuse_predictions(successes, self.weights, expected_backends=len(outcomes) or None)
        probability, confidence = self.blend(fused, pattern)

        reasoning: list[str] = []
        if fused is None:
            reasoning.append(ML_UNAVAILABLE_NOTE)
        reasoning.extend(pattern.reasoning[: self.policy.pattern_reason_limit])
        reasoning.extend(_outcome_line(item) for item in outcomes)
        if fused is not None:
            reasoning.append(f"ML ensemble: {fused.probability * 100:.1f}% phishing risk")
        for note in feature_observations(features):
            if note not in reasoning:
                reasoning.append(note)

        return EdgePrediction(
            probability=round(probability, 4),
            confidence=round(confidence, 4),
            per_model=successes,
            reasoning=reasoning[: self.policy.reasoning_limit],
            pattern_flags=list(pattern.flags),
            reputation=features.reputation,
            latency_ms=_elapsed_ms(started),
        )
