"""Tiered URL scan service: edge ensemble, remote escalation, local fallback."""

from __future__ import annotations

from collections.abc import Generator
import logging
import time
from typing import Any, Callable

from phish_url_detection_engine.core.errors import (
    AuthError,
    BackendUnavailableError,
    InvalidInputError,
)
from phish_url_detection_engine.domain.scan import (
    EdgePrediction,
    ReputationHit,
    ScanResult,
    ScanTier,
)
from phish_url_detection_engine.domain.url.extract import url_domain, validate_url
from phish_url_detection_engine.domain.url.models import DomFeatures
from phish_url_detection_engine.infra.cache import DictCache
from phish_url_detection_engine.infra.reputation import ReputationLookup
from phish_url_detection_engine.orchestrator.ensemble import BLACKLIST_PROBABILITY, EnsemblePredictor
from phish_url_detection_engine.orchestrator.indicators import (
    indicators_from_flags,
    indicators_from_pattern,
    indicators_from_reputation,
)
from phish_url_detection_engine.orchestrator.policy import ConfidenceRouter
from phish_url_detection_engine.orchestrator.retry import RetryPolicy, call_with_retry
from phish_url_detection_engine.orchestrator.tracing import TraceEvent, final_event, make_event
from phish_url_detection_engine.orchestrator.verdict_routing import (
    confidence_interval,
    decide_action,
    risk_level,
    risk_score,
    verdict_from_probability,
)
from phish_url_detection_engine.providers.scanner_api import RemoteScanner, normalize_remote_result
from phish_url_detection_engine.tools.features.lexical import build_features
from phish_url_detection_engine.tools.intel.pattern_matcher import PatternMatcher

logger = logging.getLogger(__name__)

LOCAL_FALLBACK_CONFIDENCE = 0.75
ERROR_PROBABILITY = 0.5
THREAT_TYPE_THRESHOLD = 0.5

# Remote modes tried, in order, once escalation reaches a tier.
_AUTO_CHAIN = {
    ScanTier.HYBRID: ("hybrid", "deep", "legacy_deep"),
    ScanTier.DEEP: ("deep", "legacy_deep"),
}
_FORCED_CHAIN = {
    ScanTier.HYBRID: ("hybrid",),
    ScanTier.DEEP: ("deep", "legacy_deep"),
}
_MODE_SCAN_TYPE = {"hybrid": "hybrid", "deep": "deep", "legacy_deep": "deep"}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000.0, 3)


def _threat_type(probability: float) -> str | None:
    return "phishing" if probability > THREAT_TYPE_THRESHOLD else None


class ScanService:
    """Runs one URL through the fallback chain and always produces a result.

    The only exception that escapes ``scan``/``scan_stream`` is ``AuthError``
    from the remote scanner.
    """

    def __init__(
        self,
        predictor: EnsemblePredictor,
        *,
        remote: RemoteScanner | None = None,
        reputation: ReputationLookup | None = None,
        router: ConfidenceRouter | None = None,
        retry_policy: RetryPolicy | None = None,
        pattern_matcher: PatternMatcher | None = None,
        cache: DictCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.predictor = predictor
        self.remote = remote
        self.reputation = reputation
        self.router = router or ConfidenceRouter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.pattern_matcher = pattern_matcher or predictor.pattern_matcher
        self.cache = cache
        self._sleep = sleep

    def _event(self, stage: str, status: str, message: str, data: dict[str, Any] | None = None) -> TraceEvent:
        return make_event(stage=stage, status=status, message=message, data=data)

    # Result builders

    def error_result(self, url: str, message: str, started: float | None = None) -> ScanResult:
        thresholds = self.router.thresholds
        return ScanResult(
            url=url,
            verdict="UNKNOWN",
            risk_level=risk_level(ERROR_PROBABILITY),
            probability=ERROR_PROBABILITY,
            risk_score=risk_score(ERROR_PROBABILITY),
            confidence=0.0,
            confidence_interval=confidence_interval(ERROR_PROBABILITY, 0.0),
            decision=decide_action(
                ERROR_PROBABILITY,
                0.0,
                high_confidence=thresholds.high,
                medium_confidence=thresholds.medium,
            ),
            reasoning=[f"Error: {message}"],
            scan_type="edge",
            latency_ms=_elapsed_ms(started) if started is not None else 0.0,
        )

    def _result_from_probability(
        self,
        url: str,
        probability: float,
        confidence: float,
        *,
        reputation: ReputationHit | None,
        reasoning: list[str],
        indicators: list,
        started: float,
    ) -> ScanResult:
        thresholds = self.router.thresholds
        return ScanResult(
            url=url,
            verdict=verdict_from_probability(probability, reputation),
            risk_level=risk_level(probability),
            probability=round(probability, 4),
            risk_score=risk_score(probability),
            confidence=round(confidence, 4),
            confidence_interval=confidence_interval(probability, confidence),
            decision=decide_action(
                probability,
                confidence,
                reputation,
                high_confidence=thresholds.high,
                medium_confidence=thresholds.medium,
            ),
            reasoning=reasoning,
            indicators=indicators,
            threat_type=_threat_type(probability),
            scan_type="edge",
            latency_ms=_elapsed_ms(started),
        )

    def edge_result(self, url: str, edge: EdgePrediction, notes: list[str], started: float) -> ScanResult:
        indicators = indicators_from_reputation(edge.reputation)
        indicators.extend(indicators_from_flags(edge.pattern_flags, url_domain(url)))
        return self._result_from_probability(
            url,
            edge.probability,
            edge.confidence,
            reputation=edge.reputation,
            reasoning=[*edge.reasoning, *notes],
            indicators=indicators,
            started=started,
        )

    def remote_result(
        self,
        remote: ScanResult,
        reputation: ReputationHit | None,
        notes: list[str],
        started: float,
    ) -> ScanResult:
        """Merge a remote verdict with local reputation; a blacklist hit always blocks."""

        update: dict[str, Any] = {
            "reasoning": [*remote.reasoning, *notes],
            "indicators": indicators_from_reputation(reputation) + list(remote.indicators),
            "threat_type": remote.threat_type or _threat_type(remote.probability),
            "latency_ms": _elapsed_ms(started),
        }
        if reputation is not None and (reputation.is_blacklisted or reputation.is_whitelisted):
            probability = remote.probability
            if reputation.is_blacklisted:
                probability = max(probability, BLACKLIST_PROBABILITY)
                update["reasoning"].insert(0, f"Reputation: BLACKLISTED (source: {reputation.source})")
                update["threat_type"] = remote.threat_type or "phishing"
            thresholds = self.router.thresholds
            update.update(
                probability=round(probability, 4),
                risk_level=risk_level(probability),
                risk_score=risk_score(probability),
                confidence_interval=confidence_interval(probability, remote.confidence),
                verdict=verdict_from_probability(probability, reputation),
                decision=decide_action(
                    probability,
                    remote.confidence,
                    reputation,
                    high_confidence=thresholds.high,
                    medium_confidence=thresholds.medium,
                ),
            )
        return remote.model_copy(update=update)

    def local_result(
        self,
        url: str,
        reputation: ReputationHit | None,
        notes: list[str],
        started: float,
    ) -> ScanResult:
        """Rule-based verdict with no I/O; the terminal step of the chain."""

        pattern = self.pattern_matcher.analyze(url)
        indicators = indicators_from_reputation(reputation)
        indicators.extend(indicators_from_pattern(pattern, url_domain(url)))
        reasoning = ["Local heuristic analysis (inference backends unavailable)", *pattern.reasoning, *notes]
        return self._result_from_probability(
            url,
            pattern.score,
            LOCAL_FALLBACK_CONFIDENCE,
            reputation=reputation,
            reasoning=reasoning,
            indicators=indicators,
            started=started,
        )

    # Chain steps

    def _lookup_reputation(self, url: str) -> ReputationHit | None:
        if self.reputation is None:
            return None
        try:
            return self.reputation.lookup(url)
        except Exception as exc:  # noqa: BLE001 - reputation is advisory
            logger.warning("Reputation lookup failed for %s: %s", url, exc)
            return None

    def _remote_scan(self, url: str, mode: str, started: float) -> ScanResult:
        if self.remote is None:
            raise BackendUnavailableError("remote scanner not configured", backend=mode)
        payload = call_with_retry(
            lambda: self.remote.scan(url, mode),
            self.retry_policy,
            sleep=self._sleep,
            label=f"{mode} scan",
        )
        thresholds = self.router.thresholds
        return normalize_remote_result(
            payload,
            url=url,
            scan_type=_MODE_SCAN_TYPE[mode],
            high_confidence=thresholds.high,
            medium_confidence=thresholds.medium,
            latency_ms=_elapsed_ms(started),
        )

    def _run_remote_chain(
        self,
        url: str,
        modes: tuple[str, ...],
        trail: list[str],
        started: float,
        *,
        escalate: bool,
    ) -> Generator[TraceEvent, None, ScanResult | None]:
        best: ScanResult | None = None
        index = 0
        while index < len(modes):
            mode = modes[index]
            yield self._event(mode, "running", f"Requesting {mode} scan.")
            try:
                result = self._remote_scan(url, mode, started)
            except AuthError:
                raise
            except BackendUnavailableError as exc:
                trail.append(f"{mode} scan unavailable: {exc}")
                yield self._event(mode, "skipped", str(exc))
                index += 1
                continue
            except Exception as exc:  # noqa: BLE001 - every remote failure degrades to the next step
                logger.warning("%s scan failed for %s: %s", mode, url, exc)
                trail.append(f"{mode} scan failed: {type(exc).__name__}")
                yield self._event(mode, "error", f"{type(exc).__name__}: {exc}")
                index += 1
                continue

            best = result
            yield self._event(mode, "done", f"{mode} scan verdict {result.verdict}.", {"confidence": result.confidence})
            if not escalate or mode != "hybrid":
                break
            target = self.router.route(ScanTier.HYBRID, result.confidence, trail)
            if target is ScanTier.HYBRID:
                break
            logger.info("Escalating %s from hybrid to deep (confidence %.2f)", url, result.confidence)
            index += 1
        return best

    def scan_stream(
        self,
        url: str,
        requested_tier: ScanTier | str | None = None,
        *,
        dom: DomFeatures | None = None,
    ) -> Generator[TraceEvent, None, None]:
        started = time.perf_counter()
        try:
            canonical = validate_url(url)
        except InvalidInputError as exc:
            yield self._event("validate", "error", str(exc))
            yield final_event(self.error_result(str(url or ""), str(exc), started))
            return
        try:
            if isinstance(requested_tier, ScanTier) or not requested_tier:
                forced = requested_tier or None
            else:
                forced = ScanTier.from_scan_type(requested_tier)
        except ValueError as exc:
            yield self._event("validate", "error", str(exc))
            yield final_event(self.error_result(canonical, str(exc), started))
            return
        yield self._event("validate", "done", "URL accepted.", {"url": canonical})

        cache_key = f"{canonical}|{forced.value if forced else 'auto'}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if isinstance(cached, ScanResult):
                yield self._event("cache", "hit", "Returning cached result.")
                yield final_event(cached.model_copy(deep=True, update={"cached": True}))
                return

        reputation = self._lookup_reputation(canonical)
        if reputation is not None:
            yield self._event(
                "reputation",
                "hit",
                f"Reputation source {reputation.source}.",
                {"whitelisted": reputation.is_whitelisted, "blacklisted": reputation.is_blacklisted},
            )

        result = yield from self._scan_tiers(canonical, forced, reputation, dom, started)
        if self.cache is not None:
            self.cache.set(cache_key, result.model_copy(deep=True))
        yield final_event(result)

    def _scan_tiers(
        self,
        url: str,
        forced: ScanTier | None,
        reputation: ReputationHit | None,
        dom: DomFeatures | None,
        started: float,
    ) -> Generator[TraceEvent, None, ScanResult]:
        trail: list[str] = []
        if forced is ScanTier.LOCAL_FALLBACK:
            yield self._event("fallback", "done", "Local heuristic requested.")
            return self.local_result(url, reputation, trail, started)

        edge: EdgePrediction | None = None
        target = forced or ScanTier.EDGE_ONLY
        if forced in (None, ScanTier.EDGE_ONLY):
            yield self._event("edge", "running", "Running edge ensemble.")
            try:
                edge = self.predictor.predict(build_features(url, reputation=reputation, dom=dom))
            except Exception as exc:  # noqa: BLE001 - edge failure degrades to later tiers
                logger.warning("Edge inference failed for %s: %s", url, exc)
                trail.append(f"Edge inference failed: {type(exc).__name__}")
                yield self._event("edge", "error", f"{type(exc).__name__}: {exc}")
            else:
                yield self._event(
                    "edge",
                    "done",
                    "Edge prediction ready.",
                    {"probability": edge.probability, "confidence": edge.confidence},
                )
            if forced is ScanTier.EDGE_ONLY:
                if edge is not None:
                    return self.edge_result(url, edge, trail, started)
                yield self._event("fallback", "done", "Using local heuristic.")
                return self.local_result(url, reputation, trail, started)
            target = self.router.route(ScanTier.EDGE_ONLY, edge.confidence, trail) if edge else ScanTier.DEEP
            if target is not ScanTier.EDGE_ONLY:
                logger.info("Escalating %s to %s", url, target.value)
            yield self._event("route", "done", f"Selected tier {target.value}.", {"tier": target.value})
            if target is ScanTier.EDGE_ONLY and edge is not None:
                return self.edge_result(url, edge, trail, started)

        chain = (_FORCED_CHAIN if forced else _AUTO_CHAIN)[target]
        remote = yield from self._run_remote_chain(url, chain, trail, started, escalate=forced is None)
        if remote is not None:
            return self.remote_result(remote, reputation, trail, started)
        if edge is not None:
            trail.append("Remote analysis unavailable - keeping edge prediction")
            yield self._event("fallback", "done", "Keeping edge prediction.")
            return self.edge_result(url, edge, trail, started)
        yield self._event("fallback", "done", "Using local heuristic.")
        return self.local_result(url, reputation, trail, started)

    def scan(
        self,
        url: str,
        requested_tier: ScanTier | str | None = None,
        *,
        dom: DomFeatures | None = None,
    ) -> ScanResult:
        final: ScanResult | None = None
        for event in self.scan_stream(url, requested_tier, dom=dom):
            if event.get("type") == "final" and isinstance(event.get("result"), ScanResult):
                final = event["result"]
        if final is not None:
            return final
        return self.error_result(str(url or ""), "scan produced no result")

    def close(self) -> None:
        self.predictor.close()

