"""HTTP client for the remote hybrid/deep scanner service."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Mapping, Protocol

import requests

from phish_url_detection_engine.core.errors import (
    AuthError,
    BackendUnavailableError,
    NetworkError,
    RemoteScanError,
)
from phish_url_detection_engine.domain.scan import RISK_LEVEL_ORDER, ScanResult, ThreatIndicator
from phish_url_detection_engine.orchestrator.verdict_routing import (
    confidence_interval,
    decide_action,
    risk_level,
    risk_score,
    verdict_from_probability,
)

logger = logging.getLogger(__name__)

REMOTE_MODES = ("hybrid", "deep", "legacy_deep")
_VERDICTS = {"SAFE", "SUSPICIOUS", "DANGEROUS", "UNKNOWN"}
_DECISIONS = {"ALLOW", "WARN", "BLOCK"}
_SEVERITIES = {"low", "medium", "high", "critical"}


class RemoteScanner(Protocol):
    def scan(self, url: str, mode: str) -> dict[str, Any]: ...


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _as_probability(raw: Any) -> float | None:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value > 1.0:
        value = value / 100.0
    return max(0.0, min(1.0, value))


def _as_indicators(raw: Any) -> list[ThreatIndicator]:
    indicators: list[ThreatIndicator] = []
    if not isinstance(raw, list):
        return indicators
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        kind = str(item.get("type", "")).strip()
        if not kind:
            continue
        severity = str(item.get("severity", "medium")).strip().lower()
        indicators.append(
            ThreatIndicator(
                type=kind,
                value=str(item.get("value", "")),
                severity=severity if severity in _SEVERITIES else "medium",
                description=str(item.get("description", "")),
            )
        )
    return indicators


def normalize_remote_result(
    payload: Mapping[str, Any],
    *,
    url: str,
    scan_type: str,
    high_confidence: float = 0.90,
    medium_confidence: float = 0.70,
    latency_ms: float = 0.0,
) -> ScanResult:
    """Coerce a scanner response (camelCase or snake_case) into ``ScanResult``.

    Fields the service omits are derived locally from the risk probability.
    """

    body = payload.get("result") if isinstance(payload.get("result"), Mapping) else payload
    if not isinstance(body, Mapping):
        raise RemoteScanError("scanner response is not an object")
    probability = _as_probability(_pick(body, "probability", "riskScore", "risk_score"))
    if probability is None:
        raise RemoteScanError("scanner response has no risk score")
    confidence = _as_probability(_pick(body, "confidence"))
    if confidence is None:
        confidence = medium_confidence

    verdict = str(_pick(body, "verdict") or "").upper()
    if verdict not in _VERDICTS:
        verdict = verdict_from_probability(probability)
    level = str(_pick(body, "riskLevel", "risk_level") or "").upper()
    if level not in RISK_LEVEL_ORDER:
        level = risk_level(probability)
    decision = str(_pick(body, "decision") or "").upper()
    if decision not in _DECISIONS:
        decision = decide_action(
            probability,
            confidence,
            high_confidence=high_confidence,
            medium_confidence=medium_confidence,
        )
    reasoning = _pick(body, "reasoning")
    remote_latency = _pick(body, "latency", "latency_ms")
    try:
        latency = float(remote_latency) if remote_latency is not None else latency_ms
    except (TypeError, ValueError):
        latency = latency_ms
    threat_type = _pick(body, "threatType", "threat_type")
    return ScanResult(
        url=str(_pick(body, "url") or url),
        verdict=verdict,
        risk_level=level,
        probability=round(probability, 4),
        risk_score=risk_score(probability),
        confidence=round(confidence, 4),
        confidence_interval=confidence_interval(probability, confidence),
        decision=decision,
        reasoning=[str(item) for item in reasoning] if isinstance(reasoning, list) else [],
        indicators=_as_indicators(_pick(body, "indicators")),
        threat_type=str(threat_type) if threat_type else None,
        scan_type=scan_type,
        latency_ms=max(0.0, latency),
    )


class ScannerApiClient:
    """Thin ``requests`` wrapper; one call per invocation, retries are the caller's job."""

    def __init__(
        self,
        base_url: str | None,
        *,
        hybrid_path: str = "/scanner/hybrid",
        deep_path: str = "/scanner/deep",
        legacy_deep_url: str | None = None,
        api_token_env: str = "PHISH_URL_ENGINE_API_TOKEN",
        timeout_s: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.hybrid_path = hybrid_path
        self.deep_path = deep_path
        self.legacy_deep_url = legacy_deep_url or ""
        self.api_token_env = api_token_env
        self.timeout_s = timeout_s
        self._session = session or requests.Session()

    def endpoint_for(self, mode: str) -> str:
        if mode == "legacy_deep":
            return self.legacy_deep_url
        if not self.base_url:
            return ""
        path = self.hybrid_path if mode == "hybrid" else self.deep_path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request_body(self, url: str, mode: str) -> dict[str, Any]:
        if mode == "hybrid":
            return {"url": url, "options": {"includeWhois": True, "maxRedirects": 5}}
        return {"url": url, "depth": "comprehensive"}

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = os.getenv(self.api_token_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def scan(self, url: str, mode: str) -> dict[str, Any]:
        if mode not in REMOTE_MODES:
            raise ValueError(f"unsupported scan mode: {mode!r}")
        endpoint = self.endpoint_for(mode)
        if not endpoint:
            raise BackendUnavailableError(f"no endpoint configured for {mode} scans", backend=mode)
        started = time.perf_counter()
        try:
            response = self._session.post(
                endpoint,
                json=self.request_body(url, mode),
                headers=self._headers(),
                timeout=self.timeout_s,
            )
        except requests.Timeout as exc:
            raise NetworkError(f"{mode} scan timed out after {self.timeout_s}s") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"{mode} scan request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(f"{mode} scan rejected credentials", status_code=response.status_code)
        if response.status_code >= 400:
            raise NetworkError(
                f"{mode} scan API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(f"{mode} scan returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise NetworkError(f"{mode} scan returned a non-object payload")
        logger.debug("%s scan of %s completed in %.0fms", mode, url, (time.perf_counter() - started) * 1000.0)
        return data
