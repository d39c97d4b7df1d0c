"""Scan orchestration layer.

Exports are loaded lazily to avoid import-time cycles between the config
loader and the orchestrator modules it builds policies from.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from phish_url_detection_engine.orchestrator.build import build_service, create_service
    from phish_url_detection_engine.orchestrator.ensemble import EnsemblePolicy, EnsemblePredictor
    from phish_url_detection_engine.orchestrator.pipeline import ScanService
    from phish_url_detection_engine.orchestrator.policy import ConfidenceRouter, TierThresholds
    from phish_url_detection_engine.orchestrator.retry import RetryPolicy, call_with_retry

__all__ = [
    "build_service",
    "create_service",
    "ScanService",
    "EnsemblePolicy",
    "EnsemblePredictor",
    "ConfidenceRouter",
    "TierThresholds",
    "RetryPolicy",
    "call_with_retry",
]


def __getattr__(name: str) -> Any:
    if name in {"build_service", "create_service"}:
        from phish_url_detection_engine.orchestrator.build import build_service, create_service

        return {"build_service": build_service, "create_service": create_service}[name]
    if name == "ScanService":
        from phish_url_detection_engine.orchestrator.pipeline import ScanService

        return ScanService
    if name in {"EnsemblePolicy", "EnsemblePredictor"}:
        from phish_url_detection_engine.orchestrator.ensemble import EnsemblePolicy, EnsemblePredictor

        return {"EnsemblePolicy": EnsemblePolicy, "EnsemblePredictor": EnsemblePredictor}[name]
    if name in {"ConfidenceRouter", "TierThresholds"}:
        from phish_url_detection_engine.orchestrator.policy import ConfidenceRouter, TierThresholds

        return {"ConfidenceRouter": ConfidenceRouter, "TierThresholds": TierThresholds}[name]
    if name in {"RetryPolicy", "call_with_retry"}:
        from phish_url_detection_engine.orchestrator.retry import RetryPolicy, call_with_retry

        return {"RetryPolicy": RetryPolicy, "call_with_retry": call_with_retry}[name]
    raise AttributeError(name)
