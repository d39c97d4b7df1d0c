"""Confidence-based tier routing."""

from __future__ import annotations

from dataclasses import dataclass

from phish_url_detection_engine.domain.scan import ScanTier


@dataclass(frozen=True)
class TierThresholds:
    high: float = 0.90
    medium: float = 0.70

    def normalized(self) -> "TierThresholds":
        high = max(0.0, min(1.0, float(self.high)))
        medium = max(0.0, min(high, float(self.medium)))
        return TierThresholds(high=high, medium=medium)


def next_tier(current: ScanTier, confidence: float, thresholds: TierThresholds | None = None) -> ScanTier:
    """Pure transition function: never steps back to a cheaper tier."""

    active = (thresholds or TierThresholds()).normalized()
    if current is ScanTier.EDGE_ONLY:
        if confidence >= active.high:
            return ScanTier.EDGE_ONLY
        if confidence >= active.medium:
            return ScanTier.HYBRID
        return ScanTier.DEEP
    if current is ScanTier.HYBRID:
        if confidence < active.medium:
            return ScanTier.DEEP
        return ScanTier.HYBRID
    return current


def escalation_reason(current: ScanTier, target: ScanTier, confidence: float) -> str:
    pct = f"{confidence * 100:.0f}%"
    if target is current:
        return f"High confidence ({pct}) - {current.value.lower()} result reliable"
    if target is ScanTier.HYBRID:
        return f"Medium confidence ({pct}) - escalating to hybrid scan for reputation enrichment"
    if current is ScanTier.HYBRID:
        return f"Hybrid confidence ({pct}) below medium threshold - escalating to deep analysis"
    return f"Low confidence ({pct}) - escalating to deep analysis"


class ConfidenceRouter:
    """Holds thresholds and records the escalation trail for one scan."""

    def __init__(self, thresholds: TierThresholds | None = None) -> None:
        self.thresholds = (thresholds or TierThresholds()).normalized()

    def route(self, current: ScanTier, confidence: float, trail: list[str] | None = None) -> ScanTier:
        target = next_tier(current, confidence, self.thresholds)
        if trail is not None and target is not current:
            trail.append(escalation_reason(current, target, confidence))
        return target

    def needs_escalation(self, current: ScanTier, confidence: float) -> bool:
        return next_tier(current, confidence, self.thresholds) is not current
