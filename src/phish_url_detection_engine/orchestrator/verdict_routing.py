"""Risk grade, verdict and action mapping helpers."""

from __future__ import annotations

from phish_url_detection_engine.domain.scan import Decision, ReputationHit, RiskLevel, Verdict

# Upper bound (inclusive) of each grade; anything above the last bound is F.
RISK_LEVEL_BOUNDS: tuple[tuple[float, RiskLevel], ...] = (
    (0.20, "A"),
    (0.40, "B"),
    (0.55, "C"),
    (0.70, "D"),
    (0.85, "E"),
)
CONFIDENCE_INTERVAL_SPREAD = 0.2


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def risk_level(probability: float) -> RiskLevel:
    p = _clamp(probability)
    for bound, level in RISK_LEVEL_BOUNDS:
        if p <= bound:
            return level
    return "F"


def risk_score(probability: float) -> int:
    return int(round(_clamp(probability) * 100))


def verdict_from_probability(probability: float, reputation: ReputationHit | None = None) -> Verdict:
    p = _clamp(probability)
    if reputation is not None and reputation.is_blacklisted:
        return "DANGEROUS"
    if reputation is not None and reputation.is_whitelisted and p < 0.3:
        return "SAFE"
    if p >= 0.8:
        return "DANGEROUS"
    if p >= 0.5:
        return "SUSPICIOUS"
    if p >= 0.3:
        return "UNKNOWN"
    return "SAFE"


def decide_action(
    probability: float,
    confidence: float,
    reputation: ReputationHit | None = None,
    *,
    high_confidence: float = 0.90,
    medium_confidence: float = 0.70,
) -> Decision:
    p = _clamp(probability)
    c = _clamp(confidence)
    if reputation is not None and reputation.is_blacklisted:
        return "BLOCK"
    if reputation is not None and reputation.is_whitelisted and p < 0.5:
        return "ALLOW"
    if p >= 0.8 and c >= high_confidence:
        return "BLOCK"
    if p >= 0.5:
        return "WARN"
    if p >= 0.3 and c < medium_confidence:
        return "WARN"
    return "ALLOW"


def confidence_interval(probability: float, confidence: float) -> tuple[float, float]:
    p = _clamp(probability)
    margin = (1.0 - _clamp(confidence)) * CONFIDENCE_INTERVAL_SPREAD
    return round(max(0.0, p - margin), 4), round(min(1.0, p + margin), 4)
