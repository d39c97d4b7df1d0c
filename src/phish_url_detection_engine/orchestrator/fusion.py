"""Confidence-weighted fusion of per-backend predictions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from phish_url_detection_engine.domain.scan import ModelPrediction

# Largest possible variance of values in [0, 1].
MAX_VARIANCE = 0.25
SINGLE_MODEL_AGREEMENT = 0.5


@dataclass
class EnsembleWeights:
    """Static per-backend weights; need not sum to 1."""

    weights: dict[str, float] = field(default_factory=dict)
    default: float = 1.0

    def weight(self, name: str) -> float:
        return max(0.0, float(self.weights.get(name, self.default)))

    def normalize(self, names: list[str] | None = None) -> "EnsembleWeights":
        keys = list(names) if names is not None else list(self.weights)
        if not keys:
            return EnsembleWeights(default=self.default)
        raw = {name: self.weight(name) for name in keys}
        total = sum(raw.values())
        if total <= 0:
            return EnsembleWeights(weights={name: 1.0 / len(keys) for name in keys}, default=0.0)
        return EnsembleWeights(weights={name: value / total for name, value in raw.items()}, default=0.0)


@dataclass(frozen=True)
class FusedPrediction:
    probability: float
    confidence: float
    agreement: float
    coverage: float
    responders: int


def agreement_score(probabilities: list[float]) -> float:
    if len(probabilities) < 2:
        return SINGLE_MODEL_AGREEMENT
    mean = sum(probabilities) / len(probabilities)
    variance = sum((p - mean) ** 2 for p in probabilities) / len(probabilities)
    return 1.0 - min(variance / MAX_VARIANCE, 1.0)


def fuse_predictions(
    predictions: Mapping[str, ModelPrediction],
    weights: EnsembleWeights | None = None,
    *,
    expected_backends: int | None = None,
) -> FusedPrediction | None:
    """Weighted mean with weight = static weight x backend confidence.

    Returns ``None`` when there is no usable signal (no predictions or zero
    total weight).
    """

    if not predictions:
        return None
    norm = (weights or EnsembleWeights()).normalize(list(predictions))
    weighted_sum = 0.0
    total_weight = 0.0
    for name, prediction in predictions.items():
        weight = norm.weight(name) * prediction.confidence
        weighted_sum += prediction.probability * weight
        total_weight += weight
    if total_weight <= 0:
        return None

    probability = max(0.0, min(1.0, weighted_sum / total_weight))
    mean_confidence = sum(item.confidence for item in predictions.values()) / len(predictions)
    agreement = agreement_score([item.probability for item in predictions.values()])
    expected = max(1, int(expected_backends or len(predictions)))
    coverage = min(len(predictions) / expected, 1.0)
    confidence = 0.5 * mean_confidence + 0.3 * agreement + 0.2 * coverage
    return FusedPrediction(
        probability=probability,
        confidence=max(0.0, min(1.0, confidence)),
        agreement=agreement,
        coverage=coverage,
        responders=len(predictions),
    )
