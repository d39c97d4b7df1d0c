import pytest

from phish_url_detection_engine.domain.scan import ModelPrediction
from phish_url_detection_engine.orchestrator.fusion import EnsembleWeights, agreement_score, fuse_predictions


def _pred(probability: float, confidence: float) -> ModelPrediction:
    return ModelPrediction(probability=probability, confidence=confidence)


def test_agreement_score():
    assert agreement_score([0.4]) == 0.5
    assert agreement_score([0.2, 0.2]) == 1.0
    assert agreement_score([0.0, 1.0]) == 0.0


def test_no_signal_returns_none():
    assert fuse_predictions({}) is None
    assert fuse_predictions({"a": _pred(0.9, 0.0)}) is None


def test_equal_weights_average():
    fused = fuse_predictions({"a": _pred(0.9, 0.9), "b": _pred(0.1, 0.9)})
    assert fused.probability == pytest.approx(0.5)
    assert fused.responders == 2


def test_static_weights_shift_probability():
    fused = fuse_predictions({"a": _pred(0.9, 0.9), "b": _pred(0.1, 0.9)}, EnsembleWeights(weights={"a": 3.0, "b": 1.0}))
    assert fused.probability == pytest.approx(0.7)


def test_missing_backends_reduce_confidence():
    predictions = {"a": _pred(0.9, 0.9), "b": _pred(0.1, 0.9)}
    full = fuse_predictions(predictions, expected_backends=2)
    partial = fuse_predictions(predictions, expected_backends=4)
    assert partial.coverage == 0.5
    assert partial.confidence == pytest.approx(0.5 * 0.9 + 0.3 * 0.36 + 0.2 * 0.5)
    assert partial.confidence < full.confidence


def test_fused_values_are_bounded():
    fused = fuse_predictions({"a": _pred(1.0, 1.0), "b": _pred(1.0, 1.0), "c": _pred(1.0, 1.0)})
    assert 0.0 <= fused.probability <= 1.0
    assert 0.0 <= fused.confidence <= 1.0


def test_normalized_weights_sum_to_one():
    weights = EnsembleWeights(weights={"a": 2.0, "b": 6.0}).normalize()
    assert weights.weight("a") + weights.weight("b") == pytest.approx(1.0)
    zero = EnsembleWeights(weights={"a": 0.0, "b": 0.0}).normalize()
    assert zero.weight("a") == 0.5
