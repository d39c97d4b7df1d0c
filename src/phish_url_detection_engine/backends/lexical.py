"""Native logistic scorer over lexical URL features."""

from __future__ import annotations

from dataclasses import dataclass
import math
import time

from phish_url_detection_engine.domain.scan import ModelPrediction, UrlFeatures
from phish_url_detection_engine.tools.text.tokenizer import EncodedInput


@dataclass(frozen=True)
class LexicalCoefficients:
    intercept: float = -2.0
    ip_address: float = 1.5
    no_https: float = 1.0
    keyword: float = 0.35
    keyword_cap: int = 5
    tld_risk: float = 2.0
    extra_subdomain: float = 0.3
    hyphen: float = 0.25
    hyphen_cap: int = 4
    brand_in_host: float = 0.3
    high_entropy: float = 1.0
    entropy_threshold: float = 4.5
    digit_ratio: float = 1.5
    has_port: float = 0.5
    long_url: float = 0.02
    long_url_threshold: int = 75


def _sigmoid(value: float) -> float:
    if value >= 0:
        return 1.0 / (1.0 + math.exp(-value))
    exp = math.exp(value)
    return exp / (1.0 + exp)


class LexicalBackend:
    """Always-available backend; needs no model artifacts or network."""

    kind = "fast"

    def __init__(self, name: str = "lexical", coefficients: LexicalCoefficients | None = None) -> None:
        self.name = name
        self.coefficients = coefficients or LexicalCoefficients()

    def logit(self, features: UrlFeatures) -> float:
        c = self.coefficients
        lex = features.lexical
        z = c.intercept
        z += c.ip_address * lex.has_ip_address
        z += c.no_https * (not lex.is_https)
        z += c.keyword * min(lex.suspicious_keywords, c.keyword_cap)
        z += c.tld_risk * (lex.tld_risk - 0.3)
        z += c.extra_subdomain * max(0, lex.subdomain_count - 1)
        z += c.hyphen * min(lex.hyphen_count, c.hyphen_cap)
        z += c.brand_in_host * lex.brand_in_host
        z += c.high_entropy * (lex.entropy > c.entropy_threshold)
        z += c.digit_ratio * lex.digit_ratio
        z += c.has_port * lex.has_port
        z += c.long_url * max(0, lex.length - c.long_url_threshold)
        return z

    def predict(self, encoded: EncodedInput, features: UrlFeatures) -> ModelPrediction:
        started = time.perf_counter()
        probability = _sigmoid(self.logit(features))
        # Distance from the decision boundary doubles as a confidence proxy.
        confidence = 0.6 + 0.4 * abs(probability - 0.5) * 2.0
        return ModelPrediction(
            probability=round(probability, 4),
            confidence=round(min(confidence, 0.99), 4),
            latency_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
