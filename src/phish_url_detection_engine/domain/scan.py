"""Scan request/response structures shared across the pipeline."""

from __future__ import annotations

from enum import Enum
import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from phish_url_detection_engine.domain.url.models import DomFeatures, LexicalFeatures

RiskLevel = Literal["A", "B", "C", "D", "E", "F"]
Verdict = Literal["SAFE", "SUSPICIOUS", "DANGEROUS", "UNKNOWN"]
Decision = Literal["ALLOW", "WARN", "BLOCK"]
ScanType = Literal["edge", "hybrid", "deep"]
OutcomeStatus = Literal["success", "timeout", "error"]

RISK_LEVEL_ORDER: tuple[str, ...] = ("A", "B", "C", "D", "E", "F")


class ScanTier(str, Enum):
    EDGE_ONLY = "EDGE_ONLY"
    HYBRID = "HYBRID"
    DEEP = "DEEP"
    LOCAL_FALLBACK = "LOCAL_FALLBACK"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @property
    def scan_type(self) -> ScanType:
        if self is ScanTier.HYBRID:
            return "hybrid"
        if self is ScanTier.DEEP:
            return "deep"
        return "edge"

    @classmethod
    def from_scan_type(cls, value: str) -> "ScanTier":
        clean = str(value or "").strip().lower()
        mapping = {
            "edge": cls.EDGE_ONLY,
            "edge_only": cls.EDGE_ONLY,
            "hybrid": cls.HYBRID,
            "deep": cls.DEEP,
        }
        if clean not in mapping:
            raise ValueError(f"Unknown scan tier: {value!r}")
        return mapping[clean]


_TIER_RANK = {
    ScanTier.EDGE_ONLY: 0,
    ScanTier.HYBRID: 1,
    ScanTier.DEEP: 2,
    ScanTier.LOCAL_FALLBACK: 3,
}


class ReputationHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_whitelisted: bool = False
    is_blacklisted: bool = False
    source: str = "unknown"
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    severity: str | None = None


class UrlFeatures(BaseModel):
    """Immutable feature snapshot shared by every backend for one request."""

    model_config = ConfigDict(frozen=True)

    url: str
    lexical: LexicalFeatures
    dom: DomFeatures | None = None
    reputation: ReputationHit | None = None


class ModelPrediction(BaseModel):
    probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    latency_ms: float = Field(default=0.0, ge=0.0)


class BackendOutcome(BaseModel):
    name: str
    status: OutcomeStatus
    prediction: ModelPrediction | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success" and self.prediction is not None


class EdgePrediction(BaseModel):
    probability: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    per_model: dict[str, ModelPrediction] = Field(default_factory=dict)
    reasoning: list[str] = Field(default_factory=list)
    pattern_flags: list[str] = Field(default_factory=list)
    reputation: ReputationHit | None = None
    latency_ms: float = Field(default=0.0, ge=0.0)


class ThreatIndicator(BaseModel):
    type: str
    value: str = ""
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    description: str = ""


class ScanResult(BaseModel):
    url: str
    verdict: Verdict
    risk_level: RiskLevel
    probability: float = Field(ge=0.0, le=1.0)
    risk_score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_interval: tuple[float, float] = (0.0, 1.0)
    decision: Decision
    reasoning: list[str] = Field(default_factory=list)
    indicators: list[ThreatIndicator] = Field(default_factory=list)
    threat_type: str | None = None
    scan_type: ScanType = "edge"
    latency_ms: float = Field(default=0.0, ge=0.0)
    timestamp: float = Field(default_factory=time.time)
    cached: bool = False
