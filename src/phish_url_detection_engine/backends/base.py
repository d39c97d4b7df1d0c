"""Inference backend contract and registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

from phish_url_detection_engine.domain.scan import ModelPrediction, UrlFeatures
from phish_url_detection_engine.tools.text.tokenizer import EncodedInput

BackendKind = Literal["fast", "transformer"]


@runtime_checkable
class Backend(Protocol):
    """A single model or heuristic that scores one URL.

    ``predict`` may raise any exception; the ensemble converts failures and
    missed deadlines into tagged outcomes.
    """

    name: str
    kind: BackendKind

    def predict(self, encoded: EncodedInput, features: UrlFeatures) -> ModelPrediction: ...


@dataclass
class BackendRegistry:
    _backends: dict[str, Backend] = field(default_factory=dict)
    _weights: dict[str, float] = field(default_factory=dict)

    def register(self, backend: Backend, *, weight: float = 1.0) -> None:
        name = str(getattr(backend, "name", "") or "").strip()
        if not name:
            raise ValueError("backend name is required")
        if name in self._backends:
            raise ValueError(f"backend already registered: {name}")
        if getattr(backend, "kind", None) not in ("fast", "transformer"):
            raise ValueError(f"backend {name} has unsupported kind: {getattr(backend, 'kind', None)!r}")
        self._backends[name] = backend
        self._weights[name] = max(0.0, float(weight))

    def unregister(self, name: str) -> None:
        self._backends.pop(name, None)
        self._weights.pop(name, None)

    def get(self, name: str) -> Backend | None:
        return self._backends.get(name)

    def names(self) -> list[str]:
        return list(self._backends)

    def backends(self) -> list[Backend]:
        return list(self._backends.values())

    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    def export(self) -> list[dict[str, object]]:
        return [
            {"name": name, "kind": backend.kind, "weight": self._weights.get(name, 0.0)}
            for name, backend in self._backends.items()
        ]

    def __len__(self) -> int:
        return len(self._backends)
