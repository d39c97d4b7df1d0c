from __future__ import annotations

import time

import pytest

from phish_url_detection_engine.backends.base import BackendRegistry
from phish_url_detection_engine.core.errors import BackendUnavailableError
from phish_url_detection_engine.domain.scan import ModelPrediction
from phish_url_detection_engine.infra.reputation import InMemoryReputationList
from phish_url_detection_engine.orchestrator.ensemble import EnsemblePolicy, EnsemblePredictor
from phish_url_detection_engine.orchestrator.pipeline import ScanService
from phish_url_detection_engine.orchestrator.retry import RetryPolicy


class FakeBackend:
    def __init__(
        self,
        name: str,
        probability: float = 0.5,
        confidence: float = 0.9,
        *,
        kind: str = "fast",
        delay_s: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self.probability = probability
        self.confidence = confidence
        self.delay_s = delay_s
        self.error = error
        self.calls = 0

    def predict(self, encoded, features) -> ModelPrediction:
        self.calls += 1
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return ModelPrediction(probability=self.probability, confidence=self.confidence)


class FakeRemote:
    """Scripted remote scanner: each mode maps to a payload, an exception or a list of them."""

    def __init__(self, responses: dict[str, object] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[str] = []

    def scan(self, url: str, mode: str) -> dict[str, object]:
        self.calls.append(mode)
        response = self.responses.get(mode)
        if isinstance(response, list):
            response = response.pop(0) if response else None
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise BackendUnavailableError(f"{mode} not scripted", backend=mode)
        return dict(response)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in (
        "PHISH_URL_ENGINE_PROFILE",
        "PHISH_URL_ENGINE_DEFAULT_CONFIG_PATH",
        "PHISH_URL_ENGINE_API_BASE_URL",
        "PHISH_URL_ENGINE_API_TOKEN",
        "PHISH_URL_ENGINE_ENABLED_BACKENDS",
        "HF_API_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def fake_remote():
    return FakeRemote


@pytest.fixture
def make_predictor():
    def _make(*backends, policy: EnsemblePolicy | None = None) -> EnsemblePredictor:
        registry = BackendRegistry()
        for backend in backends:
            registry.register(backend)
        return EnsemblePredictor(registry, policy=policy)

    return _make


@pytest.fixture
def make_service(make_predictor):
    created: list[ScanService] = []

    def _make(
        *backends,
        remote=None,
        allow=(),
        block=(),
        cache=None,
        policy: EnsemblePolicy | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> ScanService:
        service = ScanService(
            make_predictor(*backends, policy=policy),
            remote=remote,
            reputation=InMemoryReputationList(allow=allow, block=block),
            retry_policy=retry_policy or RetryPolicy(max_retries=2, base_delay_s=0.0, max_delay_s=0.0),
            cache=cache,
            sleep=lambda _delay: None,
        )
        created.append(service)
        return service

    yield _make
    for service in created:
        service.close()
