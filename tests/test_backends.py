import pytest
import requests

from phish_url_detection_engine.backends.base import Backend, BackendRegistry
from phish_url_detection_engine.backends.huggingface import (
    HuggingFaceApiBackend,
    TransformersBackend,
    phishing_probability_from_labels,
)
from phish_url_detection_engine.backends.lexical import LexicalBackend
from phish_url_detection_engine.backends.registry import build_default_registry
from phish_url_detection_engine.config.settings import AppConfig
from phish_url_detection_engine.core.errors import BackendError, BackendTimeoutError, BackendUnavailableError
from phish_url_detection_engine.tools.features.lexical import build_features
from phish_url_detection_engine.tools.text.tokenizer import WordPieceTokenizer


class _FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self):
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")


class _FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict[str, object]] = []
        self.closed = False

    def post(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self) -> None:
        self.closed = True


def _inputs(url: str):
    return WordPieceTokenizer().encode(url), build_features(url)


def test_registry_validates_registration(fake_backend):
    registry = BackendRegistry()
    registry.register(fake_backend("a"), weight=2.0)
    with pytest.raises(ValueError):
        registry.register(fake_backend("a"))
    with pytest.raises(ValueError):
        registry.register(fake_backend(""))
    with pytest.raises(ValueError):
        registry.register(fake_backend("b", kind="gpu"))
    registry.register(fake_backend("c"), weight=-1.0)
    assert registry.names() == ["a", "c"]
    assert registry.weights() == {"a": 2.0, "c": 0.0}
    assert registry.export()[0] == {"name": "a", "kind": "fast", "weight": 2.0}
    registry.unregister("a")
    assert len(registry) == 1
    assert registry.get("a") is None


def test_lexical_backend_orders_risk():
    backend = LexicalBackend()
    assert isinstance(backend, Backend)
    safe = backend.predict(*_inputs("https://www.google.com"))
    risky = backend.predict(*_inputs("http://paypa1-secure-login.tk/verify/account"))
    assert safe.probability < 0.5 < risky.probability
    for prediction in (safe, risky):
        assert 0.6 <= prediction.confidence <= 0.99


def test_label_mapping():
    assert phishing_probability_from_labels([{"label": "phishing", "score": 0.9}, {"label": "benign", "score": 0.1}]) == (
        0.9,
        0.9,
    )
    probability, confidence = phishing_probability_from_labels([[{"label": "LABEL_0", "score": 0.8}]])
    assert probability == pytest.approx(0.2)
    assert confidence == pytest.approx(0.8)
    with pytest.raises(BackendError):
        phishing_probability_from_labels([])
    with pytest.raises(BackendError):
        phishing_probability_from_labels([{"label": "weird", "score": 0.5}])


def test_hosted_backend_posts_url(monkeypatch):
    monkeypatch.setenv("HF_API_TOKEN", "secret")
    session = _FakeSession(_FakeResponse([[{"label": "phishing", "score": 0.7}, {"label": "benign", "score": 0.3}]]))
    backend = HuggingFaceApiBackend("org/model", session=session)
    prediction = backend.predict(*_inputs("https://example.com/login"))
    assert prediction.probability == 0.7
    assert session.requests[0]["url"].endswith("/models/org/model")
    assert session.requests[0]["json"] == {"inputs": "https://example.com/login"}
    assert session.requests[0]["headers"]["Authorization"] == "Bearer secret"
    backend.close()
    assert session.closed is True


def test_hosted_backend_errors():
    timeout = HuggingFaceApiBackend("org/model", session=_FakeSession(error=requests.Timeout("slow")))
    with pytest.raises(BackendTimeoutError):
        timeout.predict(*_inputs("https://example.com"))
    failing = HuggingFaceApiBackend("org/model", session=_FakeSession(_FakeResponse({}, status_code=503)))
    with pytest.raises(BackendError):
        failing.predict(*_inputs("https://example.com"))
    with pytest.raises(BackendUnavailableError):
        HuggingFaceApiBackend("").predict(*_inputs("https://example.com"))


def test_transformer_backend_without_model_is_unavailable():
    backend = TransformersBackend("")
    assert backend.kind == "transformer"
    with pytest.raises(BackendUnavailableError):
        backend.predict(*_inputs("https://example.com"))


def test_default_registry_skips_unknown_names():
    registry = build_default_registry(AppConfig(enabled_backends=["lexical", "bogus"]))
    assert registry.names() == ["lexical"]


def test_default_registry_applies_weights():
    config = AppConfig(enabled_backends=["lexical", "transformer"], transformer_model="org/model")
    registry = build_default_registry(config)
    assert registry.weights() == {"lexical": 1.0, "transformer": 1.5}
    assert registry.get("transformer").kind == "transformer"


class _FakeModelConfig:
    def __init__(self, vocab_size: int) -> None:
        self.vocab_size = vocab_size


class _FakeModel:
    def __init__(self, vocab_size: int) -> None:
        self.config = _FakeModelConfig(vocab_size)


class _FakeModelTokenizer:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def __call__(self, text, **kwargs):
        self.calls.append({"text": text, **kwargs})
        length = kwargs["max_length"]
        ids = [101, 2000, 102] + [0] * (length - 3)
        return {"input_ids": ids, "attention_mask": [1, 1, 1] + [0] * (length - 3)}


def _loaded_transformer(vocab_size: int) -> tuple[TransformersBackend, _FakeModelTokenizer]:
    backend = TransformersBackend("org/model")
    model_tokenizer = _FakeModelTokenizer()
    backend._model = _FakeModel(vocab_size)
    backend._tokenizer = model_tokenizer
    return backend, model_tokenizer


def test_transformer_reencodes_when_vocabularies_differ():
    backend, model_tokenizer = _loaded_transformer(30522)
    encoded, features = _inputs("https://example.com/login")
    assert encoded.vocab_size != 30522
    ids, mask = backend.model_inputs(encoded, features)
    assert ids[:3] == [101, 2000, 102]
    assert len(ids) == len(mask) == len(encoded)
    assert model_tokenizer.calls[0]["text"] == "https://example.com/login"
    assert max(ids) < 30522


def test_transformer_reuses_shared_encoding_for_matching_vocabulary():
    encoded, features = _inputs("https://example.com/login")
    backend, model_tokenizer = _loaded_transformer(encoded.vocab_size)
    ids, mask = backend.model_inputs(encoded, features)
    assert ids == list(encoded.input_ids)
    assert mask == list(encoded.attention_mask)
    assert model_tokenizer.calls == []
