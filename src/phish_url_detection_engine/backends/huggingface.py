"""Hugging Face backed URL classifiers (hosted inference API and local transformers)."""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any

import requests

from phish_url_detection_engine.core.errors import BackendError, BackendTimeoutError, BackendUnavailableError
from phish_url_detection_engine.domain.scan import ModelPrediction, UrlFeatures
from phish_url_detection_engine.tools.text.tokenizer import EncodedInput

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"
PHISHING_LABELS = {"phishing", "malicious", "malware", "bad", "spam", "label_1", "1", "unsafe"}
BENIGN_LABELS = {"benign", "legitimate", "safe", "good", "label_0", "0", "clean"}


def phishing_probability_from_labels(payload: Any) -> tuple[float, float]:
    """Map ``[{"label", "score"}]`` classifier output to (probability, confidence)."""

    rows = payload
    if isinstance(rows, list) and rows and isinstance(rows[0], list):
        rows = rows[0]
    if not isinstance(rows, list) or not rows:
        raise BackendError("classifier returned no labels")
    scores: dict[str, float] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        label = str(row.get("label", "")).strip().lower()
        try:
            scores[label] = max(0.0, min(1.0, float(row.get("score", 0.0))))
        except (TypeError, ValueError):
            continue
    if not scores:
        raise BackendError("classifier labels were unparseable")
    phishing = [score for label, score in scores.items() if label in PHISHING_LABELS]
    benign = [score for label, score in scores.items() if label in BENIGN_LABELS]
    if phishing:
        probability = max(phishing)
    elif benign:
        probability = 1.0 - max(benign)
    else:
        raise BackendError(f"unknown classifier labels: {sorted(scores)}")
    return probability, max(scores.values())


class HuggingFaceApiBackend:
    """Text-classification model served by the hosted inference API."""

    kind = "fast"

    def __init__(
        self,
        model: str,
        *,
        name: str = "hf_api",
        endpoint: str | None = None,
        api_token_env: str = "HF_API_TOKEN",
        timeout_s: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self.name = name
        self.model = str(model or "").strip()
        self.endpoint = endpoint or (HF_INFERENCE_URL.format(model=self.model) if self.model else "")
        self.api_token_env = api_token_env
        self.timeout_s = timeout_s
        self._session = session or requests.Session()

    def predict(self, encoded: EncodedInput, features: UrlFeatures) -> ModelPrediction:
        if not self.endpoint:
            raise BackendUnavailableError("no hosted model configured", backend=self.name)
        headers = {"Accept": "application/json"}
        token = os.getenv(self.api_token_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        started = time.perf_counter()
        try:
            response = self._session.post(
                self.endpoint,
                json={"inputs": features.url},
                headers=headers,
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise BackendTimeoutError(f"hosted model timed out: {exc}", backend=self.name) from exc
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"hosted model request failed: {exc}", backend=self.name) from exc
        probability, confidence = phishing_probability_from_labels(data)
        return ModelPrediction(
            probability=round(probability, 4),
            confidence=round(confidence, 4),
            latency_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )

    def close(self) -> None:
        self._session.close()


class TransformersBackend:
    """Local sequence-classification model loaded on first use."""

    kind = "transformer"

    def __init__(self, model: str, *, name: str = "transformer", phishing_label_index: int | None = None) -> None:
        self.name = name
        self.model_name = str(model or "").strip()
        self.phishing_label_index = phishing_label_index
        self._model: Any = None
        self._tokenizer: Any = None
        self._torch: Any = None
        self._warned_vocab = False
        self._lock = threading.Lock()

    def _ensure_model(self) -> None:
        if self._model is not None:
            return
        if not self.model_name:
            raise BackendUnavailableError("no local model configured", backend=self.name)
        try:
            import torch
            from transformers import AutoModelForSequenceClassification, AutoTokenizer
        except ImportError as exc:
            raise BackendUnavailableError(
                "transformers and torch are required for local inference", backend=self.name
            ) from exc
        with self._lock:
            if self._model is not None:
                return
            logger.info("Loading local model %s (may download weights on first run)", self.model_name)
            try:
                model = AutoModelForSequenceClassification.from_pretrained(self.model_name)
                tokenizer = AutoTokenizer.from_pretrained(self.model_name)
            except (OSError, ValueError) as exc:
                raise BackendUnavailableError(f"failed to load {self.model_name}: {exc}", backend=self.name) from exc
            model.eval()
            self._torch = torch
            self._tokenizer = tokenizer
            self._model = model
            logger.info("Local model ready: %s", self.model_name)

    def _phishing_index(self) -> int:
        if self.phishing_label_index is not None:
            return self.phishing_label_index
        label2id = getattr(getattr(self._model, "config", None), "label2id", None) or {}
        for label, idx in label2id.items():
            if str(label).strip().lower() in PHISHING_LABELS - {"0"}:
                return int(idx)
        return 1

    def model_inputs(self, encoded: EncodedInput, features: UrlFeatures) -> tuple[list[int], list[int]]:
        """Shared encoding when it indexes the model's own vocabulary, else the model tokenizer's."""

        model_vocab = int(getattr(getattr(self._model, "config", None), "vocab_size", 0) or 0)
        if encoded.vocab_size and encoded.vocab_size == model_vocab:
            return list(encoded.input_ids), list(encoded.attention_mask)
        if not self._warned_vocab:
            logger.warning(
                "Shared vocabulary (%d tokens) does not match %s (%d tokens); using the model tokenizer",
                encoded.vocab_size,
                self.model_name,
                model_vocab,
            )
            self._warned_vocab = True
        batch = self._tokenizer(
            features.url,
            max_length=len(encoded),
            padding="max_length",
            truncation=True,
        )
        return list(batch["input_ids"]), list(batch["attention_mask"])

    def predict(self, encoded: EncodedInput, features: UrlFeatures) -> ModelPrediction:
        self._ensure_model()
        torch = self._torch
        started = time.perf_counter()
        ids, mask = self.model_inputs(encoded, features)
        input_ids = torch.tensor([ids], dtype=torch.long)
        attention_mask = torch.tensor([mask], dtype=torch.long)
        with torch.no_grad():
            logits = self._model(input_ids=input_ids, attention_mask=attention_mask).logits
        if logits.shape[-1] == 1:
            probability = float(torch.sigmoid(logits)[0][0])
            confidence = max(probability, 1.0 - probability)
        else:
            probs = torch.softmax(logits, dim=-1)[0].tolist()
            probability = float(probs[min(self._phishing_index(), len(probs) - 1)])
            confidence = max(probs)
        return ModelPrediction(
            probability=round(max(0.0, min(1.0, probability)), 4),
            confidence=round(max(0.0, min(1.0, confidence)), 4),
            latency_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
