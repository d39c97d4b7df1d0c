"""Default backend wiring from application config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from phish_url_detection_engine.backends.base import BackendRegistry
from phish_url_detection_engine.backends.huggingface import HuggingFaceApiBackend, TransformersBackend
from phish_url_detection_engine.backends.lexical import LexicalBackend

if TYPE_CHECKING:
    from phish_url_detection_engine.config.settings import AppConfig

logger = logging.getLogger(__name__)


def build_default_registry(config: "AppConfig") -> BackendRegistry:
    registry = BackendRegistry()
    weights = config.backend_weights
    for name in config.enabled_backends:
        if name == "lexical":
            backend = LexicalBackend()
        elif name == "hf_api":
            backend = HuggingFaceApiBackend(
                config.hf_api_model,
                api_token_env=config.hf_api_token_env,
                timeout_s=config.fast_timeout_s,
            )
        elif name == "transformer":
            backend = TransformersBackend(config.transformer_model)
            if config.transformer_model and not config.vocab_path:
                logger.info("No vocab_path for %s; the model tokenizer will encode its inputs", config.transformer_model)
        else:
            logger.warning("Ignoring unknown backend %r in enabled_backends", name)
            continue
        registry.register(backend, weight=weights.get(name, 1.0))
    return registry
