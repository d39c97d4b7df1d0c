"""Inference backends and registry wiring."""

from phish_url_detection_engine.backends.base import Backend, BackendKind, BackendRegistry
from phish_url_detection_engine.backends.huggingface import HuggingFaceApiBackend, TransformersBackend
from phish_url_detection_engine.backends.lexical import LexicalBackend
from phish_url_detection_engine.backends.registry import build_default_registry

__all__ = [
    "Backend",
    "BackendKind",
    "BackendRegistry",
    "HuggingFaceApiBackend",
    "LexicalBackend",
    "TransformersBackend",
    "build_default_registry",
]
