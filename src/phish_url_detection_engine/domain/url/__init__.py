"""URL validation, canonicalization and feature models."""

from phish_url_detection_engine.domain.url.extract import (
    base_domain,
    canonicalize_url,
    is_valid_url,
    url_domain,
    validate_url,
)
from phish_url_detection_engine.domain.url.models import DomFeatures, LexicalFeatures

__all__ = [
    "DomFeatures",
    "LexicalFeatures",
    "base_domain",
    "canonicalize_url",
    "is_valid_url",
    "url_domain",
    "validate_url",
]
