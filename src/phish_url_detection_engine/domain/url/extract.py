"""URL validation and canonicalization."""

from __future__ import annotations

import re
from urllib.parse import urlparse, urlunparse

from phish_url_detection_engine.core.errors import InvalidInputError

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HOST_INVALID_RE = re.compile(r"[\s\\/?#@<>\"'{}|^`,;!$&*()+=]")
_SUPPORTED_SCHEMES = {"http", "https"}


def canonicalize_url(url: str) -> str:
    """Normalize URL to a stable lowercase host form."""

    raw = (url or "").strip()
    if not raw:
        return ""
    parsed = urlparse(raw)
    if not parsed.scheme or not parsed.netloc:
        return raw
    normalized = parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower())
    return urlunparse(normalized)


def url_domain(url: str) -> str:
    parsed = urlparse((url or "").strip())
    return (parsed.hostname or "").lower()


def base_domain(host: str) -> str:
    parts = [part for part in (host or "").lower().split(".") if part]
    if len(parts) < 2:
        return (host or "").lower()
    return ".".join(parts[-2:])


def ensure_scheme(url: str) -> str:
    raw = (url or "").strip()
    if raw and not _SCHEME_RE.match(raw):
        return f"https://{raw}"
    return raw


def validate_url(url: str) -> str:
    """Return the canonical form of ``url`` or raise ``InvalidInputError``.

    Scheme-less input is treated as https. Only http(s) URLs with a
    well-formed host are accepted.
    """

    raw = ensure_scheme(url)
    if not raw or any(ch.isspace() for ch in raw):
        raise InvalidInputError(f"Invalid URL format: {url!r}")
    try:
        parsed = urlparse(raw)
        host = parsed.hostname or ""
        _ = parsed.port
    except ValueError as exc:
        raise InvalidInputError(f"Invalid URL format: {url!r}") from exc
    if parsed.scheme.lower() not in _SUPPORTED_SCHEMES:
        raise InvalidInputError(f"Unsupported URL scheme: {parsed.scheme!r}")
    if not host or _HOST_INVALID_RE.search(host) or host.startswith(".") or ".." in host:
        raise InvalidInputError(f"Invalid URL host: {url!r}")
    return canonicalize_url(raw)


def is_valid_url(url: str) -> bool:
    try:
        validate_url(url)
    except InvalidInputError:
        return False
    return True
