"""Reputation lookup protocol and an in-memory allow/block list."""

from __future__ import annotations

from typing import Iterable, Protocol

from phish_url_detection_engine.domain.scan import ReputationHit
from phish_url_detection_engine.domain.url.extract import url_domain


class ReputationLookup(Protocol):
    def lookup(self, url: str) -> ReputationHit | None: ...


def _normalize_domains(items: Iterable[str]) -> set[str]:
    return {str(item).strip().lower().lstrip(".") for item in items if str(item).strip()}


def _matches(host: str, domains: set[str]) -> str | None:
    for domain in domains:
        if host == domain or host.endswith(f".{domain}"):
            return domain
    return None


class InMemoryReputationList:
    """Domain allow/block list with subdomain matching.

    A host on both lists is reported as blacklisted only; the block entry wins.
    """

    def __init__(
        self,
        *,
        allow: Iterable[str] = (),
        block: Iterable[str] = (),
        source: str = "local-list",
        block_severity: str = "high",
    ) -> None:
        self._allow = _normalize_domains(allow)
        self._block = _normalize_domains(block)
        self.source = source
        self.block_severity = block_severity

    def add_allowed(self, domain: str) -> None:
        self._allow |= _normalize_domains([domain])

    def add_blocked(self, domain: str) -> None:
        self._block |= _normalize_domains([domain])

    def lookup(self, url: str) -> ReputationHit | None:
        host = url_domain(url)
        if not host:
            return None
        if _matches(host, self._block):
            return ReputationHit(
                is_blacklisted=True,
                source=self.source,
                confidence=0.99,
                severity=self.block_severity,
            )
        if _matches(host, self._allow):
            return ReputationHit(is_whitelisted=True, source=self.source, confidence=0.99)
        return None
