"""Tier-1 lexical feature extraction (no network, no page access)."""

from __future__ import annotations

from collections import Counter
import math
from urllib.parse import parse_qsl, urlparse

from phish_url_detection_engine.domain.scan import ReputationHit, UrlFeatures
from phish_url_detection_engine.domain.url.models import DomFeatures, LexicalFeatures
from phish_url_detection_engine.tools.intel.pattern_matcher import TLD_RISK, is_ip_host

TRUSTED_TLDS = {"gov", "edu", "mil", "int"}
MULTI_PART_TLDS = {"co.uk", "com.au", "co.nz", "co.jp", "com.br"}
DEFAULT_TLD_RISK = 0.3

URL_KEYWORDS = (
    "login",
    "signin",
    "sign-in",
    "account",
    "password",
    "verify",
    "secure",
    "update",
    "confirm",
    "banking",
    "wallet",
    "crypto",
    "bitcoin",
    "support",
    "suspended",
    "locked",
    "urgent",
    "alert",
    "warning",
    "expire",
    "limit",
    "unusual",
)
BRAND_NAMES = (
    "paypal",
    "amazon",
    "apple",
    "microsoft",
    "google",
    "facebook",
    "instagram",
    "netflix",
    "linkedin",
    "twitter",
    "spotify",
    "dropbox",
    "adobe",
    "chase",
    "wellsfargo",
    "bankofamerica",
    "citibank",
    "usaa",
)


def shannon_entropy(text: str) -> float:
    if not text:
        return 0.0
    total = len(text)
    return -sum((count / total) * math.log2(count / total) for count in Counter(text).values())


def char_ratios(text: str) -> tuple[float, float, float]:
    """Return (digit, symbol, letter) ratios over ``text``."""

    if not text:
        return 0.0, 0.0, 0.0
    digits = sum(1 for ch in text if ch.isdigit())
    letters = sum(1 for ch in text if ch.isascii() and ch.isalpha())
    symbols = len(text) - digits - letters
    total = float(len(text))
    return digits / total, symbols / total, letters / total


def extract_tld(host: str) -> str:
    parts = [part for part in (host or "").split(".") if part]
    if len(parts) < 2:
        return ""
    last_two = ".".join(parts[-2:])
    if last_two in MULTI_PART_TLDS and len(parts) > 2:
        return last_two
    return parts[-1]


def tld_risk(tld: str) -> float:
    if tld in TRUSTED_TLDS:
        return 0.1
    return TLD_RISK.get(tld, DEFAULT_TLD_RISK)


def _invalid_features(url: str) -> LexicalFeatures:
    return LexicalFeatures(
        url=url,
        length=len(url),
        entropy=shannon_entropy(url),
        digit_ratio=0.5,
        symbol_ratio=0.5,
        letter_ratio=0.0,
        tld_risk=1.0,
    )


def extract_lexical_features(url: str) -> LexicalFeatures:
    raw = (url or "").strip()
    try:
        parsed = urlparse(raw)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError:
        return _invalid_features(raw)
    if not host:
        return _invalid_features(raw)

    lowered = raw.lower()
    digit_ratio, symbol_ratio, letter_ratio = char_ratios(raw)
    ip_host = is_ip_host(host)
    tld = "" if ip_host else extract_tld(host)
    return LexicalFeatures(
        url=raw,
        host=host,
        length=len(raw),
        entropy=round(shannon_entropy(raw), 4),
        digit_ratio=round(digit_ratio, 4),
        symbol_ratio=round(symbol_ratio, 4),
        letter_ratio=round(letter_ratio, 4),
        suspicious_keywords=sum(1 for keyword in URL_KEYWORDS if keyword in lowered),
        has_ip_address=ip_host,
        has_port=port is not None,
        is_https=parsed.scheme.lower() == "https",
        subdomain_count=0 if ip_host else max(0, len(host.split(".")) - 2),
        path_depth=len([segment for segment in parsed.path.split("/") if segment]),
        query_param_count=len(parse_qsl(parsed.query, keep_blank_values=True)),
        hyphen_count=host.count("-"),
        digit_count=sum(1 for ch in host if ch.isdigit()),
        brand_in_host=any(brand in host for brand in BRAND_NAMES),
        tld=tld,
        tld_risk=tld_risk(tld) if tld else DEFAULT_TLD_RISK,
    )


def build_features(
    url: str,
    *,
    reputation: ReputationHit | None = None,
    dom: DomFeatures | None = None,
) -> UrlFeatures:
    return UrlFeatures(
        url=url,
        lexical=extract_lexical_features(url),
        dom=dom,
        reputation=reputation,
    )
