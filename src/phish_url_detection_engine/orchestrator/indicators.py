"""Threat indicators derived from pattern flags and reputation hits."""

from __future__ import annotations

from phish_url_detection_engine.domain.scan import ReputationHit, ThreatIndicator
from phish_url_detection_engine.tools.intel.pattern_matcher import PatternMatchResult

FLAG_SEVERITY = {
    "ip_address": "high",
    "typosquatting": "critical",
    "suspicious_hyphens": "high",
    "excessive_hyphens": "medium",
    "suspicious_digits": "medium",
    "risky_tld": "medium",
    "excessive_subdomains": "medium",
    "no_https": "medium",
    "long_domain": "low",
    "credential_stuffing": "critical",
    "brand_impersonation": "high",
    "iplogger": "critical",
    "punycode": "high",
    "url_shortener": "low",
    "free_hosting": "low",
    "invalid_url": "medium",
}
FLAG_DESCRIPTION = {
    "ip_address": "URL uses IP address instead of domain name",
    "typosquatting": "Possible typosquatting of a known brand",
    "suspicious_hyphens": "Domain contains hyphen with brand name",
    "excessive_hyphens": "Excessive hyphens in domain",
    "suspicious_digits": "Brand name with digits",
    "risky_tld": "High-risk top-level domain",
    "excessive_subdomains": "Excessive subdomains",
    "no_https": "Not using HTTPS",
    "long_domain": "Unusually long domain",
    "credential_stuffing": "Brand name placed before @ to disguise the real host",
    "brand_impersonation": "Brand name paired with phishing lure terms off the official domain",
    "iplogger": "Known IP logger or visitor tracking link",
    "punycode": "Internationalized (punycode) domain",
    "url_shortener": "URL shortener hides the destination",
    "free_hosting": "Hosted on a free hosting platform",
    "invalid_url": "URL could not be parsed",
}


def indicators_from_flags(
    flags: list[str],
    host: str = "",
    *,
    keywords: list[str] | None = None,
    matches: list[str] | None = None,
) -> list[ThreatIndicator]:
    keywords = keywords or []
    indicators: list[ThreatIndicator] = []
    for flag in flags:
        if flag == "known_safe_domain":
            continue
        if flag == "suspicious_keywords":
            indicators.append(
                ThreatIndicator(
                    type=flag,
                    value=", ".join(keywords),
                    severity="high" if len(keywords) >= 2 else "medium",
                    description=f"Suspicious keywords: {', '.join(keywords)}" if keywords else "Suspicious keywords in URL",
                )
            )
            continue
        value = host
        if flag == "typosquatting" and matches:
            value = f"{host} ({matches[0]})"
        indicators.append(
            ThreatIndicator(
                type=flag,
                value=value,
                severity=FLAG_SEVERITY.get(flag, "medium"),
                description=FLAG_DESCRIPTION.get(flag, flag.replace("_", " ")),
            )
        )
    return indicators


def indicators_from_reputation(hit: ReputationHit | None) -> list[ThreatIndicator]:
    if hit is None or not hit.is_blacklisted:
        return []
    severity = str(hit.severity or "high").lower()
    return [
        ThreatIndicator(
            type="reputation_blacklist",
            value=hit.source,
            severity=severity if severity in {"low", "medium", "high", "critical"} else "high",
            description=f"Listed as malicious by {hit.source}",
        )
    ]


def indicators_from_pattern(result: PatternMatchResult, host: str = "") -> list[ThreatIndicator]:
    return indicators_from_flags(result.flags, host, keywords=result.keywords, matches=result.matches)
