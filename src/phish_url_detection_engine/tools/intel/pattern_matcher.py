"""Deterministic rule-based URL risk scoring.

Every check adds a fixed weight to an additive score which is clamped to
[0, 1]. The matcher performs no I/O and is the terminal fallback of the scan
chain, so it must never raise for any input.

Brands are matched against whole host and URL tokens (split on punctuation
and digits), never against raw substrings, so ``purchase.com`` does not read
as Chase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import ipaddress
import re
from urllib.parse import urlparse

KNOWN_BRANDS: tuple[tuple[str, str], ...] = (
    ("kbb.com", "Kelley Blue Book"),
    ("paypal.com", "PayPal"),
    ("amazon.com", "Amazon"),
    ("microsoft.com", "Microsoft"),
    ("google.com", "Google"),
    ("apple.com", "Apple"),
    ("facebook.com", "Facebook"),
    ("netflix.com", "Netflix"),
    ("chase.com", "Chase Bank"),
    ("wellsfargo.com", "Wells Fargo"),
    ("bankofamerica.com", "Bank of America"),
)
# Domains a brand legitimately operates beyond ``<brand>.com``.
OFFICIAL_DOMAINS: dict[str, tuple[str, ...]] = {
    "google": ("google.com", "google.co.uk", "googleapis.com", "gmail.com", "youtube.com"),
    "gmail": ("gmail.com", "google.com"),
    "microsoft": ("microsoft.com", "live.com", "outlook.com", "office.com", "azure.com"),
    "outlook": ("outlook.com", "live.com", "office.com", "microsoft.com"),
    "apple": ("apple.com", "icloud.com"),
    "facebook": ("facebook.com", "fb.com", "meta.com"),
    "amazon": ("amazon.com", "amazon.co.uk"),
    "twitter": ("twitter.com", "x.com"),
    "dropbox": ("dropbox.com", "dropboxusercontent.com"),
    "chase": ("chase.com", "jpmorganchase.com"),
    "wellsfargo": ("wellsfargo.com", "wf.com"),
    "bankofamerica": ("bankofamerica.com", "bofa.com"),
    "citibank": ("citibank.com", "citi.com"),
    "coinbase": ("coinbase.com", "coinbase.io"),
    "binance": ("binance.com", "binance.us"),
    "reddit": ("reddit.com", "redd.it"),
}
# Graduated per-TLD risk; also feeds the lexical ``tld_risk`` feature.
TLD_RISK: dict[str, float] = {
    "tk": 0.9,
    "ml": 0.85,
    "ga": 0.85,
    "cf": 0.85,
    "gq": 0.85,
    "pw": 0.8,
    "xyz": 0.7,
    "top": 0.7,
    "work": 0.65,
    "click": 0.65,
    "link": 0.6,
    "loan": 0.6,
    "ws": 0.6,
    "online": 0.55,
    "bid": 0.55,
    "download": 0.55,
    "info": 0.5,
    "site": 0.5,
    "website": 0.5,
    "live": 0.5,
    "buzz": 0.5,
    "racing": 0.5,
    "space": 0.45,
    "tech": 0.45,
    "club": 0.45,
    "party": 0.45,
    "store": 0.4,
    "cc": 0.35,
}
SUSPICIOUS_KEYWORDS = (
    "login",
    "signin",
    "account",
    "verify",
    "secure",
    "update",
    "confirm",
    "banking",
    "password",
    "wallet",
    "auth",
    "credential",
)
KNOWN_SAFE_DOMAINS = (
    "google.com",
    "microsoft.com",
    "apple.com",
    "amazon.com",
    "github.com",
    "facebook.com",
    "twitter.com",
    "linkedin.com",
    "youtube.com",
    "netflix.com",
    "paypal.com",
    "ebay.com",
)
URL_SHORTENERS = (
    "bit.ly",
    "goo.gl",
    "tinyurl.com",
    "ow.ly",
    "t.co",
    "short.link",
    "is.gd",
    "buff.ly",
    "tiny.cc",
    "cutt.ly",
    "rb.gy",
    "shorturl.at",
    "adf.ly",
    "bit.do",
)
# Free hosting platforms and the factor applied to the final score.
HOSTING_MULTIPLIERS: dict[str, float] = {
    "pages.dev": 1.8,
    "workers.dev": 1.6,
    "netlify.app": 1.5,
    "vercel.app": 1.5,
    "github.io": 1.4,
    "herokuapp.com": 1.3,
    "web.app": 1.3,
    "firebaseapp.com": 1.3,
    "glitch.me": 1.3,
    "replit.co": 1.2,
    "surge.sh": 1.2,
}


@dataclass(frozen=True)
class ThreatPattern:
    """A campaign family: brand tokens that must co-occur with lure tokens."""

    name: str
    category: str
    brands: tuple[str, ...]
    actions: tuple[str, ...] = ()
    techniques: tuple[str, ...] = ()
    base_risk: float = 0.5
    min_matches: int = 2


THREAT_PATTERNS: tuple[ThreatPattern, ...] = (
    ThreatPattern(
        name="crypto_wallet",
        category="crypto",
        brands=(
            "metamask", "trustwallet", "coinbase", "ledger", "phantom", "exodus", "trezor", "binance",
            "kraken", "crypto", "bitcoin", "ethereum", "wallet", "defi", "nft", "opensea", "uniswap",
        ),
        actions=(
            "claim", "airdrop", "mint", "stake", "swap", "connect", "verify", "unlock", "seed", "phrase",
            "recovery", "import",
        ),
        techniques=("dapp", "web3", "bridge", "liquidity"),
        base_risk=0.75,
    ),
    ThreatPattern(
        name="banking",
        category="banking",
        brands=(
            "chase", "paypal", "venmo", "wellsfargo", "citibank", "capitalone", "bankofamerica", "usbank",
            "pnc", "hsbc", "barclays", "santander", "cashapp", "zelle",
        ),
        actions=(
            "login", "verify", "confirm", "suspended", "locked", "urgent", "update", "secure", "authenticate",
            "reactivate",
        ),
        base_risk=0.70,
    ),
    ThreatPattern(
        name="ecommerce",
        category="ecommerce",
        brands=(
            "amazon", "ebay", "walmart", "alibaba", "shopify", "etsy", "bestbuy", "target", "costco",
            "homedepot", "lowes",
        ),
        actions=("order", "delivery", "refund", "payment", "track", "shipping", "invoice", "receipt", "cancel"),
        base_risk=0.60,
    ),
    ThreatPattern(
        name="enterprise",
        category="enterprise",
        brands=(
            "microsoft", "office365", "google", "gmail", "teams", "outlook", "onedrive", "sharepoint", "azure",
            "dropbox", "slack", "zoom", "webex",
        ),
        actions=("login", "sso", "mfa", "expired", "reset", "password", "authenticate", "verify", "quota", "storage"),
        base_risk=0.65,
    ),
    ThreatPattern(
        name="social",
        category="social",
        brands=(
            "facebook", "instagram", "twitter", "linkedin", "tiktok", "snapchat", "whatsapp", "telegram",
            "discord", "reddit", "youtube",
        ),
        actions=("login", "verify", "suspended", "appeal", "recover", "unlock", "security", "checkpoint"),
        base_risk=0.55,
    ),
    ThreatPattern(
        name="streaming",
        category="streaming",
        brands=(
            "netflix", "disney", "disneyplus", "hulu", "hbo", "hbomax", "prime", "paramount", "spotify", "apple",
        ),
        actions=("login", "verify", "billing", "payment", "subscription", "renew", "cancel", "update"),
        base_risk=0.50,
    ),
    ThreatPattern(
        name="iplogger",
        category="iplogger",
        brands=("iplogger", "grabify", "blasze", "yip", "ezstat", "ipgrabber", "2no.co", "iplogger.org", "grabify.link"),
        base_risk=0.85,
        min_matches=1,
    ),
)
# Lookalike digits commonly swapped into brand names.
_HOMOGLYPHS = str.maketrans({"0": "o", "1": "l", "3": "e", "4": "a", "5": "s"})
_DECIMAL_IP_RE = re.compile(r"^\d{8,}$")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z]+")


@dataclass
class PatternMatcherPolicy:
    known_brands: tuple[tuple[str, str], ...] = KNOWN_BRANDS
    tld_risk: dict[str, float] = field(default_factory=lambda: dict(TLD_RISK))
    hosting_multipliers: dict[str, float] = field(default_factory=lambda: dict(HOSTING_MULTIPLIERS))
    threat_patterns: tuple[ThreatPattern, ...] = THREAT_PATTERNS
    suspicious_keywords: tuple[str, ...] = SUSPICIOUS_KEYWORDS
    known_safe_domains: tuple[str, ...] = KNOWN_SAFE_DOMAINS
    ip_address_weight: float = 0.30
    typosquat_weight: float = 0.45
    brand_hyphen_weight: float = 0.30
    excessive_hyphen_weight: float = 0.10
    brand_digit_weight: float = 0.15
    # A listed TLD adds ``tld_weight_scale * TLD_RISK[tld]``.
    tld_weight_scale: float = 0.25
    # Campaign matches add ``threat_pattern_scale * risk`` for the riskiest family.
    threat_pattern_scale: float = 0.40
    subdomain_weight: float = 0.15
    keyword_weight: float = 0.15
    no_https_weight: float = 0.15
    long_domain_weight: float = 0.05
    credential_stuffing_weight: float = 0.50
    punycode_weight: float = 0.25
    shortener_weight: float = 0.10
    free_hosting_weight: float = 0.10
    safe_domain_discount: float = 0.50
    max_subdomains: int = 3
    max_host_length: int = 40


@dataclass
class ThreatPatternMatch:
    pattern: str
    category: str
    tokens: list[str]
    risk: float


@dataclass
class PatternMatchResult:
    score: float
    confidence: float
    flags: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    matches: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    threat_matches: list[ThreatPatternMatch] = field(default_factory=list)

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr.append(min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + cost))
        prev = curr
    return prev[-1]


def is_ip_host(host: str) -> bool:
    clean = (host or "").strip("[]")
    try:
        ipaddress.ip_address(clean)
    except ValueError:
        return bool(_DECIMAL_IP_RE.match(clean))
    return True


def url_tokens(text: str) -> set[str]:
    """Alphabetic tokens of ``text``, as written and with homoglyph digits mapped back."""

    lowered = (text or "").lower()
    tokens = set(_TOKEN_SPLIT_RE.split(lowered))
    tokens.update(_TOKEN_SPLIT_RE.split(lowered.translate(_HOMOGLYPHS)))
    tokens.discard("")
    return tokens


def _on_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def _first_label(host: str) -> str:
    parts = [part for part in host.split(".") if part]
    if len(parts) < 2:
        return host
    return parts[-2]


def is_official_domain(host: str, brand: str) -> bool:
    domains = OFFICIAL_DOMAINS.get(brand, (f"{brand}.com",))
    return any(_on_domain(host, domain) for domain in domains)


def _token_present(token: str, tokens: set[str], host: str, text: str) -> bool:
    if token.isalpha():
        return token in tokens
    if "." in token:
        return _on_domain(host, token)
    return token in text


class PatternMatcher:
    """Additive lexical/structural URL scorer."""

    def __init__(self, policy: PatternMatcherPolicy | None = None) -> None:
        self.policy = policy or PatternMatcherPolicy()

    def _brand_hits(self, host: str) -> list[tuple[str, str]]:
        tokens = url_tokens(host)
        label = _first_label(host.translate(_HOMOGLYPHS))
        hits: list[tuple[str, str]] = []
        for domain, name in self.policy.known_brands:
            brand = domain.split(".")[0]
            if _on_domain(host, domain) or is_official_domain(host, brand):
                continue
            if brand in tokens:
                hits.append((domain, name))
            elif len(brand) >= 5 and levenshtein(label, brand) == 1:
                hits.append((domain, name))
        return hits

    def threat_matches(self, host: str, text: str, tokens: set[str]) -> list[ThreatPatternMatch]:
        """Campaign families whose brand co-occurs with enough lure tokens."""

        found: list[ThreatPatternMatch] = []
        for pattern in self.policy.threat_patterns:
            brands = [
                brand
                for brand in pattern.brands
                if _token_present(brand, tokens, host, text) and not is_official_domain(host, brand)
            ]
            if not brands:
                continue
            lures = [item for item in (*pattern.actions, *pattern.techniques) if _token_present(item, tokens, host, text)]
            matched = brands + lures
            if len(matched) < pattern.min_matches:
                continue
            risk = min(pattern.base_risk + (len(matched) - pattern.min_matches) * 0.05, 0.95)
            found.append(ThreatPatternMatch(pattern.name, pattern.category, matched, round(risk, 4)))
        return found

    def analyze(self, url: str) -> PatternMatchResult:
        active = self.policy
        raw = (url or "").strip()
        try:
            parsed = urlparse(raw if "://" in raw else f"https://{raw}")
            host = (parsed.hostname or "").lower()
        except ValueError:
            host = ""
        if not host:
            return PatternMatchResult(
                score=0.5,
                confidence=0.3,
                flags=["invalid_url"],
                reasoning=["Could not parse URL"],
            )

        lowered = raw.lower()
        path = (parsed.path or "").lower()
        text = f"{host}{path}?{(parsed.query or '').lower()}"
        tokens = url_tokens(text)
        score = 0.0
        flags: list[str] = []
        reasoning: list[str] = []

        def hit(flag: str, weight: float, reason: str) -> None:
            nonlocal score
            score += weight
            if flag not in flags:
                flags.append(flag)
            reasoning.append(reason)

        ip_host = is_ip_host(host)
        if ip_host:
            hit("ip_address", active.ip_address_weight, "Uses IP address instead of domain")

        brand_hits = [] if ip_host else self._brand_hits(host)
        if brand_hits:
            domain, name = brand_hits[0]
            hit("typosquatting", active.typosquat_weight, f"CRITICAL: Possible typosquatting attempt on {name}")
            reasoning.append(f"Legitimate domain: {domain}, Suspicious: {host}")

        threat_matches = [] if ip_host else self.threat_matches(host, text, tokens)
        campaigns = [item for item in threat_matches if item.category != "iplogger"]
        if campaigns:
            top = max(campaigns, key=lambda item: item.risk)
            hit(
                "brand_impersonation",
                active.threat_pattern_scale * top.risk,
                f"{top.category.upper()} pattern: {', '.join(top.tokens)}",
            )
            reasoning.extend(
                f"{item.category.upper()} pattern: {', '.join(item.tokens)}" for item in campaigns if item is not top
            )
        for item in threat_matches:
            if item.category == "iplogger":
                hit("iplogger", item.risk, f"IP logger link detected: {', '.join(item.tokens)}")

        hyphens = host.count("-")
        if hyphens and brand_hits:
            hit("suspicious_hyphens", active.brand_hyphen_weight, "Hyphenated brand name (common typosquatting technique)")
        elif hyphens > 2:
            hit("excessive_hyphens", active.excessive_hyphen_weight, f"{hyphens} hyphens in domain")

        if brand_hits and any(ch.isdigit() for ch in host):
            hit("suspicious_digits", active.brand_digit_weight, "Brand domain with numbers (suspicious pattern)")

        tld = host.rsplit(".", 1)[-1] if "." in host else ""
        tld_risk = active.tld_risk.get(tld, 0.0) if not ip_host else 0.0
        if tld_risk > 0:
            hit(
                "risky_tld",
                active.tld_weight_scale * tld_risk,
                f"High-risk TLD: .{tld} ({tld_risk * 100:.0f}% base risk)",
            )

        subdomains = max(0, len(host.split(".")) - 2)
        if subdomains > active.max_subdomains and not ip_host:
            hit("excessive_subdomains", active.subdomain_weight, f"{subdomains} subdomains detected (sign of subdomain abuse)")

        keywords = [kw for kw in active.suspicious_keywords if kw in host or kw in path]
        if keywords:
            score += active.keyword_weight * len(keywords)
            flags.append("suspicious_keywords")
            reasoning.append(f"Contains {len(keywords)} suspicious keywords: {', '.join(keywords)}")

        if (parsed.scheme or "").lower() != "https":
            hit("no_https", active.no_https_weight, "Not using HTTPS encryption")

        if len(host) > active.max_host_length:
            hit("long_domain", active.long_domain_weight, "Unusually long domain name")

        if "xn--" in host:
            hit("punycode", active.punycode_weight, "Punycode/IDN domain detected")

        if any(_on_domain(host, item) for item in URL_SHORTENERS):
            hit("url_shortener", active.shortener_weight, "URL shortener hides the final destination")

        multiplier = 1.0
        for suffix, factor in active.hosting_multipliers.items():
            if host.endswith(f".{suffix}"):
                multiplier = factor
                hit("free_hosting", active.free_hosting_weight, f"Hosted on {suffix} ({factor}x risk multiplier)")
                break

        if "@" in lowered:
            before_at = url_tokens(lowered.split("@", 1)[0])
            if any(domain.split(".")[0] in before_at for domain, _ in active.known_brands):
                hit(
                    "credential_stuffing",
                    active.credential_stuffing_weight,
                    "Credential stuffing pattern detected (brand@evil-domain)",
                )

        score *= multiplier
        if any(_on_domain(host, safe) for safe in active.known_safe_domains):
            score -= active.safe_domain_discount
            flags.append("known_safe_domain")
            reasoning.insert(0, "Known trusted domain")

        score = max(0.0, min(1.0, score))
        if "credential_stuffing" in flags and score >= 0.85:
            score = max(score, 0.95)
        confidence = min(0.5 + 0.1 * len(flags), 0.95)
        return PatternMatchResult(
            score=round(score, 4),
            confidence=round(confidence, 4),
            flags=flags,
            reasoning=reasoning,
            matches=[name for _, name in brand_hits],
            keywords=keywords,
            threat_matches=threat_matches,
        )


def analyze_url_patterns(url: str, *, policy: PatternMatcherPolicy | None = None) -> PatternMatchResult:
    return PatternMatcher(policy).analyze(url)
