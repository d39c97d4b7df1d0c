from phish_url_detection_engine.infra.cache import DictCache
from phish_url_detection_engine.infra.reputation import InMemoryReputationList


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_cache_entries_expire():
    clock = _Clock()
    cache = DictCache(ttl_s=10, clock=clock)
    cache.set("k", "v")
    assert cache.get("k") == "v"
    clock.now += 10
    assert cache.get("k") is None
    assert len(cache) == 0


def test_cache_without_ttl_keeps_entries():
    cache = DictCache()
    cache.set("k", 1)
    assert cache.get("k") == 1
    assert cache.get("missing", "default") == "default"
    cache.clear()
    assert len(cache) == 0


def test_reputation_matches_subdomains():
    reputation = InMemoryReputationList(allow=["Example.com"], block=["evil.test"], source="ops")
    allowed = reputation.lookup("https://login.example.com/x")
    assert allowed.is_whitelisted is True
    assert allowed.source == "ops"
    blocked = reputation.lookup("http://cdn.evil.test")
    assert blocked.is_blacklisted is True
    assert blocked.severity == "high"
    assert reputation.lookup("https://notexample.com") is None
    assert reputation.lookup("not a url") is None


def test_block_entry_wins_over_allow():
    reputation = InMemoryReputationList()
    reputation.add_allowed("shared.example")
    assert reputation.lookup("https://shared.example").is_whitelisted is True
    reputation.add_blocked("shared.example")
    hit = reputation.lookup("https://shared.example")
    assert hit.is_blacklisted is True
    assert hit.is_whitelisted is False


def test_cache_is_bounded_by_max_entries():
    cache = DictCache(max_entries=8)
    for index in range(100):
        cache.set(f"https://site{index}.example|auto", index)
    assert len(cache) == 8
    assert cache.get("https://site0.example|auto") is None
    assert cache.get("https://site99.example|auto") == 99


def test_cache_drops_least_recently_used():
    cache = DictCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_cache_write_purges_expired_entries():
    clock = _Clock()
    cache = DictCache(ttl_s=10, max_entries=None, clock=clock)
    for index in range(50):
        cache.set(f"old-{index}", index)
    clock.now += 10
    cache.set("fresh", "v")
    assert len(cache) == 1
