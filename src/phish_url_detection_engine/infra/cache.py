"""In-memory cache utilities."""

from __future__ import annotations

from collections import OrderedDict
import threading
import time

DEFAULT_MAX_ENTRIES = 1024


class DictCache:
    """Thread-safe LRU cache with an optional per-entry time-to-live.

    Expired entries are purged on every write and the least recently used
    entries are dropped once ``max_entries`` is exceeded.
    """

    def __init__(
        self,
        ttl_s: float | None = None,
        *,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock=time.monotonic,
    ) -> None:
        self._store: OrderedDict[str, tuple[float | None, object]] = OrderedDict()
        self._ttl_s = ttl_s if ttl_s and ttl_s > 0 else None
        self._max_entries = max_entries if max_entries and max_entries > 0 else None
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str, default: object | None = None) -> object | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._store[key]
                return default
            self._store.move_to_end(key)
            return value

    def set(self, key: str, value: object) -> None:
        now = self._clock()
        expires_at = now + self._ttl_s if self._ttl_s else None
        with self._lock:
            self._purge_expired(now)
            self._store[key] = (expires_at, value)
            self._store.move_to_end(key)
            if self._max_entries is not None:
                while len(self._store) > self._max_entries:
                    self._store.popitem(last=False)

    def _purge_expired(self, now: float) -> None:
        if self._ttl_s is None:
            return
        expired = [key for key, (expires_at, _) in self._store.items() if expires_at is not None and now >= expires_at]
        for key in expired:
            del self._store[key]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
