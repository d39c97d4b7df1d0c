"""Bounded retry with jittered exponential backoff for remote scan calls."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import time
from typing import Callable, TypeVar

from phish_url_detection_engine.core.errors import BackendTimeoutError, NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (NetworkError, BackendTimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 10.0
    jitter_ratio: float = 0.1

    def normalized(self) -> "RetryPolicy":
        base = max(0.0, float(self.base_delay_s))
        return RetryPolicy(
            max_retries=max(0, int(self.max_retries)),
            base_delay_s=base,
            max_delay_s=max(base, float(self.max_delay_s)),
            jitter_ratio=max(0.0, min(1.0, float(self.jitter_ratio))),
        )


def compute_backoff(attempt: int, policy: RetryPolicy, rng: random.Random | None = None) -> float:
    """Delay before retry number ``attempt`` (0-based), in seconds."""

    active = policy.normalized()
    draw = (rng or random).random()
    delay = active.base_delay_s * (2 ** max(0, attempt)) * (1.0 + active.jitter_ratio * draw)
    return min(delay, active.max_delay_s)


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
    label: str = "call",
) -> T:
    """Run ``fn`` until it succeeds or the retry budget is spent.

    Only transient failures are retried; anything else (including
    ``AuthError``) propagates on the first occurrence. The last transient
    error is re-raised once attempts are exhausted.
    """

    active = (policy or RetryPolicy()).normalized()
    attempt = 0
    while True:
        try:
            return fn()
        except RETRYABLE_ERRORS as exc:
            if attempt >= active.max_retries:
                logger.warning("%s failed after %d attempts: %s", label, attempt + 1, exc)
                raise
            delay = compute_backoff(attempt, active, rng)
            logger.info("%s attempt %d failed (%s); retrying in %.2fs", label, attempt + 1, exc, delay)
            sleep(delay)
            attempt += 1
