"""
Retry policy with exponential backoff and multiplicative jitter.

Delay before attempt ``n + 1`` (after ``n`` failed attempts):

    raw(n)   = min(base_delay * backoff_factor ** (n - 1), max_delay)
    delay(n) = raw(n) * U(0.75, 1.25)

With the defaults (3 attempts, base 1 s, factor 2, cap 8 s) the raw delays
are 1 s then 2 s.

Example
-------
from cangkulan.tx.retry import RetryPolicy, aretry_call

async def flaky():
    ...

result = await aretry_call(flaky, policy=RetryPolicy(max_attempts=5))

Notes
-----
- ``retry_if`` decides which errors are retried; anything else propagates
  unchanged after the attempt that raised it.
- A retry-eligible failure on the last attempt raises ``RetryExhausted``
  chained from the last error.
- ``sleep`` and ``rng`` are injectable so tests run without wall-clock waits.
- ``on_retry`` receives (attempt_index, exception, sleep_seconds).
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from cangkulan.errors import RetryExhausted

__all__ = [
    "JITTER_MIN",
    "JITTER_MAX",
    "RetryPolicy",
    "raw_delay",
    "backoff_delay",
    "aretry_call",
]

T = TypeVar("T")

JITTER_MIN = 0.75
JITTER_MAX = 1.25

SleepFn = Callable[[float], Awaitable[Any]]
RngFn = Callable[[], float]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry budget. Delays are in seconds.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")


def raw_delay(attempt: int, policy: RetryPolicy) -> float:
    """Pre-jitter delay after failed attempt *attempt* (1-based)."""
    if attempt < 1:
        attempt = 1
    return min(policy.base_delay * (policy.backoff_factor ** (attempt - 1)), policy.max_delay)


def backoff_delay(attempt: int, policy: RetryPolicy, *, rng: RngFn = random.random) -> float:
    """Jittered delay: ``raw_delay * U(0.75, 1.25)``; *rng* returns a float in [0, 1)."""
    factor = JITTER_MIN + (JITTER_MAX - JITTER_MIN) * rng()
    return max(0.0, raw_delay(attempt, policy) * factor)


async def aretry_call(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: Optional[RetryPolicy] = None,
    retry_if: Callable[[BaseException], bool] = lambda _exc: True,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    attempt_timeout: Optional[float] = None,
    sleep: SleepFn = asyncio.sleep,
    rng: RngFn = random.random,
) -> T:
    """
    Await ``fn()`` up to ``policy.max_attempts`` times.

    ``attempt_timeout`` bounds each attempt with ``asyncio.wait_for``; a timed
    out attempt is cancelled and counts as a failure of that attempt.
    """
    policy = policy or RetryPolicy()

    attempt = 0
    while True:
        attempt += 1
        try:
            if attempt_timeout is not None:
                return await asyncio.wait_for(fn(), timeout=attempt_timeout)
            return await fn()
        except Exception as exc:
            if not retry_if(exc):
                raise
            if attempt >= policy.max_attempts:
                raise RetryExhausted(last_error=exc, attempts=attempt) from exc

            sleep_s = backoff_delay(attempt, policy, rng=rng)
            if on_retry is not None:
                on_retry(attempt, exc, sleep_s)
            await sleep(sleep_s)
