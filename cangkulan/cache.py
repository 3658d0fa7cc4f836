"""
In-flight de-duplication with a short-lived result cache.

``RequestCache.dedupe(key, fetcher, ttl)``:

- a cached result younger than ``ttl`` seconds is returned as is;
- if the same key is already being fetched, callers await that one fetch;
- otherwise ``fetcher()`` runs, and its result is cached on success. Failures
  are not cached and release the in-flight slot.

Instances are owned explicitly (the orchestrator holds one); there is no
module-level singleton.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

__all__ = ["RequestCache", "create_cache_key"]

T = TypeVar("T")

DEFAULT_TTL = 5.0
# Entries older than this are stale whatever TTL the caller later asks for.
STALE_AFTER = 60.0


@dataclass
class _Entry:
    data: Any
    timestamp: float


class RequestCache:
    def __init__(self, max_size: int = 200, *, clock: Callable[[], float] = time.monotonic) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._clock = clock
        self._cache: "OrderedDict[str, _Entry]" = OrderedDict()
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}

    def __len__(self) -> int:
        return len(self._cache)

    async def dedupe(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: float = DEFAULT_TTL,
    ) -> T:
        cached = self._cache.get(key)
        if cached is not None and self._clock() - cached.timestamp < ttl:
            return cached.data

        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        fut: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._pending[key] = fut
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as exc:
            fut.set_exception(exc)
            # Waiters (if any) re-raise it; mark retrieved for the no-waiter case.
            fut.exception()
            raise
        else:
            self._store(key, data)
            if not fut.done():
                fut.set_result(data)
            return data
        finally:
            if self._pending.get(key) is fut:
                del self._pending[key]

    def _store(self, key: str, data: Any) -> None:
        if len(self._cache) >= self.max_size:
            self._evict_expired()
        if len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)
        self._cache.pop(key, None)
        self._cache[key] = _Entry(data=data, timestamp=self._clock())

    def _evict_expired(self) -> None:
        now = self._clock()
        for k in [k for k, e in self._cache.items() if now - e.timestamp > STALE_AFTER]:
            del self._cache[k]

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def invalidate_pattern(self, pattern: Union[str, "re.Pattern[str]"]) -> None:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        for k in [k for k in self._cache if regex.search(k)]:
            del self._cache[k]

    def clear(self) -> None:
        self._cache.clear()
        self._pending.clear()

    def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        return entry.data if entry is not None else None


def create_cache_key(*parts: Union[str, int]) -> str:
    return ":".join(str(p) for p in parts)
