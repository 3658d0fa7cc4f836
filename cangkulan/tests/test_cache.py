import asyncio

import pytest

from cangkulan.cache import RequestCache, create_cache_key


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_create_cache_key():
    assert create_cache_key("game", 42) == "game:42"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_fetch():
    cache = RequestCache()
    calls = 0
    gate = asyncio.Event()

    async def fetch():
        nonlocal calls
        calls += 1
        await gate.wait()
        return {"phase": "Playing"}

    tasks = [asyncio.ensure_future(cache.dedupe("game:1", fetch)) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks)

    assert calls == 1
    assert all(r == {"phase": "Playing"} for r in results)


@pytest.mark.asyncio
async def test_ttl_expiry_and_invalidate():
    clock = Clock()
    cache = RequestCache(clock=clock)
    values = iter(range(10))

    async def fetch():
        return next(values)

    assert await cache.dedupe("k", fetch, ttl=5.0) == 0
    clock.now += 4.9
    assert await cache.dedupe("k", fetch, ttl=5.0) == 0
    clock.now += 0.2
    assert await cache.dedupe("k", fetch, ttl=5.0) == 1

    cache.invalidate("k")
    assert await cache.dedupe("k", fetch, ttl=5.0) == 2


@pytest.mark.asyncio
async def test_failures_are_shared_but_not_cached():
    cache = RequestCache()
    gate = asyncio.Event()
    attempts = 0

    async def failing():
        nonlocal attempts
        attempts += 1
        await gate.wait()
        raise RuntimeError("boom")

    tasks = [asyncio.ensure_future(cache.dedupe("k", failing)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    assert attempts == 1
    assert all(isinstance(r, RuntimeError) for r in results)

    async def ok():
        return "fine"

    assert await cache.dedupe("k", ok) == "fine"
    assert cache.get("k") == "fine"


@pytest.mark.asyncio
async def test_eviction_and_pattern_invalidation():
    cache = RequestCache(max_size=2)

    async def value(v):
        return v

    await cache.dedupe("game:1", lambda: value(1))
    await cache.dedupe("game:2", lambda: value(2))
    await cache.dedupe("hand:1", lambda: value(3))
    assert len(cache) == 2
    assert cache.get("game:1") is None

    cache.invalidate_pattern(r"^game:")
    assert cache.get("game:2") is None
    assert cache.get("hand:1") == 3

    cache.clear()
    assert len(cache) == 0


def test_max_size_validated():
    with pytest.raises(ValueError):
        RequestCache(max_size=0)
