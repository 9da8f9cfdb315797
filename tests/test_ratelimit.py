"""
Rate limiter unit tests: fixed-window counting in process and the
fallback from Redis when the store misbehaves.
"""
from types import SimpleNamespace

import pytest

from commentboard import ratelimit
from commentboard.ratelimit import RateLimiter, RateLimitResult


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch) -> _Clock:
    c = _Clock()
    # Replace the module's ``time`` rather than ``time.monotonic`` itself,
    # which the event loop also reads.
    monkeypatch.setattr(ratelimit, "time", SimpleNamespace(monotonic=c))
    return c


# ---------------------------------------------------------------------------
# RateLimitResult
# ---------------------------------------------------------------------------

def test_result_properties():
    result = RateLimitResult(limit=5, count=2, reset_after_ms=1500)
    assert result.allowed
    assert result.remaining == 3
    assert result.reset_after_seconds == 2


def test_result_over_limit():
    result = RateLimitResult(limit=5, count=7, reset_after_ms=0)
    assert not result.allowed
    assert result.remaining == 0
    assert result.reset_after_seconds == 0


# ---------------------------------------------------------------------------
# In-process counting
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_memory_counts_per_key(clock):
    limiter = RateLimiter(window_ms=60_000, max_requests=2)

    assert (await limiter.hit("a")).count == 1
    assert (await limiter.hit("a")).count == 2
    third = await limiter.hit("a")
    assert third.count == 3
    assert not third.allowed

    other = await limiter.hit("b")
    assert other.count == 1
    assert other.allowed


@pytest.mark.asyncio
async def test_memory_window_resets(clock):
    limiter = RateLimiter(window_ms=1000, max_requests=1)

    first = await limiter.hit("client")
    assert first.reset_after_ms == 1000
    assert not (await limiter.hit("client")).allowed

    clock.now += 0.5
    blocked = await limiter.hit("client")
    assert not blocked.allowed
    assert blocked.reset_after_ms == 500

    clock.now += 0.5
    fresh = await limiter.hit("client")
    assert fresh.allowed
    assert fresh.count == 1


@pytest.mark.asyncio
async def test_memory_purges_expired_windows(clock):
    limiter = RateLimiter(window_ms=1000, max_requests=10)
    await limiter.hit("old")
    clock.now += 2
    await limiter.hit("new")
    assert "old" not in limiter._windows
    assert "new" in limiter._windows


@pytest.mark.asyncio
async def test_memory_purge_runs_once_per_window(clock, monkeypatch):
    """Many new clients inside one window trigger a single sweep."""
    limiter = RateLimiter(window_ms=1000, max_requests=10)
    sweeps = []
    original = limiter._purge

    def counting_purge(now):
        sweeps.append(now)
        original(now)

    monkeypatch.setattr(limiter, "_purge", counting_purge)

    for n in range(50):
        await limiter.hit(f"client-{n}")
    assert len(sweeps) == 1

    clock.now += 1
    await limiter.hit("late")
    assert len(sweeps) == 2
    assert set(limiter._windows) == {"late"}


@pytest.mark.asyncio
async def test_reset_forgets_windows(clock):
    limiter = RateLimiter(window_ms=1000, max_requests=1)
    await limiter.hit("c")
    limiter.reset()
    assert (await limiter.hit("c")).count == 1


# ---------------------------------------------------------------------------
# Redis path
# ---------------------------------------------------------------------------

class _FakePipeline:
    def __init__(self, store: "_FakeRedis") -> None:
        self.store = store
        self.ops: list[tuple[str, str]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def incr(self, key):
        self.ops.append(("incr", key))

    def pttl(self, key):
        self.ops.append(("pttl", key))

    async def execute(self):
        if self.store.broken:
            raise ConnectionError("redis went away")
        results = []
        for op, key in self.ops:
            if op == "incr":
                self.store.counts[key] = self.store.counts.get(key, 0) + 1
                results.append(self.store.counts[key])
            else:
                results.append(self.store.ttls.get(key, -1))
        return results


class _FakeRedis:
    def __init__(self, broken: bool = False) -> None:
        self.broken = broken
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    def pipeline(self, transaction=True):
        return _FakePipeline(self)

    async def pexpire(self, key, ms):
        self.ttls[key] = ms

    async def ping(self):
        if self.broken:
            raise ConnectionError("refused")
        return True

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_redis_counts_and_sets_expiry():
    limiter = RateLimiter(window_ms=900_000, max_requests=2)
    fake = _FakeRedis()
    limiter._redis = fake

    first = await limiter.hit("1.2.3.4")
    assert first.count == 1
    assert first.reset_after_ms == 900_000
    assert fake.ttls["ratelimit:1.2.3.4"] == 900_000

    await limiter.hit("1.2.3.4")
    third = await limiter.hit("1.2.3.4")
    assert not third.allowed
    assert limiter._windows == {}


@pytest.mark.asyncio
async def test_redis_error_falls_back_to_memory(clock):
    limiter = RateLimiter(window_ms=1000, max_requests=5)
    limiter._redis = _FakeRedis(broken=True)

    result = await limiter.hit("client")
    assert result.count == 1
    assert result.allowed
    assert "client" in limiter._windows


@pytest.mark.asyncio
async def test_connect_without_url_stays_in_process():
    limiter = RateLimiter(window_ms=1000, max_requests=5)
    await limiter.connect()
    assert limiter._redis is None
    await limiter.disconnect()


@pytest.mark.asyncio
async def test_connect_ping_failure_stays_in_process(monkeypatch):
    fake = _FakeRedis(broken=True)
    monkeypatch.setattr(ratelimit.redis, "from_url", lambda *args, **kwargs: fake)

    limiter = RateLimiter(window_ms=1000, max_requests=5, redis_url="redis://nowhere:6379/0")
    await limiter.connect()
    assert limiter._redis is None
    assert fake.closed


@pytest.mark.asyncio
async def test_connect_and_disconnect(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(ratelimit.redis, "from_url", lambda *args, **kwargs: fake)

    limiter = RateLimiter(window_ms=1000, max_requests=5, redis_url="redis://localhost:6379/0")
    await limiter.connect()
    assert limiter._redis is fake

    await limiter.disconnect()
    assert fake.closed
    assert limiter._redis is None
