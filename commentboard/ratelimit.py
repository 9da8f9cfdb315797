import logging
import math
import time
from dataclasses import dataclass

import redis.asyncio as redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    limit: int
    count: int
    reset_after_ms: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)

    @property
    def reset_after_seconds(self) -> int:
        return max(math.ceil(self.reset_after_ms / 1000), 0)


class RateLimiter:
    """
    Fixed-window request counter keyed by client address.

    Counters live in Redis when it is reachable so that every worker shares
    the same window.  Without Redis (not configured, ping failed, or a
    command error) hits are counted in-process instead; the limiter never
    fails a request because its store is down.
    """

    KEY_PREFIX = "ratelimit:"

    def __init__(self, window_ms: int, max_requests: int, redis_url: str | None = None) -> None:
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._redis_url = redis_url
        self._redis: redis.Redis | None = None
        # key -> (count, window reset time in monotonic ms)
        self._windows: dict[str, tuple[int, float]] = {}
        # Expired windows are swept at most once per window length.
        self._next_purge = 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        if not self._redis_url:
            logger.info("Rate limiter using in-process counters")
            return
        client = redis.from_url(
            self._redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:
            logger.warning("Redis ping failed, rate limiter using in-process counters: %s", exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Rate limiter connected to Redis: %s", self._redis_url)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Counting
    # ------------------------------------------------------------------

    async def hit(self, key: str) -> RateLimitResult:
        """Count one request for *key* and report where it stands in its window."""
        if self._redis:
            try:
                return await self._hit_redis(key)
            except Exception as exc:
                logger.debug("Rate limit INCR error for key=%r: %s", key, exc)
        return self._hit_memory(key)

    async def _hit_redis(self, key: str) -> RateLimitResult:
        redis_key = f"{self.KEY_PREFIX}{key}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.pttl(redis_key)
            count, ttl = await pipe.execute()
        if ttl < 0:
            # First hit of a new window (or a key that lost its expiry).
            await self._redis.pexpire(redis_key, self.window_ms)
            ttl = self.window_ms
        return RateLimitResult(limit=self.max_requests, count=int(count), reset_after_ms=int(ttl))

    def _hit_memory(self, key: str) -> RateLimitResult:
        now = time.monotonic() * 1000
        count, reset_at = self._windows.get(key, (0, 0.0))
        if now >= reset_at:
            if now >= self._next_purge:
                self._purge(now)
                self._next_purge = now + self.window_ms
            count, reset_at = 0, now + self.window_ms
        count += 1
        self._windows[key] = (count, reset_at)
        return RateLimitResult(
            limit=self.max_requests, count=count, reset_after_ms=int(reset_at - now)
        )

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        """Forget every in-process window."""
        self._windows.clear()
        self._next_purge = 0.0
