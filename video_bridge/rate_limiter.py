"""Sliding-window request gating keyed by client address.

Two backends share the same algorithm:
- `InMemoryRateLimiter` keeps timestamps in process memory. Under scale-out the
  effective quota is `max_requests x warm instances`.
- `RedisRateLimiter` keeps them in a Redis sorted set so several instances
  share one window.
Both are best-effort: the check and the record are not atomic.
"""
import logging
import threading
import time
from typing import Dict, List, Mapping, Optional

import redis

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Capability interface: `admit(key, now)` returns False when the key is over quota."""

    def admit(self, key: str, now: Optional[int] = None) -> bool:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Per-process sliding window. Keys whose window has emptied are swept once per window."""

    def __init__(self, max_requests: int = 10, window_ms: int = 60000):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._hits: Dict[str, List[int]] = {}
        self._last_sweep = None
        self._lock = threading.Lock()

    def _sweep(self, now: int) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_ms]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now

    def admit(self, key: str, now: Optional[int] = None) -> bool:
        now = now_ms() if now is None else now
        with self._lock:
            if self._last_sweep is None or now - self._last_sweep >= self.window_ms:
                self._sweep(now)
            recent = [ts for ts in self._hits.get(key, []) if now - ts < self.window_ms]
            if len(recent) >= self.max_requests:
                self._hits[key] = recent
                return False
            recent.append(now)
            self._hits[key] = recent
            return True

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)


class RedisRateLimiter(RateLimiter):
    def __init__(self, client, max_requests: int = 10, window_ms: int = 60000, prefix: str = "video_bridge:rate"):
        self.client = client
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateLimiter":
        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def admit(self, key: str, now: Optional[int] = None) -> bool:
        now = now_ms() if now is None else now
        redis_key = f"{self.prefix}:{key}"
        # drop everything at or beyond the window edge, same as the in-memory filter
        self.client.zremrangebyscore(redis_key, "-inf", now - self.window_ms)
        if self.client.zcard(redis_key) >= self.max_requests:
            return False
        # member must be unique per hit; two hits in the same millisecond are both kept
        member = f"{now}-{time.perf_counter_ns()}"
        self.client.zadd(redis_key, {member: now})
        self.client.pexpire(redis_key, self.window_ms)
        return True


def build_rate_limiter(config) -> RateLimiter:
    if config.redis_url:
        logger.info("Using Redis-backed rate limiter")
        return RedisRateLimiter.from_url(
            config.redis_url, max_requests=config.rate_limit_max, window_ms=config.rate_limit_window_ms
        )
    return InMemoryRateLimiter(max_requests=config.rate_limit_max, window_ms=config.rate_limit_window_ms)


def client_address(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """Resolve the caller address, preferring the edge-provided headers."""
    direct = headers.get("x-nf-client-connection-ip")
    if direct:
        return direct.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return remote_addr or "unknown"
