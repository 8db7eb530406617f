from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

import redis

from kanban.config import settings

logger = logging.getLogger(__name__)

_SWEEP_INTERVAL_SECONDS = 60


@dataclass
class _Window:
  reset_at: float
  count: int


class RateLimiter:
  """
  Fixed-window rate limiter for the auth endpoints.

  Counts in Redis when a URL is configured so limits hold across replicas,
  otherwise in process memory. A Redis outage degrades to memory counting
  instead of failing the request.
  """

  def __init__(self, redis_url: str | None = None) -> None:
    self._lock = Lock()
    self._windows: dict[str, _Window] = {}
    self._next_sweep = 0.0
    self._redis: redis.Redis | None = None
    if redis_url:
      try:
        self._redis = redis.Redis.from_url(redis_url, decode_responses=True)
      except ValueError:
        logger.warning("Invalid REDIS_URL; rate limiting in memory")

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    """
    if self._redis is not None:
      try:
        return self._hit_redis(key, limit=limit, window_seconds=window_seconds)
      except redis.RedisError as exc:
        logger.warning("Redis rate limiter unavailable (%s); counting in memory", exc)
    return self._hit_memory(key, limit=limit, window_seconds=window_seconds)

  def _hit_redis(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    rk = f"rl:{key}"
    pipe = self._redis.pipeline()
    pipe.incr(rk, 1)
    pipe.expire(rk, int(window_seconds), nx=True)
    pipe.ttl(rk)
    count, _, ttl = pipe.execute()
    if int(count) <= int(limit):
      return True, 0
    return False, int(ttl) if int(ttl) > 0 else int(window_seconds)

  def _hit_memory(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    now = time.time()
    with self._lock:
      if now >= self._next_sweep:
        self._sweep(now)
      w = self._windows.get(key)
      if w is None or now >= w.reset_at:
        self._windows[key] = _Window(reset_at=now + window_seconds, count=1)
        return True, 0
      if w.count >= limit:
        return False, max(1, int(w.reset_at - now))
      w.count += 1
      return True, 0

  def _sweep(self, now: float) -> None:
    # one window per client ip and email seen; drop the finished ones
    for k in [k for k, w in self._windows.items() if now >= w.reset_at]:
      del self._windows[k]
    self._next_sweep = now + _SWEEP_INTERVAL_SECONDS

  def reset_prefix(self, prefix: str) -> None:
    """Forget in-memory windows whose key starts with ``prefix``."""
    with self._lock:
      for k in [k for k in self._windows if k.startswith(prefix)]:
        del self._windows[k]


limiter = RateLimiter(settings.redis_url)
